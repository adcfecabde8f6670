"""OAuth authorization-code connection lifecycle service."""
