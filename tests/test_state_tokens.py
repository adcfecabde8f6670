from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from oauth_connect.core.errors import (
    StateAlreadyConsumedError,
    StateMissingError,
    StateNotFoundError,
)
from oauth_connect.services import OAuthStateEncoder, StateTokenManager


def _plant_lapsed_state(record_store, encoder: OAuthStateEncoder, user_id: str) -> str:
    issued_at = (datetime.now(timezone.utc) - timedelta(hours=2)).isoformat()
    value = encoder.encode({"nonce": "old", "user_id": user_id, "issued_at": issued_at})
    record_store.put_item(
        {"pk": "oauth#state", "sk": value, "user_id": user_id, "created_at": issued_at}
    )
    return value


def test_generate_binds_state_to_user(state_manager) -> None:
    state = state_manager.generate("user-1")

    assert state.user_id == "user-1"
    assert len(state.value) > 64
    assert state_manager.owner_of(state.value) == "user-1"


def test_generated_states_are_unique(state_manager) -> None:
    values = {state_manager.generate("user-1").value for _ in range(20)}

    assert len(values) == 20


def test_state_validates_once_then_reports_consumed(state_manager) -> None:
    state = state_manager.generate("user-1")

    state_manager.validate(state.value, "user-1")

    with pytest.raises(StateAlreadyConsumedError):
        state_manager.validate(state.value, "user-1")


@pytest.mark.parametrize("received", [None, ""])
def test_absent_state_is_missing(state_manager, received) -> None:
    with pytest.raises(StateMissingError):
        state_manager.validate(received, "user-1")


def test_state_for_another_user_is_not_found_and_stays_usable(state_manager) -> None:
    state = state_manager.generate("user-1")

    with pytest.raises(StateNotFoundError):
        state_manager.validate(state.value, "intruder")

    state_manager.validate(state.value, "user-1")


def test_state_signed_with_another_key_is_not_found(state_manager) -> None:
    forged = OAuthStateEncoder(secret_key="attacker-key").encode(
        {"nonce": "n", "user_id": "user-1", "issued_at": datetime.now(timezone.utc).isoformat()}
    )

    with pytest.raises(StateNotFoundError):
        state_manager.validate(forged, "user-1")


def test_garbage_state_is_not_found(state_manager) -> None:
    with pytest.raises(StateNotFoundError):
        state_manager.validate("not-a-real-state!!", "user-1")


def test_signed_but_never_issued_state_is_not_found(state_manager, state_encoder) -> None:
    value = state_encoder.encode(
        {"nonce": "n", "user_id": "user-1", "issued_at": datetime.now(timezone.utc).isoformat()}
    )

    with pytest.raises(StateNotFoundError):
        state_manager.validate(value, "user-1")


def test_lapsed_state_is_missing(state_manager, record_store, state_encoder) -> None:
    value = _plant_lapsed_state(record_store, state_encoder, "user-1")

    with pytest.raises(StateMissingError):
        state_manager.validate(value, "user-1")


def test_generate_purges_lapsed_states(state_manager, record_store, state_encoder) -> None:
    value = _plant_lapsed_state(record_store, state_encoder, "user-1")

    state_manager.generate("user-2")

    assert record_store.get_item(partition_key="oauth#state", sort_key=value) is None
    with pytest.raises(StateMissingError):
        state_manager.validate(value, "user-1")


def test_state_survives_across_manager_instances(record_store, state_encoder) -> None:
    issuing = StateTokenManager(store=record_store, encoder=state_encoder)
    receiving = StateTokenManager(store=record_store, encoder=state_encoder)

    state = issuing.generate("user-1")

    receiving.validate(state.value, "user-1")
    with pytest.raises(StateAlreadyConsumedError):
        issuing.validate(state.value, "user-1")


def test_concurrent_validation_has_exactly_one_winner(state_manager) -> None:
    state = state_manager.generate("user-1")

    def attempt(_: int) -> str:
        try:
            state_manager.validate(state.value, "user-1")
        except StateAlreadyConsumedError:
            return "consumed"
        return "ok"

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(attempt, range(8)))

    assert outcomes.count("ok") == 1
    assert outcomes.count("consumed") == 7
