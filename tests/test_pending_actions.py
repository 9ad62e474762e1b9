from __future__ import annotations

import threading

import pytest

from maintenance_orchestrator.actions.models import DeleteData, DeleteTaskAction
from maintenance_orchestrator.actions.pending import InMemoryPendingActionStore


def _action(task_id: int = 1) -> DeleteTaskAction:
    return DeleteTaskAction(
        data=DeleteData(id=task_id),
        confirmation_message=f'Delete task "#{task_id}"?',
    )


def test_token_is_redeemable_once(pending_actions: InMemoryPendingActionStore) -> None:
    pending = pending_actions.put(_action())

    first = pending_actions.take(pending.token)
    second = pending_actions.take(pending.token)

    assert first is not None and first.action.data.id == 1
    assert second is None


def test_tokens_are_unique(pending_actions: InMemoryPendingActionStore) -> None:
    tokens = {pending_actions.put(_action(index)).token for index in range(25)}

    assert len(tokens) == 25


def test_expired_entry_is_still_returned_for_the_caller_to_judge(
    pending_actions: InMemoryPendingActionStore, clock
) -> None:
    pending = pending_actions.put(_action())
    clock.advance(seconds=601)

    taken = pending_actions.take(pending.token)

    assert taken is not None
    assert taken.is_expired(clock()) is True
    assert pending.token not in pending_actions


def test_entry_is_valid_until_ttl_elapses(pending_actions: InMemoryPendingActionStore, clock) -> None:
    pending = pending_actions.put(_action())
    clock.advance(seconds=599)

    assert pending.is_expired(clock()) is False


def test_eviction_drops_oldest_entries_first(clock) -> None:
    store = InMemoryPendingActionStore(max_entries=4, evict_to=2, clock=clock)
    tokens = [store.put(_action(index)).token for index in range(5)]

    assert len(store) == 2
    assert tokens[3] in store and tokens[4] in store
    assert all(token not in store for token in tokens[:3])


def test_evict_target_must_fit_under_cap() -> None:
    with pytest.raises(ValueError):
        InMemoryPendingActionStore(max_entries=10, evict_to=20)


def test_concurrent_take_delivers_action_once(pending_actions: InMemoryPendingActionStore) -> None:
    pending = pending_actions.put(_action())
    results = []
    barrier = threading.Barrier(8)

    def _worker() -> None:
        barrier.wait()
        results.append(pending_actions.take(pending.token))

    threads = [threading.Thread(target=_worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sum(1 for item in results if item is not None) == 1
