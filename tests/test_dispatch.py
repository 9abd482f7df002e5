import random
import time

import pytest

from stegvault import container, dispatch, keys
from stegvault.dispatch import (
    DECRYPT,
    ENCRYPT,
    ChunkArena,
    ChunkDispatcher,
    ChunkTask,
    run_chunk_task,
)
from stegvault.errors import AuthenticationError, OperationCancelled


def _encrypt_tasks(chunks, key, base_nonce):
    return [
        ChunkTask(index=i, operation=ENCRYPT, data=data, key=key, nonce=container.chunk_nonce(base_nonce, i))
        for i, data in enumerate(chunks)
    ]


class TestChunkArena:
    def test_out_of_order_writes_reassemble_by_index(self):
        arena = ChunkArena(total_size=10, stride=4, count=3)
        arena.put(2, b"ij")
        arena.put(0, b"abcd")
        assert not arena.complete
        assert arena.missing() == [1]
        arena.put(1, b"efgh")
        assert arena.result() == b"abcdefghij"

    def test_rejects_gaps_double_writes_and_bad_sizes(self):
        arena = ChunkArena(total_size=8, stride=4, count=2)
        arena.put(0, b"abcd")
        with pytest.raises(ValueError):
            arena.result()
        with pytest.raises(ValueError):
            arena.put(0, b"abcd")
        with pytest.raises(ValueError):
            arena.put(1, b"abc")
        with pytest.raises(IndexError):
            arena.put(2, b"abcd")

    def test_rejects_inconsistent_geometry(self):
        with pytest.raises(ValueError):
            ChunkArena(total_size=20, stride=4, count=2)
        with pytest.raises(ValueError):
            ChunkArena(total_size=3, stride=4, count=2)

    def test_released_arena_is_unusable(self):
        arena = ChunkArena(total_size=4, stride=4, count=1)
        arena.release()
        with pytest.raises(OperationCancelled):
            arena.put(0, b"abcd")
        with pytest.raises(OperationCancelled):
            arena.result()


def test_run_chunk_task_round_trip():
    key, nonce = keys.generate_random_key(), keys.generate_nonce()
    sealed = run_chunk_task(ChunkTask(index=3, operation=ENCRYPT, data=b"abc", key=key, nonce=nonce))
    assert sealed.index == 3
    opened = run_chunk_task(ChunkTask(index=3, operation=DECRYPT, data=sealed.data, key=key, nonce=nonce))
    assert opened.data == b"abc"
    with pytest.raises(ValueError):
        run_chunk_task(ChunkTask(index=0, operation="compress", data=b"", key=key, nonce=nonce))


def test_task_ids_are_unique():
    key, nonce = keys.generate_random_key(), keys.generate_nonce()
    ids = {ChunkTask(index=i, operation=ENCRYPT, data=b"", key=key, nonce=nonce).task_id for i in range(100)}
    assert len(ids) == 100


@pytest.mark.parametrize("executor", ["thread", "process"])
def test_dispatcher_matches_inline_results(executor):
    key, base = keys.generate_random_key(), keys.generate_nonce()
    chunks = [bytes([i]) * 32 for i in range(7)] + [b"tail"]
    tasks = _encrypt_tasks(chunks, key, base)
    random.Random(5).shuffle(tasks)

    arena = ChunkArena(total_size=7 * 48 + 20, stride=48, count=8)
    seen = []
    out = ChunkDispatcher(max_workers=3, executor=executor).run(tasks, arena, progress=lambda d, t: seen.append((d, t)))

    expected = b"".join(run_chunk_task(t).data for t in sorted(tasks, key=lambda t: t.index))
    assert out == expected
    assert seen[-1] == (8, 8)


def test_worker_failure_propagates_and_releases_arena():
    key, base = keys.generate_random_key(), keys.generate_nonce()
    sealed = [run_chunk_task(t).data for t in _encrypt_tasks([b"a" * 8, b"b" * 8], key, base)]
    tasks = [
        ChunkTask(index=i, operation=DECRYPT, data=data, key=keys.generate_random_key(),
                  nonce=container.chunk_nonce(base, i))
        for i, data in enumerate(sealed)
    ]
    arena = ChunkArena(total_size=16, stride=8, count=2)
    with pytest.raises(AuthenticationError):
        ChunkDispatcher(max_workers=2).run(tasks, arena)
    with pytest.raises(OperationCancelled):
        arena.result()


def test_worker_failure_drops_queued_chunks(monkeypatch):
    calls = []

    def slow_after_first(task):
        calls.append(task.index)
        if task.index:
            time.sleep(0.05)
        return run_chunk_task(task)

    monkeypatch.setattr(dispatch, "run_chunk_task", slow_after_first)
    key, base = keys.generate_random_key(), keys.generate_nonce()
    tasks = [
        ChunkTask(index=i, operation=DECRYPT, data=b"\x00" * 24, key=key, nonce=container.chunk_nonce(base, i))
        for i in range(20)
    ]
    arena = ChunkArena(total_size=20 * 8, stride=8, count=20)
    with pytest.raises(AuthenticationError):
        ChunkDispatcher(max_workers=1, max_in_flight=20).run(tasks, arena)
    # one chunk may already be running when the first failure is seen
    assert len(calls) <= 2


def test_cancel_abandons_run():
    key, base = keys.generate_random_key(), keys.generate_nonce()
    tasks = _encrypt_tasks([b"x" * 16] * 6, key, base)
    arena = ChunkArena(total_size=6 * 32, stride=32, count=6)
    dispatcher = ChunkDispatcher(max_workers=1, max_in_flight=1)

    def progress(done, total):
        if done == 2:
            dispatcher.cancel()

    with pytest.raises(OperationCancelled):
        dispatcher.run(tasks, arena, progress=progress)
    # the request is consumed by the run it stopped
    assert not dispatcher.cancelled
    with pytest.raises(OperationCancelled):
        arena.result()


def test_cancel_before_run_is_honoured(monkeypatch):
    calls = []
    monkeypatch.setattr(dispatch, "run_chunk_task", lambda task: calls.append(task.index) or run_chunk_task(task))
    key, base = keys.generate_random_key(), keys.generate_nonce()
    arena = ChunkArena(total_size=3 * 32, stride=32, count=3)
    dispatcher = ChunkDispatcher(max_workers=1)
    dispatcher.cancel()
    with pytest.raises(OperationCancelled):
        dispatcher.run(_encrypt_tasks([b"x" * 16] * 3, key, base), arena)
    assert calls == []
    assert not dispatcher.cancelled

    fresh = ChunkArena(total_size=3 * 32, stride=32, count=3)
    assert len(dispatcher.run(_encrypt_tasks([b"x" * 16] * 3, key, base), fresh)) == 96


def test_unknown_executor():
    with pytest.raises(ValueError):
        ChunkDispatcher(executor="gpu")
