"""Parallel per-chunk cipher work.

Tasks are plain picklable records handed to a ``concurrent.futures`` pool;
workers share nothing and send back a result record. Completions arrive in
any order and are placed into a :class:`ChunkArena` by chunk index, which
only the orchestrating thread writes to.
"""

from __future__ import annotations

import threading
import uuid
from concurrent.futures import FIRST_COMPLETED, Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Optional

from . import container
from .config import DISPATCH_SETTINGS
from .errors import OperationCancelled
from .logger import setup_logger

logger = setup_logger(__name__)

ENCRYPT = "encrypt"
DECRYPT = "decrypt"

Progress = Callable[[int, int], None]


@dataclass(frozen=True)
class ChunkTask:
    index: int
    operation: str
    data: bytes
    key: bytes
    nonce: bytes
    task_id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass(frozen=True)
class ChunkResult:
    task_id: str
    index: int
    data: bytes


def run_chunk_task(task: ChunkTask) -> ChunkResult:
    """Worker entry point: seal or open one chunk."""
    if task.operation == ENCRYPT:
        out = container.encrypt_chunk(task.data, task.key, task.nonce)
    elif task.operation == DECRYPT:
        out = container.decrypt_chunk(task.data, task.key, task.nonce)
    else:
        raise ValueError(f"Unknown task type: {task.operation}")
    return ChunkResult(task_id=task.task_id, index=task.index, data=out)


class ChunkArena:
    """One preallocated buffer; chunk ``i`` lives at ``i * stride``.

    All chunks but the last are exactly ``stride`` bytes, so offsets follow
    from the index alone and out-of-order writes cannot leave gaps that go
    unnoticed.
    """

    def __init__(self, total_size: int, stride: int, count: int):
        if count <= 0 or stride <= 0:
            raise ValueError("Arena needs a positive stride and chunk count")
        if not (count - 1) * stride <= total_size <= count * stride:
            raise ValueError(f"{total_size} bytes cannot be split into {count} chunk(s) of {stride}")
        self.total_size = total_size
        self.stride = stride
        self.count = count
        self._buffer: Optional[bytearray] = bytearray(total_size)
        self._filled = [False] * count

    def expected_size(self, index: int) -> int:
        if not 0 <= index < self.count:
            raise IndexError(f"Chunk index {index} outside 0..{self.count - 1}")
        if index < self.count - 1:
            return self.stride
        return self.total_size - (self.count - 1) * self.stride

    def put(self, index: int, data: bytes) -> None:
        if self._buffer is None:
            raise OperationCancelled("Arena was released")
        size = self.expected_size(index)
        if self._filled[index]:
            raise ValueError(f"Chunk {index} written twice")
        if len(data) != size:
            raise ValueError(f"Chunk {index} is {len(data)} bytes, expected {size}")
        start = index * self.stride
        self._buffer[start:start + size] = data
        self._filled[index] = True

    @property
    def complete(self) -> bool:
        return all(self._filled)

    def missing(self) -> list:
        return [i for i, done in enumerate(self._filled) if not done]

    def result(self) -> bytes:
        if self._buffer is None:
            raise OperationCancelled("Arena was released")
        if not self.complete:
            raise ValueError(f"Chunks missing: {self.missing()}")
        return bytes(self._buffer)

    def release(self) -> None:
        self._buffer = None


class ChunkDispatcher:
    """Run chunk tasks on a worker pool and collect them by index."""

    def __init__(self, max_workers: Optional[int] = None, executor: Optional[str] = None,
                 max_in_flight: Optional[int] = None):
        self.max_workers = max_workers or DISPATCH_SETTINGS["max_workers"]
        self.executor_kind = executor or DISPATCH_SETTINGS["executor"]
        if self.executor_kind not in ("thread", "process"):
            raise ValueError(f"Unknown executor: {self.executor_kind}")
        self.max_in_flight = max_in_flight or max(self.max_workers, DISPATCH_SETTINGS["max_in_flight"])
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._pending: Dict[Future, str] = {}

    def _make_executor(self) -> Executor:
        if self.executor_kind == "process":
            return ProcessPoolExecutor(max_workers=self.max_workers)
        return ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="stegvault-chunk")

    @property
    def cancelled(self) -> bool:
        """True while a cancellation is pending or the current run is being abandoned."""
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Abandon the current or next run; pending results are discarded.

        The request stays armed until a run observes it, so a cancel issued
        just before :meth:`run` starts is not lost.
        """
        self._cancelled.set()
        with self._lock:
            pending = list(self._pending)
        for future in pending:
            future.cancel()

    def _abandon(self, pool: Executor) -> None:
        with self._lock:
            pending = list(self._pending)
        for future in pending:
            future.cancel()
        pool.shutdown(wait=True, cancel_futures=True)

    def run(self, tasks: Iterable[ChunkTask], arena: ChunkArena, progress: Optional[Progress] = None) -> bytes:
        """Execute *tasks*, reassemble them in *arena* and return its bytes.

        *tasks* is consumed lazily so no more than ``max_in_flight`` chunks
        are queued at once. On any failure or cancellation queued chunks are
        dropped before the error propagates, the arena is released and
        nothing partial is returned.
        """
        with self._lock:
            self._pending = {}
        done_count = 0
        task_iter = iter(tasks)
        exhausted = False
        logger.debug(f"Dispatching {arena.count} chunk(s) to {self.max_workers} {self.executor_kind} worker(s)")

        try:
            with self._make_executor() as pool:
                try:
                    while True:
                        while not exhausted and len(self._pending) < self.max_in_flight and not self.cancelled:
                            task = next(task_iter, None)
                            if task is None:
                                exhausted = True
                                break
                            future = pool.submit(run_chunk_task, task)
                            with self._lock:
                                self._pending[future] = task.task_id

                        if self.cancelled:
                            raise OperationCancelled("Chunk run was cancelled")
                        if not self._pending:
                            break

                        with self._lock:
                            in_flight = list(self._pending)
                        finished, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                        for future in finished:
                            with self._lock:
                                task_id = self._pending.pop(future)
                            if future.cancelled():
                                continue
                            result = future.result()
                            if result.task_id != task_id:
                                raise RuntimeError(f"Result for chunk {result.index} carries an unknown task id")
                            arena.put(result.index, result.data)
                            done_count += 1
                            if progress is not None:
                                progress(done_count, arena.count)
                except BaseException:
                    self._abandon(pool)
                    raise
            return arena.result()
        except BaseException:
            arena.release()
            raise
        finally:
            with self._lock:
                self._pending = {}
            self._cancelled.clear()
