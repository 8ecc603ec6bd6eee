from __future__ import annotations

import contextvars
import logging
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from sqlalchemy.orm import Session

from app.metrics import observe_read_fanout


logger = logging.getLogger("app.crm.fanout")

SessionFactory = Callable[[], Session]
Read = Callable[[Session], Any]


class ReadFanout:
    """Runs independent reads concurrently and waits for all of them.

    Each concurrent read gets its own session from ``session_factory`` since a
    ``Session`` must not be shared across threads. Without a factory the reads
    run one after another on the caller's session.
    """

    def __init__(self, session_factory: SessionFactory | None = None, *, max_workers: int = 4) -> None:
        self._session_factory = session_factory
        self._max_workers = max(1, max_workers)

    @property
    def concurrent(self) -> bool:
        return self._session_factory is not None and self._max_workers > 1

    def gather(self, session: Session, *reads: Read) -> list[Any]:
        started = time.perf_counter()
        if not self.concurrent or len(reads) < 2:
            results = [read(session) for read in reads]
            observe_read_fanout(mode="sequential", duration=time.perf_counter() - started)
            return results

        workers = min(self._max_workers, len(reads))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="crm-read") as pool:
            # Each task runs in a copy of the caller context (correlation id).
            futures = [
                pool.submit(contextvars.copy_context().run, _run_isolated, self._session_factory, read)
                for read in reads
            ]
            results = [future.result() for future in futures]

        duration = time.perf_counter() - started
        observe_read_fanout(mode="concurrent", duration=duration)
        logger.debug("fanout.joined", extra={"reads": len(reads), "duration_ms": round(duration * 1000, 2)})
        return results


def _run_isolated(session_factory: SessionFactory, read: Read) -> Any:
    with session_factory() as session:
        return read(session)
