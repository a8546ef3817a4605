"""
Fan-out helper for independent external calls
"""

import logging
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from typing import Callable, Dict, Hashable, Optional, Sequence, TypeVar, Union

from bird_sightings.config import MAX_LOOKUP_WORKERS
from bird_sightings.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
R = TypeVar("R")


def run_concurrently(
    func: Callable[[K], R],
    items: Sequence[K],
    max_workers: int = MAX_LOOKUP_WORKERS,
    timeout: Optional[float] = None,
) -> Dict[K, Union[R, Exception]]:
    """
    Call ``func`` once per item on a thread pool and wait for all of them

    A failing call never affects the others: its exception is returned in
    place of its result. ``timeout`` applies to each call separately,
    counted from when that call starts running rather than from when it
    was queued. Calls that overrun it are reported as
    ``UpstreamUnavailable``.

    Returns:
        Mapping of item to result or exception, in the order of ``items``
    """
    items = list(dict.fromkeys(items))
    if not items:
        return {}

    started: Dict[K, float] = {}

    def timed(item: K) -> R:
        started[item] = time.monotonic()
        return func(item)

    results: Dict[K, Union[R, Exception]] = {}
    executor = ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(items))))
    try:
        futures = {executor.submit(timed, item): item for item in items}
        pending = set(futures)

        while pending:
            wait_for = None
            if timeout is not None:
                deadlines = [started[futures[f]] + timeout for f in pending if futures[f] in started]
                wait_for = max(0.0, min(deadlines) - time.monotonic()) if deadlines else timeout

            done, pending = wait(pending, timeout=wait_for, return_when=FIRST_COMPLETED)

            for future in done:
                item = futures[future]
                try:
                    results[item] = future.result()
                except Exception as e:
                    results[item] = e

            if timeout is None:
                continue

            now = time.monotonic()
            expired = {f for f in pending if futures[f] in started and now - started[futures[f]] >= timeout}
            for future in expired:
                item = futures[future]
                logger.warning("✗ Call for %s timed out after %ss", item, timeout)
                results[item] = UpstreamUnavailable("Upstream request timed out", details=f"{item} exceeded {timeout}s")
            pending -= expired
    finally:
        # Don't block the request on calls that overran their deadline
        executor.shutdown(wait=False)

    return {item: results[item] for item in items}
