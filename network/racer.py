from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Iterable, Optional, Set, Tuple, Type, TypeVar

import aiohttp

from errors import NetworkError, NoEndpointAvailableError, classify_exception

T = TypeVar("T")

DEFAULT_SWALLOW: Tuple[Type[BaseException], ...] = (NetworkError, asyncio.TimeoutError, aiohttp.ClientError, OSError)

logger = logging.getLogger("rover.network")


class EndpointRacer:
    """
    Run one operation against many endpoints and keep the first success.

    Attempts that lose the race are left to finish on their own; every attempt
    runs under a timeout, so they are bounded, and their outcome is collected
    so nothing is reported as an unretrieved task exception.
    """

    def __init__(self, timeout: float = 2.0) -> None:
        self.timeout = float(timeout)
        self._stragglers: Set[asyncio.Task] = set()

    @property
    def outstanding(self) -> int:
        return len(self._stragglers)

    async def race(
        self,
        endpoints: Iterable[str],
        operation: Callable[[str], Awaitable[T]],
        *,
        timeout: Optional[float] = None,
        label: str = "operation",
        swallow: Tuple[Type[BaseException], ...] = (),
    ) -> T:
        _, value = await self.race_endpoint(endpoints, operation, timeout=timeout, label=label, swallow=swallow)
        return value

    async def race_endpoint(
        self,
        endpoints: Iterable[str],
        operation: Callable[[str], Awaitable[T]],
        *,
        timeout: Optional[float] = None,
        label: str = "operation",
        swallow: Tuple[Type[BaseException], ...] = (),
    ) -> Tuple[str, T]:
        """Like `race` but also returns the endpoint that won."""
        ordered = list(dict.fromkeys(endpoints))
        if not ordered:
            raise NoEndpointAvailableError(label, {})
        per_attempt = self.timeout if timeout is None else float(timeout)
        absorbed = DEFAULT_SWALLOW + tuple(swallow)

        tasks: Dict[asyncio.Task, str] = {}
        for ep in ordered:
            task = asyncio.create_task(asyncio.wait_for(operation(ep), per_attempt), name=f"{label}:{ep}")
            tasks[task] = ep

        pending = set(tasks)
        failures: Dict[str, str] = {}
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in sorted(done, key=lambda t: ordered.index(tasks[t])):
                    ep = tasks[task]
                    exc = task.exception()
                    if exc is None:
                        self._abandon(pending | (done - {task}))
                        return ep, task.result()
                    if isinstance(exc, absorbed):
                        failures[ep] = classify_exception(exc).code
                        logger.debug("%s failed on %s: %s", label, ep, exc)
                        continue
                    self._abandon(pending | (done - {task}))
                    raise exc
        except asyncio.CancelledError:
            for task in pending:
                task.cancel()
            self._abandon(pending)
            raise
        raise NoEndpointAvailableError(label, failures)

    def _abandon(self, tasks: Iterable[asyncio.Task]) -> None:
        for task in tasks:
            self._stragglers.add(task)
            task.add_done_callback(self._reap)

    def _reap(self, task: asyncio.Task) -> None:
        self._stragglers.discard(task)
        if not task.cancelled():
            task.exception()
