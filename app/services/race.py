"""
Primary-vs-timer race with conditional fallback.

Every run terminates in exactly one FetchOutcome; adapter errors never reach
the caller. Concurrent runs of the same coordinator share one in-flight task,
so a manual refresh that lands during a scheduled one neither duplicates the
network call nor commits out of order.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from app.services.errors import RaceTimeout
from app.services.fetch_outcome import FallbackSuccess, Failure, FetchOutcome, Success, TimedOut

logger = logging.getLogger("coin_market.race")

T = TypeVar("T")

Adapter = Callable[[], Awaitable[T]]
OutcomeHandler = Callable[[FetchOutcome], Awaitable[None]]


async def race_with_timeout(primary: Adapter[T], timeout_s: float, *, source: Optional[str] = None) -> T:
    """
    Run ``primary()`` against a ``timeout_s`` timer; the loser is cancelled
    and awaited before returning, so it can't complete afterwards.

    Returns the primary payload, re-raises the primary's exception, or raises
    RaceTimeout when the timer fires first. A tie goes to the primary.
    """
    fetch_task = asyncio.ensure_future(primary())
    timer_task = asyncio.ensure_future(asyncio.sleep(timeout_s))

    try:
        done, _ = await asyncio.wait({fetch_task, timer_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for t in (fetch_task, timer_task):
            if not t.done():
                t.cancel()
        await asyncio.gather(fetch_task, timer_task, return_exceptions=True)

    if fetch_task in done:
        return fetch_task.result()
    raise RaceTimeout(timeout_s, source=source)


class FallbackRaceCoordinator(Generic[T]):
    def __init__(
        self,
        name: str,
        primary: Adapter[T],
        *,
        fallback: Optional[Adapter[T]] = None,
        fallback_tag: str = "fallback",
        timeout_s: float = 3.0,
        fallback_timeout_s: Optional[float] = None,
        on_outcome: Optional[OutcomeHandler] = None,
    ):
        self.name = name
        self.timeout_s = timeout_s
        self.fallback_timeout_s = fallback_timeout_s
        self.fallback_tag = fallback_tag
        self._primary = primary
        self._fallback = fallback
        self._on_outcome = on_outcome

        self._inflight: Optional[asyncio.Task] = None
        self.runs = 0
        self.coalesced = 0
        self.last_outcome: Optional[FetchOutcome] = None

    @property
    def has_fallback(self) -> bool:
        return self._fallback is not None

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def run(self) -> FetchOutcome:
        task = self._inflight
        if task is not None and not task.done():
            self.coalesced += 1
            logger.info("%s fetch already in flight, joining it", self.name)
            return await asyncio.shield(task)

        task = asyncio.ensure_future(self._run_once())
        self._inflight = task
        task.add_done_callback(self._clear_inflight)
        return await asyncio.shield(task)

    def _clear_inflight(self, task: asyncio.Task) -> None:
        if self._inflight is task:
            self._inflight = None

    async def aclose(self) -> None:
        task = self._inflight
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def _run_once(self) -> FetchOutcome:
        self.runs += 1
        t0 = time.perf_counter()

        outcome = await self._attempt()
        self.last_outcome = outcome
        logger.info(
            "%s fetch done | outcome=%s | %dms",
            self.name,
            outcome.kind,
            int((time.perf_counter() - t0) * 1000),
        )

        if self._on_outcome is not None:
            try:
                await self._on_outcome(outcome)
            except Exception:
                logger.exception("%s commit failed | outcome=%s", self.name, outcome.kind)

        return outcome

    async def _attempt(self) -> FetchOutcome:
        try:
            payload = await race_with_timeout(self._primary, self.timeout_s, source=self.name)
            return Success(payload)
        except RaceTimeout as exc:
            timed_out = True
            primary_error: Exception = exc
        except Exception as exc:
            timed_out = False
            primary_error = exc

        logger.warning("%s primary failed | %s", self.name, primary_error)

        if self._fallback is not None:
            try:
                payload = await self._call_fallback()
                return FallbackSuccess(payload, self.fallback_tag)
            except Exception as exc:
                logger.warning("%s fallback failed | %r", self.name, exc)

        if timed_out:
            return TimedOut()
        return Failure(str(primary_error) or type(primary_error).__name__)

    async def _call_fallback(self) -> Any:
        assert self._fallback is not None
        if self.fallback_timeout_s is None:
            return await self._fallback()
        return await asyncio.wait_for(self._fallback(), timeout=self.fallback_timeout_s)
