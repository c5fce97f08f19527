from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from app.config.settings import get_settings
from app.services.fetch_outcome import FetchOutcome
from app.services.market_service import MarketService
from app.utils.time import from_epoch, iso_z

logger = logging.getLogger("coin_market.scheduler")

RefreshFn = Callable[[], Awaitable[FetchOutcome]]

_HEALTHY_KINDS = {"success", "fallback_success"}


def _now_epoch() -> float:
    return time.time()


def _iso_z_from_epoch(ts: Optional[float]) -> Optional[str]:
    return iso_z(from_epoch(ts))


# ----------------------------
# scheduler state + handle
# ----------------------------
@dataclass
class SchedulerState:
    started: bool = False
    stop_event: Optional[asyncio.Event] = None
    tasks: Dict[str, asyncio.Task] = field(default_factory=dict)      # job_id -> task
    meta: Dict[str, Any] = field(default_factory=dict)
    job_stats: Dict[str, Dict[str, Any]] = field(default_factory=dict)  # job_id -> stats


@dataclass(frozen=True)
class SchedulerHandle:
    """
    Stored in app.state.scheduler so /ready can report scheduler status.
    """
    _state: SchedulerState

    @property
    def running(self) -> bool:
        return bool(self._state.started and self._state.stop_event and not self._state.stop_event.is_set())

    @property
    def jobs(self) -> int:
        return len(self._state.tasks)

    def info(self) -> Dict[str, Any]:
        meta = dict(self._state.meta)
        started_at = meta.get("started_at")

        info: Dict[str, Any] = {
            "ok": self.running,
            "running": self.running,
            "jobs": self.jobs,
            "uptime_s": int(_now_epoch() - started_at) if started_at else None,
            "meta": {**meta, "started_at_iso": _iso_z_from_epoch(started_at)},
            "per_job": {},
        }

        for job_id, s in self._state.job_stats.items():
            info["per_job"][job_id] = {
                **s,
                "last_run_iso": _iso_z_from_epoch(s.get("last_run_ts")),
                "last_success_iso": _iso_z_from_epoch(s.get("last_success_ts")),
                "last_error_iso": _iso_z_from_epoch(s.get("last_error_ts")),
            }

        return info


_state = SchedulerState()


def _record(job_id: str, outcome: FetchOutcome, dt_ms: int) -> None:
    js = _state.job_stats[job_id]
    js["last_outcome"] = outcome.kind
    js["last_ms"] = dt_ms
    if outcome.kind in _HEALTHY_KINDS:
        js["last_success_ts"] = _now_epoch()
        js["consecutive_failures"] = 0
    else:
        js["last_error_ts"] = _now_epoch()
        js["last_error"] = getattr(outcome, "reason", outcome.kind)[:300]
        js["consecutive_failures"] = int(js.get("consecutive_failures", 0)) + 1


# ----------------------------
# job loop
# ----------------------------
async def _job_loop(job_id: str, refresh: RefreshFn, interval_s: float, stop_event: asyncio.Event) -> None:
    """
    Sleep a full interval, run one refresh to completion (cache write included),
    repeat. A cycle never overlaps its predecessor.
    """
    while not stop_event.is_set():
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_s)
            break
        except asyncio.TimeoutError:
            pass

        _state.job_stats[job_id]["last_run_ts"] = _now_epoch()
        t0 = time.perf_counter()

        try:
            outcome = await refresh()
            dt_ms = int((time.perf_counter() - t0) * 1000)
            _record(job_id, outcome, dt_ms)
            logger.info("refresh job done | %s | outcome=%s | %dms", job_id, outcome.kind, dt_ms)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            js = _state.job_stats[job_id]
            js["last_error_ts"] = _now_epoch()
            js["last_error"] = repr(e)[:300]
            js["consecutive_failures"] = int(js.get("consecutive_failures", 0)) + 1
            logger.exception("refresh job error | %s", job_id)


# ----------------------------
# public API
# ----------------------------
def start_scheduler(
    service: MarketService,
    *,
    coin_interval_s: Optional[float] = None,
    global_interval_s: Optional[float] = None,
) -> SchedulerHandle:
    settings = get_settings()

    if _state.started and _state.stop_event and not _state.stop_event.is_set():
        logger.warning("scheduler already started (in-process)")
        return SchedulerHandle(_state)

    jobs = {
        "refresh:coins": (service.refresh_coins, coin_interval_s or settings.COIN_REFRESH_SECONDS),
        "refresh:global": (service.refresh_global, global_interval_s or settings.GLOBAL_REFRESH_SECONDS),
    }

    _state.stop_event = asyncio.Event()
    _state.started = True
    _state.meta = {"started_at": _now_epoch()}
    _state.job_stats.clear()

    for job_id, (refresh, interval_s) in jobs.items():
        _state.job_stats[job_id] = {
            "schedule_s": interval_s,
            "last_run_ts": None,
            "last_success_ts": None,
            "last_outcome": None,
            "last_ms": None,
            "last_error_ts": None,
            "last_error": None,
            "consecutive_failures": 0,
        }
        _state.tasks[job_id] = asyncio.create_task(
            _job_loop(job_id, refresh, interval_s, _state.stop_event),
            name=job_id,
        )

    logger.info("refresh scheduler started | jobs=%s", len(_state.tasks))
    return SchedulerHandle(_state)


async def stop_scheduler(timeout_s: float = 6.0) -> None:
    if not _state.started:
        return

    if _state.stop_event:
        _state.stop_event.set()

    tasks = list(_state.tasks.values())

    try:
        if tasks:
            await asyncio.wait_for(asyncio.gather(*tasks, return_exceptions=True), timeout=timeout_s)
    except asyncio.TimeoutError:
        for t in tasks:
            if not t.done():
                t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
    finally:
        _state.tasks.clear()
        _state.started = False
        _state.stop_event = None
        _state.meta = {}
        _state.job_stats.clear()

    logger.info("refresh scheduler stopped")
