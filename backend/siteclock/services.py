from __future__ import annotations

import asyncio
import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from zoneinfo import ZoneInfo

from . import lifecycle
from .errors import ReportDeliveryError
from .geo import DEFAULT_TIMEOUT_SECONDS, GeoProvider, NullGeoProvider, capture
from .lifecycle import ShiftState
from .models import UTC, Employee, Project, Shift, Store, default_store
from .reports import ReportClient, daily_report_payload
from .storage import ShiftStore

logger = logging.getLogger(__name__)

ACTION_STARTED = "started"
ACTION_BREAK_STARTED = "break_started"
ACTION_BREAK_ENDED = "break_ended"
ACTION_FINISHED = "finished"
ACTION_NOOP = "noop"


def _now() -> dt.datetime:
    return dt.datetime.now(UTC)


@dataclass
class Transition:
    action: str
    state: ShiftState
    shift: Optional[Shift] = None


class ShiftClock:
    """Owns the store and applies shift transitions to it.

    Transitions are serialized: each one checks its precondition, captures a
    location and applies its effect before the next may begin. The store is
    saved after every transition that changed it and never after a no-op.
    """

    def __init__(
        self,
        repository: ShiftStore,
        *,
        geo_provider: Optional[GeoProvider] = None,
        geo_timeout: float = DEFAULT_TIMEOUT_SECONDS,
        timezone: str = "UTC",
        clock: Callable[[], dt.datetime] = _now,
    ) -> None:
        self.repository = repository
        self.geo_provider = geo_provider or NullGeoProvider()
        self.geo_timeout = geo_timeout
        self.tz = ZoneInfo(timezone)
        self.clock = clock
        self._lock = asyncio.Lock()
        loaded = repository.load()
        if loaded is None:
            logger.info("No usable persisted store under %r, starting fresh", repository.key)
            loaded = default_store()
        self._store: Store = loaded

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    def snapshot(self) -> Store:
        return self._store.model_copy(deep=True)

    @property
    def current_user_id(self) -> Optional[str]:
        return self._store.current_user_id

    def employees(self) -> List[Employee]:
        return list(self._store.employees)

    def projects(self) -> List[Project]:
        return list(self._store.projects)

    def employee(self, user_id: Optional[str]) -> Optional[Employee]:
        return self._store.employee(user_id)

    def project(self, project_id: Optional[str]) -> Optional[Project]:
        return self._store.project(project_id)

    def state(self, user_id: Optional[str] = None) -> ShiftState:
        return lifecycle.shift_state(self._store, self._user(user_id))

    def open_shift(self, user_id: Optional[str] = None) -> Optional[Shift]:
        shift = lifecycle.find_open_shift(self._store, self._user(user_id))
        return shift.model_copy(deep=True) if shift else None

    def shifts_for(self, user_id: Optional[str] = None) -> List[Shift]:
        return [shift.model_copy(deep=True) for shift in lifecycle.shifts_for_user(self._store, self._user(user_id))]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    async def set_current_user(self, user_id: str) -> None:
        async with self._lock:
            if self._store.current_user_id == user_id:
                return
            self._store.current_user_id = user_id
            self.repository.save(self._store)

    async def start(
        self,
        user_id: Optional[str] = None,
        *,
        project_id: Optional[str] = None,
        notes: str = "",
        geo_provider: Optional[GeoProvider] = None,
    ) -> Transition:
        async with self._lock:
            user = self._user(user_id)
            if user is None or lifecycle.find_open_shift(self._store, user) is not None:
                return self._noop(user)
            now = self.clock()
            geo = await capture(geo_provider or self.geo_provider, self.geo_timeout)
            shift = lifecycle.start_shift(
                self._store, user, now, geo, project_id=project_id, notes=notes, tz=self.tz
            )
            return self._commit(ACTION_STARTED, user, shift)

    async def toggle_break(self, user_id: Optional[str] = None, *, geo_provider: Optional[GeoProvider] = None) -> Transition:
        async with self._lock:
            user = self._user(user_id)
            shift = lifecycle.find_open_shift(self._store, user)
            if shift is None:
                return self._noop(user)
            now = self.clock()
            geo = await capture(geo_provider or self.geo_provider, self.geo_timeout)
            interval = lifecycle.toggle_break(self._store, user, now, geo)
            action = ACTION_BREAK_STARTED if interval is not None and interval.is_open else ACTION_BREAK_ENDED
            return self._commit(action, user, shift)

    async def finish(self, user_id: Optional[str] = None, *, geo_provider: Optional[GeoProvider] = None) -> Transition:
        async with self._lock:
            user = self._user(user_id)
            if lifecycle.find_open_shift(self._store, user) is None:
                return self._noop(user)
            now = self.clock()
            geo = await capture(geo_provider or self.geo_provider, self.geo_timeout)
            shift = lifecycle.finish_shift(self._store, user, now, geo)
            return self._commit(ACTION_FINISHED, user, shift)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _user(self, user_id: Optional[str]) -> Optional[str]:
        return user_id if user_id is not None else self._store.current_user_id

    def _noop(self, user_id: Optional[str]) -> Transition:
        logger.debug("Ignoring transition for %s in state %s", user_id, lifecycle.shift_state(self._store, user_id).value)
        return Transition(action=ACTION_NOOP, state=lifecycle.shift_state(self._store, user_id))

    def _commit(self, action: str, user_id: str, shift: Optional[Shift]) -> Transition:
        self.repository.save(self._store)
        logger.info("Shift %s for %s: %s", shift.id if shift else "-", user_id, action)
        return Transition(
            action=action,
            state=lifecycle.shift_state(self._store, user_id),
            shift=shift.model_copy(deep=True) if shift else None,
        )

    def today(self) -> dt.date:
        return self.clock().astimezone(self.tz).date()


async def send_daily_report(clock: ShiftClock, client: ReportClient, day: Optional[dt.date] = None) -> Dict[str, Any]:
    """Send the report for ``day`` (default: today) built from a fresh snapshot."""
    day = day or clock.today()
    payload = daily_report_payload(clock.snapshot(), day, clock.tz)
    await client.send(payload)
    return payload


async def send_daily_report_job(clock: ShiftClock, client: ReportClient) -> None:
    try:
        await send_daily_report(clock, client)
    except ReportDeliveryError as exc:
        logger.error("Failed to trigger daily report: %s", exc)


__all__ = [
    "ACTION_STARTED",
    "ACTION_BREAK_STARTED",
    "ACTION_BREAK_ENDED",
    "ACTION_FINISHED",
    "ACTION_NOOP",
    "Transition",
    "ShiftClock",
    "send_daily_report",
    "send_daily_report_job",
]
