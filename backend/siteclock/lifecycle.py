"""Shift state machine.

The state of a worker is never stored; it is read off the shift list:

* ``IDLE``: the worker has no open shift.
* ``WORKING``: an open shift whose last break interval is absent or closed.
* ``ON_BREAK``: an open shift whose last break interval is still open.

Every transition mutates the given :class:`Store` in place and returns what it
changed, or ``None`` when its precondition does not hold. A ``None`` result
means the store was left untouched.
"""

from __future__ import annotations

import datetime as dt
import enum
import uuid
from typing import List, Optional

from .models import UTC, BreakInterval, GeoPoint, Shift, Store


class ShiftState(str, enum.Enum):
    IDLE = "idle"
    WORKING = "working"
    ON_BREAK = "on_break"

def new_shift_id() -> str:
    return f"s_{uuid.uuid4().hex}"

def find_open_shift(store: Store, user_id: Optional[str]) -> Optional[Shift]:
    for shift in store.shifts:
        if shift.user_id == user_id and shift.is_open:
            return shift
    return None

def shift_state(store: Store, user_id: Optional[str]) -> ShiftState:
    shift = find_open_shift(store, user_id)
    if shift is None:
        return ShiftState.IDLE
    if shift.open_break is not None:
        return ShiftState.ON_BREAK
    return ShiftState.WORKING

def shifts_for_user(store: Store, user_id: Optional[str]) -> List[Shift]:
    return [shift for shift in store.shifts if shift.user_id == user_id]

def start_shift(
    store: Store,
    user_id: str,
    now: dt.datetime,
    geo: Optional[GeoPoint],
    *,
    project_id: Optional[str] = None,
    notes: str = "",
    tz: dt.tzinfo = UTC,
) -> Optional[Shift]:
    if find_open_shift(store, user_id) is not None:
        return None
    if project_id is None and store.projects:
        project_id = store.projects[0].id
    shift = Shift(
        id=new_shift_id(),
        user_id=user_id,
        project_id=project_id,
        date=now.astimezone(tz).date(),
        start_ts=now,
        start_geo=geo,
        notes=notes,
    )
    store.shifts.insert(0, shift)
    return shift

def toggle_break(store: Store, user_id: str, now: dt.datetime, geo: Optional[GeoPoint]) -> Optional[BreakInterval]:
    """Open a break, or close the one that is running."""
    shift = find_open_shift(store, user_id)
    if shift is None:
        return None
    current = shift.open_break
    if current is not None:
        current.close(now, geo)
        return current
    interval = BreakInterval(start_ts=now, start_geo=geo)
    shift.breaks.append(interval)
    return interval

def finish_shift(store: Store, user_id: str, now: dt.datetime, geo: Optional[GeoPoint]) -> Optional[Shift]:
    shift = find_open_shift(store, user_id)
    if shift is None:
        return None
    # A shift never ends on break: the running interval closes at finish time.
    current = shift.open_break
    if current is not None:
        current.close(now, geo)
    shift.finish_ts = now
    shift.finish_geo = geo
    return shift


__all__ = [
    "ShiftState",
    "new_shift_id",
    "find_open_shift",
    "shift_state",
    "shifts_for_user",
    "start_shift",
    "toggle_break",
    "finish_shift",
]
