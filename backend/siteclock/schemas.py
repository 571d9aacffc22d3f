from __future__ import annotations

import datetime as dt
from typing import Any, List, Optional

from typing_extensions import Literal

from pydantic import BaseModel, ConfigDict, Field, model_serializer

from .lifecycle import ShiftState
from .maps import map_embed_url
from .models import GeoPoint, Shift


def _serialize_datetime(value: Optional[dt.datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    else:
        value = value.astimezone(dt.timezone.utc)
    return value.isoformat()


def _serialize_geo(value: Optional[GeoPoint]) -> Optional[dict[str, float]]:
    return {"lat": value.lat, "lng": value.lng} if value is not None else None


class EmployeeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    name: str
    role: str


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    name: str
    address: str


class BreakResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    start_ts: dt.datetime
    start_geo: Optional[GeoPoint] = None
    end_ts: Optional[dt.datetime] = None
    end_geo: Optional[GeoPoint] = None

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "start_ts": _serialize_datetime(self.start_ts),
            "start_geo": _serialize_geo(self.start_geo),
            "end_ts": _serialize_datetime(self.end_ts),
            "end_geo": _serialize_geo(self.end_geo),
        }


class ShiftResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    user_id: str
    project_id: Optional[str]
    date: dt.date
    start_ts: dt.datetime
    start_geo: Optional[GeoPoint] = None
    finish_ts: Optional[dt.datetime] = None
    finish_geo: Optional[GeoPoint] = None
    breaks: List[BreakResponse] = Field(default_factory=list)
    notes: str = ""
    on_break: bool = False
    start_map_url: Optional[str] = None
    finish_map_url: Optional[str] = None

    @classmethod
    def from_shift(cls, shift: Shift, maps_api_key: Optional[str] = None) -> "ShiftResponse":
        return cls(
            id=shift.id,
            user_id=shift.user_id,
            project_id=shift.project_id,
            date=shift.date,
            start_ts=shift.start_ts,
            start_geo=shift.start_geo,
            finish_ts=shift.finish_ts,
            finish_geo=shift.finish_geo,
            breaks=[BreakResponse.model_validate(interval) for interval in shift.breaks],
            notes=shift.notes,
            on_break=shift.open_break is not None,
            start_map_url=map_embed_url(shift.start_geo, maps_api_key) if maps_api_key else None,
            finish_map_url=map_embed_url(shift.finish_geo, maps_api_key) if maps_api_key else None,
        )

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "project_id": self.project_id,
            "date": self.date.isoformat(),
            "start_ts": _serialize_datetime(self.start_ts),
            "start_geo": _serialize_geo(self.start_geo),
            "finish_ts": _serialize_datetime(self.finish_ts),
            "finish_geo": _serialize_geo(self.finish_geo),
            "breaks": [interval._serialize() for interval in self.breaks],
            "notes": self.notes,
            "on_break": self.on_break,
            "start_map_url": self.start_map_url,
            "finish_map_url": self.finish_map_url,
        }


class LocationFix(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)

    def to_point(self) -> GeoPoint:
        return GeoPoint(lat=self.lat, lng=self.lng)


class WorkStartRequest(BaseModel):
    user_id: Optional[str] = None
    project_id: Optional[str] = None
    notes: str = ""
    location: Optional[LocationFix] = None


class WorkActionRequest(BaseModel):
    user_id: Optional[str] = None
    location: Optional[LocationFix] = None


class WorkTransitionResponse(BaseModel):
    action: Literal["started", "break_started", "break_ended", "finished", "noop"]
    state: ShiftState
    shift: Optional[ShiftResponse] = None


class WorkStatusResponse(BaseModel):
    user_id: Optional[str]
    state: ShiftState
    shift: Optional[ShiftResponse] = None


class CurrentUserRequest(BaseModel):
    user_id: str


class DailyReportResponse(BaseModel):
    date: dt.date
    shift_count: int


__all__ = [
    "EmployeeResponse",
    "ProjectResponse",
    "BreakResponse",
    "ShiftResponse",
    "LocationFix",
    "WorkStartRequest",
    "WorkActionRequest",
    "WorkTransitionResponse",
    "WorkStatusResponse",
    "CurrentUserRequest",
    "DailyReportResponse",
]
