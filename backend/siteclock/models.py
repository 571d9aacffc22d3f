from __future__ import annotations

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

UTC = dt.timezone.utc


class Employee(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    role: str = "worker"


class Project(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    address: str = ""


class GeoPoint(BaseModel):
    """A single GPS sample."""

    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float

    def as_text(self) -> str:
        return f"{self.lat},{self.lng}"


class BreakInterval(BaseModel):
    start_ts: dt.datetime
    start_geo: Optional[GeoPoint] = None
    end_ts: Optional[dt.datetime] = None
    end_geo: Optional[GeoPoint] = None

    @property
    def is_open(self) -> bool:
        return self.end_ts is None

    def close(self, now: dt.datetime, geo: Optional[GeoPoint]) -> None:
        if not self.is_open:
            return
        self.end_ts = now
        self.end_geo = geo


class Shift(BaseModel):
    id: str
    user_id: str
    project_id: Optional[str] = None
    date: dt.date
    start_ts: dt.datetime
    start_geo: Optional[GeoPoint] = None
    finish_ts: Optional[dt.datetime] = None
    finish_geo: Optional[GeoPoint] = None
    breaks: List[BreakInterval] = Field(default_factory=list)
    notes: str = ""

    @property
    def is_open(self) -> bool:
        return self.finish_ts is None

    @property
    def open_break(self) -> Optional[BreakInterval]:
        """The trailing break interval when it has not been closed yet."""
        if not self.breaks:
            return None
        last = self.breaks[-1]
        return last if last.is_open else None


class Store(BaseModel):
    """Root aggregate of everything the clock persists."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    employees: List[Employee] = Field(default_factory=list)
    projects: List[Project] = Field(default_factory=list)
    shifts: List[Shift] = Field(default_factory=list)
    current_user_id: Optional[str] = Field(default=None, alias="currentUserId")

    def employee(self, user_id: Optional[str]) -> Optional[Employee]:
        for employee in self.employees:
            if employee.id == user_id:
                return employee
        return None

    def project(self, project_id: Optional[str]) -> Optional[Project]:
        for project in self.projects:
            if project.id == project_id:
                return project
        return None


def default_store() -> Store:
    return Store(
        employees=[
            Employee(id="u1", name="Alex Mason", role="worker"),
            Employee(id="u2", name="Jordan Lee", role="worker"),
        ],
        projects=[Project(id="p1", name="Site A", address="123 High St")],
        shifts=[],
        current_user_id="u1",
    )


__all__ = [
    "UTC",
    "Employee",
    "Project",
    "GeoPoint",
    "BreakInterval",
    "Shift",
    "Store",
    "default_store",
]
