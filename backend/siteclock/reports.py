from __future__ import annotations

import csv
import datetime as dt
import io
import logging
from dataclasses import astuple, dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import httpx

from .errors import ReportDeliveryError
from .models import UTC, Employee, GeoPoint, Shift, Store

logger = logging.getLogger(__name__)

CSV_HEADERS: Tuple[str, ...] = (
    "First Name",
    "Last Name",
    "Date",
    "Time of Submission",
    "Log In Time",
    "Log Out Time",
    "Start Location",
    "Finish Location",
)

MISSING_TIME = "—"
DATE_FORMAT = "%d/%m/%Y"
TIME_FORMAT = "%H:%M:%S"


@dataclass(frozen=True)
class ReportRow:
    """One exported shift, already rendered as text."""

    first_name: str
    last_name: str
    date: str
    submitted_at: str
    log_in: str
    log_out: str
    start_location: str
    finish_location: str

    def as_dict(self) -> Dict[str, str]:
        return dict(zip(CSV_HEADERS, astuple(self)))


def split_name(name: Optional[str]) -> Tuple[str, str]:
    if not name:
        return "", ""
    parts = name.strip().split(None, 1)
    if not parts:
        return "", ""
    return parts[0], parts[1] if len(parts) > 1 else ""


def format_date(value: Optional[dt.datetime], tz: dt.tzinfo = UTC) -> str:
    if value is None:
        return dt.datetime.now(tz).strftime(DATE_FORMAT)
    return value.astimezone(tz).strftime(DATE_FORMAT)


def format_time(value: Optional[dt.datetime], tz: dt.tzinfo = UTC) -> str:
    if value is None:
        return MISSING_TIME
    return value.astimezone(tz).strftime(TIME_FORMAT)


def format_location(geo: Optional[GeoPoint]) -> str:
    return geo.as_text() if geo is not None else ""


def to_rows(shifts: Iterable[Shift], employees: Iterable[Employee], tz: dt.tzinfo = UTC) -> List[ReportRow]:
    """Project shifts onto flat export rows, keeping the input order.

    A shift whose owner is not among ``employees`` still yields a row, with
    empty name fields. The submission column carries the start time; no
    separate submission timestamp is recorded.
    """
    by_id = {employee.id: employee for employee in employees}
    rows: List[ReportRow] = []
    for shift in shifts:
        employee = by_id.get(shift.user_id)
        first, last = split_name(employee.name if employee else None)
        rows.append(
            ReportRow(
                first_name=first,
                last_name=last,
                date=format_date(shift.start_ts, tz),
                submitted_at=format_time(shift.start_ts, tz),
                log_in=format_time(shift.start_ts, tz),
                log_out=format_time(shift.finish_ts, tz),
                start_location=format_location(shift.start_geo),
                finish_location=format_location(shift.finish_geo),
            )
        )
    return rows


def render_csv(rows: Sequence[ReportRow]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, delimiter=",", quotechar='"', quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for row in rows:
        writer.writerow(astuple(row))
    return output.getvalue()


def csv_filename(day: dt.date) -> str:
    return f"shifts_{day.isoformat()}.csv"


def daily_report_payload(store: Store, day: dt.date, tz: dt.tzinfo = UTC) -> Dict[str, Any]:
    shifts = [shift for shift in store.shifts if shift.date == day]
    return {
        "date": day.isoformat(),
        "shifts": [shift.model_dump(mode="json") for shift in shifts],
        "rows": [row.as_dict() for row in to_rows(shifts, store.employees, tz)],
    }


class ReportClient:
    """Posts the daily report to the configured endpoint."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def send(self, payload: Dict[str, Any]) -> None:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(self.url, json=payload)
            except httpx.HTTPError as exc:
                raise ReportDeliveryError(f"Report request failed: {exc}") from exc
        if response.status_code >= 400:
            raise ReportDeliveryError(
                f"Report endpoint answered {response.status_code}: {response.text}", response=response
            )
        logger.info("Daily report for %s delivered to %s", payload.get("date"), self.url)


__all__ = [
    "CSV_HEADERS",
    "MISSING_TIME",
    "ReportRow",
    "split_name",
    "format_date",
    "format_time",
    "format_location",
    "to_rows",
    "render_csv",
    "csv_filename",
    "daily_report_payload",
    "ReportClient",
]
