from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, settings
from .errors import ReportDeliveryError
from .geo import ClientGeoProvider, GeoProvider, build_geo_provider
from .notifications import Notifier, default_reminders
from .reports import ReportClient, csv_filename, render_csv, to_rows
from .scheduler import DailyScheduler
from .schemas import (
    CurrentUserRequest,
    DailyReportResponse,
    EmployeeResponse,
    LocationFix,
    ProjectResponse,
    ShiftResponse,
    WorkActionRequest,
    WorkStartRequest,
    WorkStatusResponse,
    WorkTransitionResponse,
)
from .services import ACTION_STARTED, ShiftClock, Transition, send_daily_report, send_daily_report_job
from .storage import build_shift_store


def build_clock(config: Settings) -> ShiftClock:
    return ShiftClock(
        build_shift_store(config),
        geo_provider=build_geo_provider(config),
        geo_timeout=config.geo_timeout_seconds,
        timezone=config.timezone,
    )


def build_scheduler(config: Settings, clock: ShiftClock, notifier: Notifier, report_client: ReportClient) -> DailyScheduler:
    scheduler = DailyScheduler(config.timezone)
    if notifier.enabled:
        for reminder in default_reminders(config):

            async def _remind(reminder=reminder) -> None:
                notifier.notify(reminder)

            scheduler.add(reminder.title, reminder.at, _remind)

    async def _report() -> None:
        await send_daily_report_job(clock, report_client)

    scheduler.add("Daily report", config.report_time, _report)
    return scheduler


def get_clock(request: Request) -> ShiftClock:
    return request.app.state.clock


def get_report_client(request: Request) -> ReportClient:
    return request.app.state.report_client


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    scheduler: Optional[DailyScheduler] = None
    if settings.scheduler_enabled:
        scheduler = build_scheduler(settings, app.state.clock, app.state.notifier, app.state.report_client)
        scheduler.start()
    try:
        yield
    finally:
        if scheduler is not None:
            await scheduler.stop()


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.state.clock = build_clock(settings)
app.state.notifier = Notifier(settings.notification_permission)
app.state.report_client = ReportClient(settings.report_url, timeout=settings.report_timeout_seconds)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://127.0.0.1:5173", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _resolve_user(clock: ShiftClock, user_id: Optional[str]) -> str:
    resolved = user_id if user_id is not None else clock.current_user_id
    if resolved is None or clock.employee(resolved) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Employee not found")
    return resolved


def _geo_override(location: Optional[LocationFix]) -> Optional[GeoProvider]:
    if location is None:
        return None
    return ClientGeoProvider(location.to_point())


def _transition_response(transition: Transition) -> WorkTransitionResponse:
    shift = ShiftResponse.from_shift(transition.shift, settings.maps_api_key) if transition.shift else None
    return WorkTransitionResponse(action=transition.action, state=transition.state, shift=shift)


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/employees", response_model=list[EmployeeResponse])
def list_employees(clock: ShiftClock = Depends(get_clock)) -> list[EmployeeResponse]:
    return [EmployeeResponse.model_validate(employee) for employee in clock.employees()]


@app.get("/projects", response_model=list[ProjectResponse])
def list_projects(clock: ShiftClock = Depends(get_clock)) -> list[ProjectResponse]:
    return [ProjectResponse.model_validate(project) for project in clock.projects()]


@app.get("/me", response_model=EmployeeResponse)
def current_user(clock: ShiftClock = Depends(get_clock)) -> EmployeeResponse:
    employee = clock.employee(_resolve_user(clock, None))
    return EmployeeResponse.model_validate(employee)


@app.put("/me", response_model=EmployeeResponse)
async def switch_user(payload: CurrentUserRequest, clock: ShiftClock = Depends(get_clock)) -> EmployeeResponse:
    user_id = _resolve_user(clock, payload.user_id)
    await clock.set_current_user(user_id)
    return EmployeeResponse.model_validate(clock.employee(user_id))


@app.get("/work/status", response_model=WorkStatusResponse)
def work_status(user_id: Optional[str] = None, clock: ShiftClock = Depends(get_clock)) -> WorkStatusResponse:
    resolved = _resolve_user(clock, user_id)
    shift = clock.open_shift(resolved)
    return WorkStatusResponse(
        user_id=resolved,
        state=clock.state(resolved),
        shift=ShiftResponse.from_shift(shift, settings.maps_api_key) if shift else None,
    )


@app.post("/work/start", response_model=WorkTransitionResponse)
async def work_start(
    payload: WorkStartRequest, response: Response, clock: ShiftClock = Depends(get_clock)
) -> WorkTransitionResponse:
    user_id = _resolve_user(clock, payload.user_id)
    if payload.project_id is not None and clock.project(payload.project_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    transition = await clock.start(
        user_id,
        project_id=payload.project_id,
        notes=payload.notes,
        geo_provider=_geo_override(payload.location),
    )
    if transition.action == ACTION_STARTED:
        response.status_code = status.HTTP_201_CREATED
    return _transition_response(transition)


@app.post("/work/break", response_model=WorkTransitionResponse)
async def work_break(payload: WorkActionRequest, clock: ShiftClock = Depends(get_clock)) -> WorkTransitionResponse:
    user_id = _resolve_user(clock, payload.user_id)
    transition = await clock.toggle_break(user_id, geo_provider=_geo_override(payload.location))
    return _transition_response(transition)


@app.post("/work/finish", response_model=WorkTransitionResponse)
async def work_finish(payload: WorkActionRequest, clock: ShiftClock = Depends(get_clock)) -> WorkTransitionResponse:
    user_id = _resolve_user(clock, payload.user_id)
    transition = await clock.finish(user_id, geo_provider=_geo_override(payload.location))
    return _transition_response(transition)


@app.get("/shifts", response_model=list[ShiftResponse])
def list_shifts(user_id: Optional[str] = None, clock: ShiftClock = Depends(get_clock)) -> list[ShiftResponse]:
    resolved = _resolve_user(clock, user_id)
    return [ShiftResponse.from_shift(shift, settings.maps_api_key) for shift in clock.shifts_for(resolved)]


@app.get("/exports/shifts.csv")
def export_csv(clock: ShiftClock = Depends(get_clock)) -> Response:
    store = clock.snapshot()
    content = render_csv(to_rows(store.shifts, store.employees, clock.tz))
    filename = csv_filename(clock.today())
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/reports/daily", response_model=DailyReportResponse)
async def trigger_daily_report(
    clock: ShiftClock = Depends(get_clock), client: ReportClient = Depends(get_report_client)
) -> DailyReportResponse:
    try:
        payload = await send_daily_report(clock, client)
    except ReportDeliveryError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return DailyReportResponse(date=payload["date"], shift_count=len(payload["shifts"]))
