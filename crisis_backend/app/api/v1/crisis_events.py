"""
FastAPI routes: crisis events.

Admin (X-User-Id must be an admin):
    POST /api/v1/admin/crisis-events                        — create
    PUT  /api/v1/admin/crisis-events/{id}                   — update
    PUT  /api/v1/admin/crisis-events/{id}/deactivate        — deactivate

Public:
    GET  /api/v1/public/crisis-events/all                   — all events, paged
    GET  /api/v1/public/crisis-events/all/previews          — active, by severity
    GET  /api/v1/public/crisis-events/inactive/previews     — inactive, by severity
    GET  /api/v1/public/crisis-events/search                — name search
    GET  /api/v1/public/crisis-events/{id}                  — details
    GET  /api/v1/public/crisis-events/{id}/changes          — history, newest first

Signed-in user:
    GET  /api/v1/user/crisis-events/current-user            — events affecting caller
    GET  /api/v1/user/crisis-events/all/current-user        — previews of the same

Mutations commit first; notifications go out afterwards as a background
task, so a slow or failing push never holds up the response.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query

from crisis_backend.app.api.deps import (
    CurrentUser,
    get_current_user,
    get_dispatcher,
    get_page_request,
    get_uow,
    require_admin,
    unwrap,
)
from crisis_backend.app.api.schemas import (
    ChangePageOut,
    ChangeRecordOut,
    CreateCrisisEventRequest,
    CrisisEventDetailsOut,
    CrisisEventPreviewOut,
    DetailsPageOut,
    PreviewPageOut,
    UpdateCrisisEventRequest,
    page_out,
)
from crisis_backend.app.crisis.lifecycle import CrisisEventLifecycle
from crisis_backend.app.crisis.pagination import PageRequest
from crisis_backend.app.crisis.unit_of_work import UnitOfWork
from crisis_backend.app.crisis.views import to_details
from crisis_backend.app.notifications.dispatcher import NotificationDispatcher

admin_router = APIRouter(prefix="/api/v1/admin/crisis-events", tags=["crisis-events-admin"])
public_router = APIRouter(prefix="/api/v1/public/crisis-events", tags=["crisis-events"])
user_router = APIRouter(prefix="/api/v1/user/crisis-events", tags=["crisis-events-user"])


def _commit_and_dispatch(
    uow: UnitOfWork,
    background: BackgroundTasks,
    dispatcher: NotificationDispatcher,
) -> None:
    uow.commit()
    pending = uow.collect_outbox()
    if pending:
        background.add_task(dispatcher.dispatch_all, pending)


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------

@admin_router.post(
    "",
    status_code=201,
    response_model=CrisisEventDetailsOut,
    summary="Create a crisis event",
    description=(
        "Creates an active event, records a creation entry in its history "
        "and notifies every user whose home or household is inside the radius."
    ),
)
def create_crisis_event(
    body: CreateCrisisEventRequest,
    background: BackgroundTasks,
    admin: CurrentUser = Depends(require_admin),
    uow: UnitOfWork = Depends(get_uow),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    event = CrisisEventLifecycle(uow).create(body.to_input(), admin.id)
    details = to_details(event)
    _commit_and_dispatch(uow, background, dispatcher)
    return CrisisEventDetailsOut.model_validate(details)


@admin_router.put(
    "/{event_id}",
    response_model=CrisisEventDetailsOut,
    summary="Update a crisis event",
    description=(
        "Supplying all of name, description, severity, latitude, longitude "
        "and radius overwrites and audits every field; otherwise only the "
        "supplied fields that differ are applied. start_time cannot be changed."
    ),
)
def update_crisis_event(
    event_id: int,
    body: UpdateCrisisEventRequest,
    background: BackgroundTasks,
    admin: CurrentUser = Depends(require_admin),
    uow: UnitOfWork = Depends(get_uow),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    event = unwrap(CrisisEventLifecycle(uow).update(event_id, body.to_input(), acting_user_id=admin.id))
    details = to_details(event)
    _commit_and_dispatch(uow, background, dispatcher)
    return CrisisEventDetailsOut.model_validate(details)


@admin_router.put(
    "/{event_id}/deactivate",
    response_model=CrisisEventDetailsOut,
    summary="Deactivate a crisis event",
)
def deactivate_crisis_event(
    event_id: int,
    background: BackgroundTasks,
    admin: CurrentUser = Depends(require_admin),
    uow: UnitOfWork = Depends(get_uow),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    event = unwrap(CrisisEventLifecycle(uow).deactivate(event_id, acting_user_id=admin.id))
    details = to_details(event)
    _commit_and_dispatch(uow, background, dispatcher)
    return CrisisEventDetailsOut.model_validate(details)


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

@public_router.get("/all", response_model=DetailsPageOut, summary="All crisis events")
def list_all_crisis_events(
    page: PageRequest = Depends(get_page_request),
    uow: UnitOfWork = Depends(get_uow),
):
    return page_out(DetailsPageOut, CrisisEventDetailsOut, CrisisEventLifecycle(uow).list_all(page))


@public_router.get(
    "/all/previews",
    response_model=PreviewPageOut,
    summary="Active crisis events, most severe first",
)
def list_active_previews(
    page: PageRequest = Depends(get_page_request),
    uow: UnitOfWork = Depends(get_uow),
):
    return page_out(
        PreviewPageOut, CrisisEventPreviewOut,
        CrisisEventLifecycle(uow).list_active_previews(page),
    )


@public_router.get(
    "/inactive/previews",
    response_model=PreviewPageOut,
    summary="Inactive crisis events, most severe first",
)
def list_inactive_previews(
    page: PageRequest = Depends(get_page_request),
    uow: UnitOfWork = Depends(get_uow),
):
    return page_out(
        PreviewPageOut, CrisisEventPreviewOut,
        CrisisEventLifecycle(uow).list_inactive_previews(page),
    )


@public_router.get("/search", response_model=PreviewPageOut, summary="Search events by name")
def search_crisis_events(
    name_search: Optional[str] = Query(None, max_length=255, examples=["flood"]),
    is_active: bool = Query(True),
    page: PageRequest = Depends(get_page_request),
    uow: UnitOfWork = Depends(get_uow),
):
    result = CrisisEventLifecycle(uow).search(name_search, is_active, page)
    return page_out(PreviewPageOut, CrisisEventPreviewOut, result)


@public_router.get("/{event_id}", response_model=CrisisEventDetailsOut, summary="Crisis event details")
def get_crisis_event(event_id: int, uow: UnitOfWork = Depends(get_uow)):
    details = unwrap(CrisisEventLifecycle(uow).get_details(event_id))
    return CrisisEventDetailsOut.model_validate(details)


@public_router.get(
    "/{event_id}/changes",
    response_model=ChangePageOut,
    summary="Change history of a crisis event, newest first",
)
def list_crisis_event_changes(
    event_id: int,
    page: PageRequest = Depends(get_page_request),
    uow: UnitOfWork = Depends(get_uow),
):
    changes = unwrap(CrisisEventLifecycle(uow).list_changes(event_id, page))
    return page_out(ChangePageOut, ChangeRecordOut, changes)


# ---------------------------------------------------------------------------
# Current user
# ---------------------------------------------------------------------------

@user_router.get(
    "/current-user",
    response_model=DetailsPageOut,
    summary="Active events affecting the caller's home or household",
)
def list_events_affecting_me(
    user: CurrentUser = Depends(get_current_user),
    page: PageRequest = Depends(get_page_request),
    uow: UnitOfWork = Depends(get_uow),
):
    events = unwrap(CrisisEventLifecycle(uow).list_affecting_user(user.id, page))
    return page_out(DetailsPageOut, CrisisEventDetailsOut, events)


@user_router.get(
    "/all/current-user",
    response_model=PreviewPageOut,
    summary="Previews of active events affecting the caller",
)
def list_previews_affecting_me(
    user: CurrentUser = Depends(get_current_user),
    page: PageRequest = Depends(get_page_request),
    uow: UnitOfWork = Depends(get_uow),
):
    previews = unwrap(CrisisEventLifecycle(uow).list_previews_affecting_user(user.id, page))
    return page_out(PreviewPageOut, CrisisEventPreviewOut, previews)
