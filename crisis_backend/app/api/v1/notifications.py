"""
FastAPI routes: the caller's notifications.

    GET   /api/v1/notifications              — newest first, paged, ?type= filter
    PATCH /api/v1/notifications/{id}/read    — mark as read
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from crisis_backend.app.api.deps import (
    CurrentUser,
    get_current_user,
    get_dispatcher,
    get_page_request,
    unwrap,
)
from crisis_backend.app.api.schemas import NotificationOut, NotificationPageOut, page_out
from crisis_backend.app.crisis.pagination import PageRequest
from crisis_backend.app.notifications.dispatcher import NotificationDispatcher
from crisis_backend.app.notifications.models import PreferenceType

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


@router.get("", response_model=NotificationPageOut, summary="List my notifications")
def list_my_notifications(
    preference_type: Optional[str] = Query(
        None, alias="type", description="Only this preference type", examples=["crisis_alert"],
    ),
    user: CurrentUser = Depends(get_current_user),
    page: PageRequest = Depends(get_page_request),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    # An unknown type raises ValueError, rendered as 422
    wanted = PreferenceType.parse(preference_type) if preference_type else None
    return page_out(
        NotificationPageOut, NotificationOut,
        dispatcher.list_for_user(user.id, page, preference_type=wanted),
    )


@router.patch("/{notification_id}/read", response_model=NotificationOut, summary="Mark a notification as read")
def mark_notification_read(
    notification_id: int,
    user: CurrentUser = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    notification = unwrap(dispatcher.mark_as_read(notification_id, user_id=user.id))
    return NotificationOut.model_validate(notification)
