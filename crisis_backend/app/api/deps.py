"""
Shared FastAPI dependencies: caller identity, unit of work, paging.

Authentication happens at the gateway, which forwards the caller's id in
``X-User-Id``. This module only resolves that id to a known user and role.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generator, Optional

from fastapi import Depends, Header, Query
from sqlalchemy.orm import Session

from crisis_backend.app.core.config import settings
from crisis_backend.app.core.database import get_db, get_session_factory
from crisis_backend.app.core.errors import ForbiddenError, NotFoundError, UnauthorizedError
from crisis_backend.app.crisis.pagination import PageRequest
from crisis_backend.app.crisis.results import NotFound
from crisis_backend.app.crisis.unit_of_work import UnitOfWork
from crisis_backend.app.notifications.dispatcher import NotificationDispatcher
from crisis_backend.app.users.models import Role, User


@dataclass(frozen=True)
class CurrentUser:
    id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role.is_admin


def get_current_user(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    db: Session = Depends(get_db),
) -> CurrentUser:
    if not x_user_id or not x_user_id.strip().isdigit():
        raise UnauthorizedError("Missing or malformed X-User-Id header")
    user = db.get(User, int(x_user_id))
    if user is None:
        raise UnauthorizedError("Unknown user")
    return CurrentUser(id=user.id, role=Role(user.role))


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise ForbiddenError()
    return user


def get_uow() -> Generator[UnitOfWork, None, None]:
    with UnitOfWork(get_session_factory()) as uow:
        yield uow


def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(get_session_factory())


def get_page_request(
    page: int = Query(0, ge=0, description="Zero-based page index"),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
) -> PageRequest:
    return PageRequest(page=page, size=size)


def unwrap(outcome):
    """Return the found value or raise the matching 404."""
    if isinstance(outcome, NotFound):
        raise NotFoundError(outcome.resource, id=outcome.identifier)
    return outcome.value
