"""
repositories.py — Persistence primitives for crisis events and their history.

Thin wrappers over a SQLAlchemy ``Session``: lookup by id, insert, paged
listing, and the few filters the lifecycle service needs. No commits happen
here; the unit of work owns the transaction.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from crisis_backend.app.crisis.models import CrisisEvent, CrisisEventChange, ScenarioTheme
from crisis_backend.app.crisis.pagination import Page, PageRequest


class CrisisEventRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, event_id: int) -> Optional[CrisisEvent]:
        return self.session.get(CrisisEvent, event_id)

    def add(self, event: CrisisEvent) -> CrisisEvent:
        self.session.add(event)
        self.session.flush()
        return event

    def save(self, event: CrisisEvent) -> CrisisEvent:
        self.session.flush()
        return event

    def page(self, request: PageRequest) -> Page[CrisisEvent]:
        total = self.session.scalar(select(func.count()).select_from(CrisisEvent)) or 0
        items = self.session.scalars(
            select(CrisisEvent)
            .order_by(CrisisEvent.id)
            .offset(request.offset)
            .limit(request.size)
        ).all()
        return Page(items=list(items), total=total, page=request.page, size=request.size)

    def find_by_active(self, active: bool) -> List[CrisisEvent]:
        return list(self.session.scalars(
            select(CrisisEvent)
            .where(CrisisEvent.active.is_(active))
            .order_by(CrisisEvent.id)
        ).all())

    def search_by_name(self, term: str, active: bool) -> List[CrisisEvent]:
        """Case-insensitive substring match on the event name."""
        pattern = f"%{term.lower()}%"
        return list(self.session.scalars(
            select(CrisisEvent)
            .where(func.lower(CrisisEvent.name).like(pattern))
            .where(CrisisEvent.active.is_(active))
            .order_by(CrisisEvent.id)
        ).all())


class CrisisEventChangeRepository:
    def __init__(self, session: Session):
        self.session = session

    def add(self, change: CrisisEventChange) -> CrisisEventChange:
        self.session.add(change)
        return change

    def page_for_event(self, event_id: int, request: PageRequest) -> Page[CrisisEventChange]:
        """Newest first; rows written in the same instant fall back to id order."""
        where = CrisisEventChange.crisis_event_id == event_id
        total = self.session.scalar(
            select(func.count()).select_from(CrisisEventChange).where(where)
        ) or 0
        items = self.session.scalars(
            select(CrisisEventChange)
            .where(where)
            .order_by(CrisisEventChange.created_at.desc(), CrisisEventChange.id.desc())
            .offset(request.offset)
            .limit(request.size)
        ).all()
        return Page(items=list(items), total=total, page=request.page, size=request.size)


class ScenarioThemeRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, theme_id: int) -> Optional[ScenarioTheme]:
        return self.session.get(ScenarioTheme, theme_id)
