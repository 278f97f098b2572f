"""
unit_of_work.py — One transaction around a crisis lifecycle operation.

The lifecycle service writes events and audit rows through the repositories
here and queues rendered notifications in ``outbox``. It never commits; the
caller does, and only then hands the outbox to the dispatcher:

    with UnitOfWork(get_session_factory()) as uow:
        outcome = CrisisEventLifecycle(uow).update(event_id, data)
        uow.commit()
        pending = uow.collect_outbox()
    dispatcher.dispatch_all(pending)

Leaving the block without ``commit()`` rolls back and drops the outbox.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.orm import Session, sessionmaker

from crisis_backend.app.crisis.repositories import (
    CrisisEventChangeRepository,
    CrisisEventRepository,
    ScenarioThemeRepository,
)
from crisis_backend.app.notifications.models import PendingNotification
from crisis_backend.app.users.directory import UserDirectory

logger = logging.getLogger(__name__)


class UnitOfWork:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
        self.session: Optional[Session] = None
        self.outbox: List[PendingNotification] = []
        self._committed = False

    def __enter__(self) -> "UnitOfWork":
        self.session = self.session_factory()
        self.events = CrisisEventRepository(self.session)
        self.changes = CrisisEventChangeRepository(self.session)
        self.themes = ScenarioThemeRepository(self.session)
        self.users = UserDirectory(self.session)
        self.outbox = []
        self._committed = False
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is not None or not self._committed:
                self.rollback()
        finally:
            self.session.close()

    def commit(self) -> None:
        self.session.commit()
        self._committed = True

    def rollback(self) -> None:
        self.session.rollback()
        if self.outbox:
            logger.info("Rolled back, dropping %d queued notifications", len(self.outbox))
        self.outbox = []

    def collect_outbox(self) -> List[PendingNotification]:
        """Hand over queued notifications. Only valid after ``commit()``."""
        if not self._committed:
            raise RuntimeError("collect_outbox() called before commit()")
        pending, self.outbox = self.outbox, []
        return pending
