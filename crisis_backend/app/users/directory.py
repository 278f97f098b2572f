"""
directory.py — Read-only user lookups for crisis targeting.

``UserDirectory`` is the default ``AffectedUserSource``: it loads the whole
population with households joined in one query and copies it into immutable
``ResidentLocation`` snapshots.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from crisis_backend.app.crisis.resolver import ResidentLocation
from crisis_backend.app.users.models import User

logger = logging.getLogger(__name__)


def to_resident(user: User) -> ResidentLocation:
    household = user.household
    located = household is not None and household.has_location
    return ResidentLocation(
        user_id=user.id,
        home_latitude=user.home_latitude,
        home_longitude=user.home_longitude,
        household_latitude=household.latitude if located else None,
        household_longitude=household.longitude if located else None,
    )


class UserDirectory:
    def __init__(self, session: Session):
        self.session = session

    def get_user(self, user_id: int) -> Optional[User]:
        return self.session.get(User, user_id)

    def all_residents(self) -> List[ResidentLocation]:
        users = self.session.scalars(
            select(User).options(joinedload(User.household)).order_by(User.id)
        ).all()
        logger.debug("Loaded %d residents for scan", len(users))
        return [to_resident(u) for u in users]

    def resident(self, user_id: int) -> Optional[ResidentLocation]:
        user = self.get_user(user_id)
        return to_resident(user) if user is not None else None
