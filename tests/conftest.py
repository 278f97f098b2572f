"""
Shared fixtures: an in-memory SQLite database bound as the process engine,
plus small factories for users, households and crisis events.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Tuple

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from crisis_backend.app.core.database import Base, bind_engine
from crisis_backend.app.crisis import models as crisis_models
from crisis_backend.app.notifications import models as notification_models  # noqa: F401
from crisis_backend.app.users.models import Household, Role, User

# Trondheim city centre, used as the default epicenter
EPICENTER = (Decimal("63.43"), Decimal("10.40"))
# ~1.2 km from the epicenter
NEARBY = (Decimal("63.44"), Decimal("10.41"))
# ~19 km north of the epicenter
FAR_AWAY = (Decimal("63.60"), Decimal("10.40"))

START = datetime(2026, 10, 19, 8, 30, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    bind_engine(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return bind_engine(engine)


@pytest.fixture
def make_user(session_factory):
    """Insert a user (and optionally a household) and return its id."""
    counter = {"n": 0}

    def _make_user(
        *,
        home: Optional[Tuple[Decimal, Decimal]] = None,
        household: Optional[Tuple[Decimal, Decimal]] = None,
        role: Role = Role.USER,
        first_name: str = "Test",
    ) -> int:
        counter["n"] += 1
        with session_factory() as session:
            user = User(
                email=f"user{counter['n']}@example.com",
                first_name=first_name,
                last_name=f"User{counter['n']}",
                role=role,
                home_latitude=home[0] if home else None,
                home_longitude=home[1] if home else None,
            )
            if household is not None:
                user.household = Household(
                    name=f"Household {counter['n']}",
                    latitude=household[0],
                    longitude=household[1],
                )
            session.add(user)
            session.commit()
            return user.id

    return _make_user


@pytest.fixture
def admin_id(make_user):
    return make_user(role=Role.ADMIN, first_name="Admin")


@pytest.fixture
def make_theme(session_factory):
    def _make_theme(name: str = "Flood preparedness") -> int:
        with session_factory() as session:
            theme = crisis_models.ScenarioTheme(name=name)
            session.add(theme)
            session.commit()
            return theme.id

    return _make_theme
