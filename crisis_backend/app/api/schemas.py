"""
Pydantic schemas for the crisis-event and notification APIs.

Request bodies validate ranges and closed enums at the boundary; response
models are built from the service projections with ``from_attributes``.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from crisis_backend.app.crisis.lifecycle import CreateCrisisEventInput, UpdateCrisisEventInput
from crisis_backend.app.crisis.models import ChangeType, Severity
from crisis_backend.app.crisis.pagination import Page
from crisis_backend.app.notifications.models import PreferenceType, TargetType


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class CreateCrisisEventRequest(BaseModel):
    """Body of the admin create call. Severity defaults to ``green``."""
    name: str = Field(..., min_length=1, max_length=255, examples=["Flood A"])
    description: Optional[str] = Field(None, examples=["River Nidelva over its banks"])
    severity: Severity = Field(Severity.GREEN, examples=["red"])
    latitude: Decimal = Field(..., ge=-90, le=90, examples=[63.43])
    longitude: Decimal = Field(..., ge=-180, le=180, examples=[10.40])
    radius: Decimal = Field(..., gt=0, description="Radius in kilometres", examples=[5])
    start_time: datetime = Field(..., examples=["2026-10-19T08:30:00Z"])
    scenario_theme_id: Optional[int] = Field(None, examples=[1])

    @field_validator("name")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must not be blank")
        return v

    def to_input(self) -> CreateCrisisEventInput:
        return CreateCrisisEventInput(
            name=self.name,
            description=self.description,
            severity=self.severity,
            latitude=self.latitude,
            longitude=self.longitude,
            radius=self.radius,
            start_time=self.start_time,
            scenario_theme_id=self.scenario_theme_id,
        )


class UpdateCrisisEventRequest(BaseModel):
    """
    Body of the admin update call. Every field is optional.

    Unknown fields are rejected, which is how an attempt to change
    ``start_time`` surfaces as a 422.
    """
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    severity: Optional[Severity] = None
    latitude: Optional[Decimal] = Field(None, ge=-90, le=90)
    longitude: Optional[Decimal] = Field(None, ge=-180, le=180)
    radius: Optional[Decimal] = Field(None, gt=0, description="Radius in kilometres")
    scenario_theme_id: Optional[int] = None

    def to_input(self) -> UpdateCrisisEventInput:
        return UpdateCrisisEventInput(
            name=self.name,
            description=self.description,
            severity=self.severity,
            latitude=self.latitude,
            longitude=self.longitude,
            radius=self.radius,
            scenario_theme_id=self.scenario_theme_id,
        )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class CrisisEventPreviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    severity: Severity
    start_time: datetime


class CrisisEventDetailsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str]
    severity: Severity
    epicenter_latitude: float
    epicenter_longitude: float
    radius: Optional[float] = Field(None, description="Radius in kilometres")
    start_time: datetime
    updated_at: datetime
    active: bool
    scenario_theme_id: Optional[int]


class ChangeRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    crisis_event_id: int
    change_type: ChangeType
    old_value: Optional[str]
    new_value: Optional[str]
    created_by_user_id: int
    created_by_user_name: Optional[str]
    created_at: datetime


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    preference_type: PreferenceType
    target_type: Optional[TargetType]
    target_id: Optional[int]
    description: str
    notify_at: Optional[datetime]
    sent_at: Optional[datetime]
    read_at: Optional[datetime]
    created_at: datetime


class _PageOut(BaseModel):
    total: int
    page: int
    size: int
    total_pages: int


class PreviewPageOut(_PageOut):
    items: List[CrisisEventPreviewOut]


class DetailsPageOut(_PageOut):
    items: List[CrisisEventDetailsOut]


class ChangePageOut(_PageOut):
    items: List[ChangeRecordOut]


class NotificationPageOut(_PageOut):
    items: List[NotificationOut]


def page_out(model, item_type, page: Page):
    """Build a ``*PageOut`` response from a service ``Page``."""
    return model(
        items=[item_type.model_validate(i) for i in page.items],
        total=page.total,
        page=page.page,
        size=page.size,
        total_pages=page.total_pages,
    )
