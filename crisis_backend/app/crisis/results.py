"""
Explicit lookup outcomes returned by the lifecycle service.

A missing event is an expected answer, not an error: services return
``NotFound`` and the API layer turns it into a 404.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Found(Generic[T]):
    value: T


@dataclass(frozen=True)
class NotFound:
    resource: str
    identifier: Any

    @property
    def message(self) -> str:
        return f"{self.resource} {self.identifier} not found"


Outcome = Union[Found[T], NotFound]
