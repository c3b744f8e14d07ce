"""Blue-green release models.

A release ships one build into the inactive slot of a two-slot (blue/green)
deployment. The :class:`Release` value is threaded through every stage of
the orchestration; stages never share ambient state.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Color(str, Enum):
    """Deployment slot identifier."""

    BLUE = "blue"
    GREEN = "green"

    def complement(self) -> Color:
        return Color.GREEN if self is Color.BLUE else Color.BLUE


class ReleaseState(Enum):
    """Where a release is in the deploy → verify → switch lifecycle."""

    PENDING = "pending"
    RESOLVED = "resolved"
    PUBLISHED = "published"
    DEPLOYED = "deployed"
    READY = "ready"
    SWITCHED = "switched"
    COMPLETE = "complete"
    FAILED = "failed"


# Each state may only move forward to the next one (or fail).
_FORWARD: dict[ReleaseState, ReleaseState] = {
    ReleaseState.PENDING: ReleaseState.RESOLVED,
    ReleaseState.RESOLVED: ReleaseState.PUBLISHED,
    ReleaseState.PUBLISHED: ReleaseState.DEPLOYED,
    ReleaseState.DEPLOYED: ReleaseState.READY,
    ReleaseState.READY: ReleaseState.SWITCHED,
    ReleaseState.SWITCHED: ReleaseState.COMPLETE,
}


def can_transition(current: ReleaseState, target: ReleaseState) -> bool:
    """Return True if ``current`` may move to ``target``."""
    if target == ReleaseState.FAILED:
        return current not in (ReleaseState.COMPLETE, ReleaseState.FAILED)
    return _FORWARD.get(current) == target


def slot_name(app_name: str, color: Color) -> str:
    """Deployment name of the ``color`` slot of ``app_name``."""
    return f"{app_name}-{color.value}"


class Release(BaseModel):
    """One attempt to ship a new artifact.

    Immutable: stages that learn something new (e.g. the published image
    reference) hand back an updated copy via :meth:`with_image`.
    """

    model_config = ConfigDict(frozen=True)

    build_id: int = Field(..., ge=1, description="Externally supplied, monotonically increasing")
    app_name: str
    target_color: Color
    target_deployment_name: str
    other_deployment_name: str
    image_reference: str = ""

    @classmethod
    def for_target(cls, build_id: int, app_name: str, target_color: Color) -> Release:
        return cls(
            build_id=build_id,
            app_name=app_name,
            target_color=target_color,
            target_deployment_name=slot_name(app_name, target_color),
            other_deployment_name=slot_name(app_name, target_color.complement()),
        )

    @property
    def other_color(self) -> Color:
        return self.target_color.complement()

    @property
    def is_bootstrap(self) -> bool:
        """The first release ever, which establishes blue with nothing to switch from."""
        return self.build_id == 1 and self.target_color == Color.BLUE

    def with_image(self, image_reference: str) -> Release:
        return self.model_copy(update={"image_reference": image_reference})


class ReleaseEvent:
    """An event emitted during a release lifecycle."""

    def __init__(
        self,
        event_type: str,
        color: Color | None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.event_type = event_type
        self.color = color
        self.timestamp: float = time.time()
        self.details: dict[str, Any] = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "color": self.color.value if self.color else None,
            "timestamp": self.timestamp,
            "details": self.details,
        }


class ReleaseReport(BaseModel):
    """Summary of a finished (or aborted) release."""

    release: Release | None = None
    state: ReleaseState = ReleaseState.PENDING
    resolution_source: str = ""
    switched: bool = False
    deleted_previous: bool = False
    failed_stage: str = ""
    error: str = ""
    events: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state == ReleaseState.COMPLETE

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
