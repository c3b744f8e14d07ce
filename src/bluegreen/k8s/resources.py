"""Cluster resource views and the control-plane contract.

The release core talks to the orchestrator only through :class:`ControlPlane`.
Adapters translate their native objects into the plain views defined here.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ConditionType(Enum):
    """Deployment condition types reported by the control plane."""

    AVAILABLE = "Available"
    PROGRESSING = "Progressing"
    REPLICA_FAILURE = "ReplicaFailure"


class ConditionStatus(Enum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


PROGRESS_DEADLINE_EXCEEDED = "ProgressDeadlineExceeded"


@dataclass
class Condition:
    """A K8s-style status condition."""

    type: ConditionType
    status: ConditionStatus = ConditionStatus.UNKNOWN
    reason: str = ""
    message: str = ""
    last_transition_time: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "status": self.status.value,
            "reason": self.reason,
            "message": self.message,
            "lastTransitionTime": self.last_transition_time,
        }


@dataclass
class DeploymentStatus:
    """Observed state of one deployment slot."""

    name: str
    labels: Dict[str, str] = field(default_factory=dict)
    desired_replicas: int = 1
    current_replicas: int = 0
    updated_replicas: int = 0
    ready_replicas: int = 0
    available_replicas: int = 0
    generation: int = 1
    observed_generation: int = 0
    images: Dict[str, str] = field(default_factory=dict)
    conditions: List[Condition] = field(default_factory=list)

    def get_condition(self, ctype: ConditionType) -> Condition | None:
        for c in self.conditions:
            if c.type == ctype:
                return c
        return None

    @property
    def progress_deadline_exceeded(self) -> bool:
        cond = self.get_condition(ConditionType.PROGRESSING)
        return cond is not None and cond.reason == PROGRESS_DEADLINE_EXCEEDED

    @property
    def rolled_out(self) -> bool:
        """True once every desired replica runs the latest template and is available."""
        if self.observed_generation < self.generation:
            return False
        want = self.desired_replicas
        return (
            self.updated_replicas == want
            and self.current_replicas == want
            and self.ready_replicas == want
            and self.available_replicas == want
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "labels": dict(self.labels),
            "replicas": {
                "desired": self.desired_replicas,
                "current": self.current_replicas,
                "updated": self.updated_replicas,
                "ready": self.ready_replicas,
                "available": self.available_replicas,
            },
            "generation": self.generation,
            "observedGeneration": self.observed_generation,
            "images": dict(self.images),
            "conditions": [c.to_dict() for c in self.conditions],
        }


@dataclass
class ServiceState:
    """Observed state of the shared routable service."""

    name: str
    selector: Dict[str, str] = field(default_factory=dict)

    def selector_color(self, label: str = "color") -> Optional[str]:
        return self.selector.get(label)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "selector": dict(self.selector)}


class ControlPlane(ABC):
    """Declarative access to Deployments and Services by name.

    All calls are synchronous. Failures raise
    :class:`~bluegreen.errors.ControlPlaneError`; callers own any retrying.
    """

    @abstractmethod
    def get_deployment(self, name: str) -> DeploymentStatus | None:
        """Return the deployment's status, or None if it does not exist."""

    @abstractmethod
    def get_service(self, name: str) -> ServiceState | None:
        """Return the service, or None if it does not exist."""

    @abstractmethod
    def apply_manifest(self, doc: Dict[str, Any]) -> str:
        """Create the resource if absent, replace it if present.

        Returns ``"created"`` or ``"configured"``.
        """

    @abstractmethod
    def set_image(self, deployment: str, container: str, image: str) -> None:
        """Bind ``image`` to ``container`` of a running deployment."""

    @abstractmethod
    def patch_service_selector(self, service: str, label: str, value: str) -> None:
        """Set one selector key of the service."""

    @abstractmethod
    def delete_deployment(self, name: str) -> bool:
        """Delete a deployment. Returns False if it was already absent."""
