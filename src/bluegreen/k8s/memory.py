"""In-memory control plane.

Backs ``bluegreen release --dry-run`` and the test-suite. It keeps the
applied manifests, simulates rollouts that finish after a configurable
number of status polls, and records every call in order so callers can
assert on sequencing.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional, Tuple

from bluegreen.errors import ControlPlaneError
from bluegreen.k8s.resources import (
    Condition,
    ConditionStatus,
    ConditionType,
    ControlPlane,
    DeploymentStatus,
    PROGRESS_DEADLINE_EXCEEDED,
    ServiceState,
)

_SUPPORTED_KINDS = ("Deployment", "Service")


class InMemoryControlPlane(ControlPlane):
    """A ``ControlPlane`` that lives entirely in process memory.

    Args:
        polls_until_ready: Status polls a rollout needs before all replicas
            report ready. ``0`` makes rollouts complete immediately.
    """

    def __init__(self, polls_until_ready: int = 0) -> None:
        self.polls_until_ready = polls_until_ready
        self.calls: List[Tuple[Any, ...]] = []
        self._manifests: Dict[str, Dict[str, Any]] = {}  # key = "Kind/name"
        self._deployments: Dict[str, DeploymentStatus] = {}
        self._pending: Dict[str, int] = {}
        self._stalled: Dict[str, bool] = {}
        self._failures: Dict[Tuple[str, Optional[str]], ControlPlaneError] = {}

    # -- Test / dry-run helpers --

    def add_deployment(
        self,
        name: str,
        labels: Dict[str, str] | None = None,
        replicas: int = 1,
        ready_replicas: int | None = None,
        image: str = "",
        container: str = "app",
    ) -> DeploymentStatus:
        """Seed an existing deployment without recording a call."""
        ready = replicas if ready_replicas is None else ready_replicas
        status = DeploymentStatus(
            name=name,
            labels=dict(labels or {}),
            desired_replicas=replicas,
            current_replicas=replicas,
            updated_replicas=replicas,
            ready_replicas=ready,
            available_replicas=ready,
            generation=1,
            observed_generation=1,
            images={container: image} if image else {},
        )
        self._deployments[name] = status
        self._manifests[f"Deployment/{name}"] = {
            "apiVersion": "apps/v1",
            "kind": "Deployment",
            "metadata": {"name": name, "labels": dict(labels or {})},
            "spec": {"replicas": replicas},
        }
        return status

    def add_service(self, name: str, selector: Dict[str, str] | None = None) -> None:
        """Seed an existing service without recording a call."""
        self._manifests[f"Service/{name}"] = {
            "apiVersion": "v1",
            "kind": "Service",
            "metadata": {"name": name},
            "spec": {"selector": dict(selector or {})},
        }

    def stall(self, name: str, deadline_exceeded: bool = False) -> None:
        """Keep ``name`` from ever finishing its rollout."""
        self._stalled[name] = deadline_exceeded

    def resume(self, name: str) -> None:
        """Undo :meth:`stall`; the next apply or image change rolls out normally."""
        self._stalled.pop(name, None)

    def fail(self, operation: str, error: ControlPlaneError | None = None, name: str | None = None) -> None:
        """Make ``operation`` (optionally only for ``name``) raise ``error``."""
        self._failures[(operation, name)] = error or ControlPlaneError(
            f"{operation} failed", status=500
        )

    def manifest(self, kind: str, name: str) -> Dict[str, Any] | None:
        doc = self._manifests.get(f"{kind}/{name}")
        return copy.deepcopy(doc) if doc is not None else None

    def operations(self, *names: str) -> List[str]:
        """Recorded operation names, optionally filtered."""
        ops = [c[0] for c in self.calls]
        if names:
            return [op for op in ops if op in names]
        return ops

    def _check(self, operation: str, name: str) -> None:
        err = self._failures.get((operation, name)) or self._failures.get((operation, None))
        if err is not None:
            raise err

    # -- ControlPlane --

    def get_deployment(self, name: str) -> DeploymentStatus | None:
        self.calls.append(("get_deployment", name))
        self._check("get_deployment", name)
        status = self._deployments.get(name)
        if status is None:
            return None
        self._advance(status)
        return copy.deepcopy(status)

    def get_service(self, name: str) -> ServiceState | None:
        self.calls.append(("get_service", name))
        self._check("get_service", name)
        doc = self._manifests.get(f"Service/{name}")
        if doc is None:
            return None
        selector = doc.get("spec", {}).get("selector") or {}
        return ServiceState(name=name, selector=dict(selector))

    def apply_manifest(self, doc: Dict[str, Any]) -> str:
        kind = doc.get("kind", "")
        name = (doc.get("metadata") or {}).get("name", "")
        self.calls.append(("apply", kind, name))
        self._check("apply", name)
        if kind not in _SUPPORTED_KINDS or not name:
            raise ControlPlaneError(f"unsupported resource {kind or '?'}/{name or '?'}", status=422)

        key = f"{kind}/{name}"
        action = "configured" if key in self._manifests else "created"
        self._manifests[key] = copy.deepcopy(doc)

        if kind == "Deployment":
            self._apply_deployment(name, doc)
        return action

    def set_image(self, deployment: str, container: str, image: str) -> None:
        self.calls.append(("set_image", deployment, container, image))
        self._check("set_image", deployment)
        status = self._deployments.get(deployment)
        if status is None:
            raise ControlPlaneError(f"deployment {deployment} not found", status=404)
        if status.images and container not in status.images:
            raise ControlPlaneError(
                f"container {container} not found in deployment {deployment}", status=422
            )
        if status.images.get(container) == image:
            return
        status.images[container] = image
        containers = (
            self._manifests[f"Deployment/{deployment}"]
            .setdefault("spec", {})
            .setdefault("template", {})
            .setdefault("spec", {})
            .setdefault("containers", [])
        )
        for c in containers:
            if c.get("name") == container:
                c["image"] = image
        self._start_rollout(status)

    def patch_service_selector(self, service: str, label: str, value: str) -> None:
        self.calls.append(("patch_service_selector", service, label, value))
        self._check("patch_service_selector", service)
        doc = self._manifests.get(f"Service/{service}")
        if doc is None:
            raise ControlPlaneError(f"service {service} not found", status=404)
        doc.setdefault("spec", {}).setdefault("selector", {})[label] = value

    def delete_deployment(self, name: str) -> bool:
        self.calls.append(("delete_deployment", name))
        self._check("delete_deployment", name)
        existed = self._deployments.pop(name, None) is not None
        self._manifests.pop(f"Deployment/{name}", None)
        self._pending.pop(name, None)
        return existed

    # -- Rollout simulation --

    def _apply_deployment(self, name: str, doc: Dict[str, Any]) -> None:
        spec = doc.get("spec") or {}
        template = spec.get("template") or {}
        containers = (template.get("spec") or {}).get("containers") or []
        status = self._deployments.get(name) or DeploymentStatus(name=name, generation=0)
        status.labels = dict((doc.get("metadata") or {}).get("labels") or {})
        status.desired_replicas = int(spec.get("replicas", 1))
        status.images = {c.get("name", ""): c.get("image", "") for c in containers}
        self._deployments[name] = status
        self._start_rollout(status)

    def _start_rollout(self, status: DeploymentStatus) -> None:
        status.generation += 1
        status.updated_replicas = 0
        status.ready_replicas = 0
        status.available_replicas = 0
        status.conditions = [
            Condition(ConditionType.PROGRESSING, ConditionStatus.TRUE, reason="ReplicaSetUpdated"),
        ]
        self._pending[status.name] = self.polls_until_ready

    def _advance(self, status: DeploymentStatus) -> None:
        name = status.name
        if name not in self._pending:
            return
        status.observed_generation = status.generation
        if name in self._stalled:
            if self._stalled[name]:
                status.conditions = [
                    Condition(
                        ConditionType.PROGRESSING,
                        ConditionStatus.FALSE,
                        reason=PROGRESS_DEADLINE_EXCEEDED,
                        message=f"deployment {name} exceeded its progress deadline",
                    )
                ]
            return
        if self._pending[name] > 0:
            self._pending[name] -= 1
            return
        want = status.desired_replicas
        status.current_replicas = want
        status.updated_replicas = want
        status.ready_replicas = want
        status.available_replicas = want
        status.conditions = [
            Condition(ConditionType.AVAILABLE, ConditionStatus.TRUE, reason="MinimumReplicasAvailable"),
            Condition(ConditionType.PROGRESSING, ConditionStatus.TRUE, reason="NewReplicaSetAvailable"),
        ]
        del self._pending[name]
