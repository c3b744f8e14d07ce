"""
Kubernetes control-plane access for blue/green releases.

The release core depends only on the ``ControlPlane`` contract. Two
implementations ship:

- KubernetesControlPlane: the official ``kubernetes`` client, in-cluster
  or via kubeconfig
- InMemoryControlPlane: dry runs and tests; simulates rollouts and records
  call order

Usage:
    plane = KubernetesControlPlane.from_config(namespace="web")
    status = plane.get_deployment("myapp-blue")
    if status is not None and status.rolled_out:
        ...
"""

from bluegreen.k8s.client import KubernetesControlPlane
from bluegreen.k8s.memory import InMemoryControlPlane
from bluegreen.k8s.resources import (
    PROGRESS_DEADLINE_EXCEEDED,
    Condition,
    ConditionStatus,
    ConditionType,
    ControlPlane,
    DeploymentStatus,
    ServiceState,
)

__all__ = [
    "PROGRESS_DEADLINE_EXCEEDED",
    "Condition",
    "ConditionStatus",
    "ConditionType",
    "ControlPlane",
    "DeploymentStatus",
    "InMemoryControlPlane",
    "KubernetesControlPlane",
    "ServiceState",
]

