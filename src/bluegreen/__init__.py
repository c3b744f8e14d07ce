"""bluegreen — zero-downtime blue/green releases on Kubernetes.

Two deployment slots, ``<app>-blue`` and ``<app>-green``, run side by side.
A single Service selects exactly one of them through a ``color`` label.
A release:

1. resolves which slot is active and targets the other one,
2. builds and publishes the image, tagged by build number and color,
3. derives the target slot's Deployment from the canonical blue manifest
   and binds the new image to it,
4. waits until every replica of the new slot is available,
5. after operator confirmation repoints the Service and deletes the old
   slot.

Any failing stage aborts the release; nothing is rolled back automatically.

Quick start::

    from bluegreen import ReleaseConfig, ReleaseOrchestrator
    from bluegreen.delivery import DockerCLI, PromptGate
    from bluegreen.k8s import KubernetesControlPlane

    config = ReleaseConfig.from_yaml("bluegreen.yaml")
    plane = KubernetesControlPlane.from_config(config.namespace)
    docker = DockerCLI()
    orchestrator = ReleaseOrchestrator.from_config(
        config, plane, PromptGate(), builder=docker, registry=docker
    )
    orchestrator.run(build_id=42)
"""

from bluegreen.config import ReleaseConfig, ResolutionMode
from bluegreen.delivery.blue_green import Color, Release, ReleaseReport
from bluegreen.delivery.orchestrator import ReleaseOrchestrator

__all__ = [
    "Color",
    "Release",
    "ReleaseConfig",
    "ReleaseOrchestrator",
    "ReleaseReport",
    "ResolutionMode",
]

__version__ = "0.1.0"
