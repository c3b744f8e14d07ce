"""Shared fixtures: in-memory cluster, manifests, fake builder and clock."""

from __future__ import annotations

from pathlib import Path

import pytest

from bluegreen.config import ReleaseConfig
from bluegreen.delivery.gates import AutoApproveGate
from bluegreen.delivery.manifests import ManifestStore
from bluegreen.delivery.orchestrator import ReleaseOrchestrator
from bluegreen.delivery.readiness import ReadinessWaiter
from bluegreen.k8s import InMemoryControlPlane
from fakes import FakeBuilder, FakeClock, FakeRegistry

MANIFESTS_DIR = Path(__file__).resolve().parent.parent / "manifests"


@pytest.fixture()
def plane() -> InMemoryControlPlane:
    return InMemoryControlPlane()


@pytest.fixture()
def store() -> ManifestStore:
    return ManifestStore.from_files(
        MANIFESTS_DIR / "deployment-blue.yaml", MANIFESTS_DIR / "service.yaml"
    )


@pytest.fixture()
def config() -> ReleaseConfig:
    return ReleaseConfig(
        app_name="myapp",
        image_repository="registry.example.com/myapp",
        deployment_template=str(MANIFESTS_DIR / "deployment-blue.yaml"),
        service_template=str(MANIFESTS_DIR / "service.yaml"),
        readiness_timeout_seconds=60,
        poll_interval_seconds=5,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def make_orchestrator(plane, store, config, clock):
    """Build an orchestrator over the in-memory plane; override pieces by keyword."""

    def _make(gate=None, builder=None, registry=None, **overrides) -> ReleaseOrchestrator:
        cfg = config.model_copy(update=overrides) if overrides else config
        waiter = ReadinessWaiter(plane, cfg.poll_interval_seconds, clock=clock, sleep=clock.sleep)
        return ReleaseOrchestrator.from_config(
            cfg,
            plane,
            gate or AutoApproveGate(),
            builder=builder or FakeBuilder(),
            registry=registry or FakeRegistry(),
            manifests=store,
            waiter=waiter,
        )

    return _make
