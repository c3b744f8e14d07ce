"""Tests for rollout readiness polling."""

from __future__ import annotations

import pytest

from bluegreen.delivery.readiness import ReadinessOutcome, ReadinessWaiter
from bluegreen.errors import ControlPlaneError
from bluegreen.k8s import InMemoryControlPlane


def _deployment(name: str = "myapp-green", replicas: int = 2) -> dict:
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": name, "labels": {"color": "green"}},
        "spec": {
            "replicas": replicas,
            "template": {"spec": {"containers": [{"name": "myapp", "image": "myapp:1"}]}},
        },
    }


def _waiter(plane, clock, interval: float = 5.0) -> ReadinessWaiter:
    return ReadinessWaiter(plane, interval, clock=clock, sleep=clock.sleep)


class TestReady:
    def test_ready_on_first_poll(self, plane, clock) -> None:
        plane.apply_manifest(_deployment())
        result = _waiter(plane, clock).wait("myapp-green", 60)
        assert result.outcome == ReadinessOutcome.READY
        assert result.ready
        assert result.polls == 1
        assert clock.sleeps == []

    def test_waits_for_rollout(self, clock) -> None:
        plane = InMemoryControlPlane(polls_until_ready=3)
        plane.apply_manifest(_deployment())
        result = _waiter(plane, clock).wait("myapp-green", 60)
        assert result.ready
        assert result.polls == 4
        assert clock.sleeps == [5.0, 5.0, 5.0]
        assert result.last_status.available_replicas == 2

    def test_deployment_appearing_late(self, plane, clock) -> None:
        calls = {"n": 0}
        real_get = plane.get_deployment

        def get(name):
            calls["n"] += 1
            if calls["n"] == 2:
                plane.apply_manifest(_deployment())
            return real_get(name)

        plane.get_deployment = get
        result = _waiter(plane, clock).wait("myapp-green", 60)
        assert result.ready
        assert result.polls == 2


class TestTimedOut:
    def test_never_ready(self, plane, clock) -> None:
        plane.apply_manifest(_deployment())
        plane.stall("myapp-green")
        result = _waiter(plane, clock).wait("myapp-green", 12)
        assert result.outcome == ReadinessOutcome.TIMED_OUT
        assert not result.ready
        assert "not ready after 12s" in result.message
        # Last sleep is clipped to the deadline.
        assert clock.sleeps == [5.0, 5.0, 2.0]
        assert clock.now == 12

    def test_missing_deployment_times_out(self, plane, clock) -> None:
        result = _waiter(plane, clock).wait("myapp-green", 10)
        assert result.outcome == ReadinessOutcome.TIMED_OUT
        assert result.last_status is None

    def test_progress_deadline_ends_wait_early(self, plane, clock) -> None:
        plane.apply_manifest(_deployment())
        plane.stall("myapp-green", deadline_exceeded=True)
        result = _waiter(plane, clock).wait("myapp-green", 600)
        assert result.outcome == ReadinessOutcome.TIMED_OUT
        assert "progress deadline" in result.message
        assert result.polls == 1

    def test_partial_replicas_are_not_ready(self, plane, clock) -> None:
        plane.add_deployment("myapp-green", {"color": "green"}, replicas=3, ready_replicas=1)
        result = _waiter(plane, clock).wait("myapp-green", 5)
        assert not result.ready


class TestErrors:
    def test_control_plane_error_propagates(self, plane, clock) -> None:
        plane.fail("get_deployment", ControlPlaneError("unauthorized", status=401))
        with pytest.raises(ControlPlaneError):
            _waiter(plane, clock).wait("myapp-green", 60)
