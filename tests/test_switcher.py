"""Tests for the confirmation-gated traffic switch."""

from __future__ import annotations

import pytest

from bluegreen.delivery.blue_green import Color, Release
from bluegreen.delivery.gates import (
    AutoApproveGate,
    ConfirmationGate,
    GateDecision,
)
from bluegreen.delivery.switcher import DEFAULT_CONFIRMATION_TIMEOUT_SECONDS, TrafficSwitcher
from bluegreen.errors import ControlPlaneError, SwitchError, SwitchRejected, SwitchTimeout


class FixedGate(ConfirmationGate):
    def __init__(self, decision: GateDecision) -> None:
        self.decision = decision
        self.asked: list[tuple[Release, float]] = []

    def wait_for_confirmation(self, release, timeout_seconds):
        self.asked.append((release, timeout_seconds))
        return self.decision


def _green(build_id: int = 2) -> Release:
    return Release.for_target(build_id, "myapp", Color.GREEN).with_image("myapp:green-2")


@pytest.fixture()
def live(plane):
    """Blue serving, green rolled out and waiting for traffic."""
    plane.add_service("myapp", {"app": "myapp", "color": "blue"})
    plane.add_deployment("myapp-blue", {"color": "blue"}, replicas=2)
    plane.add_deployment("myapp-green", {"color": "green"}, replicas=2)
    return plane


def _switcher(plane, store, gate) -> TrafficSwitcher:
    return TrafficSwitcher(plane, store, gate, service_name="myapp")


class TestSwitch:
    def test_patches_selector_then_deletes_old_slot(self, live, store) -> None:
        outcome = _switcher(live, store, AutoApproveGate()).switch(_green())
        assert outcome.switched is True
        assert outcome.selector_color == "green"
        assert outcome.deleted_previous is True
        assert live.get_service("myapp").selector == {"app": "myapp", "color": "green"}
        assert live.get_deployment("myapp-blue") is None

    def test_selector_patch_precedes_delete(self, live, store) -> None:
        _switcher(live, store, AutoApproveGate()).switch(_green())
        ops = live.operations("apply", "patch_service_selector", "delete_deployment")
        assert ops == ["apply", "patch_service_selector", "delete_deployment"]

    def test_reapplied_service_keeps_current_color(self, live, store) -> None:
        gate = FixedGate(GateDecision.APPROVED)

        def check(release, timeout):
            # Service must still point at blue while waiting for the operator.
            assert live.get_service("myapp").selector["color"] == "blue"
            return GateDecision.APPROVED

        gate.wait_for_confirmation = check
        _switcher(live, store, gate).switch(_green())

    def test_reapply_follows_live_selector(self, plane, store) -> None:
        # Green already serves and is redeployed in place.
        plane.add_service("myapp", {"app": "myapp", "color": "green"})
        seen = []

        def check(release, timeout):
            seen.append(plane.get_service("myapp").selector["color"])
            return GateDecision.REJECTED

        gate = FixedGate(GateDecision.REJECTED)
        gate.wait_for_confirmation = check
        with pytest.raises(SwitchRejected):
            _switcher(plane, store, gate).switch(_green(3))
        assert seen == ["green"]

    def test_missing_service_is_created_on_serving_color(self, plane, store) -> None:
        plane.add_deployment("myapp-blue", {"color": "blue"}, replicas=2)
        with pytest.raises(SwitchTimeout):
            _switcher(plane, store, FixedGate(GateDecision.TIMED_OUT)).switch(_green())
        assert plane.get_service("myapp").selector["color"] == "blue"

    def test_old_slot_already_gone(self, plane, store) -> None:
        plane.add_service("myapp", {"color": "blue"})
        outcome = _switcher(plane, store, AutoApproveGate()).switch(_green())
        assert outcome.switched is True
        assert outcome.deleted_previous is False

    def test_default_window_is_fifteen_minutes(self, live, store) -> None:
        gate = FixedGate(GateDecision.APPROVED)
        _switcher(live, store, gate).switch(_green())
        assert gate.asked[0][1] == DEFAULT_CONFIRMATION_TIMEOUT_SECONDS == 900


class TestBootstrapSwitch:
    def test_no_confirmation_no_patch(self, plane, store) -> None:
        gate = FixedGate(GateDecision.REJECTED)
        release = Release.for_target(1, "myapp", Color.BLUE).with_image("myapp:blue-1")
        outcome = _switcher(plane, store, gate).switch(release)
        assert outcome.switched is False
        assert outcome.selector_color == "blue"
        assert gate.asked == []
        assert plane.operations("patch_service_selector", "delete_deployment") == []
        assert plane.get_service("myapp").selector["color"] == "blue"


class TestSwitchNotConfirmed:
    @pytest.mark.parametrize(
        "decision, error",
        [(GateDecision.TIMED_OUT, SwitchTimeout), (GateDecision.REJECTED, SwitchRejected)],
    )
    def test_previous_slot_stays_authoritative(self, live, store, decision, error) -> None:
        with pytest.raises(error) as exc_info:
            _switcher(live, store, FixedGate(decision)).switch(_green())
        assert exc_info.value.stage == "switch"
        assert live.get_service("myapp").selector["color"] == "blue"
        assert live.get_deployment("myapp-green") is not None
        assert live.get_deployment("myapp-blue") is not None
        assert live.operations("patch_service_selector", "delete_deployment") == []


class TestSwitchErrors:
    def test_patch_failure_keeps_old_slot(self, live, store) -> None:
        live.fail("patch_service_selector", ControlPlaneError("conflict", status=409))
        with pytest.raises(SwitchError, match="conflict"):
            _switcher(live, store, AutoApproveGate()).switch(_green())
        assert live.operations("delete_deployment") == []

    def test_delete_failure(self, live, store) -> None:
        live.fail("delete_deployment", ControlPlaneError("forbidden", status=403))
        with pytest.raises(SwitchError, match="traffic switched"):
            _switcher(live, store, AutoApproveGate()).switch(_green())
        assert live.get_service("myapp").selector["color"] == "green"

    def test_service_read_failure(self, live, store) -> None:
        live.fail("get_service", ControlPlaneError("forbidden", status=403))
        with pytest.raises(SwitchError, match="cannot read service"):
            _switcher(live, store, AutoApproveGate()).switch(_green())
        assert live.operations("apply", "patch_service_selector") == []
