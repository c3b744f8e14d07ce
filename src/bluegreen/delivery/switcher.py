"""Traffic switch — repoint the shared service, then reclaim the old slot."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from bluegreen.delivery.blue_green import Color, Release
from bluegreen.delivery.gates import ConfirmationGate, GateDecision
from bluegreen.delivery.manifests import ManifestStore
from bluegreen.errors import ControlPlaneError, SwitchError, SwitchRejected, SwitchTimeout
from bluegreen.k8s.resources import ControlPlane

logger = logging.getLogger(__name__)

DEFAULT_CONFIRMATION_TIMEOUT_SECONDS = 15 * 60


@dataclass
class SwitchOutcome:
    switched: bool
    selector_color: str
    deleted_previous: bool = False
    decision: GateDecision | None = None


class TrafficSwitcher:
    """Gates on confirmation, patches the selector, deletes the old slot.

    The selector patch always happens before the delete, so traffic never
    points at a deployment that is going away.
    """

    def __init__(
        self,
        control_plane: ControlPlane,
        manifests: ManifestStore,
        gate: ConfirmationGate,
        service_name: str,
        color_label: str = "color",
        confirmation_timeout_seconds: float = DEFAULT_CONFIRMATION_TIMEOUT_SECONDS,
    ) -> None:
        self.control_plane = control_plane
        self.manifests = manifests
        self.gate = gate
        self.service_name = service_name
        self.color_label = color_label
        self.confirmation_timeout_seconds = confirmation_timeout_seconds

    def switch(self, release: Release) -> SwitchOutcome:
        """Move traffic to ``release.target_color``.

        Raises:
            SwitchTimeout: No confirmation within the window.
            SwitchRejected: The operator declined.
            SwitchError: A control-plane call failed.
        """
        # Reapplying the service keeps it pointed at whatever serves today.
        serving = self._serving_color(release)
        try:
            self.control_plane.apply_manifest(self.manifests.service(serving))
        except ControlPlaneError as exc:
            raise SwitchError(f"cannot apply service {self.service_name}: {exc}") from exc

        if release.is_bootstrap:
            logger.info("Bootstrap release: %s is the only slot, nothing to switch",
                        release.target_deployment_name)
            return SwitchOutcome(switched=False, selector_color=serving.value)

        logger.info("Waiting up to %.0fs for confirmation to switch %s to %s",
                    self.confirmation_timeout_seconds, self.service_name,
                    release.target_color.value)
        decision = self.gate.wait_for_confirmation(release, self.confirmation_timeout_seconds)
        if decision == GateDecision.TIMED_OUT:
            raise SwitchTimeout(
                f"no confirmation within {self.confirmation_timeout_seconds:.0f}s; "
                f"{release.other_color.value} stays active"
            )
        if decision == GateDecision.REJECTED:
            logger.warning("Switch to %s rejected", release.target_color.value)
            raise SwitchRejected(
                f"switch to {release.target_color.value} rejected; "
                f"{release.other_color.value} stays active"
            )

        try:
            self.control_plane.patch_service_selector(
                self.service_name, self.color_label, release.target_color.value
            )
        except ControlPlaneError as exc:
            raise SwitchError(f"cannot patch selector of {self.service_name}: {exc}") from exc
        logger.info("Service %s now selects %s=%s", self.service_name,
                    self.color_label, release.target_color.value)

        try:
            deleted = self.control_plane.delete_deployment(release.other_deployment_name)
        except ControlPlaneError as exc:
            raise SwitchError(
                f"traffic switched but {release.other_deployment_name} not deleted: {exc}"
            ) from exc
        if deleted:
            logger.info("Deleted %s", release.other_deployment_name)
        else:
            logger.info("%s already absent", release.other_deployment_name)

        return SwitchOutcome(
            switched=True,
            selector_color=release.target_color.value,
            deleted_previous=deleted,
            decision=decision,
        )

    def _serving_color(self, release: Release) -> Color:
        if release.is_bootstrap:
            return release.target_color
        try:
            svc = self.control_plane.get_service(self.service_name)
        except ControlPlaneError as exc:
            raise SwitchError(f"cannot read service {self.service_name}: {exc}") from exc
        value = svc.selector_color(self.color_label) if svc is not None else None
        if value in (Color.BLUE.value, Color.GREEN.value):
            return Color(value)
        return release.other_color
