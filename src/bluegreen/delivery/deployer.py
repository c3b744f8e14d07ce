"""Slot deployment — materialize the target slot and bind the new image."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from bluegreen.delivery.blue_green import Color, Release, slot_name
from bluegreen.delivery.manifests import ManifestStore
from bluegreen.errors import ApplyError, ControlPlaneError, ImageBindError, ManifestError
from bluegreen.k8s.resources import ControlPlane

logger = logging.getLogger(__name__)


@dataclass
class DeployOutcome:
    deployment: str
    action: str  # created | configured
    bootstrap: bool
    image: str


class SlotDeployer:
    """Applies the target slot's manifest and sets its container image.

    Re-running with the same release is safe: apply and image binding are
    both idempotent on the control plane.
    """

    def __init__(
        self,
        control_plane: ControlPlane,
        manifests: ManifestStore,
        container_name: str,
    ) -> None:
        self.control_plane = control_plane
        self.manifests = manifests
        self.container_name = container_name

    def deploy(self, release: Release) -> DeployOutcome:
        """Deploy ``release.image_reference`` into the target slot.

        Raises:
            ManifestError: The slot manifest could not be derived.
            ApplyError: The control plane rejected a manifest.
            ImageBindError: The image could not be set on the deployment.
        """
        if not release.image_reference:
            raise ImageBindError("release has no image reference to deploy")
        expected_blue = slot_name(release.app_name, Color.BLUE)
        if self.manifests.blue_name != expected_blue:
            raise ManifestError(
                f"deployment template is named {self.manifests.blue_name!r}, "
                f"expected {expected_blue!r}"
            )

        bootstrap = release.target_color == Color.BLUE and not self._exists(
            release.target_deployment_name
        )
        if bootstrap:
            logger.info("No %s yet, applying canonical blue and service manifests",
                        release.target_deployment_name)
            action = self._apply(self.manifests.blue_deployment())
            # Create-if-absent: an existing service may already route to green.
            if not self._service_exists():
                self._apply(self.manifests.service(Color.BLUE))
        else:
            doc = self.manifests.deployment_for(release.target_color, release.target_deployment_name)
            action = self._apply(doc)

        try:
            self.control_plane.set_image(
                release.target_deployment_name, self.container_name, release.image_reference
            )
        except ControlPlaneError as exc:
            raise ImageBindError(
                f"cannot set {self.container_name}={release.image_reference} "
                f"on {release.target_deployment_name}: {exc}"
            ) from exc
        logger.info("Bound %s to %s/%s", release.image_reference,
                    release.target_deployment_name, self.container_name)
        return DeployOutcome(
            deployment=release.target_deployment_name,
            action=action,
            bootstrap=bootstrap,
            image=release.image_reference,
        )

    def _exists(self, name: str) -> bool:
        try:
            return self.control_plane.get_deployment(name) is not None
        except ControlPlaneError as exc:
            raise ApplyError(f"cannot read deployment {name}: {exc}") from exc

    def _service_exists(self) -> bool:
        name = self.manifests.service_name
        try:
            return self.control_plane.get_service(name) is not None
        except ControlPlaneError as exc:
            raise ApplyError(f"cannot read service {name}: {exc}") from exc

    def _apply(self, doc: dict) -> str:
        kind = doc.get("kind")
        name = doc["metadata"]["name"]
        try:
            action = self.control_plane.apply_manifest(doc)
        except ControlPlaneError as exc:
            raise ApplyError(f"{kind}/{name} rejected: {exc}") from exc
        logger.info("%s/%s %s", kind, name, action)
        return action
