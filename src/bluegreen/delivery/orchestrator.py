"""Release orchestration.

Sequences resolve → publish → deploy → readiness → switch for one build.
Stages never re-enter an earlier one, and any stage failure aborts the rest
of the run without undoing what already happened: a half-deployed slot is
left in place for inspection and the next release starts from it.

At most one release may run against an application at a time. Resolution
reads live cluster state, so two concurrent runs could pick the same
target and collide.
"""

from __future__ import annotations

import logging
from typing import Any

from bluegreen.config import ReleaseConfig
from bluegreen.delivery.blue_green import (
    Color,
    Release,
    ReleaseEvent,
    ReleaseReport,
    ReleaseState,
    can_transition,
)
from bluegreen.delivery.deployer import SlotDeployer
from bluegreen.delivery.gates import ConfirmationGate
from bluegreen.delivery.manifests import ManifestStore
from bluegreen.delivery.publisher import ArtifactPublisher, ImageBuilder, ImageRegistry
from bluegreen.delivery.readiness import ReadinessWaiter
from bluegreen.delivery.resolver import ColorResolver
from bluegreen.delivery.switcher import TrafficSwitcher
from bluegreen.errors import BlueGreenError, ReadinessTimeout, ReleaseError
from bluegreen.k8s.resources import ControlPlane

logger = logging.getLogger(__name__)


class ReleaseOrchestrator:
    """Runs a blue/green release end to end."""

    def __init__(
        self,
        resolver: ColorResolver,
        publisher: ArtifactPublisher,
        deployer: SlotDeployer,
        waiter: ReadinessWaiter,
        switcher: TrafficSwitcher,
        app_name: str,
        readiness_timeout_seconds: float = 300.0,
    ) -> None:
        self.resolver = resolver
        self.publisher = publisher
        self.deployer = deployer
        self.waiter = waiter
        self.switcher = switcher
        self.app_name = app_name
        self.readiness_timeout_seconds = readiness_timeout_seconds
        self.state = ReleaseState.PENDING
        self.events: list[ReleaseEvent] = []
        self.report = ReleaseReport()

    @classmethod
    def from_config(
        cls,
        config: ReleaseConfig,
        control_plane: ControlPlane,
        gate: ConfirmationGate,
        builder: ImageBuilder,
        registry: ImageRegistry | None = None,
        manifests: ManifestStore | None = None,
        waiter: ReadinessWaiter | None = None,
    ) -> ReleaseOrchestrator:
        """Wire every stage from a release config."""
        if manifests is None:
            manifests = ManifestStore.from_files(
                config.deployment_template, config.service_template, config.color_label
            )
        return cls(
            resolver=ColorResolver(
                control_plane, config.app_name, config.service_name,
                config.color_label, config.resolution_mode,
            ),
            publisher=ArtifactPublisher(
                builder, config.image_repository, registry=registry,
                build_context=config.build_context, dockerfile=config.dockerfile,
                push=config.push,
            ),
            deployer=SlotDeployer(control_plane, manifests, config.container_name),
            waiter=waiter or ReadinessWaiter(control_plane, config.poll_interval_seconds),
            switcher=TrafficSwitcher(
                control_plane, manifests, gate, config.service_name,
                config.color_label, config.confirmation_timeout_seconds,
            ),
            app_name=config.app_name,
            readiness_timeout_seconds=config.readiness_timeout_seconds,
        )

    def _emit(self, event_type: str, color: Color | None, details: dict[str, Any] | None = None) -> None:
        event = ReleaseEvent(event_type, color, details)
        self.events.append(event)
        logger.debug("release event: %s", event.to_dict())

    def _advance(self, target: ReleaseState, release: Release | None) -> None:
        if not can_transition(self.state, target):
            raise RuntimeError(f"Cannot move release from {self.state.value} to {target.value}")
        self.state = target
        self.report.state = target
        self.report.release = release
        self._emit(target.value, release.target_color if release else None)

    def run(self, build_id: int) -> ReleaseReport:
        """Ship ``build_id``.

        Returns:
            The report of the completed release.

        Raises:
            ReleaseError: The stage that failed, with ``stage`` set. The
                report on ``self.report`` is marked failed first.
        """
        if self.state != ReleaseState.PENDING:
            raise RuntimeError("An orchestrator runs exactly one release")

        logger.info("Starting release of %s build %d", self.app_name, build_id)
        release: Release | None = None
        stage = "resolve"
        try:
            resolution = self.resolver.resolve(build_id)
            release = resolution.to_release(build_id, self.app_name)
            self.report.resolution_source = resolution.source
            self._advance(ReleaseState.RESOLVED, release)

            stage = "publish"
            release = release.with_image(self.publisher.publish(release))
            self._advance(ReleaseState.PUBLISHED, release)

            stage = "deploy"
            outcome = self.deployer.deploy(release)
            self._advance(ReleaseState.DEPLOYED, release)
            self._emit("slot_applied", release.target_color,
                       {"deployment": outcome.deployment, "action": outcome.action,
                        "bootstrap": outcome.bootstrap})

            stage = "readiness"
            result = self.waiter.wait(release.target_deployment_name, self.readiness_timeout_seconds)
            if not result.ready:
                raise ReadinessTimeout(result.message or f"{release.target_deployment_name} not ready")
            self._advance(ReleaseState.READY, release)

            stage = "switch"
            switched = self.switcher.switch(release)
            self.report.switched = switched.switched
            self.report.deleted_previous = switched.deleted_previous
            self._advance(ReleaseState.SWITCHED, release)
        except ReleaseError as exc:
            self._fail(release, exc)
            raise
        except BlueGreenError as exc:
            err = ReleaseError(str(exc), stage=stage)
            self._fail(release, err)
            raise err from exc

        self._advance(ReleaseState.COMPLETE, release)
        self.report.events = [e.to_dict() for e in self.events]
        logger.info("Release %d complete: %s selects %s", build_id,
                    self.switcher.service_name, switched.selector_color)
        return self.report

    def _fail(self, release: Release | None, exc: ReleaseError) -> None:
        self.state = ReleaseState.FAILED
        self.report.state = ReleaseState.FAILED
        self.report.release = release
        self.report.failed_stage = exc.stage
        self.report.error = exc.reason
        self._emit("failed", release.target_color if release else None,
                   {"stage": exc.stage, "reason": exc.reason})
        self.report.events = [e.to_dict() for e in self.events]
        logger.error("Release failed at %s: %s", exc.stage, exc.reason)
