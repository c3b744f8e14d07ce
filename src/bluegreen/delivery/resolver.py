"""Active-slot resolution.

Decides which color a release deploys to. Two sources feed a small
decision table:

* the shared Service's color selector (authoritative when readable), and
* the blue slot's ready-replica count combined with the bootstrap build
  number (the fallback, and the only source in ``blue-replicas`` mode).

| row | selector     | blue ready replicas | build_id | target |
|-----|--------------|---------------------|----------|--------|
| 1   | color ``c``  | not consulted       | any      | not c  |
| 2   | unavailable  | query failed        | 1        | blue   |
| 3   | unavailable  | query failed        | > 1      | green  |
| 4   | unavailable  | > 0                 | any      | green  |
| 5   | unavailable  | 0                   | any      | blue   |

Row 3 presumes blue is active because a previous run deployed it; it never
looks at green. In ``blue-replicas`` mode that also means a healthy blue
slot whose traffic has already moved to green (switched, not yet cleaned
up) resolves to green again. Selector mode does not have that gap.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from bluegreen.config import ResolutionMode
from bluegreen.delivery.blue_green import Color, Release, slot_name
from bluegreen.errors import ControlPlaneError, ResolutionAmbiguous
from bluegreen.k8s.resources import ControlPlane

logger = logging.getLogger(__name__)

BOOTSTRAP_BUILD_ID = 1


@dataclass(frozen=True)
class Resolution:
    """Outcome of color resolution."""

    target_color: Color
    target_deployment_name: str
    other_deployment_name: str
    rule: int
    source: str
    ambiguous: bool = False

    def to_release(self, build_id: int, app_name: str) -> Release:
        return Release(
            build_id=build_id,
            app_name=app_name,
            target_color=self.target_color,
            target_deployment_name=self.target_deployment_name,
            other_deployment_name=self.other_deployment_name,
        )


class ColorResolver:
    """Works out the deploy target from current cluster state."""

    def __init__(
        self,
        control_plane: ControlPlane,
        app_name: str,
        service_name: str | None = None,
        color_label: str = "color",
        mode: ResolutionMode = ResolutionMode.SELECTOR,
    ) -> None:
        self.control_plane = control_plane
        self.app_name = app_name
        self.service_name = service_name or app_name
        self.color_label = color_label
        self.mode = mode

    def resolve(self, build_id: int) -> Resolution:
        """Return the target color and slot names for ``build_id``."""
        ambiguous = False
        if self.mode == ResolutionMode.SELECTOR:
            try:
                active = self._selector_color()
            except ResolutionAmbiguous as exc:
                logger.warning("Service selector inconclusive, falling back: %s", exc)
                ambiguous = True
            else:
                return self._result(active.complement(), rule=1, source="service-selector")

        try:
            ready = self._blue_ready_replicas()
        except ResolutionAmbiguous as exc:
            if build_id == BOOTSTRAP_BUILD_ID:
                logger.info("No blue slot and build %d: bootstrapping blue (%s)", build_id, exc)
                return self._result(Color.BLUE, rule=2, source="bootstrap", ambiguous=True)
            logger.warning(
                "Blue slot unreadable on build %d, presuming blue is active: %s", build_id, exc
            )
            return self._result(Color.GREEN, rule=3, source="blue-presumed-active", ambiguous=True)

        if ready > 0:
            if self.mode == ResolutionMode.BLUE_REPLICAS:
                logger.warning(
                    "Resolved green from blue's %d ready replicas without checking "
                    "the service selector; if green is already serving this "
                    "targets it again", ready,
                )
            return self._result(Color.GREEN, rule=4, source="blue-replicas", ambiguous=ambiguous)
        return self._result(Color.BLUE, rule=5, source="blue-replicas", ambiguous=ambiguous)

    def _selector_color(self) -> Color:
        try:
            svc = self.control_plane.get_service(self.service_name)
        except ControlPlaneError as exc:
            raise ResolutionAmbiguous(f"service {self.service_name}: {exc}") from exc
        if svc is None:
            raise ResolutionAmbiguous(f"service {self.service_name} does not exist")
        value = svc.selector_color(self.color_label)
        try:
            return Color(value)
        except ValueError:
            raise ResolutionAmbiguous(
                f"service {self.service_name} selector {self.color_label}={value!r} is not a slot color"
            ) from None

    def _blue_ready_replicas(self) -> int:
        name = slot_name(self.app_name, Color.BLUE)
        try:
            status = self.control_plane.get_deployment(name)
        except ControlPlaneError as exc:
            raise ResolutionAmbiguous(f"deployment {name}: {exc}") from exc
        if status is None:
            raise ResolutionAmbiguous(f"deployment {name} does not exist")
        return status.ready_replicas

    def _result(self, target: Color, rule: int, source: str, ambiguous: bool = False) -> Resolution:
        resolution = Resolution(
            target_color=target,
            target_deployment_name=slot_name(self.app_name, target),
            other_deployment_name=slot_name(self.app_name, target.complement()),
            rule=rule,
            source=source,
            ambiguous=ambiguous,
        )
        logger.info(
            "Resolved target %s (rule %d, source %s)", target.value, rule, source
        )
        return resolution
