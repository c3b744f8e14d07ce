"""Rollout readiness — block until the target slot is fully available."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from bluegreen.k8s.resources import ControlPlane, DeploymentStatus

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class ReadinessOutcome(Enum):
    READY = "ready"
    TIMED_OUT = "timed_out"


@dataclass
class ReadinessResult:
    outcome: ReadinessOutcome
    deployment: str
    polls: int
    elapsed_seconds: float
    message: str = ""
    last_status: DeploymentStatus | None = None

    @property
    def ready(self) -> bool:
        return self.outcome == ReadinessOutcome.READY


class ReadinessWaiter:
    """Polls a deployment until every desired replica is updated and available.

    A ``ProgressDeadlineExceeded`` condition ends the wait early as timed
    out. A deployment that does not exist yet counts as not ready. Control
    plane errors propagate to the caller.
    """

    def __init__(
        self,
        control_plane: ControlPlane,
        poll_interval_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.control_plane = control_plane
        self.poll_interval_seconds = poll_interval_seconds
        self._clock = clock
        self._sleep = sleep

    def wait(self, deployment: str, timeout_seconds: float) -> ReadinessResult:
        start = self._clock()
        deadline = start + timeout_seconds
        polls = 0
        status: DeploymentStatus | None = None

        while True:
            polls += 1
            status = self.control_plane.get_deployment(deployment)
            elapsed = self._clock() - start

            if status is not None and status.rolled_out:
                logger.info("Deployment %s ready: %d/%d replicas after %.1fs",
                            deployment, status.available_replicas, status.desired_replicas, elapsed)
                return ReadinessResult(ReadinessOutcome.READY, deployment, polls, elapsed,
                                       last_status=status)

            if status is not None and status.progress_deadline_exceeded:
                msg = f"deployment {deployment} exceeded its progress deadline"
                logger.error(msg)
                return ReadinessResult(ReadinessOutcome.TIMED_OUT, deployment, polls, elapsed,
                                       message=msg, last_status=status)

            if status is None:
                logger.info("Deployment %s not found yet", deployment)
            else:
                logger.info("Waiting for %s: %d/%d updated, %d/%d available",
                            deployment, status.updated_replicas, status.desired_replicas,
                            status.available_replicas, status.desired_replicas)

            now = self._clock()
            if now >= deadline:
                msg = f"deployment {deployment} not ready after {timeout_seconds:.0f}s"
                logger.error(msg)
                return ReadinessResult(ReadinessOutcome.TIMED_OUT, deployment, polls, now - start,
                                       message=msg, last_status=status)
            self._sleep(min(self.poll_interval_seconds, deadline - now))
