"""Error taxonomy for blue/green releases.

Every fatal error carries the release stage it aborted so the CLI (or any
caller) can report where a run stopped. Nothing here triggers an undo:
recovery is always a subsequent release.
"""

from __future__ import annotations


class BlueGreenError(Exception):
    """Base class for all bluegreen errors."""


class ControlPlaneError(BlueGreenError):
    """Raised by control-plane adapters when a cluster call fails."""

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)

    @property
    def not_found(self) -> bool:
        return self.status == 404


class ResolutionAmbiguous(BlueGreenError):
    """A color source could not give a conclusive answer.

    Handled inside the resolver by falling through to the next row of its
    decision table; never fatal to a release.
    """


class ReleaseError(BlueGreenError):
    """A fatal error that aborts the remaining release sequence."""

    stage = "release"

    def __init__(self, message: str, stage: str | None = None) -> None:
        if stage is not None:
            self.stage = stage
        self.reason = message
        super().__init__(message)


class BuildError(ReleaseError):
    """The image builder failed."""

    stage = "publish"


class PublishError(ReleaseError):
    """The registry push failed."""

    stage = "publish"


class ManifestError(ReleaseError):
    """A slot manifest could not be loaded or derived."""

    stage = "deploy"


class ApplyError(ReleaseError):
    """The control plane rejected a manifest."""

    stage = "deploy"


class ImageBindError(ReleaseError):
    """Setting the container image on the target deployment failed."""

    stage = "deploy"


class ReadinessTimeout(ReleaseError):
    """The target deployment did not become ready in time."""

    stage = "readiness"


TimedOut = ReadinessTimeout


class SwitchError(ReleaseError):
    """The traffic switch failed after confirmation."""

    stage = "switch"


class SwitchTimeout(SwitchError):
    """No confirmation arrived within the window."""


class SwitchRejected(SwitchError):
    """The operator rejected the switch."""
