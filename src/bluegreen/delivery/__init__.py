"""Blue/green delivery — resolve, publish, deploy, verify, switch."""

from bluegreen.delivery.blue_green import (
    Color,
    Release,
    ReleaseEvent,
    ReleaseReport,
    ReleaseState,
    slot_name,
)
from bluegreen.delivery.deployer import DeployOutcome, SlotDeployer
from bluegreen.delivery.gates import (
    AutoApproveGate,
    CallbackGate,
    ConfirmationGate,
    GateDecision,
    PromptGate,
)
from bluegreen.delivery.manifests import (
    ManifestStore,
    derive_slot_manifest,
    load_manifest,
    render_manifest,
)
from bluegreen.delivery.orchestrator import ReleaseOrchestrator
from bluegreen.delivery.publisher import ArtifactPublisher, DockerCLI, ImageBuilder, ImageRegistry
from bluegreen.delivery.readiness import ReadinessOutcome, ReadinessResult, ReadinessWaiter
from bluegreen.delivery.resolver import ColorResolver, Resolution
from bluegreen.delivery.switcher import SwitchOutcome, TrafficSwitcher

__all__ = [
    "ArtifactPublisher",
    "AutoApproveGate",
    "CallbackGate",
    "Color",
    "ColorResolver",
    "ConfirmationGate",
    "DeployOutcome",
    "DockerCLI",
    "GateDecision",
    "ImageBuilder",
    "ImageRegistry",
    "ManifestStore",
    "PromptGate",
    "ReadinessOutcome",
    "ReadinessResult",
    "ReadinessWaiter",
    "Release",
    "ReleaseEvent",
    "ReleaseOrchestrator",
    "ReleaseReport",
    "ReleaseState",
    "Resolution",
    "SlotDeployer",
    "SwitchOutcome",
    "TrafficSwitcher",
    "derive_slot_manifest",
    "load_manifest",
    "render_manifest",
    "slot_name",
]
