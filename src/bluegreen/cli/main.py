"""
bluegreen CLI — command-line interface for blue/green releases.

Usage:
    bluegreen release --config bluegreen.yaml --build-id 42
    bluegreen release --dry-run --build-id 1
    bluegreen resolve --build-id 42
    bluegreen status
    bluegreen render green
    bluegreen version
"""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from bluegreen import __version__
from bluegreen.config import ReleaseConfig, build_id_from_env
from bluegreen.delivery.blue_green import Color, slot_name
from bluegreen.delivery.gates import AutoApproveGate, ConfirmationGate, PromptGate
from bluegreen.delivery.manifests import ManifestStore, render_manifest
from bluegreen.delivery.orchestrator import ReleaseOrchestrator
from bluegreen.delivery.publisher import DockerCLI, ImageBuilder
from bluegreen.delivery.resolver import ColorResolver
from bluegreen.errors import BlueGreenError, ReleaseError
from bluegreen.k8s import InMemoryControlPlane, KubernetesControlPlane
from bluegreen.k8s.resources import ControlPlane

logger = logging.getLogger(__name__)


class _DryRunBuilder(ImageBuilder):
    """Pretends to build; logs the tags instead."""

    def build(self, context, tags, dockerfile="Dockerfile"):
        logger.info("[dry-run] would build %s from %s", ", ".join(tags), context)


def _control_plane(config: ReleaseConfig, dry_run: bool = False) -> ControlPlane:
    if dry_run:
        return InMemoryControlPlane()
    return KubernetesControlPlane.from_config(
        namespace=config.namespace,
        context=config.kube_context,
        in_cluster=config.in_cluster,
    )


def _load_config(path: str) -> ReleaseConfig:
    return ReleaseConfig.from_yaml(path)


def _build_id(parsed: argparse.Namespace) -> int:
    build_id = parsed.build_id if parsed.build_id is not None else build_id_from_env()
    if build_id is None:
        raise ValueError("a build id is required (--build-id or BUILD_NUMBER)")
    if build_id < 1:
        raise ValueError(f"build id must be >= 1, got {build_id}")
    return build_id


def _release(parsed: argparse.Namespace, config: ReleaseConfig) -> int:
    build_id = _build_id(parsed)
    if parsed.no_push:
        config = config.model_copy(update={"push": False})
    plane = _control_plane(config, dry_run=parsed.dry_run)

    builder: ImageBuilder
    if parsed.dry_run:
        builder, registry = _DryRunBuilder(), None
    else:
        docker = DockerCLI()
        builder, registry = docker, docker
    gate: ConfirmationGate = AutoApproveGate() if (parsed.yes or parsed.dry_run) else PromptGate()

    orchestrator = ReleaseOrchestrator.from_config(
        config, plane, gate, builder=builder, registry=registry
    )
    try:
        report = orchestrator.run(build_id)
    except ReleaseError as exc:
        print(f"release failed at {exc.stage}: {exc.reason}", file=sys.stderr)
        return 1

    print(json.dumps(report.to_dict(), indent=2))
    if parsed.dry_run and isinstance(plane, InMemoryControlPlane):
        print("dry-run control-plane calls:")
        for call in plane.calls:
            print("  " + " ".join(str(part) for part in call))
    return 0


def _resolve(parsed: argparse.Namespace, config: ReleaseConfig) -> int:
    build_id = _build_id(parsed)
    resolver = ColorResolver(
        _control_plane(config), config.app_name, config.service_name,
        config.color_label, config.resolution_mode,
    )
    res = resolver.resolve(build_id)
    print(json.dumps({
        "target_color": res.target_color.value,
        "target_deployment_name": res.target_deployment_name,
        "other_deployment_name": res.other_deployment_name,
        "rule": res.rule,
        "source": res.source,
        "ambiguous": res.ambiguous,
    }, indent=2))
    return 0


def _status(parsed: argparse.Namespace, config: ReleaseConfig) -> int:
    plane = _control_plane(config)
    service = plane.get_service(config.service_name)
    status: Dict[str, Any] = {
        "service": service.to_dict() if service else None,
        "active_color": service.selector_color(config.color_label) if service else None,
        "slots": {},
    }
    for color in Color:
        dep = plane.get_deployment(slot_name(config.app_name, color))
        status["slots"][color.value] = dep.to_dict() if dep else None
    print(json.dumps(status, indent=2))
    return 0


def _render(parsed: argparse.Namespace, config: ReleaseConfig) -> int:
    store = ManifestStore.from_files(
        config.deployment_template, config.service_template, config.color_label
    )
    color = Color(parsed.color)
    if parsed.service:
        doc = store.service(color)
    else:
        doc = store.deployment_for(color, slot_name(config.app_name, color))
    sys.stdout.write(render_manifest(doc))
    return 0


def cli(args: Optional[List[str]] = None) -> int:
    """Main CLI entry point. Returns exit code."""
    parser = argparse.ArgumentParser(
        prog="bluegreen",
        description="Zero-downtime blue/green releases on Kubernetes",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command")

    def _with_config(p: argparse.ArgumentParser) -> None:
        p.add_argument("-c", "--config", default="bluegreen.yaml", help="Release config file")

    release_parser = subparsers.add_parser("release", help="Run a full blue/green release")
    _with_config(release_parser)
    release_parser.add_argument("--build-id", type=int, help="Build number (default: $BUILD_NUMBER)")
    release_parser.add_argument("-y", "--yes", action="store_true", help="Approve the switch without asking")
    release_parser.add_argument("--dry-run", action="store_true", help="Simulate against an in-memory cluster")
    release_parser.add_argument("--no-push", action="store_true", help="Build but do not push")

    resolve_parser = subparsers.add_parser("resolve", help="Show which slot the next release targets")
    _with_config(resolve_parser)
    resolve_parser.add_argument("--build-id", type=int, help="Build number (default: $BUILD_NUMBER)")

    status_parser = subparsers.add_parser("status", help="Show service selector and slot status")
    _with_config(status_parser)

    render_parser = subparsers.add_parser("render", help="Print a slot's derived manifest")
    _with_config(render_parser)
    render_parser.add_argument("color", choices=[c.value for c in Color])
    render_parser.add_argument("--service", action="store_true", help="Render the service instead")

    subparsers.add_parser("version", help="Show version")

    parsed = parser.parse_args(args)

    logging.basicConfig(
        level=logging.DEBUG if parsed.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if parsed.command == "version":
        print(f"bluegreen {__version__}")
        return 0

    handlers = {
        "release": _release,
        "resolve": _resolve,
        "status": _status,
        "render": _render,
    }
    handler = handlers.get(parsed.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        config = _load_config(parsed.config)
    except (OSError, yaml.YAMLError, ValidationError, ValueError) as exc:
        print(f"cannot load config {parsed.config}: {exc}", file=sys.stderr)
        return 1

    try:
        return handler(parsed, config)
    except (BlueGreenError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


def main() -> None:
    sys.exit(cli())


if __name__ == "__main__":
    main()
