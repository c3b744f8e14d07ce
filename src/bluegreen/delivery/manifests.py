"""Slot manifests — the canonical blue Deployment and the shared Service.

Only the blue Deployment is authored by hand. Every other slot is derived
from it by a typed transform over the parsed document: the deployment name
is renamed and the color label is relabelled. Derivation is pure, so
rendering the same input twice yields byte-identical YAML.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import yaml

from bluegreen.delivery.blue_green import Color
from bluegreen.errors import ManifestError


def load_manifest(path: str | Path) -> dict[str, Any]:
    """Load a single-document YAML manifest."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            doc = yaml.safe_load(f)
    except OSError as exc:
        raise ManifestError(f"cannot read manifest {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ManifestError(f"invalid YAML in {path}: {exc}") from exc
    if not isinstance(doc, dict):
        raise ManifestError(f"manifest {path} is not a mapping")
    return doc


def render_manifest(doc: dict[str, Any]) -> str:
    """Serialize a manifest deterministically."""
    return yaml.safe_dump(doc, default_flow_style=False, sort_keys=False)


def _require_kind(doc: dict[str, Any], kind: str) -> str:
    if doc.get("kind") != kind:
        raise ManifestError(f"expected a {kind} manifest, got {doc.get('kind')!r}")
    name = (doc.get("metadata") or {}).get("name")
    if not name:
        raise ManifestError(f"{kind} manifest has no metadata.name")
    return name


def derive_slot_manifest(
    blue: dict[str, Any],
    source_name: str,
    target_name: str,
    target_color: Color,
    color_label: str = "color",
) -> dict[str, Any]:
    """Derive the ``target_color`` slot's Deployment from the blue one.

    Every string equal to ``source_name`` becomes ``target_name`` and every
    ``color_label: blue`` mapping entry becomes ``color_label: <target>``.
    Keys are never rewritten.

    Raises:
        ManifestError: If the template is not a Deployment named
            ``source_name`` or carries no blue color label.
    """
    name = _require_kind(blue, "Deployment")
    if name != source_name:
        raise ManifestError(
            f"deployment template is named {name!r}, expected {source_name!r}"
        )

    relabelled = 0

    def _walk(node: Any) -> Any:
        nonlocal relabelled
        if isinstance(node, dict):
            out = {}
            for key, value in node.items():
                if key == color_label and value == Color.BLUE.value:
                    out[key] = target_color.value
                    relabelled += 1
                else:
                    out[key] = _walk(value)
            return out
        if isinstance(node, list):
            return [_walk(item) for item in node]
        if node == source_name:
            return target_name
        return node

    derived = _walk(copy.deepcopy(blue))
    if relabelled == 0:
        raise ManifestError(
            f"deployment template {name!r} has no '{color_label}: blue' label to relabel"
        )
    return derived


class ManifestStore:
    """Static templates for the two slots and the shared service."""

    def __init__(
        self,
        deployment: dict[str, Any],
        service: dict[str, Any],
        color_label: str = "color",
    ) -> None:
        self._deployment = deployment
        self._service = service
        self.color_label = color_label
        self.blue_name = _require_kind(deployment, "Deployment")
        self.service_name = _require_kind(service, "Service")

    @classmethod
    def from_files(
        cls,
        deployment_path: str | Path,
        service_path: str | Path,
        color_label: str = "color",
    ) -> ManifestStore:
        return cls(load_manifest(deployment_path), load_manifest(service_path), color_label)

    def blue_deployment(self) -> dict[str, Any]:
        """The canonical blue Deployment, as authored."""
        return copy.deepcopy(self._deployment)

    def deployment_for(self, color: Color, target_name: str) -> dict[str, Any]:
        """The Deployment for ``color``, named ``target_name``."""
        return derive_slot_manifest(
            self._deployment, self.blue_name, target_name, color, self.color_label
        )

    def service(self, selector_color: Color) -> dict[str, Any]:
        """The Service with its selector pinned to ``selector_color``."""
        doc = copy.deepcopy(self._service)
        spec = doc.setdefault("spec", {})
        selector = spec.get("selector")
        if selector is None:
            selector = spec["selector"] = {}
        selector[self.color_label] = selector_color.value
        return doc
