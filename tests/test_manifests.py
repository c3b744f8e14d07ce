"""Tests for slot manifest derivation."""

from __future__ import annotations

from pathlib import Path

import pytest

from bluegreen.delivery.blue_green import Color
from bluegreen.delivery.manifests import (
    ManifestStore,
    derive_slot_manifest,
    load_manifest,
    render_manifest,
)
from bluegreen.errors import ManifestError

MANIFESTS_DIR = Path(__file__).resolve().parent.parent / "manifests"


@pytest.fixture()
def blue() -> dict:
    return load_manifest(MANIFESTS_DIR / "deployment-blue.yaml")


class TestDeriveGreen:
    def test_renames_deployment(self, blue) -> None:
        green = derive_slot_manifest(blue, "myapp-blue", "myapp-green", Color.GREEN)
        assert green["metadata"]["name"] == "myapp-green"

    def test_relabels_every_color_label(self, blue) -> None:
        green = derive_slot_manifest(blue, "myapp-blue", "myapp-green", Color.GREEN)
        assert green["metadata"]["labels"]["color"] == "green"
        assert green["spec"]["selector"]["matchLabels"]["color"] == "green"
        assert green["spec"]["template"]["metadata"]["labels"]["color"] == "green"

    def test_leaves_other_fields_alone(self, blue) -> None:
        green = derive_slot_manifest(blue, "myapp-blue", "myapp-green", Color.GREEN)
        assert green["metadata"]["labels"]["app"] == "myapp"
        assert green["spec"]["replicas"] == blue["spec"]["replicas"]
        assert green["spec"]["template"]["spec"]["containers"][0]["name"] == "myapp"

    def test_does_not_mutate_input(self, blue) -> None:
        derive_slot_manifest(blue, "myapp-blue", "myapp-green", Color.GREEN)
        assert blue["metadata"]["name"] == "myapp-blue"
        assert blue["metadata"]["labels"]["color"] == "blue"

    def test_derivation_is_byte_identical(self, blue) -> None:
        first = render_manifest(derive_slot_manifest(blue, "myapp-blue", "myapp-green", Color.GREEN))
        second = render_manifest(derive_slot_manifest(blue, "myapp-blue", "myapp-green", Color.GREEN))
        assert first == second

    def test_name_token_inside_values_is_renamed(self, blue) -> None:
        blue["spec"]["template"]["metadata"].setdefault("annotations", {})["owner"] = "myapp-blue"
        green = derive_slot_manifest(blue, "myapp-blue", "myapp-green", Color.GREEN)
        assert green["spec"]["template"]["metadata"]["annotations"]["owner"] == "myapp-green"

    def test_substring_is_not_substituted(self, blue) -> None:
        # A text substitution would turn this into "bluebird" -> "greenbird".
        blue["metadata"]["labels"]["tier"] = "bluebird"
        green = derive_slot_manifest(blue, "myapp-blue", "myapp-green", Color.GREEN)
        assert green["metadata"]["labels"]["tier"] == "bluebird"

    def test_blue_to_blue_is_identity(self, blue) -> None:
        same = derive_slot_manifest(blue, "myapp-blue", "myapp-blue", Color.BLUE)
        assert same == blue


class TestDeriveErrors:
    def test_wrong_kind(self, blue) -> None:
        blue["kind"] = "StatefulSet"
        with pytest.raises(ManifestError, match="Deployment"):
            derive_slot_manifest(blue, "myapp-blue", "myapp-green", Color.GREEN)

    def test_name_mismatch(self, blue) -> None:
        with pytest.raises(ManifestError, match="expected 'other-blue'"):
            derive_slot_manifest(blue, "other-blue", "other-green", Color.GREEN)

    def test_no_color_label(self, blue) -> None:
        blue["metadata"]["labels"].pop("color")
        blue["spec"]["selector"]["matchLabels"].pop("color")
        blue["spec"]["template"]["metadata"]["labels"].pop("color")
        with pytest.raises(ManifestError, match="no 'color: blue' label"):
            derive_slot_manifest(blue, "myapp-blue", "myapp-green", Color.GREEN)

    def test_custom_color_label(self, blue) -> None:
        with pytest.raises(ManifestError):
            derive_slot_manifest(blue, "myapp-blue", "myapp-green", Color.GREEN, color_label="slot")


class TestLoadManifest:
    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(ManifestError, match="cannot read"):
            load_manifest(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("kind: [unclosed\n", encoding="utf-8")
        with pytest.raises(ManifestError, match="invalid YAML"):
            load_manifest(path)

    def test_not_a_mapping(self, tmp_path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ManifestError, match="not a mapping"):
            load_manifest(path)


class TestManifestStore:
    def test_names(self, store) -> None:
        assert store.blue_name == "myapp-blue"
        assert store.service_name == "myapp"

    def test_service_selector_pinned(self, store) -> None:
        svc = store.service(Color.GREEN)
        assert svc["spec"]["selector"] == {"app": "myapp", "color": "green"}

    def test_service_copy_is_independent(self, store) -> None:
        store.service(Color.GREEN)
        assert store.service(Color.BLUE)["spec"]["selector"]["color"] == "blue"

    def test_deployment_for_green(self, store) -> None:
        doc = store.deployment_for(Color.GREEN, "myapp-green")
        assert doc["metadata"]["name"] == "myapp-green"

    def test_rejects_non_service(self, blue) -> None:
        with pytest.raises(ManifestError, match="Service"):
            ManifestStore(blue, blue)
