"""Tests for resource file loading."""

from pathlib import Path

import pytest
import yaml
from peering_mock import peering_manifest

from peering_operator import spec_loader
from peering_operator.spec_loader import SpecLoadError, discover_resources, load_resource


def write_manifest(directory: Path, filename: str, data: object) -> Path:
    path = directory / filename
    path.write_text(yaml.safe_dump(data))
    return path


class TestLoadResource:
    """Tests for load_resource."""

    def test_valid_file(self, tmp_path: Path) -> None:
        path = write_manifest(tmp_path, "peer.yaml", peering_manifest("peer-a"))

        resource = load_resource(path)

        assert resource.metadata.key == "default/peer-a"
        assert resource.spec.provider == "AWS"

    def test_status_in_file_ignored(self, tmp_path: Path) -> None:
        """Test that a status written into the file is never trusted."""
        data = peering_manifest()
        data["status"] = {"id": "peer-forged"}
        path = write_manifest(tmp_path, "peer.yaml", data)

        assert load_resource(path).status.id == ""

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SpecLoadError) as exc_info:
            load_resource(tmp_path / "missing.yaml")

        assert "not found" in str(exc_info.value)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("spec: [unclosed")

        with pytest.raises(SpecLoadError) as exc_info:
            load_resource(path)

        assert "Invalid YAML" in str(exc_info.value)

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        path = write_manifest(tmp_path, "list.yaml", ["a", "b"])

        with pytest.raises(SpecLoadError) as exc_info:
            load_resource(path)

        assert "YAML mapping" in str(exc_info.value)

    def test_validation_error_names_field(self, tmp_path: Path) -> None:
        data = peering_manifest()
        del data["spec"]["projectRef"]
        path = write_manifest(tmp_path, "peer.yaml", data)

        with pytest.raises(SpecLoadError) as exc_info:
            load_resource(path)

        assert "spec.projectRef" in str(exc_info.value)

    def test_file_too_large(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that oversized files are rejected before parsing."""
        monkeypatch.setattr(spec_loader, "MAX_SPEC_FILE_SIZE_BYTES", 10)
        path = write_manifest(tmp_path, "peer.yaml", peering_manifest())

        with pytest.raises(SpecLoadError) as exc_info:
            load_resource(path)

        assert "exceeds maximum size" in str(exc_info.value)


class TestDiscoverResources:
    """Tests for discover_resources."""

    def test_loads_yaml_and_yml(self, tmp_path: Path) -> None:
        write_manifest(tmp_path, "a.yaml", peering_manifest("peer-a"))
        write_manifest(tmp_path, "b.yml", peering_manifest("peer-b"))
        (tmp_path / "notes.txt").write_text("ignored")

        resources, errors = discover_resources(tmp_path)

        assert set(resources) == {"default/peer-a", "default/peer-b"}
        assert errors == {}
        assert resources["default/peer-a"].signature[1] > 0

    def test_broken_file_does_not_hide_others(self, tmp_path: Path) -> None:
        write_manifest(tmp_path, "a.yaml", peering_manifest("peer-a"))
        broken = tmp_path / "b.yaml"
        broken.write_text("kind: [")

        resources, errors = discover_resources(tmp_path)

        assert set(resources) == {"default/peer-a"}
        assert broken in errors

    def test_duplicate_keys_reported(self, tmp_path: Path) -> None:
        """Test that a resource declared twice is kept once and reported."""
        first = write_manifest(tmp_path, "a.yaml", peering_manifest("peer-a"))
        second = write_manifest(tmp_path, "b.yaml", peering_manifest("peer-a"))

        resources, errors = discover_resources(tmp_path)

        assert resources["default/peer-a"].path == first
        assert "Duplicate resource" in errors[second]
