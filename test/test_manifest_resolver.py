import json
import os
import pytest
from ros_ingress.models.payload import ExtractedArchive, ExtractedEntry
from ros_ingress.services.upload_file.errors import (
    ManifestNotFoundError,
    ManifestParseError,
    ManifestValidationError,
    NoSelectedFilesError,
)
from ros_ingress.services.upload_file.manifest_resolver import ManifestResolver
from conftest import CLUSTER_ID, MANIFEST_UUID, make_manifest


def write_archive(root, files) -> ExtractedArchive:
    entries = []
    for name, content in files.items():
        path = os.path.join(str(root), name)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as handle:
            handle.write(content)
        entries.append(ExtractedEntry(name=name, path=path))
    return ExtractedArchive(root=str(root), request_id="req-1", entries=entries)


def test_resolves_manifest_and_selected_files(tmp_path):
    archive = write_archive(tmp_path, {
        "payload/manifest.json": make_manifest(resource_optimization_files=["ros-a.csv", "ros-b.csv"]),
        "payload/ros-a.csv": b"a",
        "payload/ros-b.csv": b"b",
        "payload/cost.csv": b"c",
    })

    payload = ManifestResolver().resolve(archive)

    assert payload.manifest.uuid == MANIFEST_UUID
    assert payload.manifest.cluster_id == CLUSTER_ID
    assert payload.manifest.date.strftime("%Y-%m-%d") == "2025-01-15"
    assert [selected.name for selected in payload.selected_files] == ["ros-a.csv", "ros-b.csv"]
    assert payload.archive is archive


def test_missing_manifest(tmp_path):
    archive = write_archive(tmp_path, {"notes.txt": b"hello"})

    with pytest.raises(ManifestNotFoundError):
        ManifestResolver().resolve(archive)


def test_manifest_name_must_match_exactly(tmp_path):
    archive = write_archive(tmp_path, {"old-manifest.json": make_manifest(), "manifest.json.bak": make_manifest()})

    with pytest.raises(ManifestNotFoundError):
        ManifestResolver().resolve(archive)


def test_malformed_manifest(tmp_path):
    archive = write_archive(tmp_path, {"manifest.json": b"{not json"})

    with pytest.raises(ManifestParseError):
        ManifestResolver().resolve(archive)


def test_manifest_with_wrong_field_types(tmp_path):
    archive = write_archive(tmp_path, {"manifest.json": make_manifest(uuid=42)})

    with pytest.raises(ManifestParseError):
        ManifestResolver().resolve(archive)


@pytest.mark.parametrize("missing", ["uuid", "cluster_id"])
def test_manifest_missing_required_field(tmp_path, missing):
    manifest = json.loads(make_manifest())
    del manifest[missing]
    archive = write_archive(tmp_path, {"manifest.json": json.dumps(manifest).encode(), "ros.csv": b"x"})

    with pytest.raises(ManifestValidationError):
        ManifestResolver().resolve(archive)


@pytest.mark.parametrize("selection", [[], None])
def test_empty_selection(tmp_path, selection):
    archive = write_archive(tmp_path, {
        "manifest.json": make_manifest(resource_optimization_files=selection),
        "ros.csv": b"x",
    })

    with pytest.raises(NoSelectedFilesError):
        ManifestResolver().resolve(archive)


def test_selection_not_present_in_archive(tmp_path):
    archive = write_archive(tmp_path, {
        "manifest.json": make_manifest(resource_optimization_files=["missing.csv"]),
        "other.csv": b"x",
    })

    with pytest.raises(NoSelectedFilesError):
        ManifestResolver().resolve(archive)


def test_missing_selected_files_are_dropped(tmp_path):
    archive = write_archive(tmp_path, {
        "manifest.json": make_manifest(resource_optimization_files=["missing.csv", "ros.csv", "ros.csv"]),
        "ros.csv": b"x",
    })

    payload = ManifestResolver().resolve(archive)

    assert [selected.name for selected in payload.selected_files] == ["ros.csv"]
    assert payload.selected_files[0].size == 1


def test_display_alias_falls_back_to_cluster_id(tmp_path):
    archive = write_archive(tmp_path, {
        "manifest.json": make_manifest(cluster_alias=None, operator_version=None),
        "ros.csv": b"x",
    })

    manifest = ManifestResolver().resolve(archive).manifest

    assert manifest.display_alias == CLUSTER_ID
    assert manifest.operator_version == ""


def test_last_entry_wins_for_duplicate_base_names(tmp_path):
    archive = write_archive(tmp_path, {
        "manifest.json": make_manifest(),
        "first/ros.csv": b"old",
        "second/ros.csv": b"newer",
    })

    selected = ManifestResolver().resolve(archive).selected_files

    assert [item.path for item in selected] == [os.path.join(str(tmp_path), "second/ros.csv")]
    assert selected[0].size == 5
