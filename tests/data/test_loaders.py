"""Tests for erflow.data.loaders module."""

import json
from pathlib import Path

import pytest

from erflow.core.models import StageConfig, WorkflowSpec
from erflow.core.workflow import WorkflowManager
from erflow.clients.settings import Settings
from erflow.data.loaders import json_loaders, load_ground_truth_json, load_profiles_json
from tests.fixtures.restaurants import (
    CATALOG_A,
    CATALOG_B,
    EXPECTED_DUPLICATE_PAIRS,
    RESTAURANT_RECORDS,
)


def write_json(path: Path, data) -> Path:
    with open(path, "w") as f:
        json.dump(data, f)
    return path


def profiles_payload(records: list[dict]) -> dict:
    return {
        "profiles": [
            {"id": r["id"], "attributes": {k: v for k, v in r.items() if k != "id"}}
            for r in records
        ]
    }


class TestLoadProfilesJson:
    """Tests for load_profiles_json function."""

    def test_load_valid_profiles(self, tmp_path: Path) -> None:
        """Test loading a valid collection keeps file order."""
        path = write_json(tmp_path / "profiles.json", profiles_payload(RESTAURANT_RECORDS))

        profiles = load_profiles_json(path)

        assert len(profiles) == 10
        assert profiles[0].id == "r1"
        assert profiles[0].attributes["city"] == "Los Angeles"

    def test_values_converted_to_strings(self, tmp_path: Path) -> None:
        """Test numeric ids and values become strings and nulls are dropped."""
        path = write_json(
            tmp_path / "profiles.json",
            {"profiles": [{"id": 1, "attributes": {"zip": 94102, "fax": None}}]},
        )

        profiles = load_profiles_json(str(path))

        assert profiles[0].id == "1"
        assert profiles[0].attributes == {"zip": "94102"}

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="Required file not found"):
            load_profiles_json(tmp_path / "missing.json")

    def test_missing_profiles_key(self, tmp_path: Path) -> None:
        path = write_json(tmp_path / "profiles.json", {"records": []})
        with pytest.raises(ValueError, match="missing 'profiles' key"):
            load_profiles_json(path)

    def test_profile_without_id(self, tmp_path: Path) -> None:
        path = write_json(tmp_path / "profiles.json", {"profiles": [{"attributes": {}}]})
        with pytest.raises(ValueError, match="profile without 'id'"):
            load_profiles_json(path)

    def test_duplicate_ids(self, tmp_path: Path) -> None:
        path = write_json(tmp_path / "profiles.json", {"profiles": [{"id": "a"}, {"id": "a"}]})
        with pytest.raises(ValueError, match="duplicate profile id 'a'"):
            load_profiles_json(path)


class TestLoadGroundTruthJson:
    """Tests for load_ground_truth_json function."""

    @pytest.fixture
    def restaurants(self, tmp_path: Path):
        path = write_json(tmp_path / "profiles.json", profiles_payload(RESTAURANT_RECORDS))
        return load_profiles_json(path)

    def test_pairs_dirty(self, tmp_path: Path, restaurants) -> None:
        path = write_json(tmp_path / "gt.json", {"pairs": EXPECTED_DUPLICATE_PAIRS})

        oracle = load_ground_truth_json(path, restaurants)

        assert oracle.duplicates == frozenset({(0, 1), (2, 3), (4, 5)})

    def test_groups_dirty(self, tmp_path: Path, restaurants) -> None:
        path = write_json(tmp_path / "gt.json", {"groups": [["r1", "r1_dup"], ["r3", "r3_dup"]]})

        oracle = load_ground_truth_json(path, restaurants)

        assert oracle.duplicates == frozenset({(0, 1), (4, 5)})

    def test_pairs_clean_clean(self, tmp_path: Path) -> None:
        d1 = load_profiles_json(write_json(tmp_path / "a.json", profiles_payload(CATALOG_A)))
        d2 = load_profiles_json(write_json(tmp_path / "b.json", profiles_payload(CATALOG_B)))
        path = write_json(tmp_path / "gt.json", {"pairs": [["a1", "b1"]]})

        oracle = load_ground_truth_json(path, d1, d2)

        assert oracle.duplicates == frozenset({(0, 3)})
        assert oracle.dataset_limit == 3

    def test_groups_rejected_for_clean_clean(self, tmp_path: Path, restaurants) -> None:
        path = write_json(tmp_path / "gt.json", {"groups": [["r1", "r1_dup"]]})
        with pytest.raises(ValueError, match="only supported for Dirty ER"):
            load_ground_truth_json(path, restaurants, restaurants)

    def test_malformed_pair(self, tmp_path: Path, restaurants) -> None:
        path = write_json(tmp_path / "gt.json", {"pairs": [["r1", "r1_dup", "r2"]]})
        with pytest.raises(ValueError, match="must have two ids"):
            load_ground_truth_json(path, restaurants)

    def test_missing_keys(self, tmp_path: Path, restaurants) -> None:
        path = write_json(tmp_path / "gt.json", {"matches": []})
        with pytest.raises(ValueError, match="expected 'pairs' or 'groups' key"):
            load_ground_truth_json(path, restaurants)

    def test_missing_file(self, tmp_path: Path, restaurants) -> None:
        with pytest.raises(FileNotFoundError, match="Required file not found"):
            load_ground_truth_json(tmp_path / "gt.json", restaurants)

    def test_non_object_file(self, tmp_path: Path, restaurants) -> None:
        """Ground truth and profile files reject the same malformed content."""
        path = write_json(tmp_path / "gt.json", [["r1", "r1_dup"]])

        with pytest.raises(ValueError, match="expected a JSON object"):
            load_ground_truth_json(path, restaurants)
        with pytest.raises(ValueError, match="expected a JSON object"):
            load_profiles_json(path)


class TestJsonLoaders:
    """Tests for json_loaders used in a WorkflowSpec."""

    def test_end_to_end_workflow(self, tmp_path: Path) -> None:
        profiles_path = write_json(tmp_path / "profiles.json", profiles_payload(RESTAURANT_RECORDS))
        gt_path = write_json(tmp_path / "gt.json", {"pairs": EXPECTED_DUPLICATE_PAIRS})
        load_profiles, load_ground_truth = json_loaders(profiles_path, gt_path)

        spec = WorkflowSpec(
            block_building=[StageConfig(method="token_blocking")],
            entity_matching=StageConfig(method="profile_matcher"),
            entity_clustering=StageConfig(method="connected_components"),
            load_profiles=load_profiles,
            load_ground_truth=load_ground_truth,
        )
        with WorkflowManager(settings=Settings()) as manager:
            result = manager.run(spec)

        assert result.trace.entries[0].metrics.pairs_completeness == 1.0
        assert result.summary.input_instance_count == 10
