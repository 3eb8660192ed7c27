"""Data loaders for entity resolution datasets.

This module provides JSON loaders for entity collections and ground truth,
plus a helper that wires them into the two loader callables a
WorkflowSpec expects.
"""

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from erflow.core.models import DuplicateOracle, EntityProfile

logger = logging.getLogger(__name__)


def _load_json(path: Path) -> dict[str, Any]:
    if not path.exists():
        msg = f"Required file not found: {path}"
        raise FileNotFoundError(msg)

    with open(path) as f:
        data = json.load(f)

    if not isinstance(data, dict):
        msg = f"Invalid format in {path}: expected a JSON object"
        raise ValueError(msg)
    return data


def _read_json(path: Path, key: str) -> Any:
    data = _load_json(path)
    if key not in data:
        msg = f"Invalid format in {path}: missing '{key}' key"
        raise ValueError(msg)
    return data[key]


def load_profiles_json(path: Path | str) -> list[EntityProfile]:
    """Load an entity collection from a JSON file.

    Args:
        path: JSON file with a "profiles" list

    Returns:
        List of EntityProfile in file order (file order defines global indices)

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the format is invalid or ids are duplicated

    Expected JSON format:
        {"profiles": [
            {"id": "1", "attributes": {"name": "Acme Corp", "city": "Berlin"}},
            ...
        ]}

    Example:
        >>> profiles = load_profiles_json("data/restaurants/profiles.json")
        >>> print(f"{len(profiles)} profiles")
    """
    path = Path(path)
    raw_profiles = _read_json(path, "profiles")

    profiles: list[EntityProfile] = []
    seen: set[str] = set()
    for raw in raw_profiles:
        if "id" not in raw:
            msg = f"Invalid format in {path}: profile without 'id'"
            raise ValueError(msg)
        # Convert ids and values to strings (some data files use numbers)
        profile_id = str(raw["id"])
        if profile_id in seen:
            msg = f"Invalid format in {path}: duplicate profile id '{profile_id}'"
            raise ValueError(msg)
        seen.add(profile_id)
        attributes = {
            str(name): str(value)
            for name, value in raw.get("attributes", {}).items()
            if value is not None
        }
        profiles.append(EntityProfile(id=profile_id, attributes=attributes))

    logger.info("Loaded %d profiles from %s", len(profiles), path)
    return profiles


def load_ground_truth_json(
    path: Path | str,
    profiles_d1: list[EntityProfile],
    profiles_d2: list[EntityProfile] | None = None,
) -> DuplicateOracle:
    """Load known duplicates from a JSON file.

    Args:
        path: JSON file with either a "pairs" or a "groups" list
        profiles_d1: Collection 1 (ids are resolved against it)
        profiles_d2: Collection 2 for Clean-Clean ER

    Returns:
        DuplicateOracle over global entity indices

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the format is invalid, or groups are used in Clean-Clean ER

    Expected JSON formats:
        {"pairs": [["1", "2"], ["3", "7"], ...]}
            In Clean-Clean ER the first id belongs to collection 1 and the
            second to collection 2.

        {"groups": [["1", "2", "5"], ["3", "7"], ...]}
            Dirty ER only: every id in a group refers to the same entity.
    """
    path = Path(path)
    data = _load_json(path)

    if "pairs" in data:
        pairs = []
        for pair in data["pairs"]:
            if len(pair) != 2:
                msg = f"Invalid format in {path}: pair {pair!r} must have two ids"
                raise ValueError(msg)
            pairs.append((str(pair[0]), str(pair[1])))
        oracle = DuplicateOracle.from_id_pairs(pairs, profiles_d1, profiles_d2)
    elif "groups" in data:
        if profiles_d2 is not None:
            msg = f"Invalid format in {path}: 'groups' is only supported for Dirty ER"
            raise ValueError(msg)
        oracle = DuplicateOracle.from_id_groups(data["groups"], profiles_d1)
    else:
        msg = f"Invalid format in {path}: expected 'pairs' or 'groups' key"
        raise ValueError(msg)

    logger.info("Loaded %d duplicate pairs from %s", len(oracle), path)
    return oracle


def json_loaders(
    profiles_path: Path | str,
    ground_truth_path: Path | str,
    profiles_d2_path: Path | str | None = None,
) -> tuple[
    Callable[[Any], tuple[list[EntityProfile], list[EntityProfile] | None]],
    Callable[[Any, list[EntityProfile], list[EntityProfile] | None], DuplicateOracle],
]:
    """Build the load_profiles / load_ground_truth pair for a WorkflowSpec.

    Example:
        >>> load_profiles, load_ground_truth = json_loaders(
        ...     "data/abt.json", "data/gt.json", profiles_d2_path="data/buy.json"
        ... )
        >>> spec = WorkflowSpec(
        ...     resolution_mode="clean_clean",
        ...     load_profiles=load_profiles,
        ...     load_ground_truth=load_ground_truth,
        ...     ...
        ... )
    """

    def load_profiles(spec: Any) -> tuple[list[EntityProfile], list[EntityProfile] | None]:
        profiles_d1 = load_profiles_json(profiles_path)
        profiles_d2 = load_profiles_json(profiles_d2_path) if profiles_d2_path else None
        return profiles_d1, profiles_d2

    def load_ground_truth(
        spec: Any,
        profiles_d1: list[EntityProfile],
        profiles_d2: list[EntityProfile] | None,
    ) -> DuplicateOracle:
        return load_ground_truth_json(ground_truth_path, profiles_d1, profiles_d2)

    return load_profiles, load_ground_truth
