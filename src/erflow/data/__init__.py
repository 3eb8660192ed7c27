"""Data utilities for erflow.

This module provides loaders for entity collections and ground truth.
"""

from erflow.data.loaders import json_loaders, load_ground_truth_json, load_profiles_json

__all__ = [
    "json_loaders",
    "load_ground_truth_json",
    "load_profiles_json",
]
