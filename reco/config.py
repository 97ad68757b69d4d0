"""
Configuration management for Reco
"""

import copy
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

DEFAULT_CONFIG = {
    "preprocessing": {
        "grayscale": True,
        "blur_kernel": 5,
        "blur_sigma": 0.0,
        "low_resolution": 160,
        "roi": None
    },
    "extractor": {
        "type": "SIFT",
        "n_features": 300,
        "n_octave_layers": 3,
        "contrast_threshold": 0.04,
        "edge_threshold": 10.0,
        "sigma": 1.6
    },
    "matcher": {
        "type": "BF",
        "norm": "L2"
    },
    "verification": {
        "ransac_threshold": 2.0,
        "ransac_iterations": 2000,
        "confidence": 0.995,
        "refine": False
    },
    "engine": {
        "max_workers": None
    },
    "dataset": {
        "target_resolution": 320,
        "units_x": 1.0
    },
    "remote": {
        "chunk_size": 4096
    }
}


def merge_config(base: Dict[str, Any], overrides: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Deep-merge overrides onto a copy of base. Nested dicts merge, everything else replaces."""
    merged = copy.deepcopy(base)
    if not overrides:
        return merged

    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)

    return merged


def load_config(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load a YAML configuration file on top of DEFAULT_CONFIG.

    Args:
        path: YAML file; None returns a copy of the defaults

    Returns:
        Merged configuration dictionary
    """
    if path is None:
        return merge_config(DEFAULT_CONFIG, None)

    with open(path, 'r') as f:
        overrides = yaml.safe_load(f)

    if overrides is None:
        overrides = {}
    if not isinstance(overrides, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")

    return merge_config(DEFAULT_CONFIG, overrides)
