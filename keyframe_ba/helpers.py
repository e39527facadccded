"""Helpers for handling poses, label files and feature matches."""

from __future__ import annotations

import math
from typing import Collection, Sequence

import numpy as np
import yaml

from keyframe_ba.definitions import Tracklets

__all__ = ["pose_to_string", "load_label_set", "get_matches", "mean_flow"]

Point = tuple[float, float]


def pose_to_string(matrix) -> str:
    """Upper 3x4 part of a 4x4 pose, row by row, separated by spaces."""
    m = np.asarray(matrix, dtype=float)
    if m.shape != (4, 4):
        raise ValueError(f"expected a 4x4 matrix, got shape {m.shape}")
    return " ".join(f"{value:g}" for value in m[:3, :].ravel())


def load_label_set(yaml_path, field_name: str) -> set[int]:
    """Set of integer labels stored as a sequence under field_name in a YAML file."""
    with open(yaml_path, encoding="utf-8") as stream:
        root = yaml.safe_load(stream)
    values = root.get(field_name) if isinstance(root, dict) else None
    if not isinstance(values, list):
        raise ValueError(f"LabelReader: vector {field_name} not defined.")
    return {int(value) for value in values}


def _stamp_index(stamps: Sequence[int], ts: int) -> int:
    return stamps.index(ts) if ts in stamps else len(stamps)


def get_matches(
    tracklets: Tracklets, ts0: int, ts1: int, outlier_labels: Collection[int]
) -> tuple[list[Point], list[Point]]:
    """Image points of all tracks measured at both time stamps, skipping outlier labels."""
    index0 = _stamp_index(tracklets.stamps, ts0)
    index1 = _stamp_index(tracklets.stamps, ts1)
    points0: list[Point] = []
    points1: list[Point] = []
    for track in tracklets.tracks:
        n = len(track.feature_points)
        if n > index0 and n > index1 and track.label not in outlier_labels:
            m0 = track.feature_points[index0]
            m1 = track.feature_points[index1]
            points0.append((float(m0.u), float(m0.v)))
            points1.append((float(m1.u), float(m1.v)))
    return points0, points1


def mean_flow(points0: Sequence[Point], points1: Sequence[Point]) -> float:
    """Mean Euclidean distance between corresponding points."""
    if len(points0) != len(points1):
        raise ValueError("In getMeanFlow: points size not consistent.")
    if not points0:
        return 0.0
    total = sum(
        math.hypot(p0[0] - p1[0], p0[1] - p1[1]) for p0, p1 in zip(points0, points1)
    )
    return total / len(points0)