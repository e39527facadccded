"""Initial landmark positions from measured depth or from triangulated viewing rays."""

from __future__ import annotations

from typing import Iterable, Sequence

import numpy as np

from keyframe_ba.keyframe import Keyframe

__all__ = [
    "contains_depth",
    "common_landmark_ids",
    "landmark_from_depth",
    "triangulate_rays",
]


def contains_depth(keyframe: Keyframe, landmark_id: int) -> bool:
    """Whether at least one camera of the keyframe measured a valid depth for the landmark.

    Raises KeyError if the landmark was not observed in the keyframe.
    """
    return any(meas.d >= 0 for meas in keyframe.measurements[landmark_id].values())


def common_landmark_ids(current: Keyframe, newest: Keyframe) -> list[int]:
    """Sorted ids of the landmarks observed in both keyframes."""
    return sorted(current.measurements.keys() & newest.measurements.keys())


def landmark_from_depth(keyframe: Keyframe, landmark_id: int) -> np.ndarray | None:
    """Landmark position in the origin frame from the first camera with a measured depth.

    Cameras are examined in order of their id. Returns None if no camera measured
    depth; raises KeyError if the landmark was not observed in the keyframe.
    """
    measurements = keyframe.measurements[landmark_id]
    for cam_id in sorted(measurements):
        meas = measurements[cam_id]
        if meas.d < 0:
            continue
        cam = keyframe.cameras[cam_id]
        z = float(meas.d)
        x = (float(meas.u) - cam.principal_point[0]) * z / cam.focal_length
        y = (float(meas.v) - cam.principal_point[1]) * z / cam.focal_length

        cam_origin = cam.pose_matrix() @ keyframe.pose_matrix()
        origin_cam = np.linalg.inv(cam_origin)
        return origin_cam[:3, :3] @ np.array([x, y, z]) + origin_cam[:3, 3]
    return None


def triangulate_rays(poses_and_rays: Iterable[tuple[Sequence, Sequence]]) -> np.ndarray:
    """Point closest, in the least-squares sense, to a set of viewing rays.

    Each entry pairs a 4x4 transform origin <- camera with a viewing ray in that
    camera's coordinates. At least two rays are needed.
    """
    pairs = list(poses_and_rays)
    if len(pairs) < 2:
        raise ValueError(f"triangulation needs at least two rays, got {len(pairs)}")

    lhs = np.zeros((3, 3))
    rhs = np.zeros(3)
    for pose, ray in pairs:
        transform = np.asarray(pose, dtype=float)
        if transform.shape != (4, 4):
            raise ValueError(f"expected a 4x4 transform, got shape {transform.shape}")
        direction = transform[:3, :3] @ np.asarray(ray, dtype=float).reshape(3)
        norm = np.linalg.norm(direction)
        if norm == 0.0:
            raise ValueError("viewing ray must not be zero")
        direction /= norm
        projector = np.eye(3) - np.outer(direction, direction)
        lhs += projector
        rhs += projector @ transform[:3, 3]

    point, *_ = np.linalg.lstsq(lhs, rhs, rcond=None)
    return point