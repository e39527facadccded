"""Motion model regularisation for planar, circular vehicle motion."""

from __future__ import annotations

import math

import numpy as np

from keyframe_ba.definitions import matrix_from_pose, pose_from_matrix

__all__ = ["delta_y_from_yaw", "motion_model_residual"]


def delta_y_from_yaw(d_yaw: float, d_x: float) -> float:
    """Lateral offset predicted by a circular motion with yaw change d_yaw and forward motion d_x."""
    if abs(d_yaw) < 1.0e-6:
        return 0.0
    return d_x / math.sin(d_yaw) * (1.0 - math.cos(d_yaw))


def motion_model_residual(pose_keyframe1_origin, pose_keyframe0_origin) -> np.ndarray:
    """Residual [lateral deviation, vertical motion] of the motion between two keyframe poses."""
    p_k0_o = matrix_from_pose(pose_keyframe0_origin)
    p_k1_o = matrix_from_pose(pose_keyframe1_origin)
    motion_k1_k0 = p_k1_o @ np.linalg.inv(p_k0_o)

    q = pose_from_matrix(motion_k1_k0)[:4]
    w, z = q[0], q[3]
    norm = math.hypot(w, z)
    if norm > 0.0:
        w, z = w / norm, z / norm
    sign = -1.0 if z < 0.0 else 1.0
    yaw = sign * 2.0 * math.acos(min(1.0, max(-1.0, w)))

    translation = motion_k1_k0[:3, 3]
    d_y = delta_y_from_yaw(yaw, translation[0])
    return np.array([translation[1] - d_y, translation[2]])