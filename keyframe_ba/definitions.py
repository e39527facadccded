"""Basic types and geometric helpers: measurements, landmarks, cameras, poses."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np

__all__ = [
    "Measurement",
    "Landmark",
    "Plane",
    "Camera",
    "Tracklet",
    "Tracklets",
    "pose_from_matrix",
    "matrix_from_pose",
    "ns_to_sec",
    "sec_to_ns",
    "measurement_to_ray",
    "quaternion_difference",
    "reproject",
    "rot_rocc_metric",
]


@dataclass
class Measurement:
    """Image measurement (u, v) with optional depth d; d < 0 means no depth."""

    u: float
    v: float
    d: float = -1.0

    def as_vector(self) -> np.ndarray:
        """Return the image coordinates as a 2-vector."""
        return np.array([self.u, self.v], dtype=float)


@dataclass
class Landmark:
    """3d point in the origin frame together with its optimisation attributes."""

    pos: np.ndarray = field(default_factory=lambda: np.zeros(3))
    has_measured_depth: bool = False
    weight: float = 1.0
    is_ground_plane: bool = False

    def __post_init__(self) -> None:
        self.pos = np.array(self.pos, dtype=float).reshape(3)


@dataclass
class Plane:
    """Local ground plane given by its unit normal and distance."""

    direction: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, 1.0]))
    distance: float = 1.0

    def __post_init__(self) -> None:
        self.direction = np.array(self.direction, dtype=float).reshape(3)


@dataclass
class Tracklet:
    """Feature track: one measurement per time stamp, newest first."""

    id: int
    feature_points: list[Measurement] = field(default_factory=list)
    label: int = -1
    is_outlier: bool = False


@dataclass
class Tracklets:
    """Collection of tracks sharing the same list of time stamps (nanoseconds)."""

    stamps: list[int] = field(default_factory=list)
    tracks: list[Tracklet] = field(default_factory=list)


def _quaternion_from_rotation(rot: np.ndarray) -> np.ndarray:
    """Quaternion (w, x, y, z) of a rotation matrix."""
    m = np.asarray(rot, dtype=float)
    trace = m[0, 0] + m[1, 1] + m[2, 2]
    if trace > 0.0:
        t = math.sqrt(trace + 1.0)
        w = 0.5 * t
        t = 0.5 / t
        return np.array(
            [
                w,
                (m[2, 1] - m[1, 2]) * t,
                (m[0, 2] - m[2, 0]) * t,
                (m[1, 0] - m[0, 1]) * t,
            ]
        )
    i = 0
    if m[1, 1] > m[0, 0]:
        i = 1
    if m[2, 2] > m[i, i]:
        i = 2
    j = (i + 1) % 3
    k = (j + 1) % 3
    t = math.sqrt(m[i, i] - m[j, j] - m[k, k] + 1.0)
    vec = np.zeros(3)
    vec[i] = 0.5 * t
    t = 0.5 / t
    w = (m[k, j] - m[j, k]) * t
    vec[j] = (m[j, i] + m[i, j]) * t
    vec[k] = (m[k, i] + m[i, k]) * t
    return np.array([w, vec[0], vec[1], vec[2]])


def _rotation_from_quaternion(quat: np.ndarray) -> np.ndarray:
    w, x, y, z = np.asarray(quat, dtype=float) / np.linalg.norm(quat)
    return np.array(
        [
            [1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)],
            [2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
            [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)],
        ]
    )


def _quaternion_multiply(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    aw, ax, ay, az = a
    bw, bx, by, bz = b
    return np.array(
        [
            aw * bw - ax * bx - ay * by - az * bz,
            aw * bx + ax * bw + ay * bz - az * by,
            aw * by - ax * bz + ay * bw + az * bx,
            aw * bz + ax * by - ay * bx + az * bw,
        ]
    )


def _quaternion_inverse(q: np.ndarray) -> np.ndarray:
    q = np.asarray(q, dtype=float)
    return np.array([q[0], -q[1], -q[2], -q[3]]) / float(q @ q)


def pose_from_matrix(matrix) -> np.ndarray:
    """Convert a 4x4 rigid transform into a pose [qw, qx, qy, qz, tx, ty, tz]."""
    m = np.asarray(matrix, dtype=float)
    if m.shape != (4, 4):
        raise ValueError(f"expected a 4x4 matrix, got shape {m.shape}")
    return np.concatenate([_quaternion_from_rotation(m[:3, :3]), m[:3, 3]])


def matrix_from_pose(pose) -> np.ndarray:
    """Convert a pose [qw, qx, qy, qz, tx, ty, tz] into a 4x4 rigid transform."""
    p = np.asarray(pose, dtype=float)
    if p.shape != (7,):
        raise ValueError(f"expected a pose of 7 values, got shape {p.shape}")
    out = np.eye(4)
    out[:3, :3] = _rotation_from_quaternion(p[:4])
    out[:3, 3] = p[4:]
    return out


def ns_to_sec(timestamp: int) -> float:
    """Nanoseconds to seconds."""
    return float(timestamp * 1e-09)


def sec_to_ns(timestamp: float) -> int:
    """Seconds to nanoseconds, truncated towards zero."""
    return int(timestamp * 1e09)


def measurement_to_ray(intrin_inv, measurement: Measurement) -> np.ndarray:
    """Unit viewing ray of a measurement given the inverse intrinsic matrix."""
    ray = np.asarray(intrin_inv, dtype=float) @ np.array(
        [float(measurement.u), float(measurement.v), 1.0]
    )
    return ray / np.linalg.norm(ray)


def quaternion_difference(pose0, pose1) -> float:
    """Rotation angle in radians between the orientations of two poses."""
    q0 = np.asarray(pose0, dtype=float)[:4]
    q1 = np.asarray(pose1, dtype=float)[:4]
    q10 = _quaternion_multiply(_quaternion_inverse(q1), q0)
    n = float(np.linalg.norm(q10[1:]))
    if n < np.finfo(float).eps:
        return 0.0
    return 2.0 * math.atan2(n, abs(q10[0]))


def reproject(transform, intrinsics, point) -> np.ndarray:
    """Project a 3d point into the image after applying a 4x4 transform or 3x3 rotation."""
    t = np.asarray(transform, dtype=float)
    p = np.asarray(point, dtype=float)
    if t.shape == (4, 4):
        p_cam = t[:3, :3] @ p + t[:3, 3]
    elif t.shape == (3, 3):
        p_cam = t @ p
    else:
        raise ValueError(f"expected a 4x4 transform or 3x3 rotation, got shape {t.shape}")
    hom = np.asarray(intrinsics, dtype=float) @ p_cam
    return hom[:2] / hom[2]


def rot_rocc_metric(transform_1_0, intrinsics, lm_0, measurement_1) -> float:
    """Ratio of full reprojection error to rotation-only reprojection error."""
    t = np.asarray(transform_1_0, dtype=float)
    if np.linalg.norm(t[:3, 3]) < 0.0001:
        return 0.0
    meas = np.asarray(measurement_1, dtype=float)
    reproj_error = meas - reproject(t, intrinsics, lm_0)
    rot_error = meas - reproject(t[:3, :3], intrinsics, lm_0)
    return float(np.linalg.norm(reproj_error) / max(np.linalg.norm(rot_error), 1e-10))


class Camera:
    """Pinhole camera with intrinsics and extrinsic pose camera <- vehicle."""

    def __init__(self, focal_length: float, principal_point, pose_camera_vehicle=None):
        self.focal_length = float(focal_length)
        self.principal_point = np.array(principal_point, dtype=float).reshape(2)
        matrix = np.eye(4) if pose_camera_vehicle is None else pose_camera_vehicle
        self.pose_camera_vehicle = pose_from_matrix(matrix)
        self.intrin_inv = np.linalg.inv(self.intrinsic_matrix())

    def intrinsic_matrix(self) -> np.ndarray:
        """3x3 intrinsic matrix."""
        f = self.focal_length
        cx, cy = self.principal_point
        return np.array([[f, 0.0, cx], [0.0, f, cy], [0.0, 0.0, 1.0]])

    def pose_matrix(self) -> np.ndarray:
        """Extrinsic pose camera <- vehicle as a 4x4 transform."""
        return matrix_from_pose(self.pose_camera_vehicle)

    def viewing_ray(self, measurement: Measurement) -> np.ndarray:
        """Unit viewing ray of a measurement in camera coordinates."""
        return measurement_to_ray(self.intrin_inv, measurement)

    def __repr__(self) -> str:
        return (
            f"Camera(focal_length={self.focal_length}, "
            f"principal_point={self.principal_point.tolist()})"
        )