"""Keyframes: a pose together with the measurements observed at one time stamp."""

from __future__ import annotations

from collections import defaultdict
from enum import Enum
from typing import Mapping

import numpy as np

from keyframe_ba.definitions import (
    Camera,
    Landmark,
    Measurement,
    Plane,
    Tracklets,
    matrix_from_pose,
    pose_from_matrix,
)

__all__ = ["FixationStatus", "Keyframe"]


class FixationStatus(Enum):
    """Which part of a keyframe is held fixed during optimisation."""

    POSE = "pose"
    SCALE = "scale"
    NONE = "none"


class Keyframe:
    """Pose from keyframe to origin plus the measurements taken at its time stamp."""

    def __init__(
        self,
        timestamp: int,
        tracklets: Tracklets,
        cameras: Camera | Mapping[int, Camera],
        pose,
        landmark_to_cameras: Mapping[int, set[int]] | None = None,
        fixation_status: FixationStatus = FixationStatus.NONE,
        ground_plane: Plane | None = None,
    ):
        self.timestamp = int(timestamp)
        self.fixation_status = fixation_status
        self.local_ground_plane = ground_plane if ground_plane is not None else Plane()
        self.measurements: dict[int, dict[int, Measurement]] = {}
        self.is_active = True
        if isinstance(cameras, Camera):
            self.cameras: dict[int, Camera] = {0: cameras}
            self.assign_measurements(tracklets, 0)
        else:
            if landmark_to_cameras is None:
                raise ValueError("several cameras need a landmark to camera lookup")
            self.cameras = dict(cameras)
            self.assign_measurements_by_lookup(tracklets, landmark_to_cameras)
        self.pose = pose_from_matrix(np.eye(4))
        self.assign_pose(pose)

    def __lt__(self, other: "Keyframe") -> bool:
        return self.timestamp < other.timestamp

    def __repr__(self) -> str:
        return (
            f"Keyframe(timestamp={self.timestamp}, "
            f"landmarks={len(self.measurements)}, active={self.is_active})"
        )

    def assign_measurements(self, tracklets: Tracklets, camera_id: int) -> None:
        """Store the measurements of all tracks at this keyframe's time stamp."""
        stamps = tracklets.stamps
        index = stamps.index(self.timestamp) if self.timestamp in stamps else len(stamps)
        for track in tracklets.tracks:
            if index < len(track.feature_points):
                self.measurements.setdefault(track.id, {})[camera_id] = track.feature_points[index]

    def assign_measurements_by_lookup(
        self, tracklets: Tracklets, landmark_lookup: Mapping[int, set[int]]
    ) -> None:
        """Distribute tracks to the cameras that see them and store their measurements."""
        per_camera: dict[int, Tracklets] = defaultdict(
            lambda: Tracklets(stamps=list(tracklets.stamps))
        )
        for track in tracklets.tracks:
            for cam_id in landmark_lookup[track.id]:
                per_camera[cam_id].tracks.append(track)
        for cam_id in sorted(per_camera):
            self.assign_measurements(per_camera[cam_id], cam_id)

    def assign_pose(self, pose) -> None:
        """Set the pose from a 4x4 transform keyframe <- origin."""
        self.pose = pose_from_matrix(pose)

    def measurement(self, landmark_id: int, camera_id: int) -> Measurement:
        """Measurement of a landmark in a camera; KeyError if there is none."""
        return self.measurements[landmark_id][camera_id]

    def measurements_of(self, landmark_id: int) -> dict[int, Measurement]:
        """Measurements of a landmark from every camera that observed it."""
        return {
            cam_id: self.measurement(landmark_id, cam_id)
            for cam_id in self.cameras
            if self.has_measurement(landmark_id, cam_id)
        }

    def has_measurement(self, landmark_id: int, camera_id: int | None = None) -> bool:
        """Whether the landmark was measured in the given camera, or in any camera."""
        if camera_id is None:
            return any(self.has_measurement(landmark_id, cam_id) for cam_id in self.cameras)
        return camera_id in self.measurements.get(landmark_id, {})

    def projected_landmark_position(
        self, landmark_id: int, landmark: Landmark
    ) -> dict[int, np.ndarray]:
        """Landmark position in the frame of each camera that observed it."""
        cams = self.measurements.get(landmark_id)
        if cams is None:
            return {}
        pose = self.pose_matrix()
        p_vehicle = pose[:3, :3] @ landmark.pos + pose[:3, 3]
        out = {}
        for cam_id in cams:
            cam_pose = self.cameras[cam_id].pose_matrix()
            out[cam_id] = cam_pose[:3, :3] @ p_vehicle + cam_pose[:3, 3]
        return out

    def pose_matrix(self) -> np.ndarray:
        """Pose keyframe <- origin as a 4x4 transform."""
        return matrix_from_pose(self.pose)