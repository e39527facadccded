"""Storage of keyframes and landmarks for keyframe based bundle adjustment."""

from __future__ import annotations

import copy
from typing import Iterable

import numpy as np

from keyframe_ba.definitions import Landmark, measurement_to_ray, sec_to_ns
from keyframe_ba.keyframe import Keyframe
from keyframe_ba.landmark_init import contains_depth, landmark_from_depth, triangulate_rays

__all__ = ["NotEnoughKeyframesError", "KeyframeNotFoundError", "BundleAdjusterKeyframes"]


class NotEnoughKeyframesError(RuntimeError):
    """Fewer keyframes are available than an operation needs."""

    def __init__(self, num_is: int, num_should_be: int):
        self.num_is = num_is
        self.num_should_be = num_should_be
        super().__init__(
            "Not enough keyframes available in bundle_adjuster_keyframes. "
            f"Should be {num_should_be} is {num_is}"
        )


class KeyframeNotFoundError(LookupError):
    """No keyframe was taken at the requested time stamp."""

    def __init__(self, timestamp: int):
        self.timestamp = timestamp
        super().__init__(f"keyframe corresponding to timestamp {timestamp} nano seconds not found")


class BundleAdjusterKeyframes:
    """Keyframes, keyed by time stamp, and the landmarks they observe.

    Landmarks are initialised from measured depth where available, otherwise by
    triangulating the viewing rays of all active keyframes.
    """

    def __init__(self, solver_time_sec: float = 0.2):
        self.solver_time_sec = solver_time_sec
        self.keyframes: dict[int, Keyframe] = {}
        self.landmarks: dict[int, Landmark] = {}
        self.active_keyframe_ids: set[int] = set()
        self.active_landmark_ids: set[int] = set()
        self.selected_landmark_ids: set[int] = set()
        self.labels: dict[str, set[int]] = {"outliers": set(), "shrubbery": set(), "ground": set()}

    def __repr__(self) -> str:
        return (
            f"BundleAdjusterKeyframes(keyframes={len(self.keyframes)}, "
            f"landmarks={len(self.landmarks)}, "
            f"active_keyframes={len(self.active_keyframe_ids)})"
        )

    def push(self, keyframe: Keyframe) -> None:
        """Store a copy of the keyframe and create the landmarks it observes."""
        kf = copy.deepcopy(keyframe)
        self.keyframes[kf.timestamp] = kf
        self.active_keyframe_ids.add(kf.timestamp)

        for lm_id in sorted(kf.measurements):
            if lm_id not in self.landmarks:
                has_depth = contains_depth(kf, lm_id)
                if has_depth:
                    position = landmark_from_depth(kf, lm_id)
                else:
                    position = self._triangulate(lm_id)
                if position is None:
                    continue
                self.landmarks[lm_id] = Landmark(pos=position, has_measured_depth=has_depth)
            self.active_landmark_ids.add(lm_id)

    def push_all(self, keyframes: Iterable[Keyframe]) -> None:
        """Push several keyframes in the given order."""
        for kf in keyframes:
            self.push(kf)

    def _triangulate(self, landmark_id: int) -> np.ndarray | None:
        rays = self.measurements_and_poses(landmark_id)
        if len(rays) < 2:
            return None
        return triangulate_rays(rays)

    def measurements_and_poses(self, landmark_id: int) -> list[tuple[np.ndarray, np.ndarray]]:
        """Pairs of camera pose (origin <- camera) and viewing ray for every observation
        of the landmark in the active keyframes."""
        out = []
        for kf_id in sorted(self.active_keyframe_ids):
            kf = self.keyframes[kf_id]
            for cam_id in sorted(kf.cameras):
                if not kf.has_measurement(landmark_id, cam_id):
                    continue
                cam = kf.cameras[cam_id]
                pose_cam_origin = cam.pose_matrix() @ kf.pose_matrix()
                ray = measurement_to_ray(cam.intrin_inv, kf.measurement(landmark_id, cam_id))
                out.append((np.linalg.inv(pose_cam_origin), ray))
        return out

    def _filter_landmarks(self, ids: Iterable[int]) -> dict[int, Landmark]:
        return {lm_id: self.landmarks[lm_id] for lm_id in sorted(ids) if lm_id in self.landmarks}

    def active_landmarks(self) -> dict[int, Landmark]:
        """Active landmarks that could be initialised, keyed by id."""
        return self._filter_landmarks(self.active_landmark_ids)

    def selected_landmarks(self) -> dict[int, Landmark]:
        """Selected landmarks that could be initialised, keyed by id."""
        return self._filter_landmarks(self.selected_landmark_ids)

    def active_keyframes(self) -> dict[int, Keyframe]:
        """Active keyframes keyed by id, in order of id."""
        return {kf_id: self.keyframes[kf_id] for kf_id in sorted(self.active_keyframe_ids)}

    def sorted_active_keyframes(self) -> list[Keyframe]:
        """Active keyframes ordered by time stamp, newest last."""
        return sorted(self.active_keyframes().values(), key=lambda kf: kf.timestamp)

    def get_keyframe(self, timestamp: float = -1.0) -> Keyframe:
        """Keyframe at the given time in seconds; the newest active one if timestamp < 0."""
        if not self.keyframes:
            raise NotEnoughKeyframesError(len(self.keyframes), 1)

        if timestamp < 0.0:
            if not self.active_keyframe_ids:
                raise NotEnoughKeyframesError(0, 1)
            return max(
                (self.keyframes[kf_id] for kf_id in sorted(self.active_keyframe_ids)),
                key=lambda kf: kf.timestamp,
            )

        ts_nsec = sec_to_ns(timestamp)
        for kf_id in sorted(self.active_keyframe_ids):
            if self.keyframes[kf_id].timestamp == ts_nsec:
                return self.keyframes[kf_id]
        for kf in self.keyframes.values():
            if kf.timestamp == ts_nsec:
                return kf
        raise KeyframeNotFoundError(ts_nsec)