"""Schemes that decide whether a frame is taken on as a keyframe."""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from typing import Mapping

from keyframe_ba.definitions import quaternion_difference
from keyframe_ba.keyframe import Keyframe

__all__ = [
    "KeyframeScheme",
    "KeyframeSelectionScheme",
    "KeyframeRejectionScheme",
    "KeyframeSparsificationScheme",
    "KeyframeRejectionSchemeFlow",
    "KeyframeSelectionSchemePose",
    "KeyframeSparsificationSchemeTime",
]

_log = logging.getLogger(__name__)


def _latest(frames: Mapping[int, Keyframe]) -> Keyframe:
    """Keyframe with the largest time stamp; the first one wins on ties."""
    return max(frames.values(), key=lambda kf: kf.timestamp)


class KeyframeScheme(ABC):
    """Common interface of keyframe selection, rejection and sparsification schemes."""

    @abstractmethod
    def is_usable(self, new_frame: Keyframe, last_frames: Mapping[int, Keyframe]) -> bool:
        """Whether new_frame is accepted when compared with the previously selected frames."""


class KeyframeSelectionScheme(KeyframeScheme, ABC):
    """Frames accepted by such a scheme must be used, otherwise estimation gets unstable."""


class KeyframeRejectionScheme(KeyframeScheme, ABC):
    """Frames not accepted by such a scheme would make the result unstable."""


class KeyframeSparsificationScheme(KeyframeScheme, ABC):
    """Frames not accepted by such a scheme add little information and are dropped."""


class KeyframeRejectionSchemeFlow(KeyframeRejectionScheme):
    """Reject frames whose mean optical flow to the latest keyframe is too small."""

    def __init__(self, min_median_flow: float):
        self.min_median_flow_squared = float(min_median_flow) * float(min_median_flow)

    def __repr__(self) -> str:
        return (
            f"KeyframeRejectionSchemeFlow(min_median_flow="
            f"{math.sqrt(self.min_median_flow_squared)})"
        )

    def is_usable(self, new_frame: Keyframe, last_frames: Mapping[int, Keyframe]) -> bool:
        if not last_frames:
            return True
        if not new_frame.measurements:
            return False

        last_keyframe = _latest(last_frames)
        flows = [
            float(
                (meas.as_vector() - last_keyframe.measurement(lm_id, cam_id).as_vector())
                @ (meas.as_vector() - last_keyframe.measurement(lm_id, cam_id).as_vector())
            )
            ** 0.5
            for lm_id, cam_measurements in new_frame.measurements.items()
            for cam_id, meas in cam_measurements.items()
            if last_keyframe.has_measurement(lm_id, cam_id)
        ]
        if not flows:
            return False

        mean_flow = sum(flows) / len(flows)
        mean_flow_squared = mean_flow * mean_flow
        if mean_flow_squared < self.min_median_flow_squared:
            _log.debug("not enough flow, rejecting frame %d", new_frame.timestamp)
        return mean_flow_squared > self.min_median_flow_squared


class KeyframeSelectionSchemePose(KeyframeSelectionScheme):
    """Select frames whose orientation differs enough from the latest keyframe."""

    def __init__(self, critical_quaternion_difference: float):
        self.critical_quaternion_difference = float(critical_quaternion_difference)

    def __repr__(self) -> str:
        return (
            f"KeyframeSelectionSchemePose(critical_quaternion_difference="
            f"{self.critical_quaternion_difference})"
        )

    def is_usable(self, new_frame: Keyframe, last_frames: Mapping[int, Keyframe]) -> bool:
        if not last_frames:
            return False
        last_keyframe = _latest(last_frames)
        diff = quaternion_difference(new_frame.pose, last_keyframe.pose)
        _log.debug("quaternion diff = %f", diff)
        return diff > self.critical_quaternion_difference


class KeyframeSparsificationSchemeTime(KeyframeSparsificationScheme):
    """Keep frames only if enough time has passed since the latest keyframe."""

    def __init__(self, time_difference_nano_sec: float):
        self.time_difference_nano_sec = time_difference_nano_sec

    def __repr__(self) -> str:
        return (
            f"KeyframeSparsificationSchemeTime(time_difference_nano_sec="
            f"{self.time_difference_nano_sec})"
        )

    def is_usable(self, new_frame: Keyframe, last_frames: Mapping[int, Keyframe]) -> bool:
        if not last_frames:
            return True
        max_ts = _latest(last_frames).timestamp
        return (new_frame.timestamp - max_ts) > self.time_difference_nano_sec