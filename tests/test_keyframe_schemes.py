import math

import numpy as np
import pytest

from keyframe_ba.definitions import Camera, Measurement, Tracklet, Tracklets
from keyframe_ba.keyframe import Keyframe
from keyframe_ba.keyframe_schemes import (
    KeyframeRejectionScheme,
    KeyframeRejectionSchemeFlow,
    KeyframeScheme,
    KeyframeSelectionScheme,
    KeyframeSelectionSchemePose,
    KeyframeSparsificationScheme,
    KeyframeSparsificationSchemeTime,
)


def _rot_z(angle):
    m = np.eye(4)
    c, s = math.cos(angle), math.sin(angle)
    m[:2, :2] = [[c, -s], [s, c]]
    return m


def make_keyframe(ts, points=None, pose=None):
    points = points or {}
    tracklets = Tracklets(
        stamps=[ts],
        tracks=[Tracklet(id=i, feature_points=[Measurement(u, v)]) for i, (u, v) in points.items()],
    )
    camera = Camera(500.0, (320.0, 240.0))
    return Keyframe(ts, tracklets, camera, np.eye(4) if pose is None else pose)


def test_base_classes_are_abstract():
    for cls in (
        KeyframeScheme,
        KeyframeSelectionScheme,
        KeyframeRejectionScheme,
        KeyframeSparsificationScheme,
    ):
        with pytest.raises(TypeError):
            cls()


def test_flow_stores_squared_threshold():
    assert KeyframeRejectionSchemeFlow(3.0).min_median_flow_squared == pytest.approx(9.0)


def test_flow_accepts_without_previous_frames():
    scheme = KeyframeRejectionSchemeFlow(100.0)
    assert scheme.is_usable(make_keyframe(10), {}) is True


def test_flow_rejects_frame_without_measurements():
    scheme = KeyframeRejectionSchemeFlow(0.0)
    last = make_keyframe(0, {1: (0.0, 0.0)})
    assert scheme.is_usable(make_keyframe(10), {0: last}) is False


def test_flow_threshold():
    last = make_keyframe(0, {1: (0.0, 0.0), 2: (10.0, 10.0)})
    new = make_keyframe(10, {1: (3.0, 4.0), 2: (13.0, 14.0)})
    assert KeyframeRejectionSchemeFlow(4.0).is_usable(new, {0: last}) is True
    assert KeyframeRejectionSchemeFlow(6.0).is_usable(new, {0: last}) is False


def test_flow_equal_to_threshold_is_rejected():
    last = make_keyframe(0, {1: (0.0, 0.0)})
    new = make_keyframe(10, {1: (3.0, 4.0)})
    assert KeyframeRejectionSchemeFlow(5.0).is_usable(new, {0: last}) is False


def test_flow_without_common_landmarks_is_rejected():
    last = make_keyframe(0, {1: (0.0, 0.0)})
    new = make_keyframe(10, {2: (300.0, 400.0)})
    assert KeyframeRejectionSchemeFlow(1.0).is_usable(new, {0: last}) is False


def test_flow_compares_with_latest_keyframe():
    older = make_keyframe(0, {1: (100.0, 100.0)})
    newer = make_keyframe(5, {1: (0.0, 0.0)})
    new = make_keyframe(10, {1: (0.5, 0.0)})
    scheme = KeyframeRejectionSchemeFlow(1.0)
    assert scheme.is_usable(new, {0: older, 1: newer}) is False
    assert scheme.is_usable(new, {0: older}) is True


def test_pose_rejects_without_previous_frames():
    scheme = KeyframeSelectionSchemePose(0.0)
    assert scheme.is_usable(make_keyframe(10, pose=_rot_z(1.0)), {}) is False


def test_pose_threshold():
    last = make_keyframe(0)
    new = make_keyframe(10, pose=_rot_z(0.3))
    assert KeyframeSelectionSchemePose(0.2).is_usable(new, {0: last}) is True
    assert KeyframeSelectionSchemePose(0.4).is_usable(new, {0: last}) is False


def test_pose_compares_with_latest_keyframe():
    older = make_keyframe(0, pose=_rot_z(0.3))
    newer = make_keyframe(5)
    new = make_keyframe(10, pose=_rot_z(0.3))
    scheme = KeyframeSelectionSchemePose(0.2)
    assert scheme.is_usable(new, {0: older, 1: newer}) is True
    assert scheme.is_usable(new, {0: older}) is False


def test_time_accepts_without_previous_frames():
    assert KeyframeSparsificationSchemeTime(1e12).is_usable(make_keyframe(10), {}) is True


def test_time_threshold():
    last = make_keyframe(50)
    new = make_keyframe(100)
    assert KeyframeSparsificationSchemeTime(40).is_usable(new, {0: last}) is True
    assert KeyframeSparsificationSchemeTime(60).is_usable(new, {0: last}) is False
    assert KeyframeSparsificationSchemeTime(50).is_usable(new, {0: last}) is False


def test_time_uses_largest_timestamp():
    frames = {0: make_keyframe(90), 1: make_keyframe(10)}
    assert KeyframeSparsificationSchemeTime(20).is_usable(make_keyframe(100), frames) is False