import numpy as np
import pytest

from keyframe_ba.bundle_adjuster import BundleAdjusterKeyframes, NotEnoughKeyframesError
from keyframe_ba.definitions import Camera, Measurement, Tracklet, Tracklets
from keyframe_ba.keyframe import FixationStatus, Keyframe
from keyframe_ba.window import deactivate_keyframes, landmarks_to_deactivate, update_labels

CAMERA = Camera(100.0, (50.0, 50.0))


def make_keyframe(ts, lm_ids, depth=5.0):
    tracks = [
        Tracklet(id=i, feature_points=[Measurement(10.0 + i, 20.0, depth)]) for i in lm_ids
    ]
    return Keyframe(ts, Tracklets(stamps=[ts], tracks=tracks), CAMERA, np.eye(4))


def make_adjuster(landmark_sets):
    adjuster = BundleAdjusterKeyframes()
    for k, ids in enumerate(landmark_sets):
        adjuster.push(make_keyframe(100 * (k + 1), ids))
    return adjuster


def test_deactivate_beyond_max_window():
    adjuster = make_adjuster([[1, 2, 3]] * 5)
    deactivate_keyframes(adjuster, 0, 1, 3)
    assert adjuster.active_keyframe_ids == {300, 400, 500}
    assert adjuster.keyframes[100].is_active is False
    assert adjuster.keyframes[200].is_active is False
    assert adjuster.keyframes[500].is_active is True
    assert adjuster.keyframes[300].fixation_status == FixationStatus.POSE
    assert adjuster.keyframes[400].fixation_status == FixationStatus.SCALE


def test_deactivate_by_connecting_landmarks():
    adjuster = make_adjuster([[1], [2], [3, 4], [3, 4, 5]])
    deactivate_keyframes(adjuster, 1, 1, 10)
    assert adjuster.active_keyframe_ids == {300, 400}
    assert adjuster.active_landmark_ids == {3, 4, 5}
    assert adjuster.keyframes[300].fixation_status == FixationStatus.POSE
    assert adjuster.keyframes[400].fixation_status == FixationStatus.SCALE


def test_min_window_keeps_keyframes():
    adjuster = make_adjuster([[1], [2], [3, 4], [3, 4, 5]])
    deactivate_keyframes(adjuster, 1, 5, 10)
    assert adjuster.active_keyframe_ids == {100, 200, 300, 400}
    assert adjuster.active_landmark_ids == {1, 2, 3, 4, 5}
    assert adjuster.keyframes[100].fixation_status == FixationStatus.POSE


def test_too_few_remaining_keyframes():
    adjuster = make_adjuster([[1], [2], [3]])
    with pytest.raises(NotEnoughKeyframesError):
        deactivate_keyframes(adjuster, 0, 1, 10)
    assert adjuster.active_keyframe_ids == {300}


def test_deactivate_on_empty_adjuster():
    with pytest.raises(NotEnoughKeyframesError):
        deactivate_keyframes(BundleAdjusterKeyframes(), 0, 1, 10)


def test_landmarks_to_deactivate_all():
    adjuster = make_adjuster([[1, 2], [3], [4, 5], [6]])
    assert landmarks_to_deactivate(adjuster, 1.0, 1.0) == {1, 2, 3, 4, 5, 6}


def test_landmarks_to_deactivate_keyframe_fraction():
    adjuster = make_adjuster([[1, 2], [3], [4, 5], [6]])
    assert landmarks_to_deactivate(adjuster, 0.5, 1.0) == {1, 2, 3}
    assert landmarks_to_deactivate(adjuster, 0.0, 1.0) == set()


def test_landmarks_to_deactivate_random_subset():
    adjuster = make_adjuster([[1, 2], [3], [4, 5], [6]])
    first = landmarks_to_deactivate(adjuster, 1.0, 0.5)
    second = landmarks_to_deactivate(adjuster, 1.0, 0.5)
    assert first == second
    assert first <= {1, 2, 3, 4, 5, 6}
    assert 1 <= len(first) <= 3


def test_landmarks_to_deactivate_skips_uninitialised():
    adjuster = make_adjuster([[1, 2], [3], [4, 5], [6]])
    del adjuster.landmarks[6]
    assert landmarks_to_deactivate(adjuster, 1.0, 1.0) == {1, 2, 3, 4, 5}


def _labelled_tracklets():
    return Tracklets(
        stamps=[100],
        tracks=[
            Tracklet(id=1, label=7, is_outlier=True),
            Tracklet(id=2, label=8),
            Tracklet(id=3, label=9),
            Tracklet(id=4, label=0),
            Tracklet(id=99, label=8),
        ],
    )


def test_update_labels_outliers_and_weights():
    adjuster = make_adjuster([[1, 2, 3, 4]])
    labels = {"outliers": {8}, "shrubbery": {9}, "ground": {0}}
    outliers = update_labels(adjuster, _labelled_tracklets(), labels, {4, 50}, 0.3)
    assert outliers == {1, 2, 4, 99}
    assert adjuster.landmarks[3].weight == 0.3
    assert adjuster.landmarks[1].weight == 1.0
    assert adjuster.landmarks[4].is_ground_plane is True
    assert adjuster.landmarks[3].is_ground_plane is False


def test_update_labels_uses_adjuster_labels():
    adjuster = make_adjuster([[1, 2, 3, 4]])
    adjuster.labels["outliers"] = {8}
    adjuster.labels["ground"] = {9}
    outliers = update_labels(adjuster, _labelled_tracklets())
    assert outliers == {1, 2, 99}
    assert adjuster.landmarks[3].is_ground_plane is True