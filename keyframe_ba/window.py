"""Management of the optimisation window: keyframes, landmarks and their labels."""

from __future__ import annotations

import logging
import math
import random
from typing import Iterable, Mapping

from keyframe_ba.bundle_adjuster import BundleAdjusterKeyframes, NotEnoughKeyframesError
from keyframe_ba.definitions import Tracklets
from keyframe_ba.keyframe import FixationStatus
from keyframe_ba.landmark_init import common_landmark_ids

__all__ = ["deactivate_keyframes", "landmarks_to_deactivate", "update_labels"]

_log = logging.getLogger(__name__)


def deactivate_keyframes(
    adjuster: BundleAdjusterKeyframes,
    min_num_connecting_landmarks: int,
    min_size_optimization_window: int,
    max_size_optimization_window: int,
) -> None:
    """Shrink the set of active keyframes and landmarks.

    Keyframes are counted from the newest (index 0). Those beyond the maximum
    window size are deactivated, those within the minimum window size are kept,
    and the others stay active only if they share more than
    min_num_connecting_landmarks landmarks with the newest keyframe. Afterwards
    the oldest active keyframe has its pose fixed and the second oldest its scale.
    """
    ordered = sorted(adjuster.active_keyframes().items(), key=lambda item: item[1].timestamp)
    if not ordered:
        raise NotEnoughKeyframesError(0, 1)
    newest = ordered[-1][1]

    for n, (kf_id, kf) in enumerate(reversed(ordered)):
        if n > max_size_optimization_window - 1:
            kf.is_active = False
        elif n < min_size_optimization_window - 1:
            kf.is_active = True
        else:
            connecting = common_landmark_ids(kf, newest)
            _log.debug("keyframe %d: %d connecting landmarks", n, len(connecting))
            kf.is_active = len(connecting) > min_num_connecting_landmarks
        if not kf.is_active:
            adjuster.active_keyframe_ids.discard(kf_id)

    adjuster.active_landmark_ids = {
        lm_id
        for kf_id in adjuster.active_keyframe_ids
        for lm_id in adjuster.keyframes[kf_id].measurements
        if lm_id in adjuster.active_landmark_ids
    }

    remaining = sorted(adjuster.active_keyframes().items(), key=lambda item: item[1].timestamp)
    if len(remaining) < 2:
        raise NotEnoughKeyframesError(len(remaining), 2)
    remaining[0][1].fixation_status = FixationStatus.POSE
    remaining[1][1].fixation_status = FixationStatus.SCALE


def landmarks_to_deactivate(
    adjuster: BundleAdjusterKeyframes, keyframe_fraction: float, landmark_fraction: float
) -> set[int]:
    """Ids of the landmarks to hold fixed in a motion-only adjustment.

    Candidates are the landmarks seen in the oldest keyframe_fraction of the active
    keyframes (all active landmarks if the fraction is 1). From these, a share of
    landmark_fraction is drawn at random with a fixed seed, so the result is
    reproducible. Only landmarks that were initialised are returned.
    """
    if keyframe_fraction == 1.0:
        candidates = set(adjuster.active_landmark_ids)
    else:
        active_ids = sorted(adjuster.active_keyframe_ids)
        max_ind = math.floor(len(active_ids) * keyframe_fraction)
        candidates = {
            lm_id
            for kf_id in active_ids[:max_ind]
            for lm_id in adjuster.keyframes[kf_id].measurements
        }

    if landmark_fraction == 1.0:
        chosen = candidates
    else:
        pool = sorted(candidates)
        rng = random.Random(0)
        num_lms = math.floor(len(pool) * landmark_fraction) if pool else 0
        chosen = {pool[rng.randrange(len(pool))] for _ in range(num_lms)}

    return {lm_id for lm_id in chosen if lm_id in adjuster.landmarks}


def update_labels(
    adjuster: BundleAdjusterKeyframes,
    tracklets: Tracklets,
    labels: Mapping[str, set[int]] | None = None,
    previous_outliers: Iterable[int] = (),
    shrubbery_weight: float = 1.0,
) -> set[int]:
    """Update landmark weights and ground flags from track labels; return the outlier ids.

    Previous outliers are kept while they are still active. Tracks marked as
    outliers, or whose label counts as outlier, are added. Active landmarks
    labelled as shrubbery get shrubbery_weight, and each active landmark's
    ground flag follows its label.
    """
    if labels is None:
        labels = adjuster.labels
    outlier_labels = labels.get("outliers", set())
    shrubbery_labels = labels.get("shrubbery", set())
    ground_labels = labels.get("ground", set())

    outliers = {lm_id for lm_id in previous_outliers if lm_id in adjuster.active_landmark_ids}
    outliers.update(
        track.id
        for track in tracklets.tracks
        if track.is_outlier or track.label in outlier_labels
    )

    for track in tracklets.tracks:
        if track.id not in adjuster.active_landmark_ids:
            continue
        landmark = adjuster.landmarks[track.id]
        if track.label in shrubbery_labels:
            landmark.weight = shrubbery_weight
        landmark.is_ground_plane = track.label in ground_labels

    return outliers