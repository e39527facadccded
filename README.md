# keyframe_ba

Keyframe and landmark bookkeeping for keyframe-based bundle adjustment in
monocular and multi-camera visual odometry.

The package holds the state that surrounds a bundle adjustment optimiser:
keyframes, landmarks, which of them are active, and the rules that decide
which frames become keyframes.

## Modules

- `keyframe_ba.definitions`: the basic types `Measurement` (u, v and an
  optional depth `d`, negative meaning none), `Landmark`, `Plane`, `Camera`,
  `Tracklet` and `Tracklets`; conversion between 4x4 matrices and pose
  vectors `[qw, qx, qy, qz, tx, ty, tz]` (`pose_from_matrix`,
  `matrix_from_pose`); timestamp conversion (`ns_to_sec`, `sec_to_ns`);
  `measurement_to_ray`, `quaternion_difference`, `reproject` and
  `rot_rocc_metric`.
- `keyframe_ba.keyframe`: `Keyframe` gathers, per camera, the measurement of
  every track at its timestamp, and stores its pose, local ground plane,
  `FixationStatus` and whether it is active. A single `Camera` gets id 0;
  several cameras need a landmark-to-cameras lookup.
- `keyframe_ba.regularization`: `delta_y_from_yaw` and
  `motion_model_residual`, the residual of the motion between two poses
  against a planar circular motion model.
- `keyframe_ba.keyframe_schemes`: the abstract `KeyframeScheme` and its
  kinds `KeyframeSelectionScheme`, `KeyframeRejectionScheme` and
  `KeyframeSparsificationScheme`, with concrete schemes:
  `KeyframeSelectionSchemePose` (rotation to the latest keyframe above a
  threshold), `KeyframeRejectionSchemeFlow` (mean optical flow to the latest
  keyframe above a threshold) and `KeyframeSparsificationSchemeTime` (time
  since the latest keyframe above a threshold, in nanoseconds).
- `keyframe_ba.keyframe_selector`: `KeyframeSelector.add_scheme` sorts a
  scheme by its kind; `KeyframeSelector.select` returns the frames chosen by
  the selection and sparsification schemes that no rejection scheme
  refused, ordered by timestamp.
- `keyframe_ba.landmark_init`: `contains_depth`, `common_landmark_ids`,
  `landmark_from_depth` and `triangulate_rays` (least-squares point closest
  to two or more viewing rays).
- `keyframe_ba.bundle_adjuster`: `BundleAdjusterKeyframes` stores keyframes
  by timestamp. `push` and `push_all` copy keyframes in and create landmarks
  from measured depth or, failing that, by triangulating over the active
  keyframes. It offers `active_landmarks`, `selected_landmarks`,
  `active_keyframes`, `sorted_active_keyframes`, `measurements_and_poses`
  and `get_keyframe` (the newest active keyframe for a negative time, else
  the keyframe at that time in seconds). Errors are `NotEnoughKeyframesError`
  and `KeyframeNotFoundError`.
- `keyframe_ba.window`: `deactivate_keyframes` slides the optimisation
  window and marks the two oldest remaining keyframes for pose and scale
  fixation; `landmarks_to_deactivate` picks, reproducibly, landmarks to hold
  fixed; `update_labels` applies semantic labels (outliers, shrubbery,
  ground) to landmark weights and ground flags and returns the outlier ids.
- `keyframe_ba.helpers`: `pose_to_string`, `load_label_set` (integer labels
  from a YAML sequence), `get_matches` and `mean_flow`.
- `keyframe_ba.colors`: `hsv_to_bgr`, `color_by_index` and `random_color`,
  BGR colours derived from identifiers.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Example

```python
import numpy as np

from keyframe_ba.definitions import Camera, Measurement, Tracklet, Tracklets
from keyframe_ba.keyframe import Keyframe
from keyframe_ba.bundle_adjuster import BundleAdjusterKeyframes

camera = Camera(focal_length=500.0, principal_point=np.array([320.0, 240.0]),
                pose_camera_vehicle=np.eye(4))

tracklets = Tracklets(
    stamps=[0, 100_000_000],
    tracks=[Tracklet(id=1, feature_points=[Measurement(330.0, 250.0, 10.0),
                                           Measurement(335.0, 252.0, 9.5)])],
)

adjuster = BundleAdjusterKeyframes()
adjuster.push(Keyframe(0, tracklets, camera, np.eye(4)))

print(adjuster.active_landmarks())
print(adjuster.get_keyframe(-1.0).timestamp)
```

Poses are stored as seven numbers, a unit quaternion followed by a
translation, and describe the transform from the origin into the keyframe.
Timestamps are integers in nanoseconds.

## What the package does not do

- It does not optimise. There is no non-linear least-squares solver: poses
  and landmark positions are only initialised and bookkept, never refined,
  and there is no pose-only adjustment.
- It has no landmark selection or rejection schemes; the set of selected
  landmarks is whatever the caller puts into `selected_landmark_ids`.
- It does not write maps to files or draw flow images.
- It has no command-line program; it is a library only.