"""Combine keyframe schemes to choose keyframes from candidate frames."""

from __future__ import annotations

from typing import Iterable, Mapping, Sequence

from keyframe_ba.keyframe import Keyframe
from keyframe_ba.keyframe_schemes import (
    KeyframeRejectionScheme,
    KeyframeScheme,
    KeyframeSelectionScheme,
    KeyframeSparsificationScheme,
)

__all__ = ["KeyframeSelector"]


def _apply_rejection(
    frames: Sequence[Keyframe],
    buffer_selected_frames: Mapping[int, Keyframe],
    schemes: Sequence[KeyframeScheme],
) -> dict[int, Keyframe]:
    """Frames accepted by every scheme, against the buffer and the frames kept so far."""
    selected: dict[int, Keyframe] = {}
    for frame in frames:
        if all(
            scheme.is_usable(frame, buffer_selected_frames) and scheme.is_usable(frame, selected)
            for scheme in schemes
        ):
            selected[len(selected)] = frame
    return selected


def _apply_selection(
    frames: Sequence[Keyframe],
    buffer_selected_frames: Mapping[int, Keyframe],
    schemes: Sequence[KeyframeScheme],
) -> dict[int, Keyframe]:
    """Frames accepted by at least one scheme, against the buffer or the frames kept so far."""
    selected: dict[int, Keyframe] = {}
    for frame in frames:
        if any(
            scheme.is_usable(frame, buffer_selected_frames) or scheme.is_usable(frame, selected)
            for scheme in schemes
        ):
            selected[len(selected)] = frame
    return selected


def _erase_rejected(
    current: dict[int, Keyframe], non_rejected: Mapping[int, Keyframe]
) -> dict[int, Keyframe]:
    """Keep the entries of current whose id is also present among the non rejected ones."""
    return {kf_id: frame for kf_id, frame in current.items() if kf_id in non_rejected}


class KeyframeSelector:
    """Applies rejection, selection and sparsification schemes to candidate frames."""

    def __init__(self) -> None:
        self.selection_schemes: list[KeyframeSelectionScheme] = []
        self.rejection_schemes: list[KeyframeRejectionScheme] = []
        self.sparsification_schemes: list[KeyframeSparsificationScheme] = []

    def __repr__(self) -> str:
        return (
            f"KeyframeSelector(selection={self.selection_schemes}, "
            f"rejection={self.rejection_schemes}, "
            f"sparsification={self.sparsification_schemes})"
        )

    def add_scheme(self, scheme: KeyframeScheme) -> None:
        """Register a scheme according to its kind."""
        if isinstance(scheme, KeyframeSelectionScheme):
            self.selection_schemes.append(scheme)
        elif isinstance(scheme, KeyframeRejectionScheme):
            self.rejection_schemes.append(scheme)
        elif isinstance(scheme, KeyframeSparsificationScheme):
            self.sparsification_schemes.append(scheme)
        else:
            raise TypeError(f"unsupported keyframe scheme: {scheme!r}")

    def select(
        self,
        frames: Iterable[Keyframe],
        buffer_selected_frames: Mapping[int, Keyframe] | None = None,
    ) -> list[Keyframe]:
        """Choose keyframes from frames, given the keyframes selected before.

        Frames are examined in the order given; the result holds each chosen
        frame once, ordered by time stamp.
        """
        candidates = list(frames)
        buffer = dict(buffer_selected_frames or {})

        non_rejected = _apply_rejection(candidates, buffer, self.rejection_schemes)
        selected = _apply_selection(candidates, buffer, self.selection_schemes)
        chosen = list(_erase_rejected(selected, non_rejected).values())

        if self.sparsification_schemes:
            sparsified = _apply_rejection(candidates, buffer, self.sparsification_schemes)
            chosen.extend(_erase_rejected(sparsified, non_rejected).values())

        unique: dict[int, Keyframe] = {}
        for frame in chosen:
            unique.setdefault(id(frame), frame)
        return sorted(unique.values(), key=lambda kf: kf.timestamp)