"""Match filtering votes run before homography estimation."""

import numpy as np
from typing import List, Sequence

import cv2


def vote_for_uniqueness(matches: List[List[cv2.DMatch]], threshold: float,
                        mask: np.ndarray) -> int:
    """
    Ratio test over k-NN matches, in place.

    A mask entry is kept only when its best distance is at most ``threshold``
    times a non-zero second-best distance. Entries with fewer than two
    neighbours, or tied at distance zero, are cleared.

    Returns:
        Number of mask entries still set
    """
    for i, neighbours in enumerate(matches):
        if not mask[i]:
            continue
        if len(neighbours) < 2:
            mask[i] = 0
            continue
        best, second = neighbours[0].distance, neighbours[1].distance
        if second <= 0 or best > threshold * second:
            mask[i] = 0

    return int(np.count_nonzero(mask))


def vote_for_size_and_orientation(model_keypoints: Sequence[cv2.KeyPoint],
                                  observed_keypoints: Sequence[cv2.KeyPoint],
                                  matches: List[List[cv2.DMatch]], mask: np.ndarray,
                                  scale_increment: float, rotation_bins: int) -> int:
    """
    Keep only matches agreeing on the dominant scale change and rotation.

    Each surviving match votes into a 2-D histogram of log10 size ratio
    (observed / model) and orientation difference in [0, 360). Scale bins are
    ``log10(scale_increment)`` wide, at least two of them. Bins holding no more
    than half the peak are dropped, and mask entries voting into them cleared.

    Args:
        model_keypoints: Keypoints indexed by ``DMatch.trainIdx``
        observed_keypoints: Keypoints indexed by ``DMatch.queryIdx``
        matches: k-NN matches, best neighbour first
        mask: Per-match flags, updated in place
        scale_increment: Ratio between consecutive scale bins
        rotation_bins: Number of bins over 360 degrees

    Returns:
        Number of mask entries still set
    """
    indices = np.flatnonzero(mask)
    if len(indices) == 0:
        return 0

    log_scales = np.empty(len(indices), dtype=np.float64)
    rotations = np.empty(len(indices), dtype=np.float64)
    for j, i in enumerate(indices):
        best = matches[i][0]
        observed = observed_keypoints[best.queryIdx]
        model = model_keypoints[best.trainIdx]
        log_scales[j] = np.log10(observed.size / model.size)
        rotation = observed.angle - model.angle
        rotations[j] = rotation + 360.0 if rotation < 0 else rotation

    step = np.log10(scale_increment)
    min_scale = log_scales.min()
    scale_bins = max(int(np.ceil((log_scales.max() - min_scale) / step)), 2)

    # the top edge of the histogram is closed so the largest ratio keeps its bin
    scale_index = np.minimum(((log_scales - min_scale) / step).astype(int), scale_bins - 1)
    rotation_index = np.clip((rotations * rotation_bins / 360.0).astype(int), 0, rotation_bins - 1)

    histogram = np.zeros((scale_bins, rotation_bins), dtype=np.float64)
    np.add.at(histogram, (scale_index, rotation_index), 1.0)

    keep = histogram[scale_index, rotation_index] > 0.5 * histogram.max()
    mask[indices[~keep]] = 0

    return int(np.count_nonzero(keep))
