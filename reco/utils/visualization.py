"""Visualization utilities for debugging and display."""

import cv2
import numpy as np
from typing import Sequence, Tuple

from reco.types import FeatureMatchingResult, TargetMatchResult


def _to_bgr(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    return image.copy()


def draw_keypoints(image: np.ndarray, keypoints: Sequence[cv2.KeyPoint],
                   color: Tuple[int, int, int] = (0, 255, 255)) -> np.ndarray:
    """Draw keypoints with their size and orientation."""
    return cv2.drawKeypoints(_to_bgr(image), list(keypoints), None, color,
                             cv2.DRAW_MATCHES_FLAGS_DRAW_RICH_KEYPOINTS)


def draw_match_region(image: np.ndarray, match: TargetMatchResult,
                      color: Tuple[int, int, int] = (0, 255, 0),
                      thickness: int = 2) -> np.ndarray:
    """Outline one recognized target and label it with its id."""
    output = _to_bgr(image)
    region = np.round(np.array(match.projected_region, dtype=np.float32)).astype(np.int32)
    cv2.polylines(output, [region.reshape(-1, 1, 2)], True, color, thickness)

    center = (int(round(match.center_x)), int(round(match.center_y)))
    cv2.circle(output, center, 3, (0, 0, 255), -1)
    cv2.putText(output, match.id, (center[0] + 5, center[1] - 5),
                cv2.FONT_HERSHEY_SIMPLEX, 0.5, color, 1, cv2.LINE_AA)
    return output


def draw_matches(image: np.ndarray, result: FeatureMatchingResult,
                 color: Tuple[int, int, int] = (0, 255, 0)) -> np.ndarray:
    """Annotate a frame with every match of a result."""
    output = _to_bgr(image)
    for match in result.matches:
        output = draw_match_region(output, match, color)
    return output
