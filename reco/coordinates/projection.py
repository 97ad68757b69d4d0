"""Map a verified homography back onto the original query frame."""

import math
import cv2
import numpy as np
from typing import Tuple

from reco.types import HomographyResult, ImageRequest, TargetMatchQuery, TargetMatchResult


def calculate_y_units(x_units: float, width: int, height: int) -> float:
    """Physical height of a target given its physical width and pixel aspect."""
    if width <= 0 or height <= 0:
        raise ValueError(f"Image size must be positive, got {width}x{height}")
    return x_units / (width / height)


def target_corners(width: int, height: int) -> np.ndarray:
    """Target rectangle corners: bottom-left, bottom-right, top-right, top-left."""
    return np.array([[0, height], [width, height], [width, 0], [0, 0]], dtype=np.float32)


def project_region(H: np.ndarray, width: int, height: int) -> np.ndarray:
    """Project the target rectangle through H. Returns a (4, 2) float32 array."""
    corners = target_corners(width, height).reshape(-1, 1, 2)
    return cv2.perspectiveTransform(corners, np.asarray(H, dtype=np.float64)).reshape(-1, 2)


def to_original_frame(points: np.ndarray, request: ImageRequest) -> np.ndarray:
    """Map processed-query pixels onto the frame the request was built from."""
    offset_x, offset_y = request.roi_offset
    scale_x, scale_y = request.scale
    mapped = np.asarray(points, dtype=np.float32).reshape(-1, 2).copy()
    mapped[:, 0] = (mapped[:, 0] + offset_x) * scale_x
    mapped[:, 1] = (mapped[:, 1] + offset_y) * scale_y
    return mapped


def homography_angle(H: np.ndarray) -> float:
    """In-plane rotation in degrees."""
    return math.degrees(math.atan2(H[1, 0], H[0, 0]))


def to_target_match_result(homography_result: HomographyResult, request: ImageRequest,
                           query: TargetMatchQuery, target: TargetMatchQuery) -> TargetMatchResult:
    """
    Build the match result for one verified target.

    Args:
        homography_result: Verified homography (target pixels -> processed query pixels)
        request: Request the query was extracted from, for the original frame size
        query: Query features
        target: Target whose image rectangle is projected

    Returns:
        TargetMatchResult in original-frame pixel coordinates
    """
    if not homography_result.match_found:
        raise ValueError(f"No homography for target {target.id}")

    H = homography_result.homography
    region = to_original_frame(project_region(H, target.width, target.height), request)

    (center_x, center_y), (width, height), _ = cv2.minAreaRect(region)
    size: Tuple[float, float] = (float(width), float(height))

    return TargetMatchResult(
        id=target.id,
        projected_region=tuple((float(x), float(y)) for x, y in region),
        center_x=float(center_x),
        center_y=float(center_y),
        angle=homography_angle(H),
        size=size,
        homography=tuple(float(v) for v in np.asarray(H).ravel()),
        units_x=target.units_x,
        units_y=target.units_y,
    )
