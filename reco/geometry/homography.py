"""Homography calculation and transformation."""

import logging
import cv2
import numpy as np
from typing import List, Optional, Sequence, Tuple

from reco.coordinates.validator import HomographyValidator

logger = logging.getLogger(__name__)


class HomographyCalculator:
    """Calculate homography transformation matrix."""

    def __init__(self, ransac_threshold: float = 2.0, max_iters: int = 2000,
                 confidence: float = 0.995):
        self.ransac_threshold = ransac_threshold
        self.max_iters = max_iters
        self.confidence = confidence
        self.validator = HomographyValidator()

    def calculate(self, src_points: np.ndarray,
                  dst_points: np.ndarray) -> Tuple[Optional[np.ndarray], Optional[np.ndarray]]:
        """
        Calculate homography matrix using RANSAC.

        Returns:
            (H, inlier mask); (None, None) with fewer than four points or when
            RANSAC finds no valid model
        """
        if len(src_points) < 4 or len(dst_points) < 4:
            return None, None

        H, inlier_mask = cv2.findHomography(
            np.asarray(src_points, dtype=np.float32).reshape(-1, 1, 2),
            np.asarray(dst_points, dtype=np.float32).reshape(-1, 1, 2),
            cv2.RANSAC, self.ransac_threshold,
            maxIters=self.max_iters, confidence=self.confidence
        )

        valid, reason = self.validator.validate_transformation(H)
        if not valid:
            logger.debug("Rejected homography: %s", reason)
            return None, None

        return H, inlier_mask

    def estimate_from_matches(self, model_keypoints: Sequence[cv2.KeyPoint],
                              observed_keypoints: Sequence[cv2.KeyPoint],
                              matches: List[List[cv2.DMatch]],
                              mask: np.ndarray) -> Tuple[Optional[np.ndarray], np.ndarray, np.ndarray, Optional[np.ndarray]]:
        """
        Estimate the homography mapping model keypoints onto observed ones.

        Args:
            model_keypoints: Keypoints indexed by ``DMatch.trainIdx``
            observed_keypoints: Keypoints indexed by ``DMatch.queryIdx``
            matches: k-NN matches, best neighbour first
            mask: Non-zero entries select the matches to use

        Returns:
            (H or None, model points, observed points, RANSAC inlier mask)
        """
        selected = np.flatnonzero(mask)
        src_points = np.array([model_keypoints[matches[i][0].trainIdx].pt for i in selected],
                              dtype=np.float32).reshape(-1, 2)
        dst_points = np.array([observed_keypoints[matches[i][0].queryIdx].pt for i in selected],
                              dtype=np.float32).reshape(-1, 2)

        H, inlier_mask = self.calculate(src_points, dst_points)
        return H, src_points, dst_points, inlier_mask

    def transform_points(self, points: np.ndarray, H: np.ndarray) -> np.ndarray:
        """Transform points using homography matrix."""
        points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        points_homogeneous = np.hstack([points, np.ones((points.shape[0], 1))])
        transformed = (H @ points_homogeneous.T).T
        return transformed[:, :2] / transformed[:, 2:]

    def calculate_reprojection_error(self, src_points: np.ndarray, dst_points: np.ndarray,
                                     H: Optional[np.ndarray]) -> float:
        """
        Calculate average reprojection error.

        Returns:
            Mean distance in pixels between H(src) and dst; inf without a matrix
        """
        if H is None or len(src_points) == 0:
            return float('inf')

        transformed = self.transform_points(src_points, H)
        errors = np.linalg.norm(transformed - np.asarray(dst_points).reshape(-1, 2), axis=1)
        return float(np.mean(errors))
