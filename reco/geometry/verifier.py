"""
Geometric verification of a query against one target.

The pipeline is fixed: k-NN matching, a ratio-test uniqueness vote, a
scale/rotation consistency vote, then a RANSAC homography from the survivors.
"""

import logging
import numpy as np
from typing import Optional

from reco.geometry.homography import HomographyCalculator
from reco.geometry.optimizer import HomographyOptimizer
from reco.geometry.voting import vote_for_size_and_orientation, vote_for_uniqueness
from reco.matching.descriptor_matcher import DescriptorMatcher
from reco.types import HomographyResult, TargetMatchQuery

logger = logging.getLogger(__name__)

K_NEIGHBOURS = 2
UNIQUENESS_THRESHOLD = 0.8
SCALE_INCREMENT = 1.5
ROTATION_BINS = 20
MIN_UNIQUE_MATCHES = 4
MIN_CONSISTENT_MATCHES = 36


class GeometricVerifier:
    """Decide whether a target appears in a query and estimate where."""

    def __init__(self, matcher: Optional[DescriptorMatcher] = None,
                 homography_calculator: Optional[HomographyCalculator] = None,
                 optimizer: Optional[HomographyOptimizer] = None):
        self.matcher = matcher or DescriptorMatcher()
        self.homography_calculator = homography_calculator or HomographyCalculator()
        self.optimizer = optimizer

    def verify(self, query: TargetMatchQuery, target: TargetMatchQuery) -> HomographyResult:
        """
        Verify a query against a target.

        Args:
            query: Features of the processed query frame
            target: Features of an indexed target

        Returns:
            HomographyResult; its matrix maps target image pixels to processed
            query pixels, and is None when any stage rejects the pair
        """
        matches = self.matcher.knn_match(query.descriptors, target.descriptors, k=K_NEIGHBOURS)
        if not matches:
            return HomographyResult()

        mask = np.full(len(matches), 255, dtype=np.uint8)

        unique = vote_for_uniqueness(matches, UNIQUENESS_THRESHOLD, mask)
        if unique < MIN_UNIQUE_MATCHES:
            return HomographyResult()

        consistent = vote_for_size_and_orientation(target.keypoints, query.keypoints, matches,
                                                   mask, SCALE_INCREMENT, ROTATION_BINS)
        if consistent < MIN_CONSISTENT_MATCHES:
            logger.debug("Target %s: %d unique, %d consistent matches", target.id, unique, consistent)
            return HomographyResult()

        H, src_points, dst_points, inlier_mask = self.homography_calculator.estimate_from_matches(
            target.keypoints, query.keypoints, matches, mask
        )
        if H is None:
            return HomographyResult()

        if self.optimizer is not None:
            inliers = inlier_mask.ravel().astype(bool)
            H = self.optimizer.optimize(H, src_points[inliers], dst_points[inliers])

        logger.debug("Target %s: homography from %d consistent matches", target.id, consistent)
        return HomographyResult(H, consistent)
