"""Keypoint detection and descriptor extraction."""

import logging
import cv2
import numpy as np
from typing import Tuple

from reco.detection.options import (
    AgastOptions, AKAZEOptions, BRISKOptions, ExtractorType, FastOptions, GFTTOptions,
    KAZEOptions, MSEROptions, ORBOptions, SIFTOptions, SimpleBlobOptions
)
from reco.types import ImageRequest, empty_descriptors

logger = logging.getLogger(__name__)

_ORB_SCORES = {
    "HARRIS": cv2.ORB_HARRIS_SCORE,
    "FAST": cv2.ORB_FAST_SCORE,
}

_KAZE_DIFFUSIVITY = {
    "PM_G1": cv2.KAZE_DIFF_PM_G1,
    "PM_G2": cv2.KAZE_DIFF_PM_G2,
    "WEICKERT": cv2.KAZE_DIFF_WEICKERT,
    "CHARBONNIER": cv2.KAZE_DIFF_CHARBONNIER,
}


def _lookup(table, value, what):
    try:
        return table[str(value).upper()]
    except KeyError:
        raise ValueError(f"Unknown {what}: {value}") from None


def _create_sift(o: SIFTOptions):
    return cv2.SIFT_create(o.n_features, o.n_octave_layers, o.contrast_threshold,
                           o.edge_threshold, o.sigma)


def _create_orb(o: ORBOptions):
    return cv2.ORB_create(o.n_features, o.scale_factor, o.n_levels, o.edge_threshold,
                          o.first_level, o.wta_k, _lookup(_ORB_SCORES, o.score_type, "ORB score type"),
                          o.patch_size, o.fast_threshold)


def _create_kaze(o: KAZEOptions):
    return cv2.KAZE_create(o.extended, o.upright, o.threshold, o.n_octaves, o.n_octave_layers,
                           _lookup(_KAZE_DIFFUSIVITY, o.diffusivity, "KAZE diffusivity"))


def _create_akaze(o: AKAZEOptions):
    detector = cv2.AKAZE_create()
    detector.setThreshold(o.threshold)
    detector.setNOctaves(o.n_octaves)
    detector.setNOctaveLayers(o.n_octave_layers)
    detector.setDiffusivity(_lookup(_KAZE_DIFFUSIVITY, o.diffusivity, "AKAZE diffusivity"))
    return detector


def _create_mser(o: MSEROptions):
    return cv2.MSER_create(o.delta, o.min_area, o.max_area)


def _create_agast(o: AgastOptions):
    return cv2.AgastFeatureDetector_create(o.threshold, o.nonmax_suppression)


def _create_brisk(o: BRISKOptions):
    return cv2.BRISK_create(o.threshold, o.octaves, o.pattern_scale)


def _create_gftt(o: GFTTOptions):
    return cv2.GFTTDetector_create(o.max_corners, o.quality_level, o.min_distance,
                                   o.block_size, o.use_harris_detector, o.k)


def _create_fast(o: FastOptions):
    return cv2.FastFeatureDetector_create(o.threshold, o.nonmax_suppression)


def _create_simple_blob(o: SimpleBlobOptions):
    params = cv2.SimpleBlobDetector_Params()
    params.minThreshold = o.min_threshold
    params.maxThreshold = o.max_threshold
    params.filterByArea = o.filter_by_area
    params.minArea = o.min_area
    params.maxArea = o.max_area
    return cv2.SimpleBlobDetector_create(params)


FACTORIES = {
    ExtractorType.SIFT: _create_sift,
    ExtractorType.ORB: _create_orb,
    ExtractorType.KAZE: _create_kaze,
    ExtractorType.AKAZE: _create_akaze,
    ExtractorType.MSER: _create_mser,
    ExtractorType.AGAST: _create_agast,
    ExtractorType.BRISK: _create_brisk,
    ExtractorType.GFTT: _create_gftt,
    ExtractorType.FAST: _create_fast,
    ExtractorType.SIMPLE_BLOB: _create_simple_blob,
}

# descriptor size of the SIFT describer paired with detector-only algorithms
SIFT_DESCRIPTOR_SIZE = 128


class FeatureExtractor:
    """Extract keypoints and float32 descriptors with a configurable OpenCV algorithm."""

    def __init__(self, options=None):
        """
        Initialize feature extractor.

        Args:
            options: One of the options dataclasses from ``reco.detection.options``;
                SIFT with OpenCV defaults when omitted
        """
        self.options = options if options is not None else SIFTOptions()
        self.extractor_type = self.options.type
        self._factory = FACTORIES[self.extractor_type]
        # validate parameters once; the hot path builds its own instances
        self._factory(self.options)

    @property
    def descriptor_size(self) -> int:
        """Width of the descriptors this extractor produces."""
        if self.extractor_type.computes_descriptors:
            return int(self.create_detector().descriptorSize())
        return SIFT_DESCRIPTOR_SIZE

    def create_detector(self):
        """A fresh cv2.Feature2D; instances are never shared between threads."""
        return self._factory(self.options)

    def extract_keypoints(self, image: np.ndarray) -> Tuple[Tuple[cv2.KeyPoint, ...], np.ndarray]:
        """
        Detect keypoints and compute descriptors.

        Args:
            image: Grayscale or BGR image

        Returns:
            (keypoints, descriptors) with descriptors as float32 of shape (n, d)
        """
        if image is None or image.size == 0:
            return (), empty_descriptors()

        detector = self.create_detector()

        if self.extractor_type.computes_descriptors:
            keypoints, descriptors = detector.detectAndCompute(image, None)
            descriptor_size = detector.descriptorSize()
        else:
            keypoints = detector.detect(image, None)
            describer = cv2.SIFT_create()
            descriptors = None
            if keypoints:
                keypoints, descriptors = describer.compute(image, keypoints)
            descriptor_size = SIFT_DESCRIPTOR_SIZE

        keypoints = tuple(keypoints or ())
        if descriptors is None or len(keypoints) == 0:
            return (), empty_descriptors(descriptor_size)

        return keypoints, np.ascontiguousarray(descriptors, dtype=np.float32)

    def detect_and_compute(self, request: ImageRequest) -> Tuple[Tuple[cv2.KeyPoint, ...], np.ndarray]:
        """Extract features from a preprocessed request."""
        if request.is_empty:
            return (), empty_descriptors()

        keypoints, descriptors = self.extract_keypoints(request.image)
        logger.debug("Request %s: %d %s keypoints", request.id, len(keypoints),
                     self.extractor_type.value)
        return keypoints, descriptors
