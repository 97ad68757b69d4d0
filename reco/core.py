"""
Reco Core
Image target recognition engine
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, Optional, Tuple, Union

import numpy as np

from reco.config import DEFAULT_CONFIG, merge_config
from reco.coordinates.projection import calculate_y_units, to_target_match_result
from reco.dataset.target import DatasetFormatError, Target, TargetDataset
from reco.detection.feature_extractor import FeatureExtractor
from reco.detection.options import options_from_config
from reco.geometry.homography import HomographyCalculator
from reco.geometry.optimizer import HomographyOptimizer
from reco.geometry.verifier import GeometricVerifier
from reco.matching.descriptor_matcher import DescriptorMatcher, matcher_options_from_config
from reco.preprocessing.enhancement import ImageRequestBuilder
from reco.types import FeatureMatchingResult, ImageData, ImageRequest, TargetMatchQuery
from reco.utils.metrics import PerformanceMetrics

logger = logging.getLogger(__name__)


class RecognitionNotReadyError(RuntimeError):
    """Raised when matching is attempted before the engine has been initialized."""


class ImageRecognition:
    """Match query frames against an in-memory index of reference targets."""

    def __init__(self, config: Dict[str, Any] = None,
                 extractor: Optional[FeatureExtractor] = None,
                 verifier: Optional[GeometricVerifier] = None,
                 request_builder: Optional[ImageRequestBuilder] = None):
        """
        Initialize the recognition engine

        Args:
            config: Configuration overrides merged onto DEFAULT_CONFIG (optional)
            extractor: Feature extractor; built from the ``extractor`` section when omitted
            verifier: Geometric verifier; built from ``matcher`` and ``verification`` when omitted
            request_builder: Preprocessing for ``match_image`` and raw-image targets
        """
        self.config = merge_config(DEFAULT_CONFIG, config)

        self.extractor = extractor or FeatureExtractor(options_from_config(self.config['extractor']))
        self.verifier = verifier or self._create_verifier(self.config)
        self.request_builder = request_builder or ImageRequestBuilder.from_config(
            self.config['preprocessing']
        )

        self._index: Tuple[TargetMatchQuery, ...] = ()
        self._is_ready = False
        self._init_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=self.config['engine'].get('max_workers'),
                                            thread_name_prefix='reco')

    @staticmethod
    def _create_verifier(config: Dict[str, Any]) -> GeometricVerifier:
        verification = config['verification']
        calculator = HomographyCalculator(
            ransac_threshold=verification['ransac_threshold'],
            max_iters=verification['ransac_iterations'],
            confidence=verification.get('confidence', 0.995),
        )
        optimizer = HomographyOptimizer() if verification.get('refine') else None
        matcher = DescriptorMatcher(matcher_options_from_config(config['matcher']))
        return GeometricVerifier(matcher, calculator, optimizer)

    @property
    def is_ready(self) -> bool:
        return self._is_ready

    @property
    def target_ids(self) -> Tuple[str, ...]:
        return tuple(t.id for t in self._index)

    def init(self, entries: Union[TargetDataset, Iterable[Union[Target, ImageData]]]):
        """
        Build the target index and make the engine ready.

        Args:
            entries: A TargetDataset, or an iterable of Target and/or ImageData

        The previous index stays in use until the new one is complete; a
        failure while building leaves it untouched.
        """
        items = list(entries)

        with self._init_lock:
            metrics = PerformanceMetrics()
            with metrics.measure('init'):
                index = tuple(self._executor.map(self._build_query, items))

            self._index = index
            self._is_ready = True

        logger.info("Recognition index ready with %d targets", len(index))
        metrics.log_summary(logger, "Index build: ")

    def init_from_file(self, path):
        """Load a dataset file and initialize from it."""
        self.init(TargetDataset.load(path))

    def _build_query(self, entry: Union[Target, ImageData]) -> TargetMatchQuery:
        if isinstance(entry, Target):
            query = entry.to_match_query()
            expected = self.extractor.descriptor_size
            if len(query.descriptors) and query.descriptors.shape[1] != expected:
                raise DatasetFormatError(f"Target {entry.id}: {query.descriptors.shape[1]}-wide "
                                         f"descriptors, extractor produces {expected}")
            return query

        if isinstance(entry, ImageData):
            request = self.request_builder.build(entry.image, entry.id)
            keypoints, descriptors = self.extractor.detect_and_compute(request)
            units_y = calculate_y_units(1.0, request.width, request.height) if not request.is_empty else 1.0
            return TargetMatchQuery(entry.id, request.image, keypoints, descriptors, 1.0, units_y)

        raise TypeError(f"Cannot index entry of type {type(entry).__name__}")

    def match(self, request: ImageRequest) -> FeatureMatchingResult:
        """
        Recognize targets in a preprocessed request.

        Args:
            request: Query built by an ImageRequestBuilder

        Returns:
            FeatureMatchingResult with one entry per recognized target, in no
            particular order
        """
        if not self._is_ready:
            raise RecognitionNotReadyError("Image recognition system is not ready.")

        # one snapshot per call, re-init swaps the attribute
        index = self._index

        if request.is_empty or not index:
            return FeatureMatchingResult()

        metrics = PerformanceMetrics()
        with metrics.measure('extraction'):
            keypoints, descriptors = self.extractor.detect_and_compute(request)

        if len(keypoints) == 0:
            return FeatureMatchingResult()

        query = TargetMatchQuery(request.id, request.image, keypoints, descriptors)

        with metrics.measure('verification'):
            futures = [self._executor.submit(self._match_target, request, query, target)
                       for target in index]
            results = [f.result() for f in futures]

        matches = tuple(r for r in results if r is not None)
        metrics.log_summary(logger, f"Request {request.id}: {len(matches)}/{len(index)} matched, ")
        return FeatureMatchingResult(matches)

    def _match_target(self, request: ImageRequest, query: TargetMatchQuery, target: TargetMatchQuery):
        homography = self.verifier.verify(query, target)
        if not homography.match_found:
            return None
        return to_target_match_result(homography, request, query, target)

    def match_image(self, image: np.ndarray, request_id: Optional[str] = None) -> FeatureMatchingResult:
        """Preprocess a raw frame with the engine's builder and match it."""
        return self.match(self.request_builder.build(image, request_id))

    def close(self):
        self._executor.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
