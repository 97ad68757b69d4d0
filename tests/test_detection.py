"""Tests for detection module."""

import pytest
import numpy as np
from reco.detection.feature_extractor import FeatureExtractor
from reco.detection.options import (
    ExtractorType, OPTIONS_BY_TYPE, ORBOptions, SIFTOptions, options_from_config,
    parse_extractor_type
)
from reco.preprocessing.enhancement import ImageRequestBuilder


class TestExtractorOptions:
    """Test options resolution."""

    def test_every_type_has_options(self):
        """Test the dispatch table is closed over the enum."""
        assert set(OPTIONS_BY_TYPE) == set(ExtractorType)
        for extractor_type, options_cls in OPTIONS_BY_TYPE.items():
            assert options_cls().type is extractor_type

    def test_options_from_config(self):
        """Test a config section becomes the matching dataclass."""
        options = options_from_config({'type': 'SIFT', 'n_features': 300})
        assert isinstance(options, SIFTOptions)
        assert options.n_features == 300
        assert options.contrast_threshold == 0.04

    def test_options_default_to_sift(self):
        """Test a missing type means SIFT."""
        assert isinstance(options_from_config({}), SIFTOptions)

    def test_unknown_type_raises(self):
        """Test unknown algorithms are a configuration error."""
        with pytest.raises(ValueError):
            options_from_config({'type': 'SURF'})

    def test_unknown_parameter_raises(self):
        """Test parameters of another algorithm are rejected."""
        with pytest.raises(ValueError):
            options_from_config({'type': 'ORB', 'sigma': 1.6})

    def test_type_aliases(self):
        """Test OpenCV-style names resolve."""
        assert parse_extractor_type('GFTTDetector') is ExtractorType.GFTT
        assert parse_extractor_type('simple-blob') is ExtractorType.SIMPLE_BLOB
        assert parse_extractor_type('akaze') is ExtractorType.AKAZE


class TestFeatureExtractor:
    """Test keypoint extraction."""

    def test_feature_extractor_initialization(self):
        """Test FeatureExtractor initialization."""
        extractor = FeatureExtractor()
        assert extractor.extractor_type is ExtractorType.SIFT

    def test_invalid_option_value_raises(self):
        """Test bad enum-like values fail at construction."""
        with pytest.raises(ValueError):
            FeatureExtractor(ORBOptions(score_type='BEST'))

    @pytest.mark.parametrize('extractor_type', list(ExtractorType))
    def test_extract_keypoints(self, extractor_type, textured_image):
        """Test every algorithm yields float32 descriptors aligned with keypoints."""
        extractor = FeatureExtractor(OPTIONS_BY_TYPE[extractor_type]())
        keypoints, descriptors = extractor.extract_keypoints(textured_image)

        assert descriptors.dtype == np.float32
        assert descriptors.ndim == 2
        assert len(keypoints) == descriptors.shape[0]

    @pytest.mark.parametrize('extractor_type', [ExtractorType.SIFT, ExtractorType.ORB,
                                                ExtractorType.FAST, ExtractorType.GFTT])
    def test_textured_image_has_keypoints(self, extractor_type, textured_image):
        """Test common algorithms find features on a cluttered image."""
        extractor = FeatureExtractor(OPTIONS_BY_TYPE[extractor_type]())
        keypoints, descriptors = extractor.extract_keypoints(textured_image)
        assert len(keypoints) > 0

    def test_detector_only_uses_sift_descriptors(self, textured_image):
        """Test detector-only algorithms are paired with 128-d SIFT descriptors."""
        extractor = FeatureExtractor(OPTIONS_BY_TYPE[ExtractorType.FAST]())
        keypoints, descriptors = extractor.extract_keypoints(textured_image)
        assert descriptors.shape[1] == 128

    def test_sift_feature_cap(self, textured_image):
        """Test n_features bounds the keypoint count."""
        extractor = FeatureExtractor(SIFTOptions(n_features=50))
        keypoints, _ = extractor.extract_keypoints(textured_image)
        assert 0 < len(keypoints) <= 60

    def test_empty_request(self):
        """Test empty requests extract nothing without raising."""
        request = ImageRequestBuilder().build(None)
        keypoints, descriptors = FeatureExtractor().detect_and_compute(request)
        assert keypoints == ()
        assert descriptors.shape[0] == 0

    def test_blank_image(self):
        """Test a featureless image gives empty, well-shaped descriptors."""
        blank = np.full((100, 100), 128, dtype=np.uint8)
        keypoints, descriptors = FeatureExtractor().extract_keypoints(blank)
        assert keypoints == ()
        assert descriptors.shape == (0, 128)

    def test_detect_and_compute_deterministic(self, textured_image):
        """Test repeated extraction is identical."""
        request = ImageRequestBuilder().with_grayscale().build(textured_image)
        extractor = FeatureExtractor()
        kp1, d1 = extractor.detect_and_compute(request)
        kp2, d2 = extractor.detect_and_compute(request)
        assert len(kp1) == len(kp2)
        assert np.array_equal(d1, d2)
