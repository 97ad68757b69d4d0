"""Tests for descriptor matching."""

import pytest
import numpy as np
from reco.matching.descriptor_matcher import (
    BFMatcherOptions, DescriptorMatcher, FlannMatcherOptions, MatcherType,
    matcher_options_from_config
)


def random_descriptors(n, d=128, seed=0):
    return np.random.RandomState(seed).rand(n, d).astype(np.float32)


class TestDescriptorMatcher:
    """Test k-NN matching."""

    @pytest.mark.parametrize('options', [BFMatcherOptions(), FlannMatcherOptions(),
                                         FlannMatcherOptions(index='KDTREE')])
    def test_knn_match_shape(self, options):
        """Test at most k neighbours per query descriptor."""
        query = random_descriptors(30, seed=1)
        train = random_descriptors(50, seed=2)
        matches = DescriptorMatcher(options).knn_match(query, train, k=2)

        assert len(matches) <= len(query)
        assert all(len(m) <= 2 for m in matches)

    def test_identical_descriptors_match_themselves(self):
        """Test each descriptor's best neighbour is its copy."""
        descriptors = random_descriptors(40)
        matches = DescriptorMatcher().knn_match(descriptors, descriptors, k=2)

        assert len(matches) == 40
        for i, neighbours in enumerate(matches):
            assert neighbours[0].queryIdx == i
            assert neighbours[0].trainIdx == i
            assert neighbours[0].distance == pytest.approx(0.0, abs=1e-4)
            assert neighbours[0].distance <= neighbours[1].distance

    def test_empty_sets(self):
        """Test empty inputs give no matches."""
        matcher = DescriptorMatcher()
        empty = np.empty((0, 128), dtype=np.float32)
        assert matcher.knn_match(empty, random_descriptors(5)) == []
        assert matcher.knn_match(random_descriptors(5), empty) == []
        assert matcher.knn_match(None, random_descriptors(5)) == []

    def test_single_train_descriptor(self):
        """Test k is capped by the train set size."""
        matches = DescriptorMatcher().knn_match(random_descriptors(3), random_descriptors(1), k=2)
        assert all(len(m) == 1 for m in matches)

    def test_dimension_mismatch_raises(self):
        """Test descriptors of different algorithms are not compared."""
        with pytest.raises(ValueError):
            DescriptorMatcher().knn_match(random_descriptors(3, 64), random_descriptors(3, 128))


class TestMatcherConfig:
    """Test matcher options resolution."""

    def test_default_is_bf_l2(self):
        """Test the default section."""
        options = matcher_options_from_config({'type': 'BF', 'norm': 'L2'})
        assert options.type is MatcherType.BF
        assert options.norm == 'L2'

    def test_flann(self):
        """Test FLANN options with a KD-tree index."""
        options = matcher_options_from_config({'type': 'flann', 'index': 'KDTREE', 'trees': 4})
        assert isinstance(options, FlannMatcherOptions)
        assert options.trees == 4

    def test_invalid(self):
        """Test unknown matchers, norms and indexes raise."""
        with pytest.raises(ValueError):
            matcher_options_from_config({'type': 'LSH'})
        with pytest.raises(ValueError):
            DescriptorMatcher(BFMatcherOptions(norm='HAMMING'))
        with pytest.raises(ValueError):
            DescriptorMatcher(FlannMatcherOptions(index='LSH'))
