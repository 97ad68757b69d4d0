"""Geometric verification: voting, homography estimation and refinement."""

from reco.geometry.homography import HomographyCalculator
from reco.geometry.optimizer import HomographyOptimizer
from reco.geometry.verifier import GeometricVerifier
from reco.geometry.voting import vote_for_size_and_orientation, vote_for_uniqueness

__all__ = ['HomographyCalculator', 'HomographyOptimizer', 'GeometricVerifier',
           'vote_for_size_and_orientation', 'vote_for_uniqueness']
