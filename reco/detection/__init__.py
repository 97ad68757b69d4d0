"""Keypoint detection and description."""

from reco.detection.feature_extractor import FeatureExtractor
from reco.detection.options import (
    AgastOptions, AKAZEOptions, BRISKOptions, ExtractorType, FastOptions, GFTTOptions,
    KAZEOptions, MSEROptions, ORBOptions, SIFTOptions, SimpleBlobOptions, options_from_config
)

__all__ = [
    'FeatureExtractor', 'ExtractorType', 'options_from_config',
    'SIFTOptions', 'ORBOptions', 'KAZEOptions', 'AKAZEOptions', 'MSEROptions',
    'AgastOptions', 'BRISKOptions', 'GFTTOptions', 'FastOptions', 'SimpleBlobOptions',
]
