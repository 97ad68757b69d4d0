"""
Reco - image target recognition

Extracts features from reference images, matches query frames against them
and returns geometrically verified target locations.
"""

from reco.core import ImageRecognition, RecognitionNotReadyError
from reco.dataset import DatasetFormatError, DatasetSerializer, Target, TargetDataset, build_dataset
from reco.preprocessing import ImageRequestBuilder
from reco.types import FeatureMatchingResult, ImageData, ImageRequest, TargetMatchResult

__all__ = [
    'ImageRecognition', 'RecognitionNotReadyError',
    'DatasetFormatError', 'DatasetSerializer', 'Target', 'TargetDataset', 'build_dataset',
    'ImageRequestBuilder',
    'FeatureMatchingResult', 'ImageData', 'ImageRequest', 'TargetMatchResult',
]
__version__ = '1.0.0'
