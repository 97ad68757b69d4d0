"""Reference targets and the dataset file format."""

from reco.dataset.target import DatasetFormatError, Target, TargetDataset, build_dataset
from reco.dataset.serializer import DatasetSerializer

__all__ = ['DatasetFormatError', 'Target', 'TargetDataset', 'build_dataset', 'DatasetSerializer']
