"""Recognition over a framed socket protocol."""

from reco.remote.client import CloudRecognition
from reco.remote.server import RecognitionServer

__all__ = ['CloudRecognition', 'RecognitionServer']
