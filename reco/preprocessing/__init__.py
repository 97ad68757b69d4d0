"""Query preprocessing."""

from reco.preprocessing.enhancement import (
    ImageRequestBuilder, crop_roi, gaussian_blur, low_resolution, to_grayscale
)

__all__ = ['ImageRequestBuilder', 'crop_roi', 'gaussian_blur', 'low_resolution', 'to_grayscale']
