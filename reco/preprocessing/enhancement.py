"""Query image preprocessing pipeline."""

import uuid
import cv2
import numpy as np
from typing import Any, Dict, Optional, Tuple

from reco.types import ImageRequest, empty_image


class ImageRequestBuilder:
    """
    Chainable preprocessing pipeline producing ImageRequests.

    Steps always run in the same order regardless of how they were added:
    grayscale, Gaussian blur, downscale, region-of-interest crop.
    """

    def __init__(self):
        self.grayscale = False
        self.blur_kernel: Optional[Tuple[int, int]] = None
        self.blur_sigma = 0.0
        self.max_dimension: Optional[int] = None
        self.roi: Optional[Tuple[int, int, int, int]] = None

    def with_grayscale(self) -> 'ImageRequestBuilder':
        self.grayscale = True
        return self

    def with_gaussian_blur(self, kernel_size: Tuple[int, int] = (5, 5),
                           sigma_x: float = 0.0) -> 'ImageRequestBuilder':
        """
        Enable Gaussian blur.

        Args:
            kernel_size: (width, height), both odd and positive
            sigma_x: Standard deviation in X; 0 lets OpenCV derive it from the kernel
        """
        if isinstance(kernel_size, int):
            kernel_size = (kernel_size, kernel_size)
        kw, kh = kernel_size
        if kw <= 0 or kh <= 0 or kw % 2 == 0 or kh % 2 == 0:
            raise ValueError(f"Blur kernel size must be odd and positive, got {kernel_size}")
        if sigma_x < 0:
            raise ValueError(f"Blur sigma must be non-negative, got {sigma_x}")

        self.blur_kernel = (int(kw), int(kh))
        self.blur_sigma = float(sigma_x)
        return self

    def with_low_resolution(self, max_dimension: int = 160) -> 'ImageRequestBuilder':
        if max_dimension <= 0:
            raise ValueError(f"Low resolution target must be positive, got {max_dimension}")
        self.max_dimension = int(max_dimension)
        return self

    def with_roi(self, x: int, y: int, width: int, height: int) -> 'ImageRequestBuilder':
        if width <= 0 or height <= 0:
            raise ValueError(f"ROI size must be positive, got {width}x{height}")
        self.roi = (int(x), int(y), int(width), int(height))
        return self

    def build(self, image: Optional[np.ndarray], request_id: Optional[str] = None) -> ImageRequest:
        """
        Run the configured steps on a copy of the image.

        Args:
            image: Input BGR, BGRA or grayscale image
            request_id: Request identifier; a UUID when omitted

        Returns:
            ImageRequest with the processed pixels and the flags of the steps applied
        """
        request_id = request_id or str(uuid.uuid4())

        if image is None or image.size == 0:
            return ImageRequest(request_id, empty_image(), 0, 0)

        original_height, original_width = image.shape[:2]
        processed = image.copy()

        if self.grayscale:
            processed = to_grayscale(processed)
        if self.blur_kernel is not None:
            processed = gaussian_blur(processed, self.blur_kernel, self.blur_sigma)
        if self.max_dimension is not None:
            processed = low_resolution(processed, self.max_dimension)

        processed_size = (processed.shape[1], processed.shape[0])
        roi_offset = (0, 0)
        if self.roi is not None:
            processed, roi_offset = crop_roi(processed, *self.roi)

        return ImageRequest(
            id=request_id,
            image=processed,
            original_width=original_width,
            original_height=original_height,
            is_grayscale=self.grayscale,
            is_low_resolution=self.max_dimension is not None,
            has_roi=self.roi is not None,
            has_gaussian_blur=self.blur_kernel is not None,
            roi_offset=roi_offset,
            processed_size=processed_size,
        )

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'ImageRequestBuilder':
        """Build the chain from a ``preprocessing`` config section."""
        builder = cls()
        if config.get('grayscale'):
            builder.with_grayscale()
        if config.get('blur_kernel'):
            builder.with_gaussian_blur(config['blur_kernel'], config.get('blur_sigma', 0.0))
        if config.get('low_resolution'):
            builder.with_low_resolution(config['low_resolution'])
        if config.get('roi'):
            builder.with_roi(*config['roi'])
        return builder


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Convert BGR/BGRA to single channel; grayscale input is returned unchanged."""
    if image.ndim == 2:
        return image
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    if image.shape[2] == 1:
        return image[:, :, 0]
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def gaussian_blur(image: np.ndarray, kernel_size: Tuple[int, int] = (5, 5),
                  sigma_x: float = 0.0) -> np.ndarray:
    """Apply Gaussian blur to reduce noise."""
    return cv2.GaussianBlur(image, kernel_size, sigma_x)


def low_resolution(image: np.ndarray, max_dimension: int) -> np.ndarray:
    """Shrink so the longest side equals max_dimension. Never upscales."""
    height, width = image.shape[:2]
    if max(height, width) <= max_dimension:
        return image

    scale = max_dimension / max(height, width)
    size = (max(1, int(round(width * scale))), max(1, int(round(height * scale))))
    return cv2.resize(image, size, interpolation=cv2.INTER_AREA)


def crop_roi(image: np.ndarray, x: int, y: int, width: int,
             height: int) -> Tuple[np.ndarray, Tuple[int, int]]:
    """
    Crop a region clamped to the image bounds.

    Returns:
        (cropped image, (x, y) offset of the crop); an empty image when the
        region lies outside the frame
    """
    img_h, img_w = image.shape[:2]
    x0 = min(max(x, 0), img_w)
    y0 = min(max(y, 0), img_h)
    x1 = min(max(x + width, 0), img_w)
    y1 = min(max(y + height, 0), img_h)

    if x1 <= x0 or y1 <= y0:
        return empty_image(), (x0, y0)

    return image[y0:y1, x0:x1].copy(), (x0, y0)
