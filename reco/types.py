"""
Value types shared across the recognition pipeline.
"""

import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import cv2
import numpy as np


def empty_image() -> np.ndarray:
    return np.empty((0, 0), dtype=np.uint8)


def empty_descriptors(cols: int = 0) -> np.ndarray:
    return np.empty((0, cols), dtype=np.float32)


@dataclass(frozen=True, eq=False)
class ImageRequest:
    """
    A preprocessed query frame.

    ``image`` holds the pixels after preprocessing; ``original_width`` and
    ``original_height`` describe the frame before any step ran, so results can
    be mapped back to it. ``roi_offset`` and ``processed_size`` record where a
    region-of-interest crop sat inside the resized frame.
    """
    id: str
    image: np.ndarray
    original_width: int
    original_height: int
    is_grayscale: bool = False
    is_low_resolution: bool = False
    has_roi: bool = False
    has_gaussian_blur: bool = False
    roi_offset: Tuple[int, int] = (0, 0)
    processed_size: Optional[Tuple[int, int]] = None

    @property
    def is_empty(self) -> bool:
        return self.image is None or self.image.size == 0

    @property
    def width(self) -> int:
        return 0 if self.is_empty else int(self.image.shape[1])

    @property
    def height(self) -> int:
        return 0 if self.is_empty else int(self.image.shape[0])

    @property
    def scale(self) -> Tuple[float, float]:
        """Factors mapping processed (pre-crop) pixels back to original pixels."""
        if self.is_empty:
            return 1.0, 1.0
        width, height = self.processed_size or (self.width, self.height)
        return self.original_width / width, self.original_height / height


@dataclass(frozen=True, eq=False)
class ImageData:
    """A raw reference image and the id it will be recognized under."""
    id: str
    image: np.ndarray

    @classmethod
    def load(cls, source, image_id: Optional[str] = None) -> 'ImageData':
        """
        Load an image from a path, raw encoded bytes or a binary stream.

        Args:
            source: str/Path, bytes, or an object with ``read()``
            image_id: Identifier; defaults to the file name for paths and a
                random UUID otherwise

        Returns:
            ImageData with a decoded BGR image
        """
        if isinstance(source, (str, Path)):
            path = Path(source)
            image = cv2.imread(str(path), cv2.IMREAD_COLOR)
            if image is None:
                raise ValueError(f"Failed to load image: {path}")
            return cls(image_id or path.name, image)

        if hasattr(source, 'read'):
            source = source.read()

        buffer = np.frombuffer(bytes(source), dtype=np.uint8)
        image = cv2.imdecode(buffer, cv2.IMREAD_COLOR) if buffer.size else None
        if image is None:
            raise ValueError("Failed to decode image buffer")
        return cls(image_id or str(uuid.uuid4()), image)


@dataclass(frozen=True, eq=False)
class TargetMatchQuery:
    """Extracted features for one image, the unit both sides of matching work on."""
    id: str
    image: np.ndarray
    keypoints: Tuple[cv2.KeyPoint, ...]
    descriptors: np.ndarray
    units_x: float = 1.0
    units_y: float = 1.0

    @property
    def width(self) -> int:
        return int(self.image.shape[1]) if self.image is not None and self.image.size else 0

    @property
    def height(self) -> int:
        return int(self.image.shape[0]) if self.image is not None and self.image.size else 0


@dataclass(frozen=True, eq=False)
class HomographyResult:
    homography: Optional[np.ndarray] = None
    inliers: int = 0

    @property
    def match_found(self) -> bool:
        return self.homography is not None and self.homography.size > 0


@dataclass(frozen=True)
class TargetMatchResult:
    """
    A recognized target inside the query frame.

    All coordinates are in original-frame pixels. ``projected_region`` lists
    the target's bottom-left, bottom-right, top-right and top-left corners.
    """
    id: str
    projected_region: Tuple[Tuple[float, float], ...]
    center_x: float
    center_y: float
    angle: float
    size: Tuple[float, float]
    homography: Tuple[float, ...]
    units_x: Optional[float] = None
    units_y: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'projected_region': [list(p) for p in self.projected_region],
            'center_x': self.center_x,
            'center_y': self.center_y,
            'angle': self.angle,
            'size': list(self.size),
            'homography': list(self.homography),
            'units_x': self.units_x,
            'units_y': self.units_y,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TargetMatchResult':
        return cls(
            id=str(data['id']),
            projected_region=tuple((float(x), float(y)) for x, y in data['projected_region']),
            center_x=float(data['center_x']),
            center_y=float(data['center_y']),
            angle=float(data['angle']),
            size=tuple(float(v) for v in data['size']),
            homography=tuple(float(v) for v in data['homography']),
            units_x=data.get('units_x'),
            units_y=data.get('units_y'),
        )


@dataclass(frozen=True)
class FeatureMatchingResult:
    matches: Tuple[TargetMatchResult, ...] = field(default_factory=tuple)

    @property
    def has_matches(self) -> bool:
        return len(self.matches) > 0

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(m.id for m in self.matches)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'has_matches': self.has_matches,
            'matches': [m.to_dict() for m in self.matches],
        }
