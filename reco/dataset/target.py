"""Reference targets and their binary feature encoding."""

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Sequence, Tuple

import cv2
import numpy as np

from reco.coordinates.projection import calculate_y_units
from reco.detection.feature_extractor import FeatureExtractor
from reco.preprocessing.enhancement import ImageRequestBuilder
from reco.types import ImageData, TargetMatchQuery

logger = logging.getLogger(__name__)

KEYPOINT_DTYPE = np.dtype([
    ('x', '<f4'),
    ('y', '<f4'),
    ('size', '<f4'),
    ('angle', '<f4'),
    ('response', '<f4'),
    ('octave', '<i4'),
    ('class_id', '<i4'),
])

DESCRIPTOR_DTYPE = np.dtype('<f4')

# longest side of the stored reference image
TARGET_RESOLUTION = 320


class DatasetFormatError(ValueError):
    """Raised when a dataset file or target record violates the binary schema."""


def encode_keypoints(keypoints: Sequence[cv2.KeyPoint]) -> bytes:
    records = np.array(
        [(kp.pt[0], kp.pt[1], kp.size, kp.angle, kp.response, kp.octave, kp.class_id)
         for kp in keypoints],
        dtype=KEYPOINT_DTYPE
    )
    return records.tobytes()


def decode_keypoints(data: bytes) -> Tuple[cv2.KeyPoint, ...]:
    if len(data) % KEYPOINT_DTYPE.itemsize:
        raise DatasetFormatError(
            f"Keypoint buffer of {len(data)} bytes is not a multiple of {KEYPOINT_DTYPE.itemsize}"
        )
    records = np.frombuffer(data, dtype=KEYPOINT_DTYPE)
    return tuple(
        cv2.KeyPoint(float(r['x']), float(r['y']), float(r['size']), float(r['angle']),
                     float(r['response']), int(r['octave']), int(r['class_id']))
        for r in records
    )


def encode_descriptors(descriptors: np.ndarray) -> Tuple[bytes, int, int]:
    """Returns (row-major float32 bytes, rows, cols)."""
    array = np.ascontiguousarray(descriptors, dtype=DESCRIPTOR_DTYPE)
    if array.ndim != 2:
        raise ValueError(f"Descriptors must be 2-D, got shape {array.shape}")
    return array.tobytes(), int(array.shape[0]), int(array.shape[1])


def decode_descriptors(data: bytes, rows: int, cols: int) -> np.ndarray:
    validate_descriptor_layout(data, rows, cols)
    return np.frombuffer(data, dtype=DESCRIPTOR_DTYPE).reshape(rows, cols).astype(np.float32)


def validate_descriptor_layout(data: bytes, rows: int, cols: int):
    if rows < 0 or cols < 0:
        raise DatasetFormatError(f"Negative descriptor shape {rows}x{cols}")
    expected = rows * cols * DESCRIPTOR_DTYPE.itemsize
    if len(data) != expected:
        raise DatasetFormatError(
            f"Descriptor buffer holds {len(data)} bytes, {rows}x{cols} float32 needs {expected}"
        )


def encode_image(image: np.ndarray) -> bytes:
    ok, buffer = cv2.imencode('.png', image)
    if not ok:
        raise ValueError("Failed to encode target image")
    return buffer.tobytes()


def decode_image(data: bytes) -> np.ndarray:
    image = None
    if data:
        image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
    if image is None:
        raise DatasetFormatError("Target image could not be decoded")
    return image


@dataclass(frozen=True)
class Target:
    """
    A reference target as stored in a dataset.

    ``image`` is the encoded processed reference image, ``keypoints`` packed
    28-byte records and ``descriptors`` row-major float32. ``units_x`` and
    ``units_y`` give the physical size of the target.
    """
    id: str
    image: bytes
    keypoints: bytes
    descriptors: bytes
    descriptors_rows: int
    descriptors_cols: int
    units_x: float = 1.0
    units_y: float = 1.0

    def __post_init__(self):
        if len(self.keypoints) % KEYPOINT_DTYPE.itemsize:
            raise DatasetFormatError(f"Target {self.id}: truncated keypoint records")
        if self.keypoint_count != self.descriptors_rows:
            raise DatasetFormatError(f"Target {self.id}: {self.keypoint_count} keypoints but "
                                     f"{self.descriptors_rows} descriptor rows")
        validate_descriptor_layout(self.descriptors, self.descriptors_rows, self.descriptors_cols)

    @property
    def keypoint_count(self) -> int:
        return len(self.keypoints) // KEYPOINT_DTYPE.itemsize

    def to_match_query(self) -> TargetMatchQuery:
        """Decode into the in-memory form the engine matches against."""
        return TargetMatchQuery(
            id=self.id,
            image=decode_image(self.image),
            keypoints=decode_keypoints(self.keypoints),
            descriptors=decode_descriptors(self.descriptors, self.descriptors_rows,
                                           self.descriptors_cols),
            units_x=self.units_x,
            units_y=self.units_y,
        )

    @classmethod
    def from_image(cls, target_id: str, image: np.ndarray,
                   extractor: Optional[FeatureExtractor] = None,
                   builder: Optional[ImageRequestBuilder] = None,
                   units_x: float = 1.0,
                   resolution: int = TARGET_RESOLUTION) -> 'Target':
        """
        Create a target from a raw reference image.

        Args:
            target_id: Identifier reported in match results
            image: BGR or grayscale reference image
            extractor: Feature extractor; SIFT with defaults when omitted
            builder: Preprocessing applied after the downscale; grayscale when omitted
            units_x: Physical width of the target
            resolution: Longest side of the stored image

        Returns:
            Target with encoded image, keypoints and descriptors
        """
        if image is None or image.size == 0:
            raise ValueError(f"Target {target_id}: empty image")

        extractor = extractor or FeatureExtractor()
        builder = builder or ImageRequestBuilder().with_grayscale()

        resized = ImageRequestBuilder().with_low_resolution(resolution).build(image, target_id).image
        request = builder.build(resized, target_id)
        keypoints, descriptors = extractor.detect_and_compute(request)
        descriptor_bytes, rows, cols = encode_descriptors(descriptors)

        logger.debug("Target %s: %d keypoints at %dx%d", target_id, len(keypoints),
                     request.width, request.height)

        return cls(
            id=target_id,
            image=encode_image(request.image),
            keypoints=encode_keypoints(keypoints),
            descriptors=descriptor_bytes,
            descriptors_rows=rows,
            descriptors_cols=cols,
            units_x=float(units_x),
            units_y=float(calculate_y_units(units_x, request.width, request.height)),
        )


class TargetDataset:
    """Immutable, ordered collection of targets."""

    def __init__(self, targets: Iterable[Target] = ()):
        self.targets: Tuple[Target, ...] = tuple(targets)

    def __len__(self) -> int:
        return len(self.targets)

    def __iter__(self) -> Iterator[Target]:
        return iter(self.targets)

    def __getitem__(self, index: int) -> Target:
        return self.targets[index]

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(t.id for t in self.targets)

    @classmethod
    def load(cls, source) -> 'TargetDataset':
        from reco.dataset.serializer import DatasetSerializer
        return DatasetSerializer.deserialize(source)

    def save(self, destination):
        from reco.dataset.serializer import DatasetSerializer
        DatasetSerializer.serialize(destination, self.targets)


def build_dataset(images: Iterable[ImageData], extractor: Optional[FeatureExtractor] = None,
                  builder: Optional[ImageRequestBuilder] = None, units_x: float = 1.0,
                  resolution: int = TARGET_RESOLUTION) -> TargetDataset:
    """Turn raw reference images into a dataset, in input order."""
    extractor = extractor or FeatureExtractor()
    targets = [
        Target.from_image(item.id, item.image, extractor, builder, units_x, resolution)
        for item in images
    ]
    logger.info("Built dataset with %d targets", len(targets))
    return TargetDataset(targets)
