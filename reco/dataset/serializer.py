"""
Dataset file format.

A dataset is a NumPy ``.npz`` archive. Variable-length fields of all targets
are concatenated into one uint8 array each, with an int64 offset table of
length N + 1 so target i owns ``blob[offsets[i]:offsets[i + 1]]``:

    format_version          int64 scalar
    ids, id_offsets         UTF-8 encoded
    images, image_offsets
    keypoints, keypoint_offsets
    descriptors, descriptor_offsets
    descriptors_rows        (N,) int64
    descriptors_cols        (N,) int64
    units                   (N, 2) float64, (units_x, units_y)

Archives are read with ``allow_pickle=False``.
"""

import logging
import zipfile
from pathlib import Path
from typing import BinaryIO, Dict, Iterable, List, Union

import numpy as np

from reco.dataset.target import DatasetFormatError, Target, TargetDataset

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1

_BLOBS = (
    ('images', 'image_offsets', 'image'),
    ('keypoints', 'keypoint_offsets', 'keypoints'),
    ('descriptors', 'descriptor_offsets', 'descriptors'),
)

_REQUIRED = ('format_version', 'ids', 'id_offsets', 'descriptors_rows', 'descriptors_cols', 'units') + \
    tuple(name for pair in _BLOBS for name in pair[:2])


def _pack(chunks: List[bytes]):
    offsets = np.zeros(len(chunks) + 1, dtype=np.int64)
    offsets[1:] = np.cumsum([len(c) for c in chunks], dtype=np.int64)
    blob = np.frombuffer(b''.join(chunks), dtype=np.uint8)
    return blob, offsets


def _unpack(blob: np.ndarray, offsets: np.ndarray, count: int, name: str) -> List[bytes]:
    if offsets.ndim != 1 or len(offsets) != count + 1:
        raise DatasetFormatError(f"'{name}' offset table does not match {count} targets")
    if offsets[0] != 0 or np.any(np.diff(offsets) < 0) or offsets[-1] != blob.size:
        raise DatasetFormatError(f"'{name}' offsets are inconsistent with the data")
    data = blob.tobytes()
    return [data[offsets[i]:offsets[i + 1]] for i in range(count)]


class DatasetSerializer:
    """Read and write target datasets."""

    @staticmethod
    def serialize(destination: Union[str, Path, BinaryIO], targets: Iterable[Target]):
        """
        Write targets to a path or binary stream.

        Args:
            destination: File path (written as given, no extension added) or
                writable binary stream
            targets: Targets in the order they should be stored
        """
        targets = list(targets)
        arrays: Dict[str, np.ndarray] = {
            'format_version': np.array(FORMAT_VERSION, dtype=np.int64),
            'descriptors_rows': np.array([t.descriptors_rows for t in targets], dtype=np.int64),
            'descriptors_cols': np.array([t.descriptors_cols for t in targets], dtype=np.int64),
            'units': np.array([(t.units_x, t.units_y) for t in targets],
                              dtype=np.float64).reshape(-1, 2),
        }
        arrays['ids'], arrays['id_offsets'] = _pack([t.id.encode('utf-8') for t in targets])
        for blob_name, offsets_name, attribute in _BLOBS:
            blob, offsets = _pack([getattr(t, attribute) for t in targets])
            arrays[blob_name] = blob
            arrays[offsets_name] = offsets

        if isinstance(destination, (str, Path)):
            with open(destination, 'wb') as f:
                np.savez_compressed(f, **arrays)
        else:
            np.savez_compressed(destination, **arrays)

        logger.debug("Serialized %d targets", len(targets))

    @staticmethod
    def deserialize(source: Union[str, Path, BinaryIO]) -> TargetDataset:
        """
        Read a dataset written by ``serialize``.

        Raises:
            DatasetFormatError: The archive is malformed or of an unknown version
            OSError: The file cannot be read
        """
        try:
            archive = np.load(source, allow_pickle=False)
        except (ValueError, zipfile.BadZipFile, EOFError) as e:
            raise DatasetFormatError(f"Not a dataset archive: {e}") from e

        if not isinstance(archive, np.lib.npyio.NpzFile):
            raise DatasetFormatError("Not a dataset archive: expected an .npz file")

        with archive:
            missing = [name for name in _REQUIRED if name not in archive.files]
            if missing:
                raise DatasetFormatError(f"Dataset is missing arrays: {', '.join(missing)}")

            try:
                arrays = {name: archive[name] for name in _REQUIRED}
            except (ValueError, zipfile.BadZipFile, OSError) as e:
                raise DatasetFormatError(f"Corrupt dataset array: {e}") from e

        version = int(arrays['format_version'])
        if version != FORMAT_VERSION:
            raise DatasetFormatError(f"Unsupported dataset format version {version}")

        id_offsets = arrays['id_offsets']
        if id_offsets.ndim != 1 or len(id_offsets) == 0:
            raise DatasetFormatError("'id_offsets' must be a non-empty table")
        count = len(id_offsets) - 1
        try:
            ids = [chunk.decode('utf-8') for chunk in
                   _unpack(arrays['ids'], id_offsets, count, 'ids')]
        except UnicodeDecodeError as e:
            raise DatasetFormatError(f"Target ids are not valid UTF-8: {e}") from e
        rows = arrays['descriptors_rows']
        cols = arrays['descriptors_cols']
        units = arrays['units']
        if len(rows) != count or len(cols) != count or units.shape != (count, 2):
            raise DatasetFormatError("Dataset per-target arrays have inconsistent lengths")

        fields = {}
        for blob_name, offsets_name, attribute in _BLOBS:
            fields[attribute] = _unpack(arrays[blob_name], arrays[offsets_name], count, blob_name)

        targets = [
            Target(
                id=ids[i],
                image=fields['image'][i],
                keypoints=fields['keypoints'][i],
                descriptors=fields['descriptors'][i],
                descriptors_rows=int(rows[i]),
                descriptors_cols=int(cols[i]),
                units_x=float(units[i, 0]),
                units_y=float(units[i, 1]),
            )
            for i in range(count)
        ]
        logger.debug("Deserialized %d targets", count)
        return TargetDataset(targets)
