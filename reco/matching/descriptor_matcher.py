"""k-nearest-neighbour descriptor matching."""

import cv2
import numpy as np
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, ClassVar, Dict, List


class MatcherType(Enum):
    BF = "BF"
    FLANN = "FLANN"


@dataclass(frozen=True)
class BFMatcherOptions:
    type: ClassVar[MatcherType] = MatcherType.BF
    norm: str = "L2"


@dataclass(frozen=True)
class FlannMatcherOptions:
    type: ClassVar[MatcherType] = MatcherType.FLANN
    index: str = "LINEAR"
    trees: int = 5
    checks: int = 32


_NORMS = {
    "L1": cv2.NORM_L1,
    "L2": cv2.NORM_L2,
    "L2SQR": cv2.NORM_L2SQR,
}

# FLANN index algorithm ids
FLANN_INDEX_LINEAR = 0
FLANN_INDEX_KDTREE = 1


def _create_bf(options: BFMatcherOptions):
    try:
        norm = _NORMS[options.norm.upper()]
    except KeyError:
        raise ValueError(f"Unsupported matcher norm for float descriptors: {options.norm}") from None
    return cv2.BFMatcher(norm, crossCheck=False)


def _create_flann(options: FlannMatcherOptions):
    index = options.index.upper()
    if index == "LINEAR":
        index_params = dict(algorithm=FLANN_INDEX_LINEAR)
    elif index in ("KDTREE", "KD_TREE"):
        index_params = dict(algorithm=FLANN_INDEX_KDTREE, trees=options.trees)
    else:
        raise ValueError(f"Unknown FLANN index: {options.index}")
    return cv2.FlannBasedMatcher(index_params, dict(checks=options.checks))


FACTORIES = {
    MatcherType.BF: _create_bf,
    MatcherType.FLANN: _create_flann,
}

OPTIONS_BY_TYPE = {
    MatcherType.BF: BFMatcherOptions,
    MatcherType.FLANN: FlannMatcherOptions,
}


class DescriptorMatcher:
    """Brute-force or FLANN k-NN matcher over float32 descriptors."""

    def __init__(self, options=None):
        self.options = options if options is not None else BFMatcherOptions()
        self.matcher_type = self.options.type
        self._factory = FACTORIES[self.matcher_type]
        self._factory(self.options)

    def knn_match(self, query: np.ndarray, train: np.ndarray, k: int = 2) -> List[List[cv2.DMatch]]:
        """
        Find the k best train descriptors for each query descriptor.

        Args:
            query: Query descriptors (n, d)
            train: Train descriptors (m, d)
            k: Neighbours per query descriptor

        Returns:
            One list of at most k DMatch per query descriptor, best first;
            empty when either side has no descriptors
        """
        if query is None or train is None or len(query) == 0 or len(train) == 0:
            return []
        if query.shape[1] != train.shape[1]:
            raise ValueError(f"Descriptor size mismatch: {query.shape[1]} vs {train.shape[1]}")

        matcher = self._factory(self.options)
        k = min(k, len(train))
        matches = matcher.knnMatch(np.ascontiguousarray(query, dtype=np.float32),
                                   np.ascontiguousarray(train, dtype=np.float32), k=k)
        return [list(m) for m in matches]


def matcher_options_from_config(config: Dict[str, Any]):
    """Resolve a ``matcher`` config section into BF or FLANN options."""
    params = dict(config or {})
    name = str(params.pop("type", "BF")).strip().upper()
    try:
        matcher_type = MatcherType(name)
    except ValueError:
        raise ValueError(f"Unknown descriptor matcher: {name}") from None

    options_cls = OPTIONS_BY_TYPE[matcher_type]
    known = {f.name for f in fields(options_cls)}
    unknown = sorted(set(params) - known)
    if unknown:
        raise ValueError(f"Unknown {matcher_type.value} matcher parameters: {', '.join(unknown)}")

    return options_cls(**params)
