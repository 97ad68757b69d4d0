"""Feature extractor algorithms and their parameters."""

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, ClassVar, Dict


class ExtractorType(Enum):
    SIFT = "SIFT"
    ORB = "ORB"
    KAZE = "KAZE"
    AKAZE = "AKAZE"
    MSER = "MSER"
    AGAST = "AGAST"
    BRISK = "BRISK"
    GFTT = "GFTT"
    FAST = "FAST"
    SIMPLE_BLOB = "SIMPLE_BLOB"

    @property
    def computes_descriptors(self) -> bool:
        """False for detector-only algorithms, which borrow SIFT descriptors."""
        return self in (ExtractorType.SIFT, ExtractorType.ORB, ExtractorType.KAZE,
                        ExtractorType.AKAZE, ExtractorType.BRISK)


@dataclass(frozen=True)
class SIFTOptions:
    type: ClassVar[ExtractorType] = ExtractorType.SIFT
    n_features: int = 0
    n_octave_layers: int = 3
    contrast_threshold: float = 0.04
    edge_threshold: float = 10.0
    sigma: float = 1.6


@dataclass(frozen=True)
class ORBOptions:
    type: ClassVar[ExtractorType] = ExtractorType.ORB
    n_features: int = 500
    scale_factor: float = 1.2
    n_levels: int = 8
    edge_threshold: int = 31
    first_level: int = 0
    wta_k: int = 2
    score_type: str = "HARRIS"
    patch_size: int = 31
    fast_threshold: int = 20


@dataclass(frozen=True)
class KAZEOptions:
    type: ClassVar[ExtractorType] = ExtractorType.KAZE
    extended: bool = False
    upright: bool = False
    threshold: float = 0.001
    n_octaves: int = 4
    n_octave_layers: int = 4
    diffusivity: str = "PM_G2"


@dataclass(frozen=True)
class AKAZEOptions:
    type: ClassVar[ExtractorType] = ExtractorType.AKAZE
    threshold: float = 0.001
    n_octaves: int = 4
    n_octave_layers: int = 4
    diffusivity: str = "PM_G2"


@dataclass(frozen=True)
class MSEROptions:
    type: ClassVar[ExtractorType] = ExtractorType.MSER
    delta: int = 5
    min_area: int = 60
    max_area: int = 14400


@dataclass(frozen=True)
class AgastOptions:
    type: ClassVar[ExtractorType] = ExtractorType.AGAST
    threshold: int = 10
    nonmax_suppression: bool = True


@dataclass(frozen=True)
class BRISKOptions:
    type: ClassVar[ExtractorType] = ExtractorType.BRISK
    threshold: int = 30
    octaves: int = 3
    pattern_scale: float = 1.0


@dataclass(frozen=True)
class GFTTOptions:
    type: ClassVar[ExtractorType] = ExtractorType.GFTT
    max_corners: int = 1000
    quality_level: float = 0.01
    min_distance: float = 1.0
    block_size: int = 3
    use_harris_detector: bool = False
    k: float = 0.04


@dataclass(frozen=True)
class FastOptions:
    type: ClassVar[ExtractorType] = ExtractorType.FAST
    threshold: int = 10
    nonmax_suppression: bool = True


@dataclass(frozen=True)
class SimpleBlobOptions:
    type: ClassVar[ExtractorType] = ExtractorType.SIMPLE_BLOB
    min_threshold: float = 50.0
    max_threshold: float = 220.0
    filter_by_area: bool = True
    min_area: float = 25.0
    max_area: float = 5000.0


OPTIONS_BY_TYPE = {
    ExtractorType.SIFT: SIFTOptions,
    ExtractorType.ORB: ORBOptions,
    ExtractorType.KAZE: KAZEOptions,
    ExtractorType.AKAZE: AKAZEOptions,
    ExtractorType.MSER: MSEROptions,
    ExtractorType.AGAST: AgastOptions,
    ExtractorType.BRISK: BRISKOptions,
    ExtractorType.GFTT: GFTTOptions,
    ExtractorType.FAST: FastOptions,
    ExtractorType.SIMPLE_BLOB: SimpleBlobOptions,
}

_ALIASES = {
    "GFTTDETECTOR": ExtractorType.GFTT,
    "FASTFEATUREDETECTOR": ExtractorType.FAST,
    "AGASTFEATUREDETECTOR": ExtractorType.AGAST,
    "SIMPLEBLOB": ExtractorType.SIMPLE_BLOB,
    "SIMPLEBLOBDETECTOR": ExtractorType.SIMPLE_BLOB,
}


def parse_extractor_type(name) -> ExtractorType:
    if isinstance(name, ExtractorType):
        return name

    key = str(name).strip().upper().replace("-", "_")
    try:
        return ExtractorType(key)
    except ValueError:
        pass

    compact = key.replace("_", "")
    if compact in _ALIASES:
        return _ALIASES[compact]
    raise ValueError(f"Unknown feature extractor: {name}")


def options_from_config(config: Dict[str, Any]):
    """
    Resolve an ``extractor`` config section into an options dataclass.

    Args:
        config: Mapping with a ``type`` key and the variant's parameters

    Returns:
        Options instance for the named algorithm
    """
    params = dict(config or {})
    extractor_type = parse_extractor_type(params.pop("type", ExtractorType.SIFT))
    options_cls = OPTIONS_BY_TYPE[extractor_type]

    known = {f.name for f in fields(options_cls)}
    unknown = sorted(set(params) - known)
    if unknown:
        raise ValueError(f"Unknown {extractor_type.value} parameters: {', '.join(unknown)}")

    return options_cls(**params)
