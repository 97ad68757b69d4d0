"""I/O handling for images, reference folders, and JSON output."""

import cv2
import json
import numpy as np
from pathlib import Path
from typing import Dict, Iterator, List, Union

from reco.types import FeatureMatchingResult, ImageData

IMAGE_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.bmp', '.tif', '.tiff', '.webp')


class JSONWriter:
    """Write match results to JSON."""

    @staticmethod
    def save_results(output: Union[Dict, FeatureMatchingResult], output_path: str, indent: int = 2):
        """Save results to JSON file."""
        if isinstance(output, FeatureMatchingResult):
            output = output.to_dict()
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w') as f:
            json.dump(output, f, indent=indent)

    @staticmethod
    def load_results(input_path: str) -> Dict:
        """Load results from JSON file."""
        with open(input_path, 'r') as f:
            return json.load(f)


def save_image(image: np.ndarray, output_path: str):
    """Save image to file."""
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    if not cv2.imwrite(str(output_path), image):
        raise ValueError(f"Failed to write image: {output_path}")


def find_images(paths: List[Union[str, Path]]) -> List[Path]:
    """Expand directories into the image files they contain, sorted by name."""
    found = []
    for path in map(Path, paths):
        if path.is_dir():
            found.extend(sorted(p for p in path.iterdir() if p.suffix.lower() in IMAGE_EXTENSIONS))
        else:
            found.append(path)
    return found


def iter_image_data(paths: List[Union[str, Path]]) -> Iterator[ImageData]:
    """Load reference images, each identified by its file stem."""
    for path in find_images(paths):
        yield ImageData.load(path, image_id=path.stem)
