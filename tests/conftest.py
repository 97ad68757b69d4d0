"""Shared fixtures: synthetic reference images and engine factories."""

import cv2
import numpy as np
import pytest

from reco.core import ImageRecognition


def make_textured_image(seed: int = 0, height: int = 480, width: int = 640) -> np.ndarray:
    """Deterministic cluttered BGR image with plenty of corners and blobs."""
    rng = np.random.RandomState(seed)

    base = rng.randint(0, 256, (height // 16, width // 16, 3)).astype(np.uint8)
    image = cv2.resize(base, (width, height), interpolation=cv2.INTER_CUBIC)

    for _ in range(150):
        color = tuple(int(c) for c in rng.randint(0, 256, 3))
        x, y = int(rng.randint(0, width)), int(rng.randint(0, height))
        kind = rng.randint(3)
        if kind == 0:
            w, h = int(rng.randint(8, 60)), int(rng.randint(8, 60))
            cv2.rectangle(image, (x, y), (x + w, y + h), color, -1)
        elif kind == 1:
            cv2.circle(image, (x, y), int(rng.randint(4, 30)), color, -1)
        else:
            letter = chr(ord('A') + rng.randint(26))
            cv2.putText(image, letter, (x, y), cv2.FONT_HERSHEY_SIMPLEX,
                        float(rng.uniform(0.8, 2.0)), color, 2)

    return image


# preprocessing at 320 px keeps enough detail for self-matching tests
TEST_CONFIG = {
    "preprocessing": {"low_resolution": 320},
    "engine": {"max_workers": 4},
}


@pytest.fixture
def textured_image():
    return make_textured_image(0)


@pytest.fixture
def other_images():
    return [make_textured_image(seed) for seed in (11, 12, 13)]


@pytest.fixture
def engine():
    with ImageRecognition(TEST_CONFIG) as recognition:
        yield recognition


@pytest.fixture
def image_factory():
    return make_textured_image
