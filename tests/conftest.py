from __future__ import annotations

from typing import Dict, Optional

import numpy as np
import pytest

from faceauth.domain.value_objects import LandmarkSet


BASE_FACE = {
    "LEFT_EYE": (0.0, 0.0),
    "RIGHT_EYE": (10.0, 0.0),
    "NOSE_BASE": (5.0, 5.0),
    "MOUTH_LEFT": (3.0, 10.0),
    "MOUTH_RIGHT": (7.0, 10.0),
}


@pytest.fixture
def base_face() -> LandmarkSet:
    return LandmarkSet.from_mapping(BASE_FACE)


@pytest.fixture
def shifted_mouth_face() -> LandmarkSet:
    return LandmarkSet.from_mapping({**BASE_FACE, "MOUTH_RIGHT": (20.0, 10.0)})


def marker_image(marker: int, size: int = 32) -> np.ndarray:
    """Imagen BGR uniforme; el detector falso la reconoce por el valor del pixel."""
    return np.full((size, size, 3), marker, dtype=np.uint8)


class FakeDetector:
    def __init__(self, by_marker: Dict[int, Optional[LandmarkSet]]):
        self.by_marker = by_marker
        self.calls = 0

    def detect_landmarks(self, img_bgr):
        self.calls += 1
        return self.by_marker.get(int(img_bgr[0, 0, 0]))


class FakeReferenceStore:
    def __init__(self, images=None):
        self.images = dict(images or {})

    def save_reference(self, user_id, img_bgr):
        self.images[user_id] = img_bgr
        return f"mem://{user_id}.jpg"

    def fetch_reference(self, user_id):
        return self.images.get(user_id)
