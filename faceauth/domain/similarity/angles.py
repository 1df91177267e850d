# faceauth/domain/similarity/angles.py
"""
Consistencia angular entre cinco puntos clave.

Para cada terna (i, j, k) con i < j < k sobre KEY_LANDMARKS se mide el ángulo
en el vértice j entre los rayos hacia i y hacia k, en grados y plegado a
[0, 180]. La similitud es 1 - (diferencia media entre ambos sets) / 180.
"""
from __future__ import annotations
from itertools import combinations
from typing import Tuple

import numpy as np

from ..errors import MissingKeyLandmark
from ..value_objects import LandmarkLabel, LandmarkSet
from .normalizer import normalize

KEY_LANDMARKS: Tuple[LandmarkLabel, ...] = (
    LandmarkLabel.LEFT_EYE,
    LandmarkLabel.RIGHT_EYE,
    LandmarkLabel.NOSE_BASE,
    LandmarkLabel.MOUTH_LEFT,
    LandmarkLabel.MOUTH_RIGHT,
)

# Orden lexicográfico fijo: (0,1,2), (0,1,3), ..., (2,3,4). Son C(5,3) = 10.
ANGLE_TRIPLES: Tuple[Tuple[int, int, int], ...] = tuple(combinations(range(len(KEY_LANDMARKS)), 3))

_I = np.array([t[0] for t in ANGLE_TRIPLES])
_J = np.array([t[1] for t in ANGLE_TRIPLES])
_K = np.array([t[2] for t in ANGLE_TRIPLES])


def require_key_landmarks(landmarks: LandmarkSet, side: str) -> None:
    for label in KEY_LANDMARKS:
        if label not in landmarks:
            raise MissingKeyLandmark(label, side)


def triple_angles(landmarks: LandmarkSet) -> np.ndarray:
    """Los 10 ángulos (grados, [0, 180]) en el orden de ANGLE_TRIPLES."""
    pts = landmarks.as_array(KEY_LANDMARKS)
    vi, vj, vk = pts[_I], pts[_J], pts[_K]
    to_i = np.arctan2(vi[:, 1] - vj[:, 1], vi[:, 0] - vj[:, 0])
    to_k = np.arctan2(vk[:, 1] - vj[:, 1], vk[:, 0] - vj[:, 0])
    angles = np.degrees(np.abs(to_i - to_k))
    return np.where(angles > 180.0, 360.0 - angles, angles)


def angle_score(a: LandmarkSet, b: LandmarkSet) -> float:
    require_key_landmarks(a, "first")
    require_key_landmarks(b, "second")

    diffs = np.abs(triple_angles(normalize(a)) - triple_angles(normalize(b)))
    average = float(diffs.sum()) / len(ANGLE_TRIPLES)
    return float(min(1.0, max(0.0, 1.0 - average / 180.0)))
