# faceauth/domain/similarity/distance.py
from __future__ import annotations
from types import MappingProxyType
from typing import Mapping

import numpy as np

from ..errors import NoOverlappingLabels
from ..value_objects import DistanceScore, LandmarkLabel, LandmarkSet
from .normalizer import normalize

L = LandmarkLabel

# Importancia relativa de cada punto en la distancia ponderada (solo lectura).
WEIGHT_TABLE: Mapping[LandmarkLabel, float] = MappingProxyType({
    L.LEFT_EYE: 2.0, L.RIGHT_EYE: 2.0,
    L.NOSE_BASE: 1.5,
    L.MOUTH_LEFT: 1.5, L.MOUTH_RIGHT: 1.5,
    L.LEFT_EAR: 1.0, L.RIGHT_EAR: 1.0,
    L.LEFT_CHEEK: 1.0, L.RIGHT_CHEEK: 1.0,
    L.FACE_CONTOUR: 1.0,
    L.LEFT_EYEBROW_TOP: 1.2, L.RIGHT_EYEBROW_TOP: 1.2,
    L.NOSE_BRIDGE: 1.3,
    L.UPPER_LIP_TOP: 1.2, L.LOWER_LIP_BOTTOM: 1.2,
})
DEFAULT_WEIGHT = 1.0


def weight_for(label: LandmarkLabel) -> float:
    return WEIGHT_TABLE.get(label, DEFAULT_WEIGHT)


def distance_score(a: LandmarkSet, b: LandmarkSet) -> DistanceScore:
    """
    Similitud 1 / (1 + distancia euclídea media ponderada) entre sets normalizados.

    - Tamaños distintos: comparación inválida, similitud 0 (peso usado 0).
    - Labels presentes en un solo set se ignoran, no penalizan.
    - Sin labels compartidos: NoOverlappingLabels.
    """
    if len(a) != len(b):
        return DistanceScore(0.0, 0.0)

    na, nb = normalize(a), normalize(b)
    shared = [label for label in na.labels() if label in nb]
    if not shared:
        raise NoOverlappingLabels()

    weights = np.array([weight_for(label) for label in shared], dtype=np.float64)
    dists = np.linalg.norm(na.as_array(shared) - nb.as_array(shared), axis=1)

    weighted_sum = float(np.dot(dists, weights))
    total_weight = float(weights.sum())
    average = weighted_sum / total_weight
    return DistanceScore(1.0 / (1.0 + average), total_weight)
