# faceauth/domain/similarity/normalizer.py
"""
Normalización por bounding box: cada eje se lleva a [0, 1] de forma independiente.

Elimina posición y escala por eje de la imagen de origen. NO corrige rotación
ni perspectiva, ni preserva la relación de aspecto.
"""
from __future__ import annotations
import logging
from typing import List

import numpy as np

from ..errors import DegenerateAxisRange, InvalidLandmarkCoordinates
from ..value_objects import LandmarkSet

logger = logging.getLogger("faceauth.similarity")

AXES = ("x", "y")
DEGENERATE_AXIS_VALUE = 0.5

ON_DEGENERATE_CENTER = "center"
ON_DEGENERATE_RAISE = "raise"


def _axis_span(pts: np.ndarray) -> np.ndarray:
    # max - min puede desbordar a inf con coordenadas finitas enormes
    with np.errstate(over="ignore"):
        return pts.max(axis=0) - pts.min(axis=0)


def degenerate_axes(landmarks: LandmarkSet) -> List[str]:
    """Ejes donde todos los puntos comparten coordenada (max == min)."""
    pts = landmarks.as_array()
    if pts.shape[0] == 0:
        return []
    span = _axis_span(pts)
    return [axis for axis, s in zip(AXES, span) if s == 0.0]


def normalize(landmarks: LandmarkSet, on_degenerate: str = ON_DEGENERATE_CENTER) -> LandmarkSet:
    """
    (v - min) / (max - min) por eje.

    Eje degenerado (max == min): con "center" todas las coordenadas de ese eje
    valen 0.5; con "raise" se lanza DegenerateAxisRange.
    """
    if on_degenerate not in (ON_DEGENERATE_CENTER, ON_DEGENERATE_RAISE):
        raise ValueError(f"on_degenerate must be 'center' or 'raise', got {on_degenerate!r}")

    labels = landmarks.labels()
    if not labels:
        return landmarks

    pts = landmarks.as_array(labels)
    mins = pts.min(axis=0)
    span = _axis_span(pts)

    out = np.empty_like(pts)
    for i, axis in enumerate(AXES):
        if not np.isfinite(span[i]):
            raise InvalidLandmarkCoordinates(f"Coordinate range on axis {axis} overflows: {span[i]}")
        if span[i] == 0.0:
            if on_degenerate == ON_DEGENERATE_RAISE:
                raise DegenerateAxisRange(axis)
            logger.debug({"event": "degenerate_axis", "axis": axis, "points": len(labels),
                          "fallback": DEGENERATE_AXIS_VALUE})
            out[:, i] = DEGENERATE_AXIS_VALUE
        else:
            out[:, i] = (pts[:, i] - mins[i]) / span[i]

    return LandmarkSet.from_points(labels, out)
