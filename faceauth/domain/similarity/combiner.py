# faceauth/domain/similarity/combiner.py
from __future__ import annotations
import logging

from ..errors import LabelCountMismatch
from ..value_objects import LandmarkSet, SimilarityResult
from .angles import angle_score
from .distance import distance_score

logger = logging.getLogger("faceauth.similarity")

W_DISTANCE = 0.7
W_ANGLE = 0.3


def combine(distance: float, angle: float) -> float:
    score = W_DISTANCE * distance + W_ANGLE * angle
    return min(1.0, max(0.0, score))


def compare_landmarks(live: LandmarkSet, enrolled: LandmarkSet, strict: bool = False) -> SimilarityResult:
    """
    Pipeline completo: normalización -> {distancia, ángulos} -> mezcla.

    Un conteo distinto de labels puntúa la comparación completa con 0 (sin
    calcular ángulos); con `strict=True` lanza LabelCountMismatch. El umbral de
    aceptación es decisión del llamador.
    """
    mismatch = len(live) != len(enrolled)
    if mismatch:
        if strict:
            raise LabelCountMismatch(len(live), len(enrolled))
        result = SimilarityResult(score=0.0, distance_score=0.0, angle_score=0.0,
                                  weight_used=0.0, label_count_mismatch=True)
    else:
        dist = distance_score(live, enrolled)
        angle = angle_score(live, enrolled)
        result = SimilarityResult(
            score=combine(dist.score, angle),
            distance_score=dist.score,
            angle_score=angle,
            weight_used=dist.weight_used,
        )
    logger.debug({
        "event": "landmark_similarity",
        "live_points": len(live),
        "enrolled_points": len(enrolled),
        "distance_score": round(result.distance_score, 6),
        "angle_score": round(result.angle_score, 6),
        "score": round(result.score, 6),
        "label_count_mismatch": mismatch,
    })
    return result
