from .normalizer import normalize, degenerate_axes
from .distance import WEIGHT_TABLE, distance_score, weight_for
from .angles import ANGLE_TRIPLES, KEY_LANDMARKS, angle_score
from .combiner import combine, compare_landmarks

__all__ = [
    "normalize", "degenerate_axes",
    "WEIGHT_TABLE", "distance_score", "weight_for",
    "ANGLE_TRIPLES", "KEY_LANDMARKS", "angle_score",
    "combine", "compare_landmarks",
]
