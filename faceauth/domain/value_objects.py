# faceauth/domain/value_objects.py
from __future__ import annotations
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, NamedTuple, Optional, Tuple, Union

import numpy as np

from .errors import DuplicateLandmarkLabel, InvalidLandmarkCoordinates, UnknownLandmarkLabel


class LandmarkLabel(Enum):
    """Puntos faciales que entrega el detector. El valor es la posición del slot en LandmarkSet."""
    LEFT_EYE = 0
    RIGHT_EYE = 1
    NOSE_BASE = 2
    MOUTH_LEFT = 3
    MOUTH_RIGHT = 4
    LEFT_EAR = 5
    RIGHT_EAR = 6
    LEFT_CHEEK = 7
    RIGHT_CHEEK = 8
    FACE_CONTOUR = 9
    LEFT_EYEBROW_TOP = 10
    RIGHT_EYEBROW_TOP = 11
    NOSE_BRIDGE = 12
    UPPER_LIP_TOP = 13
    LOWER_LIP_BOTTOM = 14

    @classmethod
    def parse(cls, name: Union[str, "LandmarkLabel"]) -> "LandmarkLabel":
        if isinstance(name, cls):
            return name
        try:
            return cls[str(name).strip().upper()]
        except KeyError:
            raise UnknownLandmarkLabel(f"Unknown landmark label: {name!r}") from None


class Point2D(NamedTuple):
    x: float
    y: float

    @classmethod
    def of(cls, x: Any, y: Any) -> "Point2D":
        try:
            fx, fy = float(x), float(y)
        except (TypeError, ValueError):
            raise InvalidLandmarkCoordinates(f"Non numeric coordinates: ({x!r}, {y!r})") from None
        if not (math.isfinite(fx) and math.isfinite(fy)):
            raise InvalidLandmarkCoordinates(f"Non finite coordinates: ({fx}, {fy})")
        return cls(fx, fy)


PointLike = Union[Point2D, Tuple[float, float], List[float]]


def _to_point(value: PointLike) -> Point2D:
    if isinstance(value, Point2D):
        return Point2D.of(value.x, value.y)
    if not isinstance(value, (tuple, list)) or len(value) != 2:
        raise InvalidLandmarkCoordinates(f"Expected an (x, y) pair, got {value!r}")
    return Point2D.of(value[0], value[1])


_EMPTY_SLOTS: Tuple[Optional[Point2D], ...] = (None,) * len(LandmarkLabel)


@dataclass(frozen=True)
class LandmarkSet:
    """
    Un slot opcional por LandmarkLabel (None = el detector no lo entregó).
    Inmutable: las transformaciones devuelven un LandmarkSet nuevo.
    """
    slots: Tuple[Optional[Point2D], ...] = field(default=_EMPTY_SLOTS)

    def __post_init__(self):
        if len(self.slots) != len(LandmarkLabel):
            raise ValueError(f"LandmarkSet needs {len(LandmarkLabel)} slots, got {len(self.slots)}")

    @classmethod
    def from_mapping(cls, mapping: Mapping[Union[str, LandmarkLabel], PointLike]) -> "LandmarkSet":
        slots: List[Optional[Point2D]] = list(_EMPTY_SLOTS)
        for key, value in (mapping or {}).items():
            label = LandmarkLabel.parse(key)
            if slots[label.value] is not None:
                raise DuplicateLandmarkLabel(f"Landmark {label.name} given more than once")
            slots[label.value] = _to_point(value)
        return cls(tuple(slots))

    @classmethod
    def from_points(cls, labels: Iterable[LandmarkLabel], array: np.ndarray) -> "LandmarkSet":
        slots: List[Optional[Point2D]] = list(_EMPTY_SLOTS)
        for label, (x, y) in zip(labels, np.asarray(array, dtype=np.float64).reshape(-1, 2)):
            slots[label.value] = Point2D.of(x, y)
        return cls(tuple(slots))

    def get(self, label: LandmarkLabel) -> Optional[Point2D]:
        return self.slots[label.value]

    def __contains__(self, label: object) -> bool:
        return isinstance(label, LandmarkLabel) and self.slots[label.value] is not None

    def __len__(self) -> int:
        return sum(1 for p in self.slots if p is not None)

    def labels(self) -> List[LandmarkLabel]:
        return [label for label in LandmarkLabel if self.slots[label.value] is not None]

    def items(self) -> Iterator[Tuple[LandmarkLabel, Point2D]]:
        for label in LandmarkLabel:
            point = self.slots[label.value]
            if point is not None:
                yield label, point

    def as_array(self, labels: Optional[Iterable[LandmarkLabel]] = None) -> np.ndarray:
        """(n, 2) float64 en el orden de `labels` (por defecto, los presentes en orden del enum)."""
        chosen = self.labels() if labels is None else list(labels)
        rows = [self.slots[label.value] for label in chosen]
        return np.array([[p.x, p.y] for p in rows], dtype=np.float64).reshape(-1, 2)

    def to_dict(self) -> Dict[str, List[float]]:
        return {label.name: [point.x, point.y] for label, point in self.items()}


class DistanceScore(NamedTuple):
    score: float
    weight_used: float


@dataclass(frozen=True)
class SimilarityResult:
    score: float                   # 0..1, mezcla final
    distance_score: float          # 0..1
    angle_score: float             # 0..1
    weight_used: float             # peso total de los labels compartidos
    label_count_mismatch: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "distance_score": self.distance_score,
            "angle_score": self.angle_score,
            "weight_used": self.weight_used,
            "label_count_mismatch": self.label_count_mismatch,
        }


@dataclass(frozen=True)
class Thresholds:
    similarity: float = 0.98

    def accepts(self, score: float) -> bool:
        return score > self.similarity


@dataclass(frozen=True)
class VerificationResult:
    is_match: bool
    message: str
    reason: Optional[str] = None
    similarity: Optional[SimilarityResult] = None
    threshold: float = Thresholds.similarity
    live_landmarks: Optional[LandmarkSet] = None
    enrolled_landmarks: Optional[LandmarkSet] = None


@dataclass(frozen=True)
class EnrollmentResult:
    enrolled: bool
    message: str
    reason: Optional[str] = None
    reference_uri: Optional[str] = None
    landmarks_count: int = 0
