# faceauth/domain/errors.py
from __future__ import annotations


class LandmarkComparisonError(Exception):
    """Fallo local a una sola comparación. `code` viaja hasta la respuesta HTTP."""
    code = "landmark_comparison_error"


class LabelCountMismatch(LandmarkComparisonError):
    code = "label_count_mismatch"

    def __init__(self, left_count: int, right_count: int):
        self.left_count = left_count
        self.right_count = right_count
        super().__init__(f"Landmark sets differ in size: {left_count} != {right_count}")


class NoOverlappingLabels(LandmarkComparisonError):
    code = "no_overlapping_labels"

    def __init__(self):
        super().__init__("Landmark sets share no label, weighted distance is undefined")


class MissingKeyLandmark(LandmarkComparisonError):
    code = "missing_key_landmark"

    def __init__(self, label, side: str):
        self.label = label
        self.side = side
        super().__init__(f"Key landmark {label.name} missing from {side} set")


class DegenerateAxisRange(LandmarkComparisonError):
    code = "degenerate_axis_range"

    def __init__(self, axis: str):
        self.axis = axis
        super().__init__(f"All landmarks share the same {axis} coordinate")


class InvalidLandmarkCoordinates(LandmarkComparisonError, ValueError):
    code = "invalid_landmark_coordinates"


class UnknownLandmarkLabel(LandmarkComparisonError, ValueError):
    code = "unknown_landmark_label"


class DuplicateLandmarkLabel(LandmarkComparisonError, ValueError):
    code = "duplicate_landmark_label"
