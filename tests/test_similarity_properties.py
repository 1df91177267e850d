"""
Propiedades del pipeline completo (normalización -> distancia + ángulos -> mezcla).

Run with: python -m pytest tests/test_similarity_properties.py -v
"""
import numpy as np
import pytest

from faceauth.domain.errors import LabelCountMismatch, MissingKeyLandmark
from faceauth.domain.similarity import combine, compare_landmarks
from faceauth.domain.value_objects import LandmarkLabel, LandmarkSet
from tests.conftest import BASE_FACE


def _random_face(rng, n_extra: int = 10) -> LandmarkSet:
    labels = list(LandmarkLabel)[: 5 + n_extra]
    pts = rng.uniform(0, 480, size=(len(labels), 2))
    return LandmarkSet.from_points(labels, pts)


def _transform(face: LandmarkSet, scale=(1.0, 1.0), shift=(0.0, 0.0)) -> LandmarkSet:
    pts = face.as_array() * np.array(scale) + np.array(shift)
    return LandmarkSet.from_points(face.labels(), pts)


class TestCombiner:
    def test_weights(self):
        assert combine(1.0, 0.0) == pytest.approx(0.7)
        assert combine(0.0, 1.0) == pytest.approx(0.3)
        assert combine(0.5, 0.5) == pytest.approx(0.5)

    def test_clamped_to_unit_range(self):
        assert combine(2.0, 2.0) == 1.0
        assert combine(-1.0, 0.0) == 0.0


class TestConcreteScenarios:
    def test_identical_faces(self, base_face):
        result = compare_landmarks(base_face, LandmarkSet.from_mapping(BASE_FACE))
        assert result.distance_score == 1.0
        assert result.angle_score == 1.0
        assert result.score == pytest.approx(1.0, abs=1e-12)
        assert not result.label_count_mismatch

    def test_moved_mouth_corner(self, base_face, shifted_mouth_face):
        result = compare_landmarks(base_face, shifted_mouth_face)
        assert 0.0 < result.score < 1.0
        assert result.angle_score < 0.99
        assert result.distance_score < 1.0


class TestInvariants:
    def test_identity_on_random_faces(self):
        rng = np.random.default_rng(7)
        for _ in range(5):
            face = _random_face(rng)
            assert compare_landmarks(face, face).score == pytest.approx(1.0, abs=1e-12)

    def test_symmetry(self):
        rng = np.random.default_rng(11)
        a, b = _random_face(rng), _random_face(rng)
        ab, ba = compare_landmarks(a, b), compare_landmarks(b, a)
        assert ab.distance_score == ba.distance_score
        assert ab.angle_score == ba.angle_score
        assert ab.score == ba.score

    def test_range(self):
        rng = np.random.default_rng(3)
        for n_extra in (0, 4, 10):
            for _ in range(10):
                score = compare_landmarks(_random_face(rng, n_extra), _random_face(rng, n_extra)).score
                assert 0.0 <= score <= 1.0

    def test_translation_invariance(self, base_face, shifted_mouth_face):
        before = compare_landmarks(base_face, shifted_mouth_face).score
        after = compare_landmarks(
            _transform(base_face, shift=(123.5, -42.25)),
            _transform(shifted_mouth_face, shift=(123.5, -42.25)),
        ).score
        assert after == pytest.approx(before, rel=1e-9)

    def test_per_axis_scale_invariance(self, base_face, shifted_mouth_face):
        before = compare_landmarks(base_face, shifted_mouth_face).score
        after = compare_landmarks(
            _transform(base_face, scale=(3.7, 0.4)),
            _transform(shifted_mouth_face, scale=(3.7, 0.4)),
        ).score
        assert after == pytest.approx(before, rel=1e-9)

    def test_rotation_is_not_invariant(self, base_face):
        # 90° alrededor del centroide (5, 5): (x, y) -> (10 - y, x)
        pts = base_face.as_array()
        rotated = LandmarkSet.from_points(base_face.labels(), np.column_stack([10.0 - pts[:, 1], pts[:, 0]]))
        result = compare_landmarks(base_face, rotated)
        assert result.score < 1.0 - 1e-6


class TestFailures:
    def _ten_and_nine(self):
        ten = {**BASE_FACE, "LEFT_EAR": (-2, 3), "RIGHT_EAR": (12, 3), "LEFT_CHEEK": (1, 6),
               "RIGHT_CHEEK": (9, 6), "FACE_CONTOUR": (5, 9)}
        nine = {k: v for k, v in ten.items() if k != "FACE_CONTOUR"}
        return LandmarkSet.from_mapping(ten), LandmarkSet.from_mapping(nine)

    def test_label_count_mismatch_scores_zero(self):
        a, b = self._ten_and_nine()
        result = compare_landmarks(a, b)
        assert result.label_count_mismatch
        assert result.distance_score == 0.0
        assert result.weight_used == 0.0
        assert result.angle_score == 0.0
        assert result.score == 0.0

    def test_label_count_mismatch_with_dropped_key_landmark_scores_zero(self):
        six = LandmarkSet.from_mapping({**BASE_FACE, "LEFT_EAR": (-2, 3)})
        four = LandmarkSet.from_mapping({k: v for k, v in BASE_FACE.items() if k != "MOUTH_LEFT"})
        result = compare_landmarks(six, four)
        assert result.label_count_mismatch
        assert result.score == 0.0

    def test_strict_mode_raises_on_mismatch(self):
        a, b = self._ten_and_nine()
        with pytest.raises(LabelCountMismatch) as exc:
            compare_landmarks(a, b, strict=True)
        assert (exc.value.left_count, exc.value.right_count) == (10, 9)

    def test_missing_key_landmark_propagates(self):
        a = LandmarkSet.from_mapping({"LEFT_EYE": (0, 0), "RIGHT_EYE": (1, 0), "LEFT_EAR": (0, 1)})
        with pytest.raises(MissingKeyLandmark):
            compare_landmarks(a, a)
