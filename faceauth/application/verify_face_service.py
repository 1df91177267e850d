# faceauth/application/verify_face_service.py
from ..domain.value_objects import Thresholds, VerificationResult
from ..domain.interfaces import ReferenceStore, LandmarkDetector
from ..domain.errors import LandmarkComparisonError
from ..domain.similarity import compare_landmarks, KEY_LANDMARKS
import logging
logger = logging.getLogger("faceauth.verify")


class VerifyFaceService:
    """
    Verificación 1:1 en el login: rostro capturado en vivo vs. referencia enrolada.

    Los fallos (sin referencia, sin rostro, landmarks incompletos) se devuelven
    como VerificationResult con `reason`, nunca como excepción.
    """
    def __init__(
        self,
        reference_store: ReferenceStore,
        detector: LandmarkDetector,
        thresholds: Thresholds,
        strict: bool = False,
    ):
        self.reference_store = reference_store
        self.detector = detector
        self.t = thresholds
        self.strict = strict

    def _fail(self, uuid_proceso: str, reason: str, message: str, live=None, enrolled=None) -> VerificationResult:
        logger.info({"uuid": uuid_proceso, "event": reason, "message": message})
        return VerificationResult(False, message, reason=reason, threshold=self.t.similarity,
                                  live_landmarks=live, enrolled_landmarks=enrolled)

    def execute(self, uuid_proceso: str, user_id: str, probe_bgr) -> VerificationResult:
        # 1) referencia enrolada
        ref_img = self.reference_store.fetch_reference(user_id)
        if ref_img is None:
            return self._fail(uuid_proceso, "reference_not_found", "Reference not found")

        # 2) landmarks de ambos lados
        enrolled = self.detector.detect_landmarks(ref_img)
        if enrolled is None:
            return self._fail(uuid_proceso, "no_face_in_reference", "No face detected in the stored image")

        live = self.detector.detect_landmarks(probe_bgr)
        if live is None:
            return self._fail(uuid_proceso, "no_face_in_probe", "No face detected in the captured image",
                              enrolled=enrolled)

        logger.info({
            "uuid": uuid_proceso,
            "event": "landmarks_detected",
            "live_points": len(live),
            "enrolled_points": len(enrolled),
            "live_key_points": sum(1 for k in KEY_LANDMARKS if k in live),
            "enrolled_key_points": sum(1 for k in KEY_LANDMARKS if k in enrolled),
        })

        # 3) similitud por landmarks
        try:
            sim = compare_landmarks(live, enrolled, strict=self.strict)
        except LandmarkComparisonError as e:
            return self._fail(uuid_proceso, e.code, str(e),
                              live=live, enrolled=enrolled)

        # 4) decisión (umbral del llamador)
        match_ok = self.t.accepts(sim.score)
        msg = "Face verification successful" if match_ok else "Face verification failed"

        logger.info({
            "uuid": uuid_proceso,
            "event": "final_decision",
            "status": "success" if match_ok else "false",
            "score": round(sim.score, 4),
            "distance_score": round(sim.distance_score, 4),
            "angle_score": round(sim.angle_score, 4),
            "label_count_mismatch": sim.label_count_mismatch,
            "threshold_similarity": self.t.similarity,
            "match_ok": match_ok,
        })

        return VerificationResult(
            match_ok, msg,
            reason=None if match_ok else "below_threshold",
            similarity=sim,
            threshold=self.t.similarity,
            live_landmarks=live,
            enrolled_landmarks=enrolled,
        )
