# faceauth/application/enroll_face_service.py
import logging

from ..domain.value_objects import EnrollmentResult
from ..domain.interfaces import ReferenceStore, LandmarkDetector
from ..domain.similarity import KEY_LANDMARKS

logger = logging.getLogger("faceauth.enroll")


class EnrollFaceService:
    """Registro: valida que la foto tenga un rostro y la guarda como referencia del usuario."""

    def __init__(self, reference_store: ReferenceStore, detector: LandmarkDetector):
        self.reference_store = reference_store
        self.detector = detector

    def execute(self, uuid_proceso: str, user_id: str, img_bgr) -> EnrollmentResult:
        landmarks = self.detector.detect_landmarks(img_bgr)
        if landmarks is None or len(landmarks) == 0:
            logger.info({"uuid": uuid_proceso, "event": "no_face", "user_id": user_id})
            return EnrollmentResult(False, "No face detected. Please try again.", reason="no_face")

        missing = [k.name for k in KEY_LANDMARKS if k not in landmarks]
        if missing:
            # se enrola igual; la verificación fallará con missing_key_landmark si persiste
            logger.info({"uuid": uuid_proceso, "event": "key_landmarks_incomplete", "missing": missing})

        uri = self.reference_store.save_reference(user_id, img_bgr)
        logger.info({
            "uuid": uuid_proceso,
            "event": "reference_saved",
            "user_id": user_id,
            "reference_uri": uri,
            "landmarks_count": len(landmarks),
        })
        return EnrollmentResult(True, "Face enrolled", reference_uri=uri, landmarks_count=len(landmarks))
