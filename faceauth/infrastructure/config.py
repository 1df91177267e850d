import os
import re
from typing import List
from ..domain.value_objects import Thresholds
from ..application.verify_face_service import VerifyFaceService
from ..application.enroll_face_service import EnrollFaceService

from .storage.s3_repositories import SmartReferenceStore
from .detection.rekognition_landmark_detector import RekognitionLandmarkDetector

# --- Helpers ENV robustos (soportan "0.98 # comentario") ---
def _env_float(var: str, default: float) -> float:
    raw = os.getenv(var, str(default))
    m = re.search(r"[-+]?\d*\.?\d+(?:[eE][-+]?\d+)?", str(raw))
    return float(m.group(0)) if m else float(default)

def _env_str(var: str, default: str) -> str:
    return str(os.getenv(var, default)).strip()

def _env_list(var: str) -> List[str]:
    return [p.strip() for p in os.getenv(var, "").split(",") if p.strip()]

def get_thresholds() -> Thresholds:
    return Thresholds(similarity=_env_float("SIMILARITY_TH", 0.98))

def get_reference_store_uri() -> str:
    return _env_str("REFERENCE_STORE_URI", os.path.join(os.getcwd(), "user_faces"))

def get_image_url_prefixes() -> List[str]:
    """Prefijos aceptados para `imageUrl` (ruta local, s3://, https://). Vacío: imageUrl deshabilitado."""
    return _env_list("IMAGE_URL_ALLOWED_PREFIXES")

def _detector() -> RekognitionLandmarkDetector:
    return RekognitionLandmarkDetector(
        region=_env_str("AWS_REGION", "us-east-1"),
        min_confidence=_env_float("REKOGNITION_MIN_CONFIDENCE", 70.0),
    )

def build_verify_service() -> VerifyFaceService:
    return VerifyFaceService(
        reference_store=SmartReferenceStore(get_reference_store_uri()),
        detector=_detector(),
        thresholds=get_thresholds(),
    )

def build_enroll_service() -> EnrollFaceService:
    return EnrollFaceService(
        reference_store=SmartReferenceStore(get_reference_store_uri()),
        detector=_detector(),
    )
