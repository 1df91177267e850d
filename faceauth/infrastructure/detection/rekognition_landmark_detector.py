import os
import io
import cv2
import boto3
import logging
from typing import Optional, Dict, List
from botocore.exceptions import BotoCoreError, ClientError
from PIL import Image

from ...domain.value_objects import LandmarkLabel, LandmarkSet

logger = logging.getLogger("faceauth.verify")

L = LandmarkLabel

# Tipos de landmark de Rekognition -> nuestro enum
REKOGNITION_LANDMARKS: Dict[str, LandmarkLabel] = {
    "eyeLeft": L.LEFT_EYE,
    "eyeRight": L.RIGHT_EYE,
    "nose": L.NOSE_BASE,
    "mouthLeft": L.MOUTH_LEFT,
    "mouthRight": L.MOUTH_RIGHT,
    "upperJawlineLeft": L.LEFT_EAR,
    "upperJawlineRight": L.RIGHT_EAR,
    "midJawlineLeft": L.LEFT_CHEEK,
    "midJawlineRight": L.RIGHT_CHEEK,
    "chinBottom": L.FACE_CONTOUR,
    "leftEyeBrowUp": L.LEFT_EYEBROW_TOP,
    "rightEyeBrowUp": L.RIGHT_EYEBROW_TOP,
    "mouthUp": L.UPPER_LIP_TOP,
    "mouthDown": L.LOWER_LIP_BOTTOM,
}
# Rekognition no tiene puente nasal: punto medio entre los lagrimales
NOSE_BRIDGE_PAIR = ("leftEyeRight", "rightEyeLeft")

def _to_jpg_bytes(img_bgr) -> bytes:
    rgb = cv2.cvtColor(img_bgr, cv2.COLOR_BGR2RGB)
    buf = io.BytesIO()
    Image.fromarray(rgb).save(buf, format="JPEG", quality=90)
    return buf.getvalue()

def landmarks_from_rekognition(landmarks: List[Dict], width: int, height: int) -> LandmarkSet:
    """Landmarks relativos (0..1) de DetectFaces -> LandmarkSet en pixeles."""
    by_type = {lm["Type"]: (float(lm["X"]) * width, float(lm["Y"]) * height)
               for lm in landmarks or [] if "Type" in lm}
    points = {label: by_type[t] for t, label in REKOGNITION_LANDMARKS.items() if t in by_type}
    a, b = NOSE_BRIDGE_PAIR
    if a in by_type and b in by_type:
        points[L.NOSE_BRIDGE] = ((by_type[a][0] + by_type[b][0]) / 2.0,
                                 (by_type[a][1] + by_type[b][1]) / 2.0)
    return LandmarkSet.from_mapping(points)

class RekognitionLandmarkDetector:
    """
    LandmarkDetector con AWS Rekognition DetectFaces.
    Filtra por confianza y tamaño relativo, elige la cara más grande y
    devuelve sus landmarks en pixeles, o None si no hay rostro válido.
    """
    def __init__(
        self,
        region: Optional[str] = None,
        min_confidence: float = 70.0,
        min_face_rel_size: float = 0.015,
        client=None,
    ):
        self.client = client or boto3.client("rekognition", region_name=region or os.getenv("AWS_REGION", "us-east-1"))
        self.min_confidence = float(min_confidence)
        self.min_face_rel_size = float(min_face_rel_size)
        logger.info(f"LandmarkDetector inicializado - min_confidence: {min_confidence}, min_face_rel_size: {min_face_rel_size}")

    def detect_landmarks(self, img_bgr) -> Optional[LandmarkSet]:
        h, w = img_bgr.shape[:2]
        try:
            resp = self.client.detect_faces(Image={"Bytes": _to_jpg_bytes(img_bgr)}, Attributes=["DEFAULT"])
        except (BotoCoreError, ClientError) as e:
            logger.info({"event": "rek_face_detect_error", "error": str(e)})
            return None

        faces = resp.get("FaceDetails", []) or []
        candidates = []
        for i, f in enumerate(faces):
            conf = float(f.get("Confidence", 0.0))
            bbox_rel = f.get("BoundingBox")
            if not bbox_rel:
                continue
            area_rel = bbox_rel["Width"] * bbox_rel["Height"]
            if conf < self.min_confidence or area_rel < self.min_face_rel_size:
                logger.info(f"Rostro {i}: descartado (confianza {conf}, área {round(area_rel * 100, 2)}%)")
                continue
            candidates.append(f)

        if not candidates:
            logger.info({"event": "rek_no_face", "faces_total": len(faces)})
            return None

        # elige la cara más grande
        def face_area(f):
            b = f["BoundingBox"]; return b["Width"] * b["Height"]
        best = max(candidates, key=face_area)

        landmarks = landmarks_from_rekognition(best.get("Landmarks"), w, h)
        logger.info({
            "event": "rek_face_detect",
            "faces_total": len(faces),
            "candidates": len(candidates),
            "confidence": round(float(best.get("Confidence", 0.0)), 2),
            "landmarks": len(landmarks),
        })
        return landmarks if len(landmarks) else None
