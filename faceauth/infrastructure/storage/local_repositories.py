import os, pathlib, re
from typing import Optional
import cv2, numpy as np

IMG_EXT = (".jpg", ".jpeg", ".png", ".webp", ".bmp")
REFERENCE_EXT = ".jpg"

_USER_ID_RE = re.compile(r"^[A-Za-z0-9_.-]+$")

def safe_user_id(user_id: str) -> str:
    # el id termina siendo nombre de archivo / key de S3
    uid = (user_id or "").strip()
    if not uid or uid in (".", "..") or not _USER_ID_RE.match(uid):
        raise ValueError(f"userId inválido: {user_id!r}")
    return uid

def decode_image_bytes(data: bytes) -> Optional[np.ndarray]:
    if not data:
        return None
    arr = np.frombuffer(data, np.uint8)
    return cv2.imdecode(arr, cv2.IMREAD_COLOR)

def encode_jpg(img_bgr: np.ndarray, quality: int = 90) -> bytes:
    ok, buf = cv2.imencode(REFERENCE_EXT, img_bgr, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
    if not ok:
        raise ValueError("No se pudo codificar la imagen a JPEG")
    return buf.tobytes()

def load_local_image(path_str: str) -> Optional[np.ndarray]:
    path = os.path.normpath(path_str)
    if not os.path.exists(path):
        return None
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError:
        return None
    return decode_image_bytes(data)

# Implementaciones de puertos
class LocalReferenceStore:
    """<base_dir>/<user_id>.jpg"""
    def __init__(self, base_dir: str):
        self.base = pathlib.Path(base_dir)

    def _path(self, user_id: str) -> pathlib.Path:
        return self.base / f"{safe_user_id(user_id)}{REFERENCE_EXT}"

    def save_reference(self, user_id: str, img_bgr: np.ndarray) -> str:
        path = self._path(user_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_bytes(encode_jpg(img_bgr))
        os.replace(tmp, path)
        return str(path)

    def fetch_reference(self, user_id: str) -> Optional[np.ndarray]:
        return load_local_image(str(self._path(user_id)))

class LocalImageRepository:
    def fetch_image(self, uri: str) -> Optional[np.ndarray]:
        if uri.startswith("file://"):
            uri = uri[len("file://"):]
        if not uri.lower().endswith(IMG_EXT):
            return None
        return load_local_image(uri)
