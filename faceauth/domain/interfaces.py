# faceauth/domain/interfaces.py
from __future__ import annotations
from typing import Protocol, Optional
import numpy as np

from .value_objects import LandmarkSet

# ---- Repositorios de I/O (puertos) ----

class ReferenceStore(Protocol):
    """Guarda/obtiene la imagen de referencia enrolada de un usuario (una por usuario)."""
    def save_reference(self, user_id: str, img_bgr: np.ndarray) -> str:
        """Devuelve la URI donde quedó guardada."""
        ...
    def fetch_reference(self, user_id: str) -> Optional[np.ndarray]:
        ...

class ImageRepository(Protocol):
    """Descarga UNA imagen desde una URI (ruta local, s3://, https://...)."""
    def fetch_image(self, uri: str) -> Optional[np.ndarray]:
        ...

# ---- Visión (puertos) ----

class LandmarkDetector(Protocol):
    def detect_landmarks(self, img_bgr: np.ndarray) -> Optional[LandmarkSet]:
        """
        LandmarkSet en coordenadas de la imagen (pixeles) del rostro elegido,
        o None si no hay rostro válido.
        """
        ...
