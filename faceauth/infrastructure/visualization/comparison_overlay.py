# faceauth/infrastructure/visualization/comparison_overlay.py
from typing import Tuple
import cv2
import numpy as np

from ...domain.value_objects import LandmarkSet
from ...domain.similarity import normalize

# BGR
COLOR_LIVE = (255, 0, 0)        # azul
COLOR_ENROLLED = (0, 0, 255)    # rojo
COLOR_LINK = (0, 255, 0)        # verde
COLOR_BG = (255, 255, 255)

def _px(x: float, y: float, size: int) -> Tuple[int, int]:
    return int(round(x * (size - 1))), int(round(y * (size - 1)))

def render_comparison(live: LandmarkSet, enrolled: LandmarkSet, size: int = 400, radius: int = 5) -> np.ndarray:
    """
    Lienzo blanco con ambos sets normalizados: vivo en azul, enrolado en rojo,
    y una línea verde entre cada par de puntos con el mismo label.
    """
    canvas = np.full((size, size, 3), COLOR_BG, dtype=np.uint8)
    nl, ne = normalize(live), normalize(enrolled)

    for label, p in nl.items():
        q = ne.get(label)
        if q is not None:
            cv2.line(canvas, _px(p.x, p.y, size), _px(q.x, q.y, size), COLOR_LINK, 2, cv2.LINE_AA)
    for _, p in nl.items():
        cv2.circle(canvas, _px(p.x, p.y, size), radius, COLOR_LIVE, -1, cv2.LINE_AA)
    for _, p in ne.items():
        cv2.circle(canvas, _px(p.x, p.y, size), radius, COLOR_ENROLLED, -1, cv2.LINE_AA)
    return canvas

def encode_png(img_bgr: np.ndarray) -> bytes:
    ok, buf = cv2.imencode(".png", img_bgr)
    if not ok:
        raise ValueError("No se pudo codificar el overlay a PNG")
    return buf.tobytes()
