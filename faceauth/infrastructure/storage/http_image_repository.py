# faceauth/infrastructure/storage/http_image_repository.py
from typing import Optional
import logging
import requests, numpy as np

from .local_repositories import decode_image_bytes

logger = logging.getLogger("faceauth.storage")

def is_http_uri(uri: str) -> bool:
    return (uri or "").strip().lower().startswith(("http://", "https://"))

class HttpImageRepository:
    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    def fetch_image(self, url: str) -> Optional[np.ndarray]:
        try:
            r = requests.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.info({"event": "http_get_error", "url": url, "error": str(e)})
            return None
        if r.status_code != 200:
            return None
        return decode_image_bytes(r.content)
