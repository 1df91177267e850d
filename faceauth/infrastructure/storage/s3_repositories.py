# faceauth/infrastructure/storage/s3_repositories.py
from __future__ import annotations
from typing import Optional, Tuple
import os, re, logging
import boto3
import numpy as np
from botocore.exceptions import ClientError

from .local_repositories import (
    REFERENCE_EXT, LocalImageRepository, LocalReferenceStore,
    decode_image_bytes, encode_jpg, safe_user_id,
)
from .http_image_repository import HttpImageRepository, is_http_uri

logger = logging.getLogger("faceauth.storage")

# ---------------------------
# Utilidades para URIs de S3
# ---------------------------
def is_s3_uri(uri: str) -> bool:
    u = (uri or "").strip().lower()
    return u.startswith("s3://") or ".amazonaws.com/" in u

def parse_s3_uri(uri: str) -> Tuple[str, str]:
    """
    Acepta formatos:
      - s3://bucket/prefix/opcional/
      - https://<bucket>.s3.<region>.amazonaws.com/prefix/...
      - https://s3.<region>.amazonaws.com/<bucket>/prefix/...
    Retorna (bucket, prefix) sin '/' inicial.
    """
    u = (uri or "").strip()

    if u.startswith("s3://"):
        rest = u[5:]
        bucket, _, prefix = rest.partition("/")
        return bucket, prefix.lstrip("/")

    m = re.match(r"https?://([^./]+)\.s3[.-][^/]+\.amazonaws\.com/(.+)", u)
    if m:
        return m.group(1), m.group(2).lstrip("/")

    m = re.match(r"https?://s3[.-][^/]+\.amazonaws\.com/([^/]+)/(.+)", u)
    if m:
        return m.group(1), m.group(2).lstrip("/")

    raise ValueError(f"URI S3 no reconocida: {uri}")

_s3_client = None
def s3_client():
    global _s3_client
    if _s3_client is None:
        _s3_client = boto3.client("s3", region_name=os.getenv("AWS_REGION"))
    return _s3_client

def _get_image_s3(cli, bucket: str, key: str) -> Optional[np.ndarray]:
    try:
        obj = cli.get_object(Bucket=bucket, Key=key)
    except ClientError as e:
        logger.info({"event": "s3_get_error", "bucket": bucket, "key": key,
                     "error": e.response.get("Error", {}).get("Code")})
        return None
    return decode_image_bytes(obj["Body"].read())

# ---------------------------
# Repositorios S3 “puros”
# ---------------------------
class S3ReferenceStore:
    """s3://bucket/<prefix>/<user_id>.jpg"""
    def __init__(self, uri: str, client=None):
        self.bucket, prefix = parse_s3_uri(uri)
        self.prefix = prefix if (not prefix or prefix.endswith("/")) else prefix + "/"
        self._client = client

    @property
    def client(self):
        return self._client or s3_client()

    def _key(self, user_id: str) -> str:
        return f"{self.prefix}{safe_user_id(user_id)}{REFERENCE_EXT}"

    def save_reference(self, user_id: str, img_bgr: np.ndarray) -> str:
        key = self._key(user_id)
        self.client.put_object(Bucket=self.bucket, Key=key, Body=encode_jpg(img_bgr), ContentType="image/jpeg")
        return f"s3://{self.bucket}/{key}"

    def fetch_reference(self, user_id: str) -> Optional[np.ndarray]:
        return _get_image_s3(self.client, self.bucket, self._key(user_id))

class S3ImageRepository:
    def __init__(self, client=None):
        self._client = client

    def fetch_image(self, uri: str) -> Optional[np.ndarray]:
        bucket, key = parse_s3_uri(uri)
        return _get_image_s3(self._client or s3_client(), bucket, key)

# -------------------------------------------------
# Repos “Smart” que aceptan LOCAL, S3 y HTTP transparentes
# -------------------------------------------------
class SmartReferenceStore:
    def __init__(self, uri: str):
        self.uri = uri
        self._impl = S3ReferenceStore(uri) if is_s3_uri(uri) else LocalReferenceStore(uri)

    def save_reference(self, user_id: str, img_bgr: np.ndarray) -> str:
        return self._impl.save_reference(user_id, img_bgr)

    def fetch_reference(self, user_id: str) -> Optional[np.ndarray]:
        return self._impl.fetch_reference(user_id)

class SmartImageRepository:
    def __init__(self):
        self._local = LocalImageRepository()
        self._s3 = S3ImageRepository()
        self._http = HttpImageRepository()

    def fetch_image(self, uri: str) -> Optional[np.ndarray]:
        if is_s3_uri(uri):
            return self._s3.fetch_image(uri)
        if is_http_uri(uri):
            return self._http.fetch_image(uri)
        return self._local.fetch_image(uri)
