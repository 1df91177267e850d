# faceauth/presentation/api.py
import os, json, uuid, base64, binascii, datetime, logging
from typing import List, Dict, Any, Optional, Tuple
import numpy as np
from django.conf import settings
from django.http import FileResponse
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

from faceauth.domain.errors import LandmarkComparisonError
from faceauth.domain.value_objects import LandmarkSet, VerificationResult
from faceauth.domain.similarity import compare_landmarks
from faceauth.infrastructure.config import (
    build_enroll_service, build_verify_service, get_image_url_prefixes, get_thresholds,
)
from faceauth.infrastructure.storage.local_repositories import decode_image_bytes, safe_user_id
from faceauth.infrastructure.storage.http_image_repository import is_http_uri
from faceauth.infrastructure.storage.s3_repositories import SmartImageRepository, is_s3_uri
from faceauth.infrastructure.visualization.comparison_overlay import render_comparison, encode_png
from .schemas import (
    CompareLandmarksRequestSerializer,
    CompareLandmarksResponseSerializer,
    FaceImageRequestSerializer,
    EnrollResponseSerializer,
    VerifyResponseSerializer,
    VerificationFlowSerializer,
    TraceResponseSerializer,
)

logger = logging.getLogger("faceauth.verify")


def _flow_dir() -> str:
    return getattr(settings, "FLOW_LOG_DIR", None) or os.getenv("FLOW_LOG_DIR", os.path.join(os.getcwd(), "faceauth_flows"))

def _ensure_dir(path: str):
    if not os.path.exists(path):
        os.makedirs(path, exist_ok=True)

def _now_iso():
    return datetime.datetime.now(datetime.timezone.utc).isoformat()

def _safe_write_json(path: str, data: Dict[str, Any]):
    tmp = f"{path}.tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
    os.replace(tmp, path)

def _read_json_file(path: str) -> Optional[Dict[str, Any]]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError):
        return None

def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
        return True
    except ValueError:
        return False

def _b64_to_bgr(b64: str) -> np.ndarray:
    """base64 (o data URL) -> imagen BGR (OpenCV)."""
    try:
        data = base64.b64decode(b64.split(",")[-1], validate=False)
    except (binascii.Error, ValueError):
        raise ValueError("imageBase64 inválido (no es base64)")
    img = decode_image_bytes(data)
    if img is None:
        raise ValueError("imageBase64 inválido (no se pudo decodificar)")
    return img

def _under_prefix(value: str, prefix: str) -> bool:
    prefix = prefix.rstrip("/")
    return value == prefix or value.startswith(prefix + "/")

def _image_url_allowed(url: str, prefixes: List[str]) -> bool:
    """Solo URIs bajo IMAGE_URL_ALLOWED_PREFIXES; rutas locales comparadas ya resueltas (sin ..)."""
    if is_s3_uri(url) or is_http_uri(url):
        return any(_under_prefix(url, p) for p in prefixes)
    path = os.path.realpath(url[7:] if url.startswith("file://") else url)
    return any(
        _under_prefix(path, os.path.realpath(p))
        for p in prefixes if not (is_s3_uri(p) or is_http_uri(p))
    )

def _load_request_image(body: Dict[str, Any]) -> np.ndarray:
    b64 = (body.get("imageBase64") or "").strip()
    if b64:
        return _b64_to_bgr(b64)
    url = (body.get("imageUrl") or "").strip()
    if not url:
        raise ValueError("Falta imageBase64 o imageUrl")
    if not _image_url_allowed(url, get_image_url_prefixes()):
        raise ValueError(f"imageUrl no permitido: {url}")
    img = SmartImageRepository().fetch_image(url)
    if img is None:
        raise ValueError(f"No se pudo leer la imagen: {url}")
    return img

def _parse_face_request(body: Dict[str, Any]) -> Tuple[str, str, np.ndarray]:
    uuid_proceso = (body.get("uuidProceso") or "").strip()
    if not uuid_proceso:
        raise ValueError("Falta uuidProceso")
    if not _is_uuid(uuid_proceso):
        raise ValueError("uuidProceso inválido")
    user_id = safe_user_id(body.get("userId") or "")
    return uuid_proceso, user_id, _load_request_image(body)

def _similarity_payload(result, thresholds) -> Dict[str, Any]:
    return {
        **result.to_dict(),
        "threshold": thresholds.similarity,
        "is_match": thresholds.accepts(result.score),
    }

def _append_general_index(uuid_proceso: str, item: Dict[str, Any]):
    """
    Índice por proceso general: <FLOW_LOG_DIR>/trace_<uuidProceso>.json
    {"uuid_proceso": ..., "count": N, "items": [...]}  // más nuevo primero
    """
    flow_dir = _flow_dir()
    _ensure_dir(flow_dir)
    idx_path = os.path.join(flow_dir, f"trace_{uuid_proceso}.json")
    idx = _read_json_file(idx_path) or {"uuid_proceso": uuid_proceso, "count": 0, "items": []}
    idx["items"].insert(0, item)
    idx["count"] = len(idx["items"])
    _safe_write_json(idx_path, idx)

def _scan_flows_by_uuid_proceso(uuid_proceso: str) -> List[Dict[str, Any]]:
    """Fallback si no existe trace_<uuid>.json: recorre todos los .txt (más nuevos primero)."""
    flow_dir = _flow_dir()
    _ensure_dir(flow_dir)
    out: List[Dict[str, Any]] = []
    for name in os.listdir(flow_dir):
        if not name.endswith(".txt"):
            continue
        data = _read_json_file(os.path.join(flow_dir, name))
        if not data or data.get("uuid_proceso") != uuid_proceso:
            continue
        out.append(_summary_item(data))
    out.sort(key=lambda x: x.get("finished_at_utc") or "", reverse=True)
    return out

def _summary_item(flow: Dict[str, Any]) -> Dict[str, Any]:
    result = flow.get("result") or {}
    sim = result.get("similarity") or {}
    return {
        "uuid_proceso_verificacion": flow.get("uuid_proceso_verificacion"),
        "user_id": flow.get("user_id"),
        "status": result.get("status") or "unknown",
        "message": result.get("message"),
        "reason": result.get("reason"),
        "score": sim.get("score"),
        "is_match": bool(result.get("is_match")),
        "started_at_utc": flow.get("started_at_utc"),
        "finished_at_utc": flow.get("finished_at_utc"),
    }

def _paginate(items: List[Dict[str, Any]], offset: int, limit: int) -> Dict[str, Any]:
    total = len(items)
    sliced = items[offset: offset + limit]
    return {
        "items": sliced,
        "page": {
            "offset": offset,
            "limit": limit,
            "returned": len(sliced),
            "total": total,
            "has_more": (offset + limit) < total
        }
    }

def _flow_from_result(uuid_verif: str, uuid_proceso: str, user_id: str, started_at: str,
                      result: VerificationResult, has_overlay: bool) -> Dict[str, Any]:
    sim = None
    if result.similarity is not None:
        sim = {**result.similarity.to_dict(), "threshold": result.threshold, "is_match": result.is_match}
    return {
        "uuid_proceso_verificacion": uuid_verif,
        "uuid_proceso": uuid_proceso,
        "user_id": user_id,
        "started_at_utc": started_at,
        "finished_at_utc": _now_iso(),
        "threshold": result.threshold,
        "live_landmarks": result.live_landmarks.to_dict() if result.live_landmarks else None,
        "enrolled_landmarks": result.enrolled_landmarks.to_dict() if result.enrolled_landmarks else None,
        "has_overlay": has_overlay,
        "result": {
            "status": "success" if result.is_match else "false",
            "message": result.message,
            "reason": result.reason,
            "is_match": result.is_match,
            "similarity": sim,
        },
    }


class CompareLandmarksAPIView(APIView):
    """
    POST /api/faceauth/compare

    Body:
    {
      "live":     {"LEFT_EYE": [x, y], "RIGHT_EYE": [x, y], ...},
      "enrolled": {"LEFT_EYE": [x, y], ...},
      "strict": false
    }
    """
    @swagger_auto_schema(
        operation_summary="Comparar dos sets de landmarks",
        operation_description=(
            "Devuelve la similitud combinada (0..1) y sus componentes de distancia y ángulos.\n"
            "El umbral de aceptación es `SIMILARITY_TH` (por defecto 0.98, estrictamente mayor)."
        ),
        request_body=CompareLandmarksRequestSerializer,
        responses={200: CompareLandmarksResponseSerializer},
        tags=["FaceAuth"]
    )
    def post(self, request):
        ser = CompareLandmarksRequestSerializer(data=request.data or {})
        if not ser.is_valid():
            return Response({"status": "false", "message": "Request inválido", "error": "invalid_request",
                             "detail": ser.errors, "data": {}}, status=status.HTTP_400_BAD_REQUEST)
        body = ser.validated_data
        try:
            live = LandmarkSet.from_mapping(body["live"])
            enrolled = LandmarkSet.from_mapping(body["enrolled"])
            result = compare_landmarks(live, enrolled, strict=body.get("strict", False))
        except LandmarkComparisonError as e:
            return Response({"status": "false", "message": str(e), "error": e.code, "data": {}}, status=200)

        thresholds = get_thresholds()
        data = _similarity_payload(result, thresholds)
        return Response({
            "status": "success" if data["is_match"] else "false",
            "message": f"Similitud {result.score:.4f} ({'>' if data['is_match'] else '<='} {thresholds.similarity})",
            "data": data,
        }, status=200)


class EnrollFaceAPIView(APIView):
    """
    POST /api/faceauth/enroll
    Body: {"uuidProceso": "...", "userId": "...", "imageBase64": "..."}
    """
    @swagger_auto_schema(
        operation_summary="Enrolar rostro de referencia",
        request_body=FaceImageRequestSerializer,
        responses={200: EnrollResponseSerializer},
        tags=["FaceAuth"]
    )
    def post(self, request):
        try:
            uuid_proceso, user_id, img = _parse_face_request(request.data or {})
        except ValueError as e:
            return Response({"status": "false", "message": str(e), "reason": "invalid_request", "data": []}, status=200)

        try:
            result = build_enroll_service().execute(uuid_proceso, user_id, img)
        except Exception as ex:
            logger.exception({"uuid": uuid_proceso, "event": "enroll_error", "error": str(ex)})
            return Response({"status": "false", "message": "Error no controlado en enrolamiento",
                             "reason": "internal_error", "data": []}, status=200)

        return Response({
            "status": "success" if result.enrolled else "false",
            "message": result.message,
            "reason": result.reason,
            "data": [{"reference_uri": result.reference_uri, "landmarks_count": result.landmarks_count}]
                    if result.enrolled else [],
        }, status=200)


class VerifyFaceAPIView(APIView):
    """
    POST /api/faceauth/verify
    Body: {"uuidProceso": "...", "userId": "...", "imageBase64": "..."}

    Escribe <FLOW_LOG_DIR>/<uuid_proceso_verificacion>.txt (JSON) y .png (overlay).
    """
    @swagger_auto_schema(
        operation_summary="Verificar rostro contra la referencia enrolada",
        operation_description=(
            "Detecta landmarks en la foto capturada y en la referencia del usuario, calcula la similitud "
            "y decide con `SIMILARITY_TH`.\n\n"
            "- Retorna un nuevo `uuid_proceso_verificacion`.\n"
            "- Escribe un `.txt` con JSON del flujo y un `.png` con el overlay para auditoría."
        ),
        request_body=FaceImageRequestSerializer,
        responses={200: VerifyResponseSerializer},
        tags=["FaceAuth"]
    )
    def post(self, request):
        try:
            uuid_proceso, user_id, img = _parse_face_request(request.data or {})
        except ValueError as e:
            return Response({"status": "false", "message": str(e), "reason": "invalid_request", "data": []}, status=200)

        uuid_verif = str(uuid.uuid4())
        flow_dir = _flow_dir()
        try:
            started_at = _now_iso()
            result = build_verify_service().execute(uuid_proceso, user_id, img)

            _ensure_dir(flow_dir)
            has_overlay = result.live_landmarks is not None and result.enrolled_landmarks is not None
            if has_overlay:
                png = encode_png(render_comparison(result.live_landmarks, result.enrolled_landmarks))
                with open(os.path.join(flow_dir, f"{uuid_verif}.png"), "wb") as f:
                    f.write(png)

            flow = _flow_from_result(uuid_verif, uuid_proceso, user_id, started_at, result, has_overlay)
            _safe_write_json(os.path.join(flow_dir, f"{uuid_verif}.txt"), flow)
            _append_general_index(uuid_proceso, _summary_item(flow))

            score = round(result.similarity.score, 4) if result.similarity else None
            return Response({
                "status": "success" if result.is_match else "false",
                "message": result.message,
                "reason": result.reason,
                "data": [{
                    "uuid_proceso_verificacion": uuid_verif,
                    "evaluacion": score,
                    "is_match": result.is_match,
                }]
            }, status=200)

        except Exception as ex:
            logger.exception({"uuid": uuid_proceso, "event": "verify_error", "error": str(ex)})
            try:
                _ensure_dir(flow_dir)
                _safe_write_json(os.path.join(flow_dir, f"{uuid_verif}.txt"), {
                    "uuid_proceso_verificacion": uuid_verif,
                    "uuid_proceso": uuid_proceso,
                    "error": str(ex),
                    "finished_at_utc": _now_iso()
                })
            except OSError:
                logger.warning({"uuid": uuid_proceso, "event": "error_log_write_failed"})

            return Response({
                "status": "false",
                "message": "Error no controlado en verificación",
                "reason": "internal_error",
                "data": [{"uuid_proceso_verificacion": uuid_verif, "evaluacion": None, "is_match": False}]
            }, status=200)


# ---------- Consultar por uuid_proceso_verificacion ----------
download_param = openapi.Parameter(
    "download", openapi.IN_QUERY,
    description="Si es true/1, descarga el .txt original como attachment.", type=openapi.TYPE_BOOLEAN
)
overlay_param = openapi.Parameter(
    "overlay", openapi.IN_QUERY,
    description="Si es true/1, devuelve el PNG con la comparación de landmarks.", type=openapi.TYPE_BOOLEAN
)

def _flag(request, name: str) -> bool:
    return (request.query_params.get(name) or "false").lower() in ("1", "true", "yes")

class ConsultVerificationAPIView(APIView):
    """
    GET /api/faceauth/verify/<uuid_proceso_verificacion>[?download=1|?overlay=1]
    """
    @swagger_auto_schema(
        operation_summary="Consultar ejecución por uuid_proceso_verificacion",
        manual_parameters=[download_param, overlay_param],
        responses={
            200: VerificationFlowSerializer,
            "200 (download)": openapi.Schema(type=openapi.TYPE_FILE, description="Archivo .txt del flujo"),
            404: "No existe el proceso solicitado."
        },
        tags=["FaceAuth"]
    )
    def get(self, request, uuid_verif: str):
        flow_dir = _flow_dir()
        path = os.path.join(flow_dir, f"{uuid_verif}.txt")
        if not _is_uuid(uuid_verif) or not os.path.exists(path):
            return Response({"detail": "No existe el proceso solicitado."}, status=status.HTTP_404_NOT_FOUND)

        if _flag(request, "overlay"):
            png_path = os.path.join(flow_dir, f"{uuid_verif}.png")
            if not os.path.exists(png_path):
                return Response({"detail": "La ejecución no tiene overlay."}, status=status.HTTP_404_NOT_FOUND)
            return FileResponse(open(png_path, "rb"), content_type="image/png")

        if _flag(request, "download"):
            return FileResponse(
                open(path, "rb"),
                as_attachment=True,
                filename=f"{uuid_verif}.txt",
                content_type="text/plain; charset=utf-8"
            )

        data = _read_json_file(path)
        if data is None:
            with open(path, "r", encoding="utf-8") as f:
                payload = {"uuid_proceso_verificacion": uuid_verif, "raw": f.read()}
        else:
            payload = data

        base_url = request.build_absolute_uri().split("?", 1)[0]
        payload.setdefault("_links", {})
        payload["_links"]["self"] = request.build_absolute_uri()
        payload["_links"]["download"] = f"{base_url}?download=1"
        if payload.get("has_overlay"):
            payload["_links"]["overlay"] = f"{base_url}?overlay=1"
        return Response(payload, status=200)


# ---------- Trazabilidad por uuidProceso ----------
expand_param = openapi.Parameter(
    "expand", openapi.IN_QUERY, description="Si true, retorna el JSON completo de cada ejecución.", type=openapi.TYPE_BOOLEAN
)
offset_param = openapi.Parameter(
    "offset", openapi.IN_QUERY, description="Desplazamiento de paginación.", type=openapi.TYPE_INTEGER, default=0
)
limit_param = openapi.Parameter(
    "limit", openapi.IN_QUERY, description="Tamaño de página.", type=openapi.TYPE_INTEGER, default=50
)
class TraceProcessAPIView(APIView):
    """
    GET /api/faceauth/trace/<uuid_proceso>?expand=false&offset=0&limit=50
    Orden: más nuevo primero.
    """
    @swagger_auto_schema(
        operation_summary="Trazabilidad por uuidProceso",
        manual_parameters=[expand_param, offset_param, limit_param],
        responses={200: TraceResponseSerializer},
        tags=["FaceAuth"]
    )
    def get(self, request, uuid_proceso: str):
        if not _is_uuid(uuid_proceso):
            return Response({"detail": "uuidProceso inválido"}, status=status.HTTP_400_BAD_REQUEST)
        try:
            offset = max(0, int(request.query_params.get("offset") or 0))
            limit = max(1, int(request.query_params.get("limit") or 50))
        except ValueError:
            return Response({"detail": "offset/limit inválidos"}, status=status.HTTP_400_BAD_REQUEST)

        flow_dir = _flow_dir()
        idx_path = os.path.join(flow_dir, f"trace_{uuid_proceso}.json")
        if os.path.exists(idx_path):
            items = (_read_json_file(idx_path) or {}).get("items", [])
        else:
            items = _scan_flows_by_uuid_proceso(uuid_proceso)

        if _flag(request, "expand"):
            expanded = []
            for it in items:
                uuid_verif = it.get("uuid_proceso_verificacion")
                if not uuid_verif:
                    continue
                full = _read_json_file(os.path.join(flow_dir, f"{uuid_verif}.txt"))
                expanded.append(full or {"uuid_proceso_verificacion": uuid_verif, "detail": "no disponible"})
            items = expanded

        return Response({"uuid_proceso": uuid_proceso, "count": len(items), **_paginate(items, offset, limit)}, status=200)
