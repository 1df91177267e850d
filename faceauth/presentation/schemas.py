# faceauth/presentation/schemas.py
from rest_framework import serializers

def _point():
    return serializers.ListField(child=serializers.FloatField(), min_length=2, max_length=2)

# ---------- Compare (POST, landmarks crudos) ----------
class CompareLandmarksRequestSerializer(serializers.Serializer):
    live = serializers.DictField(child=_point(), help_text="Landmarks capturados en vivo: {\"LEFT_EYE\": [x, y], ...}")
    enrolled = serializers.DictField(child=_point(), help_text="Landmarks de la referencia enrolada.")
    strict = serializers.BooleanField(required=False, default=False,
                                      help_text="Si true, un número distinto de labels es error en vez de distancia 0.")

class SimilaritySerializer(serializers.Serializer):
    score = serializers.FloatField()
    distance_score = serializers.FloatField()
    angle_score = serializers.FloatField()
    weight_used = serializers.FloatField()
    label_count_mismatch = serializers.BooleanField()
    threshold = serializers.FloatField()
    is_match = serializers.BooleanField()

class CompareLandmarksResponseSerializer(serializers.Serializer):
    status = serializers.CharField()
    message = serializers.CharField()
    error = serializers.CharField(required=False)
    data = SimilaritySerializer()

# ---------- Enroll / Verify (POST, imagen) ----------
class FaceImageRequestSerializer(serializers.Serializer):
    uuidProceso = serializers.UUIDField(help_text="UUID del proceso general.")
    userId = serializers.CharField(help_text="Identificador del usuario (A-Z, 0-9, '_', '-', '.').")
    imageBase64 = serializers.CharField(required=False, help_text="Foto capturada en base64 (acepta data URL).")
    imageUrl = serializers.CharField(required=False, help_text="Alternativa: ruta local, s3:// o https:// bajo IMAGE_URL_ALLOWED_PREFIXES.")

class EnrollResponseItemSerializer(serializers.Serializer):
    reference_uri = serializers.CharField(allow_null=True)
    landmarks_count = serializers.IntegerField()

class EnrollResponseSerializer(serializers.Serializer):
    status = serializers.CharField()
    message = serializers.CharField()
    reason = serializers.CharField(allow_null=True)
    data = EnrollResponseItemSerializer(many=True)

class VerifyResponseItemSerializer(serializers.Serializer):
    uuid_proceso_verificacion = serializers.UUIDField()
    evaluacion = serializers.FloatField(allow_null=True)
    is_match = serializers.BooleanField()

class VerifyResponseSerializer(serializers.Serializer):
    status = serializers.CharField()
    message = serializers.CharField()
    reason = serializers.CharField(allow_null=True)
    data = VerifyResponseItemSerializer(many=True)

# ---------- Flow (.txt -> JSON) ----------
class FlowResultSerializer(serializers.Serializer):
    status = serializers.CharField()
    message = serializers.CharField()
    reason = serializers.CharField(allow_null=True)
    is_match = serializers.BooleanField()
    similarity = SimilaritySerializer(allow_null=True)

class FlowLinksSerializer(serializers.Serializer):
    self = serializers.CharField()
    download = serializers.CharField()
    overlay = serializers.CharField(required=False)

class VerificationFlowSerializer(serializers.Serializer):
    uuid_proceso_verificacion = serializers.UUIDField()
    uuid_proceso = serializers.UUIDField()
    user_id = serializers.CharField()
    started_at_utc = serializers.CharField()
    finished_at_utc = serializers.CharField()
    threshold = serializers.FloatField()
    live_landmarks = serializers.DictField(allow_null=True)
    enrolled_landmarks = serializers.DictField(allow_null=True)
    has_overlay = serializers.BooleanField()
    result = FlowResultSerializer()
    links = FlowLinksSerializer(source="_links")

# ---------- Trace (GET por uuidProceso) ----------
class PageMetaSerializer(serializers.Serializer):
    offset = serializers.IntegerField()
    limit = serializers.IntegerField()
    returned = serializers.IntegerField()
    total = serializers.IntegerField()
    has_more = serializers.BooleanField()

class TraceItemSerializer(serializers.Serializer):
    uuid_proceso_verificacion = serializers.UUIDField()
    user_id = serializers.CharField()
    status = serializers.CharField()
    message = serializers.CharField()
    reason = serializers.CharField(allow_null=True)
    score = serializers.FloatField(allow_null=True)
    is_match = serializers.BooleanField()
    started_at_utc = serializers.CharField()
    finished_at_utc = serializers.CharField()

class TraceResponseSerializer(serializers.Serializer):
    uuid_proceso = serializers.UUIDField()
    count = serializers.IntegerField()
    items = TraceItemSerializer(many=True)
    page = PageMetaSerializer()
