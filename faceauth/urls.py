# faceauth/urls.py
from django.urls import path
from faceauth.presentation.api import (
    CompareLandmarksAPIView,
    EnrollFaceAPIView,
    VerifyFaceAPIView,
    ConsultVerificationAPIView,
    TraceProcessAPIView,
)

app_name = "faceauth"

urlpatterns = [
    path('faceauth/compare', CompareLandmarksAPIView.as_view(), name='compare'),
    path('faceauth/enroll', EnrollFaceAPIView.as_view(), name='enroll'),
    path('faceauth/verify', VerifyFaceAPIView.as_view(), name='verify'),
    path('faceauth/verify/<str:uuid_verif>', ConsultVerificationAPIView.as_view(), name='verify-detail'),
    path('faceauth/trace/<str:uuid_proceso>', TraceProcessAPIView.as_view(), name='trace'),
]
