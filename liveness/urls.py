# liveness/urls.py
from django.urls import path
from liveness.presentation.api import (
    LivenessSessionAPIView,
    LivenessResultAPIView,
    LivenessRecordAPIView,
)

app_name = "liveness"

urlpatterns = [
    path('liveness/session', LivenessSessionAPIView.as_view(), name='session'),
    path('liveness/result', LivenessResultAPIView.as_view(), name='result'),
    path('liveness/result/<str:session_id>', LivenessRecordAPIView.as_view(), name='result-detail'),
]
