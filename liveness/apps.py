# liveness/apps.py
from django.apps import AppConfig


class LivenessConfig(AppConfig):
    name = "liveness"
    verbose_name = "Liveness"

    def ready(self):
        # Valida configuración al arrancar (umbrales, backend del store...) y
        # aplica la regla de retención de evidencias si está habilitada.
        from .infrastructure.config import get_settings, apply_evidence_retention
        apply_evidence_retention(get_settings())
