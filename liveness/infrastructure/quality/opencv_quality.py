# liveness/infrastructure/quality/opencv_quality.py
from typing import Optional, Tuple

import cv2
import numpy as np

# varianza del Laplaciano a partir de la cual el frame se considera 100% nítido
SHARPNESS_FULL_SCALE = 1000.0


def decode_gray(data: bytes) -> Optional[np.ndarray]:
    arr = np.frombuffer(data, np.uint8)
    if arr.size == 0:
        return None
    return cv2.imdecode(arr, cv2.IMREAD_GRAYSCALE)


def brightness(gray) -> float:
    return float(np.mean(gray)) / 255.0 * 100.0


def sharpness(gray) -> float:
    var = float(cv2.Laplacian(gray, cv2.CV_64F).var())
    return min(var / SHARPNESS_FULL_SCALE, 1.0) * 100.0


class OpenCvQualityScorer:
    """brightness/sharpness en 0..100 (misma escala que Quality de Rekognition)."""

    def measure(self, data: bytes) -> Optional[Tuple[float, float]]:
        gray = decode_gray(data)
        if gray is None:
            return None
        return brightness(gray), sharpness(gray)
