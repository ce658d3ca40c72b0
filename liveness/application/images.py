# liveness/application/images.py
import io
from typing import Optional

from PIL import Image, UnidentifiedImageError

from ..domain.errors import NoEvidenceImageError
from ..domain.interfaces import ObjectStorage
from ..domain.value_objects import ImageRef, InlineImage, StoredImage


def load_image_bytes(storage: ObjectStorage, image: Optional[ImageRef]) -> bytes:
    """Bytes en línea tal cual; puntero S3 -> descarga."""
    if isinstance(image, InlineImage):
        return image.data
    if isinstance(image, StoredImage):
        return storage.get_object(image.bucket, image.key, image.version)
    raise NoEvidenceImageError("No se encontró evidencia de liveness válida para comparar rostros.")


def to_canonical_jpeg(data: bytes, quality: int = 92) -> bytes:
    """
    Normaliza a JPEG para guardar como canonical.jpg.
    Rekognition ya entrega JPEG: en ese caso se retorna sin re-codificar.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            if img.format == "JPEG":
                return data
            rgb = img.convert("RGB")
    except (UnidentifiedImageError, OSError) as ex:
        raise NoEvidenceImageError(f"La evidencia no es una imagen válida: {ex}") from ex
    buf = io.BytesIO()
    rgb.save(buf, format="JPEG", quality=quality)
    return buf.getvalue()
