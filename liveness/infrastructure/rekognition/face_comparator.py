# liveness/infrastructure/rekognition/face_comparator.py
from typing import List, Dict, Any

from ...domain.value_objects import ImageRef, InlineImage, StoredImage
from ..aws import AWS_ERRORS, translate_aws_error


def to_rekognition_image(image: ImageRef) -> Dict[str, Any]:
    if isinstance(image, InlineImage):
        return {"Bytes": image.data}
    s3 = {"Bucket": image.bucket, "Name": image.key}
    if image.version:
        s3["Version"] = image.version
    return {"S3Object": s3}


class RekognitionFaceComparator:
    def __init__(self, client):
        self.client = client

    def compare(self, source: bytes, target: ImageRef, similarity_threshold: float) -> List[float]:
        try:
            resp = self.client.compare_faces(
                SourceImage={"Bytes": source},
                TargetImage=to_rekognition_image(target),
                SimilarityThreshold=similarity_threshold,
            )
        except AWS_ERRORS as ex:
            raise translate_aws_error(ex, "CompareFaces") from ex
        scores = [float(m.get("Similarity", 0.0)) for m in resp.get("FaceMatches", []) or []]
        return sorted(scores, reverse=True)
