from __future__ import annotations

import logging

from fastapi import APIRouter, File, HTTPException, UploadFile, status

from draperads.schemas.uploads import UploadResponse
from draperads.services.image_analysis import ImageCopyAnalyzer
from draperads.services.media_storage import LocalMediaStorage, MediaValidationError

router = APIRouter(prefix="/api", tags=["uploads"])
logger = logging.getLogger(__name__)

media_storage = LocalMediaStorage.from_settings()
image_analyzer = ImageCopyAnalyzer.from_settings()


@router.post("/upload", response_model=UploadResponse)
def upload_media(media: UploadFile = File(...)):
    if media.size is not None and media.size > media_storage.max_bytes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File exceeds the {media_storage.max_bytes} byte limit",
        )
    try:
        stored = media_storage.save(media.file, original_name=media.filename, content_type=media.content_type)
    except MediaValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    response = UploadResponse(url=stored.url, filename=stored.filename, mimetype=stored.content_type)
    if not stored.is_image:
        return response

    result = image_analyzer.analyze(stored.path, stored.content_type)
    return response.model_copy(update={**result.suggestions.as_payload(), "suggestionsStatus": result.status})
