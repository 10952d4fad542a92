import logging
import uuid

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool

from xray_report.api.deps import Services, get_services
from xray_report.core.config import settings
from xray_report.core.rate_limit import limiter
from xray_report.schemas import UploadResponse
from xray_report.services.pipeline import initial_status

log = logging.getLogger("xray_report.upload")

router = APIRouter(tags=["upload"])
_UPLOAD_RATE_LIMIT = f"{settings.rate_limit_per_minute}/minute"

ALLOWED_TYPES = {"image/jpeg", "image/jpg", "image/png", "application/dicom"}
DICOM_EXTENSION = ".dcm"
DEFAULT_EXTENSION = "jpg"


def is_allowed_upload(content_type: str | None, filename: str | None) -> bool:
    return (content_type or "").lower() in ALLOWED_TYPES or (filename or "").lower().endswith(DICOM_EXTENSION)


def storage_filename(analysis_id: str, original_name: str | None) -> str:
    ext = original_name.rsplit(".", 1)[-1] if original_name and "." in original_name else ""
    if not ext.isalnum():
        ext = DEFAULT_EXTENSION
    return f"{analysis_id}.{ext}"


@router.post("/upload", response_model=UploadResponse)
@limiter.limit(_UPLOAD_RATE_LIMIT)
async def upload(
    request: Request,
    file: UploadFile | None = File(None),
    services: Services = Depends(get_services),
):
    """Multipart upload, field 'file'. Returns at once; analysis runs in the background."""
    if file is None:
        raise HTTPException(status_code=400, detail="No file provided")
    log.info("upload: filename=%s type=%s", file.filename, file.content_type)
    if not is_allowed_upload(file.content_type, file.filename):
        raise HTTPException(
            status_code=400,
            detail="Invalid file type. Please upload JPEG, PNG, or DICOM files.",
        )
    content = await file.read()
    if len(content) > settings.upload_max_bytes:
        raise HTTPException(status_code=400, detail=f"File size exceeds {settings.upload_max_mb}MB limit")

    analysis_id = str(uuid.uuid4())
    filename = storage_filename(analysis_id, file.filename)
    try:
        await run_in_threadpool(services.blobs.save, filename, content)
    except OSError:
        log.exception("upload write error: %s", filename)
        raise HTTPException(status_code=500, detail="Failed to upload file")

    services.analyses.create(initial_status(analysis_id, filename))
    services.worker.submit(analysis_id, filename, file.filename or filename)

    return UploadResponse(
        id=analysis_id,
        filename=filename,
        size=len(content),
        type=file.content_type or "",
    )
