import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from xray_report.api.deps import Services, get_services
from xray_report.services.blob_store import InvalidBlobName, content_type_for

log = logging.getLogger("xray_report.images")

router = APIRouter(prefix="/images", tags=["images"])


@router.get("/{filename}")
async def get_image(filename: str, services: Services = Depends(get_services)):
    try:
        content = await run_in_threadpool(services.blobs.read, filename)
    except (InvalidBlobName, OSError) as e:
        log.warning("image serve error: %s (%s)", filename, type(e).__name__)
        raise HTTPException(status_code=404, detail="Image not found")
    return Response(
        content=content,
        media_type=content_type_for(filename),
        headers={"Cache-Control": "public, max-age=3600"},
    )
