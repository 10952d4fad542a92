from fastapi import APIRouter, Depends, HTTPException

from xray_report.api.deps import Services, get_services
from xray_report.schemas import AnalysisStatus, AnalyzeRequest, InvalidTransition
from xray_report.services.blob_store import InvalidBlobName
from xray_report.services.pipeline import initial_status
from xray_report.services.worker import JobAlreadyRunning

router = APIRouter(prefix="/analyze", tags=["analyze"])


@router.post("", response_model=AnalysisStatus, response_model_exclude_none=True)
async def start_analysis(body: AnalyzeRequest, services: Services = Depends(get_services)):
    """Starts the pipeline for an already stored blob; mirrors the initial status."""
    if not body.id or not body.filename:
        raise HTTPException(status_code=400, detail="Missing required fields")
    try:
        services.blobs.check_name(body.filename)
    except InvalidBlobName:
        raise HTTPException(status_code=400, detail="Invalid filename")
    try:
        status = services.analyses.create(initial_status(body.id, body.filename))
        services.worker.submit(body.id, body.filename, body.original_name or body.filename)
    except (InvalidTransition, JobAlreadyRunning):
        raise HTTPException(status_code=409, detail="Analysis already exists")
    return status


@router.get("", response_model=AnalysisStatus, response_model_exclude_none=True)
async def get_analysis(id: str | None = None, services: Services = Depends(get_services)):
    if not id:
        raise HTTPException(status_code=400, detail="Analysis ID required")
    status = services.analyses.get(id)
    if status is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return status
