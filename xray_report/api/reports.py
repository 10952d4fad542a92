import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from xray_report.api.deps import Services, get_services
from xray_report.schemas import DiagnosticReport
from xray_report.services.report_pdf import build_report_pdf

log = logging.getLogger("xray_report.reports")

router = APIRouter(prefix="/reports", tags=["reports"])


def _get_report_or_404(services: Services, report_id: str) -> DiagnosticReport:
    report = services.reports.get(report_id)
    if report is None:
        raise HTTPException(status_code=404, detail="Report not found")
    return report


@router.get("/{report_id}", response_model=DiagnosticReport)
async def get_report(report_id: str, services: Services = Depends(get_services)):
    return _get_report_or_404(services, report_id)


@router.get("/{report_id}/download")
async def download_report_pdf(report_id: str, services: Services = Depends(get_services)):
    """PDF of the report (Jinja2 + WeasyPrint)."""
    report = _get_report_or_404(services, report_id)
    try:
        pdf_bytes = await run_in_threadpool(build_report_pdf, report)
    except Exception as e:
        log.exception("PDF render failed: %s", report_id)
        raise HTTPException(status_code=500, detail=f"Failed to generate PDF: {e!s}")
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="xray-{report_id}.pdf"'},
    )
