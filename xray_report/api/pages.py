"""Server-rendered pages (Jinja2): upload form, analysis progress, report."""
from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from xray_report.api.deps import Services, get_services

router = APIRouter(include_in_schema=False)
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))

POLL_INTERVAL_SECONDS = 2


@router.get("/", response_class=HTMLResponse)
def index(request: Request):
    return templates.TemplateResponse(request, "index.html", {})


@router.get("/analysis/{analysis_id}", response_class=HTMLResponse)
async def analysis_page(request: Request, analysis_id: str, services: Services = Depends(get_services)):
    """Refreshes itself while the analysis runs; hands over to the report once completed."""
    status = services.analyses.get(analysis_id)
    if status is None:
        return templates.TemplateResponse(
            request, "not_found.html", {"what": "Analysis", "ident": analysis_id}, status_code=404
        )
    if status.status == "completed" and status.report_id:
        return RedirectResponse(url=f"/report/{status.report_id}", status_code=303)
    return templates.TemplateResponse(
        request,
        "analysis.html",
        {"status": status, "refresh_seconds": None if status.is_terminal else POLL_INTERVAL_SECONDS},
    )


@router.get("/report/{report_id}", response_class=HTMLResponse)
async def report_page(request: Request, report_id: str, services: Services = Depends(get_services)):
    report = services.reports.get(report_id)
    if report is None:
        return templates.TemplateResponse(
            request, "not_found.html", {"what": "Report", "ident": report_id}, status_code=404
        )
    return templates.TemplateResponse(request, "report.html", {"report": report})
