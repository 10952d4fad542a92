"""
HTTP client for the service: upload, status polling, report fetch.

The poller keeps asking GET /analyze?id= until the analysis is completed or failed.
By default it never gives up; pass max_attempts or a stop event to bound it.
"""
import logging
import threading
import time
from pathlib import Path

import httpx

from xray_report.schemas import AnalysisStatus, DiagnosticReport

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 2.0
COMPLETED_DELAY_SECONDS = 2.0

_UPLOAD_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".dcm": "application/dicom",
}


class ClientError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AnalysisFailed(ClientError):
    def __init__(self, status: AnalysisStatus):
        super().__init__(status.error or "Analysis failed")
        self.status = status


class ReportNotFound(ClientError):
    pass


class PollingTimeout(ClientError):
    pass


class PollingCancelled(ClientError):
    pass


def _error_detail(response: httpx.Response) -> str:
    try:
        return response.json().get("error") or response.text
    except ValueError:
        return response.text or response.reason_phrase


class ReportClient:
    def __init__(self, base_url: str = "http://127.0.0.1:8000", http: httpx.Client | None = None, timeout: float = 30.0):
        # Any httpx.Client works here, including FastAPI's TestClient
        self.http = http or httpx.Client(base_url=base_url, timeout=timeout)

    def upload(self, path: str | Path, content_type: str | None = None) -> dict:
        path = Path(path)
        content_type = content_type or _UPLOAD_TYPES.get(path.suffix.lower(), "application/octet-stream")
        with path.open("rb") as fh:
            response = self.http.post("/upload", files={"file": (path.name, fh, content_type)})
        if response.status_code != 200:
            raise ClientError(_error_detail(response), response.status_code)
        return response.json()

    def get_status(self, analysis_id: str) -> AnalysisStatus:
        response = self.http.get("/analyze", params={"id": analysis_id})
        if response.status_code != 200:
            raise ClientError(
                f"Failed to fetch analysis status: {_error_detail(response)}", response.status_code
            )
        return AnalysisStatus.model_validate(response.json())

    def wait_for_completion(
        self,
        analysis_id: str,
        interval: float = POLL_INTERVAL_SECONDS,
        completed_delay: float = COMPLETED_DELAY_SECONDS,
        max_attempts: int | None = None,
        stop: threading.Event | None = None,
    ) -> AnalysisStatus:
        """
        Polls until completed (returns the status) or error (raises AnalysisFailed).
        Raises PollingTimeout after max_attempts fetches and PollingCancelled once
        stop is set.
        """
        attempts = 0
        while True:
            if stop is not None and stop.is_set():
                raise PollingCancelled(f"Polling for {analysis_id} cancelled")
            status = self.get_status(analysis_id)
            attempts += 1
            if status.status == "completed" and status.report_id:
                if completed_delay:
                    time.sleep(completed_delay)
                return status
            if status.status == "error":
                raise AnalysisFailed(status)
            logger.debug("analysis %s: %s %d%%", analysis_id, status.message, status.progress)
            if max_attempts is not None and attempts >= max_attempts:
                raise PollingTimeout(f"Analysis {analysis_id} still {status.status} after {attempts} checks")
            if stop is not None:
                if stop.wait(interval):
                    raise PollingCancelled(f"Polling for {analysis_id} cancelled")
            else:
                time.sleep(interval)

    def get_report(self, report_id: str) -> DiagnosticReport:
        """One fetch, no retry."""
        response = self.http.get(f"/reports/{report_id}")
        if response.status_code == 404:
            raise ReportNotFound("Report not found", 404)
        if response.status_code != 200:
            raise ClientError(f"Failed to load report: {_error_detail(response)}", response.status_code)
        return DiagnosticReport.model_validate(response.json())

    def analyze_file(self, path: str | Path, **poll_kwargs) -> DiagnosticReport:
        uploaded = self.upload(path)
        status = self.wait_for_completion(uploaded["id"], **poll_kwargs)
        return self.get_report(status.report_id)


def render_report_text(report: DiagnosticReport) -> str:
    f = report.findings
    lines = [
        f"Report {report.id}",
        f"{report.timestamp.isoformat()}  {report.metadata.image_type}  {report.metadata.ai_model}",
        "",
        "Overview",
        f"  {f.overview}",
        f"  Confidence: {f.confidence}%",
        "",
        "Detailed findings",
    ]
    lines += [f"  {i}. {item}" for i, item in enumerate(f.detailed, 1)]
    lines += ["", "Recommendations"]
    lines += [f"  - {item}" for item in f.recommendations]
    return "\n".join(lines)
