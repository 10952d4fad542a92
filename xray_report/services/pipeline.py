"""
Analysis pipeline: preprocess (simulated) -> model call -> parse -> report.
Progress is written to the analysis registry at each stage:
analyzing 10 -> 30 -> 60 -> 90 -> completed 100, or error 0 on any failure.
"""
import asyncio
import logging
import time
from datetime import datetime, timezone
from pathlib import Path

from fastapi.concurrency import run_in_threadpool

from xray_report.schemas import AnalysisStatus, DiagnosticReport, ReportMetadata
from xray_report.services.blob_store import BlobStore, content_type_for
from xray_report.services.findings import parse_findings
from xray_report.services.inference import InferenceError, VisionClient
from xray_report.services.registry import AnalysisRegistry, ReportRegistry

logger = logging.getLogger(__name__)

START_PROGRESS = 10


def image_url_for(filename: str) -> str:
    return f"/images/{filename}"


def report_id_for(analysis_id: str) -> str:
    return f"report_{analysis_id}"


def initial_status(analysis_id: str, filename: str) -> AnalysisStatus:
    return AnalysisStatus(
        id=analysis_id,
        status="analyzing",
        progress=START_PROGRESS,
        message="Starting AI analysis...",
        image_url=image_url_for(filename),
    )


def image_type_of(original_name: str) -> str:
    if "." not in original_name:
        return "UNKNOWN"
    return original_name.rsplit(".", 1)[-1].upper() or "UNKNOWN"


def _inference_mime(filename: str) -> str:
    mime = content_type_for(filename)
    # DICOM and unknown blobs go out labelled as JPEG
    return mime if mime.startswith("image/") else "image/jpeg"


def _error_text(exc: Exception) -> str:
    if isinstance(exc, InferenceError):
        return str(exc)
    if isinstance(exc, FileNotFoundError):
        return f"Image file not found: {Path(exc.filename).name if exc.filename else ''}".rstrip(": ")
    if isinstance(exc, OSError):
        return f"Failed to read image: {exc.strerror or exc}"
    return str(exc) or type(exc).__name__


class AnalysisPipeline:
    def __init__(
        self,
        analyses: AnalysisRegistry,
        reports: ReportRegistry,
        blobs: BlobStore,
        vision: VisionClient,
        *,
        preprocess_delay: float = 2.0,
        finalize_delay: float = 1.0,
        model_label: str = "Claude Sonnet 4 (Vision)",
    ):
        self.analyses = analyses
        self.reports = reports
        self.blobs = blobs
        self.vision = vision
        self.preprocess_delay = preprocess_delay
        self.finalize_delay = finalize_delay
        self.model_label = model_label

    async def run(self, analysis_id: str, filename: str, original_name: str) -> AnalysisStatus:
        """
        Drives one analysis to completed or error. Exceptions end up in the status
        record, not in the caller; only cancellation propagates.
        """
        t0 = time.perf_counter()
        try:
            self.analyses.advance(analysis_id, progress=30, message="Preprocessing image...")
            await asyncio.sleep(self.preprocess_delay)

            self.analyses.advance(analysis_id, progress=60, message="AI analyzing X-ray patterns...")
            image = await run_in_threadpool(self.blobs.read, filename)
            reply = await run_in_threadpool(self.vision.describe, image, _inference_mime(filename), original_name)
            parsed = parse_findings(reply)
            logger.info("analysis %s: findings %s (confidence %d)", analysis_id, parsed.outcome.value, parsed.findings.confidence)

            self.analyses.advance(analysis_id, progress=90, message="Generating report...")
            await asyncio.sleep(self.finalize_delay)

            report = DiagnosticReport(
                id=report_id_for(analysis_id),
                timestamp=datetime.now(timezone.utc),
                image_url=image_url_for(filename),
                findings=parsed.findings,
                metadata=ReportMetadata(
                    image_type=image_type_of(original_name),
                    processing_time=round(time.perf_counter() - t0),
                    ai_model=self.model_label,
                ),
            )
            # Report first: a completed status must always resolve
            self.reports.add(report)
            status = self.analyses.advance(
                analysis_id,
                status="completed",
                progress=100,
                message="Analysis completed successfully",
                report_id=report.id,
            )
            logger.info("analysis %s completed in %.2fs", analysis_id, time.perf_counter() - t0)
            return status
        except Exception as e:
            logger.exception("Analysis processing error: id=%s", analysis_id)
            return self.fail(analysis_id, _error_text(e))

    def fail(self, analysis_id: str, error: str) -> AnalysisStatus | None:
        """Marks the analysis as failed; a no-op when it already reached a terminal state."""
        current = self.analyses.get(analysis_id)
        if current is None or current.is_terminal:
            return current
        return self.analyses.advance(analysis_id, status="error", message="Analysis failed", error=error)
