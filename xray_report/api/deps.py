from fastapi import Request

from xray_report.core.config import settings
from xray_report.core.database import init_db, make_engine
from xray_report.services.blob_store import BlobStore
from xray_report.services.inference import VisionClient
from xray_report.services.pipeline import AnalysisPipeline
from xray_report.services.registry import AnalysisRegistry, ReportRegistry
from xray_report.services.store import MemoryStore, SqlStore
from xray_report.services.worker import AnalysisWorker


class Services:
    """Everything the routes and the background jobs share for one app instance."""

    def __init__(
        self,
        blobs: BlobStore,
        analyses: AnalysisRegistry,
        reports: ReportRegistry,
        pipeline: AnalysisPipeline,
        worker: AnalysisWorker,
        store_backend: str = "memory",
    ):
        self.blobs = blobs
        self.analyses = analyses
        self.reports = reports
        self.pipeline = pipeline
        self.worker = worker
        self.store_backend = store_backend


def build_services(
    vision: VisionClient | None = None,
    upload_dir: str | None = None,
    store_backend: str | None = None,
    database_url: str | None = None,
    preprocess_delay: float | None = None,
    finalize_delay: float | None = None,
) -> Services:
    backend = (store_backend or settings.store_backend).lower()
    if backend == "sql":
        engine = make_engine(database_url)
        init_db(engine)
        analysis_store, report_store = SqlStore(engine, "analysis"), SqlStore(engine, "report")
    elif backend == "memory":
        analysis_store, report_store = MemoryStore(), MemoryStore()
    else:
        raise ValueError(f"Unknown STORE_BACKEND: {backend!r} (memory | sql)")

    blobs = BlobStore(upload_dir or settings.upload_dir)
    analyses = AnalysisRegistry(analysis_store)
    reports = ReportRegistry(report_store)
    pipeline = AnalysisPipeline(
        analyses,
        reports,
        blobs,
        vision or VisionClient(),
        preprocess_delay=settings.preprocess_delay_seconds if preprocess_delay is None else preprocess_delay,
        finalize_delay=settings.finalize_delay_seconds if finalize_delay is None else finalize_delay,
        model_label=settings.inference_model_label,
    )
    worker = AnalysisWorker(pipeline, max_concurrency=settings.analysis_max_concurrency)
    return Services(blobs, analyses, reports, pipeline, worker, store_backend=backend)


def get_services(request: Request) -> Services:
    return request.app.state.services
