"""Pipeline and worker driven directly on an event loop."""
import asyncio

import pytest

from xray_report.services.blob_store import BlobStore
from xray_report.services.pipeline import AnalysisPipeline, initial_status
from xray_report.services.registry import AnalysisRegistry, ReportRegistry
from xray_report.services.store import MemoryStore
from xray_report.services.worker import AnalysisWorker, JobAlreadyRunning

from conftest import PNG_BYTES, make_vision


class RecordingRegistry(AnalysisRegistry):
    """Keeps every record written, in order."""

    def __init__(self, store):
        super().__init__(store)
        self.history = []

    def create(self, status):
        self.history.append(status)
        return super().create(status)

    def advance(self, analysis_id, **changes):
        status = super().advance(analysis_id, **changes)
        self.history.append(status)
        return status


@pytest.fixture
def blobs(tmp_path):
    store = BlobStore(tmp_path / "uploads")
    store.save("a1.png", PNG_BYTES)
    return store


@pytest.fixture
def pipeline(blobs, collaborator):
    return AnalysisPipeline(
        RecordingRegistry(MemoryStore()),
        ReportRegistry(MemoryStore()),
        blobs,
        make_vision(collaborator),
        preprocess_delay=0,
        finalize_delay=0,
        model_label="Test Vision",
    )


def _run(pipeline, analysis_id="a1", filename="a1.png", original_name="wrist.png"):
    pipeline.analyses.create(initial_status(analysis_id, filename))
    return asyncio.run(pipeline.run(analysis_id, filename, original_name))


def test_stages_in_order(pipeline):
    final = _run(pipeline)
    assert [s.progress for s in pipeline.analyses.history] == [10, 30, 60, 90, 100]
    assert [s.status for s in pipeline.analyses.history][-1] == "completed"
    assert final.report_id == "report_a1"


def test_report_contents(pipeline):
    _run(pipeline, original_name="left.knee.jpeg")
    report = pipeline.reports.get("report_a1")
    assert report.image_url == "/images/a1.png"
    assert report.metadata.image_type == "JPEG"
    assert report.metadata.ai_model == "Test Vision"
    assert report.metadata.processing_time >= 0
    assert report.findings.confidence == 88


def test_image_type_unknown_without_extension(pipeline):
    _run(pipeline, original_name="scan")
    assert pipeline.reports.get("report_a1").metadata.image_type == "UNKNOWN"


def test_upstream_failure_marks_error(pipeline, collaborator):
    collaborator.status_code = 503
    final = _run(pipeline)
    assert final.status == "error"
    assert final.error == "AI analysis failed: 503 Service Unavailable"
    assert final.progress == 0
    assert len(pipeline.reports) == 0


def test_missing_blob_marks_error(pipeline):
    final = _run(pipeline, analysis_id="a2", filename="a2.png")
    assert final.status == "error"
    assert final.error == "Image file not found: a2.png"
    assert len(pipeline.reports) == 0


def test_fail_is_noop_after_completion(pipeline):
    done = _run(pipeline)
    assert pipeline.fail("a1", "late") == done
    assert pipeline.analyses.get("a1").status == "completed"


def test_worker_runs_job(pipeline):
    async def scenario():
        worker = AnalysisWorker(pipeline)
        pipeline.analyses.create(initial_status("a1", "a1.png"))
        job = worker.submit("a1", "a1.png", "wrist.png")
        final = await job.wait()
        return worker, final

    worker, final = asyncio.run(scenario())
    assert final.status == "completed"
    assert len(worker) == 0


def test_worker_rejects_second_job_for_same_id(pipeline):
    pipeline.preprocess_delay = 5

    async def scenario():
        worker = AnalysisWorker(pipeline)
        pipeline.analyses.create(initial_status("a1", "a1.png"))
        job = worker.submit("a1", "a1.png", "wrist.png")
        assert worker.get("a1") is job
        try:
            with pytest.raises(JobAlreadyRunning):
                worker.submit("a1", "a1.png", "wrist.png")
        finally:
            await worker.shutdown()

    asyncio.run(scenario())


def test_cancel_marks_error(pipeline):
    pipeline.preprocess_delay = 5

    async def scenario():
        worker = AnalysisWorker(pipeline)
        pipeline.analyses.create(initial_status("a1", "a1.png"))
        job = worker.submit("a1", "a1.png", "wrist.png")
        await asyncio.sleep(0.05)
        assert pipeline.analyses.get("a1").progress == 30
        job.cancel()
        return await job.wait()

    assert asyncio.run(scenario()) is None
    status = pipeline.analyses.get("a1")
    assert status.status == "error"
    assert status.error == "Analysis cancelled"
    assert len(pipeline.reports) == 0


def test_cancel_before_start_marks_error(pipeline):
    async def scenario():
        worker = AnalysisWorker(pipeline)
        pipeline.analyses.create(initial_status("a1", "a1.png"))
        job = worker.submit("a1", "a1.png", "wrist.png")
        job.cancel()
        await job.wait()

    asyncio.run(scenario())
    assert pipeline.analyses.get("a1").status == "error"


def test_shutdown_cancels_running_jobs(pipeline, blobs):
    pipeline.preprocess_delay = 5
    blobs.save("b1.png", PNG_BYTES)

    async def scenario():
        worker = AnalysisWorker(pipeline)
        for aid in ("a1", "b1"):
            pipeline.analyses.create(initial_status(aid, f"{aid}.png"))
            worker.submit(aid, f"{aid}.png", "x.png")
        await asyncio.sleep(0)
        await worker.shutdown()
        return worker

    worker = asyncio.run(scenario())
    assert len(worker) == 0
    assert pipeline.analyses.get("a1").status == "error"
    assert pipeline.analyses.get("b1").status == "error"


def test_concurrency_cap(pipeline, blobs):
    blobs.save("b1.png", PNG_BYTES)
    running = []
    peak = []
    original_run = pipeline.run

    async def tracked_run(*args):
        running.append(1)
        peak.append(len(running))
        try:
            return await original_run(*args)
        finally:
            running.pop()

    pipeline.run = tracked_run

    async def scenario():
        worker = AnalysisWorker(pipeline, max_concurrency=1)
        jobs = []
        for aid in ("a1", "b1"):
            pipeline.analyses.create(initial_status(aid, f"{aid}.png"))
            jobs.append(worker.submit(aid, f"{aid}.png", "x.png"))
        return [await job.wait() for job in jobs]

    results = asyncio.run(scenario())
    assert [r.status for r in results] == ["completed", "completed"]
    assert max(peak) == 1
