"""Background analysis jobs: one asyncio task per analysis id, cancellable and awaitable."""
import asyncio
import logging

from xray_report.schemas import AnalysisStatus
from xray_report.services.pipeline import AnalysisPipeline

logger = logging.getLogger(__name__)


class JobAlreadyRunning(RuntimeError):
    pass


class AnalysisJob:
    def __init__(self, analysis_id: str, task: asyncio.Task):
        self.analysis_id = analysis_id
        self.task = task

    def cancel(self) -> bool:
        return self.task.cancel()

    def done(self) -> bool:
        return self.task.done()

    async def wait(self) -> AnalysisStatus | None:
        """Final status of the run; None when the job was cancelled."""
        await asyncio.wait({self.task})
        if self.task.cancelled():
            return None
        return self.task.result()


class AnalysisWorker:
    def __init__(self, pipeline: AnalysisPipeline, max_concurrency: int = 0):
        self.pipeline = pipeline
        self._semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency > 0 else None
        self._jobs: dict[str, AnalysisJob] = {}

    def submit(self, analysis_id: str, filename: str, original_name: str) -> AnalysisJob:
        """Starts the pipeline in the background. Must be called from the event loop."""
        running = self._jobs.get(analysis_id)
        if running is not None and not running.done():
            raise JobAlreadyRunning(analysis_id)
        task = asyncio.get_running_loop().create_task(
            self._run(analysis_id, filename, original_name),
            name=f"analysis-{analysis_id}",
        )
        job = AnalysisJob(analysis_id, task)
        self._jobs[analysis_id] = job
        task.add_done_callback(lambda t: self._finished(job))
        logger.info("analysis %s submitted (file=%s)", analysis_id, filename)
        return job

    async def _run(self, analysis_id: str, filename: str, original_name: str) -> AnalysisStatus:
        if self._semaphore is None:
            return await self.pipeline.run(analysis_id, filename, original_name)
        async with self._semaphore:
            return await self.pipeline.run(analysis_id, filename, original_name)

    def _finished(self, job: AnalysisJob) -> None:
        if self._jobs.get(job.analysis_id) is job:
            del self._jobs[job.analysis_id]
        if job.task.cancelled():
            # Also covers tasks cancelled before their first step
            logger.warning("analysis %s cancelled", job.analysis_id)
            self.pipeline.fail(job.analysis_id, "Analysis cancelled")

    def get(self, analysis_id: str) -> AnalysisJob | None:
        return self._jobs.get(analysis_id)

    def __len__(self) -> int:
        return len(self._jobs)

    async def shutdown(self) -> None:
        """Cancels every running job and waits for them to settle."""
        jobs = list(self._jobs.values())
        for job in jobs:
            job.cancel()
        if jobs:
            await asyncio.gather(*(job.task for job in jobs), return_exceptions=True)
