"""Analysis and report registries on top of a KeyValueStore."""
from xray_report.schemas import AnalysisStatus, DiagnosticReport, InvalidTransition
from xray_report.services.store import KeyValueStore


class AnalysisRegistry:
    """Current AnalysisStatus per analysis id; records are replaced whole on each change."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def get(self, analysis_id: str) -> AnalysisStatus | None:
        raw = self.store.get(analysis_id)
        return AnalysisStatus.model_validate(raw) if raw is not None else None

    def create(self, status: AnalysisStatus) -> AnalysisStatus:
        if status.id in self.store:
            raise InvalidTransition(f"analysis {status.id} already exists")
        self.store.put(status.id, status.model_dump(mode="json"))
        return status

    def advance(self, analysis_id: str, **changes) -> AnalysisStatus:
        """Read, apply AnalysisStatus.advance, write back."""
        current = self.get(analysis_id)
        if current is None:
            raise KeyError(analysis_id)
        updated = current.advance(**changes)
        self.store.put(analysis_id, updated.model_dump(mode="json"))
        return updated

    def __contains__(self, analysis_id: str) -> bool:
        return analysis_id in self.store

    def __len__(self) -> int:
        return len(self.store)


class ReportRegistry:
    """Finished reports; write-once."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def get(self, report_id: str) -> DiagnosticReport | None:
        raw = self.store.get(report_id)
        return DiagnosticReport.model_validate(raw) if raw is not None else None

    def add(self, report: DiagnosticReport) -> DiagnosticReport:
        if report.id in self.store:
            raise ValueError(f"report {report.id} already exists")
        self.store.put(report.id, report.model_dump(mode="json"))
        return report

    def __contains__(self, report_id: str) -> bool:
        return report_id in self.store

    def __len__(self) -> int:
        return len(self.store)
