from .analysis import (
    TERMINAL_STATUSES,
    AnalysisStatus,
    AnalyzeRequest,
    DiagnosticReport,
    Findings,
    InvalidTransition,
    ReportMetadata,
    UploadResponse,
)

__all__ = [
    "TERMINAL_STATUSES",
    "AnalysisStatus",
    "AnalyzeRequest",
    "DiagnosticReport",
    "Findings",
    "InvalidTransition",
    "ReportMetadata",
    "UploadResponse",
]
