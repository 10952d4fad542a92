import math
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Status = Literal["uploading", "analyzing", "completed", "error"]

TERMINAL_STATUSES = ("completed", "error")
# uploading -> analyzing -> completed | error
_STATUS_RANK = {"uploading": 0, "analyzing": 1, "completed": 2, "error": 2}


class InvalidTransition(ValueError):
    """An analysis status change that would break the lifecycle ordering."""


class CamelModel(BaseModel):
    """JSON keys in camelCase (imageUrl, reportId, ...); snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnalysisStatus(CamelModel):
    id: str
    status: Status
    progress: int = Field(ge=0, le=100)
    message: str
    image_url: str | None = None
    report_id: str | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def advance(
        self,
        *,
        status: Status | None = None,
        progress: int | None = None,
        message: str | None = None,
        report_id: str | None = None,
        error: str | None = None,
    ) -> "AnalysisStatus":
        """
        Returns the next record for this analysis; the current one is left untouched.
        Raises InvalidTransition on regression, a progress decrease before a terminal
        state, or any change after completed/error.
        """
        if self.is_terminal:
            raise InvalidTransition(f"analysis {self.id} is already {self.status}")
        new_status = status or self.status
        if _STATUS_RANK[new_status] < _STATUS_RANK[self.status]:
            raise InvalidTransition(f"analysis {self.id}: {self.status} -> {new_status}")
        if report_id is not None and new_status != "completed":
            raise InvalidTransition("reportId is only set on completion")
        if error is not None and new_status != "error":
            raise InvalidTransition("error is only set on failure")

        if new_status == "completed":
            if not report_id:
                raise InvalidTransition("completed analysis needs a reportId")
            new_progress = 100 if progress is None else progress
        elif new_status == "error":
            if not error:
                raise InvalidTransition("failed analysis needs an error message")
            new_progress = 0
        else:
            new_progress = self.progress if progress is None else progress
        if new_status != "error" and new_progress < self.progress:
            raise InvalidTransition(f"analysis {self.id}: progress {self.progress} -> {new_progress}")

        return self.model_copy(
            update={
                "status": new_status,
                "progress": new_progress,
                "message": self.message if message is None else message,
                "report_id": report_id,
                "error": error,
            }
        )


class Findings(CamelModel):
    overview: str = Field(min_length=1)
    detailed: list[str] = Field(min_length=1)
    recommendations: list[str] = Field(min_length=1)
    confidence: int

    @field_validator("overview", mode="before")
    @classmethod
    def overview_text(cls, v):
        if not isinstance(v, str):
            raise ValueError("overview must be text")
        return v.strip()

    @field_validator("detailed", "recommendations", mode="before")
    @classmethod
    def text_items(cls, v):
        # Models sometimes return one string instead of a list
        if isinstance(v, str):
            v = [v]
        if not isinstance(v, list):
            raise ValueError("expected a list of strings")
        items = []
        for item in v:
            if isinstance(item, (dict, list)) or item is None:
                continue
            text = str(item).strip()
            if text:
                items.append(text)
        return items

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v):
        if isinstance(v, bool):
            raise ValueError("confidence must be a number")
        if isinstance(v, str):
            v = v.strip().rstrip("%")
        try:
            number = float(v)
        except (TypeError, ValueError, OverflowError) as e:
            raise ValueError("confidence must be a number") from e
        # json.loads accepts Infinity, NaN and 1e999
        if not math.isfinite(number):
            raise ValueError("confidence must be a finite number")
        value = round(number)
        return max(0, min(100, value))


class ReportMetadata(CamelModel):
    image_type: str
    processing_time: int
    ai_model: str


class DiagnosticReport(CamelModel):
    id: str
    timestamp: datetime
    image_url: str
    findings: Findings
    metadata: ReportMetadata


class AnalyzeRequest(CamelModel):
    """Body of POST /analyze; fields are checked by the route so a gap is a 400."""

    id: str | None = None
    filename: str | None = None
    original_name: str | None = None

    @field_validator("id", "filename", "original_name", mode="before")
    @classmethod
    def scalar_text(cls, v):
        # Numbers become text; objects and lists count as missing
        if isinstance(v, bool) or isinstance(v, (dict, list)):
            return None
        if isinstance(v, (int, float)):
            return str(v)
        return v


class UploadResponse(BaseModel):
    id: str
    filename: str
    size: int
    type: str
    message: str = "File uploaded successfully"
