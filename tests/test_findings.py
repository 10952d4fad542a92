"""Model reply parsing: parsed / recovered / generic."""
import json

from xray_report.services.findings import ParseOutcome, parse_findings


def test_json_reply_is_parsed():
    reply = json.dumps(
        {"overview": "Clear lungs.", "detailed": ["a", "b"], "recommendations": ["c"], "confidence": 91}
    )
    result = parse_findings(reply)
    assert result.outcome is ParseOutcome.PARSED
    assert result.findings.overview == "Clear lungs."
    assert result.findings.detailed == ["a", "b"]
    assert result.findings.confidence == 91


def test_json_inside_markdown_fence():
    reply = 'Sure.\n```json\n{"overview": "x", "detailed": ["d"], "recommendations": ["r"], "confidence": 60}\n```\nThanks'
    result = parse_findings(reply)
    assert result.outcome is ParseOutcome.PARSED
    assert result.findings.confidence == 60


def test_confidence_is_coerced_and_clamped():
    base = {"overview": "x", "detailed": ["d"], "recommendations": ["r"]}
    assert parse_findings(json.dumps({**base, "confidence": "85%"})).findings.confidence == 85
    assert parse_findings(json.dumps({**base, "confidence": 150})).findings.confidence == 100
    assert parse_findings(json.dumps({**base, "confidence": -3})).findings.confidence == 0
    assert parse_findings(json.dumps({**base, "confidence": 72.6})).findings.confidence == 73


def test_single_string_list_is_wrapped():
    reply = json.dumps({"overview": "x", "detailed": "one finding", "recommendations": ["r"], "confidence": 50})
    result = parse_findings(reply)
    assert result.outcome is ParseOutcome.PARSED
    assert result.findings.detailed == ["one finding"]


def test_no_json_recovers_from_raw_text():
    reply = "A" * 300
    result = parse_findings(reply)
    assert result.outcome is ParseOutcome.RECOVERED
    assert result.findings.overview == "A" * 200 + "..."
    assert result.findings.confidence == 75
    assert result.findings.detailed == ["AI analysis completed", "Please review findings carefully"]


def test_broken_json_uses_generic():
    result = parse_findings('{"overview": "x", "detailed": [')
    # no closing brace: nothing JSON-shaped
    assert result.outcome is ParseOutcome.RECOVERED

    result = parse_findings('{"overview": "x", "detailed": [}')
    assert result.outcome is ParseOutcome.GENERIC
    assert result.findings.confidence == 70
    assert len(result.findings.recommendations) == 3


def test_json_missing_fields_uses_generic():
    result = parse_findings('{"overview": "only an overview"}')
    assert result.outcome is ParseOutcome.GENERIC


def test_empty_lists_use_generic():
    reply = json.dumps({"overview": "x", "detailed": [], "recommendations": ["r"], "confidence": 80})
    assert parse_findings(reply).outcome is ParseOutcome.GENERIC


def test_non_numeric_confidence_uses_generic():
    reply = json.dumps({"overview": "x", "detailed": ["d"], "recommendations": ["r"], "confidence": "high"})
    assert parse_findings(reply).outcome is ParseOutcome.GENERIC


def test_infinite_confidence_uses_generic():
    # json.loads turns both of these into float("inf")
    for raw in ("1e999", "Infinity", "-Infinity", "NaN"):
        reply = '{"overview": "x", "detailed": ["d"], "recommendations": ["r"], "confidence": %s}' % raw
        assert parse_findings(reply).outcome is ParseOutcome.GENERIC, raw


def test_huge_integer_confidence_uses_generic():
    reply = '{"overview": "x", "detailed": ["d"], "recommendations": ["r"], "confidence": 1%s}' % ("0" * 400)
    assert parse_findings(reply).outcome is ParseOutcome.GENERIC
