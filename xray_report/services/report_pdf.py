"""
PDF download of a finished report: DiagnosticReport -> Jinja2 -> WeasyPrint -> PDF bytes.
"""
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from xray_report.schemas import DiagnosticReport

_TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
_ENV = Environment(loader=FileSystemLoader(str(_TEMPLATES_DIR)), autoescape=True)


def report_context(report: DiagnosticReport) -> dict:
    return {
        "report": report,
        "findings": report.findings,
        "metadata": report.metadata,
        "report_date": report.timestamp.strftime("%d.%m.%Y %H:%M UTC"),
    }


def render_report_html(report: DiagnosticReport) -> str:
    return _ENV.get_template("report_pdf.html").render(**report_context(report))


def render_pdf(html_str: str) -> bytes:
    """Lazy import: WeasyPrint's system libraries are not needed at server start."""
    from weasyprint import HTML

    return HTML(string=html_str, base_url=str(_TEMPLATES_DIR)).write_pdf()


def build_report_pdf(report: DiagnosticReport) -> bytes:
    return render_pdf(render_report_html(report))
