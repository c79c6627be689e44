# utils/report.py
"""Report engine: scope -> filter -> group/sort -> summarize -> render (PDF or CSV)."""
import io
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Sequence
from xml.sax.saxutils import escape

import pandas as pd
import plotly.express as px

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape as RL_landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.pdfgen import canvas as _rl_canvas
from reportlab.platypus import Image as RLImage, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from models.report_config import COLUMN_FIELDS, DateBasis, ReportConfig, ReportFormat
from models.task import ProgressStatus, STATUS_ORDER, Task
from utils.directory import AssigneeDirectory
from utils.formatting import display_date, format_hours, today_iso

# Try importing kaleido (optional) for the status chart inside the PDF
try:
    import plotly.io as pio
    import kaleido  # noqa: F401
    HAS_KALEIDO = True
except Exception:
    HAS_KALEIDO = False

log = logging.getLogger(__name__)

STATUS_COLORS = {
    ProgressStatus.NOT_STARTED.value: "#9CA3AF",
    ProgressStatus.IN_PROGRESS.value: "#2563EB",
    ProgressStatus.COMPLETE.value: "#16A34A",
}

# relative PDF column widths
_COLUMN_WEIGHTS = {
    "Project": 2.0, "Brief": 1.4, "Status": 1.4, "Content Status": 1.4, "Logged": 1.0, "Due": 1.0,
    "Complete By": 1.0, "Progress": 1.1, "Notes": 2.6, "Who": 2.0, "Versions": 0.8, "Area": 1.2,
    "Drive Link": 2.0, "Hours": 0.7,
}

PDF_MIME = "application/pdf"
CSV_MIME = "text/csv"


@dataclass
class StatusTotals:
    status: ProgressStatus
    count: int
    hours: float


@dataclass
class ReportSummary:
    total_count: int = 0
    total_hours: float = 0.0
    by_status: List[StatusTotals] = field(default_factory=list)
    overdue_count: int = 0


@dataclass
class ReportResult:
    ok: bool
    data: Optional[bytes] = None
    filename: str = ""
    mime: str = ""
    message: str = ""
    summary: Optional[ReportSummary] = None
    row_count: int = 0

    def __bool__(self):
        return self.ok


# ---------- scope & filter ----------
def base_scope(visible: Sequence[Task], selected: Sequence[Task] = ()) -> List[Task]:
    """The grid selection when there is one, else every visible task."""
    return list(selected) if selected else list(visible)


def range_is_valid(cfg: ReportConfig) -> bool:
    return not (cfg.start_date and cfg.end_date and cfg.start_date > cfg.end_date)


def in_date_range(task: Task, cfg: ReportConfig) -> bool:
    if cfg.start_date is None and cfg.end_date is None:
        return True
    value = getattr(task, cfg.date_basis.value)
    if not value:
        return False
    if cfg.start_date is not None and value < cfg.start_date.isoformat():
        return False
    if cfg.end_date is not None and value > cfg.end_date.isoformat():
        return False
    return True


def matches_category(task: Task, cfg: ReportConfig, today: str) -> bool:
    return ((cfg.include_complete and task.progress_status is ProgressStatus.COMPLETE)
            or (cfg.include_in_progress and task.progress_status is ProgressStatus.IN_PROGRESS)
            or (cfg.include_not_started and task.progress_status is ProgressStatus.NOT_STARTED)
            or (cfg.include_overdue and task.is_overdue(today)))


def filter_for_report(tasks: Sequence[Task], cfg: ReportConfig, today: Optional[date] = None) -> List[Task]:
    if not range_is_valid(cfg):
        return []
    now = today_iso(today)
    return [t for t in tasks if in_date_range(t, cfg) and matches_category(t, cfg, now)]


# ---------- group & sort ----------
def _text_key(value: str):
    return (not value, (value or "").casefold())


def group_and_sort(tasks: Sequence[Task], cfg: ReportConfig,
                   directory: Optional[AssigneeDirectory] = None) -> List[Task]:
    """Order by the enabled group keys (Area, Who, Project) then due date. No keys: base order."""
    if not (cfg.group_by_area or cfg.group_by_assignee or cfg.group_by_project):
        return list(tasks)
    directory = directory or AssigneeDirectory()

    def key(t: Task):
        parts = []
        if cfg.group_by_area:
            parts.append(_text_key(t.area))
        if cfg.group_by_assignee:
            parts.append(_text_key(directory.first_name_key(t.assignees, t.client_id) or ""))
        if cfg.group_by_project:
            parts.append(_text_key(t.project))
        parts.append(_text_key(t.due_date))
        return tuple(parts)

    return sorted(tasks, key=key)


# ---------- aggregate ----------
def summarize(tasks: Sequence[Task], today: Optional[date] = None) -> ReportSummary:
    now = today_iso(today)
    counts = {}
    hours = {}
    for t in tasks:
        counts[t.progress_status] = counts.get(t.progress_status, 0) + 1
        hours[t.progress_status] = hours.get(t.progress_status, 0.0) + t.hours_allocated
    return ReportSummary(
        total_count=len(tasks),
        total_hours=sum(t.hours_allocated for t in tasks),
        by_status=[StatusTotals(s, counts[s], hours[s]) for s in STATUS_ORDER if s in counts],
        overdue_count=sum(1 for t in tasks if t.is_overdue(now)),
    )


# ---------- values ----------
def cell_text(task: Task, column: str, directory: AssigneeDirectory) -> str:
    name = COLUMN_FIELDS[column]
    value = getattr(task, name)
    if name == "assignees":
        return ", ".join(directory.resolve_all(value, task.client_id))
    if name in ("date_logged", "due_date", "complete_by"):
        return display_date(value)
    if name == "hours_allocated":
        return format_hours(value)
    if name == "progress_status":
        return value.value
    return value or ""


def report_frame(tasks: Sequence[Task], columns: Sequence[str],
                 directory: Optional[AssigneeDirectory] = None) -> pd.DataFrame:
    directory = directory or AssigneeDirectory()
    rows = [[cell_text(t, c, directory) for c in columns] for t in tasks]
    return pd.DataFrame(rows, columns=list(columns))


def date_range_label(cfg: ReportConfig) -> str:
    basis = "Due date" if cfg.date_basis is DateBasis.DUE_DATE else "Date logged"
    if cfg.start_date is None and cfg.end_date is None:
        return f"{basis}: all dates"
    start = display_date(cfg.start_date.isoformat()) if cfg.start_date else "any"
    end = display_date(cfg.end_date.isoformat()) if cfg.end_date else "any"
    return f"{basis}: {start} to {end}"


def report_filename(title: str, fmt: ReportFormat, today: Optional[date] = None) -> str:
    stem = re.sub(r"\s+", "_", (title or "").strip().lower())
    stem = re.sub(r"[^\w\-]", "", stem) or "report"
    return f"{stem}_{today_iso(today)}.{fmt.value.lower()}"


# ---------- CSV ----------
def render_csv(frame: pd.DataFrame) -> bytes:
    return frame.to_csv(index=False).encode("utf-8")


# ---------- Plotly ----------
def status_figure(summary: ReportSummary):
    df = pd.DataFrame({
        "status": [s.status.value for s in summary.by_status],
        "count": [s.count for s in summary.by_status],
        "hours": [s.hours for s in summary.by_status],
    })
    fig = px.bar(df, x="status", y="count", color="status", color_discrete_map=STATUS_COLORS,
                 hover_data=["hours"])
    fig.update_layout(showlegend=False, xaxis_title=None, yaxis_title="Tasks")
    return fig


def _chart_png(summary: ReportSummary) -> Optional[bytes]:
    if not HAS_KALEIDO:
        return None
    fig = status_figure(summary)
    fig.update_layout(template="plotly_white", paper_bgcolor="white", plot_bgcolor="white",
                      margin=dict(l=60, r=20, t=30, b=40), font=dict(size=12))
    return pio.to_image(fig, format="png", width=900, height=400, scale=2)


# ---------- ReportLab ----------
def _page_number(canv: _rl_canvas.Canvas, doc):
    canv.setFont("Helvetica", 8)
    canv.setFillColor(colors.HexColor("#64748b"))
    canv.drawString(36, 18, doc.title or "")
    canv.drawRightString(doc.pagesize[0]-36, 18, f"Page {canv.getPageNumber()}")


def _summary_table(summary: ReportSummary, cfg: ReportConfig) -> Table:
    head = ["Tasks"]
    vals = [str(summary.total_count)]
    if cfg.include_hours_total:
        head.append("Hours")
        vals.append(format_hours(summary.total_hours))
    if summary.overdue_count:
        head.append("Overdue")
        vals.append(str(summary.overdue_count))
    data = [head, vals]
    tbl = Table(data, colWidths=[90] * len(head))
    tbl.setStyle(TableStyle([
        ("BACKGROUND", (0,0), (-1,0), colors.HexColor("#eef2ff")),
        ("TEXTCOLOR", (0,0), (-1,0), colors.HexColor("#1f2937")),
        ("FONTNAME", (0,0), (-1,0), "Helvetica-Bold"),
        ("ALIGN", (0,0), (-1,-1), "CENTER"),
        ("BOX", (0,0), (-1,-1), 0.5, colors.HexColor("#d1d5db")),
        ("INNERGRID", (0,0), (-1,-1), 0.25, colors.HexColor("#e5e7eb")),
    ]))
    return tbl


def _status_table(summary: ReportSummary, cfg: ReportConfig) -> Table:
    head = ["Status", "Tasks"] + (["Hours"] if cfg.include_hours_total else [])
    rows = [[s.status.value, str(s.count)] + ([format_hours(s.hours)] if cfg.include_hours_total else [])
            for s in summary.by_status]
    tbl = Table([head] + rows, colWidths=[110] + [70] * (len(head) - 1))
    tbl.setStyle(TableStyle([
        ("BACKGROUND", (0,0), (-1,0), colors.HexColor("#f3f4f6")),
        ("FONTNAME", (0,0), (-1,0), "Helvetica-Bold"),
        ("ALIGN", (1,0), (-1,-1), "CENTER"),
        ("BOX", (0,0), (-1,-1), 0.5, colors.HexColor("#d1d5db")),
        ("INNERGRID", (0,0), (-1,-1), 0.25, colors.HexColor("#e5e7eb")),
    ]))
    return tbl


def _body_table(frame: pd.DataFrame, width: float, cell_style: ParagraphStyle) -> Table:
    columns = list(frame.columns)
    weights = [_COLUMN_WEIGHTS.get(c, 1.0) for c in columns]
    total = sum(weights)
    col_widths = [width * w / total for w in weights]
    data = [columns] + [[Paragraph(escape(str(v)).replace("\n", "<br/>"), cell_style) for v in row]
                        for row in frame.values.tolist()]
    tbl = Table(data, colWidths=col_widths, repeatRows=1)
    tbl.setStyle(TableStyle([
        ("BACKGROUND", (0,0), (-1,0), colors.HexColor("#f1f5f9")),
        ("TEXTCOLOR", (0,0), (-1,0), colors.HexColor("#0f172a")),
        ("FONTNAME", (0,0), (-1,0), "Helvetica-Bold"),
        ("FONTSIZE", (0,0), (-1,0), 8),
        ("GRID", (0,0), (-1,-1), 0.3, colors.HexColor("#cbd5e1")),
        ("VALIGN", (0,0), (-1,-1), "TOP"),
        ("ROWBACKGROUNDS", (0,1), (-1,-1), [colors.white, colors.HexColor("#f8fafc")]),
    ]))
    return tbl


def render_pdf(frame: pd.DataFrame, cfg: ReportConfig, summary: ReportSummary, scope_label: str = "",
               generated_at: Optional[datetime] = None) -> bytes:
    """Return PDF bytes."""
    generated_at = generated_at or datetime.now()
    title = cfg.title or "Report"

    buf = io.BytesIO()
    pagesize = RL_landscape(A4) if cfg.landscape else A4
    doc = SimpleDocTemplate(buf, pagesize=pagesize, topMargin=36, bottomMargin=36, leftMargin=36, rightMargin=36,
                            title=title)

    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(name="H1", fontSize=18, leading=22, spaceAfter=12, textColor=colors.HexColor("#0f172a")))
    styles.add(ParagraphStyle(name="H2", fontSize=14, leading=18, spaceAfter=8, textColor=colors.HexColor("#1f2937")))
    styles.add(ParagraphStyle(name="Muted", fontSize=9, textColor=colors.HexColor("#6b7280")))
    styles.add(ParagraphStyle(name="Cell", fontSize=7.5, leading=9))

    story = []

    # Header
    story.append(Paragraph(escape(title), styles["H1"]))
    if scope_label:
        story.append(Paragraph(escape(scope_label), styles["Muted"]))
    story.append(Paragraph(escape(date_range_label(cfg)), styles["Muted"]))
    story.append(Paragraph(f"Generated {generated_at:%d/%m/%Y %H:%M}", styles["Muted"]))
    story.append(Spacer(1, 12))

    # Summary
    story.append(Paragraph("Summary", styles["H2"]))
    story.append(_summary_table(summary, cfg))
    story.append(Spacer(1, 8))
    if cfg.include_status_totals and summary.by_status:
        story.append(_status_table(summary, cfg))
        story.append(Spacer(1, 8))

    if cfg.include_chart:
        png = _chart_png(summary)
        if png is not None:
            story.append(RLImage(io.BytesIO(png), width=450, height=200))
        else:
            story.append(Paragraph("Chart not embedded (kaleido not installed).", styles["Muted"]))
        story.append(Spacer(1, 8))
    story.append(Spacer(1, 4))

    # Tasks
    story.append(Paragraph("Tasks", styles["H2"]))
    story.append(_body_table(frame, doc.width, styles["Cell"]))

    doc.build(story, onFirstPage=_page_number, onLaterPages=_page_number)
    pdf_bytes = buf.getvalue()
    buf.close()
    return pdf_bytes


# ---------- entry point ----------
def generate_report(tasks: Sequence[Task], cfg: ReportConfig, directory: Optional[AssigneeDirectory] = None,
                    scope_label: str = "", today: Optional[date] = None,
                    generated_at: Optional[datetime] = None) -> ReportResult:
    """Build the report for an already-scoped task list. Refusals come back as a message, not an exception."""
    directory = directory or AssigneeDirectory()
    if not range_is_valid(cfg):
        log.info("report refused: start %s after end %s", cfg.start_date, cfg.end_date)
        return ReportResult(False, message="The start date is after the end date.")
    columns = cfg.output_columns()
    if not columns:
        return ReportResult(False, message="Choose at least one column.")

    selected = group_and_sort(filter_for_report(tasks, cfg, today), cfg, directory)
    if not selected:
        log.info("report refused: no tasks match (%d in scope)", len(tasks))
        return ReportResult(False, message="No tasks match the selected filters. Nothing was generated.")

    summary = summarize(selected, today)
    frame = report_frame(selected, columns, directory)
    if cfg.output_format is ReportFormat.CSV:
        data, mime = render_csv(frame), CSV_MIME
    else:
        data, mime = render_pdf(frame, cfg, summary, scope_label, generated_at), PDF_MIME
    filename = report_filename(cfg.title, cfg.output_format, today)
    log.info("report %s: %d task(s), %d column(s)", filename, len(selected), len(columns))
    return ReportResult(True, data=data, filename=filename, mime=mime, summary=summary, row_count=len(selected))
