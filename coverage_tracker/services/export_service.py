"""
Report export — stories and per-user coverage as CSV or Excel.

Rows are built from serialised data (``story_details()`` dicts and
``UserStats``) so the same formatting feeds both writers. Content is
generated in memory; nothing touches the filesystem.
"""

import csv
import io
from datetime import datetime, timezone

from openpyxl import Workbook
from openpyxl.styles import Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from coverage_tracker.services.coverage_stats import CoverageStatus, classify_score

HEADER_FILL = PatternFill(start_color="354A5F", end_color="354A5F", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

STORY_HEADERS = [
    "Story ID", "Title", "Creator", "Reviewer",
    "Coverage %", "Status", "Date Created", "Date Completed",
]
USER_HEADERS = [
    "User", "Role", "# Stories", "Avg Coverage %", "Status", "Below 90%?",
]


def _user_label(user: dict | None) -> str | None:
    if not user:
        return None
    if user.get("first_name") and user.get("last_name"):
        return f"{user['first_name']} {user['last_name']}"
    return user.get("email") or user.get("username")


def _day(iso_value: str | None) -> str | None:
    if not iso_value:
        return None
    return datetime.fromisoformat(iso_value).date().isoformat()


def format_stories_for_export(stories: list[dict]) -> list[dict]:
    """One row per story (dicts as produced by ``story_details``)."""
    rows = []
    for s in stories:
        score = s.get("coverage_score")
        verdict = classify_score(score)
        if verdict is None:
            status = "Pending Review"
        elif verdict == CoverageStatus.PASS:
            status = "Pass"
        else:
            status = "Fail"
        rows.append({
            "Story ID": s["ticket_id"],
            "Title": s["title"],
            "Creator": _user_label(s.get("creator")) or "",
            "Reviewer": _user_label(s.get("reviewer")) or "Not assigned",
            "Coverage %": f"{score:.1f}%" if score is not None else "Pending",
            "Status": status,
            "Date Created": _day(s.get("created_at")) or "",
            "Date Completed": _day(s.get("date_completed")) or "Not completed",
        })
    return rows


def format_users_for_export(user_stats) -> list[dict]:
    """One row per ``UserStats``."""
    rows = []
    for stats in user_stats:
        user = stats.user.to_dict()
        passed = stats.status == CoverageStatus.PASS
        rows.append({
            "User": _user_label(user),
            "Role": (user.get("role") or "").capitalize(),
            "# Stories": stats.total_stories,
            "Avg Coverage %": f"{float(stats.average_coverage):.1f}%",
            "Status": "Pass (≥90%)" if passed else "Fail (<90%)",
            "Below 90%?": "No" if passed else "Yes",
        })
    return rows


def rows_to_csv(headers: list[str], rows: list[dict]) -> str:
    """Render rows as CSV text. The header row is written even with no rows."""
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=headers, lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    return buf.getvalue()


def rows_to_xlsx(headers: list[str], rows: list[dict], title: str) -> io.BytesIO:
    """Render rows as a single-sheet workbook with a styled header row."""
    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]

    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER

    for r, row in enumerate(rows, 2):
        for col, header in enumerate(headers, 1):
            ws.cell(row=r, column=col, value=row.get(header)).border = THIN_BORDER

    for col, header in enumerate(headers, 1):
        width = max([len(str(header))] + [len(str(row.get(header) or "")) for row in rows])
        ws.column_dimensions[get_column_letter(col)].width = min(width + 2, 60)

    ws.freeze_panes = "A2"
    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    return buf


def export_filename(prefix: str, extension: str) -> str:
    """e.g. ``stories-report-20260119.csv``"""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d")
    return f"{prefix}-report-{stamp}.{extension}"
