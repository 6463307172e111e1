"""Number, date and narrative formatting for report rendering."""
import re
from datetime import date, datetime
from typing import Optional, Union, Callable, Tuple

DateLike = Union[date, datetime, str, None]


def round1(value) -> Optional[float]:
    """Round hectares and yields to one decimal place."""
    if value is None:
        return None
    return round(float(value), 1)


def round_coordinate(value) -> Optional[float]:
    """Round a GPS coordinate to six decimal places."""
    if value is None:
        return None
    return round(float(value), 6)


def parse_date(value: DateLike) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value).strip()).date()
    except ValueError:
        return None


def ordinal(day: int) -> str:
    if 11 <= day % 100 <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"


def format_long_date(value: DateLike) -> Optional[str]:
    """Format a date as 'June 5th, 2024'. Absent dates stay None."""
    parsed = parse_date(value)
    if parsed is None:
        return None
    return f"{parsed.strftime('%B')} {ordinal(parsed.day)}, {parsed.year}"


def planting_date_range(fields) -> Optional[Tuple[date, date]]:
    """Earliest and latest planting date across a farm's fields."""
    dates = [parse_date(f.get("planting_date")) for f in fields]
    dates = [d for d in dates if d is not None]
    if not dates:
        return None
    return min(dates), max(dates)


# ---------------------------------------------------------------------------
# Narrative text to HTML
#
# A fixed, ordered pipeline. Each stage works on the output of the previous
# one, so the order below must not change.
# ---------------------------------------------------------------------------

_BOLD_RE = re.compile(r"\*\*(.+?)\*\*", re.DOTALL)
_ITALIC_RE = re.compile(r"(?<!\*)\*(?!\s)(.+?)(?<!\s)\*(?!\*)")
_PARAGRAPH_BREAK_RE = re.compile(r"\n[ \t]*\n\s*")
# A one- or two-digit number ending in ". ", not after a word or a decimal point
_NUMBERED_MARKER_RE = re.compile(r"(?<![\w.])(\d{1,2})\.(?=\s)")


def convert_bold(text: str) -> str:
    return _BOLD_RE.sub(r"<strong>\1</strong>", text)


def convert_italic(text: str) -> str:
    return _ITALIC_RE.sub(r"<em>\1</em>", text)


def convert_paragraph_breaks(text: str) -> str:
    return _PARAGRAPH_BREAK_RE.sub("</p><p>", text)


def convert_line_breaks(text: str) -> str:
    return text.replace("\n", "<br>")


def wrap_paragraph(text: str) -> str:
    # Wrap once only
    if text.startswith("<p>") and text.endswith("</p>"):
        return text
    return f"<p>{text}</p>"


def break_before_numbered_items(text: str) -> str:
    """
    Start inline list items on their own line.

    A marker already at a line or paragraph start opens a list. Inline, ``1.``
    after a colon opens one, and only the next number in sequence continues
    it, so "day 14. Then" is left alone.
    """
    expected = None
    parts = []
    last = 0

    for match in _NUMBERED_MARKER_RE.finditer(text):
        number = int(match.group(1))
        before = text[:match.start()]
        if before.endswith(">"):
            expected = number + 1
            continue
        if (number == 1 and before.rstrip().endswith(":")) or number == expected:
            parts.append(text[last:match.start()])
            parts.append("<br>")
            last = match.start()
            expected = number + 1

    parts.append(text[last:])
    return "".join(parts)


NARRATIVE_PIPELINE: Tuple[Callable[[str], str], ...] = (
    convert_bold,
    convert_italic,
    convert_paragraph_breaks,
    convert_line_breaks,
    wrap_paragraph,
    break_before_numbered_items,
)


def narrative_to_html(text: Optional[str]) -> str:
    """Convert lightweight narrative markup into an inline HTML fragment."""
    if not text or not text.strip():
        return ""
    html = text.replace("\r\n", "\n").strip()
    for stage in NARRATIVE_PIPELINE:
        html = stage(html)
    return html
