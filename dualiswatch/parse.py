"""
Parsing (Dualis HTML -> Records).

- parse_overview_html: the flat "Leistungsübersicht" table, one row per course
- parse_detail_html: one course detail page, optionally split into sub-courses
- parse_semester_options / parse_detail_links: navigation helpers for the
  per-semester course result pages
- parse_cached: runs the right parser over the HTML cache written by scrape.py

Important rules (DO NOT CHANGE):
- Rows that do not look like data rows are skipped silently
- A missing status icon means "not graded"
- The column positions below are pinned to the markup Dualis serves today
"""

from __future__ import annotations

import re
from html import unescape
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import Tag

from dualiswatch.changes import dedupe_records
from dualiswatch.errors import DualisWatchError, MalformedPage
from dualiswatch.model import Record


# ---------------------------------------------------------------------------
# Markup constants
# ---------------------------------------------------------------------------

# Row classes (substring match on the row's class attribute)
SUBHEADING_MARKER = "subhead"
TOP_LEVEL_MARKER = "level00"

# Cell classes (substring match, Dualis also uses e.g. "tbdata_numeric")
DATA_CELL_CLASS = "tbdata"
GROUP_HEADER_CLASS = "level02"

MIN_DATA_CELLS = 6
STATUS_CELL_INDEX = 5
POINTS_CELL_INDEX = 3

OPEN_STATUS = "offen"
NOT_YET_MARKER = "noch nicht"
MODULE_EXAM_LABEL = "Modulabschlussleistungen"

COMMENT_RE = re.compile(r"<!--.*-->")
WHITESPACE_RE = re.compile(r"\s+")
COURSE_CODE_RE = re.compile(r"\b[A-Za-z][A-Za-z0-9_]*\d{4}(?:\.\d{1,2})?\b")
DL_POPUP_RE = re.compile(r"dl_popUp\(\s*[\"']([^\"']+)[\"']")

# Cache layout shared with scrape.py
OVERVIEW_FILE = "overview.html"
DETAILS_DIR = "details"


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


def _normalize_ws(text: str) -> str:
    return WHITESPACE_RE.sub(" ", text).strip()


def clean_name(fragments: Iterable[str]) -> str:
    """
    Build a display name from the text fragments of a cell.

    Fragments are trimmed and joined, line breaks are collapsed, and then
    everything from the first "<!--" to the last "-->" is dropped. Dualis
    leaks comment markup from inline scripts into some name cells.
    """
    joined = " ".join(f.strip() for f in fragments if f.strip())
    single_line = joined.replace("\r", " ").replace("\n", " ")
    return _normalize_ws(COMMENT_RE.sub("", single_line))


def split_course_code(text: str) -> Tuple[Optional[str], str]:
    """
    Split "T3INF1001.1 Lineare Algebra" into ("T3INF1001.1", "Lineare Algebra").

    Only the first code is removed. Returns (None, text) if there is no code.
    """
    match = COURSE_CODE_RE.search(text)
    if match is None:
        return None, _normalize_ws(text)
    rest = text[: match.start()] + text[match.end():]
    return match.group(0), _normalize_ws(rest)


# ---------------------------------------------------------------------------
# Row helpers
# ---------------------------------------------------------------------------


def _classes(el: Tag) -> str:
    return " ".join(el.get("class") or [])


def _is_heading_row(row: Tag) -> bool:
    classes = _classes(row)
    return SUBHEADING_MARKER in classes or TOP_LEVEL_MARKER in classes


def _row_cells(row: Tag) -> List[Tag]:
    return row.find_all(["td", "th"], recursive=False)


def _is_data_row(cells: List[Tag]) -> bool:
    # Every cell must carry the data class, mixed rows are layout rows
    if len(cells) < MIN_DATA_CELLS:
        return False
    return all(DATA_CELL_CLASS in _classes(c) for c in cells)


# ---------------------------------------------------------------------------
# Overview page
# ---------------------------------------------------------------------------


def _status_is_graded(cell: Tag) -> bool:
    icon = cell.find("img")
    if icon is None:
        return False
    title = (icon.get("title") or "").strip()
    if not title:
        return False
    return title.lower() != OPEN_STATUS


def parse_overview_html(html: str) -> List[Record]:
    """
    Parse the flat results overview into Records.

    Duplicate ids are kept; use dedupe_records for a record set.
    """
    soup = BeautifulSoup(html, "html.parser")

    records: List[Record] = []
    for row in soup.select("tbody tr"):
        if _is_heading_row(row):
            continue

        cells = _row_cells(row)
        if not _is_data_row(cells):
            continue

        course_id = cells[0].get_text(strip=True)
        if not course_id:
            continue

        records.append(
            Record(
                id=course_id,
                name=clean_name(cells[1].strings),
                graded=_status_is_graded(cells[STATUS_CELL_INDEX]),
            )
        )

    return records


# ---------------------------------------------------------------------------
# Course detail page
# ---------------------------------------------------------------------------


def _main_course(soup: BeautifulSoup) -> Tuple[str, str]:
    heading = soup.find("h1")
    if heading is None:
        raise MalformedPage("course detail page has no <h1> heading")

    text = _normalize_ws(heading.get_text().replace("\n", " "))
    course_id, name = split_course_code(text)
    if course_id is None:
        raise MalformedPage(f"no course code in heading {text!r}")
    return course_id, name


def _points_graded(cell: Tag) -> bool:
    points = cell.get_text(strip=True)
    return bool(points) and NOT_YET_MARKER not in points


def _resolve_name(sub_name: Optional[str], main_name: str) -> str:
    # The module exam row carries the result of the whole module
    if not sub_name or sub_name == MODULE_EXAM_LABEL:
        return main_name
    return sub_name


def _detail_records(rows: List[Tag], main_id: str, main_name: str) -> List[Record]:
    """
    Walk all table rows of the page top to bottom.

    A single "level02" cell opens a sub-course; its id and name apply to the
    following rows of the same table until the next sub-course row or the end
    of that table. Each table, nested ones included, keeps its own sub-course.
    """
    # id(table) -> (sub-course id, sub-course name)
    sub_courses: Dict[int, Tuple[Optional[str], Optional[str]]] = {}

    records: List[Record] = []
    for row in rows:
        if _is_heading_row(row):
            continue

        table_key = id(row.find_parent("table"))
        cells = _row_cells(row)
        if len(cells) == 1 and GROUP_HEADER_CLASS in _classes(cells[0]):
            sub_courses[table_key] = split_course_code(" ".join(cells[0].stripped_strings))
            continue

        if not _is_data_row(cells):
            continue

        sub_id, sub_name = sub_courses.get(table_key, (None, None))
        records.append(
            Record(
                id=sub_id or main_id,
                name=_resolve_name(sub_name, main_name),
                graded=_points_graded(cells[POINTS_CELL_INDEX]),
            )
        )

    return records


def parse_detail_html(html: str) -> List[Record]:
    """
    Parse one course detail page.

    Raises MalformedPage if the page has no heading with a course code,
    since every record id is derived from it.
    """
    soup = BeautifulSoup(html, "html.parser")
    main_id, main_name = _main_course(soup)

    rows = [tr for tr in soup.find_all("tr") if tr.find_parent("table") is not None]
    return _detail_records(rows, main_id, main_name)


# ---------------------------------------------------------------------------
# Semester result pages (navigation)
# ---------------------------------------------------------------------------


def parse_semester_options(html: str) -> List[Tuple[str, str]]:
    """
    Return (value, label) for every entry of the semester drop-down.
    """
    soup = BeautifulSoup(html, "html.parser")

    options: List[Tuple[str, str]] = []
    for option in soup.select("select#semester option"):
        value = (option.get("value") or "").strip()
        if value:
            options.append((value, option.get_text(" ", strip=True)))
    return options


def parse_detail_links(html: str, base_url: str) -> List[str]:
    """
    Collect the course detail URLs of a semester page in page order.

    Dualis opens detail pages through dl_popUp("...") calls, either in an
    inline script or in an onclick/href attribute.
    """
    soup = BeautifulSoup(html, "html.parser")

    links: List[str] = []
    seen = set()
    for el in soup.find_all(True):
        # Attribute values arrive decoded, script text does not
        sources = [el.get("onclick") or "", el.get("href") or ""]
        if el.name == "script":
            sources.append(unescape(el.get_text()))

        for source in sources:
            for target in DL_POPUP_RE.findall(source):
                url = urljoin(base_url, target)
                if url not in seen:
                    seen.add(url)
                    links.append(url)

    return links


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_cached(raw_dir: Path, mode: str) -> List[Record]:
    """
    Parse the cached HTML pages and return a deduplicated record set.

    mode "overview" reads raw_dir/overview.html, mode "semesters" reads
    raw_dir/details/*.html in file name order (= visit order).
    """
    raw_path = Path(raw_dir)

    if mode == "overview":
        source = raw_path / OVERVIEW_FILE
        files = [source]
        parser = parse_overview_html
    else:
        source = raw_path / DETAILS_DIR
        files = sorted(source.glob("*.html"))
        parser = parse_detail_html

    # An empty details/ is a scrape that found no courses, not a missing cache
    if not source.exists():
        raise DualisWatchError(f"No cached pages in {raw_path} (mode: {mode}). Run 'dualiswatch scrape' first.")

    records: List[Record] = []
    for html_file in files:
        html = html_file.read_text(encoding="utf-8")
        try:
            records.extend(parser(html))
        except MalformedPage as exc:
            raise MalformedPage(f"{html_file.name}: {exc}") from exc

    return dedupe_records(records)
