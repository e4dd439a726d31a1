"""
Unit tests for the course detail page parser.

Detail page contract:
- The <h1> heading holds the main course code and name
- A single "level02" cell opens a sub-course for the following rows
- "Modulabschlussleistungen" rows are reported under the main course name
- Points column: empty or "noch nicht gesetzt" -> not graded
"""

import tempfile
import unittest
from pathlib import Path

from dualiswatch.errors import DualisWatchError, MalformedPage
from dualiswatch.model import Record
from dualiswatch.parse import parse_cached, parse_detail_html, split_course_code

HEADER_ROW = (
    "<tr>"
    '<td class="tbhead">Semester</td><td class="tbhead">Prüfung</td><td class="tbhead">Datum</td>'
    '<td class="tbhead">Bewertung</td><td class="tbhead">Externe Bewertung</td><td class="tbhead"></td>'
    "</tr>"
)


def _group_row(label: str) -> str:
    return f'<tr><td class="level02" colspan="8">{label}</td></tr>'


def _data_row(points: str) -> str:
    return (
        "<tr>"
        '<td class="tbdata">WiSe 21/22</td><td class="tbdata">Klausur (100%)</td>'
        '<td class="tbdata">14.02.2022</td>'
        f'<td class="tbdata">{points}</td>'
        '<td class="tbdata"></td><td class="tbdata"></td>'
        "</tr>"
    )


def _page(heading: str, *tables: str) -> str:
    body = "".join(f'<table class="tb">{t}</table>' for t in tables)
    return f"<html><body><div id=\"pageContent\"><h1>{heading}</h1>{body}</div></body></html>"


class TestParseDetail(unittest.TestCase):
    def test_simple_course(self) -> None:
        html = _page("Theoretische Informatik I (WiSe 2021/22) T3INF1002", HEADER_ROW + _data_row("1,3"))

        records = parse_detail_html(html)
        self.assertEqual(
            records,
            [Record(id="T3INF1002", name="Theoretische Informatik I (WiSe 2021/22)", graded=True)],
        )

    def test_sub_course_without_points(self) -> None:
        html = _page(
            "T3INF1001 Mathematik I (WiSe 2021/22)",
            HEADER_ROW + _group_row("T3INF1001.1 Lineare Algebra (MOS-TINF21B)") + _data_row(""),
        )

        records = parse_detail_html(html)
        self.assertEqual(
            records,
            [Record(id="T3INF1001.1", name="Lineare Algebra (MOS-TINF21B)", graded=False)],
        )

    def test_sub_course_applies_until_next_group(self) -> None:
        html = _page(
            "T3INF1001 Mathematik I",
            _group_row("T3INF1001.1 Lineare Algebra")
            + _data_row("2,0")
            + _data_row("noch nicht gesetzt")
            + _group_row("T3INF1001.2 Analysis")
            + _data_row("noch nicht gesetzt"),
        )

        records = parse_detail_html(html)
        self.assertEqual(
            records,
            [
                Record("T3INF1001.1", "Lineare Algebra", True),
                Record("T3INF1001.1", "Lineare Algebra", False),
                Record("T3INF1001.2", "Analysis", False),
            ],
        )

    def test_module_exam_uses_main_name(self) -> None:
        html = _page(
            "T3INF1001 Mathematik I",
            _group_row("T3INF1001.3 Modulabschlussleistungen") + _data_row("1,7"),
        )

        self.assertEqual(parse_detail_html(html), [Record("T3INF1001.3", "Mathematik I", True)])

    def test_group_without_code_falls_back_to_main_id(self) -> None:
        html = _page(
            "T3INF1001 Mathematik I",
            _group_row("Modulabschlussleistungen") + _data_row("1,7") + _group_row("Übungsblätter") + _data_row(""),
        )

        self.assertEqual(
            parse_detail_html(html),
            [Record("T3INF1001", "Mathematik I", True), Record("T3INF1001", "Übungsblätter", False)],
        )

    def test_sub_course_does_not_leak_into_next_table(self) -> None:
        html = _page(
            "T3INF1001 Mathematik I",
            _group_row("T3INF1001.1 Lineare Algebra") + _data_row("2,0"),
            _data_row("3,0"),
        )

        self.assertEqual([r.id for r in parse_detail_html(html)], ["T3INF1001.1", "T3INF1001"])

    def test_not_yet_marker_is_not_graded(self) -> None:
        html = _page("T3INF1002 Theoretische Informatik I", _data_row("noch nicht gesetzt"))
        self.assertFalse(parse_detail_html(html)[0].graded)

    def test_heading_rows_and_short_rows_are_skipped(self) -> None:
        subhead = '<tr class="subhead">' + "".join('<td class="tbdata">x</td>' for _ in range(6)) + "</tr>"
        short = '<tr><td class="tbdata">Summe</td><td class="tbdata">1,3</td></tr>'
        html = _page("T3INF1002 Theo I", HEADER_ROW + subhead + short + _data_row("1,3"))

        self.assertEqual(parse_detail_html(html), [Record("T3INF1002", "Theo I", True)])

    def test_heading_with_line_breaks(self) -> None:
        html = _page("\n  T3INF1002&nbsp;Theoretische\n Informatik I\n", _data_row("1,0"))
        self.assertEqual(parse_detail_html(html)[0].name, "Theoretische Informatik I")

    def test_missing_heading_raises(self) -> None:
        html = "<html><body><table>" + _data_row("1,3") + "</table></body></html>"
        with self.assertRaises(MalformedPage):
            parse_detail_html(html)

    def test_heading_without_code_raises(self) -> None:
        with self.assertRaises(MalformedPage):
            parse_detail_html(_page("Prüfungsergebnisse", _data_row("1,3")))

    def test_nested_table_rows_in_document_order(self) -> None:
        nested = (
            "<tr><td>"
            '<table class="tb">'
            + _group_row("T3INF1001.2 Analysis")
            + _data_row("")
            + "</table>"
            "</td></tr>"
        )
        html = _page(
            "T3INF1001 Mathematik I",
            _group_row("T3INF1001.1 Lineare Algebra") + _data_row("2,0") + nested + _data_row("1,0"),
        )

        self.assertEqual(
            parse_detail_html(html),
            [
                Record("T3INF1001.1", "Lineare Algebra", True),
                Record("T3INF1001.2", "Analysis", False),
                # Back in the outer table, its own sub-course still applies
                Record("T3INF1001.1", "Lineare Algebra", True),
            ],
        )

    def test_page_without_rows(self) -> None:
        self.assertEqual(parse_detail_html(_page("T3INF1002 Theo I", HEADER_ROW)), [])


class TestSplitCourseCode(unittest.TestCase):
    def test_code_at_end(self) -> None:
        self.assertEqual(
            split_course_code("Theoretische Informatik I (WiSe 2021/22) T3INF1002"),
            ("T3INF1002", "Theoretische Informatik I (WiSe 2021/22)"),
        )

    def test_code_with_suffix(self) -> None:
        self.assertEqual(
            split_course_code("T3INF1001.12 Lineare Algebra"),
            ("T3INF1001.12", "Lineare Algebra"),
        )

    def test_underscore_code(self) -> None:
        self.assertEqual(split_course_code("T3_1000 Praxisprojekt I"), ("T3_1000", "Praxisprojekt I"))

    def test_only_first_code_is_removed(self) -> None:
        self.assertEqual(split_course_code("T3INF1001 siehe T3INF1002"), ("T3INF1001", "siehe T3INF1002"))

    def test_no_code(self) -> None:
        self.assertEqual(split_course_code(" Lineare  Algebra "), (None, "Lineare Algebra"))


class TestParseCached(unittest.TestCase):
    def test_empty_details_dir_gives_empty_set(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            (Path(d) / "details").mkdir()
            self.assertEqual(parse_cached(Path(d), "semesters"), [])

    def test_missing_details_dir_raises(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            with self.assertRaises(DualisWatchError):
                parse_cached(Path(d), "semesters")

    def test_missing_overview_raises(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            with self.assertRaises(DualisWatchError):
                parse_cached(Path(d), "overview")

    def test_first_page_wins(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            details = Path(d) / "details"
            details.mkdir()
            (details / "0002.html").write_text(_page("T3INF1002 Theo I (alt)", _data_row("1,0")), encoding="utf-8")
            (details / "0001.html").write_text(_page("T3INF1002 Theo I", _data_row("")), encoding="utf-8")

            self.assertEqual(parse_cached(Path(d), "semesters"), [Record("T3INF1002", "Theo I", False)])


if __name__ == "__main__":
    unittest.main()
