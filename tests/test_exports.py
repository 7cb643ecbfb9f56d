from datetime import datetime

from app.studio.exports import (
    build_csv,
    export_filename,
    format_boolean,
    format_csv_field,
    format_currency,
    format_date,
    format_datetime,
)
from app.studio.print_styles import PRINT_STYLESHEET, add_print_styles, remove_print_styles


class TestFormatCsvField:
    def test_none_is_empty(self):
        assert format_csv_field(None) == ""

    def test_plain_values(self):
        assert format_csv_field("abc") == "abc"
        assert format_csv_field(12) == "12"
        assert format_csv_field(1.0) == "1"
        assert format_csv_field(True) == "true"

    def test_quoting(self):
        assert format_csv_field("a,b") == '"a,b"'
        assert format_csv_field('say "hi"') == '"say ""hi"""'
        assert format_csv_field("line1\nline2") == '"line1\nline2"'
        assert format_csv_field("cr\r") == '"cr\r"'


class TestBuildCsv:
    def test_bom_and_crlf(self):
        out = build_csv(["Nama", "Catatan"], [["Ayu", "a,b"], ["Budi", None]])
        assert out.startswith("\ufeff")
        assert out[1:].split("\r\n") == ["Nama,Catatan", 'Ayu,"a,b"', "Budi,"]

    def test_without_headers(self):
        assert build_csv(["x"], [[1]], include_headers=False) == "\ufeff1"

    def test_line_breaks_stay_inside_the_cell(self):
        out = build_csv(["Catatan"], [["baris 1\r\nbaris 2"], ["ok"]])
        assert out == '\ufeffCatatan\r\n"baris 1\r\nbaris 2"\r\nok'


class TestExportFilename:
    def test_timestamp_suffix(self):
        now = datetime(2024, 3, 5, 14, 7, 9)
        assert export_filename("leads", now=now) == "leads_2024-03-05_14-07-09.csv"
        assert export_filename("leads.csv", now=now) == "leads_2024-03-05_14-07-09.csv"

    def test_without_timestamp(self):
        assert export_filename("leads", include_timestamp=False) == "leads.csv"


class TestDisplayHelpers:
    def test_currency(self):
        assert format_currency(1500000) == "Rp 1.500.000"
        assert format_currency(0) == "Rp 0"
        assert format_currency(1234.5) == "Rp 1.234,5"
        assert format_currency(-2500) == "-Rp 2.500"

    def test_dates(self):
        assert format_date("2024-06-15") == "15/06/2024"
        assert format_datetime("2024-06-15T09:05:03Z") == "15/06/2024, 09.05.03"
        assert format_date("not a date") == "not a date"

    def test_boolean(self):
        assert format_boolean(True) == "Ya"
        assert format_boolean(False) == "Tidak"
        assert format_boolean(None) == ""


class TestPrintStyles:
    def test_injected_before_head_close(self):
        html = add_print_styles("<html><head><title>x</title></head><body></body></html>")
        assert '<style id="print-styles">' in html
        assert html.index("print-styles") < html.index("</head>")
        assert "@media print" in PRINT_STYLESHEET

    def test_replaces_existing_block(self):
        html = add_print_styles(add_print_styles("<head></head><p>x</p>"))
        assert html.count('id="print-styles"') == 1

    def test_remove(self):
        html = remove_print_styles(add_print_styles("<p>x</p>"))
        assert html == "<p>x</p>"
