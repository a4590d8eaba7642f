from storefront.importing import parse_csv, render_report, RowRejection
from tests.helpers import err, ok


class TestParseCsv:
    def test_headers_are_trimmed_and_lowercased(self):
        parsed = ok(parse_csv(b" Name ,PRICE,Stock\nWidget,10,3\n"))

        assert parsed.headers == ("name", "price", "stock")
        assert parsed.rows == ({"name": "Widget", "price": "10", "stock": "3"},)

    def test_blank_lines_are_skipped(self):
        parsed = ok(parse_csv(b"name,price\n\nA,1\n\nB,2\n\n"))

        assert [r["name"] for r in parsed.rows] == ["A", "B"]
        assert len(parsed) == 2

    def test_quoted_fields_keep_commas(self):
        parsed = ok(parse_csv(b'name,price\n"Lamp, desk","19,90"\n'))

        assert parsed.rows[0] == {"name": "Lamp, desk", "price": "19,90"}

    def test_bom_and_crlf(self):
        parsed = ok(parse_csv(b"\xef\xbb\xbfname,price\r\nA,1\r\n"))

        assert parsed.headers == ("name", "price")
        assert parsed.rows[0]["price"] == "1"

    def test_empty_file_has_no_rows(self):
        parsed = ok(parse_csv(b""))

        assert len(parsed) == 0

    def test_field_count_mismatch_is_malformed(self):
        error = err(parse_csv(b"name,price\nA,1\nB,2,extra\nC,3\n"))

        assert error.rows_read == 1
        assert "expected 2 fields" in error.message

    def test_unterminated_quote_is_malformed(self):
        error = err(parse_csv(b'name,price\nA,1\n"B,2\n'))

        assert error.rows_read == 1

    def test_non_utf8_is_malformed(self):
        error = err(parse_csv(b"name,price\n\xff\xfe,1\n"))

        assert "UTF-8" in error.message


class TestReport:
    def test_rejections_with_original_columns(self):
        rejections = [
            RowRejection(row_number=2, row={"name": "", "price": "1"}, reason="Name is required"),
            RowRejection(row_number=5, row={"name": "X", "price": "abc"}, reason="Invalid price"),
        ]

        text = render_report(("name", "price"), rejections).decode()

        assert text.splitlines() == [
            "row,reason,name,price",
            "2,Name is required,,1",
            "5,Invalid price,X,abc",
        ]
