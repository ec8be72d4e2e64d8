"""Tests for CSV parsing and template generation."""

from __future__ import annotations

from records_api.imports.parsers import generate_template, parse_csv
from records_api.imports.processors import PersonImportProcessor


class TestParseCsv:
    """Tests for parse_csv."""

    def test_parse_headers_and_rows(self):
        """Test rows are keyed by header."""
        result = parse_csv(b"firstName,lastName\nJohn,Kamara\nFatima,Sesay\n")
        assert result.errors == []
        assert result.headers == ["firstName", "lastName"]
        assert result.rows == [
            {"firstName": "John", "lastName": "Kamara"},
            {"firstName": "Fatima", "lastName": "Sesay"},
        ]

    def test_trims_headers_and_values(self):
        """Test whitespace around headers and values is removed."""
        result = parse_csv(b" firstName , lastName \n  John ,  Kamara \n")
        assert result.headers == ["firstName", "lastName"]
        assert result.rows[0] == {"firstName": "John", "lastName": "Kamara"}

    def test_skips_blank_lines(self):
        """Test blank lines are not rows."""
        result = parse_csv(b"a,b\n\n1,2\n\n3,4\n")
        assert result.errors == []
        assert len(result.rows) == 2
        assert result.rows[1] == {"a": "3", "b": "4"}

    def test_strips_utf8_bom(self):
        """Test a leading byte order mark does not leak into the first header."""
        result = parse_csv(b"\xef\xbb\xbfa,b\n1,2\n")
        assert result.headers == ["a", "b"]

    def test_quoted_values(self):
        """Test standard CSV quoting is honoured."""
        result = parse_csv(b'a,b\n"Freetown, Western","say ""hi"""\n')
        assert result.errors == []
        assert result.rows[0] == {"a": "Freetown, Western", "b": 'say "hi"'}

    def test_values_stay_strings(self):
        """Test numeric-looking and NA-looking cells are not converted."""
        result = parse_csv(b"a,b,c\n007,NA,\n")
        assert result.rows[0] == {"a": "007", "b": "NA", "c": ""}

    def test_empty_file(self):
        """Test an empty file yields no headers, rows or errors."""
        result = parse_csv(b"")
        assert result.headers == []
        assert result.rows == []
        assert result.errors == []

    def test_header_only(self):
        """Test a header line with no data rows."""
        result = parse_csv(b"a,b\n")
        assert result.headers == ["a", "b"]
        assert result.rows == []
        assert result.errors == []

    def test_too_many_fields_reports_row(self):
        """Test a row longer than the header is a row-numbered error."""
        result = parse_csv(b"a,b\n1,2\n1,2,3\n")
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Row 3:")

    def test_too_few_fields_reports_row(self):
        """Test a row shorter than the header is a row-numbered error."""
        result = parse_csv(b"a,b,c\n1,2,3\n1,2\n")
        assert result.errors == ["Row 3: Too few fields: expected 3"]

    def test_short_row_is_not_padded(self):
        """Test a row missing its last cell is rejected, not filled with a blank."""
        result = parse_csv(b"firstName,lastName,gender,stationCode\nJohn,Kamara,male\n")
        assert result.rows == []
        assert result.errors == ["Row 2: Too few fields: expected 4"]

    def test_short_row_between_blank_lines(self):
        """Test field counts stay aligned with rows around blank lines."""
        result = parse_csv(b"\na,b\n\n1,2\n   \n3\n\n\n5,6\n\n")
        assert result.errors == ["Row 3: Too few fields: expected 2"]
        assert result.rows == [{"a": "1", "b": "2"}, {"a": "5", "b": "6"}]

    def test_empty_trailing_cell_is_a_full_row(self):
        """Test a row ending in a comma has all its fields."""
        result = parse_csv(b"a,b,c\n1,2,\n")
        assert result.errors == []
        assert result.rows == [{"a": "1", "b": "2", "c": ""}]

    def test_header_trailing_comma_adds_no_column(self):
        """Test trailing commas on the header line are ignored."""
        result = parse_csv(b"a,b,\n1,2,\n3,4\n")
        assert result.headers == ["a", "b"]
        assert result.errors == []
        assert len(result.rows) == 2

    def test_quoted_newline_is_one_record(self):
        """Test a quoted line break does not split the record."""
        result = parse_csv(b'a,b\n"line one\nline two",2\n3\n')
        assert result.rows == [{"a": "line one\nline two", "b": "2"}]
        assert result.errors == ["Row 3: Too few fields: expected 2"]

    def test_unterminated_quote(self):
        """Test an unterminated quote is reported, not raised."""
        result = parse_csv(b'a,b\n"unterminated,2\n')
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Row ")

    def test_duplicate_header(self):
        """Test repeated column names are rejected."""
        result = parse_csv(b"a,a\n1,2\n")
        assert result.errors == ["Row 1: Duplicate column: a"]


class TestGenerateTemplate:
    """Tests for generate_template."""

    def test_header_then_examples(self):
        """Test the header line comes first, then each example row."""
        content = generate_template(["a", "b"], [["1", "2"], ["3", ""]])
        assert content == b"a,b\n1,2\n3,\n"

    def test_quotes_values_with_commas(self):
        """Test values containing separators are quoted."""
        content = generate_template(["location"], [["Market Street, Freetown"]])
        assert content == b'location\n"Market Street, Freetown"\n'

    def test_template_parses_back(self):
        """Test a generated template is itself a valid import file."""
        processor = PersonImportProcessor()
        content = generate_template(
            processor.get_template_headers(), processor.get_template_examples()
        )
        result = parse_csv(content)
        assert result.errors == []
        assert result.headers == processor.get_template_headers()
        assert len(result.rows) == len(processor.get_template_examples())
        assert result.rows[0]["aliases"] == "JK|Big John"
