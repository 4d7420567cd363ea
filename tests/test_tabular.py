"""Tests for dataset parsing."""

import pytest

from aeroml_wizard.exceptions import InputError
from aeroml_wizard.tabular import format_file_size, parse_tabular


class TestParseTabular:
    def test_csv(self):
        dataset = parse_tabular("data/churn.csv", b"age,plan,churned\n31,basic,0\n45,pro,1\n")
        assert dataset.headers == ["age", "plan", "churned"]
        assert dataset.rows == [
            {"age": "31", "plan": "basic", "churned": "0"},
            {"age": "45", "plan": "pro", "churned": "1"},
        ]
        assert dataset.summary.filename == "churn.csv"
        assert dataset.summary.rows == 2
        assert dataset.summary.columns == 3

    def test_tsv_and_bom(self):
        dataset = parse_tabular("x.tsv", b"\xef\xbb\xbfa\tb\n1\t2\n")
        assert dataset.headers == ["a", "b"]
        assert dataset.column_values("b") == ["2"]

    def test_blank_header_and_short_rows(self):
        dataset = parse_tabular("x.csv", b"a,,c\n1,2\n")
        assert dataset.headers == ["a", "Column 2", "c"]
        assert dataset.rows[0] == {"a": "1", "Column 2": "2", "c": ""}

    def test_blank_lines_ignored(self):
        dataset = parse_tabular("x.csv", b"a,b\n\n1,2\n\n")
        assert dataset.summary.rows == 1

    def test_preview_limit(self):
        content = b"n\n" + b"".join(f"{i}\n".encode() for i in range(150))
        dataset = parse_tabular("x.csv", content)
        assert len(dataset.preview()) == 100
        assert len(dataset.preview(5)) == 5

    @pytest.mark.parametrize(
        "filename,content",
        [
            ("model.xlsx", b"binary"),
            ("x.csv", b""),
            ("x.csv", b"   \n"),
            ("x.csv", b"only,header\n"),
        ],
    )
    def test_rejected(self, filename, content):
        with pytest.raises(InputError):
            parse_tabular(filename, content)


@pytest.mark.parametrize(
    "size,expected",
    [(0, "0 Bytes"), (512, "512 Bytes"), (1024, "1 KB"), (1536, "1.5 KB"), (5 * 1024 * 1024, "5 MB")],
)
def test_format_file_size(size, expected):
    assert format_file_size(size) == expected
