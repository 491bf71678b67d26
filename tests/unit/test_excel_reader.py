from __future__ import annotations

from pathlib import Path

import pytest

from supasheet.errors import DecodeError, EmptyWorkbookError, FileTooLargeError
from supasheet.excel.reader import detect_format, read_workbook, read_workbook_file
from supasheet.models.workbook import Workbook


def test_csv_scenario_headers_and_rows():
    wb = read_workbook(b"name,age\nAda,30\nLin,25\n", "people.csv")
    assert isinstance(wb, Workbook)
    assert list(wb) == ["Sheet1"]
    sheet = wb["Sheet1"]
    assert sheet.headers == ["name", "age"]
    assert sheet.rows == [{"name": "Ada", "age": "30"}, {"name": "Lin", "age": "25"}]
    assert sheet.row_count == 2


def test_csv_without_filename_is_sniffed():
    wb = read_workbook(b"a,b\n1,2\n")
    assert wb["Sheet1"].rows == [{"a": "1", "b": "2"}]


def test_csv_header_cells_are_trimmed_and_blank_rows_dropped():
    data = b"  name , city \nAda,London\n,\nLin,\n"
    sheet = read_workbook(data, "x.csv")["Sheet1"]
    assert sheet.headers == ["name", "city"]
    assert sheet.rows == [{"name": "Ada", "city": "London"}, {"name": "Lin", "city": None}]


def test_csv_with_utf8_bom():
    sheet = read_workbook("\ufeffname\nZoë\n".encode("utf-8"), "bom.csv")["Sheet1"]
    assert sheet.headers == ["name"]
    assert sheet.rows == [{"name": "Zoë"}]


def test_na_like_text_is_kept_by_default():
    data = b"code,country\nNA,Namibia\nnull,Nowhere\n#N/A,None\n"
    sheet = read_workbook(data, "c.csv")["Sheet1"]
    assert sheet.rows == [
        {"code": "NA", "country": "Namibia"},
        {"code": "null", "country": "Nowhere"},
        {"code": "#N/A", "country": "None"},
    ]


def test_na_like_header_cells_survive():
    sheet = read_workbook(b"None,age\nAda,30\n", "h.csv")["Sheet1"]
    assert sheet.headers == ["None", "age"]
    assert sheet.rows == [{"None": "Ada", "age": "30"}]


def test_row_of_na_like_text_is_not_dropped():
    sheet = read_workbook(b"a,b\nN/A,NA\n1,2\n", "r.csv")["Sheet1"]
    assert sheet.rows == [{"a": "N/A", "b": "NA"}, {"a": "1", "b": "2"}]


def test_na_strings_are_opt_in_missing_markers():
    data = b"code,label\nN/A,unknown\nNA,North America\n"
    sheet = read_workbook(data, "na.csv", na_strings=["N/A"])["Sheet1"]
    assert sheet.rows == [{"code": None, "label": "unknown"}, {"code": "NA", "label": "North America"}]


def test_xlsx_na_like_text_is_kept(temp_workdir: Path, make_excel):
    path = make_excel(temp_workdir, "na.xlsx", {"S": [["code", "n"], ["NA", 1], [None, 2]]})
    sheet = read_workbook_file(path)["S"]
    assert sheet.rows == [{"code": "NA", "n": 1}, {"code": None, "n": 2}]


def test_ragged_csv_trailing_comma_is_read():
    sheet = read_workbook(b"name,age\nAda,30,\nLin,25\n", "c.csv")["Sheet1"]
    assert sheet.headers == ["name", "age"]
    assert sheet.rows == [{"name": "Ada", "age": "30"}, {"name": "Lin", "age": "25"}]


def test_ragged_csv_extra_cells_get_blank_headers():
    sheet = read_workbook(b"name,age\nAda,30,x,y\nLin,25\n", "c.csv")["Sheet1"]
    assert sheet.headers == ["name", "age", "", "_2"]
    assert sheet.rows[0] == {"name": "Ada", "age": "30", "": "x", "_2": "y"}
    assert sheet.rows[1] == {"name": "Lin", "age": "25", "": None, "_2": None}



def test_duplicate_headers_are_made_unique():
    sheet = read_workbook(b"name,name,name\na,b,c\n", "dup.csv")["Sheet1"]
    assert sheet.headers == ["name", "name_2", "name_3"]
    assert sheet.rows == [{"name": "a", "name_2": "b", "name_3": "c"}]


def test_header_only_csv_is_empty_workbook():
    with pytest.raises(EmptyWorkbookError):
        read_workbook(b"name,age\n", "header_only.csv")


def test_empty_file_is_empty_workbook():
    with pytest.raises(EmptyWorkbookError):
        read_workbook(b"", "empty.csv")


def test_undecodable_csv_raises_decode_error():
    with pytest.raises(DecodeError):
        read_workbook(b"name\n\xff\xfe\xfa\n", "latin.csv")


def test_corrupt_xlsx_raises_decode_error():
    with pytest.raises(DecodeError):
        read_workbook(b"PK\x03\x04 definitely not a zip archive", "broken.xlsx")


def test_size_limit_is_checked_before_decoding():
    with pytest.raises(FileTooLargeError) as e:
        read_workbook(b"a\n" * 100, "big.csv", max_bytes=10)
    assert e.value.limit == 10
    assert e.value.size == 200


def test_detect_format():
    assert detect_format(b"", "a.XLSX") == "xlsx"
    assert detect_format(b"", "a.xls") == "xls"
    assert detect_format(b"PK\x03\x04rest") == "xlsx"
    assert detect_format(b"\xd0\xcf\x11\xe0rest") == "xls"
    assert detect_format(b"a,b\n", "upload") == "csv"
    assert detect_format(b"PK\x03\x04", "data.csv") == "csv"


def test_xlsx_multi_sheet_excludes_sheets_without_data(temp_workdir: Path, make_excel):
    path = make_excel(
        temp_workdir,
        "book.xlsx",
        {
            "Customers": [["id", "name"], [1, "Alice"], [2, "Bob"]],
            "HeaderOnly": [["id", "name"]],
            "Orders": [["order", "amount"], ["A-1", 9.5]],
        },
    )
    wb = read_workbook_file(path)
    assert list(wb) == ["Customers", "Orders"]
    assert wb["Customers"].rows[0] == {"id": 1, "name": "Alice"}
    assert wb["Orders"].rows == [{"order": "A-1", "amount": 9.5}]
    assert wb.total_rows == 3


def test_xlsx_header_is_first_non_empty_row(temp_workdir: Path, make_excel):
    path = make_excel(
        temp_workdir,
        "offset.xlsx",
        {"S": [[None, None], ["id", "name"], [1, "Alice"], [None, None], [2, "Bob"]]},
    )
    sheet = read_workbook_file(path)["S"]
    assert sheet.headers == ["id", "name"]
    assert [r["id"] for r in sheet.rows] == [1, 2]


def test_xlsx_numeric_header_cells_become_text(temp_workdir: Path, make_excel):
    path = make_excel(temp_workdir, "years.xlsx", {"S": [[2023, 2024], [10, 20]]})
    sheet = read_workbook_file(path)["S"]
    assert sheet.headers == ["2023", "2024"]
    assert sheet.rows == [{"2023": 10, "2024": 20}]


def test_read_workbook_file_checks_size_from_disk(temp_workdir: Path):
    p = temp_workdir / "data" / "big.csv"
    p.write_bytes(b"x\n" * 1000)
    with pytest.raises(FileTooLargeError):
        read_workbook_file(p, max_bytes=100)
