# tests/unit/services/test_feed_parser.py
import json

import pytest

from catalog_sync.core.enums import FeedFormat
from catalog_sync.core.exceptions import FeedFormatError
from catalog_sync.services.feed_parser import decode_feed, normalize_feed, parse_rows


def test_csv_is_normalized_and_keeps_leading_zeros():
    raw = b"UPC,Name\n012345678905,Widget\n"

    text = normalize_feed(raw, FeedFormat.CSV).content

    assert text == "UPC,Name\n012345678905,Widget"
    assert parse_rows(text) == [{"UPC": "012345678905", "Name": "Widget"}]


def test_embedded_newlines_are_flattened_to_one_line_per_record():
    raw = b'UPC,Description\n012345678905,"Line one\nLine two"\n'

    text = normalize_feed(raw, FeedFormat.CSV).content

    assert text.splitlines() == ["UPC,Description", "012345678905,Line one Line two"]


def test_utf8_bom_and_cp1252_are_decoded():
    assert decode_feed("﻿UPC".encode("utf-8")) == "UPC"
    assert decode_feed("Caf\xe9".encode("cp1252")) == "Café"


def test_json_records_at_dotted_path():
    payload = {"success": True, "data": {"items": [
        {"upc": "012345678905", "price": 10.5, "quantity": 4},
        {"upc": "036000291452", "price": None, "quantity": 0},
    ]}}

    text = normalize_feed(json.dumps(payload).encode(), FeedFormat.JSON, "data.items").content
    rows = parse_rows(text)

    assert rows[0] == {"upc": "012345678905", "price": "10.5", "quantity": "4"}
    assert rows[1]["price"] == ""


def test_json_missing_record_path_is_a_format_error():
    with pytest.raises(FeedFormatError):
        normalize_feed(b'{"data": []}', FeedFormat.JSON, "items")


def test_invalid_json_is_a_format_error():
    with pytest.raises(FeedFormatError):
        normalize_feed(b"{not json", FeedFormat.JSON, "data")


def test_xml_tables_are_tabularized():
    raw = b"""<?xml version="1.0"?>
    <NewDataSet>
      <Table><ITEMNO>101</ITEMNO><IDESC>Smith &amp; Wesson M&amp;P</IDESC><ITUPC>022188864151</ITUPC></Table>
      <Table><ITEMNO>102</ITEMNO><IDESC>Ruger LCP</IDESC><ITUPC>736676037018</ITUPC></Table>
    </NewDataSet>"""

    rows = parse_rows(normalize_feed(raw, FeedFormat.XML, "NewDataSet.Table").content)

    assert [r["ITEMNO"] for r in rows] == ["101", "102"]
    assert rows[0]["IDESC"] == "Smith & Wesson M&P"
    assert rows[0]["ITUPC"] == "022188864151"


def test_xml_single_record_is_wrapped():
    raw = b"<NewDataSet><Table><ITEMNO>1</ITEMNO></Table></NewDataSet>"

    rows = parse_rows(normalize_feed(raw, FeedFormat.XML, "NewDataSet.Table").content)

    assert rows == [{"ITEMNO": "1"}]


def test_malformed_xml_is_a_format_error():
    with pytest.raises(FeedFormatError):
        normalize_feed(b"<NewDataSet><Table>", FeedFormat.XML, "NewDataSet.Table")


def test_rows_with_extra_columns_are_rejected_not_fatal():
    feed = normalize_feed(b"A,B\n1,2\n3,4,5,6\n7,8\n", FeedFormat.CSV)

    assert feed.content == "A,B\n1,2\n7,8"
    assert feed.rejected_rows == [["3", "4", "5", "6"]]


def test_short_rows_are_padded():
    feed = normalize_feed(b"A,B,C\n1,2\n", FeedFormat.CSV)

    assert feed.content == "A,B,C\n1,2,"
    assert feed.rejected_rows == []


def test_empty_feed_normalizes_to_empty_text():
    feed = normalize_feed(b"", FeedFormat.CSV)
    assert feed.content == ""
    assert feed.rejected_rows == []
    assert parse_rows("") == []


def test_header_only_parses_to_no_rows():
    assert parse_rows("UPC,Name") == []
