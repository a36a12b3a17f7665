# tests/unit/services/test_change_detector.py
import hashlib

from catalog_sync.services.change_detector import detect_changes, fingerprint, normalize_lines

HEADER = "UPC,Name"
PREVIOUS = "UPC,Name\n111111111111,Alpha\n222222222222,Bravo\n333333333333,Charlie\n"


def test_first_sync_treats_every_line_as_new():
    changes = detect_changes(None, PREVIOUS)

    assert changes.changed_lines == normalize_lines(PREVIOUS)
    assert changes.stats.total_lines == 3
    assert changes.stats.changed_lines == 3
    assert changes.stats.added_lines == 3
    assert changes.stats.removed_lines == 0
    assert changes.has_changes


def test_identical_feed_has_no_changes_but_keeps_header():
    changes = detect_changes(PREVIOUS, PREVIOUS)

    assert changes.changed_lines == [HEADER]
    assert changes.stats.total_lines == 3
    assert changes.stats.changed_lines == 0
    assert not changes.has_changes


def test_only_new_and_modified_lines_are_returned_in_feed_order():
    new = "UPC,Name\n111111111111,Alpha\n444444444444,Delta\n222222222222,Bravo II\n"

    changes = detect_changes(PREVIOUS, new)

    assert changes.changed_lines == [HEADER, "444444444444,Delta", "222222222222,Bravo II"]
    assert changes.stats.total_lines == 3
    assert changes.stats.changed_lines == 2
    # Bravo and Charlie are no longer present verbatim
    assert changes.stats.removed_lines == 2


def test_line_endings_and_blank_lines_are_normalized():
    windows = "UPC,Name\r\n111111111111,Alpha\r\n\r\n222222222222,Bravo\r333333333333,Charlie\r\n\n"

    changes = detect_changes(PREVIOUS, windows)

    assert not changes.has_changes
    assert fingerprint(windows) == fingerprint(PREVIOUS)


def test_header_is_never_counted_as_a_change():
    new = "UPC,Name,Brand\n111111111111,Alpha\n222222222222,Bravo\n333333333333,Charlie\n"

    changes = detect_changes(PREVIOUS, new)

    assert changes.header == "UPC,Name,Brand"
    assert changes.stats.changed_lines == 0


def test_empty_feed():
    changes = detect_changes(PREVIOUS, "")

    assert changes.changed_lines == []
    assert changes.stats.total_lines == 0
    assert not changes.has_changes


def test_fingerprint_is_sha256_of_normalized_text():
    expected = hashlib.sha256("UPC,Name\n1,A".encode("utf-8")).hexdigest()
    assert fingerprint("UPC,Name\r\n1,A\r\n") == expected


def test_duplicate_lines_are_not_reported_twice_when_unchanged():
    previous = "UPC,Name\n1,A\n"
    new = "UPC,Name\n1,A\n1,A\n"

    changes = detect_changes(previous, new)

    assert changes.stats.changed_lines == 0
    assert changes.stats.total_lines == 2
