from __future__ import annotations

from ImportKit.ResourceDownload.rewriter import (
    apply_outcome,
    clear_matching_values,
    rejoin_list_fields,
    write_value,
)
from ImportKit.ResourceDownload.types import FetchOutcome, FetchTask, FieldLocator

URL = "https://cdn.example/a.jpg"


def _failed(name="a.jpg"):
    return FetchOutcome.failed(name, "http-status", error_class="network", http_status=404)


def test_write_value_addresses_record_by_index():
    records = [{"image": URL}, {"image": URL}]

    assert write_value(records, FieldLocator(1, "image"), "a.jpg")

    assert records == [{"image": URL}, {"image": "a.jpg"}]


def test_write_value_skips_list_positions_that_are_gone():
    records = [{"gallery": "a.jpg,b.jpg"}]

    assert not write_value(records, FieldLocator(0, "gallery", 1), "b.jpg")
    assert records[0]["gallery"] == "a.jpg,b.jpg"


def test_success_writes_target_name():
    records = [{"gallery": [URL, "https://cdn.example/b.jpg"]}]
    task = FetchTask(URL, "a.jpg", FieldLocator(0, "gallery", 0))

    apply_outcome(records, task, FetchOutcome.resolved("a.jpg"))

    assert records[0]["gallery"] == ["a.jpg", "https://cdn.example/b.jpg"]


def test_failure_clears_every_matching_value_in_the_record():
    records = [
        {
            "image": URL,
            "thumbnail": URL,
            "small_image": "https://cdn.example/other.jpg",
            "gallery": ["https://cdn.example/b.jpg", URL],
            "sku": "SKU-1",
        },
        {"image": URL},
    ]
    task = FetchTask(URL, "a.jpg", FieldLocator(0, "image"))

    apply_outcome(records, task, _failed())

    assert records[0] == {
        "image": None,
        "thumbnail": None,
        "small_image": "https://cdn.example/other.jpg",
        "gallery": ["https://cdn.example/b.jpg", None],
        "sku": "SKU-1",
    }
    assert records[1] == {"image": URL}


def test_failure_clears_originating_position_even_without_match():
    records = [{"gallery": ["a.jpg", "https://cdn.example/b.jpg"]}]
    task = FetchTask("https://cdn.example/b.jpg", "b.jpg", FieldLocator(0, "gallery", 1))
    records[0]["gallery"][1] = "already-rewritten"

    apply_outcome(records, task, _failed("b.jpg"))

    assert records[0]["gallery"] == ["a.jpg", None]


def test_clear_matching_values_counts_cleared_values():
    record = {"a": URL, "b": [URL, URL, "x"], "c": "y"}

    assert clear_matching_values(record, URL) == 3
    assert record == {"a": None, "b": [None, None, "x"], "c": "y"}


def test_rejoin_turns_cleared_elements_into_empty_positions():
    records = [{"gallery": ["a.jpg", None, "c.jpg"]}, {"gallery": "untouched"}, {}]

    rejoin_list_fields(records, {(0, "gallery")})

    assert records == [{"gallery": "a.jpg,,c.jpg"}, {"gallery": "untouched"}, {}]


def test_rejoin_uses_configured_delimiter():
    records = [{"gallery": ["a.jpg", "b.jpg"]}]

    rejoin_list_fields(records, {(0, "gallery")}, "|")

    assert records[0]["gallery"] == "a.jpg|b.jpg"


def test_rejoin_leaves_lists_that_were_not_split_alone():
    records = [{"gallery": ["a.jpg", "b.jpg"]}, {"gallery": ["keep-me", "as-list"]}]

    rejoin_list_fields(records, {(0, "gallery")})

    assert records == [{"gallery": "a.jpg,b.jpg"}, {"gallery": ["keep-me", "as-list"]}]
