"""End-to-end behaviour of the download engine over a mock transport."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import pytest

from ImportKit.ResourceDownload import (
    PreconditionError,
    ResourceDownloadConfig,
    download_resources,
    process,
)

CDN = "https://cdn.example/media"


def _run(records, config, media_dir, server, sink=None):
    return asyncio.run(
        download_resources(
            records,
            config,
            directory_resolver=media_dir,
            progress=sink,
            transport=server.transport(),
        )
    )


def test_resolved_fields_point_at_downloaded_files(server, config, media_dir, import_dir):
    server.add(f"{CDN}/a.jpg", body=b"AAA")
    records = [{"image": f"{CDN}/a.jpg", "sku": "1"}]

    _run(records, config, media_dir, server)

    assert records == [{"image": "a.jpg", "sku": "1"}]
    assert (import_dir / "a.jpg").read_bytes() == b"AAA"


def test_shared_resource_is_fetched_once_across_records(server, config, media_dir):
    server.add(f"{CDN}/shared.jpg")
    records = [{"image": f"{CDN}/shared.jpg"} for _ in range(10)]

    summary = _run(records, config, media_dir, server)

    assert server.total_requests == 1
    assert all(r["image"] == "shared.jpg" for r in records)
    assert summary.fetches_dispatched == 1
    assert summary.cache_hits == 9


def test_same_basename_on_different_hosts_shares_one_fetch(server, config, media_dir):
    server.add("https://a.example/logo.png", body=b"A")
    server.add("https://b.example/logo.png", body=b"B")
    records = [{"image": "https://a.example/logo.png"}, {"image": "https://b.example/logo.png"}]

    _run(records, config, media_dir, server)

    assert server.total_requests == 1
    assert server.requests["https://a.example/logo.png"] == 1
    assert [r["image"] for r in records] == ["logo.png", "logo.png"]


def test_existing_file_is_reused_without_fetching(server, config, media_dir, import_dir, sink):
    import_dir.mkdir(parents=True)
    (import_dir / "a.jpg").write_bytes(b"old")
    records = [{"image": f"{CDN}/a.jpg"}]

    summary = _run(records, config, media_dir, server, sink)

    assert server.total_requests == 0
    assert records[0]["image"] == "a.jpg"
    assert (import_dir / "a.jpg").read_bytes() == b"old"
    assert summary.existing_skipped == 1
    assert sink.advances == 0


def test_in_flight_fetches_never_exceed_concurrency_limit(server, media_dir):
    server.delay = 0.01
    for i in range(30):
        server.add(f"{CDN}/{i}.jpg")
    records = [{"image": f"{CDN}/{i}.jpg"} for i in range(30)]
    config = ResourceDownloadConfig(scalar_fields=["image"], list_fields=[], concurrency_limit=4)

    _run(records, config, media_dir, server)

    assert server.total_requests == 30
    assert 1 <= server.max_in_flight <= 4


def test_failed_fetch_leaves_no_file_and_clears_field(server, config, media_dir, import_dir, caplog):
    server.add(f"{CDN}/missing.jpg", status=404)
    records = [{"image": f"{CDN}/missing.jpg", "thumbnail": f"{CDN}/missing.jpg"}]

    with caplog.at_level(logging.WARNING):
        summary = _run(records, config, media_dir, server)

    assert records[0] == {"image": None, "thumbnail": None}
    assert list(import_dir.iterdir()) == []
    assert server.total_requests == 1
    assert summary.failed == 2
    assert summary.failures_by_reason == {"http-status": 1}
    assert "Resource can not be downloaded: missing.jpg" in caplog.text


def test_list_fields_are_deduplicated_and_rejoined(server, config, media_dir):
    server.add(f"{CDN}/a.jpg").add(f"{CDN}/b.jpg")
    records = [{"gallery": f"{CDN}/a.jpg,{CDN}/a.jpg,{CDN}/b.jpg"}]

    _run(records, config, media_dir, server)

    assert records[0]["gallery"] == "a.jpg,b.jpg"
    assert server.total_requests == 2


def test_mixed_batch_with_one_failure(server, config, media_dir, import_dir, sink):
    server.add(f"{CDN}/a.jpg").add(f"{CDN}/b.jpg").add(f"{CDN}/c.jpg")
    server.add(f"{CDN}/gone.jpg", status=404)
    records = [
        {"image": f"{CDN}/a.jpg", "gallery": f"{CDN}/b.jpg,{CDN}/gone.jpg,{CDN}/c.jpg"},
        {"image": f"{CDN}/a.jpg", "name": "second"},
        {"name": "no resources"},
    ]

    summary = _run(records, config, media_dir, server, sink)

    assert records == [
        {"image": "a.jpg", "gallery": "b.jpg,,c.jpg"},
        {"image": "a.jpg", "name": "second"},
        {"name": "no resources"},
    ]
    assert sorted(p.name for p in import_dir.iterdir()) == ["a.jpg", "b.jpg", "c.jpg"]
    assert server.total_requests == 4
    assert summary.tasks == 5
    assert summary.resolved == 4
    assert summary.failed == 1
    assert sink.started == 3
    assert sink.advances == 4
    assert sink.finished == 1
    assert len(sink.warnings) == 1
    assert "gone.jpg" in sink.warnings[0]


def test_three_record_batch_dispatches_three_fetches(server, config, media_dir, sink):
    server.add(f"{CDN}/shared.jpg").add(f"{CDN}/distinct.jpg")
    server.add(f"{CDN}/gone.jpg", status=404)
    gallery = ",".join(
        [
            f"{CDN}/shared.jpg",
            f"{CDN}/distinct.jpg",
            f"{CDN}/shared.jpg",
            f"{CDN}/gone.jpg",
            "https://mirror.example/distinct.jpg",
        ]
    )
    records = [
        {"image": f"{CDN}/shared.jpg"},
        {"image": f"{CDN}/shared.jpg"},
        {"image": f"{CDN}/distinct.jpg", "gallery": gallery},
    ]

    _run(records, config, media_dir, server, sink)

    assert server.total_requests == 3
    assert sink.advances == 3
    assert records[0]["image"] == records[1]["image"] == "shared.jpg"
    assert records[2] == {
        "image": "distinct.jpg",
        "gallery": "shared.jpg,distinct.jpg,,distinct.jpg",
    }
    assert len(sink.warnings) == 1


def test_failure_shared_by_several_tasks_warns_once(server, config, media_dir, sink):
    server.add(f"{CDN}/bad.jpg", status=500)
    records = [{"image": f"{CDN}/bad.jpg"}, {"image": f"{CDN}/bad.jpg"}]

    summary = _run(records, config, media_dir, server, sink)

    assert [r["image"] for r in records] == [None, None]
    assert server.total_requests == 1
    assert len(sink.warnings) == 1
    assert summary.failed == 2


def test_second_run_is_idempotent(server, config, media_dir):
    server.add(f"{CDN}/a.jpg").add(f"{CDN}/b.jpg")
    records = [{"image": f"{CDN}/a.jpg", "gallery": f"{CDN}/b.jpg,{CDN}/a.jpg"}]

    _run(records, config, media_dir, server)
    after_first = [dict(r) for r in records]
    requests_after_first = server.total_requests

    _run(records, config, media_dir, server)

    assert records == after_first
    assert server.total_requests == requests_after_first


def test_unusable_base_path_raises_before_any_fetch(server, config, tmp_path, sink):
    base = tmp_path / "media"
    base.write_text("not a directory")
    server.add(f"{CDN}/a.jpg")
    records = [{"image": f"{CDN}/a.jpg"}]

    with pytest.raises(PreconditionError):
        _run(records, config, base, server, sink)

    assert server.total_requests == 0
    assert records[0]["image"] == f"{CDN}/a.jpg"
    assert sink.started is None


def test_custom_directory_resolver_and_subdir(server, tmp_path):
    class Resolver:
        def base_path(self) -> Path:
            return tmp_path / "pub" / "media"

    server.add(f"{CDN}/a.jpg")
    config = ResourceDownloadConfig(scalar_fields=["image"], list_fields=[], import_subdir="catalog/import")
    records = [{"image": f"{CDN}/a.jpg"}]

    asyncio.run(
        download_resources(
            records, config, directory_resolver=Resolver(), transport=server.transport()
        )
    )

    assert (tmp_path / "pub" / "media" / "catalog" / "import" / "a.jpg").is_file()


def test_records_in_a_tuple_are_still_mutated(server, config, media_dir):
    server.add(f"{CDN}/a.jpg")
    first = {"image": f"{CDN}/a.jpg"}
    records = (first,)

    _run(records, config, media_dir, server)

    assert first["image"] == "a.jpg"


def test_process_blocks_until_done_and_returns_none(server, config, media_dir, import_dir):
    server.add(f"{CDN}/a.jpg")
    records = [{"image": f"{CDN}/a.jpg"}]

    result = process(records, config, directory_resolver=media_dir, transport=server.transport())

    assert result is None
    assert records[0]["image"] == "a.jpg"
    assert (import_dir / "a.jpg").exists()


def test_repeated_calls_do_not_share_a_cache(server, config, media_dir, import_dir):
    server.add(f"{CDN}/a.jpg")

    _run([{"image": f"{CDN}/a.jpg"}], config, media_dir, server)
    (import_dir / "a.jpg").unlink()
    records = [{"image": f"{CDN}/a.jpg"}]
    _run(records, config, media_dir, server)

    assert server.total_requests == 2
    assert records[0]["image"] == "a.jpg"


@pytest.mark.parametrize(
    "url",
    [
        "http://xn--/a7.jpg",
        "http://a.example/\udcff.jpg",
        "not a url/a2.jpg",
        "http:///a3.jpg",
    ],
)
def test_malformed_url_fails_its_field_without_aborting_the_batch(url, media_dir, import_dir, sink):
    records = [{"image": url}, {"image": url, "sku": "same"}]
    config = ResourceDownloadConfig(scalar_fields=["image"], list_fields=[])

    process(records, config, directory_resolver=media_dir, progress=sink)

    assert records[0]["image"] is None
    assert records[1] == {"image": None, "sku": "same"}
    assert len(sink.warnings) == 1
    assert not [p for p in import_dir.iterdir() if p.name.startswith(".part-")]


def test_control_characters_yield_no_task_and_no_file(media_dir, import_dir, sink):
    url = "http://a.example/a8.jpg\x00"
    records = [{"image": url}]
    config = ResourceDownloadConfig(scalar_fields=["image"], list_fields=[])

    process(records, config, directory_resolver=media_dir, progress=sink)

    assert records[0]["image"] == url
    assert sink.advances == 0
    assert list(import_dir.iterdir()) == []


def test_list_values_supplied_as_python_lists_are_left_alone(server, config, media_dir):
    server.add(f"{CDN}/a.jpg")
    records = [
        {"gallery": ["keep-me", "as-list"]},
        {"gallery": f"{CDN}/a.jpg"},
    ]

    _run(records, config, media_dir, server)

    assert records[0]["gallery"] == ["keep-me", "as-list"]
    assert records[1]["gallery"] == "a.jpg"
    assert server.total_requests == 1
