import json
from pathlib import Path

import pytest

from conftest import FakeBlobStore, FakeSource, make_records
from hardwicke.core.errors import ConversionError
from hardwicke.core.use_cases.convert import ConversionPipeline, OutputTarget
from hardwicke.orchestration.progress import ProgressMonitor
from hardwicke.storage.jsonl import JsonlSink


@pytest.fixture
def monitor() -> ProgressMonitor:
    return ProgressMonitor(interval_s=60.0)


def _lines(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text().splitlines()]


def test_stops_at_first_short_batch(tmp_path: Path, monitor: ProgressMonitor) -> None:
    source = FakeSource(make_records(7))
    out = tmp_path / "out.jsonl"

    result = ConversionPipeline(open_sink=JsonlSink.open).run(source, OutputTarget(local_path=out), 3, monitor)

    assert source.calls == [3, 3, 1]
    assert result.processed == 7 == result.total
    assert not result.uploaded
    assert [doc["_docId"] for doc in _lines(out)] == list(range(7))
    assert source.closed
    assert monitor.processed == 7
    assert not monitor.running


def test_exact_multiple_reads_one_empty_batch(tmp_path: Path, monitor: ProgressMonitor) -> None:
    source = FakeSource(make_records(6))
    out = tmp_path / "out.jsonl"

    result = ConversionPipeline(open_sink=JsonlSink.open).run(source, OutputTarget(local_path=out), 3, monitor)

    assert source.calls == [3, 3, 0]
    assert result.processed == 6
    assert len(_lines(out)) == 6


def test_empty_source_creates_empty_output(tmp_path: Path, monitor: ProgressMonitor) -> None:
    out = tmp_path / "out.jsonl"

    result = ConversionPipeline(open_sink=JsonlSink.open).run(FakeSource([]), OutputTarget(local_path=out), 10, monitor)

    assert result.processed == 0
    assert out.exists()
    assert out.read_text() == ""


def test_read_failure_keeps_partial_output(tmp_path: Path, monitor: ProgressMonitor) -> None:
    source = FakeSource(make_records(10), fail_on_call=2)
    out = tmp_path / "out.jsonl"

    with pytest.raises(ConversionError, match="disk read error"):
        ConversionPipeline(open_sink=JsonlSink.open).run(source, OutputTarget(local_path=out), 3, monitor)

    assert len(_lines(out)) == 3
    assert source.closed
    assert monitor.error_message is not None
    assert not monitor.running


def test_remote_output_is_uploaded_then_deleted(monitor: ProgressMonitor) -> None:
    store = FakeBlobStore()
    opened: list[JsonlSink] = []

    def open_sink(path, compress):
        sink = JsonlSink.open(path, compress)
        opened.append(sink)
        return sink

    pipeline = ConversionPipeline(open_sink=open_sink, blob_store=store)
    result = pipeline.run(FakeSource(make_records(2)), OutputTarget(remote_uri="gs://bucket/out.jsonl"), 5, monitor)

    assert result.uploaded
    assert result.output == "gs://bucket/out.jsonl"
    [(uri, payload)] = store.uploads
    assert uri == "gs://bucket/out.jsonl"
    assert len(payload.decode().splitlines()) == 2
    assert opened[0].temporary
    assert store.deleted == [opened[0].path]
    assert not opened[0].path.exists()


def test_upload_failure_keeps_temp_output(monitor: ProgressMonitor) -> None:
    store = FakeBlobStore(fail_upload=True)
    opened: list[JsonlSink] = []

    def open_sink(path, compress):
        sink = JsonlSink.open(path, compress)
        opened.append(sink)
        return sink

    pipeline = ConversionPipeline(open_sink=open_sink, blob_store=store)
    with pytest.raises(ConversionError, match="upload"):
        pipeline.run(FakeSource(make_records(2)), OutputTarget(remote_uri="gs://bucket/out.jsonl"), 5, monitor)

    temp_output = opened[0].path
    try:
        assert temp_output.exists()
        assert store.deleted == []
        assert not monitor.running
    finally:
        temp_output.unlink()


def test_remote_output_requires_blob_store(monitor: ProgressMonitor) -> None:
    source = FakeSource(make_records(1))
    with pytest.raises(ConversionError, match="blob store"):
        ConversionPipeline(open_sink=JsonlSink.open).run(source, OutputTarget(remote_uri="gs://b/o"), 5, monitor)
    assert source.calls == []


def test_rejects_non_positive_batch_size(tmp_path: Path, monitor: ProgressMonitor) -> None:
    with pytest.raises(ConversionError):
        ConversionPipeline(open_sink=JsonlSink.open).run(
            FakeSource([]), OutputTarget(local_path=tmp_path / "o.jsonl"), 0, monitor
        )


def test_output_target_requires_exactly_one_destination(tmp_path: Path) -> None:
    with pytest.raises(ConversionError):
        OutputTarget()
    with pytest.raises(ConversionError):
        OutputTarget(local_path=tmp_path / "o.jsonl", remote_uri="gs://b/o")
