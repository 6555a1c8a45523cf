import json
from pathlib import Path

import pyarrow as pa
import pyarrow.parquet as pq
import pytest

from conftest import FakeSource, make_records, write_index
from hardwicke.core.errors import ConversionError
from hardwicke.core.models import FieldType
from hardwicke.sources.parquet import ParquetDocumentSource, ParquetSourceFactory, arrow_field_type
from hardwicke.sources.union import UnionDocumentSource


@pytest.mark.parametrize(
    "dtype,kind",
    [
        (pa.string(), FieldType.STRING),
        (pa.int32(), FieldType.INTEGER),
        (pa.int64(), FieldType.LONG),
        (pa.float32(), FieldType.FLOAT),
        (pa.float64(), FieldType.DOUBLE),
        (pa.binary(), FieldType.BINARY),
        (pa.bool_(), FieldType.BOOLEAN),
        (pa.timestamp("ms"), FieldType.STRING),
    ],
)
def test_arrow_field_type(dtype: pa.DataType, kind: FieldType) -> None:
    assert arrow_field_type(dtype) is kind


def test_reads_typed_records_and_omits_nulls(tmp_path: Path) -> None:
    table = pa.table(
        {
            "title": pa.array(["a", None], type=pa.string()),
            "count": pa.array([1, 2], type=pa.int32()),
            "big": pa.array([2**40, 3], type=pa.int64()),
            "ratio": pa.array([0.5, 1.5], type=pa.float64()),
            "payload": pa.array([b"\x01", b"\x02"], type=pa.binary()),
        }
    )
    shard = write_index(tmp_path / "shard", table)
    source = ParquetDocumentSource(shard)

    assert source.total_count() == 2
    first, second = source.read_batch(10)
    source.close()

    assert first.doc_id == 0 and second.doc_id == 1
    assert {name: fv.kind for name, fv in first} == {
        "title": FieldType.STRING,
        "count": FieldType.INTEGER,
        "big": FieldType.LONG,
        "ratio": FieldType.DOUBLE,
        "payload": FieldType.BINARY,
    }
    assert first.fields["big"].value == 2**40
    assert "title" not in second.fields


def test_files_are_read_in_name_order(tmp_path: Path) -> None:
    shard = write_index(tmp_path / "shard")
    pq.write_table(pa.table({"n": [3, 4]}), shard / "b.parquet")
    pq.write_table(pa.table({"n": [1, 2]}), shard / "a.parquet")
    source = ParquetDocumentSource(shard, chunk_rows=1)

    batches = [source.read_batch(3), source.read_batch(3)]
    source.close()

    assert [[r.fields["n"].value for r in b] for b in batches] == [[1, 2, 3], [4]]
    assert [r.doc_id for r in batches[0] + batches[1]] == [0, 1, 2, 3]


def test_directory_without_data_files_is_rejected(tmp_path: Path) -> None:
    shard = write_index(tmp_path / "shard")
    (shard / "_0.cfs").write_bytes(b"\x00")

    with pytest.raises(ConversionError, match="No readable data files") as excinfo:
        ParquetDocumentSource(shard)
    assert str(shard) in str(excinfo.value)


def test_empty_data_file_is_an_empty_source(tmp_path: Path) -> None:
    table = pa.table({"n": pa.array([], type=pa.int32())})
    source = ParquetDocumentSource(write_index(tmp_path / "shard", table))
    assert source.total_count() == 0
    assert source.read_batch(5) == []
    source.close()


def test_missing_directory(tmp_path: Path) -> None:
    with pytest.raises(ConversionError):
        ParquetDocumentSource(tmp_path / "missing")


def test_read_after_close(tmp_path: Path) -> None:
    source = ParquetDocumentSource(write_index(tmp_path / "shard", pa.table({"n": [1]})))
    source.close()
    source.close()
    with pytest.raises(ConversionError):
        source.read_batch(1)


def test_multi_shard_factory_fails_on_missing_shard(tmp_path: Path) -> None:
    good = write_index(tmp_path / "good", pa.table({"n": [1]}))
    with pytest.raises(ConversionError):
        ParquetSourceFactory().initialize_multi_shard([good, tmp_path / "missing"])


def test_union_fills_batches_across_shards() -> None:
    first, second = FakeSource(make_records(3)), FakeSource(make_records(2))
    union = UnionDocumentSource([first, second])

    assert union.total_count() == 5
    batch = union.read_batch(4)
    rest = union.read_batch(4)

    assert [r.doc_id for r in batch] == [0, 1, 2, 3]
    assert [r.fields["id"].value for r in batch] == ["doc-0", "doc-1", "doc-2", "doc-0"]
    assert [r.doc_id for r in rest] == [4]
    assert union.read_batch(4) == []

    union.close()
    assert first.closed and second.closed


def test_union_close_reports_first_error() -> None:
    class Broken(FakeSource):
        def close(self) -> None:
            raise OSError("close failed")

    healthy = FakeSource([])
    union = UnionDocumentSource([Broken([]), healthy])

    with pytest.raises(OSError, match="close failed"):
        union.close()
    assert healthy.closed


def test_nested_columns_keep_their_json_shape(tmp_path: Path) -> None:
    table = pa.table(
        {
            "tags": pa.array([["a", "b"], []], type=pa.list_(pa.string())),
            "meta": pa.array(
                [{"k": None, "ok": True}, {"k": "v", "ok": False}],
                type=pa.struct([("k", pa.string()), ("ok", pa.bool_())]),
            ),
        }
    )
    source = ParquetDocumentSource(write_index(tmp_path / "shard", table))
    first, second = source.read_batch(2)
    source.close()

    assert first.fields["tags"].kind is FieldType.STRING
    assert first.fields["meta"].kind is FieldType.STRING
    assert json.loads(first.to_json_line()) == {"tags": ["a", "b"], "meta": {"k": None, "ok": True}, "_docId": 0}
    assert json.loads(second.to_json_line())["tags"] == []
