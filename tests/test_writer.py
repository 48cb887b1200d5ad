from pathlib import Path

from errstrat.aggregation import build_aggregations
from errstrat.models import BaseObservation, Locus, LocusContext
from errstrat.pipeline import LocusPipeline
from errstrat.writer import metrics_path, write_all_metrics, write_metrics_file


def _loci():
    ctx = LocusContext(
        locus=Locus("chr1", 10),
        ref_base="A",
        aligned=[
            BaseObservation(qname="u", base="C", quality=30),
            BaseObservation(qname="p", base="A", quality=30, is_paired=True, is_read1=True),
        ],
    )
    no_call = LocusContext(
        locus=Locus("chr1", 11),
        ref_base="G",
        aligned=[BaseObservation(qname="n", base="N", quality=30, is_paired=True, is_read2=True)],
    )
    return [ctx, no_call]


def _data_rows(path: Path):
    lines = path.read_text(encoding="utf-8").splitlines()
    meta = [ln for ln in lines if ln.startswith("##")]
    body = [ln.split("\t") for ln in lines if not ln.startswith("##")]
    return meta, body[0], body[1:]


def test_metrics_file_layout(tmp_path: Path):
    [agg] = build_aggregations(["ERROR:READ_ORDINALITY"])
    LocusPipeline([agg]).run(_loci())

    path = tmp_path / "out.error_by_read_ordinality"
    written = write_metrics_file(path, agg, 30, command="errstrat collect")
    meta, header, rows = _data_rows(path)

    assert any(ln.startswith("## COMMAND\terrstrat collect") for ln in meta)
    assert any("SimpleErrorMetric" in ln for ln in meta)
    assert header[:3] == ["READ_ORDINALITY", "COVARIATE", "TOTAL_BASES"]
    assert header[-1] == "INDEL_EVENTS"
    assert [r[0] for r in rows] == ["FIRST", "SECOND", "UNPAIRED"]
    assert len(written) == 3

    second = rows[1]
    # the only SECOND base was a no-call: stratum seen, rate undefined
    assert second[2:4] == ["0", "0"]
    assert second[4:6] == ["NA", "NA"]


def test_not_applicable_values_rendered(tmp_path: Path):
    [agg] = build_aggregations(["ERROR:PAIR_ORIENTATION"])
    LocusPipeline([agg]).run(_loci())

    path = tmp_path / "x"
    write_metrics_file(path, agg, 30)
    _, _, rows = _data_rows(path)
    assert [r[0] for r in rows] == ["F1R2", "F2R1", "NA"]


def test_write_all_metrics_names_files_by_suffix(tmp_path: Path):
    aggs = build_aggregations(["ERROR", "INDEL_ERROR:CYCLE"])
    LocusPipeline(aggs).run(_loci())

    prefix = tmp_path / "sample"
    summary = write_all_metrics(prefix, aggs, 30)
    assert set(summary) == {"error_by_all", "indel_error_by_cycle"}
    assert metrics_path(prefix, "error_by_all").exists()
    assert summary["error_by_all"]["total_bases"] == 2
    assert summary["error_by_all"]["error_bases"] == 1
    assert summary["error_by_all"]["raw_error_rate"] == 0.5


def test_header_written_without_metrics(tmp_path: Path):
    [agg] = build_aggregations(["OVERLAPPING_ERROR"])
    path = tmp_path / "empty"
    assert write_metrics_file(path, agg, 30) == []
    _, header, rows = _data_rows(path)
    assert header[0] == "ALL"
    assert "NUM_THREE_WAYS_DISAGREEMENT" in header
    assert rows == []
