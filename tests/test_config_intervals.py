from pathlib import Path

import pytest

from errstrat.config import CollectionSettings
from errstrat.errors import ConfigurationError, InputConsistencyError
from errstrat.intervals import Interval, intersect, load_bed, load_intervals, sort_and_merge
from errstrat.validation import check_same_dictionary, check_sort_order, check_vcf_index, detect_contig_style


def test_default_settings_are_valid():
    s = CollectionSettings().validate()
    assert s.prior_q == 30
    assert s.min_mapping_quality == 20
    assert s.min_base_quality == 20
    assert s.long_homopolymer == 6
    assert s.probability == 1.0
    assert s.max_loci == 0
    assert "ERROR" in s.directives


def test_invalid_settings_reported_together():
    s = CollectionSettings(min_base_quality=-1, probability=1.5, max_loci=-3)
    with pytest.raises(ConfigurationError) as excinfo:
        s.validate()
    msg = str(excinfo.value)
    assert "min_base_quality" in msg
    assert "probability" in msg
    assert "max_loci" in msg


def test_window_must_exceed_long_homopolymer():
    CollectionSettings(window=7, long_homopolymer=6).validate()
    with pytest.raises(ConfigurationError, match="window must be larger than long_homopolymer"):
        CollectionSettings(window=10, long_homopolymer=12).validate()


def test_bed_loading_sorting_and_merging(tmp_path: Path):
    bed = tmp_path / "a.bed"
    bed.write_text(
        "track name=x\n# comment\nchr2\t5\t10\nchr1\t20\t30\nchr1\t10\t20\nchr1\t50\t60\n",
        encoding="utf-8",
    )
    raw = load_bed(bed)
    assert len(raw) == 4

    merged = sort_and_merge(raw, ["chr1", "chr2"])
    assert merged == [Interval("chr1", 10, 30), Interval("chr1", 50, 60), Interval("chr2", 5, 10)]


def test_bed_with_unknown_contig_rejected(tmp_path: Path):
    bed = tmp_path / "a.bed"
    bed.write_text("chrZ\t1\t2\n", encoding="utf-8")
    with pytest.raises(InputConsistencyError):
        load_intervals([bed], ["chr1"])


def test_malformed_bed_rejected(tmp_path: Path):
    bed = tmp_path / "a.bed"
    bed.write_text("chr1\tten\t20\n", encoding="utf-8")
    with pytest.raises(InputConsistencyError):
        load_bed(bed)


def test_interval_files_are_intersected(tmp_path: Path):
    a = tmp_path / "a.bed"
    b = tmp_path / "b.bed"
    a.write_text("chr1\t0\t100\nchr2\t0\t50\n", encoding="utf-8")
    b.write_text("chr1\t50\t150\n", encoding="utf-8")

    region = load_intervals([a, b], ["chr1", "chr2"])
    assert region == [Interval("chr1", 50, 100)]
    assert load_intervals(None, ["chr1"]) is None


def test_intersect_two_lists():
    order = ["chr1"]
    a = [Interval("chr1", 0, 10), Interval("chr1", 20, 30)]
    b = [Interval("chr1", 5, 25)]
    assert intersect(a, b, order) == [Interval("chr1", 5, 10), Interval("chr1", 20, 25)]


def test_sort_order_must_be_coordinate():
    check_sort_order({"HD": {"VN": "1.6", "SO": "coordinate"}})
    with pytest.raises(InputConsistencyError):
        check_sort_order({"HD": {"VN": "1.6", "SO": "queryname"}})
    with pytest.raises(InputConsistencyError):
        check_sort_order({})


def test_sequence_dictionaries_must_agree():
    check_same_dictionary([("chr1", 100)], [("chr1", 100)])
    with pytest.raises(InputConsistencyError, match="length"):
        check_same_dictionary([("chr1", 100)], [("chr1", 99)])
    with pytest.raises(InputConsistencyError, match="missing"):
        check_same_dictionary([("chr2", 100)], [("chr1", 100)])


def test_plain_vcf_needs_compression(tmp_path: Path):
    vcf = tmp_path / "known.vcf"
    vcf.write_text("##fileformat=VCFv4.2\n", encoding="utf-8")
    with pytest.raises(InputConsistencyError, match="bgzip"):
        check_vcf_index(vcf)


def test_contig_style_detection():
    assert detect_contig_style(["chr1", "chr2"]) == "ucsc"
    assert detect_contig_style(["1", "2", "X"]) == "ensembl"
    assert detect_contig_style([]) == "unknown"
