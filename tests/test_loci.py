from pathlib import Path

import pytest

from errstrat.aggregation import build_aggregations
from errstrat.errors import InputConsistencyError
from errstrat.intervals import Interval
from errstrat.loci import VariantOverlapOracle, deletion_length_at, iter_locus_contexts
from errstrat.models import Locus
from errstrat.pipeline import LocusPipeline
from errstrat.toy_data import TOY_CONTIG, TOY_LENGTH, make_read, make_toy_data, toy_reference, write_bam
from errstrat.validation import check_bam_index


def _by_position(toy, **kw):
    return {ctx.locus.position: ctx for ctx in iter_locus_contexts(toy["bam"], toy["ref_fa"], **kw)}


def test_deletion_length_from_cigar():
    read = make_read("d", 80, "A" * 47, cigar=[(0, 20), (2, 3), (0, 27)])
    assert deletion_length_at(read, 99) == 0
    assert deletion_length_at(read, 100) == 3
    assert deletion_length_at(read, 102) == 3
    assert deletion_length_at(read, 103) == 0


def test_loci_ascending_and_covered_only(tmp_path: Path):
    toy = make_toy_data(outdir=tmp_path / "toy")
    positions = [ctx.locus.position for ctx in iter_locus_contexts(toy["bam"], toy["ref_fa"])]
    assert positions == sorted(positions)
    assert positions[0] == 21
    assert positions[-1] == 220
    assert len(positions) == 200


def test_deletion_and_insertion_observations(tmp_path: Path):
    toy = make_toy_data(outdir=tmp_path / "toy")
    loci = _by_position(toy)

    for pos in (101, 102, 103):
        [deleted] = loci[pos].deleted
        assert deleted.qname == "del1"
        assert deleted.indel_length == 3
        assert deleted.offset == 20
    assert loci[104].deleted == []

    [inserted] = loci[115].inserted
    assert inserted.qname == "ins1"
    assert inserted.indel_length == 2
    assert inserted.offset == 25


def test_overlapping_mates_both_reported(tmp_path: Path):
    toy = make_toy_data(outdir=tmp_path / "toy")
    ctx = _by_position(toy)[51]
    pair = [o for o in ctx.aligned if o.qname == "pair1"]
    assert len(pair) == 2
    mate = ctx.mate_of(pair[0])
    assert mate is not None and mate.ordinality != pair[0].ordinality
    assert pair[0].base == pair[1].base != ctx.ref_base
    assert pair[0].read_group == "toy"


def test_quality_filters(tmp_path: Path):
    toy = make_toy_data(outdir=tmp_path / "toy")
    assert _by_position(toy, min_mapping_quality=61) == {}
    strict = _by_position(toy, min_base_quality=41)
    # aligned bases all fail, only deletion/insertion events remain
    assert all(not ctx.aligned for ctx in strict.values())
    assert sorted(strict) == [101, 102, 103, 115]


def test_low_mapping_quality_reads_dropped(tmp_path: Path):
    toy = make_toy_data(outdir=tmp_path / "toy")
    ref = toy_reference()
    reads = [
        make_read("good", 40, ref[40:70], mapq=60),
        make_read("poor", 40, ref[40:70], mapq=10),
    ]
    bam = write_bam(tmp_path / "mixed.bam", reads, TOY_CONTIG, TOY_LENGTH)

    def names(min_mapping_quality):
        loci = iter_locus_contexts(bam, toy["ref_fa"], min_mapping_quality=min_mapping_quality)
        return {obs.qname for ctx in loci for obs in ctx.aligned}

    assert names(0) == {"good", "poor"}
    assert names(20) == {"good"}
    assert names(61) == set()


def test_intervals_restrict_loci(tmp_path: Path):
    toy = make_toy_data(outdir=tmp_path / "toy")
    loci = _by_position(toy, intervals=[Interval("chr1", 99, 104)])
    assert sorted(loci) == [100, 101, 102, 103, 104]
    assert len(loci[102].reference_window) == 21


def test_variant_oracle_ignores_filtered_records(tmp_path: Path):
    toy = make_toy_data(outdir=tmp_path / "toy")
    with VariantOverlapOracle(toy["known_vcf"]) as oracle:
        assert oracle(Locus("chr1", 150)) is True
        assert oracle(Locus("chr1", 160)) is False
        assert oracle(Locus("chr1", 151)) is False
        assert oracle(Locus("chr2", 150)) is False
        assert oracle.queries == 4


def test_collect_over_toy_data(tmp_path: Path):
    toy = make_toy_data(outdir=tmp_path / "toy")
    aggs = build_aggregations(["OVERLAPPING_ERROR", "INDEL_ERROR", "ERROR"])

    with VariantOverlapOracle(toy["known_vcf"]) as oracle:
        counts = LocusPipeline(aggs, variant_oracle=oracle).run(
            iter_locus_contexts(toy["bam"], toy["ref_fa"])
        )

    assert counts.loci_total == 200
    assert counts.loci_skipped == 1
    assert counts.loci_processed == 199

    [overlap] = aggs[0].metrics(30)
    assert overlap.total_bases == 60
    assert overlap.num_disagrees_with_reference_only == 2
    assert overlap.num_disagrees_with_ref_and_mate == 1
    assert overlap.num_three_ways_disagreement == 0

    [indel] = aggs[1].metrics(30)
    assert indel.num_deletions == 1
    assert indel.num_deleted_bases == 3
    assert indel.num_insertions == 1
    assert indel.num_inserted_bases == 2

    [simple] = aggs[2].metrics(30)
    assert simple.error_bases == 3


def test_unindexed_bam_rejected(tmp_path: Path):
    toy = make_toy_data(outdir=tmp_path / "toy")
    Path(toy["bam"] + ".bai").unlink()
    with pytest.raises(InputConsistencyError, match="samtools index"):
        check_bam_index(toy["bam"])
