import math

import pytest

from errstrat.calculators import IndelErrorCalculator, OverlappingErrorCalculator, SimpleErrorCalculator
from errstrat.models import AlignmentType, BaseObservation, Locus, LocusContext
from errstrat.utils import phred_to_error_prob, shrunk_error_rate


def _ctx(ref: str = "A", aligned=None) -> LocusContext:
    return LocusContext(locus=Locus("chr1", 10), ref_base=ref, aligned=list(aligned or []))


def _mate(name: str, base: str, read1: bool) -> BaseObservation:
    return BaseObservation(
        qname=name,
        base=base,
        quality=30,
        is_paired=True,
        is_read1=read1,
        is_read2=not read1,
        is_reverse=not read1,
    )


def test_empty_calculator_is_undefined():
    m = SimpleErrorCalculator().finalize("all", 30)
    assert m.total_bases == 0
    assert m.error_rate is None
    assert m.q_score is None
    assert m.is_undefined
    assert m.raw_error_rate is None


def test_shrunk_rate_between_prior_and_raw():
    calc = SimpleErrorCalculator()
    ctx = _ctx("A")
    for i in range(10):
        calc.add_base(BaseObservation(qname=f"r{i}", base="C" if i < 2 else "A", quality=30), ctx)

    m = calc.finalize("all", 30)
    assert m.total_bases == 10
    assert m.error_bases == 2
    prior = phred_to_error_prob(30)
    assert m.error_rate == pytest.approx(shrunk_error_rate(2, 10, prior))
    assert prior < m.error_rate < 0.2
    assert m.q_score == pytest.approx(-10 * math.log10(m.error_rate))


def test_simple_ignores_no_calls_and_reference_n():
    calc = SimpleErrorCalculator()
    calc.add_base(BaseObservation(qname="a", base="N", quality=30), _ctx("A"))
    calc.add_base(BaseObservation(qname="b", base="C", quality=30), _ctx("N"))
    assert calc.total_bases == 0
    assert calc.error_bases == 0


def test_simple_counts_indels_toward_total_not_errors():
    calc = SimpleErrorCalculator()
    ctx = _ctx("A")
    calc.add_base(BaseObservation(qname="d", alignment_type=AlignmentType.DELETION, indel_length=2), ctx)
    calc.add_base(BaseObservation(qname="i", alignment_type=AlignmentType.INSERTION, indel_length=1), ctx)
    m = calc.finalize("all", 30)
    assert m.total_bases == 2
    assert m.error_bases == 0
    assert m.indel_events == 2


def test_overlapping_error_categories():
    # both mates agree on a non-reference base
    r1, r2 = _mate("p1", "C", True), _mate("p1", "C", False)
    # only read 1 disagrees
    s1, s2 = _mate("p2", "G", True), _mate("p2", "A", False)
    # all three differ
    t1, t2 = _mate("p3", "C", True), _mate("p3", "T", False)
    ctx = _ctx("A", aligned=[r1, r2, s1, s2, t1, t2])

    calc = OverlappingErrorCalculator()
    for obs in ctx.aligned:
        calc.add_base(obs, ctx)

    m = calc.finalize("all", 30)
    assert m.total_bases == 6
    assert m.error_bases == 5
    assert m.num_disagrees_with_reference_only == 2
    assert m.num_disagrees_with_ref_and_mate == 1
    assert m.num_three_ways_disagreement == 2
    assert m.disagrees_with_reference_only_q is not None


def test_overlapping_skips_bases_without_mate():
    lone = _mate("p1", "C", True)
    unpaired = BaseObservation(qname="u", base="C", quality=30)
    ctx = _ctx("A", aligned=[lone, unpaired])

    calc = OverlappingErrorCalculator()
    for obs in ctx.aligned:
        calc.add_base(obs, ctx)
    m = calc.finalize("all", 30)
    assert m.total_bases == 0
    assert m.is_undefined
    assert m.disagrees_with_reference_only_q is None


def test_indel_calculator_counts_events_and_lengths():
    calc = IndelErrorCalculator()
    ctx = _ctx("A")
    for i in range(8):
        calc.add_base(BaseObservation(qname=f"m{i}", base="A", quality=30), ctx)
    calc.add_base(BaseObservation(qname="i", alignment_type=AlignmentType.INSERTION, indel_length=2), ctx)
    calc.add_base(BaseObservation(qname="d", alignment_type=AlignmentType.DELETION, indel_length=5), ctx)

    m = calc.finalize("all", 30)
    assert m.total_bases == 8
    assert m.num_insertions == 1
    assert m.num_inserted_bases == 2
    assert m.num_deletions == 1
    assert m.num_deleted_bases == 5
    assert m.error_bases == 2
    assert m.insertions_q == pytest.approx(m.deletions_q)
