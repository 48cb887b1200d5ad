from errstrat.dedup import DeduplicationState
from errstrat.models import Locus


def test_same_record_same_locus_is_idempotent():
    state = DeduplicationState()
    rec = ("r1", "UNPAIRED", 99)
    assert state.already_processed(rec, Locus("chr1", 100)) is False
    assert state.already_processed(rec, Locus("chr1", 100)) is True
    assert state.already_processed(rec, Locus("chr1", 100)) is True


def test_record_followed_across_consecutive_loci():
    state = DeduplicationState()
    rec = ("r1", "UNPAIRED", 99)
    results = [state.already_processed(rec, Locus("chr1", pos)) for pos in range(100, 105)]
    assert results == [False, True, True, True, True]


def test_distinct_records_are_independent():
    state = DeduplicationState()
    locus = Locus("chr1", 100)
    assert state.already_processed(("r1", "FIRST", 10), locus) is False
    assert state.already_processed(("r1", "SECOND", 10), locus) is False
    assert state.already_processed(("r2", "FIRST", 10), locus) is False


def test_stale_records_are_evicted():
    state = DeduplicationState()
    rec = ("r1", "UNPAIRED", 99)
    other = ("r2", "UNPAIRED", 50)
    state.already_processed(rec, Locus("chr1", 100))
    state.already_processed(other, Locus("chr1", 103))

    assert rec not in state.seen
    assert state.already_processed(rec, Locus("chr1", 103)) is False


def test_contig_change_evicts_everything():
    state = DeduplicationState()
    rec = ("r1", "UNPAIRED", 99)
    state.already_processed(rec, Locus("chr1", 100))
    state.already_processed(("r2", "UNPAIRED", 0), Locus("chr2", 100))
    assert rec not in state.seen
    assert state.current_locus == Locus("chr2", 100)


def test_first_sighting_is_recorded_at_current_locus():
    state = DeduplicationState()
    rec = ("r1", "UNPAIRED", 99)
    assert state.already_processed(rec, Locus("chr1", 100)) is False
    assert state.seen[rec] == Locus("chr1", 100)
    state.already_processed(rec, Locus("chr1", 101))
    assert state.seen[rec] == Locus("chr1", 101)
    assert state.current_locus == Locus("chr1", 101)
