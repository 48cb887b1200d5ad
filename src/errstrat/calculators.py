from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .metrics import ErrorMetric, IndelErrorMetric, OverlappingErrorMetric, SimpleErrorMetric
from .models import NO_CALL_BASES, AlignmentType, BaseObservation, LocusContext
from .utils import phred_to_error_prob, q_score, shrunk_error_rate

logger = logging.getLogger(__name__)


def _shrunk_q(errors: int, total: int, prior: float) -> Optional[float]:
    return q_score(shrunk_error_rate(errors, total, prior))


class ErrorCalculator:
    """Accumulates counts for one stratum and turns them into an :class:`ErrorMetric`.

    Subclasses implement :meth:`add_base` and :meth:`finalize`. Counts only ever grow.
    Observations at a reference ``N`` are ignored by every calculator.
    """

    def __init__(self) -> None:
        self.total_bases = 0
        self.error_bases = 0

    def add_base(self, obs: BaseObservation, ctx: LocusContext) -> None:
        raise NotImplementedError

    def finalize(self, covariate: str, prior_q: int) -> ErrorMetric:
        raise NotImplementedError

    def _common_fields(self, covariate: str, prior: float) -> Dict[str, Any]:
        rate = shrunk_error_rate(self.error_bases, self.total_bases, prior)
        return {
            "covariate": covariate,
            "total_bases": self.total_bases,
            "error_bases": self.error_bases,
            "error_rate": rate,
            "q_score": q_score(rate),
        }


class SimpleErrorCalculator(ErrorCalculator):
    """Substitution errors against the reference."""

    def __init__(self) -> None:
        super().__init__()
        self.indel_events = 0

    def add_base(self, obs: BaseObservation, ctx: LocusContext) -> None:
        if ctx.ref_base in NO_CALL_BASES:
            return
        if obs.alignment_type == AlignmentType.MATCH:
            if obs.is_no_call:
                return
            self.total_bases += 1
            if obs.base.upper() != ctx.ref_base:
                self.error_bases += 1
        else:
            self.total_bases += 1
            self.indel_events += 1

    def finalize(self, covariate: str, prior_q: int) -> SimpleErrorMetric:
        prior = phred_to_error_prob(prior_q)
        return SimpleErrorMetric(indel_events=self.indel_events, **self._common_fields(covariate, prior))


class OverlappingErrorCalculator(ErrorCalculator):
    """Errors at positions read by both mates of a pair.

    Bases whose mate has no aligned base at the locus are not counted at all.
    """

    def __init__(self) -> None:
        super().__init__()
        self.disagrees_with_reference_only = 0
        self.disagrees_with_ref_and_mate = 0
        self.three_ways_disagreement = 0

    def add_base(self, obs: BaseObservation, ctx: LocusContext) -> None:
        if obs.alignment_type != AlignmentType.MATCH or obs.is_no_call:
            return
        if ctx.ref_base in NO_CALL_BASES:
            return
        mate = ctx.mate_of(obs)
        if mate is None or mate.is_no_call:
            return

        read_base = obs.base.upper()
        mate_base = mate.base.upper()
        ref = ctx.ref_base

        self.total_bases += 1
        if read_base == ref:
            return
        self.error_bases += 1
        if read_base == mate_base:
            self.disagrees_with_reference_only += 1
        elif mate_base == ref:
            self.disagrees_with_ref_and_mate += 1
        else:
            self.three_ways_disagreement += 1

    def finalize(self, covariate: str, prior_q: int) -> OverlappingErrorMetric:
        prior = phred_to_error_prob(prior_q)
        n = self.total_bases
        return OverlappingErrorMetric(
            num_disagrees_with_reference_only=self.disagrees_with_reference_only,
            num_disagrees_with_ref_and_mate=self.disagrees_with_ref_and_mate,
            num_three_ways_disagreement=self.three_ways_disagreement,
            disagrees_with_reference_only_q=_shrunk_q(self.disagrees_with_reference_only, n, prior),
            disagrees_with_ref_and_mate_q=_shrunk_q(self.disagrees_with_ref_and_mate, n, prior),
            three_ways_disagreement_q=_shrunk_q(self.three_ways_disagreement, n, prior),
            **self._common_fields(covariate, prior),
        )


class IndelErrorCalculator(ErrorCalculator):
    """Insertion and deletion events per aligned base, independent of substitutions."""

    def __init__(self) -> None:
        super().__init__()
        self.num_insertions = 0
        self.num_inserted_bases = 0
        self.num_deletions = 0
        self.num_deleted_bases = 0

    def add_base(self, obs: BaseObservation, ctx: LocusContext) -> None:
        if ctx.ref_base in NO_CALL_BASES:
            return
        if obs.alignment_type == AlignmentType.MATCH:
            if not obs.is_no_call:
                self.total_bases += 1
        elif obs.alignment_type == AlignmentType.INSERTION:
            self.num_insertions += 1
            self.num_inserted_bases += obs.indel_length
            self.error_bases += 1
        elif obs.alignment_type == AlignmentType.DELETION:
            self.num_deletions += 1
            self.num_deleted_bases += obs.indel_length
            self.error_bases += 1

    def finalize(self, covariate: str, prior_q: int) -> IndelErrorMetric:
        prior = phred_to_error_prob(prior_q)
        n = self.total_bases
        return IndelErrorMetric(
            num_insertions=self.num_insertions,
            num_inserted_bases=self.num_inserted_bases,
            insertions_q=_shrunk_q(self.num_insertions, n, prior),
            num_deletions=self.num_deletions,
            num_deleted_bases=self.num_deleted_bases,
            deletions_q=_shrunk_q(self.num_deletions, n, prior),
            **self._common_fields(covariate, prior),
        )
