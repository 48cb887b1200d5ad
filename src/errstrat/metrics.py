"""Finalized error metrics.

Each metric is an immutable snapshot of one calculator for one stratum. Rates and Q
scores are shrunk toward the prior error (see :func:`errstrat.utils.shrunk_error_rate`)
and are ``None`` when the stratum has no bases, so an empty stratum never reports a
rate of 0 or 1.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import List, Optional


@dataclass(frozen=True)
class ErrorMetric:
    covariate: str
    total_bases: int
    error_bases: int
    error_rate: Optional[float]
    q_score: Optional[float]

    @property
    def raw_error_rate(self) -> Optional[float]:
        if self.total_bases == 0:
            return None
        return self.error_bases / self.total_bases

    @property
    def is_undefined(self) -> bool:
        return self.error_rate is None

    @classmethod
    def column_names(cls) -> List[str]:
        return [f.name.upper() for f in fields(cls)]


@dataclass(frozen=True)
class SimpleErrorMetric(ErrorMetric):
    """Substitution errors; indels count toward the total but only as ``indel_events``."""

    indel_events: int


@dataclass(frozen=True)
class OverlappingErrorMetric(ErrorMetric):
    """Errors over bases covered by both mates of a pair.

    ``error_bases`` counts every disagreement with the reference, which makes
    ``error_rate`` an upper bound; the three categories separate errors that both mates
    share (likely introduced before sequencing) from errors in one mate only.
    """

    num_disagrees_with_reference_only: int
    num_disagrees_with_ref_and_mate: int
    num_three_ways_disagreement: int
    disagrees_with_reference_only_q: Optional[float]
    disagrees_with_ref_and_mate_q: Optional[float]
    three_ways_disagreement_q: Optional[float]


@dataclass(frozen=True)
class IndelErrorMetric(ErrorMetric):
    num_insertions: int
    num_inserted_bases: int
    insertions_q: Optional[float]
    num_deletions: int
    num_deleted_bases: int
    deletions_q: Optional[float]
