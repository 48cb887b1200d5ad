from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from typing import Callable, Dict, Iterable, Optional, Sequence

import numpy as np
from tqdm import tqdm

from .aggregation import BaseErrorAggregation
from .dedup import DeduplicationState
from .errors import ConfigurationError
from .models import AlignmentType, BaseObservation, Locus, LocusContext

logger = logging.getLogger(__name__)

VariantOracle = Callable[[Locus], bool]


@dataclass
class PipelineCounts:
    loci_total: int = 0
    loci_processed: int = 0
    loci_skipped: int = 0
    loci_downsampled: int = 0
    runtime_seconds: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def add_observation(
    aggregations: Sequence[BaseErrorAggregation],
    obs: BaseObservation,
    ctx: LocusContext,
    dedup: DeduplicationState,
) -> bool:
    """Forward one observation to every aggregation; False if it was a repeated deletion."""
    if obs.alignment_type == AlignmentType.DELETION and dedup.already_processed(obs.record_id, ctx.locus):
        return False
    for agg in aggregations:
        agg.add_base(obs, ctx)
    return True


def add_locus_bases(
    aggregations: Sequence[BaseErrorAggregation],
    ctx: LocusContext,
    dedup: DeduplicationState,
) -> DeduplicationState:
    """Dispatch aligned, then deleted, then inserted observations of one locus."""
    for obs in ctx.observations():
        add_observation(aggregations, obs, ctx, dedup)
    return dedup


class LocusPipeline:
    """Streams loci through downsampling, variant filtering and the aggregations.

    Parameters
    ----------
    aggregations:
        Aggregations to feed. They must already be validated (unique suffixes).
    variant_oracle:
        ``callable(Locus) -> bool``; True when a known, unfiltered variant overlaps the
        locus, in which case the locus is skipped.
    probability:
        Probability of keeping a locus. A locus is either fully used or fully skipped.
    max_loci:
        Stop after this many processed loci (0 = no limit).
    seed:
        Seed of the downsampling generator; a fixed seed makes runs reproducible.
    """

    def __init__(
        self,
        aggregations: Sequence[BaseErrorAggregation],
        *,
        variant_oracle: Optional[VariantOracle] = None,
        probability: float = 1.0,
        max_loci: int = 0,
        seed: int = 42,
        progress: bool = False,
        progress_interval: int = 100_000,
    ) -> None:
        self.aggregations = list(aggregations)
        self.variant_oracle = variant_oracle
        self.probability = float(probability)
        self.max_loci = int(max_loci)
        self.seed = seed
        if progress_interval <= 0:
            raise ConfigurationError(f"progress_interval must be positive. found value: {progress_interval}")
        self.progress = progress
        self.progress_interval = int(progress_interval)

    def run(self, loci: Iterable[LocusContext]) -> PipelineCounts:
        t0 = time.time()
        rng = np.random.default_rng(self.seed)
        dedup = DeduplicationState()
        counts = PipelineCounts()

        logger.info("Using %d aggregators.", len(self.aggregations))

        it: Iterable[LocusContext] = loci
        if self.progress:
            it = tqdm(it, unit="locus", desc="Collecting errors")

        for ctx in it:
            if rng.random() >= self.probability:
                counts.loci_downsampled += 1
                continue
            counts.loci_total += 1

            if self.variant_oracle is not None and self.variant_oracle(ctx.locus):
                logger.debug("Locus overlaps a known variant: %s", ctx.locus)
                counts.loci_skipped += 1
                continue

            dedup = add_locus_bases(self.aggregations, ctx, dedup)
            counts.loci_processed += 1

            if counts.loci_processed % self.progress_interval == 0:
                logger.info("Processed %d loci. Last locus: %s", counts.loci_processed, ctx.locus)

            if self.max_loci and counts.loci_processed >= self.max_loci:
                logger.warning("Early stopping due to having processed max_loci=%d loci.", self.max_loci)
                break

        counts.runtime_seconds = float(time.time() - t0)
        logger.info(
            "Examined %d loci, processed %d loci, skipped %d loci. Computation took %.1f seconds.",
            counts.loci_total,
            counts.loci_processed,
            counts.loci_skipped,
            counts.runtime_seconds,
        )
        return counts
