"""Region restriction: BED loading, merging and intersection.

Intervals are 0-based half-open, as in BED. Several interval files are intersected,
so a locus is only visited when every file covers it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .errors import InputConsistencyError
from .utils import open_textmaybe_gzip

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Interval:
    contig: str
    start0: int
    end0: int

    def __len__(self) -> int:
        return max(0, self.end0 - self.start0)


def load_bed(path: str | Path) -> List[Interval]:
    """Read a BED(.gz) file; only the first three columns are used."""
    out: List[Interval] = []
    with open_textmaybe_gzip(path, "rt") as fh:
        for lineno, line in enumerate(fh, start=1):
            line = line.rstrip("\n")
            if not line or line.startswith(("#", "track", "browser")):
                continue
            parts = line.split("\t")
            if len(parts) < 3:
                raise InputConsistencyError(f"{path}:{lineno}: expected at least 3 BED columns")
            try:
                start0, end0 = int(parts[1]), int(parts[2])
            except ValueError:
                raise InputConsistencyError(f"{path}:{lineno}: non-integer BED coordinates") from None
            if end0 < start0:
                raise InputConsistencyError(f"{path}:{lineno}: end before start")
            out.append(Interval(parts[0], start0, end0))
    return out


def sort_and_merge(intervals: Iterable[Interval], contig_order: Sequence[str]) -> List[Interval]:
    """Sort by reference order and merge overlapping or abutting intervals.

    Intervals on contigs missing from ``contig_order`` are an input error.
    """
    rank: Dict[str, int] = {c: i for i, c in enumerate(contig_order)}
    items = list(intervals)
    unknown = sorted({iv.contig for iv in items if iv.contig not in rank})
    if unknown:
        raise InputConsistencyError(
            f"Intervals reference contigs absent from the sequence dictionary: {', '.join(unknown)}"
        )
    items.sort(key=lambda iv: (rank[iv.contig], iv.start0, iv.end0))

    merged: List[Interval] = []
    for iv in items:
        if len(iv) == 0:
            continue
        if merged and merged[-1].contig == iv.contig and iv.start0 <= merged[-1].end0:
            last = merged[-1]
            merged[-1] = Interval(last.contig, last.start0, max(last.end0, iv.end0))
        else:
            merged.append(iv)
    return merged


def intersect(a: Sequence[Interval], b: Sequence[Interval], contig_order: Sequence[str]) -> List[Interval]:
    """Intersection of two sorted, merged interval lists."""
    rank = {c: i for i, c in enumerate(contig_order)}
    out: List[Interval] = []
    i = j = 0
    while i < len(a) and j < len(b):
        x, y = a[i], b[j]
        if x.contig != y.contig:
            if rank[x.contig] < rank[y.contig]:
                i += 1
            else:
                j += 1
            continue
        lo = max(x.start0, y.start0)
        hi = min(x.end0, y.end0)
        if lo < hi:
            out.append(Interval(x.contig, lo, hi))
        if x.end0 < y.end0:
            i += 1
        else:
            j += 1
    return out


def load_intervals(paths: Optional[Sequence[str | Path]], contig_order: Sequence[str]) -> Optional[List[Interval]]:
    """Load and intersect every interval file; None when no files are given."""
    if not paths:
        return None
    region: Optional[List[Interval]] = None
    for path in paths:
        if not Path(path).exists():
            raise InputConsistencyError(f"Input file {path} doesn't seem to exist.")
        logger.info("Reading intervals from %s", path)
        current = sort_and_merge(load_bed(path), contig_order)
        if region is None:
            region = current
        else:
            logger.info("Intersecting intervals with %s", path)
            region = intersect(region, current, contig_order)
    assert region is not None
    logger.info("Region of interest: %d intervals, %d bp", len(region), sum(len(iv) for iv in region))
    return region
