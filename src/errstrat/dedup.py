from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Hashable, Optional

from .models import Locus

logger = logging.getLogger(__name__)

SAME_LOCUS_DISTANCE = 0
RETENTION_DISTANCE = 1


@dataclass
class DeduplicationState:
    """Tracks records whose deletion has already been credited.

    A deletion spanning several reference positions is reported by the locus source
    once per position; only the first report should reach the aggregations. Records
    are remembered together with the last locus they were seen at, and forgotten
    once the stream moves more than ``RETENTION_DISTANCE`` past that locus, so memory
    stays bounded by the depth of a couple of adjacent loci.

    Correctness relies on loci arriving in ascending order.
    """

    current_locus: Optional[Locus] = None
    seen: Dict[Hashable, Locus] = field(default_factory=dict)

    def _advance(self, locus: Locus) -> Locus:
        """Move to ``locus`` unless it is the current one; returns the current locus."""
        current = self.current_locus
        if current is not None and current.within_distance_of(locus, SAME_LOCUS_DISTANCE):
            return current
        self.current_locus = locus
        if current is not None:
            stale = [r for r, last in self.seen.items() if not last.within_distance_of(locus, RETENTION_DISTANCE)]
            for record in stale:
                del self.seen[record]
        return locus

    def already_processed(self, record_id: Hashable, locus: Locus) -> bool:
        """Mark ``record_id`` as seen at ``locus``; True if it was already being tracked."""
        current = self._advance(locus)
        known = record_id in self.seen
        self.seen[record_id] = current
        return known
