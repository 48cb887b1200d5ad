from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

READ_FIRST = "FIRST"
READ_SECOND = "SECOND"
READ_UNPAIRED = "UNPAIRED"

NO_CALL_BASES = frozenset({"N", "."})


class AlignmentType(str, Enum):
    """How a read relates to the reference at one locus."""

    MATCH = "M"
    INSERTION = "I"
    DELETION = "D"


@dataclass(frozen=True)
class Locus:
    """A single reference coordinate. ``position`` is 1-based."""

    contig: str
    position: int

    def within_distance_of(self, other: "Locus", distance: int) -> bool:
        return self.contig == other.contig and abs(self.position - other.position) <= distance

    def __str__(self) -> str:
        return f"{self.contig}:{self.position}"


RecordId = Tuple[str, str, int]


@dataclass(frozen=True)
class BaseObservation:
    """One aligned, deleted or inserted base of one read at one locus.

    Attributes
    ----------
    qname:
        Query name of the owning record.
    alignment_type:
        MATCH for a base aligned to the locus, DELETION when the locus is deleted
        in the read, INSERTION for bases inserted right after the locus.
    offset:
        0-based offset within the read (including soft clips). For deletions this
        is the offset of the next aligned read base.
    base, quality:
        Observed read base and its base quality; None for deletions.
    record_start:
        0-based reference start of the owning record. Together with ``qname`` and the
        read ordinality it identifies the record.
    mismatches:
        Edit distance of the record (NM tag) if present.
    indel_length:
        Length of the insertion/deletion event this observation belongs to.
    """

    qname: str
    alignment_type: AlignmentType = AlignmentType.MATCH
    offset: int = 0
    base: Optional[str] = None
    quality: Optional[int] = None
    is_reverse: bool = False
    is_paired: bool = False
    is_read1: bool = False
    is_read2: bool = False
    mate_unmapped: bool = False
    mapping_quality: int = 60
    read_group: Optional[str] = None
    read_length: int = 0
    template_length: int = 0
    mismatches: Optional[int] = None
    indel_length: int = 0
    record_start: int = 0

    @property
    def ordinality(self) -> str:
        if not self.is_paired:
            return READ_UNPAIRED
        if self.is_read1:
            return READ_FIRST
        if self.is_read2:
            return READ_SECOND
        return READ_UNPAIRED

    @property
    def record_id(self) -> RecordId:
        return (self.qname, self.ordinality, self.record_start)

    @property
    def is_no_call(self) -> bool:
        return self.base is None or self.base.upper() in NO_CALL_BASES


@dataclass
class LocusContext:
    """Everything observed at one reference position.

    ``reference_window`` holds reference bases around the locus and
    ``window_offset`` is the index of the locus base inside it. Without a window the
    context only knows the locus base itself.
    """

    locus: Locus
    ref_base: str
    aligned: List[BaseObservation] = field(default_factory=list)
    deleted: List[BaseObservation] = field(default_factory=list)
    inserted: List[BaseObservation] = field(default_factory=list)
    reference_window: str = ""
    window_offset: int = 0
    _by_name: Optional[Dict[str, List[BaseObservation]]] = field(
        default=None, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        self.ref_base = self.ref_base.upper()
        if not self.reference_window:
            self.reference_window = self.ref_base
            self.window_offset = 0
        self.reference_window = self.reference_window.upper()

    def observations(self) -> Iterator[BaseObservation]:
        """Aligned, then deleted, then inserted observations."""
        yield from self.aligned
        yield from self.deleted
        yield from self.inserted

    def ref_slice(self, start: int, end: int) -> Optional[str]:
        """Reference bases at offsets [start, end) relative to the locus, or None off the window."""
        lo = self.window_offset + start
        hi = self.window_offset + end
        if lo < 0 or hi > len(self.reference_window) or lo > hi:
            return None
        return self.reference_window[lo:hi]

    def mate_of(self, obs: BaseObservation) -> Optional[BaseObservation]:
        """The aligned observation of ``obs``'s mate at this locus, if the mates overlap here."""
        if not obs.is_paired:
            return None
        if self._by_name is None:
            by_name: Dict[str, List[BaseObservation]] = {}
            for o in self.aligned:
                by_name.setdefault(o.qname, []).append(o)
            self._by_name = by_name
        for other in self._by_name.get(obs.qname, []):
            if other.is_paired and other.ordinality != obs.ordinality:
                return other
        return None
