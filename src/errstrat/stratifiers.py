"""Per-base stratifiers.

A stratifier maps one :class:`~errstrat.models.BaseObservation` and its
:class:`~errstrat.models.LocusContext` to a discrete value. Stratifiers are pure and
total: when a value does not apply (unpaired read, base at the edge of the reference
window, ...) they return ``None`` instead of raising.

Stratifiers compose into a :class:`CompositeStratifier`, whose key is the tuple of
component values in order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from .models import AlignmentType, BaseObservation, LocusContext
from .utils import reverse_complement

StratumValue = Any
StratumKey = Tuple[StratumValue, ...]

DEFAULT_LONG_HOMOPOLYMER = 6
INSERT_LENGTH_BIN = 10
MAX_INSERT_LENGTH = 1000
NOT_APPLICABLE = "NA"


class Stratification(Enum):
    """Available stratifier kinds. Member name is the directive name, value the suffix."""

    ALL = "all"
    BASE_QUALITY = "base_quality"
    INSERT_LENGTH = "insert_length"
    GC_CONTENT = "gc"
    READ_DIRECTION = "read_direction"
    PAIR_ORIENTATION = "pair_orientation"
    HOMOPOLYMER = "homopolymer"
    BINNED_HOMOPOLYMER = "binned_homopolymer"
    CYCLE = "cycle"
    READ_ORDINALITY = "read_ordinality"
    MAPPING_QUALITY = "mapping_quality"
    READ_GROUP = "read_group"
    MISMATCHES_IN_READ = "mismatches_in_read"
    ONE_BASE_PADDED_CONTEXT = "one_base_padded_context"
    TWO_BASE_PADDED_CONTEXT = "two_base_padded_context"
    PRE_DINUC = "pre_dinuc"
    POST_DINUC = "post_dinuc"
    INDEL_LENGTH = "indel_length"

    @property
    def suffix(self) -> str:
        return self.value


# -----------------
# Stratifier functions
# -----------------

def _all(obs: BaseObservation, ctx: LocusContext) -> str:
    return "all"


def _base_quality(obs: BaseObservation, ctx: LocusContext) -> Optional[int]:
    if obs.alignment_type != AlignmentType.MATCH:
        return None
    return obs.quality


def _insert_length(obs: BaseObservation, ctx: LocusContext) -> Optional[int]:
    if not obs.is_paired or obs.mate_unmapped or obs.template_length == 0:
        return None
    length = abs(obs.template_length)
    return min(length - length % INSERT_LENGTH_BIN, MAX_INSERT_LENGTH)


def _gc_content(obs: BaseObservation, ctx: LocusContext) -> Optional[float]:
    window = ctx.reference_window
    called = sum(window.count(b) for b in "ACGT")
    if called == 0:
        return None
    gc = window.count("G") + window.count("C")
    return round(gc / called, 2)


def _read_direction(obs: BaseObservation, ctx: LocusContext) -> str:
    return "NEGATIVE" if obs.is_reverse else "POSITIVE"


def _pair_orientation(obs: BaseObservation, ctx: LocusContext) -> Optional[str]:
    if not obs.is_paired or obs.mate_unmapped:
        return None
    # first-of-pair on the forward strand and second-of-pair on the reverse are both F1R2
    return "F1R2" if obs.is_read1 != obs.is_reverse else "F2R1"


def _homopolymer_run(obs: BaseObservation, ctx: LocusContext) -> Tuple[int, bool]:
    """Length of the reference run preceding the base, and whether it hit the window edge.

    A run that reaches the edge of the reference window may continue beyond it, so its
    length is only a lower bound.
    """
    step = 1 if obs.is_reverse else -1
    first = ctx.ref_slice(step, step + 1)
    if not first:
        return 0, True
    length = 1
    delta = 2 * step
    while True:
        nxt = ctx.ref_slice(delta, delta + 1)
        if nxt is None:
            return length, True
        if nxt != first:
            return length, False
        length += 1
        delta += step


def _homopolymer_length(obs: BaseObservation, ctx: LocusContext) -> Optional[int]:
    length, at_edge = _homopolymer_run(obs, ctx)
    return None if at_edge else length


def _binned_homopolymer(obs: BaseObservation, ctx: LocusContext, *, long_homopolymer: int) -> Optional[str]:
    length, at_edge = _homopolymer_run(obs, ctx)
    if length >= long_homopolymer and length > 0:
        return "LONG_HOMOPOLYMER"
    if at_edge:
        return None
    return "SHORT_HOMOPOLYMER"


def _cycle(obs: BaseObservation, ctx: LocusContext) -> int:
    if obs.is_reverse:
        return obs.read_length - obs.offset
    return obs.offset + 1


def _read_ordinality(obs: BaseObservation, ctx: LocusContext) -> str:
    return obs.ordinality


def _mapping_quality(obs: BaseObservation, ctx: LocusContext) -> int:
    return obs.mapping_quality


def _read_group(obs: BaseObservation, ctx: LocusContext) -> Optional[str]:
    return obs.read_group


def _mismatches_in_read(obs: BaseObservation, ctx: LocusContext) -> Optional[int]:
    return obs.mismatches


def _oriented(obs: BaseObservation, bases: Optional[str]) -> Optional[str]:
    if bases is None:
        return None
    return reverse_complement(bases) if obs.is_reverse else bases


def _padded_context(obs: BaseObservation, ctx: LocusContext, *, padding: int) -> Optional[str]:
    return _oriented(obs, ctx.ref_slice(-padding, padding + 1))


def _pre_dinuc(obs: BaseObservation, ctx: LocusContext) -> Optional[str]:
    if obs.is_reverse:
        return _oriented(obs, ctx.ref_slice(1, 3))
    return ctx.ref_slice(-2, 0)


def _post_dinuc(obs: BaseObservation, ctx: LocusContext) -> Optional[str]:
    if obs.is_reverse:
        return _oriented(obs, ctx.ref_slice(-2, 0))
    return ctx.ref_slice(1, 3)


def _indel_length(obs: BaseObservation, ctx: LocusContext) -> Optional[int]:
    if obs.alignment_type == AlignmentType.MATCH:
        return None
    return obs.indel_length


_DESCRIPTIONS: Dict[Stratification, str] = {
    Stratification.ALL: "No stratification: every base in one stratum.",
    Stratification.BASE_QUALITY: "Base quality of the read base.",
    Stratification.INSERT_LENGTH: (
        f"Insert length in {INSERT_LENGTH_BIN} bp bins, capped at {MAX_INSERT_LENGTH}."
    ),
    Stratification.GC_CONTENT: "GC fraction of the reference window around the locus.",
    Stratification.READ_DIRECTION: "Strand of the read (POSITIVE/NEGATIVE).",
    Stratification.PAIR_ORIENTATION: "Pair orientation (F1R2/F2R1).",
    Stratification.HOMOPOLYMER: (
        "Length of the reference homopolymer preceding the base in read direction; "
        "NA when the run reaches the edge of the reference window (see --window)."
    ),
    Stratification.BINNED_HOMOPOLYMER: "SHORT_HOMOPOLYMER or LONG_HOMOPOLYMER (see --long-homopolymer).",
    Stratification.CYCLE: "1-based position in the read, in sequencing direction.",
    Stratification.READ_ORDINALITY: "FIRST, SECOND or UNPAIRED.",
    Stratification.MAPPING_QUALITY: "Mapping quality of the read.",
    Stratification.READ_GROUP: "Read group (RG tag).",
    Stratification.MISMATCHES_IN_READ: "Edit distance of the read (NM tag).",
    Stratification.ONE_BASE_PADDED_CONTEXT: "Reference base with one flanking base each side, read orientation.",
    Stratification.TWO_BASE_PADDED_CONTEXT: "Reference base with two flanking bases each side, read orientation.",
    Stratification.PRE_DINUC: "The two reference bases preceding the base, read orientation.",
    Stratification.POST_DINUC: "The two reference bases following the base, read orientation.",
    Stratification.INDEL_LENGTH: "Length of the insertion or deletion.",
}


def describe(kind: Stratification) -> str:
    return _DESCRIPTIONS[kind]


@dataclass(frozen=True)
class Stratifier:
    """One stratification axis. ``param`` distinguishes parametrised variants."""

    kind: Stratification
    func: Callable[[BaseObservation, LocusContext], StratumValue] = field(compare=False, repr=False)
    param: Optional[int] = None

    @property
    def name(self) -> str:
        return self.kind.name

    @property
    def suffix(self) -> str:
        return self.kind.suffix

    def classify(self, obs: BaseObservation, ctx: LocusContext) -> StratumValue:
        return self.func(obs, ctx)


_SIMPLE: Dict[Stratification, Callable[[BaseObservation, LocusContext], StratumValue]] = {
    Stratification.ALL: _all,
    Stratification.BASE_QUALITY: _base_quality,
    Stratification.INSERT_LENGTH: _insert_length,
    Stratification.GC_CONTENT: _gc_content,
    Stratification.READ_DIRECTION: _read_direction,
    Stratification.PAIR_ORIENTATION: _pair_orientation,
    Stratification.HOMOPOLYMER: _homopolymer_length,
    Stratification.CYCLE: _cycle,
    Stratification.READ_ORDINALITY: _read_ordinality,
    Stratification.MAPPING_QUALITY: _mapping_quality,
    Stratification.READ_GROUP: _read_group,
    Stratification.MISMATCHES_IN_READ: _mismatches_in_read,
    Stratification.ONE_BASE_PADDED_CONTEXT: partial(_padded_context, padding=1),
    Stratification.TWO_BASE_PADDED_CONTEXT: partial(_padded_context, padding=2),
    Stratification.PRE_DINUC: _pre_dinuc,
    Stratification.POST_DINUC: _post_dinuc,
    Stratification.INDEL_LENGTH: _indel_length,
}


def make_stratifier(kind: Stratification, *, long_homopolymer: int = DEFAULT_LONG_HOMOPOLYMER) -> Stratifier:
    if kind == Stratification.BINNED_HOMOPOLYMER:
        return Stratifier(
            kind=kind,
            func=partial(_binned_homopolymer, long_homopolymer=long_homopolymer),
            param=long_homopolymer,
        )
    return Stratifier(kind=kind, func=_SIMPLE[kind])


NON_STRATIFIER = make_stratifier(Stratification.ALL)


@dataclass(frozen=True)
class CompositeStratifier:
    """Ordered combination of stratifiers. Order determines key layout and suffix."""

    stratifiers: Tuple[Stratifier, ...]

    @classmethod
    def of(cls, stratifiers: Iterable[Stratifier]) -> "CompositeStratifier":
        items = tuple(stratifiers)
        if not items:
            items = (NON_STRATIFIER,)
        return cls(stratifiers=items)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(s.name for s in self.stratifiers)

    @property
    def suffixes(self) -> Tuple[str, ...]:
        return tuple(s.suffix for s in self.stratifiers)

    @property
    def suffix(self) -> str:
        return "_and_".join(self.suffixes)

    def classify(self, obs: BaseObservation, ctx: LocusContext) -> StratumKey:
        return tuple(s.classify(obs, ctx) for s in self.stratifiers)


def render_value(value: StratumValue) -> str:
    if value is None:
        return NOT_APPLICABLE
    return str(value)


def render_key(key: StratumKey) -> str:
    return "_".join(render_value(v) for v in key)


def _sort_token(value: StratumValue) -> Tuple[int, Any]:
    if value is None:
        return (2, "")
    if isinstance(value, bool):
        return (1, str(value))
    if isinstance(value, (int, float)):
        return (0, value)
    return (1, str(value))


def key_sort_token(key: StratumKey) -> Tuple[Tuple[int, Any], ...]:
    """Total order over stratum keys: numbers, then strings, then not-applicable."""
    return tuple(_sort_token(v) for v in key)
