from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, Iterable, List, Tuple, Type

from .calculators import (
    ErrorCalculator,
    IndelErrorCalculator,
    OverlappingErrorCalculator,
    SimpleErrorCalculator,
)
from .errors import DirectiveError, DuplicateSuffixError, TooManyTermsError, UnknownNameError
from .metrics import ErrorMetric, IndelErrorMetric, OverlappingErrorMetric, SimpleErrorMetric
from .models import BaseObservation, LocusContext
from .stratifiers import (
    DEFAULT_LONG_HOMOPOLYMER,
    CompositeStratifier,
    Stratification,
    StratumKey,
    key_sort_token,
    make_stratifier,
    render_key,
)

logger = logging.getLogger(__name__)

DIRECTIVE_SEPARATOR = ":"
MAX_DIRECTIVE_TERMS = len(Stratification) + 1

DEFAULT_DIRECTIVES = [
    "ERROR",
    "ERROR:BASE_QUALITY",
    "ERROR:INSERT_LENGTH",
    "ERROR:GC_CONTENT",
    "ERROR:READ_DIRECTION",
    "ERROR:PAIR_ORIENTATION",
    "ERROR:HOMOPOLYMER",
    "ERROR:BINNED_HOMOPOLYMER",
    "ERROR:CYCLE",
    "ERROR:READ_ORDINALITY",
    "ERROR:READ_ORDINALITY:CYCLE",
    "ERROR:READ_ORDINALITY:HOMOPOLYMER",
    "ERROR:READ_ORDINALITY:GC_CONTENT",
    "ERROR:READ_ORDINALITY:PRE_DINUC",
    "ERROR:MAPPING_QUALITY",
    "ERROR:READ_GROUP",
    "ERROR:MISMATCHES_IN_READ",
    "ERROR:ONE_BASE_PADDED_CONTEXT",
    "OVERLAPPING_ERROR",
    "OVERLAPPING_ERROR:BASE_QUALITY",
    "OVERLAPPING_ERROR:INSERT_LENGTH",
    "OVERLAPPING_ERROR:READ_ORDINALITY",
    "OVERLAPPING_ERROR:READ_ORDINALITY:CYCLE",
    "OVERLAPPING_ERROR:READ_ORDINALITY:HOMOPOLYMER",
    "OVERLAPPING_ERROR:READ_ORDINALITY:GC_CONTENT",
    "INDEL_ERROR",
]


class ErrorType(Enum):
    """Available error calculators. Member name is the directive name, value the suffix."""

    ERROR = "error"
    OVERLAPPING_ERROR = "overlapping_error"
    INDEL_ERROR = "indel_error"

    @property
    def suffix(self) -> str:
        return self.value

    @property
    def calculator_factory(self) -> Callable[[], ErrorCalculator]:
        return _CALCULATORS[self]

    @property
    def metric_class(self) -> Type[ErrorMetric]:
        return _METRIC_CLASSES[self]

    @property
    def description(self) -> str:
        return _ERROR_DESCRIPTIONS[self]


_CALCULATORS: Dict[ErrorType, Callable[[], ErrorCalculator]] = {
    ErrorType.ERROR: SimpleErrorCalculator,
    ErrorType.OVERLAPPING_ERROR: OverlappingErrorCalculator,
    ErrorType.INDEL_ERROR: IndelErrorCalculator,
}

_METRIC_CLASSES: Dict[ErrorType, Type[ErrorMetric]] = {
    ErrorType.ERROR: SimpleErrorMetric,
    ErrorType.OVERLAPPING_ERROR: OverlappingErrorMetric,
    ErrorType.INDEL_ERROR: IndelErrorMetric,
}

_ERROR_DESCRIPTIONS: Dict[ErrorType, str] = {
    ErrorType.ERROR: "Substitution errors against the reference.",
    ErrorType.OVERLAPPING_ERROR: (
        "Substitution errors at positions covered by both mates, split by mate agreement."
    ),
    ErrorType.INDEL_ERROR: "Insertion and deletion events per aligned base.",
}


class BaseErrorAggregation:
    """One error calculator type bound to one composite stratifier.

    Calculators are created lazily, one per stratum key actually observed.
    """

    def __init__(self, error_type: ErrorType, stratifier: CompositeStratifier) -> None:
        self.error_type = error_type
        self.stratifier = stratifier
        self._factory = error_type.calculator_factory
        self._strata: Dict[StratumKey, ErrorCalculator] = {}

    def __repr__(self) -> str:
        return f"BaseErrorAggregation({self.suffix!r}, strata={len(self._strata)})"

    @property
    def suffix(self) -> str:
        return f"{self.error_type.suffix}_by_{self.stratifier.suffix}"

    def keys(self) -> List[StratumKey]:
        return sorted(self._strata, key=key_sort_token)

    def add_base(self, obs: BaseObservation, ctx: LocusContext) -> None:
        key = self.stratifier.classify(obs, ctx)
        calc = self._strata.get(key)
        if calc is None:
            calc = self._factory()
            self._strata[key] = calc
        calc.add_base(obs, ctx)

    def metrics(self, prior_q: int) -> List[ErrorMetric]:
        """Finalized metrics for every observed stratum, in key order."""
        return [self._strata[key].finalize(render_key(key), prior_q) for key in self.keys()]

    def keyed_metrics(self, prior_q: int) -> List[Tuple[StratumKey, ErrorMetric]]:
        """Like :meth:`metrics` but paired with the raw stratum keys."""
        return [(key, self._strata[key].finalize(render_key(key), prior_q)) for key in self.keys()]


def _resolve_error_type(name: str) -> ErrorType:
    try:
        return ErrorType[name]
    except KeyError:
        raise UnknownNameError("error type", name, [e.name for e in ErrorType]) from None


def _resolve_stratification(name: str) -> Stratification:
    try:
        return Stratification[name]
    except KeyError:
        raise UnknownNameError("stratifier", name, [s.name for s in Stratification]) from None


def parse_directive(
    directive: str,
    *,
    long_homopolymer: int = DEFAULT_LONG_HOMOPOLYMER,
) -> BaseErrorAggregation:
    """Parse ``ERROR_TYPE(:STRATIFIER)*`` into a :class:`BaseErrorAggregation`.

    Raises
    ------
    DirectiveError
        Empty directive.
    TooManyTermsError
        More terms than stratifier kinds plus one.
    UnknownNameError
        Unknown error type or stratifier name (names are case sensitive).
    """
    if directive is None or not directive.strip():
        raise DirectiveError("Found an empty directive. Cannot process.")

    terms = [t.strip() for t in directive.split(DIRECTIVE_SEPARATOR)]
    if len(terms) > MAX_DIRECTIVE_TERMS:
        raise TooManyTermsError(
            f"Cannot parse more than the number of different stratifiers plus one "
            f"({MAX_DIRECTIVE_TERMS}) terms in a single directive: {directive!r}"
        )

    error_type = _resolve_error_type(terms[0])
    stratifiers = [
        make_stratifier(_resolve_stratification(name), long_homopolymer=long_homopolymer)
        for name in terms[1:]
    ]
    return BaseErrorAggregation(error_type, CompositeStratifier.of(stratifiers))


def build_aggregations(
    directives: Iterable[str],
    *,
    long_homopolymer: int = DEFAULT_LONG_HOMOPOLYMER,
) -> List[BaseErrorAggregation]:
    """Parse every directive and reject the set if two of them share a suffix."""
    aggregations: List[BaseErrorAggregation] = []
    seen: Dict[str, str] = {}
    for directive in directives:
        agg = parse_directive(directive, long_homopolymer=long_homopolymer)
        if agg.suffix in seen:
            raise DuplicateSuffixError(
                f"Duplicated suffix ({agg.suffix}) found for directives "
                f"{seen[agg.suffix]!r} and {directive!r}."
            )
        seen[agg.suffix] = directive
        aggregations.append(agg)
    if not aggregations:
        raise DirectiveError("No directives given. Cannot process.")
    logger.debug("Parsed %d directives: %s", len(aggregations), ", ".join(seen))
    return aggregations
