import pytest

from errstrat.aggregation import (
    DEFAULT_DIRECTIVES,
    MAX_DIRECTIVE_TERMS,
    ErrorType,
    build_aggregations,
    parse_directive,
)
from errstrat.errors import (
    ConfigurationError,
    DirectiveError,
    DuplicateSuffixError,
    TooManyTermsError,
    UnknownNameError,
)
from errstrat.stratifiers import Stratification


def test_unstratified_directive_suffix():
    agg = parse_directive("ERROR")
    assert agg.error_type is ErrorType.ERROR
    assert agg.suffix == "error_by_all"


def test_stratified_suffix_follows_term_order():
    assert parse_directive("ERROR:READ_ORDINALITY:CYCLE").suffix == "error_by_read_ordinality_and_cycle"
    assert parse_directive("ERROR:CYCLE:READ_ORDINALITY").suffix == "error_by_cycle_and_read_ordinality"
    assert parse_directive("INDEL_ERROR:GC_CONTENT").suffix == "indel_error_by_gc"
    assert parse_directive("OVERLAPPING_ERROR:BASE_QUALITY").suffix == "overlapping_error_by_base_quality"


def test_parsing_is_deterministic():
    a = parse_directive("ERROR:READ_GROUP:BINNED_HOMOPOLYMER", long_homopolymer=5)
    b = parse_directive("ERROR:READ_GROUP:BINNED_HOMOPOLYMER", long_homopolymer=5)
    assert a.suffix == b.suffix
    assert a.stratifier == b.stratifier
    assert a.stratifier.names == ("READ_GROUP", "BINNED_HOMOPOLYMER")


def test_terms_are_trimmed():
    assert parse_directive(" ERROR : CYCLE ").suffix == "error_by_cycle"


@pytest.mark.parametrize("directive", ["", "   "])
def test_empty_directive_rejected(directive):
    with pytest.raises(DirectiveError):
        parse_directive(directive)


@pytest.mark.parametrize("directive", ["FOO", "error", "ERROR:FOO", "ERROR:cycle"])
def test_unknown_names_rejected(directive):
    with pytest.raises(UnknownNameError) as excinfo:
        parse_directive(directive)
    assert "Valid values" in str(excinfo.value)


def test_too_many_terms_distinct_from_unknown_name():
    assert MAX_DIRECTIVE_TERMS == len(Stratification) + 1

    at_limit = "ERROR" + ":CYCLE" * (MAX_DIRECTIVE_TERMS - 1)
    parse_directive(at_limit)

    with pytest.raises(TooManyTermsError):
        parse_directive("ERROR" + ":CYCLE" * MAX_DIRECTIVE_TERMS)
    with pytest.raises(TooManyTermsError):
        parse_directive("ERROR" + ":NOPE" * MAX_DIRECTIVE_TERMS)


def test_duplicate_suffixes_rejected():
    with pytest.raises(DuplicateSuffixError):
        build_aggregations(["ERROR:CYCLE", "ERROR:MAPPING_QUALITY", " ERROR : CYCLE "])


def test_no_directives_rejected():
    with pytest.raises(DirectiveError):
        build_aggregations([])


def test_directive_errors_are_configuration_errors():
    with pytest.raises(ConfigurationError):
        parse_directive("ERROR:FOO")
    with pytest.raises(ValueError):
        build_aggregations(["ERROR", "ERROR"])


def test_default_directives_parse_with_unique_suffixes():
    aggs = build_aggregations(DEFAULT_DIRECTIVES)
    suffixes = [a.suffix for a in aggs]
    assert len(suffixes) == len(set(suffixes)) == len(DEFAULT_DIRECTIVES)
    assert "error_by_all" in suffixes
    assert "indel_error_by_all" in suffixes
    assert "overlapping_error_by_read_ordinality_and_cycle" in suffixes
