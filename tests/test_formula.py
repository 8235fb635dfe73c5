"""Unit tests for the formula tokenizer, parser and evaluator."""

from __future__ import annotations

import pytest

from analysis.dto import NA
from analysis.evaluator import evaluate_formula
from analysis.formula import (
    BinaryOp,
    MAX_NESTING_DEPTH,
    FormulaSyntaxError,
    ManualValue,
    Number,
    Parameter,
    Variable,
    formula_identifiers,
    formula_parameter_keys,
    inspect_formula,
    parse_formula,
    tokenize,
)
from analysis.variables import DEFAULT_REGISTRY

pytestmark = pytest.mark.unit


def test_tokenize_recognizes_bracket_tokens_and_operators() -> None:
    """Bracket references stay single tokens; whitespace is dropped."""

    tokens = tokenize("([stats.female] + 2.5) * [PARAM:price]")
    assert [token.kind for token in tokens] == ["op", "bracket", "op", "number", "op", "op", "bracket"]
    assert tokens[1].text == "[stats.female]"


def test_parse_respects_operator_precedence() -> None:
    """Multiplication binds tighter than addition."""

    node = parse_formula("1 + 2 * 3")
    assert node == BinaryOp(op="+", left=Number(1.0), right=BinaryOp(op="*", left=Number(2.0), right=Number(3.0)))


def test_parse_normalizes_variable_references() -> None:
    """`female`, `stats.female` and `[stats.female]` all reference the same variable."""

    assert parse_formula("female") == Variable("female")
    assert parse_formula("stats.female") == Variable("female")
    assert parse_formula("[stats.female]") == Variable("female")


def test_parse_bracket_parameter_and_manual_tokens() -> None:
    """PARAM and MANUAL prefixes map to their own node types."""

    assert parse_formula("[PARAM:jerseyPrice]") == Parameter("jerseyPrice")
    assert parse_formula("[MANUAL:benchmark]") == ManualValue("benchmark")


@pytest.mark.parametrize(
    ("formula", "message"),
    [
        ("", "Formula is empty."),
        ("(1 + 2", "unclosed opening parenthesis"),
        ("1 + 2)", "closing parenthesis without opening"),
        ("1 +", "Unexpected end of formula"),
        ("2 ** 3", "Unexpected token"),
        ("female; drop", "Unexpected character"),
    ],
)
def test_parse_rejects_malformed_formulas(formula: str, message: str) -> None:
    """Malformed formulas raise FormulaSyntaxError with a readable message."""

    with pytest.raises(FormulaSyntaxError, match=message):
        parse_formula(formula)


def test_python_expressions_are_not_evaluated() -> None:
    """Only arithmetic is accepted; attribute access and calls are syntax errors."""

    with pytest.raises(FormulaSyntaxError):
        parse_formula("__import__('os').system('true')")


def test_formula_identifiers_and_parameter_keys() -> None:
    """Referenced variables and parameter keys are collected from the AST."""

    formula = "[stats.jersey] * [PARAM:jerseyPrice] + scarf"
    assert formula_identifiers(formula) == frozenset({"jersey", "scarf"})
    assert formula_parameter_keys(formula) == frozenset({"jerseyPrice"})


def test_evaluate_arithmetic_with_stats() -> None:
    """Formulas combine stats values with numeric literals."""

    stats = {"female": 30, "male": 20, "approvedImages": 10}
    assert evaluate_formula("([stats.female] + [stats.male]) / [stats.approvedImages]", stats) == 5.0
    assert evaluate_formula("-female + 40", stats) == 10.0


def test_evaluate_division_by_zero_is_na() -> None:
    """Dividing by zero yields NA instead of raising."""

    assert evaluate_formula("eventAttendees / 0", {"eventAttendees": 1000}) is NA


def test_evaluate_malformed_formula_is_na(caplog: pytest.LogCaptureFixture) -> None:
    """A malformed formula yields NA and logs a warning."""

    with caplog.at_level("WARNING", logger="analysis.evaluator"):
        assert evaluate_formula("(female + ", {"female": 1}) is NA
    assert "Malformed formula" in caplog.text


def test_evaluate_unknown_variable_is_na() -> None:
    """Unknown identifiers propagate NA through the whole expression."""

    assert evaluate_formula("female + notAVariable", {"female": 3}) is NA


def test_evaluate_parameters_and_manual_data() -> None:
    """PARAM and MANUAL tokens read from the element's mappings."""

    stats = {"jersey": 4}
    assert evaluate_formula("[stats.jersey] * [PARAM:jerseyPrice]", stats, parameters={"jerseyPrice": 85}) == 340.0
    assert evaluate_formula("[MANUAL:benchmark] - 1", stats, manual_data={"benchmark": 10}) == 9.0
    assert evaluate_formula("[stats.jersey] * [PARAM:missing]", stats, parameters={}) is NA


def test_inspect_formula_reports_unknown_identifiers() -> None:
    """Inspection separates registered variables from unknown names."""

    inspection = inspect_formula("[stats.female] + [stats.mystery] * [PARAM:k]", DEFAULT_REGISTRY)
    assert inspection.is_valid_syntax
    assert inspection.referenced_variables == frozenset({"female"})
    assert inspection.unknown_identifiers == frozenset({"mystery"})
    assert inspection.parameter_keys == frozenset({"k"})


def test_inspect_formula_reports_syntax_errors() -> None:
    """Inspection never raises for malformed formulas."""

    inspection = inspect_formula("(female", DEFAULT_REGISTRY)
    assert not inspection.is_valid_syntax
    assert inspection.error is not None


def test_out_of_range_literal_is_rejected() -> None:
    """Literals that overflow to infinity are syntax errors and evaluate to NA."""

    with pytest.raises(FormulaSyntaxError, match="out of range"):
        parse_formula("1e999")
    assert evaluate_formula("1e999", {}) is NA
    assert evaluate_formula("female * 1e999", {"female": 2}) is NA
    assert inspect_formula("1e999", DEFAULT_REGISTRY).is_valid_syntax is False


@pytest.mark.parametrize(
    "formula",
    [
        "(" * 300 + "female" + ")" * 300,
        "-" * 1200 + "1",
        " + ".join(["female"] * 150),
    ],
)
def test_deeply_nested_formula_is_rejected(formula: str, caplog: pytest.LogCaptureFixture) -> None:
    """Nesting past MAX_NESTING_DEPTH is a syntax error, never a crash."""

    with pytest.raises(FormulaSyntaxError, match="nested more than"):
        parse_formula(formula)
    with caplog.at_level("WARNING", logger="analysis.evaluator"):
        assert evaluate_formula(formula, {"female": 3}) is NA
    assert "Malformed formula" in caplog.text


def test_nesting_up_to_the_limit_still_evaluates() -> None:
    """Reasonably nested formulas are unaffected by the depth cap."""

    formula = "(" * (MAX_NESTING_DEPTH - 1) + "female" + ")" * (MAX_NESTING_DEPTH - 1)
    assert evaluate_formula(formula, {"female": 3}) == 3.0
    assert evaluate_formula("--female", {"female": 3}) == 3.0
