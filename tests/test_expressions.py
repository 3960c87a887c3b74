import pytest

import finreport.expressions as expressions
from finreport.errors import ExpressionSyntaxError, UndefinedReferenceError
from finreport.expressions import (
    BinaryNode,
    ExpressionEvaluator,
    NumberNode,
    OrderNode,
    VariableNode,
    parse_expression,
    tokenize,
)


def _eval(text: str, context=None):
    return ExpressionEvaluator().evaluate(text, context or {})


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


def test_tokenize_mixed_expression() -> None:
    tokens = tokenize("(revenue - @10) / 2.5")

    assert [(t.type, t.value) for t in tokens] == [
        ("operator", "("),
        ("variable", "revenue"),
        ("operator", "-"),
        ("order", "@10"),
        ("operator", ")"),
        ("operator", "/"),
        ("number", "2.5"),
    ]
    assert tokens[3].position == 11


def test_tokenize_identifier_with_digits_and_underscore() -> None:
    tokens = tokenize("_gross_margin_2")
    assert len(tokens) == 1
    assert tokens[0].type == "variable"
    assert tokens[0].value == "_gross_margin_2"


@pytest.mark.parametrize(
    "text, position",
    [
        ("1 + $", 4),
        ("1..2", 2),
        ("a + é", 4),
    ],
)
def test_tokenize_reports_position_of_bad_character(text: str, position: int) -> None:
    with pytest.raises(ExpressionSyntaxError) as exc_info:
        tokenize(text)
    assert exc_info.value.position == position
    assert f"at position {position}" in str(exc_info.value)


def test_tokenize_order_reference_requires_digits() -> None:
    with pytest.raises(ExpressionSyntaxError, match="Invalid order reference"):
        tokenize("@ 10")


@pytest.mark.parametrize("text", ["", "   "])
def test_tokenize_rejects_empty_expression(text: str) -> None:
    with pytest.raises(ExpressionSyntaxError):
        tokenize(text)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def test_parse_builds_left_associative_tree() -> None:
    node = parse_expression("a - b - 1")

    assert node == BinaryNode(
        "-",
        BinaryNode("-", VariableNode("a"), VariableNode("b")),
        NumberNode(1.0),
    )


def test_parse_order_reference_node() -> None:
    assert parse_expression("@20") == OrderNode("@20")


@pytest.mark.parametrize(
    "text, message",
    [
        ("1 +", "Unexpected end of expression"),
        ("(1 + 2", "Missing closing parenthesis"),
        ("(1 2)", "Expected ')' but found '2' at position 3"),
        ("1 2", "Unexpected token '2' at position 2"),
        ("* 2", "Unexpected token '*' at position 0"),
        ("1 + )", "Unexpected token ')' at position 4"),
    ],
)
def test_parse_errors(text: str, message: str) -> None:
    with pytest.raises(ExpressionSyntaxError) as exc_info:
        parse_expression(text)
    assert message in str(exc_info.value)


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "text, expected",
    [
        ("2 + 3 * 4", 14.0),
        ("(2 + 3) * 4", 20.0),
        ("10 - 4 - 3", 3.0),
        ("12 / 3 / 2", 2.0),
        ("-5 + 2", -3.0),
        ("--2", 2.0),
        ("+3 * -2", -6.0),
        ("3.", 3.0),
        ("0.5 * 4", 2.0),
    ],
)
def test_evaluate_arithmetic(text: str, expected: float) -> None:
    assert _eval(text) == pytest.approx(expected)


def test_evaluate_with_variables_and_order_references() -> None:
    context = {"revenue": 1000.0, "cogs": -400.0, "@10": 100.0}

    assert _eval("revenue + cogs", context) == pytest.approx(600.0)
    assert _eval("@10 * 2", context) == pytest.approx(200.0)
    assert _eval("(revenue + cogs) / revenue * 100", context) == pytest.approx(60.0)


def test_division_by_zero_is_undefined() -> None:
    assert _eval("10 / 0") is None
    assert _eval("(10 / 0) + 1") is None
    assert _eval("-(1 / (2 - 2))") is None
    assert _eval("revenue / cogs", {"revenue": 10.0, "cogs": 0.0}) is None


def test_undefined_context_value_propagates() -> None:
    assert _eval("a + 1", {"a": None}) is None


def test_undefined_variable_raises() -> None:
    with pytest.raises(UndefinedReferenceError) as exc_info:
        _eval("revenue + 1", {})

    assert exc_info.value.name == "revenue"
    assert str(exc_info.value) == "Undefined variable: revenue"


def test_undefined_order_reference_raises() -> None:
    with pytest.raises(UndefinedReferenceError, match="Undefined order reference: @99"):
        _eval("@99 + 1", {"@10": 1.0})


def test_missing_reference_on_right_is_reported_even_if_left_is_undefined() -> None:
    with pytest.raises(UndefinedReferenceError, match="missing"):
        _eval("(1 / 0) + missing", {})


def test_expression_errors_are_value_errors() -> None:
    with pytest.raises(ValueError):
        _eval("1 +")


# ---------------------------------------------------------------------------
# Evaluator cache and helpers
# ---------------------------------------------------------------------------


def test_evaluator_parses_each_text_once(monkeypatch) -> None:
    """Repeated evaluations of the same text must not re-tokenize it."""
    calls = []
    original = expressions.tokenize

    def counting_tokenize(text):
        calls.append(text)
        return original(text)

    monkeypatch.setattr(expressions, "tokenize", counting_tokenize)

    evaluator = ExpressionEvaluator()
    assert evaluator.evaluate("a + b", {"a": 1.0, "b": 2.0}) == pytest.approx(3.0)
    assert evaluator.evaluate("a + b", {"a": 5.0, "b": 5.0}) == pytest.approx(10.0)

    assert calls == ["a + b"]
    assert evaluator.cache_size == 1

    # Cache keys are the exact text.
    evaluator.evaluate("a+b", {"a": 1.0, "b": 2.0})
    assert calls == ["a + b", "a+b"]
    assert evaluator.cache_size == 2


def test_clear_cache_forces_reparse(monkeypatch) -> None:
    calls = []
    original = expressions.tokenize
    monkeypatch.setattr(
        expressions, "tokenize", lambda text: calls.append(text) or original(text)
    )

    evaluator = ExpressionEvaluator()
    evaluator.evaluate("1 + 1", {})
    evaluator.clear_cache()
    assert evaluator.cache_size == 0

    evaluator.evaluate("1 + 1", {})
    assert len(calls) == 2


def test_caches_are_per_instance() -> None:
    first = ExpressionEvaluator()
    second = ExpressionEvaluator()

    first.parse("x * 2")

    assert first.cache_size == 1
    assert second.cache_size == 0


def test_get_dependencies_keeps_first_appearance_order() -> None:
    evaluator = ExpressionEvaluator()
    deps = evaluator.get_dependencies("revenue - cogs + @10 * revenue / @10")
    assert deps == ["revenue", "cogs", "@10"]


def test_validate_returns_messages() -> None:
    evaluator = ExpressionEvaluator()

    assert evaluator.validate("(a + b) * 2") == []

    errors = evaluator.validate("(a + b")
    assert len(errors) == 1
    assert "Missing closing parenthesis" in errors[0]
