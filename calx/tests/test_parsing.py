"""Tests for the infix and s-expression parsers."""

import pytest
from calx import ComputeEngine, parse, parse_sexpr


class TestInfix:
    """Tests for infix text."""

    def test_polynomial(self):
        """Sums flatten, products and powers nest."""
        assert parse("x^2 + 2*x + 1") == ["Add", ["Power", "x", 2], ["Multiply", 2, "x"], 1]

    def test_implicit_product(self):
        """A number before a name or a parenthesis multiplies."""
        assert parse("2x") == ["Multiply", 2, "x"]
        assert parse("3(x + 1)") == ["Multiply", 3, ["Add", "x", 1]]

    def test_subtract_and_negate(self):
        """Binary minus is Subtract, unary minus Negate (or a negative number)."""
        assert parse("x - y") == ["Subtract", "x", "y"]
        assert parse("-x") == ["Negate", "x"]
        assert parse("-3") == -3

    def test_division(self):
        """Division is left associative."""
        assert parse("a / b / c") == ["Divide", ["Divide", "a", "b"], "c"]

    def test_power_right_associative(self):
        """2^3^2 is 2^(3^2)."""
        assert parse("2^3^2") == ["Power", 2, ["Power", 3, 2]]

    def test_functions_and_constants(self):
        """Known function names map to operators."""
        assert parse("sqrt(x)") == ["Sqrt", "x"]
        assert parse("abs(x - 1)") == ["Abs", ["Subtract", "x", 1]]
        assert parse("f(x, y)") == ["f", "x", "y"]
        assert parse("pi") == "Pi"

    def test_numbers(self):
        """Short decimals are floats, long ones keep their digits."""
        assert parse("1.5") == 1.5
        assert parse("3.14159265358979323846") == {"num": "3.14159265358979323846"}

    def test_strings(self):
        """Quoted strings are kept."""
        assert parse("'hello'") == "'hello'"

    def test_comparisons(self):
        """Relations and membership."""
        assert parse("n > 0") == ["Greater", "n", 0]
        assert parse("x <= y") == ["LessEqual", "x", "y"]
        assert parse("x != 1") == ["NotEqual", "x", 1]
        assert parse("n in Integer") == ["Element", "n", "Integer"]

    def test_logic(self):
        """not binds tighter than and, and tighter than or."""
        assert parse("not x > 1 and y < 2") == ["And", ["Not", ["Greater", "x", 1]], ["Less", "y", 2]]
        assert parse("a > 0 or b > 0") == ["Or", ["Greater", "a", 0], ["Greater", "b", 0]]

    def test_wildcards(self):
        """With wildcards, single letters become wildcards."""
        assert parse("x + 0", wildcards=True) == ["Add", "_x", 0]
        assert parse("f(x)", wildcards=True) == ["_f", "_x"]
        assert parse("xy + 0", wildcards=True) == ["Add", "xy", 0]

    def test_parenthesized_infix(self):
        """A parenthesized infix expression is not an s-expression."""
        assert parse("(x + 1)") == ["Add", "x", 1]

    def test_errors(self):
        """Malformed text raises ValueError."""
        for text in ("", "x +", "x $ y", "(x + 1", "x )"):
            with pytest.raises(ValueError):
                parse(text)

    def test_engine_parse(self):
        """ce.parse boxes the result."""
        ce = ComputeEngine()
        assert ce.parse("x + 0").json == "x"
        assert ce.parse("x + 0", canonical=False).json == ["Add", "x", 0]


class TestSexpr:
    """Tests for s-expressions."""

    def test_operators(self):
        """Operator symbols map to MathJSON names."""
        assert parse_sexpr("(+ x 1)") == ["Add", "x", 1]
        assert parse_sexpr("(^ x 2)") == ["Power", "x", 2]

    def test_nested(self):
        """Nested lists."""
        assert parse_sexpr("(f (g x) 2)") == ["f", ["g", "x"], 2]

    def test_pattern_variables(self):
        """?x is _x, ?xs... is __xs."""
        assert parse_sexpr("(^ ?x 2)") == ["Power", "_x", 2]
        assert parse_sexpr("(* ?xs... 1)") == ["Multiply", "__xs", 1]
        assert parse_sexpr("?") == "_"

    def test_dispatch(self):
        """parse() recognizes s-expressions."""
        assert parse("(+ ?x 0)") == ["Add", "_x", 0]
        assert parse("(Sin x)") == ["Sin", "x"]

    def test_unbalanced(self):
        """Unbalanced parentheses raise ValueError."""
        with pytest.raises(ValueError):
            parse_sexpr("(+ x 1")
