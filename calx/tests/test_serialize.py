"""Tests for MathJSON serialization."""

import math

import pytest
from calx import ComputeEngine


class TestJson:
    """Tests for the default json form."""

    def setup_method(self):
        """Set up test engine."""
        self.ce = ComputeEngine()

    def test_atoms(self):
        """Numbers, symbols and strings use the shorthand forms."""
        ce = self.ce
        assert ce.box(3).json == 3
        assert ce.box(0.25).json == 0.25
        assert ce.box("x").json == "x"
        assert ce.box("'hello'").json == "'hello'"

    def test_special_numbers(self):
        """Infinities and NaN use the dict form."""
        ce = self.ce
        assert ce.box(math.inf).json == {"num": "+Infinity"}
        assert ce.box(-math.inf).json == {"num": "-Infinity"}
        assert ce.box(math.nan).json == {"num": "NaN"}

    def test_long_decimal(self):
        """Decimals beyond machine precision keep their digits."""
        expr = self.ce.box({"num": "3.14159265358979323846"})
        assert expr.json == {"num": "3.14159265358979323846"}

    def test_rational(self):
        """Rationals serialize as Rational."""
        assert self.ce.box(["Divide", 1, 3]).json == ["Rational", 1, 3]

    def test_round_trip(self):
        """Boxing the json of a canonical expression gives the same expression."""
        ce = self.ce
        expr = ce.box(["Add", ["Multiply", 2, "x"], ["Power", "y", 2], ["Divide", 1, 3]])
        assert ce.box(expr.json).is_same(expr)

    def test_str(self):
        """str() renders infix text."""
        ce = self.ce
        assert str(ce.box(["Add", "x", 1])) == "1 + x"
        assert str(ce.box(["Multiply", 2, ["Add", "x", 1]])) == "2*(1 + x)"
        assert str(ce.box(["Subtract", "x", "y"])) == "x - y"


class TestOptions:
    """Tests for to_math_json() options."""

    def setup_method(self):
        """Set up test engine."""
        self.ce = ComputeEngine()

    def test_prettify_subtract(self):
        """prettify turns x + -1 back into x - 1."""
        expr = self.ce.box(["Subtract", "x", 1])
        assert expr.json == ["Add", -1, "x"]
        assert expr.to_math_json(prettify=True) == ["Subtract", "x", 1]

    def test_exclude(self):
        """Excluded sugar is not used."""
        expr = self.ce.box(["Subtract", "x", 1])
        assert expr.to_math_json(prettify=True, exclude=["Subtract"]) == ["Add", -1, "x"]

    def test_prettify_powers(self):
        """x^2 is Square, x^(1/2) is Sqrt, x^-1 is a Divide."""
        ce = self.ce
        assert ce.box(["Power", "x", 2]).to_math_json(prettify=True) == ["Square", "x"]
        assert ce.box(["Power", "x", ["Rational", 1, 2]]).to_math_json(prettify=True) == ["Sqrt", "x"]
        assert ce.box(["Power", "x", -1]).to_math_json(prettify=True) == ["Divide", 1, "x"]

    def test_prettify_negate(self):
        """-1 * x is Negate(x)."""
        expr = self.ce.box(["Multiply", -1, "x"])
        assert expr.to_math_json(prettify=True) == ["Negate", "x"]

    def test_exclude_canonical_forms(self):
        """Excluding Sqrt writes it as a power."""
        expr = self.ce.box(["Sqrt", "x"])
        assert expr.to_math_json(exclude=["Sqrt"]) == ["Power", "x", ["Rational", 1, 2]]

    def test_no_shorthands(self):
        """Without shorthands, atoms and functions use the dict forms."""
        ce = self.ce
        assert ce.box(3).to_math_json(shorthands=[]) == {"num": "3"}
        assert ce.box("x").to_math_json(shorthands=[]) == {"sym": "x"}
        assert ce.box("'a'").to_math_json(shorthands=[]) == {"str": "a"}
        assert ce.box(["Sin", "x"]).to_math_json(shorthands=[]) == {"fn": ["Sin", {"sym": "x"}]}

    def test_unknown_shorthand(self):
        """Unknown shorthand names are rejected."""
        with pytest.raises(ValueError):
            self.ce.box(3).to_math_json(shorthands=["numbers"])

    def test_metadata(self):
        """metadata adds latex and wikidata."""
        ce = self.ce
        x = ce.box({"sym": "x", "latex": "x_0"})
        assert x.to_math_json(metadata=True) == {"sym": "x", "latex": "x_0"}
        assert ce.box("Pi").to_math_json(metadata=True) == {"sym": "Pi", "wikidata": "Q167"}

    def test_fractional_digits(self):
        """fractional_digits rounds approximate numbers."""
        ce = self.ce
        assert ce.box(0.123456).to_math_json(fractional_digits=2) == 0.12
        assert ce.box(["Divide", 1, 3]).to_math_json(fractional_digits=2) == ["Rational", 1, 3]

    def test_invalid_fractional_digits(self):
        """fractional_digits is "max", "auto" or a number."""
        with pytest.raises(ValueError):
            self.ce.box(1).to_math_json(fractional_digits="some")
