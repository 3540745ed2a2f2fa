"""Tests for pattern matching."""

import pytest
from calx import ComputeEngine, NoMatch, Substitution


class TestSubstitution:
    """Tests for the Substitution and NoMatch objects."""

    def setup_method(self):
        """Set up test engine."""
        self.ce = ComputeEngine()

    def test_empty_substitution_is_truthy(self):
        """A successful match without wildcards is still truthy."""
        sub = Substitution()
        assert sub
        assert len(sub) == 0

    def test_underscore_optional(self):
        """Bindings can be read with or without the underscore."""
        sub = Substitution({"_x": self.ce.box(1)})
        assert sub["_x"] == 1
        assert sub["x"] == 1
        assert "x" in sub
        assert sub.get("y") is None

    def test_equality_with_dict(self):
        """Substitutions compare with plain dicts."""
        sub = Substitution({"_x": self.ce.box(1)})
        assert sub == {"_x": 1}
        assert sub != {"_y": 1}

    def test_no_match(self):
        """NoMatch is falsy and has no bindings."""
        assert not NoMatch
        assert len(NoMatch) == 0
        assert NoMatch.get("x", 3) == 3
        with pytest.raises(KeyError):
            NoMatch["x"]


class TestMatch:
    """Tests for BoxedExpression.match()."""

    def setup_method(self):
        """Set up test engine."""
        self.ce = ComputeEngine()

    def test_simple_wildcard(self):
        """_a binds the operand it stands for."""
        sub = self.ce.box(["Add", 3, 2]).match(["Add", "_a", 2])
        assert sub == {"_a": 3}

    def test_no_match(self):
        """A different operator does not match."""
        assert self.ce.box(["Multiply", 3, "x"]).match(["Add", "_a", 3]) is NoMatch

    def test_literal_pattern(self):
        """A pattern without wildcards matches an identical expression."""
        sub = self.ce.box("x").match("x")
        assert sub
        assert len(sub) == 0

    def test_anonymous_wildcard(self):
        """_ matches anything and binds nothing."""
        sub = self.ce.box(["Sin", "x"]).match(["Sin", "_"])
        assert sub
        assert len(sub) == 0

    def test_repeated_wildcard(self):
        """A wildcard used twice must match the same expression."""
        assert self.ce.box(["Add", "x", "x"]).match(["Add", "_a", "_a"]) == {"_a": "x"}
        assert not self.ce.box(["Add", "x", "y"]).match(["Add", "_a", "_a"])

    def test_commutative_any_order(self):
        """Operands of commutative operators match in any order."""
        expr = self.ce.box(["Multiply", "x", ["Sin", "y"]])
        sub = expr.match(["Multiply", ["Sin", "_a"], "_b"])
        assert sub == {"_a": "y", "_b": "x"}

    def test_ordered_operands(self):
        """Operands of other operators match in order."""
        expr = self.ce.box(["Divide", "x", "y"])
        assert expr.match(["Divide", "_a", "_b"]) == {"_a": "x", "_b": "y"}
        assert not expr.match(["Divide", "y", "_b"])

    def test_one_or_more(self):
        """__a binds a run of operands as a Sequence."""
        sub = self.ce.box(["f", 1, 2, 3]).match(["f", "__a"])
        assert sub["_a"].json == ["Sequence", 1, 2, 3]

    def test_one_or_more_single(self):
        """A run of one operand binds the operand itself."""
        sub = self.ce.box(["f", 1]).match(["f", "__a"])
        assert sub["_a"].json == 1

    def test_zero_or_more(self):
        """___b may bind an empty Sequence."""
        sub = self.ce.box(["f", 1]).match(["f", "__a", "___b"])
        assert sub["_a"].json == 1
        assert sub["_b"].json == ["Sequence"]

    def test_sequence_split(self):
        """The first sequence wildcard takes the shortest run."""
        sub = self.ce.box(["f", 1, 2, 3]).match(["f", "__a", "___b"])
        assert sub["_a"].json == 1
        assert sub["_b"].json == ["Sequence", 2, 3]

    def test_operator_wildcard(self):
        """["_g", ...] binds the operator name."""
        sub = self.ce.box(["Sin", "x"]).match(["_g", "_y"])
        assert sub["_g"].symbol == "Sin"
        assert sub["_y"] == "x"

    def test_rational_literal(self):
        """A rational literal matches a Rational pattern."""
        sub = self.ce.box(["Divide", 3, 4]).match(["Rational", "_p", "_q"])
        assert sub == {"_p": 3, "_q": 4}

    def test_recursive(self):
        """recursive also tries the subexpressions."""
        expr = self.ce.box(["Multiply", 2, ["Sin", "x"]])
        assert not expr.match(["Sin", "_y"])
        assert expr.match(["Sin", "_y"], recursive=True) == {"_y": "x"}

    def test_initial_substitution(self):
        """Bindings passed in must be respected."""
        expr = self.ce.box(["Add", "x", 1])
        assert expr.match(["Add", "_a", 1], substitution={"_a": self.ce.box("x")})
        assert not expr.match(["Add", "_a", 1], substitution={"_a": self.ce.box("y")})

    def test_mathematical_equivalence(self):
        """Under mathematical equivalence, values are compared."""
        expr = self.ce.box(["Add", 1, 1])
        assert not expr.match(2)
        assert expr.match(2, equivalence="mathematical")

    def test_unknown_equivalence(self):
        """Only structural and mathematical equivalence exist."""
        with pytest.raises(ValueError):
            self.ce.box("x").match("x", equivalence="fuzzy")


class TestVariations:
    """Tests for matching with variations."""

    def setup_method(self):
        """Set up test engine."""
        self.ce = ComputeEngine()

    def test_additive_identity(self):
        """x matches _a + 0."""
        x = self.ce.box("x")
        assert not x.match(["Add", "_a", 0])
        assert x.match(["Add", "_a", 0], use_variations=True) == {"_a": "x"}

    def test_multiplicative_identity(self):
        """x matches 1 * _a."""
        x = self.ce.box("x")
        assert x.match(["Multiply", 1, "_a"], use_variations=True) == {"_a": "x"}

    def test_power_identity(self):
        """x matches _a ^ _n with _n = 1."""
        sub = self.ce.box("x").match(["Power", "_a", "_n"], use_variations=True)
        assert sub == {"_a": "x", "_n": 1}

    def test_divide_identity(self):
        """x matches _a / 1 but not 1 / _a."""
        x = self.ce.box("x")
        assert x.match(["Divide", "_a", 1], use_variations=True) == {"_a": "x"}
        assert not x.match(["Divide", 2, "_a"], use_variations=True)
