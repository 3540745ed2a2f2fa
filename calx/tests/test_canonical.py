"""Tests for canonical forms."""

import itertools

import pytest
from calx import ComputeEngine


class TestCanonicalOrder:
    """Tests for flattening and operand ordering."""

    def setup_method(self):
        """Set up test engine."""
        self.ce = ComputeEngine()

    def test_literals_not_folded(self):
        """Canonicalization keeps literal operands apart."""
        assert self.ce.box(["Add", 1, 2]).json == ["Add", 1, 2]

    def test_fold_literals_option(self):
        """With fold_literals, exact literal operands are combined."""
        ce = ComputeEngine(fold_literals=True)
        assert ce.box(["Add", 1, 2]).json == 3
        assert ce.box(["Multiply", 2, "x", 3]).json == ["Multiply", 6, "x"]

    def test_operand_order_is_total(self):
        """Every permutation of the operands gives the same canonical form."""
        ops = ["x", 1, ["Power", "y", 2]]
        for perm in itertools.permutations(ops):
            expr = self.ce.box(["Add", *perm])
            assert expr.json == ["Add", 1, "x", ["Power", "y", 2]]

    def test_numbers_first(self):
        """Literals come first, by value."""
        assert self.ce.box(["Multiply", "x", 2]).json == ["Multiply", 2, "x"]
        assert self.ce.box(["Add", "x", 3, -1]).json == ["Add", -1, 3, "x"]

    def test_symbols_by_name(self):
        """Operands of equal complexity are ordered by their serialized form."""
        assert self.ce.box(["Add", "b", "a"]).json == ["Add", "a", "b"]

    def test_flatten_associative(self):
        """Nested operands of an associative operator are spliced."""
        expr = self.ce.box(["Add", "x", ["Add", "y", "z"]])
        assert expr.json == ["Add", "x", "y", "z"]

    def test_sequence_splice(self):
        """Sequence operands are spliced; an empty Sequence vanishes."""
        assert self.ce.box(["Add", "x", ["Sequence", "y", "z"]]).json == ["Add", "x", "y", "z"]
        assert self.ce.box(["Add", "x", ["Sequence"]]).json == "x"

    def test_non_commutative_order_kept(self):
        """Operands of non-commutative operators keep their order."""
        assert self.ce.box(["Divide", "y", "x"]).json == ["Divide", "y", "x"]

    def test_is_canonical(self):
        """Boxing is canonical unless asked otherwise."""
        assert self.ce.box(["Add", "x", 1]).is_canonical
        expr = self.ce.box(["Add", "x", 1], canonical=False)
        assert not expr.is_canonical
        assert expr.canonical.is_canonical

    def test_non_canonical_kept_raw(self):
        """A non-canonical expression is not reordered."""
        assert self.ce.box(["Add", "x", 1], canonical=False).json == ["Add", "x", 1]


class TestCanonicalForms:
    """Tests for the operator canonical handlers."""

    def setup_method(self):
        """Set up test engine."""
        self.ce = ComputeEngine()

    def test_additive_identity(self):
        """x + 0 -> x."""
        assert self.ce.box(["Add", "x", 0]).json == "x"

    def test_multiplicative_identity(self):
        """x * 1 -> x."""
        assert self.ce.box(["Multiply", "x", 1]).json == "x"

    def test_subtract(self):
        """Subtract is an Add of a Negate."""
        assert self.ce.box(["Subtract", "x", "y"]).json == ["Add", "x", ["Negate", "y"]]
        assert self.ce.box(["Subtract", "x", 1]).json == ["Add", -1, "x"]

    def test_negate(self):
        """Negate of a literal folds; double negation cancels."""
        assert self.ce.box(["Negate", 3]).json == -3
        assert self.ce.box(["Negate", ["Negate", "x"]]).json == "x"

    def test_divide(self):
        """Integer quotients become rationals; division by one vanishes."""
        assert self.ce.box(["Divide", 6, 4]).json == ["Rational", 3, 2]
        assert self.ce.box(["Divide", 6, 3]).json == 2
        assert self.ce.box(["Divide", "x", 1]).json == "x"

    def test_divide_by_zero_is_kept(self):
        """Divide(1, 0) stays unevaluated until evaluation."""
        assert self.ce.box(["Divide", 1, 0]).json == ["Divide", 1, 0]

    def test_power(self):
        """x^1 -> x, x^0 -> 1, Square(x) -> x^2."""
        assert self.ce.box(["Power", "x", 1]).json == "x"
        assert self.ce.box(["Power", "x", 0]).json == 1
        assert self.ce.box(["Square", "x"]).json == ["Power", "x", 2]

    def test_root(self):
        """Root(x, 2) -> Sqrt(x)."""
        assert self.ce.box(["Root", "x", 2]).json == ["Sqrt", "x"]
        assert self.ce.box(["Root", "x", 3]).json == ["Root", "x", 3]

    def test_idempotent(self):
        """Abs(Abs(x)) -> Abs(x)."""
        assert self.ce.box(["Abs", ["Abs", "x"]]).json == ["Abs", "x"]

    def test_rational(self):
        """Rational of integers is a number."""
        expr = self.ce.box(["Rational", 2, 4])
        assert expr.is_number_literal
        assert expr.json == ["Rational", 1, 2]

    def test_complex(self):
        """Complex literals; a zero imaginary part is demoted."""
        assert self.ce.box(["Complex", 0, 1]).json == ["Complex", 0, 1]
        assert self.ce.box(["Complex", 1, 0]).json == 1

    def test_imaginary_unit(self):
        """ImaginaryUnit is replaced by its value."""
        i = self.ce.box("ImaginaryUnit")
        assert i.is_number_literal
        assert i.json == ["Complex", 0, 1]

    def test_hold(self):
        """The operand of Hold is not canonicalized."""
        expr = self.ce.box(["Hold", ["Subtract", "x", 1]])
        assert expr.json == ["Hold", ["Subtract", "x", 1]]
        assert not expr.op1.is_canonical

    def test_unknown_function(self):
        """Unknown operators keep their operands."""
        assert self.ce.box(["f", "y", "x"]).json == ["f", "y", "x"]

    def test_number_forms(self):
        """Numbers box from dicts and strings."""
        assert self.ce.box({"num": "3"}).json == 3
        assert self.ce.box("1.5").json == 1.5
        assert self.ce.box(0.5).json == 0.5


class TestValidation:
    """Tests for signature checks during canonicalization."""

    def setup_method(self):
        """Set up test engine."""
        self.ce = ComputeEngine()

    def test_incompatible_domain(self):
        """A string where a number is expected is replaced by an error."""
        expr = self.ce.box(["Add", "x", "'hello'"])
        assert not expr.is_valid
        assert expr.json == ["Add", "x", ["Error",
                                          ["ErrorCode", "'incompatible-domain'", "Number", "String"],
                                          "'hello'"]]

    def test_missing_argument(self):
        """A missing operand is replaced by an error."""
        expr = self.ce.box(["Divide", 1])
        assert expr.json == ["Divide", 1, ["Error", "'missing-argument'"]]

    def test_unexpected_argument(self):
        """An extra operand is wrapped in an error."""
        expr = self.ce.box(["Sqrt", "x", "y"])
        assert expr.json == ["Sqrt", "x", ["Error", "'unexpected-argument'", "y"]]

    def test_errors_collected(self):
        """errors lists every error subexpression."""
        expr = self.ce.box(["Add", ["Sqrt", "x", "y"], ["Divide", 1]])
        assert len(expr.errors) == 2

    def test_valid_expression(self):
        """A well-formed expression has no errors."""
        assert self.ce.box(["Add", "x", ["Sqrt", 2]]).is_valid

    def test_malformed_json(self):
        """Malformed MathJSON raises."""
        with pytest.raises(ValueError):
            self.ce.box([])
        with pytest.raises(ValueError):
            self.ce.box([1, 2])
        with pytest.raises(TypeError):
            self.ce.box(object())
