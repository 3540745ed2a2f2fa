"""Tests for evaluation, numeric approximation and the algebraic methods."""

import math

import pytest
from calx import ComputeEngine


class TestEvaluate:
    """Tests for evaluate()."""

    def setup_method(self):
        """Set up test engine."""
        self.ce = ComputeEngine()

    def test_fold_sum(self):
        """Literal operands are folded."""
        assert self.ce.box(["Add", 1, 2]).evaluate().json == 3

    def test_partial_fold(self):
        """Literals fold, the other operands are kept."""
        assert self.ce.box(["Add", 2, "x", 3]).evaluate().json == ["Add", 5, "x"]

    def test_absorbing_zero(self):
        """0 * x = 0."""
        assert self.ce.box(["Multiply", 0, "x"]).evaluate().json == 0

    def test_exact_results(self):
        """Exact inputs give exact results."""
        assert self.ce.box(["Sqrt", 16]).evaluate().json == 4
        assert self.ce.box(["Power", 2, 10]).evaluate().json == 1024
        assert self.ce.box(["Add", ["Divide", 1, 3], ["Divide", 1, 6]]).evaluate().json == ["Rational", 1, 2]

    def test_irrational_stays_symbolic(self):
        """Sqrt(2) is kept exact."""
        assert self.ce.box(["Sqrt", 2]).evaluate().json == ["Sqrt", 2]

    def test_division_by_zero(self):
        """Division by zero evaluates to an error term."""
        result = self.ce.box(["Divide", 1, 0]).evaluate()
        assert result.json == ["Error", "'division-by-zero'", ["Divide", 1, 0]]
        assert not result.is_valid

    def test_symbol_values(self):
        """Symbols evaluate to their value."""
        self.ce.assign("x", 5)
        assert self.ce.box(["Add", "x", 1]).evaluate().json == 6

    def test_free_variable(self):
        """A symbol without value evaluates to itself."""
        assert self.ce.box("x").evaluate().json == "x"

    def test_constant_held_until_n(self):
        """Pi stays symbolic under evaluate()."""
        assert self.ce.box("Pi").evaluate().json == "Pi"

    def test_hold(self):
        """Held operands are not evaluated."""
        result = self.ce.box(["Hold", ["Add", 1, 2]]).evaluate()
        assert result.json == ["Hold", ["Add", 1, 2]]

    def test_relations(self):
        """Comparisons of literals evaluate to True or False."""
        ce = self.ce
        assert ce.box(["Less", 1, 2]).evaluate().symbol == "True"
        assert ce.box(["Greater", 1, 2]).evaluate().symbol == "False"
        assert ce.box(["Equal", "x", "x"]).evaluate().symbol == "True"
        assert ce.box(["NotEqual", 1, 2]).evaluate().symbol == "True"

    def test_undecided_relation(self):
        """A comparison that cannot be decided is returned unevaluated."""
        assert self.ce.box(["Less", "x", 1]).evaluate().json == ["Less", "x", 1]

    def test_logic(self):
        """And, Or and Not on booleans."""
        ce = self.ce
        assert ce.box(["And", "True", "False"]).evaluate().symbol == "False"
        assert ce.box(["Or", "True", "False"]).evaluate().symbol == "True"
        assert ce.box(["Not", "True"]).evaluate().symbol == "False"

    def test_element(self):
        """Element tests membership of a domain."""
        ce = self.ce
        assert ce.box(["Element", 3, "Integer"]).evaluate().symbol == "True"
        assert ce.box(["Element", 0.5, "Integer"]).evaluate().symbol == "False"

    def test_template_evaluate(self):
        """An evaluate template substitutes the operands."""
        self.ce.define_function("Double", params=["Number"], rest_param=None,
                                evaluate=["Multiply", 2, "_"])
        assert self.ce.box(["Double", 21]).evaluate().json == 42

    def test_callable_evaluate(self):
        """An evaluate handler receives the engine and the operands."""
        self.ce.define_function("Count", rest_param="Anything",
                                evaluate=lambda ce, ops: ce.number(len(ops)))
        assert self.ce.box(["Count", "a", "b", "c"]).evaluate().json == 3

    def test_random_is_impure(self):
        """Random gives a number in [0, 1)."""
        value = self.ce.box(["Random"]).evaluate()
        assert value.is_number_literal
        assert 0 <= float(value.numeric_value) < 1


class TestNumeric:
    """Tests for N()."""

    def setup_method(self):
        """Set up test engine."""
        self.ce = ComputeEngine()

    def test_rational_approximation(self):
        """1/3 to the default 21 digits."""
        result = self.ce.box(["Divide", 1, 3]).N()
        assert str(result.numeric_value.re) == "0.333333333333333333333"

    def test_sqrt_approximation(self):
        """Sqrt(2) to the default precision."""
        result = self.ce.box(["Sqrt", 2]).N()
        assert str(result.numeric_value.re) == "1.41421356237309504880"

    def test_pi(self):
        """Pi is approximated at the engine precision."""
        result = self.ce.box("Pi").N()
        assert str(result.numeric_value.re).startswith("3.14159265358979323846")

    def test_machine_precision(self):
        """With machine precision, approximations are floats."""
        ce = ComputeEngine(precision="machine")
        result = ce.box(["Divide", 1, 3]).N()
        assert isinstance(result.numeric_value.re, float)
        assert result.numeric_value.re == pytest.approx(1 / 3)

    def test_precision_setting(self):
        """Changing the precision changes the digits of N()."""
        self.ce.precision = 30
        result = self.ce.box("Pi").N()
        assert str(result.numeric_value.re).startswith("3.1415926535897932384626433")

    def test_invalid_precision(self):
        """Precision must be a positive integer or "machine"."""
        with pytest.raises(ValueError):
            ComputeEngine(precision=0)
        with pytest.raises(ValueError):
            self.ce.precision = "lots"

    def test_transcendental(self):
        """Exp(1) approximates e."""
        result = self.ce.box(["Exp", 1]).N()
        assert float(result.numeric_value) == pytest.approx(math.e)

    def test_n_agrees_with_evaluate(self):
        """N() gives the approximation of the exact value."""
        ce = self.ce
        for json in (["Power", -8, ["Rational", 1, 3]], ["Power", -8, ["Rational", 2, 3]],
                     ["Power", 2, ["Rational", 1, 2]], ["Divide", 1, 3]):
            expr = ce.box(json)
            assert expr.evaluate().N().is_same(expr.N())

    def test_real_odd_root(self):
        """A negative base to an exponent with an odd denominator has a real value."""
        ce = self.ce
        assert ce.box(["Power", -8, ["Rational", 1, 3]]).evaluate().json == -2
        assert float(ce.box(["Power", -8, ["Rational", 1, 3]]).N().numeric_value) == pytest.approx(-2)
        assert float(ce.box(["Power", -8, ["Rational", 2, 3]]).N().numeric_value) == pytest.approx(4)
        assert float(ce.box(["Power", -8.0, ["Rational", 1, 3]]).N().numeric_value) == pytest.approx(-2)

    def test_division_by_zero_in_n(self):
        """Exact division by zero is an error in N() as in evaluate()."""
        expr = self.ce.box(["Power", 0, -1])
        assert not expr.evaluate().is_valid
        assert not expr.N().is_valid


class TestEquality:
    """Tests for structural and mathematical equality."""

    def setup_method(self):
        """Set up test engine."""
        self.ce = ComputeEngine()

    def test_structural_equality(self):
        """== compares structure, and accepts plain MathJSON."""
        assert self.ce.box(["Add", "x", 1]) == self.ce.box(["Add", 1, "x"])
        assert self.ce.box("x") == "x"
        assert self.ce.box(["Add", 1, 1]) != 2

    def test_mathematical_equality(self):
        """is_equal compares values."""
        assert self.ce.box(["Add", 1, 1]).is_equal(2)
        assert self.ce.box(["Divide", 1, 3]).is_equal(1 / 3)
        assert not self.ce.box(["Divide", 1, 3]).is_equal(0.3)

    def test_hashable(self):
        """Equal expressions hash alike."""
        a = self.ce.box(["Add", "x", 1])
        b = self.ce.box(["Add", 1, "x"])
        assert len({a, b}) == 1


class TestAlgebraicMethods:
    """Tests for add, mul, pow and friends."""

    def setup_method(self):
        """Set up test engine."""
        self.ce = ComputeEngine()

    def test_literal_folding(self):
        """Methods on literals fold."""
        ce = self.ce
        assert ce.box(2).add(3).json == 5
        assert ce.box(2).mul(3, 4).json == 24
        assert ce.box(2).pow(10).json == 1024
        assert ce.box(4).sqrt().json == 2
        assert ce.box(3).neg().json == -3
        assert ce.box(2).inv().json == ["Rational", 1, 2]
        assert ce.box(-5).abs().json == 5

    def test_symbolic(self):
        """Methods on symbols build canonical expressions."""
        ce = self.ce
        assert ce.box("x").add(0).json == "x"
        assert ce.box("x").sub(1).json == ["Add", -1, "x"]
        assert ce.box("x").mul(2).json == ["Multiply", 2, "x"]
        assert ce.box("x").div("y").json == ["Divide", "x", "y"]
        assert ce.box("x").root(3).json == ["Root", "x", 3]

    def test_division_by_zero(self):
        """Dividing a literal by zero gives an error term."""
        assert not self.ce.box(1).div(0).is_valid


class TestProperties:
    """Tests for domain and sign queries."""

    def setup_method(self):
        """Set up test engine."""
        self.ce = ComputeEngine()

    def test_number_signs(self):
        """Literal numbers know their sign."""
        ce = self.ce
        assert ce.box(3).is_positive
        assert ce.box(-2).is_negative
        assert ce.box(0).is_zero
        assert ce.box(3).sgn == 1
        assert ce.box(0).sign == "zero"

    def test_free_variable_sign_unknown(self):
        """A real free variable has no known sign."""
        assert self.ce.box("x").is_positive is None

    def test_constant_sign(self):
        """Pi is positive."""
        assert self.ce.box("Pi").is_positive

    def test_even_power(self):
        """x^2 is non-negative for real x."""
        assert self.ce.box(["Power", "x", 2]).is_non_negative

    def test_abs_non_negative(self):
        """Abs(x) is non-negative."""
        assert self.ce.box(["Abs", "x"]).is_non_negative

    def test_domain_queries(self):
        """Domain predicates."""
        ce = self.ce
        assert ce.box(3).is_integer
        assert ce.box(0.5).is_real
        assert ce.box(0.5).is_integer is False
        assert ce.box("Pi").is_real
        assert ce.box("'text'").is_number is False

    def test_function_domain(self):
        """The domain of a function expression is its result domain."""
        ce = self.ce
        ce.declare("n", "Integer")
        assert ce.box(["Add", "n", 1]).domain == "Integer"
        assert ce.box(["Divide", "n", 2]).domain == "RealNumber"

    def test_symbols_and_unknowns(self):
        """symbols lists every name, unknowns only free ones."""
        ce = self.ce
        ce.assign("a", 2)
        expr = ce.box(["Add", "a", ["Multiply", "b", "Pi"]])
        assert expr.symbols == ["Pi", "a", "b"]
        assert expr.unknowns == ["b"]

    def test_subs_and_has(self):
        """subs replaces symbols by name."""
        ce = self.ce
        expr = ce.box(["Add", "x", 1])
        assert expr.subs({"x": 2}).json == ["Add", 1, 2]
        assert expr.has("x")
        assert not expr.has("y")


class TestComparisons:
    """Tests for is_less, is_greater and friends."""

    def setup_method(self):
        """Set up test engine."""
        self.ce = ComputeEngine()

    def test_numbers(self):
        """Literal numbers compare by value."""
        ce = self.ce
        assert ce.box(1).is_less(2) is True
        assert ce.box(2).is_less(2) is False
        assert ce.box(2).is_less_equal(2) is True
        assert ce.box(3).is_greater(5) is False
        assert ce.box(5).is_greater_equal(ce.box(["Rational", 9, 2])) is True

    def test_irrational(self):
        """Expressions without unknowns are compared through their approximation."""
        sqrt2 = self.ce.box(["Sqrt", 2])
        assert sqrt2.is_greater(1) is True
        assert sqrt2.is_less(1) is False

    def test_assumptions(self):
        """Assumed bounds decide comparisons."""
        ce = self.ce
        ce.assume("x > 0")
        x = ce.box("x")
        assert x.is_greater(0) is True
        assert x.is_greater_equal(0) is True
        assert x.is_less_equal(0) is False
        assert x.is_greater(-1) is True

    def test_undecided(self):
        """A free variable cannot be compared."""
        assert self.ce.box("y").is_less(0) is None


class TestNumericQueries:
    """Tests for parity, finiteness, re/im, ln and purity."""

    def setup_method(self):
        """Set up test engine."""
        self.ce = ComputeEngine()

    def test_parity_of_numbers(self):
        """Integers are even or odd; other numbers are neither."""
        ce = self.ce
        assert ce.box(4).is_even is True
        assert ce.box(4).is_odd is False
        assert ce.box(-3).is_odd is True
        assert ce.box(2.5).is_even is False
        assert ce.box(2.5).is_odd is False

    def test_parity_of_symbols(self):
        """Symbols take their parity from flags or value."""
        ce = self.ce
        ce.declare("n", {"domain": "Integer", "flags": {"even": True}})
        ce.assign("k", 7)
        assert ce.box("n").is_even is True
        assert ce.box("n").is_odd is False
        assert ce.box("k").is_odd is True
        assert ce.box("x").is_even is None

    def test_parity_of_functions(self):
        """A closed expression has the parity of its value."""
        ce = self.ce
        assert ce.box(["Add", 1, 2]).is_odd is True
        assert ce.box(["Add", "x", 2]).is_odd is None

    def test_finite_and_nan(self):
        """Finiteness of literals, constants and closed expressions."""
        ce = self.ce
        assert ce.box(3).is_finite is True
        assert ce.box(math.inf).is_finite is False
        assert ce.box(math.nan).is_nan is True
        assert ce.box("Pi").is_finite is True
        assert ce.box("Pi").is_nan is False
        assert ce.box(["Sqrt", 2]).is_finite is True
        assert ce.box(["Add", "x", 1]).is_finite is None

    def test_rational_symbol_is_finite(self):
        """A symbol in a rational domain is finite."""
        ce = self.ce
        ce.declare("n", "Integer")
        assert ce.box("n").is_finite is True
        assert ce.box("n").is_nan is False

    def test_re_im(self):
        """Real and imaginary parts of numeric values."""
        ce = self.ce
        z = ce.box(["Complex", 3, 4])
        assert z.re == 3
        assert z.im == 4
        assert ce.box(["Sqrt", 2]).re == pytest.approx(math.sqrt(2))
        assert ce.box(["Sqrt", 2]).im == 0
        assert ce.box("x").re is None

    def test_ln(self):
        """ln with and without a base."""
        ce = self.ce
        assert ce.box("x").ln().json == ["Ln", "x"]
        assert ce.box("x").ln(2).json == ["Divide", ["Ln", "x"], ["Ln", 2]]
        assert ce.box(1).ln().json == 0
        assert float(ce.box(8).ln(2).N().numeric_value) == pytest.approx(3)

    def test_is_pure(self):
        """Random makes an expression impure."""
        ce = self.ce
        assert ce.box(["Add", "x", 1]).is_pure
        assert ce.box(3).is_pure
        assert not ce.box(["Random"]).is_pure
        assert not ce.box(["Add", ["Random"], 1]).is_pure
