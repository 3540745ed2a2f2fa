"""Tests for simplify() and the standard rule set."""

from calx import ComputeEngine, default_cost


class TestDefaultCost:
    """Tests for the default cost function."""

    def setup_method(self):
        """Set up test engine."""
        self.ce = ComputeEngine()

    def test_atoms(self):
        """Symbols and small integers cost 1, other numbers 2."""
        ce = self.ce
        assert default_cost(ce.box("x")) == 1
        assert default_cost(ce.box(3)) == 1
        assert default_cost(ce.box(5000)) == 2
        assert default_cost(ce.box(0.5)) == 2

    def test_functions(self):
        """Operators add their cost to their operands'."""
        ce = self.ce
        assert default_cost(ce.box(["Add", "x", 1])) == 3
        assert default_cost(ce.box(["Sqrt", "x"])) == 3

    def test_integer_coefficient_is_free(self):
        """A small integer coefficient adds nothing to a product."""
        ce = self.ce
        assert default_cost(ce.box(["Multiply", 2, "x"])) == 2
        assert default_cost(ce.box(["Multiply", 2, "x"])) < default_cost(ce.box(["Add", "x", "x"]))
        assert default_cost(ce.box(["Multiply", 0.5, "x"])) == 4


class TestSimplify:
    """Tests for simplify() with the standard rules."""

    def setup_method(self):
        """Set up test engine."""
        self.ce = ComputeEngine()

    def test_cancel_sum(self):
        """x - x = 0."""
        assert self.ce.box(["Add", "x", ["Negate", "x"]]).simplify().json == 0

    def test_cancel_sum_keeps_rest(self):
        """x - x + y = y."""
        assert self.ce.box(["Add", "x", "y", ["Negate", "x"]]).simplify().json == "y"

    def test_collect_powers(self):
        """x * x = x^2."""
        assert self.ce.box(["Multiply", "x", "x"]).simplify().json == ["Power", "x", 2]

    def test_fold_numbers(self):
        """Exact literals are folded."""
        assert self.ce.box(["Add", 2, "x", 3]).simplify().json == ["Add", 5, "x"]

    def test_collect_coefficient(self):
        """2x + x = 3x."""
        assert self.ce.box(["Add", ["Multiply", 2, "x"], "x"]).simplify().json == ["Multiply", 3, "x"]

    def test_collect_terms(self):
        """x + x = 2x."""
        assert self.ce.box(["Add", "x", "x"]).simplify().json == ["Multiply", 2, "x"]

    def test_collect_terms_with_rest(self):
        """x + x + y = 2x + y."""
        result = self.ce.box(["Add", "x", "x", "y"]).simplify()
        assert result.json == ["Add", "y", ["Multiply", 2, "x"]]

    def test_collect_coefficient_with_rest(self):
        """x + 2x + y = 3x + y, with the coefficient folded."""
        result = self.ce.box(["Add", "x", ["Multiply", 2, "x"], "y"]).simplify()
        assert result.json == ["Add", "y", ["Multiply", 3, "x"]]

    def test_sqrt_of_square(self):
        """sqrt(x^2) = |x| for real x."""
        assert self.ce.box(["Sqrt", ["Power", "x", 2]]).simplify().json == ["Abs", "x"]

    def test_abs_of_positive(self):
        """|x| = x when x > 0."""
        ce = self.ce
        ce.assume("x > 0")
        assert ce.box(["Abs", "x"]).simplify().json == "x"

    def test_abs_of_negative(self):
        """|x| = -x when x < 0."""
        ce = self.ce
        ce.assume("x < 0")
        assert ce.box(["Abs", "x"]).simplify().json == ["Negate", "x"]

    def test_already_simple(self):
        """An expression no rule applies to is returned unchanged."""
        expr = self.ce.box(["Add", "x", 1])
        assert expr.simplify().is_same(expr)

    def test_trace(self):
        """trace returns the steps with the rule names."""
        result, steps = self.ce.box(["Add", "x", ["Negate", "x"]]).simplify(trace=True)
        assert result.json == 0
        assert [step.because for step in steps] == ["cancel-sum"]

    def test_non_canonical_input(self):
        """simplify() canonicalizes first."""
        expr = self.ce.box(["Subtract", "x", "x"], canonical=False)
        assert expr.simplify().json == 0


class TestCustomRules:
    """Tests for simplify() with user rules and cost functions."""

    def setup_method(self):
        """Set up test engine."""
        self.ce = ComputeEngine()

    def test_custom_rules(self):
        """User rules replace the standard set."""
        result = self.ce.box(["Add", "y", "y"]).simplify(rules="x + x -> 2*x")
        assert result.json == ["Multiply", 2, "y"]

    def test_costly_rewrite_rejected(self):
        """A rewrite that raises the cost is ignored."""
        rule = (["Multiply", 2, "_a"], ["Add", "_a", "_a", 0, 0])
        expr = self.ce.box(["Multiply", 2, ["Sin", "x"]])
        assert expr.simplify(rules=rule).json == ["Multiply", 2, ["Sin", "x"]]

    def test_iteration_limit(self):
        """iteration_limit bounds the number of passes."""
        rule = (["g", "_x"], ["g", ["g", "_x"]])
        result = self.ce.box(["g", "x"]).simplify(rules=rule, cost_function=lambda e: 0,
                                                   iteration_limit=1)
        assert result.json == ["g", ["g", "x"]]

    def test_cycle_stops(self):
        """A rewrite back to a form already seen ends simplification."""
        rule = (["h", "_a", "_b"], ["h", "_b", "_a"])
        result = self.ce.box(["h", 1, 2]).simplify(rules=rule)
        assert result.json == ["h", 1, 2]

    def test_engine_cost_function(self):
        """The engine cost function is used by default."""
        ce = ComputeEngine(cost_function=lambda e: 0)
        rule = (["g", "_x"], ["g", ["g", "_x"]])
        result = ce.box(["g", "x"]).simplify(rules=rule, iteration_limit=1)
        assert result.json == ["g", ["g", "x"]]

    def test_rule_set_groups(self):
        """A group of the standard rules can be used alone."""
        rules = self.ce.get_rule_set().only("products")
        assert "collect-powers" in rules
        assert "cancel-sum" not in rules
        assert self.ce.box(["Add", "x", ["Negate", "x"]]).simplify(rules=rules).json == \
            ["Add", "x", ["Negate", "x"]]

    def test_standard_groups(self):
        """The standard rules are grouped by topic."""
        groups = self.ce.get_rule_set().groups()
        assert groups == {"numbers", "sums", "products", "powers", "absolute-value", "exponentials"}
        assert self.ce.get_rule_set().only("numbers").ids == ["fold-exact-numbers"]
