"""Tests for assumptions: assume, ask, verify and forget."""

from calx import ComputeEngine


class TestAssume:
    """Tests for ComputeEngine.assume()."""

    def setup_method(self):
        """Set up test engine."""
        self.ce = ComputeEngine()

    def test_domain_and_sign(self):
        """An integer assumed positive is positive."""
        ce = self.ce
        assert ce.assume("n", "Integer") == "ok"
        assert ce.assume("n > 0") == "ok"
        n = ce.box("n")
        assert n.is_positive
        assert n.domain == "Integer"
        assert n.is_integer

    def test_element_text(self):
        """'n in Integer' restricts the domain."""
        ce = self.ce
        assert ce.assume("k in Integer") == "ok"
        assert ce.box("k").domain == "Integer"

    def test_contradiction(self):
        """An assumption contradicting a previous one is refused."""
        ce = self.ce
        assert ce.assume("n > 0") == "ok"
        assert ce.assume("n <= 0") == "contradiction"
        assert ce.assume("n < 0") == "contradiction"

    def test_tautology(self):
        """An assumption already known is a tautology."""
        ce = self.ce
        assert ce.assume("n > 0") == "ok"
        assert ce.assume("n > 0") == "tautology"
        assert ce.assume(["Greater", 2, 1]) == "tautology"

    def test_not_a_predicate(self):
        """Only relations and Element can be assumed."""
        assert self.ce.assume(["Add", "x", 1]) == "not-a-predicate"
        assert self.ce.assume("x") == "not-a-predicate"

    def test_bad_input(self):
        """Malformed input is reported, not raised."""
        assert self.ce.assume("x >") == "internal-error"

    def test_equality_sets_value(self):
        """x = 5 gives x the value 5 until forgotten."""
        ce = self.ce
        assert ce.assume(["Equal", "x", 5]) == "ok"
        assert ce.box("x").value == 5
        assert ce.box(["Add", "x", 1]).evaluate().json == 6
        ce.forget("x")
        assert ce.box("x").value is None

    def test_negated_relation(self):
        """not x > 0 is stored as x <= 0."""
        ce = self.ce
        assert ce.assume("not x > 0") == "ok"
        assert ce.box("x").is_non_positive

    def test_conjunction(self):
        """Each operand of And is assumed."""
        ce = self.ce
        assert ce.assume("a > 0 and b < 0") == "ok"
        assert ce.box("a").is_positive
        assert ce.box("b").is_negative

    def test_relation_between_symbols(self):
        """A relation between two symbols decides comparisons."""
        ce = self.ce
        ce.assume("a > b")
        assert ce.box(["Greater", "a", "b"]).evaluate().symbol == "True"
        assert ce.box(["Less", "a", "b"]).evaluate().symbol == "False"

    def test_bound_sign(self):
        """x > 3 implies x is positive."""
        ce = self.ce
        ce.assume("x > 3")
        assert ce.box("x").is_positive

    def test_assume_operator(self):
        """["Assume", pred] evaluates by assuming."""
        ce = self.ce
        result = ce.box(["Assume", ["Greater", "z", 0]]).evaluate()
        assert result.string == "ok"
        assert ce.box("z").is_positive


class TestQueries:
    """Tests for ask, verify and the assumption list."""

    def setup_method(self):
        """Set up test engine."""
        self.ce = ComputeEngine()
        self.ce.assume("n > 0")

    def test_assumptions_list(self):
        """assumptions lists the stored predicates."""
        assert [a.json for a in self.ce.assumptions] == [["Greater", "n", 0]]

    def test_ask(self):
        """ask matches a pattern against the assumptions."""
        result = self.ce.ask(["Greater", "_x", 0])
        assert len(result) == 1
        assert result[0]["_x"] == "n"

    def test_ask_text(self):
        """ask accepts text."""
        assert len(self.ce.ask("n > 0")) == 1
        assert self.ce.ask(["Less", "_x", 0]) == []

    def test_verify(self):
        """verify answers True, False or None."""
        ce = self.ce
        assert ce.verify("n > 0") is True
        assert ce.verify("n <= 0") is False
        assert ce.verify("m > 0") is None

    def test_forget_all(self):
        """forget() removes every assumption."""
        self.ce.forget()
        assert self.ce.assumptions == []
        assert self.ce.box("n").is_positive is None

    def test_scoped_assumptions(self):
        """Assumptions made in a scope are dropped with it."""
        ce = self.ce
        ce.push_scope()
        ce.assume("m > 0")
        assert len(ce.assumptions) == 2
        ce.pop_scope()
        assert len(ce.assumptions) == 1
        assert ce.box("m").is_positive is None

    def test_scoped_domain(self):
        """A domain assumed in a scope is restored when the scope is popped."""
        ce = self.ce
        ce.box("k")
        ce.push_scope()
        assert ce.assume("k", "Integer") == "ok"
        assert ce.box("k").domain == "Integer"
        ce.pop_scope()
        assert ce.box("k").domain == "RealNumber"

    def test_scoped_value(self):
        """A value assumed in a scope is dropped with it."""
        ce = self.ce
        ce.box("x")
        ce.push_scope()
        assert ce.assume(["Equal", "x", 5]) == "ok"
        assert ce.box("x").value == 5
        ce.pop_scope()
        assert ce.box("x").value is None

    def test_forget_in_scope(self):
        """Forgetting an enclosing value hides it only until the scope is popped."""
        ce = self.ce
        assert ce.assume(["Equal", "y", 2]) == "ok"
        ce.push_scope()
        ce.forget("y")
        assert ce.box("y").value is None
        ce.pop_scope()
        assert ce.box("y").value == 2
