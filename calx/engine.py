"""
The compute engine.

A ``ComputeEngine`` owns the scope chain, the configuration (precision,
tolerance, folding policy, resource limits) and the generation counter that
keys every derived-property cache. It is the factory of boxed expressions:

    ce = ComputeEngine()
    expr = ce.box(["Add", "x", 0])      # canonical: x
    ce.box(["Add", 1, 2]).evaluate()     # 3
    ce.assume("n > 0")                   # "ok"
    ce.box("n").is_positive              # True

Engines are single-threaded; independent engines share nothing.
"""

import logging
import math
import re
import time
import tracemalloc
from contextlib import contextmanager
from decimal import Decimal
from fractions import Fraction
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from . import errors, numeric
from .canonical import canonical_function
from .definitions import FunctionDefinition, SymbolDefinition
from .domains import BoxedDomain
from .errors import (CancellationError, IterationLimitExceeded, MemoryLimitExceeded,
                     RecursionLimitExceeded, TimeLimitExceeded)
from .expr import (BoxedExpression, BoxedFunction, BoxedNumber, BoxedString, BoxedSymbol,
                   _sign_of_value, combine_signs)
from .library import load_core_library
from .numeric import DEFAULT_PRECISION, MACHINE_PRECISION, NumericValue, parse_real
from .parsing import parse
from .patterns import Substitution
from .rules import RuleSet, boxed_rules, default_cost, standard_rule_set
from .scope import Scope

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 1e-10
DEFAULT_DOMAIN = "RealNumber"

# Possible signs of ``lhs - rhs`` when a relation holds
RELATION_SIGNS = {
    "Greater": frozenset("+"),
    "GreaterEqual": frozenset("+0"),
    "Less": frozenset("-"),
    "LessEqual": frozenset("-0"),
    "Equal": frozenset("0"),
    "NotEqual": frozenset("+-~"),
}

NEGATED_RELATIONS = {
    "Less": "GreaterEqual", "LessEqual": "Greater",
    "Greater": "LessEqual", "GreaterEqual": "Less",
    "Equal": "NotEqual", "NotEqual": "Equal",
}

PREDICATES = ("Element", *RELATION_SIGNS)

# Results of assume()
OK = "ok"
CONTRADICTION = "contradiction"
TAUTOLOGY = "tautology"
NOT_A_PREDICATE = "not-a-predicate"
INTERNAL_ERROR = "internal-error"

_NUMBER_STRING = re.compile(r"^[-+]?(\d+(\.\d*)?|\.\d+)([eE][-+]?\d+)?$")

BoxInput = Union[BoxedExpression, int, float, Fraction, Decimal, complex, str, list, tuple, dict]


def _flip(s: Optional[frozenset]) -> Optional[frozenset]:
    if s is None:
        return None
    return frozenset({"+": "-", "-": "+"}.get(x, x) for x in s)


def _sign_from_bound(s: frozenset, c: NumericValue) -> Optional[frozenset]:
    """Sign of ``x`` knowing the possible signs ``s`` of ``x - c``."""
    if c.is_zero:
        return s
    if c.re > 0 and s <= frozenset("+0"):
        return frozenset("+")
    if c.re < 0 and s <= frozenset("-0"):
        return frozenset("-")
    return None


class ComputeEngine:
    """
    Symbolic compute engine.

    Args:
        precision: Significant digits of numeric approximations ("machine" for 15)
        tolerance: Largest difference for which ``is_equal`` considers numbers equal
        auto_declare: Declare unknown symbols on first use (otherwise they stay unbound)
        default_domain: Domain of auto-declared symbols
        fold_literals: Fold literal numbers during canonicalization
        cost_function: Cost of an expression, used by ``simplify``
        time_limit: Seconds allowed to one top-level operation
        memory_limit: Megabytes allowed to one top-level operation (checked while tracemalloc traces)
        recursion_limit: Maximum nesting of canonicalization and evaluation
        iteration_limit: Maximum number of rewrite passes
    """

    def __init__(self, precision: Union[int, str] = DEFAULT_PRECISION,
                 tolerance: float = DEFAULT_TOLERANCE, auto_declare: bool = True,
                 default_domain=DEFAULT_DOMAIN, fold_literals: bool = False,
                 cost_function: Optional[Callable[[BoxedExpression], int]] = None,
                 time_limit: Optional[float] = None, memory_limit: Optional[float] = None,
                 recursion_limit: Optional[int] = None, iteration_limit: Optional[float] = None):
        self._generation = 0
        self._precision = self._check_precision(precision)
        self._tolerance = tolerance
        self.auto_declare = auto_declare
        self.default_domain = BoxedDomain(default_domain).json
        self.fold_literals = fold_literals
        self._cost_function = cost_function
        self._rule_sets: Dict[str, RuleSet] = {}

        self._depth = 0
        self._deadline: Optional[float] = None
        self._memory_baseline = 0

        self.Zero = BoxedNumber(self, NumericValue(0))
        self.One = BoxedNumber(self, NumericValue(1))
        self.NegativeOne = BoxedNumber(self, NumericValue(-1))
        self.Half = BoxedNumber(self, NumericValue(Fraction(1, 2)))
        self.NaN = BoxedNumber(self, NumericValue(math.nan))
        self.PositiveInfinity = BoxedNumber(self, NumericValue(math.inf))
        self.NegativeInfinity = BoxedNumber(self, NumericValue(-math.inf))

        self._system_scope = Scope(name="system", time_limit=time_limit, memory_limit=memory_limit,
                                   recursion_limit=recursion_limit, iteration_limit=iteration_limit)
        self._scope = self._system_scope
        load_core_library(self)

        self.True_ = BoxedSymbol(self, "True", canonical=True)
        self.False_ = BoxedSymbol(self, "False", canonical=True)
        self.Nothing = BoxedSymbol(self, "Nothing", canonical=True)

        self._global_scope = self.push_scope(name="global")

    def __repr__(self) -> str:
        return f"ComputeEngine(precision={self._precision}, scope={self._scope.name!r})"

    # ============================================================
    # Configuration
    # ============================================================

    @staticmethod
    def _check_precision(precision) -> int:
        if precision == "machine":
            return MACHINE_PRECISION
        if isinstance(precision, bool) or not isinstance(precision, int) or precision < 1:
            raise ValueError(f"Invalid precision: {precision!r}")
        return precision

    @property
    def precision(self) -> int:
        return self._precision

    @precision.setter
    def precision(self, value):
        self._precision = self._check_precision(value)
        logger.debug("Precision set to %d", self._precision)
        self._bump_generation()

    @property
    def tolerance(self) -> float:
        return self._tolerance

    @tolerance.setter
    def tolerance(self, value: float):
        if value < 0:
            raise ValueError(f"Invalid tolerance: {value!r}")
        self._tolerance = value
        self._bump_generation()

    @property
    def cost_function(self) -> Callable[[BoxedExpression], int]:
        return self._cost_function or default_cost

    @cost_function.setter
    def cost_function(self, fn: Optional[Callable[[BoxedExpression], int]]):
        self._cost_function = fn

    @property
    def generation(self) -> int:
        return self._generation

    def _bump_generation(self):
        self._generation += 1

    def reset(self):
        """Invalidate every cached derived property."""
        self._bump_generation()
        self._rule_sets.clear()

    # ============================================================
    # Boxing
    # ============================================================

    def box(self, expr: BoxInput, canonical: bool = True, structural: bool = False) -> BoxedExpression:
        """
        Box a MathJSON expression.

        Raises:
            ValueError: for malformed MathJSON
            TypeError: for values that are not expressions
        """
        if isinstance(expr, BoxedExpression):
            result = expr.canonical if canonical else expr
        elif isinstance(expr, BoxedDomain):
            result = self.box(expr.json, canonical=False)
        elif isinstance(expr, bool):
            result = self.True_ if expr else self.False_
        elif isinstance(expr, (int, float, Fraction, Decimal, complex, NumericValue)):
            result = self.number(expr, canonical=canonical)
        elif isinstance(expr, str):
            result = self._box_string(expr, canonical)
        elif isinstance(expr, dict):
            result = self._box_dict(expr, canonical)
        elif isinstance(expr, (list, tuple)):
            if not expr or not isinstance(expr[0], str):
                raise ValueError(f"A function expression needs an operator name: {expr!r}")
            result = self.function(expr[0], list(expr[1:]), canonical=canonical)
        else:
            raise TypeError(f"Cannot box {type(expr).__name__}: {expr!r}")
        if structural:
            result = result.structural
        return result

    def _box_string(self, s: str, canonical: bool, metadata=None) -> BoxedExpression:
        if len(s) >= 2 and s[0] == "'" and s[-1] == "'":
            return self.string(s[1:-1], metadata)
        if _NUMBER_STRING.match(s):
            return self.number(s, metadata, canonical=canonical)
        if not s:
            raise ValueError("Empty symbol name")
        return self.symbol(s, metadata, canonical=canonical)

    def _box_dict(self, d: Dict[str, Any], canonical: bool) -> BoxedExpression:
        metadata = {k: d[k] for k in ("latex", "wikidata") if k in d}
        if "num" in d:
            return self.number(d["num"], metadata, canonical=canonical)
        if "sym" in d:
            return self.symbol(d["sym"], metadata, canonical=canonical)
        if "str" in d:
            return self.string(d["str"], metadata)
        if "fn" in d:
            fn = d["fn"]
            if not fn or not isinstance(fn[0], str):
                raise ValueError(f"A function expression needs an operator name: {d!r}")
            return self.function(fn[0], list(fn[1:]), metadata=metadata, canonical=canonical)
        raise ValueError(f"Not a MathJSON dictionary: {d!r}")

    def parse(self, text: str, canonical: bool = True) -> BoxedExpression:
        """Box infix or s-expression text: ``ce.parse("x^2 + 1")``."""
        return self.box(parse(text), canonical=canonical)

    # --- factories ---

    def number(self, value, metadata=None, canonical: bool = True) -> BoxedNumber:
        """
        Box a number. Canonical complex numbers with a zero imaginary part
        are demoted to real numbers.
        """
        if isinstance(value, BoxedNumber):
            return value
        if isinstance(value, str):
            value = parse_real(value)
        value = NumericValue.from_python(value)
        if canonical and value.im is not None and value.im == 0:
            value = NumericValue(value.re)
        return BoxedNumber(self, value, metadata, canonical=canonical)

    def symbol(self, name: str, metadata=None, canonical: bool = True) -> BoxedExpression:
        """
        Box a symbol, binding it in the current scope.

        Symbols held "never" (``ImaginaryUnit``, ``NaN``...) are replaced by
        their value.
        """
        result = BoxedSymbol(self, name, metadata, canonical=canonical)
        if canonical:
            definition = result.symbol_definition
            if definition is not None and definition.hold_until == "never" and definition.has_value:
                return definition.value
        return result

    def string(self, s: str, metadata=None) -> BoxedString:
        return BoxedString(self, s, metadata)

    def function(self, name: str, ops: Iterable, metadata=None, canonical: bool = True) -> BoxedExpression:
        """Box ``name(ops)``; the canonical form goes through the canonical driver."""
        ops = [self.box(op, canonical=False) for op in ops]
        if canonical:
            return canonical_function(self, name, ops, metadata)
        return BoxedFunction(self, name, ops, metadata, canonical=False)

    def _fn(self, name: str, ops: Iterable[BoxedExpression], metadata=None) -> BoxedFunction:
        """A canonical function from operands known to be canonical, with no further checks."""
        return BoxedFunction(self, name, ops, metadata, canonical=True)

    def domain(self, dom) -> BoxedDomain:
        return BoxedDomain(dom)

    def error(self, code, where=None) -> BoxedFunction:
        """
        An error term: ``["Error", "'code'", where]``.

        ``code`` is a string, or a list ``[code, *arguments]`` for an
        ``["ErrorCode", "'code'", ...]`` term.
        """
        if isinstance(code, (list, tuple)):
            code_expr = self._fn("ErrorCode", [self.string(code[0]),
                                               *(self.box(x, canonical=False) for x in code[1:])])
        else:
            code_expr = self.string(code)
        ops = [code_expr]
        if where is not None:
            ops.append(self.box(where, canonical=False))
        return self._fn("Error", ops)

    def domain_error(self, expected, actual, where=None) -> BoxedFunction:
        """``["Error", ["ErrorCode", "'incompatible-domain'", expected, actual], where]``."""
        return self.error([errors.INCOMPATIBLE_DOMAIN,
                           BoxedDomain(expected).json, BoxedDomain(actual).json], where)

    def hold(self, expr) -> BoxedFunction:
        return self._fn("Hold", [self.box(expr, canonical=False)])

    def tuple(self, *ops) -> BoxedExpression:
        return self.function("Tuple", ops)

    def rules(self, rules) -> RuleSet:
        """Convert rules in any accepted form to a RuleSet."""
        return boxed_rules(self, rules)

    def get_rule_set(self, id: str = "standard-simplification") -> RuleSet:
        """
        Raises:
            ValueError: for an unknown rule set id
        """
        if id not in self._rule_sets:
            if id != "standard-simplification":
                raise ValueError(f"Unknown rule set: {id!r}")
            self._rule_sets[id] = standard_rule_set(self)
        return self._rule_sets[id]

    # ============================================================
    # Scopes and definitions
    # ============================================================

    @property
    def scope(self) -> Scope:
        return self._scope

    def push_scope(self, name: Optional[str] = None, **limits) -> Scope:
        """Enter a new scope; ``limits`` override the enclosing scope's limits."""
        scope = Scope(self._scope, name, **limits)
        self._scope = scope
        self._bump_generation()
        logger.debug("Pushed scope %s (depth %d)", name or "<anonymous>", scope.depth)
        return scope

    def pop_scope(self) -> Scope:
        """
        Leave the current scope, releasing its definitions.

        Raises:
            ValueError: when the current scope is the global scope
        """
        scope = self._scope
        if scope is self._global_scope or scope.parent is None:
            raise ValueError("Cannot pop the global scope")
        scope.release()
        self._scope = scope.parent
        self._bump_generation()
        logger.debug("Popped scope %s", scope.name or "<anonymous>")
        return self._scope

    def swap_scope(self, scope: Scope) -> Scope:
        """Make ``scope`` current; returns the previous scope."""
        previous = self._scope
        self._scope = scope
        self._bump_generation()
        return previous

    def reset_context(self):
        """Drop every user definition and assumption."""
        scope = self._scope
        while scope is not self._system_scope:
            scope.release()
            scope = scope.parent
        self._scope = self._system_scope
        self._global_scope = self.push_scope(name="global")
        logger.debug("Context reset")

    def define_symbol(self, name: str, **options) -> SymbolDefinition:
        """Define a symbol in the current scope (see ``SymbolDefinition``)."""
        definition = self._scope.define(SymbolDefinition(self, name, **options))
        self._bump_generation()
        return definition

    def define_function(self, name: str, **options) -> FunctionDefinition:
        """Define a function operator in the current scope (see ``FunctionDefinition``)."""
        definition = self._scope.define(FunctionDefinition(self, name, **options))
        self._bump_generation()
        return definition

    def lookup_symbol(self, name: str) -> Optional[SymbolDefinition]:
        definition = self._scope.lookup(name)
        return definition if isinstance(definition, SymbolDefinition) else None

    def lookup_function(self, name: str) -> Optional[FunctionDefinition]:
        definition = self._scope.lookup(name)
        return definition if isinstance(definition, FunctionDefinition) else None

    def declare(self, name: str, domain=None, **options) -> "ComputeEngine":
        """
        Declare a symbol, or a function when ``domain`` is a function domain.

            ce.declare("n", "Integer")
            ce.declare("f", ["FunctionOf", "Number", "Number"])
            ce.declare("c", {"domain": "Number", "value": 3, "constant": True})

        Raises:
            ValueError: if ``name`` is already declared in the current scope
        """
        if isinstance(domain, dict):
            options = {**domain, **options}
            domain = options.pop("domain", None)
        existing = self._scope.ids.get(name)
        if existing is not None:
            auto = isinstance(existing, SymbolDefinition) and existing.inferred_domain \
                and not existing.has_value
            if not auto:
                raise ValueError(f'"{name}" is already declared in this scope')
            # an auto-declared symbol gives way to the explicit declaration
            existing.dead = True
            del self._scope.ids[name]

        dom = None if domain is None else BoxedDomain(domain)
        if dom is not None and dom.is_function:
            if dom.ctor == "FunctionOf":
                options.setdefault("signature", dom.json)
            self.define_function(name, **options)
        else:
            if dom is not None:
                options["domain"] = dom.json
            self.define_symbol(name, **options)
        logger.debug("Declared %s: %s", name, dom)
        return self

    def assign(self, name: str, value) -> "ComputeEngine":
        """
        Give a symbol a value, declaring it in the current scope if needed.

        Raises:
            ValueError: when the symbol is a constant or a function
        """
        definition = self._scope.lookup(name)
        if isinstance(definition, FunctionDefinition):
            raise ValueError(f"Cannot assign a value to the function {name}")
        if definition is None:
            self.define_symbol(name, value=value, inferred=True)
        else:
            definition.value = value
        self._bump_generation()
        return self

    def _bind_symbol(self, name: str):
        """Definition of ``name`` in the current scope chain, auto-declaring it if allowed."""
        definition = self._scope.lookup(name)
        if definition is not None:
            return definition
        if name.startswith("_") or not self.auto_declare:
            return None
        definition = self._scope.define(SymbolDefinition(self, name, inferred=True))
        logger.debug("Auto-declared %s: %s in scope %s", name, definition.domain,
                     self._scope.name or "<anonymous>")
        return definition

    # ============================================================
    # Assumptions
    # ============================================================

    def _predicate(self, predicate) -> BoxedExpression:
        if isinstance(predicate, str):
            predicate = parse(predicate)
        return self.box(predicate)

    def assume(self, predicate, domain=None) -> str:
        """
        Add an assumption to the current scope.

            ce.assume("n", "Integer")       # n is an integer
            ce.assume("n > 0")
            ce.assume(["Equal", "x", 5])    # x now has the value 5

        Returns:
            "ok", "contradiction", "tautology", "not-a-predicate" or "internal-error"
        """
        try:
            if domain is not None:
                subject = self._predicate(predicate)
                pred = self.function("Element", [subject, self.box(BoxedDomain(domain).json, canonical=False)])
            else:
                pred = self._predicate(predicate)
            result = self._assume(pred)
        except (ValueError, TypeError) as e:
            logger.warning("Assumption %r failed: %s", predicate, e)
            return INTERNAL_ERROR
        logger.debug("assume(%s) -> %s", pred, result)
        return result

    def _assume(self, pred: BoxedExpression) -> str:
        if not pred.is_function:
            return NOT_A_PREDICATE
        op = pred.operator
        if op == "Not":
            inner = pred.op1
            negated = NEGATED_RELATIONS.get(inner.operator)
            if negated is None or not inner.is_function:
                return NOT_A_PREDICATE
            return self._assume(self.function(negated, inner.ops))
        if op == "And":
            results = [self._assume(p) for p in pred.ops]
            for outcome in (NOT_A_PREDICATE, INTERNAL_ERROR, CONTRADICTION):
                if outcome in results:
                    return outcome
            return TAUTOLOGY if all(r == TAUTOLOGY for r in results) else OK
        if op not in PREDICATES:
            return NOT_A_PREDICATE
        if not pred.is_valid:
            return INTERNAL_ERROR

        verdict = self.verify(pred)
        if verdict is True:
            return TAUTOLOGY
        if verdict is False:
            return CONTRADICTION

        if op == "Element":
            outcome = self._assume_element(pred)
        elif op == "Equal":
            outcome = self._assume_equal(pred)
        else:
            outcome = OK
        if outcome == OK:
            self._scope.assumptions[pred] = True
            self._bump_generation()
        return outcome

    def _assume_element(self, pred: BoxedExpression) -> str:
        subject, dom = pred.op1, BoxedDomain(pred.op2.json)
        name = subject.symbol
        if name is None:
            return OK
        definition = self._scope.lookup(name)
        if definition is None:
            self.define_symbol(name, domain=dom.json)
            return OK
        if not isinstance(definition, SymbolDefinition) or definition.constant:
            return CONTRADICTION
        if dom.is_compatible(definition.domain) or definition.inferred_domain:
            self._local_symbol(definition).domain = dom.json
            return OK
        return CONTRADICTION

    def _assume_equal(self, pred: BoxedExpression) -> str:
        lhs, rhs = pred.op1, pred.op2
        if lhs.symbol is None and rhs.symbol is not None:
            lhs, rhs = rhs, lhs
        name = lhs.symbol
        definition = self.lookup_symbol(name) if name is not None else None
        if definition is not None and not definition.constant and not definition.has_value \
                and name not in rhs.symbols:
            definition = self._local_symbol(definition)
            definition.value = rhs
            self._scope.assumed_values[name] = definition
        return OK

    def _local_symbol(self, definition: SymbolDefinition) -> SymbolDefinition:
        """
        The definition itself when the current scope owns it, else a copy
        defined in the current scope that shadows it until the scope is popped.
        """
        if definition.scope is self._scope:
            return definition
        shadow = SymbolDefinition(
            self, definition.name, domain=definition.domain.json,
            value=definition.value_source, hold_until=definition.hold_until,
            flags=definition.flags, inferred=definition.inferred_domain,
            latex=definition.latex, description=definition.description,
            wikidata=definition.wikidata, url=definition.url)
        self._scope.define(shadow)
        logger.debug("Shadowed %s in scope %s", definition.name, self._scope.name or "<anonymous>")
        return shadow

    def forget(self, symbols: Optional[Union[str, Iterable[str]]] = None):
        """
        Remove the assumptions about ``symbols`` (all of them when None) from
        the current scope, and the values assumptions gave them.

        A value assumed in an enclosing scope is hidden until the current
        scope is popped.
        """
        names = None
        if symbols is not None:
            names = {symbols} if isinstance(symbols, str) else set(symbols)
        assumptions = self._scope.assumptions
        for pred in list(assumptions):
            if names is None or names & set(pred.symbols):
                del assumptions[pred]
        for scope in self._scope.chain():
            for name in list(scope.assumed_values):
                if names is not None and name not in names:
                    continue
                definition = scope.assumed_values[name]
                if scope is self._scope:
                    del scope.assumed_values[name]
                    if not definition.dead:
                        definition.value = None
                elif not definition.dead and self._scope.lookup(name) is definition:
                    self._local_symbol(definition).value = None
        self._bump_generation()
        logger.debug("Forgot assumptions about %s", "everything" if names is None else sorted(names))

    @property
    def assumptions(self) -> List[BoxedExpression]:
        return list(self._scope.assumptions)

    def ask(self, pattern) -> List[Substitution]:
        """
        Substitutions of the stored assumptions matching ``pattern``.

            ce.ask(["Greater", "_x", 0])     # [{"_x": n}] after ce.assume("n > 0")
        """
        if isinstance(pattern, str):
            pattern = parse(pattern)
        pat = self.box(pattern, canonical=False)
        result = []
        for pred in self._scope.assumptions:
            sub = pred.match(pat)
            if sub:
                result.append(sub)
        return result

    def verify(self, query) -> Optional[bool]:
        """True or False when the query can be decided, else None."""
        pred = self._predicate(query)
        value = pred.evaluate()
        if value.symbol == "True":
            return True
        if value.symbol == "False":
            return False
        assumptions = self._scope.assumptions
        if pred in assumptions:
            return True
        negated = NEGATED_RELATIONS.get(pred.operator)
        if negated is not None and pred.is_function:
            if self.function(negated, pred.ops) in assumptions:
                return False
        return None

    def _assumption_sign(self, name: str) -> Optional[frozenset]:
        """What the relations stored in the current scope say about the sign of ``name``."""
        signs = []
        for pred in self._scope.assumptions:
            relation = RELATION_SIGNS.get(pred.operator)
            if relation is None or pred.nops != 2:
                continue
            lhs, rhs = pred.ops
            if lhs.symbol == name:
                s, bound = relation, rhs
            elif rhs.symbol == name:
                s, bound = _flip(relation), lhs
            else:
                continue
            value = bound.numeric_value
            if value is None or value.is_nan or not value.is_real:
                continue
            signs.append(_sign_from_bound(s, value))
        return combine_signs(*signs)

    def difference_sign(self, a, b) -> Optional[frozenset]:
        """Possible signs of ``a - b`` ("+", "-", "0", "~" for unordered), None if unknown."""
        a, b = self.box(a), self.box(b)
        va, vb = a.numeric_value, b.numeric_value
        if va is not None and vb is not None:
            c = numeric.compare(va, vb, self._precision)
            if isinstance(c, float) and math.isnan(c):
                return frozenset("~")
            return frozenset("+" if c > 0 else "-" if c < 0 else "0")

        known = []
        for pred in self._scope.assumptions:
            relation = RELATION_SIGNS.get(pred.operator)
            if relation is None or pred.nops != 2:
                continue
            if pred.op1.is_same(a) and pred.op2.is_same(b):
                known.append(relation)
            elif pred.op1.is_same(b) and pred.op2.is_same(a):
                known.append(_flip(relation))

        diff = self.function("Add", [a, self.function("Negate", [b])]).evaluate()
        if diff.is_number_literal:
            s = _sign_of_value(diff.numeric_value)
        else:
            s = diff._sign()
            if s is None and not diff.unknowns:
                approx = diff.N()
                if approx.is_number_literal:
                    s = _sign_of_value(approx.numeric_value)
        return combine_signs(s, *known)

    # ============================================================
    # Resource limits
    # ============================================================

    @contextmanager
    def recursion(self):
        """
        Enter one level of recursion.

        The outermost level starts the clock and the memory accounting of
        the operation; every level checks the limits of the current scope.
        """
        self._depth += 1
        outermost = self._depth == 1
        if outermost:
            limit = self._scope.time_limit
            self._deadline = time.monotonic() + limit if math.isfinite(limit) else None
            self._memory_baseline = tracemalloc.get_traced_memory()[0] if tracemalloc.is_tracing() else 0
        try:
            self.check_continue_execution()
            yield
        finally:
            self._depth -= 1
            if outermost:
                self._deadline = None

    def _limit_exceeded(self, iterations: Optional[int] = None) -> Optional[CancellationError]:
        scope = self._scope
        if self._depth > scope.recursion_limit:
            return RecursionLimitExceeded(f"Recursion depth exceeded {scope.recursion_limit}",
                                          limit=scope.recursion_limit)
        if iterations is not None and iterations >= scope.iteration_limit:
            return IterationLimitExceeded(f"Iteration limit of {scope.iteration_limit} exceeded",
                                          limit=scope.iteration_limit)
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return TimeLimitExceeded(f"Time limit of {scope.time_limit}s exceeded",
                                     limit=scope.time_limit)
        if math.isfinite(scope.memory_limit) and tracemalloc.is_tracing():
            used = tracemalloc.get_traced_memory()[0] - self._memory_baseline
            if used > scope.memory_limit * 1024 * 1024:
                return MemoryLimitExceeded(f"Memory limit of {scope.memory_limit}MB exceeded",
                                           limit=scope.memory_limit)
        return None

    def should_continue_execution(self, iterations: Optional[int] = None) -> bool:
        return self._limit_exceeded(iterations) is None

    def check_continue_execution(self, iterations: Optional[int] = None):
        """
        Raises:
            CancellationError: the subclass of the limit that was exceeded
        """
        error = self._limit_exceeded(iterations)
        if error is not None:
            logger.warning("Operation aborted: %s", error)
            raise error

    def chop(self, value: BoxedExpression) -> BoxedExpression:
        """Replace a number literal within the tolerance of zero by exact zero."""
        v = value.numeric_value
        if v is None or v.is_nan:
            return value
        if abs(complex(v)) <= self._tolerance and not v.is_zero:
            return self.Zero
        return value
