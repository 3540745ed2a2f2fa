"""
Boxed expressions.

Every term handled by the engine is boxed into one of four classes:

    BoxedNumber     a NumericValue literal
    BoxedString     a string literal, written "'text'" in MathJSON
    BoxedSymbol     a name, bound to a symbol (or function) definition
    BoxedFunction   an operator name applied to a tuple of operands

Boxed expressions are immutable by convention. A canonical expression never
changes its operator or operands; the only things that change over its life
are the value held by a symbol definition and the derived-property cache,
which is keyed by the engine generation.
"""

import logging
import math
from fractions import Fraction
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from . import numeric
from .definitions import FunctionDefinition, SymbolDefinition
from .domains import BoxedDomain, _KIND_PARENT, domain_of_number, numeric_descriptor
from .numeric import NumericValue

logger = logging.getLogger(__name__)


# ============================================================
# Signs
# ============================================================
#
# Internally a sign is the set of possibilities among "+", "-", "0" and
# "~" (no sign: complex or NaN). None means nothing is known.

SIGNS: Dict[str, frozenset] = {
    "positive": frozenset("+"),
    "negative": frozenset("-"),
    "zero": frozenset("0"),
    "non-negative": frozenset("+0"),
    "non-positive": frozenset("-0"),
    "not-zero": frozenset("+-"),
    "real": frozenset("+-0"),
    "unsigned": frozenset("~"),
}
_SIGN_NAMES = {v: k for k, v in SIGNS.items()}


def sign_set(name) -> Optional[frozenset]:
    if name is None or isinstance(name, frozenset):
        return name
    return SIGNS[name]


def sign_name(s: Optional[frozenset]) -> Optional[str]:
    if s is None:
        return None
    return _SIGN_NAMES.get(s)


def combine_signs(*signs) -> Optional[frozenset]:
    """Intersect what several sources know about a sign."""
    result = None
    for s in signs:
        s = sign_set(s)
        if s is None:
            continue
        result = s if result is None else result & s
    return result or None


def _sign_of_value(value: NumericValue) -> frozenset:
    if value.is_nan or not value.is_real:
        return SIGNS["unsigned"]
    if value.re > 0:
        return SIGNS["positive"]
    if value.re < 0:
        return SIGNS["negative"]
    return SIGNS["zero"]


def _sign_of_domain(dom: Optional[BoxedDomain]) -> Optional[frozenset]:
    if dom is None:
        return None
    desc = numeric_descriptor(dom.json)
    if desc is None:
        return None
    kind, lo, lo_c, hi, hi_c = desc
    if kind == "imaginary":
        return None
    if kind == "complex":
        return None
    if lo > 0 or (lo == 0 and not lo_c):
        return SIGNS["positive"]
    if hi < 0 or (hi == 0 and not hi_c):
        return SIGNS["negative"]
    if lo == 0:
        return SIGNS["non-negative"]
    if hi == 0:
        return SIGNS["non-positive"]
    return SIGNS["real"]


_SIGN_FLAGS = {
    "zero": "zero",
    "not_zero": "not-zero",
    "positive": "positive",
    "nonnegative": "non-negative",
    "negative": "negative",
    "nonpositive": "non-positive",
}


def _sign_of_flags(flags: Dict[str, bool]) -> Optional[frozenset]:
    return combine_signs(*(name for flag, name in _SIGN_FLAGS.items() if flags.get(flag)))


# ============================================================
# Base class
# ============================================================

class BoxedExpression:
    """
    Common interface of all boxed expressions.

    Structural comparison is ``is_same`` (also ``==``, which accepts plain
    MathJSON on the right-hand side); mathematical comparison is ``is_equal``.
    """

    def __init__(self, ce, metadata: Optional[Dict[str, Any]] = None, canonical: bool = False):
        self.engine = ce
        self._metadata = dict(metadata) if metadata else {}
        self._canonical = canonical
        self._structural = False
        self._hash: Optional[int] = None
        self._cache: Dict[str, Any] = {}
        self._cache_generation = -1

    # --- structure ---

    @property
    def operator(self) -> str:
        raise NotImplementedError

    @property
    def ops(self) -> Optional[Tuple["BoxedExpression", ...]]:
        return None

    @property
    def nops(self) -> int:
        return 0

    def _op(self, i: int) -> "BoxedExpression":
        ops = self.ops
        if ops is None or i >= len(ops):
            return self.engine.Nothing
        return ops[i]

    @property
    def op1(self) -> "BoxedExpression":
        return self._op(0)

    @property
    def op2(self) -> "BoxedExpression":
        return self._op(1)

    @property
    def op3(self) -> "BoxedExpression":
        return self._op(2)

    @property
    def symbol(self) -> Optional[str]:
        return None

    @property
    def string(self) -> Optional[str]:
        return None

    @property
    def numeric_value(self) -> Optional[NumericValue]:
        return None

    @property
    def is_number_literal(self) -> bool:
        return False

    @property
    def is_function(self) -> bool:
        return False

    @property
    def is_canonical(self) -> bool:
        return self._canonical

    @property
    def is_structural(self) -> bool:
        return self._structural

    @property
    def canonical(self) -> "BoxedExpression":
        return self

    @property
    def structural(self) -> "BoxedExpression":
        return self

    # --- metadata ---

    @property
    def latex(self) -> Optional[str]:
        return self._metadata.get("latex")

    @latex.setter
    def latex(self, value: str):
        self._metadata["latex"] = value

    @property
    def wikidata(self) -> Optional[str]:
        return self._metadata.get("wikidata")

    @wikidata.setter
    def wikidata(self, value: str):
        self._metadata["wikidata"] = value

    @property
    def metadata(self) -> Dict[str, Any]:
        return dict(self._metadata)

    # --- caching ---

    def _cached(self, key: str, compute: Callable[[], Any]):
        generation = self.engine.generation
        if self._cache_generation != generation:
            self._cache = {}
            self._cache_generation = generation
        if key not in self._cache:
            self._cache[key] = compute()
        return self._cache[key]

    def reset(self):
        """Drop the derived-property cache."""
        self._cache = {}
        self._cache_generation = -1

    def bind(self):
        """Resolve (again) the definitions this expression refers to."""
        self.reset()

    # --- serialization ---

    @property
    def json(self):
        from .serialize import to_json
        return to_json(self)

    def to_math_json(self, **options):
        """
        Serialize with options.

        Args:
            shorthands: "all" or a list among "number", "symbol", "string", "function"
            exclude: sugar forms not to use, e.g. ["Sqrt", "Subtract"]
            metadata: include latex/wikidata metadata (forces dict forms)
            prettify: use Square, Sqrt, Subtract, Negate and Divide sugar
            fractional_digits: "max", "auto" or a number of digits for approximate numbers
        """
        from .serialize import to_json
        return to_json(self, **options)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.json!r})"

    def __str__(self) -> str:
        from .serialize import to_string
        return to_string(self)

    # --- comparison ---

    def is_same(self, other: "BoxedExpression") -> bool:
        raise NotImplementedError

    def __eq__(self, other) -> bool:
        if isinstance(other, BoxedExpression):
            return self.is_same(other)
        if other is None:
            return False
        try:
            other_json = self.engine.box(other, canonical=False).json
        except (ValueError, TypeError):
            return False
        return self.json == other_json

    def __ne__(self, other) -> bool:
        return not self.__eq__(other)

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = self._compute_hash()
        return self._hash

    def _compute_hash(self) -> int:
        raise NotImplementedError

    def is_equal(self, other) -> bool:
        """
        Mathematical equality.

        Structurally identical expressions are equal. Otherwise both sides are
        evaluated numerically and compared within the engine tolerance.
        """
        ce = self.engine
        rhs = ce.box(other)
        lhs = self.canonical
        if lhs.is_same(rhs):
            return True
        a, b = lhs.N(), rhs.N()
        if a.is_same(b):
            return True
        if a.is_number_literal and b.is_number_literal:
            va, vb = a.numeric_value, b.numeric_value
            if va.is_nan or vb.is_nan:
                return False
            diff = numeric.abs_(numeric.sub(va, vb, ce.precision), ce.precision)
            return diff is not None and float(diff) <= ce.tolerance
        diff = ce.function("Subtract", [a, b]).N()
        if diff.is_number_literal and diff.numeric_value.is_real:
            return abs(float(diff.numeric_value)) <= ce.tolerance
        return False

    # --- traversal ---

    def subs(self, sub: Dict[str, Any], canonical: Optional[bool] = None) -> "BoxedExpression":
        """Replace symbols by name."""
        return self

    def map(self, fn: Callable[["BoxedExpression"], "BoxedExpression"],
            recursive: bool = True, canonical: Optional[bool] = None) -> "BoxedExpression":
        return fn(self)

    def has(self, names: Union[str, List[str]]) -> bool:
        """True if a symbol or operator with one of ``names`` occurs in the expression."""
        return False

    def get_subexpressions(self, operator: str) -> List["BoxedExpression"]:
        return [self] if self.operator == operator else []

    @property
    def subexpressions(self) -> List["BoxedExpression"]:
        return [self]

    @property
    def symbols(self) -> List[str]:
        return []

    @property
    def unknowns(self) -> List[str]:
        return []

    @property
    def free_variables(self) -> List[str]:
        return []

    @property
    def errors(self) -> List["BoxedExpression"]:
        return self.get_subexpressions("Error")

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def match(self, pattern, substitution=None, recursive: bool = False,
              use_variations: bool = False, equivalence: str = "structural"):
        from .patterns import match
        ce = self.engine
        return match(self, ce.box(pattern, canonical=False), substitution,
                     recursive=recursive, use_variations=use_variations,
                     equivalence=equivalence)

    def replace(self, rules, **options) -> Optional["BoxedExpression"]:
        from .rules import replace
        return replace(self, rules, **options)

    # --- domains ---

    @property
    def domain(self) -> Optional[BoxedDomain]:
        return None

    @domain.setter
    def domain(self, dom):
        raise ValueError(f"Cannot set the domain of {self}")

    def infer(self, dom) -> bool:
        """Narrow an inferred domain; True if the expression is in ``dom``."""
        current = self.domain
        return current is None or current.is_compatible(dom)

    def _domain_query(self, literal: str) -> Optional[bool]:
        dom = self.domain
        if dom is None:
            return None
        if dom.is_compatible(literal):
            return True
        if not dom.is_numeric:
            return False
        mine = numeric_descriptor(dom.base)
        theirs = numeric_descriptor(literal)
        if mine is None or theirs is None:
            return None
        if _kinds_related(mine[0], theirs[0]):
            return None
        return False

    @property
    def is_number(self) -> Optional[bool]:
        return self._domain_query("Number")

    @property
    def is_integer(self) -> Optional[bool]:
        return self._domain_query("Integer")

    @property
    def is_rational(self) -> Optional[bool]:
        return self._domain_query("RationalNumber")

    @property
    def is_algebraic(self) -> Optional[bool]:
        return self._domain_query("AlgebraicNumber")

    @property
    def is_real(self) -> Optional[bool]:
        return self._domain_query("RealNumber")

    @property
    def is_complex(self) -> Optional[bool]:
        return self._domain_query("ComplexNumber")

    @property
    def is_imaginary(self) -> Optional[bool]:
        return self._domain_query("ImaginaryNumber")

    # --- signs ---

    def _sign(self) -> Optional[frozenset]:
        return None

    @property
    def sign(self) -> Optional[str]:
        """Rich sign: "positive", "non-negative", "not-zero", "unsigned"... or None."""
        return sign_name(self._sign())

    @property
    def sgn(self):
        """-1, 0 or 1 when the sign is known, NaN for unsigned values, else None."""
        s = self._sign()
        if s == SIGNS["positive"]:
            return 1
        if s == SIGNS["negative"]:
            return -1
        if s == SIGNS["zero"]:
            return 0
        if s == SIGNS["unsigned"]:
            return math.nan
        return None

    def _sign_test(self, yes: str, no: str) -> Optional[bool]:
        s = self._sign()
        if s is None:
            return None
        if s <= SIGNS[yes]:
            return True
        if s <= SIGNS[no] | SIGNS["unsigned"]:
            return False
        return None

    @property
    def is_zero(self) -> Optional[bool]:
        return self._sign_test("zero", "not-zero")

    @property
    def is_not_zero(self) -> Optional[bool]:
        s = self._sign_test("zero", "not-zero")
        return None if s is None else not s

    @property
    def is_positive(self) -> Optional[bool]:
        return self._sign_test("positive", "non-positive")

    @property
    def is_non_negative(self) -> Optional[bool]:
        return self._sign_test("non-negative", "negative")

    @property
    def is_negative(self) -> Optional[bool]:
        return self._sign_test("negative", "non-negative")

    @property
    def is_non_positive(self) -> Optional[bool]:
        return self._sign_test("non-positive", "positive")

    @property
    def is_one(self) -> Optional[bool]:
        return None

    @property
    def is_negative_one(self) -> Optional[bool]:
        return None

    # --- ordering ---

    def _compare(self, other, yes: str) -> Optional[bool]:
        s = self.engine.difference_sign(self, other)
        if s is None:
            return None
        if s <= frozenset(yes):
            return True
        if not s & frozenset(yes):
            return False
        return None

    def is_less(self, other) -> Optional[bool]:
        """True if ``self < other``, False if not, None when it cannot be decided."""
        return self._compare(other, "-")

    def is_less_equal(self, other) -> Optional[bool]:
        return self._compare(other, "-0")

    def is_greater(self, other) -> Optional[bool]:
        return self._compare(other, "+")

    def is_greater_equal(self, other) -> Optional[bool]:
        return self._compare(other, "+0")

    # --- parity and finiteness ---

    def _parity(self) -> Optional[int]:
        return None

    @property
    def is_even(self) -> Optional[bool]:
        if self.is_integer is False:
            return False
        parity = self._parity()
        return None if parity is None else parity == 0

    @property
    def is_odd(self) -> Optional[bool]:
        if self.is_integer is False:
            return False
        parity = self._parity()
        return None if parity is None else parity == 1

    @property
    def is_finite(self) -> Optional[bool]:
        return None

    @property
    def is_nan(self) -> Optional[bool]:
        return None

    # --- values ---

    @property
    def value(self) -> Optional["BoxedExpression"]:
        return None

    @value.setter
    def value(self, value):
        raise ValueError(f"Cannot assign a value to {self}")

    @property
    def is_constant(self) -> bool:
        return False

    @property
    def complexity(self) -> int:
        return 1

    @property
    def is_pure(self) -> bool:
        """Whether evaluating the expression has no side effect and always gives the same result."""
        return True

    def _complex_value(self) -> Optional[complex]:
        v = self.numeric_value
        if v is None and not self.unknowns and self.is_pure:
            v = self.N().numeric_value
        return None if v is None else complex(v)

    @property
    def re(self) -> Optional[float]:
        """Real part of the numeric value, None when there is none."""
        value = self._complex_value()
        return None if value is None else value.real

    @property
    def im(self) -> Optional[float]:
        """Imaginary part of the numeric value, None when there is none."""
        value = self._complex_value()
        return None if value is None else value.imag

    # --- reductions ---

    def simplify(self, rules=None, cost_function=None, iteration_limit: Optional[int] = None,
                 trace: bool = False):
        """
        Simplify by rewriting until no rule lowers (or keeps) the cost.

        Returns:
            The simplified expression, or ``(expr, steps)`` when ``trace`` is set
        """
        from .rules import simplify
        return simplify(self, rules=rules, cost_function=cost_function,
                        iteration_limit=iteration_limit, trace=trace)

    def evaluate(self, numeric_approximation: bool = False) -> "BoxedExpression":
        return self

    def N(self) -> "BoxedExpression":
        """Numeric approximation at the engine precision."""
        return self.evaluate(numeric_approximation=True)

    # --- algebraic methods (literal numbers are folded) ---

    def _algebra(self, name: str, *rhs) -> "BoxedExpression":
        ce = self.engine
        result = ce.function(name, [self, *(ce.box(x) for x in rhs)])
        return fold_numbers(result)

    def neg(self) -> "BoxedExpression":
        return self._algebra("Negate")

    def inv(self) -> "BoxedExpression":
        ce = self.engine
        return fold_numbers(ce.function("Divide", [ce.One, self]))

    def abs(self) -> "BoxedExpression":
        return self._algebra("Abs")

    def add(self, *rhs) -> "BoxedExpression":
        return self._algebra("Add", *rhs)

    def sub(self, rhs) -> "BoxedExpression":
        return self._algebra("Subtract", rhs)

    def mul(self, *rhs) -> "BoxedExpression":
        return self._algebra("Multiply", *rhs)

    def div(self, rhs) -> "BoxedExpression":
        return self._algebra("Divide", rhs)

    def pow(self, exponent) -> "BoxedExpression":
        return self._algebra("Power", exponent)

    def sqrt(self) -> "BoxedExpression":
        return self._algebra("Sqrt")

    def root(self, n) -> "BoxedExpression":
        return self._algebra("Root", n)

    def ln(self, base=None) -> "BoxedExpression":
        """Natural logarithm, or the logarithm in ``base``: ``ln(x) / ln(base)``."""
        if base is None:
            return self._algebra("Ln")
        ce = self.engine
        return fold_numbers(ce.function("Divide", [self.ln(), ce.box(base).ln()]))


def _kinds_related(a: str, b: str) -> bool:
    def up(k):
        while k is not None:
            yield k
            k = _KIND_PARENT[k]
    return b in set(up(a)) or a in set(up(b))


def fold_numbers(expr: BoxedExpression) -> BoxedExpression:
    """Evaluate a function whose operands are all literal numbers."""
    if isinstance(expr, BoxedFunction) and expr.ops and all(op.is_number_literal for op in expr.ops):
        return expr.evaluate()
    return expr


# ============================================================
# Atoms
# ============================================================

class BoxedNumber(BoxedExpression):
    """A literal number."""

    def __init__(self, ce, value: NumericValue, metadata=None, canonical: bool = True):
        super().__init__(ce, metadata, canonical)
        self._value = value

    @property
    def operator(self) -> str:
        return "Number"

    @property
    def numeric_value(self) -> NumericValue:
        return self._value

    @property
    def is_number_literal(self) -> bool:
        return True

    @property
    def value(self) -> "BoxedNumber":
        return self

    @property
    def is_exact(self) -> bool:
        return self._value.is_exact

    @property
    def structural(self) -> BoxedExpression:
        v = self._value
        if v.is_real and isinstance(v.re, Fraction) and v.re.denominator != 1:
            ce = self.engine
            result = BoxedFunction(ce, "Rational", [ce.number(v.re.numerator), ce.number(v.re.denominator)],
                                   canonical=False)
            result._structural = True
            return result
        return self

    @property
    def canonical(self) -> BoxedExpression:
        if self._canonical:
            return self
        return self.engine.number(self._value, metadata=self._metadata)

    def is_same(self, other) -> bool:
        if not isinstance(other, BoxedNumber):
            return False
        a, b = self._value, other._value
        if a.is_nan and b.is_nan:
            return True
        return a == b

    def _compute_hash(self) -> int:
        if self._value.is_nan:
            return hash("NaN")
        return hash(self._value)

    @property
    def domain(self) -> BoxedDomain:
        return BoxedDomain(domain_of_number(self._value))

    def _sign(self) -> frozenset:
        return _sign_of_value(self._value)

    @property
    def is_integer(self) -> bool:
        return self._value.is_integer

    @property
    def is_zero(self) -> bool:
        return self._value.is_zero

    @property
    def is_one(self) -> bool:
        return self._value.is_one

    @property
    def is_negative_one(self) -> bool:
        return self._value.is_negative_one

    @property
    def is_nan(self) -> bool:
        return self._value.is_nan

    @property
    def is_infinity(self) -> bool:
        return self._value.is_infinity

    @property
    def is_finite(self) -> bool:
        return self._value.is_finite

    def _parity(self) -> Optional[int]:
        v = self._value
        if not v.is_integer:
            return None
        return int(v.re) % 2

    @property
    def complexity(self) -> int:
        return 1

    def evaluate(self, numeric_approximation: bool = False) -> BoxedExpression:
        if numeric_approximation:
            ce = self.engine
            return ce.number(numeric.approximate(self._value, ce.precision))
        return self.canonical


class BoxedString(BoxedExpression):
    """A string literal."""

    def __init__(self, ce, value: str, metadata=None, canonical: bool = True):
        super().__init__(ce, metadata, canonical)
        self._string = value

    @property
    def operator(self) -> str:
        return "String"

    @property
    def string(self) -> str:
        return self._string

    def is_same(self, other) -> bool:
        return isinstance(other, BoxedString) and other._string == self._string

    def _compute_hash(self) -> int:
        return hash(("str", self._string))

    @property
    def domain(self) -> BoxedDomain:
        return BoxedDomain("String")


class BoxedSymbol(BoxedExpression):
    """
    A symbol.

    Canonical symbols are bound to a definition on first use. The binding is
    resolved again when the definition was released with its scope, or when
    the engine generation changed since it was cached.
    """

    def __init__(self, ce, name: str, metadata=None, canonical: bool = False):
        super().__init__(ce, metadata, canonical)
        self._name = name
        self._def = None
        self._def_generation = -1

    @property
    def operator(self) -> str:
        return "Symbol"

    @property
    def symbol(self) -> str:
        return self._name

    @property
    def is_wildcard(self) -> bool:
        return self._name.startswith("_")

    @property
    def canonical(self) -> BoxedExpression:
        if self._canonical:
            return self
        return self.engine.symbol(self._name, metadata=self._metadata)

    def bind(self):
        super().bind()
        self._def = None
        self._def_generation = -1
        if self._canonical:
            self._resolve()

    def _resolve(self):
        ce = self.engine
        self._def = ce._bind_symbol(self._name)
        self._def_generation = ce.generation

    @property
    def definition(self):
        """SymbolDefinition or FunctionDefinition, None when unbound or not canonical."""
        if not self._canonical:
            return None
        d = self._def
        if d is None or d.dead or self._def_generation != self.engine.generation:
            self._resolve()
        return self._def

    @property
    def symbol_definition(self) -> Optional[SymbolDefinition]:
        d = self.definition
        return d if isinstance(d, SymbolDefinition) else None

    @property
    def function_definition(self) -> Optional[FunctionDefinition]:
        d = self.definition
        return d if isinstance(d, FunctionDefinition) else None

    def is_same(self, other) -> bool:
        return isinstance(other, BoxedSymbol) and other._name == self._name

    def _compute_hash(self) -> int:
        return hash(("sym", self._name))

    @property
    def wikidata(self) -> Optional[str]:
        if "wikidata" in self._metadata:
            return self._metadata["wikidata"]
        d = self.definition
        return d.wikidata if d is not None else None

    @wikidata.setter
    def wikidata(self, value: str):
        self._metadata["wikidata"] = value

    # --- traversal ---

    def subs(self, sub, canonical=None) -> BoxedExpression:
        if self._name in sub:
            canonical = self._canonical if canonical is None else canonical
            return self.engine.box(sub[self._name], canonical=canonical)
        return self

    def has(self, names) -> bool:
        if isinstance(names, str):
            return self._name == names
        return self._name in names

    @property
    def symbols(self) -> List[str]:
        return [self._name]

    @property
    def unknowns(self) -> List[str]:
        if self.is_wildcard:
            return []
        if self._canonical:
            d = self.definition
            if isinstance(d, FunctionDefinition):
                return []
            if isinstance(d, SymbolDefinition) and (d.constant or d.has_value):
                return []
        return [self._name]

    @property
    def free_variables(self) -> List[str]:
        if self._canonical:
            d = self.symbol_definition
            if d is not None and d.has_value:
                return []
            if isinstance(self.definition, FunctionDefinition):
                return []
        return [self._name]

    # --- domains and values ---

    @property
    def domain(self) -> Optional[BoxedDomain]:
        d = self.definition
        if isinstance(d, SymbolDefinition):
            return d.domain
        if isinstance(d, FunctionDefinition):
            return BoxedDomain("Function")
        return None

    @domain.setter
    def domain(self, dom):
        d = self.symbol_definition
        if d is None:
            raise ValueError(f"Symbol {self._name} is not bound")
        d.domain = dom
        self.engine._bump_generation()

    def infer(self, dom) -> bool:
        d = self.symbol_definition
        if d is None:
            return super().infer(dom)
        before = d.domain
        result = d.infer(dom)
        if d.domain is not before:
            self.engine._bump_generation()
        return result

    @property
    def value(self) -> Optional[BoxedExpression]:
        d = self.symbol_definition
        return d.value if d is not None else None

    @value.setter
    def value(self, value):
        self.engine.assign(self._name, value)

    @property
    def is_constant(self) -> bool:
        d = self.symbol_definition
        return d is not None and d.constant

    def _sign(self) -> Optional[frozenset]:
        return self._cached("sign", self._compute_sign)

    def _compute_sign(self) -> Optional[frozenset]:
        d = self.symbol_definition
        if d is None:
            return None
        if d.has_value and d.hold_until != "N":
            value = d.value
            if value is not None and value is not self:
                s = value._sign()
                if s is not None:
                    return s
        if d.has_value and d.hold_until == "N":
            approx = d.value
            if approx is not None and approx.is_number_literal:
                return _sign_of_value(approx.numeric_value)
        return combine_signs(
            _sign_of_flags(d.flags),
            _sign_of_domain(d.domain),
            self.engine._assumption_sign(self._name),
        )

    @property
    def is_one(self) -> Optional[bool]:
        v = self.value
        return None if v is None else v.is_one

    @property
    def is_negative_one(self) -> Optional[bool]:
        v = self.value
        return None if v is None else v.is_negative_one

    def _bound_value(self) -> Optional[BoxedExpression]:
        v = self.value
        return None if v is None or v.is_same(self) else v

    def _parity(self) -> Optional[int]:
        d = self.symbol_definition
        if d is None:
            return None
        if d.flags.get("even"):
            return 0
        if d.flags.get("odd"):
            return 1
        v = self._bound_value()
        return None if v is None else v._parity()

    @property
    def is_finite(self) -> Optional[bool]:
        d = self.symbol_definition
        if d is None:
            return None
        if "finite" in d.flags:
            return d.flags["finite"]
        v = self._bound_value()
        if v is not None:
            return v.is_finite
        # rationals exclude the infinities
        return True if self.is_rational else None

    @property
    def is_nan(self) -> Optional[bool]:
        d = self.symbol_definition
        if d is None:
            return None
        if "nan" in d.flags:
            return d.flags["nan"]
        v = self._bound_value()
        if v is not None:
            return v.is_nan
        return False if self.is_real else None

    def _domain_query(self, literal: str) -> Optional[bool]:
        v = self.value
        if v is not None and v.is_number_literal:
            return v._domain_query(literal)
        return super()._domain_query(literal)

    # --- evaluation ---

    def evaluate(self, numeric_approximation: bool = False) -> BoxedExpression:
        if not self._canonical:
            return self.canonical.evaluate(numeric_approximation)
        d = self.symbol_definition
        if d is None or not d.has_value:
            return self
        if d.hold_until == "N" and not numeric_approximation:
            return self
        value = d.value
        if value is None or value.is_same(self):
            return self
        return value.evaluate(numeric_approximation)


# ============================================================
# Functions
# ============================================================

class BoxedFunction(BoxedExpression):
    """An operator applied to operands: ``["Add", "x", 1]``."""

    def __init__(self, ce, name: str, ops, metadata=None, canonical: bool = False):
        super().__init__(ce, metadata, canonical)
        self._name = name
        self._ops: Tuple[BoxedExpression, ...] = tuple(ops)
        self._def = None
        self._def_generation = -1

    @property
    def operator(self) -> str:
        return self._name

    @property
    def ops(self) -> Tuple[BoxedExpression, ...]:
        return self._ops

    @property
    def nops(self) -> int:
        return len(self._ops)

    @property
    def is_function(self) -> bool:
        return True

    @property
    def canonical(self) -> BoxedExpression:
        if self._canonical:
            return self
        from .canonical import canonical_function
        return canonical_function(self.engine, self._name, self._ops, self._metadata)

    @property
    def structural(self) -> BoxedExpression:
        ops = [op.structural for op in self._ops]
        result = BoxedFunction(self.engine, self._name, ops, self._metadata, canonical=False)
        result._structural = True
        return result

    @property
    def function_definition(self) -> Optional[FunctionDefinition]:
        if not self._canonical:
            return None
        d = self._def
        ce = self.engine
        if d is None or d.dead or self._def_generation != ce.generation:
            self._def = ce.lookup_function(self._name)
            self._def_generation = ce.generation
        return self._def

    def is_same(self, other) -> bool:
        if not isinstance(other, BoxedFunction):
            return False
        if other._name != self._name or len(other._ops) != len(self._ops):
            return False
        return all(a.is_same(b) for a, b in zip(self._ops, other._ops))

    def _compute_hash(self) -> int:
        return hash((self._name, tuple(hash(op) for op in self._ops)))

    def _cached(self, key, compute):
        d = self.function_definition
        if d is not None and not d.pure:
            return compute()
        return super()._cached(key, compute)

    # --- traversal ---

    def _rebuild(self, ops, canonical: bool) -> BoxedExpression:
        ce = self.engine
        if canonical:
            return ce.function(self._name, ops, metadata=self._metadata)
        return BoxedFunction(ce, self._name, ops, self._metadata, canonical=False)

    def subs(self, sub, canonical=None) -> BoxedExpression:
        canonical = self._canonical if canonical is None else canonical
        ops = [op.subs(sub, canonical=canonical) for op in self._ops]
        name = self._name
        if name in sub:
            replacement = sub[name]
            name = replacement.symbol if isinstance(replacement, BoxedSymbol) else str(replacement)
        if canonical:
            return self.engine.function(name, ops, metadata=self._metadata)
        return BoxedFunction(self.engine, name, ops, self._metadata, canonical=False)

    def map(self, fn, recursive: bool = True, canonical=None) -> BoxedExpression:
        canonical = self._canonical if canonical is None else canonical
        ops = [fn(op.map(fn, recursive, canonical) if recursive and op.is_function else op)
               for op in self._ops]
        return self._rebuild(ops, canonical)

    def has(self, names) -> bool:
        wanted = [names] if isinstance(names, str) else names
        if self._name in wanted:
            return True
        return any(op.has(wanted) for op in self._ops)

    def get_subexpressions(self, operator: str) -> List[BoxedExpression]:
        result = [self] if self._name == operator else []
        for op in self._ops:
            result.extend(op.get_subexpressions(operator))
        return result

    @property
    def subexpressions(self) -> List[BoxedExpression]:
        result = [self]
        for op in self._ops:
            result.extend(op.subexpressions)
        return result

    def _collect(self, attr: str) -> List[str]:
        seen = set()
        for op in self._ops:
            seen.update(getattr(op, attr))
        return sorted(seen)

    @property
    def symbols(self) -> List[str]:
        return self._collect("symbols")

    @property
    def unknowns(self) -> List[str]:
        return self._collect("unknowns")

    @property
    def free_variables(self) -> List[str]:
        return self._collect("free_variables")

    @property
    def errors(self) -> List[BoxedExpression]:
        return self.get_subexpressions("Error")

    # --- domains and signs ---

    @property
    def domain(self) -> Optional[BoxedDomain]:
        d = self.function_definition
        if d is None:
            return None
        return self._cached("domain", lambda: d.result_domain(self._ops))

    def _sign(self) -> Optional[frozenset]:
        return self._cached("sign", self._compute_sign)

    def _compute_sign(self) -> Optional[frozenset]:
        d = self.function_definition
        if d is None or d.sgn is None:
            return None
        return sign_set(d.sgn(self.engine, self._ops))

    @property
    def complexity(self) -> int:
        d = self.function_definition
        if d is not None:
            return d.complexity
        from .definitions import DEFAULT_COMPLEXITY
        return DEFAULT_COMPLEXITY

    @property
    def is_pure(self) -> bool:
        d = self.function_definition
        return d is not None and d.pure and all(op.is_pure for op in self._ops)

    def _literal(self, numeric_approximation: bool) -> Optional[BoxedExpression]:
        """The value of a pure expression without unknowns, when it is a number literal."""
        if not self.is_pure or self.unknowns:
            return None
        key = "N" if numeric_approximation else "value"
        value = self._cached(key, lambda: self.evaluate(numeric_approximation))
        return value if value.is_number_literal else None

    def _parity(self) -> Optional[int]:
        value = self._literal(False)
        return None if value is None else value._parity()

    @property
    def is_finite(self) -> Optional[bool]:
        value = self._literal(True)
        return None if value is None else value.is_finite

    @property
    def is_nan(self) -> Optional[bool]:
        value = self._literal(True)
        return None if value is None else value.is_nan

    # --- evaluation ---

    def evaluate(self, numeric_approximation: bool = False) -> BoxedExpression:
        """
        Evaluate operands (except held ones), then apply the operator.

        In numeric mode exact literal operands are folded exactly first, so
        that ``N()`` agrees with ``evaluate().N()``. When the exact fold gives
        neither a number nor an error, the literals are approximated and the
        operator is applied again. Literal results are approximated at the
        engine precision.
        """
        ce = self.engine
        if not self._canonical:
            return self.canonical.evaluate(numeric_approximation)
        d = self.function_definition
        with ce.recursion():
            ops: List[BoxedExpression] = []
            exact: List[int] = []
            count = len(self._ops)
            for i, op in enumerate(self._ops):
                if d is not None and d.is_held(i, count):
                    ops.append(op)
                    continue
                if numeric_approximation and op.is_number_literal and op.numeric_value.is_exact:
                    exact.append(len(ops))
                    ops.append(op)
                    continue
                result = op.evaluate(numeric_approximation)
                if result.operator == "Sequence":
                    ops.extend(result.ops)
                else:
                    ops.append(result)

            if d is None:
                return ce._fn(self._name, _approximate(ops, exact), self._metadata)
            if d.inert:
                ops = _approximate(ops, exact)
                return ops[0] if ops else ce.Nothing

            result = None
            if numeric_approximation and d.N is not None:
                result = d.N(ce, _approximate(ops, exact))
            if result is None and d.evaluate is not None:
                result = self._apply_evaluate(d.evaluate, ops, numeric_approximation)
                if exact and not _is_final(result):
                    ops = _approximate(ops, exact)
                    result = self._apply_evaluate(d.evaluate, ops, numeric_approximation)
            if result is None:
                return ce.function(self._name, _approximate(ops, exact), metadata=self._metadata)
            result = ce.box(result)
            if numeric_approximation and result.is_number_literal and result.numeric_value.is_exact:
                result = result.N()
            return result

    def _apply_evaluate(self, handler, ops, numeric_approximation: bool):
        ce = self.engine
        if callable(handler):
            return handler(ce, ops)
        template = ce.box(handler, canonical=False)
        sub = {"_": ops[0]} if ops else {}
        for i, op in enumerate(ops, 1):
            sub[f"_{i}"] = op
        return template.subs(sub, canonical=True).evaluate(numeric_approximation)


def _approximate(ops: List[BoxedExpression], indices: List[int]) -> List[BoxedExpression]:
    """``ops`` with the exact literals at ``indices`` approximated."""
    if not indices:
        return ops
    ops = list(ops)
    for i in indices:
        op = ops[i]
        if op.is_number_literal and op.numeric_value.is_exact:
            ops[i] = op.N()
    return ops


def _is_final(result) -> bool:
    """Whether an exact fold gave a number or an error."""
    if not isinstance(result, BoxedExpression):
        return False
    return result.is_number_literal or result.operator == "Error"
