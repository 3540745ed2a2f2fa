"""
Core library: the operators and constants every engine starts with.

Evaluate handlers are built from a few fold builders. A fold handler gets
the engine and the (evaluated) operands and returns the folded expression,
or None when there is nothing to fold:

    nary_fold("Add", 0, numeric.add)        (Add) = 0, (Add 1 2 x) = (Add 3 x)
    unary_fold("Sqrt", numeric.sqrt)        (Sqrt 4) = 2, (Sqrt 2) stays
    binary_fold("Divide", numeric.div)      (Divide 1 0) = division-by-zero error

The full standard library is not part of the core; ``CORE_FUNCTIONS`` and
``CORE_SYMBOLS`` are enough to canonicalize, simplify and evaluate
arithmetic, relations and logic.
"""

import math
import random
from decimal import Decimal
from fractions import Fraction
from typing import Any, Callable, Dict, List, Optional

from . import numeric
from .domains import BoxedDomain
from .numeric import NumericFailure, NumericValue

FoldResult = Any
FoldHandler = Callable[[Any, List], Optional[FoldResult]]


# ============================================================
# Fold Operation Builders
# ============================================================

def _number_result(ce, name: str, ops, value):
    if value is None:
        return None
    if isinstance(value, NumericFailure):
        return ce.error(value.code, ce._fn(name, ops))
    return ce.number(value)


def nary_fold(name: str, identity: int, binary_op, absorbing: Optional[int] = None) -> FoldHandler:
    """Create an n-ary folder with identity element.

    Literal operands are combined, the other operands are kept:
    ``(Add 1 x 2)`` folds to ``(Add 3 x)``.

    Args:
        name: Operator name, used to rebuild partially folded expressions
        identity: Value for 0-arity, e.g., 0 for Add, 1 for Multiply
        binary_op: ``op(a, b, precision)`` on NumericValue operands
        absorbing: Exact value that absorbs everything, e.g., 0 for Multiply
    """
    def handler(ce, ops):
        literals = [op.numeric_value for op in ops if op.is_number_literal]
        rest = [op for op in ops if not op.is_number_literal]
        if not literals:
            return None if rest else ce.number(identity)
        if rest and len(literals) < 2:
            if absorbing is not None and literals[0].is_exact and literals[0] == absorbing:
                return ce.number(absorbing)
            return None
        acc = literals[0]
        for value in literals[1:]:
            acc = binary_op(acc, value, ce.precision)
            if acc is None or isinstance(acc, NumericFailure):
                return _number_result(ce, name, ops, acc)
        if absorbing is not None and acc.is_exact and acc == absorbing:
            return ce.number(absorbing)
        if not rest:
            return ce.number(acc)
        return ce.function(name, [ce.number(acc), *rest])
    return handler


def unary_fold(name: str, f) -> FoldHandler:
    """Create a unary-only folder (e.g., Sqrt, Exp, Sin)."""
    def handler(ce, ops):
        if len(ops) != 1 or not ops[0].is_number_literal:
            return None  # Can't fold non-unary
        return _number_result(ce, name, ops, f(ops[0].numeric_value, ce.precision))
    return handler


def binary_fold(name: str, f) -> FoldHandler:
    """Create a binary-only folder (e.g., Divide, Power)."""
    def handler(ce, ops):
        if len(ops) != 2 or not (ops[0].is_number_literal and ops[1].is_number_literal):
            return None  # Can't fold non-binary
        return _number_result(ce, name, ops,
                              f(ops[0].numeric_value, ops[1].numeric_value, ce.precision))
    return handler


def _root(a: NumericValue, n: NumericValue, precision: int):
    if not n.is_integer or n.re <= 0:
        return None
    return numeric.root(a, int(n.re), precision)


# ============================================================
# Domains and signs
# ============================================================

def numeric_result(ce, ops) -> str:
    """Narrowest of Integer, RationalNumber, RealNumber, Number containing every operand."""
    doms = [op.domain for op in ops]
    if any(d is None for d in doms):
        return "Number"
    for literal in ("Integer", "RationalNumber", "RealNumber"):
        if all(d.is_compatible(literal) for d in doms):
            return literal
    return "Number"


def _real_or_number(ce, ops) -> str:
    return "RealNumber" if numeric_result(ce, ops) != "Number" else "Number"


_PRODUCT = {
    ("+", "+"): "+", ("+", "-"): "-", ("-", "+"): "-", ("-", "-"): "+",
}


def _mul_signs(a: frozenset, b: frozenset) -> frozenset:
    result = set()
    for x in a:
        for y in b:
            if "~" in (x, y):
                result.add("~")
            elif "0" in (x, y):
                result.add("0")
            else:
                result.add(_PRODUCT[(x, y)])
    return frozenset(result)


def _flip(s: frozenset) -> frozenset:
    return frozenset({"+": "-", "-": "+"}.get(x, x) for x in s)


def _signs(ops):
    return [op._sign() for op in ops]


def _sign_result(s: Optional[frozenset]) -> Optional[frozenset]:
    return s or None


def add_sign(ce, ops):
    signs = _signs(ops)
    if not signs or any(s is None or "~" in s for s in signs):
        return None
    if all(s <= frozenset("+0") for s in signs):
        return frozenset("+") if any(s == frozenset("+") for s in signs) else frozenset("+0")
    if all(s <= frozenset("-0") for s in signs):
        return frozenset("-") if any(s == frozenset("-") for s in signs) else frozenset("-0")
    return None


def multiply_sign(ce, ops):
    result = frozenset("+")
    for s in _signs(ops):
        if s == frozenset("0"):
            return s
        if s is None:
            return None
        result = _mul_signs(result, s)
    return result


def negate_sign(ce, ops):
    s = ops[0]._sign()
    return None if s is None else _flip(s)


def divide_sign(ce, ops):
    num, den = ops[0]._sign(), ops[1]._sign()
    if num is None or den is None:
        return None
    den = den - {"0"}
    if not den:
        return None
    return _mul_signs(num, den)


def power_sign(ce, ops):
    base, exponent = ops[0]._sign(), ops[1]
    if base is None:
        return None
    if "~" in base:
        return None
    if exponent.is_number_literal and exponent.numeric_value.is_integer:
        n = int(exponent.numeric_value.re)
        if n == 0:
            return frozenset("+")
        if n % 2 == 0:
            return frozenset(("0" if x == "0" else "+") for x in base) if n > 0 else frozenset("+")
        return base if n > 0 else base - {"0"} or None
    if base == frozenset("+"):
        return base
    return None


def sqrt_sign(ce, ops):
    s = ops[0]._sign()
    if s is not None and s <= frozenset("+0"):
        return s
    return None


def abs_sign(ce, ops):
    s = ops[0]._sign()
    if s == frozenset("0"):
        return s
    if s is not None and "0" not in s:
        return frozenset("+")
    return frozenset("+0")


def exp_sign(ce, ops):
    s = ops[0]._sign()
    if s is not None and "~" not in s:
        return frozenset("+")
    return None


# ============================================================
# Canonical handlers
# ============================================================

def _is_exact(op, n) -> bool:
    v = op.numeric_value
    return v is not None and v.is_exact and v.is_real and v.re == n


def canonical_add(ce, ops):
    ops = [op for op in ops if not _is_exact(op, 0)]
    if not ops:
        return ce.Zero
    if len(ops) == 1:
        return ops[0]
    return ce._fn("Add", ops)


def canonical_multiply(ce, ops):
    ops = [op for op in ops if not _is_exact(op, 1)]
    if not ops:
        return ce.One
    if len(ops) == 1:
        return ops[0]
    return ce._fn("Multiply", ops)


def canonical_negate(ce, ops):
    if len(ops) == 1 and ops[0].is_number_literal:
        return ce.number(numeric.neg(ops[0].numeric_value))
    return None


def canonical_subtract(ce, ops):
    if len(ops) == 1:
        return ce.function("Negate", ops)
    if len(ops) >= 2:
        return ce.function("Add", [ops[0], *(ce.function("Negate", [op]) for op in ops[1:])])
    return None


def canonical_divide(ce, ops):
    if len(ops) != 2:
        return None
    num, den = ops
    if _is_exact(den, 1):
        return num
    if num.is_number_literal and den.is_number_literal:
        a, b = num.numeric_value, den.numeric_value
        if a.is_exact and b.is_exact and a.is_integer and b.is_integer and not b.is_zero:
            return ce.number(Fraction(a.re) / Fraction(b.re))
    return None


def canonical_power(ce, ops):
    if len(ops) != 2:
        return None
    base, exponent = ops
    if _is_exact(exponent, 1):
        return base
    if _is_exact(exponent, 0) or _is_exact(base, 1):
        return ce.One
    return None


def canonical_square(ce, ops):
    if len(ops) == 1:
        return ce.function("Power", [ops[0], ce.number(2)])
    return None


def canonical_root(ce, ops):
    if len(ops) == 2 and _is_exact(ops[1], 2):
        return ce.function("Sqrt", [ops[0]])
    return None


def canonical_rational(ce, ops):
    if len(ops) == 2:
        p, q = ops
        if p.is_number_literal and q.is_number_literal and p.numeric_value.is_integer \
                and q.numeric_value.is_integer and p.numeric_value.is_exact \
                and q.numeric_value.is_exact and not q.numeric_value.is_zero:
            return ce.number(Fraction(p.numeric_value.re) / Fraction(q.numeric_value.re))
        return ce.function("Divide", ops)
    if len(ops) == 1:
        return ops[0]
    return None


def canonical_complex(ce, ops):
    if len(ops) == 2 and all(op.is_number_literal and op.numeric_value.is_real for op in ops):
        return ce.number(NumericValue(ops[0].numeric_value.re, ops[1].numeric_value.re))
    return None


def canonical_sequence(ce, ops):
    if len(ops) == 1:
        return ops[0]
    return None


# ============================================================
# Relations and logic
# ============================================================

def _truth(ce, value: Optional[bool]):
    if value is None:
        return None
    return ce.True_ if value else ce.False_


def _is_boolean(op) -> Optional[bool]:
    if op.symbol == "True":
        return True
    if op.symbol == "False":
        return False
    return None


def relation(true_when: str, false_when: str) -> FoldHandler:
    """Evaluate a comparison from the sign of ``lhs - rhs``."""
    yes, no = frozenset(true_when), frozenset(false_when)

    def handler(ce, ops):
        if len(ops) != 2:
            return None
        s = ce.difference_sign(ops[0], ops[1])
        if s is None or "~" in s:
            return None
        if s <= yes:
            return ce.True_
        if s <= no:
            return ce.False_
        return None
    return handler


def evaluate_equal(ce, ops):
    if len(ops) != 2:
        return None
    lhs, rhs = ops
    if lhs.is_same(rhs):
        return ce.True_
    if lhs.string is not None and rhs.string is not None:
        return ce.False_
    s = ce.difference_sign(lhs, rhs)
    if s == frozenset("0"):
        return ce.True_
    if s is not None and "0" not in s:
        return ce.False_
    return None


def evaluate_not_equal(ce, ops):
    result = evaluate_equal(ce, ops)
    if result is None:
        return None
    return ce.False_ if result.symbol == "True" else ce.True_


def evaluate_element(ce, ops):
    if len(ops) != 2:
        return None
    try:
        dom = BoxedDomain(ops[1].json)
    except ValueError:
        return None
    value = ops[0]
    if value.symbol is not None and value.value is not None:
        value = value.value
    actual = value.domain
    if actual is None:
        return None
    if actual.is_compatible(dom):
        return ce.True_
    if value.is_number_literal:
        return ce.False_
    return None


def evaluate_and(ce, ops):
    values = [_is_boolean(op) for op in ops]
    if any(v is False for v in values):
        return ce.False_
    if all(v is True for v in values):
        return ce.True_
    rest = [op for op, v in zip(ops, values) if v is None]
    if len(rest) == len(ops):
        return None
    return ce.function("And", rest)


def evaluate_or(ce, ops):
    values = [_is_boolean(op) for op in ops]
    if any(v is True for v in values):
        return ce.True_
    if all(v is False for v in values):
        return ce.False_
    rest = [op for op, v in zip(ops, values) if v is None]
    if len(rest) == len(ops):
        return None
    return ce.function("Or", rest)


def evaluate_not(ce, ops):
    if len(ops) != 1:
        return None
    v = _is_boolean(ops[0])
    return _truth(ce, None if v is None else not v)


def evaluate_random(ce, ops):
    return ce.number(random.random())


def evaluate_assume(ce, ops):
    if len(ops) != 1:
        return None
    return ce.string(ce.assume(ops[0]))


# ============================================================
# Constants
# ============================================================

def _precise(decimal_fn: Callable[[int], Decimal]) -> Callable:
    """Value factory for a constant known to the engine precision."""
    def value(ce):
        precision = max(ce.precision, numeric.MACHINE_PRECISION)
        return numeric.approximate(NumericValue(decimal_fn(precision + 2)), ce.precision)
    return value


def _e(precision: int) -> Decimal:
    return Decimal(1).exp(context=numeric.bignum_context(precision))


CORE_SYMBOLS: Dict[str, Dict[str, Any]] = {
    "Pi": dict(domain="TranscendentalNumber", constant=True, hold_until="N",
               value=_precise(numeric.decimal_pi), flags={"positive": True},
               wikidata="Q167", description="Ratio of a circle's circumference to its diameter"),
    "ExponentialE": dict(domain="TranscendentalNumber", constant=True, hold_until="N",
                         value=_precise(_e), flags={"positive": True},
                         wikidata="Q82435", description="Euler's number"),
    "ImaginaryUnit": dict(domain="ImaginaryNumber", constant=True, hold_until="never",
                          value=NumericValue(0, 1), wikidata="Q193796"),
    "NaN": dict(domain="Number", constant=True, hold_until="never", value=math.nan),
    "PositiveInfinity": dict(domain="RealNumber", constant=True, hold_until="never", value=math.inf),
    "NegativeInfinity": dict(domain="RealNumber", constant=True, hold_until="never", value=-math.inf),
    "True": dict(domain="Boolean", constant=True),
    "False": dict(domain="Boolean", constant=True),
    "Nothing": dict(domain="Nothing", constant=True),
}


# ============================================================
# Operators
# ============================================================

CORE_FUNCTIONS: Dict[str, Dict[str, Any]] = {
    # Arithmetic
    "Add": dict(rest_param="Number", result=numeric_result, associative=True, commutative=True,
                numeric=True, complexity=1300, canonical=canonical_add,
                evaluate=nary_fold("Add", 0, numeric.add), sgn=add_sign, wikidata="Q32043"),
    "Multiply": dict(rest_param="Number", result=numeric_result, associative=True,
                     commutative=True, numeric=True, complexity=2100,
                     canonical=canonical_multiply,
                     evaluate=nary_fold("Multiply", 1, numeric.mul, absorbing=0),
                     sgn=multiply_sign, wikidata="Q40276"),
    "Negate": dict(params=["Number"], rest_param=None, result=numeric_result, involution=True,
                   numeric=True, complexity=2000, canonical=canonical_negate,
                   evaluate=unary_fold("Negate", lambda v, p: numeric.neg(v)), sgn=negate_sign),
    "Subtract": dict(params=["Number"], opt_params=["Number"], rest_param="Number",
                     result=numeric_result, numeric=True, complexity=1350,
                     canonical=canonical_subtract),
    "Divide": dict(params=["Number", "Number"], rest_param=None, result=_real_or_number,
                   numeric=True, complexity=2500, canonical=canonical_divide,
                   evaluate=binary_fold("Divide", numeric.div), sgn=divide_sign),
    "Power": dict(params=["Number", "Number"], rest_param=None, result="Number", numeric=True,
                  complexity=3500, canonical=canonical_power,
                  evaluate=binary_fold("Power", numeric.pow), sgn=power_sign),
    "Square": dict(params=["Number"], rest_param=None, result="Number", numeric=True,
                   complexity=3100, canonical=canonical_square),
    "Sqrt": dict(params=["Number"], rest_param=None, result="Number", numeric=True,
                 complexity=3200, evaluate=unary_fold("Sqrt", numeric.sqrt), sgn=sqrt_sign),
    "Root": dict(params=["Number", "Number"], rest_param=None, result="Number", numeric=True,
                 complexity=3200, canonical=canonical_root, evaluate=binary_fold("Root", _root)),
    "Abs": dict(params=["Number"], rest_param=None, result="NonNegativeNumber", numeric=True,
                idempotent=True, complexity=1200,
                evaluate=unary_fold("Abs", numeric.abs_), sgn=abs_sign),
    "Exp": dict(params=["Number"], rest_param=None, result=_real_or_number, numeric=True,
                complexity=3500, evaluate=unary_fold("Exp", numeric.exp), sgn=exp_sign),
    "Ln": dict(params=["Number"], rest_param=None, result="Number", numeric=True,
               complexity=4000, evaluate=unary_fold("Ln", numeric.ln)),
    "Sin": dict(params=["Number"], rest_param=None, result=_real_or_number, numeric=True,
                complexity=5000, evaluate=unary_fold("Sin", numeric.sin)),
    "Cos": dict(params=["Number"], rest_param=None, result=_real_or_number, numeric=True,
                complexity=5000, evaluate=unary_fold("Cos", numeric.cos)),
    "Rational": dict(params=["Number"], opt_params=["Number"], rest_param=None,
                     result="RationalNumber", numeric=True, complexity=2400,
                     canonical=canonical_rational),
    "Complex": dict(params=["Number", "Number"], rest_param=None, result="ComplexNumber",
                    numeric=True, canonical=canonical_complex),

    # Structure
    "Sequence": dict(rest_param="Anything", canonical=canonical_sequence),
    "Hold": dict(params=["Anything"], rest_param=None, hold="all"),
    "Error": dict(rest_param="Anything", hold="all", inferred=True, result="Void"),
    "ErrorCode": dict(rest_param="Anything", hold="all", inferred=True, result="Void"),
    "List": dict(rest_param="Anything", result="List"),
    "Tuple": dict(rest_param="Anything", result="Tuple"),

    # Relations
    "Equal": dict(params=["Anything", "Anything"], rest_param=None, result="Boolean",
                  commutative=True, evaluate=evaluate_equal),
    "NotEqual": dict(params=["Anything", "Anything"], rest_param=None, result="Boolean",
                     commutative=True, evaluate=evaluate_not_equal),
    "Less": dict(params=["Number", "Number"], rest_param=None, result="Boolean",
                 evaluate=relation("-", "+0")),
    "LessEqual": dict(params=["Number", "Number"], rest_param=None, result="Boolean",
                      evaluate=relation("-0", "+")),
    "Greater": dict(params=["Number", "Number"], rest_param=None, result="Boolean",
                    evaluate=relation("+", "-0")),
    "GreaterEqual": dict(params=["Number", "Number"], rest_param=None, result="Boolean",
                         evaluate=relation("+0", "-")),
    "Element": dict(params=["Anything", "Anything"], rest_param=None, result="Boolean",
                    hold="rest", evaluate=evaluate_element),

    # Logic
    "And": dict(rest_param="Boolean", result="Boolean", associative=True, commutative=True,
                idempotent=True, evaluate=evaluate_and),
    "Or": dict(rest_param="Boolean", result="Boolean", associative=True, commutative=True,
               idempotent=True, evaluate=evaluate_or),
    "Not": dict(params=["Boolean"], rest_param=None, result="Boolean", involution=True,
                evaluate=evaluate_not),

    # Impure
    "Random": dict(rest_param=None, result="RealNumber", pure=False, evaluate=evaluate_random),
    "Assume": dict(params=["Anything"], rest_param=None, result="String", pure=False,
                   hold="all", evaluate=evaluate_assume),
}


def load_core_library(ce):
    """Define the core symbols and operators in the engine's current scope."""
    for name, options in CORE_FUNCTIONS.items():
        ce.define_function(name, **options)
    for name, options in CORE_SYMBOLS.items():
        ce.define_symbol(name, **options)
