"""
MathJSON serialization of boxed expressions.

    to_json(expr)                       plain nested lists, shorthand atoms
    to_json(expr, prettify=True)        sugared: Subtract, Square, Sqrt, Divide, Negate
    to_json(expr, shorthands=[])        dict forms: {"num": ...}, {"sym": ...}, {"fn": [...]}
    to_string(expr)                     compact infix text, used in traces and reprs
"""

import math
from decimal import Decimal
from fractions import Fraction
from typing import Iterable, List, Optional, Union

from .numeric import MACHINE_PRECISION, NumericValue

SHORTHANDS = ("number", "symbol", "string", "function")
SUGAR = ("Square", "Sqrt", "Subtract", "Negate", "Divide")


class SerializationOptions:
    def __init__(self, shorthands: Union[str, Iterable[str]] = "all",
                 exclude: Optional[Iterable[str]] = None, metadata: bool = False,
                 prettify: bool = False, fractional_digits: Union[str, int] = "max"):
        if shorthands == "all":
            shorthands = SHORTHANDS
        unknown = set(shorthands) - set(SHORTHANDS)
        if unknown:
            raise ValueError(f"Unknown shorthands: {sorted(unknown)}")
        self.shorthands = set(shorthands)
        self.exclude = set(exclude or [])
        self.metadata = metadata
        self.prettify = prettify
        if not (fractional_digits in ("max", "auto") or isinstance(fractional_digits, int)):
            raise ValueError(f"Invalid fractional_digits: {fractional_digits!r}")
        self.fractional_digits = fractional_digits

    def sugar(self, name: str) -> bool:
        return self.prettify and name not in self.exclude


def to_json(expr, **options):
    return _serialize(expr, SerializationOptions(**options))


# ============================================================
# Atoms
# ============================================================

def _round(x, opts: SerializationOptions):
    digits = opts.fractional_digits
    if not isinstance(digits, int) or isinstance(x, Fraction):
        return x
    if isinstance(x, Decimal):
        if not x.is_finite():
            return x
        return x.quantize(Decimal(1).scaleb(-digits))
    if not math.isfinite(x):
        return x
    return round(x, digits)


def _real_json(x, opts: SerializationOptions):
    if isinstance(x, Fraction):
        if x.denominator == 1:
            return int(x)
        return ["Rational", x.numerator, x.denominator]
    x = _round(x, opts)
    if isinstance(x, float):
        if math.isnan(x):
            return {"num": "NaN"}
        if math.isinf(x):
            return {"num": "+Infinity" if x > 0 else "-Infinity"}
        return x
    # Decimal
    if x.is_nan():
        return {"num": "NaN"}
    if x.is_infinite():
        return {"num": "+Infinity" if x > 0 else "-Infinity"}
    if len(x.as_tuple().digits) <= MACHINE_PRECISION:
        if x == x.to_integral_value():
            return int(x)
        return float(x)
    return {"num": str(x)}


def number_json(value: NumericValue, opts: Optional[SerializationOptions] = None):
    opts = opts or SerializationOptions()
    if value.im is not None:
        return ["Complex", _real_json(value.re, opts), _real_json(value.im, opts)]
    result = _real_json(value.re, opts)
    if "number" not in opts.shorthands and not isinstance(result, (dict, list)):
        return {"num": str(result)}
    return result


def _with_metadata(expr, key: str, payload, opts: SerializationOptions, shorthand: bool):
    meta = {}
    if opts.metadata:
        if expr.latex is not None:
            meta["latex"] = expr.latex
        if expr.wikidata is not None:
            meta["wikidata"] = expr.wikidata
    if shorthand and not meta:
        return payload
    return {key: payload, **meta}


# ============================================================
# Functions
# ============================================================

def _is_negate(expr) -> bool:
    return expr.operator == "Negate" and expr.nops == 1


def _is_half(expr) -> bool:
    v = expr.numeric_value
    return v is not None and v.is_real and v.re == Fraction(1, 2)


def _is_number(expr, n) -> bool:
    v = expr.numeric_value
    return v is not None and v.is_real and v.re == n


def _function_json(expr, opts: SerializationOptions):
    name, ops = expr.operator, list(expr.ops)
    ser = lambda e: _serialize(e, opts)

    if name == "Add" and len(ops) == 2 and opts.sugar("Subtract"):
        for lhs, rhs in (ops, ops[::-1]):
            if _is_negate(rhs) and not _is_negate(lhs):
                return _fn("Subtract", [ser(lhs), ser(rhs.op1)], expr, opts)
            v = rhs.numeric_value
            if v is not None and v.is_real and v.re < 0 and not lhs.is_number_literal:
                return _fn("Subtract", [ser(lhs), number_json(NumericValue(-v.re), opts)], expr, opts)
    if name == "Multiply" and len(ops) == 2:
        if _is_number(ops[0], -1) and opts.sugar("Negate"):
            return _fn("Negate", [ser(ops[1])], expr, opts)
        if opts.sugar("Divide"):
            for i in (1, 0):
                other = ops[1 - i]
                if ops[i].operator == "Power" and _is_number(ops[i].op2, -1):
                    return _fn("Divide", [ser(other), ser(ops[i].op1)], expr, opts)
    if name == "Power" and len(ops) == 2:
        base, exponent = ops
        if _is_number(exponent, 2) and opts.sugar("Square"):
            return _fn("Square", [ser(base)], expr, opts)
        if _is_half(exponent) and opts.sugar("Sqrt"):
            return _fn("Sqrt", [ser(base)], expr, opts)
        if _is_number(exponent, -1) and opts.sugar("Divide"):
            return _fn("Divide", [1, ser(base)], expr, opts)

    # Canonical forms that have been excluded
    if name == "Negate" and "Negate" in opts.exclude and len(ops) == 1:
        return _fn("Multiply", [-1, ser(ops[0])], expr, opts)
    if name == "Sqrt" and "Sqrt" in opts.exclude and len(ops) == 1:
        return _fn("Power", [ser(ops[0]), ["Rational", 1, 2]], expr, opts)
    if name == "Divide" and "Divide" in opts.exclude and len(ops) == 2:
        return _fn("Multiply", [ser(ops[0]), ["Power", ser(ops[1]), -1]], expr, opts)
    return _fn(name, [ser(op) for op in ops], expr, opts)


def _fn(name: str, ops: List, expr, opts: SerializationOptions):
    return _with_metadata(expr, "fn", [name, *ops], opts, "function" in opts.shorthands)


def _serialize(expr, opts: SerializationOptions):
    if expr.is_number_literal:
        result = number_json(expr.numeric_value, opts)
        if opts.metadata and (expr.latex or expr.wikidata):
            return _with_metadata(expr, "num", str(expr.numeric_value), opts, False)
        return result
    if expr.symbol is not None:
        return _with_metadata(expr, "sym", expr.symbol, opts, "symbol" in opts.shorthands)
    if expr.string is not None:
        if "string" in opts.shorthands and not opts.metadata:
            return f"'{expr.string}'"
        return _with_metadata(expr, "str", expr.string, opts, False)
    return _function_json(expr, opts)


# ============================================================
# Infix text
# ============================================================

_PRECEDENCE = {"Equal": 1, "NotEqual": 1, "Less": 1, "LessEqual": 1, "Greater": 1,
               "GreaterEqual": 1, "Add": 2, "Subtract": 2, "Multiply": 3, "Divide": 3,
               "Negate": 4, "Power": 5}
_INFIX = {"Equal": " = ", "NotEqual": " != ", "Less": " < ", "LessEqual": " <= ",
          "Greater": " > ", "GreaterEqual": " >= ", "Multiply": "*", "Divide": "/", "Power": "^"}


def to_string(expr, parent: int = 0) -> str:
    """Compact infix rendering, e.g. ``x^2 + 3*y``."""
    if expr.is_number_literal:
        text = str(expr.numeric_value)
        return f"({text})" if parent and text.startswith("-") else text
    if expr.symbol is not None:
        return expr.symbol
    if expr.string is not None:
        return f"'{expr.string}'"
    name, ops = expr.operator, list(expr.ops)
    prec = _PRECEDENCE.get(name)
    if name == "Add" and ops:
        text = to_string(ops[0], 2)
        for op in ops[1:]:
            if _is_negate(op):
                text += " - " + to_string(op.op1, 3)
            else:
                text += " + " + to_string(op, 2)
    elif name == "Negate" and len(ops) == 1:
        text = "-" + to_string(ops[0], 4)
    elif name in _INFIX and len(ops) >= 2:
        text = _INFIX[name].join(to_string(op, prec + 1 if name != "Multiply" else prec) for op in ops)
    else:
        return f"{name}({', '.join(to_string(op) for op in ops)})"
    return f"({text})" if prec is not None and prec < parent else text
