"""
Numeric values for the compute engine.

A ``NumericValue`` is a closed tagged union over four representations:

    rational   exact, a ``fractions.Fraction`` (always in lowest terms)
    machine    approximate, a Python ``float``
    bignum     approximate, a ``decimal.Decimal`` at the engine precision
    complex    a real part and an imaginary part, each one of the above

Operations are plain functions that take and return ``NumericValue``.
Mixed operands are promoted along rational -> machine -> bignum -> complex.
Exact operations never drop precision: when the exact result cannot be
represented (``2 ** (1/2)``) they return ``None``, meaning "cannot fold",
and the caller keeps the expression symbolic. Division by an exact zero
returns ``DIVISION_BY_ZERO`` instead of raising.
"""

import cmath
import math
from decimal import Context, Decimal, InvalidOperation, localcontext
from fractions import Fraction
from typing import Optional, Tuple, Union

MACHINE_PRECISION = 15
DEFAULT_PRECISION = 21

RATIONAL = "rational"
MACHINE = "machine"
BIGNUM = "bignum"
COMPLEX = "complex"

_RANK = {RATIONAL: 0, MACHINE: 1, BIGNUM: 2, COMPLEX: 3}

RealType = Union[Fraction, float, Decimal]
NumberLike = Union[int, float, Fraction, Decimal, complex, str, "NumericValue"]


class NumericFailure:
    """A failed numeric operation, carried as a value rather than raised."""

    __slots__ = ("code",)

    def __init__(self, code: str):
        self.code = code

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return f"NumericFailure({self.code!r})"


DIVISION_BY_ZERO = NumericFailure("division-by-zero")


def bignum_context(precision: int) -> Context:
    """Decimal context for ``precision`` digits with IEEE-like (untrapped) signals."""
    return Context(prec=max(1, precision), traps=[])


# ============================================================
# Real-part helpers
# ============================================================

def _coerce_real(x) -> RealType:
    if isinstance(x, bool):
        return Fraction(int(x))
    if isinstance(x, int):
        return Fraction(x)
    if isinstance(x, (Fraction, float, Decimal)):
        return x
    if isinstance(x, str):
        return parse_real(x)
    raise TypeError(f"Not a real number: {x!r}")


def parse_real(s: str) -> RealType:
    """
    Parse a numeric string.

    Integers and ``p/q`` give exact rationals. Decimal notation gives a
    machine float when it fits in 15 significant digits, a bignum otherwise.
    """
    text = s.strip().replace("_", "")
    lowered = text.lower()
    if lowered in ("nan", "+nan", "-nan"):
        return float("nan")
    if lowered in ("infinity", "+infinity", "inf", "+inf"):
        return float("inf")
    if lowered in ("-infinity", "-inf"):
        return float("-inf")
    if "/" in text:
        return Fraction(text)
    if not any(c in lowered for c in ".e"):
        return Fraction(int(text))
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Invalid number: {s!r}")
    digits = len(value.as_tuple().digits)
    if digits <= MACHINE_PRECISION:
        return float(value)
    return value


def real_kind(x: RealType) -> str:
    if isinstance(x, Fraction):
        return RATIONAL
    if isinstance(x, float):
        return MACHINE
    return BIGNUM


def _to_kind(x: RealType, kind: str, precision: int) -> RealType:
    if kind == RATIONAL or real_kind(x) == kind:
        return x
    if kind == MACHINE:
        return to_float(x)
    # bignum
    if isinstance(x, Fraction):
        ctx = bignum_context(precision)
        return ctx.divide(Decimal(x.numerator), Decimal(x.denominator))
    return Decimal(repr(x)) if math.isfinite(x) else Decimal(str(x))


def to_float(x: RealType) -> float:
    try:
        return float(x)
    except OverflowError:
        return math.inf if x > 0 else -math.inf


def _promote(x: RealType, y: RealType, precision: int) -> Tuple[RealType, RealType]:
    kind = max(real_kind(x), real_kind(y), key=_RANK.get)
    return _to_kind(x, kind, precision), _to_kind(y, kind, precision)


def _r_add(x, y, precision):
    x, y = _promote(x, y, precision)
    if isinstance(x, Decimal):
        return bignum_context(precision).add(x, y)
    return x + y


def _r_sub(x, y, precision):
    x, y = _promote(x, y, precision)
    if isinstance(x, Decimal):
        return bignum_context(precision).subtract(x, y)
    return x - y


def _r_mul(x, y, precision):
    x, y = _promote(x, y, precision)
    if isinstance(x, Decimal):
        return bignum_context(precision).multiply(x, y)
    return x * y


def _r_div(x, y, precision):
    x, y = _promote(x, y, precision)
    if isinstance(x, Decimal):
        return bignum_context(precision).divide(x, y)
    if isinstance(x, float) and y == 0:
        if x == 0 or math.isnan(x):
            return math.nan
        return math.copysign(math.inf, x) * math.copysign(1.0, y)
    return x / y


def _r_is_zero(x: RealType) -> bool:
    return x == 0


def _r_isnan(x: RealType) -> bool:
    if isinstance(x, Fraction):
        return False
    if isinstance(x, Decimal):
        return x.is_nan()
    return math.isnan(x)


def _r_isinf(x: RealType) -> bool:
    if isinstance(x, Fraction):
        return False
    if isinstance(x, Decimal):
        return x.is_infinite()
    return math.isinf(x)


def _r_is_integer(x: RealType) -> bool:
    if isinstance(x, Fraction):
        return x.denominator == 1
    if _r_isnan(x) or _r_isinf(x):
        return False
    return x == int(x)


# ============================================================
# NumericValue
# ============================================================

class NumericValue:
    """
    An exact or approximate, real or complex, scalar.

    Examples:
        NumericValue(3)                 # exact rational 3
        NumericValue(Fraction(1, 3))    # exact rational 1/3
        NumericValue(0.5)               # machine float
        NumericValue(Decimal("1.25"))   # bignum
        NumericValue(0, 1)              # exact complex i
    """

    __slots__ = ("re", "im")

    def __init__(self, re, im=None):
        if isinstance(re, NumericValue):
            re, im = re.re, re.im if im is None else im
        if isinstance(re, complex):
            re, im = re.real, re.imag
        self.re = _coerce_real(re)
        self.im = None if im is None else _coerce_real(im)

    @classmethod
    def from_python(cls, value: NumberLike) -> "NumericValue":
        if isinstance(value, NumericValue):
            return value
        return cls(value)

    # --- classification ---

    @property
    def kind(self) -> str:
        if self.im is not None:
            return COMPLEX
        return real_kind(self.re)

    @property
    def imag(self) -> RealType:
        return Fraction(0) if self.im is None else self.im

    @property
    def is_exact(self) -> bool:
        return isinstance(self.re, Fraction) and (self.im is None or isinstance(self.im, Fraction))

    @property
    def is_real(self) -> bool:
        return self.im is None or self.im == 0

    @property
    def is_zero(self) -> bool:
        return self.re == 0 and self.is_real

    @property
    def is_one(self) -> bool:
        return self.re == 1 and self.is_real

    @property
    def is_negative_one(self) -> bool:
        return self.re == -1 and self.is_real

    @property
    def is_nan(self) -> bool:
        return _r_isnan(self.re) or (self.im is not None and _r_isnan(self.im))

    @property
    def is_infinity(self) -> bool:
        return _r_isinf(self.re) or (self.im is not None and _r_isinf(self.im))

    @property
    def is_finite(self) -> bool:
        return not self.is_nan and not self.is_infinity

    @property
    def is_integer(self) -> bool:
        return self.is_real and _r_is_integer(self.re)

    @property
    def is_rational(self) -> bool:
        return self.is_real and isinstance(self.re, Fraction)

    def python_value(self):
        """Return the closest plain Python number (int, Fraction, float, Decimal or complex)."""
        if not self.is_real:
            return complex(to_float(self.re), to_float(self.im))
        if isinstance(self.re, Fraction) and self.re.denominator == 1:
            return int(self.re)
        return self.re

    def __float__(self) -> float:
        if not self.is_real:
            raise TypeError("Cannot convert a complex value to float")
        return to_float(self.re)

    def __complex__(self) -> complex:
        return complex(to_float(self.re), to_float(self.imag))

    def __eq__(self, other) -> bool:
        if not isinstance(other, NumericValue):
            try:
                other = NumericValue(other)
            except TypeError:
                return NotImplemented
        if self.is_nan or other.is_nan:
            return False
        return self.re == other.re and self.imag == other.imag

    def __hash__(self) -> int:
        if self.is_real:
            return hash(self.re)
        return hash((self.re, self.im))

    def __repr__(self) -> str:
        if self.im is None:
            return f"NumericValue({self.re!r})"
        return f"NumericValue({self.re!r}, {self.im!r})"

    def __str__(self) -> str:
        if self.im is None:
            return format_real(self.re)
        return f"({format_real(self.re)}{'+' if not str(self.im).startswith('-') else ''}{format_real(self.im)}i)"


def format_real(x: RealType) -> str:
    if isinstance(x, Fraction):
        return str(x.numerator) if x.denominator == 1 else f"{x.numerator}/{x.denominator}"
    if isinstance(x, float):
        return repr(x)
    return str(x)


# ============================================================
# Arithmetic
# ============================================================

def add(a: NumericValue, b: NumericValue, precision: int = DEFAULT_PRECISION) -> NumericValue:
    re = _r_add(a.re, b.re, precision)
    if a.im is None and b.im is None:
        return NumericValue(re)
    return NumericValue(re, _r_add(a.imag, b.imag, precision))


def neg(a: NumericValue) -> NumericValue:
    return NumericValue(-a.re, None if a.im is None else -a.im)


def sub(a: NumericValue, b: NumericValue, precision: int = DEFAULT_PRECISION) -> NumericValue:
    return add(a, neg(b), precision)


def mul(a: NumericValue, b: NumericValue, precision: int = DEFAULT_PRECISION) -> NumericValue:
    if a.im is None and b.im is None:
        return NumericValue(_r_mul(a.re, b.re, precision))
    p = precision
    re = _r_sub(_r_mul(a.re, b.re, p), _r_mul(a.imag, b.imag, p), p)
    im = _r_add(_r_mul(a.re, b.imag, p), _r_mul(a.imag, b.re, p), p)
    return NumericValue(re, im)


def div(a: NumericValue, b: NumericValue, precision: int = DEFAULT_PRECISION):
    """Divide ``a`` by ``b``. Dividing by an exact zero returns ``DIVISION_BY_ZERO``."""
    if b.is_zero and b.is_exact:
        return DIVISION_BY_ZERO
    p = precision
    if a.im is None and b.im is None:
        return NumericValue(_r_div(a.re, b.re, p))
    denom = _r_add(_r_mul(b.re, b.re, p), _r_mul(b.imag, b.imag, p), p)
    if denom == 0:
        return NumericValue(math.nan, math.nan)
    re = _r_add(_r_mul(a.re, b.re, p), _r_mul(a.imag, b.imag, p), p)
    im = _r_sub(_r_mul(a.imag, b.re, p), _r_mul(a.re, b.imag, p), p)
    return NumericValue(_r_div(re, denom, p), _r_div(im, denom, p))


def inv(a: NumericValue, precision: int = DEFAULT_PRECISION):
    return div(NumericValue(1), a, precision)


def _iroot(k: int, n: int) -> int:
    """Floor of the ``n``-th root of a non-negative integer."""
    if k < 2:
        return k
    x = 1 << ((k.bit_length() + n - 1) // n)
    while True:
        y = ((n - 1) * x + k // x ** (n - 1)) // n
        if y >= x:
            return x
        x = y


def _exact_root(x: Fraction, n: int) -> Optional[Fraction]:
    if x < 0:
        if n % 2 == 0:
            return None
        r = _exact_root(-x, n)
        return None if r is None else -r
    p, q = _iroot(x.numerator, n), _iroot(x.denominator, n)
    if p ** n == x.numerator and q ** n == x.denominator:
        return Fraction(p, q)
    return None


def _decimal_sqrt(x: Decimal, precision: int) -> Decimal:
    return x.sqrt(context=bignum_context(precision))


def sqrt(a: NumericValue, precision: int = DEFAULT_PRECISION) -> Optional[NumericValue]:
    """Principal square root; ``None`` when an exact input has no exact root."""
    if not a.is_real:
        if a.is_exact:
            return None
        return NumericValue(cmath.sqrt(complex(a)))
    x = a.re
    if isinstance(x, Fraction):
        r = _exact_root(abs(x), 2)
        if r is None:
            return None
        return NumericValue(r) if x >= 0 else NumericValue(0, r)
    if isinstance(x, float):
        return NumericValue(math.sqrt(x)) if x >= 0 else NumericValue(0.0, math.sqrt(-x))
    if x >= 0:
        return NumericValue(_decimal_sqrt(x, precision))
    return NumericValue(Decimal(0), _decimal_sqrt(-x, precision))


def root(a: NumericValue, n: int, precision: int = DEFAULT_PRECISION) -> Optional[NumericValue]:
    """Real ``n``-th root."""
    if n == 2:
        return sqrt(a, precision)
    if not a.is_real:
        if a.is_exact:
            return None
        return NumericValue(complex(a) ** (1.0 / n))
    x = a.re
    if isinstance(x, Fraction):
        r = _exact_root(x, n)
        return None if r is None else NumericValue(r)
    return pow(a, NumericValue(Fraction(1, n)), precision)


def abs_(a: NumericValue, precision: int = DEFAULT_PRECISION) -> Optional[NumericValue]:
    if a.im is None:
        return NumericValue(abs(a.re))
    squared = _r_add(_r_mul(a.re, a.re, precision), _r_mul(a.im, a.im, precision), precision)
    return sqrt(NumericValue(squared), precision)


def _pow_int(a: NumericValue, n: int, precision: int):
    if n < 0:
        if a.is_zero and a.is_exact:
            return DIVISION_BY_ZERO
        base = _pow_int(a, -n, precision)
        return div(NumericValue(1), base, precision)
    if a.im is None:
        x = a.re
        if isinstance(x, Decimal):
            return NumericValue(bignum_context(precision).power(x, n))
        try:
            return NumericValue(x ** n)
        except OverflowError:
            return NumericValue(math.inf if x > 0 or n % 2 == 0 else -math.inf)
    result = NumericValue(1)
    base = a
    while n:
        if n & 1:
            result = mul(result, base, precision)
        base = mul(base, base, precision)
        n >>= 1
    return result


def pow(a: NumericValue, b: NumericValue, precision: int = DEFAULT_PRECISION):
    """
    Raise ``a`` to the power ``b``.

    Exact operands give an exact result or ``None``. Approximate operands
    are computed in the promoted representation.
    """
    if b.is_integer and isinstance(b.re, Fraction):
        return _pow_int(a, int(b.re), precision)
    if a.is_exact and b.is_exact and a.is_real and b.is_real:
        p, q = b.re.numerator, b.re.denominator
        if a.re >= 0:
            r = _exact_root(a.re, q)
            return None if r is None else _pow_int(NumericValue(r), p, precision)
        if q % 2 == 1:
            r = _exact_root(a.re, q)
            return None if r is None else _pow_int(NumericValue(r), p, precision)
        if q == 2:
            s = sqrt(a, precision)
            return None if s is None else _pow_int(s, p, precision)
        return None
    if a.is_real and b.is_real and isinstance(b.re, Fraction) and a.re < 0 \
            and b.re.denominator % 2 == 1:
        # real root of a negative base, as in the exact case
        magnitude = pow(neg(a), b, precision)
        return magnitude if b.re.numerator % 2 == 0 else neg(magnitude)
    if not a.is_real or not b.is_real or (a.re < 0 and not _r_is_integer(b.re)):
        try:
            return NumericValue(complex(a) ** complex(b))
        except (OverflowError, ZeroDivisionError):
            return NumericValue(math.nan, math.nan)
    x, y = _promote(a.re, b.re, precision)
    if isinstance(x, Fraction):
        x, y = to_float(x), to_float(y)
    if isinstance(x, Decimal):
        return NumericValue(bignum_context(precision).power(x, y))
    try:
        return NumericValue(math.pow(x, y))
    except OverflowError:
        return NumericValue(math.inf)
    except ValueError:
        return NumericValue(math.nan)


# ============================================================
# Ordering
# ============================================================

def sgn(a: NumericValue):
    """-1, 0 or 1 for real values; NaN for complex values and NaN."""
    if a.is_nan or not a.is_real:
        return math.nan
    if a.re > 0:
        return 1
    if a.re < 0:
        return -1
    return 0


def compare(a: NumericValue, b: NumericValue, precision: int = DEFAULT_PRECISION):
    """Sign of ``a - b``: -1, 0, 1, or NaN when the values are not ordered."""
    if a.is_nan or b.is_nan or not a.is_real or not b.is_real:
        return math.nan
    if _r_isinf(a.re) or _r_isinf(b.re):
        x, y = to_float(a.re), to_float(b.re)
        return (x > y) - (x < y)
    return sgn(sub(a, b, precision))


# ============================================================
# Approximation
# ============================================================

def approximate(a: NumericValue, precision: int = DEFAULT_PRECISION) -> NumericValue:
    """
    Convert to a fixed precision representation.

    Machine floats are used up to ``MACHINE_PRECISION`` digits, decimals
    beyond that. Pure and deterministic for a given precision.
    """
    def conv(x: RealType) -> RealType:
        if precision <= MACHINE_PRECISION:
            return to_float(x)
        if isinstance(x, Decimal):
            return bignum_context(precision).plus(x)
        return _to_kind(x, BIGNUM, precision)

    return NumericValue(conv(a.re), None if a.im is None else conv(a.im))


def to_decimal(x: RealType, precision: int) -> Decimal:
    return _to_kind(x, BIGNUM, precision)


# ============================================================
# Transcendental functions
# ============================================================

def decimal_pi(precision: int) -> Decimal:
    """Pi to ``precision`` digits."""
    with localcontext(bignum_context(precision + 2)):
        three = Decimal(3)
        lasts, t, s, n, na, d, da = 0, three, 3, 1, 0, 0, 24
        while s != lasts:
            lasts = s
            n, na = n + na, na + 8
            d, da = d + da, da + 32
            t = (t * n) / d
            s += t
    return bignum_context(precision).plus(s)


def _decimal_series(x: Decimal, precision: int, first: int) -> Decimal:
    """Taylor series shared by sin (first=1) and cos (first=0)."""
    with localcontext(bignum_context(precision + 2)):
        two_pi = 2 * decimal_pi(precision + 4)
        x = x.remainder_near(two_pi)
        i, lasts, fact, sign = first, 0, 1, 1
        num = x if first else Decimal(1)
        s = num
        while s != lasts:
            lasts = s
            i += 2
            fact *= i * (i - 1)
            num *= x * x
            sign *= -1
            s += num / fact * sign
    return bignum_context(precision).plus(s)


def _transcendental(a: NumericValue, precision: int, specials, machine, complex_fn, bignum):
    if a.is_exact:
        return specials(a)
    if not a.is_real:
        try:
            return NumericValue(complex_fn(complex(a)))
        except (OverflowError, ValueError):
            return NumericValue(math.nan, math.nan)
    x = a.re
    if isinstance(x, Decimal):
        return bignum(x)
    try:
        return NumericValue(machine(x))
    except OverflowError:
        return NumericValue(math.inf)
    except ValueError:
        return None


def exp(a: NumericValue, precision: int = DEFAULT_PRECISION) -> Optional[NumericValue]:
    return _transcendental(
        a, precision,
        lambda v: NumericValue(1) if v.is_zero else None,
        math.exp, cmath.exp,
        lambda x: NumericValue(x.exp(context=bignum_context(precision))),
    )


def ln(a: NumericValue, precision: int = DEFAULT_PRECISION) -> Optional[NumericValue]:
    def bignum(x: Decimal):
        if x < 0:
            return NumericValue(cmath.log(float(x)))
        return NumericValue(x.ln(context=bignum_context(precision)))

    def machine(x: float):
        if x == 0:
            return -math.inf
        if x < 0:
            raise ValueError("negative")
        return math.log(x)

    result = _transcendental(
        a, precision,
        lambda v: NumericValue(0) if v.is_one else None,
        machine, cmath.log, bignum,
    )
    if result is None and not a.is_exact and a.is_real and a.re < 0:
        return NumericValue(cmath.log(float(a.re)))
    return result


def sin(a: NumericValue, precision: int = DEFAULT_PRECISION) -> Optional[NumericValue]:
    return _transcendental(
        a, precision,
        lambda v: NumericValue(0) if v.is_zero else None,
        math.sin, cmath.sin,
        lambda x: NumericValue(_decimal_series(x, precision, 1)),
    )


def cos(a: NumericValue, precision: int = DEFAULT_PRECISION) -> Optional[NumericValue]:
    return _transcendental(
        a, precision,
        lambda v: NumericValue(1) if v.is_zero else None,
        math.cos, cmath.cos,
        lambda x: NumericValue(_decimal_series(x, precision, 0)),
    )
