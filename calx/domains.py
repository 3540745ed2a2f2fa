"""
Domain lattice.

A domain is either a literal name (``"Integer"``, ``"RealNumber"``, ...) or a
constructor expression (``["Union", "Integer", "String"]``,
``["FunctionOf", "RealNumber", "RealNumber"]``, ``["Range", 0, 10]``...).

Each literal has exactly one parent, so the literal hierarchy is a tree
rooted at ``Anything`` with ``Nothing`` below every domain. Numeric literals
also carry a number kind and bounds, which give the lattice its cross edges:
``PositiveInteger`` is a subdomain of both ``Integer`` (its parent) and
``PositiveNumber`` (by kind and bounds), and ``NonNegativeInteger`` and
``["Range", 0, "PositiveInfinity"]`` describe the same set.
"""

import math
from functools import lru_cache
from typing import Dict, List, Optional, Tuple, Union

from .numeric import NumericValue

DomainJson = Union[str, list]


# ============================================================
# Literal hierarchy
# ============================================================

DOMAIN_LITERALS: Dict[str, Optional[str]] = {
    "Anything": None,
    "Value": "Anything",
    "Domain": "Anything",
    "Void": "Anything",
    "Function": "Anything",
    "Boolean": "Value",
    "String": "Value",
    "Symbol": "Value",
    "Collection": "Value",
    "Number": "Value",
    "List": "Collection",
    "Tuple": "Collection",
    "Set": "Collection",
    "Sequence": "Collection",
    "Dictionary": "Collection",
    "ComplexNumber": "Number",
    "ImaginaryNumber": "ComplexNumber",
    "RealNumber": "ComplexNumber",
    "TranscendentalNumber": "RealNumber",
    "AlgebraicNumber": "RealNumber",
    "RationalNumber": "AlgebraicNumber",
    "Integer": "RationalNumber",
    "NonNegativeInteger": "Integer",
    "PositiveInteger": "NonNegativeInteger",
    "NonPositiveInteger": "Integer",
    "NegativeInteger": "NonPositiveInteger",
    "NonNegativeNumber": "RealNumber",
    "PositiveNumber": "NonNegativeNumber",
    "NonPositiveNumber": "RealNumber",
    "NegativeNumber": "NonPositiveNumber",
    "Predicate": "Function",
    "LogicOperator": "Predicate",
    "RelationalOperator": "Predicate",
    "NumericFunction": "Function",
    "RealFunction": "NumericFunction",
    "Nothing": None,
}

DOMAIN_ALIASES: Dict[str, str] = {
    "Values": "Value",
    "Domains": "Domain",
    "Functions": "Function",
    "Booleans": "Boolean",
    "Strings": "String",
    "Symbols": "Symbol",
    "Collections": "Collection",
    "Numbers": "Number",
    "Lists": "List",
    "Tuples": "Tuple",
    "Sets": "Set",
    "Sequences": "Sequence",
    "Dictionaries": "Dictionary",
    "ComplexNumbers": "ComplexNumber",
    "ImaginaryNumbers": "ImaginaryNumber",
    "RealNumbers": "RealNumber",
    "ExtendedRealNumbers": "RealNumber",
    "TranscendentalNumbers": "TranscendentalNumber",
    "AlgebraicNumbers": "AlgebraicNumber",
    "RationalNumbers": "RationalNumber",
    "Integers": "Integer",
    "NonNegativeIntegers": "NonNegativeInteger",
    "PositiveIntegers": "PositiveInteger",
    "NonPositiveIntegers": "NonPositiveInteger",
    "NegativeIntegers": "NegativeInteger",
    "NonNegativeNumbers": "NonNegativeNumber",
    "PositiveNumbers": "PositiveNumber",
    "NonPositiveNumbers": "NonPositiveNumber",
    "NegativeNumbers": "NegativeNumber",
    "Predicates": "Predicate",
    "LogicOperators": "LogicOperator",
    "RelationalOperators": "RelationalOperator",
    "NumericFunctions": "NumericFunction",
    "RealFunctions": "RealFunction",
}

DOMAIN_CONSTRUCTORS = (
    "Union", "Intersection", "FunctionOf", "ListOf", "DictionaryOf",
    "TupleOf", "OptArg", "VarArg", "Interval", "Range", "Multiple",
    "Covariant", "Contravariant", "Bivariant", "Invariant",
)

VARIANCE_WRAPPERS = {
    "Covariant": "covariant",
    "Contravariant": "contravariant",
    "Bivariant": "bivariant",
    "Invariant": "invariant",
}

# Constructors whose members are subsets of a literal
_CONSTRUCTOR_PARENT = {
    "FunctionOf": "Function",
    "ListOf": "List",
    "DictionaryOf": "Dictionary",
    "TupleOf": "Tuple",
    "Interval": "RealNumber",
    "Range": "Integer",
    "Multiple": "Integer",
}


@lru_cache(maxsize=None)
def ancestors(name: str) -> Tuple[str, ...]:
    """Chain of strict ancestors of a literal, nearest first."""
    chain = []
    parent = DOMAIN_LITERALS.get(name)
    while parent is not None:
        chain.append(parent)
        parent = DOMAIN_LITERALS.get(parent)
    return tuple(chain)


def resolve_literal(name: str) -> Optional[str]:
    """Canonical literal name, accepting the plural aliases; None if unknown."""
    if name in DOMAIN_LITERALS:
        return name
    return DOMAIN_ALIASES.get(name)


# ============================================================
# Numeric descriptors: (kind, low, low_closed, high, high_closed)
# ============================================================

INF = math.inf

_KIND_PARENT = {
    "integer": "rational",
    "rational": "algebraic",
    "algebraic": "real",
    "transcendental": "real",
    "real": "complex",
    "imaginary": "complex",
    "complex": None,
}

NumericDescriptor = Tuple[str, float, bool, float, bool]

_NUMERIC_LITERALS: Dict[str, NumericDescriptor] = {
    "Number": ("complex", -INF, False, INF, False),
    "ComplexNumber": ("complex", -INF, False, INF, False),
    "ImaginaryNumber": ("imaginary", -INF, False, INF, False),
    "RealNumber": ("real", -INF, False, INF, False),
    "TranscendentalNumber": ("transcendental", -INF, False, INF, False),
    "AlgebraicNumber": ("algebraic", -INF, False, INF, False),
    "RationalNumber": ("rational", -INF, False, INF, False),
    "Integer": ("integer", -INF, False, INF, False),
    "NonNegativeInteger": ("integer", 0, True, INF, False),
    "PositiveInteger": ("integer", 1, True, INF, False),
    "NonPositiveInteger": ("integer", -INF, False, 0, True),
    "NegativeInteger": ("integer", -INF, False, -1, True),
    "NonNegativeNumber": ("real", 0, True, INF, False),
    "PositiveNumber": ("real", 0, False, INF, False),
    "NonPositiveNumber": ("real", -INF, False, 0, True),
    "NegativeNumber": ("real", -INF, False, 0, False),
}


def _kind_is_sub(a: str, b: str) -> bool:
    while a is not None:
        if a == b:
            return True
        a = _KIND_PARENT[a]
    return False


def _bound_value(x) -> Tuple[float, bool]:
    """An interval endpoint: a number, a named infinity, or ["Open", x]."""
    closed = True
    if isinstance(x, list) and len(x) == 2 and x[0] == "Open":
        closed, x = False, x[1]
    if x in ("PositiveInfinity", "+Infinity", "Infinity"):
        return INF, False
    if x in ("NegativeInfinity", "-Infinity"):
        return -INF, False
    if isinstance(x, NumericValue):
        x = float(x)
    if isinstance(x, (int, float)):
        return x, closed and math.isfinite(x)
    raise ValueError(f"Invalid interval bound: {x!r}")


def _normalize_integer_bounds(d: NumericDescriptor) -> NumericDescriptor:
    kind, lo, lo_c, hi, hi_c = d
    if math.isfinite(lo):
        lo = math.floor(lo) + 1 if not lo_c and lo == math.floor(lo) else math.ceil(lo)
        lo_c = True
    if math.isfinite(hi):
        hi = math.ceil(hi) - 1 if not hi_c and hi == math.ceil(hi) else math.floor(hi)
        hi_c = True
    return kind, lo, lo_c, hi, hi_c


def numeric_descriptor(dom: DomainJson) -> Optional[NumericDescriptor]:
    """Number kind and bounds of a numeric domain, None for other domains."""
    if isinstance(dom, str):
        return _NUMERIC_LITERALS.get(dom)
    ctor = dom[0]
    if ctor == "Interval":
        lo, lo_c = _bound_value(dom[1])
        hi, hi_c = _bound_value(dom[2])
        return "real", lo, lo_c, hi, hi_c
    if ctor == "Range":
        lo, _ = _bound_value(dom[1]) if len(dom) > 1 else (-INF, False)
        hi, _ = _bound_value(dom[2]) if len(dom) > 2 else (INF, False)
        return _normalize_integer_bounds(("integer", lo, True, hi, True))
    return None


def _bounds_within(a: NumericDescriptor, b: NumericDescriptor) -> bool:
    _, alo, alo_c, ahi, ahi_c = a
    _, blo, blo_c, bhi, bhi_c = b
    # Infinite endpoints are never attained, their closedness is irrelevant.
    low_ok = alo > blo or (alo == blo and (blo_c or not alo_c or math.isinf(alo)))
    high_ok = ahi < bhi or (ahi == bhi and (bhi_c or not ahi_c or math.isinf(ahi)))
    return low_ok and high_ok


def _descriptor_is_sub(a: NumericDescriptor, b: NumericDescriptor) -> bool:
    if not _kind_is_sub(a[0], b[0]):
        return False
    if not _kind_is_sub(b[0], "real"):
        return True
    return _bounds_within(a, b)


# ============================================================
# Subdomain relation
# ============================================================

def _unwrap(dom: DomainJson) -> DomainJson:
    while isinstance(dom, list) and dom[0] in VARIANCE_WRAPPERS:
        dom = dom[1]
    return dom


def _parent_literal(dom: DomainJson) -> Optional[str]:
    if isinstance(dom, str):
        return DOMAIN_LITERALS.get(dom)
    if dom[0] == "Multiple" and len(dom) > 2 and isinstance(dom[2], str):
        return dom[2]
    return _CONSTRUCTOR_PARENT.get(dom[0])


def _split_signature(dom: list) -> Tuple[List[DomainJson], DomainJson]:
    return list(dom[1:-1]), dom[-1]


def _signature_is_sub(a: list, b: list) -> bool:
    a_params, a_result = _split_signature(a)
    b_params, b_result = _split_signature(b)
    if not is_subdomain(a_result, b_result):
        return False
    if len(a_params) != len(b_params):
        return False
    for pa, pb in zip(a_params, b_params):
        mode = "contravariant"
        if isinstance(pa, list) and pa[0] in VARIANCE_WRAPPERS:
            mode = VARIANCE_WRAPPERS[pa[0]]
        if not is_compatible_json(_strip_arg(pa), _strip_arg(pb), mode):
            return False
    return True


def _strip_arg(dom: DomainJson) -> DomainJson:
    dom = _unwrap(dom)
    if isinstance(dom, list) and dom[0] in ("OptArg", "VarArg"):
        return _unwrap(dom[1])
    return dom


def is_subdomain(a: DomainJson, b: DomainJson) -> bool:
    """True if every value of domain ``a`` is a value of domain ``b``."""
    a, b = _unwrap(a), _unwrap(b)
    if a == b or a == "Nothing" or b == "Anything":
        return True
    if b == "Nothing":
        return False

    if isinstance(a, list) and a[0] == "Union":
        return all(is_subdomain(x, b) for x in a[1:])
    if isinstance(b, list) and b[0] == "Intersection":
        return all(is_subdomain(a, x) for x in b[1:])
    if isinstance(b, list) and b[0] == "Union":
        if any(is_subdomain(a, x) for x in b[1:]):
            return True
    if isinstance(a, list) and a[0] == "Intersection":
        if any(is_subdomain(x, b) for x in a[1:]):
            return True

    if isinstance(a, str) and isinstance(b, str) and b in ancestors(a):
        return True

    da, db = numeric_descriptor(a), numeric_descriptor(b)
    if da is not None and db is not None and _descriptor_is_sub(da, db):
        return True

    if isinstance(a, list) and isinstance(b, list) and a[0] == b[0]:
        ctor = a[0]
        if ctor == "FunctionOf":
            return _signature_is_sub(a, b)
        if ctor in ("ListOf", "DictionaryOf", "OptArg", "VarArg"):
            return is_subdomain(a[1], b[1])
        if ctor == "TupleOf":
            return len(a) == len(b) and all(is_subdomain(x, y) for x, y in zip(a[1:], b[1:]))

    parent = _parent_literal(a) if isinstance(a, list) else None
    if parent is not None and parent != a:
        return is_subdomain(parent, b)
    return False


def is_compatible_json(a: DomainJson, b: DomainJson, mode: str = "covariant") -> bool:
    if mode == "covariant":
        return is_subdomain(a, b)
    if mode == "contravariant":
        return is_subdomain(b, a)
    if mode == "bivariant":
        return is_subdomain(a, b) and is_subdomain(b, a)
    if mode == "invariant":
        return not is_subdomain(a, b) and not is_subdomain(b, a)
    raise ValueError(f"Unknown variance: {mode!r}")


# ============================================================
# Normalization
# ============================================================

def normalize_domain(dom) -> DomainJson:
    """
    Validate a domain expression and resolve aliases.

    Raises:
        ValueError: if the domain is not a known literal or constructor
    """
    if isinstance(dom, BoxedDomain):
        return dom.json
    if isinstance(dom, str):
        literal = resolve_literal(dom)
        if literal is None:
            raise ValueError(f"Unknown domain: {dom!r}")
        return literal
    if isinstance(dom, (list, tuple)) and dom:
        ctor = dom[0]
        if ctor not in DOMAIN_CONSTRUCTORS:
            raise ValueError(f"Unknown domain constructor: {ctor!r}")
        if ctor in ("Interval", "Range"):
            args = [_normalize_bound(x) for x in dom[1:]]
        elif ctor == "Multiple":
            args = [x if isinstance(x, (int, float)) else normalize_domain(x) for x in dom[1:]]
        else:
            args = [normalize_domain(x) for x in dom[1:]]
        if ctor == "FunctionOf" and not args:
            raise ValueError("FunctionOf requires at least a result domain")
        return [ctor, *args]
    raise ValueError(f"Invalid domain: {dom!r}")


def _normalize_bound(x):
    if isinstance(x, (list, tuple)) and len(x) == 2 and x[0] == "Open":
        return ["Open", _normalize_bound(x[1])]
    if isinstance(x, NumericValue):
        return x.python_value()
    if isinstance(x, (int, float, str)):
        return x
    raise ValueError(f"Invalid interval bound: {x!r}")


# ============================================================
# BoxedDomain
# ============================================================

class BoxedDomain:
    """
    A validated domain expression.

    Examples:
        BoxedDomain("Integers").json                  # => "Integer"
        BoxedDomain("PositiveInteger").is_compatible("RealNumber")  # => True
        BoxedDomain(["Range", 0, "PositiveInfinity"]) == "NonNegativeInteger"  # => False (structural)
    """

    __slots__ = ("_json",)

    def __init__(self, dom):
        self._json = normalize_domain(dom)

    @property
    def json(self) -> DomainJson:
        return self._json

    @property
    def literal(self) -> Optional[str]:
        return self._json if isinstance(self._json, str) else None

    @property
    def ctor(self) -> Optional[str]:
        return None if isinstance(self._json, str) else self._json[0]

    @property
    def base(self) -> str:
        """The nearest literal domain containing this one."""
        dom = _unwrap(self._json)
        while not isinstance(dom, str):
            if dom[0] in ("Union", "Intersection"):
                return widen_json(*dom[1:]) if dom[0] == "Union" else BoxedDomain(dom[1]).base
            dom = _parent_literal(dom) or "Anything"
        return dom

    @property
    def is_numeric(self) -> bool:
        return is_subdomain(self._json, "Number")

    @property
    def is_function(self) -> bool:
        return is_subdomain(self._json, "Function")

    @property
    def is_nothing(self) -> bool:
        return self._json == "Nothing"

    def is_compatible(self, other, mode: str = "covariant") -> bool:
        """
        Compare two domains.

        Args:
            other: Another domain (BoxedDomain, literal name or constructor)
            mode: "covariant" (self is a subdomain of other), "contravariant"
                  (other is a subdomain of self), "bivariant" (both) or
                  "invariant" (neither)
        """
        return is_compatible_json(self._json, normalize_domain(other), mode)

    def __eq__(self, other) -> bool:
        if isinstance(other, BoxedDomain):
            return self._json == other._json
        if isinstance(other, (str, list, tuple)):
            try:
                return self._json == normalize_domain(other)
            except ValueError:
                return False
        return NotImplemented

    def __hash__(self) -> int:
        return hash(repr(self._json))

    def __repr__(self) -> str:
        return f"BoxedDomain({self._json!r})"

    def __str__(self) -> str:
        return str(self._json)


def widen_json(*doms: DomainJson) -> DomainJson:
    """Least common ancestor of the given domains."""
    result = "Nothing"
    for dom in doms:
        result = _widen2(result, dom)
    return result


def _widen2(a: DomainJson, b: DomainJson) -> DomainJson:
    if is_subdomain(a, b):
        return b
    if is_subdomain(b, a):
        return a
    candidate = a if isinstance(a, str) else BoxedDomain(a).base
    for anc in (candidate,) + ancestors(candidate):
        if is_subdomain(b, anc):
            return anc
    return "Anything"


def widen(*doms) -> BoxedDomain:
    return BoxedDomain(widen_json(*(normalize_domain(d) for d in doms)))


def narrow(a, b) -> BoxedDomain:
    """The more specific of two domains, Nothing when they are unrelated."""
    ja, jb = normalize_domain(a), normalize_domain(b)
    if is_subdomain(ja, jb):
        return BoxedDomain(ja)
    if is_subdomain(jb, ja):
        return BoxedDomain(jb)
    return BoxedDomain("Nothing")


def domain_of_number(value: NumericValue) -> str:
    """Most specific literal domain of a numeric value."""
    if value.is_nan:
        return "Number"
    if not value.is_real:
        return "ImaginaryNumber" if value.re == 0 else "ComplexNumber"
    if value.is_infinity:
        return "RealNumber"
    if value.is_integer:
        if value.re > 0:
            return "PositiveInteger"
        if value.re < 0:
            return "NegativeInteger"
        return "NonNegativeInteger"
    if value.is_rational:
        return "RationalNumber"
    return "RealNumber"
