"""
Symbol and function definitions.

A definition is owned by exactly one scope and looked up by name. Symbols
bind to a ``SymbolDefinition`` (domain, value, flags), function operators to
a ``FunctionDefinition`` (signature, flags, handlers).

Handlers receive the engine and the operand list:

    canonical(ce, ops)  -> BoxedExpression | None
    evaluate(ce, ops)   -> BoxedExpression | None      (or a template, see below)
    N(ce, ops)          -> BoxedExpression | None
    sgn(ce, ops)        -> "positive" | "negative" | "zero" | "non-negative"
                           | "non-positive" | "not-zero" | "unsigned" | None

Returning None means "cannot do anything", the same convention as the fold
handlers of a prelude. An ``evaluate`` that is not callable is a template
expression where ``_`` (or ``_1``) stands for the first operand, ``_2`` for
the second and so on.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from .domains import BoxedDomain

logger = logging.getLogger(__name__)

DEFAULT_COMPLEXITY = 100000

HOLD_POLICIES = ("none", "all", "first", "rest", "last", "most")
HOLD_UNTIL = ("never", "evaluate", "N")

SYMBOL_FLAGS = (
    "zero", "not_zero", "positive", "nonnegative", "negative", "nonpositive",
    "integer", "rational", "real", "complex", "even", "odd", "finite", "nan",
)


class BaseDefinition:
    """Metadata shared by symbol and function definitions."""

    def __init__(self, name: str, description: Optional[str] = None,
                 wikidata: Optional[str] = None, url: Optional[str] = None):
        self.name = name
        self.description = description
        self.wikidata = wikidata
        self.url = url
        self.scope = None
        self.dead = False

    def __repr__(self) -> str:
        state = " (dead)" if self.dead else ""
        return f"{type(self).__name__}({self.name!r}){state}"


class SymbolDefinition(BaseDefinition):
    """
    Definition of a symbol.

    The value is either an expression (anything ``ce.box`` accepts) or a
    factory ``value(ce)`` evaluated on demand, used by constants whose
    numeric value depends on the engine precision.
    """

    def __init__(self, ce, name: str, domain=None, value=None,
                 constant: bool = False, hold_until: str = "evaluate",
                 flags: Optional[Dict[str, bool]] = None,
                 inferred: bool = False, latex: Optional[str] = None, **meta):
        super().__init__(name, **meta)
        if hold_until not in HOLD_UNTIL:
            raise ValueError(f"Invalid hold_until for {name}: {hold_until!r}")
        unknown = set(flags or {}) - set(SYMBOL_FLAGS)
        if unknown:
            raise ValueError(f"Unknown symbol flags for {name}: {sorted(unknown)}")
        self.engine = ce
        self.constant = constant
        self.hold_until = hold_until
        self.flags: Dict[str, bool] = dict(flags or {})
        self.inferred_domain = inferred
        self.latex = latex
        self._domain: Optional[BoxedDomain] = None if domain is None else BoxedDomain(domain)
        self._value_factory: Optional[Callable] = None
        self._value = None
        self._set_value(value)
        self._initial = (self._value, self._value_factory)
        if self._domain is None:
            self._domain = self._domain_from_value() or BoxedDomain(ce.default_domain)
            if value is None and domain is None:
                self.inferred_domain = True

    def _set_value(self, value):
        if callable(value):
            self._value_factory, self._value = value, None
        elif value is None:
            self._value_factory, self._value = None, None
        else:
            self._value_factory = None
            self._value = self.engine.box(value)

    def _domain_from_value(self) -> Optional[BoxedDomain]:
        if self._value is None:
            return None
        return self._value.domain

    @property
    def value(self):
        """The bound value as a boxed expression, or None for a free variable."""
        if self._value_factory is not None:
            return self.engine.box(self._value_factory(self.engine))
        return self._value

    @value.setter
    def value(self, value):
        if self.constant:
            raise ValueError(f"Cannot assign a value to the constant {self.name}")
        self._set_value(value)
        if self._value is not None and self.inferred_domain:
            dom = self._value.domain
            if dom is not None:
                self._domain = dom

    @property
    def value_source(self):
        """The value factory if there is one, else the bound value."""
        return self._value_factory or self._value

    @property
    def has_value(self) -> bool:
        return self._value is not None or self._value_factory is not None

    @property
    def domain(self) -> BoxedDomain:
        return self._domain

    @domain.setter
    def domain(self, domain):
        if self.constant:
            raise ValueError(f"Cannot change the domain of the constant {self.name}")
        self._domain = BoxedDomain(domain)
        self.inferred_domain = False

    def infer(self, domain) -> bool:
        """
        Narrow an inferred domain.

        A declared domain is never changed. An inferred one is replaced by
        ``domain`` unless it is already a subdomain of it.

        Returns:
            True if the symbol is (now) in ``domain``, False if its declared
            domain is incompatible with it
        """
        dom = BoxedDomain(domain)
        if self._domain.is_compatible(dom):
            return True
        if not self.inferred_domain or self.has_value:
            return False
        logger.debug("Inferred domain of %s changed from %s to %s", self.name, self._domain, dom)
        self._domain = dom
        return True

    def reset(self):
        """Restore the value given at definition time."""
        if not self.constant:
            self._value, self._value_factory = self._initial


class FunctionDefinition(BaseDefinition):
    """
    Definition of a function operator.

    The signature is ``params`` (required operand domains), ``opt_params``
    (optional operands), ``rest_param`` (domain of any further operands, or
    None to reject them) and ``result`` (a domain, or ``result(ce, ops)``).
    A ``["FunctionOf", ...]`` domain may be given as ``signature`` instead.
    """

    def __init__(self, ce, name: str, signature=None, params=None,
                 opt_params=None, rest_param="Anything", result="Anything",
                 canonical: Optional[Callable] = None, evaluate: Any = None,
                 N: Optional[Callable] = None, sgn: Optional[Callable] = None,
                 associative: bool = False, commutative: bool = False,
                 idempotent: bool = False, involution: bool = False,
                 pure: bool = True, inert: bool = False, numeric: bool = False,
                 complexity: int = DEFAULT_COMPLEXITY, hold: str = "none",
                 inferred: bool = False, **meta):
        super().__init__(name, **meta)
        if hold not in HOLD_POLICIES:
            raise ValueError(f"Invalid hold policy for {name}: {hold!r}")
        self.engine = ce
        if signature is not None:
            params, opt_params, rest_param, result = _split_signature(signature)
        self.params: List[BoxedDomain] = [BoxedDomain(p) for p in (params or [])]
        self.opt_params: List[BoxedDomain] = [BoxedDomain(p) for p in (opt_params or [])]
        self.rest_param: Optional[BoxedDomain] = None if rest_param is None else BoxedDomain(rest_param)
        self._result = result if callable(result) else BoxedDomain(result)
        self.canonical = canonical
        self.evaluate = evaluate
        self.N = N
        self.sgn = sgn
        self.associative = associative
        self.commutative = commutative
        self.idempotent = idempotent
        self.involution = involution
        self.pure = pure
        self.inert = inert
        self.numeric = numeric
        self.complexity = complexity
        self.hold = hold
        self.inferred = inferred

    def result_domain(self, ops) -> Optional[BoxedDomain]:
        if callable(self._result):
            dom = self._result(self.engine, ops)
            return None if dom is None else BoxedDomain(dom)
        return self._result

    @property
    def signature(self) -> BoxedDomain:
        parts = [p.json for p in self.params]
        parts += [["OptArg", p.json] for p in self.opt_params]
        if self.rest_param is not None:
            parts.append(["VarArg", self.rest_param.json])
        result = "Anything" if callable(self._result) else self._result.json
        return BoxedDomain(["FunctionOf", *parts, result])

    def is_held(self, index: int, count: int) -> bool:
        """Whether the operand at ``index`` (of ``count``) is held unevaluated."""
        hold = self.hold
        if hold == "none":
            return False
        if hold == "all":
            return True
        if hold == "first":
            return index == 0
        if hold == "rest":
            return index > 0
        if hold == "last":
            return index == count - 1
        return index < count - 1  # most


def _split_signature(signature):
    dom = BoxedDomain(signature).json
    if not isinstance(dom, list) or dom[0] != "FunctionOf":
        raise ValueError(f"A function signature must be a FunctionOf domain: {dom!r}")
    params, opt_params, rest = [], [], None
    for p in dom[1:-1]:
        if isinstance(p, list) and p[0] == "OptArg":
            opt_params.append(p[1])
        elif isinstance(p, list) and p[0] == "VarArg":
            rest = p[1]
        else:
            params.append(p)
    return params, opt_params, rest, dom[-1]
