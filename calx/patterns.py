"""
Pattern matching against boxed expressions.

Pattern syntax (symbols whose name starts with an underscore):

    _            match any expression, anonymously
    _x           match any expression, bind to _x
    __x          match one or more operands, bind to _x's Sequence
    ___x         match zero or more operands
    ["_f", ...]  operator wildcard: bind the operator name to _f
    literal      match an identical number, string, symbol or operator

A name bound twice must match equivalent expressions both times, under the
"structural" (``is_same``) or "mathematical" (``is_equal``) policy.
Operands of commutative operators are matched in any order.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional, Union

from .expr import BoxedExpression

logger = logging.getLogger(__name__)

# Bound on the number of partial matches tried for one call to match()
MAX_MATCH_STEPS = 20000

SubstitutionType = Dict[str, BoxedExpression]


# ============================================================
# Substitution - Dict-like interface for match results
# ============================================================

class Substitution:
    """
    Dict-like wrapper for the result of a successful match.

        if sub := expr.match(["Add", "_a", 2]):
            print(sub["_a"])      # or sub["a"]

    Substitution objects are truthy when a match succeeded, even when
    empty (a pattern without wildcards). Use NoMatch (which is falsy) to
    represent failed matches.

    Examples:
        sub = Substitution({"_x": ce.box(1)})
        sub["_x"]          # => BoxedNumber(1)
        sub["x"]           # => BoxedNumber(1), the underscore is optional
        "x" in sub         # => True
        sub == {"_x": 1}   # => True
    """

    __slots__ = ('_dict',)

    def __init__(self, mapping: Optional[SubstitutionType] = None):
        self._dict = dict(mapping or {})

    def __bool__(self) -> bool:
        """Substitutions are always truthy (use NoMatch for failed matches)."""
        return True

    def _key(self, key: str) -> str:
        if key not in self._dict and not key.startswith("_") and f"_{key}" in self._dict:
            return f"_{key}"
        return key

    def __getitem__(self, key: str) -> BoxedExpression:
        return self._dict[self._key(key)]

    def get(self, key: str, default=None):
        return self._dict.get(self._key(key), default)

    def __contains__(self, key: str) -> bool:
        return self._key(key) in self._dict

    def keys(self):
        return self._dict.keys()

    def values(self):
        return self._dict.values()

    def items(self):
        return self._dict.items()

    def __iter__(self) -> Iterator[str]:
        return iter(self._dict)

    def __len__(self) -> int:
        return len(self._dict)

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}: {v.json!r}" for k, v in self._dict.items())
        return f"Substitution({{{inner}}})"

    def __eq__(self, other):
        if isinstance(other, Substitution):
            other = other._dict
        if not isinstance(other, dict) or set(other) != set(self._dict):
            return False
        return all(self._dict[k] == other[k] for k in other)

    def to_dict(self) -> SubstitutionType:
        """Convert to a plain dictionary."""
        return self._dict.copy()


class _NoMatch:
    """
    Singleton representing a failed pattern match.

    NoMatch is falsy, allowing natural use in conditionals.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NoMatch"

    def __getitem__(self, key: str):
        raise KeyError(f"NoMatch has no binding for '{key}'")

    def get(self, key: str, default=None):
        return default

    def __contains__(self, key: str) -> bool:
        return False

    def __len__(self) -> int:
        return 0

    def __iter__(self):
        return iter([])


NoMatch = _NoMatch()


# ============================================================
# Wildcards
# ============================================================

def wildcard_kind(pattern: BoxedExpression) -> Optional[str]:
    """"one", "one-or-more", "zero-or-more" for wildcard symbols, else None."""
    name = pattern.symbol
    if name is None or not name.startswith("_"):
        return None
    if name.startswith("___"):
        return "zero-or-more"
    if name.startswith("__"):
        return "one-or-more"
    return "one"


def wildcard_name(pattern: BoxedExpression) -> Optional[str]:
    """Binding key of a wildcard: ``__x`` and ``___x`` bind ``_x``; ``_`` binds nothing."""
    name = pattern.symbol
    stripped = name.lstrip("_")
    return f"_{stripped}" if stripped else None


def is_sequence_wildcard(pattern: BoxedExpression) -> bool:
    return wildcard_kind(pattern) in ("one-or-more", "zero-or-more")


def is_wildcard_pattern(pattern: BoxedExpression) -> bool:
    return wildcard_kind(pattern) is not None


# ============================================================
# Matching
# ============================================================

class _MatchState:
    __slots__ = ("engine", "equivalence", "use_variations", "steps")

    def __init__(self, engine, equivalence: str, use_variations: bool):
        if equivalence not in ("structural", "mathematical"):
            raise ValueError(f"Unknown equivalence policy: {equivalence!r}")
        self.engine = engine
        self.equivalence = equivalence
        self.use_variations = use_variations
        self.steps = 0

    def tick(self) -> bool:
        self.steps += 1
        return self.steps <= MAX_MATCH_STEPS

    def equivalent(self, a: BoxedExpression, b: BoxedExpression) -> bool:
        if a.is_same(b):
            return True
        if self.equivalence == "mathematical":
            return a.is_equal(b)
        return False


def match(subject: BoxedExpression, pattern: BoxedExpression,
          substitution: Optional[Union[Substitution, SubstitutionType]] = None,
          recursive: bool = False, use_variations: bool = False,
          equivalence: str = "structural") -> Union[Substitution, _NoMatch]:
    """
    Match a pattern against an expression.

    Args:
        subject: The expression to match
        pattern: The pattern, a boxed expression with wildcards
        substitution: Bindings that must be respected
        recursive: Also try the subexpressions of ``subject``, outermost first
        use_variations: Let ``x`` match ``x + 0``, ``1 * x``, ``x^1``, ``x/1`` and ``x - 0``
        equivalence: "structural" or "mathematical" consistency of repeated wildcards

    Returns:
        Substitution on success (possibly empty), NoMatch on failure
    """
    state = _MatchState(subject.engine, equivalence, use_variations)
    initial = dict(substitution.items()) if substitution else {}
    result = _match(subject, pattern, initial, state)
    if result is None and recursive and subject.is_function:
        for op in subject.ops:
            found = match(op, pattern, substitution, recursive=True,
                          use_variations=use_variations, equivalence=equivalence)
            if found:
                return found
    if result is None:
        return NoMatch
    return Substitution(result)


def _bind(name: Optional[str], value: BoxedExpression, sub: SubstitutionType,
          state: _MatchState) -> Optional[SubstitutionType]:
    if name is None:
        return sub
    if name in sub:
        return sub if state.equivalent(sub[name], value) else None
    extended = dict(sub)
    extended[name] = value
    return extended


def _match(expr: BoxedExpression, pattern: BoxedExpression, sub: SubstitutionType,
           state: _MatchState) -> Optional[SubstitutionType]:
    if not state.tick():
        return None

    kind = wildcard_kind(pattern)
    if kind is not None:
        return _bind(wildcard_name(pattern), expr, sub, state)

    if not pattern.is_function:
        if pattern.is_number_literal and expr.is_number_literal:
            return sub if state.equivalent(expr, pattern) else None
        if pattern.is_same(expr):
            return sub
        if state.equivalence == "mathematical" and pattern.is_number_literal:
            return sub if state.equivalent(expr, pattern) else None
        return _match_variations(expr, pattern, sub, state) if state.use_variations else None

    name = pattern.operator
    if name == "Rational" and expr.is_number_literal:
        expr = expr.structural

    result = None
    if expr.is_function:
        if name.startswith("_"):
            operator = state.engine.box(expr.operator, canonical=False)
            bound = _bind(wildcard_name(state.engine.box(name, canonical=False)), operator, sub, state)
            if bound is not None:
                result = _match_operands(expr, pattern, bound, state)
        elif name == expr.operator:
            result = _match_operands(expr, pattern, sub, state)

    if result is None and state.use_variations:
        result = _match_variations(expr, pattern, sub, state)
    return result


def _match_operands(expr, pattern, sub, state) -> Optional[SubstitutionType]:
    ops, patterns = list(expr.ops), list(pattern.ops)
    definition = state.engine.lookup_function(expr.operator)
    if definition is not None and definition.commutative:
        return _match_commutative(ops, patterns, sub, state)
    return _match_sequence(ops, patterns, sub, state)


def _sequence_value(state: _MatchState, captured: List[BoxedExpression]) -> BoxedExpression:
    if len(captured) == 1:
        return captured[0]
    return state.engine._fn("Sequence", captured)


def _match_sequence(ops: List[BoxedExpression], patterns: List[BoxedExpression],
                    sub: SubstitutionType, state: _MatchState) -> Optional[SubstitutionType]:
    """Match operands in order; sequence wildcards try the shortest run first."""
    if not patterns:
        return sub if not ops else None
    if not state.tick():
        return None

    current, rest = patterns[0], patterns[1:]
    kind = wildcard_kind(current)
    if kind in ("one-or-more", "zero-or-more"):
        shortest = 1 if kind == "one-or-more" else 0
        required = sum(1 for p in rest if not is_sequence_wildcard(p)
                       or wildcard_kind(p) == "one-or-more")
        for n in range(shortest, len(ops) - required + 1):
            bound = _bind(wildcard_name(current), _sequence_value(state, ops[:n]), sub, state)
            if bound is None:
                continue
            result = _match_sequence(ops[n:], rest, bound, state)
            if result is not None:
                return result
        return None

    if not ops:
        return None
    bound = _match(ops[0], current, sub, state)
    if bound is None:
        return None
    return _match_sequence(ops[1:], rest, bound, state)


def _match_commutative(ops: List[BoxedExpression], patterns: List[BoxedExpression],
                       sub: SubstitutionType, state: _MatchState) -> Optional[SubstitutionType]:
    """
    Match operands in any order.

    Patterns that are not wildcards are tried first since they prune the
    search most; each is tried against every unused operand, backtracking on
    failure. Sequence wildcards take whatever operands remain.
    """
    singles = [p for p in patterns if not is_sequence_wildcard(p)]
    sequences = [p for p in patterns if is_sequence_wildcard(p)]
    singles.sort(key=lambda p: wildcard_kind(p) is not None)
    if len(singles) > len(ops) or (not sequences and len(singles) != len(ops)):
        return None

    def assign(i: int, remaining: List[BoxedExpression], current: SubstitutionType):
        if not state.tick():
            return None
        if i == len(singles):
            return _match_sequence(remaining, sequences, current, state)
        for j, op in enumerate(remaining):
            bound = _match(op, singles[i], current, state)
            if bound is None:
                continue
            result = assign(i + 1, remaining[:j] + remaining[j + 1:], bound)
            if result is not None:
                return result
        return None

    return assign(0, ops, sub)


# ============================================================
# Variations
# ============================================================

# operator -> (neutral operand value, positions where the subject may stand)
_VARIATIONS = {
    "Add": (0, (0, 1)),
    "Subtract": (0, (0,)),
    "Multiply": (1, (0, 1)),
    "Divide": (1, (0,)),
    "Power": (1, (0,)),
}


def _match_variations(expr, pattern, sub, state) -> Optional[SubstitutionType]:
    """Match ``expr`` as if it were ``expr + 0``, ``1 * expr``, ``expr^1``..."""
    if not pattern.is_function or pattern.nops != 2 or pattern.operator == expr.operator:
        return None
    variation = _VARIATIONS.get(pattern.operator)
    if variation is None:
        return None
    neutral, positions = variation
    neutral_expr = state.engine.number(neutral)
    for i in positions:
        other = pattern.ops[1 - i]
        bound = _match(expr, pattern.ops[i], sub, state)
        if bound is None:
            continue
        bound = _match(neutral_expr, other, bound, state)
        if bound is not None:
            return bound
    return None
