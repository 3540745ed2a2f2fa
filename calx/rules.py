"""
Rewrite rules: Rule, RuleSet, replace() and simplify().

Rules can be written in several ways:

    "x + 0 -> x"                                  rule string, single letters are wildcards
    "abs(x) -> x when x >= 0"                     with a condition
    (["Add", "_x", 0], "_x")                      (match, replace[, condition])
    {"match": ..., "replace": ..., "id": ...}     dict form
    lambda expr: ...                              function rule, returns None if it does not apply

and as rule text, one rule per line:

    # comments start with a hash
    [group]
    @name: pattern -> replacement
    @name "description": pattern -> replacement when condition

Patterns are not canonicalized: they must have the shape of the canonical
expressions they are meant to match (``x + -y``, not ``x - y``).
Replacements are instantiated with the substitution, then canonicalized when
the subject was.
"""

import logging
import re
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .expr import BoxedExpression
from .parsing import parse
from .patterns import Substitution, match

logger = logging.getLogger(__name__)

DEFAULT_SIMPLIFY_PASSES = 64

ConditionType = Union[Callable[[Substitution, Any], bool], BoxedExpression]
ReplaceType = Union[BoxedExpression, Callable[[BoxedExpression, Substitution], Any]]


# ============================================================
# Rule steps
# ============================================================

class RuleStep:
    """The result of applying one rule: the new value and the rule responsible."""

    __slots__ = ("value", "because", "before")

    def __init__(self, value: BoxedExpression, because: str,
                 before: Optional[BoxedExpression] = None):
        self.value = value
        self.because = because
        self.before = before

    def __repr__(self) -> str:
        if self.before is None:
            return f"{self.because}: {self.value}"
        return f"{self.because}: {self.before} -> {self.value}"

    def to_dict(self) -> Dict:
        """Convert step to dictionary for serialization."""
        return {
            "because": self.because,
            "before": None if self.before is None else self.before.json,
            "value": self.value.json,
        }


# ============================================================
# Rules
# ============================================================

class Rule:
    """
    A rewrite rule.

    Either a pattern rule (``match``, ``replace`` and an optional
    ``condition``) or a function rule (``fn(expr)`` returning the rewritten
    expression, a RuleStep, or None when it does not apply).
    """

    def __init__(self, ce, match: Optional[BoxedExpression] = None,
                 replace: Optional[ReplaceType] = None,
                 condition: Optional[ConditionType] = None,
                 use_variations: bool = False, id: Optional[str] = None,
                 description: Optional[str] = None, fn: Optional[Callable] = None,
                 tags: Optional[List[str]] = None):
        if fn is None and (match is None or replace is None):
            raise ValueError("A rule needs a match pattern and a replacement, or a function")
        self.engine = ce
        self.match = match
        self.replace = replace
        self.condition = condition
        self.use_variations = use_variations
        self.fn = fn
        self.description = description
        self.tags = tags or []
        self.id = id or self._default_id()

    def _default_id(self) -> str:
        if self.fn is not None:
            return getattr(self.fn, "__name__", "<function>")
        replacement = "<function>" if callable(self.replace) else str(self.replace)
        return f"{self.match} -> {replacement}"

    def __repr__(self) -> str:
        base = f"@{self.id}"
        if self.description:
            base += f" \"{self.description}\""
        return f"Rule({base})"

    def apply(self, expr: BoxedExpression, use_variations: bool = False,
              canonical: Optional[bool] = None) -> Optional[RuleStep]:
        """
        Apply the rule to ``expr`` itself (not to its subexpressions).

        Returns:
            A RuleStep, or None if the rule does not apply
        """
        ce = self.engine
        if canonical is None:
            canonical = expr.is_canonical

        if self.fn is not None:
            result = self.fn(expr)
            if result is None:
                return None
            if isinstance(result, RuleStep):
                if result.before is None:
                    result.before = expr
                return result
            return RuleStep(ce.box(result, canonical=canonical), self.id, expr)

        sub = match(expr, self.match, use_variations=self.use_variations or use_variations)
        if not sub:
            return None
        if not self._check_condition(sub):
            return None
        return RuleStep(self._instantiate(expr, sub, canonical), self.id, expr)

    def _check_condition(self, sub: Substitution) -> bool:
        condition = self.condition
        if condition is None:
            return True
        ce = self.engine
        if callable(condition):
            return bool(condition(sub, ce))
        result = condition.subs(_template_substitution(sub), canonical=True).evaluate()
        return result.symbol == "True"

    def _instantiate(self, expr: BoxedExpression, sub: Substitution, canonical: bool) -> BoxedExpression:
        if callable(self.replace):
            return self.engine.box(self.replace(expr, sub), canonical=canonical)
        return self.replace.subs(_template_substitution(sub), canonical=canonical)


def _template_substitution(sub: Substitution) -> Dict[str, BoxedExpression]:
    """Key a substitution by every wildcard spelling: ``_x``, ``__x`` and ``___x``."""
    result = {}
    for key, value in sub.items():
        result[key] = value
        result[f"_{key}"] = value
        result[f"__{key}"] = value
    return result


class RuleSet:
    """An ordered collection of rules; the first rule that applies wins."""

    def __init__(self, rules: Iterable[Rule] = (), id: Optional[str] = None):
        self._rules: Tuple[Rule, ...] = tuple(rules)
        self.id = id

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __repr__(self) -> str:
        name = f"{self.id!r}, " if self.id else ""
        return f"RuleSet({name}{len(self._rules)} rules)"

    def __contains__(self, rule_id: str) -> bool:
        """Check if a rule exists: 'cancel-sum' in rule_set."""
        return any(rule.id == rule_id for rule in self._rules)

    def __getitem__(self, key: Union[int, str]) -> Rule:
        if isinstance(key, int):
            return self._rules[key]
        for rule in self._rules:
            if rule.id == key:
                return rule
        raise KeyError(f"No rule named '{key}'")

    def __or__(self, other: "RuleSet") -> "RuleSet":
        """Union of two rule sets: rules of ``self`` come first."""
        return RuleSet([*self._rules, *other])

    @property
    def ids(self) -> List[str]:
        return [rule.id for rule in self._rules]

    def groups(self) -> set:
        """Get all group names used in the rule set."""
        return {tag for rule in self._rules for tag in rule.tags}

    def only(self, *groups: str) -> "RuleSet":
        """Rules tagged with one of ``groups``."""
        return RuleSet([r for r in self._rules if set(r.tags) & set(groups)], self.id)


# ============================================================
# Building rules from the accepted forms
# ============================================================

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z_0-9]*$")


def _box_pattern(ce, pattern) -> BoxedExpression:
    """Patterns given as text are parsed with single-letter wildcards."""
    if isinstance(pattern, BoxedExpression):
        return pattern
    if isinstance(pattern, str) and not _IDENTIFIER.match(pattern) and not pattern.startswith("'"):
        pattern = parse(pattern, wildcards=True)
    return ce.box(pattern, canonical=False)


def _box_condition(ce, condition) -> Optional[ConditionType]:
    if condition is None or callable(condition):
        return condition
    return _box_pattern(ce, condition)


def _box_replacement(ce, replacement) -> ReplaceType:
    if callable(replacement) and not isinstance(replacement, BoxedExpression):
        return replacement
    return _box_pattern(ce, replacement)


def boxed_rules(ce, rules) -> RuleSet:
    """
    Convert any accepted rule form to a RuleSet.

    Raises:
        ValueError: for malformed rule text
        TypeError: for something that is not a rule
    """
    if isinstance(rules, RuleSet):
        return rules
    if isinstance(rules, str) and ("\n" in rules or rules.lstrip().startswith(("@", "#", "["))):
        return RuleSet(load_rules_from_dsl(ce, rules))
    if isinstance(rules, (str, dict, tuple, Rule)) or callable(rules):
        return RuleSet([boxed_rule(ce, rules)])
    if isinstance(rules, Iterable):
        result: List[Rule] = []
        for rule in rules:
            result.extend(boxed_rules(ce, rule))
        return RuleSet(result)
    raise TypeError(f"Not a rule: {rules!r}")


def boxed_rule(ce, rule) -> Rule:
    """Convert one rule (object, dict, tuple, callable or rule string) to a Rule."""
    if isinstance(rule, Rule):
        return rule
    if isinstance(rule, str):
        return parse_rule_line(ce, rule) or _raise(f"Not a rule: {rule!r}")
    if isinstance(rule, dict):
        if "match" not in rule or "replace" not in rule:
            raise ValueError(f"A rule needs 'match' and 'replace': {rule!r}")
        return Rule(ce, _box_pattern(ce, rule["match"]),
                    _box_replacement(ce, rule["replace"]),
                    condition=_box_condition(ce, rule.get("condition")),
                    use_variations=rule.get("use_variations", False),
                    id=rule.get("id"), description=rule.get("description"))
    if isinstance(rule, tuple):
        if len(rule) not in (2, 3):
            raise ValueError(f"A rule tuple is (match, replace[, condition]): {rule!r}")
        condition = rule[2] if len(rule) == 3 else None
        return Rule(ce, _box_pattern(ce, rule[0]), _box_replacement(ce, rule[1]),
                    condition=_box_condition(ce, condition))
    if callable(rule):
        return Rule(ce, fn=rule)
    raise TypeError(f"Not a rule: {rule!r}")


def _raise(message: str):
    raise ValueError(message)


# ============================================================
# Rule text
# ============================================================

_HEADER = [
    # @name "description": ...
    re.compile(r'@([\w-]+)\s+"([^"]+)":\s*(.+)'),
    # @name: ...
    re.compile(r'@([\w-]+):\s*(.+)'),
]


def _split_when(text: str) -> Tuple[str, Optional[str]]:
    """Split ``replacement when condition`` at a top-level ``when``."""
    depth = 0
    for i, c in enumerate(text):
        if c == "(":
            depth += 1
        elif c == ")":
            depth -= 1
        elif depth == 0 and text.startswith("when", i) and (i == 0 or text[i - 1].isspace()):
            after = i + 4
            if after >= len(text) or text[after].isspace():
                return text[:i].strip(), text[after:].strip()
    return text.strip(), None


def parse_rule_line(ce, line: str, tags: Optional[List[str]] = None) -> Optional[Rule]:
    """
    Parse a single rule line.

    Formats:
        @name: pattern -> replacement
        @name "description": pattern -> replacement
        @name: pattern -> replacement when condition
        pattern -> replacement

    ``=>`` is accepted in place of ``->``.

    Returns:
        The rule, or None for blank and comment lines

    Raises:
        ValueError: if the line is not a rule
    """
    line = line.strip()
    if not line or line.startswith("#"):
        return None

    name = description = None
    if line.startswith("@"):
        for header in _HEADER:
            m = header.match(line)
            if m is None:
                continue
            if len(m.groups()) == 3:
                name, description, line = m.groups()
            else:
                name, line = m.groups()
            break
        else:
            raise ValueError(f"Malformed rule header: {line!r}")

    arrow = re.search(r"->|=>", line)
    if arrow is None:
        raise ValueError(f"A rule needs '->': {line!r}")
    pattern_text = line[:arrow.start()].strip()
    replacement_text, condition_text = _split_when(line[arrow.end():])
    if not pattern_text or not replacement_text:
        raise ValueError(f"Incomplete rule: {line!r}")

    condition = None
    if condition_text is not None:
        condition = ce.box(parse(condition_text, wildcards=True), canonical=False)
    return Rule(ce, ce.box(parse(pattern_text, wildcards=True), canonical=False),
                ce.box(parse(replacement_text, wildcards=True), canonical=False),
                condition=condition, id=name, description=description, tags=tags)


def load_rules_from_dsl(ce, text: str) -> List[Rule]:
    """
    Load rules from rule text.

    Supports named groups: a ``[groupname]`` line tags the rules below it.

    Example:
        [algebra]
        @cancel-sum: x + -x -> 0
    """
    rules = []
    current_group = None
    for number, line in enumerate(text.split("\n"), 1):
        stripped = line.strip()
        if stripped.startswith("[") and stripped.endswith("]"):
            current_group = stripped[1:-1].strip()
            continue
        try:
            rule = parse_rule_line(ce, stripped, tags=[current_group] if current_group else None)
        except ValueError as e:
            raise ValueError(f"Line {number}: {e}") from e
        if rule is not None:
            rules.append(rule)
    return rules


# ============================================================
# replace()
# ============================================================

class _RewriteOptions:
    __slots__ = ("recursive", "once", "use_variations", "canonical", "cost")

    def __init__(self, recursive: bool, once: bool, use_variations: bool,
                 canonical: Optional[bool], cost: Optional[Callable] = None):
        self.recursive = recursive
        self.once = once
        self.use_variations = use_variations
        self.canonical = canonical
        self.cost = cost


def _rewrite(expr: BoxedExpression, rules: RuleSet, options: _RewriteOptions,
             steps: List[RuleStep]) -> BoxedExpression:
    """One depth-first pass: operands first, then the node itself."""
    ce = expr.engine
    with ce.recursion():
        if options.recursive and expr.is_function:
            ops = []
            changed = False
            for op in expr.ops:
                new = op if options.once and steps else _rewrite(op, rules, options, steps)
                changed = changed or new is not op
                ops.append(new)
            if changed:
                canonical = expr.is_canonical if options.canonical is None else options.canonical
                expr = expr._rebuild(ops, canonical)
            if options.once and steps:
                return expr

        for rule in rules:
            step = rule.apply(expr, use_variations=options.use_variations,
                              canonical=options.canonical)
            if step is None:
                continue
            if options.cost is not None:
                folded = fold_literal_subterms(step.value)
                if folded is not step.value:
                    step = RuleStep(folded, step.because, step.before)
            if step.value.is_same(expr):
                continue
            if options.cost is not None and options.cost(step.value) > options.cost(expr):
                logger.debug("Rule %s rejected: %s is more costly than %s", rule.id, step.value, expr)
                continue
            logger.debug("Rule %s: %s -> %s", rule.id, expr, step.value)
            steps.append(step)
            return step.value
        return expr


def replace(expr: BoxedExpression, rules, recursive: bool = False, once: bool = False,
            use_variations: bool = False, iteration_limit: int = 1,
            canonical: Optional[bool] = None) -> Optional[BoxedExpression]:
    """
    Apply rules to an expression.

    Args:
        expr: The expression to rewrite
        rules: Anything ``ComputeEngine.rules`` accepts
        recursive: Also rewrite the subexpressions, operands first
        once: Stop after the first rule application
        use_variations: Let patterns match their variations (``x`` as ``x + 0``...)
        iteration_limit: Number of passes over the expression
        canonical: Canonicalize replacements (default: if ``expr`` is canonical)

    Returns:
        The rewritten expression, or None if no rule applied
    """
    ce = expr.engine
    rule_set = ce.rules(rules)
    options = _RewriteOptions(recursive, once, use_variations, canonical)
    steps: List[RuleStep] = []
    result = expr
    with ce.recursion():
        for iteration in range(max(1, iteration_limit)):
            ce.check_continue_execution(iterations=iteration)
            count = len(steps)
            result = _rewrite(result, rule_set, options, steps)
            if len(steps) == count or once:
                break
    return result if steps else None


# ============================================================
# simplify()
# ============================================================

OPERATOR_COSTS = {
    "Add": 1, "Multiply": 1, "Negate": 1, "Subtract": 1, "Divide": 2,
    "Power": 1, "Sqrt": 2, "Root": 2, "Abs": 2, "Exp": 2, "Ln": 2,
}


def default_cost(expr: BoxedExpression) -> int:
    """
    Cost of an expression: small integers and symbols cost 1, other numbers
    2, operators their ``OPERATOR_COSTS`` (2 if not listed) plus the cost
    of their operands. The small integer coefficient of a product is free,
    so ``2x`` costs less than ``x + x``.
    """
    if expr.is_number_literal:
        return 1 if _small_integer(expr) else 2
    if not expr.is_function:
        return 1
    ops = expr.ops
    cost = OPERATOR_COSTS.get(expr.operator, 2)
    if expr.operator == "Multiply" and ops and _small_integer(ops[0]):
        ops = ops[1:]
    return cost + sum(default_cost(op) for op in ops)


def _small_integer(expr: BoxedExpression) -> bool:
    if not expr.is_number_literal:
        return False
    v = expr.numeric_value
    return v.is_exact and v.is_integer and abs(v.re) < 1000


def simplify(expr: BoxedExpression, rules=None, cost_function: Optional[Callable] = None,
             iteration_limit: Optional[int] = None, trace: bool = False):
    """
    Rewrite until no rule fires, a form seen before recurs, or the pass
    limit is hit. Rewrites that raise the cost of the subterm they apply to
    are ignored.

    Returns:
        The simplified expression, or ``(expr, steps)`` when ``trace`` is set
    """
    ce = expr.engine
    rule_set = ce.get_rule_set("standard-simplification") if rules is None else ce.rules(rules)
    cost = cost_function or ce.cost_function
    limit = DEFAULT_SIMPLIFY_PASSES if iteration_limit is None else iteration_limit
    options = _RewriteOptions(recursive=True, once=False, use_variations=False,
                              canonical=None, cost=cost)

    current = expr.canonical
    seen = {current}
    steps: List[RuleStep] = []
    with ce.recursion():
        for iteration in range(limit):
            ce.check_continue_execution(iterations=iteration)
            count = len(steps)
            result = _rewrite(current, rule_set, options, steps)
            if len(steps) == count or result.is_same(current):
                break
            current = result
            if current in seen:
                logger.debug("Simplification cycle at %s", current)
                break
            seen.add(current)
        else:
            logger.debug("Simplification of %s stopped after %d passes", expr, limit)

    if trace:
        return current, steps
    return current


# ============================================================
# Standard rules
# ============================================================

def fold_exact_numbers(expr: BoxedExpression):
    """Fold the exact literal operands of a numeric operator: ``2 + x + 3`` -> ``5 + x``."""
    if not expr.is_function or not expr.is_canonical:
        return None
    definition = expr.function_definition
    if definition is None or not definition.numeric or not callable(definition.evaluate):
        return None
    literals = [op for op in expr.ops if op.is_number_literal]
    if not literals or any(not op.numeric_value.is_exact for op in literals):
        return None
    result = definition.evaluate(expr.engine, list(expr.ops))
    if result is None:
        return None
    result = expr.engine.box(result)
    if not result.is_valid or result.is_same(expr):
        return None
    return RuleStep(result, "fold-exact-numbers")


def fold_literal_subterms(expr: BoxedExpression) -> BoxedExpression:
    """
    Replace the numeric subterms whose operands are all exact literals by
    their value: ``(2 + 1) x`` -> ``3 x``. Returns ``expr`` itself when
    nothing was folded.
    """
    if not expr.is_function or not expr.is_canonical:
        return expr
    ops = [fold_literal_subterms(op) for op in expr.ops]
    if any(new is not old for new, old in zip(ops, expr.ops)):
        expr = expr._rebuild(ops, True)
        if not expr.is_function:
            return expr
    definition = expr.function_definition
    if definition is None or not definition.numeric or not definition.pure:
        return expr
    if not all(op.is_number_literal and op.numeric_value.is_exact for op in expr.ops):
        return expr
    value = expr.evaluate()
    if not value.is_number_literal or value.numeric_value.is_nan:
        return expr
    return value


STANDARD_RULES = """
# Patterns have the shape of canonical expressions:
# x - y is x + -y, and x/y stays a Divide.

[sums]
@cancel-sum "x - x = 0": x + -x + ___r -> 0 + ___r
@collect-coefficients "ax + bx = (a + b)x": a*x + b*x + ___r -> (a + b)*x + ___r
@collect-coefficient "x + ax = (a + 1)x": x + a*x + ___r -> (a + 1)*x + ___r
@collect-terms "x + x = 2x": x + x + ___r -> 2*x + ___r

[products]
@collect-powers "x x = x^2": x * x * ___r -> x^2 * ___r
@add-exponents "x^a x^b = x^(a + b)": x^a * x^b * ___r -> x^(a + b) * ___r
@add-exponent "x x^a = x^(a + 1)": x * x^a * ___r -> x^(a + 1) * ___r
@cancel-quotient "x / x = 1": x / x -> 1 when x != 0
@exp-product "exp(a) exp(b) = exp(a + b)": exp(a) * exp(b) * ___r -> exp(a + b) * ___r

[powers]
@power-of-power "(x^a)^b = x^(ab)": (x^a)^b -> x^(a*b) when b in Integer
@square-of-sqrt: sqrt(x)^2 -> x
@sqrt-of-square: sqrt(x^2) -> abs(x) when x in RealNumber

[absolute-value]
@abs-non-negative: abs(x) -> x when x >= 0
@abs-non-positive: abs(x) -> -x when x <= 0

[exponentials]
@ln-of-exp: ln(exp(x)) -> x when x in RealNumber
@exp-of-ln: exp(ln(x)) -> x
"""


def standard_rule_set(ce) -> RuleSet:
    rules = [Rule(ce, fn=fold_exact_numbers, id="fold-exact-numbers", tags=["numbers"])]
    rules.extend(load_rules_from_dsl(ce, STANDARD_RULES))
    return RuleSet(rules, id="standard-simplification")
