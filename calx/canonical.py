"""
Canonical forms of function expressions.

The generic driver takes ``name(ops)`` through these steps:

    1. canonicalize operands, except the ones the definition holds
    2. splice Sequence operands (empty sequences vanish)
    3. flatten nested same-operator operands of associative operators
    4. f(f(x)) -> f(x) when idempotent, -> x when an involution
    5. check arity and operand domains against the signature
    6. sort operands of commutative operators
    7. fold literal numbers, only when the engine has fold_literals on
    8. hand over to the operator's own canonical handler
"""

import logging
from typing import List, Optional, Sequence

from . import errors
from .domains import BoxedDomain
from .expr import BoxedExpression
from .numeric import to_float

logger = logging.getLogger(__name__)


def canonical_function(ce, name: str, ops: Sequence[BoxedExpression], metadata=None) -> BoxedExpression:
    with ce.recursion():
        definition = ce.lookup_function(name)
        if definition is None:
            ops = flatten_sequence([op.canonical for op in ops])
            return ce._fn(name, ops, metadata)

        count = len(ops)
        ops = [op if definition.is_held(i, count) else op.canonical for i, op in enumerate(ops)]
        if name != "Hold":
            ops = flatten_sequence(ops)
        if definition.associative:
            ops = flatten_associative(name, ops)

        if len(ops) == 1 and ops[0].operator == name and ops[0].is_function:
            if definition.involution:
                return ops[0].op1
            if definition.idempotent:
                ops = list(ops[0].ops)

        if not definition.inferred:
            ops = validate_arguments(ce, definition, ops)

        if definition.commutative:
            ops = sort_operands(ops)

        if ce.fold_literals and definition.numeric and definition.associative and definition.commutative:
            ops = fold_literal_operands(ce, definition, ops)

        if definition.canonical is not None:
            result = definition.canonical(ce, ops)
            if result is not None:
                return ce.box(result)
        return ce._fn(name, ops, metadata)


# ============================================================
# Structural steps
# ============================================================

def flatten_sequence(ops: Sequence[BoxedExpression]) -> List[BoxedExpression]:
    """Splice the operands of Sequence operands in place."""
    result: List[BoxedExpression] = []
    for op in ops:
        if op.operator == "Sequence" and op.is_function:
            result.extend(flatten_sequence(op.ops))
        else:
            result.append(op)
    return result


def flatten_associative(name: str, ops: Sequence[BoxedExpression]) -> List[BoxedExpression]:
    """``f(a, f(b, c))`` -> ``f(a, b, c)``."""
    result: List[BoxedExpression] = []
    for op in ops:
        if op.operator == name and op.is_function:
            result.extend(flatten_associative(name, op.ops))
        else:
            result.append(op)
    return result


def order_key(expr: BoxedExpression):
    """
    Total order used for the operands of commutative operators.

    Number literals come first, by value. Other expressions follow by
    complexity, then by their serialized form.
    """
    v = expr.numeric_value
    if v is not None:
        if v.is_nan:
            return (0, 1, 0.0, 0.0, "")
        return (0, 0, to_float(v.re), to_float(v.imag), str(expr.json))
    return (1, expr.complexity, str(expr.json))


def sort_operands(ops: Sequence[BoxedExpression]) -> List[BoxedExpression]:
    return sorted(ops, key=order_key)


def fold_literal_operands(ce, definition, ops: List[BoxedExpression]) -> List[BoxedExpression]:
    """Combine the exact literal operands through the evaluate handler."""
    literals = [op for op in ops if op.is_number_literal and op.numeric_value.is_exact]
    if len(literals) < 2 or not callable(definition.evaluate):
        return ops
    folded = definition.evaluate(ce, literals)
    if folded is None:
        return ops
    folded = ce.box(folded)
    if not folded.is_number_literal:
        return ops
    used = {id(op) for op in literals}
    rest = [op for op in ops if id(op) not in used]
    return sort_operands([folded, *rest])


# ============================================================
# Signature validation
# ============================================================

def validate_arguments(ce, definition, ops: List[BoxedExpression]) -> List[BoxedExpression]:
    """
    Check operands against the signature of ``definition``.

    Returns:
        The operands, where offenders are replaced by error terms:
        a missing operand by ``["Error", "'missing-argument'"]``, an extra
        one by ``["Error", "'unexpected-argument'", op]`` and an operand of
        the wrong domain by ``["Error", ["ErrorCode", "'incompatible-domain'",
        expected, actual], op]``.
    """
    result: List[BoxedExpression] = []
    params = definition.params
    opt_params = definition.opt_params
    rest = definition.rest_param

    for i, expected in enumerate(params):
        if i >= len(ops):
            result.append(ce.error(errors.MISSING_ARGUMENT))
            continue
        result.append(check_operand(ce, ops[i], expected))

    index = len(params)
    for expected in opt_params:
        if index >= len(ops):
            break
        result.append(check_operand(ce, ops[index], expected))
        index += 1

    for op in ops[index:]:
        if rest is None:
            result.append(ce.error(errors.UNEXPECTED_ARGUMENT, op))
        else:
            result.append(check_operand(ce, op, rest))
    return result


def check_operand(ce, op: BoxedExpression, expected: BoxedDomain) -> BoxedExpression:
    if expected.json == "Anything" or not op.is_valid:
        return op
    actual = op.domain
    if actual is None or actual.is_compatible(expected):
        return op
    # A symbol whose domain was only inferred takes the narrower domain
    if op.symbol is not None and op.infer(expected):
        return op
    if expected.is_compatible(actual):
        return op
    logger.debug("Incompatible domain for %s: expected %s, got %s", op, expected, actual)
    return ce.domain_error(expected, actual, op)
