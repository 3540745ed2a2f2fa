"""
CALX - a symbolic compute engine

Expressions are MathJSON terms: nested lists with the operator first.
The engine boxes them, binds their names in a scope chain, puts them in
canonical form, and simplifies or evaluates them exactly or numerically.

Quick Start:
    from calx import ComputeEngine

    ce = ComputeEngine()
    expr = ce.box(["Add", ["Multiply", 2, "x"], "x"])
    expr.simplify()                        # => ["Multiply", 3, "x"]
    ce.box(["Divide", 1, 3]).N()           # => 0.333333333333333333333

Rules:
    expr.replace("sin(x) -> cos(x)")
    expr.simplify(rules='''
        @double: 2*x -> x + x
        @zero: x + -x -> 0
    ''')

Pattern Syntax:
    _x      - match any expression, bind to _x
    __x     - match one or more operands
    ___x    - match zero or more operands
    _       - match anything, bind nothing

Assumptions:
    ce.assume("n", "Integer")
    ce.assume("n > 0")
    ce.box("n").is_positive               # => True
"""

__version__ = "0.1.0"

# Engine
from .engine import (
    ComputeEngine,
    DEFAULT_TOLERANCE,
    DEFAULT_DOMAIN,
)

# Expressions
from .expr import (
    BoxedExpression,
    BoxedNumber,
    BoxedString,
    BoxedSymbol,
    BoxedFunction,
)

# Numbers and domains
from .numeric import (
    NumericValue,
    DEFAULT_PRECISION,
    MACHINE_PRECISION,
)
from .domains import BoxedDomain, is_subdomain, widen, domain_of_number

# Definitions and scopes
from .definitions import SymbolDefinition, FunctionDefinition
from .scope import Scope

# Patterns and rules
from .patterns import Substitution, NoMatch
from .rules import (
    Rule,
    RuleSet,
    RuleStep,
    default_cost,
    load_rules_from_dsl,
)

# Text input
from .parsing import parse, parse_sexpr

# Errors
from .errors import (
    CancellationError,
    TimeLimitExceeded,
    RecursionLimitExceeded,
    IterationLimitExceeded,
    MemoryLimitExceeded,
)

__all__ = [
    # Engine
    "ComputeEngine",
    "DEFAULT_TOLERANCE",
    "DEFAULT_DOMAIN",
    # Expressions
    "BoxedExpression",
    "BoxedNumber",
    "BoxedString",
    "BoxedSymbol",
    "BoxedFunction",
    # Numbers and domains
    "NumericValue",
    "DEFAULT_PRECISION",
    "MACHINE_PRECISION",
    "BoxedDomain",
    "is_subdomain",
    "widen",
    "domain_of_number",
    # Definitions and scopes
    "SymbolDefinition",
    "FunctionDefinition",
    "Scope",
    # Patterns and rules
    "Substitution",
    "NoMatch",
    "Rule",
    "RuleSet",
    "RuleStep",
    "default_cost",
    "load_rules_from_dsl",
    # Text input
    "parse",
    "parse_sexpr",
    # Errors
    "CancellationError",
    "TimeLimitExceeded",
    "RecursionLimitExceeded",
    "IterationLimitExceeded",
    "MemoryLimitExceeded",
]
