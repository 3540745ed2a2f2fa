"""
Text front end: infix and s-expression input.

Rule strings, rule conditions and assumptions can be written as text:

    parse("x^2 + 2*x + 1")                 -> ["Add", ["Power", "x", 2], ["Multiply", 2, "x"], 1]
    parse("n > 0")                         -> ["Greater", "n", 0]
    parse("n in Integer")                  -> ["Element", "n", "Integer"]
    parse("x + 0", wildcards=True)         -> ["Add", "_x", 0]
    parse("(+ ?x 0)")                      -> ["Add", "_x", 0]

With ``wildcards=True`` single-letter identifiers become wildcards, the
convention of rule strings. The result is plain MathJSON, to be boxed by the
engine.
"""

import re
from decimal import Decimal
from fractions import Fraction
from typing import List, Optional, Tuple, Union

from .numeric import parse_real

ExprType = Union[int, float, str, list, dict]

FUNCTION_NAMES = {
    "sqrt": "Sqrt", "abs": "Abs", "exp": "Exp", "ln": "Ln", "log": "Ln",
    "sin": "Sin", "cos": "Cos", "root": "Root",
}

CONSTANT_NAMES = {"pi": "Pi", "inf": "PositiveInfinity", "infinity": "PositiveInfinity"}

COMPARISONS = {
    "<": "Less", "<=": "LessEqual", ">": "Greater", ">=": "GreaterEqual",
    "=": "Equal", "==": "Equal", "!=": "NotEqual", "in": "Element",
}

SEXPR_OPERATORS = {
    "+": "Add", "-": "Subtract", "*": "Multiply", "/": "Divide", "^": "Power",
    "=": "Equal", "!=": "NotEqual", "<": "Less", "<=": "LessEqual",
    ">": "Greater", ">=": "GreaterEqual",
}

_TOKEN = re.compile(r"""
    \s*(?:
        (?P<number>\d+(?:\.\d*)?(?:[eE][-+]?\d+)?|\.\d+(?:[eE][-+]?\d+)?)
      | (?P<string>'[^']*')
      | (?P<name>[A-Za-z_][A-Za-z_0-9]*)
      | (?P<op><=|>=|==|!=|->|[-+*/^(),<>=])
    )""", re.VERBOSE)


def _number_json(text: str) -> ExprType:
    value = parse_real(text)
    if isinstance(value, Fraction):
        return int(value)
    if isinstance(value, Decimal):
        return {"num": text}
    return value


def tokenize(text: str) -> List[Tuple[str, str]]:
    tokens = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        m = _TOKEN.match(text, pos)
        if m is None or m.end() == pos:
            raise ValueError(f"Unexpected character {text[pos]!r} at position {pos} in {text!r}")
        kind = m.lastgroup
        tokens.append((kind, m.group(kind)))
        pos = m.end()
    return tokens


class _Parser:
    """Recursive descent parser over the token list."""

    def __init__(self, text: str, wildcards: bool):
        self.text = text
        self.tokens = tokenize(text)
        self.pos = 0
        self.wildcards = wildcards

    def peek(self) -> Optional[Tuple[str, str]]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def accept(self, *values: str) -> Optional[str]:
        tok = self.peek()
        if tok is not None and tok[1] in values and (tok[0] == "op" or tok[0] == "name"):
            self.pos += 1
            return tok[1]
        return None

    def expect(self, value: str):
        if self.accept(value) is None:
            found = self.peek()
            raise ValueError(f"Expected {value!r} in {self.text!r}, found {found[1] if found else 'end of input'!r}")

    def parse(self) -> ExprType:
        result = self.logic_or()
        if self.peek() is not None:
            raise ValueError(f"Unexpected {self.peek()[1]!r} in {self.text!r}")
        return result

    def logic_or(self):
        ops = [self.logic_and()]
        while self.accept("or"):
            ops.append(self.logic_and())
        return ops[0] if len(ops) == 1 else ["Or", *ops]

    def logic_and(self):
        ops = [self.logic_not()]
        while self.accept("and"):
            ops.append(self.logic_not())
        return ops[0] if len(ops) == 1 else ["And", *ops]

    def logic_not(self):
        if self.accept("not"):
            return ["Not", self.logic_not()]
        return self.comparison()

    def comparison(self):
        lhs = self.additive()
        op = self.accept(*COMPARISONS)
        if op is None:
            return lhs
        return [COMPARISONS[op], lhs, self.additive()]

    def additive(self):
        result = self.term()
        while True:
            op = self.accept("+", "-")
            if op is None:
                return result
            rhs = self.term()
            if op == "+":
                result = ["Add", *(result[1:] if _is(result, "Add") else [result]), rhs]
            else:
                result = ["Subtract", result, rhs]

    def term(self):
        result = self.unary()
        while True:
            op = self.accept("*", "/")
            if op is None:
                tok = self.peek()
                # implicit product: 2x, 2(x + 1)
                if isinstance(result, (int, float)) and tok is not None and (
                        tok[0] == "name" and tok[1] not in ("and", "or", "not", "in", "when")
                        or tok[1] == "("):
                    op = "*"
                else:
                    return result
            rhs = self.unary()
            if op == "*":
                result = ["Multiply", *(result[1:] if _is(result, "Multiply") else [result]), rhs]
            else:
                result = ["Divide", result, rhs]

    def unary(self):
        if self.accept("-"):
            operand = self.unary()
            if isinstance(operand, (int, float)) and not isinstance(operand, bool):
                return -operand
            return ["Negate", operand]
        if self.accept("+"):
            return self.unary()
        return self.power()

    def power(self):
        base = self.primary()
        if self.accept("^"):
            return ["Power", base, self.unary()]
        return base

    def primary(self):
        tok = self.peek()
        if tok is None:
            raise ValueError(f"Unexpected end of input in {self.text!r}")
        kind, value = tok
        self.pos += 1
        if kind == "number":
            return _number_json(value)
        if kind == "string":
            return value
        if kind == "name":
            if self.accept("("):
                args = []
                if not self.accept(")"):
                    args.append(self.logic_or())
                    while self.accept(","):
                        args.append(self.logic_or())
                    self.expect(")")
                name = FUNCTION_NAMES.get(value, value)
                if self.wildcards and len(name) == 1:
                    name = f"_{name}"
                return [name, *args]
            if value in CONSTANT_NAMES:
                return CONSTANT_NAMES[value]
            if self.wildcards and len(value) == 1:
                return f"_{value}"
            return value
        if value == "(":
            inner = self.logic_or()
            self.expect(")")
            return inner
        raise ValueError(f"Unexpected {value!r} in {self.text!r}")


def _is(expr, name: str) -> bool:
    return isinstance(expr, list) and bool(expr) and expr[0] == name


def parse(text: str, wildcards: bool = False) -> ExprType:
    """
    Parse infix (or parenthesized s-expression) text to MathJSON.

    Raises:
        ValueError: if the text is malformed
    """
    text = text.strip()
    if not text:
        raise ValueError("Empty expression")
    if text.startswith("(") and _is_sexpr(text):
        return parse_sexpr(text)
    return _Parser(text, wildcards).parse()


def _is_sexpr(text: str) -> bool:
    """An s-expression has its operator first: ``(+ x 1)``, not ``(x + 1)``."""
    m = re.match(r"\(\s*([^\s()]+)\s+([^\s()]+)", text)
    if m is None or not text.endswith(")"):
        return False
    head, second = m.groups()
    if second in SEXPR_OPERATORS or second in COMPARISONS or second in ("and", "or"):
        return False
    return head in SEXPR_OPERATORS or head[0].isalpha() or head.startswith("?")


# ============================================================
# S-expressions
# ============================================================

def parse_sexpr(s: str) -> ExprType:
    """
    Parse an S-expression string into MathJSON.

    Examples:
        "(+ x 1)"          -> ["Add", "x", 1]
        "(^ ?x 2)"         -> ["Power", "_x", 2]
        "(* ?xs... 1)"     -> ["Multiply", "__xs", 1]
    """
    s = s.strip()
    if not s:
        raise ValueError("Empty s-expression")

    if s.startswith('('):
        depth = 0
        parts = []
        current = ''
        i = 1  # Skip opening paren

        while i < len(s):
            c = s[i]
            if c == '(':
                depth += 1
                current += c
            elif c == ')':
                if depth == 0:
                    if current.strip():
                        parts.append(parse_sexpr(current.strip()))
                    break
                depth -= 1
                current += c
            elif c in ' \t\n' and depth == 0:
                if current.strip():
                    parts.append(parse_sexpr(current.strip()))
                current = ''
            else:
                current += c
            i += 1
        else:
            raise ValueError(f"Unbalanced parentheses in {s!r}")

        if parts and isinstance(parts[0], str):
            parts[0] = SEXPR_OPERATORS.get(parts[0], parts[0])
        return parts

    # Atoms: numbers first
    if re.fullmatch(r"[-+]?(\d+(\.\d*)?|\.\d+)([eE][-+]?\d+)?", s):
        return _number_json(s)

    # Pattern variables: ?x -> _x, ?x... -> __x
    if s.startswith('?'):
        rest = s[1:]
        if rest.endswith('...'):
            return f"__{rest[:-3] or 'x'}"
        return f"_{rest}" if rest else "_"

    return s
