"""
Safe arithmetic expressions for numeric rule constraints.

A constraint has the form ``"<expr>=<number>"``, e.g. ``"x*2=10"``. The left
side is tokenized and parsed by a small recursive-descent parser that knows
only numbers, the variable ``x``, ``+ - * /`` and parentheses. Nothing is
ever handed to ``eval``.

Grammar::

    expr    := term (("+" | "-") term)*
    term    := factor (("*" | "/") factor)*
    factor  := ("+" | "-") factor | primary
    primary := NUMBER | "x" | "(" expr ")"
"""

import math
import re
from functools import lru_cache
from typing import List, NamedTuple, Tuple, Union

SAFE_CHARACTERS = re.compile(r"^[x\d+\-*/().\s]+$")
_TOKEN = re.compile(r"\s*(?:(\d+\.\d*|\.\d+|\d+)|(.))")


class ExpressionError(ValueError):
    """The expression is unsafe, malformed or cannot be evaluated."""


class Token(NamedTuple):
    kind: str  # "num", "x", "op", "lparen", "rparen"
    text: str


# Parsed tree: a float, the string "x", or (operator, operand[, operand])
Node = Union[float, str, Tuple]


def tokenize(source: str) -> List[Token]:
    if not SAFE_CHARACTERS.match(source):
        raise ExpressionError("expression contains unsafe characters")
    tokens: List[Token] = []
    for number, symbol in _TOKEN.findall(source):
        if number:
            tokens.append(Token("num", number))
        elif symbol == "x":
            tokens.append(Token("x", symbol))
        elif symbol in "+-*/":
            tokens.append(Token("op", symbol))
        elif symbol == "(":
            tokens.append(Token("lparen", symbol))
        elif symbol == ")":
            tokens.append(Token("rparen", symbol))
        elif symbol.strip():
            raise ExpressionError(f"unexpected character {symbol!r}")
    return tokens


class _Parser:
    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0

    def peek(self) -> Union[Token, None]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def take(self) -> Token:
        token = self.peek()
        if token is None:
            raise ExpressionError("unexpected end of expression")
        self.pos += 1
        return token

    def parse(self) -> Node:
        if not self.tokens:
            raise ExpressionError("empty expression")
        node = self.expr()
        if self.peek() is not None:
            raise ExpressionError(f"unexpected token {self.peek().text!r}")
        return node

    def expr(self) -> Node:
        node = self.term()
        while True:
            token = self.peek()
            if token is None or token.kind != "op" or token.text not in "+-":
                return node
            self.take()
            node = (token.text, node, self.term())

    def term(self) -> Node:
        node = self.factor()
        while True:
            token = self.peek()
            if token is None or token.kind != "op" or token.text not in "*/":
                return node
            self.take()
            node = (token.text, node, self.factor())

    def factor(self) -> Node:
        token = self.peek()
        if token is not None and token.kind == "op" and token.text in "+-":
            self.take()
            return ("neg" if token.text == "-" else "pos", self.factor())
        return self.primary()

    def primary(self) -> Node:
        token = self.take()
        if token.kind == "num":
            return float(token.text)
        if token.kind == "x":
            return "x"
        if token.kind == "lparen":
            node = self.expr()
            closing = self.take()
            if closing.kind != "rparen":
                raise ExpressionError("missing closing parenthesis")
            return node
        raise ExpressionError(f"unexpected token {token.text!r}")


@lru_cache(maxsize=256)
def compile_expression(source: str) -> Node:
    """Parse once; cached because rules are immutable and reused per request."""
    return _Parser(tokenize(source)).parse()


def _evaluate(node: Node, x: float) -> float:
    if isinstance(node, float):
        return node
    if node == "x":
        return x
    op = node[0]
    if op == "neg":
        return -_evaluate(node[1], x)
    if op == "pos":
        return _evaluate(node[1], x)
    left = _evaluate(node[1], x)
    right = _evaluate(node[2], x)
    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if right == 0:
        raise ExpressionError("division by zero")
    return left / right


def evaluate_expression(source: str, x: float) -> float:
    result = _evaluate(compile_expression(source.strip()), float(x))
    if not math.isfinite(result):
        raise ExpressionError("result is not a finite number")
    return result


def split_constraint(constraint: str) -> Tuple[str, float]:
    """Split ``"lhs=rhs"``; the right side must be a number literal."""
    parts = constraint.split("=")
    if len(parts) != 2:
        raise ExpressionError("constraint must contain exactly one '='")
    left, right = parts[0].strip(), parts[1].strip()
    try:
        target = float(right)
    except ValueError:
        raise ExpressionError("right side of the constraint must be a number") from None
    if not math.isfinite(target):
        raise ExpressionError("right side of the constraint must be a number")
    return left, target
