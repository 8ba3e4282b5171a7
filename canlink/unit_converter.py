"""Unit conversion through small arithmetic expressions."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Callable, Optional

_NAN = float("nan")


@dataclass(eq=False)
class Variable:
    """A named value an expression reads from or assigns to."""

    value: float = _NAN


GetVariable = Callable[[str], Optional[Variable]]
_Node = Callable[[], float]


def assign_variable(name: str, variable: Variable, requested: str) -> Optional[Variable]:
    """``variable`` if ``requested`` is ``name``, otherwise None."""
    return variable if name == requested else None


def rad2deg(r: float) -> float:
    return r * 180.0 / math.pi


def deg2rad(d: float) -> float:
    return d * math.pi / 180.0


def norm(val: float, lo: float, hi: float) -> float:
    """Wrap ``val`` into the interval [lo, hi)."""
    if not hi > lo:
        raise ValueError(f"empty interval [{lo}, {hi})")
    return lo + (val - lo) % (hi - lo)


def smooth(val: float, old_val: float, alpha: float) -> float:
    """Exponential smoothing; 0 for a NaN value, the value itself if there is no old one."""
    if math.isnan(val):
        return 0.0
    if math.isnan(old_val):
        return val
    return alpha * val + (1.0 - alpha) * old_val


def avg(*args: float) -> float:
    """Sum of the values up to the first NaN, divided by their count plus one."""
    total = 0.0
    count = 0
    for val in args:
        if math.isnan(val):
            break
        total += val
        count += 1
    return total / float(count + 1)


def _rint(x: float) -> float:
    if not math.isfinite(x):
        return x
    return float(round(x))


def _sign(x: float) -> float:
    if math.isnan(x):
        return x
    return 1.0 if x > 0 else (-1.0 if x < 0 else 0.0)


def _div(a: float, b: float) -> float:
    try:
        return a / b
    except ZeroDivisionError:
        if a == 0 or math.isnan(a):
            return _NAN
        return math.copysign(math.inf, a) * math.copysign(1.0, b)


def _pow(a: float, b: float) -> float:
    try:
        return math.pow(a, b)
    except OverflowError:
        return math.inf
    except ValueError:
        return _NAN


# name -> (function, number of arguments or None for any number >= 1)
_FUNCTIONS: dict[str, tuple[Callable[..., float], Optional[int]]] = {
    "sin": (math.sin, 1),
    "cos": (math.cos, 1),
    "tan": (math.tan, 1),
    "asin": (math.asin, 1),
    "acos": (math.acos, 1),
    "atan": (math.atan, 1),
    "sinh": (math.sinh, 1),
    "cosh": (math.cosh, 1),
    "tanh": (math.tanh, 1),
    "asinh": (math.asinh, 1),
    "acosh": (math.acosh, 1),
    "atanh": (math.atanh, 1),
    "log2": (math.log2, 1),
    "log10": (math.log10, 1),
    "log": (math.log, 1),
    "ln": (math.log, 1),
    "exp": (math.exp, 1),
    "sqrt": (math.sqrt, 1),
    "sign": (_sign, 1),
    "rint": (_rint, 1),
    "abs": (math.fabs, 1),
    "min": (lambda *a: min(a), None),
    "max": (lambda *a: max(a), None),
    "sum": (lambda *a: math.fsum(a), None),
    "rad2deg": (rad2deg, 1),
    "deg2rad": (deg2rad, 1),
    "norm": (norm, 3),
    "smooth": (smooth, 3),
    "avg": (avg, None),
}

_CONSTANTS = {"pi": math.pi, "nan": _NAN, "_pi": math.pi, "_e": math.e}

_LEXEME_PATTERN = re.compile(
    r"""\s*(?:
        (?P<num>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
      | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
      | (?P<op>&&|\|\||<=|>=|==|!=|[-+*/^?:(),=<>])
    )\s*""",
    re.VERBOSE,
)


def _tokenize(text: str) -> list[tuple[str, str]]:
    lexemes = []
    pos = 0
    while pos < len(text):
        match = _LEXEME_PATTERN.match(text, pos)
        if match is None or match.end() == pos:
            if text[pos:].strip() == "":
                break
            raise ValueError(f"unexpected character at {pos} in {text!r}")
        kind = match.lastgroup
        lexemes.append((kind, match.group(kind)))
        pos = match.end()
    return lexemes


def _call(func: Callable[..., float], args: list[_Node]) -> _Node:
    def node() -> float:
        values = [a() for a in args]
        try:
            return float(func(*values))
        except OverflowError:
            return math.inf
        except ValueError:
            return _NAN

    return node


_BINARY: dict[str, Callable[[float, float], float]] = {
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
    "/": _div,
    "<": lambda a, b: float(a < b),
    ">": lambda a, b: float(a > b),
    "<=": lambda a, b: float(a <= b),
    ">=": lambda a, b: float(a >= b),
    "==": lambda a, b: float(a == b),
    "!=": lambda a, b: float(a != b),
}


def _binary(op: str, left: _Node, right: _Node) -> _Node:
    func = _BINARY[op]
    return lambda: func(left(), right())


class _Parser:
    def __init__(self, text: str, lookup: Callable[[str], Variable]) -> None:
        self._items = _tokenize(text)
        self._pos = 0
        self._lookup = lookup
        self._text = text

    def _peek(self, offset: int = 0) -> Optional[tuple[str, str]]:
        index = self._pos + offset
        return self._items[index] if index < len(self._items) else None

    def _accept(self, *ops: str) -> Optional[str]:
        item = self._peek()
        if item is not None and item[0] == "op" and item[1] in ops:
            self._pos += 1
            return item[1]
        return None

    def _expect(self, op: str) -> None:
        if self._accept(op) is None:
            raise ValueError(f"expected {op!r} in {self._text!r}")

    def parse(self) -> list[_Node]:
        nodes = [self._assignment()]
        while self._accept(","):
            nodes.append(self._assignment())
        if self._peek() is not None:
            raise ValueError(f"unexpected {self._peek()[1]!r} in {self._text!r}")
        return nodes

    def _assignment(self) -> _Node:
        item, following = self._peek(), self._peek(1)
        if item and item[0] == "name" and following == ("op", "="):
            name = item[1]
            if name in _CONSTANTS or name in _FUNCTIONS:
                raise ValueError(f"cannot assign to {name!r}")
            self._pos += 2
            target = self._lookup(name)
            value = self._assignment()

            def assign() -> float:
                target.value = value()
                return target.value

            return assign
        return self._ternary()

    def _ternary(self) -> _Node:
        cond = self._logic_or()
        if self._accept("?"):
            then = self._assignment()
            self._expect(":")
            other = self._assignment()
            return lambda: then() if cond() != 0 else other()
        return cond

    def _logic_or(self) -> _Node:
        node = self._logic_and()
        while self._accept("||"):
            left, right = node, self._logic_and()
            node = (lambda l, r: lambda: float(l() != 0 or r() != 0))(left, right)
        return node

    def _logic_and(self) -> _Node:
        node = self._comparison()
        while self._accept("&&"):
            left, right = node, self._comparison()
            node = (lambda l, r: lambda: float(l() != 0 and r() != 0))(left, right)
        return node

    def _comparison(self) -> _Node:
        node = self._additive()
        while (op := self._accept("<", ">", "<=", ">=", "==", "!=")) is not None:
            node = _binary(op, node, self._additive())
        return node

    def _additive(self) -> _Node:
        node = self._multiplicative()
        while (op := self._accept("+", "-")) is not None:
            node = _binary(op, node, self._multiplicative())
        return node

    def _multiplicative(self) -> _Node:
        node = self._unary()
        while (op := self._accept("*", "/")) is not None:
            node = _binary(op, node, self._unary())
        return node

    def _unary(self) -> _Node:
        if self._accept("-"):
            operand = self._unary()
            return lambda: -operand()
        if self._accept("+"):
            return self._unary()
        return self._power()

    def _power(self) -> _Node:
        base = self._primary()
        if self._accept("^"):
            exponent = self._unary()
            return lambda: _pow(base(), exponent())
        return base

    def _primary(self) -> _Node:
        item = self._peek()
        if item is None:
            raise ValueError(f"unexpected end of {self._text!r}")
        kind, text = item
        if kind == "num":
            self._pos += 1
            value = float(text)
            return lambda: value
        if kind == "name":
            self._pos += 1
            if self._accept("("):
                return self._function(text)
            if text in _CONSTANTS:
                const = _CONSTANTS[text]
                return lambda: const
            if text in _FUNCTIONS:
                raise ValueError(f"function {text!r} needs arguments")
            variable = self._lookup(text)
            return lambda: variable.value
        if self._accept("("):
            node = self._assignment()
            self._expect(")")
            return node
        raise ValueError(f"unexpected {text!r} in {self._text!r}")

    def _function(self, name: str) -> _Node:
        if name not in _FUNCTIONS:
            raise ValueError(f"unknown function {name!r}")
        func, arity = _FUNCTIONS[name]
        args: list[_Node] = []
        if self._accept(")") is None:
            args.append(self._assignment())
            while self._accept(","):
                args.append(self._assignment())
            self._expect(")")
        if (arity is None and not args) or (arity is not None and len(args) != arity):
            raise ValueError(f"wrong number of arguments for {name!r}: {len(args)}")
        return _call(func, args)


class UnitConverter:
    """Evaluates an expression; its variables come from ``get_variable``.

    Names that ``get_variable`` does not provide become internal variables
    that start out as NaN and keep values assigned to them between
    evaluations.  Raises ValueError if the expression cannot be parsed.
    """

    def __init__(self, expression: str, get_variable: Optional[GetVariable] = None) -> None:
        self._get_variable = get_variable
        self._variables: dict[str, Variable] = {}
        self._created: list[Variable] = []
        self._nodes = _Parser(expression, self._resolve).parse()

    def _resolve(self, name: str) -> Variable:
        variable = self._variables.get(name)
        if variable is None:
            variable = self._get_variable(name) if self._get_variable else None
            if variable is None:
                variable = Variable()
                self._created.append(variable)
            self._variables[name] = variable
        return variable

    def reset(self) -> None:
        """Set the internal variables back to NaN."""
        for variable in self._created:
            variable.value = _NAN

    def evaluate(self) -> float:
        """Evaluate every comma separated expression; the first one's value."""
        results = [node() for node in self._nodes]
        return results[0]