"""
Arithmetic quantity expressions stored in rule rows, e.g. "gates * 2".

Expressions are parsed once when the rule set is loaded; anything outside
plain arithmetic over named attributes is rejected at that point.
"""
from __future__ import annotations

import ast
from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional, Tuple

from fencecalc.core.errors import CalculatorError


class ExpressionError(CalculatorError):
    pass


def ceil_decimal(value: Decimal) -> Decimal:
    return value.to_integral_value(rounding=ROUND_CEILING)


def floor_decimal(value: Decimal) -> Decimal:
    return value.to_integral_value(rounding=ROUND_FLOOR)


_FUNCTIONS: Dict[str, Callable[..., Decimal]] = {
    "ceil": ceil_decimal,
    "floor": floor_decimal,
    "min": lambda *args: min(args),
    "max": lambda *args: max(args),
}

# (min args, max args); None is unbounded
_ARITY: Dict[str, Tuple[int, Optional[int]]] = {
    "ceil": (1, 1),
    "floor": (1, 1),
    "min": (1, None),
    "max": (1, None),
}

_BINARY = {
    ast.Add: lambda a, b: a + b,
    ast.Sub: lambda a, b: a - b,
    ast.Mult: lambda a, b: a * b,
    ast.Div: lambda a, b: a / b,
}


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        return Decimal(int(value))
    if isinstance(value, (int, float, str)):
        return Decimal(str(value))
    raise ExpressionError(f"Not a number: {value!r}")


def _check(node: ast.AST, source: str) -> None:
    if isinstance(node, ast.Expression):
        _check(node.body, source)
    elif isinstance(node, ast.BinOp):
        if type(node.op) not in _BINARY:
            raise ExpressionError(f"Operator not allowed in '{source}'")
        _check(node.left, source)
        _check(node.right, source)
    elif isinstance(node, ast.UnaryOp):
        if not isinstance(node.op, (ast.USub, ast.UAdd)):
            raise ExpressionError(f"Operator not allowed in '{source}'")
        _check(node.operand, source)
    elif isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise ExpressionError(f"Only numeric literals allowed in '{source}'")
    elif isinstance(node, ast.Name):
        return
    elif isinstance(node, ast.Call):
        if not isinstance(node.func, ast.Name) or node.func.id not in _FUNCTIONS or node.keywords:
            raise ExpressionError(f"Function not allowed in '{source}'")
        low, high = _ARITY[node.func.id]
        if len(node.args) < low or (high is not None and len(node.args) > high):
            raise ExpressionError(f"Wrong number of arguments to {node.func.id}() in '{source}'")
        for arg in node.args:
            _check(arg, source)
    else:
        raise ExpressionError(f"Unsupported syntax in '{source}'")


def _names(tree: ast.AST) -> FrozenSet[str]:
    called = {n.func.id for n in ast.walk(tree) if isinstance(n, ast.Call) and isinstance(n.func, ast.Name)}
    return frozenset(
        n.id for n in ast.walk(tree) if isinstance(n, ast.Name) and n.id not in called
    )


@dataclass(frozen=True)
class Expression:
    source: str
    tree: ast.Expression
    names: FrozenSet[str]

    def evaluate(self, variables: Mapping[str, Any]) -> Decimal:
        return self._eval(self.tree.body, variables)

    def _eval(self, node: ast.AST, variables: Mapping[str, Any]) -> Decimal:
        if isinstance(node, ast.BinOp):
            left = self._eval(node.left, variables)
            right = self._eval(node.right, variables)
            if isinstance(node.op, ast.Div) and right == 0:
                raise ExpressionError(f"Division by zero in '{self.source}'")
            return _BINARY[type(node.op)](left, right)
        if isinstance(node, ast.UnaryOp):
            value = self._eval(node.operand, variables)
            return -value if isinstance(node.op, ast.USub) else value
        if isinstance(node, ast.Constant):
            return to_decimal(node.value)
        if isinstance(node, ast.Name):
            if node.id not in variables or variables[node.id] is None:
                raise ExpressionError(f"Unknown variable '{node.id}' in '{self.source}'")
            return to_decimal(variables[node.id])
        if isinstance(node, ast.Call):
            args = [self._eval(arg, variables) for arg in node.args]
            return _FUNCTIONS[node.func.id](*args)
        raise ExpressionError(f"Unsupported syntax in '{self.source}'")


def compile_expression(source: Any) -> Expression:
    if isinstance(source, (int, float, Decimal)) and not isinstance(source, bool):
        source = str(source)
    if not isinstance(source, str) or not source.strip():
        raise ExpressionError(f"Quantity expression must be a non-empty string, got {source!r}")

    try:
        tree = ast.parse(source.strip(), mode="eval")
    except SyntaxError as exc:
        raise ExpressionError(f"Cannot parse quantity expression '{source}'") from exc

    _check(tree, source)
    return Expression(source=source.strip(), tree=tree, names=_names(tree))
