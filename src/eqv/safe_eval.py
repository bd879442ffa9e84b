# -----------------------------------------------------------------------------
# Safe mathematical evaluator (closed AST interpreter)
# Purpose:
#   Reduce a parsed expression AST to a finite real number using only
#   whitelisted functions, named constants and caller-supplied bindings.
# Safety:
#   - No string is ever handed to Python's eval; only typed AST nodes are
#     interpreted, so no other operator, name or call is reachable.
#   - Division by a value within TOL of zero, math domain errors and non-finite
#     intermediates fail with a FormulaError instead of leaking inf/nan.
# -----------------------------------------------------------------------------

from __future__ import annotations
import math
from typing import Callable, Dict, Mapping, Optional

from .oracle import TOL
from .parser import parse_expression
from .resolver import Environment
from .types import Node, Literal, Variable, BinaryOp, UnaryOp, Call, FormulaError, IssueKind

# Whitelisted math functions; must match parser.FUNCTIONS
_ALLOWED_FUNCS: Dict[str, Callable[[float], float]] = {
    "sqrt": math.sqrt,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "asin": math.asin,
    "acos": math.acos,
    "atan": math.atan,
}


def _finite(value: float, what: str) -> float:
    if not math.isfinite(value):
        raise FormulaError(IssueKind.NON_FINITE_RESULT, f"Non-finite result in {what}")
    return value


def _power(base: float, exponent: float) -> float:
    try:
        return math.pow(base, exponent)
    except OverflowError:
        raise FormulaError(IssueKind.NON_FINITE_RESULT, f"Overflow in {base}^{exponent}")
    except ValueError:
        # negative base with fractional exponent, or 0 to a negative power
        raise FormulaError(IssueKind.MATH_DOMAIN_ERROR, f"{base}^{exponent} is undefined")


def _apply(op: str, left: float, right: float) -> float:
    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if op == "/":
        if abs(right) <= TOL:
            raise FormulaError(IssueKind.DIVISION_BY_ZERO, "Division by zero")
        return left / right
    if op == "^":
        return _power(left, right)
    raise FormulaError(IssueKind.MALFORMED_EXPRESSION, f"Unsupported operator '{op}'")


def evaluate(node: Node, env: Environment) -> float:
    """
    Recursively evaluate `node` against `env`.
    Raises FormulaError with UNBOUND_VARIABLE, DIVISION_BY_ZERO,
    MATH_DOMAIN_ERROR or NON_FINITE_RESULT.
    """
    if isinstance(node, Literal):
        return _finite(float(node.value), "number")
    if isinstance(node, Variable):
        value = env.lookup(node.name)
        if value is None:
            raise FormulaError(IssueKind.UNBOUND_VARIABLE, f"Variable '{node.name}' has no value")
        try:
            value = float(value)
        except (TypeError, ValueError, OverflowError):
            raise FormulaError(IssueKind.VARIABLE_NOT_NUMERIC, f"Variable {node.name} must be numeric")
        return _finite(value, f"variable '{node.name}'")
    if isinstance(node, BinaryOp):
        left = evaluate(node.left, env)
        right = evaluate(node.right, env)
        return _finite(_apply(node.op, left, right), f"'{node.op}'")
    if isinstance(node, UnaryOp):
        return -evaluate(node.operand, env)
    if isinstance(node, Call):
        fn = _ALLOWED_FUNCS.get(node.fn)
        if fn is None:
            raise FormulaError(IssueKind.MALFORMED_EXPRESSION, f"Unsupported function '{node.fn}'")
        arg = evaluate(node.arg, env)
        try:
            value = fn(arg)
        except ValueError:
            raise FormulaError(IssueKind.MATH_DOMAIN_ERROR, f"{node.fn}({arg}) is outside the function's domain")
        return _finite(value, f"{node.fn}()")
    raise FormulaError(IssueKind.MALFORMED_EXPRESSION, f"Unsupported node {type(node).__name__}")


def safe_eval(expr: str, vars: Optional[Mapping[str, float]] = None,
              constants: Optional[Mapping[str, float]] = None) -> float:
    """
    Parse and evaluate a numeric expression string.

    Parameters
    ----------
    expr : str
        A mathematical expression, e.g. "sqrt(2*G*M/r)"
    vars : Mapping[str, float]
        Variable values; these shadow `constants` and the named constants.
    constants : Mapping[str, float], optional
        Branch-level constants (e.g. {"G": 6.674e-11}).

    Returns
    -------
    float
        The evaluated, finite result.

    Notes
    -----
    Allowed functions: sqrt, sin, cos, tan, asin, acos, atan.
    Named constants: pi, e and their case variants (PI, Pi, E).
    Operators: + - * / ^ and unary minus.
    """
    return evaluate(parse_expression(expr), Environment.build(vars, constants))
