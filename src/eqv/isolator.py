# -----------------------------------------------------------------------------
# Symbolic isolator: linear rearrangement for the "solve for" picker
# Purpose:
#   Rewrite 'lhs = rhs' as 'target = <expression>' by walking down the side
#   that holds the target and moving the other operand across the equality
#   with its inverse operation:
#     A + B = R  ->  A = R - B      B = R - A
#     A - B = R  ->  A = R + B      B = A - R
#     A * B = R  ->  A = R / B      B = R / A
#     A / B = R  ->  A = R * B      B = A / R
#       -A  = R  ->  A = -R
# Scope:
#   Only a target that occurs exactly once, outside any function call or
#   power, can be isolated. Everything else returns None and the caller
#   keeps the formula unchanged; there is no general nonlinear solving.
# -----------------------------------------------------------------------------

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional

from .parser import parse_formula, format_expr
from .resolver import NAMED_CONSTANTS, count_occurrences, identifiers
from .types import Node, Variable, BinaryOp, UnaryOp, Equation, FormulaError


@dataclass
class Rearrangement:
    formula: str
    changed: bool
    reason: Optional[str] = None


def _step(side: Node, other: Node, target: str) -> Optional[Node]:
    # Iterative descent; `side` always contains the single target occurrence
    while True:
        if isinstance(side, Variable) and side.name == target:
            return other
        if isinstance(side, UnaryOp):
            side, other = side.operand, UnaryOp("-", other)
            continue
        if not isinstance(side, BinaryOp):
            return None  # Call or anything else wrapping the target
        a, b = side.left, side.right
        in_a = count_occurrences(a, target) > 0
        if side.op == "+":
            side, other = (a, BinaryOp("-", other, b)) if in_a else (b, BinaryOp("-", other, a))
        elif side.op == "-":
            side, other = (a, BinaryOp("+", other, b)) if in_a else (b, BinaryOp("-", a, other))
        elif side.op == "*":
            side, other = (a, BinaryOp("/", other, b)) if in_a else (b, BinaryOp("/", other, a))
        elif side.op == "/":
            side, other = (a, BinaryOp("*", other, b)) if in_a else (b, BinaryOp("/", a, other))
        else:
            return None  # '^' is not linear in either operand


def isolate(eq: Equation, target: str) -> Optional[Equation]:
    """
    Return an equation equivalent to `eq` with `target` alone on the left,
    or None when the target is absent, repeated, or in a non-linear position.
    """
    left_count = count_occurrences(eq.lhs, target)
    right_count = count_occurrences(eq.rhs, target)
    if left_count + right_count != 1:
        return None
    side, other = (eq.lhs, eq.rhs) if left_count else (eq.rhs, eq.lhs)
    solved = _step(side, other, target)
    if solved is None:
        return None
    lhs = Variable(target)
    return Equation(lhs, solved, f"{target} = {format_expr(solved)}")


def rearrange(formula: str, target: str) -> Rearrangement:
    """Text-in/text-out wrapper; on any failure the formula comes back unchanged."""
    target = (target or "").strip()
    if not target:
        return Rearrangement(formula, False, "No target variable selected")
    try:
        parsed = parse_formula(formula)
    except FormulaError as e:
        return Rearrangement(formula, False, e.message)
    if not isinstance(parsed, Equation):
        return Rearrangement(formula, False, "Formula has no '='")
    solved = isolate(parsed, target)
    if solved is None:
        return Rearrangement(formula, False, f"Cannot isolate '{target}' linearly")
    return Rearrangement(solved.text, solved.text != parsed.text)


def solve_for_choices(formula: str) -> List[str]:
    """Identifiers a student can pick to solve for; [] when the formula does not parse."""
    try:
        parsed = parse_formula(formula)
    except FormulaError:
        return []
    if isinstance(parsed, Equation):
        names = identifiers(parsed.lhs) + identifiers(parsed.rhs)
    else:
        names = identifiers(parsed.root)
    return [n for n in dict.fromkeys(names) if n not in NAMED_CONSTANTS]
