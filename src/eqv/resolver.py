# -----------------------------------------------------------------------------
# Identifier resolution
# Purpose:
#   Classify every variable leaf of an AST as a bound value, a named math
#   constant or an unknown, using an explicit two-tier environment:
#     tier 1  bindings   branch constants overlaid by the step's variables
#     tier 2  constants  pi and e, with case variants
#   Tier 1 shadows tier 2, so a problem that defines `e` as the elementary
#   charge gets its own value rather than Euler's number.
# -----------------------------------------------------------------------------

from __future__ import annotations
import math
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from .types import Node, Variable, BinaryOp, UnaryOp, Call, Equation

NAMED_CONSTANTS: Dict[str, float] = {
    "pi": math.pi, "PI": math.pi, "Pi": math.pi,
    "e": math.e, "E": math.e,
}

BOUND = "bound"
CONSTANT = "constant"
UNKNOWN = "unknown"


@dataclass
class Environment:
    bindings: Dict[str, float] = field(default_factory=dict)

    @staticmethod
    def build(variables: Optional[Mapping[str, float]] = None,
              constants: Optional[Mapping[str, float]] = None) -> "Environment":
        """Branch constants first, then step variables; the step wins on a clash."""
        merged: Dict[str, float] = {}
        merged.update(constants or {})
        merged.update(variables or {})
        return Environment(bindings=merged)

    def lookup(self, name: str) -> Optional[float]:
        if name in self.bindings:
            return self.bindings[name]
        return NAMED_CONSTANTS.get(name)

    def classify(self, name: str) -> str:
        if name in self.bindings:
            return BOUND
        if name in NAMED_CONSTANTS:
            return CONSTANT
        return UNKNOWN


def _collect(node: Node, out: List[str]) -> None:
    if isinstance(node, Variable):
        if node.name not in out:
            out.append(node.name)
    elif isinstance(node, BinaryOp):
        _collect(node.left, out)
        _collect(node.right, out)
    elif isinstance(node, UnaryOp):
        _collect(node.operand, out)
    elif isinstance(node, Call):
        _collect(node.arg, out)


def identifiers(node: Node) -> List[str]:
    """Distinct variable names in first-appearance order (function names excluded)."""
    out: List[str] = []
    _collect(node, out)
    return out


def classify(name: str, env: Environment) -> str:
    return env.classify(name)


def unknowns(node: Node, env: Environment) -> List[str]:
    return [n for n in identifiers(node) if classify(n, env) == UNKNOWN]


def side_unknowns(eq: Equation, env: Environment) -> Tuple[List[str], List[str]]:
    # Computed per side: a name bound for one side must not be counted on the other
    return unknowns(eq.lhs, env), unknowns(eq.rhs, env)


def count_occurrences(node: Node, name: str) -> int:
    if isinstance(node, Variable):
        return 1 if node.name == name else 0
    if isinstance(node, BinaryOp):
        return count_occurrences(node.left, name) + count_occurrences(node.right, name)
    if isinstance(node, UnaryOp):
        return count_occurrences(node.operand, name)
    if isinstance(node, Call):
        return count_occurrences(node.arg, name)
    return 0
