# -----------------------------------------------------------------------------
# Types module: Shared data model for the formula verification engine
# Purpose:
#   Define tokens, the expression AST, parsed formulas, the issue taxonomy and
#   the per-step verification records shared by the tokenizer, parser,
#   evaluator, verifier, isolator and grading layers.
# -----------------------------------------------------------------------------

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

# Token kinds produced by the tokenizer
NUM = "num"
ID = "id"
OP = "op"


@dataclass(frozen=True)
class Token:
    kind: str   # NUM | ID | OP
    text: str


# ---- Expression AST ---------------------------------------------------------
# Nodes are immutable; the isolator reuses subtrees when it builds a new side.

@dataclass(frozen=True)
class Literal:
    value: float


@dataclass(frozen=True)
class Variable:
    name: str


@dataclass(frozen=True)
class BinaryOp:
    op: str      # one of + - * / ^
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class UnaryOp:
    op: str      # only "-" (unary plus is dropped by the parser)
    operand: "Node"


@dataclass(frozen=True)
class Call:
    fn: str      # whitelisted unary math function
    arg: "Node"


Node = Union[Literal, Variable, BinaryOp, UnaryOp, Call]


@dataclass(frozen=True)
class Expression:
    """A formula without '=' (e.g. "(v - u)/t")."""
    root: Node
    text: str


@dataclass(frozen=True)
class Equation:
    """
    A formula of the form 'lhs = rhs'.
    Both sides are parsed independently; `text` keeps the normalized source.
    """
    lhs: Node
    rhs: Node
    text: str


ParsedFormula = Union[Expression, Equation]


# ---- Issues -----------------------------------------------------------------

class IssueKind(str, Enum):
    # structural (parsing aborts verification)
    EMPTY_FORMULA = "empty_formula"
    INVALID_CHARACTER = "invalid_character"
    UNBALANCED_PARENTHESES = "unbalanced_parentheses"
    MALFORMED_EXPRESSION = "malformed_expression"
    # evaluation
    UNBOUND_VARIABLE = "unbound_variable"
    DIVISION_BY_ZERO = "division_by_zero"
    MATH_DOMAIN_ERROR = "math_domain_error"
    NON_FINITE_RESULT = "non_finite_result"
    # verification
    RESULT_MISMATCH = "result_mismatch"
    EQUATION_NOT_BALANCED = "equation_not_balanced"
    INSUFFICIENT_VARIABLES = "insufficient_variables"
    VARIABLE_NOT_NUMERIC = "variable_not_numeric"
    VARIABLE_NAME_INVALID = "variable_name_invalid"
    WRONG_VARIABLE_VALUE = "wrong_variable_value"
    # grading (whole submission)
    NO_STEPS = "no_steps"
    FINAL_ANSWER_INCORRECT = "final_answer_incorrect"
    CHEATING_SUSPECTED = "cheating_suspected"


class FormulaError(Exception):
    """Raised by the tokenizer, parser and evaluator; carries an IssueKind."""

    def __init__(self, kind: IssueKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


@dataclass(frozen=True)
class Issue:
    kind: IssueKind
    message: str
    step_index: Optional[int] = None

    def at_step(self, index: int) -> "Issue":
        return Issue(self.kind, self.message, index)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.kind.value, "message": self.message}
        if self.step_index is not None:
            out["step_index"] = self.step_index
        return out


# ---- Verification records ---------------------------------------------------

class VerdictStatus(str, Enum):
    BALANCED = "balanced"
    RESOLVED = "resolved"
    INSUFFICIENT_INFO = "insufficient_info"
    INVALID = "invalid"


@dataclass
class Verdict:
    status: VerdictStatus
    value: Optional[float] = None     # resolved value (expression or isolated unknown)
    unknown: Optional[str] = None     # name of the resolved unknown, if any
    reason: Optional[str] = None      # first issue message when invalid

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status.value, "value": self.value,
                "unknown": self.unknown, "reason": self.reason}


@dataclass
class StepValues:
    lhs_val: Optional[float] = None
    rhs_val: Optional[float] = None
    expr_val: Optional[float] = None

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {"lhs_val": self.lhs_val, "rhs_val": self.rhs_val, "expr_val": self.expr_val}


@dataclass
class StepResult:
    # Structured response for one calculation step
    ok: bool
    issues: List[Issue]
    values: StepValues
    verdict: Verdict
    trace: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "issues": [i.to_dict() for i in self.issues],
            "values": self.values.to_dict(),
            "verdict": self.verdict.to_dict(),
            "trace": self.trace,
        }


@dataclass
class CalculationStep:
    """One submitted step: a formula, the student's variable values and an optional claimed result."""
    formula: str
    variables: Dict[str, Any] = field(default_factory=dict)
    result: Any = None

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "CalculationStep":
        return CalculationStep(
            formula=str(d.get("formula") or ""),
            variables=dict(d.get("variables") or {}),
            result=d.get("result"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"formula": self.formula, "variables": dict(self.variables), "result": self.result}


@dataclass
class Constant:
    """
    Branch-level physical constant defined in the catalog.
    Example: g = 9.8 m/s^2
    """
    key: str
    value: float
    unit: str = ""
    notes: str = ""


@dataclass
class FormulaSpec:
    """
    A formula from a branch's formula bank.
    Example:
        id: "kinematic_velocity"
        name: "Velocity after constant acceleration"
        eq: "v = u + a*t"
    """
    id: str
    name: str
    eq: str
    branch: str
    units: Dict[str, str] = field(default_factory=dict)
    tags: List[str] = field(default_factory=list)


@dataclass
class Problem:
    """
    Static problem with canonical given values and expected answer.
    `solution` holds worked reference steps used for demos and checks.
    """
    id: str
    branch: str
    question: str
    given: Dict[str, float]
    answer_value: Optional[float]
    answer_unit: str = ""
    subbranch: str = ""
    difficulty: str = "easy"
    solution: List[CalculationStep] = field(default_factory=list)

    def to_dict(self, reveal: bool = False) -> Dict[str, Any]:
        # The expected answer and worked solution are only exposed on request
        out: Dict[str, Any] = {
            "id": self.id, "branch": self.branch, "subbranch": self.subbranch,
            "difficulty": self.difficulty, "question": self.question,
            "given": dict(self.given),
        }
        if reveal:
            out["answer"] = {"value": self.answer_value, "unit": self.answer_unit}
            out["solution"] = [s.to_dict() for s in self.solution]
        return out
