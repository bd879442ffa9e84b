# -----------------------------------------------------------------------------
# Grading: whole-submission checks on top of the per-step verifier
# Responsibilities:
#   • Verify every step against the problem's given values + branch constants
#   • Pick the final answer (explicit claim, else the last step's value)
#     and compare it with the problem's expected answer via the oracle
#   • Flag submissions whose steps never reference a given variable
#   • Produce per-step feedback messages for the client
# -----------------------------------------------------------------------------

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .oracle import approx_equal
from .tokenizer import normalize_formula, tokenize
from .types import ID, CalculationStep, Issue, IssueKind, Problem, StepResult
from .verifier import verify_calculation, step_value, to_number

StepInput = Union[CalculationStep, Mapping[str, Any]]


@dataclass
class FinalCheck:
    expected: Optional[float]
    got: Optional[float]
    ok: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"expected": self.expected, "got": self.got, "ok": self.ok}


@dataclass
class SolutionResult:
    correct: bool
    issues: List[Issue]
    computed: List[Dict[str, Optional[float]]]
    final_check: FinalCheck
    steps: List[StepResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "correct": self.correct,
            "issues": [i.to_dict() for i in self.issues],
            "computed": self.computed,
            "final_check": self.final_check.to_dict(),
        }


@dataclass
class FeedbackMessage:
    status: str                 # "ok" | "error" | "warning"
    message: str
    kind: Optional[str] = None
    step_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"status": self.status, "message": self.message}
        if self.kind is not None:
            out["type"] = self.kind
        if self.step_index is not None:
            out["step_index"] = self.step_index
        return out


def _as_step(s: StepInput) -> CalculationStep:
    return s if isinstance(s, CalculationStep) else CalculationStep.from_dict(dict(s))


def _final_value(final_answer: Any) -> Optional[float]:
    # Accepts {"value": x}, a bare number, or None
    raw = final_answer.get("value") if isinstance(final_answer, Mapping) else final_answer
    if raw is None:
        return None
    try:
        return to_number(raw)
    except (TypeError, ValueError):
        return None


def _verify_steps(steps: Sequence[CalculationStep], problem: Problem,
                  constants: Optional[Mapping[str, float]]) -> List[StepResult]:
    return [verify_calculation(s.formula, s.variables, s.result, problem.given, constants) for s in steps]


def referenced_identifiers(steps: Sequence[CalculationStep]) -> set:
    """Identifiers mentioned by any step's formula text (parse failures included)."""
    used = set()
    for s in steps:
        used.update(t.text for t in tokenize(normalize_formula(s.formula)) if t.kind == ID)
    return used


def verify_solution(steps: Sequence[StepInput], final_answer: Any, problem: Problem,
                    constants: Optional[Mapping[str, float]] = None) -> SolutionResult:
    """
    Grade a full submission.
    A submission is correct only when no step and no final-answer check
    produced an issue.
    """
    calc_steps = [_as_step(s) for s in steps or []]
    issues: List[Issue] = []
    if not calc_steps:
        issues.append(Issue(IssueKind.NO_STEPS, "Provide at least one calculation step"))

    results = _verify_steps(calc_steps, problem, constants)
    computed: List[Dict[str, Optional[float]]] = []
    last_val: Optional[float] = None
    for idx, res in enumerate(results):
        computed.append(res.values.to_dict())
        issues.extend(i.at_step(idx) for i in res.issues)
        last_val = step_value(res.values)

    got = _final_value(final_answer)
    if got is None:
        got = last_val
    check = FinalCheck(expected=problem.answer_value, got=got)
    if got is not None and problem.answer_value is not None:
        check.ok = approx_equal(got, problem.answer_value)
        if not check.ok:
            issues.append(Issue(IssueKind.FINAL_ANSWER_INCORRECT,
                                f"Expected {problem.answer_value} but got {got}"))

    # basic cheating guard: the work must reference at least one given variable
    if problem.given and not set(problem.given) & referenced_identifiers(calc_steps):
        issues.append(Issue(IssueKind.CHEATING_SUSPECTED, "No given variables referenced in steps"))

    return SolutionResult(not issues, issues, computed, check, results)


def detailed_feedback(steps: Sequence[StepInput], final_answer: Any, problem: Problem,
                      constants: Optional[Mapping[str, float]] = None) -> List[FeedbackMessage]:
    """Per-step status messages plus a message about the final answer."""
    calc_steps = [_as_step(s) for s in steps or []]
    messages: List[FeedbackMessage] = []
    last_val: Optional[float] = None
    for idx, res in enumerate(_verify_steps(calc_steps, problem, constants)):
        last_val = step_value(res.values)
        if res.ok:
            messages.append(FeedbackMessage("ok", "Step looks correct", step_index=idx))
            continue
        for issue in res.issues:
            messages.append(FeedbackMessage("error", issue.message, issue.kind.value, idx))

    expected = problem.answer_value
    if expected is not None:
        got = _final_value(final_answer)
        if got is None:
            messages.append(FeedbackMessage("warning", "No final answer provided; using last step result",
                                            "no_final_answer"))
            got = last_val
        if got is None:
            return messages
        if not approx_equal(got, expected):
            messages.append(FeedbackMessage("error", f"Final answer {got} is not equal to expected {expected}",
                                            IssueKind.FINAL_ANSWER_INCORRECT.value))
        else:
            messages.append(FeedbackMessage("ok", "Final answer matches expected value", "final_answer_correct"))
    return messages
