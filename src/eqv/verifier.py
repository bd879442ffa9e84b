# -----------------------------------------------------------------------------
# Equation verifier: end-to-end check of a single calculation step
# Responsibilities:
#   • Parse the formula (structural failures return a single issue)
#   • Validate the student's variables against names, numbers and the
#     problem's canonical given values
#   • Classify the step and verify it:
#       1) pure expression          -> evaluate, compare a claimed result
#       2) zero unknowns            -> both sides must balance
#       3) one unknown, isolated    -> the other side resolves it
#       4) anything else            -> insufficient variables
#   • Convert every FormulaError into an Issue; never raise to the caller
# No general symbolic solving happens here; rearranging
# a formula is the isolator's job and happens while the student edits.
# -----------------------------------------------------------------------------

from __future__ import annotations
import math
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .oracle import approx_equal
from .parser import parse_formula, format_expr
from .resolver import Environment, side_unknowns
from .safe_eval import evaluate
from .tokenizer import is_identifier
from .tracer import Tracer
from .types import (
    Node, Variable, Equation, Expression,
    FormulaError, Issue, IssueKind,
    StepResult, StepValues, Verdict, VerdictStatus,
)


def to_number(value: Any) -> float:
    """Coerce a user-supplied value to a finite float; raise ValueError otherwise."""
    if value is None or isinstance(value, bool):
        raise ValueError(f"{value!r} is not a number")
    try:
        n = float(value)
    except OverflowError:
        raise ValueError(f"{value!r} is too large")
    if not math.isfinite(n):
        raise ValueError(f"{value!r} is not finite")
    return n


def validate_variables(variables: Mapping[str, Any],
                       given: Optional[Mapping[str, Any]] = None) -> Tuple[Dict[str, float], List[Issue]]:
    """
    Check names and values of a step's variables.
    Returns (usable numeric bindings, issues). Unusable bindings are dropped
    so they count as unknown during classification.
    """
    issues: List[Issue] = []
    numeric: Dict[str, float] = {}
    for name, raw in (variables or {}).items():
        if not is_identifier(str(name)):
            issues.append(Issue(IssueKind.VARIABLE_NAME_INVALID, f"Invalid variable name: {name}"))
            continue
        try:
            numeric[name] = to_number(raw)
        except (TypeError, ValueError):
            issues.append(Issue(IssueKind.VARIABLE_NOT_NUMERIC, f"Variable {name} must be numeric"))

    for name, expected_raw in (given or {}).items():
        if name not in numeric:
            continue
        try:
            expected = to_number(expected_raw)
        except (TypeError, ValueError):
            continue
        if not approx_equal(numeric[name], expected):
            issues.append(Issue(IssueKind.WRONG_VARIABLE_VALUE,
                                f"Variable {name} should be {expected} but is {numeric[name]}"))
    return numeric, issues


def _eval_side(node: Node, env: Environment, side: str, trace: Tracer) -> float:
    value = evaluate(node, env)
    trace.add("evaluated", {"side": side, "expr": format_expr(node), "value": value})
    return value


def _check_claim(claim: Optional[float], candidates: List[float], issues: List[Issue], message: str) -> None:
    if claim is None:
        return
    if not any(approx_equal(c, claim) for c in candidates):
        issues.append(Issue(IssueKind.RESULT_MISMATCH, message))


def _verdict(issues: List[Issue], status: VerdictStatus,
             value: Optional[float] = None, unknown: Optional[str] = None) -> Verdict:
    blocking = [i for i in issues if i.kind != IssueKind.INSUFFICIENT_VARIABLES]
    if blocking:
        return Verdict(VerdictStatus.INVALID, reason=blocking[0].message)
    return Verdict(status, value=value, unknown=unknown)


def verify_calculation(formula: str,
                       variables: Optional[Mapping[str, Any]] = None,
                       result: Any = None,
                       given: Optional[Mapping[str, Any]] = None,
                       constants: Optional[Mapping[str, float]] = None) -> StepResult:
    """
    Verify one calculation step.

    `variables` are the student's bindings, `result` an optional claimed
    value, `given` the problem's canonical values (used only to flag wrong
    bindings) and `constants` the branch-level constants, which the
    student's bindings shadow.
    """
    trace = Tracer()
    values = StepValues()

    try:
        parsed = parse_formula(formula)
    except FormulaError as e:
        issue = Issue(e.kind, e.message)
        trace.add("parse_error", {"kind": e.kind.value, "message": e.message})
        return StepResult(False, [issue], values,
                          Verdict(VerdictStatus.INVALID, reason=e.message), trace.steps())
    trace.add("parsed", {"formula": parsed.text, "equation": isinstance(parsed, Equation)})

    bindings, issues = validate_variables(variables or {}, given)
    claim: Optional[float] = None
    if result is not None:
        try:
            claim = to_number(result)
        except (TypeError, ValueError):
            issues.append(Issue(IssueKind.VARIABLE_NOT_NUMERIC, "Result must be numeric"))
    env = Environment.build(bindings, constants)

    status = VerdictStatus.INVALID
    resolved: Optional[float] = None
    unknown_name: Optional[str] = None
    try:
        if isinstance(parsed, Expression):
            trace.add("case", {"case": "expression"})
            values.expr_val = _eval_side(parsed.root, env, "expr", trace)
            _check_claim(claim, [values.expr_val], issues,
                         f"Provided result {claim} does not match evaluated {values.expr_val}")
            status, resolved = VerdictStatus.RESOLVED, values.expr_val
        else:
            unk_l, unk_r = side_unknowns(parsed, env)
            total = list(dict.fromkeys(unk_l + unk_r))
            trace.add("unknowns", {"lhs": unk_l, "rhs": unk_r})

            if not total:
                trace.add("case", {"case": "balance"})
                values.lhs_val = _eval_side(parsed.lhs, env, "lhs", trace)
                values.rhs_val = _eval_side(parsed.rhs, env, "rhs", trace)
                if not approx_equal(values.lhs_val, values.rhs_val):
                    issues.append(Issue(IssueKind.EQUATION_NOT_BALANCED,
                                        f"Left ({values.lhs_val}) not equal to Right ({values.rhs_val})"))
                _check_claim(claim, [values.rhs_val, values.lhs_val], issues,
                             f"Provided result {claim} does not match evaluated value")
                status = VerdictStatus.BALANCED
            elif len(total) == 1:
                unk = total[0]
                unknown_name = unk
                if parsed.lhs == Variable(unk) and not unk_r:
                    trace.add("case", {"case": "isolated", "unknown": unk, "side": "lhs"})
                    values.rhs_val = resolved = _eval_side(parsed.rhs, env, "rhs", trace)
                elif parsed.rhs == Variable(unk) and not unk_l:
                    trace.add("case", {"case": "isolated", "unknown": unk, "side": "rhs"})
                    values.lhs_val = resolved = _eval_side(parsed.lhs, env, "lhs", trace)
                else:
                    trace.add("case", {"case": "not_isolated", "unknown": unk})
                    issues.append(Issue(IssueKind.INSUFFICIENT_VARIABLES,
                                        "Provide all but one variable and isolate the unknown "
                                        "on one side (e.g., x = ...)"))
                    status = VerdictStatus.INSUFFICIENT_INFO
                if resolved is not None:
                    _check_claim(claim, [resolved], issues,
                                 f"Result for {unk} should be {resolved} but got {claim}")
                    status = VerdictStatus.RESOLVED
            else:
                trace.add("case", {"case": "too_many_unknowns", "unknowns": total})
                issues.append(Issue(IssueKind.INSUFFICIENT_VARIABLES,
                                    f"Too many unknown variables to evaluate this step: {', '.join(total)}"))
                status = VerdictStatus.INSUFFICIENT_INFO
    except FormulaError as e:
        issues.append(Issue(e.kind, e.message))

    for issue in issues:
        trace.add("issue", issue.to_dict())
    verdict = _verdict(issues, status, resolved, unknown_name)
    return StepResult(not issues, issues, values, verdict, trace.steps())


def step_value(values: StepValues) -> Optional[float]:
    """Display value of a step: the expression value, else the right side, else the left."""
    if values.expr_val is not None:
        return values.expr_val
    if values.rhs_val is not None:
        return values.rhs_val
    return values.lhs_val
