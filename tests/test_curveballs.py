import pytest
from eqv.types import IssueKind, VerdictStatus
from eqv.verifier import verify_calculation


@pytest.mark.parametrize("formula,kind", [
    ("v = u; process.exit()", IssueKind.INVALID_CHARACTER),
    ("__import__('os').system('ls')", IssueKind.INVALID_CHARACTER),
    ("x = [i for i in range(9)]", IssueKind.INVALID_CHARACTER),
    ("v = u + a×t", IssueKind.INVALID_CHARACTER),
    ("x = a**b", IssueKind.MALFORMED_EXPRESSION),
    ("x = __import__(os)", IssueKind.MALFORMED_EXPRESSION),
    ("x = lambda(y)", IssueKind.MALFORMED_EXPRESSION),
    ("x = 2 3", IssueKind.MALFORMED_EXPRESSION),
    ("x = (a + b", IssueKind.UNBALANCED_PARENTHESES),
])
def test_hostile_input_is_rejected(formula, kind):
    res = verify_calculation(formula, {"a": 1, "b": 2, "u": 1, "t": 1})
    assert [i.kind for i in res.issues] == [kind]
    assert res.verdict.status == VerdictStatus.INVALID


def test_overlong_formula_is_rejected():
    res = verify_calculation("x = " + " + ".join(["y"] * 40), {"y": 1})
    assert [i.kind for i in res.issues] == [IssueKind.INVALID_CHARACTER]
    assert "too long" in res.issues[0].message


def test_deep_nesting_within_token_limit():
    res = verify_calculation("x = " + "(" * 20 + "y" + ")" * 20, {"y": 2}, 2)
    assert res.ok


@pytest.mark.parametrize("formula,kind", [
    ("a = 1/0", IssueKind.DIVISION_BY_ZERO),
    ("y = sqrt(-1)", IssueKind.MATH_DOMAIN_ERROR),
    ("y = 10^400", IssueKind.NON_FINITE_RESULT),
    ("y = asin(2)", IssueKind.MATH_DOMAIN_ERROR),
])
def test_numeric_failures_become_issues(formula, kind):
    res = verify_calculation(formula)
    assert [i.kind for i in res.issues] == [kind]
    assert not res.ok


def test_negative_height_is_still_just_arithmetic():
    res = verify_calculation("h = h0 + v*t", {"h0": -3, "v": 10, "t": 1}, 7)
    assert res.ok


def test_infinite_variable_is_not_numeric():
    res = verify_calculation("y = 2*x", {"x": float("inf")})
    kinds = [i.kind for i in res.issues]
    assert IssueKind.VARIABLE_NOT_NUMERIC in kinds
