from pathlib import Path
import pytest
from eqv.catalog import Catalog
from eqv.grading import verify_solution
from eqv.isolator import rearrange, solve_for_choices
from eqv.parser import parse_formula
from eqv.types import Equation

_CATALOG = Catalog.from_file(str(Path(__file__).resolve().parent.parent / "examples" / "catalog.yaml"))


@pytest.mark.parametrize("problem_id", sorted(_CATALOG.problems))
def test_reference_solution_grades_correct(problem_id):
    p = _CATALOG.get_problem(problem_id)
    assert p.solution, f"{problem_id} has no worked solution"
    res = verify_solution(p.solution, {"value": p.answer_value}, p, _CATALOG.constants_for(p.branch))
    assert res.correct, [i.to_dict() for i in res.issues]


@pytest.mark.parametrize("problem_id", sorted(_CATALOG.problems))
def test_reference_solution_without_final_answer(problem_id):
    p = _CATALOG.get_problem(problem_id)
    res = verify_solution(p.solution, None, p, _CATALOG.constants_for(p.branch))
    assert res.final_check.ok


@pytest.mark.parametrize("formula_id", [f.id for f in _CATALOG.formulas])
def test_formula_bank_entries_are_equations(formula_id):
    entry = next(f for f in _CATALOG.formulas if f.id == formula_id)
    assert isinstance(parse_formula(entry.eq), Equation)
    choices = solve_for_choices(entry.eq)
    assert choices
    # every rearrangement either succeeds or hands the formula back untouched
    for target in choices:
        r = rearrange(entry.eq, target)
        assert r.changed or r.formula == entry.eq
