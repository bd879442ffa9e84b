# -----------------------------------------------------------------------------
# Catalog loader & accessor
# Purpose: Parse a YAML catalog of physics branches (constants, formula bank,
# static problems) into typed objects used by the verifier and grading.
# - Depends on .types (Constant, FormulaSpec, Problem) for typed payloads.
# - Every formula in the bank is parsed at load time so a bad catalog fails
#   early instead of on a student's submission.
# -----------------------------------------------------------------------------

from __future__ import annotations
import yaml
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from .parser import parse_formula
from .types import Constant, FormulaSpec, Problem, CalculationStep, FormulaError

# Raised for malformed catalogs and unknown problem ids
class CatalogError(Exception): pass


def _number(raw: Any, what: str) -> float:
    try:
        return float(raw)
    except (TypeError, ValueError, OverflowError):
        raise CatalogError(f"{what} must be a number, got {raw!r}")


def _parse_constant(key: str, c: Any) -> Constant:
    # Accept both { value: 9.8, unit: "m/s^2" } and a bare number
    if isinstance(c, dict):
        if "value" not in c:
            raise CatalogError(f"Constant '{key}' has no value")
        return Constant(key=key, value=_number(c["value"], f"Constant '{key}'"), unit=str(c.get("unit", "")),
                        notes=str(c.get("notes", "")))
    return Constant(key=key, value=_number(c, f"Constant '{key}'"))


def _parse_problem(branch: str, pd: Dict[str, Any]) -> Problem:
    for req in ("id", "question"):
        if req not in pd:
            raise CatalogError(f"Problem in branch '{branch}' is missing '{req}'")
    answer = pd.get("answer") or {}
    value = answer.get("value") if isinstance(answer, dict) else answer
    return Problem(
        id=str(pd["id"]), branch=branch, question=str(pd["question"]),
        given={str(k): _number(v, f"Given value '{k}' of problem {pd['id']}")
               for k, v in (pd.get("given") or {}).items()},
        answer_value=None if value is None else _number(value, f"Answer of problem {pd['id']}"),
        answer_unit=str(answer.get("unit", "")) if isinstance(answer, dict) else "",
        subbranch=str(pd.get("subbranch", "")),
        difficulty=str(pd.get("difficulty", "easy")),
        solution=[CalculationStep.from_dict(s) for s in (pd.get("solution") or [])],
    )


@dataclass
class Catalog:
    # Branch name -> constants keyed by symbol (e.g., "g", "G", "c")
    constants: Dict[str, Dict[str, Constant]]
    # Flattened formula bank across branches
    formulas: List[FormulaSpec]
    # Problems keyed by id
    problems: Dict[str, Problem]

    @staticmethod
    def from_yaml_dict(d: Dict[str, Any]) -> "Catalog":
        """
        Build a Catalog from a pre-parsed YAML dictionary.
        Expected YAML high-level shape:
          branches:
            mechanics:
              constants:
                g: { value: 9.8, unit: "m/s^2" }
              formulas:
                - id: kinematic_velocity
                  name: "Velocity after constant acceleration"
                  eq: "v = u + a*t"
                  units: { v: "m/s", u: "m/s", a: "m/s^2", t: "s" }
                  tags: ["kinematics"]
              problems:
                - id: OER_MIT_001
                  subbranch: kinematics
                  difficulty: easy
                  question: "..."
                  given: { u: 0, v: 30, t: 10 }
                  answer: { value: 3, unit: "m/s^2" }
                  solution:
                    - { formula: "a = (v - u)/t", variables: {...}, result: 3 }
        """
        consts: Dict[str, Dict[str, Constant]] = {}
        forms: List[FormulaSpec] = []
        probs: Dict[str, Problem] = {}
        branches = (d or {}).get("branches") or {}
        if not isinstance(branches, dict):
            raise CatalogError("'branches' must be a mapping")
        for branch, bd in branches.items():
            bd = bd or {}
            consts[branch] = {k: _parse_constant(k, c) for k, c in (bd.get("constants") or {}).items()}
            # ---- formula bank -------------------------------------------------
            for fd in bd.get("formulas") or []:
                if "id" not in fd or "eq" not in fd:
                    raise CatalogError(f"Formula in branch '{branch}' needs 'id' and 'eq'")
                try:
                    parse_formula(fd["eq"])
                except FormulaError as e:
                    raise CatalogError(f"Formula {fd['id']} does not parse: {e.message}")
                forms.append(FormulaSpec(
                    id=str(fd["id"]), name=str(fd.get("name", fd["id"])), eq=str(fd["eq"]),
                    branch=branch, units=dict(fd.get("units") or {}), tags=list(fd.get("tags") or []),
                ))
            # ---- problems -----------------------------------------------------
            for pd in bd.get("problems") or []:
                p = _parse_problem(branch, pd)
                if p.id in probs:
                    raise CatalogError(f"Duplicate problem id: {p.id}")
                probs[p.id] = p
        return Catalog(constants=consts, formulas=forms, problems=probs)

    @staticmethod
    def from_yaml_text(text: str) -> "Catalog":
        # safe_load only: catalogs are data, never Python object tags
        return Catalog.from_yaml_dict(yaml.safe_load(text))

    @staticmethod
    def from_file(path: str) -> "Catalog":
        """Load a catalog file (UTF-8) such as examples/catalog.yaml."""
        with open(path, "r", encoding="utf-8") as f:
            return Catalog.from_yaml_text(f.read())

    def branches(self) -> List[str]:
        return sorted(self.constants.keys())

    def constants_for(self, branch: Optional[str]) -> Dict[str, float]:
        """Name -> value map of a branch's constants ({} for an unknown branch)."""
        return {k: c.value for k, c in self.constants.get(branch or "", {}).items()}

    def get_problem(self, problem_id: str) -> Problem:
        p = self.problems.get(problem_id)
        if p is None:
            raise CatalogError(f"Problem not found: {problem_id}")
        return p

    def list_problems(self, branch: Optional[str] = None, difficulty: Optional[str] = None) -> List[Problem]:
        out = list(self.problems.values())
        if branch:
            out = [p for p in out if p.branch == branch]
        if difficulty:
            out = [p for p in out if p.difficulty == difficulty]
        return out

    def list_formulas(self, branch: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Flattened, UI-friendly listing of the formula bank
        (id, name, eq, branch, units, tags).
        """
        out = []
        for f in self.formulas:
            if branch and f.branch != branch:
                continue
            out.append({"id": f.id, "name": f.name, "eq": f.eq, "branch": f.branch,
                        "units": f.units, "tags": f.tags})
        return out
