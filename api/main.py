# --- Formula Verification API (FastAPI) ---------------------------------------
# Purpose: Thin HTTP surface over the eqv library for the two callers of the
# engine: (1) the submission grading service (/verify, /submit, /feedback)
# and (2) the interactive editing client (/rearrange).
# ------------------------------------------------------------------------------

from __future__ import annotations
import os
import platform
from pathlib import Path
from typing import Any, Dict, List, Optional
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field
from eqv.catalog import Catalog, CatalogError
from eqv.grading import verify_solution, detailed_feedback
from eqv.isolator import rearrange, solve_for_choices
from eqv.tracer import save_trace
from eqv.types import CalculationStep
from eqv.verifier import verify_calculation

# Load .env for external configuration (catalog path, trace persistence)
load_dotenv()
DEFAULT_CATALOG = Path(__file__).resolve().parent.parent / "examples" / "catalog.yaml"
CATALOG_PATH = os.getenv("CATALOG_PATH", str(DEFAULT_CATALOG))
SAVE_TRACES = os.getenv("SAVE_TRACES", "0").lower() in ("1", "true", "yes")
VERSION = "1.0.0"

# FastAPI app; the catalog is loaded once at import
app = FastAPI(title="Formula Verification API", version=VERSION)
_catalog = Catalog.from_file(CATALOG_PATH)

# ----------------------------- Schemas ----------------------------------------
class StepIn(BaseModel):
    # One calculation step as sent by the client.
    formula: str
    variables: Dict[str, Any] = Field(default_factory=dict)
    result: Optional[Any] = None

class VerifyRequest(StepIn):
    # Optional canonical values and branch whose constants apply.
    given: Dict[str, Any] = Field(default_factory=dict)
    branch: Optional[str] = None

class RearrangeRequest(BaseModel):
    formula: str
    target: str

class SubmitRequest(BaseModel):
    problem_id: str
    steps: List[StepIn] = Field(default_factory=list)
    final_answer: Optional[Any] = None   # {"value": x} or a bare number

# ----------------------------- Helpers ----------------------------------------
def _problem_or_404(problem_id: str):
    try:
        return _catalog.get_problem(problem_id)
    except CatalogError as e:
        raise HTTPException(status_code=404, detail=str(e))

def _steps(req: SubmitRequest) -> List[CalculationStep]:
    return [CalculationStep(formula=s.formula, variables=s.variables, result=s.result) for s in req.steps]

# ----------------------------- Routes -----------------------------------------
@app.get("/health")
def health(): return {"ok": True}

@app.get("/catalog")
def list_catalog(branch: Optional[str] = None):
    """Formula bank listing (optionally one branch) for the editor's suggestions."""
    items = _catalog.list_formulas(branch)
    return {"count": len(items), "branches": _catalog.branches(), "items": items}

@app.get("/problems")
def list_problems(branch: Optional[str] = None, difficulty: Optional[str] = None):
    items = [p.to_dict() for p in _catalog.list_problems(branch, difficulty)]
    return {"count": len(items), "items": items}

@app.get("/problems/{problem_id}")
def get_problem(problem_id: str):
    return {"problem": _problem_or_404(problem_id).to_dict()}

@app.post("/verify")
def verify(req: VerifyRequest):
    """
    Verify a single step. Issues are data, not errors: the response is 200
    even when the step is wrong, and carries kind + message per issue.
    """
    res = verify_calculation(req.formula, req.variables, req.result, req.given,
                             _catalog.constants_for(req.branch))
    return res.to_dict()

@app.post("/rearrange")
def rearrange_formula(req: RearrangeRequest):
    """
    Editing-client helper: isolate `target` when possible, otherwise echo the
    formula back unchanged. Also returns the variables the picker can offer.
    """
    r = rearrange(req.formula, req.target)
    return {"formula": r.formula, "changed": r.changed, "reason": r.reason,
            "choices": solve_for_choices(r.formula)}

@app.post("/submit")
def submit(req: SubmitRequest):
    """
    Grade a whole submission against a stored problem:
    per-step verification, final answer check, cheating guard.
    """
    problem = _problem_or_404(req.problem_id)
    result = verify_solution(_steps(req), req.final_answer, problem,
                             _catalog.constants_for(problem.branch))
    payload = result.to_dict()
    payload["problem"] = {"id": problem.id, "branch": problem.branch, "difficulty": problem.difficulty}
    if SAVE_TRACES:
        meta = {"version": VERSION, "platform": platform.platform()}
        payload["trace_path"] = save_trace(
            meta, req.model_dump(),
            {**payload, "step_traces": [s.trace for s in result.steps]},
        )
    return payload

@app.post("/feedback")
def feedback(req: SubmitRequest):
    problem = _problem_or_404(req.problem_id)
    messages = detailed_feedback(_steps(req), req.final_answer, problem,
                                 _catalog.constants_for(problem.branch))
    return {"feedback": [m.to_dict() for m in messages]}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=os.getenv("API_HOST", "127.0.0.1"), port=int(os.getenv("API_PORT", "8000")))
