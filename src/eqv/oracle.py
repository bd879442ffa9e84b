# -----------------------------------------------------------------------------
# Approximate-equality oracle
# Purpose:
#   Single decision function for every floating point comparison made while
#   verifying steps and grading answers. The tolerance is scale-relative so
#   that tiny (1e-34) and huge (1e9) physical quantities compare sensibly.
# -----------------------------------------------------------------------------

from __future__ import annotations
import math

TOL = 1e-6


def approx_equal(a: float, b: float, tol: float = TOL) -> bool:
    """
    True iff |a - b| <= tol * max(1, |a|, |b|).
    Non-finite inputs never compare equal.
    """
    a, b = float(a), float(b)
    if not (math.isfinite(a) and math.isfinite(b)):
        return False
    scale = max(1.0, abs(a), abs(b))
    return abs(a - b) <= tol * scale
