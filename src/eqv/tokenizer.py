# -----------------------------------------------------------------------------
# Tokenizer & structural validation
# Purpose:
#   Normalize raw formula text, reject anything outside the character
#   whitelist (the primary injection defense), check bracket nesting and
#   split the text into a flat token stream.
# Order:
#   normalize_formula -> validate_formula -> tokenize
#   Validation always runs first, so the tokenizer only ever sees
#   whitelisted characters.
# -----------------------------------------------------------------------------

from __future__ import annotations
import os
import re
from typing import List, Optional

from .types import Token, NUM, ID, OP, FormulaError, IssueKind

ALLOWED_CHARS = re.compile(r"^[0-9+\-*/().,^=\sA-Za-z_]+$")
IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

OPERATORS = "+-*/^()"

# Upper bound on tokens per formula; keeps parser/evaluator recursion shallow
MAX_TOKENS = int(os.getenv("EQV_MAX_TOKENS", "64"))


def normalize_formula(text: Optional[str]) -> str:
    # Collapse whitespace runs to a single space and trim
    if text is None:
        return ""
    return re.sub(r"\s+", " ", str(text)).strip()


def validate_formula(text: str) -> str:
    """
    Validate normalized formula text and return it.
    Raises FormulaError(EMPTY_FORMULA | INVALID_CHARACTER | UNBALANCED_PARENTHESES).
    """
    f = normalize_formula(text)
    if not f:
        raise FormulaError(IssueKind.EMPTY_FORMULA, "Empty formula")
    if not ALLOWED_CHARS.match(f):
        bad = sorted({ch for ch in f if not ALLOWED_CHARS.match(ch)})
        raise FormulaError(IssueKind.INVALID_CHARACTER,
                           f"Formula contains invalid characters: {''.join(bad)!r}")
    depth = 0
    for ch in f:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if depth < 0:
            raise FormulaError(IssueKind.UNBALANCED_PARENTHESES, "Mismatched parentheses")
    if depth != 0:
        raise FormulaError(IssueKind.UNBALANCED_PARENTHESES, "Unbalanced parentheses")
    return f


def _scan_number(text: str, i: int) -> int:
    """Return the end index of the number starting at i (digits, one '.', optional exponent)."""
    n = len(text)
    seen_dot = False
    while i < n and (text[i].isdigit() or (text[i] == "." and not seen_dot)):
        if text[i] == ".":
            seen_dot = True
        i += 1
    # scientific exponent: e/E, optional sign, at least one digit
    if i < n and text[i] in "eE":
        j = i + 1
        if j < n and text[j] in "+-":
            j += 1
        if j < n and text[j].isdigit():
            while j < n and text[j].isdigit():
                j += 1
            i = j
    return i


def tokenize(text: str) -> List[Token]:
    """
    Split text into NUM / ID / OP tokens, left to right.
    Whitespace and any other character (',', '=', a stray '.') are skipped.
    """
    tokens: List[Token] = []
    i, n = 0, len(text)
    while i < n:
        c = text[i]
        if c in OPERATORS:
            tokens.append(Token(OP, c))
            i += 1
        elif c.isdigit() or (c == "." and i + 1 < n and text[i + 1].isdigit()):
            end = _scan_number(text, i)
            tokens.append(Token(NUM, text[i:end]))
            i = end
        elif c.isascii() and (c.isalpha() or c == "_"):
            start = i
            i += 1
            while i < n and text[i].isascii() and (text[i].isalnum() or text[i] == "_"):
                i += 1
            tokens.append(Token(ID, text[start:i]))
        else:
            i += 1
    return tokens


def check_token_limit(count: int) -> None:
    if count > MAX_TOKENS:
        raise FormulaError(IssueKind.INVALID_CHARACTER,
                           f"Formula is too long ({count} tokens; limit {MAX_TOKENS})")


def is_identifier(name: str) -> bool:
    return bool(IDENTIFIER.match(name or ""))
