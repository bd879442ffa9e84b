# -----------------------------------------------------------------------------
# Parser: token stream -> expression AST
# Algorithm:
#   Two-stack shunting-yard (operand stack + operator stack) building AST
#   nodes directly instead of an RPN queue.
#     precedence   + -  (1)  <  * /  (2)  <  unary -  (3)  <  ^  (4)
#     + - * / are left-associative, ^ is right-associative.
#   An identifier immediately followed by '(' becomes a Call node only when
#   it names a whitelisted function; any other identifier stays a Variable
#   and the '(' opens a plain group.
# Equations:
#   'lhs = rhs' is split on '=' first and each side is parsed independently.
# -----------------------------------------------------------------------------

from __future__ import annotations
from typing import List, Optional

from .tokenizer import validate_formula, tokenize, check_token_limit
from .types import (
    Token, NUM, ID, OP,
    Node, Literal, Variable, BinaryOp, UnaryOp, Call,
    Expression, Equation, ParsedFormula,
    FormulaError, IssueKind,
)

# Whitelisted unary math functions (the evaluator maps these to math.*)
FUNCTIONS = ("sqrt", "sin", "cos", "tan", "asin", "acos", "atan")

NEG = "neg"          # operator-stack marker for unary minus
FN_PREFIX = "fn:"    # operator-stack marker for a pending function call

PRECEDENCE = {"+": 1, "-": 1, "*": 2, "/": 2, NEG: 3, "^": 4}
RIGHT_ASSOC = {"^", NEG}


def _malformed(msg: str) -> FormulaError:
    return FormulaError(IssueKind.MALFORMED_EXPRESSION, msg)


def _reduce(op: str, operands: List[Node]) -> None:
    # Pop operands for `op` and push the combined node
    if op == NEG:
        if not operands:
            raise _malformed("Missing operand after '-'")
        operands.append(UnaryOp("-", operands.pop()))
        return
    if len(operands) < 2:
        raise _malformed(f"Missing operand for '{op}'")
    right = operands.pop()
    left = operands.pop()
    operands.append(BinaryOp(op, left, right))


def _is_open(op: str) -> bool:
    return op == "(" or op.startswith(FN_PREFIX)


def parse_tokens(tokens: List[Token]) -> Node:
    """Build an AST from tokens of a single expression (no '=')."""
    if not tokens:
        raise _malformed("Missing expression")
    operands: List[Node] = []
    ops: List[str] = []
    expect_operand = True

    for i, tok in enumerate(tokens):
        nxt: Optional[Token] = tokens[i + 1] if i + 1 < len(tokens) else None

        if tok.kind in (NUM, ID):
            if not expect_operand:
                raise _malformed(f"Missing operator before '{tok.text}'")
            if tok.kind == NUM:
                operands.append(Literal(float(tok.text)))
                expect_operand = False
            elif tok.text in FUNCTIONS and nxt is not None and nxt.text == "(":
                ops.append(FN_PREFIX + tok.text)
            else:
                operands.append(Variable(tok.text))
                expect_operand = False
            continue

        t = tok.text
        if t == "(":
            if not expect_operand:
                raise _malformed("Missing operator before '('")
            ops.append("(")
        elif t == ")":
            if expect_operand:
                raise _malformed("Empty or incomplete parenthesized group")
            while ops and not _is_open(ops[-1]):
                _reduce(ops.pop(), operands)
            if not ops:
                raise FormulaError(IssueKind.UNBALANCED_PARENTHESES, "Mismatched parentheses")
            ops.pop()  # "("
            if ops and ops[-1].startswith(FN_PREFIX):
                operands.append(Call(ops.pop()[len(FN_PREFIX):], operands.pop()))
            expect_operand = False
        elif expect_operand:
            # prefix position: only signs are meaningful here
            if t == "-":
                ops.append(NEG)
            elif t != "+":
                raise _malformed(f"Missing operand before '{t}'")
        else:
            prec = PRECEDENCE[t]
            while ops and not _is_open(ops[-1]):
                top = PRECEDENCE[ops[-1]]
                if top > prec or (top == prec and t not in RIGHT_ASSOC):
                    _reduce(ops.pop(), operands)
                else:
                    break
            ops.append(t)
            expect_operand = True

    if expect_operand:
        raise _malformed("Expression ends with an operator")
    while ops:
        op = ops.pop()
        if _is_open(op):
            raise FormulaError(IssueKind.UNBALANCED_PARENTHESES, "Unbalanced parentheses")
        _reduce(op, operands)
    if len(operands) != 1:
        raise _malformed("Missing operator between operands")
    return operands[0]


def parse_expression(text: str) -> Node:
    """Validate and parse a single expression; '=' is not allowed here."""
    f = validate_formula(text)
    if "=" in f:
        raise _malformed("Unexpected '=' in expression")
    tokens = tokenize(f)
    check_token_limit(len(tokens))
    return parse_tokens(tokens)


def parse_formula(text: str) -> ParsedFormula:
    """
    Parse formula text into an Expression (no '=') or an Equation.
    Raises FormulaError on EMPTY_FORMULA, INVALID_CHARACTER,
    UNBALANCED_PARENTHESES or MALFORMED_EXPRESSION.
    """
    f = validate_formula(text)
    parts = f.split("=")
    if len(parts) > 2:
        raise _malformed("A formula may contain at most one '='")
    sides = [tokenize(p) for p in parts]
    check_token_limit(sum(len(s) for s in sides))
    if len(parts) == 1:
        return Expression(parse_tokens(sides[0]), f)
    if not sides[0]:
        raise _malformed("Missing expression on the left of '='")
    if not sides[1]:
        raise _malformed("Missing expression on the right of '='")
    return Equation(parse_tokens(sides[0]), parse_tokens(sides[1]), f)


# ---------------- formatting back to text ----------------

def _fmt_number(value: float) -> str:
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


def _node_prec(node: Node) -> int:
    if isinstance(node, BinaryOp):
        return PRECEDENCE[node.op]
    if isinstance(node, UnaryOp):
        return PRECEDENCE[NEG]
    if isinstance(node, Literal) and node.value < 0:
        return PRECEDENCE[NEG]
    return 99


def _wrap(child: Node, parent_prec: int, tight: bool) -> str:
    s = format_expr(child)
    cp = _node_prec(child)
    if cp < parent_prec or (tight and cp == parent_prec):
        return f"({s})"
    return s


def format_expr(node: Node) -> str:
    """Render an AST with the minimum parentheses its structure needs."""
    if isinstance(node, Literal):
        return _fmt_number(node.value)
    if isinstance(node, Variable):
        return node.name
    if isinstance(node, Call):
        return f"{node.fn}({format_expr(node.arg)})"
    if isinstance(node, UnaryOp):
        return "-" + _wrap(node.operand, PRECEDENCE[NEG], tight=False)
    if isinstance(node, BinaryOp):
        prec = PRECEDENCE[node.op]
        if node.op in RIGHT_ASSOC:
            left = _wrap(node.left, prec, tight=True)
            right = _wrap(node.right, prec, tight=False)
        else:
            left = _wrap(node.left, prec, tight=False)
            right = _wrap(node.right, prec, tight=node.op in "-/")
        if node.op in "+-":
            return f"{left} {node.op} {right}"
        return f"{left}{node.op}{right}"
    raise TypeError(f"Unsupported node: {node!r}")


def format_equation(eq: Equation) -> str:
    return f"{format_expr(eq.lhs)} = {format_expr(eq.rhs)}"
