"""
noir_generator.py

Render a ParsedCircuit as Noir source for the external nargo toolchain.

Example output:

    fn main(secret: Field, expected: pub Field) {
        assert((secret * secret) == expected, "not a square root");
    }

Private parameters are declared first so the witness indices nargo assigns
line up with r1cs_builder's layout (shifted by one).
"""

import json
from typing import List, Sequence

from circuit_ir import (
    ArrayLiteral, AssertStmt, Assignment, BinaryExpr, CallExpr, Expr, ForStatement, Identifier, IfExpr,
    IfStatement, Literal, MemberExpr, ParsedCircuit, Statement, UnaryExpr, VariableDeclaration,
)

INDENT = "    "

# JS logical operators map onto Noir's boolean & and |.
NOIR_OPERATORS = {"&&": "&", "||": "|"}


def render_expr(expr: Expr) -> str:
    if isinstance(expr, Identifier):
        return expr.name
    if isinstance(expr, Literal):
        return _render_literal(expr.value)
    if isinstance(expr, BinaryExpr):
        op = NOIR_OPERATORS.get(expr.op, expr.op)
        return f"{_operand(expr.left)} {op} {_operand(expr.right)}"
    if isinstance(expr, UnaryExpr):
        return f"{expr.op}{_operand(expr.operand)}"
    if isinstance(expr, MemberExpr):
        return f"{render_expr(expr.object)}[{render_expr(expr.index)}]"
    if isinstance(expr, CallExpr):
        args = ", ".join(render_expr(a) for a in expr.args)
        if expr.method:
            return f"{_operand(expr.callee)}.{expr.method}({args})"
        return f"{render_expr(expr.callee)}({args})"
    if isinstance(expr, ArrayLiteral):
        return "[" + ", ".join(render_expr(e) for e in expr.elements) + "]"
    if isinstance(expr, IfExpr):
        return (f"if {render_expr(expr.condition)} {{ {render_expr(expr.consequent)} }} "
                f"else {{ {render_expr(expr.alternate)} }}")
    raise TypeError(f"cannot render {type(expr).__name__}")


def _operand(expr: Expr) -> str:
    text = render_expr(expr)
    if isinstance(expr, (BinaryExpr, IfExpr)):
        return f"({text})"
    return text


def _render_literal(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    return json.dumps(value)


def render_statement(stmt: Statement, depth: int = 1) -> List[str]:
    pad = INDENT * depth
    if isinstance(stmt, AssertStmt):
        if stmt.message is not None:
            return [f"{pad}assert({render_expr(stmt.condition)}, {json.dumps(stmt.message)});"]
        return [f"{pad}assert({render_expr(stmt.condition)});"]
    if isinstance(stmt, VariableDeclaration):
        mut = "mut " if stmt.mutable else ""
        return [f"{pad}let {mut}{stmt.name} = {render_expr(stmt.initializer)};"]
    if isinstance(stmt, Assignment):
        return [f"{pad}{stmt.target} = {render_expr(stmt.value)};"]
    if isinstance(stmt, IfStatement):
        lines = [f"{pad}if {render_expr(stmt.condition)} {{"]
        lines += _render_body(stmt.consequent, depth + 1)
        if stmt.alternate:
            lines.append(f"{pad}}} else {{")
            lines += _render_body(stmt.alternate, depth + 1)
        lines.append(f"{pad}}}")
        return lines
    if isinstance(stmt, ForStatement):
        rng = "..=" if stmt.inclusive else ".."
        lines = [f"{pad}for {stmt.variable} in {render_expr(stmt.start)}{rng}{render_expr(stmt.end)} {{"]
        lines += _render_body(stmt.body, depth + 1)
        lines.append(f"{pad}}}")
        return lines
    raise TypeError(f"cannot render {type(stmt).__name__}")


def _render_body(stmts: Sequence[Statement], depth: int) -> List[str]:
    lines: List[str] = []
    for s in stmts:
        lines.extend(render_statement(s, depth))
    return lines


def generate_noir(circuit: ParsedCircuit) -> str:
    """
    Full Noir program with a single `main`; private params first, public ones marked `pub`.
    """
    params = [f"{p.name}: Field" for p in circuit.private_params]
    params += [f"{p.name}: pub Field" for p in circuit.public_params]
    lines = [f"fn main({', '.join(params)}) {{"]
    lines += _render_body(circuit.statements, 1)
    lines.append("}")
    return "\n".join(lines) + "\n"


# Demo
if __name__ == "__main__":
    from js_parser import JsCircuitParser

    src = "([expected], [secret]) => { assert(secret * secret == expected, 'bad'); }"
    print(generate_noir(JsCircuitParser().parse_text(src)))
