"""
js_parser.py

Front-end adapter for the restricted JavaScript circuit language.

A circuit is a function with exactly two array-destructured parameters:

    ([expected], [secret]) => {
        assert(secret * secret == expected, "not a square root");
    }

The first pattern lists the public parameters, the second the private ones.
The text is parsed with a small LALR grammar (lark) and the parse tree is
lowered into the canonical IR of circuit_ir.py. Anything outside the accepted
subset raises ParseError with a specific diagnostic.

Names are resolved while lowering: parameters and top-level declarations share
one scope, every if/else branch and loop body opens a nested one, and a for
loop variable is visible only inside its loop. Unknown names and assignments
to non-`mut_` bindings raise UndefinedVariableError; redeclaring a name in the
same scope raises ParseError.
"""

import ast as pyast
from contextlib import contextmanager
import logging
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Union

from lark import Lark, Token, Tree
from lark.exceptions import LarkError, UnexpectedInput

from circuit_ir import (
    ArrayLiteral, AssertStmt, Assignment, BinaryExpr, CallExpr, CircuitParam, Expr, ForStatement,
    Identifier, IfExpr, IfStatement, Literal, MemberExpr, ParsedCircuit, Statement, UnaryExpr,
    VariableDeclaration,
)
from errors import ParseError, UndefinedVariableError

logger = logging.getLogger(__name__)

MUT_PREFIX = "mut_"

GRAMMAR = r"""
start: (arrow_fn | function_fn) ";"?

arrow_fn: param_list "=>" fn_body
        | NAME "=>" fn_body                      -> bare_arrow_fn
function_fn: "function" NAME? param_list block

param_list: "(" (param ("," param)*)? ")"
?param: array_pattern
      | NAME                                     -> plain_param
array_pattern: "[" (NAME ("," NAME)*)? "]"

?fn_body: block
        | expr

block: "{" statement* "}"

?statement: var_decl
          | if_stmt
          | for_stmt
          | while_stmt
          | return_stmt
          | block
          | expr_stmt

var_decl: ("let" | "const" | "var") declarator ("," declarator)* ";"?
declarator: (NAME | array_pattern) ["=" expr]
if_stmt: "if" "(" expr ")" statement ["else" statement]
for_stmt: "for" "(" [for_init] ";" [for_test] ";" [for_update] ")" statement
for_init: for_decl
        | expr
for_decl: ("let" | "const" | "var") declarator
for_test: expr
for_update: expr
while_stmt: "while" "(" expr ")" statement
return_stmt: "return" expr? ";"?
expr_stmt: expr ";"?

?expr: assign_expr

?assign_expr: conditional
            | conditional "=" assign_expr        -> assign
            | conditional "+=" assign_expr       -> assign_add
            | conditional "-=" assign_expr       -> assign_sub
            | conditional "*=" assign_expr       -> assign_mul

?conditional: logical_or
            | logical_or "?" assign_expr ":" assign_expr -> ternary

?logical_or: logical_and
           | logical_or "||" logical_and         -> or_op

?logical_and: equality
            | logical_and "&&" equality          -> and_op

?equality: relational
         | equality "===" relational             -> eq
         | equality "==" relational              -> eq
         | equality "!==" relational             -> ne
         | equality "!=" relational              -> ne

?relational: additive
           | relational "<=" additive            -> le
           | relational ">=" additive            -> ge
           | relational "<" additive             -> lt
           | relational ">" additive             -> gt

?additive: multiplicative
         | additive "+" multiplicative           -> add
         | additive "-" multiplicative           -> sub

?multiplicative: unary
               | multiplicative "*" unary        -> mul
               | multiplicative "/" unary        -> div
               | multiplicative "%" unary        -> mod

?unary: postfix
      | "-" unary                                -> neg
      | "+" unary                                -> pos
      | "!" unary                                -> not_op
      | "++" unary                               -> pre_inc
      | "--" unary                               -> pre_dec

?postfix: call_member
        | call_member "++"                       -> post_inc
        | call_member "--"                       -> post_dec

?call_member: primary
            | call_member "[" expr "]"           -> index
            | call_member "." NAME               -> prop
            | call_member "(" [args] ")"         -> call

args: assign_expr ("," assign_expr)*

?primary: NAME                                   -> ident
        | NUMBER                                 -> number
        | STRING                                 -> string
        | "true"                                 -> true
        | "false"                                -> false
        | "(" expr ")"
        | "[" [args] "]"                         -> array

NAME: /[A-Za-z_$][A-Za-z0-9_$]*/
NUMBER: /0[xX][0-9a-fA-F]+n?|[0-9]+n?/
STRING: /"(?:[^"\\\n]|\\.)*"|'(?:[^'\\\n]|\\.)*'/

%import common.WS
%import common.CPP_COMMENT
%import common.C_COMMENT
%ignore WS
%ignore CPP_COMMENT
%ignore C_COMMENT
"""

BINARY_OPS: Dict[str, str] = {
    "add": "+", "sub": "-", "mul": "*", "div": "/", "mod": "%",
    "eq": "==", "ne": "!=",
    "lt": "<", "le": "<=", "gt": ">", "ge": ">=",
    "and_op": "&&", "or_op": "||",
}

COMPOUND_ASSIGN_OPS: Dict[str, str] = {"assign_add": "+", "assign_sub": "-", "assign_mul": "*"}

_LARK: Optional[Lark] = None


def _get_lark() -> Lark:
    global _LARK
    if _LARK is None:
        _LARK = Lark(GRAMMAR, parser="lalr", propagate_positions=True)
    return _LARK


def strip_mut(name: str) -> Tuple[str, bool]:
    """
    Split the `mut_` naming convention into (canonical_name, mutable).
    """
    if name.startswith(MUT_PREFIX) and len(name) > len(MUT_PREFIX):
        return name[len(MUT_PREFIX):], True
    return name, False


def parse_number(text: str) -> int:
    """Parse a decimal, hex or BigInt (`123n`) literal."""
    if text.endswith("n"):
        text = text[:-1]
    return int(text, 16) if text[:2].lower() == "0x" else int(text, 10)


def _line(node: Union[Tree, Token]) -> Optional[int]:
    if isinstance(node, Token):
        return node.line
    meta = getattr(node, "meta", None)
    if meta is None or getattr(meta, "empty", True):
        return None
    return meta.line


class JsCircuitParser:
    """
    Parse restricted JS circuit source into a ParsedCircuit.

    Typical usage:
        circuit = JsCircuitParser().parse_text("([x], [y]) => x == y * y")
    """

    def __init__(self):
        self._expr_dispatch: Dict[str, Callable[[Tree], Expr]] = {
            "ident": self._ident,
            "number": self._number,
            "string": self._string,
            "true": lambda node: Literal(True),
            "false": lambda node: Literal(False),
            "neg": self._neg,
            "pos": self._reject_unary_plus,
            "not_op": lambda node: UnaryExpr("!", self._expr(node.children[0])),
            "index": lambda node: MemberExpr(self._expr(node.children[0]), self._expr(node.children[1])),
            "prop": self._prop,
            "call": self._call,
            "array": lambda node: ArrayLiteral(tuple(self._args(node.children[0]))),
            "ternary": lambda node: IfExpr(*(self._expr(c) for c in node.children)),
        }
        self._stmt_dispatch: Dict[str, Callable[[Tree], List[Statement]]] = {
            "var_decl": self._var_decl,
            "expr_stmt": self._expr_stmt,
            "if_stmt": self._if_stmt,
            "for_stmt": self._for_stmt,
            "while_stmt": lambda node: self._fail("Unsupported statement: while loop (use a bounded for loop)", node),
            "return_stmt": lambda node: self._fail("Unsupported statement: return", node),
            "block": lambda node: self._fail("Unsupported statement: nested block", node),
        }
        self._scopes: List[Dict[str, bool]] = []

    # ----------------------------
    # Entry points
    # ----------------------------

    def parse_file(self, path: Union[str, Path]) -> ParsedCircuit:
        text = Path(path).read_text(encoding="utf-8")
        return self.parse_text(text)

    def parse_text(self, text: str) -> ParsedCircuit:
        try:
            tree = _get_lark().parse(text)
        except UnexpectedInput as exc:
            line = getattr(exc, "line", None)
            column = getattr(exc, "column", None)
            if line is not None and line < 0:
                line, column = None, None
            raise ParseError(f"Syntax error: {_first_line(str(exc))}", line, column) from exc
        except LarkError as exc:
            raise ParseError(f"Syntax error: {_first_line(str(exc))}") from exc

        fn = tree.children[0]
        if fn.data == "bare_arrow_fn":
            self._fail("Circuit function must have exactly 2 parameters: (publicArgs, privateArgs), got 1", fn)
        children = [c for c in fn.children if not isinstance(c, Token)]
        param_list, body = children[0], children[1]

        public_params, private_params = self._params(param_list)
        self._scopes = [{p.name: False for p in public_params + private_params}]

        if isinstance(body, Tree) and body.data == "block":
            statements = self._block(body)
        else:
            # expression body is an implicit assert
            statements = [AssertStmt(self._expr(body))]

        circuit = ParsedCircuit(tuple(public_params), tuple(private_params), tuple(statements))
        logger.debug("parsed circuit: %d public, %d private, %d statements",
                     len(public_params), len(private_params), len(statements))
        return circuit

    # ----------------------------
    # Parameters
    # ----------------------------

    def _params(self, param_list: Tree) -> Tuple[List[CircuitParam], List[CircuitParam]]:
        params = param_list.children
        if len(params) != 2:
            self._fail(
                f"Circuit function must have exactly 2 parameters: (publicArgs, privateArgs), got {len(params)}",
                param_list)
        groups = []
        seen = set()
        for position, param in enumerate(params):
            label = "publicArgs" if position == 0 else "privateArgs"
            if param.data != "array_pattern":
                self._fail(f"Parameter {label} must be an array destructuring pattern ([a, b, ...])", param)
            group = []
            for idx, tok in enumerate(param.children):
                name = str(tok)
                if name in seen:
                    self._fail(f"Duplicate parameter name '{name}'", tok)
                seen.add(name)
                group.append(CircuitParam(name=name, index=idx))
            groups.append(group)
        return groups[0], groups[1]

    # ----------------------------
    # Statements
    # ----------------------------

    def _block(self, block: Tree) -> List[Statement]:
        out: List[Statement] = []
        for child in block.children:
            out.extend(self._statement(child))
        return out

    def _body(self, node: Tree) -> Tuple[Statement, ...]:
        with self._scope():
            if node.data == "block":
                return tuple(self._block(node))
            return tuple(self._statement(node))

    def _statement(self, node: Tree) -> List[Statement]:
        handler = self._stmt_dispatch.get(node.data)
        if handler is None:
            self._fail(f"Unsupported statement kind: {node.data}", node)
        return handler(node)

    def _var_decl(self, node: Tree) -> List[Statement]:
        if len(node.children) != 1:
            self._fail("Variable declaration must declare a single identifier", node)
        name, mutable, init = self._declarator(node.children[0])
        if init is None:
            self._fail("Variable declaration must have an initializer", node)
        initializer = self._expr(init)
        self._declare(name, mutable, node)
        return [VariableDeclaration(name=name, mutable=mutable, initializer=initializer)]

    def _declarator(self, node: Tree) -> Tuple[str, bool, Optional[Tree]]:
        target, init = node.children
        if not isinstance(target, Token):
            self._fail("Destructuring declarations are not supported", node)
        name, mutable = strip_mut(str(target))
        return name, mutable, init

    def _expr_stmt(self, node: Tree) -> List[Statement]:
        expr = node.children[0]
        kind = expr.data if isinstance(expr, Tree) else None

        if kind == "call" and _is_ident(expr.children[0], "assert"):
            return [self._assert(expr)]
        if kind == "assign":
            target, mutable = self._assign_target(expr)
            return [Assignment(target=target, value=self._expr(expr.children[1]), mutable=mutable)]
        if kind in COMPOUND_ASSIGN_OPS:
            target, mutable = self._assign_target(expr)
            value = BinaryExpr(COMPOUND_ASSIGN_OPS[kind], Identifier(target), self._expr(expr.children[1]))
            return [Assignment(target=target, value=value, mutable=mutable)]
        if kind in ("post_inc", "pre_inc", "post_dec", "pre_dec"):
            target, mutable = self._assign_target(expr)
            op = "+" if kind.endswith("inc") else "-"
            return [Assignment(target=target, value=BinaryExpr(op, Identifier(target), Literal(1)), mutable=mutable)]
        self._fail("Unsupported expression statement (only assert(...) calls and assignments are allowed)", node)

    def _assert(self, call: Tree) -> AssertStmt:
        args = self._args(call.children[1])
        if not args or len(args) > 2:
            self._fail(f"assert() takes a condition and an optional message, got {len(args)} arguments", call)
        message = None
        if len(args) == 2:
            if not (isinstance(args[1], Literal) and isinstance(args[1].value, str)):
                self._fail("assert() message must be a string literal", call)
            message = args[1].value
        return AssertStmt(condition=args[0], message=message)

    def _assign_target(self, node: Tree) -> Tuple[str, bool]:
        target = node.children[0]
        if not (isinstance(target, Tree) and target.data == "ident"):
            self._fail("Assignment target must be a plain identifier", node)
        name, mutable = strip_mut(str(target.children[0]))
        if not self._lookup(name, target):
            raise UndefinedVariableError(
                f"Cannot assign to immutable variable '{name}' (declare it with the mut_ prefix)", _line(node))
        return name, mutable

    def _if_stmt(self, node: Tree) -> List[Statement]:
        cond, consequent, alternate = node.children
        return [IfStatement(
            condition=self._expr(cond),
            consequent=self._body(consequent),
            alternate=self._body(alternate) if alternate is not None else None,
        )]

    def _for_stmt(self, node: Tree) -> List[Statement]:
        init, test, update, body = node.children

        if init is None or init.children[0].data != "for_decl":
            self._fail("For loop init must be a variable declaration (let i = start)", node)
        variable, _, start = self._declarator(init.children[0].children[0])
        if start is None:
            self._fail("For loop init must be a variable declaration (let i = start)", node)

        if test is None:
            self._fail("For loop test must compare the loop variable (i < end or i <= end)", node)
        cond = test.children[0]
        if not isinstance(cond, Tree) or cond.data not in BINARY_OPS or BINARY_OPS[cond.data] not in ("<", "<=", ">", ">="):
            self._fail("For loop test must compare the loop variable (i < end or i <= end)", test)
        if cond.data not in ("lt", "le"):
            self._fail("For loop test must use < or <= operator", test)
        if not _is_ident(cond.children[0], variable, strip=True):
            self._fail("For loop test must compare the loop variable", test)

        if update is None or not self._is_increment(update.children[0], variable):
            self._fail("For loop update must be i++ or i = i + 1 or ++i", node)

        start_expr = self._expr(start)
        with self._scope():
            self._declare(variable, False, node)
            end_expr = self._expr(cond.children[1])
            loop_body = self._body(body)
        return [ForStatement(
            variable=variable,
            start=start_expr,
            end=end_expr,
            inclusive=cond.data == "le",
            body=loop_body,
        )]

    def _is_increment(self, node: Tree, variable: str) -> bool:
        if not isinstance(node, Tree):
            return False
        if node.data in ("post_inc", "pre_inc"):
            return _is_ident(node.children[0], variable, strip=True)
        if node.data == "assign" and _is_ident(node.children[0], variable, strip=True):
            value = node.children[1]
            return (isinstance(value, Tree) and value.data == "add"
                    and _is_ident(value.children[0], variable, strip=True)
                    and isinstance(value.children[1], Tree) and value.children[1].data == "number"
                    and parse_number(str(value.children[1].children[0])) == 1)
        return False

    # ----------------------------
    # Expressions
    # ----------------------------

    def _expr(self, node: Union[Tree, Token]) -> Expr:
        if isinstance(node, Token):
            self._fail(f"Unexpected token '{node}'", node)
        if node.data in BINARY_OPS:
            return BinaryExpr(BINARY_OPS[node.data], self._expr(node.children[0]), self._expr(node.children[1]))
        handler = self._expr_dispatch.get(node.data)
        if handler is not None:
            return handler(node)
        if node.data in ("assign",) or node.data in COMPOUND_ASSIGN_OPS:
            self._fail("Assignment is not supported inside expressions", node)
        if node.data in ("post_inc", "pre_inc", "post_dec", "pre_dec"):
            self._fail("Update expressions are only supported as statements or for-loop updates", node)
        self._fail(f"Unsupported expression kind: {node.data}", node)

    def _args(self, node: Optional[Tree]) -> List[Expr]:
        if node is None:
            return []
        return [self._expr(c) for c in node.children]

    def _ident(self, node: Tree) -> Expr:
        name, _ = strip_mut(str(node.children[0]))
        self._lookup(name, node)
        return Identifier(name)

    def _number(self, node: Tree) -> Expr:
        return Literal(parse_number(str(node.children[0])))

    def _string(self, node: Tree) -> Expr:
        return Literal(pyast.literal_eval(str(node.children[0])))

    def _neg(self, node: Tree) -> Expr:
        operand = self._expr(node.children[0])
        if isinstance(operand, Literal) and isinstance(operand.value, int) and not isinstance(operand.value, bool):
            return Literal(-operand.value)
        return UnaryExpr("-", operand)

    def _reject_unary_plus(self, node: Tree) -> Expr:
        self._fail("Unsupported unary operator: +", node)

    def _prop(self, node: Tree) -> Expr:
        obj, name = node.children
        if str(name) == "length":
            return CallExpr(callee=self._expr(obj), method="len", args=())
        self._fail(f"Unsupported property access: .{name}", node)

    def _call(self, node: Tree) -> Expr:
        callee, args = node.children
        if isinstance(callee, Tree) and callee.data == "prop":
            obj, name = callee.children
            return CallExpr(callee=self._expr(obj), method=str(name), args=tuple(self._args(args)))
        if isinstance(callee, Tree) and callee.data == "ident":
            # free function names are not variables
            return CallExpr(callee=Identifier(str(callee.children[0])), method=None, args=tuple(self._args(args)))
        return CallExpr(callee=self._expr(callee), method=None, args=tuple(self._args(args)))

    # ----------------------------
    # Scope
    # ----------------------------

    @contextmanager
    def _scope(self) -> Iterator[None]:
        self._scopes.append({})
        try:
            yield
        finally:
            self._scopes.pop()

    def _declare(self, name: str, mutable: bool, node: Union[Tree, Token]) -> None:
        if name in self._scopes[-1]:
            self._fail(f"Variable '{name}' is already declared", node)
        self._scopes[-1][name] = mutable

    def _lookup(self, name: str, node: Union[Tree, Token]) -> bool:
        """Mutability of the innermost binding of name."""
        for scope in reversed(self._scopes):
            if name in scope:
                return scope[name]
        raise UndefinedVariableError(f"Unknown identifier '{name}'", _line(node))

    # ----------------------------
    # Diagnostics
    # ----------------------------

    def _fail(self, message: str, node: Union[Tree, Token, None] = None):
        line = _line(node) if node is not None else None
        raise ParseError(message, line)


def _is_ident(node, name: str, strip: bool = False) -> bool:
    if not (isinstance(node, Tree) and node.data == "ident"):
        return False
    value = str(node.children[0])
    if strip:
        value, _ = strip_mut(value)
        name, _ = strip_mut(name)
    return value == name


def _first_line(text: str) -> str:
    return text.strip().splitlines()[0] if text.strip() else text


# Demo
if __name__ == "__main__":
    demo = """
    ([expected, minimum], [secret, balance]) => {
        let mut_total = secret * secret;
        mut_total = mut_total + 0;
        assert(mut_total == expected, "not a square root");
        assert(balance >= minimum);
    }
    """
    print(JsCircuitParser().parse_text(demo))
