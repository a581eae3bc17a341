"""
circuit_ir.py

Canonical intermediate representation produced by the front-end parsers and
consumed by the Noir generator and the R1CS builder.

All nodes are frozen dataclasses; child sequences are tuples so a
ParsedCircuit is immutable once built. Every node carries a `kind` tag.
"""

from dataclasses import dataclass, fields
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from errors import CircuitInputError


# ----------------------------
# Expressions
# ----------------------------

@dataclass(frozen=True)
class Identifier:
    kind: ClassVar[str] = "identifier"
    name: str


@dataclass(frozen=True)
class Literal:
    kind: ClassVar[str] = "literal"
    value: Union[int, bool, str]


@dataclass(frozen=True)
class BinaryExpr:
    kind: ClassVar[str] = "binary"
    op: str
    left: "Expr"
    right: "Expr"


@dataclass(frozen=True)
class UnaryExpr:
    kind: ClassVar[str] = "unary"
    op: str
    operand: "Expr"


@dataclass(frozen=True)
class MemberExpr:
    """Computed indexing `object[index]`."""
    kind: ClassVar[str] = "member"
    object: "Expr"
    index: "Expr"


@dataclass(frozen=True)
class CallExpr:
    """Function call, or method call when `method` is set (`arr.length` becomes method `len`)."""
    kind: ClassVar[str] = "call"
    callee: "Expr"
    method: Optional[str] = None
    args: Tuple["Expr", ...] = ()


@dataclass(frozen=True)
class ArrayLiteral:
    kind: ClassVar[str] = "array_literal"
    elements: Tuple["Expr", ...] = ()


@dataclass(frozen=True)
class IfExpr:
    kind: ClassVar[str] = "if_expr"
    condition: "Expr"
    consequent: "Expr"
    alternate: "Expr"


Expr = Union[Identifier, Literal, BinaryExpr, UnaryExpr, MemberExpr, CallExpr, ArrayLiteral, IfExpr]

BINARY_OPERATORS = ("+", "-", "*", "/", "%", "==", "!=", "<", "<=", ">", ">=", "&&", "||")
COMPARISON_OPERATORS = ("<", "<=", ">", ">=")
UNARY_OPERATORS = ("-", "!")


# ----------------------------
# Statements
# ----------------------------

@dataclass(frozen=True)
class AssertStmt:
    kind: ClassVar[str] = "assert"
    condition: Expr
    message: Optional[str] = None


@dataclass(frozen=True)
class VariableDeclaration:
    kind: ClassVar[str] = "variable_declaration"
    name: str
    mutable: bool
    initializer: Expr


@dataclass(frozen=True)
class Assignment:
    kind: ClassVar[str] = "assignment"
    target: str
    value: Expr
    mutable: bool = False


@dataclass(frozen=True)
class IfStatement:
    kind: ClassVar[str] = "if_statement"
    condition: Expr
    consequent: Tuple["Statement", ...]
    alternate: Optional[Tuple["Statement", ...]] = None


@dataclass(frozen=True)
class ForStatement:
    kind: ClassVar[str] = "for_statement"
    variable: str
    start: Expr
    end: Expr
    inclusive: bool
    body: Tuple["Statement", ...]


Statement = Union[AssertStmt, VariableDeclaration, Assignment, IfStatement, ForStatement]


# ----------------------------
# Circuit
# ----------------------------

@dataclass(frozen=True)
class CircuitParam:
    name: str
    index: int


@dataclass(frozen=True)
class ParsedCircuit:
    public_params: Tuple[CircuitParam, ...]
    private_params: Tuple[CircuitParam, ...]
    statements: Tuple[Statement, ...]

    @property
    def num_public_inputs(self) -> int:
        return len(self.public_params)

    def input_map(self, public_values: Sequence[Any], private_values: Sequence[Any]) -> Dict[str, Any]:
        """
        Pair positional public/private argument values with parameter names,
        using each CircuitParam's index.
        """
        if len(public_values) != len(self.public_params):
            raise CircuitInputError(
                f"Expected {len(self.public_params)} public inputs, got {len(public_values)}")
        if len(private_values) != len(self.private_params):
            raise CircuitInputError(
                f"Expected {len(self.private_params)} private inputs, got {len(private_values)}")
        inputs: Dict[str, Any] = {}
        for p in self.private_params:
            inputs[p.name] = private_values[p.index]
        for p in self.public_params:
            inputs[p.name] = public_values[p.index]
        return inputs

    def ordered_values(self, inputs: Mapping[str, Any]) -> Tuple[List[Any], List[Any]]:
        """
        Split an input map back into (private_values, public_values) in
        parameter order. Missing or unknown names raise CircuitInputError.
        """
        known = {p.name for p in self.private_params} | {p.name for p in self.public_params}
        extra = sorted(set(inputs) - known)
        if extra:
            raise CircuitInputError(f"Unknown input(s): {', '.join(extra)}")
        missing = [name for name in self.param_names() if name not in inputs]
        if missing:
            raise CircuitInputError(f"Missing input(s): {', '.join(missing)}")
        private = [inputs[p.name] for p in sorted(self.private_params, key=lambda p: p.index)]
        public = [inputs[p.name] for p in sorted(self.public_params, key=lambda p: p.index)]
        return private, public

    def param_names(self) -> List[str]:
        """Parameter names in witness order: private first, then public."""
        return [p.name for p in self.private_params] + [p.name for p in self.public_params]


def ir_to_dict(node: Any) -> Any:
    """
    JSON-friendly rendering of any IR node (used for the exported circuit.ir.json).
    """
    if isinstance(node, (list, tuple)):
        return [ir_to_dict(n) for n in node]
    if isinstance(node, ParsedCircuit):
        return {
            "public_params": [{"name": p.name, "index": p.index} for p in node.public_params],
            "private_params": [{"name": p.name, "index": p.index} for p in node.private_params],
            "statements": ir_to_dict(node.statements),
        }
    if hasattr(node, "__dataclass_fields__"):
        out: Dict[str, Any] = {"kind": node.kind}
        for f in fields(node):
            out[f.name] = ir_to_dict(getattr(node, f.name))
        return out
    return node
