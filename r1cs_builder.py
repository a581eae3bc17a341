"""
r1cs_builder.py

Lower a ParsedCircuit into a Rank-1 Constraint System over the BN254 scalar field.

Witness layout:
  index 0            constant 1
  1 .. k             private parameters (declaration order)
  k+1 .. k+m         public parameters (declaration order)
  k+m+1 ..           intermediates, declared variables, comparison helpers

Private parameters come first so the layout equals the external Noir
toolchain's witness order shifted by one (the constant slot).

Each constraint is (A.w) * (B.w) = (C.w) with A, B, C lists of
(coefficient, witness_index) terms. Values the prover must derive (intermediate
results, comparison differences, bit decompositions) are described by an
ordered list of witness computations, evaluated by witness.WitnessGenerator.
"""

from dataclasses import dataclass, field
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from circuit_ir import (
    Assignment, AssertStmt, BinaryExpr, Expr, ForStatement, Identifier, IfStatement, Literal,
    ParsedCircuit, Statement, UnaryExpr, VariableDeclaration,
)
from errors import ParseError, UndefinedVariableError, UnsupportedFeatureError
from finite_field import BN254_FR, Field

Term = Tuple[int, int]
LinearCombination = Tuple[Term, ...]

ONE_INDEX = 0
DEFAULT_COMPARISON_BITS = 64
MAX_COMPARISON_BITS = 252


# ----------------------------
# Constraint system types
# ----------------------------

@dataclass(frozen=True)
class R1csConstraint:
    a: LinearCombination
    b: LinearCombination
    c: LinearCombination


@dataclass(frozen=True)
class SubtractComputation:
    """target = left - right + offset, as integers; must not be negative."""
    kind = "subtract"
    target_idx: int
    left_idx: int
    right_idx: int
    offset: int = 0


@dataclass(frozen=True)
class BitDecomposeComputation:
    """bit_indices[i] = i-th little-endian bit of the source value."""
    kind = "bit_decompose"
    source_idx: int
    bit_indices: Tuple[int, ...]
    num_bits: int


@dataclass(frozen=True)
class LinearComputation:
    kind = "linear"
    target_idx: int
    terms: LinearCombination


@dataclass(frozen=True)
class ProductComputation:
    kind = "product"
    target_idx: int
    left_terms: LinearCombination
    right_terms: LinearCombination


@dataclass(frozen=True)
class QuotientComputation:
    kind = "quotient"
    target_idx: int
    numerator_terms: LinearCombination
    denominator_terms: LinearCombination


AuxWitnessComputation = Union[
    SubtractComputation, BitDecomposeComputation, LinearComputation, ProductComputation, QuotientComputation
]


def _terms_to_json(terms: Sequence[Term]) -> List[List[Any]]:
    return [[hex(coeff), idx] for coeff, idx in terms]


@dataclass(frozen=True)
class R1csDefinition:
    num_witnesses: int
    public_inputs: Tuple[int, ...]
    private_inputs: Tuple[int, ...]
    constraints: Tuple[R1csConstraint, ...]
    aux_witness_computations: Tuple[AuxWitnessComputation, ...] = ()

    @property
    def num_constraints(self) -> int:
        return len(self.constraints)

    def to_dict(self) -> Dict[str, Any]:
        """
        JSON layout: coefficients as hex strings, terms as [coeff, index] pairs.
        """
        comps = []
        for comp in self.aux_witness_computations:
            entry: Dict[str, Any] = {"type": comp.kind}
            for name, value in comp.__dict__.items():
                if name.endswith("terms"):
                    entry[name] = _terms_to_json(value)
                elif isinstance(value, tuple):
                    entry[name] = list(value)
                else:
                    entry[name] = value
            comps.append(entry)
        return {
            "num_witnesses": self.num_witnesses,
            "public_inputs": list(self.public_inputs),
            "private_inputs": list(self.private_inputs),
            "constraints": [
                {"a": _terms_to_json(c.a), "b": _terms_to_json(c.b), "c": _terms_to_json(c.c)}
                for c in self.constraints
            ],
            "aux_witness_computations": comps,
        }


# ----------------------------
# Builder
# ----------------------------

@dataclass
class _Binding:
    index: int
    mutable: bool


@dataclass
class _BuildState:
    next_index: int = 1
    scope: Dict[str, _Binding] = field(default_factory=dict)
    constraints: List[R1csConstraint] = field(default_factory=list)
    computations: List[AuxWitnessComputation] = field(default_factory=list)


class R1csBuilder:
    """
    Deterministic ParsedCircuit -> R1csDefinition lowering.

    Typical usage:
        r1cs = R1csBuilder().build(JsCircuitParser().parse_text(src))

    Trace events (allocations, emitted constraints) go to the injected logger
    at DEBUG level.
    """

    BACKEND = "R1CS"

    def __init__(self, field: Optional[Field] = None, comparison_bits: int = DEFAULT_COMPARISON_BITS,
                 logger: Optional[logging.Logger] = None):
        if not 1 <= int(comparison_bits) <= MAX_COMPARISON_BITS:
            raise ValueError(f"comparison_bits must be in [1, {MAX_COMPARISON_BITS}], got {comparison_bits}")
        self.field = field or BN254_FR
        self.comparison_bits = int(comparison_bits)
        self.log = logger or logging.getLogger(__name__)
        self._state = _BuildState()

    def build(self, circuit: ParsedCircuit) -> R1csDefinition:
        self._state = _BuildState()
        private_inputs = [self._declare_param(p.name) for p in circuit.private_params]
        public_inputs = [self._declare_param(p.name) for p in circuit.public_params]

        for stmt in circuit.statements:
            self._statement(stmt)

        st = self._state
        r1cs = R1csDefinition(
            num_witnesses=st.next_index,
            public_inputs=tuple(public_inputs),
            private_inputs=tuple(private_inputs),
            constraints=tuple(st.constraints),
            aux_witness_computations=tuple(st.computations),
        )
        self.log.debug("built R1CS: %d witnesses, %d constraints, %d computations",
                       r1cs.num_witnesses, r1cs.num_constraints, len(r1cs.aux_witness_computations))
        return r1cs

    # ----------------------------
    # Allocation and emission
    # ----------------------------

    def _alloc(self, label: str) -> int:
        idx = self._state.next_index
        self._state.next_index += 1
        self.log.debug("alloc w%d (%s)", idx, label)
        return idx

    def _declare_param(self, name: str) -> int:
        idx = self._alloc(name)
        self._state.scope[name] = _Binding(idx, mutable=False)
        return idx

    def _emit(self, a: Sequence[Term], b: Sequence[Term], c: Sequence[Term]) -> None:
        constraint = R1csConstraint(self._merge(a), self._merge(b), self._merge(c))
        self._state.constraints.append(constraint)
        self.log.debug("constraint #%d: %s", len(self._state.constraints) - 1, constraint)

    def _compute(self, comp: AuxWitnessComputation) -> None:
        self._state.computations.append(comp)

    def _merge(self, terms: Sequence[Term]) -> LinearCombination:
        """Reduce coefficients, sum repeated indices (first-seen order), drop zeros."""
        acc: Dict[int, int] = {}
        for coeff, idx in terms:
            acc[idx] = self.field.reduce(acc.get(idx, 0) + coeff)
        return tuple((coeff, idx) for idx, coeff in acc.items() if coeff != 0)

    def _one(self) -> List[Term]:
        return [(1, ONE_INDEX)]

    def _negate(self, terms: Sequence[Term]) -> List[Term]:
        return [(self.field.reduce(-coeff), idx) for coeff, idx in terms]

    def _lookup(self, name: str) -> _Binding:
        binding = self._state.scope.get(name)
        if binding is None:
            raise UndefinedVariableError(f"Unknown identifier '{name}'")
        return binding

    # ----------------------------
    # Statements
    # ----------------------------

    def _statement(self, stmt: Statement) -> None:
        if isinstance(stmt, AssertStmt):
            self._assert(stmt.condition)
        elif isinstance(stmt, VariableDeclaration):
            if stmt.name in self._state.scope:
                raise ParseError(f"Variable '{stmt.name}' is already declared")
            idx = self._assign_into(stmt.name, stmt.initializer)
            self._state.scope[stmt.name] = _Binding(idx, stmt.mutable)
        elif isinstance(stmt, Assignment):
            binding = self._state.scope.get(stmt.target)
            if binding is None:
                raise UndefinedVariableError(f"Assignment to undeclared variable '{stmt.target}'")
            if not binding.mutable:
                raise UndefinedVariableError(
                    f"Cannot assign to immutable variable '{stmt.target}' (declare it with the mut_ prefix)")
            # each assignment binds a fresh witness
            idx = self._assign_into(stmt.target, stmt.value)
            self._state.scope[stmt.target] = _Binding(idx, mutable=True)
        elif isinstance(stmt, IfStatement):
            raise UnsupportedFeatureError("if statement", self.BACKEND)
        elif isinstance(stmt, ForStatement):
            raise UnsupportedFeatureError("for loop", self.BACKEND)
        else:
            raise UnsupportedFeatureError(f"statement kind '{stmt.kind}'", self.BACKEND)

    def _assign_into(self, name: str, value: Expr) -> int:
        idx = self._alloc(name)
        if isinstance(value, BinaryExpr) and value.op in ("*", "+", "-", "/"):
            self._binary_into(value, idx)
        else:
            terms = self._lc(value)
            self._emit(terms, self._one(), [(1, idx)])
            self._compute(LinearComputation(idx, self._merge(terms)))
        return idx

    def _assert(self, cond: Expr) -> None:
        if isinstance(cond, BinaryExpr):
            if cond.op == "==":
                self._equality(cond.left, cond.right)
                return
            if cond.op == ">=":
                self._comparison(cond.left, cond.right, 0)
                return
            if cond.op == ">":
                self._comparison(cond.left, cond.right, -1)
                return
            if cond.op == "<=":
                self._comparison(cond.right, cond.left, 0)
                return
            if cond.op == "<":
                self._comparison(cond.right, cond.left, -1)
                return
            if cond.op in ("!=", "&&", "||"):
                raise UnsupportedFeatureError(f"operator '{cond.op}'", self.BACKEND)
            raise UnsupportedFeatureError(f"assert on a '{cond.op}' expression", self.BACKEND)
        # truthiness: value * 1 = 1
        self._emit(self._lc(cond), self._one(), self._one())

    def _equality(self, left: Expr, right: Expr) -> None:
        if _is_op(left, "*"):
            self._emit(self._lc(left.left), self._lc(left.right), self._lc(right))
        elif _is_op(right, "*"):
            self._emit(self._lc(right.left), self._lc(right.right), self._lc(left))
        elif _is_op(left, "+") or _is_op(left, "-"):
            self._emit(self._linear_binary(left), self._one(), self._lc(right))
        elif _is_op(right, "+") or _is_op(right, "-"):
            self._emit(self._linear_binary(right), self._one(), self._lc(left))
        else:
            terms = self._lc(left) + self._negate(self._lc(right))
            self._emit(terms, self._one(), [])

    def _comparison(self, a: Expr, b: Expr, offset: int) -> None:
        """
        Prove a - b + offset >= 0 by decomposing the difference into
        comparison_bits boolean witnesses.
        """
        a_idx = self._materialize(a)
        b_idx = self._materialize(b)
        diff = self._alloc("diff")
        self._compute(SubtractComputation(diff, a_idx, b_idx, offset))
        terms = [(1, a_idx), (-1, b_idx)]
        if offset:
            terms.append((offset, ONE_INDEX))
        self._emit(terms, self._one(), [(1, diff)])

        bits = tuple(self._alloc(f"bit{i}") for i in range(self.comparison_bits))
        for bit in bits:
            self._emit([(1, bit)], [(1, bit)], [(1, bit)])
        weighted = [(pow(2, i, self.field.p), bit) for i, bit in enumerate(bits)]
        self._emit(weighted, self._one(), [(1, diff)])
        self._compute(BitDecomposeComputation(diff, bits, self.comparison_bits))

    # ----------------------------
    # Expressions
    # ----------------------------

    def _lc(self, expr: Expr) -> List[Term]:
        if isinstance(expr, Identifier):
            return [(1, self._lookup(expr.name).index)]
        if isinstance(expr, Literal):
            if isinstance(expr.value, str):
                raise UnsupportedFeatureError("string literal", self.BACKEND)
            return [(self.field.reduce(int(expr.value)), ONE_INDEX)]
        if isinstance(expr, BinaryExpr):
            if expr.op in ("*", "+", "-", "/"):
                idx = self._alloc(f"t{expr.op}")
                self._binary_into(expr, idx)
                return [(1, idx)]
            raise UnsupportedFeatureError(f"operator '{expr.op}' inside an expression", self.BACKEND)
        if isinstance(expr, UnaryExpr):
            if expr.op != "-":
                raise UnsupportedFeatureError(f"unary operator '{expr.op}'", self.BACKEND)
            idx = self._alloc("neg")
            negated = self._negate(self._lc(expr.operand))
            self._emit(negated, self._one(), [(1, idx)])
            self._compute(LinearComputation(idx, self._merge(negated)))
            return [(1, idx)]
        raise UnsupportedFeatureError(f"{expr.kind} expression", self.BACKEND)

    def _binary_into(self, expr: BinaryExpr, target: int) -> None:
        if expr.op == "*":
            left, right = self._merge(self._lc(expr.left)), self._merge(self._lc(expr.right))
            self._emit(left, right, [(1, target)])
            self._compute(ProductComputation(target, left, right))
        elif expr.op == "/":
            num, den = self._merge(self._lc(expr.left)), self._merge(self._lc(expr.right))
            self._emit([(1, target)], den, num)
            self._compute(QuotientComputation(target, num, den))
        elif expr.op in ("+", "-"):
            terms = self._merge(self._linear_binary(expr))
            self._emit(terms, self._one(), [(1, target)])
            self._compute(LinearComputation(target, terms))
        else:
            raise UnsupportedFeatureError(f"operator '{expr.op}'", self.BACKEND)

    def _linear_binary(self, expr: BinaryExpr) -> List[Term]:
        left, right = self._lc(expr.left), self._lc(expr.right)
        return left + (right if expr.op == "+" else self._negate(right))

    def _materialize(self, expr: Expr) -> int:
        """Witness index holding the value of expr, allocating one if needed."""
        terms = self._merge(self._lc(expr))
        if len(terms) == 1 and terms[0][0] == 1 and terms[0][1] != ONE_INDEX:
            return terms[0][1]
        idx = self._alloc("operand")
        self._emit(terms, self._one(), [(1, idx)])
        self._compute(LinearComputation(idx, terms))
        return idx


def _is_op(expr: Expr, op: str) -> bool:
    return isinstance(expr, BinaryExpr) and expr.op == op


# Demo
if __name__ == "__main__":
    from js_parser import JsCircuitParser

    circuit = JsCircuitParser().parse_text("([minimum], [balance]) => balance >= minimum")
    r1cs = R1csBuilder(comparison_bits=8).build(circuit)
    print(r1cs.num_witnesses, r1cs.num_constraints)
