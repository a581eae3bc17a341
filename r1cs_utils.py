"""
r1cs_utils.py

Utility functions for inspecting an R1csDefinition: dense matrices,
constraint evaluation, satisfaction checks and human-readable rendering.

Matrices use numpy object arrays so entries stay exact Python ints; all
results are reduced modulo the field prime.
"""

from typing import List, Mapping, Sequence, Set, Tuple

import numpy as np

from finite_field import BN254_SCALAR_MODULUS
from r1cs_builder import ONE_INDEX, R1csConstraint, R1csDefinition, Term


def rows_to_dense(rows: Sequence[Sequence[Term]], n: int) -> np.ndarray:
    """One dense object-dtype row per linear combination."""
    M = np.zeros((len(rows), n), dtype=object)
    for i, terms in enumerate(rows):
        for coeff, idx in terms:
            M[i, idx] = (M[i, idx] + coeff) % BN254_SCALAR_MODULUS
    return M


def constraints_to_dense_matrices(r1cs: R1csDefinition) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Convert sparse constraints into dense matrices A, B, C.

    Returns:
        A, B, C: numpy arrays of shape (m_constraints, num_witnesses)
    """
    n = r1cs.num_witnesses
    A = rows_to_dense([c.a for c in r1cs.constraints], n)
    B = rows_to_dense([c.b for c in r1cs.constraints], n)
    C = rows_to_dense([c.c for c in r1cs.constraints], n)
    return A, B, C


def witness_vector(r1cs: R1csDefinition, witness: Mapping[int, int]) -> np.ndarray:
    return np.array([witness[i] for i in range(r1cs.num_witnesses)], dtype=object)


def eval_linear_form(terms: Sequence[Term], witness: Mapping[int, int], p: int = BN254_SCALAR_MODULUS) -> int:
    return sum(coeff * witness[idx] for coeff, idx in terms) % p


def eval_constraint(c: R1csConstraint, witness: Mapping[int, int], p: int = BN254_SCALAR_MODULUS) -> int:
    """
    Residual (A.w)(B.w) - (C.w) mod p; zero when the constraint holds.
    """
    a = eval_linear_form(c.a, witness, p)
    b = eval_linear_form(c.b, witness, p)
    cc = eval_linear_form(c.c, witness, p)
    return (a * b - cc) % p


def unsatisfied_constraints(r1cs: R1csDefinition, witness: Mapping[int, int],
                            p: int = BN254_SCALAR_MODULUS) -> List[int]:
    """Indices of constraints the witness violates (vectorised with numpy)."""
    if not r1cs.constraints:
        return []
    A, B, C = constraints_to_dense_matrices(r1cs)
    w = witness_vector(r1cs, witness)
    residual = (A.dot(w) * B.dot(w) - C.dot(w)) % p
    return [int(i) for i in np.nonzero(residual != 0)[0]]


def is_satisfied(r1cs: R1csDefinition, witness: Mapping[int, int], p: int = BN254_SCALAR_MODULUS) -> bool:
    return witness.get(ONE_INDEX) == 1 and not unsatisfied_constraints(r1cs, witness, p)


def constraint_support(c: R1csConstraint) -> Set[int]:
    """
    Witness indices that appear with a nonzero coefficient in any of A, B, C.
    """
    return {idx for terms in (c.a, c.b, c.c) for coeff, idx in terms if coeff}


def linear_form_to_str(terms: Sequence[Term], p: int = BN254_SCALAR_MODULUS) -> str:
    """
    Render [(1, 3), (p-1, 4)] as "w3 - w4"; witness 0 renders as a constant.
    """
    if not terms:
        return "0"
    parts = []
    for coeff, idx in terms:
        signed = coeff - p if coeff > p // 2 else coeff
        if idx == ONE_INDEX:
            body = str(abs(signed))
        elif abs(signed) == 1:
            body = f"w{idx}"
        else:
            body = f"{abs(signed)}*w{idx}"
        if not parts:
            parts.append(f"-{body}" if signed < 0 else body)
        else:
            parts.append(f"- {body}" if signed < 0 else f"+ {body}")
    return " ".join(parts)


def constraint_to_str(c: R1csConstraint) -> str:
    return f"({linear_form_to_str(c.a)}) * ({linear_form_to_str(c.b)}) = ({linear_form_to_str(c.c)})"
