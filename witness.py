"""
witness.py

Witness generation for circuits built by r1cs_builder.

The Noir toolchain numbers parameter witnesses from 0, private parameters
first. The R1CS reserves index 0 for the constant 1, so every toolchain index
i maps to R1CS index i + 1. WitnessGenerator starts from the toolchain-ordered
parameter values, shifts them into R1CS positions and then replays the
builder's witness computations in emission order.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from errors import CircuitInputError, WitnessComputationError
from finite_field import BN254_FR, Field
from r1cs_builder import (
    ONE_INDEX, AuxWitnessComputation, BitDecomposeComputation, LinearComputation, ProductComputation,
    QuotientComputation, R1csDefinition, SubtractComputation, Term,
)


def decompose_bits(value: int, num_bits: int) -> List[int]:
    """
    Little-endian bits of value. Raises WitnessComputationError unless
    0 <= value < 2**num_bits.
    """
    if value < 0:
        raise WitnessComputationError(f"cannot decompose negative value {value} into {num_bits} bits")
    if value >= 1 << num_bits:
        raise WitnessComputationError(f"value {value} does not fit in {num_bits} bits")
    return [(value >> i) & 1 for i in range(num_bits)]


def recompose_bits(bits: Sequence[int]) -> int:
    return sum(int(b) << i for i, b in enumerate(bits))


def toolchain_witness(private_values: Sequence[int], public_values: Sequence[int]) -> Dict[int, int]:
    """Parameter witnesses as the Noir toolchain numbers them: 0-based, private first."""
    ordered = list(private_values) + list(public_values)
    return {i: v for i, v in enumerate(ordered)}


def align_toolchain_witness(witness: Mapping[int, int]) -> Dict[int, int]:
    """Shift a 0-based toolchain witness into R1CS positions (index + 1)."""
    return {int(i) + 1: v for i, v in witness.items()}


class WitnessGenerator:
    """
    Build the full R1CS witness for one proof request.

    Typical usage:
        witness = WitnessGenerator(r1cs).generate(private_values=[10], public_values=[100])
    """

    def __init__(self, r1cs: R1csDefinition, field: Optional[Field] = None,
                 logger: Optional[logging.Logger] = None):
        self.r1cs = r1cs
        self.field = field or BN254_FR
        self.log = logger or logging.getLogger(__name__)

    def generate(self, private_values: Sequence[Any], public_values: Sequence[Any]) -> Dict[int, int]:
        r1cs = self.r1cs
        if len(private_values) != len(r1cs.private_inputs):
            raise CircuitInputError(
                f"Expected {len(r1cs.private_inputs)} private inputs, got {len(private_values)}")
        if len(public_values) != len(r1cs.public_inputs):
            raise CircuitInputError(
                f"Expected {len(r1cs.public_inputs)} public inputs, got {len(public_values)}")

        try:
            priv = [self.field.parse(v).to_int() for v in private_values]
            pub = [self.field.parse(v).to_int() for v in public_values]
        except (TypeError, ValueError) as exc:
            raise CircuitInputError(f"Invalid input value: {exc}") from exc

        witness = align_toolchain_witness(toolchain_witness(priv, pub))
        expected = list(r1cs.private_inputs) + list(r1cs.public_inputs)
        if sorted(witness) != sorted(expected):
            raise WitnessComputationError(
                f"parameter witness indices {sorted(witness)} do not match circuit layout {expected}")
        witness[ONE_INDEX] = 1

        for comp in r1cs.aux_witness_computations:
            self._apply(comp, witness)

        missing = [i for i in range(r1cs.num_witnesses) if i not in witness]
        if missing:
            raise WitnessComputationError(f"Missing witness value for index {missing[0]}")
        self.log.debug("generated witness with %d values", len(witness))
        return witness

    def to_vector(self, witness: Mapping[int, int]) -> List[int]:
        return [witness[i] for i in range(self.r1cs.num_witnesses)]

    # ----------------------------
    # Computations
    # ----------------------------

    def _eval(self, terms: Sequence[Term], witness: Mapping[int, int]) -> int:
        try:
            return sum(coeff * witness[idx] for coeff, idx in terms) % self.field.p
        except KeyError as exc:
            raise WitnessComputationError(f"witness index {exc.args[0]} used before it was computed") from exc

    def _apply(self, comp: AuxWitnessComputation, witness: Dict[int, int]) -> None:
        p = self.field.p
        if isinstance(comp, LinearComputation):
            witness[comp.target_idx] = self._eval(comp.terms, witness)
        elif isinstance(comp, ProductComputation):
            witness[comp.target_idx] = self._eval(comp.left_terms, witness) * self._eval(comp.right_terms, witness) % p
        elif isinstance(comp, QuotientComputation):
            den = self._eval(comp.denominator_terms, witness)
            if den == 0:
                raise WitnessComputationError(f"division by zero computing witness {comp.target_idx}")
            witness[comp.target_idx] = self._eval(comp.numerator_terms, witness) * self.field.inv(den) % p
        elif isinstance(comp, SubtractComputation):
            left, right = witness[comp.left_idx], witness[comp.right_idx]
            diff = left - right + comp.offset
            if diff < 0:
                raise WitnessComputationError(
                    f"comparison does not hold: negative difference {diff} "
                    f"(w{comp.left_idx}={left}, w{comp.right_idx}={right}, offset={comp.offset})")
            witness[comp.target_idx] = diff % p
        elif isinstance(comp, BitDecomposeComputation):
            bits = decompose_bits(witness[comp.source_idx], comp.num_bits)
            for idx, bit in zip(comp.bit_indices, bits):
                witness[idx] = bit
        else:
            raise WitnessComputationError(f"unknown witness computation {comp!r}")
