#!/usr/bin/env python3
from __future__ import annotations

import json
import sys
import unittest
from pathlib import Path

SCRIPT_DIR = Path(__file__).resolve().parent
if str(SCRIPT_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR))

from errors import ParseError, UndefinedVariableError, UnsupportedFeatureError
from finite_field import BN254_SCALAR_MODULUS
from js_parser import JsCircuitParser
from r1cs_builder import (
    BitDecomposeComputation,
    R1csBuilder,
    R1csConstraint,
    SubtractComputation,
)
from r1cs_utils import (
    constraint_support,
    constraint_to_str,
    constraints_to_dense_matrices,
    eval_constraint,
    is_satisfied,
    unsatisfied_constraints,
)
from witness import WitnessGenerator

P = BN254_SCALAR_MODULUS


def build(source: str, bits: int = 64):
    return R1csBuilder(comparison_bits=bits).build(JsCircuitParser().parse_text(source))


class WitnessLayoutTests(unittest.TestCase):
    def test_private_parameters_precede_public(self) -> None:
        r1cs = build("([x, y], [a, b, c]) => a * b == x")
        self.assertEqual(r1cs.private_inputs, (1, 2, 3))
        self.assertEqual(r1cs.public_inputs, (4, 5))
        self.assertEqual(r1cs.num_witnesses, 6)

    def test_build_is_deterministic(self) -> None:
        source = "([minimum, expected], [balance, secret]) => { assert(secret * secret == expected); assert(balance > minimum); }"
        first = build(source, bits=16)
        second = build(source, bits=16)
        self.assertEqual(first, second)
        self.assertEqual(json.dumps(first.to_dict()), json.dumps(second.to_dict()))


class EqualityLoweringTests(unittest.TestCase):
    def test_product_shape_uses_single_constraint(self) -> None:
        r1cs = build("([expected], [secret]) => secret * secret == expected")
        self.assertEqual(r1cs.num_witnesses, 3)
        self.assertEqual(r1cs.constraints, (R1csConstraint(((1, 1),), ((1, 1),), ((1, 2),)),))
        self.assertEqual(r1cs.aux_witness_computations, ())

    def test_product_on_the_right(self) -> None:
        r1cs = build("([c], [a, b]) => c == a * b")
        self.assertEqual(r1cs.constraints, (R1csConstraint(((1, 1),), ((1, 2),), ((1, 3),)),))

    def test_sum_and_difference_shapes(self) -> None:
        add = build("([c], [a, b]) => a + b == c")
        self.assertEqual(add.constraints, (R1csConstraint(((1, 1), (1, 2)), ((1, 0),), ((1, 3),)),))
        sub = build("([c], [a, b]) => a - b == c")
        self.assertEqual(sub.constraints, (R1csConstraint(((1, 1), (P - 1, 2)), ((1, 0),), ((1, 3),)),))

    def test_generic_fallback(self) -> None:
        r1cs = build("([c], [a]) => a == c")
        self.assertEqual(r1cs.constraints, (R1csConstraint(((1, 1), (P - 1, 2)), ((1, 0),), ()),))

    def test_literals_are_constants_on_witness_zero(self) -> None:
        r1cs = build("([c], [a]) => a * 3 == c")
        self.assertEqual(r1cs.constraints, (R1csConstraint(((1, 1),), ((3, 0),), ((1, 2),)),))
        self.assertEqual(r1cs.num_witnesses, 3)

    def test_nested_expression_allocates_intermediate(self) -> None:
        r1cs = build("([c], [a, b]) => (a + b) * a == c")
        self.assertEqual(r1cs.num_witnesses, 5)
        self.assertEqual(r1cs.constraints[0], R1csConstraint(((1, 1), (1, 2)), ((1, 0),), ((1, 4),)))
        self.assertEqual(r1cs.constraints[1], R1csConstraint(((1, 4),), ((1, 1),), ((1, 3),)))


class ComparisonLoweringTests(unittest.TestCase):
    def test_greater_or_equal_decomposes_difference(self) -> None:
        r1cs = build("([minimum], [balance]) => balance >= minimum", bits=8)
        # balance=1, minimum=2, diff=3, bits 4..11
        self.assertEqual(r1cs.num_witnesses, 12)
        self.assertEqual(r1cs.num_constraints, 10)
        self.assertEqual(r1cs.constraints[0], R1csConstraint(((1, 1), (P - 1, 2)), ((1, 0),), ((1, 3),)))
        for i, bit in enumerate(range(4, 12), start=1):
            self.assertEqual(r1cs.constraints[i], R1csConstraint(((1, bit),), ((1, bit),), ((1, bit),)))
        weighted = r1cs.constraints[9]
        self.assertEqual(weighted.a, tuple((1 << i, 4 + i) for i in range(8)))
        self.assertEqual(weighted.c, ((1, 3),))
        self.assertEqual(
            r1cs.aux_witness_computations,
            (SubtractComputation(3, 1, 2, 0), BitDecomposeComputation(3, tuple(range(4, 12)), 8)),
        )

    def test_default_width_is_64_bits(self) -> None:
        r1cs = build("([minimum], [balance]) => balance >= minimum")
        self.assertEqual(r1cs.num_constraints, 66)
        self.assertEqual(r1cs.num_witnesses, 4 + 64)

    def test_strict_comparison_uses_offset(self) -> None:
        r1cs = build("([minimum], [balance]) => balance > minimum", bits=4)
        self.assertEqual(r1cs.constraints[0].a, ((1, 1), (P - 1, 2), (P - 1, 0)))
        self.assertEqual(r1cs.aux_witness_computations[0], SubtractComputation(3, 1, 2, -1))

    def test_less_than_swaps_operands(self) -> None:
        le = build("([limit], [value]) => value <= limit", bits=4)
        self.assertEqual(le.aux_witness_computations[0], SubtractComputation(3, 2, 1, 0))
        lt = build("([limit], [value]) => value < limit", bits=4)
        self.assertEqual(lt.aux_witness_computations[0], SubtractComputation(3, 2, 1, -1))

    def test_comparison_bits_range(self) -> None:
        with self.assertRaises(ValueError):
            R1csBuilder(comparison_bits=0)
        with self.assertRaises(ValueError):
            R1csBuilder(comparison_bits=253)


class UnsupportedFeatureTests(unittest.TestCase):
    def assertUnsupported(self, source: str) -> None:
        with self.assertRaises(UnsupportedFeatureError) as ctx:
            build(source)
        self.assertIn("unsupported in R1CS backend", str(ctx.exception))

    def test_operators_without_lowering(self) -> None:
        self.assertUnsupported("([a], [b]) => a != b")
        self.assertUnsupported("([a], [b]) => a == b && b == a")
        self.assertUnsupported("([a], [b]) => a == b || b == a")
        self.assertUnsupported("([a], [b]) => b % 2 == a")
        self.assertUnsupported("([a], [b]) => { assert(!b); }")

    def test_control_flow_and_structured_values(self) -> None:
        self.assertUnsupported("([a], [b]) => { if (a == 1) { assert(b == 2); } }")
        self.assertUnsupported("([a], [b]) => { for (let i = 0; i < 2; i++) { assert(b == a); } }")
        self.assertUnsupported("([a], [b]) => (a > b ? a : b) == a")
        self.assertUnsupported("([a], [b]) => b[0] == a")
        self.assertUnsupported("([a], [b]) => b.length == a")
        self.assertUnsupported("([a], [b]) => b == 'text'")

    def test_scope_errors(self) -> None:
        with self.assertRaises(UndefinedVariableError):
            build("([a], [b]) => c == a")
        with self.assertRaises(UndefinedVariableError):
            build("([a], [b]) => { let x = b; x = a; assert(x == a); }")
        with self.assertRaises(UndefinedVariableError):
            build("([a], [b]) => { mut_y = a; }")
        with self.assertRaises(ParseError):
            build("([a], [b]) => { let b = a; }")


class SatisfactionTests(unittest.TestCase):
    SOURCE = """
    ([expected, minimum], [secret, balance]) => {
        let mut_total = secret * secret;
        mut_total = mut_total + 1;
        assert(mut_total == expected + 1);
        assert(balance > minimum);
        let half = balance / 2;
        assert(half * 2 == balance);
        let neg = -secret;
        assert(neg + secret == 0);
    }
    """

    def test_valid_inputs_satisfy_every_constraint(self) -> None:
        r1cs = build(self.SOURCE, bits=16)
        witness = WitnessGenerator(r1cs).generate([10, 150], [100, 100])
        self.assertTrue(is_satisfied(r1cs, witness))
        self.assertEqual(unsatisfied_constraints(r1cs, witness), [])

    def test_wrong_inputs_violate_equality(self) -> None:
        r1cs = build(self.SOURCE, bits=16)
        witness = WitnessGenerator(r1cs).generate([11, 150], [100, 100])
        failing = unsatisfied_constraints(r1cs, witness)
        self.assertEqual(len(failing), 1)
        self.assertNotEqual(eval_constraint(r1cs.constraints[failing[0]], witness), 0)
        self.assertFalse(is_satisfied(r1cs, witness))

    def test_dense_matrices_and_rendering(self) -> None:
        r1cs = build("([c], [a, b]) => a - b == c")
        A, B, C = constraints_to_dense_matrices(r1cs)
        self.assertEqual(A.shape, (1, 4))
        self.assertEqual(list(A[0]), [0, 1, P - 1, 0])
        self.assertEqual(list(B[0]), [1, 0, 0, 0])
        self.assertEqual(constraint_to_str(r1cs.constraints[0]), "(w1 - w2) * (1) = (w3)")
        self.assertEqual(constraint_support(r1cs.constraints[0]), {0, 1, 2, 3})

    def test_json_export_uses_hex_coefficients(self) -> None:
        data = build("([minimum], [balance]) => balance >= minimum", bits=2).to_dict()
        self.assertEqual(data["num_witnesses"], 6)
        self.assertEqual(data["constraints"][0]["a"], [["0x1", 1], [hex(P - 1), 2]])
        self.assertEqual(
            [c["type"] for c in data["aux_witness_computations"]],
            ["subtract", "bit_decompose"],
        )
        self.assertEqual(data["aux_witness_computations"][1]["bit_indices"], [4, 5])


if __name__ == "__main__":
    unittest.main()
