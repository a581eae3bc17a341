#!/usr/bin/env python3
from __future__ import annotations

import sys
import tempfile
import unittest
from pathlib import Path

SCRIPT_DIR = Path(__file__).resolve().parent
if str(SCRIPT_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR))

from circuit_ir import (
    AssertStmt,
    Assignment,
    BinaryExpr,
    CallExpr,
    CircuitParam,
    ForStatement,
    Identifier,
    IfExpr,
    IfStatement,
    Literal,
    MemberExpr,
    UnaryExpr,
    VariableDeclaration,
    ir_to_dict,
)
from errors import CircuitInputError, ParseError, UndefinedVariableError
from js_parser import JsCircuitParser, parse_number, strip_mut


def parse(source: str):
    return JsCircuitParser().parse_text(source)


class ParameterTests(unittest.TestCase):
    def test_public_then_private_patterns_keep_positions(self) -> None:
        circuit = parse("([expected, minimum], [secret]) => secret * secret == expected")
        self.assertEqual(
            circuit.public_params,
            (CircuitParam("expected", 0), CircuitParam("minimum", 1)),
        )
        self.assertEqual(circuit.private_params, (CircuitParam("secret", 0),))
        self.assertEqual(circuit.num_public_inputs, 2)
        self.assertEqual(circuit.param_names(), ["secret", "expected", "minimum"])

    def test_expression_body_is_implicit_assert(self) -> None:
        circuit = parse("([expected], [secret]) => secret * secret == expected")
        self.assertEqual(
            circuit.statements,
            (
                AssertStmt(
                    BinaryExpr(
                        "==",
                        BinaryExpr("*", Identifier("secret"), Identifier("secret")),
                        Identifier("expected"),
                    )
                ),
            ),
        )

    def test_function_declaration_form(self) -> None:
        circuit = parse("function check([a], [b]) { assert(a == b); }")
        self.assertEqual(len(circuit.statements), 1)
        self.assertEqual(circuit.public_params[0].name, "a")

    def test_wrong_parameter_count_is_rejected(self) -> None:
        with self.assertRaises(ParseError) as ctx:
            parse("([a], [b], [c]) => a == b")
        self.assertIn("exactly 2 parameters", str(ctx.exception))
        with self.assertRaises(ParseError):
            parse("x => x == 1")

    def test_plain_parameter_is_rejected(self) -> None:
        with self.assertRaises(ParseError) as ctx:
            parse("(a, [b]) => a == b")
        self.assertIn("array destructuring pattern", str(ctx.exception))

    def test_duplicate_parameter_is_rejected(self) -> None:
        with self.assertRaises(ParseError) as ctx:
            parse("([a], [a]) => a == a")
        self.assertIn("Duplicate parameter name 'a'", str(ctx.exception))

    def test_input_map_and_ordered_values(self) -> None:
        circuit = parse("([expected], [secret, salt]) => secret * salt == expected")
        inputs = circuit.input_map([100], [10, 10])
        self.assertEqual(inputs, {"secret": 10, "salt": 10, "expected": 100})
        self.assertEqual(circuit.ordered_values(inputs), ([10, 10], [100]))
        with self.assertRaises(CircuitInputError):
            circuit.input_map([100], [10])
        with self.assertRaises(CircuitInputError):
            circuit.ordered_values({"secret": 1, "salt": 2})
        with self.assertRaises(CircuitInputError):
            circuit.ordered_values({"secret": 1, "salt": 2, "expected": 3, "extra": 4})


class StatementTests(unittest.TestCase):
    def test_mut_prefix_is_stripped_everywhere(self) -> None:
        circuit = parse(
            """
            ([expected], [secret]) => {
                let mut_total = secret * secret;
                mut_total = mut_total + 1;
                assert(mut_total == expected);
            }
            """
        )
        decl, assign, check = circuit.statements
        self.assertEqual(
            decl,
            VariableDeclaration("total", True, BinaryExpr("*", Identifier("secret"), Identifier("secret"))),
        )
        self.assertIsInstance(assign, Assignment)
        self.assertEqual(assign.target, "total")
        self.assertEqual(assign.value, BinaryExpr("+", Identifier("total"), Literal(1)))
        self.assertEqual(check.condition.left, Identifier("total"))

    def test_declaration_requires_initializer(self) -> None:
        with self.assertRaises(ParseError) as ctx:
            parse("([a], [b]) => { let x; assert(a == b); }")
        self.assertIn("must have an initializer", str(ctx.exception))

    def test_assert_message_must_be_string(self) -> None:
        circuit = parse("([a], [b]) => { assert(a == b, 'values differ'); }")
        self.assertEqual(circuit.statements[0].message, "values differ")
        with self.assertRaises(ParseError) as ctx:
            parse("([a], [b]) => { assert(a == b, 5); }")
        self.assertIn("string literal", str(ctx.exception))

    def test_compound_and_increment_statements_desugar(self) -> None:
        circuit = parse("([a], [b]) => { let mut_x = b; mut_x += a; mut_x++; assert(mut_x == a); }")
        _, add, inc, _ = circuit.statements
        self.assertEqual(add.value, BinaryExpr("+", Identifier("x"), Identifier("a")))
        self.assertEqual(inc.value, BinaryExpr("+", Identifier("x"), Literal(1)))

    def test_if_else_statement(self) -> None:
        circuit = parse(
            """
            ([a], [b]) => {
                if (a == 1) { assert(b == 2); } else { assert(b == 3); }
            }
            """
        )
        (stmt,) = circuit.statements
        self.assertIsInstance(stmt, IfStatement)
        self.assertEqual(len(stmt.consequent), 1)
        self.assertEqual(len(stmt.alternate), 1)

    def test_unsupported_statements_fail_fast(self) -> None:
        with self.assertRaises(ParseError) as ctx:
            parse("([a], [b]) => { while (a < b) { a++; } }")
        self.assertIn("while loop", str(ctx.exception))
        with self.assertRaises(ParseError) as ctx:
            parse("([a], [b]) => { return a; }")
        self.assertIn("return", str(ctx.exception))
        with self.assertRaises(ParseError) as ctx:
            parse("([a], [b]) => { a * b; }")
        self.assertIn("Unsupported expression statement", str(ctx.exception))

    def test_syntax_error_reports_position(self) -> None:
        with self.assertRaises(ParseError) as ctx:
            parse("([a], [b]) => {\n  assert(a == );\n}")
        self.assertTrue(str(ctx.exception).startswith("Syntax error"))
        self.assertEqual(ctx.exception.line, 2)


class ForLoopTests(unittest.TestCase):
    def test_canonical_loops_are_accepted(self) -> None:
        for update in ("i++", "++i", "i = i + 1"):
            circuit = parse(f"([n], [x]) => {{ for (let i = 0; i < 4; {update}) {{ assert(x >= i); }} }}")
            (loop,) = circuit.statements
            self.assertIsInstance(loop, ForStatement)
            self.assertEqual(loop.variable, "i")
            self.assertEqual(loop.start, Literal(0))
            self.assertEqual(loop.end, Literal(4))
            self.assertFalse(loop.inclusive)
            self.assertEqual(len(loop.body), 1)

    def test_inclusive_bound(self) -> None:
        circuit = parse("([n], [x]) => { for (let i = 1; i <= n; i++) { assert(x >= i); } }")
        self.assertTrue(circuit.statements[0].inclusive)
        self.assertEqual(circuit.statements[0].end, Identifier("n"))

    def test_malformed_loops_are_rejected(self) -> None:
        cases = {
            "for (i = 0; i < 4; i++) { }": "init must be a variable declaration",
            "for (let i = 0; i > 4; i++) { }": "must use < or <= operator",
            "for (let i = 0; n < 4; i++) { }": "must compare the loop variable",
            "for (let i = 0; i < 4; i += 2) { }": "update must be",
            "for (let i = 0; i < 4; i = i + 2) { }": "update must be",
            "for (let i = 0; ; i++) { }": "test must compare",
        }
        for loop, message in cases.items():
            with self.subTest(loop=loop):
                with self.assertRaises(ParseError) as ctx:
                    parse(f"([n], [x]) => {{ {loop} }}")
                self.assertIn(message, str(ctx.exception))


class ExpressionTests(unittest.TestCase):
    def expr(self, text: str):
        return parse(f"([a, arr], [b]) => {text}").statements[0].condition

    def test_length_becomes_len_call(self) -> None:
        self.assertEqual(
            self.expr("arr.length == a"),
            BinaryExpr("==", CallExpr(Identifier("arr"), method="len", args=()), Identifier("a")),
        )

    def test_index_ternary_and_negation(self) -> None:
        self.assertEqual(self.expr("arr[0] == a").left, MemberExpr(Identifier("arr"), Literal(0)))
        self.assertIsInstance(self.expr("(a > b ? a : b) == a").left, IfExpr)
        self.assertEqual(self.expr("-5 == a").left, Literal(-5))
        self.assertEqual(self.expr("-b == a").left, UnaryExpr("-", Identifier("b")))

    def test_precedence_and_strict_equality(self) -> None:
        self.assertEqual(
            self.expr("a + b * 2 === a"),
            BinaryExpr(
                "==",
                BinaryExpr("+", Identifier("a"), BinaryExpr("*", Identifier("b"), Literal(2))),
                Identifier("a"),
            ),
        )
        self.assertEqual(self.expr("a != b && b < a").op, "&&")

    def test_numeric_literal_forms(self) -> None:
        self.assertEqual(parse_number("0x10"), 16)
        self.assertEqual(parse_number("123n"), 123)
        self.assertEqual(self.expr("a == 0xff").right, Literal(255))

    def test_unary_plus_is_rejected(self) -> None:
        with self.assertRaises(ParseError):
            self.expr("+a == b")

    def test_strip_mut(self) -> None:
        self.assertEqual(strip_mut("mut_x"), ("x", True))
        self.assertEqual(strip_mut("mut_"), ("mut_", False))
        self.assertEqual(strip_mut("x"), ("x", False))


class ScopeTests(unittest.TestCase):
    def test_unknown_identifier_reports_line(self) -> None:
        with self.assertRaises(UndefinedVariableError) as ctx:
            parse("([a], [b]) => {\n  assert(a == b);\n  assert(c == a);\n}")
        self.assertEqual(ctx.exception.line, 3)
        self.assertIn("Unknown identifier 'c'", str(ctx.exception))

    def test_assignments_need_a_mutable_binding(self) -> None:
        with self.assertRaises(UndefinedVariableError):
            parse("([a], [b]) => { mut_y = a; }")
        with self.assertRaises(UndefinedVariableError) as ctx:
            parse("([a], [b]) => { let x = b; x = a; }")
        self.assertIn("immutable variable 'x'", str(ctx.exception))
        with self.assertRaises(UndefinedVariableError):
            parse("([a], [b]) => { a += 1; }")
        with self.assertRaises(UndefinedVariableError):
            parse("([n], [x]) => { for (let i = 0; i < n; i++) { i = x; } }")

    def test_redeclaration_in_the_same_scope(self) -> None:
        with self.assertRaises(ParseError) as ctx:
            parse("([a], [b]) => { let b = a; }")
        self.assertIn("'b' is already declared", str(ctx.exception))
        with self.assertRaises(ParseError):
            parse("([a], [b]) => { let x = a; let x = b; }")
        with self.assertRaises(UndefinedVariableError):
            parse("([a], [b]) => { let x = x; }")

    def test_block_and_loop_scoping(self) -> None:
        with self.assertRaises(UndefinedVariableError):
            parse("([a], [b]) => { if (a == 1) { let t = b; } assert(t == b); }")
        with self.assertRaises(UndefinedVariableError):
            parse("([n], [x]) => { for (let i = 0; i < n; i++) { } assert(i == x); }")
        circuit = parse(
            """
            ([n], [x]) => {
                let mut_acc = 0;
                for (let i = 0; i < n; i++) {
                    let step = x + i;
                    mut_acc = mut_acc + step;
                }
                if (n == 0) { let t = x; assert(t == x); } else { let t = n; assert(t == n); }
                assert(mut_acc == n);
            }
            """
        )
        self.assertEqual(len(circuit.statements), 4)

    def test_function_calls_are_not_variables(self) -> None:
        condition = parse("([a], [b]) => hash(b) == a").statements[0].condition
        self.assertEqual(condition.left, CallExpr(Identifier("hash"), method=None, args=(Identifier("b"),)))
        with self.assertRaises(UndefinedVariableError):
            parse("([a], [b]) => hash(c) == a")


class IrExportTests(unittest.TestCase):
    def test_ir_to_dict_tags_node_kinds(self) -> None:
        data = ir_to_dict(parse("([expected], [secret]) => secret * secret == expected"))
        self.assertEqual(data["public_params"], [{"name": "expected", "index": 0}])
        stmt = data["statements"][0]
        self.assertEqual(stmt["kind"], "assert")
        self.assertEqual(stmt["condition"]["kind"], "binary")
        self.assertEqual(stmt["condition"]["left"]["op"], "*")

    def test_parse_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "square.js"
            path.write_text("([y], [x]) => x * x == y\n", encoding="utf-8")
            circuit = JsCircuitParser().parse_file(path)
        self.assertEqual(circuit.param_names(), ["x", "y"])


if __name__ == "__main__":
    unittest.main()
