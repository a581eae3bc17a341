#!/usr/bin/env python3
from __future__ import annotations

import io
import json
import sys
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

SCRIPT_DIR = Path(__file__).resolve().parent
if str(SCRIPT_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR))

from cli import main
from config import DEFAULT_CONFIG, apply_env_overrides, load_config
from errors import UnsupportedFeatureError
from runner import run_pipeline
from utils import read_json, source_fingerprint, write_json_atomic

SQUARE = "([expected], [secret]) => {\n    assert(secret * secret == expected);\n}\n"
BRANCHING = "([a], [b]) => {\n    if (a == 1) { assert(b == 2); }\n}\n"


class ConfigTests(unittest.TestCase):
    def test_load_config_merges_sections(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.json"
            path.write_text(json.dumps({"provider": "sunspot", "cli": {"timeout_s": 5}}), encoding="utf-8")
            cfg = load_config(str(path))
        self.assertEqual(cfg["provider"], "sunspot")
        self.assertEqual(cfg["cli"]["timeout_s"], 5)
        self.assertEqual(cfg["cli"]["nargo_path"], "nargo")
        self.assertEqual(DEFAULT_CONFIG["cli"]["timeout_s"], 120)

    def test_missing_config_file(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_config("/nonexistent/config.json")

    def test_environment_overrides(self) -> None:
        cfg = apply_env_overrides(
            DEFAULT_CONFIG,
            environ={"NARGO_PATH": "/opt/nargo", "BB_PATH": "", "SUNSPOT_KEEP_ARTIFACTS": "true"},
        )
        self.assertEqual(cfg["cli"]["nargo_path"], "/opt/nargo")
        self.assertEqual(cfg["cli"]["bb_path"], "bb")
        self.assertTrue(cfg["cli"]["keep_artifacts"])
        self.assertFalse(DEFAULT_CONFIG["cli"]["keep_artifacts"])


class UtilsTests(unittest.TestCase):
    def test_atomic_json_round_trip(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nested" / "data.json"
            write_json_atomic(str(path), {"b": 2, "a": 1})
            self.assertEqual(read_json(str(path)), {"a": 1, "b": 2})
            self.assertEqual([p.name for p in path.parent.iterdir()], ["data.json"])
            self.assertIsNone(read_json(str(Path(tmpdir) / "missing.json")))

    def test_fingerprint_ignores_line_endings(self) -> None:
        self.assertEqual(source_fingerprint("a\r\nb\n"), source_fingerprint("a\nb"))
        self.assertEqual(len(source_fingerprint("a")), 16)


class RunnerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.dir = Path(self.tmp.name)

    def write(self, name: str, text: str) -> Path:
        path = self.dir / name
        path.write_text(text, encoding="utf-8")
        return path

    def test_exports_ir_noir_and_r1cs(self) -> None:
        src = self.write("square.js", SQUARE)
        out = io.StringIO()
        with redirect_stdout(out):
            written = run_pipeline(str(src), out_dir=str(self.dir / "out"))
        self.assertEqual(set(written), {"ir", "noir", "r1cs"})
        r1cs = read_json(written["r1cs"])
        self.assertEqual(r1cs["num_witnesses"], 3)
        self.assertEqual(read_json(written["ir"])["statements"][0]["kind"], "assert")
        self.assertTrue(Path(written["noir"]).read_text().startswith("fn main(secret: Field"))
        self.assertIn("[0] (w1) * (w1) = (w2)", out.getvalue())

    def test_r1cs_export_skipped_for_textual_backends(self) -> None:
        src = self.write("branch.js", BRANCHING)
        written = run_pipeline(str(src), out_dir=str(self.dir / "out"), config={"provider": "ultrahonk"}, quiet=True)
        self.assertEqual(set(written), {"ir", "noir"})
        with self.assertRaises(UnsupportedFeatureError):
            run_pipeline(str(src), out_dir=str(self.dir / "out2"), quiet=True)

    def test_prove_with_inputs_file(self) -> None:
        src = self.write("square.js", SQUARE)
        inputs = self.write("inputs.json", json.dumps({"public": [100], "private": [10]}))
        written = run_pipeline(str(src), out_dir=str(self.dir / "out"), quiet=True, inputs_path=str(inputs),
                               config={"chain": "solana"})
        self.assertTrue(written["verified"])
        record = read_json(written["proof"])
        self.assertEqual(record["backend"], "groth16")
        self.assertTrue(record["verified"])
        self.assertEqual(record["circuit"], source_fingerprint(SQUARE))
        self.assertEqual(record["chain"]["id"], "solana")
        self.assertEqual(record["chain"]["account_size"], 621)
        self.assertEqual(record["chain"]["network"], "devnet")
        self.assertEqual(record["chain"]["rpc_url"], "https://api.devnet.solana.com")
        self.assertEqual(set(record["timings_ms"]),
                         {"parse_ms", "generate_ms", "compile_ms", "prove_ms", "verify_ms", "total_ms"})


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.dir = Path(self.tmp.name)

    def test_missing_input_exits_2(self) -> None:
        err = io.StringIO()
        with redirect_stderr(err), self.assertRaises(SystemExit) as ctx:
            main(["--input", str(self.dir / "missing.js"), "--quiet"])
        self.assertEqual(ctx.exception.code, 2)
        self.assertIn("input file not found", err.getvalue())

    def test_parse_error_exits_1(self) -> None:
        src = self.dir / "bad.js"
        src.write_text("([a], [b], [c]) => a == b\n", encoding="utf-8")
        err = io.StringIO()
        with redirect_stderr(err), self.assertRaises(SystemExit) as ctx:
            main(["--input", str(src), "--out-dir", str(self.dir / "out"), "--quiet"])
        self.assertEqual(ctx.exception.code, 1)
        self.assertIn("exactly 2 parameters", err.getvalue())

    def test_successful_export(self) -> None:
        src = self.dir / "square.js"
        src.write_text(SQUARE, encoding="utf-8")
        main(["-i", str(src), "-o", str(self.dir / "out"), "--quiet"])
        self.assertTrue((self.dir / "out" / "circuit.nr").exists())
        self.assertTrue((self.dir / "out" / "r1cs.json").exists())


if __name__ == "__main__":
    unittest.main()
