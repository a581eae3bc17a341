"""
runner.py
High-level pipeline runner. Parses a circuit file, writes the IR, the Noir
source and (when the circuit is R1CS-lowerable) the R1CS JSON, and optionally
proves and verifies with a JSON inputs file of the form

    {"public": [100], "private": [10]}
"""

import base64
import copy
from dataclasses import asdict
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from chain_formatter import NETWORK_CONFIG, Network
from circuit_ir import ir_to_dict
from config import DEFAULT_CONFIG, merge_config
from errors import UnsupportedFeatureError
from js_parser import JsCircuitParser
from noir_generator import generate_noir
from r1cs_builder import R1csBuilder, R1csDefinition
from r1cs_utils import constraint_to_str
from session import CircuitSession
from utils import read_json, source_fingerprint, timestamp_iso, write_json_atomic

logger = logging.getLogger(__name__)


def run_pipeline(input_path: str, out_dir: str = "out", config: Dict[str, Any] = None, quiet: bool = False,
                 inputs_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Run the parse + export (+ prove) pipeline.

    :param input_path: path to the circuit source file
    :param out_dir: directory to write outputs
    :param config: configuration dictionary
    :param quiet: if True, suppress verbose printing
    :param inputs_path: optional JSON file with public/private input arrays
    :return: dictionary of written artifact paths (and proof summary when proving)
    """
    cfg = merge_config(copy.deepcopy(DEFAULT_CONFIG), config or {})

    input_path = Path(input_path)
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    written: Dict[str, Any] = {}

    if not quiet:
        print(f"[runner] Parsing {input_path} ...")
    source = input_path.read_text(encoding="utf-8")
    parsed = JsCircuitParser().parse_text(source)

    ir_path = out / cfg.get("export_ir_filename", "circuit.ir.json")
    write_json_atomic(str(ir_path), ir_to_dict(parsed))
    written["ir"] = str(ir_path)

    noir_path = out / cfg.get("export_noir_filename", "circuit.nr")
    noir_path.write_text(generate_noir(parsed), encoding="utf-8")
    written["noir"] = str(noir_path)

    r1cs = None
    try:
        r1cs = R1csBuilder(comparison_bits=cfg.get("r1cs", {}).get("comparison_bits", 64)).build(parsed)
    except UnsupportedFeatureError as exc:
        if cfg.get("provider", "groth16") == "groth16":
            raise
        logger.info("R1CS export skipped: %s", exc)
    if r1cs is not None:
        r1cs_path = out / cfg.get("export_r1cs_filename", "r1cs.json")
        write_json_atomic(str(r1cs_path), r1cs.to_dict())
        written["r1cs"] = str(r1cs_path)

    if not quiet:
        print(f"[runner] Wrote IR to: {ir_path}")
        print(f"[runner] Wrote Noir source to: {noir_path}")
        if r1cs is not None:
            print_summary(r1cs, cfg)

    if inputs_path:
        data = read_json(inputs_path)
        if data is None:
            raise FileNotFoundError(f"Inputs file not found: {inputs_path}")
        session = CircuitSession.init(provider=cfg.get("provider"), chain=cfg.get("chain"), config=cfg)
        result = session.create_proof(source, data.get("public", []), data.get("private", []))
        record = {
            "backend": session.proving_system.name,
            "circuit": source_fingerprint(source),
            "created_at": timestamp_iso(),
            "proof": base64.b64encode(result.proof.proof).decode("ascii"),
            "public_inputs": result.proof.public_inputs,
            "verified": result.verified,
            "timings_ms": asdict(result.timings),
        }
        if result.chain_proof is not None:
            network = Network(cfg.get("solana", {}).get("network", Network.DEVNET.value))
            record["chain"] = {"id": session.chain, "network": network.value,
                               "rpc_url": NETWORK_CONFIG[network]["rpc_url"], **result.chain_proof.to_dict()}
        proof_path = out / cfg.get("export_proof_filename", "proof.json")
        write_json_atomic(str(proof_path), record)
        written["proof"] = str(proof_path)
        written["verified"] = result.verified
        if not quiet:
            print(f"[runner] Proof ({len(result.proof.proof)} bytes, verified={result.verified}) "
                  f"written to: {proof_path}")
    return written


def print_summary(r1cs: R1csDefinition, cfg: Dict[str, Any]) -> None:
    """
    Print a compact summary of witness layout and constraints.
    """
    top_n = cfg.get("max_top_constraints", 20)

    print("=== R1CS Summary ===")
    print(f"Witnesses: {r1cs.num_witnesses}")
    print(f"Private inputs: {list(r1cs.private_inputs)}")
    print(f"Public inputs: {list(r1cs.public_inputs)}")
    print(f"Constraints: {r1cs.num_constraints}")
    print()
    print("First constraints (up to {}):".format(top_n))
    for i, c in enumerate(r1cs.constraints[:top_n]):
        print(f"  [{i}] {constraint_to_str(c)}")
    print("====================")
