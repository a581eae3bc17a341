#!/usr/bin/env python3
"""
cli.py
Command-line entrypoint: compile a restricted-JS circuit to Noir and R1CS, and
optionally prove/verify it with the selected backend.
"""

import argparse
import logging
import sys
from pathlib import Path

from config import DEFAULT_CONFIG, apply_env_overrides, load_config
from errors import CircuitError
from runner import run_pipeline
from utils import setup_basic_logger


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Compile a JS circuit to Noir and R1CS, and optionally prove it."
    )
    p.add_argument(
        "--input",
        "-i",
        required=True,
        help="Path to the circuit source (.js) file.",
    )
    p.add_argument(
        "--out-dir",
        "-o",
        default="out",
        help="Directory to write outputs. Default: ./out",
    )
    p.add_argument(
        "--config",
        "-c",
        default=None,
        help="Optional JSON config file to override defaults.",
    )
    p.add_argument(
        "--inputs",
        default=None,
        help='JSON file {"public": [...], "private": [...]}; when given, a proof is generated and verified.',
    )
    p.add_argument(
        "--provider",
        choices=("groth16", "ultrahonk", "sunspot"),
        default=None,
        help="Proving backend (overrides config).",
    )
    p.add_argument(
        "--chain",
        choices=("solana",),
        default=None,
        help="Format the proof for an on-chain verifier.",
    )
    p.add_argument(
        "--quiet",
        action="store_true",
        help="Minimize console output.",
    )
    p.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging.",
    )
    return p


def main(argv=None):
    argv = argv if argv is not None else sys.argv[1:]
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    cfg = DEFAULT_CONFIG.copy()
    if args.config:
        cfg = load_config(args.config, base=cfg)
    cfg = apply_env_overrides(cfg)
    if args.provider:
        cfg["provider"] = args.provider
    if args.chain:
        cfg["chain"] = args.chain

    level = logging.DEBUG if args.verbose else logging.WARNING if args.quiet else getattr(
        logging, str(cfg.get("log_level", "INFO")).upper(), logging.INFO)
    setup_basic_logger("", level=level)

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"ERROR: input file not found: {input_path}", file=sys.stderr)
        sys.exit(2)

    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    try:
        result = run_pipeline(str(input_path), out_dir=str(out_dir), config=cfg, quiet=args.quiet,
                              inputs_path=args.inputs)
    except CircuitError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        sys.exit(1)
    if result.get("verified") is False:
        sys.exit(1)


if __name__ == "__main__":
    main()
