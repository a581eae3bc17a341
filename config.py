"""
config.py
Default configuration and loader. Small helper to override defaults via JSON files
and a few environment variables.
"""

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict

# Default constants used by the pipeline.
DEFAULT_CONFIG: Dict[str, Any] = {
    "provider": "groth16",        # groth16 | ultrahonk | sunspot
    "chain": None,                # None | "solana"
    "export_ir_filename": "circuit.ir.json",
    "export_noir_filename": "circuit.nr",
    "export_r1cs_filename": "r1cs.json",
    "export_proof_filename": "proof.json",
    "max_top_constraints": 20,    # for summary printing
    "log_level": "INFO",
    "r1cs": {
        "comparison_bits": 64,    # width of the range proof behind <, <=, >, >=
    },
    "groth16": {
        "eager_setup": True,      # run trusted setup during compile
    },
    "cli": {
        "nargo_path": "nargo",
        "bb_path": "bb",
        "sunspot_path": "sunspot",
        "timeout_s": 120,
        "keep_artifacts": False,
    },
    "solana": {
        "lamports_per_byte": 6960,
        "network": "devnet",
    },
}

ENV_OVERRIDES = {
    "NARGO_PATH": ("cli", "nargo_path"),
    "BB_PATH": ("cli", "bb_path"),
    "SUNSPOT_PATH": ("cli", "sunspot_path"),
}


def merge_config(base: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
    # one level deep: nested sections are updated, not replaced
    for k, v in data.items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            base[k] = {**base[k], **v}
        else:
            base[k] = v
    return base


def load_config(path: str, base: Dict[str, Any] = None) -> Dict[str, Any]:
    """
    Load a JSON config file and merge it into base.

    :param path: path to JSON config file
    :param base: base configuration dictionary to update (if None use DEFAULT_CONFIG)
    :return: merged configuration dictionary
    """
    base = copy.deepcopy(base if base is not None else DEFAULT_CONFIG)
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with p.open("r", encoding="utf-8") as fh:
        data = json.load(fh)
    return merge_config(base, data)


def apply_env_overrides(cfg: Dict[str, Any], environ=None) -> Dict[str, Any]:
    """
    Honour NARGO_PATH, BB_PATH, SUNSPOT_PATH and SUNSPOT_KEEP_ARTIFACTS.
    """
    env = os.environ if environ is None else environ
    cfg = copy.deepcopy(cfg)
    for var, (section, key) in ENV_OVERRIDES.items():
        if env.get(var):
            cfg.setdefault(section, {})[key] = env[var]
    keep = env.get("SUNSPOT_KEEP_ARTIFACTS")
    if keep is not None:
        cfg.setdefault("cli", {})["keep_artifacts"] = keep.strip().lower() in ("1", "true", "yes")
    return cfg
