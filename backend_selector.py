"""
backend_selector.py

Choose and construct a proving backend.

  - "groth16"   in-process R1CS Groth16 (always available)
  - "ultrahonk" nargo + bb on PATH
  - "sunspot"   nargo + sunspot on PATH

Availability can be forced with BACKEND_AVAILABLE=groth16,sunspot (comma list).
Solana formatting needs the in-process Groth16 verifying key (gnark layout,
448 + 64(n+1) bytes), so a solana chain narrows the choice to groth16.
"""

import logging
import os
from typing import Any, Dict, Optional

from cli_executor import CliExecutor
from errors import UnsupportedFeatureError
from groth16_backend import Groth16ProvingSystem
from noir_backend import NoirProvingSystem
from proving_system import ProvingSystem
from sunspot_backend import SunspotProvingSystem

logger = logging.getLogger(__name__)

BACKENDS = ("groth16", "ultrahonk", "sunspot")
CHAIN_COMPATIBLE = {"solana": ("groth16",)}


class BackendSelector:
    """
    Typical usage:
        sel = BackendSelector(config)
        system = sel.create(sel.choose_backend(prefer="groth16", chain="solana"))
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}

    def available_backends(self) -> Dict[str, bool]:
        env = os.environ.get("BACKEND_AVAILABLE")
        if env:
            forced = {s.strip().lower() for s in env.split(",") if s.strip()}
            return {name: name in forced or name == "groth16" for name in BACKENDS}
        cli = self.config.get("cli", {})
        nargo = CliExecutor.available(cli.get("nargo_path", "nargo"))
        return {
            "groth16": True,
            "ultrahonk": nargo and CliExecutor.available(cli.get("bb_path", "bb")),
            "sunspot": nargo and CliExecutor.available(cli.get("sunspot_path", "sunspot")),
        }

    def choose_backend(self, prefer: Optional[str] = None, chain: Optional[str] = None) -> str:
        """
        Rules:
          - prefer must be a known backend and, if a chain is set, compatible with it;
          - an unavailable preferred backend falls back to groth16 with a warning;
          - no preference -> groth16.
        """
        allowed = CHAIN_COMPATIBLE.get(chain, BACKENDS) if chain else BACKENDS
        if not prefer:
            return "groth16"
        pref = prefer.lower()
        if pref not in BACKENDS:
            raise ValueError(f"unknown backend '{prefer}', expected one of {', '.join(BACKENDS)}")
        if pref not in allowed:
            raise UnsupportedFeatureError(f"{chain} chain formatting", pref)
        if not self.available_backends().get(pref):
            logger.warning("backend %s not available, falling back to groth16", pref)
            return "groth16"
        return pref

    def create(self, name: str, **kwargs) -> ProvingSystem:
        if name == "groth16":
            return Groth16ProvingSystem(config=self.config, **kwargs)
        if name == "ultrahonk":
            return NoirProvingSystem(config=self.config, **kwargs)
        if name == "sunspot":
            return SunspotProvingSystem(config=self.config, **kwargs)
        raise ValueError(f"unknown backend '{name}'")


def create_proving_system(config: Dict[str, Any], prefer: Optional[str] = None,
                          chain: Optional[str] = None) -> ProvingSystem:
    sel = BackendSelector(config)
    return sel.create(sel.choose_backend(prefer=prefer or config.get("provider"), chain=chain))
