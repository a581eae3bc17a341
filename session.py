"""
session.py

CircuitSession: the high-level entry point tying a proving backend to an
optional target chain.

    session = CircuitSession.init(provider="groth16", chain="solana")
    session.compile("([expected], [secret]) => secret * secret == expected")
    proof = session.prove({"secret": 10, "expected": 100})

create_proof() runs the whole pipeline (parse, Noir generation, compile,
input mapping, prove, verify) and reports per-stage timings.
"""

from dataclasses import dataclass, field
import logging
import time
from typing import Any, Dict, Optional, Sequence, Union

from backend_selector import CHAIN_COMPATIBLE, create_proving_system
from chain_formatter import Chain, ChainFormatter, CircuitMetadata, SolanaFormatter, SolanaProofData
from config import DEFAULT_CONFIG
from errors import CircuitError, UnsupportedFeatureError
from js_parser import JsCircuitParser
from noir_generator import generate_noir
from proving_system import CompiledCircuit, InputMap, ProofData, ProvingSystem

logger = logging.getLogger(__name__)


@dataclass
class ProofTimings:
    parse_ms: float = 0.0
    generate_ms: float = 0.0
    compile_ms: float = 0.0
    prove_ms: float = 0.0
    verify_ms: float = 0.0
    total_ms: float = 0.0


@dataclass
class ProofResult:
    proof: ProofData
    verified: bool
    noir_source: str
    timings: ProofTimings = field(default_factory=ProofTimings)
    chain_proof: Optional[SolanaProofData] = None


def _ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000.0, 3)


class CircuitSession:
    """
    Holds one proving system, the most recently compiled circuit and an optional chain formatter.
    """

    def __init__(self, proving_system: ProvingSystem, chain: Optional[str] = None,
                 config: Optional[Dict[str, Any]] = None):
        self.config = config or DEFAULT_CONFIG
        self.proving_system = proving_system
        try:
            self.chain = Chain(chain).value if chain else None
        except ValueError as exc:
            raise CircuitError(f"unknown chain '{chain}'") from exc
        self.formatters: Dict[str, ChainFormatter] = {}
        if self.chain == Chain.SOLANA.value:
            if proving_system.name not in CHAIN_COMPATIBLE[self.chain]:
                raise UnsupportedFeatureError(f"{self.chain} chain formatting", proving_system.name)
            lamports = self.config.get("solana", {}).get("lamports_per_byte", 6960)
            self.formatters[self.chain] = SolanaFormatter(proving_system, lamports_per_byte=lamports)
        self.circuit: Optional[CompiledCircuit] = None

    @classmethod
    def init(cls, provider: Optional[str] = None, chain: Optional[str] = None,
             config: Optional[Dict[str, Any]] = None) -> "CircuitSession":
        cfg = config or DEFAULT_CONFIG
        system = create_proving_system(cfg, prefer=provider, chain=chain)
        logger.info("session using %s backend%s", system.name, f" for {chain}" if chain else "")
        return cls(system, chain=chain, config=cfg)

    def compile(self, source: str, options: Optional[Dict[str, Any]] = None) -> CompiledCircuit:
        self.circuit = self.proving_system.compile(source, options)
        return self.circuit

    def _require_circuit(self) -> CompiledCircuit:
        if self.circuit is None:
            raise CircuitError("no circuit compiled; call compile() first")
        return self.circuit

    def prove(self, inputs: InputMap) -> Union[ProofData, SolanaProofData]:
        """Raw ProofData, or the chain-formatted record when a chain is set."""
        circuit = self._require_circuit()
        proof = self.proving_system.generate_proof(circuit, inputs)
        if self.chain is None:
            return proof
        return self.format_for_chain(proof)

    def format_for_chain(self, proof: ProofData) -> SolanaProofData:
        circuit = self._require_circuit()
        formatter = self.formatters[self.chain]
        return formatter.format_proof(proof, circuit, CircuitMetadata(num_public_inputs=circuit.num_public_inputs))

    def verify(self, proof: Union[bytes, ProofData, SolanaProofData], public_inputs: Optional[Sequence[str]] = None) -> bool:
        circuit = self._require_circuit()
        if isinstance(proof, SolanaProofData):
            proof_bytes, public_inputs = proof.proof_bytes, proof.public_inputs_hex
        elif isinstance(proof, ProofData):
            proof_bytes, public_inputs = proof.proof, proof.public_inputs
        else:
            proof_bytes = proof
        return self.proving_system.verify_proof(circuit, proof_bytes, list(public_inputs or []))

    def create_proof(self, source: str, public_values: Sequence[Any], private_values: Sequence[Any]) -> ProofResult:
        timings = ProofTimings()
        start_total = time.perf_counter()

        t = time.perf_counter()
        parsed = JsCircuitParser().parse_text(source)
        timings.parse_ms = _ms(t)

        t = time.perf_counter()
        noir_source = generate_noir(parsed)
        timings.generate_ms = _ms(t)

        t = time.perf_counter()
        self.circuit = self.proving_system.compile(parsed)
        timings.compile_ms = _ms(t)

        inputs = parsed.input_map(public_values, private_values)

        t = time.perf_counter()
        proof = self.proving_system.generate_proof(self.circuit, inputs)
        timings.prove_ms = _ms(t)

        t = time.perf_counter()
        verified = self.proving_system.verify_proof(self.circuit, proof.proof, proof.public_inputs)
        timings.verify_ms = _ms(t)
        timings.total_ms = _ms(start_total)

        chain_proof = self.format_for_chain(proof) if self.chain else None
        logger.info("proof created in %.1f ms (verified=%s)", timings.total_ms, verified)
        return ProofResult(proof=proof, verified=verified, noir_source=noir_source,
                           timings=timings, chain_proof=chain_proof)
