"""
groth16_backend.py

Direct backend: circuit source -> R1CS -> in-process Groth16.

compile() parses the source, builds the R1CS and renders the equivalent Noir
text for reference. With eager_setup (default) the trusted setup runs at
compile time; otherwise it runs on first use. Setup is single-flight per
compiled circuit: concurrent first callers wait on a lock and share one
SetupResult, and a failed setup leaves the circuit without keys.
"""

from dataclasses import dataclass, field
import logging
import threading
from typing import Any, Dict, Optional, Sequence

from errors import CircuitError, ProvingEngineError
from groth16 import Groth16Engine
from noir_generator import generate_noir
from proving_system import (
    CircuitSource, CompiledCircuit, InputMap, ProofData, ProvingEngine, ProvingSystem, SetupResult,
)
from r1cs_builder import DEFAULT_COMPARISON_BITS, R1csBuilder, R1csDefinition
from r1cs_utils import unsatisfied_constraints
from witness import WitnessGenerator

logger = logging.getLogger(__name__)


@dataclass
class R1csCompiledCircuit(CompiledCircuit):
    r1cs: Optional[R1csDefinition] = None
    keys: Optional[SetupResult] = None
    _setup_lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def ensure_keys(self, engine: ProvingEngine, log: logging.Logger = logger) -> SetupResult:
        keys = self.keys
        if keys is not None:
            return keys
        with self._setup_lock:
            if self.keys is None:
                log.info("running trusted setup (%d constraints)", self.r1cs.num_constraints)
                try:
                    result = engine.setup(self.r1cs)
                except CircuitError:
                    raise
                except Exception as exc:
                    raise ProvingEngineError(f"setup failed: {exc}", engine=engine.name) from exc
                self.keys = result
            return self.keys


class Groth16ProvingSystem(ProvingSystem):
    """
    Groth16 over an R1CS built directly from the circuit IR. Proofs are 256
    bytes in gnark layout, suitable for on-chain verification.
    """

    name = "groth16"

    def __init__(self, engine: Optional[ProvingEngine] = None, config: Optional[Dict[str, Any]] = None,
                 logger: Optional[logging.Logger] = None):
        cfg = config or {}
        self.engine = engine or Groth16Engine()
        self.eager_setup = bool(cfg.get("groth16", {}).get("eager_setup", True))
        self.comparison_bits = int(cfg.get("r1cs", {}).get("comparison_bits", DEFAULT_COMPARISON_BITS))
        self.log = logger or logging.getLogger(__name__)

    def compile(self, source: CircuitSource, options: Optional[Dict[str, Any]] = None) -> R1csCompiledCircuit:
        opts = options or {}
        parsed = self.parse(source)
        builder = R1csBuilder(comparison_bits=opts.get("comparison_bits", self.comparison_bits), logger=self.log)
        r1cs = builder.build(parsed)
        circuit = R1csCompiledCircuit(
            parsed=parsed,
            backend=self.name,
            noir_source=generate_noir(parsed),
            r1cs=r1cs,
            metadata={"num_witnesses": r1cs.num_witnesses, "num_constraints": r1cs.num_constraints},
        )
        self.log.info("compiled circuit: %d witnesses, %d constraints", r1cs.num_witnesses, r1cs.num_constraints)
        if opts.get("eager_setup", self.eager_setup):
            circuit.ensure_keys(self.engine, self.log)
        return circuit

    def generate_proof(self, circuit: R1csCompiledCircuit, inputs: InputMap) -> ProofData:
        private_values, public_values = circuit.parsed.ordered_values(inputs)
        witness = WitnessGenerator(circuit.r1cs, logger=self.log).generate(private_values, public_values)

        failing = unsatisfied_constraints(circuit.r1cs, witness)
        if failing:
            self.log.warning("inputs violate %d constraint(s), first #%d", len(failing), failing[0])

        keys = circuit.ensure_keys(self.engine, self.log)
        try:
            proof, public_inputs = self.engine.prove(keys.proving_key, circuit.r1cs, witness)
        except CircuitError:
            raise
        except Exception as exc:
            raise ProvingEngineError(f"prove failed: {exc}", engine=self.engine.name) from exc
        return ProofData(proof=proof, public_inputs=list(public_inputs))

    def verify_proof(self, circuit: R1csCompiledCircuit, proof: bytes, public_inputs: Sequence[str]) -> bool:
        keys = circuit.ensure_keys(self.engine, self.log)
        try:
            return bool(self.engine.verify(keys.verifying_key, proof, public_inputs))
        except CircuitError:
            raise
        except Exception as exc:
            raise ProvingEngineError(f"verify failed: {exc}", engine=self.engine.name) from exc

    def get_verifying_key(self, circuit: R1csCompiledCircuit) -> bytes:
        return circuit.ensure_keys(self.engine, self.log).verifying_key
