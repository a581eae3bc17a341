"""
noir_backend.py

Textual backend: circuit source -> Noir text -> nargo -> Barretenberg UltraHonk (bb CLI).

Proofs are large (~16 KB) but any Noir program the generator emits can be
proven, including constructs the R1CS backend rejects.

bb invocations:
  bb write_vk -b target/circuit.json -o target
  bb prove    -b target/circuit.json -w target/circuit.gz -o target
  bb verify   -k target/vk -p target/proof -i target/public_inputs
"""

from dataclasses import dataclass, field
import logging
from pathlib import Path
import threading
from typing import Any, Dict, Optional, Sequence

from cli_executor import CliExecutor
from errors import CliError, ProvingEngineError
from gnark_codec import public_inputs_from_bytes, public_inputs_to_bytes
from noir_generator import generate_noir
from noir_toolchain import CompiledProgram, NargoToolchain, NoirProject
from proving_system import CircuitSource, CompiledCircuit, InputMap, ProofData, ProvingSystem

VERIFY_FAILURE_MARKERS = ("verification failed", "invalid proof", "proof is invalid")


def is_verification_failure(error: CliError) -> bool:
    text = (error.stderr or str(error)).lower()
    return any(marker in text for marker in VERIFY_FAILURE_MARKERS)


@dataclass
class NoirCompiledCircuit(CompiledCircuit):
    project: Optional[NoirProject] = None
    program: Optional[CompiledProgram] = None
    vk_path: Optional[Path] = None
    _vk_lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


class NoirProvingSystem(ProvingSystem):
    """
    UltraHonk proofs through the nargo and bb command-line tools.
    """

    name = "ultrahonk"

    def __init__(self, config: Optional[Dict[str, Any]] = None, executor: Optional[CliExecutor] = None,
                 logger: Optional[logging.Logger] = None):
        cli = (config or {}).get("cli", {})
        self.log = logger or logging.getLogger(__name__)
        self.executor = executor or CliExecutor(timeout_s=cli.get("timeout_s", 120), logger=self.log)
        self.bb_path = cli.get("bb_path", "bb")
        self.nargo = NargoToolchain(self.executor, cli.get("nargo_path", "nargo"))
        self.keep_artifacts = bool(cli.get("keep_artifacts", False))

    def compile(self, source: CircuitSource, options: Optional[Dict[str, Any]] = None) -> NoirCompiledCircuit:
        parsed = self.parse(source)
        noir_source = generate_noir(parsed)
        project = NoirProject.create(noir_source, prefix="noir-circuit-")
        program = self.nargo.compile(project)
        self.log.info("compiled noir circuit at %s", project.root)
        return NoirCompiledCircuit(parsed=parsed, backend=self.name, noir_source=noir_source,
                                   project=project, program=program)

    def _ensure_vk(self, circuit: NoirCompiledCircuit) -> Path:
        if circuit.vk_path is not None:
            return circuit.vk_path
        with circuit._vk_lock:
            if circuit.vk_path is None:
                target = circuit.project.target_dir
                self.executor.run(self.bb_path, ["write_vk", "-b", str(circuit.program.artifact_path),
                                                 "-o", str(target)])
                vk = target / "vk"
                if not vk.exists():
                    raise ProvingEngineError(f"verification key not produced: {vk}", engine="bb")
                circuit.vk_path = vk
            return circuit.vk_path

    def generate_proof(self, circuit: NoirCompiledCircuit, inputs: InputMap) -> ProofData:
        circuit.parsed.ordered_values(inputs)
        witness = self.nargo.execute(circuit.project, inputs)
        target = circuit.project.target_dir
        self.executor.run(self.bb_path, ["prove", "-b", str(circuit.program.artifact_path),
                                         "-w", str(witness), "-o", str(target)])
        proof_path, pi_path = target / "proof", target / "public_inputs"
        if not proof_path.exists():
            raise ProvingEngineError(f"proof not produced: {proof_path}", engine="bb")
        public_inputs = public_inputs_from_bytes(pi_path.read_bytes()) if pi_path.exists() else []
        return ProofData(proof=proof_path.read_bytes(), public_inputs=public_inputs)

    def verify_proof(self, circuit: NoirCompiledCircuit, proof: bytes, public_inputs: Sequence[str]) -> bool:
        vk = self._ensure_vk(circuit)
        verify_dir = circuit.project.root / "verify"
        verify_dir.mkdir(exist_ok=True)
        proof_path, pi_path = verify_dir / "proof", verify_dir / "public_inputs"
        proof_path.write_bytes(bytes(proof))
        pi_path.write_bytes(public_inputs_to_bytes(public_inputs))
        try:
            self.executor.run(self.bb_path, ["verify", "-k", str(vk), "-p", str(proof_path), "-i", str(pi_path)])
        except CliError as exc:
            if is_verification_failure(exc):
                self.log.info("bb rejected proof: %s", exc.stderr.strip())
                return False
            raise
        return True

    def cleanup(self, circuit: NoirCompiledCircuit) -> None:
        if circuit.project is not None and not self.keep_artifacts:
            circuit.project.remove()
