"""
sunspot_backend.py

CLI-orchestrated backend for production circuits: nargo compiles the Noir
program, sunspot turns the ACIR into a gnark constraint system (CCS) and runs
a Groth16 setup/prove/verify over it. Proofs are ~324 bytes.

Artifact layout inside the project's target directory:
  circuit.json  circuit.gz  circuit.ccs  circuit.pk  circuit.vk  circuit.proof  circuit.pw

verify_proof() never reads circuit.pw: it writes the caller's proof and
public inputs to verify/circuit.proof and verify/circuit.pw (gnark
public-witness binary) and checks those.

The backend can also be pointed at pre-compiled circuit.json/.pk/.vk files,
in which case compile() is unavailable.
"""

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from circuit_ir import ParsedCircuit
from cli_executor import CliExecutor
from errors import CliError, ProvingEngineError
from noir_backend import is_verification_failure
from noir_generator import generate_noir
from noir_toolchain import NargoToolchain, NoirProject
from proving_system import CircuitSource, CompiledCircuit, InputMap, ProofData, ProvingSystem
from gnark_codec import decode_public_witness, encode_public_witness


@dataclass(frozen=True)
class SunspotPaths:
    work_dir: Path
    circuit_json: Path
    ccs: Path
    pk: Path
    vk: Path
    proof: Path
    public_witness: Path

    @classmethod
    def from_circuit_json(cls, circuit_json: Path, work_dir: Path, pk: Optional[Path] = None,
                          vk: Optional[Path] = None) -> "SunspotPaths":
        base = circuit_json.parent
        return cls(
            work_dir=work_dir,
            circuit_json=circuit_json,
            ccs=base / "circuit.ccs",
            pk=pk or base / "circuit.pk",
            vk=vk or base / "circuit.vk",
            proof=base / "circuit.proof",
            public_witness=base / "circuit.pw",
        )


@dataclass
class SunspotCompiledCircuit(CompiledCircuit):
    paths: Optional[SunspotPaths] = None


class SunspotProvingSystem(ProvingSystem):
    """
    Groth16 proofs through the nargo and sunspot command-line tools.

    Typical usage:
        ss = SunspotProvingSystem(config)
        circuit = ss.compile(source)
        proof = ss.generate_proof(circuit, {"secret": 10, "expected": 100})

    With pre-compiled artifacts:
        ss = SunspotProvingSystem(config, precompiled={"circuit": ..., "pk": ..., "vk": ...})
    """

    name = "sunspot"

    def __init__(self, config: Optional[Dict[str, Any]] = None, executor: Optional[CliExecutor] = None,
                 precompiled: Optional[Dict[str, str]] = None, logger: Optional[logging.Logger] = None):
        cli = (config or {}).get("cli", {})
        self.log = logger or logging.getLogger(__name__)
        self.executor = executor or CliExecutor(timeout_s=cli.get("timeout_s", 120), logger=self.log)
        self.sunspot_path = cli.get("sunspot_path", "sunspot")
        self.nargo = NargoToolchain(self.executor, cli.get("nargo_path", "nargo"))
        self.keep_artifacts = bool(cli.get("keep_artifacts", False))
        self.precompiled_paths: Optional[SunspotPaths] = None
        if precompiled:
            circuit_json = Path(precompiled["circuit"])
            # nargo execute runs in the project root, one level above target/
            work_dir = circuit_json.parent.parent if circuit_json.parent.name == "target" else circuit_json.parent
            self.precompiled_paths = SunspotPaths.from_circuit_json(
                circuit_json, work_dir, Path(precompiled["pk"]), Path(precompiled["vk"]))

    def compile(self, source: CircuitSource, options: Optional[Dict[str, Any]] = None) -> SunspotCompiledCircuit:
        if self.precompiled_paths is not None:
            raise ProvingEngineError(
                "initialized with pre-compiled circuit paths; compile() is not available. "
                "Use generate_proof() and verify_proof() directly.", engine=self.name)
        parsed = self.parse(source)
        noir_source = generate_noir(parsed)
        project = NoirProject.create(noir_source, prefix="sunspot-circuit-")

        program = self.nargo.compile(project)
        paths = SunspotPaths.from_circuit_json(program.artifact_path, project.root)
        self.executor.run(self.sunspot_path, ["compile", str(paths.circuit_json)])
        self.executor.run(self.sunspot_path, ["setup", str(paths.ccs)])
        for artifact in (paths.ccs, paths.pk, paths.vk):
            if not artifact.exists():
                raise ProvingEngineError(f"sunspot artifact not produced: {artifact}", engine=self.name)
        self.log.info("compiled sunspot circuit at %s", project.root)
        return SunspotCompiledCircuit(parsed=parsed, backend=self.name, noir_source=noir_source, paths=paths)

    def precompiled_circuit(self, parsed: ParsedCircuit) -> SunspotCompiledCircuit:
        """Compiled-circuit record over the pre-compiled artifacts."""
        if self.precompiled_paths is None:
            raise ProvingEngineError("no pre-compiled circuit paths configured", engine=self.name)
        return SunspotCompiledCircuit(parsed=parsed, backend=self.name, paths=self.precompiled_paths)

    def _paths(self, circuit: Optional[SunspotCompiledCircuit]) -> SunspotPaths:
        if circuit is not None and getattr(circuit, "paths", None) is not None:
            return circuit.paths
        if self.precompiled_paths is not None:
            return self.precompiled_paths
        raise ProvingEngineError("circuit was not compiled by the sunspot backend", engine=self.name)

    def generate_proof(self, circuit: SunspotCompiledCircuit, inputs: InputMap) -> ProofData:
        if circuit is not None and circuit.parsed is not None:
            circuit.parsed.ordered_values(inputs)
        paths = self._paths(circuit)
        witness = self.nargo.execute(NoirProject(root=paths.work_dir), inputs)
        self.executor.run(self.sunspot_path, ["prove", str(paths.circuit_json), str(witness),
                                              str(paths.ccs), str(paths.pk)])
        if not paths.proof.exists():
            raise ProvingEngineError(f"proof not produced: {paths.proof}", engine=self.name)
        public_inputs = decode_public_witness(paths.public_witness.read_bytes()) \
            if paths.public_witness.exists() else []
        return ProofData(proof=paths.proof.read_bytes(), public_inputs=public_inputs)

    def verify_proof(self, circuit: SunspotCompiledCircuit, proof: bytes, public_inputs: Sequence[str]) -> bool:
        paths = self._paths(circuit)
        verify_dir = paths.work_dir / "verify"
        verify_dir.mkdir(exist_ok=True)
        proof_path, pw_path = verify_dir / "circuit.proof", verify_dir / "circuit.pw"
        proof_path.write_bytes(bytes(proof))
        pw_path.write_bytes(encode_public_witness(public_inputs))
        try:
            self.executor.run(self.sunspot_path, ["verify", str(paths.vk), str(proof_path), str(pw_path)])
        except CliError as exc:
            if is_verification_failure(exc):
                self.log.info("sunspot rejected proof: %s", exc.stderr.strip())
                return False
            raise
        return True

    def get_verifying_key(self, circuit: SunspotCompiledCircuit) -> bytes:
        return self._paths(circuit).vk.read_bytes()

    def cleanup(self, circuit: SunspotCompiledCircuit) -> None:
        """Remove the temporary project unless keep_artifacts is set; pre-compiled files are never removed."""
        if self.keep_artifacts or circuit.paths is None or circuit.paths == self.precompiled_paths:
            return
        NoirProject(root=circuit.paths.work_dir).remove()
