"""
noir_toolchain.py

Noir project scaffolding and the nargo compile/execute boundary.

A project is a directory holding Nargo.toml and src/main.nr. `nargo compile`
writes target/circuit.json (bytecode + ABI); `nargo execute` reads
Prover.toml and writes the solved witness to target/circuit.gz.
"""

from dataclasses import dataclass
import json
import logging
from pathlib import Path
import shutil
import tempfile
from typing import Any, Dict, Mapping, Optional

from cli_executor import CliExecutor
from errors import CircuitInputError, ProvingEngineError

logger = logging.getLogger(__name__)

PACKAGE_NAME = "circuit"

NARGO_TOML = """[package]
name = "{name}"
type = "bin"
authors = [""]

[dependencies]
"""


def format_toml_value(value: Any) -> str:
    """
    Prover.toml value: decimal numbers bare, any other string quoted, lists as [a, b].
    """
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(format_toml_value(v) for v in value) + "]"
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return text
        return json.dumps(text)
    raise CircuitInputError(f"unsupported input value type: {type(value).__name__}")


def format_prover_toml(inputs: Mapping[str, Any]) -> str:
    return "".join(f"{name} = {format_toml_value(value)}\n" for name, value in inputs.items())


@dataclass
class NoirProject:
    root: Path
    name: str = PACKAGE_NAME

    @classmethod
    def create(cls, noir_source: str, prefix: str = "noir-circuit-", base_dir: Optional[str] = None) -> "NoirProject":
        root = Path(tempfile.mkdtemp(prefix=prefix, dir=base_dir))
        (root / "src").mkdir()
        (root / "Nargo.toml").write_text(NARGO_TOML.format(name=PACKAGE_NAME), encoding="utf-8")
        (root / "src" / "main.nr").write_text(noir_source, encoding="utf-8")
        logger.debug("created noir project at %s", root)
        return cls(root=root)

    @property
    def target_dir(self) -> Path:
        return self.root / "target"

    @property
    def circuit_json(self) -> Path:
        return self.target_dir / f"{self.name}.json"

    @property
    def witness_gz(self) -> Path:
        return self.target_dir / f"{self.name}.gz"

    def write_prover_toml(self, inputs: Mapping[str, Any]) -> Path:
        path = self.root / "Prover.toml"
        path.write_text(format_prover_toml(inputs), encoding="utf-8")
        return path

    def remove(self) -> None:
        shutil.rmtree(self.root, ignore_errors=True)


@dataclass(frozen=True)
class CompiledProgram:
    bytecode: str
    abi: Dict[str, Any]
    artifact_path: Path


class NargoToolchain:
    """
    compile(project) -> CompiledProgram, execute(project, inputs) -> witness path.
    """

    def __init__(self, executor: CliExecutor, nargo_path: str = "nargo"):
        self.executor = executor
        self.nargo_path = nargo_path

    def compile(self, project: NoirProject) -> CompiledProgram:
        self.executor.run(self.nargo_path, ["compile"], cwd=str(project.root))
        return self.load_program(project.circuit_json)

    @staticmethod
    def load_program(path: Path) -> CompiledProgram:
        if not path.exists():
            raise ProvingEngineError(f"compiled circuit not found: {path}", engine="nargo")
        with path.open("r", encoding="utf-8") as fh:
            artifact = json.load(fh)
        return CompiledProgram(bytecode=artifact.get("bytecode", ""), abi=artifact.get("abi", {}), artifact_path=path)

    def execute(self, project: NoirProject, inputs: Mapping[str, Any]) -> Path:
        project.write_prover_toml(inputs)
        self.executor.run(self.nargo_path, ["execute"], cwd=str(project.root))
        if not project.witness_gz.exists():
            raise ProvingEngineError(f"witness not produced: {project.witness_gz}", engine="nargo")
        return project.witness_gz
