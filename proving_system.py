"""
proving_system.py

The backend-agnostic proving contract.

Every backend implements compile / generate_proof / verify_proof so callers
never branch on the backend. Backends that drive a cryptographic engine
in-process do so through the ProvingEngine boundary (setup / prove / verify).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from circuit_ir import ParsedCircuit
from js_parser import JsCircuitParser

InputMap = Mapping[str, Any]
CircuitSource = Union[str, ParsedCircuit]


@dataclass(frozen=True)
class SetupResult:
    """Key material from a trusted setup, stored together so it is never half-populated."""
    proving_key: bytes
    verifying_key: bytes


@dataclass(frozen=True)
class ProofData:
    proof: bytes
    public_inputs: List[str]


@dataclass
class CompiledCircuit:
    """Base compiled-circuit record; backends subclass it with their artifacts."""
    parsed: ParsedCircuit
    backend: str
    noir_source: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def num_public_inputs(self) -> int:
        return self.parsed.num_public_inputs


class ProvingEngine(ABC):
    """Cryptographic engine boundary consumed by in-process backends."""

    name = "engine"

    @abstractmethod
    def setup(self, constraint_system: Any) -> SetupResult:
        ...

    @abstractmethod
    def prove(self, proving_key: bytes, constraint_system: Any, witness: Mapping[int, int]) -> Tuple[bytes, List[str]]:
        ...

    @abstractmethod
    def verify(self, verifying_key: bytes, proof: bytes, public_inputs: Sequence[str]) -> bool:
        ...


class ProvingSystem(ABC):
    """
    Uniform three-method contract implemented by every proving backend.
    """

    name = "base"

    def parse(self, source: CircuitSource) -> ParsedCircuit:
        if isinstance(source, ParsedCircuit):
            return source
        return JsCircuitParser().parse_text(source)

    @abstractmethod
    def compile(self, source: CircuitSource, options: Optional[Dict[str, Any]] = None) -> CompiledCircuit:
        ...

    @abstractmethod
    def generate_proof(self, circuit: CompiledCircuit, inputs: InputMap) -> ProofData:
        ...

    @abstractmethod
    def verify_proof(self, circuit: CompiledCircuit, proof: bytes, public_inputs: Sequence[str]) -> bool:
        ...

    def get_verifying_key(self, circuit: CompiledCircuit) -> Optional[bytes]:
        """Verifying key bytes in gnark layout, for backends that have one."""
        return None
