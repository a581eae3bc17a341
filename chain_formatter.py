"""
chain_formatter.py

Chain-specific proof formatting.

SolanaFormatter turns a generic ProofData into the byte-exact records the
on-chain Groth16 verifier program consumes, and sizes the verifying-key
account:

  8-byte discriminator | 32-byte authority | 1-byte public-input count |
  alpha G1 (64) | beta, gamma, delta G2 (3 x 128) | u32 vector length |
  (n + 1) x G1 (64)

For one public input the account is 8 + 32 + 1 + 64 + 384 + 4 + 128 = 621 bytes.
"""

from abc import ABC, abstractmethod
import base64
from dataclasses import dataclass
from enum import Enum
import hashlib
import logging
import struct
from typing import Dict, List, Optional

from errors import ChainFormatError
from gnark_codec import (
    G1_SIZE, G2_SIZE, PROOF_SIZE, int_to_bytes32, public_input_from_hex, verifying_key_size,
)
from proving_system import CompiledCircuit, ProofData, ProvingSystem

logger = logging.getLogger(__name__)

DISCRIMINATOR_SIZE = 8
AUTHORITY_SIZE = 32
VEC_LEN_SIZE = 4
MAX_PUBLIC_INPUTS = 16
DEFAULT_LAMPORTS_PER_BYTE = 6960
VK_ACCOUNT_NAME = "VerifyingKeyAccount"


class Chain(str, Enum):
    SOLANA = "solana"


@dataclass(frozen=True)
class CircuitMetadata:
    num_public_inputs: int
    circuit_name: Optional[str] = None


@dataclass(frozen=True)
class ChainMetadata:
    chain_id: str
    account_size: int
    estimated_rent: int


@dataclass(frozen=True)
class SolanaProofData:
    verifying_key_base64: str
    verifying_key_bytes: bytes
    nr_public_inputs: int
    proof_base64: str
    proof_bytes: bytes
    public_inputs_hex: List[str]
    public_inputs_bytes: List[bytes]
    account_size: int
    estimated_rent: int

    def to_dict(self) -> Dict:
        return {
            "verifying_key": {"base64": self.verifying_key_base64, "nr_public_inputs": self.nr_public_inputs},
            "proof": {"base64": self.proof_base64},
            "public_inputs": {"hex": list(self.public_inputs_hex)},
            "account_size": self.account_size,
            "estimated_rent": self.estimated_rent,
        }


def vk_account_size(nr_public_inputs: int) -> int:
    fixed = DISCRIMINATOR_SIZE + AUTHORITY_SIZE + 1 + G1_SIZE + 3 * G2_SIZE + VEC_LEN_SIZE
    return fixed + (nr_public_inputs + 1) * G1_SIZE


def vk_account_rent(nr_public_inputs: int, lamports_per_byte: int = DEFAULT_LAMPORTS_PER_BYTE) -> int:
    return vk_account_size(nr_public_inputs) * lamports_per_byte


def account_discriminator(name: str = VK_ACCOUNT_NAME) -> bytes:
    """Anchor account discriminator: first 8 bytes of sha256("account:<Name>")."""
    return hashlib.sha256(f"account:{name}".encode("utf-8")).digest()[:DISCRIMINATOR_SIZE]


def encode_verifying_key_account(vk_bytes: bytes, authority: bytes, nr_public_inputs: int) -> bytes:
    """
    Serialise the verifying-key account exactly as the on-chain program stores it.
    """
    if len(authority) != AUTHORITY_SIZE:
        raise ChainFormatError(f"authority must be {AUTHORITY_SIZE} bytes, got {len(authority)}")
    _check_public_input_count(nr_public_inputs)
    if len(vk_bytes) != verifying_key_size(nr_public_inputs):
        raise ChainFormatError(
            f"verifying key is {len(vk_bytes)} bytes, expected {verifying_key_size(nr_public_inputs)} "
            f"for {nr_public_inputs} public inputs")
    header_end = G1_SIZE + 3 * G2_SIZE
    data = b"".join([
        account_discriminator(),
        bytes(authority),
        struct.pack("<B", nr_public_inputs),
        vk_bytes[:header_end],
        struct.pack("<I", nr_public_inputs + 1),
        vk_bytes[header_end:],
    ])
    if len(data) != vk_account_size(nr_public_inputs):
        raise ChainFormatError(
            f"verifying key account is {len(data)} bytes, expected {vk_account_size(nr_public_inputs)}")
    return data


def _check_public_input_count(n: int) -> None:
    if n < 0 or n > MAX_PUBLIC_INPUTS:
        raise ChainFormatError(f"public input count {n} outside supported range 0..{MAX_PUBLIC_INPUTS}")


def public_input_bytes(value: str) -> bytes:
    return int_to_bytes32(public_input_from_hex(value))


class ChainFormatter(ABC):
    chain_id = ""

    @abstractmethod
    def format_proof(self, proof: ProofData, circuit: CompiledCircuit, metadata: CircuitMetadata):
        ...

    @abstractmethod
    def get_chain_metadata(self, public_input_count: int) -> ChainMetadata:
        ...


class SolanaFormatter(ChainFormatter):
    """
    Solana Groth16 formatting. The proving system supplies the verifying key
    in gnark layout, which only Groth16ProvingSystem produces.
    """

    chain_id = Chain.SOLANA.value

    def __init__(self, proving_system: ProvingSystem, lamports_per_byte: int = DEFAULT_LAMPORTS_PER_BYTE):
        self.proving_system = proving_system
        self.lamports_per_byte = lamports_per_byte

    def format_proof(self, proof: ProofData, circuit: CompiledCircuit, metadata: CircuitMetadata) -> SolanaProofData:
        n = metadata.num_public_inputs
        _check_public_input_count(n)
        if len(proof.public_inputs) != n:
            raise ChainFormatError(f"expected {n} public inputs, proof carries {len(proof.public_inputs)}")
        if len(proof.proof) != PROOF_SIZE:
            raise ChainFormatError(f"Invalid proof size: expected {PROOF_SIZE} bytes, got {len(proof.proof)}")

        vk = self.proving_system.get_verifying_key(circuit)
        if vk is None:
            raise ChainFormatError(f"{self.proving_system.name} backend does not expose a gnark verifying key")
        if len(vk) != verifying_key_size(n):
            raise ChainFormatError(f"verifying key is {len(vk)} bytes, expected {verifying_key_size(n)}")

        pi_bytes = [public_input_bytes(x) for x in proof.public_inputs]
        pi_hex = ["0x" + b.hex() for b in pi_bytes]
        meta = self.get_chain_metadata(n)
        logger.debug("formatted solana proof: %d public inputs, account %d bytes", n, meta.account_size)
        return SolanaProofData(
            verifying_key_base64=base64.b64encode(vk).decode("ascii"),
            verifying_key_bytes=vk,
            nr_public_inputs=n,
            proof_base64=base64.b64encode(proof.proof).decode("ascii"),
            proof_bytes=proof.proof,
            public_inputs_hex=pi_hex,
            public_inputs_bytes=pi_bytes,
            account_size=meta.account_size,
            estimated_rent=meta.estimated_rent,
        )

    def get_chain_metadata(self, public_input_count: int) -> ChainMetadata:
        return ChainMetadata(
            chain_id=self.chain_id,
            account_size=vk_account_size(public_input_count),
            estimated_rent=vk_account_rent(public_input_count, self.lamports_per_byte),
        )


# ----------------------------
# Networks
# ----------------------------

class Network(str, Enum):
    DEVNET = "devnet"
    TESTNET = "testnet"
    MAINNET = "mainnet-beta"
    LOCALNET = "localnet"


VERIFIER_PROGRAM_ID = "EYhRED7EuMyyVjx57aDXUD9h6ArnEKng64qtz8999KrS"

NETWORK_CONFIG: Dict[Network, Dict[str, str]] = {
    Network.DEVNET: {"rpc_url": "https://api.devnet.solana.com", "program_id": VERIFIER_PROGRAM_ID,
                     "explorer_url": "https://explorer.solana.com"},
    Network.TESTNET: {"rpc_url": "https://api.testnet.solana.com", "program_id": VERIFIER_PROGRAM_ID,
                      "explorer_url": "https://explorer.solana.com"},
    Network.MAINNET: {"rpc_url": "https://api.mainnet-beta.solana.com", "program_id": VERIFIER_PROGRAM_ID,
                      "explorer_url": "https://explorer.solana.com"},
    Network.LOCALNET: {"rpc_url": "http://localhost:8899", "program_id": VERIFIER_PROGRAM_ID,
                       "explorer_url": "http://localhost:3000"},
}


def _explorer_url(network: Network, kind: str, ident: str) -> str:
    network = Network(network)
    cluster = "" if network == Network.MAINNET else f"?cluster={network.value}"
    return f"{NETWORK_CONFIG[network]['explorer_url']}/{kind}/{ident}{cluster}"


def explorer_tx_url(network: Network, signature: str) -> str:
    return _explorer_url(network, "tx", signature)


def explorer_account_url(network: Network, address: str) -> str:
    return _explorer_url(network, "address", address)


# Demo
if __name__ == "__main__":
    for n in (1, 2, 16):
        print(n, vk_account_size(n), vk_account_rent(n))
    print(explorer_tx_url(Network.DEVNET, "5sig"))
