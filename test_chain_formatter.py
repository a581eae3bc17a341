#!/usr/bin/env python3
from __future__ import annotations

import hashlib
import struct
import sys
import unittest
from pathlib import Path
from unittest import mock

SCRIPT_DIR = Path(__file__).resolve().parent
if str(SCRIPT_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR))

from chain_formatter import (
    CircuitMetadata,
    Network,
    SolanaFormatter,
    SolanaProofData,
    account_discriminator,
    encode_verifying_key_account,
    explorer_account_url,
    explorer_tx_url,
    vk_account_rent,
    vk_account_size,
)
from errors import ChainFormatError, CircuitError, UnsupportedFeatureError
from js_parser import JsCircuitParser
from proving_system import CompiledCircuit, ProofData, ProvingSystem
from session import CircuitSession
from sunspot_backend import SunspotProvingSystem

SQUARE = "([expected], [secret]) => { assert(secret * secret == expected); }"


class FixedKeySystem(ProvingSystem):
    """Hands out a zeroed verifying key of the requested size."""

    name = "fixed"

    def __init__(self, vk_size=None):
        self.vk_size = vk_size

    def compile(self, source, options=None):
        return CompiledCircuit(parsed=self.parse(source), backend=self.name)

    def generate_proof(self, circuit, inputs):
        raise NotImplementedError

    def verify_proof(self, circuit, proof, public_inputs):
        raise NotImplementedError

    def get_verifying_key(self, circuit):
        return None if self.vk_size is None else bytes(self.vk_size)


class AccountLayoutTests(unittest.TestCase):
    def test_single_public_input_account_is_621_bytes(self) -> None:
        self.assertEqual(vk_account_size(1), 8 + 32 + 1 + 64 + 128 * 3 + 4 + (1 + 1) * 64)
        self.assertEqual(vk_account_size(1), 621)
        self.assertEqual(vk_account_size(2), 685)
        self.assertEqual(vk_account_rent(1), 621 * 6960)
        self.assertEqual(vk_account_rent(1, lamports_per_byte=1), 621)

    def test_account_encoding(self) -> None:
        vk = bytes(range(256)) * 2 + bytes(64)
        self.assertEqual(len(vk), 576)
        authority = b"\xaa" * 32
        data = encode_verifying_key_account(vk, authority, 1)
        self.assertEqual(len(data), 621)
        self.assertEqual(data[:8], hashlib.sha256(b"account:VerifyingKeyAccount").digest()[:8])
        self.assertEqual(data[:8], account_discriminator())
        self.assertEqual(data[8:40], authority)
        self.assertEqual(data[40], 1)
        self.assertEqual(data[41:41 + 448], vk[:448])
        self.assertEqual(struct.unpack_from("<I", data, 489)[0], 2)
        self.assertEqual(data[493:], vk[448:])

    def test_account_encoding_errors(self) -> None:
        with self.assertRaises(ChainFormatError):
            encode_verifying_key_account(bytes(576), b"\x00" * 31, 1)
        with self.assertRaises(ChainFormatError):
            encode_verifying_key_account(bytes(576), b"\x00" * 32, 2)
        with self.assertRaises(ChainFormatError):
            encode_verifying_key_account(bytes(448 + 18 * 64), b"\x00" * 32, 17)

    def test_account_size_mismatch_raises(self) -> None:
        with mock.patch("chain_formatter.verifying_key_size", return_value=512):
            with self.assertRaises(ChainFormatError) as ctx:
                encode_verifying_key_account(bytes(512), b"\x00" * 32, 1)
        self.assertIn("account is 557 bytes, expected 621", str(ctx.exception))


class SolanaFormatterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.parsed = JsCircuitParser().parse_text(SQUARE)
        self.circuit = CompiledCircuit(parsed=self.parsed, backend="fixed")
        self.metadata = CircuitMetadata(num_public_inputs=1)

    def test_format_proof(self) -> None:
        formatter = SolanaFormatter(FixedKeySystem(vk_size=576))
        result = formatter.format_proof(ProofData(proof=b"\x05" * 256, public_inputs=["0x64"]), self.circuit,
                                        self.metadata)
        self.assertIsInstance(result, SolanaProofData)
        self.assertEqual(result.public_inputs_hex, ["0x" + "00" * 31 + "64"])
        self.assertEqual(result.public_inputs_bytes, [bytes(31) + b"\x64"])
        self.assertEqual(result.account_size, 621)
        self.assertEqual(result.estimated_rent, 621 * 6960)
        self.assertEqual(result.nr_public_inputs, 1)
        data = result.to_dict()
        self.assertEqual(data["verifying_key"]["nr_public_inputs"], 1)
        self.assertEqual(data["public_inputs"]["hex"], result.public_inputs_hex)

    def test_rejects_wrong_proof_size(self) -> None:
        formatter = SolanaFormatter(FixedKeySystem(vk_size=576))
        with self.assertRaises(ChainFormatError) as ctx:
            formatter.format_proof(ProofData(proof=b"\x05" * 255, public_inputs=["0x64"]), self.circuit,
                                   self.metadata)
        self.assertEqual(str(ctx.exception), "Invalid proof size: expected 256 bytes, got 255")

    def test_rejects_count_mismatch_and_missing_key(self) -> None:
        with self.assertRaises(ChainFormatError):
            SolanaFormatter(FixedKeySystem(vk_size=576)).format_proof(
                ProofData(proof=bytes(256), public_inputs=[]), self.circuit, self.metadata)
        with self.assertRaises(ChainFormatError):
            SolanaFormatter(FixedKeySystem(vk_size=640)).format_proof(
                ProofData(proof=bytes(256), public_inputs=["0x01"]), self.circuit, self.metadata)
        with self.assertRaises(ChainFormatError):
            SolanaFormatter(FixedKeySystem()).format_proof(
                ProofData(proof=bytes(256), public_inputs=["0x01"]), self.circuit, self.metadata)
        with self.assertRaises(ChainFormatError):
            SolanaFormatter(FixedKeySystem(vk_size=576)).format_proof(
                ProofData(proof=bytes(256), public_inputs=["0x01"] * 17), self.circuit,
                CircuitMetadata(num_public_inputs=17))

    def test_chain_metadata(self) -> None:
        meta = SolanaFormatter(FixedKeySystem(), lamports_per_byte=10).get_chain_metadata(2)
        self.assertEqual((meta.chain_id, meta.account_size, meta.estimated_rent), ("solana", 685, 6850))


class ExplorerUrlTests(unittest.TestCase):
    def test_cluster_suffix(self) -> None:
        self.assertEqual(explorer_tx_url(Network.DEVNET, "sig"), "https://explorer.solana.com/tx/sig?cluster=devnet")
        self.assertEqual(explorer_tx_url(Network.MAINNET, "sig"), "https://explorer.solana.com/tx/sig")
        self.assertEqual(explorer_account_url("localnet", "Acc"), "http://localhost:3000/address/Acc?cluster=localnet")


class SessionTests(unittest.TestCase):
    def test_compile_prove_and_verify_for_solana(self) -> None:
        session = CircuitSession.init(provider="groth16", chain="solana")
        session.compile(SQUARE)
        proof = session.prove({"secret": 10, "expected": 100})
        self.assertIsInstance(proof, SolanaProofData)
        self.assertEqual(len(proof.proof_bytes), 256)
        self.assertEqual(len(proof.verifying_key_bytes), 576)
        self.assertEqual(proof.account_size, 621)
        self.assertTrue(session.verify(proof))
        self.assertFalse(session.verify(proof.proof_bytes, ["0x" + "00" * 31 + "65"]))

    def test_create_proof_reports_timings(self) -> None:
        session = CircuitSession.init(provider="groth16")
        result = session.create_proof(SQUARE, [100], [10])
        self.assertTrue(result.verified)
        self.assertIsNone(result.chain_proof)
        self.assertIn("fn main(secret: Field, expected: pub Field)", result.noir_source)
        t = result.timings
        for value in (t.parse_ms, t.generate_ms, t.compile_ms, t.prove_ms, t.verify_ms):
            self.assertGreaterEqual(value, 0.0)
        self.assertGreaterEqual(t.total_ms, t.prove_ms)

    def test_requires_compiled_circuit(self) -> None:
        session = CircuitSession(FixedKeySystem())
        with self.assertRaises(CircuitError):
            session.prove({"secret": 1, "expected": 1})

    def test_unknown_chain(self) -> None:
        with self.assertRaises(CircuitError):
            CircuitSession(FixedKeySystem(), chain="ethereum")

    def test_solana_requires_in_process_groth16(self) -> None:
        with self.assertRaises(UnsupportedFeatureError):
            CircuitSession(SunspotProvingSystem(), chain="solana")
        with self.assertRaises(UnsupportedFeatureError):
            CircuitSession(FixedKeySystem(vk_size=576), chain="solana")
        with self.assertRaises(UnsupportedFeatureError):
            CircuitSession.init(provider="sunspot", chain="solana")


if __name__ == "__main__":
    unittest.main()
