"""
gnark_codec.py

Byte encoding of BN254 points, proofs and verifying keys in the layout the
gnark-compatible on-chain verifier reads:

  Fr / Fq     32 bytes big-endian
  G1          x || y                       (64 bytes)
  G2          x.c0 || x.c1 || y.c0 || y.c1 (128 bytes)
  infinity    all zero bytes
  proof       A (G1) || B (G2) || C (G1)   (256 bytes)
  vk          alpha (G1) || beta, gamma, delta (G2) || (n+1) x G1
  public wit. u32 n || u32 0 || u32 n || n x Fr

Points use py_ecc's optimized (projective) representation.
"""

import struct
from typing import List, Sequence, Tuple

from py_ecc.optimized_bn128 import FQ, FQ2, Z1, Z2, b, b2, field_modulus, is_inf, is_on_curve, normalize

from errors import ChainFormatError, InvalidPointError

FIELD_SIZE = 32
G1_SIZE = 64
G2_SIZE = 128
PROOF_SIZE = G1_SIZE + G2_SIZE + G1_SIZE
VK_HEADER_SIZE = G1_SIZE + 3 * G2_SIZE


def _int(coeff) -> int:
    return coeff.n if hasattr(coeff, "n") else int(coeff)


def int_to_bytes32(value: int) -> bytes:
    if value < 0 or value >= 1 << 256:
        raise ChainFormatError(f"value does not fit in {FIELD_SIZE} bytes")
    return value.to_bytes(FIELD_SIZE, "big")


def bytes32_to_int(data: bytes) -> int:
    if len(data) != FIELD_SIZE:
        raise ChainFormatError(f"expected {FIELD_SIZE} bytes, got {len(data)}")
    return int.from_bytes(data, "big")


def public_input_to_hex(value: int) -> str:
    return "0x" + int_to_bytes32(value).hex()


def public_input_from_hex(text: str) -> int:
    """Parse a 0x-prefixed (or bare) hex field element string."""
    body = text[2:] if text[:2].lower() == "0x" else text
    if len(body) > 2 * FIELD_SIZE:
        raise ChainFormatError(f"public input wider than {FIELD_SIZE} bytes: {text}")
    try:
        return int(body or "0", 16)
    except ValueError as exc:
        raise ChainFormatError(f"public input is not hex: {text}") from exc


def g1_to_bytes(pt) -> bytes:
    if is_inf(pt):
        return bytes(G1_SIZE)
    x, y = normalize(pt)
    return int_to_bytes32(_int(x)) + int_to_bytes32(_int(y))


def g2_to_bytes(pt) -> bytes:
    if is_inf(pt):
        return bytes(G2_SIZE)
    x, y = normalize(pt)
    x0, x1 = (_int(c) for c in x.coeffs)
    y0, y1 = (_int(c) for c in y.coeffs)
    return b"".join(int_to_bytes32(v) for v in (x0, x1, y0, y1))


def _coords(data: bytes, count: int) -> List[int]:
    values = [bytes32_to_int(data[i * FIELD_SIZE:(i + 1) * FIELD_SIZE]) for i in range(count)]
    if any(v >= field_modulus for v in values):
        raise InvalidPointError("coordinate is not reduced modulo the base field")
    return values


def g1_from_bytes(data: bytes):
    if len(data) != G1_SIZE:
        raise ChainFormatError(f"G1 point must be {G1_SIZE} bytes, got {len(data)}")
    x, y = _coords(data, 2)
    if x == 0 and y == 0:
        return Z1
    pt = (FQ(x), FQ(y), FQ.one())
    if not is_on_curve(pt, b):
        raise InvalidPointError("G1 point is not on the curve")
    return pt


def g2_from_bytes(data: bytes):
    if len(data) != G2_SIZE:
        raise ChainFormatError(f"G2 point must be {G2_SIZE} bytes, got {len(data)}")
    x0, x1, y0, y1 = _coords(data, 4)
    if not any((x0, x1, y0, y1)):
        return Z2
    pt = (FQ2([x0, x1]), FQ2([y0, y1]), FQ2.one())
    if not is_on_curve(pt, b2):
        raise InvalidPointError("G2 point is not on the curve")
    return pt


def encode_proof(a, b_pt, c) -> bytes:
    return g1_to_bytes(a) + g2_to_bytes(b_pt) + g1_to_bytes(c)


def decode_proof(data: bytes) -> Tuple:
    if len(data) != PROOF_SIZE:
        raise ChainFormatError(f"Invalid proof size: expected {PROOF_SIZE} bytes, got {len(data)}")
    return (
        g1_from_bytes(data[:G1_SIZE]),
        g2_from_bytes(data[G1_SIZE:G1_SIZE + G2_SIZE]),
        g1_from_bytes(data[G1_SIZE + G2_SIZE:]),
    )


def encode_verifying_key(alpha_g1, beta_g2, gamma_g2, delta_g2, gamma_abc: Sequence) -> bytes:
    parts = [g1_to_bytes(alpha_g1), g2_to_bytes(beta_g2), g2_to_bytes(gamma_g2), g2_to_bytes(delta_g2)]
    parts.extend(g1_to_bytes(pt) for pt in gamma_abc)
    return b"".join(parts)


def verifying_key_size(num_public_inputs: int) -> int:
    return VK_HEADER_SIZE + (num_public_inputs + 1) * G1_SIZE


def vk_num_public_inputs(data: bytes) -> int:
    """Public-input count implied by the length of a gnark verifying key."""
    rest = len(data) - VK_HEADER_SIZE
    if rest < G1_SIZE or rest % G1_SIZE:
        raise ChainFormatError(f"Invalid verifying key size: {len(data)} bytes")
    return rest // G1_SIZE - 1


def decode_verifying_key(data: bytes) -> Tuple:
    """Returns (alpha_g1, beta_g2, gamma_g2, delta_g2, gamma_abc)."""
    n = vk_num_public_inputs(data)
    alpha = g1_from_bytes(data[:G1_SIZE])
    off = G1_SIZE
    g2s = []
    for _ in range(3):
        g2s.append(g2_from_bytes(data[off:off + G2_SIZE]))
        off += G2_SIZE
    gamma_abc = []
    for _ in range(n + 1):
        gamma_abc.append(g1_from_bytes(data[off:off + G1_SIZE]))
        off += G1_SIZE
    return (alpha, g2s[0], g2s[1], g2s[2], gamma_abc)


def public_inputs_to_bytes(public_inputs: Sequence) -> bytes:
    """Concatenated 32-byte big-endian field elements."""
    out = []
    for x in public_inputs:
        out.append(int_to_bytes32(x if isinstance(x, int) else public_input_from_hex(str(x))))
    return b"".join(out)


def public_inputs_from_bytes(data: bytes) -> List[str]:
    """Split a public-witness blob into 0x-prefixed 32-byte hex strings; a trailing partial chunk is ignored."""
    return ["0x" + data[i:i + FIELD_SIZE].hex() for i in range(0, len(data) - FIELD_SIZE + 1, FIELD_SIZE)]


PUBLIC_WITNESS_HEADER = struct.Struct(">III")


def encode_public_witness(public_inputs: Sequence) -> bytes:
    """
    gnark public-witness binary: u32 nbPublic || u32 nbSecret (0) || u32 vector
    length, all big-endian, followed by one 32-byte element per public input.
    """
    body = public_inputs_to_bytes(public_inputs)
    n = len(body) // FIELD_SIZE
    return PUBLIC_WITNESS_HEADER.pack(n, 0, n) + body


def decode_public_witness(data: bytes) -> List[str]:
    if len(data) < PUBLIC_WITNESS_HEADER.size:
        raise ChainFormatError(f"public witness too short: {len(data)} bytes")
    n_public, n_secret, length = PUBLIC_WITNESS_HEADER.unpack_from(data)
    if n_secret != 0 or length != n_public:
        raise ChainFormatError(
            f"unexpected public witness header: public={n_public} secret={n_secret} length={length}")
    body = data[PUBLIC_WITNESS_HEADER.size:]
    if len(body) != n_public * FIELD_SIZE:
        raise ChainFormatError(
            f"public witness holds {len(body)} bytes, expected {n_public * FIELD_SIZE} for {n_public} inputs")
    return public_inputs_from_bytes(body)
