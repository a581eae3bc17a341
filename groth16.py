"""
groth16.py

In-process Groth16 prover/verifier over BN254, built on py_ecc.

The R1CS is turned into a QAP over the evaluation domain {1, ..., N}. Besides
the circuit constraints, one input-consistency row `x_i * 0 = 0` is appended
for witness 0 and every public input so their u_i polynomials are linearly
independent.

Key and proof encodings follow gnark_codec. The proving key carries a small
header: num_witnesses, domain size, instance count and instance indices
(big-endian u32) followed by the query points.

NOT AUDITED: this engine is for development and testing. It performs a fresh,
single-party trusted setup.
"""

from dataclasses import dataclass
import logging
import struct
from typing import List, Mapping, Sequence, Tuple

import numpy as np
from py_ecc.optimized_bn128 import G1, G2, Z1, Z2, add, curve_order, is_inf, multiply, neg, pairing

from errors import ChainFormatError, InvalidPointError, ProvingEngineError
from finite_field import BN254_FR
from gnark_codec import (
    G1_SIZE, G2_SIZE, decode_proof, decode_verifying_key, encode_proof, encode_verifying_key,
    g1_from_bytes, g1_to_bytes, g2_from_bytes, g2_to_bytes, public_input_from_hex, public_input_to_hex,
)
from proving_system import ProvingEngine, SetupResult
from r1cs_builder import ONE_INDEX, R1csDefinition
from r1cs_utils import rows_to_dense


R = curve_order

_HEADER = struct.Struct(">III")
_U32 = struct.Struct(">I")


# ----------------------------
# Polynomial helpers (coefficients low -> high, mod R)
# ----------------------------

def vanishing_poly(n: int) -> List[int]:
    """Z(x) = (x - 1)(x - 2)...(x - n)."""
    poly = [1]
    for j in range(1, n + 1):
        nxt = [0] * (len(poly) + 1)
        for i, c in enumerate(poly):
            nxt[i + 1] = (nxt[i + 1] + c) % R
            nxt[i] = (nxt[i] - j * c) % R
        poly = nxt
    return poly


def _div_linear(poly: Sequence[int], root: int) -> List[int]:
    """poly / (x - root) by synthetic division; poly must be divisible."""
    n = len(poly) - 1
    q = [0] * n
    carry = 0
    for i in range(n, 0, -1):
        carry = (poly[i] + carry * root) % R
        q[i - 1] = carry
    return q


def _domain_denominators(n: int) -> List[int]:
    """prod_{k != j} (j - k) for j = 1..n."""
    fact = [1] * (n + 1)
    for i in range(1, n + 1):
        fact[i] = fact[i - 1] * i % R
    out = []
    for j in range(1, n + 1):
        d = fact[j - 1] * fact[n - j] % R
        if (n - j) % 2:
            d = (-d) % R
        out.append(d)
    return out


def interpolate(evals: Sequence[int]) -> List[int]:
    """Coefficients of the unique polynomial with p(j) = evals[j-1] on the domain."""
    n = len(evals)
    z = vanishing_poly(n)
    denoms = _domain_denominators(n)
    result = [0] * n
    for j, y in enumerate(evals, start=1):
        if y % R == 0:
            continue
        q = _div_linear(z, j)
        scale = y * BN254_FR.inv(denoms[j - 1]) % R
        for i in range(n):
            result[i] = (result[i] + scale * q[i]) % R
    return result


def poly_mul(a: Sequence[int], b: Sequence[int]) -> List[int]:
    out = [0] * (len(a) + len(b) - 1)
    for i, x in enumerate(a):
        if x == 0:
            continue
        for j, y in enumerate(b):
            out[i + j] = (out[i + j] + x * y) % R
    return out


def poly_divmod_monic(num: Sequence[int], den: Sequence[int]) -> Tuple[List[int], List[int]]:
    num = [c % R for c in num]
    dn = len(den) - 1
    if len(num) <= dn:
        return [0], num
    q = [0] * (len(num) - dn)
    for i in range(len(num) - 1, dn - 1, -1):
        coef = num[i]
        if coef:
            q[i - dn] = coef
            for k in range(dn + 1):
                num[i - dn + k] = (num[i - dn + k] - coef * den[k]) % R
    return q, num[:dn]


def lagrange_at(n: int, x: int) -> List[int]:
    """[L_1(x), ..., L_n(x)] for the domain {1..n}; x must lie outside it."""
    z = 1
    for j in range(1, n + 1):
        z = z * (x - j) % R
    denoms = _domain_denominators(n)
    return [z * BN254_FR.inv((x - j) * denoms[j - 1] % R) % R for j in range(1, n + 1)]


# ----------------------------
# Curve helpers
# ----------------------------

def _msm(points: Sequence, scalars: Sequence[int], zero):
    acc = zero
    for pt, k in zip(points, scalars):
        k %= R
        if k and not is_inf(pt):
            acc = add(acc, multiply(pt, k))
    return acc


def _g1(k: int):
    k %= R
    return multiply(G1, k) if k else Z1


def _g2(k: int):
    k %= R
    return multiply(G2, k) if k else Z2


# ----------------------------
# QAP
# ----------------------------

def instance_indices(r1cs: R1csDefinition) -> List[int]:
    return [ONE_INDEX] + list(r1cs.public_inputs)


def qap_matrices(r1cs: R1csDefinition) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    rows_a = [c.a for c in r1cs.constraints]
    rows_b = [c.b for c in r1cs.constraints]
    rows_c = [c.c for c in r1cs.constraints]
    for idx in instance_indices(r1cs):
        rows_a.append(((1, idx),))
        rows_b.append(())
        rows_c.append(())
    n = r1cs.num_witnesses
    return rows_to_dense(rows_a, n), rows_to_dense(rows_b, n), rows_to_dense(rows_c, n)


@dataclass
class ProvingKey:
    num_witnesses: int
    domain_size: int
    instance: List[int]
    alpha_g1: tuple
    beta_g1: tuple
    beta_g2: tuple
    delta_g1: tuple
    delta_g2: tuple
    a_query: List[tuple]
    b_g1_query: List[tuple]
    b_g2_query: List[tuple]
    h_query: List[tuple]
    l_query: List[tuple]

    def to_bytes(self) -> bytes:
        parts = [_HEADER.pack(self.num_witnesses, self.domain_size, len(self.instance))]
        parts.extend(_U32.pack(i) for i in self.instance)
        parts.extend([g1_to_bytes(self.alpha_g1), g1_to_bytes(self.beta_g1), g2_to_bytes(self.beta_g2),
                      g1_to_bytes(self.delta_g1), g2_to_bytes(self.delta_g2)])
        parts.extend(g1_to_bytes(p) for p in self.a_query)
        parts.extend(g1_to_bytes(p) for p in self.b_g1_query)
        parts.extend(g2_to_bytes(p) for p in self.b_g2_query)
        parts.extend(g1_to_bytes(p) for p in self.h_query)
        parts.extend(g1_to_bytes(p) for p in self.l_query)
        return b"".join(parts)

    @classmethod
    def from_bytes(cls, data: bytes) -> "ProvingKey":
        try:
            n, domain, n_inst = _HEADER.unpack_from(data, 0)
            off = _HEADER.size
            instance = [_U32.unpack_from(data, off + 4 * i)[0] for i in range(n_inst)]
            off += 4 * n_inst
        except struct.error as exc:
            raise ProvingEngineError("truncated proving key header", engine="groth16") from exc

        expected = off + 3 * G1_SIZE + 2 * G2_SIZE + n * (2 * G1_SIZE + G2_SIZE) + (domain - 1) * G1_SIZE + n * G1_SIZE
        if len(data) != expected:
            raise ProvingEngineError(f"proving key is {len(data)} bytes, expected {expected}", engine="groth16")

        def take_g1(count):
            nonlocal off
            pts = [g1_from_bytes(data[off + i * G1_SIZE:off + (i + 1) * G1_SIZE]) for i in range(count)]
            off += count * G1_SIZE
            return pts

        def take_g2(count):
            nonlocal off
            pts = [g2_from_bytes(data[off + i * G2_SIZE:off + (i + 1) * G2_SIZE]) for i in range(count)]
            off += count * G2_SIZE
            return pts

        alpha_g1, beta_g1 = take_g1(2)
        (beta_g2,) = take_g2(1)
        (delta_g1,) = take_g1(1)
        (delta_g2,) = take_g2(1)
        return cls(
            num_witnesses=n, domain_size=domain, instance=instance,
            alpha_g1=alpha_g1, beta_g1=beta_g1, beta_g2=beta_g2, delta_g1=delta_g1, delta_g2=delta_g2,
            a_query=take_g1(n), b_g1_query=take_g1(n), b_g2_query=take_g2(n),
            h_query=take_g1(domain - 1), l_query=take_g1(n),
        )


def _public_value(value) -> int:
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text[:2].lower() == "0x":
        return public_input_from_hex(text)
    return int(text, 10)


class Groth16Engine(ProvingEngine):
    """
    Groth16 setup/prove/verify over an R1csDefinition.

    Typical usage:
        engine = Groth16Engine()
        keys = engine.setup(r1cs)
        proof, public_inputs = engine.prove(keys.proving_key, r1cs, witness)
        ok = engine.verify(keys.verifying_key, proof, public_inputs)
    """

    name = "groth16"

    def __init__(self, logger: logging.Logger = None):
        self.log = logger or logging.getLogger(__name__)

    def setup(self, r1cs: R1csDefinition) -> SetupResult:
        A, B, C = qap_matrices(r1cs)
        domain = A.shape[0]
        n = r1cs.num_witnesses
        instance = instance_indices(r1cs)

        tau = BN254_FR.random_element(nonzero=True).to_int()
        while 1 <= tau <= domain:
            tau = BN254_FR.random_element(nonzero=True).to_int()
        alpha, beta, gamma, delta = (BN254_FR.random_element(nonzero=True).to_int() for _ in range(4))
        gamma_inv, delta_inv = BN254_FR.inv(gamma), BN254_FR.inv(delta)

        lag = np.array(lagrange_at(domain, tau), dtype=object)
        u = [int(x) % R for x in A.T.dot(lag)]
        v = [int(x) % R for x in B.T.dot(lag)]
        w = [int(x) % R for x in C.T.dot(lag)]
        z_tau = 1
        for j in range(1, domain + 1):
            z_tau = z_tau * (tau - j) % R

        k = [(beta * u[i] + alpha * v[i] + w[i]) % R for i in range(n)]
        instance_set = set(instance)

        self.log.debug("groth16 setup: %d witnesses, domain %d", n, domain)
        pk = ProvingKey(
            num_witnesses=n,
            domain_size=domain,
            instance=instance,
            alpha_g1=_g1(alpha),
            beta_g1=_g1(beta),
            beta_g2=_g2(beta),
            delta_g1=_g1(delta),
            delta_g2=_g2(delta),
            a_query=[_g1(x) for x in u],
            b_g1_query=[_g1(x) for x in v],
            b_g2_query=[_g2(x) for x in v],
            h_query=[_g1(pow(tau, i, R) * z_tau * delta_inv) for i in range(domain - 1)],
            l_query=[Z1 if i in instance_set else _g1(k[i] * delta_inv) for i in range(n)],
        )
        gamma_abc = [_g1(k[i] * gamma_inv) for i in instance]
        vk = encode_verifying_key(pk.alpha_g1, pk.beta_g2, _g2(gamma), pk.delta_g2, gamma_abc)
        return SetupResult(proving_key=pk.to_bytes(), verifying_key=vk)

    def prove(self, proving_key: bytes, r1cs: R1csDefinition, witness: Mapping[int, int]) -> Tuple[bytes, List[str]]:
        pk = ProvingKey.from_bytes(proving_key)
        if pk.num_witnesses != r1cs.num_witnesses or pk.instance != instance_indices(r1cs):
            raise ProvingEngineError("proving key does not match the constraint system", engine=self.name)

        A, B, C = qap_matrices(r1cs)
        if A.shape[0] != pk.domain_size:
            raise ProvingEngineError("proving key domain does not match the constraint system", engine=self.name)
        try:
            wv = np.array([witness[i] % R for i in range(r1cs.num_witnesses)], dtype=object)
        except KeyError as exc:
            raise ProvingEngineError(f"witness is missing index {exc.args[0]}", engine=self.name) from exc

        a_poly = interpolate([int(x) % R for x in A.dot(wv)])
        b_poly = interpolate([int(x) % R for x in B.dot(wv)])
        c_poly = interpolate([int(x) % R for x in C.dot(wv)])
        p_poly = poly_mul(a_poly, b_poly)
        for i, c in enumerate(c_poly):
            p_poly[i] = (p_poly[i] - c) % R
        h_poly, rem = poly_divmod_monic(p_poly, vanishing_poly(pk.domain_size))
        if any(rem):
            self.log.warning("witness does not satisfy the constraint system; the proof will not verify")
        h_poly = (h_poly + [0] * pk.domain_size)[:pk.domain_size - 1]

        r = BN254_FR.random_element().to_int()
        s = BN254_FR.random_element().to_int()
        ws = [int(x) for x in wv]

        proof_a = add(add(pk.alpha_g1, _msm(pk.a_query, ws, Z1)), multiply(pk.delta_g1, r) if r else Z1)
        proof_b = add(add(pk.beta_g2, _msm(pk.b_g2_query, ws, Z2)), multiply(pk.delta_g2, s) if s else Z2)
        b_g1 = add(add(pk.beta_g1, _msm(pk.b_g1_query, ws, Z1)), multiply(pk.delta_g1, s) if s else Z1)

        private = [0 if i in pk.instance else ws[i] for i in range(pk.num_witnesses)]
        proof_c = _msm(pk.l_query, private, Z1)
        proof_c = add(proof_c, _msm(pk.h_query, h_poly, Z1))
        proof_c = add(proof_c, _msm([proof_a, b_g1], [s, r], Z1))
        rs = r * s % R
        if rs:
            proof_c = add(proof_c, neg(multiply(pk.delta_g1, rs)))

        public_inputs = [public_input_to_hex(witness[i] % R) for i in r1cs.public_inputs]
        self.log.debug("groth16 proof generated with %d public inputs", len(public_inputs))
        return encode_proof(proof_a, proof_b, proof_c), public_inputs

    def verify(self, verifying_key: bytes, proof: bytes, public_inputs: Sequence) -> bool:
        alpha, beta, gamma, delta, gamma_abc = decode_verifying_key(verifying_key)
        if len(public_inputs) + 1 != len(gamma_abc):
            raise ChainFormatError(
                f"verifying key expects {len(gamma_abc) - 1} public inputs, got {len(public_inputs)}")
        try:
            proof_a, proof_b, proof_c = decode_proof(proof)
        except InvalidPointError as exc:
            self.log.info("proof rejected: %s", exc)
            return False

        values = [_public_value(x) for x in public_inputs]
        if any(x >= R for x in values):
            self.log.info("proof rejected: public input not reduced modulo the scalar field")
            return False
        acc = _msm(gamma_abc[1:], values, Z1)
        acc = add(gamma_abc[0], acc)

        lhs = pairing(proof_b, proof_a)
        rhs = pairing(beta, alpha) * pairing(gamma, acc) * pairing(delta, proof_c)
        return lhs == rhs
