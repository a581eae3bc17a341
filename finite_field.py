"""
finite_field.py

Prime-field helpers for the BN254 scalar field.

Classes:
 - Field: represents GF(p), provides helpers to create and parse FieldElements.
 - FieldElement: value in GF(p) with arithmetic operators.

Every value written into a witness or a constraint coefficient goes through
Field.reduce / Field.parse so it is always the canonical representative in [0, p).
"""

from typing import Any, Optional
import secrets

# Scalar field of the BN254 (alt_bn128) curve.
BN254_SCALAR_MODULUS = 0x30644E72E131A029B85045B68181585D2833E84879B9709143E1F593F0000001

_MR_BASES = (2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37)


def _is_prime(n: int) -> bool:
    """
    Miller-Rabin with fixed bases. Deterministic below 3.3e24, a strong
    probable-prime test above that.
    """
    if n < 2:
        return False
    for q in _MR_BASES:
        if n % q == 0:
            return n == q
    d, s = n - 1, 0
    while d % 2 == 0:
        d //= 2
        s += 1
    for a in _MR_BASES:
        x = pow(a, d, n)
        if x in (1, n - 1):
            continue
        for _ in range(s - 1):
            x = pow(x, 2, n)
            if x == n - 1:
                break
        else:
            return False
    return True


class FieldElement:
    """
    Represents an element of GF(p).
    """
    __slots__ = ("value", "p")

    def __init__(self, value: int, p: int):
        self.p = int(p)
        self.value = int(value) % self.p

    def _coerce(self, other) -> int:
        if isinstance(other, FieldElement):
            if self.p != other.p:
                raise ValueError("field elements from different fields")
            return other.value
        return int(other)

    def __add__(self, other):
        return FieldElement(self.value + self._coerce(other), self.p)

    __radd__ = __add__

    def __sub__(self, other):
        return FieldElement(self.value - self._coerce(other), self.p)

    def __rsub__(self, other):
        return FieldElement(self._coerce(other) - self.value, self.p)

    def __mul__(self, other):
        return FieldElement(self.value * self._coerce(other), self.p)

    __rmul__ = __mul__

    def __truediv__(self, other):
        return self * FieldElement(self._coerce(other), self.p).inv()

    def __neg__(self):
        return FieldElement(-self.value, self.p)

    def __eq__(self, other):
        if isinstance(other, FieldElement):
            return self.p == other.p and self.value == other.value
        return self.value == (int(other) % self.p)

    def __hash__(self):
        return hash((self.value, self.p))

    def __int__(self):
        return self.value

    def __repr__(self):
        return f"FieldElement({self.value} mod {self.p})"

    def inv(self):
        """
        Multiplicative inverse via extended Euclidean algorithm.
        """
        a, m = self.value, self.p
        if a == 0:
            raise ZeroDivisionError("inverse of zero")
        lm, hm = 1, 0
        low, high = a % m, m
        while low > 1:
            r = high // low
            nm = hm - lm * r
            new = high - low * r
            hm, lm = lm, nm
            high, low = low, new
        return FieldElement(lm % m, m)

    def to_int(self) -> int:
        return int(self.value)

    def to_hex(self) -> str:
        """0x-prefixed, 64 hex digits (32 bytes big-endian)."""
        return "0x" + format(self.value, "064x")


class Field:
    """
    Factory/namespace for field-related helpers.
    """
    def __init__(self, p: Optional[int] = None):
        """
        If p is None, use the BN254 scalar field.
        """
        if p is None:
            p = BN254_SCALAR_MODULUS
        if not _is_prime(p):
            raise ValueError("p must be prime for a proper field")
        self.p = int(p)

    def element(self, value: int) -> FieldElement:
        return FieldElement(value, self.p)

    def random_element(self, nonzero: bool = False) -> FieldElement:
        if nonzero:
            return FieldElement(secrets.randbelow(self.p - 1) + 1, self.p)
        return FieldElement(secrets.randbelow(self.p), self.p)

    def reduce(self, value: int) -> int:
        return int(value) % self.p

    def inv(self, value: int) -> int:
        return self.element(value).inv().to_int()

    def parse(self, value: Any) -> FieldElement:
        """
        Accept ints, bools, FieldElements, decimal strings, 0x-hex strings and
        BigInt-style strings ("123n"). Negative values wrap modulo p.
        """
        if isinstance(value, FieldElement):
            if value.p != self.p:
                raise ValueError("field element from a different field")
            return value
        if isinstance(value, bool):
            return self.element(int(value))
        if isinstance(value, int):
            return self.element(value)
        if isinstance(value, str):
            text = value.strip()
            if text.endswith("n"):
                text = text[:-1]
            negative = text.startswith("-")
            if negative:
                text = text[1:]
            if text[:2].lower() == "0x":
                parsed = int(text[2:], 16)
            elif text.isdigit():
                parsed = int(text, 10)
            else:
                raise ValueError(f"not a field element: {value!r}")
            return self.element(-parsed if negative else parsed)
        raise TypeError(f"cannot convert {type(value).__name__} to a field element")


BN254_FR = Field(BN254_SCALAR_MODULUS)


# Demo
if __name__ == "__main__":
    F = BN254_FR
    a = F.element(10)
    print(a * a, (a / F.element(3)) * 3 == a, F.parse("-1").to_hex())
