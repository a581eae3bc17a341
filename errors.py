"""
errors.py

Error taxonomy shared by the parser, the constraint builder, the witness
generator, the proving backends and the chain formatters.

Compile-stage errors (ParseError, UnsupportedFeatureError) abort a compile.
Witness-stage errors (WitnessComputationError, CircuitInputError) abort only a
single proof attempt; the compiled circuit stays usable.
"""

from typing import List, Optional


class CircuitError(Exception):
    """Base class for every error raised by this project."""


class ParseError(CircuitError):
    """
    Malformed or unsupported circuit source.
    """

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None):
        self.line = line
        self.column = column
        if line is not None:
            loc = f"line {line}" if column is None else f"line {line}, column {column}"
            message = f"{message} ({loc})"
        super().__init__(message)


class UndefinedVariableError(ParseError):
    """Reference to, or assignment of, a name that is not in scope."""


class UnsupportedFeatureError(CircuitError):
    """
    Valid IR that a specific backend cannot lower. The same IR may still be
    accepted by another backend.
    """

    def __init__(self, feature: str, backend: str = "R1CS"):
        self.feature = feature
        self.backend = backend
        super().__init__(f"{feature} is unsupported in {backend} backend")


class WitnessComputationError(CircuitError):
    """An auxiliary witness value cannot be produced for the given inputs."""


class CircuitInputError(CircuitError):
    """Supplied input values do not match the circuit parameters."""


class ProvingEngineError(CircuitError):
    """Failure reported by a proving engine."""

    def __init__(self, message: str, engine: Optional[str] = None):
        self.engine = engine
        if engine:
            message = f"[{engine}] {message}"
        super().__init__(message)


class CliError(ProvingEngineError):
    """An external toolchain binary failed, timed out, or was not found."""

    def __init__(self, message: str, command: Optional[List[str]] = None,
                 exit_code: Optional[int] = None, stderr: str = ""):
        self.command = list(command or [])
        self.exit_code = exit_code
        self.stderr = stderr
        engine = self.command[0] if self.command else None
        super().__init__(message, engine=engine)


class ChainFormatError(CircuitError):
    """Size or layout mismatch against a chain's binary format."""


class InvalidPointError(ChainFormatError):
    """Bytes of the right length that do not decode to a valid curve point."""
