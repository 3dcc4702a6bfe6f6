"""
Error types for the BiS solver.

Every failure the solver reports derives from BisSolverError so callers
(the CLI and the API) can tell expected outcomes apart from bugs.
"""

from typing import Iterable, List, Optional


class BisSolverError(Exception):
    """Base class for all solver errors."""


class UsageError(BisSolverError):
    """Missing or invalid command line input."""


class ConfigError(BisSolverError):
    """
    Configuration could not be read or resolved.

    `names` holds every unresolved job/stat name found, not just the first.
    """

    def __init__(self, message: str, names: Iterable[str] = ()):
        self.names: List[str] = list(names)
        if self.names:
            message = f"{message}: {', '.join(self.names)}"
        super().__init__(message)


class CatalogError(BisSolverError):
    """Game data is malformed or an id is not in the catalog."""


class ModelError(BisSolverError):
    """The solver proved the model infeasible or unbounded."""

    def __init__(self, status, detail: str = ''):
        self.status = status
        self.detail = detail
        message = f"No feasible loadout under current constraints ({status.value})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class BackendError(BisSolverError):
    """The solver backend failed (licence, crash, missing binary, timeout)."""

    def __init__(self, backend: str, detail: Optional[str] = None):
        self.backend = backend
        self.detail = detail or 'unknown error'
        super().__init__(f"Solver backend '{backend}' failed: {self.detail}")


class ConsistencyError(BisSolverError):
    """A nominally integral variable came back with a fractional value."""
