"""Reconciler exceptions."""

from __future__ import annotations


class ReconcilerError(Exception):
    """Base class for reconciler errors."""


class MissingCollaboratorError(ReconcilerError):
    """Raised at construction time when a required collaborator is absent."""

    def __init__(self, owner: str, name: str):
        self.owner = owner
        self.name = name
        super().__init__(f"{owner} requires a '{name}' collaborator")


class GatewayTimeout(ReconcilerError):
    """Raised when a provider gateway call exceeds its timeout."""

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"Gateway {operation} timed out after {timeout}s")


class SettlementTimeout(ReconcilerError):
    """Raised when a settlement workflow run exceeds its timeout."""

    def __init__(self, session_id: str, timeout: float):
        self.session_id = session_id
        self.timeout = timeout
        super().__init__(f"Settlement for {session_id} timed out after {timeout}s")


class SessionLockedError(ReconcilerError):
    """Raised when a session lock is already held."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f'Lock for "{session_id}" is already acquired')


def require(owner: str, **collaborators: object) -> None:
    """Fail fast if any named collaborator is None."""
    for name, value in collaborators.items():
        if value is None:
            raise MissingCollaboratorError(owner, name)
