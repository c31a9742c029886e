"""
Collaborator protocols and types for the state backend.

Defines the interfaces the request handler consumes (state store, identity
provider, authorizer), the data types passed across them, and the tagged
error hierarchy every collaborator raises.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable

# --- Data Types ---


@dataclass
class StateObject:
    """A stored state blob plus its metadata annotations."""

    namespace: str
    name: str
    payload: bytes | None = None
    annotations: dict[str, str] = field(default_factory=dict)
    resource_version: str | None = None
    # Backend-specific object this was read from, so updates keep unrelated fields
    source: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class Identity:
    """Authenticated caller, valid for a single request."""

    username: str
    uid: str = ""
    groups: tuple[str, ...] = ()


@dataclass(frozen=True)
class TokenReviewResult:
    """Outcome of validating a bearer token."""

    authenticated: bool
    identity: Identity | None = None


class Action(StrEnum):
    """Resource verbs checked against the authorizer."""

    GET = "get"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


# --- Exceptions ---


class BackendError(Exception):
    """Base exception for request-scoped failures.

    `status_code` is set when the failure carries a structured HTTP status
    that should be forwarded to the client; None means 500.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class CollaboratorError(BackendError):
    """Raised when an identity, authorization or store call fails."""


class StateNotFoundError(CollaboratorError):
    """Raised when the requested ConfigMap does not exist."""

    def __init__(self, namespace: str, name: str) -> None:
        self.namespace = namespace
        self.name = name
        super().__init__(f"State not found: {namespace}/{name}", status_code=404)


class CodecError(BackendError):
    """Raised when state bytes cannot be encoded or decoded."""


# --- Protocols ---


@runtime_checkable
class StateStore(Protocol):
    """Key-value store holding one StateObject per (namespace, name).

    Last write wins; the store offers no locking of its own.
    """

    async def get(self, namespace: str, name: str) -> StateObject:
        """Fetch a state object.

        Raises:
            StateNotFoundError: If the object does not exist.
            CollaboratorError: On any other store failure.
        """
        ...

    async def create(self, obj: StateObject) -> StateObject:
        """Create a new state object."""
        ...

    async def update(self, obj: StateObject) -> StateObject:
        """Replace an existing state object."""
        ...

    async def delete(self, namespace: str, name: str) -> None:
        """Delete a state object.

        Raises:
            StateNotFoundError: If the object does not exist.
        """
        ...

    async def close(self) -> None:
        """Release any resources held by the store."""
        ...


@runtime_checkable
class IdentityProvider(Protocol):
    """Turns a bearer token into an authenticated identity."""

    async def validate(self, token: str) -> TokenReviewResult: ...

    async def close(self) -> None: ...


@runtime_checkable
class Authorizer(Protocol):
    """Decides whether an identity may perform an action on a state object."""

    async def decide(
        self, identity: Identity, namespace: str, name: str, action: Action
    ) -> bool: ...

    async def close(self) -> None: ...
