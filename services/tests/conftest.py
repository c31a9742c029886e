"""
Top-level test configuration for the ConfigMap state backend.

Provides in-memory collaborators and an app wired to them.
"""

import copy
import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from configmap_backend.api.app import create_app
from configmap_backend.config import Settings, StateConfig
from configmap_backend.context import BackendContext, build_context
from configmap_backend.protocol import (
    Action,
    CollaboratorError,
    Identity,
    StateNotFoundError,
    StateObject,
    TokenReviewResult,
)

# Ensure test-friendly defaults
os.environ.setdefault("CONFIGMAP_BACKEND_JSON_LOGS", "false")
os.environ.setdefault("CONFIGMAP_BACKEND_LOG_LEVEL", "DEBUG")
os.environ.setdefault("CONFIGMAP_BACKEND_CONFIG_FILE", "/nonexistent/config.yaml")

VALID_TOKEN = "valid-token"
TERRAFORM_USER = Identity(
    username="system:serviceaccount:infra:terraform",
    uid="5f1c0e6a",
    groups=("system:serviceaccounts", "system:serviceaccounts:infra"),
)


class FakeStore:
    """Last-write-wins in-memory store keyed by (namespace, name)."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], StateObject] = {}
        self.writes: list[tuple[str, StateObject]] = []
        self.get_error: CollaboratorError | None = None
        self.write_error: CollaboratorError | None = None
        self.delete_error: CollaboratorError | None = None
        self.closed = False

    def put(self, obj: StateObject) -> None:
        self.objects[(obj.namespace, obj.name)] = copy.deepcopy(obj)

    async def get(self, namespace: str, name: str) -> StateObject:
        if self.get_error is not None:
            raise self.get_error
        obj = self.objects.get((namespace, name))
        if obj is None:
            raise StateNotFoundError(namespace, name)
        return copy.deepcopy(obj)

    async def create(self, obj: StateObject) -> StateObject:
        if self.write_error is not None:
            raise self.write_error
        if (obj.namespace, obj.name) in self.objects:
            raise CollaboratorError(f'configmaps "{obj.name}" already exists', status_code=409)
        self.writes.append(("create", copy.deepcopy(obj)))
        self.put(obj)
        return obj

    async def update(self, obj: StateObject) -> StateObject:
        if self.write_error is not None:
            raise self.write_error
        if (obj.namespace, obj.name) not in self.objects:
            raise StateNotFoundError(obj.namespace, obj.name)
        self.writes.append(("update", copy.deepcopy(obj)))
        self.put(obj)
        return obj

    async def delete(self, namespace: str, name: str) -> None:
        if self.delete_error is not None:
            raise self.delete_error
        if self.objects.pop((namespace, name), None) is None:
            raise StateNotFoundError(namespace, name)
        self.writes.append(("delete", StateObject(namespace=namespace, name=name)))

    async def close(self) -> None:
        self.closed = True


class FakeIdentityProvider:
    def __init__(self) -> None:
        self.identities: dict[str, Identity] = {VALID_TOKEN: TERRAFORM_USER}
        self.error: CollaboratorError | None = None
        self.tokens_seen: list[str] = []
        self.closed = False

    async def validate(self, token: str) -> TokenReviewResult:
        self.tokens_seen.append(token)
        if self.error is not None:
            raise self.error
        identity = self.identities.get(token)
        return TokenReviewResult(authenticated=identity is not None, identity=identity)

    async def close(self) -> None:
        self.closed = True


class FakeAuthorizer:
    def __init__(self) -> None:
        self.denied: set[Action] = set()
        self.error: CollaboratorError | None = None
        self.decisions: list[tuple[str, str, str, Action]] = []
        self.closed = False

    async def decide(self, identity: Identity, namespace: str, name: str, action: Action) -> bool:
        self.decisions.append((identity.username, namespace, name, action))
        if self.error is not None:
            raise self.error
        return action not in self.denied

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def settings() -> Settings:
    return Settings(json_logs=False, state=StateConfig(compress=True, minify=False))


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def authorizer() -> FakeAuthorizer:
    return FakeAuthorizer()


@pytest.fixture
def context(
    settings: Settings,
    store: FakeStore,
    identity_provider: FakeIdentityProvider,
    authorizer: FakeAuthorizer,
) -> BackendContext:
    return build_context(
        settings, store=store, identity_provider=identity_provider, authorizer=authorizer
    )


@pytest_asyncio.fixture
async def client(context: BackendContext) -> AsyncGenerator[AsyncClient]:
    """Client for an app wired to the in-memory collaborators, authenticated by default."""
    app = create_app(context=context)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        auth=("terraform", VALID_TOKEN),
    ) as c:
        yield c
