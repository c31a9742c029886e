"""Terraform http backend endpoint.

Serves every method on /<namespace>/<name>:

    GET     fetch state (empty body when none is stored)
    POST    write state; ?ID=<lock id> must match the current lock
    DELETE  delete state; ?ID=<lock id> must match the current lock
    LOCK    acquire the lock (creates an empty ConfigMap if needed)
    UNLOCK  release the lock

Lock conflicts answer 423 with the current lock holder as the body.

Registered as a plain ASGI route so that LOCK, UNLOCK and unknown methods all
reach the handler; authentication always happens before the path is checked.
"""

import asyncio
from collections.abc import Callable
from dataclasses import replace

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from starlette.types import Receive, Scope, Send

from configmap_backend.api.dependencies import (
    authenticate,
    extract_token,
    http_error,
    require_access,
)
from configmap_backend.context import BackendContext
from configmap_backend.logging_config import get_logger
from configmap_backend.protocol import (
    Action,
    CodecError,
    CollaboratorError,
    Identity,
    StateNotFoundError,
    StateObject,
)
from configmap_backend.state import (
    Conflict,
    LockInfo,
    LockState,
    acquire,
    guard_write,
    release,
)

logger = get_logger(__name__)


def parse_state_path(path: str) -> tuple[str, str] | None:
    """Split /<namespace>/<name>; None for any other shape."""
    parts = path[1:].split("/")
    if len(parts) != 2 or not all(parts):
        return None
    return parts[0], parts[1]


def get_context(request: Request) -> BackendContext:
    context = getattr(request.app.state, "backend", None)
    if context is None:
        raise RuntimeError("Backend not initialized, app lifespan has not run")
    return context


def conflict_response(conflict: Conflict) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_423_LOCKED, content=conflict.current.to_wire())


def _parse_lock_info(body: bytes) -> LockInfo:
    try:
        return LockInfo.model_validate_json(body)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"failed to read request body: {e}",
        ) from e


class StateRequest:
    """One request against one state object, after the read check passed."""

    def __init__(
        self,
        context: BackendContext,
        request: Request,
        identity: Identity,
        obj: StateObject,
        exists: bool,
    ) -> None:
        self.context = context
        self.request = request
        self.identity = identity
        self.obj = obj
        self.exists = exists
        self.lock_state: LockState = context.locks.read(obj.annotations)
        self.log = logger.bind(
            method=request.method,
            namespace=obj.namespace,
            name=obj.name,
            user=identity.username,
        )

    @property
    def write_action(self) -> Action:
        return Action.UPDATE if self.exists else Action.CREATE

    async def require(self, action: Action) -> None:
        await require_access(
            self.context.authorizer, self.identity, self.obj.namespace, self.obj.name, action
        )

    def conflict(self, conflict: Conflict) -> JSONResponse:
        self.log.info("State is locked", lock_id=conflict.current.id, who=conflict.current.who)
        return conflict_response(conflict)

    async def run_codec(self, func: Callable[[bytes], bytes], data: bytes) -> bytes:
        # Compression is CPU-bound; keep it off the event loop thread
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, data)

    async def persist(self, obj: StateObject, action: Action) -> None:
        store = self.context.store
        try:
            if action == Action.CREATE:
                await store.create(obj)
            else:
                await store.update(obj)
        except CollaboratorError as e:
            self.log.error("Failed to save ConfigMap", action=str(action), error=e.message)
            raise http_error(e) from e

    # --- Methods ---

    async def get(self) -> Response:
        if self.obj.payload is None:
            return Response(status_code=status.HTTP_200_OK)
        try:
            state = await self.run_codec(self.context.codec.decode, self.obj.payload)
        except CodecError as e:
            self.log.error("Failed to decode state", error=e.message)
            raise http_error(e) from e
        return Response(content=state, media_type="application/json")

    async def post(self) -> Response:
        action = self.write_action
        await self.require(action)

        conflict = guard_write(self.request.query_params.get("ID"), self.lock_state)
        if conflict is not None:
            return self.conflict(conflict)

        body = await self.request.body()
        try:
            payload = await self.run_codec(self.context.codec.encode, body)
        except CodecError as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"failed to read request body: {e.message}",
            ) from e

        await self.persist(replace(self.obj, payload=payload), action)
        self.log.info("State written", size_bytes=len(payload))
        return Response(status_code=status.HTTP_200_OK)

    async def delete(self) -> Response:
        await self.require(Action.DELETE)

        conflict = guard_write(self.request.query_params.get("ID"), self.lock_state)
        if conflict is not None:
            return self.conflict(conflict)

        try:
            await self.context.store.delete(self.obj.namespace, self.obj.name)
        except StateNotFoundError:
            self.log.debug("State already absent")
        except CollaboratorError as e:
            self.log.error("Failed to delete ConfigMap", error=e.message)
            raise http_error(e) from e
        else:
            self.log.info("State deleted")
        return Response(status_code=status.HTTP_200_OK)

    async def lock(self) -> Response:
        action = self.write_action
        await self.require(action)

        requested = _parse_lock_info(await self.request.body())
        outcome = acquire(requested, self.lock_state)
        if isinstance(outcome, Conflict):
            return self.conflict(outcome)

        annotations = self.context.locks.write(self.obj.annotations, outcome)
        await self.persist(replace(self.obj, annotations=annotations), action)
        self.log.info("State locked", lock_id=requested.id, operation=requested.operation)
        return Response(status_code=status.HTTP_200_OK)

    async def unlock(self) -> Response:
        if not self.exists:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        await self.require(Action.UPDATE)

        # A bodiless UNLOCK is a force-unlock: no holder check
        body = await self.request.body()
        requested = _parse_lock_info(body) if body else None
        outcome = release(requested, self.lock_state)
        if isinstance(outcome, Conflict):
            return self.conflict(outcome)

        annotations = self.context.locks.write(self.obj.annotations, outcome)
        await self.persist(replace(self.obj, annotations=annotations), Action.UPDATE)
        self.log.info("State unlocked", forced=requested is None)
        return Response(status_code=status.HTTP_200_OK)


async def dispatch(request: Request) -> Response:
    """Authenticate, authorize the read, load the object and route by method."""
    context = get_context(request)

    token = await extract_token(request)
    identity = await authenticate(context.identity_provider, token)

    key = parse_state_path(request.url.path)
    if key is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    namespace, name = key

    # Read access gates every method, so denial never reveals existence
    await require_access(context.authorizer, identity, namespace, name, Action.GET)

    exists = True
    try:
        obj = await context.store.get(namespace, name)
    except StateNotFoundError:
        exists = False
        obj = StateObject(namespace=namespace, name=name)
    except CollaboratorError as e:
        logger.error("Failed to get ConfigMap", namespace=namespace, name=name, error=e.message)
        raise http_error(e) from e

    state_request = StateRequest(context, request, identity, obj, exists)
    state_request.log.info("State request", exists=exists)

    match request.method:
        case "GET":
            return await state_request.get()
        case "POST":
            return await state_request.post()
        case "DELETE":
            return await state_request.delete()
        case "LOCK":
            return await state_request.lock()
        case "UNLOCK":
            return await state_request.unlock()
        case _:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)


class StateEndpoint:
    """ASGI app wrapping `dispatch`; accepts every HTTP method."""

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        response = await dispatch(request)
        await response(scope, receive, send)
