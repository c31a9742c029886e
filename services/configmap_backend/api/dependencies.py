"""Authentication and authorization gates for state requests.

Terraform's http backend sends credentials with HTTP Basic framing. The
username is ignored; the password is a Kubernetes bearer token, validated with
a TokenReview. Every action on a state object is then checked with a
SubjectAccessReview against the ConfigMap it is stored in.
"""

from fastapi import HTTPException, Request, status
from fastapi.security import HTTPBasic

from configmap_backend.logging_config import get_logger
from configmap_backend.protocol import (
    Action,
    Authorizer,
    BackendError,
    CollaboratorError,
    Identity,
    IdentityProvider,
)

logger = get_logger(__name__)

BASIC_REALM = "Terraform "
security = HTTPBasic(auto_error=False, realm=BASIC_REALM)


def http_error(e: BackendError) -> HTTPException:
    """Forward a structured status from a collaborator, else 500."""
    return HTTPException(
        status_code=e.status_code or status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=e.message,
    )


async def extract_token(request: Request) -> str:
    """Return the bearer token carried in the Basic auth password field."""
    credentials = await security(request)
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": f'Basic realm="{BASIC_REALM}"'},
        )
    return credentials.password


async def authenticate(provider: IdentityProvider, token: str) -> Identity:
    try:
        result = await provider.validate(token)
    except CollaboratorError as e:
        logger.error("Failed to validate authentication token", error=e.message)
        raise http_error(e) from e

    if not result.authenticated or result.identity is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid authentication token",
        )
    return result.identity


async def require_access(
    authorizer: Authorizer,
    identity: Identity,
    namespace: str,
    name: str,
    action: Action,
) -> None:
    """Raise 403 unless `identity` may perform `action` on the ConfigMap."""
    try:
        allowed = await authorizer.decide(identity, namespace, name, action)
    except CollaboratorError as e:
        logger.error("Failed to check authorization", action=str(action), error=e.message)
        raise http_error(e) from e

    if not allowed:
        logger.info(
            "Access denied",
            user=identity.username,
            action=str(action),
            namespace=namespace,
            name=name,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f'configmaps "{name}" is forbidden: cannot {action} in namespace "{namespace}"',
        )
