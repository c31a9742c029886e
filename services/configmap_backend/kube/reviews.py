"""TokenReview authentication and SubjectAccessReview authorization."""

from kubernetes import client

from configmap_backend.kube.client import call_api
from configmap_backend.protocol import Action, Identity, TokenReviewResult

# State objects are authorized as if the caller were touching the ConfigMap
RESOURCE = "configmaps"


class TokenReviewIdentityProvider:
    """Validates bearer tokens with the Kubernetes TokenReview API."""

    def __init__(self, api: client.ApiClient) -> None:
        self._api_client = api
        self._authn = client.AuthenticationV1Api(api)

    async def validate(self, token: str) -> TokenReviewResult:
        review = client.V1TokenReview(spec=client.V1TokenReviewSpec(token=token))
        response = await call_api(self._authn.create_token_review, review)

        status = response.status
        if status is None or not status.authenticated:
            return TokenReviewResult(authenticated=False)

        user = status.user
        return TokenReviewResult(
            authenticated=True,
            identity=Identity(
                username=user.username or "",
                uid=user.uid or "",
                groups=tuple(user.groups or ()),
            ),
        )

    async def close(self) -> None:
        self._api_client.close()


class SubjectAccessReviewAuthorizer:
    """Asks the Kubernetes SubjectAccessReview API whether an action is allowed."""

    def __init__(self, api: client.ApiClient) -> None:
        self._api_client = api
        self._authz = client.AuthorizationV1Api(api)

    async def decide(self, identity: Identity, namespace: str, name: str, action: Action) -> bool:
        review = client.V1SubjectAccessReview(
            spec=client.V1SubjectAccessReviewSpec(
                user=identity.username,
                uid=identity.uid or None,
                groups=list(identity.groups) or None,
                resource_attributes=client.V1ResourceAttributes(
                    resource=RESOURCE,
                    namespace=namespace,
                    name=name,
                    verb=str(action),
                ),
            )
        )
        response = await call_api(self._authz.create_subject_access_review, review)
        return bool(response.status and response.status.allowed)

    async def close(self) -> None:
        self._api_client.close()
