"""
All the structures coming from/to the Kubernetes API.

For strict type-checking, they are detailed to the per-field level
(e.g. `TypedDict` instead of just ``Mapping[Any, Any]``) -- as used here.
The API returns much more fields at runtime, which are not declared
in the type definitions at type-checking time.

Everything marked "raw" is a plain unwrapped unprocessed data as JSON-decoded
from Kubernetes API, usually as retrieved in watching or fetching API calls.
"Input" is a parsed JSON as is, while "event" is an "input" without "errors".
All non-used payload falls into `Any`, and is not type-checked.
"""
from collections.abc import Collection, Mapping
from typing import Any, Literal, TypedDict, cast

Labels = Mapping[str, str]
Annotations = Mapping[str, str]

# ``None`` is used for the listing, when the pseudo-watch-stream is simulated.
RawInputType = Literal[None, 'ADDED', 'MODIFIED', 'DELETED', 'ERROR', 'BOOKMARK']
RawEventType = Literal[None, 'ADDED', 'MODIFIED', 'DELETED']


class RawMeta(TypedDict, total=False):
    uid: str
    name: str
    namespace: str
    labels: Labels
    annotations: Annotations
    finalizers: list[str]
    resourceVersion: str
    deletionTimestamp: str
    creationTimestamp: str


class RawBody(TypedDict, total=False):
    apiVersion: str
    kind: str
    metadata: RawMeta
    spec: Mapping[str, Any]
    status: Mapping[str, Any]


class RawStatusCause(TypedDict):
    field: str
    reason: str
    message: str


class RawStatusDetails(TypedDict, total=False):
    name: str
    uid: str
    retryAfterSeconds: int
    kind: str
    group: str
    causes: Collection[RawStatusCause]


# https://kubernetes.io/docs/reference/generated/kubernetes-api/v1.28/#status-v1-meta
class RawStatus(TypedDict, total=False):
    apiVersion: str
    kind: Literal["Status"]
    code: int
    status: Literal["Success", "Failure"]
    reason: str
    message: str
    details: RawStatusDetails


# A special payload for type==ERROR (this is not a connection or client error).
class RawError(TypedDict, total=False):
    apiVersion: str     # usually: Literal['v1']
    kind: str           # usually: Literal['Status']
    metadata: Mapping[Any, Any]
    code: int
    reason: str
    status: str
    message: str


# As received from the stream before processing the errors and special cases.
class RawInput(TypedDict, total=True):
    type: RawInputType
    object: RawBody | RawError


# As passed to the consumers after processing the errors and special cases.
class RawEvent(TypedDict, total=True):
    type: RawEventType
    object: RawBody


def is_status(body: Mapping[str, Any]) -> bool:
    return body.get('kind') == 'Status'


def get_name(body: RawBody) -> str | None:
    return body.get('metadata', {}).get('name')


def get_namespace(body: RawBody) -> str | None:
    return body.get('metadata', {}).get('namespace')


def get_uid(body: RawBody) -> str | None:
    return body.get('metadata', {}).get('uid')


def get_resource_version(body: RawBody) -> str | None:
    return body.get('metadata', {}).get('resourceVersion')


def get_phase(body: RawBody) -> str | None:
    return cast(str | None, body.get('status', {}).get('phase'))


def build_object_reference(body: RawBody) -> dict[str, str | None]:
    """
    Construct an object reference for the per-object logging.

    The reference is a copy, so it is not affected by the later modifications
    of the body (e.g. when the same dict is re-used for the patched object).
    """
    return dict(
        apiVersion=body.get('apiVersion'),
        kind=body.get('kind'),
        name=get_name(body),
        uid=get_uid(body),
        namespace=get_namespace(body),
    )
