from typing import cast

from podcrud._cogs.clients import api
from podcrud._cogs.configs import configuration
from podcrud._cogs.helpers import typedefs
from podcrud._cogs.structs import bodies, references


async def create_obj(
        *,
        settings: configuration.ClientSettings,
        resource: references.Resource,
        namespace: references.Namespace = None,
        name: str | None = None,
        body: bodies.RawBody | None = None,
        logger: typedefs.Logger,
) -> bodies.RawBody:
    """
    Create a resource.

    The name & namespace, if given, are defaulted into the body's metadata,
    but do not override the ones already present there.

    HTTP 409 Conflict (the object already exists) escalates
    as :class:`APIConflictError` -- it is the caller's decision
    whether this is acceptable or not.
    """
    body = body if body is not None else {}
    if namespace is not None:
        body.setdefault('metadata', {}).setdefault('namespace', namespace)
    if name is not None:
        body.setdefault('metadata', {}).setdefault('name', name)

    namespace = cast(references.Namespace, bodies.get_namespace(body))
    created_body: bodies.RawBody = await api.post(
        url=resource.get_url(namespace=namespace),
        payload=body,
        logger=logger,
        settings=settings,
    )
    return created_body
