from podcrud._cogs.clients import api
from podcrud._cogs.configs import configuration
from podcrud._cogs.helpers import typedefs
from podcrud._cogs.structs import bodies, patches, references


async def patch_obj(
        *,
        settings: configuration.ClientSettings,
        resource: references.Resource,
        namespace: references.Namespace,
        name: str,
        patch: patches.Patch,
        logger: typedefs.Logger,
) -> bodies.RawBody:
    """
    Patch a resource of specific kind with a JSON merge-patch.

    Returns the patched body as reported by the server (the full object).

    If the patch is pinned to a resource version (``metadata.resourceVersion``),
    and the object has been changed since then, the server rejects the patch
    with HTTP 409 Conflict, which escalates as :class:`APIConflictError`.
    If the object is absent, :class:`APINotFoundError` is raised.
    """
    patched_body: bodies.RawBody = await api.patch(
        url=resource.get_url(namespace=namespace, name=name),
        headers={'Content-Type': patches.MERGE_PATCH_CONTENT_TYPE},
        payload=dict(patch),
        settings=settings,
        logger=logger,
    )
    return patched_body
