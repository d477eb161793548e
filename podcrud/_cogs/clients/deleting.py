from typing import Any, Literal

from podcrud._cogs.clients import api
from podcrud._cogs.configs import configuration
from podcrud._cogs.helpers import typedefs
from podcrud._cogs.structs import bodies, references

PropagationPolicy = Literal['Orphan', 'Background', 'Foreground']


async def delete_obj(
        *,
        settings: configuration.ClientSettings,
        resource: references.Resource,
        namespace: references.Namespace,
        name: str,
        grace_period_seconds: int | None = None,
        propagation_policy: PropagationPolicy | None = None,
        logger: typedefs.Logger,
) -> bodies.RawBody | bodies.RawStatus:
    """
    Delete a resource of specific kind.

    Depending on the resource and its finalizers & grace periods,
    the API returns either the object itself, which is now being deleted
    (with the deletion timestamp set), or a ``Status`` if the object
    is already deleted. Both are returned as is; use `bodies.is_status`
    to distinguish them.

    If the object is absent, :class:`APINotFoundError` is raised.
    """
    options: dict[str, Any] = {}
    if grace_period_seconds is not None:
        options['gracePeriodSeconds'] = grace_period_seconds
    if propagation_policy is not None:
        options['propagationPolicy'] = propagation_policy

    payload = dict(options, apiVersion='v1', kind='DeleteOptions') if options else None
    result: bodies.RawBody | bodies.RawStatus = await api.delete(
        url=resource.get_url(namespace=namespace, name=name),
        payload=payload,
        settings=settings,
        logger=logger,
    )
    return result
