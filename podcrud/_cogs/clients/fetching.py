from podcrud._cogs.clients import api
from podcrud._cogs.configs import configuration
from podcrud._cogs.helpers import typedefs
from podcrud._cogs.structs import bodies, references


async def read_obj(
        *,
        settings: configuration.ClientSettings,
        resource: references.Resource,
        namespace: references.Namespace,
        name: str,
        logger: typedefs.Logger,
) -> bodies.RawBody:
    """
    Read one object of a specific resource type by its name.

    HTTP 404 escalates as :class:`APINotFoundError`.
    """
    body: bodies.RawBody = await api.get(
        url=resource.get_url(namespace=namespace, name=name),
        logger=logger,
        settings=settings,
    )
    return body


async def list_objs(
        *,
        settings: configuration.ClientSettings,
        resource: references.Resource,
        namespace: references.Namespace,
        field_selector: str | None = None,
        label_selector: str | None = None,
        logger: typedefs.Logger,
) -> tuple[list[bodies.RawBody], str | None]:
    """
    List the objects of specific resource type.

    The cluster-scoped call is used if the namespace is ``None``,
    the namespace-scoped call is used otherwise.

    The field & label selectors are passed to the server as is,
    e.g. ``"metadata.name=blog"`` or ``"app=blog,tier!=db"``.

    If the listing is paginated (see ``settings.listing.page_size``),
    all pages are retrieved by following the continuation tokens.
    The returned resource version is the one of the last page;
    it can be used to start watching from that point in time.
    """
    items: list[bodies.RawBody] = []
    resource_version: str | None = None
    continue_token: str | None = None
    while True:
        params: dict[str, str] = {}
        if field_selector:
            params['fieldSelector'] = field_selector
        if label_selector:
            params['labelSelector'] = label_selector
        if settings.listing.page_size is not None:
            params['limit'] = str(settings.listing.page_size)
        if continue_token:
            params['continue'] = continue_token

        rsp = await api.get(
            url=resource.get_url(namespace=namespace, params=params),
            logger=logger,
            settings=settings,
        )

        resource_version = rsp.get('metadata', {}).get('resourceVersion', None)
        for item in rsp.get('items', []):
            if 'kind' in rsp:
                item.setdefault('kind', rsp['kind'][:-4] if rsp['kind'][-4:] == 'List' else rsp['kind'])
            if 'apiVersion' in rsp:
                item.setdefault('apiVersion', rsp['apiVersion'])
            items.append(item)

        continue_token = rsp.get('metadata', {}).get('continue')
        if not continue_token:
            break

    return items, resource_version
