"""
The pod's walkthrough: create, wait until running, get, patch, list, delete.

Every step is a remote call followed by the checks of its result. The first
failed check stops the walkthrough with :class:`ScenarioError`; the API errors
are not converted and escalate as they are (see :mod:`errors`). The only
tolerated error is HTTP 409 Conflict on creation: the pod already exists,
e.g. if a previous walkthrough was interrupted before the deletion.
"""
import dataclasses
from typing import Any, cast

from podcrud._cogs.clients import api, creating, deleting, errors, fetching, patching
from podcrud._cogs.configs import configuration
from podcrud._cogs.helpers import typedefs
from podcrud._cogs.structs import bodies, patches, references
from podcrud._core.actions import loggers
from podcrud._core.engines import waiting
from podcrud._core.intents import conditions

# Used when neither the settings nor the credentials specify a namespace.
DEFAULT_NAMESPACE = references.NamespaceName('default')


class ScenarioError(Exception):
    """ Raised when a step's result is not as expected. """

    def __init__(self, msg: str, *, step: str) -> None:
        super().__init__(msg)
        self.step = step

    def __str__(self) -> str:
        return f"Step {self.step!r} has failed: {super().__str__()}"


@dataclasses.dataclass(frozen=True)
class Outcome:
    """ What has happened to the pod during the walkthrough. """
    namespace: references.NamespaceName
    name: str
    created: bool  # False if the pod has already existed (HTTP 409).
    resource_version: str | None  # as of the patched pod.
    listed: list[str]
    deleted_immediately: bool  # deleted without a grace period (a Status is returned).


def build_manifest(settings: configuration.ClientSettings) -> bodies.RawBody:
    name = settings.pod.name
    return {
        'apiVersion': references.PODS.api_version,
        'kind': references.PODS.kind or 'Pod',
        'metadata': {'name': name},
        'spec': {
            'containers': [{
                'name': name,
                'image': settings.pod.image,
            }],
        },
    }


async def resolve_namespace(
        settings: configuration.ClientSettings,
) -> references.NamespaceName:
    if settings.pod.namespace:
        return references.NamespaceName(settings.pod.namespace)
    default_namespace = await api.get_default_namespace()
    return references.NamespaceName(default_namespace or DEFAULT_NAMESPACE)


async def pod_crud(
        *,
        settings: configuration.ClientSettings,
        logger: typedefs.Logger | None = None,
) -> Outcome:
    """
    Walk the pod through its whole lifecycle, and report what has happened.
    """
    namespace = await resolve_namespace(settings)
    manifest = build_manifest(settings)
    manifest['metadata']['namespace'] = namespace
    logger = logger if logger is not None else loggers.ObjectLogger(body=manifest)

    created = await create_pod(settings=settings, namespace=namespace, manifest=manifest, logger=logger)
    await await_running(settings=settings, namespace=namespace, logger=logger)
    body = await get_pod(settings=settings, namespace=namespace, logger=logger)
    patched = await patch_pod(settings=settings, namespace=namespace, body=body, logger=logger)
    listed = await list_pods(settings=settings, namespace=namespace, logger=logger)
    deleted = await delete_pod(settings=settings, namespace=namespace, logger=logger)
    if settings.waiting.deletion_timeout is not None:
        await await_deleted(settings=settings, namespace=namespace, uid=bodies.get_uid(body), logger=logger)

    return Outcome(
        namespace=namespace,
        name=settings.pod.name,
        created=created,
        resource_version=bodies.get_resource_version(patched),
        listed=listed,
        deleted_immediately=bodies.is_status(deleted),
    )


async def create_pod(
        *,
        settings: configuration.ClientSettings,
        namespace: references.NamespaceName,
        manifest: bodies.RawBody,
        logger: typedefs.Logger,
) -> bool:
    """ Create the pod, unless it exists. Return whether it was created. """
    name = settings.pod.name
    logger.info(f"Creating the pod {name!r}.")
    try:
        body = await creating.create_obj(
            settings=settings,
            resource=references.PODS,
            namespace=namespace,
            body=manifest,
            logger=logger,
        )
    except errors.APIConflictError:
        logger.info(f"The pod {name!r} already exists; continuing with it.")
        return False

    if bodies.get_name(body) != name:
        raise ScenarioError(f"Created a pod named {bodies.get_name(body)!r} instead of {name!r}.",
                            step='create')
    logger.info(f"Created the pod {name!r}.")
    return True


async def await_running(
        *,
        settings: configuration.ClientSettings,
        namespace: references.NamespaceName,
        logger: typedefs.Logger,
) -> bodies.RawBody | None:
    """
    Wait until the pod runs; fail early if it has already finished instead.
    """
    name = settings.pod.name
    timeout = settings.waiting.running_timeout
    logger.info(f"Waiting for the pod {name!r} to run (up to {timeout}s).")
    body = await waiting.wait_for(
        settings=settings,
        resource=references.PODS,
        namespace=namespace,
        name=name,
        condition=conditions.any_of(
            conditions.is_pod_running(),
            conditions.is_pod_succeeded(),
            conditions.is_pod_failed(),
        ),
        timeout=timeout,
        logger=logger,
    )
    if not conditions.is_pod_running()(body):
        phase = bodies.get_phase(body) if body is not None else None
        raise ScenarioError(f"The pod {name!r} has finished in the {phase!r} phase "
                            f"instead of running.", step='wait')
    logger.info(f"The pod {name!r} is running.")
    return body


async def get_pod(
        *,
        settings: configuration.ClientSettings,
        namespace: references.NamespaceName,
        logger: typedefs.Logger,
) -> bodies.RawBody:
    name = settings.pod.name
    logger.info(f"Getting the pod {name!r}.")
    body = await fetching.read_obj(
        settings=settings,
        resource=references.PODS,
        namespace=namespace,
        name=name,
        logger=logger,
    )

    containers: list[dict[str, Any]] = list(body.get('spec', {}).get('containers') or [])
    logger.info(f"Got the pod {name!r} with containers: {containers!r}")
    if not containers:
        raise ScenarioError(f"The pod {name!r} has no containers.", step='get')
    if containers[0].get('name') != name:
        raise ScenarioError(f"The pod's first container is {containers[0].get('name')!r}, "
                            f"not {name!r}.", step='get')
    return body


async def patch_pod(
        *,
        settings: configuration.ClientSettings,
        namespace: references.NamespaceName,
        body: bodies.RawBody,
        logger: typedefs.Logger,
) -> bodies.RawBody:
    """ Patch the pod as of the version seen, so that concurrent changes are not overwritten. """
    name = settings.pod.name
    deadline = settings.pod.active_deadline_seconds
    patch = patches.Patch()
    patch.spec['activeDeadlineSeconds'] = deadline
    patch = patch.with_resource_version(bodies.get_resource_version(body))

    logger.info(f"Patching the pod {name!r} with {dict(patch)!r}.")
    patched = await patching.patch_obj(
        settings=settings,
        resource=references.PODS,
        namespace=namespace,
        name=name,
        patch=patch,
        logger=logger,
    )

    value = patched.get('spec', {}).get('activeDeadlineSeconds')
    if value != deadline:
        raise ScenarioError(f"The pod's activeDeadlineSeconds is {value!r}, not {deadline!r}.",
                            step='patch')
    return patched


async def list_pods(
        *,
        settings: configuration.ClientSettings,
        namespace: references.NamespaceName,
        logger: typedefs.Logger,
) -> list[str]:
    """ List only our own pod, as filtered server-side. """
    items, _ = await fetching.list_objs(
        settings=settings,
        resource=references.PODS,
        namespace=namespace,
        field_selector=f'metadata.name={settings.pod.name}',
        logger=logger,
    )
    names = [cast(str, bodies.get_name(item)) for item in items]
    for name in names:
        logger.info(f"Found the pod {name!r}.")
    return names


async def delete_pod(
        *,
        settings: configuration.ClientSettings,
        namespace: references.NamespaceName,
        logger: typedefs.Logger,
) -> bodies.RawBody | bodies.RawStatus:
    name = settings.pod.name
    logger.info(f"Deleting the pod {name!r}.")
    result = await deleting.delete_obj(
        settings=settings,
        resource=references.PODS,
        namespace=namespace,
        name=name,
        logger=logger,
    )

    if bodies.is_status(result):
        logger.info(f"The pod {name!r} is deleted.")
    else:
        body = cast(bodies.RawBody, result)
        if bodies.get_name(body) != name:
            raise ScenarioError(f"Deleting a pod named {bodies.get_name(body)!r} "
                                f"instead of {name!r}.", step='delete')
        logger.info(f"Deleting the pod {name!r} has started.")
    return result


async def await_deleted(
        *,
        settings: configuration.ClientSettings,
        namespace: references.NamespaceName,
        uid: str | None,
        logger: typedefs.Logger,
) -> None:
    timeout = settings.waiting.deletion_timeout
    logger.info(f"Waiting for the pod {settings.pod.name!r} to be gone (up to {timeout}s).")
    await waiting.wait_for(
        settings=settings,
        resource=references.PODS,
        namespace=namespace,
        name=settings.pod.name,
        condition=conditions.is_deleted(uid),
        timeout=timeout,
        logger=logger,
    )
    logger.info(f"The pod {settings.pod.name!r} is gone.")
