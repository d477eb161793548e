import aiohttp.web
import pytest

from podcrud._cogs.clients.errors import APIConflictError, APIError, APINotFoundError
from podcrud._cogs.clients.patching import patch_obj
from podcrud._cogs.structs.patches import Patch


async def test_merge_patch_is_sent(
        resp_mocker, aresponses, hostname, settings, resource, namespace, logger):

    result = {'metadata': {'name': 'name1'}, 'spec': {'activeDeadlineSeconds': 5}}
    patch_mock = resp_mocker(return_value=aiohttp.web.json_response(result))
    aresponses.add(hostname, resource.get_url(namespace=namespace, name='name1'), 'patch', patch_mock)

    patch = Patch({'spec': {'activeDeadlineSeconds': 5}})
    body = await patch_obj(
        settings=settings,
        resource=resource,
        namespace=namespace,
        name='name1',
        patch=patch,
        logger=logger,
    )

    assert body == result
    assert patch_mock.called
    assert patch_mock.call_count == 1

    request = patch_mock.call_args_list[0][0][0]  # [callidx][args/kwargs][argidx]
    assert request.headers['Content-Type'] == 'application/merge-patch+json'
    assert request.data == {'spec': {'activeDeadlineSeconds': 5}}


async def test_resource_version_is_sent(
        resp_mocker, aresponses, hostname, settings, resource, namespace, logger):

    patch_mock = resp_mocker(return_value=aiohttp.web.json_response({}))
    aresponses.add(hostname, resource.get_url(namespace=namespace, name='name1'), 'patch', patch_mock)

    patch = Patch({'spec': {'x': 'y'}}).with_resource_version('123')
    await patch_obj(settings=settings, resource=resource, namespace=namespace,
                    name='name1', patch=patch, logger=logger)

    data = patch_mock.call_args_list[0][0][0].data  # [callidx][args/kwargs][argidx]
    assert data == {'metadata': {'resourceVersion': '123'}, 'spec': {'x': 'y'}}


@pytest.mark.parametrize('status, exctype', [
    (404, APINotFoundError),
    (409, APIConflictError),
    (422, APIError),
    (500, APIError),
])
async def test_raises_api_errors(
        resp_mocker, aresponses, hostname, settings, resource, namespace, logger,
        status, exctype):

    patch_mock = resp_mocker(return_value=aresponses.Response(status=status))
    aresponses.add(hostname, resource.get_url(namespace=namespace, name='name1'), 'patch', patch_mock)

    with pytest.raises(exctype) as err:
        await patch_obj(settings=settings, resource=resource, namespace=namespace,
                        name='name1', patch=Patch({}), logger=logger)
    assert err.value.status == status
