import pytest

from podcrud._cogs.clients.errors import APIError, APINotFoundError
from podcrud._cogs.clients.watching import WatchingError
from podcrud._cogs.structs.credentials import LoginError
from podcrud._core.engines.waiting import ConditionTimeoutError
from podcrud._core.reactor.scenario import ScenarioError


@pytest.mark.parametrize('exc, expected', [
    (ScenarioError("Wrong name.", step='create'), "Step 'create' has failed: Wrong name."),
    (ConditionTimeoutError("Condition is not met in 15.0s.", timeout=15.0),
     "Condition is not met in 15.0s."),
    (WatchingError("Error in the watch-stream."), "Error in the watch-stream."),
    (LoginError("Cannot authenticate."), "Cannot authenticate."),
    (APINotFoundError({'message': 'pods "blog" not found'}, status=404),
     'API error 404: pods "blog" not found'),
    (APIError(None, status=500), "API error 500: no details"),
])
def test_known_errors_are_reported_briefly(invoke, real_run, exc, expected):
    real_run.side_effect = exc
    result = invoke(['run'])
    assert result.exit_code == 1
    assert f"Error: {expected}" in result.output
    assert 'Traceback' not in result.output


def test_unknown_errors_escalate(invoke, real_run):
    real_run.side_effect = ValueError("boo!")
    result = invoke(['run'])
    assert result.exit_code == 1
    assert isinstance(result.exception, ValueError)
