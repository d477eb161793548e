"""
Conditions to wait for, as evaluated against the watched object.

A condition is a plain function of the object's latest known state,
which returns ``True`` when the awaited state is reached. The state is
``None`` when the object does not exist (yet or anymore). For example::

    condition = is_pod_running()
    condition({'status': {'phase': 'Running'}})  # True
    condition(None)  # False

The conditions are constructed by factories, so that they can be
parametrized (e.g. with a uid) and combined (see `all_of` & `any_of`).
"""
from collections.abc import Callable

from podcrud._cogs.structs import bodies

Condition = Callable[[bodies.RawBody | None], bool]


def is_pod_running() -> Condition:
    """ The pod is present and is in the ``Running`` phase. """
    return _is_pod_in_phase('Running')


def is_pod_succeeded() -> Condition:
    """ The pod is present and all of its containers have exited successfully. """
    return _is_pod_in_phase('Succeeded')


def is_pod_failed() -> Condition:
    """ The pod is present and at least one of its containers has failed. """
    return _is_pod_in_phase('Failed')


def _is_pod_in_phase(phase: str) -> Condition:
    def fn(body: bodies.RawBody | None) -> bool:
        return body is not None and bodies.get_phase(body) == phase
    fn.__name__ = f'is_pod_{phase.lower()}'
    return fn


def is_deleted(uid: str | None) -> Condition:
    """
    The object is absent, or is a different object with the same name.

    The uid distinguishes the deleted object from the newly created one
    with the same name, if it is re-created while we are waiting.
    """
    def fn(body: bodies.RawBody | None) -> bool:
        return body is None or (uid is not None and bodies.get_uid(body) != uid)
    fn.__name__ = 'is_deleted'
    return fn


def all_of(*conditions: Condition) -> Condition:
    def fn(body: bodies.RawBody | None) -> bool:
        return all(condition(body) for condition in conditions)
    fn.__name__ = _join_names(' and ', conditions)
    return fn


def any_of(*conditions: Condition) -> Condition:
    def fn(body: bodies.RawBody | None) -> bool:
        return any(condition(body) for condition in conditions)
    fn.__name__ = _join_names(' or ', conditions)
    return fn


def negate(condition: Condition) -> Condition:
    def fn(body: bodies.RawBody | None) -> bool:
        return not condition(body)
    fn.__name__ = f"not {getattr(condition, '__name__', repr(condition))}"
    return fn


def _join_names(separator: str, conditions: tuple[Condition, ...]) -> str:
    names = [getattr(condition, '__name__', repr(condition)) for condition in conditions]
    return f"({separator.join(names)})"
