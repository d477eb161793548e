"""
All the structures needed for Kubernetes patching.

Currently, it is implemented via a JSON merge-patch (RFC 7386),
i.e. a simple dictionary with field overrides, and ``None`` for field deletions.
"""
from collections.abc import MutableMapping
from typing import Any

MERGE_PATCH_CONTENT_TYPE = 'application/merge-patch+json'


class Patch(dict[str, Any]):
    """
    A merge-patch with convenience accessors for the top-level sections.

    The sections are created on first access, so that the nested fields
    can be assigned directly: ``patch.spec['activeDeadlineSeconds'] = 5``.
    """

    def __init__(self, __src: MutableMapping[str, Any] | None = None) -> None:
        super().__init__(__src or {})

    @property
    def metadata(self) -> dict[str, Any]:
        return self._section('metadata')

    @property
    def meta(self) -> dict[str, Any]:
        return self._section('metadata')

    @property
    def spec(self) -> dict[str, Any]:
        return self._section('spec')

    @property
    def status(self) -> dict[str, Any]:
        return self._section('status')

    def _section(self, key: str) -> dict[str, Any]:
        value = self.setdefault(key, {})
        if not isinstance(value, dict):
            raise TypeError(f"The patch's {key!r} is not a mapping: {value!r}")
        return value

    def with_resource_version(self, resource_version: str | None) -> "Patch":
        """
        Pin the patch to the observed version of the object.

        The API server rejects the patch with HTTP 409 Conflict if the object
        has been modified since that version was observed (optimistic concurrency).
        Without a version, the patch is applied to whatever the latest object is.
        """
        patch = Patch(dict(self))
        if resource_version is not None:
            patch['metadata'] = dict(self.get('metadata') or {}, resourceVersion=resource_version)
        return patch
