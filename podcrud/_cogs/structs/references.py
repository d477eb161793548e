"""
References to the API resources and the URLs built from them.
"""
import dataclasses
import urllib.parse
from collections.abc import Mapping
from typing import NewType

# A namespace that is known or assumed to exist; distinct from arbitrary strings.
NamespaceName = NewType('NamespaceName', str)

# A namespace for the API calls; `None` means the cluster-wide calls.
Namespace = NamespaceName | None


@dataclasses.dataclass(frozen=True)
class Resource:
    """
    A resource kind as addressed in the API: by its group, version, and plural.

    The other fields are informational; they do not participate in the
    comparison and hashing, so a partially known resource equals a fully known one.
    """

    group: str  # empty for the core v1 resources, e.g. pods.
    version: str
    plural: str
    kind: str | None = dataclasses.field(default=None, compare=False)
    subresources: frozenset[str] = dataclasses.field(default=frozenset(), compare=False)
    namespaced: bool | None = dataclasses.field(default=None, compare=False)

    def __repr__(self) -> str:
        return '.'.join(part for part in (self.plural, self.version, self.group) if part)

    @property
    def api_version(self) -> str:
        return f'{self.group}/{self.version}' if self.group else self.version

    def get_url(
            self,
            *,
            server: str | None = None,
            namespace: Namespace = None,
            name: str | None = None,
            subresource: str | None = None,
            params: Mapping[str, str] | None = None,
    ) -> str:
        """
        Build the URL of a list of objects, of one object, or of its subresource.

        With no namespace, the URL is cluster-wide (e.g. to list the pods in all
        namespaces). With no server, the URL is relative to the API root.
        The params are url-encoded into the query.
        """
        if subresource is not None and name is None:
            raise ValueError("Subresources can be used only with specific resources by their name.")
        if not self.namespaced and namespace is not None:
            raise ValueError("Specific namespaces are not supported for cluster-scoped resources.")
        if self.namespaced and namespace is None and name is not None:
            raise ValueError("Specific namespaces are required for specific namespaced resources.")

        segments = ['/api'] if not self.group and self.version == 'v1' else ['/apis', self.group]
        segments.append(self.version)
        if self.namespaced and namespace is not None:
            segments.extend(['namespaces', namespace])
        segments.extend([self.plural, name or '', subresource or ''])

        url = '/'.join(segment for segment in segments if segment)
        if params:
            url = f"{url}?{urllib.parse.urlencode(params, encoding='utf-8')}"
        return url if server is None else f"{server.rstrip('/')}/{url.lstrip('/')}"


PODS = Resource(
    '', 'v1', 'pods',
    kind='Pod',
    namespaced=True,
    subresources=frozenset({'status', 'log', 'exec', 'attach', 'binding', 'eviction'}),
)
