"""
Logging in with the credentials that are already around: the kubeconfig files
(as used by ``kubectl``) or the pod's service account (when in a cluster).

Only the static credentials are read: tokens, client certificates, basic auth.
Nothing is executed or refreshed: the exec-plugins are not supported, and
the auth-providers' tokens are used only if they are already in the file.
The results go to the vault (see :mod:`credentials` and :func:`authenticate`).
"""
import os
from collections.abc import Iterable
from typing import Any

import yaml

from podcrud._cogs.helpers import typedefs
from podcrud._cogs.structs import credentials

# Module-level to be patchable in tests. The higher, the more preferred.
PRIORITY_OF_KUBECONFIG: int = 10
PRIORITY_OF_SERVICE_ACCOUNT: int = 20

# Mounted into every pod: https://kubernetes.io/docs/tasks/run-application/access-api-from-pod/
SERVICE_ACCOUNT_DIR = '/var/run/secrets/kubernetes.io/serviceaccount'
SERVICE_ACCOUNT_SERVER = 'https://kubernetes.default.svc'

# The kubeconfig's fields with file paths, which can be relative to the kubeconfig.
KUBECONFIG_PATH_FIELDS = ['certificate-authority', 'client-certificate', 'client-key']


def login(
        *,
        logger: typedefs.Logger,
) -> dict[str, credentials.ConnectionInfo]:
    """
    Collect the credentials of all the available login methods.

    The results are keyed by the login method's name. Both methods can succeed
    at the same time (e.g. with a kubeconfig mounted into a pod); then,
    the service account goes first by its priority.
    """
    methods = [
        ('login_with_service_account', has_service_account, login_with_service_account),
        ('login_with_kubeconfig', has_kubeconfig, login_with_kubeconfig),
    ]
    results: dict[str, credentials.ConnectionInfo] = {}
    for name, is_available, method in methods:
        info = method(logger=logger) if is_available() else None
        if info is not None:
            logger.debug(f"Logged in with {name.removeprefix('login_with_')}.")
            results[name] = info

    if not results:
        raise credentials.LoginError("Cannot authenticate the client "
                                     "neither in-cluster, nor via kubeconfig.")
    return results


def has_service_account() -> bool:
    return os.path.exists(os.path.join(SERVICE_ACCOUNT_DIR, 'token'))


def _read_stripped(path: str) -> str | None:
    if not os.path.exists(path):
        return None
    with open(path, encoding='utf-8') as f:
        return f.read().strip() or None


def login_with_service_account(**_: Any) -> credentials.ConnectionInfo | None:
    token = _read_stripped(os.path.join(SERVICE_ACCOUNT_DIR, 'token'))
    if token is None:
        return None

    ca_path = os.path.join(SERVICE_ACCOUNT_DIR, 'ca.crt')
    namespace = _read_stripped(os.path.join(SERVICE_ACCOUNT_DIR, 'namespace'))

    # Kubernetes sets these env vars in every pod; the DNS name is only a fallback.
    host = os.environ.get('KUBERNETES_SERVICE_HOST')
    port = os.environ.get('KUBERNETES_SERVICE_PORT')
    if host and ':' in host:  # IPv6
        host = f'[{host}]'
    server = f'https://{host}:{port}' if host and port else SERVICE_ACCOUNT_SERVER

    return credentials.ConnectionInfo(
        server=server,
        ca_path=ca_path if os.path.exists(ca_path) else None,
        token=token,
        default_namespace=namespace,
        priority=PRIORITY_OF_SERVICE_ACCOUNT,
    )


def has_kubeconfig() -> bool:
    env_var_set = bool(os.environ.get('KUBECONFIG'))
    file_exists = os.path.exists(os.path.expanduser('~/.kube/config'))
    return env_var_set or file_exists


def login_with_kubeconfig(**_: Any) -> credentials.ConnectionInfo | None:
    """
    Read the credentials of the current context from the kubeconfig file(s).

    ``$KUBECONFIG`` can list several files; they are merged the way ``kubectl``
    merges them: the first file that sets a value wins, later files only add
    the missing values. With no ``$KUBECONFIG``, ``~/.kube/config`` is used
    if it exists. A missing or malformed file is a login error, not a skip.
    """
    kubeconfig = os.environ.get('KUBECONFIG')
    if not kubeconfig and os.path.exists(os.path.expanduser('~/.kube/config')):
        kubeconfig = '~/.kube/config'
    if not kubeconfig:
        return None

    paths = [os.path.expanduser(path.strip()) for path in kubeconfig.split(os.pathsep)]
    paths = [path for path in paths if path]

    current_context: str | None = None
    contexts: dict[str, Any] = {}
    clusters: dict[str, Any] = {}
    users: dict[str, Any] = {}
    for path in paths:
        try:
            with open(path, encoding='utf-8') as f:
                config = yaml.safe_load(f.read()) or {}
        except (OSError, yaml.YAMLError) as e:
            raise credentials.LoginError(f"Cannot read the kubeconfig {path!r}: {e}") from e
        basedir = os.path.dirname(path)
        current_context = current_context or config.get('current-context')
        _merge_named(contexts, config.get('contexts', []), 'context')
        _merge_named(clusters, config.get('clusters', []), 'cluster', basedir)
        _merge_named(users, config.get('users', []), 'user', basedir)

    if current_context is None:
        raise credentials.LoginError('Current context is not set in kubeconfigs.')
    if current_context not in contexts:
        raise credentials.LoginError(f'Current context {current_context!r} is not defined.')
    context = contexts[current_context]
    cluster = clusters.get(context.get('cluster'), {})
    user = users.get(context.get('user'), {})
    if not cluster.get('server'):
        raise credentials.LoginError(f"No server is defined for the context {current_context!r}.")

    # The token is not refreshed via the auth-provider; an expired one gets HTTP 401.
    provider_token = user.get('auth-provider', {}).get('config', {}).get('access-token')

    return credentials.ConnectionInfo(
        server=cluster.get('server'),
        ca_path=cluster.get('certificate-authority'),
        ca_data=cluster.get('certificate-authority-data'),
        insecure=cluster.get('insecure-skip-tls-verify'),
        certificate_path=user.get('client-certificate'),
        certificate_data=user.get('client-certificate-data'),
        private_key_path=user.get('client-key'),
        private_key_data=user.get('client-key-data'),
        username=user.get('username'),
        password=user.get('password'),
        token=user.get('token') or provider_token,
        default_namespace=context.get('namespace'),
        priority=PRIORITY_OF_KUBECONFIG,
    )


def _merge_named(
        target: dict[str, Any],
        items: Iterable[dict[str, Any]],
        field: str,
        basedir: str | None = None,
) -> None:
    for item in items:
        if item['name'] in target:
            continue
        section = dict(item.get(field) or {})
        if basedir is not None:
            for key in KUBECONFIG_PATH_FIELDS:
                path = section.get(key)
                if path and not os.path.isabs(path):
                    section[key] = os.path.join(basedir, path)
        target[item['name']] = section
