"""
Detecting the package's own version.

The version is determined only once at startup when the code is loaded,
and is used to self-identify in the API requests (``User-Agent``).
"""
version: str | None = None

try:
    import importlib.metadata
except ImportError:
    pass
else:
    try:
        name, *_ = __name__.split('.')  # usually "podcrud", unless renamed/forked.
        version = importlib.metadata.version(name)
    except importlib.metadata.PackageNotFoundError:
        pass  # running from a source tree without installation.
