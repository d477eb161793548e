"""
Logging of the walkthrough and of the objects it manipulates.

All per-object messages go through :class:`ObjectLogger`, which carries
the object's reference with every log record. The reference is then used
by the formatters: either as a ``[namespace/name]`` prefix in the text logs,
or as a separate field in the JSON logs (for log parsers & aggregators).
"""
import copy
import enum
import logging
from collections.abc import Mapping, MutableMapping
from typing import TYPE_CHECKING, Any, TextIO

from pythonjsonlogger.core import RESERVED_ATTRS
from pythonjsonlogger.json import JsonFormatter

from podcrud._cogs.helpers import typedefs
from podcrud._cogs.structs import bodies

logger = logging.getLogger('podcrud.objects')

# The field for the object references in the JSON logs, unless overridden.
DEFAULT_JSON_REFKEY = 'object'

# The loggers that are too chatty for anything but debugging.
LIBRARY_LOGGERS = ['asyncio', 'aiohttp']

# Upper bounds of the levels (inclusive), as understood by the log aggregators.
SEVERITIES = [
    (logging.DEBUG, 'debug'),
    (logging.INFO, 'info'),
    (logging.WARNING, 'warn'),
    (logging.ERROR, 'error'),
]


class LogFormat(enum.Enum):
    """ Log formats, as specified on CLI. """
    PLAIN = '%(message)s'
    FULL = '[%(asctime)s] %(name)-20.20s [%(levelname)-8.8s] %(message)s'
    JSON = '-json-'  # a marker only, never used as a format string.


def get_severity(levelno: int) -> str:
    for upper_bound, severity in SEVERITIES:
        if levelno <= upper_bound:
            return severity
    return 'fatal'


def get_prefix(ref: Mapping[str, Any]) -> str:
    namespace = ref.get('namespace')
    name = ref.get('name') or ''
    return f"[{namespace}/{name}]" if namespace else f"[{name}]"


class ObjectFormatter(logging.Formatter):
    """ A marker of our own formatters, to tell our handlers from the others. """


class ObjectTextFormatter(ObjectFormatter, logging.Formatter):
    pass


class ObjectJsonFormatter(ObjectFormatter, JsonFormatter):
    """
    JSON logs with the object reference and the severity as separate fields.

    The raw ``k8s_ref`` attribute of the records is not dumped as is;
    it is renamed to ``refkey`` (``object`` by default).
    """

    def __init__(
            self,
            *args: Any,
            refkey: str | None = None,
            **kwargs: Any,
    ) -> None:
        reserved = set(kwargs.pop('reserved_attrs', RESERVED_ATTRS)) | {'k8s_ref'}
        kwargs['reserved_attrs'] = reserved
        kwargs.setdefault('timestamp', True)
        super().__init__(*args, **kwargs)
        self.refkey: str = refkey or DEFAULT_JSON_REFKEY

    def add_fields(
            self,
            log_record: dict[str, object],
            record: logging.LogRecord,
            message_dict: dict[str, object],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        ref = getattr(record, 'k8s_ref', None)
        if ref is not None:
            log_record[self.refkey] = ref
        log_record.setdefault('severity', get_severity(record.levelno))


class ObjectPrefixingMixin(ObjectFormatter):
    def format(self, record: logging.LogRecord) -> str:
        ref = getattr(record, 'k8s_ref', None)
        if ref is not None:
            # Other handlers can see the same record, so it is never modified in place.
            record = copy.copy(record)
            record.msg = f"{get_prefix(ref)} {record.msg}"
        return super().format(record)


class ObjectPrefixingTextFormatter(ObjectPrefixingMixin, ObjectTextFormatter):
    pass


class ObjectPrefixingJsonFormatter(ObjectPrefixingMixin, ObjectJsonFormatter):
    pass


class ObjectLogger(typedefs.LoggerAdapter):
    """
    A logger adapter bound to one Kubernetes object.

    The body can be the object as returned by the API, or a manifest that
    is not created yet (it has no uid then). Either way, the records get
    a ``k8s_ref`` attribute shaped like an object reference of the API.
    """

    def __init__(self, *, body: bodies.RawBody) -> None:
        super().__init__(logger, {'k8s_ref': bodies.build_object_reference(body)})

    def process(
            self,
            msg: str,
            kwargs: MutableMapping[str, Any],
    ) -> tuple[str, MutableMapping[str, Any]]:
        # The stdlib adapters replace the call's extras; we keep both.
        kwargs['extra'] = {**(self.extra or {}), **kwargs.get('extra', {})}
        return msg, kwargs


# Our own handlers are replaced on every configuration (e.g. in the CLI tests,
# where the previous ones can write to an already closed stream of Click's runner).
if TYPE_CHECKING:
    class _OwnStreamHandler(logging.StreamHandler[TextIO]):
        pass
else:
    class _OwnStreamHandler(logging.StreamHandler):
        pass


def configure(
        debug: bool | None = None,
        verbose: bool | None = None,
        quiet: bool | None = None,
        log_format: LogFormat | str = LogFormat.FULL,
        log_prefix: bool | None = False,
        log_refkey: str | None = None,
) -> None:
    if debug or verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    handler = _OwnStreamHandler()
    handler.setFormatter(make_formatter(log_format=log_format,
                                        log_prefix=log_prefix,
                                        log_refkey=log_refkey))

    root = logging.getLogger()
    root.handlers[:] = [h for h in root.handlers if not isinstance(h, _OwnStreamHandler)]
    root.addHandler(handler)
    root.setLevel(level)

    for name in LIBRARY_LOGGERS:
        library_logger = logging.getLogger(name)
        library_logger.propagate = bool(debug)
        if not debug:
            library_logger.handlers[:] = [logging.NullHandler()]


def make_formatter(
        log_format: LogFormat | str = LogFormat.FULL,
        log_prefix: bool | None = False,
        log_refkey: str | None = None,
) -> ObjectFormatter:
    """
    Pick a formatter for the log format: JSON, one of the predefined text ones,
    or an arbitrary ``%``-style format string.

    With no explicit ``log_prefix``, the text logs are prefixed with the objects'
    names, the JSON logs are not (they have the objects' references as fields).
    """
    if log_prefix is None:
        log_prefix = log_format is not LogFormat.JSON

    match log_format:
        case LogFormat.JSON:
            json_cls = ObjectPrefixingJsonFormatter if log_prefix else ObjectJsonFormatter
            return json_cls(refkey=log_refkey)
        case LogFormat() | str():
            fmt = log_format.value if isinstance(log_format, LogFormat) else log_format
            text_cls = ObjectPrefixingTextFormatter if log_prefix else ObjectTextFormatter
            return text_cls(fmt)
        case _:
            raise ValueError(f"Unsupported log format: {log_format!r}")
