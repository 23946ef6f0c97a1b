"""
Logging of the watching sessions, and the logging setup for the CLI.

Every session logs via its own `TargetLogger`, which carries the identity
of the watched target in the log records. The formatters can then prefix
the messages with the target (in the text formats), or put it into
a separate field (in the JSON format), so that the logs of many concurrent
sessions can be told apart.
"""
import asyncio
import copy
import enum
import logging
from typing import Any, MutableMapping, Optional, Tuple

from pythonjsonlogger import json as jsonlogger
from pythonjsonlogger.core import RESERVED_ATTRS

from kwatch._cogs.structs import references

DEFAULT_JSON_REFKEY = 'target'
""" A key for target references in JSON logs, as seen by the log parsers. """


class LogFormat(enum.Enum):
    """ Log formats, as specified on CLI. """
    PLAIN = '%(message)s'
    FULL = '[%(asctime)s] %(name)-20.20s [%(levelname)-8.8s] %(message)s'
    JSON = '-json-'  # not a format; only to select the JSON formatter


class TargetFormatter(logging.Formatter):
    pass


class TargetTextFormatter(TargetFormatter, logging.Formatter):
    pass


class TargetJsonFormatter(TargetFormatter, jsonlogger.JsonFormatter):
    def __init__(
            self,
            *args: Any,
            refkey: Optional[str] = None,
            **kwargs: Any,
    ) -> None:
        # Avoid type checking, as the args are not in the parent constructor.
        reserved_attrs = kwargs.pop('reserved_attrs', RESERVED_ATTRS)
        reserved_attrs = set(reserved_attrs)
        reserved_attrs |= {'k8s_target'}
        kwargs.update(reserved_attrs=reserved_attrs)
        kwargs.setdefault('timestamp', True)
        super().__init__(*args, **kwargs)
        self._refkey: str = refkey or DEFAULT_JSON_REFKEY

    def add_fields(
            self,
            log_record: MutableMapping[str, Any],
            record: logging.LogRecord,
            message_dict: MutableMapping[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if self._refkey and hasattr(record, 'k8s_target'):
            ref = getattr(record, 'k8s_target')
            log_record[self._refkey] = ref

        if 'severity' not in log_record:
            log_record['severity'] = (
                "debug" if record.levelno <= logging.DEBUG else
                "info" if record.levelno <= logging.INFO else
                "warn" if record.levelno <= logging.WARNING else
                "error" if record.levelno <= logging.ERROR else
                "fatal")


class TargetPrefixingMixin(TargetFormatter):
    def format(self, record: logging.LogRecord) -> str:
        if hasattr(record, 'k8s_target'):
            ref = getattr(record, 'k8s_target')
            namespace = ref.get('namespace') or ''
            name = ref.get('name') or ref.get('labels') or '*'
            prefix = f"[{namespace}/{name}]" if namespace else f"[{name}]"
            record = copy.copy(record)  # shallow
            record.msg = f"{prefix} {record.msg}"
        return super().format(record)


class TargetPrefixingTextFormatter(TargetPrefixingMixin, TargetTextFormatter):
    pass


class TargetPrefixingJsonFormatter(TargetPrefixingMixin, TargetJsonFormatter):
    pass


class TargetLogger(logging.LoggerAdapter):
    """
    A logger/adapter to carry the target identifiers for formatting.

    Constructed once per watching session. The structure of the reference
    is made similar to an object reference in K8s API, with the label
    selector instead of the name for the label-selected targets.
    """

    def __init__(self, *, target: references.WatchTarget) -> None:
        super().__init__(logger, dict(
            k8s_target=dict(
                apiVersion='/'.join(filter(None, [target.resource.group,
                                                  target.resource.version])),
                kind=target.resource.kind,
                plural=target.resource.plural,
                namespace=target.namespace,
                name=target.name,
                labels=target.label_selector,
            ),
        ))

    def process(
            self,
            msg: str,
            kwargs: MutableMapping[str, Any],
    ) -> Tuple[str, MutableMapping[str, Any]]:
        # Native logging overwrites the message's extra with the adapter's extra.
        # We merge them, so that both message's & adapter's extras are available.
        kwargs["extra"] = dict(self.extra or {}, **kwargs.get('extra', {}))
        return msg, kwargs


logger = logging.getLogger('kwatch.sessions')


def configure(
        debug: Optional[bool] = None,
        verbose: Optional[bool] = None,
        quiet: Optional[bool] = None,
        log_format: LogFormat = LogFormat.FULL,
        log_prefix: Optional[bool] = True,
        log_refkey: Optional[str] = None,
) -> None:
    log_level = 'DEBUG' if debug or verbose else 'WARNING' if quiet else 'INFO'
    formatter = make_formatter(log_format=log_format, log_prefix=log_prefix, log_refkey=log_refkey)
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    logger = logging.getLogger()
    logger.addHandler(handler)
    logger.setLevel(log_level)

    # Prevent the low-level logging unless in the debug mode. Keep only our own messages.
    # For no-propagation loggers, add a dummy null handler to prevent printing the messages.
    for name in ['asyncio']:
        logger = logging.getLogger(name)
        logger.propagate = bool(debug)
        if not debug:
            logger.handlers[:] = [logging.NullHandler()]

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        pass  # the loop is not created yet; it is configured by `asyncio.run(debug=...)`.
    else:
        loop.set_debug(bool(debug))


def make_formatter(
        log_format: LogFormat = LogFormat.FULL,
        log_prefix: Optional[bool] = True,
        log_refkey: Optional[str] = None,
) -> TargetFormatter:
    log_prefix = log_prefix if log_prefix is not None else bool(log_format is not LogFormat.JSON)
    if log_format is LogFormat.JSON:
        if log_prefix:
            return TargetPrefixingJsonFormatter(refkey=log_refkey)
        else:
            return TargetJsonFormatter(refkey=log_refkey)
    elif isinstance(log_format, LogFormat):
        if log_prefix:
            return TargetPrefixingTextFormatter(log_format.value)
        else:
            return TargetTextFormatter(log_format.value)
    elif isinstance(log_format, str):
        if log_prefix:
            return TargetPrefixingTextFormatter(log_format)
        else:
            return TargetTextFormatter(log_format)
    else:
        raise ValueError(f"Unsupported log format: {log_format!r}")
