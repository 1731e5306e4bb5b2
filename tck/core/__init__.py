"""Core infrastructure: settings, logging, exceptions, cancellation."""

from .cancellation import CancelToken
from .config import Endpoint, Settings, load_settings
from .exceptions import (
    DataUnavailableError,
    EntityDeletedError,
    FieldNotPresentError,
    InvalidQueryError,
    MismatchError,
    NotFoundError,
    PollCancelledError,
    RecordValidationError,
    RpcProtocolError,
    TckError,
    TransportError,
    UnexpectedRecordError,
    UnknownFieldError,
)
from .logging import get_logger, setup_logging


__all__ = [
    "CancelToken",
    "DataUnavailableError",
    "Endpoint",
    "EntityDeletedError",
    "FieldNotPresentError",
    "InvalidQueryError",
    "MismatchError",
    "NotFoundError",
    "PollCancelledError",
    "RecordValidationError",
    "RpcProtocolError",
    "Settings",
    "TckError",
    "TransportError",
    "UnexpectedRecordError",
    "UnknownFieldError",
    "get_logger",
    "load_settings",
    "setup_logging",
]
