'''
Exceptions that log messages

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2021, 2022, 2023, 2024, 2025
:license    : GPLv3
'''

import logging
from logging import Logger
from logging import getLogger

_LOGGER: Logger = getLogger(__name__)


class RegistryCaError(Exception):
    '''
    Base class for the exceptions of the registry certificate authority
    '''

    def __init__(self, message: str, loglevel: int = logging.DEBUG) -> None:
        _LOGGER.log(level=loglevel, msg=message)
        super().__init__(message)


class NotFoundError(RegistryCaError, LookupError):
    '''
    A secret, or a field in a secret, does not exist
    '''

    def __init__(self, message: str, loglevel: int = logging.DEBUG) -> None:
        super().__init__(message, loglevel)


class ConflictError(RegistryCaError):
    '''
    Raised by a store when creating an object that already exists
    '''

    def __init__(self, message: str, loglevel: int = logging.DEBUG) -> None:
        super().__init__(message, loglevel)


class DecodeError(RegistryCaError, ValueError):
    '''
    Malformed PEM data or PEM block of an unexpected type
    '''

    def __init__(self, message: str, loglevel: int = logging.DEBUG) -> None:
        super().__init__(message, loglevel)


class ParseError(RegistryCaError, ValueError):
    '''
    Malformed X.509 certificate or private key, or an
    unsupported key encoding
    '''

    def __init__(self, message: str, loglevel: int = logging.DEBUG) -> None:
        super().__init__(message, loglevel)


class SigningError(RegistryCaError):
    def __init__(self, message: str, loglevel: int = logging.ERROR) -> None:
        super().__init__(message, loglevel)


class StoreError(RegistryCaError):
    '''
    Persistence or network failure of a secret or object store
    '''

    def __init__(self, message: str, loglevel: int = logging.DEBUG) -> None:
        super().__init__(message, loglevel)


class PollTimeoutError(RegistryCaError, TimeoutError):
    '''
    A bounded poll for an object produced by an external
    controller did not complete in time
    '''

    def __init__(self, message: str, loglevel: int = logging.INFO) -> None:
        super().__init__(message, loglevel)
