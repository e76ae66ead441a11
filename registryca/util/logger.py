'''
Python module for standardized logging of the registry certificate
authority. Logs are JSON by default so they can be shipped as-is by the
log collector of the management cluster

:maintainer : Steven Hessing (steven@byoda.org)
:copyright  : Copyright 2020, 2021, 2025
:license    : GPLv3
'''

import os
import sys
import logging

from typing import Self
from datetime import datetime
from datetime import timezone

from pythonjsonlogger import jsonlogger

from registryca import config

JSON_LOG_FIELDS: list[str] = [
    'asctime', 'name', 'process', 'filename', 'funcName', 'levelname',
    'lineno', 'module', 'message'
]

TEXT_LOG_FORMAT: str = (
    '%(asctime)s %(levelname)s %(name)s %(module)s %(funcName)s '
    '%(lineno)d %(message)s'
)

# Loggers of our own modules that are too chatty at DEBUG level
QUIET_LOGGERS: dict[str, int] = {
    'asyncio': logging.WARNING,
    'registryca.storage.filestorage': logging.INFO,
    'registryca.storage.memory': logging.INFO,
}


class Logger(logging.Logger):
    '''
    Sets up the root logger so that all modules of the package,
    which log through logging.getLogger(__name__), share the settings
    '''

    @staticmethod
    def getLogger(appname: str, loglevel: int | str = None,
                  json_out: bool = True, extra: dict[str, str] = None,
                  logfile: str = None, debug: bool = False,
                  verbose: bool = False) -> Self:
        '''
        Factory for loggers. Configures the root logger and returns the
        logger for the application

        :param appname: name of the logger, any directory and extension
        is stripped so sys.argv[0] can be passed
        :param loglevel: level as int or as name, ie. 'INFO'. If not set,
        the level follows from debug and verbose, with WARNING as default
        :param json_out: log as JSON instead of as plain text
        :param extra: key/value pairs added to every JSON log record
        :param logfile: log to this file instead of to STDOUT
        :param debug: log at DEBUG level
        :param verbose: log at INFO level
        :returns: the logger for the application
        :raises: ValueError for conflicting parameters
        '''

        if verbose and debug:
            raise ValueError(
                'Verbose and debug can not be enabled at the same time'
            )

        if extra and not json_out:
            raise ValueError(
                'Extra log fields are only supported for JSON logs'
            )

        loglevel = Logger._get_level(loglevel, debug, verbose)

        if logfile:
            handler: logging.Handler = logging.FileHandler(logfile)
        else:
            handler = logging.StreamHandler(sys.stdout)

        handler.setLevel(loglevel)
        if json_out:
            handler.setFormatter(RegistryCaJsonFormatter(extra=extra))
        else:
            handler.setFormatter(logging.Formatter(fmt=TEXT_LOG_FORMAT))

        root_logger: logging.Logger = logging.getLogger()
        root_logger.setLevel(loglevel)
        root_logger.addHandler(handler)

        for name, level in QUIET_LOGGERS.items():
            logging.getLogger(name).setLevel(level)

        appname = os.path.splitext(os.path.basename(appname))[0]

        return logging.getLogger(appname)

    @staticmethod
    def _get_level(loglevel: int | str | None, debug: bool, verbose: bool
                   ) -> int | str:
        if loglevel:
            return loglevel

        if debug:
            return logging.DEBUG

        if verbose:
            return logging.INFO

        return logging.WARNING


class RegistryCaJsonFormatter(jsonlogger.JsonFormatter):
    '''
    Adds a UTC timestamp, the level in upper case, the fields passed to
    Logger.getLogger() and the fields in config.extra_log_data to each
    log record
    '''

    def __init__(self, extra: dict[str, any] | None = None) -> None:
        self.extra: dict[str, any] = extra or {}

        super().__init__(
            ' '.join(f'%({field})' for field in JSON_LOG_FIELDS)
        )

    def add_fields(self, log_record, record, message_dict) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get('timestamp'):
            log_record['timestamp'] = datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).strftime('%Y-%m-%dT%H:%M:%S.%fZ')

        level: str | None = log_record.get('level')
        log_record['level'] = level.upper() if level else record.levelname

        log_record.update(self.extra)
        log_record.update(config.extra_log_data)
