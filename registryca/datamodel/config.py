'''
Class for modeling the configuration of the registry certificate authority

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2024, 2025
:license    : GPLv3
'''

import os
import yaml

from logging import getLogger
from datetime import timedelta

from registryca.datatypes import Cluster
from registryca.datatypes import IssuerType
from registryca.datatypes import StorageType

from registryca.util.logger import Logger
from registryca.util.wait import DEFAULT_POLL_INTERVAL
from registryca.util.wait import DEFAULT_POLL_TIMEOUT

from registryca.secrets.registrytls_secret import DEFAULT_EXPIRATION

_LOGGER: Logger = getLogger(__name__)


class ServerConfig:
    '''
    Configuration class for the registry certificate authority.
    Config file format:
      application:
        debug: bool
        loglevel: str

      registryca:
        issuer: str['self-signed', 'delegated']
        storage: str['memory', 'file']
        root_dir: str
        logfile: str
        leaf_duration_days: int
        poll_interval: float
        poll_timeout: float
        management_cluster:
          name: str
          namespace: str
          uid: str
          service_cidr_blocks: list[str]
    '''

    def __init__(self, config_block: str = 'registryca',
                 filepath: str = None) -> None:
        '''
        Reads the config.yml file. This class is called before logging
        is setup so can't send log messages

        :raises: KeyError, ValueError for missing or invalid settings
        '''

        # path to config file
        self.filepath: str
        if not filepath:
            self.filepath = os.environ.get('CONFIG_FILE', 'config.yml')
        else:
            self.filepath = filepath

        with open(self.filepath) as file_desc:
            self.raw_config: dict[str, str | int | bool] = yaml.load(
                file_desc, Loader=yaml.SafeLoader
            )

        self.server_config: dict = self.raw_config[config_block]
        self.app_config: dict = self.raw_config.get('application', {})

        self.logfile: str | None = self.server_config.get('logfile')
        self.loglevel: str = self.app_config.get('loglevel', 'INFO')

        # Debug should be set as YAML bool (ie. True or False) but we take
        # strings as well. All strings except string.lower 'false' are
        # considered True
        debug_setting: str = self.app_config.get('debug')
        self.debug: bool = False
        if isinstance(debug_setting, bool):
            self.debug = debug_setting
        elif debug_setting and debug_setting.lower() != 'false':
            self.debug = True

        self.issuer_type: IssuerType = IssuerType(
            self.server_config.get('issuer', IssuerType.SELF_SIGNED.value)
        )
        self.storage_type: StorageType = StorageType(
            self.server_config.get('storage', StorageType.MEMORY.value)
        )
        self.root_dir: str | None = self.server_config.get('root_dir')
        if self.storage_type == StorageType.FILE and not self.root_dir:
            raise ValueError(
                f'root_dir must be set for storage {self.storage_type.value}'
            )

        self.leaf_duration: timedelta = DEFAULT_EXPIRATION
        duration_days: int | None = self.server_config.get(
            'leaf_duration_days'
        )
        if duration_days is not None:
            if int(duration_days) <= 0:
                raise ValueError(
                    f'Invalid leaf_duration_days: {duration_days}'
                )
            self.leaf_duration = timedelta(days=int(duration_days))

        self.poll_interval: float = float(
            self.server_config.get('poll_interval', DEFAULT_POLL_INTERVAL)
        )
        self.poll_timeout: float = float(
            self.server_config.get('poll_timeout', DEFAULT_POLL_TIMEOUT)
        )

        self.management_cluster: Cluster | None = None
        cluster_config: dict | None = self.server_config.get(
            'management_cluster'
        )
        if cluster_config:
            self.management_cluster = Cluster(
                name=cluster_config['name'],
                namespace=cluster_config['namespace'],
                uid=cluster_config.get('uid', ''),
                service_cidr_blocks=cluster_config.get(
                    'service_cidr_blocks', []
                )
            )

    def get_logger(self, appname: str) -> Logger:
        '''
        Sets up JSON logging with the log level and log file from the
        configuration file. With debug enabled, logs go to STDOUT
        '''

        logfile: str | None = self.logfile
        if self.debug:
            logfile = None

        return Logger.getLogger(
            appname, json_out=True, debug=self.debug,
            loglevel=None if self.debug else self.loglevel,
            logfile=logfile
        )
