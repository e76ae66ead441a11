'''
Python module for the names of the secrets and objects of the
registry certificate authority

:maintainer : Steven Hessing (steven@byoda.org)
:copyright  : Copyright 2020, 2021, 2025
:license    : GPLv3
'''

from logging import Logger
from logging import getLogger

from registryca.datatypes import Cluster

_LOGGER: Logger = getLogger(__name__)


class Names:
    '''
    Name management. Provides a uniform interface to the names of
    the secrets and objects we create on the management cluster
    '''

    # Templates for the names of secrets and objects
    ROOT_CA_SECRET            = 'registry-addon-root-ca'                # noqa
    CLUSTER_CA_SECRET         = '{cluster}-registry-addon-ca'           # noqa
    CLUSTER_TLS_SECRET        = '{cluster}-registry-tls'                # noqa
    CLUSTER_CERTIFICATE       = '{cluster}-registry-tls'                # noqa

    # Names of the objects of the external certificate controller
    SELFSIGNED_ISSUER         = 'registry-addon-selfsigned'             # noqa
    ROOT_CA_CERTIFICATE       = 'registry-addon-root-ca'                # noqa
    CA_ISSUER                 = 'registry-addon-ca-issuer'              # noqa

    # Common name of the root CA certificate
    ROOT_CA_COMMON_NAME       = 'registry-addon'                        # noqa

    @staticmethod
    def get(template: str, cluster: Cluster | str = None) -> str:
        '''
        Gets the name for the template

        :param template: string to be formatted
        :param cluster: the cluster or the name of the cluster, required
        for templates that include the cluster name
        :returns: the name
        :raises: KeyError if the template needs a cluster and none
        was provided
        '''

        if '{cluster}' in template:
            if not cluster:
                raise KeyError(f'Name {template} requires a cluster')

            if isinstance(cluster, Cluster):
                cluster = cluster.name

            return template.format(cluster=cluster)

        return template

    @staticmethod
    def cluster_ca_secret(cluster: Cluster | str) -> str:
        return Names.get(Names.CLUSTER_CA_SECRET, cluster)

    @staticmethod
    def cluster_tls_secret(cluster: Cluster | str) -> str:
        return Names.get(Names.CLUSTER_TLS_SECRET, cluster)
