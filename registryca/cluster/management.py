'''
Finding the management cluster of the control plane

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2025
:license    : GPLv3
'''

from abc import ABC
from abc import abstractmethod
from logging import Logger
from logging import getLogger

from registryca.datatypes import Cluster

_LOGGER: Logger = getLogger(__name__)


class ManagementClusterResolver(ABC):
    '''
    Yields the cluster that hosts the control plane, or the cluster that
    will become the management cluster while the control plane still runs
    on a bootstrap cluster
    '''

    @abstractmethod
    async def management_cluster(self) -> Cluster | None:
        '''
        :returns: the management cluster or None if no cluster has been
        designated as management cluster
        '''
        raise NotImplementedError

    async def is_management_cluster(self, cluster: Cluster) -> bool:
        management_cluster: Cluster | None = await self.management_cluster()
        if not management_cluster:
            return False

        return (
            management_cluster.name == cluster.name
            and management_cluster.namespace == cluster.namespace
        )


class StaticManagementClusterResolver(ManagementClusterResolver):
    '''
    Resolver for a management cluster that is known up front, ie. from
    the configuration file
    '''

    def __init__(self, cluster: Cluster | None = None) -> None:
        self.cluster: Cluster | None = cluster

    async def management_cluster(self) -> Cluster | None:
        return self.cluster
