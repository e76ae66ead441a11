'''
Distribution of secrets to workload clusters

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2025
:license    : GPLv3
'''

from abc import ABC
from abc import abstractmethod
from logging import Logger
from logging import getLogger

from registryca.datatypes import Cluster
from registryca.datatypes import StorageType
from registryca.datatypes import StoredSecret

from registryca.exceptions import StoreError
from registryca.exceptions import RegistryCaError

from registryca.storage.secretstore import SecretStore

_LOGGER: Logger = getLogger(__name__)


class RemoteClusterClientFactory(ABC):
    '''
    Given a cluster, yields a client for reading and writing secrets
    inside that cluster
    '''

    @abstractmethod
    async def get_client(self, cluster: Cluster) -> SecretStore:
        raise NotImplementedError


class LocalRemoteClusterClientFactory(RemoteClusterClientFactory):
    '''
    Keeps a secret store per cluster, either in memory or on the local
    file system under <root_dir>/clusters/<cluster-namespace>/<cluster-name>
    '''

    def __init__(self, storage_type: StorageType = StorageType.MEMORY,
                 root_dir: str = None) -> None:
        self.storage_type: StorageType = storage_type
        self.root_dir: str | None = root_dir
        self.clients: dict[tuple[str, str], SecretStore] = {}

    async def get_client(self, cluster: Cluster) -> SecretStore:
        key: tuple[str, str] = (cluster.namespace, cluster.name)
        if key not in self.clients:
            if self.storage_type == StorageType.MEMORY:
                from registryca.storage.memory import MemorySecretStore
                self.clients[key] = MemorySecretStore(require_namespaces=True)
            else:
                self.clients[key] = await SecretStore.get_store(
                    self.storage_type,
                    f'{self.root_dir}/clusters/{cluster.namespace}/'
                    f'{cluster.name}'
                )

        return self.clients[key]


class RemoteDistributor:
    '''
    Applies secrets inside workload clusters. The write to the workload
    cluster is independent of any write on the management cluster: if
    it fails, the caller can retry the whole operation
    '''

    def __init__(self, clients: RemoteClusterClientFactory) -> None:
        self.clients: RemoteClusterClientFactory = clients

    async def distribute(self, cluster: Cluster, secret: StoredSecret
                         ) -> None:
        '''
        Ensures the namespace of the secret exists in the workload cluster
        and applies the secret

        :raises: StoreError
        '''

        _LOGGER.debug(
            f'Distributing secret {secret.key} to cluster {cluster.key}'
        )

        try:
            client: SecretStore = await self.clients.get_client(cluster)
        except (RegistryCaError, OSError) as exc:
            raise StoreError(
                f'Error creating client for remote cluster {cluster.key}: '
                f'{exc}'
            ) from exc

        await self.ensure_namespace(client, cluster, secret.namespace)

        try:
            await client.apply(secret)
        except (RegistryCaError, OSError) as exc:
            raise StoreError(
                f'Error creating Secret {secret.key} on the remote cluster '
                f'{cluster.key}: {exc}'
            ) from exc

        _LOGGER.info(
            f'Applied secret {secret.key} on cluster {cluster.key}'
        )

    @staticmethod
    async def ensure_namespace(client: SecretStore, cluster: Cluster,
                               namespace: str) -> None:
        try:
            await client.ensure_namespace(namespace)
        except (RegistryCaError, OSError) as exc:
            raise StoreError(
                f'Error creating namespace {namespace} on the remote cluster '
                f'{cluster.key}: {exc}'
            ) from exc
