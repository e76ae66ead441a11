'''
Projection of the public cert of the root CA into the namespace of
each workload cluster

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2025
:license    : GPLv3
'''

import asyncio

from logging import Logger
from logging import getLogger

from registryca.datatypes import Cluster
from registryca.datatypes import StoredSecret

from registryca.exceptions import StoreError
from registryca.exceptions import NotFoundError
from registryca.exceptions import RegistryCaError

from registryca.storage.secretstore import SecretStore

from registryca.secrets.rootca_secret import RootCaSecret
from registryca.secrets.clusterca_secret import ClusterCaSecret

from registryca.util.names import Names

from .rootca import RootCaProvider

_LOGGER: Logger = getLogger(__name__)


async def apply_secret_for_cluster(store: SecretStore, secret: StoredSecret,
                                   cluster: Cluster) -> None:
    '''
    Applies a secret that belongs to a cluster, with the cluster as owner

    :raises: ValueError if the secret is not in the namespace of the
    cluster, StoreError
    '''

    if secret.namespace != cluster.namespace:
        raise ValueError(
            f'Secret {secret.key} must be in namespace {cluster.namespace} '
            f'of cluster {cluster.name}'
        )

    secret.add_owner_reference(cluster.owner_reference())

    try:
        await store.ensure_namespace(secret.namespace)
        await store.apply(secret)
    except (RegistryCaError, OSError) as exc:
        raise StoreError(
            f'Failed to apply secret {secret.key} for cluster '
            f'{cluster.key}: {exc}'
        ) from exc


class ClusterCaProjector:
    def __init__(self, store: SecretStore, root_ca_provider: RootCaProvider
                 ) -> None:
        self.store: SecretStore = store
        self.root_ca_provider: RootCaProvider = root_ca_provider

    async def ensure_cluster_ca(self, cluster: Cluster,
                                timeout: float | None = None
                                ) -> ClusterCaSecret:
        '''
        Copies the 'ca.crt' of the root CA into the secret
        <cluster>-registry-addon-ca in the namespace of the cluster,
        overwriting whatever is there

        :raises: NotFoundError if the root CA does not exist, StoreError,
        TimeoutError
        '''

        async with asyncio.timeout(timeout):
            try:
                root_ca: RootCaSecret = \
                    await self.root_ca_provider.get_root_ca()
            except NotFoundError as exc:
                raise NotFoundError(
                    'Failed to get root CA to project into cluster '
                    f'{cluster.key}: {exc}'
                ) from exc

            cluster_ca: ClusterCaSecret = ClusterCaSecret.from_root_ca(
                root_ca, cluster
            )
            await apply_secret_for_cluster(
                self.store, cluster_ca.as_stored_secret(), cluster
            )

            _LOGGER.debug(
                f'Projected root CA into secret {cluster.namespace}/'
                f'{cluster_ca.name}'
            )

            return cluster_ca

    async def get_cluster_ca(self, cluster: Cluster,
                             timeout: float | None = None
                             ) -> ClusterCaSecret:
        '''
        Reads the projected cert of the root CA for the cluster

        :raises: NotFoundError, DecodeError, ParseError, StoreError
        '''

        name: str = Names.cluster_ca_secret(cluster)
        async with asyncio.timeout(timeout):
            try:
                stored: StoredSecret = await self.store.get(
                    name, cluster.namespace
                )
            except NotFoundError:
                raise
            except (RegistryCaError, OSError) as exc:
                raise StoreError(
                    f'Failed to read secret {cluster.namespace}/{name}: {exc}'
                ) from exc

        return ClusterCaSecret.from_stored_secret(stored, cluster)
