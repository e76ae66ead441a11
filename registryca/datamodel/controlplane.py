'''
Entry point for the registry certificate authority of a control plane

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2025
:license    : GPLv3
'''

import asyncio

from typing import Self
from logging import Logger
from logging import getLogger
from datetime import timedelta

from registryca.datatypes import Cluster
from registryca.datatypes import ObjectKey
from registryca.datatypes import IssuerType
from registryca.datatypes import CertificateSpec

from registryca.storage.secretstore import SecretStore
from registryca.storage.secretstore import ObjectStore

from registryca.cluster.remote import RemoteDistributor
from registryca.cluster.remote import RemoteClusterClientFactory
from registryca.cluster.remote import LocalRemoteClusterClientFactory
from registryca.cluster.management import ManagementClusterResolver
from registryca.cluster.management import StaticManagementClusterResolver

from registryca.issuers.issuer import Issuer

from registryca.secrets.rootca_secret import RootCaSecret
from registryca.secrets.clusterca_secret import ClusterCaSecret
from registryca.secrets.registrytls_secret import DEFAULT_EXPIRATION

from registryca.util.wait import DEFAULT_POLL_INTERVAL
from registryca.util.wait import DEFAULT_POLL_TIMEOUT

from registryca import config

from .config import ServerConfig
from .rootca import RootCaProvider
from .clusterca import ClusterCaProjector
from .registry_metadata import RegistryMetadata

_LOGGER: Logger = getLogger(__name__)


class ControlPlane:
    '''
    Wires the root CA, the projection of the root CA into the namespaces
    of the clusters and the issuer of the TLS certs of the registries.

    The order of the operations matters: the root CA must exist before
    it can be projected or used to sign certs. reconcile() takes care
    of that
    '''

    def __init__(self, store: SecretStore,
                 resolver: ManagementClusterResolver,
                 remote_clients: RemoteClusterClientFactory,
                 issuer_type: IssuerType = IssuerType.SELF_SIGNED,
                 object_store: ObjectStore = None,
                 leaf_duration: timedelta = DEFAULT_EXPIRATION,
                 poll_interval: float = DEFAULT_POLL_INTERVAL,
                 poll_timeout: float = DEFAULT_POLL_TIMEOUT) -> None:
        self.store: SecretStore = store
        self.resolver: ManagementClusterResolver = resolver
        self.issuer_type: IssuerType = issuer_type

        self.root_ca_provider = RootCaProvider(store, resolver)
        self.cluster_ca_projector = ClusterCaProjector(
            store, self.root_ca_provider
        )
        self.distributor = RemoteDistributor(remote_clients)

        self.issuer: Issuer = Issuer.get_issuer(
            issuer_type, self.distributor,
            root_ca_provider=self.root_ca_provider, store=store,
            object_store=object_store, resolver=resolver,
            default_duration=leaf_duration,
            poll_interval=poll_interval, poll_timeout=poll_timeout
        )

    @classmethod
    async def setup(cls, server_config: ServerConfig,
                    resolver: ManagementClusterResolver = None,
                    remote_clients: RemoteClusterClientFactory = None,
                    object_store: ObjectStore = None) -> Self:
        '''
        Factory using the configuration file. Without resolver, the
        management cluster from the configuration file is used. Without
        factory for remote clients, the secrets for the workload clusters
        are kept in the same type of storage as our own secrets
        '''

        config.debug = server_config.debug

        store: SecretStore = await SecretStore.get_store(
            server_config.storage_type, server_config.root_dir
        )

        if not resolver:
            resolver = StaticManagementClusterResolver(
                server_config.management_cluster
            )

        if not remote_clients:
            remote_clients = LocalRemoteClusterClientFactory(
                server_config.storage_type, server_config.root_dir
            )

        _LOGGER.debug(
            f'Setting up control plane with {server_config.issuer_type.value}'
            f' issuer and {server_config.storage_type.value} storage'
        )

        return cls(
            store, resolver, remote_clients,
            issuer_type=server_config.issuer_type,
            object_store=object_store,
            leaf_duration=server_config.leaf_duration,
            poll_interval=server_config.poll_interval,
            poll_timeout=server_config.poll_timeout
        )

    async def ensure_root_ca(self, timeout: float | None = None
                             ) -> RootCaSecret:
        return await self.root_ca_provider.ensure_root_ca(timeout=timeout)

    async def ensure_cluster_ca(self, cluster: Cluster,
                                timeout: float | None = None
                                ) -> ClusterCaSecret:
        return await self.cluster_ca_projector.ensure_cluster_ca(
            cluster, timeout=timeout
        )

    async def issue_certificate(self, cluster: Cluster,
                                remote_secret_key: ObjectKey,
                                spec: CertificateSpec,
                                timeout: float | None = None):
        return await self.issuer.issue(
            cluster, remote_secret_key, spec, timeout=timeout
        )

    async def reconcile(self, cluster: Cluster, timeout: float | None = None
                        ) -> RegistryMetadata:
        '''
        Makes sure the registry of the cluster has a TLS cert signed by
        the root CA and that the cert of the root CA is available in the
        namespace of the cluster. With the delegated issuer, the root CA
        is created by the external controller so the projection happens
        after the issuance

        :returns: the metadata of the registry of the cluster
        :raises: RegistryCaError, ValueError, TimeoutError
        '''

        async with asyncio.timeout(timeout):
            metadata: RegistryMetadata = RegistryMetadata.for_cluster(cluster)

            if self.issuer_type == IssuerType.SELF_SIGNED:
                await self.ensure_root_ca()
                await self.ensure_cluster_ca(cluster)
                await self.issue_certificate(
                    cluster, metadata.remote_secret_key(),
                    metadata.certificate_spec()
                )
            else:
                await self.issue_certificate(
                    cluster, metadata.remote_secret_key(),
                    metadata.certificate_spec()
                )
                await self.ensure_cluster_ca(cluster)

            _LOGGER.info(f'Reconciled registry TLS for cluster {cluster.key}')

            return metadata
