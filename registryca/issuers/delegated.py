'''
Issuer that delegates signing the TLS certs of registries to an external
certificate controller (cert-manager) running on the management cluster

The external controller gets:
1. a single self-signed ClusterIssuer
2. a single CA Certificate, issued by the ClusterIssuer from 1, in the
   namespace of the management cluster
3. a single CA ClusterIssuer that signs with the secret of the
   Certificate from 2, for all clusters
4. a Certificate per cluster, issued by the ClusterIssuer from 3

The secret of the CA Certificate is the root CA secret, so the cert that
gets projected into the namespaces of the clusters is the cert that
signed the TLS certs of their registries. The external controller must
use the namespace of the management cluster as its cluster resource
namespace

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2025
:license    : GPLv3
'''

import asyncio

from copy import deepcopy
from typing import override
from logging import Logger
from logging import getLogger
from datetime import timedelta

from registryca.datatypes import CERT_MANAGER_API_VERSION
from registryca.datatypes import Cluster
from registryca.datatypes import ObjectKey
from registryca.datatypes import SecretType
from registryca.datatypes import StoredSecret
from registryca.datatypes import CertificateSpec

from registryca.exceptions import StoreError
from registryca.exceptions import NotFoundError
from registryca.exceptions import RegistryCaError

from registryca.storage.secretstore import SecretStore
from registryca.storage.secretstore import ObjectStore

from registryca.cluster.remote import RemoteDistributor
from registryca.cluster.management import ManagementClusterResolver

from registryca.secrets.registrytls_secret import DEFAULT_EXPIRATION

from registryca.util.names import Names
from registryca.util.wait import poll_until_found
from registryca.util.wait import DEFAULT_POLL_INTERVAL
from registryca.util.wait import DEFAULT_POLL_TIMEOUT

from .issuer import Issuer

_LOGGER: Logger = getLogger(__name__)

# The root CA of the external controller is never rotated
ROOT_CA_DURATION: timedelta = timedelta(days=10 * 365)

# The external controller renews the cert this long before it expires
RENEW_BEFORE: timedelta = timedelta(days=30)

CERTIFICATE_KIND: str = 'Certificate'
CLUSTER_ISSUER_KIND: str = 'ClusterIssuer'
CERT_MANAGER_GROUP: str = 'cert-manager.io'


def go_duration(duration: timedelta) -> str:
    '''
    Formats the duration the way the external controller expects it,
    ie. '17520h0m0s' for 2 years
    '''

    total_seconds: int = int(duration.total_seconds())
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)

    return f'{hours}h{minutes}m{seconds}s'


class DelegatedIssuer(Issuer):
    @override
    def __init__(self, store: SecretStore, object_store: ObjectStore,
                 resolver: ManagementClusterResolver,
                 distributor: RemoteDistributor,
                 default_duration: timedelta = DEFAULT_EXPIRATION,
                 poll_interval: float = DEFAULT_POLL_INTERVAL,
                 poll_timeout: float = DEFAULT_POLL_TIMEOUT) -> None:
        super().__init__(distributor, default_duration)

        self.store: SecretStore = store
        self.object_store: ObjectStore = object_store
        self.resolver: ManagementClusterResolver = resolver
        self.poll_interval: float = poll_interval
        self.poll_timeout: float = poll_timeout

    @staticmethod
    def issuer_objects(namespace: str) -> list[dict]:
        '''
        The objects of the external controller for the root CA and the
        issuer that signs the certs of the registries. The ClusterIssuers
        are cluster-scoped, only the CA Certificate has a namespace

        :param namespace: the namespace of the management cluster, where
        the root CA secret lives
        '''

        root_ca_name: str = Names.get(Names.ROOT_CA_CERTIFICATE)
        return [
            {
                'apiVersion': CERT_MANAGER_API_VERSION,
                'kind': CLUSTER_ISSUER_KIND,
                'metadata': {
                    'name': Names.get(Names.SELFSIGNED_ISSUER),
                },
                'spec': {'selfSigned': {}},
            },
            {
                'apiVersion': CERT_MANAGER_API_VERSION,
                'kind': CERTIFICATE_KIND,
                'metadata': {
                    'name': root_ca_name,
                    'namespace': namespace,
                },
                'spec': {
                    'isCA': True,
                    'commonName': Names.get(Names.ROOT_CA_COMMON_NAME),
                    'secretName': Names.get(Names.ROOT_CA_SECRET),
                    'duration': go_duration(ROOT_CA_DURATION),
                    'privateKey': {
                        'algorithm': 'RSA',
                        'encoding': 'PKCS1',
                        'size': 2048,
                    },
                    'issuerRef': {
                        'name': Names.get(Names.SELFSIGNED_ISSUER),
                        'kind': CLUSTER_ISSUER_KIND,
                        'group': CERT_MANAGER_GROUP,
                    },
                },
            },
            {
                'apiVersion': CERT_MANAGER_API_VERSION,
                'kind': CLUSTER_ISSUER_KIND,
                'metadata': {
                    'name': Names.get(Names.CA_ISSUER),
                },
                'spec': {
                    'ca': {'secretName': Names.get(Names.ROOT_CA_SECRET)},
                },
            },
        ]

    def certificate_object(self, cluster: Cluster, spec: CertificateSpec
                           ) -> dict:
        name: str = Names.get(Names.CLUSTER_CERTIFICATE, cluster)
        return {
            'apiVersion': CERT_MANAGER_API_VERSION,
            'kind': CERTIFICATE_KIND,
            'metadata': {
                'name': name,
                'namespace': cluster.namespace,
            },
            'spec': {
                'secretName': Names.cluster_tls_secret(cluster),
                'commonName': spec.common_name,
                'dnsNames': list(spec.dns_names),
                'ipAddresses': list(spec.ip_addresses),
                'duration': go_duration(
                    spec.duration or self.default_duration
                ),
                'renewBefore': go_duration(RENEW_BEFORE),
                'privateKey': {
                    'algorithm': 'RSA',
                    'encoding': 'PKCS1',
                    'size': 2048,
                    'rotationPolicy': 'Always',
                },
                'issuerRef': {
                    'name': Names.get(Names.CA_ISSUER),
                    'kind': CLUSTER_ISSUER_KIND,
                    'group': CERT_MANAGER_GROUP,
                },
            },
        }

    async def ensure_issuer(self, cluster: Cluster) -> None:
        '''
        Applies the objects of the external controller for the root CA
        and the CA issuer, without owner, as they are shared by all
        clusters. Wherever the cluster lives, there is only one set of
        them, with the CA Certificate in the namespace of the management
        cluster

        :raises: NotFoundError if no management cluster has been
        designated, StoreError
        '''

        management_cluster: Cluster | None = \
            await self.resolver.management_cluster()
        if not management_cluster:
            raise NotFoundError(
                'No management cluster designated, can not create the '
                f'registry addon certificate issuer for cluster {cluster.key}'
            )

        namespace: str = management_cluster.namespace
        for obj in DelegatedIssuer.issuer_objects(namespace):
            await self._apply(obj)

        _LOGGER.debug(
            f'Ensured issuer objects for cluster {cluster.key} with the '
            f'root CA in namespace {namespace}'
        )

    async def ensure_certificate(self, cluster: Cluster,
                                 spec: CertificateSpec) -> dict:
        '''
        Applies the Certificate for the registry of the cluster. The
        cluster owns the Certificate unless it is the management
        cluster, or no management cluster has been designated yet,
        as the object has to survive the management cluster moving

        :returns: the applied Certificate
        :raises: StoreError
        '''

        obj: dict = self.certificate_object(cluster, spec)

        management_cluster: Cluster | None = \
            await self.resolver.management_cluster()
        if management_cluster and management_cluster.name != cluster.name:
            obj['metadata']['ownerReferences'] = [
                cluster.owner_reference().as_dict()
            ]

        await self._apply(obj)

        return obj

    async def wait_for_secret(self, cluster: Cluster) -> StoredSecret:
        '''
        Waits for the external controller to create the TLS secret for the
        cluster on the management cluster and makes the cluster the owner
        of the secret

        :raises: PollTimeoutError, StoreError
        '''

        name: str = Names.cluster_tls_secret(cluster)
        stored: StoredSecret = await poll_until_found(
            lambda: self.store.get(name, cluster.namespace),
            f'registry addon TLS secret {cluster.namespace}/{name}',
            interval=self.poll_interval, timeout=self.poll_timeout
        )

        stored.add_owner_reference(cluster.owner_reference())
        try:
            await self.store.update(stored)
        except (RegistryCaError, OSError) as exc:
            raise StoreError(
                f'Error setting owner reference on registry TLS secret '
                f'{stored.key}: {exc}'
            ) from exc

        return stored

    async def renew(self, cluster: Cluster) -> dict:
        '''
        Forces the external controller to re-issue the cert, by adding an
        'Issuing' condition to the status of the Certificate

        :returns: the Certificate with the updated status
        :raises: PollTimeoutError, StoreError
        '''

        name: str = Names.get(Names.CLUSTER_CERTIFICATE, cluster)
        certificate: dict = await poll_until_found(
            lambda: self.object_store.get(
                CERTIFICATE_KIND, name, cluster.namespace
            ),
            f'registry addon certificate {cluster.namespace}/{name}',
            interval=self.poll_interval, timeout=self.poll_timeout
        )

        certificate = deepcopy(certificate)
        status: dict = certificate.setdefault('status', {})
        status.setdefault('conditions', []).append(
            {
                'type': 'Issuing',
                'status': 'True',
                'reason': 'ManuallyTriggered',
                'message': 'Certificate re-issuance manually triggered',
            }
        )

        try:
            await self.object_store.update_status(certificate)
        except (RegistryCaError, OSError) as exc:
            raise StoreError(
                'Error updating registry addon certificate status of '
                f'{cluster.namespace}/{name}: {exc}'
            ) from exc

        _LOGGER.debug(
            f'Triggered re-issuance of certificate {cluster.namespace}/{name}'
        )

        return certificate

    @override
    async def issue(self, cluster: Cluster, remote_secret_key: ObjectKey,
                    spec: CertificateSpec, timeout: float | None = None
                    ) -> StoredSecret:
        '''
        Has the external controller issue the cert and copies the secret
        it creates to the workload cluster. The renewal gets picked up by
        the external controller after the copy, the renewed cert gets
        copied by the next invocation

        :returns: the secret as applied to the workload cluster
        :raises: NotFoundError if no management cluster has been designated,
        PollTimeoutError, StoreError, TimeoutError
        '''

        async with asyncio.timeout(timeout):
            await self.ensure_issuer(cluster)
            await self.ensure_certificate(cluster, spec)
            await self.wait_for_secret(cluster)

            await self.renew(cluster)

            name: str = Names.cluster_tls_secret(cluster)
            try:
                source: StoredSecret = await self.store.get(
                    name, cluster.namespace
                )
            except (RegistryCaError, OSError) as exc:
                raise StoreError(
                    f'Error getting registry TLS secret '
                    f'{cluster.namespace}/{name}: {exc}'
                ) from exc

            remote_secret = StoredSecret(
                name=remote_secret_key.name,
                namespace=remote_secret_key.namespace,
                data=dict(source.data),
                secret_type=SecretType.TLS,
            )
            await self.distributor.distribute(cluster, remote_secret)

            _LOGGER.info(
                f'Copied registry TLS secret {source.key} to secret '
                f'{remote_secret_key} on cluster {cluster.key}'
            )

            return remote_secret

    async def _apply(self, obj: dict) -> None:
        metadata: dict = obj['metadata']
        try:
            await self.object_store.apply(obj)
        except (RegistryCaError, OSError) as exc:
            raise StoreError(
                f'Failed to apply object {obj["kind"]} '
                f'{metadata.get("namespace", "")}/{metadata["name"]}: {exc}'
            ) from exc
