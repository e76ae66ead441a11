#!/usr/bin/env python3

'''
Test cases for delegating the issuance of the TLS certs of registries
to an external certificate controller

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2025
:license    : GPLv3
'''

import sys
import asyncio
import unittest

from datetime import timedelta

from registryca.util.logger import Logger

from registryca.datatypes import CA_CERT_KEY
from registryca.datatypes import TLS_CERT_KEY
from registryca.datatypes import TLS_PRIVATE_KEY_KEY
from registryca.datatypes import Cluster
from registryca.datatypes import ObjectKey
from registryca.datatypes import IssuerType
from registryca.datatypes import SecretType
from registryca.datatypes import StoredSecret
from registryca.datatypes import CertificateSpec

from registryca.exceptions import NotFoundError
from registryca.exceptions import PollTimeoutError

from registryca.storage.memory import MemorySecretStore
from registryca.storage.memory import MemoryObjectStore

from registryca.cluster.remote import RemoteDistributor
from registryca.cluster.remote import LocalRemoteClusterClientFactory
from registryca.cluster.management import StaticManagementClusterResolver

from registryca.issuers.issuer import Issuer
from registryca.issuers.delegated import DelegatedIssuer
from registryca.issuers.delegated import go_duration

from registryca.secrets.secret import Secret
from registryca.secrets.rootca_secret import RootCaSecret

from registryca import config

from tests.lib.util import get_test_cluster
from tests.lib.util import get_management_cluster
from tests.lib.util import FakeCertificateController

from tests.lib.defines import REGISTRY_NAMESPACE
from tests.lib.defines import REGISTRY_TLS_SECRET

REMOTE_SECRET_KEY = ObjectKey(REGISTRY_TLS_SECRET, REGISTRY_NAMESPACE)

POLL_INTERVAL: float = 0.01
POLL_TIMEOUT: float = 1.0


class TestDelegatedIssuer(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        config.test_case = True

        self.management_cluster: Cluster = get_management_cluster()
        self.cluster: Cluster = get_test_cluster()
        self.resolver = StaticManagementClusterResolver(
            self.management_cluster
        )

        self.store = MemorySecretStore()
        self.object_store = MemoryObjectStore()
        self.remote_clients = LocalRemoteClusterClientFactory()
        self.issuer: DelegatedIssuer = Issuer.get_issuer(
            IssuerType.DELEGATED, RemoteDistributor(self.remote_clients),
            store=self.store, object_store=self.object_store,
            resolver=self.resolver, poll_interval=POLL_INTERVAL,
            poll_timeout=POLL_TIMEOUT
        )

        self.spec = CertificateSpec(
            common_name='registry',
            dns_names=['registry', 'registry.svc'],
            ip_addresses=['127.0.0.1'],
        )

        self.controller = FakeCertificateController(
            self.store, self.object_store
        )
        self.controller_task: asyncio.Task | None = None

    async def asyncTearDown(self) -> None:
        if self.controller_task:
            self.controller_task.cancel()
            try:
                await self.controller_task
            except asyncio.CancelledError:
                pass

    def start_controller(self) -> None:
        self.controller_task = asyncio.create_task(
            self.controller.run(interval=POLL_INTERVAL)
        )

    def test_go_duration(self) -> None:
        self.assertEqual(go_duration(timedelta(days=730)), '17520h0m0s')
        self.assertEqual(go_duration(timedelta(days=30)), '720h0m0s')
        self.assertEqual(
            go_duration(timedelta(hours=1, minutes=2, seconds=3)), '1h2m3s'
        )

    async def test_ensure_issuer(self) -> None:
        await self.issuer.ensure_issuer(self.cluster)
        # Applying a second time is a no-op
        await self.issuer.ensure_issuer(self.cluster)

        namespace: str = self.management_cluster.namespace
        self.assertEqual(len(self.object_store.objects), 3)

        selfsigned: dict = await self.object_store.get(
            'ClusterIssuer', 'registry-addon-selfsigned', ''
        )
        self.assertEqual(selfsigned['apiVersion'], 'cert-manager.io/v1')
        self.assertEqual(selfsigned['spec'], {'selfSigned': {}})
        self.assertNotIn('namespace', selfsigned['metadata'])

        root_ca: dict = await self.object_store.get(
            'Certificate', 'registry-addon-root-ca', namespace
        )
        self.assertTrue(root_ca['spec']['isCA'])
        self.assertEqual(
            root_ca['spec']['secretName'], 'registry-addon-root-ca'
        )
        self.assertEqual(
            root_ca['spec']['issuerRef']['kind'], 'ClusterIssuer'
        )

        ca_issuer: dict = await self.object_store.get(
            'ClusterIssuer', 'registry-addon-ca-issuer', ''
        )
        self.assertEqual(
            ca_issuer['spec']['ca']['secretName'], 'registry-addon-root-ca'
        )

        for obj in self.object_store.objects.values():
            self.assertNotIn('ownerReferences', obj['metadata'])

    async def test_ensure_issuer_clusters_in_other_namespaces(self) -> None:
        team_a: Cluster = get_test_cluster('a', namespace='team-a')
        team_b: Cluster = get_test_cluster('b', namespace='team-b')
        await self.issuer.ensure_issuer(team_a)
        await self.issuer.ensure_issuer(team_b)
        await self.issuer.ensure_issuer(self.management_cluster)

        issuers: list[tuple[str, str, str]] = [
            key for key in self.object_store.objects
            if key[0] in ('Issuer', 'ClusterIssuer')
        ]
        self.assertEqual(
            sorted(issuers),
            [
                ('ClusterIssuer', 'registry-addon-ca-issuer', ''),
                ('ClusterIssuer', 'registry-addon-selfsigned', ''),
            ]
        )

        certificates: list[tuple[str, str, str]] = [
            key for key in self.object_store.objects
            if key[0] == 'Certificate'
        ]
        self.assertEqual(
            certificates,
            [
                (
                    'Certificate', 'registry-addon-root-ca',
                    self.management_cluster.namespace
                )
            ]
        )

    async def test_ensure_issuer_without_management_cluster(self) -> None:
        issuer = DelegatedIssuer(
            self.store, self.object_store, StaticManagementClusterResolver(),
            RemoteDistributor(self.remote_clients)
        )
        with self.assertRaises(NotFoundError):
            await issuer.ensure_issuer(self.cluster)

        self.assertEqual(self.object_store.objects, {})

    async def test_ensure_certificate(self) -> None:
        certificate: dict = await self.issuer.ensure_certificate(
            self.cluster, self.spec
        )

        stored: dict = await self.object_store.get(
            'Certificate', 'workload-registry-tls', self.cluster.namespace
        )
        self.assertEqual(stored, certificate)

        spec: dict = stored['spec']
        self.assertEqual(spec['secretName'], 'workload-registry-tls')
        self.assertEqual(spec['commonName'], 'registry')
        self.assertEqual(spec['dnsNames'], ['registry', 'registry.svc'])
        self.assertEqual(spec['ipAddresses'], ['127.0.0.1'])
        self.assertEqual(spec['duration'], '17520h0m0s')
        self.assertEqual(spec['renewBefore'], '720h0m0s')
        self.assertEqual(
            spec['issuerRef']['name'], 'registry-addon-ca-issuer'
        )
        self.assertEqual(spec['issuerRef']['kind'], 'ClusterIssuer')
        self.assertEqual(
            stored['metadata']['ownerReferences'],
            [self.cluster.owner_reference().as_dict()]
        )

    async def test_ensure_certificate_management_cluster(self) -> None:
        await self.issuer.ensure_certificate(
            self.management_cluster, self.spec
        )
        stored: dict = await self.object_store.get(
            'Certificate', 'management-registry-tls',
            self.management_cluster.namespace
        )
        self.assertNotIn('ownerReferences', stored['metadata'])

        # Without management cluster, ie. on a bootstrap cluster
        issuer = DelegatedIssuer(
            self.store, self.object_store, StaticManagementClusterResolver(),
            RemoteDistributor(self.remote_clients)
        )
        await issuer.ensure_certificate(self.cluster, self.spec)
        stored = await self.object_store.get(
            'Certificate', 'workload-registry-tls', self.cluster.namespace
        )
        self.assertNotIn('ownerReferences', stored['metadata'])

    async def test_wait_for_secret_timeout(self) -> None:
        issuer = DelegatedIssuer(
            self.store, self.object_store, self.resolver,
            RemoteDistributor(self.remote_clients),
            poll_interval=POLL_INTERVAL, poll_timeout=0.05
        )

        with self.assertRaisesRegex(
                PollTimeoutError, 'workload-registry-tls') as context:
            await issuer.wait_for_secret(self.cluster)

        self.assertIsInstance(context.exception, TimeoutError)
        self.assertIn('last error', str(context.exception))

    async def test_wait_for_secret(self) -> None:
        async def create_secret() -> None:
            await asyncio.sleep(POLL_INTERVAL * 3)
            await self.store.apply(
                StoredSecret(
                    name='workload-registry-tls',
                    namespace=self.cluster.namespace,
                    data={TLS_CERT_KEY: b'cert'},
                    secret_type=SecretType.TLS
                )
            )

        task: asyncio.Task = asyncio.create_task(create_secret())
        stored: StoredSecret = await self.issuer.wait_for_secret(self.cluster)
        await task

        self.assertEqual(stored.data, {TLS_CERT_KEY: b'cert'})

        stored = await self.store.get(
            'workload-registry-tls', self.cluster.namespace
        )
        self.assertEqual(
            stored.owner_references, [self.cluster.owner_reference()]
        )
        self.assertEqual(stored.secret_type, SecretType.TLS)

    async def test_renew(self) -> None:
        await self.issuer.ensure_certificate(self.cluster, self.spec)
        await self.issuer.renew(self.cluster)

        stored: dict = await self.object_store.get(
            'Certificate', 'workload-registry-tls', self.cluster.namespace
        )
        conditions: list[dict] = stored['status']['conditions']
        self.assertEqual(
            conditions[-1],
            {
                'type': 'Issuing',
                'status': 'True',
                'reason': 'ManuallyTriggered',
                'message': 'Certificate re-issuance manually triggered',
            }
        )

    async def test_renew_timeout(self) -> None:
        issuer = DelegatedIssuer(
            self.store, self.object_store, self.resolver,
            RemoteDistributor(self.remote_clients),
            poll_interval=POLL_INTERVAL, poll_timeout=0.05
        )
        with self.assertRaises(PollTimeoutError):
            await issuer.renew(self.cluster)

    async def test_issue(self) -> None:
        self.start_controller()

        remote_secret: StoredSecret = await self.issuer.issue(
            self.cluster, REMOTE_SECRET_KEY, self.spec
        )

        client: MemorySecretStore = await self.remote_clients.get_client(
            self.cluster
        )
        remote: StoredSecret = await client.get(
            REMOTE_SECRET_KEY.name, REMOTE_SECRET_KEY.namespace
        )
        self.assertEqual(remote, remote_secret)
        self.assertEqual(remote.secret_type, SecretType.TLS)
        self.assertEqual(
            set(remote.data.keys()),
            {TLS_CERT_KEY, TLS_PRIVATE_KEY_KEY, CA_CERT_KEY}
        )
        # Owner references stay on the management cluster
        self.assertEqual(remote.owner_references, [])

        root: StoredSecret = await self.store.get(
            'registry-addon-root-ca', self.management_cluster.namespace
        )
        root_ca: RootCaSecret = RootCaSecret.from_stored_secret(root)

        leaf = Secret()
        leaf.from_pem(remote.data[TLS_CERT_KEY], remote.data[TLS_PRIVATE_KEY_KEY])
        leaf.validate(root_ca)
        self.assertEqual(leaf.dns_names, ['registry', 'registry.svc'])

        # The re-issuance triggered by the renewal is picked up by the
        # external controller
        for _ in range(100):
            if self.controller.issued.get('workload-registry-tls', 0) >= 2:
                break
            await asyncio.sleep(POLL_INTERVAL)

        self.assertGreaterEqual(
            self.controller.issued['workload-registry-tls'], 2
        )

    async def test_issue_clusters_in_other_namespaces(self) -> None:
        self.start_controller()

        clusters: list[Cluster] = [
            get_test_cluster('a', namespace='team-a'),
            get_test_cluster('b', namespace='team-b'),
        ]
        for cluster in clusters:
            await self.issuer.issue(cluster, REMOTE_SECRET_KEY, self.spec)

        # One root CA, in the namespace of the management cluster
        for cluster in clusters:
            self.assertFalse(
                await self.store.exists(
                    'registry-addon-root-ca', cluster.namespace
                )
            )

        root: StoredSecret = await self.store.get(
            'registry-addon-root-ca', self.management_cluster.namespace
        )
        root_ca: RootCaSecret = RootCaSecret.from_stored_secret(root)

        for cluster in clusters:
            client: MemorySecretStore = \
                await self.remote_clients.get_client(cluster)
            remote: StoredSecret = await client.get(
                REMOTE_SECRET_KEY.name, REMOTE_SECRET_KEY.namespace
            )
            leaf = Secret()
            leaf.from_pem(remote.data[TLS_CERT_KEY])
            leaf.validate(root_ca)
            self.assertEqual(remote.data[CA_CERT_KEY], root.data[TLS_CERT_KEY])

            # The TLS secret on the management cluster stays in the
            # namespace of the cluster
            self.assertTrue(
                await self.store.exists(
                    f'{cluster.name}-registry-tls', cluster.namespace
                )
            )

    async def test_issue_timeout(self) -> None:
        # No external controller, so the secret never shows up
        issuer = DelegatedIssuer(
            self.store, self.object_store, self.resolver,
            RemoteDistributor(self.remote_clients),
            poll_interval=POLL_INTERVAL, poll_timeout=0.05
        )
        with self.assertRaises(PollTimeoutError):
            await issuer.issue(self.cluster, REMOTE_SECRET_KEY, self.spec)

        client: MemorySecretStore = await self.remote_clients.get_client(
            self.cluster
        )
        self.assertEqual(client.secrets, {})


if __name__ == '__main__':
    _LOGGER = Logger.getLogger(sys.argv[0], debug=True, json_out=False)

    unittest.main()
