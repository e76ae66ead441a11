'''
Helper functions and fakes for tests

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2021, 2022, 2023, 2024, 2025
:license    : GPLv3
'''

import re
import asyncio

from uuid import uuid4
from datetime import timedelta

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric import ed25519

from registryca.datatypes import Cluster
from registryca.datatypes import SecretType
from registryca.datatypes import StoredSecret
from registryca.datatypes import CertificateSpec

from registryca.exceptions import ConflictError
from registryca.exceptions import NotFoundError

from registryca.storage.memory import MemorySecretStore
from registryca.storage.memory import MemoryObjectStore

from registryca.secrets.rootca_secret import RootCaSecret
from registryca.secrets.registrytls_secret import RegistryTlsSecret

from tests.lib.defines import MANAGEMENT_CLUSTER_NAME
from tests.lib.defines import WORKLOAD_CLUSTER_NAME
from tests.lib.defines import CLUSTER_NAMESPACE

GO_DURATION_REGEX: re.Pattern = re.compile(
    r'^(?P<hours>\d+)h(?P<minutes>\d+)m(?P<seconds>\d+)s$'
)


def get_test_cluster(name: str = WORKLOAD_CLUSTER_NAME,
                     namespace: str = CLUSTER_NAMESPACE,
                     service_cidr_blocks: list[str] = None) -> Cluster:
    return Cluster(
        name=name, namespace=namespace, uid=str(uuid4()),
        service_cidr_blocks=service_cidr_blocks or []
    )


def get_management_cluster() -> Cluster:
    return get_test_cluster(MANAGEMENT_CLUSTER_NAME)


def rsa_private_key_as_pkcs8(private_key: rsa.RSAPrivateKey) -> bytes:
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )


def ec_private_key_as_pem() -> bytes:
    '''
    An EC key in SEC1 encoding, with PEM label 'EC PRIVATE KEY'
    '''

    private_key = ec.generate_private_key(ec.SECP256R1())
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption()
    )


def ed25519_private_key_as_pkcs8() -> bytes:
    private_key = ed25519.Ed25519PrivateKey.generate()
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )


def parse_go_duration(value: str) -> timedelta:
    match: re.Match = GO_DURATION_REGEX.match(value)
    return timedelta(
        hours=int(match.group('hours')),
        minutes=int(match.group('minutes')),
        seconds=int(match.group('seconds'))
    )


class CountingMemorySecretStore(MemorySecretStore):
    '''
    Memory store that yields to the event loop after every read, so that
    concurrent callers all get to read before any of them writes, and
    that counts creates and conflicts
    '''

    def __init__(self, require_namespaces: bool = False) -> None:
        super().__init__(require_namespaces)

        self.create_calls: int = 0
        self.conflicts: int = 0

    async def get(self, name: str, namespace: str) -> StoredSecret:
        try:
            return await super().get(name, namespace)
        finally:
            await asyncio.sleep(0)

    async def create(self, secret: StoredSecret) -> None:
        self.create_calls += 1
        try:
            await super().create(secret)
        except ConflictError:
            self.conflicts += 1
            raise


class FakeCertificateController:
    '''
    Acts like the external certificate controller: creates the secrets
    for the Certificate objects in the object store and re-issues certs
    for Certificates with an 'Issuing' condition. ClusterIssuers of
    type CA read their secret from the cluster resource namespace
    '''

    def __init__(self, store: MemorySecretStore,
                 object_store: MemoryObjectStore,
                 cluster_resource_namespace: str = CLUSTER_NAMESPACE
                 ) -> None:
        self.store: MemorySecretStore = store
        self.object_store: MemoryObjectStore = object_store
        self.cluster_resource_namespace: str = cluster_resource_namespace
        self.issued: dict[str, int] = {}

    async def run(self, interval: float = 0.01) -> None:
        while True:
            await self.reconcile()
            await asyncio.sleep(interval)

    async def reconcile(self) -> None:
        certificates: list[dict] = [
            obj for (kind, _, _), obj in list(self.object_store.objects.items())
            if kind == 'Certificate'
        ]

        # CA certificates first, leaf certificates need them
        certificates.sort(key=lambda obj: not obj['spec'].get('isCA'))
        for certificate in certificates:
            await self._reconcile_certificate(certificate)

    async def _reconcile_certificate(self, certificate: dict) -> None:
        metadata: dict = certificate['metadata']
        spec: dict = certificate['spec']
        namespace: str = metadata['namespace']
        secret_name: str = spec['secretName']

        conditions: list[dict] = certificate.get(
            'status', {}
        ).get('conditions', [])
        issuing: bool = any(
            condition['type'] == 'Issuing' for condition in conditions
        )

        exists: bool = await self.store.exists(secret_name, namespace)
        if exists and not issuing:
            return

        if spec.get('isCA'):
            root_ca = RootCaSecret(namespace=namespace)
            root_ca.create()
            stored: StoredSecret = root_ca.as_stored_secret()
            stored.secret_type = SecretType.TLS
        else:
            issuer_ref: dict = spec['issuerRef']
            try:
                ca_issuer: dict = await self.object_store.get(
                    issuer_ref['kind'], issuer_ref['name'], ''
                )
                root_stored: StoredSecret = await self.store.get(
                    ca_issuer['spec']['ca']['secretName'],
                    self.cluster_resource_namespace
                )
            except NotFoundError:
                return

            root_ca: RootCaSecret = RootCaSecret.from_stored_secret(
                root_stored
            )
            tls_secret = RegistryTlsSecret()
            tls_secret.create(
                CertificateSpec(
                    common_name=spec['commonName'],
                    dns_names=spec.get('dnsNames', []),
                    ip_addresses=spec.get('ipAddresses', []),
                    duration=parse_go_duration(spec['duration'])
                ),
                root_ca
            )
            stored = StoredSecret(
                name=secret_name, namespace=namespace,
                data={
                    'tls.crt': tls_secret.cert_pem_data,
                    'tls.key': tls_secret.private_key_as_pem(),
                    'ca.crt': root_ca.cert_pem_data,
                },
                secret_type=SecretType.TLS
            )

        await self.store.apply(stored)
        self.issued[metadata['name']] = self.issued.get(metadata['name'], 0) + 1

        if issuing:
            certificate['status']['conditions'] = [
                condition for condition in conditions
                if condition['type'] != 'Issuing'
            ]
            await self.object_store.update_status(certificate)
