'''
Non-specific data types

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2021, 2022, 2023, 2024, 2025
:license    : GPLv3
'''

# flake8: noqa=E221

from enum import Enum
from datetime import timedelta
from dataclasses import field
from dataclasses import dataclass

# Field names in the secrets, these must match what the registry
# Pods and the kubelet expect
TLS_CERT_KEY: str = 'tls.crt'
TLS_PRIVATE_KEY_KEY: str = 'tls.key'
CA_CERT_KEY: str = 'ca.crt'

# API versions and kinds of the objects we manage
SECRET_API_VERSION: str = 'v1'
CLUSTER_API_VERSION: str = 'cluster.x-k8s.io/v1beta1'
CERT_MANAGER_API_VERSION: str = 'cert-manager.io/v1'


class SecretType(Enum):
    OPAQUE          = 'Opaque'
    TLS             = 'kubernetes.io/tls'


class IssuerType(Enum):
    '''
    How leaf certificates for the registry get signed
    '''
    SELF_SIGNED     = 'self-signed'
    DELEGATED       = 'delegated'


class StorageType(Enum):
    MEMORY          = 'memory'
    FILE            = 'file'


@dataclass(frozen=True)
class ObjectKey:
    name: str
    namespace: str

    def __str__(self) -> str:
        return f'{self.namespace}/{self.name}'


@dataclass(frozen=True)
class OwnerReference:
    api_version: str
    kind: str
    name: str
    uid: str

    def as_dict(self) -> dict[str, str]:
        return {
            'apiVersion': self.api_version,
            'kind': self.kind,
            'name': self.name,
            'uid': self.uid,
        }

    @staticmethod
    def from_dict(data: dict[str, str]):
        return OwnerReference(
            api_version=data['apiVersion'], kind=data['kind'],
            name=data['name'], uid=data['uid']
        )


@dataclass
class Cluster:
    '''
    The parts of a (workload or management) cluster resource that
    the certificate authority needs
    '''

    name: str
    namespace: str
    uid: str = ''
    # CIDR blocks of the Service network of the cluster
    service_cidr_blocks: list[str] = field(default_factory=list)

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.name, self.namespace)

    def owner_reference(self) -> OwnerReference:
        return OwnerReference(
            api_version=CLUSTER_API_VERSION, kind='Cluster',
            name=self.name, uid=self.uid
        )


@dataclass
class CertificateSpec:
    '''
    What goes into a leaf certificate. If no duration is set,
    the default duration of the issuer is used
    '''

    common_name: str
    dns_names: list[str] = field(default_factory=list)
    ip_addresses: list[str] = field(default_factory=list)
    duration: timedelta | None = None


@dataclass
class StoredSecret:
    '''
    A named, namespaced set of key/value pairs as persisted by a
    SecretStore
    '''

    name: str
    namespace: str
    data: dict[str, bytes] = field(default_factory=dict)
    secret_type: SecretType = SecretType.OPAQUE
    owner_references: list[OwnerReference] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.name, self.namespace)

    def add_owner_reference(self, owner: OwnerReference) -> None:
        '''
        Adds the owner, replacing any existing reference with the same
        kind and name
        '''

        self.owner_references = [
            ref for ref in self.owner_references
            if not (ref.kind == owner.kind and ref.name == owner.name)
        ]
        self.owner_references.append(owner)
