'''
The copy of the public cert of the root CA for a cluster

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2025
:license    : GPLv3
'''

from typing import Self
from typing import override
from logging import Logger
from logging import getLogger

from registryca.datatypes import CA_CERT_KEY
from registryca.datatypes import Cluster
from registryca.datatypes import SecretType
from registryca.datatypes import StoredSecret

from registryca.exceptions import NotFoundError

from registryca.util.names import Names

from .secret import Secret
from .rootca_secret import RootCaSecret

_LOGGER: Logger = getLogger(__name__)


class ClusterCaSecret(Secret):
    '''
    Trust anchor of a workload cluster, stored in the namespace of the
    cluster on the management cluster. Only holds the cert of the
    root CA, never its private key
    '''

    __slots__: list[str] = ['cluster']

    @override
    def __init__(self, cluster: Cluster) -> None:
        super().__init__()

        self.cluster: Cluster = cluster

    @property
    def name(self) -> str:
        return Names.cluster_ca_secret(self.cluster)

    @classmethod
    def from_root_ca(cls, root_ca: RootCaSecret, cluster: Cluster) -> Self:
        '''
        Copies the 'ca.crt' of the root CA, byte for byte
        '''

        ca_cert_data: bytes | None = root_ca.ca_cert_pem_data
        if not ca_cert_data:
            raise NotFoundError(
                f'{CA_CERT_KEY} not found in Secret '
                f'{root_ca.namespace}/{root_ca.name}'
            )

        secret = cls(cluster)
        secret.from_pem(ca_cert_data)

        return secret

    def as_stored_secret(self) -> StoredSecret:
        return StoredSecret(
            name=self.name,
            namespace=self.cluster.namespace,
            secret_type=SecretType.OPAQUE,
            data={CA_CERT_KEY: self.cert_pem_data},
            owner_references=[self.cluster.owner_reference()]
        )

    @classmethod
    def from_stored_secret(cls, stored: StoredSecret, cluster: Cluster
                           ) -> Self:
        if not stored.data.get(CA_CERT_KEY):
            raise NotFoundError(
                f'{CA_CERT_KEY} not found in Secret {stored.key}'
            )

        secret = cls(cluster)
        secret.from_pem(stored.data[CA_CERT_KEY])

        return secret
