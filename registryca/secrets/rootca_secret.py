'''
Cert manipulation of the root CA of the registry add-on

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2021, 2022, 2023, 2024, 2025
:license    : GPLv3
'''

from typing import Self
from typing import override
from logging import Logger
from logging import getLogger
from datetime import timedelta

from registryca.datatypes import CA_CERT_KEY
from registryca.datatypes import TLS_CERT_KEY
from registryca.datatypes import TLS_PRIVATE_KEY_KEY
from registryca.datatypes import SecretType
from registryca.datatypes import StoredSecret

from registryca.exceptions import NotFoundError

from registryca.util.names import Names

from .ca_secret import CaSecret

_LOGGER: Logger = getLogger(__name__)

# The root CA is never rotated, it should outlive the clusters it serves
ROOT_CA_EXPIRATION: timedelta = timedelta(days=10 * 365)


class RootCaSecret(CaSecret):
    '''
    The self-signed root CA that signs the TLS certs of the registries
    of all clusters. There is one root CA per control plane, stored in
    the namespace of the management cluster
    '''

    __slots__: list[str] = ['namespace', 'ca_cert_pem_data']

    @override
    def __init__(self, namespace: str = None) -> None:
        super().__init__()

        self.namespace: str | None = namespace

        # The PEM data of the 'ca.crt' field of the secret, if
        # the secret was loaded from a store
        self.ca_cert_pem_data: bytes | None = None

        self.ca = True
        self.is_root_cert = True

    @property
    def name(self) -> str:
        return Names.get(Names.ROOT_CA_SECRET)

    @override
    def create(self, expire: timedelta = ROOT_CA_EXPIRATION) -> None:
        '''
        Creates an RSA private key and a self-signed X.509 cert

        :param expire: how long the cert should be valid for
        :returns: (none)
        :raises: ValueError if the Secret instance already
                            has a private key or cert
        '''

        common_name: str = Names.get(Names.ROOT_CA_COMMON_NAME)
        super().create(common_name, expire=expire, ca=True)

        pem_data: bytes = self.cert_as_pem()
        self.cert_pem_data = pem_data
        self.ca_cert_pem_data = pem_data

    def as_stored_secret(self) -> StoredSecret:
        '''
        The root CA as secret with the cert in both the 'tls.crt' and
        the 'ca.crt' fields and the PKCS#1 private key in the 'tls.key'
        field
        '''

        if not self.namespace:
            raise ValueError('No namespace set for the root CA secret')

        cert_data: bytes = self.cert_pem_data or self.cert_as_pem()
        return StoredSecret(
            name=self.name,
            namespace=self.namespace,
            secret_type=SecretType.OPAQUE,
            data={
                TLS_CERT_KEY: cert_data,
                CA_CERT_KEY: self.ca_cert_pem_data or cert_data,
                TLS_PRIVATE_KEY_KEY: self.private_key_as_pem(),
            }
        )

    @classmethod
    def from_stored_secret(cls, stored: StoredSecret,
                           with_private_key: bool = True) -> Self:
        '''
        Loads the root CA from the secret

        :param stored: the secret as read from the store
        :param with_private_key: should the private key be loaded
        :returns: the root CA
        :raises: NotFoundError if a field is missing from the secret,
        DecodeError, ParseError if the cert or the key can not be parsed
        '''

        required_fields: list[str] = [TLS_CERT_KEY]
        if with_private_key:
            required_fields.append(TLS_PRIVATE_KEY_KEY)

        for field in required_fields:
            if not stored.data.get(field):
                raise NotFoundError(
                    f'{field} not found in Secret {stored.key}'
                )

        root_ca = cls(namespace=stored.namespace)
        root_ca.from_pem(
            stored.data[TLS_CERT_KEY],
            stored.data[TLS_PRIVATE_KEY_KEY] if with_private_key else None
        )
        root_ca.ca_cert_pem_data = stored.data.get(CA_CERT_KEY)

        _LOGGER.debug(
            f'Loaded root CA {root_ca.common_name} from secret {stored.key} '
            f'with fingerprint {root_ca.fingerprint().hex()}'
        )

        return root_ca
