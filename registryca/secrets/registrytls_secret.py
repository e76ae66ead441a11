'''
The TLS secret for the registry of a workload cluster

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2025
:license    : GPLv3
'''

from typing import override
from logging import Logger
from logging import getLogger
from datetime import timedelta

from registryca.datatypes import CA_CERT_KEY
from registryca.datatypes import TLS_CERT_KEY
from registryca.datatypes import TLS_PRIVATE_KEY_KEY
from registryca.datatypes import ObjectKey
from registryca.datatypes import SecretType
from registryca.datatypes import StoredSecret
from registryca.datatypes import CertificateSpec

from .secret import Secret
from .rootca_secret import RootCaSecret

_LOGGER: Logger = getLogger(__name__)

# Valid for 2 years to avoid expiring before the cluster is upgraded
DEFAULT_EXPIRATION: timedelta = timedelta(days=2 * 365)


class RegistryTlsSecret(Secret):
    '''
    Server cert and key for the registry of a workload cluster, with
    the cert of the root CA that signed it
    '''

    __slots__: list[str] = ['ca_cert_pem_data']

    @override
    def __init__(self) -> None:
        super().__init__()

        self.ca_cert_pem_data: bytes | None = None

    @override
    def create(self, spec: CertificateSpec, issuing_ca: RootCaSecret,
               default_expire: timedelta = DEFAULT_EXPIRATION) -> None:
        '''
        Creates a new private key and a cert signed by the root CA.
        Each invocation creates a new private key, keys are never reused

        :param spec: the common name, SANs and duration of the cert
        :param issuing_ca: the root CA, with its private key
        :param default_expire: used if the spec does not have a duration
        :raises: SigningError
        '''

        expire: timedelta = spec.duration or default_expire

        super().create(
            spec.common_name, issuing_ca=issuing_ca, expire=expire,
            dns_names=spec.dns_names, ip_addresses=spec.ip_addresses
        )

        self.cert_pem_data = self.cert_as_pem()

        # The cert of the root is passed on as-is
        self.ca_cert_pem_data = issuing_ca.cert_pem_data

        _LOGGER.debug(
            f'Created cert for {self.common_name} with serial '
            f'{self.cert.serial_number:x}, valid until '
            f'{self.cert.not_valid_after_utc}'
        )

    def as_stored_secret(self, key: ObjectKey) -> StoredSecret:
        return StoredSecret(
            name=key.name,
            namespace=key.namespace,
            secret_type=SecretType.TLS,
            data={
                TLS_CERT_KEY: self.cert_pem_data,
                TLS_PRIVATE_KEY_KEY: self.private_key_as_pem(),
                CA_CERT_KEY: self.ca_cert_pem_data,
            }
        )
