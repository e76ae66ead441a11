'''
Issuer that signs the TLS certs of registries with the root CA of
the control plane

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2025
:license    : GPLv3
'''

import asyncio

from typing import override
from logging import Logger
from logging import getLogger
from datetime import timedelta

from registryca.datatypes import Cluster
from registryca.datatypes import ObjectKey
from registryca.datatypes import CertificateSpec

from registryca.exceptions import ParseError
from registryca.exceptions import DecodeError
from registryca.exceptions import SigningError
from registryca.exceptions import NotFoundError

from registryca.cluster.remote import RemoteDistributor

from registryca.datamodel.rootca import RootCaProvider

from registryca.secrets.rootca_secret import RootCaSecret
from registryca.secrets.registrytls_secret import RegistryTlsSecret
from registryca.secrets.registrytls_secret import DEFAULT_EXPIRATION

from .issuer import Issuer

_LOGGER: Logger = getLogger(__name__)


class SelfSignedIssuer(Issuer):
    @override
    def __init__(self, root_ca_provider: RootCaProvider,
                 distributor: RemoteDistributor,
                 default_duration: timedelta = DEFAULT_EXPIRATION) -> None:
        super().__init__(distributor, default_duration)

        self.root_ca_provider: RootCaProvider = root_ca_provider

    @override
    async def issue(self, cluster: Cluster, remote_secret_key: ObjectKey,
                    spec: CertificateSpec, timeout: float | None = None
                    ) -> RegistryTlsSecret:
        '''
        Signs a cert with a new private key and applies it to the workload
        cluster. Nothing gets written to the workload cluster if the cert
        can not be created

        :returns: the newly created cert and private key
        :raises: NotFoundError, DecodeError, ParseError if the root CA
        can not be loaded, SigningError, StoreError, TimeoutError
        '''

        async with asyncio.timeout(timeout):
            try:
                root_ca: RootCaSecret = \
                    await self.root_ca_provider.get_root_ca()
            except NotFoundError as exc:
                raise NotFoundError(
                    'Failed to get the root CA to sign the registry cert '
                    f'for cluster {cluster.key}: {exc}'
                ) from exc
            except (DecodeError, ParseError) as exc:
                raise type(exc)(
                    'Failed to load the root CA to sign the registry cert '
                    f'for cluster {cluster.key}: {exc}'
                ) from exc

            tls_secret = RegistryTlsSecret()
            try:
                tls_secret.create(spec, root_ca, self.default_duration)
            except (ValueError, KeyError) as exc:
                raise SigningError(
                    f'Failed to create registry cert for cluster '
                    f'{cluster.key}: {exc}'
                ) from exc

            await self.distributor.distribute(
                cluster, tls_secret.as_stored_secret(remote_secret_key)
            )

            _LOGGER.info(
                f'Issued registry cert for {spec.common_name} to secret '
                f'{remote_secret_key} on cluster {cluster.key}, valid until '
                f'{tls_secret.cert.not_valid_after_utc}'
            )

            return tls_secret
