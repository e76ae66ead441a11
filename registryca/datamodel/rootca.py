'''
The root CA of the registry add-on, one per control plane

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
from registryca.exceptions import ConflictError
from registryca.exceptions import NotFoundError
from registryca.exceptions import RegistryCaError

from registryca.storage.secretstore import SecretStore

from registryca.cluster.management import ManagementClusterResolver

from registryca.secrets.rootca_secret import RootCaSecret

from registryca.util.names import Names

_LOGGER: Logger = getLogger(__name__)


class RootCaProvider:
    '''
    Creates the root CA once and provides access to it. The root CA is
    cached on the instance after it has been loaded or created, so
    a fresh provider with a fresh store gives a fresh root
    '''

    def __init__(self, store: SecretStore,
                 resolver: ManagementClusterResolver) -> None:
        self.store: SecretStore = store
        self.resolver: ManagementClusterResolver = resolver

        self._root_ca: RootCaSecret | None = None

    async def ensure_root_ca(self, timeout: float | None = None
                             ) -> RootCaSecret:
        '''
        Makes sure the root CA secret exists in the namespace of the
        management cluster. An existing secret is never modified or
        replaced, but it is loaded, so an existing secret with a missing
        or malformed cert or key is reported here rather than when the
        first cert gets signed

        :param timeout: seconds after which the call is abandoned
        :returns: the root CA, with its private key
        :raises: NotFoundError if no management cluster has been designated,
        StoreError, SigningError, DecodeError, ParseError if the
        existing secret can not be loaded, TimeoutError
        '''

        async with asyncio.timeout(timeout):
            cluster: Cluster = await self._management_cluster()

            stored: StoredSecret | None = await self._get_secret(
                cluster.namespace
            )
            if stored:
                _LOGGER.debug(
                    f'Root CA secret {stored.key} already exists'
                )
                self._root_ca = RootCaSecret.from_stored_secret(stored)
                return self._root_ca

            root_ca = RootCaSecret(namespace=cluster.namespace)
            root_ca.create()

            new_secret: StoredSecret = root_ca.as_stored_secret()
            new_secret.add_owner_reference(cluster.owner_reference())

            try:
                await self.store.ensure_namespace(cluster.namespace)
                await self.store.create(new_secret)
                _LOGGER.info(
                    f'Created root CA secret {new_secret.key} with '
                    f'fingerprint {root_ca.fingerprint().hex()}'
                )
            except ConflictError:
                # Someone else created the secret after we checked for it,
                # their root CA is the root CA
                _LOGGER.debug(
                    f'Root CA secret {new_secret.key} was created '
                    'concurrently, loading it'
                )
                stored = await self._get_secret(cluster.namespace)
                if not stored:
                    raise StoreError(
                        f'Root CA secret {new_secret.key} conflicted on '
                        'creation but can not be read'
                    )
                root_ca = RootCaSecret.from_stored_secret(stored)
            except (StoreError, OSError) as exc:
                raise StoreError(
                    'Failed to ensure registry addon root CA secret '
                    f'{new_secret.key}: {exc}'
                ) from exc

            self._root_ca = root_ca

            return root_ca

    async def get_root_ca(self, timeout: float | None = None
                          ) -> RootCaSecret:
        '''
        Accessor for the root CA of the control plane. Once loaded, the
        root CA is kept for the lifetime of the provider and changes to
        the secret in the store are not seen until reset() is called.
        The root CA is never regenerated so the cached copy stays valid

        :returns: the root CA, with its private key
        :raises: NotFoundError if the secret, or the cert or key in it,
        does not exist, DecodeError, ParseError, StoreError
        '''

        if self._root_ca:
            return self._root_ca

        async with asyncio.timeout(timeout):
            cluster: Cluster = await self._management_cluster()
            stored: StoredSecret | None = await self._get_secret(
                cluster.namespace
            )
            if not stored:
                raise NotFoundError(
                    f'Secret {cluster.namespace}/'
                    f'{Names.get(Names.ROOT_CA_SECRET)} not found'
                )

            self._root_ca = RootCaSecret.from_stored_secret(stored)

            return self._root_ca

    def reset(self) -> None:
        '''
        Drops the cached root CA so the next access reads it from
        the store
        '''

        self._root_ca = None

    async def _management_cluster(self) -> Cluster:
        cluster: Cluster | None = await self.resolver.management_cluster()
        if not cluster:
            raise NotFoundError(
                'No management cluster designated, can not locate secret '
                f'{Names.get(Names.ROOT_CA_SECRET)}'
            )

        return cluster

    async def _get_secret(self, namespace: str) -> StoredSecret | None:
        name: str = Names.get(Names.ROOT_CA_SECRET)
        try:
            return await self.store.get(name, namespace)
        except NotFoundError:
            return None
        except (RegistryCaError, OSError) as exc:
            raise StoreError(
                f'Failed to read registry addon root CA secret '
                f'{namespace}/{name}: {exc}'
            ) from exc
