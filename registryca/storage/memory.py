'''
In-memory secret and object stores, used for bootstrap clusters
and by test cases

:maintainer : Steven Hessing (steven@byoda.org)
:copyright  : Copyright 2025
:license    : GPLv3
'''

import asyncio

from copy import deepcopy
from logging import Logger
from logging import getLogger

from registryca.datatypes import ObjectKey
from registryca.datatypes import StoredSecret

from registryca.exceptions import StoreError
from registryca.exceptions import NotFoundError
from registryca.exceptions import ConflictError

from .secretstore import SecretStore
from .secretstore import ObjectStore

_LOGGER: Logger = getLogger(__name__)


class MemorySecretStore(SecretStore):
    '''
    Keeps secrets in a dict. All writes are serialized with a lock so
    creates are atomic with respect to each other.
    '''

    def __init__(self, require_namespaces: bool = False) -> None:
        '''
        :param require_namespaces: refuse writes to namespaces that were
        not created with ensure_namespace(), as a Kubernetes API server
        does
        '''

        self.secrets: dict[ObjectKey, StoredSecret] = {}
        self.namespaces: set[str] = set()
        self.require_namespaces: bool = require_namespaces
        self.lock = asyncio.Lock()

    async def get(self, name: str, namespace: str) -> StoredSecret:
        key = ObjectKey(name, namespace)
        secret: StoredSecret | None = self.secrets.get(key)
        if secret is None:
            raise NotFoundError(f'Secret {key} not found')

        return deepcopy(secret)

    async def create(self, secret: StoredSecret) -> None:
        async with self.lock:
            self._check_namespace(secret)
            if secret.key in self.secrets:
                raise ConflictError(f'Secret {secret.key} already exists')

            self.secrets[secret.key] = deepcopy(secret)
            _LOGGER.debug(f'Created secret {secret.key}')

    async def apply(self, secret: StoredSecret) -> None:
        async with self.lock:
            self._check_namespace(secret)
            existing: StoredSecret | None = self.secrets.get(secret.key)
            self.secrets[secret.key] = SecretStore.merge(existing, secret)
            _LOGGER.debug(f'Applied secret {secret.key}')

    async def update(self, secret: StoredSecret) -> None:
        async with self.lock:
            if secret.key not in self.secrets:
                raise NotFoundError(
                    f'Can not update secret {secret.key} as it does not exist'
                )

            self.secrets[secret.key] = deepcopy(secret)
            _LOGGER.debug(f'Updated secret {secret.key}')

    async def delete(self, name: str, namespace: str) -> bool:
        async with self.lock:
            return self.secrets.pop(ObjectKey(name, namespace), None) \
                is not None

    async def exists(self, name: str, namespace: str) -> bool:
        return ObjectKey(name, namespace) in self.secrets

    async def ensure_namespace(self, namespace: str) -> None:
        self.namespaces.add(namespace)

    def _check_namespace(self, secret: StoredSecret) -> None:
        if self.require_namespaces and secret.namespace not in self.namespaces:
            raise StoreError(
                f'Namespace {secret.namespace} for secret {secret.name} '
                'does not exist'
            )


class MemoryObjectStore(ObjectStore):
    '''
    Keeps unstructured objects in a dict, keyed by kind, name and
    namespace
    '''

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str], dict] = {}
        self.lock = asyncio.Lock()

    @staticmethod
    def _key(obj: dict) -> tuple[str, str, str]:
        metadata: dict = obj.get('metadata', {})
        return (obj['kind'], metadata['name'], metadata.get('namespace', ''))

    async def get(self, kind: str, name: str, namespace: str) -> dict:
        obj: dict | None = self.objects.get((kind, name, namespace))
        if obj is None:
            raise NotFoundError(f'{kind} {namespace}/{name} not found')

        return deepcopy(obj)

    async def apply(self, obj: dict) -> None:
        '''
        Creates the object or replaces its spec. The status of an
        existing object is kept and metadata is merged
        '''

        async with self.lock:
            key: tuple[str, str, str] = self._key(obj)
            new: dict = deepcopy(obj)
            existing: dict | None = self.objects.get(key)
            if existing:
                metadata: dict = existing.get('metadata', {})
                for field in ('labels', 'annotations'):
                    merged: dict = metadata.get(field, {})
                    merged.update(new['metadata'].get(field, {}))
                    if merged:
                        new['metadata'][field] = merged

                owners: list[dict] = [
                    owner for owner in metadata.get('ownerReferences', [])
                    if owner not in new['metadata'].get('ownerReferences', [])
                ]
                owners.extend(new['metadata'].get('ownerReferences', []))
                if owners:
                    new['metadata']['ownerReferences'] = owners

                if 'status' in existing and 'status' not in new:
                    new['status'] = existing['status']

            self.objects[key] = new
            _LOGGER.debug(f'Applied {key[0]} {key[2]}/{key[1]}')

    async def update_status(self, obj: dict) -> None:
        async with self.lock:
            key: tuple[str, str, str] = self._key(obj)
            existing: dict | None = self.objects.get(key)
            if existing is None:
                raise NotFoundError(
                    f'Can not update status of {key[0]} {key[2]}/{key[1]} '
                    'as it does not exist'
                )

            existing['status'] = deepcopy(obj.get('status', {}))
