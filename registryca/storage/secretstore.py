'''
Interfaces for the stores that persist secrets and the (unstructured)
objects of the external certificate controller

:maintainer : Steven Hessing (steven@byoda.org)
:copyright  : Copyright 2020, 2021, 2025
:license    : GPLv3
'''

from abc import ABC
from abc import abstractmethod
from copy import deepcopy
from logging import Logger
from logging import getLogger

from registryca.datatypes import StorageType
from registryca.datatypes import StoredSecret

_LOGGER: Logger = getLogger(__name__)


class SecretStore(ABC):
    '''
    Opaque get/create/apply/update of named, namespaced secrets.

    Implementations must provide an atomic create: of concurrent creates
    for the same name and namespace, exactly one succeeds and the others
    raise ConflictError
    '''

    @staticmethod
    async def get_store(storage_type: StorageType | str,
                        root_dir: str = None):
        '''
        Factory for SecretStore and classes derived from it

        :param storage_type: where secrets should be persisted
        :param root_dir: directory on the local file system under which
        secrets will be stored, only used for StorageType.FILE
        :returns: instance of a class derived from SecretStore
        '''

        if isinstance(storage_type, str):
            storage_type = StorageType(storage_type)

        if storage_type == StorageType.MEMORY:
            from .memory import MemorySecretStore
            store = MemorySecretStore()
        elif storage_type == StorageType.FILE:
            from .filestorage import FileSecretStore
            store = await FileSecretStore.setup(root_dir)
        else:
            raise NotImplementedError(
                f'There is no support for storage type {storage_type}'
            )

        _LOGGER.debug(f'Initialized {storage_type.value} secret store')

        return store

    @abstractmethod
    async def get(self, name: str, namespace: str) -> StoredSecret:
        '''
        :raises: NotFoundError if the secret does not exist
        '''
        raise NotImplementedError

    @abstractmethod
    async def create(self, secret: StoredSecret) -> None:
        '''
        :raises: ConflictError if the secret already exists
        '''
        raise NotImplementedError

    @abstractmethod
    async def apply(self, secret: StoredSecret) -> None:
        '''
        Creates the secret or merges it into the existing secret
        '''
        raise NotImplementedError

    @abstractmethod
    async def update(self, secret: StoredSecret) -> None:
        '''
        :raises: NotFoundError if the secret does not exist
        '''
        raise NotImplementedError

    @abstractmethod
    async def delete(self, name: str, namespace: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def exists(self, name: str, namespace: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def ensure_namespace(self, namespace: str) -> None:
        '''
        Creates the namespace if it does not exist yet
        '''
        raise NotImplementedError

    @staticmethod
    def merge(existing: StoredSecret | None, secret: StoredSecret
              ) -> StoredSecret:
        '''
        Merges a secret into an existing secret the way an apply does:
        fields in the data, labels and owner references of the new secret
        win, fields that only exist in the existing secret are kept

        :returns: a new instance, neither parameter is modified
        '''

        if existing is None:
            return deepcopy(secret)

        merged: StoredSecret = deepcopy(existing)
        merged.data.update(deepcopy(secret.data))
        merged.labels.update(secret.labels)
        merged.secret_type = secret.secret_type
        for owner in secret.owner_references:
            merged.add_owner_reference(owner)

        return merged


class ObjectStore(ABC):
    '''
    Get/apply of unstructured objects, as dicts with 'apiVersion',
    'kind', 'metadata', 'spec' and 'status' keys
    '''

    @abstractmethod
    async def get(self, kind: str, name: str, namespace: str) -> dict:
        '''
        :raises: NotFoundError if the object does not exist
        '''
        raise NotImplementedError

    @abstractmethod
    async def apply(self, obj: dict) -> None:
        raise NotImplementedError

    @abstractmethod
    async def update_status(self, obj: dict) -> None:
        '''
        Replaces the status of an existing object

        :raises: NotFoundError if the object does not exist
        '''
        raise NotImplementedError
