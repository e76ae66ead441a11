'''
Secret store on the local file system. Each secret is a JSON file
under <root_dir>/<namespace>/<name>.json, with the values in the
data of the secret base64-encoded as Kubernetes does

:maintainer : Steven Hessing (steven@byoda.org)
:copyright  : Copyright 2020, 2021, 2025
:license    : GPLv3
'''

import os
import base64
import tempfile

from logging import Logger
from logging import getLogger

import orjson

from registryca.datatypes import SecretType
from registryca.datatypes import StoredSecret
from registryca.datatypes import OwnerReference

from registryca.exceptions import StoreError
from registryca.exceptions import NotFoundError
from registryca.exceptions import ConflictError

from .secretstore import SecretStore

_LOGGER: Logger = getLogger(__name__)

_FILE_MODE: int = 0o600
_DIR_MODE: int = 0o700


class FileSecretStore(SecretStore):
    '''
    Class that persists secrets as files on the local file system.

    Creates are atomic across processes: the secret is written to a
    temporary file which is then hard-linked to its final name, which
    fails if the file already exists. Applies and updates write to a
    temporary file that replaces the existing file.
    '''

    def __init__(self, local_path: str) -> None:
        if not local_path:
            raise ValueError('Must specify local path')

        self.local_path: str = os.path.abspath(local_path).rstrip('/') + '/'

        os.makedirs(self.local_path, mode=_DIR_MODE, exist_ok=True)

        _LOGGER.debug('Initialized file storage under %s', self.local_path)

    @staticmethod
    async def setup(root_dir: str):
        '''
        Factory for FileSecretStore

        :param root_dir: directory on the local file system under which
        secrets will be stored
        '''

        return FileSecretStore(root_dir)

    def get_full_path(self, name: str, namespace: str,
                      create_dir: bool = False) -> str:
        '''
        Returns the absolute path for the file of the secret

        :param name: name of the secret
        :param namespace: namespace of the secret
        :param create_dir: should an attempt be made to create the directory
        :returns: the path to the file
        :raises: ValueError if the name or namespace would escape the
        root directory
        '''

        for value in (name, namespace):
            if not value or '/' in value or value in ('.', '..'):
                raise ValueError(f'Invalid name or namespace: {value}')

        dirpath: str = self.local_path + namespace
        if create_dir:
            os.makedirs(dirpath, mode=_DIR_MODE, exist_ok=True)

        return f'{dirpath}/{name}.json'

    async def get(self, name: str, namespace: str) -> StoredSecret:
        filepath: str = self.get_full_path(name, namespace)

        try:
            with open(filepath, 'rb') as file_desc:
                data: bytes = file_desc.read()
        except FileNotFoundError:
            raise NotFoundError(f'Secret {namespace}/{name} not found')
        except OSError as exc:
            raise StoreError(
                f'Failed to read secret {namespace}/{name} from {filepath}: '
                f'{exc}'
            ) from exc

        _LOGGER.debug(f'Read {len(data)} bytes from local file {filepath}')

        try:
            return FileSecretStore.from_json(data)
        except (orjson.JSONDecodeError, KeyError, ValueError) as exc:
            raise StoreError(
                f'Secret {namespace}/{name} in {filepath} is corrupt: {exc}'
            ) from exc

    async def create(self, secret: StoredSecret) -> None:
        filepath: str = self._check_namespace(secret)

        tmp_filepath: str = self._write_tmp(filepath, secret)
        try:
            os.link(tmp_filepath, filepath)
        except FileExistsError:
            raise ConflictError(
                f'Secret {secret.key} already exists at {filepath}'
            )
        except OSError as exc:
            raise StoreError(
                f'Failed to create secret {secret.key} at {filepath}: {exc}'
            ) from exc
        finally:
            os.unlink(tmp_filepath)

        _LOGGER.debug(f'Created secret {secret.key} at {filepath}')

    async def apply(self, secret: StoredSecret) -> None:
        filepath: str = self._check_namespace(secret)

        existing: StoredSecret | None = None
        try:
            existing = await self.get(secret.name, secret.namespace)
        except NotFoundError:
            pass

        merged: StoredSecret = SecretStore.merge(existing, secret)
        self._replace(filepath, merged)

        _LOGGER.debug(f'Applied secret {secret.key} to {filepath}')

    async def update(self, secret: StoredSecret) -> None:
        filepath: str = self.get_full_path(secret.name, secret.namespace)
        if not os.path.exists(filepath):
            raise NotFoundError(
                f'Can not update secret {secret.key} as it does not exist'
            )

        self._replace(filepath, secret)

        _LOGGER.debug(f'Updated secret {secret.key} at {filepath}')

    async def delete(self, name: str, namespace: str) -> bool:
        filepath: str = self.get_full_path(name, namespace)
        try:
            os.remove(filepath)
            return True
        except FileNotFoundError:
            return False

    async def exists(self, name: str, namespace: str) -> bool:
        filepath: str = self.get_full_path(name, namespace)
        exists: bool = os.path.exists(filepath)
        if not exists:
            _LOGGER.debug(f'File not found in local filesystem: {filepath}')

        return exists

    async def ensure_namespace(self, namespace: str) -> None:
        if not namespace or '/' in namespace or namespace in ('.', '..'):
            raise ValueError(f'Invalid namespace: {namespace}')

        dirpath: str = self.local_path + namespace
        _LOGGER.debug(f'Creating directory: {dirpath}')
        os.makedirs(dirpath, mode=_DIR_MODE, exist_ok=True)

    def _check_namespace(self, secret: StoredSecret) -> str:
        '''
        Namespaces are directories and must exist before secrets
        can be written to them

        :returns: the path to the file for the secret
        '''

        filepath: str = self.get_full_path(secret.name, secret.namespace)
        if not os.path.isdir(os.path.dirname(filepath)):
            raise StoreError(
                f'Namespace {secret.namespace} for secret {secret.name} '
                'does not exist'
            )

        return filepath

    def _write_tmp(self, filepath: str, secret: StoredSecret) -> str:
        '''
        Writes the secret to a temporary file in the same directory
        as the file for the secret

        :returns: the path to the temporary file
        '''

        dirpath: str = os.path.dirname(filepath)
        try:
            file_desc, tmp_filepath = tempfile.mkstemp(
                dir=dirpath, prefix='.', suffix='.tmp'
            )
            with os.fdopen(file_desc, 'wb') as tmp_file:
                tmp_file.write(FileSecretStore.as_json(secret))
            os.chmod(tmp_filepath, _FILE_MODE)
        except OSError as exc:
            raise StoreError(
                f'Failed to write secret {secret.key} to {dirpath}: {exc}'
            ) from exc

        return tmp_filepath

    def _replace(self, filepath: str, secret: StoredSecret) -> None:
        tmp_filepath: str = self._write_tmp(filepath, secret)
        try:
            os.replace(tmp_filepath, filepath)
        except OSError as exc:
            os.unlink(tmp_filepath)
            raise StoreError(
                f'Failed to write secret {secret.key} to {filepath}: {exc}'
            ) from exc

    @staticmethod
    def as_json(secret: StoredSecret) -> bytes:
        return orjson.dumps(
            {
                'name': secret.name,
                'namespace': secret.namespace,
                'type': secret.secret_type.value,
                'data': {
                    key: base64.b64encode(value).decode('utf-8')
                    for key, value in secret.data.items()
                },
                'labels': secret.labels,
                'ownerReferences': [
                    owner.as_dict() for owner in secret.owner_references
                ],
            },
            option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS
        )

    @staticmethod
    def from_json(data: bytes) -> StoredSecret:
        raw: dict = orjson.loads(data)
        return StoredSecret(
            name=raw['name'],
            namespace=raw['namespace'],
            secret_type=SecretType(raw.get('type', SecretType.OPAQUE.value)),
            data={
                key: base64.b64decode(value)
                for key, value in raw.get('data', {}).items()
            },
            labels=raw.get('labels', {}),
            owner_references=[
                OwnerReference.from_dict(owner)
                for owner in raw.get('ownerReferences', [])
            ]
        )
