'''
Interface class for issuers of the TLS certs of registries

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2025
:license    : GPLv3
'''

from abc import ABC
from abc import abstractmethod
from logging import Logger
from logging import getLogger
from datetime import timedelta

from registryca.datatypes import Cluster
from registryca.datatypes import ObjectKey
from registryca.datatypes import IssuerType
from registryca.datatypes import CertificateSpec

from registryca.storage.secretstore import SecretStore
from registryca.storage.secretstore import ObjectStore

from registryca.cluster.remote import RemoteDistributor
from registryca.cluster.management import ManagementClusterResolver

from registryca.datamodel.rootca import RootCaProvider

from registryca.secrets.registrytls_secret import DEFAULT_EXPIRATION

from registryca.util.wait import DEFAULT_POLL_INTERVAL
from registryca.util.wait import DEFAULT_POLL_TIMEOUT

_LOGGER: Logger = getLogger(__name__)


class Issuer(ABC):
    '''
    Issues a TLS cert for the registry of a cluster and puts it in a
    secret on the workload cluster
    '''

    def __init__(self, distributor: RemoteDistributor,
                 default_duration: timedelta = DEFAULT_EXPIRATION) -> None:
        self.distributor: RemoteDistributor = distributor
        self.default_duration: timedelta = default_duration

    @abstractmethod
    async def issue(self, cluster: Cluster, remote_secret_key: ObjectKey,
                    spec: CertificateSpec, timeout: float | None = None
                    ) -> None:
        '''
        Issues the cert and applies the secret with the cert, its private
        key and the cert of the root CA on the workload cluster

        :param cluster: the cluster to issue the cert for
        :param remote_secret_key: name and namespace of the secret on
        the workload cluster
        :param spec: what goes into the cert
        :param timeout: seconds after which the call is abandoned
        '''

        raise NotImplementedError

    @staticmethod
    def get_issuer(issuer_type: IssuerType | str,
                   distributor: RemoteDistributor,
                   root_ca_provider: RootCaProvider = None,
                   store: SecretStore = None,
                   object_store: ObjectStore = None,
                   resolver: ManagementClusterResolver = None,
                   default_duration: timedelta = DEFAULT_EXPIRATION,
                   poll_interval: float = DEFAULT_POLL_INTERVAL,
                   poll_timeout: float = DEFAULT_POLL_TIMEOUT):
        '''
        Factory for Issuer and classes derived from it

        :param issuer_type: self-signed or delegated
        :param root_ca_provider: required for the self-signed issuer
        :param store, object_store, resolver: required for the
        delegated issuer
        :returns: instance of a class derived from Issuer
        :raises: ValueError if a required parameter is missing
        '''

        if isinstance(issuer_type, str):
            issuer_type = IssuerType(issuer_type)

        if issuer_type == IssuerType.SELF_SIGNED:
            if not root_ca_provider:
                raise ValueError(
                    'The self-signed issuer requires a root CA provider'
                )

            from .selfsigned import SelfSignedIssuer
            issuer = SelfSignedIssuer(
                root_ca_provider, distributor,
                default_duration=default_duration
            )
        elif issuer_type == IssuerType.DELEGATED:
            if not (store and object_store and resolver):
                raise ValueError(
                    'The delegated issuer requires a secret store, an '
                    'object store and a management cluster resolver'
                )

            from .delegated import DelegatedIssuer
            issuer = DelegatedIssuer(
                store, object_store, resolver, distributor,
                default_duration=default_duration,
                poll_interval=poll_interval, poll_timeout=poll_timeout
            )
        else:
            raise NotImplementedError(
                f'There is no support for issuer type {issuer_type}'
            )

        _LOGGER.debug(f'Using {issuer_type.value} issuer')

        return issuer
