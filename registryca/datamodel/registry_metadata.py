'''
Names, addresses and certificate SANs of the registry on a workload
cluster

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2025
:license    : GPLv3
'''

import ipaddress

from typing import Self
from logging import Logger
from logging import getLogger
from dataclasses import field
from dataclasses import dataclass

from registryca.datatypes import Cluster
from registryca.datatypes import ObjectKey
from registryca.datatypes import CertificateSpec

from registryca.util.names import Names

_LOGGER: Logger = getLogger(__name__)

# Used when the cluster does not specify its Service network
DEFAULT_SERVICE_CIDR: str = '10.96.0.0/12'

# Index of the address in the Service network reserved for the registry
SERVICE_IP_INDEX: int = 20


def service_ip_for_cluster(cluster: Cluster) -> str:
    '''
    Gets the address of the registry Service in the Service network of
    the cluster

    :returns: the IP address as a string
    :raises: ValueError if the CIDR is invalid or too small
    '''

    cidr: str = DEFAULT_SERVICE_CIDR
    if cluster.service_cidr_blocks:
        cidr = cluster.service_cidr_blocks[0]

    try:
        network = ipaddress.ip_network(cidr, strict=False)
    except ValueError as exc:
        raise ValueError(
            f'Invalid Service CIDR {cidr} for cluster {cluster.key}: {exc}'
        ) from exc

    if SERVICE_IP_INDEX >= network.num_addresses:
        raise ValueError(
            f'Service CIDR {cidr} of cluster {cluster.key} does not have '
            f'an address with index {SERVICE_IP_INDEX}'
        )

    return str(network.network_address + SERVICE_IP_INDEX)


@dataclass
class RegistryMetadata:
    '''
    Metadata of the CNCF distribution registry deployed on a cluster
    '''

    helm_release_name: str
    helm_release_namespace: str
    replicas: int
    namespace: str
    service_name: str
    headless_service_name: str
    service_ip: str
    service_port: int
    headless_service_port: int
    # FQDN and port of the registry Service as seen from the cluster network
    address_from_cluster_network: str
    tls_secret_name: str
    # The secret on the management cluster with the cert of the root CA
    ca_secret_name: str
    certificate_dns_names: list[str] = field(default_factory=list)
    certificate_ip_addresses: list[str] = field(default_factory=list)

    @classmethod
    def for_cluster(cls, cluster: Cluster) -> Self:
        '''
        :raises: ValueError if the Service IP can not be determined
        '''

        release_name: str = 'cncf-distribution-registry'
        namespace: str = 'registry-system'
        replicas: int = 2
        workload_name: str = 'cncf-distribution-registry-docker-registry'
        headless_service_name: str = f'{workload_name}-headless'
        service_port: int = 443
        # Must match the container port of the registry Pods
        headless_service_port: int = 5000

        try:
            service_ip: str = service_ip_for_cluster(cluster)
        except ValueError as exc:
            raise ValueError(
                'Error getting service IP for the CNCF distribution '
                f'registry: {exc}'
            ) from exc

        return cls(
            helm_release_name=release_name,
            helm_release_namespace=namespace,
            replicas=replicas,
            namespace=namespace,
            service_name=workload_name,
            headless_service_name=headless_service_name,
            service_ip=service_ip,
            service_port=service_port,
            headless_service_port=headless_service_port,
            address_from_cluster_network=(
                f'{workload_name}.{namespace}.svc.cluster.local:'
                f'{service_port}'
            ),
            tls_secret_name='registry-tls',
            ca_secret_name=Names.cluster_ca_secret(cluster),
            certificate_dns_names=cls.certificate_dns_names_for(
                workload_name, headless_service_name, namespace, replicas
            ),
            certificate_ip_addresses=[service_ip, '127.0.0.1'],
        )

    @staticmethod
    def certificate_dns_names_for(workload_name: str,
                                  headless_service_name: str,
                                  namespace: str, replicas: int
                                  ) -> list[str]:
        names: list[str] = [
            workload_name,
            f'{workload_name}.{namespace}',
            f'{workload_name}.{namespace}.svc',
            f'{workload_name}.{namespace}.svc.cluster.local',
        ]
        for replica in range(replicas):
            pod: str = f'{workload_name}-{replica}'
            names.extend([
                pod,
                f'{pod}.{headless_service_name}.{namespace}',
                f'{pod}.{headless_service_name}.{namespace}.svc',
                f'{pod}.{headless_service_name}.{namespace}.svc.cluster.local',
            ])

        return names

    def certificate_spec(self) -> CertificateSpec:
        '''
        The spec for the TLS cert of the registry, with the default
        duration of the issuer
        '''

        return CertificateSpec(
            common_name=self.service_name,
            dns_names=list(self.certificate_dns_names),
            ip_addresses=list(self.certificate_ip_addresses),
        )

    def remote_secret_key(self) -> ObjectKey:
        '''
        Where the TLS secret goes on the workload cluster
        '''

        return ObjectKey(self.tls_secret_name, self.namespace)
