'''
Cert manipulation for CAs

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2021, 2022, 2023, 2024, 2025
:license    : GPLv3
'''

from typing import override
from logging import Logger
from logging import getLogger
from datetime import UTC
from datetime import datetime
from datetime import timedelta

from cryptography import x509
from cryptography.hazmat.primitives import hashes

from registryca.exceptions import SigningError

from .secret import Secret
from .secret import NOT_BEFORE_SKEW

_LOGGER: Logger = getLogger(__name__)


class CaSecret(Secret):
    __slots__: list[str] = []

    # Certs signed by us are for TLS servers
    _EXTENDED_KEY_USAGE: list[x509.ObjectIdentifier] = [
        x509.ExtendedKeyUsageOID.SERVER_AUTH,
    ]

    @override
    def __init__(self) -> None:
        super().__init__()

        # X.509 constraints
        self.ca: bool = True

    def sign(self, secret: Secret, expire: timedelta) -> x509.Certificate:
        '''
        Sign a cert for the public key of the secret with our private key.
        The subject and the Subject Alternative Name of the cert are taken
        from the common name, the DNS names and the IP addresses of the
        secret

        :param secret: the secret to create the signed cert for
        :param expire: how long the cert should be valid for, starting now
        :returns: the signed cert
        :raises: ValueError, KeyError, SigningError
        '''

        if not self.ca:
            raise ValueError('Only CAs sign certs')

        if not self.private_key:
            raise KeyError('Private key not loaded')

        if not isinstance(expire, timedelta) or expire <= timedelta(0):
            raise ValueError(f'Invalid expiration for the cert: {expire}')

        _LOGGER.debug(
            f'Signing cert for {secret.common_name} with cert '
            f'{self.common_name}'
        )

        now: datetime = datetime.now(tz=UTC)
        public_key = secret.private_key.public_key()

        cert_builder: x509.CertificateBuilder = x509.CertificateBuilder(
        ).subject_name(
            secret._generate_cert_name()
        ).issuer_name(
            self.cert.subject
        ).public_key(
            public_key
        ).serial_number(
            Secret.random_serial_number()
        ).not_valid_before(
            now - NOT_BEFORE_SKEW
        ).not_valid_after(
            now + expire
        ).add_extension(
            x509.BasicConstraints(ca=secret.ca, path_length=None),
            critical=True,
        ).add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=True,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=secret.ca,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False
            ), critical=True
        ).add_extension(
            x509.ExtendedKeyUsage(self._EXTENDED_KEY_USAGE), critical=False
        ).add_extension(
            x509.SubjectKeyIdentifier.from_public_key(public_key),
            critical=False
        ).add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(
                self.cert.public_key()
            ), critical=False
        )

        try:
            san_names: list[x509.GeneralName] = [
                x509.DNSName(dns_name) for dns_name in secret.dns_names
            ]
            san_names.extend(
                x509.IPAddress(ip_address)
                for ip_address in secret.ip_addresses
            )
            if san_names:
                cert_builder = cert_builder.add_extension(
                    x509.SubjectAlternativeName(san_names), critical=False
                )

            cert: x509.Certificate = cert_builder.sign(
                self.private_key, hashes.SHA256()
            )
        except (ValueError, TypeError) as exc:
            raise SigningError(
                f'Failed to sign cert for {secret.common_name} with CA '
                f'{self.common_name}: {exc}'
            ) from exc

        return cert
