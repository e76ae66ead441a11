'''
Cert manipulation

:maintainer : Steven Hessing <steven@byoda.org>
:copyright  : Copyright 2021, 2022, 2023, 2024, 2025
:license    : GPLv3
'''

import re
import secrets
import ipaddress

from typing import TypeVar
from logging import Logger
from logging import getLogger
from datetime import UTC
from datetime import datetime
from datetime import timedelta
from ipaddress import IPv4Address
from ipaddress import IPv6Address

from cryptography import x509
from cryptography.x509.oid import NameOID
from cryptography.x509 import Certificate
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric import rsa

from registryca.exceptions import ParseError
from registryca.exceptions import DecodeError
from registryca.exceptions import SigningError

_LOGGER: Logger = getLogger(__name__)

_RSA_KEYSIZE: int = 2048

# Set the NotBefore of certs a few minutes in the past to account for
# clock skew between the management cluster and the workload clusters
NOT_BEFORE_SKEW: timedelta = timedelta(minutes=5)

PEM_BLOCK_REGEX: re.Pattern = re.compile(
    r'-----BEGIN (?P<label>[A-Z0-9 ]+)-----\r?\n'
    r'(?P<body>[A-Za-z0-9+/=\r\n]*?)'
    r'-----END (?P=label)-----'
)

PEM_CERTIFICATE: str = 'CERTIFICATE'
PEM_PKCS1_PRIVATE_KEY: str = 'RSA PRIVATE KEY'
PEM_PKCS8_PRIVATE_KEY: str = 'PRIVATE KEY'

PrivateKey = rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey

CaSecret = TypeVar('CaSecret')


class Secret:
    '''
    Interface class for the various types of secrets of the registry
    certificate authority

    Properties:
    - cert                 : instance of cryptography.x509
    - private_key          : instance of
                             cryptography.hazmat.primitives.asymmetric.rsa
    - common_name          : the CN of the subject of the cert
    - dns_names            : DNS names in the Subject Alternative Name
    - ip_addresses         : IP addresses in the Subject Alternative Name
    '''

    __slots__: list[str] = [
        'private_key', 'cert', 'common_name', 'dns_names', 'ip_addresses',
        'is_root_cert', 'ca', 'cert_pem_data'
    ]

    def __init__(self) -> None:
        self.private_key: PrivateKey | None = None
        self.cert: Certificate | None = None

        self.common_name: str | None = None

        # Subject Alternative Names
        self.dns_names: list[str] = []
        self.ip_addresses: list[IPv4Address | IPv6Address] = []

        # Is this a self-signed cert?
        self.is_root_cert: bool = False

        # X.509 constraints
        # is this a secret of a CA. For CAs, use the CaSecret class
        self.ca: bool = False

        # The PEM data the cert was loaded from, if it was loaded
        # from PEM data. We pass it on unmodified when copying the cert
        self.cert_pem_data: bytes | None = None

    @staticmethod
    def generate_private_key(key_size: int = _RSA_KEYSIZE
                             ) -> rsa.RSAPrivateKey:
        '''
        Generates a fresh RSA private key
        '''

        return rsa.generate_private_key(
            public_exponent=65537, key_size=key_size
        )

    @staticmethod
    def random_serial_number() -> int:
        '''
        Returns a random, positive 128-bit serial number
        '''

        return secrets.randbelow(2 ** 128 - 1) + 1

    @staticmethod
    def parse_ip_addresses(addresses: list[str]
                           ) -> list[IPv4Address | IPv6Address]:
        '''
        Parses IP addresses, any value that is not a valid IP address
        is skipped
        '''

        ips: list[IPv4Address | IPv6Address] = []
        for address in addresses or []:
            try:
                ips.append(ipaddress.ip_address(address.strip()))
            except (ValueError, AttributeError):
                _LOGGER.debug(f'Skipping invalid IP address: {address}')

        return ips

    def create(self, common_name: str, issuing_ca: CaSecret = None,
               expire: timedelta = None, key_size: int = _RSA_KEYSIZE,
               dns_names: list[str] = None, ip_addresses: list[str] = None,
               private_key: rsa.RSAPrivateKey = None, ca: bool = False
               ) -> None:
        '''
        Creates an RSA private key and either a self-signed X.509 cert
        or a cert signed by the issuing_ca

        :param common_name: common_name for the certificate
        :param issuing_ca: optional, CA to sign the cert with. If not provided,
        a self-signed cert will be created
        :param expire: how long the cert should be valid for, starting now
        :param key_size: length of the key in bits
        :param dns_names: DNS names for the Subject Alternative Name
        :param ip_addresses: IP addresses for the Subject Alternative Name,
        values that do not parse as IP address are skipped
        :param private_key: use this key instead of generating a new one
        :param ca: create a secret for an CA
        :returns: (none)
        :raises: ValueError if the Secret instance already has a private key
        or cert, SigningError if the cert could not be created
        '''

        if self.private_key or self.cert:
            raise ValueError('Secret already has a key and cert')

        if not self.is_root_cert and not issuing_ca:
            raise ValueError('Only root certs should be self-signed')

        self.common_name = common_name
        self.ca = ca or self.ca
        self.dns_names = list(dns_names or [])
        self.ip_addresses = Secret.parse_ip_addresses(ip_addresses)

        _LOGGER.debug(
            f'Generating a private key with key size {key_size}, '
            f'expiration {expire} and commonname {common_name} '
            f'with CA is {self.ca}'
        )

        if private_key:
            self.private_key = private_key
        else:
            self.private_key = Secret.generate_private_key(key_size)

        if issuing_ca:
            self.cert = issuing_ca.sign(self, expire=expire)
        else:
            self.create_selfsigned_cert(expire)

    def create_selfsigned_cert(self, expire: timedelta) -> None:
        '''
        Create a self-signed certificate

        :param expire: how long the cert should be valid for, starting now
        :returns: (none)
        :raises: SigningError
        '''

        name: x509.Name = self._generate_cert_name()
        now: datetime = datetime.now(tz=UTC)

        builder: x509.CertificateBuilder = x509.CertificateBuilder(
        ).subject_name(
            name
        ).issuer_name(
            name
        ).public_key(
            self.private_key.public_key()
        ).serial_number(
            Secret.random_serial_number()
        ).not_valid_before(
            now - NOT_BEFORE_SKEW
        ).not_valid_after(
            now + expire
        ).add_extension(
            x509.BasicConstraints(ca=self.ca, path_length=None),
            critical=True,
        ).add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=True,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=self.ca,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False
            ), critical=True
        ).add_extension(
            x509.SubjectKeyIdentifier.from_public_key(
                self.private_key.public_key()
            ), critical=False
        )

        self.is_root_cert = True
        try:
            self.cert = builder.sign(self.private_key, hashes.SHA256())
        except (ValueError, TypeError) as exc:
            raise SigningError(
                f'Failed to create self-signed cert for {self.common_name}: '
                f'{exc}'
            ) from exc

    def _generate_cert_name(self) -> x509.Name:
        '''
        Generate an X509.Name instance for a cert

        :param  : (none)
        :returns: (none)
        :raises: (none)
        '''

        if not self.common_name:
            return x509.Name([])

        return x509.Name(
            [x509.NameAttribute(NameOID.COMMON_NAME, str(self.common_name))]
        )

    @staticmethod
    def extract_commonname(cert: x509.Certificate) -> str | None:
        '''
        Extracts the common name from a the subject of a certificate
        '''

        commonname: str | None = None
        for attrib in cert.subject:
            if attrib.oid == NameOID.COMMON_NAME:
                commonname = attrib.value

        return commonname

    @staticmethod
    def decode_pem(data: bytes | str, label: str | None = None,
                   description: str = 'PEM data') -> tuple[str, bytes]:
        '''
        Finds the first PEM block in the data

        :param data: the PEM-encoded data
        :param label: the expected label of the PEM block,
        ie. 'CERTIFICATE'. If None, any label is accepted
        :param description: what the data is, used in error messages
        :returns: the label and the complete PEM block
        :raises: DecodeError if no PEM block is found or if its label
        does not match the expected label
        '''

        if isinstance(data, bytes):
            try:
                data = data.decode('utf-8')
            except UnicodeDecodeError as exc:
                raise DecodeError(
                    f'Failed to decode {description}: {exc}'
                ) from exc

        match: re.Match | None = PEM_BLOCK_REGEX.search(data or '')
        if not match:
            raise DecodeError(f'Failed to decode {description}: no PEM block')

        if label and match.group('label') != label:
            raise DecodeError(
                f'Failed to decode {description}: expected PEM block of '
                f'type {label}, found {match.group("label")}'
            )

        return match.group('label'), match.group(0).encode('utf-8')

    @staticmethod
    def load_cert(data: bytes | str, description: str = 'certificate'
                  ) -> Certificate:
        '''
        Loads an X.509 cert from PEM data

        :raises: DecodeError, ParseError
        '''

        _, block = Secret.decode_pem(
            data, label=PEM_CERTIFICATE, description=description
        )

        try:
            return x509.load_pem_x509_certificate(block)
        except ValueError as exc:
            raise ParseError(f'Failed to parse {description}: {exc}') from exc

    @staticmethod
    def load_private_key(data: bytes | str,
                         description: str = 'private key') -> PrivateKey:
        '''
        Loads an unencrypted private key from PEM data, either in
        PKCS#1 or in PKCS#8 encoding

        :raises: DecodeError, ParseError
        '''

        label, block = Secret.decode_pem(data, description=description)
        if label not in (PEM_PKCS1_PRIVATE_KEY, PEM_PKCS8_PRIVATE_KEY):
            raise ParseError(
                f'Failed to parse {description}: unsupported private key '
                f'encoding type "{label}"'
            )

        try:
            private_key = serialization.load_pem_private_key(
                block, password=None
            )
        except (ValueError, TypeError) as exc:
            raise ParseError(f'Failed to parse {description}: {exc}') from exc

        if not isinstance(private_key, PrivateKey):
            raise ParseError(
                f'Failed to parse {description}: unsupported key type '
                f'{type(private_key).__name__}'
            )

        return private_key

    def from_pem(self, cert: bytes | str, private_key: bytes | str = None
                 ) -> None:
        '''
        Loads the cert and optionally the private key from PEM data.
        The PEM data of the cert is kept so it can be passed on without
        re-encoding

        :raises: DecodeError, ParseError
        '''

        self.cert = Secret.load_cert(cert)
        self.cert_pem_data = cert if isinstance(cert, bytes) \
            else cert.encode('utf-8')

        if private_key:
            self.private_key = Secret.load_private_key(private_key)

        self.common_name = Secret.extract_commonname(self.cert)

        try:
            extension = self.cert.extensions.get_extension_for_class(
                x509.BasicConstraints
            )
            self.ca = extension.value.ca
        except x509.ExtensionNotFound:
            self.ca = False

        try:
            extension = self.cert.extensions.get_extension_for_class(
                x509.SubjectAlternativeName
            )
            self.dns_names = extension.value.get_values_for_type(x509.DNSName)
            self.ip_addresses = extension.value.get_values_for_type(
                x509.IPAddress
            )
        except x509.ExtensionNotFound:
            self.dns_names = []
            self.ip_addresses = []

        self.is_root_cert = self.cert.issuer == self.cert.subject

    def validate(self, root_ca: CaSecret) -> None:
        '''
        Validate that the cert is signed by the root cert and is
        currently valid. This function does not check certificate
        revocation or OCSP

        :param Secret root_ca: the self-signed root CA to validate against
        :returns: (none)
        :raises: ValueError if the cert is not valid
        '''

        try:
            self.cert.verify_directly_issued_by(root_ca.cert)
        except (ValueError, TypeError, InvalidSignature) as exc:
            raise ValueError(
                f'Cert {self.common_name} failed validation against '
                f'{root_ca.common_name}: {exc}'
            ) from exc

        now: datetime = datetime.now(tz=UTC)
        if not (self.cert.not_valid_before_utc <= now
                <= self.cert.not_valid_after_utc):
            raise ValueError(
                f'Cert {self.common_name} is not valid at {now}: valid from '
                f'{self.cert.not_valid_before_utc} to '
                f'{self.cert.not_valid_after_utc}'
            )

    def cert_as_pem(self) -> bytes:
        '''
        Returns the BASE64 encoded byte string for the certificate

        :returns: bytes with the PEM-encoded certificate
        :raises: (none)
        '''

        return self.cert.public_bytes(serialization.Encoding.PEM)

    def private_key_as_pem(self) -> bytes:
        '''
        Returns the unencrypted private key in PKCS#1 PEM format
        '''

        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption()
        )

    def fingerprint(self) -> bytes:
        '''
        Returns the SHA256 fingerprint of the certificate
        '''

        return self.cert.fingerprint(hashes.SHA256())
