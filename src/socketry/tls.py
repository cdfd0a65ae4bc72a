"""
TLS capability probes and TLS context value objects.

The probes inspect the version of the OpenSSL library Python is linked
against. The contexts only carry TLS material for a later upgrade; the
handshake itself is out of scope for socketry.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

try:
    import ssl
except ImportError:  # interpreter built without OpenSSL
    ssl = None

from socketry.errors import ConfigurationError

# See OPENSSL_VERSION_NUMBER(3)
ALPN_MIN_OPENSSL_VERSION = 0x10002000
SECURITY_LEVEL_MIN_OPENSSL_VERSION = 0x10100000


def _openssl_version_number() -> Optional[int]:
    return getattr(ssl, "OPENSSL_VERSION_NUMBER", None)


def has_tls_alpn_support() -> bool:
    """Whether the linked OpenSSL supports ALPN negotiation."""
    version = _openssl_version_number()
    return version is not None and version >= ALPN_MIN_OPENSSL_VERSION


def has_tls_security_level_support() -> bool:
    """Whether the linked OpenSSL supports the ``@SECLEVEL`` cipher setting."""
    version = _openssl_version_number()
    return version is not None and version >= SECURITY_LEVEL_MIN_OPENSSL_VERSION


def _require_ssl():
    if ssl is None:
        raise ConfigurationError("TLS requires a Python interpreter built with OpenSSL")
    return ssl


@dataclass(frozen=True)
class Certificate:
    """A certificate chain and its private key.

    When ``key_file`` is None the key is expected in ``cert_file``.
    """

    cert_file: str
    key_file: Optional[str] = None
    passphrase: Optional[str] = None


def _apply_common(
    context,
    ciphers: Optional[str],
    security_level: int,
    alpn_protocols: Tuple[str, ...],
    minimum_version: Optional[str],
):
    module = _require_ssl()

    if minimum_version is not None:
        try:
            context.minimum_version = module.TLSVersion[minimum_version]
        except KeyError as e:
            raise ConfigurationError(f"Unknown TLS version: {minimum_version}") from e

    if has_tls_security_level_support():
        context.set_ciphers(f"{ciphers or 'DEFAULT'}:@SECLEVEL={security_level}")
    elif ciphers:
        context.set_ciphers(ciphers)

    if alpn_protocols and has_tls_alpn_support():
        context.set_alpn_protocols(list(alpn_protocols))


@dataclass(frozen=True)
class ClientTlsContext:
    """TLS settings for outbound connections."""

    peer_name: str = ""
    verify_peer: bool = True
    ca_file: Optional[str] = None
    ca_path: Optional[str] = None
    certificate: Optional[Certificate] = None
    alpn_protocols: Tuple[str, ...] = ()
    security_level: int = 2
    ciphers: Optional[str] = None
    minimum_version: Optional[str] = "TLSv1_2"

    def __post_init__(self):
        if not 0 <= self.security_level <= 5:
            raise ConfigurationError(
                f"Invalid security level ({self.security_level}), must be between 0 and 5"
            )

    def to_ssl_context(self) -> "ssl.SSLContext":
        """Build an ``ssl.SSLContext`` for the client side of a connection.

        Raises:
            ConfigurationError: If OpenSSL is unavailable or a setting is invalid.
        """
        module = _require_ssl()
        context = module.SSLContext(module.PROTOCOL_TLS_CLIENT)

        if self.verify_peer:
            if self.ca_file or self.ca_path:
                context.load_verify_locations(cafile=self.ca_file, capath=self.ca_path)
            else:
                context.load_default_certs(module.Purpose.SERVER_AUTH)
        else:
            context.check_hostname = False
            context.verify_mode = module.CERT_NONE

        if self.certificate is not None:
            context.load_cert_chain(
                self.certificate.cert_file,
                self.certificate.key_file,
                self.certificate.passphrase,
            )

        _apply_common(
            context, self.ciphers, self.security_level, self.alpn_protocols, self.minimum_version
        )
        return context


@dataclass(frozen=True)
class ServerTlsContext:
    """TLS settings for accepted connections."""

    default_certificate: Optional[Certificate] = None
    verify_peer: bool = False
    ca_file: Optional[str] = None
    alpn_protocols: Tuple[str, ...] = ()
    security_level: int = 2
    ciphers: Optional[str] = None
    minimum_version: Optional[str] = "TLSv1_2"

    def __post_init__(self):
        if not 0 <= self.security_level <= 5:
            raise ConfigurationError(
                f"Invalid security level ({self.security_level}), must be between 0 and 5"
            )

    def to_ssl_context(self) -> "ssl.SSLContext":
        """Build an ``ssl.SSLContext`` for the server side of a connection."""
        module = _require_ssl()
        context = module.SSLContext(module.PROTOCOL_TLS_SERVER)

        if self.verify_peer:
            context.verify_mode = module.CERT_REQUIRED
            if self.ca_file:
                context.load_verify_locations(cafile=self.ca_file)
            else:
                context.load_default_certs(module.Purpose.CLIENT_AUTH)

        if self.default_certificate is not None:
            context.load_cert_chain(
                self.default_certificate.cert_file,
                self.default_certificate.key_file,
                self.default_certificate.passphrase,
            )

        _apply_common(
            context, self.ciphers, self.security_level, self.alpn_protocols, self.minimum_version
        )
        return context
