"""Ready-made TLS contexts for mutually authenticated cluster traffic."""

from __future__ import annotations

import os
import ssl

from cryptography import x509

PathLike = str | os.PathLike


def simple_tls_config(
    cert_file: PathLike, key_file: PathLike, ca_file: PathLike
) -> tuple[ssl.SSLContext, ssl.SSLContext]:
    """Return a (listen, dial) pair of TLS contexts."""
    listen = simple_listen_tls_config(cert_file, key_file, ca_file)
    dial = simple_dial_tls_config(cert_file, key_file, ca_file)
    return listen, dial


def simple_listen_tls_config(
    cert_file: PathLike, key_file: PathLike, ca_file: PathLike
) -> ssl.SSLContext:
    """Return a server-side context requiring and verifying client certificates."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.load_cert_chain(os.fspath(cert_file), os.fspath(key_file))
    context.load_verify_locations(cafile=os.fspath(ca_file))
    context.verify_mode = ssl.CERT_REQUIRED
    return context


def _first_dns_name(cert_file: PathLike) -> str:
    with open(cert_file, "rb") as handle:
        data = handle.read()
    try:
        cert = x509.load_pem_x509_certificate(data)
    except ValueError as exc:
        raise ValueError(f"parse certificate: {exc}") from exc
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        names: list[str] = []
    else:
        names = san.value.get_values_for_type(x509.DNSName)
    if not names:
        raise ValueError("certificate has no DNS extension")
    return names[0]


def simple_dial_tls_config(
    cert_file: PathLike, key_file: PathLike, ca_file: PathLike
) -> ssl.SSLContext:
    """Return a client-side context presenting the given certificate.

    The first DNS name of the certificate is stored as ``server_name`` on the
    returned context, to be used as the expected peer host name.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.load_verify_locations(cafile=os.fspath(ca_file))
    context.load_cert_chain(os.fspath(cert_file), os.fspath(key_file))
    context.server_name = _first_dns_name(cert_file)
    return context