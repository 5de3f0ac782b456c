"""FlareCert crypto utility functions."""
import datetime
import hashlib
import logging
import re
import typing
from typing import List
from typing import Tuple
from typing import Union

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.hazmat.primitives.serialization import NoEncryption
from cryptography.hazmat.primitives.serialization import PrivateFormat

from flarecert import errors

logger = logging.getLogger(__name__)

_KEY_PARAMS = {
    "rsa2048": ("rsa", 2048),
    "rsa4096": ("rsa", 4096),
    "ec256": ("ecdsa", ec.SECP256R1),
    "ec384": ("ecdsa", ec.SECP384R1),
}


def make_key(key_type: str = "rsa2048") -> bytes:
    """Generate a PEM encoded private key.

    :param str key_type: one of ``rsa2048``, ``rsa4096``, ``ec256`` or ``ec384``

    :returns: new private key in PKCS#8 PEM form
    :rtype: bytes

    :raises errors.ConfigurationError: for an unknown key type

    """
    try:
        kind, param = _KEY_PARAMS[key_type]
    except KeyError:
        raise errors.ConfigurationError(
            "Invalid key type specified: {0}. Use one of [{1}]".format(
                key_type, "|".join(_KEY_PARAMS)))

    key: Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey]
    if kind == "rsa":
        key = rsa.generate_private_key(public_exponent=65537, key_size=typing.cast(int, param))
    else:
        key = ec.generate_private_key(curve=typing.cast(typing.Type[ec.EllipticCurve], param)())
    return key.private_bytes(
        encoding=Encoding.PEM,
        format=PrivateFormat.PKCS8,
        encryption_algorithm=NoEncryption()
    )


def get_names_from_subject_and_extensions(subject: x509.Name,
                                          exts: x509.Extensions) -> List[str]:
    """Get the first Common Name from subject plus all DNS names.

    The CN comes first when present; later duplicates are dropped so the
    order of first occurrence is kept.

    :param subject: Name of the x509 object, which may include Common Name
    :type subject: `cryptography.x509.Name`
    :param exts: Extensions of the x509 object, which may include SANs
    :type exts: `cryptography.x509.Extensions`

    :returns: List of domain names
    :rtype: `list` of `str`
    """
    cns = [
        typing.cast(str, c.value)
        for c in subject.get_attributes_for_oid(x509.NameOID.COMMON_NAME)
    ]
    try:
        san_ext = exts.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        dns_names: List[str] = []
    else:
        dns_names = san_ext.value.get_values_for_type(x509.DNSName)

    names: List[str] = []
    for name in cns[:1] + dns_names:
        if name and name not in names:
            names.append(name)
    return names


def load_cert(cert_pem: bytes) -> x509.Certificate:
    """Load a PEM certificate, wrapping parse failures in `errors.Error`."""
    try:
        return x509.load_pem_x509_certificate(cert_pem)
    except ValueError as error:
        raise errors.Error("Failed to parse certificate: {0}".format(error))


def get_names_from_cert(cert_pem: bytes) -> List[str]:
    """Get the domain names from a PEM certificate, CN first."""
    cert = load_cert(cert_pem)
    return get_names_from_subject_and_extensions(cert.subject, cert.extensions)


def parse_certificate_info(cert_path: str) -> Tuple[List[str], datetime.datetime]:
    """Extract domain names and expiration from a certificate file.

    :param str cert_path: path to a cert in PEM format

    :returns: (domain names, notAfter as an aware UTC datetime)
    :rtype: tuple

    :raises errors.Error: if the file cannot be read or parsed

    """
    try:
        with open(cert_path, "rb") as f:
            cert_pem = f.read()
    except OSError as error:
        raise errors.Error("Failed to read certificate {0}: {1}".format(cert_path, error))
    cert = load_cert(cert_pem)
    return (get_names_from_subject_and_extensions(cert.subject, cert.extensions),
            cert.not_valid_after_utc)


def notAfter(cert_pem: bytes) -> datetime.datetime:
    """When does this certificate stop being valid?

    :param bytes cert_pem: cert in PEM format

    :returns: the notAfter value
    :rtype: :class:`datetime.datetime`

    """
    return load_cert(cert_pem).not_valid_after_utc


def sha256_fingerprint(cert_pem: bytes) -> str:
    """Colon separated SHA-256 fingerprint of the DER encoded certificate."""
    der = load_cert(cert_pem).public_bytes(serialization.Encoding.DER)
    digest = hashlib.sha256(der).hexdigest().upper()
    return ":".join(digest[i:i + 2] for i in range(0, len(digest), 2))


def get_serial_from_cert(cert_pem: bytes) -> str:
    """Hex encoded serial number of a certificate."""
    return format(load_cert(cert_pem).serial_number, "x")


def get_issuer_from_cert(cert_pem: bytes) -> str:
    """RFC4514 string of the certificate issuer."""
    return load_cert(cert_pem).issuer.rfc4514_string()


# Finds one CERTIFICATE stricttextualmsg according to rfc7468#section-3.
# Does not validate the base64text - use x509.load_pem_x509_certificate.
CERT_PEM_REGEX = re.compile(
    b"""-----BEGIN CERTIFICATE-----\r?
.+?\r?
-----END CERTIFICATE-----\r?
""",
    re.DOTALL # DOTALL (/s) because the base64text may include newlines
)


def cert_and_chain_from_fullchain(fullchain_pem: str) -> Tuple[str, str]:
    """Split fullchain_pem into cert_pem and chain_pem

    A fullchain holding only the leaf yields an empty chain.

    :param str fullchain_pem: concatenated cert + chain

    :returns: tuple of string cert_pem and chain_pem
    :rtype: tuple

    :raises errors.Error: If there is no certificate in the chain or a
        certificate cannot be parsed.

    """
    certs = CERT_PEM_REGEX.findall(fullchain_pem.encode())
    if not certs:
        raise errors.Error("failed to parse fullchain into cert and chain: " +
                           "no certificate found")

    # Re-encode each certificate to normalize encoding variations (e.g. CRLF, whitespace).
    certs_normalized: List[str] = []
    for cert_pem in certs:
        try:
            cert = x509.load_pem_x509_certificate(cert_pem)
        except ValueError as error:
            raise errors.Error("failed to parse fullchain into cert and chain: {0}".format(error))
        certs_normalized.append(cert.public_bytes(Encoding.PEM).decode())

    # Since each normalized cert has a newline suffix, no extra newlines are required.
    return (certs_normalized[0], "".join(certs_normalized[1:]))
