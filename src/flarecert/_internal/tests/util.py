"""Test utilities."""
import argparse
import datetime
import logging
import shutil
import tempfile
from typing import Any
from typing import List
from typing import Optional
import unittest

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
import pytz

from flarecert._internal import configuration
from flarecert._internal import constants
from flarecert._internal import log


def make_cert(names: List[str], not_after: Optional[datetime.datetime] = None,
              issuer_cn: str = "Test CA", common_name: Optional[str] = None) -> bytes:
    """Self-signed PEM certificate with ``names`` as SANs.

    The subject CN is ``common_name``, defaulting to the first name.

    """
    key = ec.generate_private_key(ec.SECP256R1())
    now = datetime.datetime.now(pytz.UTC)
    if not_after is None:
        not_after = now + datetime.timedelta(days=90)
    subject = x509.Name([x509.NameAttribute(
        x509.NameOID.COMMON_NAME, common_name if common_name is not None else names[0])])
    issuer = x509.Name([x509.NameAttribute(x509.NameOID.COMMON_NAME, issuer_cn)])
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(min(now, not_after) - datetime.timedelta(days=1))
        .not_valid_after(not_after)
        .add_extension(x509.SubjectAlternativeName([x509.DNSName(n) for n in names]),
                       critical=False)
    )
    cert = builder.sign(key, hashes.SHA256())
    return cert.public_bytes(serialization.Encoding.PEM)


def make_config(**kwargs: Any) -> configuration.Config:
    """`.Config` built from the CLI defaults overridden by ``kwargs``."""
    values = dict(constants.CLI_DEFAULTS, verb="cert")
    values["domains"] = []
    values.update(kwargs)
    return configuration.Config(argparse.Namespace(**values))


class TempDirTestCase(unittest.TestCase):
    """Base test class which sets up and tears down a temporary directory"""

    def setUp(self) -> None:
        """Execute before test"""
        self.tempdir = tempfile.mkdtemp()

    def tearDown(self) -> None:
        """Execute after test"""
        # Remove logging handlers installed by the code under test so they
        # won't be accidentally used in future tests.
        root_logger = logging.getLogger()
        for handler in list(root_logger.handlers):
            if isinstance(handler, log.ColoredStreamHandler):
                root_logger.removeHandler(handler)
        shutil.rmtree(self.tempdir)
