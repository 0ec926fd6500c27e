"""Client certificates for direct connections.

The platform exports client certificates as PEM files (``client.pem``,
``client_key.pem`` and the signing ``root.pem``).  A :class:`CertificateSet`
references those files and turns them into the :class:`ssl.SSLContext`
handed to httpx.  Certificate sets are immutable and shared by reference
between a client and the clients derived from it.
"""

from __future__ import annotations

import ssl
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from senserest.exceptions import CertificatesNotLoadedError

CLIENT_CERT_FILENAME = "client.pem"
CLIENT_KEY_FILENAME = "client_key.pem"
ROOT_CERT_FILENAME = "root.pem"


@dataclass(frozen=True)
class CertificateSet:
    """Paths to a client certificate chain and the optional root certificate."""

    cert_file: Path
    key_file: Optional[Path] = None
    password: Optional[str] = None
    ca_file: Optional[Path] = None

    def ssl_context(self, validate: bool = True) -> ssl.SSLContext:
        """Build an SSL context presenting the client certificate.

        Args:
            validate: Verify the server certificate.  When a ``ca_file`` is
                present it is trusted in addition to the system store.

        Raises:
            CertificatesNotLoadedError: If the certificate files cannot be loaded.
        """
        try:
            if validate:
                context = ssl.create_default_context(
                    cafile=str(self.ca_file) if self.ca_file else None
                )
            else:
                context = ssl.create_default_context()
                context.check_hostname = False
                context.verify_mode = ssl.CERT_NONE
            context.load_cert_chain(
                str(self.cert_file),
                keyfile=str(self.key_file) if self.key_file else None,
                password=self.password,
            )
        except (OSError, ssl.SSLError) as exc:
            raise CertificatesNotLoadedError(
                f"Cannot load client certificate {self.cert_file}: {exc}"
            ) from exc
        return context


def load_certificates_from_directory(
    path: str | Path, password: Optional[str] = None
) -> CertificateSet:
    """Load the certificates exported by the platform from *path*.

    Args:
        path: Directory holding ``client.pem``, ``client_key.pem`` and
            optionally ``root.pem``.
        password: Password protecting the private key, if any.

    Raises:
        CertificatesNotLoadedError: If the directory or a required file is missing.
    """
    directory = Path(path).expanduser()
    if not directory.is_dir():
        raise CertificatesNotLoadedError(f"Certificate directory not found: {directory}")

    cert_file = directory / CLIENT_CERT_FILENAME
    key_file = directory / CLIENT_KEY_FILENAME
    for required in (cert_file, key_file):
        if not required.is_file():
            raise CertificatesNotLoadedError(f"Certificate file not found: {required}")

    ca_file = directory / ROOT_CERT_FILENAME
    return CertificateSet(
        cert_file=cert_file,
        key_file=key_file,
        password=password,
        ca_file=ca_file if ca_file.is_file() else None,
    )
