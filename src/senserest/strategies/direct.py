"""Direct connection to the repository service with a client certificate.

The client presents the certificate exported by the platform and names the
user it acts as in the ``X-Qlik-User`` header.  No handshake is needed; the
certificate is the credential.
"""

from __future__ import annotations

from typing import Optional

from senserest.auth.base import ConnectionStrategy
from senserest.certificates import CertificateSet
from senserest.exceptions import CertificatesNotLoadedError, InvalidArgumentError
from senserest.models import ConnectionType, User
from senserest.profile import ConnectionProfile

DEFAULT_DIRECT_PORT = 4242

USER_HEADER = "X-Qlik-User"


class DirectConnection(ConnectionStrategy):
    """Connect directly to port 4242 (by default) using a client certificate.

    Args:
        user_directory: Directory of the user to act as.
        user_id: Id of the user to act as.
        certificates: The client certificate set.
        port: Port of the repository service.
    """

    def __init__(
        self,
        user_directory: str,
        user_id: str,
        certificates: Optional[CertificateSet],
        port: int = DEFAULT_DIRECT_PORT,
    ) -> None:
        self.user_directory = user_directory
        self.user_id = user_id
        self.certificates = certificates
        self.port = port

    @property
    def connection_type(self) -> ConnectionType:
        return ConnectionType.DIRECT_CONNECTION

    def configure(self, profile: ConnectionProfile) -> None:
        if self.certificates is None:
            raise CertificatesNotLoadedError()
        if not self.user_directory or not self.user_id:
            raise InvalidArgumentError("Direct connection requires a user directory and a user id.")

        profile.configure(self.connection_type)
        profile.set_port(self.port)
        profile.user = User(directory=self.user_directory, id=self.user_id)
        profile.headers[USER_HEADER] = (
            f"UserDirectory={self.user_directory};UserId={self.user_id}"
        )
        profile.certificates = self.certificates
