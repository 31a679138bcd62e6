"""``client_signature`` authentication handshake."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..api.requests import EncodedRequest, RequestEncoder
from ..api.signing import SignatureProvider
from ..settings import DEFAULT_SCOPE

if TYPE_CHECKING:
    from .client import DeribitSession
    from .state import SessionState

logger = logging.getLogger(__name__)


class AuthSession:
    """Builds and sends the signed ``public/auth`` request.

    Completion is observed by the router: the first reply whose result holds
    an ``access_token`` stores it in the session state.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        scope: str = DEFAULT_SCOPE,
        signer: SignatureProvider | None = None,
    ):
        if not client_id or not client_secret:
            raise ValueError("client_id and client_secret are required for authentication")
        self.client_id = client_id
        self._client_secret = client_secret
        self.scope = scope
        self.signer = signer or SignatureProvider()

    def build_request(self, encoder: RequestEncoder) -> EncodedRequest:
        signed = self.signer.sign(self._client_secret, "")
        return encoder.authorize(self.client_id, signed, self.scope)

    def send(self, session: "DeribitSession") -> None:
        request = self.build_request(session.encoder)
        logger.info("Sending auth request for client %s", self.client_id)
        session.request(request, await_reply=False)

    @staticmethod
    def complete(state: "SessionState", result: dict[str, Any]) -> bool:
        """Store the token from an auth reply, overwriting any earlier one.

        Returns:
            False when the reply carries no ``access_token``
        """
        if "access_token" not in result:
            return False
        token = result["access_token"]
        state.authenticate("" if token is None else str(token))
        logger.info("Authentication successful (expires_in=%s)", result.get("expires_in"))
        return True

    def attach(self, session: "DeribitSession") -> None:
        """Register this handshake as the session's on-open callback."""
        session.set_auth_request_callback(lambda: self.send(session))
