"""Client-signature helper for ``public/auth``."""

from __future__ import annotations

import hashlib
import hmac
import secrets
import string
import time

NONCE_ALPHABET = string.ascii_letters + string.digits
NONCE_LENGTH = 8


class SignedPayload:
    """Timestamp, nonce and signature sent with a ``client_signature`` grant."""

    def __init__(self, timestamp: str, nonce: str, signature: str, data: str = ""):
        self.timestamp = timestamp
        self.nonce = nonce
        self.signature = signature
        self.data = data


class SignatureProvider:
    """Stateless producer of timestamp/nonce/signature triples."""

    @staticmethod
    def timestamp() -> str:
        """Milliseconds since the Unix epoch, as a decimal string."""
        return str(int(time.time() * 1000))

    @staticmethod
    def nonce(length: int = NONCE_LENGTH) -> str:
        return "".join(secrets.choice(NONCE_ALPHABET) for _ in range(length))

    @staticmethod
    def generate_signature(secret: str, timestamp: str, nonce: str, data: str = "") -> str:
        """Generate the hex HMAC-SHA256 client signature.

        Args:
            secret: Client secret used as the HMAC key
            timestamp: Millisecond timestamp string
            nonce: Random one-time token
            data: Optional request data (empty for websocket auth)

        Returns:
            Hex-encoded signature over ``timestamp\\nnonce\\ndata``
        """
        message = f"{timestamp}\n{nonce}\n{data}"
        return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()

    def sign(self, secret: str, data: str = "") -> SignedPayload:
        ts = self.timestamp()
        nonce = self.nonce()
        return SignedPayload(ts, nonce, self.generate_signature(secret, ts, nonce, data), data)
