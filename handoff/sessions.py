"""
Browser session handling.

A session maps a browser to the identity verified by the broker. It lives
entirely in a cookie, so the server keeps no session state. The cookie
value is produced by a SessionCodec:

- PlaintextSessionCodec stores the email as-is. This is the demo behaviour
  and anyone can forge such a cookie.
- SignedSessionCodec appends an HMAC-SHA256 signature; cookies that fail
  verification are treated as anonymous.
"""

import base64
import binascii
import hashlib
import hmac
import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

from starlette.requests import Request
from starlette.responses import Response

from handoff.config import SessionSettings

logger = logging.getLogger(__name__)

# RFC 6265 cookie-octet: printable ASCII without space, DQUOTE, comma, semicolon or backslash
COOKIE_OCTETS = re.compile(r"[\x21\x23-\x2B\x2D-\x3A\x3C-\x5B\x5D-\x7E]+")


class SessionCodec(ABC):
    """Turns an identity into a cookie value and back."""

    @abstractmethod
    def encode(self, identity: str) -> str:
        """Encode an identity for storage in the session cookie."""

    @abstractmethod
    def decode(self, value: str) -> Optional[str]:
        """Decode a cookie value; None if it does not carry a valid identity."""


class PlaintextSessionCodec(SessionCodec):
    """Identity stored in cleartext and unsigned."""

    def encode(self, identity: str) -> str:
        return identity

    def decode(self, value: str) -> Optional[str]:
        return value or None


class SignedSessionCodec(SessionCodec):
    """Identity stored as ``<urlsafe-base64 identity>.<hex hmac-sha256>``."""

    def __init__(self, secret_key: str):
        if not secret_key:
            raise ValueError("Signed sessions require a secret key")
        self._secret_key = secret_key.encode()

    def _sign(self, payload_b64: str) -> str:
        return hmac.new(self._secret_key, payload_b64.encode(), hashlib.sha256).hexdigest()

    def encode(self, identity: str) -> str:
        payload_b64 = base64.urlsafe_b64encode(identity.encode()).decode().rstrip("=")
        return f"{payload_b64}.{self._sign(payload_b64)}"

    def decode(self, value: str) -> Optional[str]:
        payload_b64, sep, signature = value.rpartition(".")
        if not sep or not payload_b64:
            return None

        # Cookie headers arrive latin-1 decoded, so compare bytes
        expected = self._sign(payload_b64).encode()
        if not hmac.compare_digest(signature.encode("utf-8", "replace"), expected):
            logger.warning("Rejected session cookie with invalid signature")
            return None

        padding = -len(payload_b64) % 4
        try:
            identity = base64.urlsafe_b64decode(payload_b64 + "=" * padding).decode()
        except (binascii.Error, UnicodeDecodeError):
            return None
        return identity or None


class CookieSessionStore:
    """
    Reads, writes and clears the session cookie.

    establish() and destroy() only mutate the outgoing response, so nothing
    reaches the browser unless that response is actually returned.
    """

    def __init__(
        self,
        codec: Optional[SessionCodec] = None,
        cookie_name: str = "email",
        secure: bool = False,
        max_age: Optional[int] = None,
    ):
        self.codec = codec or PlaintextSessionCodec()
        self.cookie_name = cookie_name
        self.secure = secure
        self.max_age = max_age

    @classmethod
    def from_settings(
        cls,
        settings: SessionSettings,
        codec: Optional[SessionCodec] = None,
    ) -> "CookieSessionStore":
        if codec is None:
            if settings.is_signed:
                codec = SignedSessionCodec(settings.session_secret_key.get_secret_value())
            else:
                codec = PlaintextSessionCodec()
        return cls(
            codec=codec,
            cookie_name=settings.session_cookie_name,
            secure=settings.session_cookie_secure,
            max_age=settings.session_max_age_seconds,
        )

    def load(self, request: Request) -> Optional[str]:
        """Get the identity bound to this browser, if any."""
        value = request.cookies.get(self.cookie_name)
        if not value:
            return None
        return self.codec.decode(value)

    def has_session(self, request: Request) -> bool:
        """Whether the browser sent a session cookie, valid or not."""
        return bool(request.cookies.get(self.cookie_name))

    def establish(self, response: Response, identity: str) -> None:
        """
        Bind the identity to the browser receiving this response.

        Values made only of cookie-octets (plain emails included) are written
        unquoted so browsers store exactly the identity. Anything else goes
        through Starlette's set_cookie, which quotes it.
        """
        value = self.codec.encode(identity)
        if not COOKIE_OCTETS.fullmatch(value):
            response.set_cookie(
                key=self.cookie_name,
                value=value,
                max_age=self.max_age,
                path="/",
                httponly=True,
                secure=self.secure,
                samesite="lax",
            )
            return

        parts = [f"{self.cookie_name}={value}", "HttpOnly"]
        if self.max_age is not None:
            parts.append(f"Max-Age={self.max_age}")
        parts.extend(["Path=/", "SameSite=lax"])
        if self.secure:
            parts.append("Secure")
        response.headers.append("set-cookie", "; ".join(parts))

    def destroy(self, response: Response) -> None:
        """Clear the session cookie. Harmless when no session exists."""
        response.delete_cookie(
            key=self.cookie_name,
            path="/",
            httponly=True,
            secure=self.secure,
            samesite="lax",
        )
