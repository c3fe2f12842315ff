from __future__ import annotations

import html
import logging
import secrets
import string
from typing import Any, Protocol

import requests

from orderflow.app.errors import DownstreamServiceError

logger = logging.getLogger(__name__)

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"
CLERK_API_VERSION = "2023-05-12"

_SPECIALS = "!@#$%^&*"


def generate_password(length: int = 12) -> str:
    """Temporary password with at least one lower, upper, digit and special char."""
    length = max(8, length)
    required = [
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.digits),
        secrets.choice(_SPECIALS),
    ]
    alphabet = string.ascii_letters + string.digits + _SPECIALS
    chars = required + [secrets.choice(alphabet) for _ in range(length - len(required))]
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


class IdentityProvider(Protocol):
    def create_user(self, *, email: str, password: str, name: str, role: str) -> str: ...

    def update_user(self, identity_ref: str, *, name: str, email: str, phone: str, role: str) -> None: ...

    def delete_user(self, identity_ref: str) -> None: ...


class Mailer(Protocol):
    def send_welcome(self, *, email: str, name: str, password: str, role: str) -> None: ...


class ClerkIdentityProvider:
    def __init__(self, api_url: str, secret_key: str | None, *, timeout: float = 10.0) -> None:
        self.api_url = api_url.rstrip("/")
        self.secret_key = secret_key
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> "ClerkIdentityProvider":
        return cls(config.CLERK_API_URL, config.CLERK_SECRET_KEY, timeout=config.HTTP_TIMEOUT_SECONDS)

    def _request(self, method: str, path: str, payload: dict | None = None) -> Any:
        if not self.secret_key:
            raise DownstreamServiceError("Identity provider is not configured")

        try:
            resp = requests.request(
                method,
                f"{self.api_url}{path}",
                json=payload,
                headers={
                    "Authorization": f"Bearer {self.secret_key}",
                    "Clerk-Backend-API-Version": CLERK_API_VERSION,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise DownstreamServiceError("Identity provider request failed", details=str(exc)) from exc

        if not resp.ok:
            raise DownstreamServiceError(
                "Identity provider request failed",
                details=f"{method} {path} -> {resp.status_code}: {resp.text[:500]}",
            )
        return resp.json() if resp.content else None

    def create_user(self, *, email: str, password: str, name: str, role: str) -> str:
        data = self._request(
            "POST",
            "/users",
            {
                "email_address": [email],
                "password": password,
                "first_name": name,
                "public_metadata": {"role": role},
                "skip_password_checks": True,
            },
        )
        identity_ref = (data or {}).get("id")
        if not identity_ref:
            raise DownstreamServiceError("Identity provider returned no user id")
        return str(identity_ref)

    def update_user(self, identity_ref: str, *, name: str, email: str, phone: str, role: str) -> None:
        self._request(
            "PATCH",
            f"/users/{identity_ref}",
            {
                "first_name": name,
                "email_addresses": [{"email_address": email}],
                "public_metadata": {"phone": phone, "role": role},
            },
        )

    def delete_user(self, identity_ref: str) -> None:
        self._request("DELETE", f"/users/{identity_ref}")


class SendGridMailer:
    def __init__(self, api_key: str | None, from_email: str | None, *, base_url: str, timeout: float = 10.0) -> None:
        self.api_key = api_key
        self.from_email = from_email
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> "SendGridMailer":
        return cls(
            config.SENDGRID_API_KEY,
            config.SENDGRID_FROM_EMAIL,
            base_url=config.APP_BASE_URL,
            timeout=config.HTTP_TIMEOUT_SECONDS,
        )

    def _welcome_html(self, *, email: str, name: str, password: str, role: str) -> str:
        e = html.escape
        return (
            f"<h2>Welcome {e(name)}!</h2>"
            f"<p>Your {e(role)} account has been created successfully.</p>"
            f"<p>Email: {e(email)}</p>"
            f"<p>Temporary Password: {e(password)}</p>"
            "<p>Please change your password after your first login.</p>"
            f'<a href="{e(self.base_url)}/sign-in">Open the app</a>'
        )

    def send_welcome(self, *, email: str, name: str, password: str, role: str) -> None:
        if not self.api_key or not self.from_email:
            raise DownstreamServiceError("Mailer is not configured")

        payload = {
            "personalizations": [{"to": [{"email": email}]}],
            "from": {"email": self.from_email},
            "subject": "Welcome aboard",
            "content": [
                {"type": "text/html", "value": self._welcome_html(email=email, name=name, password=password, role=role)}
            ],
        }
        try:
            resp = requests.post(
                SENDGRID_SEND_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise DownstreamServiceError("Welcome email failed", details=str(exc)) from exc

        if not resp.ok:
            raise DownstreamServiceError(
                "Welcome email failed",
                details=f"SendGrid responded {resp.status_code}: {resp.text[:500]}",
            )
        logger.info("welcome email sent", extra={"role": role})
