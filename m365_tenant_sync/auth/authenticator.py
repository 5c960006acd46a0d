"""
Token acquisition with MSAL.

Three ways in:
  certificate  app-only, base64-encoded PFX on disk (password from config,
               $M365_SYNC_CERT_PASSWORD, or an interactive prompt)
  secret       app-only, client secret from config or $M365_SYNC_CLIENT_SECRET
  delegated    device-code sign-in as an administrator

The token is fetched once per run and handed to GraphClient.
"""

from __future__ import annotations

import base64
import getpass
import logging
import os
from typing import Optional

import msal
from cryptography.hazmat.primitives.hashes import SHA1
from cryptography.hazmat.primitives.serialization import Encoding, NoEncryption, PrivateFormat, pkcs12

from ..config import AuthConfig, LOGIN_AUTHORITY

logger = logging.getLogger("m365_tenant_sync.auth")

APP_SCOPES = ["https://graph.microsoft.com/.default"]

CERT_PASSWORD_ENV = "M365_SYNC_CERT_PASSWORD"
CLIENT_SECRET_ENV = "M365_SYNC_CLIENT_SECRET"


class AuthenticationError(Exception):
    """No token could be obtained."""
    pass


class Authenticator:
    """Acquires (and caches for the run) a Graph access token for one tenant."""

    def __init__(self, config: AuthConfig):
        self.config = config
        self._token: Optional[str] = None

    def acquire_token(self) -> str:
        if self._token is None:
            flows = {
                "certificate": self._certificate_token,
                "secret": self._secret_token,
                "delegated": self._delegated_token,
            }
            flow = flows.get(self.config.mode)
            if flow is None:
                raise AuthenticationError(f"Unknown auth mode: {self.config.mode}")
            self._token = flow()
        return self._token

    def _certificate_token(self) -> str:
        settings = self.config.certificate
        if settings is None:
            raise AuthenticationError("Certificate auth selected but not configured.")

        password = settings.certificate_password or os.environ.get(CERT_PASSWORD_ENV, "")
        if not password:
            password = getpass.getpass(f"Password for {settings.certificate_path}: ")
        private_key_pem, thumbprint = load_pfx_credential(settings.certificate_path, password)
        logger.info(f"Using certificate {thumbprint} for app {settings.client_id}")

        app = msal.ConfidentialClientApplication(
            client_id=settings.client_id,
            authority=_authority(settings.tenant_id),
            client_credential={"thumbprint": thumbprint, "private_key": private_key_pem},
        )
        return _token_from_result(app.acquire_token_for_client(scopes=APP_SCOPES), "Certificate")

    def _secret_token(self) -> str:
        settings = self.config.secret
        if settings is None:
            raise AuthenticationError("Client-secret auth selected but not configured.")

        secret = settings.client_secret or os.environ.get(CLIENT_SECRET_ENV, "")
        if not secret:
            raise AuthenticationError(
                f"No client secret configured. Set {CLIENT_SECRET_ENV} or add it to the config file."
            )
        logger.info(f"Using client secret for app {settings.client_id}")

        app = msal.ConfidentialClientApplication(
            client_id=settings.client_id,
            authority=_authority(settings.tenant_id),
            client_credential=secret,
        )
        return _token_from_result(app.acquire_token_for_client(scopes=APP_SCOPES), "Client secret")

    def _delegated_token(self) -> str:
        settings = self.config.delegated
        if settings is None:
            raise AuthenticationError("Delegated auth selected but not configured.")

        app = msal.PublicClientApplication(
            client_id=settings.client_id,
            authority=_authority(settings.tenant_id),
        )
        flow = app.initiate_device_flow(scopes=settings.scopes)
        if "user_code" not in flow:
            raise AuthenticationError(
                f"Device code flow failed: {flow.get('error_description', 'Unknown')}"
            )

        # The sign-in prompt has to reach the operator even when logging is quiet
        print(f"\n{'=' * 60}")
        print(f"  {flow['message']}")
        print(f"{'=' * 60}\n")
        return _token_from_result(app.acquire_token_by_device_flow(flow), "Delegated")


def _authority(tenant_id: str) -> str:
    return f"{LOGIN_AUTHORITY}/{tenant_id}"


def load_pfx_credential(cert_path: str, password: str) -> tuple[str, str]:
    """
    Read a base64-encoded PFX and return (private key PEM, SHA1 thumbprint hex),
    the pair MSAL wants for certificate credentials.
    """
    try:
        with open(cert_path, "r", encoding="ascii") as fh:
            encoded = fh.read().strip()
    except FileNotFoundError:
        raise AuthenticationError(f"Certificate file not found: {cert_path}")

    try:
        private_key, certificate, _ = pkcs12.load_key_and_certificates(
            base64.b64decode(encoded), password.encode("utf-8") if password else None
        )
    except ValueError as e:
        raise AuthenticationError(f"Failed to load certificate {cert_path}: {e}")

    if private_key is None or certificate is None:
        raise AuthenticationError(f"{cert_path} holds no private key or certificate.")

    pem = private_key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption())
    return pem.decode("utf-8"), certificate.fingerprint(SHA1()).hex()


def _token_from_result(result: dict, label: str) -> str:
    token = result.get("access_token")
    if token:
        logger.info(f"{label} authentication successful.")
        return token
    error = result.get("error_description") or result.get("error") or "Unknown"
    raise AuthenticationError(f"{label} auth failed: {error}")
