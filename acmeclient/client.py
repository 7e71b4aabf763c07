"""
ACME v1 client facade.

Typical sequence (what main.py does):

    client = AcmeClient.build(identity="admin@example.com", store=FilesystemKeyStore("/etc/acme"))
    account = client.agree(client.get_account())
    authorizations = client.authorize(["example.com", "www.example.com"])
    # publish authorization.get_file() for each authorization
    if client.validate(authorizations):
        certificate = client.get_certificate(["example.com", "www.example.com"])

Construction is two-phase: ``AcmeClient(...)`` only wires collaborators
together, while ``AcmeClient.build(...)`` performs the network and key-store
work (directory lookup, account key load or generation) and raises a
typed error when that fails.

One instance owns one account key, one nonce and one directory snapshot; it
is meant for a single caller at a time.
"""
from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Callable, Optional, Sequence

from josepy.jwk import JWKRSA

from acmeclient import jws as jwslib
from acmeclient.account import AccountManager
from acmeclient.authorization import AuthorizationRetriever
from acmeclient.directory import Directory, resolve_directory
from acmeclient.errors import ConfigurationError, SigningFailure, ValidationExhausted
from acmeclient.issuer import CertificateIssuer
from acmeclient.models import HTTP_01, Account, Authorization, Certificate
from acmeclient.nonce import NonceManager
from acmeclient.session import AcmeSession
from acmeclient.transport import HttpTransport
from acmeclient.validation import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY, ValidationEngine
from storage.keystore import KeyStore, account_key_path

if TYPE_CHECKING:
    from config import Settings

logger = logging.getLogger(__name__)

MODE_LIVE = "live"
MODE_STAGING = "staging"

DIRECTORY_URLS = {
    MODE_LIVE: "https://acme-v01.api.letsencrypt.org/directory",
    MODE_STAGING: "https://acme-staging.api.letsencrypt.org/directory",
}

DEFAULT_BASE_PATH = "le"


class AcmeClient:
    def __init__(
        self,
        session: AcmeSession,
        identity: str,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session = session
        self.identity = identity
        self.accounts = AccountManager(session, identity)
        self.authorizations = AuthorizationRetriever(session)
        self.validator = ValidationEngine(session, retry_delay=retry_delay, sleep=sleep)
        self.issuer = CertificateIssuer(session)

    @classmethod
    def build(
        cls,
        identity: str,
        store: Optional[KeyStore],
        mode: str = MODE_LIVE,
        base_path: str = DEFAULT_BASE_PATH,
        directory_url: Optional[str] = None,
        transport: Optional[HttpTransport] = None,
        key_size: int = jwslib.DEFAULT_ACCOUNT_KEY_SIZE,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "AcmeClient":
        """
        Resolve the directory and load (or create) the account key.

        Raises ConfigurationError for missing options, DirectoryUnavailable
        when the authority cannot be reached and SigningFailure when the
        stored key is unusable.
        """
        if store is None:
            raise ConfigurationError("No key store supplied")
        if not identity:
            raise ConfigurationError("Identity not provided")
        if directory_url is None:
            try:
                directory_url = DIRECTORY_URLS[mode]
            except KeyError:
                raise ConfigurationError(
                    f"Unknown mode {mode!r}; expected one of {sorted(DIRECTORY_URLS)}"
                ) from None

        owns_transport = transport is None
        transport = transport or HttpTransport()
        nonces = NonceManager()
        try:
            directory = resolve_directory(transport, directory_url, nonces)
            account_key = load_or_create_account_key(store, account_key_path(base_path, identity), key_size)
        except Exception:
            if owns_transport:
                transport.close()
            raise

        session = AcmeSession(transport, directory, nonces, account_key)
        return cls(session, identity, retry_delay=retry_delay, sleep=sleep)

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        store: Optional[KeyStore] = None,
        transport: Optional[HttpTransport] = None,
    ) -> "AcmeClient":
        """Build a client from the application settings (see config.py)."""
        from storage.keystore import FilesystemKeyStore  # noqa: PLC0415

        return cls.build(
            identity=settings.ACME_IDENTITY,
            store=store or FilesystemKeyStore(settings.KEY_STORE_PATH),
            mode=settings.ACME_MODE,
            base_path=settings.ACCOUNT_BASE_PATH,
            directory_url=settings.ACME_DIRECTORY_URL or None,
            transport=transport or HttpTransport(
                timeout=settings.ACME_TIMEOUT,
                ca_bundle=settings.ACME_CA_BUNDLE,
                insecure=settings.ACME_INSECURE,
            ),
            key_size=settings.ACCOUNT_KEY_SIZE,
            retry_delay=settings.RETRY_DELAY_SECONDS,
        )

    def close(self) -> None:
        """Release the transport's HTTP connections."""
        self.session.transport.close()

    def __enter__(self) -> "AcmeClient":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    # ── Accessors ─────────────────────────────────────────────────────────

    @property
    def directory(self) -> Directory:
        return self.session.directory

    @property
    def thumbprint(self) -> str:
        return self.session.thumbprint

    # ── Operations ────────────────────────────────────────────────────────

    def get_account(self) -> Account:
        """Register the account key (or look up its existing account)."""
        return self.accounts.register()

    def agree(self, account: Account) -> Account:
        """Agree to the terms of service unless *account* already has."""
        return self.accounts.agree(account)

    def authorize(self, domains: Sequence[str]) -> list[Authorization]:
        """Request one authorization per domain, in the given order."""
        return self.authorizations.authorize(domains)

    def validate(
        self,
        authorizations: Sequence[Authorization],
        max_retries: int = DEFAULT_MAX_RETRIES,
        challenge_type: str = HTTP_01,
    ) -> bool:
        """
        Validate every authorization; False as soon as one of them fails.

        Callers must not request a certificate after a False result.
        """
        try:
            self.validator.validate(authorizations, max_retries, challenge_type)
        except ValidationExhausted as exc:
            logger.error("Validation failed: %s", exc)
            return False
        return True

    def get_certificate(
        self,
        domains: Sequence[str],
        primary_domain: Optional[str] = None,
    ) -> Certificate:
        """Issue a certificate for already validated *domains*."""
        return self.issuer.issue(domains, primary_domain)


def load_or_create_account_key(store: KeyStore, path: str, key_size: int) -> JWKRSA:
    """Load the account key at *path*, generating and storing one if absent."""
    if store.exists(path):
        logger.info("Loading existing account key from %s", path)
        try:
            pem = store.read(path)
        except OSError as exc:
            raise SigningFailure(f"Could not read account key {path}: {exc}") from exc
        return jwslib.load_account_key(pem)

    logger.info("No account key found — generating new key at %s", path)
    account_key = jwslib.generate_account_key(key_size)
    store.write(path, jwslib.serialize_account_key(account_key))
    return account_key
