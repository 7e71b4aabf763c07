"""
Exception taxonomy for the ACME client.

Everything raised on purpose by this package derives from `AcmeError`, so a
caller can catch one type at the facade.  Transport exceptions from
*requests* are not wrapped (except while resolving the directory) and reach
the caller unchanged.
"""
from __future__ import annotations

from typing import Any, Optional


class AcmeError(Exception):
    """Base class for all client-side ACME failures."""


class ConfigurationError(AcmeError, ValueError):
    """The client was constructed with missing or invalid options."""


class DirectoryUnavailable(AcmeError):
    """The directory could not be fetched or parsed.  Fatal to construction."""


class UnknownOperation(AcmeError, KeyError):
    """An operation name is not listed in the resolved directory."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Invalid directory: {name} not listed")

    def __str__(self) -> str:
        return self.args[0]


class SigningFailure(AcmeError):
    """The account key could not be read or could not sign a request."""


class AuthorityRejected(AcmeError):
    """Raised when the authority answers with a non-2xx status we do not handle."""

    def __init__(self, status_code: int, body: dict, response: Optional[Any] = None) -> None:
        self.status_code = status_code
        self.body = body
        self.response = response
        problem_type = body.get("type", "unknown")
        detail = body.get("detail", str(body))
        super().__init__(f"ACME {status_code}: {problem_type} - {detail}")


class ValidationExhausted(AcmeError):
    """Every validation round for one domain failed."""

    def __init__(self, domain: str, attempts: int) -> None:
        self.domain = domain
        self.attempts = attempts
        super().__init__(f"Validation of {domain} failed after {attempts} attempt(s)")


class CertificateRequestFailure(AcmeError):
    """The CSR could not be built or converted to DER."""
