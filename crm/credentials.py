"""Selection of the Intercom credential set for a batch."""
import os
from dataclasses import dataclass
from typing import Mapping, Optional

LIVE_TOKEN_VAR = 'INTERCOM_ACCESS_TOKEN'
SANDBOX_TOKEN_VAR = 'INTERCOM_ACCESS_TOKEN_TEST'


class MissingCredentialsError(Exception):
    """Raised when the selected credential set is not configured."""

    def __init__(self, variable: str):
        super().__init__(
            f"{variable} environment variable is not set. "
            f"Please add it to the function configuration."
        )
        self.variable = variable


@dataclass(frozen=True)
class CredentialSet:
    """Access token plus a label saying which workspace it belongs to."""
    token: str
    label: str

    @property
    def is_sandbox(self) -> bool:
        return self.label == 'sandbox'


def load_credentials(
    sandbox: bool = False,
    environ: Optional[Mapping[str, str]] = None
) -> CredentialSet:
    """
    Read the live or sandbox access token.

    Args:
        sandbox: Select the sandbox workspace token
        environ: Environment mapping (defaults to os.environ)

    Returns:
        CredentialSet

    Raises:
        MissingCredentialsError: If the selected token is not set
    """
    environ = os.environ if environ is None else environ
    variable = SANDBOX_TOKEN_VAR if sandbox else LIVE_TOKEN_VAR
    token = environ.get(variable, '')
    if not token:
        raise MissingCredentialsError(variable)
    return CredentialSet(token=token, label='sandbox' if sandbox else 'live')


def sandbox_available(environ: Optional[Mapping[str, str]] = None) -> bool:
    """Whether a sandbox token is configured."""
    environ = os.environ if environ is None else environ
    return bool(environ.get(SANDBOX_TOKEN_VAR))
