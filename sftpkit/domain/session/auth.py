"""
Authentication policy
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List

from ...core.exceptions import AuthenticationError
from .models import ConnectionParameters


class AuthMethod(str, Enum):
    """Credential kind"""
    PASSWORD = "password"
    PUBLICKEY = "publickey"
    AGENT = "agent"


@dataclass(frozen=True)
class AuthAttempt:
    """One credential to offer the server"""
    method: AuthMethod
    password: Optional[str] = field(default=None, repr=False)
    key_path: Optional[str] = None

    def describe(self) -> str:
        if self.method == AuthMethod.PUBLICKEY:
            return f"publickey ({self.key_path})"
        return self.method.value


@dataclass(frozen=True)
class AuthPlan:
    """Ordered credentials; the first one the server accepts wins"""
    user: str
    attempts: tuple = ()

    @property
    def uses_password(self) -> bool:
        return any(a.method == AuthMethod.PASSWORD for a in self.attempts)

    @property
    def password(self) -> Optional[str]:
        for attempt in self.attempts:
            if attempt.method == AuthMethod.PASSWORD:
                return attempt.password
        return None

    @property
    def key_paths(self) -> List[str]:
        return [a.key_path for a in self.attempts if a.method == AuthMethod.PUBLICKEY]

    @property
    def allow_agent(self) -> bool:
        return any(a.method == AuthMethod.AGENT for a in self.attempts)

    def describe(self) -> str:
        return ", ".join(a.describe() for a in self.attempts)


def build_auth_plan(params: ConnectionParameters) -> AuthPlan:
    """
    Build the credential order for a connection.

    A password, when present, is the only method tried. Otherwise each
    private key is tried in order, then the SSH agent if allowed.

    Raises:
        AuthenticationError: If no method is available at all
    """
    if params.password:
        attempts = (AuthAttempt(AuthMethod.PASSWORD, password=params.password),)
    else:
        attempts = tuple(
            AuthAttempt(AuthMethod.PUBLICKEY, key_path=path)
            for path in params.private_key_paths
        )
        if params.allow_agent_auth:
            attempts += (AuthAttempt(AuthMethod.AGENT),)

    if not attempts:
        raise AuthenticationError(
            "no authentication method available (no password, no keys, agent disabled)",
            operation="connect",
        )

    return AuthPlan(user=params.user, attempts=attempts)
