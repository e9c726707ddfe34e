"""
Data models for the routing engine.
No external dependencies: pure Python dataclasses.

Credentials are polymorphic: every tier exposes the same ``reveal_secret()``
and ``is_recordable`` capabilities, so the dispatcher never looks at
tier-specific fields.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Optional


class CredentialScope(str, Enum):
    """Sourcing tier a credential came from."""
    PERSONAL = "personal"
    GLOBAL = "global"
    SYSTEM = "system"
    EPHEMERAL = "ephemeral"


class CredentialStatus(str, Enum):
    ACTIVE = "active"
    REVOKED = "revoked"


class OutcomeKind(str, Enum):
    """Classification of a single generation attempt."""
    SUCCESS = "success"
    TRANSIENT = "transient"    # quota / rate limit
    PERMANENT = "permanent"    # invalid or unauthorized key
    UNKNOWN = "unknown"


class Decision(str, Enum):
    """What the dispatcher does after an attempt."""
    CONTINUE = "continue"                # next model, same credential
    NEXT_CREDENTIAL = "next_credential"  # skip remaining models
    SUCCEED = "succeed"
    EXHAUST_ALL = "exhaust_all"


# =============================================================================
# CREDENTIALS
# =============================================================================

class Credential(ABC):
    """A secret plus the metadata needed for one generation attempt."""

    scope: CredentialScope
    id: Optional[int] = None
    name: str = ""

    @abstractmethod
    def reveal_secret(self) -> str:
        """Return the plaintext secret. Only the dispatcher should call this."""

    @property
    def is_recordable(self) -> bool:
        """Whether outcomes for this credential are persisted."""
        return False

    @property
    def identity(self) -> tuple:
        """Key used to deduplicate candidates across tiers."""
        if self.id is not None:
            return ("stored", self.id)
        return (self.scope.value, self.name)

    @property
    def label(self) -> str:
        if self.id is not None:
            return f"{self.scope.value}:{self.name or self.id}"
        return self.scope.value

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.label}>"


class StoredCredential(Credential):
    """A credential backed by a store record.

    Holds no plaintext: the secret is decrypted by the store only when
    ``reveal_secret()`` is called.
    """

    def __init__(
        self,
        id: int,
        name: str,
        revealer: Callable[[], str],
        last_used_at: Optional[datetime] = None,
        usage_count: int = 0,
    ):
        self.id = id
        self.name = name
        self.last_used_at = last_used_at
        self.usage_count = usage_count
        self._revealer = revealer

    def reveal_secret(self) -> str:
        return self._revealer()

    @property
    def is_recordable(self) -> bool:
        return True


class PersonalCredential(StoredCredential):
    scope = CredentialScope.PERSONAL


class GlobalCredential(StoredCredential):
    scope = CredentialScope.GLOBAL


class _InlineCredential(Credential):
    """A credential whose secret is held directly (never persisted)."""

    def __init__(self, secret: str, name: str = ""):
        self.name = name or self.scope.value
        self._secret = secret

    def reveal_secret(self) -> str:
        return self._secret


class SystemCredential(_InlineCredential):
    """Master key from the system configuration singleton."""
    scope = CredentialScope.SYSTEM


class EphemeralCredential(_InlineCredential):
    """Process-level fallback key. Outcomes are never recorded."""
    scope = CredentialScope.EPHEMERAL


# =============================================================================
# REQUESTS AND OUTCOMES
# =============================================================================

@dataclass
class GenerationRequest:
    """A prompt plus the ordered models to try for it."""
    prompt: str
    models: list[str] = field(default_factory=list)


@dataclass
class Outcome:
    """Result of one (credential, model) attempt."""
    kind: OutcomeKind
    model: str = ""
    text: Optional[str] = None
    error: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def success(cls, text: str, model: str = "", started_at: Optional[datetime] = None) -> "Outcome":
        return cls(OutcomeKind.SUCCESS, model=model, text=text, started_at=started_at or datetime.utcnow())

    @classmethod
    def failure(
        cls, kind: OutcomeKind, error: str, model: str = "", started_at: Optional[datetime] = None
    ) -> "Outcome":
        return cls(kind, model=model, error=error, started_at=started_at or datetime.utcnow())

    @property
    def succeeded(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    def describe(self, limit: int = 300) -> str:
        """Short ``label: message`` form used for ``last_error``."""
        message = (self.error or "").strip()
        if len(message) > limit:
            message = message[:limit] + "..."
        return f"{self.kind.value}: {message}" if message else self.kind.value


@dataclass
class CredentialUpdate:
    """Single-record update applied by the store.

    ``None`` fields are left untouched. ``increment_usage`` must be applied
    in place (``usage_count = usage_count + 1``).
    """
    increment_usage: bool = False
    status: Optional[CredentialStatus] = None
    enabled: Optional[bool] = None
    last_used_at: Optional[datetime] = None
    last_error: Optional[str] = None
