"""
Key sourcing: builds the ordered candidate list for a requester.

Tier order (concatenated, never interleaved):
    1. personal : the requester's own keys, least recently used first
    2. global   : shared keys, including legacy ownerless records
    3. system   : the master key from the system settings singleton
    4. ephemeral: process-level GEMINI_API_KEY, only if 1-3 are empty
"""

import logging
import os
from typing import Callable, Optional, Protocol

from .models import Credential, EphemeralCredential, SystemCredential

logger = logging.getLogger(__name__)


class CredentialSource(Protocol):
    def personal_credentials(self, owner_id: str) -> list[Credential]: ...

    def global_credentials(self) -> list[Credential]: ...


class SystemConfig(Protocol):
    def master_secret(self) -> Optional[str]: ...


def env_fallback_secret() -> Optional[str]:
    """Read the process fallback key fresh from the environment."""
    return os.environ.get("GEMINI_API_KEY", "").strip() or None


class KeySourcer:
    """Merges credential tiers into one ordered, de-duplicated list."""

    def __init__(
        self,
        store: Optional[CredentialSource],
        system_config: Optional[SystemConfig] = None,
        fallback_secret: Callable[[], Optional[str]] = env_fallback_secret,
    ):
        self.store = store
        self.system_config = system_config
        self.fallback_secret = fallback_secret

    def source_credentials(self, requester_id: Optional[str]) -> list[Credential]:
        candidates: list[Credential] = []

        if requester_id:
            candidates += self._safe_tier("personal", lambda: self.store.personal_credentials(requester_id))
        candidates += self._safe_tier("global", lambda: self.store.global_credentials())
        candidates += self._safe_tier("system", self._system_tier)

        candidates = dedupe(candidates)

        if not candidates:
            secret = self.fallback_secret()
            if secret:
                logger.info("🔑 No stored keys available, using process fallback key")
                return [EphemeralCredential(secret)]
            logger.warning(f"⚠️ No API keys available for requester {requester_id or '<anonymous>'}")
            return []

        logger.debug(f"🔑 Sourced {len(candidates)} key(s) for requester {requester_id or '<anonymous>'}")
        return candidates

    def _system_tier(self) -> list[Credential]:
        if self.system_config is None:
            return []
        secret = self.system_config.master_secret()
        if not secret:
            return []
        return [SystemCredential(secret)]

    def _safe_tier(self, tier: str, query: Callable[[], list[Credential]]) -> list[Credential]:
        """Run a tier query, degrading to no candidates if the store is down."""
        if self.store is None and tier != "system":
            return []
        try:
            return list(query())
        except Exception as e:
            logger.error(f"❌ Failed to load {tier} keys, skipping tier: {e}")
            return []


def dedupe(credentials: list[Credential]) -> list[Credential]:
    """Drop repeated credentials, keeping the first (highest-tier) occurrence."""
    seen: set[tuple] = set()
    unique = []
    for credential in credentials:
        if credential.identity in seen:
            logger.debug(f"Skipping duplicate candidate {credential.label}")
            continue
        seen.add(credential.identity)
        unique.append(credential)
    return unique
