"""
Outcome recording: persists the effect of an attempt on its credential.
"""

import logging
from typing import Protocol

from .models import Credential, CredentialStatus, CredentialUpdate, Outcome, OutcomeKind

logger = logging.getLogger(__name__)


class CredentialWriter(Protocol):
    def update_credential(self, credential_id: int, update: CredentialUpdate) -> bool: ...


def build_update(outcome: Outcome) -> CredentialUpdate:
    """Translate an outcome into the single-record store update."""
    if outcome.kind is OutcomeKind.SUCCESS:
        return CredentialUpdate(
            increment_usage=True,
            status=CredentialStatus.ACTIVE,
            last_used_at=outcome.started_at,
        )
    if outcome.kind is OutcomeKind.PERMANENT:
        return CredentialUpdate(
            status=CredentialStatus.REVOKED,
            enabled=False,
            last_error=outcome.describe(),
            last_used_at=outcome.started_at,
        )
    # Transient and unknown failures only move the round-robin timestamp
    return CredentialUpdate(last_used_at=outcome.started_at)


class OutcomeRecorder:
    """Writes classified outcomes back to the credential store.

    Ephemeral and system credentials are never recorded. Store failures are
    logged and swallowed so a successful generation is still returned.
    """

    def __init__(self, store: CredentialWriter):
        self.store = store

    def record(self, credential: Credential, outcome: Outcome) -> None:
        if not credential.is_recordable or credential.id is None:
            return

        update = build_update(outcome)
        try:
            self.store.update_credential(credential.id, update)
        except Exception as e:
            logger.error(f"❌ Failed to record {outcome.kind.value} for key '{credential.label}': {e}")
            return

        if outcome.kind is OutcomeKind.PERMANENT:
            logger.warning(f"🚫 Revoked key '{credential.label}': {outcome.describe(120)}")
        else:
            logger.debug(f"📊 Recorded {outcome.kind.value} for key '{credential.label}'")
