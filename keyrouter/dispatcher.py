"""
Generation dispatch: walks credentials × models until one attempt succeeds.

The walk is strictly sequential. Each attempt produces an Outcome, the
Outcome maps to a Decision, and the Decision moves an explicit cursor:

    SUCCEED          → return the text, no further provider calls
    CONTINUE         → next model for the same credential
    NEXT_CREDENTIAL  → skip the credential's remaining models
    EXHAUST_ALL      → nothing left, raise AggregateFailure
"""

import logging
from datetime import datetime
from typing import Optional, Protocol

from .classifier import classify_error
from .errors import AggregateFailure, CredentialRevealError, NoCredentialsAvailable
from .models import Credential, Decision, GenerationRequest, Outcome, OutcomeKind
from .recorder import OutcomeRecorder

logger = logging.getLogger(__name__)


class Provider(Protocol):
    def generate(self, secret: str, model: str, prompt: str) -> str: ...


_DECISIONS = {
    OutcomeKind.SUCCESS: Decision.SUCCEED,
    OutcomeKind.TRANSIENT: Decision.CONTINUE,
    OutcomeKind.UNKNOWN: Decision.CONTINUE,
    OutcomeKind.PERMANENT: Decision.NEXT_CREDENTIAL,
}


def decide(outcome: Outcome) -> Decision:
    """Map an attempt outcome to the dispatcher's next move."""
    return _DECISIONS[outcome.kind]


class AttemptCursor:
    """Position in the credential × model search space."""

    def __init__(self, credentials: list[Credential], models: list[str]):
        self.credentials = credentials
        self.models = models
        self.credential_index = 0
        self.model_index = 0

    def current(self) -> Optional[tuple[Credential, str]]:
        if self.credential_index >= len(self.credentials) or not self.models:
            return None
        return self.credentials[self.credential_index], self.models[self.model_index]

    def advance(self, decision: Decision) -> Decision:
        """Apply a decision. Returns EXHAUST_ALL once no pair remains."""
        if decision is Decision.CONTINUE:
            self.model_index += 1
            if self.model_index >= len(self.models):
                self._next_credential()
        elif decision is Decision.NEXT_CREDENTIAL:
            self._next_credential()
        elif decision in (Decision.SUCCEED, Decision.EXHAUST_ALL):
            self.credential_index = len(self.credentials)
            return decision

        return decision if self.current() is not None else Decision.EXHAUST_ALL

    def _next_credential(self):
        self.credential_index += 1
        self.model_index = 0


class GenerationDispatcher:
    """Tries each (credential, model) pair in order until one succeeds."""

    def __init__(self, provider: Provider, recorder: OutcomeRecorder):
        self.provider = provider
        self.recorder = recorder

    def dispatch(self, request: GenerationRequest, credentials: list[Credential]) -> str:
        if not credentials:
            raise NoCredentialsAvailable()
        if not request.models:
            raise ValueError("At least one model name is required")

        cursor = AttemptCursor(credentials, request.models)
        last_error: Optional[str] = None
        attempts = 0

        while (pair := cursor.current()) is not None:
            credential, model = pair

            try:
                secret = credential.reveal_secret()
            except CredentialRevealError as e:
                logger.error(f"❌ Could not reveal key '{credential.label}', skipping it: {e}")
                last_error = str(e)
                cursor.advance(Decision.NEXT_CREDENTIAL)
                continue

            attempts += 1
            outcome = self._attempt(credential, secret, model, request.prompt)
            self.recorder.record(credential, outcome)

            decision = decide(outcome)
            if decision is Decision.SUCCEED:
                logger.info(f"✅ Generated {len(outcome.text or '')} chars with {model} using key '{credential.label}'")
                return outcome.text

            last_error = outcome.error
            if cursor.advance(decision) is Decision.EXHAUST_ALL:
                break

        logger.error(f"❌ All {len(credentials)} key(s) × {len(request.models)} model(s) exhausted: {last_error}")
        raise AggregateFailure(last_error, attempts)

    def _attempt(self, credential: Credential, secret: str, model: str, prompt: str) -> Outcome:
        started_at = datetime.utcnow()
        logger.info(f"🤖 Trying {model} with key '{credential.label}'")
        try:
            text = self.provider.generate(secret, model, prompt)
        except Exception as e:
            kind = classify_error(e)
            logger.warning(f"⚠️ {model} failed with key '{credential.label}' ({kind.value}): {str(e)[:200]}")
            return Outcome.failure(kind, str(e), model=model, started_at=started_at)
        return Outcome.success(text, model=model, started_at=started_at)
