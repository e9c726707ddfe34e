"""
keyrouter: AI request routing with API key rotation.

Sources keys from personal, global and system tiers (with a process-level
fallback), tries each key across an ordered list of Gemini models, and
revokes keys the provider rejects as invalid.

No FastAPI or database dependency.
Pure interface: KeyRouter(sourcer, provider, store).generate(prompt, requester_id)
"""

__version__ = "1.0.0"

from .core import KeyRouter
from .models import (
    Credential,
    CredentialScope,
    CredentialStatus,
    CredentialUpdate,
    Decision,
    EphemeralCredential,
    GenerationRequest,
    GlobalCredential,
    Outcome,
    OutcomeKind,
    PersonalCredential,
    SystemCredential,
)
from .errors import (
    AggregateFailure,
    CredentialRevealError,
    KeyRouterError,
    NoCredentialsAvailable,
    ProviderError,
)
from .classifier import classify_error
from .dispatcher import GenerationDispatcher, decide
from .recorder import OutcomeRecorder
from .sourcing import KeySourcer
