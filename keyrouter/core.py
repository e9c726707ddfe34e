"""
Router entry point: source keys for a requester, then dispatch.
"""

import logging
from typing import Optional

from .config import resolve_models
from .dispatcher import GenerationDispatcher, Provider
from .models import GenerationRequest
from .recorder import CredentialWriter, OutcomeRecorder
from .sourcing import KeySourcer

logger = logging.getLogger(__name__)


class KeyRouter:
    """Wires a KeySourcer and GenerationDispatcher around one credential store."""

    def __init__(
        self,
        sourcer: KeySourcer,
        provider: Provider,
        recorder_store: CredentialWriter,
        default_models: Optional[list[str]] = None,
    ):
        self.sourcer = sourcer
        self.dispatcher = GenerationDispatcher(provider, OutcomeRecorder(recorder_store))
        self.default_models = default_models

    def generate(
        self,
        prompt: str,
        requester_id: Optional[str] = None,
        models: Optional[list[str]] = None,
        model: Optional[str] = None,
    ) -> str:
        """Generate text for a prompt using the best available key and model.

        Raises NoCredentialsAvailable when nothing can be sourced and
        AggregateFailure when every key × model pair failed.
        """
        request = GenerationRequest(prompt=prompt, models=resolve_models(models, model, self.default_models))
        credentials = self.sourcer.source_credentials(requester_id)
        logger.info(
            f"🎯 Routing request for {requester_id or '<anonymous>'}: "
            f"{len(credentials)} key(s), models={request.models}"
        )
        return self.dispatcher.dispatch(request, credentials)
