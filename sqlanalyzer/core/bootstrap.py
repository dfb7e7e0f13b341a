"""Application bootstrap.

Centralizes construction of the long-lived collaborators (logging, storage
backend, entity stores, promptables, authorizer) so they are built once at
start-up and handed to consumers by reference.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlanalyzer.adapters.llm.factory import PromptableCache
from sqlanalyzer.adapters.rate_limit.authorizer import PromptAuthorizer
from sqlanalyzer.core.config import Settings, settings as default_settings
from sqlanalyzer.core.logging import configure_logging
from sqlanalyzer.persistence.backend import JsonFileBackend, PersistenceBackend
from sqlanalyzer.persistence.registry import StoreRegistry
from sqlanalyzer.services.evaluation_service import EvaluationService, StatementComparator
from sqlanalyzer.services.generation_service import GenerationService, RateLimitReporter

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything a front end needs to drive the analyzer."""

    settings: Settings
    registry: StoreRegistry
    promptables: PromptableCache
    authorizer: PromptAuthorizer

    def generation_service(
        self, *, on_rate_limit: RateLimitReporter | None = None
    ) -> GenerationService:
        """Build a generation service sized by the worker settings."""
        return GenerationService(
            self.registry,
            self.promptables,
            self.authorizer,
            pool_size=self.settings.worker.pool_size,
            on_rate_limit=on_rate_limit,
        )

    def evaluation_service(self, comparator: StatementComparator) -> EvaluationService:
        """Build an evaluation service sized by the worker settings."""
        return EvaluationService(
            self.registry, comparator, pool_size=self.settings.worker.pool_size
        )


def create_context(
    app_settings: Settings | None = None,
    *,
    backend: PersistenceBackend | None = None,
    setup_logging: bool = True,
) -> AppContext:
    """Create the application context.

    Args:
        app_settings: Settings to use; the global settings when omitted.
        backend: Storage backend; a JSON file backend rooted at
            ``storage.base_path`` when omitted.
        setup_logging: Configure the root logger from ``app_settings.log``.

    Returns:
        Ready-to-use AppContext.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    if setup_logging:
        configure_logging(cfg.log)

    backend = backend or JsonFileBackend(cfg.storage.base_path)
    context = AppContext(
        settings=cfg,
        registry=StoreRegistry(backend),
        promptables=PromptableCache(cfg),
        authorizer=PromptAuthorizer(),
    )
    logger.info(
        "app.context_ready",
        extra={"app_env": cfg.app_env, "backend": type(backend).__name__},
    )
    return context
