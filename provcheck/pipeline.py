"""
Validation pipeline.

provider -> registry lookup -> field scoring -> classification ->
persist -> (if flagged) review admission.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .classifier import Classification, classify
from .logger import get_logger
from .models import Provider, ProviderStatus
from .review import ReviewQueue
from .scoring import ConfidenceScorer, overall_confidence
from .storage import ProviderNotFound, Store

logger = get_logger()


@dataclass
class BatchResult:
    total: int
    processed: int = 0
    failed: List[str] = field(default_factory=list)


class ValidationPipeline:
    """
    Args:
        store: Where providers and review items live
        registry: Object with lookup(npi) returning a record or None
        scorer: Field scorer; defaults to the random fallback band
        queue: Review queue; defaults to one over the same store
    """

    def __init__(
        self,
        store: Store,
        registry,
        scorer: Optional[ConfidenceScorer] = None,
        queue: Optional[ReviewQueue] = None,
    ):
        self.store = store
        self.registry = registry
        self.scorer = scorer or ConfidenceScorer()
        self.queue = queue or ReviewQueue(store)

    def run(self, provider: Provider) -> Classification:
        """Score and classify a provider without writing anything."""
        record = self.registry.lookup(provider.npi)
        scores = self.scorer.score_provider(provider, record)
        return classify(overall_confidence(scores), scores)

    def _validate(self, provider: Provider) -> Provider:
        logger.record_validation_attempt()
        result = self.run(provider)
        updated = self.store.update_provider(provider.id, **result.as_changes())
        if updated is None:
            # Deleted while the registry call was in flight
            raise ProviderNotFound(provider.id)
        self.queue.admit(provider.id, result)
        logger.record_validation_success(result.status.value)
        logger.debug(
            "Provider validated",
            provider_id=provider.id,
            status=result.status.value,
            confidence=round(result.overall_confidence, 1),
        )
        return updated

    def validate_provider(self, provider_id: str) -> Provider:
        provider = self.store.get_provider(provider_id)
        if provider is None:
            raise ProviderNotFound(provider_id)
        return self._validate(provider)

    def validate_all(self) -> BatchResult:
        """
        Validate every provider in listing order. A failure on one provider
        is logged and marks it as error; the rest of the batch still runs.
        """
        providers = self.store.list_providers()
        result = BatchResult(total=len(providers))

        for provider in providers:
            try:
                self._validate(provider)
            except Exception as e:
                logger.record_validation_failure(type(e).__name__)
                logger.error(
                    "Validation failed",
                    provider_id=provider.id,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                result.failed.append(provider.id)
                self._mark_error(provider.id, e)
                continue
            result.processed += 1

        logger.info(
            f"Validation complete: {result.processed}/{result.total} processed",
            failed=len(result.failed),
        )
        logger.log_metrics_summary()
        return result

    def _mark_error(self, provider_id: str, error: Exception) -> None:
        try:
            self.store.update_provider(
                provider_id,
                status=ProviderStatus.ERROR,
                validation_notes=f"Validation failed: {error}",
            )
        except Exception as e:
            logger.error("Could not record validation error", provider_id=provider_id, error=str(e))

    def update_provider(self, provider_id: str, **changes) -> Provider:
        """
        Apply a direct edit. Setting status to verified by any route closes
        the provider's pending review item as approved.
        """
        updated = self.store.update_provider(provider_id, **changes)
        if updated is None:
            raise ProviderNotFound(provider_id)
        if updated.status == ProviderStatus.VERIFIED and "status" in changes:
            self.queue.resolve_for_provider(provider_id)
        return updated
