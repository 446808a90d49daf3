"""One-shot commit of usage and cost metadata to a streamed message."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from chatstream.events import TokenUsage
from chatstream.exceptions import StreamStateError
from chatstream.message import ApiUsageMetadata, Cost, MessageUpdate
from chatstream.pricing import calculate_cost

logger = logging.getLogger(__name__)

PricingFn = Callable[[str | None, str | None, int, int], Cost | None]


def _usage_from_metadata(metadata: ApiUsageMetadata | None) -> TokenUsage | None:
    if metadata is None:
        return None
    usage = TokenUsage(
        prompt_tokens=metadata.prompt_tokens,
        completion_tokens=metadata.completion_tokens,
        total_tokens=metadata.total_tokens,
    )
    return None if usage.is_empty() else usage


class UsageFinalizer:
    """Builds the final ``api_metadata`` update for one stream.

    Runs once, after the transport reports completion or fails. Token
    counts that were never reported stay unset, and cost is only computed
    when both prompt and completion counts are known.

    Args:
        metadata: Metadata created at stream start (provider, model,
            timestamp).
        pricing: Pricing collaborator. Returns ``None`` for unknown
            provider/model pairs.
        started_at: ``time.monotonic()`` reading taken when the request
            was sent; defaults to construction time.
    """

    def __init__(
        self,
        metadata: ApiUsageMetadata,
        pricing: PricingFn | None = None,
        started_at: float | None = None,
    ):
        self._metadata = metadata
        self._pricing = pricing or calculate_cost
        self._started_at = time.monotonic() if started_at is None else started_at
        self.finalized = False

    def finalize(
        self,
        usage: TokenUsage | None,
        last_update: MessageUpdate,
        *,
        transport_metadata: ApiUsageMetadata | None = None,
    ) -> MessageUpdate:
        if self.finalized:
            raise StreamStateError("Usage has already been finalized for this stream")
        self.finalized = True

        metadata = self._metadata.model_copy(deep=True)
        if transport_metadata is not None:
            metadata.provider = metadata.provider or transport_metadata.provider
            metadata.model = metadata.model or transport_metadata.model
            metadata.mode = metadata.mode or transport_metadata.mode
        metadata.response_time = int((time.monotonic() - self._started_at) * 1000)

        if usage is None:
            usage = _usage_from_metadata(transport_metadata)
        if usage is not None:
            metadata.prompt_tokens = usage.prompt_tokens
            metadata.completion_tokens = usage.completion_tokens
            metadata.total_tokens = usage.total_tokens
            if usage.prompt_tokens is not None and usage.completion_tokens is not None:
                metadata.cost = self._pricing(
                    metadata.provider,
                    metadata.model,
                    usage.prompt_tokens,
                    usage.completion_tokens,
                )
                if metadata.cost is None:
                    logger.info(
                        f"No pricing for {metadata.provider}/{metadata.model}; "
                        f"cost omitted"
                    )

        return last_update.model_copy(update={"api_metadata": metadata}, deep=True)
