"""
Decision Engine - restock advisory with a deterministic fallback

The advisory is a best-effort external call (an LLM behind an
OpenAI-compatible chat completions API). It gets exactly one try; any failure
falls straight back to a fixed heuristic so the watcher is never blocked by
it.

Fun fact: The reorder-point formula (reorder when stock < expected demand
during lead time) was published by Ford Whitman Harris in 1913, the same
paper that gave us the economic order quantity. The fallback policy here is
its simplest possible descendant.
"""

import json
import re
from datetime import datetime
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from agentic_restock.agent.models import InventoryItem, RestockRecommendation
from agentic_restock.kernel.errors import AdvisoryUnavailable
from agentic_restock.kernel.logging import get_logger
from agentic_restock.kernel.metrics import advisory_fallbacks_total

logger = get_logger(__name__)

_CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


class AdvisoryClient(Protocol):
    """Capability that produces a restock recommendation"""

    def recommend(
        self,
        current_stock: int,
        recent_activity: list[datetime],
        context: dict[str, Any],
    ) -> RestockRecommendation:
        """
        Raises:
            AdvisoryUnavailable: If no recommendation can be produced
        """
        ...


class FallbackPolicy:
    """
    Deterministic restock heuristic

    should_restock = stock < threshold
    quantity       = default_quantity
    urgency        = 10 below half the threshold, otherwise 5
    """

    def __init__(self, default_quantity: int = 20) -> None:
        if default_quantity < 1:
            raise ValueError(f"Default quantity must be positive, got {default_quantity}")
        self.default_quantity = default_quantity

    def recommend(
        self, current_stock: int, threshold: int, reason: str | None = None
    ) -> RestockRecommendation:
        return RestockRecommendation(
            should_restock=current_stock < threshold,
            recommended_quantity=self.default_quantity,
            reason=reason or "Advisory unavailable, using default reorder-point logic.",
            urgency_score=10 if current_stock < threshold / 2 else 5,
            source="fallback",
        )


def build_prompt(
    current_stock: int, recent_activity: list[datetime], context: dict[str, Any]
) -> str:
    """Prompt asking the advisory for a JSON-only restock decision"""
    sales = [t.isoformat() for t in recent_activity]
    return (
        "You are an autonomous procurement agent for a small retail store.\n\n"
        "CURRENT SITUATION:\n"
        f"- Item: {context.get('item', 'unknown')}\n"
        f"- Current Stock: {current_stock} {context.get('unit', 'units')}\n"
        f"- Restock Threshold: {context.get('threshold')} {context.get('unit', 'units')}\n"
        f"- Recent Sales (timestamps): {json.dumps(sales)}\n\n"
        "TASK:\n"
        "Decide if we should restock. Return ONLY valid JSON:\n"
        '{"shouldRestock": boolean, "recommendedQuantity": number, '
        '"reason": "short explanation", "urgencyScore": number (1-10)}'
    )


def parse_recommendation(text: str) -> RestockRecommendation:
    """
    Parse an advisory reply, tolerating Markdown code fences

    Raises:
        AdvisoryUnavailable: If the reply is not a valid recommendation
    """
    cleaned = _CODE_FENCE.sub("", text).strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise AdvisoryUnavailable(f"reply is not JSON: {e.msg}") from e
    if not isinstance(data, dict):
        raise AdvisoryUnavailable("reply is not a JSON object")
    try:
        return RestockRecommendation.model_validate({**data, "source": "advisory"})
    except ValidationError as e:
        raise AdvisoryUnavailable(f"reply failed validation ({e.error_count()} errors)") from e


class ChatCompletionsAdvisor:
    """
    Advisory backed by an OpenAI-compatible chat completions endpoint

    POST {base_url}/chat/completions with a bounded timeout. No retries.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        timeout_seconds: float = 15.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("ChatCompletionsAdvisor requires a base_url")
        if not api_key:
            raise ValueError("ChatCompletionsAdvisor requires an API key")
        self.model = model
        self.http_client = http_client or httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
            headers={"Authorization": f"Bearer {api_key}"},
        )

    def close(self) -> None:
        self.http_client.close()

    def recommend(
        self,
        current_stock: int,
        recent_activity: list[datetime],
        context: dict[str, Any],
    ) -> RestockRecommendation:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "user", "content": build_prompt(current_stock, recent_activity, context)}
            ],
            "temperature": 0.2,
        }
        try:
            response = self.http_client.post("/chat/completions", json=payload)
            response.raise_for_status()
            body = response.json()
            content = body["choices"][0]["message"]["content"]
        except httpx.TimeoutException as e:
            raise AdvisoryUnavailable("advisory call timed out") from e
        except httpx.HTTPError as e:
            raise AdvisoryUnavailable(f"advisory call failed: {e}") from e
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise AdvisoryUnavailable(f"unexpected advisory response shape: {e}") from e

        if not isinstance(content, str):
            raise AdvisoryUnavailable("advisory content is not text")
        return parse_recommendation(content)


class DecisionEngine:
    """
    Restock decision gate

    Stateless between calls. The advisory is optional; without one every
    decision comes from the fallback policy.
    """

    def __init__(
        self,
        fallback: FallbackPolicy,
        advisor: AdvisoryClient | None = None,
    ) -> None:
        self.fallback = fallback
        self.advisor = advisor

    def decide(
        self,
        item: InventoryItem,
        recent_activity: list[datetime],
        use_advisory: bool = True,
    ) -> RestockRecommendation:
        """
        Recommend whether and how much to restock `item`

        Args:
            item: Snapshot of the item
            recent_activity: Timestamps of recent sales, oldest first
            use_advisory: Caller may skip the advisory and go straight to the heuristic
        """
        if self.advisor is None or not use_advisory:
            advisory_fallbacks_total.labels(reason="disabled").inc()
            return self.fallback.recommend(item.stock, item.threshold)

        context = {"item": item.name, "unit": item.unit, "threshold": item.threshold}
        try:
            recommendation = self.advisor.recommend(item.stock, recent_activity, context)
        except AdvisoryUnavailable as e:
            advisory_fallbacks_total.labels(reason="unavailable").inc()
            logger.warning(
                "Advisory unavailable, using fallback policy",
                item=item.name,
                reason=e.reason,
            )
            return self.fallback.recommend(item.stock, item.threshold)

        logger.info(
            "Advisory recommendation received",
            item=item.name,
            should_restock=recommendation.should_restock,
            quantity=recommendation.recommended_quantity,
            urgency=recommendation.urgency_score,
        )
        return recommendation
