"""AI assistant: OpenAI-compatible chat completion client and context builder."""

import logging
import os
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from emarketer_api.db.repo_campaigns import CampaignRepository
from emarketer_api.db.repo_integrations import IntegrationRepository
from emarketer_api.errors import UpstreamFailure

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are eMarketer.pro AI Assistant, an expert marketing analytics assistant "
    "specialized in Meta Ads, Google Ads and Google Analytics.\n\n"
    "Current user context:\n{context}\n\n"
    "Provide actionable insights, explain metrics clearly, and help optimize campaigns. "
    "Be concise and friendly."
)

FALLBACK_REPLY = "I apologize, but I was unable to generate a response."


class ChatCompletionClient:
    """Minimal client for an OpenAI-compatible /chat/completions endpoint.

    Env:
    - OPENAI_API_KEY (required to call)
    - OPENAI_MODEL (default gpt-4o-mini)
    - OPENAI_BASE_URL (default https://api.openai.com/v1)
    """

    def __init__(
        self,
        http: httpx.Client,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        self.http = http
        self.api_key = api_key or os.getenv("OPENAI_API_KEY", "")
        self.model = model or os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.base_url = (base_url or os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")).rstrip("/")

    def complete(
        self, messages: list[dict[str, str]], temperature: float = 0.7, max_tokens: int = 1000
    ) -> str:
        """Return the assistant message content.

        Raises:
            UpstreamFailure: On missing key, transport error or non-2xx
        """
        if not self.api_key:
            raise UpstreamFailure("AI assistant is not configured", platform="openai")

        try:
            response = self.http.post(
                f"{self.base_url}/chat/completions",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "model": self.model,
                    "messages": messages,
                    "temperature": temperature,
                    "max_tokens": max_tokens,
                },
            )
        except httpx.HTTPError as e:
            raise UpstreamFailure("AI assistant request failed", platform="openai") from e

        if response.status_code >= 400:
            logger.warning(
                "Chat completion rejected",
                extra={"event": "chat.completion.failed", "upstream_status": response.status_code},
            )
            raise UpstreamFailure(
                "AI assistant request failed",
                platform="openai",
                upstream_status=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamFailure(
                "AI assistant returned an invalid response",
                platform="openai",
                upstream_status=response.status_code,
            ) from e
        if not isinstance(body, dict):
            raise UpstreamFailure(
                "AI assistant returned an invalid response",
                platform="openai",
                upstream_status=response.status_code,
            )

        choices = body.get("choices") or []
        if not choices:
            return FALLBACK_REPLY
        return (choices[0].get("message") or {}).get("content") or FALLBACK_REPLY


def build_marketing_context(db: Session, company_id: Optional[str]) -> str:
    """Plain-text summary of connected platforms and campaign totals."""
    if not company_id:
        return "No data available yet. Connect your marketing platforms first to get insights."

    integrations = IntegrationRepository(db).list_for_company(company_id)
    if not integrations:
        return "No platforms connected yet. Connect Google Ads, Meta or GA4 to start analyzing your data."

    lines = ["Connected platforms: " + ", ".join(
        f"{i.platform} ({i.account_name or i.account_id})" for i in integrations
    )]

    campaigns = CampaignRepository(db).list_for_company(company_id, limit=20)
    if campaigns:
        spend = sum(c.spend for c in campaigns)
        revenue = sum(c.revenue for c in campaigns)
        roas = revenue / spend if spend > 0 else 0.0
        lines.append(f"Totals (top {len(campaigns)} campaigns): spend {spend:.2f}, revenue {revenue:.2f}, ROAS {roas:.2f}")
        for c in campaigns[:10]:
            lines.append(
                f"- [{c.platform}] {c.name}: spend {c.spend:.2f}, clicks {c.clicks}, "
                f"conversions {c.conversions:.1f}, ROAS {c.roas:.2f}"
            )
    else:
        lines.append("No campaign data synced yet.")

    return "\n".join(lines)
