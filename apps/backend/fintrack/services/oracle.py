"""Semantic similarity oracle backed by an OpenRouter-compatible chat API."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Protocol

import httpx

from fintrack.config import settings
from fintrack.logger import get_logger, log_external_api
from fintrack.models.kinds import EntityKind
from fintrack.prompts import DUPLICATE_SYSTEM_PROMPT, get_duplicate_prompt
from fintrack.services.errors import OracleTimeout, OracleUnavailable
from fintrack.utils.masking import SENSITIVE_KEYS, mask_account_number

logger = get_logger(__name__)

# Fields worth mentioning to the model, per kind, in display order
_DESCRIBED_FIELDS: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.TRANSACTION: ("bank_name", "account_number", "amount", "txn_time", "merchant", "description"),
    EntityKind.STOCK: ("symbol", "company_name", "platform", "quantity"),
    EntityKind.MUTUAL_FUND: ("fund_name", "folio_number", "amc", "units"),
    EntityKind.FIXED_DEPOSIT: ("bank_name", "fd_number", "principal_amount", "start_date", "maturity_date"),
    EntityKind.EMI: ("loan_name", "loan_type", "bank_name", "emi_amount", "start_date", "tenure_months"),
    EntityKind.BANK_ACCOUNT: ("bank_name", "account_number", "account_type", "account_name"),
    EntityKind.LONG_TERM_FUND: ("fund_type", "account_number", "organization_name"),
}


class SimilarityOracle(Protocol):
    """Anything that can answer "are these two records the same item?"."""

    async def is_duplicate(self, description_a: str, description_b: str) -> bool: ...


def describe_record(kind: EntityKind, record: Mapping[str, Any]) -> str:
    """Render a record as a short natural-language line for the oracle.

    Account-like identifiers go out masked to their last digits.
    """
    parts = [kind.value.replace("_", " ")]
    for field in _DESCRIBED_FIELDS[kind]:
        value = record.get(field)
        if value is None or value == "":
            continue
        if field in SENSITIVE_KEYS:
            value = mask_account_number(str(value))
        parts.append(f"{field.replace('_', ' ')}: {value}")
    return "; ".join(parts)


def parse_verdict(content: str) -> bool:
    """Interpret a yes/no model reply."""
    words = re.findall(r"[a-z]+", content.lower())
    answer = words[0] if words else ""
    if answer == "yes":
        return True
    if answer == "no":
        return False
    raise OracleUnavailable(f"Unparseable oracle reply: {content[:50]!r}")


class OpenRouterSimilarityOracle:
    """Binary duplicate classifier over OpenRouter chat completions.

    Deterministic settings (temperature 0, a handful of output tokens) and a
    single attempt per call: transport errors and timeouts surface as
    ``OracleUnavailable`` / ``OracleTimeout`` for the caller to fall back on.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        max_tokens: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.openrouter_api_key
        self.base_url = (base_url or settings.openrouter_base_url).rstrip("/")
        self.model = model or settings.primary_model
        self.timeout = timeout if timeout is not None else settings.oracle_timeout_seconds
        self.max_tokens = max_tokens if max_tokens is not None else settings.oracle_max_tokens
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": "https://fintrack.local",
            "X-Title": "Fintrack Backend",
        }

    @log_external_api("openrouter")
    async def is_duplicate(self, description_a: str, description_b: str) -> bool:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": DUPLICATE_SYSTEM_PROMPT},
                {"role": "user", "content": get_duplicate_prompt(description_a, description_b)},
            ],
            "temperature": 0,
            "max_tokens": self.max_tokens,
            "stream": False,
        }
        timeout_config = httpx.Timeout(self.timeout, connect=min(self.timeout, 5.0))

        try:
            async with httpx.AsyncClient(timeout=timeout_config, transport=self._transport) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers=self._headers(),
                    json=payload,
                )
        except httpx.TimeoutException as exc:
            raise OracleTimeout(f"Oracle timed out after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            raise OracleUnavailable(f"Oracle request failed: {exc}") from exc

        if response.status_code != 200:
            raise OracleUnavailable(f"Oracle returned HTTP {response.status_code}")

        try:
            content = response.json()["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise OracleUnavailable("Malformed oracle response") from exc

        verdict = parse_verdict(content)
        logger.debug("Oracle verdict", model=self.model, verdict=verdict)
        return verdict


def get_similarity_oracle() -> SimilarityOracle | None:
    """Return the configured oracle, or None when no API key is set."""
    if not settings.oracle_enabled:
        return None
    return OpenRouterSimilarityOracle()
