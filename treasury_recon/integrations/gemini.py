"""
Gemini client that asks the model for ledger-to-bank match suggestions.
"""

import json
from typing import Any, Dict, List, Optional, Sequence

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential
from tenacity.wait import wait_base

from ..config import get_settings
from ..models import BankTransaction, LedgerTransaction, MatchedPair
from .base import MatchingServiceError, bank_record, ledger_record

logger = structlog.get_logger()


RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "crimsonTransactionId": {
                "type": "STRING",
                "description": "The unique ID of the matched Crimson transaction.",
            },
            "bankTransactionId": {
                "type": "ARRAY",
                "items": {"type": "STRING"},
                "description": (
                    "An array of unique IDs of the matched Bank transaction(s). "
                    "ALWAYS use an array, even for a single match."
                ),
            },
            "confidenceScore": {
                "type": "NUMBER",
                "description": "A score from 0 to 1 indicating the confidence of the match.",
            },
            "reasoning": {
                "type": "STRING",
                "description": "A brief explanation for why the transactions were matched.",
            },
        },
        "required": ["crimsonTransactionId", "bankTransactionId", "confidenceScore", "reasoning"],
    },
}

PROMPT_TEMPLATE = """
You are an expert accounting assistant for political campaigns. Your task is to find matching financial records to help with reconciliation.
Analyze the two JSON arrays of transactions: 'crimsonTransactions' (internal ledger) and 'bankTransactions' (bank statement).

Match transactions from 'crimsonTransactions' to one or more transactions in 'bankTransactions'.

Matching criteria:
1.  **Amount:** A positive amount in Crimson should match a positive amount in the Bank. A negative amount should match a negative amount.
2.  **Date Proximity:** Dates should be very close, ideally the same day or within a 2-3 day window.
3.  **Aggregations & Splits:**
    - A single Crimson transaction may match a sum of multiple Bank transactions.
    - A single Bank deposit (positive amount) may be the sum of multiple Crimson contributions.
    - A single bank payout (like 'WINRED PAYOUT') may correspond to multiple Crimson entries (e.g., a gross receipt, a chargeback, and fees).
4.  **Description:** Use keywords in the bank description to help identify matches. E.g., 'DEPOSIT' links to contributions/receipts, 'NSF' or 'CHGBK' to chargebacks.

Return an array of matched pairs in the specified JSON schema. Only return high-confidence matches (confidenceScore > {threshold}). If no matches are found, return an empty array.
For 'bankTransactionId', ALWAYS return an array of strings, even if there's only one matching bank transaction.

Here is the data:
```json
{data}
```
"""


class SuggestionPayload(BaseModel):
    """One element of the model's JSON answer."""
    model_config = ConfigDict(populate_by_name=True)

    crimson_transaction_id: str = Field(alias="crimsonTransactionId", min_length=1)
    bank_transaction_id: List[str] = Field(alias="bankTransactionId")
    confidence_score: float = Field(alias="confidenceScore", ge=0.0, le=1.0)
    reasoning: str = ""

    @field_validator("bank_transaction_id", mode="before")
    @classmethod
    def _wrap_single_id(cls, value):
        if isinstance(value, str):
            return [value]
        return value

    def to_pair(self) -> MatchedPair:
        return MatchedPair(
            ledger_transaction_id=self.crimson_transaction_id,
            bank_transaction_ids=tuple(self.bank_transaction_id),
            confidence_score=self.confidence_score,
            reasoning=self.reasoning,
        )


_payload_list = TypeAdapter(List[SuggestionPayload])


class GeminiMatchClient:
    """
    Client for the Gemini generateContent REST endpoint.
    Handles authentication, retries and response validation.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_wait: Optional[wait_base] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = get_settings()
        self.api_key = api_key or self.settings.ai_api_key
        self.model = model or self.settings.ai_model
        self.base_url = base_url or self.settings.ai_api_url
        self.timeout = timeout or self.settings.ai_timeout_seconds
        self.max_retries = max_retries or self.settings.ai_max_retries
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=2, max=10)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "x-goog-api-key": self.api_key or "",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "GeminiMatchClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def build_prompt(
        self,
        ledger: Sequence[LedgerTransaction],
        bank: Sequence[BankTransaction],
    ) -> str:
        data = json.dumps(
            {
                "crimsonTransactions": [ledger_record(t) for t in ledger],
                "bankTransactions": [bank_record(t) for t in bank],
            },
            indent=2,
        )
        return PROMPT_TEMPLATE.format(
            threshold=self.settings.suggestion_confidence_threshold,
            data=data,
        )

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Make one authenticated generateContent call."""
        client = await self._get_client()
        endpoint = f"/models/{self.model}:generateContent"

        try:
            response = await client.post(endpoint, json=payload)
        except httpx.TimeoutException:
            raise MatchingServiceError("Request timeout", retryable=True)
        except httpx.RequestError as e:
            raise MatchingServiceError(f"Request error: {str(e)}", retryable=True)

        if response.status_code in (401, 403):
            raise MatchingServiceError(
                "Authentication failed. Check the AI API key.",
                status_code=response.status_code,
            )

        if response.status_code >= 400:
            error_detail: Any = response.text
            try:
                error_detail = response.json()
            except ValueError:
                pass
            raise MatchingServiceError(
                f"API error: {response.status_code}",
                status_code=response.status_code,
                details=error_detail,
                retryable=response.status_code == 429 or response.status_code >= 500,
            )

        try:
            return response.json()
        except ValueError:
            raise MatchingServiceError("API returned a non-JSON body", status_code=response.status_code)

    async def _generate(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Call the API, retrying transient failures."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=self.retry_wait,
            retry=retry_if_exception(
                lambda e: isinstance(e, MatchingServiceError) and e.retryable
            ),
            reraise=True,
        ):
            with attempt:
                return await self._post(payload)

    async def suggest_matches(
        self,
        ledger: Sequence[LedgerTransaction],
        bank: Sequence[BankTransaction],
    ) -> List[MatchedPair]:
        """
        Ask the model for match suggestions.

        Returns every well-formed pair the model produced; confidence
        filtering is left to the caller. Raises MatchingServiceError on any
        failure, including malformed output.
        """
        if not self.api_key:
            raise MatchingServiceError("No AI API key configured")

        if not ledger or not bank:
            return []

        payload = {
            "contents": [{"role": "user", "parts": [{"text": self.build_prompt(ledger, bank)}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
                "temperature": self.settings.ai_temperature,
            },
        }

        logger.info(
            "Requesting AI match suggestions",
            model=self.model,
            ledger=len(ledger),
            bank=len(bank),
        )
        data = await self._generate(payload)
        pairs = self._parse_response(data)
        logger.info("AI match suggestions received", pairs=len(pairs))
        return pairs

    @staticmethod
    def _parse_response(data: Dict[str, Any]) -> List[MatchedPair]:
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise MatchingServiceError("AI returned no candidate text", details=data)

        text = (text or "").strip()
        if not text:
            raise MatchingServiceError("AI returned an empty response")
        if not (text.startswith("[") and text.endswith("]")):
            raise MatchingServiceError("AI response is not a JSON array", details=text)

        try:
            payloads = _payload_list.validate_json(text)
        except ValidationError as e:
            raise MatchingServiceError(
                "AI response does not match the suggestion schema",
                details=e.errors(include_url=False),
            )

        return [p.to_pair() for p in payloads]
