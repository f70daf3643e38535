"""Chat-completions LLM adapter.

This module implements the LLMProvider protocol against any endpoint that
speaks the OpenAI chat-completions wire format.

Two call shapes are offered:
- ``analyze_receipt``: normalize raw OCR text into a fixed receipt layout,
  at low temperature to keep extraction stable
- ``chat_reply``: a short conversational answer

Provider failures never escape this module. A non-success status, an
``error`` payload, a transport error or an unreadable body all produce a
degraded result that can still be delivered to the user.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import date
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from ...config.schema import LLMConfig
from ...models.results import AnalysisResult, ChatResult, LLMResult, TokenUsage
from ...utils.async_helpers import LLMError

if TYPE_CHECKING:
    from ...models.context import CorrelationContext

log = structlog.get_logger()

ANALYZE_FALLBACK_PREFIX = "⚠️ AI Analysis Failed. Raw Text:\n"
ANALYZE_EMPTY_TEXT = "⚠️ AI could not analyze the text."
CHAT_FALLBACK_TEXT = "⚠️ AI reply failed. Please try again."
CHAT_EMPTY_TEXT = "⚠️ I could not generate a reply."

RECEIPT_SYSTEM_PROMPT = """\
You are an expert OCR Data Extraction Auditor. Your goal is to extract precise \
structured data from receipts/invoices.

**Current Server Date:** {today} (YYYY-MM-DD)
*Use this date to infer the year if missing, or to validate that the transaction \
date is not in the distant future.*

**Critical Instruction: Chain-of-Thought Analysis**
Before extracting the final data, you MUST perform a "Context Analysis" to resolve \
ambiguities.

**Step 1: Infer Region & Country**
Analyze currency symbols, phone codes, addresses, and language.
- Japan (JP): Look for Yen symbol (¥), Katakana/Hiragana/Kanji, or "+81".
- China (CN): Look for Simplified Chinese, "+86".
- Korea (KR): Look for Hangul, Won symbol (₩), "+82".
- Singapore (SG): Look for "S$", "SGD", "+65".
- Hong Kong (HK): Look for "HK$", Traditional Chinese, "+852".
- United Kingdom (UK): Look for "£", "GBP", "+44".
- United States (US): Look for "$" with US addresses or "+1".

**Step 2: Extract Data Based on Region (Date Format Rules)**
- **Store Name**: Look for the most prominent text header.
- **Date**: Extract and convert strictly to **YYYY-MM-DD**.
  - **China (CN) / Japan (JP) / Korea (KR)**:
    - The format is STRICTLY **Year-Month-Day** (Big-Endian).
    - **CRITICAL RULE**: If you see a format like "XX/XX/XX" (e.g., "26/01/22") in \
these regions, the **FIRST** number is the YEAR.
    - *Example*: "26/01/22" in Japan = 2026-01-22. (Do NOT interpret as 22nd Jan 2026).
  - **Singapore (SG) / UK / Hong Kong (HK)**:
    - The format is usually **Day-Month-Year** (Little-Endian).
    - *Example*: "26/01/22" in UK = 2022-01-26.
  - **USA (US)**:
    - The format is usually **Month-Day-Year** (Middle-Endian).
- **Items**: Summarize key purchases.
- **Total**: Amount + Currency Code (ISO 4217, e.g., SGD, HKD, USD, JPY, CNY).

**Step 3: Final Output Format**
Output ONLY the final result in the following clean Markdown format \
(No JSON, No introductory text):

*Receipt Summary*
*Store*: [Store Name]
*Country*: [Country Code]
*Date*: [YYYY-MM-DD]
-------------------
[Item Name]   [Price]
...
-------------------
*Total*: [Currency] [Amount]
"""

RECEIPT_USER_TEMPLATE = (
    "Analyze this raw OCR text:\n\n{ocr_text}\n\n"
    "Remember: Infer the region first to decide if date is DD/MM or MM/DD."
)

CHAT_SYSTEM_PROMPT = """\
You are a helpful assistant. Reply in a conversational, friendly tone.
Keep answers concise and ask a short follow-up question if it helps clarify \
the user's intent.
"""


# Pydantic models for provider response validation
class ChatCompletionMessage(BaseModel):
    """Message of a completion choice."""

    content: str | None = None


class ChatCompletionChoice(BaseModel):
    """One completion choice."""

    message: ChatCompletionMessage | None = None


class ChatCompletionUsage(BaseModel):
    """Token usage counters."""

    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


class ChatCompletionResponse(BaseModel):
    """Validated chat-completions response body."""

    choices: list[ChatCompletionChoice] = []
    usage: ChatCompletionUsage | None = None
    error: Any = None

    @property
    def content(self) -> str | None:
        """Content of the first choice, if any."""
        if not self.choices or self.choices[0].message is None:
            return None
        return self.choices[0].message.content


def _error_message(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(error)


class ChatCompletionsClient:
    """Chat-completions adapter implementing the LLMProvider protocol.

    Example:
        client = ChatCompletionsClient(LLMConfig(api_key="sk-..."), http_client)
        result = await client.analyze_receipt(ocr_text)
        print(result.text)
    """

    def __init__(
        self,
        config: LLMConfig,
        client: httpx.AsyncClient,
        today: Callable[[], date] = date.today,
    ) -> None:
        """Initialize the client.

        Args:
            config: LLM endpoint configuration.
            client: Shared HTTP client.
            today: Source of the current date used in the receipt prompt.
        """
        self._config = config
        self._client = client
        self._today = today

    @property
    def model_name(self) -> str:
        """Return the model identifier being used."""
        return self._config.model

    def build_request(
        self,
        system_prompt: str,
        user_content: str,
        temperature: float,
    ) -> dict[str, Any]:
        """Build the chat-completions request body."""
        return {
            "model": self._config.model,
            "temperature": temperature,
            "stream": False,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
        }

    async def _complete(
        self,
        payload: dict[str, Any],
        ctx: CorrelationContext | None,
        mode: str,
    ) -> ChatCompletionResponse:
        """Post a request and validate the response.

        Raises:
            LLMError: On any provider failure.
        """
        bound = (ctx.extend(mode=mode).bind(log)) if ctx else log.bind(mode=mode)
        started = time.monotonic()

        try:
            response = await self._client.post(
                self._config.api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self._config.api_key}"},
                timeout=self._config.timeout,
            )
        except httpx.HTTPError as e:
            bound.error("llm_transport_error", error=str(e), error_type=type(e).__name__)
            raise LLMError(f"LLM request failed: {e}") from e

        elapsed_ms = round((time.monotonic() - started) * 1000, 1)

        try:
            data = response.json()
        except ValueError as e:
            bound.error(
                "llm_invalid_json",
                status_code=response.status_code,
                body_preview=response.text[:200],
                elapsed_ms=elapsed_ms,
            )
            raise LLMError(f"LLM returned invalid JSON (status {response.status_code})") from e

        if isinstance(data, dict) and data.get("error"):
            message = _error_message(data["error"])
            bound.error(
                "llm_api_error",
                status_code=response.status_code,
                error=message,
                elapsed_ms=elapsed_ms,
            )
            raise LLMError(message or "LLM API returned an error")

        if not response.is_success:
            bound.error(
                "llm_http_error",
                status_code=response.status_code,
                body_preview=response.text[:200],
                elapsed_ms=elapsed_ms,
            )
            raise LLMError(f"LLM API returned status {response.status_code}")

        try:
            parsed = ChatCompletionResponse.model_validate(data)
        except ValidationError as e:
            bound.error("llm_validation_error", error=str(e))
            raise LLMError(f"LLM response failed validation: {e}") from e

        usage = parsed.usage
        bound.info(
            "llm_request_complete",
            model=self._config.model,
            status_code=response.status_code,
            elapsed_ms=elapsed_ms,
            prompt_tokens=usage.prompt_tokens if usage else None,
            completion_tokens=usage.completion_tokens if usage else None,
        )
        return parsed

    async def analyze_receipt(
        self,
        ocr_text: str,
        ctx: CorrelationContext | None = None,
    ) -> AnalysisResult:
        """Normalize raw OCR text into a receipt summary.

        Args:
            ocr_text: Recognized text, one detection per line.
            ctx: Correlation context for logging.

        Returns:
            The summary, or the raw OCR text behind a failure notice when the
            provider call fails.
        """
        system_prompt = RECEIPT_SYSTEM_PROMPT.format(today=self._today().isoformat())
        payload = self.build_request(
            system_prompt,
            RECEIPT_USER_TEMPLATE.format(ocr_text=ocr_text),
            self._config.analyze_temperature,
        )

        try:
            response = await self._complete(payload, ctx, mode="analyze")
        except LLMError:
            return LLMResult(text=f"{ANALYZE_FALLBACK_PREFIX}{ocr_text}", degraded=True)
        except Exception as e:
            log.exception("llm_unexpected_error", mode="analyze", error=str(e))
            return LLMResult(text=f"{ANALYZE_FALLBACK_PREFIX}{ocr_text}", degraded=True)

        usage = response.usage.model_dump() if response.usage else None
        return LLMResult(
            text=response.content or ANALYZE_EMPTY_TEXT,
            usage=TokenUsage.from_payload(usage),
        )

    async def chat_reply(
        self,
        user_text: str,
        ctx: CorrelationContext | None = None,
    ) -> ChatResult:
        """Produce a short conversational reply.

        Args:
            user_text: The user's message without mention tokens.
            ctx: Correlation context for logging.

        Returns:
            The reply, or a fixed apology when the provider call fails.
        """
        payload = self.build_request(
            CHAT_SYSTEM_PROMPT,
            user_text,
            self._config.chat_temperature,
        )

        try:
            response = await self._complete(payload, ctx, mode="chat")
        except LLMError:
            return LLMResult(text=CHAT_FALLBACK_TEXT, degraded=True)
        except Exception as e:
            log.exception("llm_unexpected_error", mode="chat", error=str(e))
            return LLMResult(text=CHAT_FALLBACK_TEXT, degraded=True)

        usage = response.usage.model_dump() if response.usage else None
        return LLMResult(
            text=response.content or CHAT_EMPTY_TEXT,
            usage=TokenUsage.from_payload(usage),
        )
