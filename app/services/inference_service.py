"""
Merchant Inference Service - LLM-backed categorization for unknown merchants.

Third tier of the merchant categorizer. Asks the model for a canonical
category key, a cleaned merchant name and a confidence, and validates the
answer before handing it back.

Architectural Decisions:
- Canonical keys only: the prompt lists the exact category keys the engine accepts
- Fail loudly to the caller: every failure surfaces as InferenceServiceError so the
  categorizer can degrade to its fallback answer
- Works without an API key: the client is only built when OPENAI_API_KEY is set
"""

import json
import os
import logging
from typing import Any, Optional

from openai import OpenAI, APIError, APITimeoutError
from pydantic import ValidationError

from cardmatch.categories import CANONICAL_CATEGORIES, CanonicalCategory, display_name
from cardmatch.merchants import InferenceServiceError
from cardmatch.models import CategorizationContext, InferenceResult

logger = logging.getLogger(__name__)


# =============================================================================
# LLM Configuration
# =============================================================================

class LLMConfig:
    """Centralized LLM settings with environment variable overrides"""
    MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini")

    # Low temperature keeps category answers stable across calls
    _default_temperature = 0.3
    try:
        TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", str(_default_temperature)))
    except (TypeError, ValueError):
        logger.warning(
            "Invalid LLM_TEMPERATURE value; falling back to default %s",
            _default_temperature,
        )
        TEMPERATURE = _default_temperature

    _default_max_tokens = 300
    try:
        MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", str(_default_max_tokens)))
    except (TypeError, ValueError):
        logger.warning(
            "Invalid LLM_MAX_TOKENS value; falling back to default %s",
            _default_max_tokens,
        )
        MAX_TOKENS = _default_max_tokens

    _default_timeout = 5
    try:
        TIMEOUT_SECONDS = int(os.getenv("LLM_TIMEOUT", str(_default_timeout)))
    except (TypeError, ValueError):
        logger.warning(
            "Invalid LLM_TIMEOUT value; falling back to default %s seconds",
            _default_timeout,
        )
        TIMEOUT_SECONDS = _default_timeout

    _default_max_retries = 1
    try:
        MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", str(_default_max_retries)))
    except (TypeError, ValueError):
        logger.warning(
            "Invalid LLM_MAX_RETRIES value; falling back to default %s",
            _default_max_retries,
        )
        MAX_RETRIES = _default_max_retries


# Initialize OpenAI client (only if API key present)
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
openai_client = None

if OPENAI_API_KEY:
    try:
        openai_client = OpenAI(
            api_key=OPENAI_API_KEY,
            timeout=float(LLMConfig.TIMEOUT_SECONDS),
            max_retries=LLMConfig.MAX_RETRIES,
        )
        logger.info("OpenAI client initialized with model: %s", LLMConfig.MODEL)
    except Exception as e:
        logger.warning("Failed to initialize OpenAI client: %s. Merchant inference disabled.", e)
else:
    logger.warning(
        "OPENAI_API_KEY not set. Unknown merchants will be categorized as 'other'. "
        "Set the environment variable to enable AI-powered categorization."
    )


SYSTEM_PROMPT = (
    "You categorize Indian credit card transactions by merchant. "
    "Respond with a single JSON object and nothing else."
)

RECENT_TRANSACTION_LIMIT = 5

AMOUNT_CONTEXT_RULES = (
    "Small amounts (₹50-500) at food merchants are likely snacks or quick meals",
    "Medium amounts (₹500-2,000) at food merchants are full meals or group orders",
    "Very small amounts (₹10-100) at any merchant are likely tips, micro-transactions or tests",
    "Merchants that recur in the recent transactions are subscriptions or regular purchases",
    "Credits (refunds, cashback) are still categorized by the merchant's business",
    "₹5,000+ at Amazon is likely electronics; ₹200-1,000 is general shopping",
)

# Canonical key -> well-known Indian merchants
COMMON_MERCHANTS = {
    CanonicalCategory.FOOD_DINING: "Swiggy, Zomato, McDonald's, KFC, Domino's, Starbucks, local restaurants",
    CanonicalCategory.SHOPPING_ONLINE: "Amazon, Flipkart, Myntra, Ajio, Nykaa, Meesho",
    CanonicalCategory.GROCERIES: "Zepto, Blinkit, BigBasket, Swiggy Instamart, DMart",
    CanonicalCategory.FUEL: "Indian Oil, HPCL, BPCL, Shell, Uber, Ola, Rapido",
    CanonicalCategory.ENTERTAINMENT: "Netflix, Prime Video, Hotstar, Spotify, BookMyShow, gaming",
    CanonicalCategory.BILLS_UTILITIES: "Airtel, Jio, Vi, BSNL, electricity boards, piped gas",
    CanonicalCategory.INVESTMENTS: "insurance premiums, mutual funds, Zerodha, Groww",
    CanonicalCategory.HEALTH: "Apollo, Practo, 1mg, PharmEasy, hospitals, clinics",
    CanonicalCategory.EDUCATION: "Coursera, Udemy, Byju's, Unacademy, school fees",
    CanonicalCategory.TRAVEL: "MakeMyTrip, Goibibo, IRCTC, OYO, IndiGo, hotels, airlines",
    CanonicalCategory.FOREX: "foreign currency transactions, overseas merchants",
}


# =============================================================================
# Inference Service
# =============================================================================

class OpenAIMerchantInference:
    """
    Merchant inference backed by the OpenAI chat completions API.

    Usage:
        inference = OpenAIMerchantInference()
        result = inference.infer("SWIGGY*ORDER 1234")
    """

    def __init__(self, client: Optional[Any] = None):
        # None means "use the module client", resolved per call
        self._client = client

    @property
    def client(self):
        return self._client if self._client is not None else openai_client

    def infer(
        self,
        merchant_name: str,
        context: Optional[CategorizationContext] = None,
    ) -> InferenceResult:
        """
        Infer a merchant's canonical category.

        Raises:
            InferenceServiceError: On missing client, timeout, API error, empty
                or unparseable response
        """
        client = self.client
        if client is None:
            raise InferenceServiceError("Inference client not configured (OPENAI_API_KEY not set)")

        prompt = self._build_prompt(merchant_name, context)
        try:
            response = client.chat.completions.create(
                model=LLMConfig.MODEL,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=LLMConfig.TEMPERATURE,
                max_tokens=LLMConfig.MAX_TOKENS,
            )
        except APITimeoutError as e:
            logger.warning("OpenAI API timeout after %ss categorizing %r", LLMConfig.TIMEOUT_SECONDS, merchant_name)
            raise InferenceServiceError("Inference timed out") from e
        except APIError as e:
            logger.error("OpenAI API error categorizing %r: %s", merchant_name, e)
            raise InferenceServiceError(f"Inference API error: {e}") from e

        try:
            content = (response.choices[0].message.content or "").strip()
        except (IndexError, AttributeError, TypeError) as e:
            logger.error("LLM returned a completion without a message for %r", merchant_name)
            raise InferenceServiceError("Inference response had no message") from e
        if not content:
            logger.warning("LLM returned empty response for %r", merchant_name)
            raise InferenceServiceError("Inference returned an empty response")

        result = self._parse(content)
        logger.info(
            "LLM categorized %r as %s (confidence %.2f, model %s)",
            merchant_name,
            result.category,
            result.confidence,
            LLMConfig.MODEL,
        )
        return result

    def _build_prompt(self, merchant_name: str, context: Optional[CategorizationContext]) -> str:
        categories = "\n".join(f"- {category.value}: {display_name(category)}" for category in CANONICAL_CATEGORIES)

        prompt = f"""Categorize this merchant from an Indian bank statement.

Merchant: {merchant_name}"""

        if context is not None:
            if context.amount is not None:
                prompt += f"\nAmount: ₹{context.amount:,.2f}"
            if context.transaction_type:
                prompt += f"\nTransaction type: {context.transaction_type}"
            if context.date:
                prompt += f"\nDate: {context.date}"
            if context.recent_transactions:
                prompt += "\n\nRecent transactions from the same user:"
                for txn in context.recent_transactions[:RECENT_TRANSACTION_LIMIT]:
                    prompt += f"\n- {txn.get('merchant', 'unknown')}: {txn.get('category', 'unknown')}"

        rules = "\n".join(f"- {rule}" for rule in AMOUNT_CONTEXT_RULES)
        merchants = "\n".join(f"- {category.value}: {examples}" for category, examples in COMMON_MERCHANTS.items())

        prompt += f"""

Allowed category keys:
{categories}

Context rules:
{rules}

Common Indian merchants by category key:
{merchants}

Return JSON with exactly these fields:
{{"category": "<one allowed key>", "subcategory": "<short label or null>", "merchant_normalized": "<clean brand name>", "confidence": <0.0 to 1.0>, "reasoning": "<one sentence>"}}

Use "other" with a low confidence when the merchant is unrecognizable."""

        return prompt

    @staticmethod
    def _parse(content: str) -> InferenceResult:
        text = content
        if text.startswith("```"):
            # Strip markdown code fences around the JSON body
            text = text.strip("`").strip()
            if text.lower().startswith("json"):
                text = text[4:].strip()

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            logger.error("LLM returned non-JSON response: %s", content[:200])
            raise InferenceServiceError("Inference response was not valid JSON") from e

        if not isinstance(payload, dict):
            raise InferenceServiceError("Inference response was not a JSON object")

        try:
            return InferenceResult.model_validate(payload)
        except ValidationError as e:
            logger.error("LLM response failed validation: %s", e)
            raise InferenceServiceError("Inference response failed validation") from e
