# travel_copilot/llm.py
import os
import json
import logging
from typing import List, Dict, Any, Optional, Sequence

import httpx
from openai import APIConnectionError, APIStatusError, AsyncOpenAI, RateLimitError

from travel_copilot.config import GeneratorConfig

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
    logger.addHandler(handler)
_level = os.getenv("TRAVEL_COPILOT_LOG_LEVEL", "INFO").upper()
logger.setLevel(getattr(logging, _level, logging.INFO))
logger.propagate = False

ITINERARY_PROMPT = """You are an expert Travel Agent with real-time knowledge.
CONTEXT:
- User Language: {language}
- Route: {from_city} to {to_city}
- Preference: {tradeoff}% (0=Budget, 100=Luxury)
{customer_line}
TASK:
1. Provide the BEST travel options for ALL THREE modes: FLIGHT, TRAIN, and BUS for this route.
2. For EACH mode, generate at least one recommendation.
3. Total of 3-5 distinct options.
4. LOCAL AMENITIES: Identify nearest hospital and a recommended cafe for each hotel.
5. BOOKING TIPS: Mention cancellation/insurance.

OUTPUT FORMAT (JSON ONLY):
{{
  "summaries": {{"plane": "...", "train": "...", "bus": "..."}},
  "options": [
    {{
      "type": "budget|balanced|comfort",
      "transport": {{"mode": "plane|train|bus", "name": "Operator Name", "number": "Number",
                     "depTime": "HH:MM", "arrTime": "HH:MM", "duration": "XH YM",
                     "price": 1234, "comfortRating": 4}},
      "hotel": {{"name": "Hotel Name", "price": 1234, "rating": 3.5,
                 "nearestHospital": "Name", "recommendedCafe": "Name"}},
      "description": "Short reasoning",
      "bookingTips": "Tips"
    }}
  ]
}}
"""

GATEWAY_SYSTEM_PROMPT = """You are an AI Travel Copilot assistant for travel agents.
Language: Respond in {language}.
Current preference setting: {tradeoff}% (0 = Budget focused, 50 = Balanced, 100 = Comfort focused)

TASK:
1. Provide the BEST travel options across ALL THREE modes: FLIGHT, TRAIN, and BUS for the requested route.
2. For each mode, provide the most relevant recommendation.
3. Compare them based on price, duration, and comfort.
4. LOCAL AMENITIES: Identify the nearest hospital and a recommended cafe near the destination hotel.
5. BOOKING TIPS: Include cancellation policies, insurance, and document requirements.

Use plain text with clear section headers, no markdown emphasis around links, and
include real booking URLs (makemytrip.com for flights, irctc.co.in for trains,
redbus.in for buses). For each mode list Operator, Duration, Price in INR, Hotel,
Hospital, Cafe and a Booking Tip, then finish with MY RECOMMENDATION comparing the
modes against the preference setting.
"""

GATEWAY_EMPTY_REPLY = "I apologize, but I could not generate a response. Please try again."


class GatewayError(Exception):
    """Gateway failure carrying the HTTP status to report to the caller."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


def build_itinerary_prompt(
    user_message: str,
    *,
    language: str,
    from_city: str,
    to_city: str,
    tradeoff: int,
    customer_context: str = "",
) -> str:
    customer_line = f"- CUSTOMER PROFILE: {customer_context}\n" if customer_context else ""
    prompt = ITINERARY_PROMPT.format(
        language=language,
        from_city=from_city,
        to_city=to_city,
        tradeoff=tradeoff,
        customer_line=customer_line,
    )
    return f"{prompt}\n\nUser Request: {user_message}"


class GeminiClient:
    """Thin REST client for the ``generateContent`` endpoint."""

    def __init__(self, config: GeneratorConfig):
        self.config = config

    async def generate(self, model: str, prompt: str) -> Optional[str]:
        """Try each endpoint variant for ``model`` and return the candidate text.

        Returns ``None`` when every variant answers with a non-2xx status or an
        empty candidate. Transport errors propagate to the caller.
        """
        body = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        async with httpx.AsyncClient(timeout=self.config.timeout) as client:
            for template in self.config.endpoint_variants:
                url = template.format(model=model)
                response = await client.post(
                    url,
                    params={"key": self.config.api_key},
                    json=body,
                    headers={"Content-Type": "application/json"},
                )
                if response.status_code >= 400:
                    logger.warning("Model %s rejected at %s with HTTP %s", model, url, response.status_code)
                    continue
                return candidate_text(response.json())
        return None


def candidate_text(data: Any) -> Optional[str]:
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) and text.strip() else None


def extract_json_object(text: str) -> Dict[str, Any]:
    """Parse the first balanced ``{...}`` span in ``text``.

    Models often wrap the JSON in prose or code fences; braces inside string
    literals are ignored while matching. Raises ``ValueError`` when no object
    can be recovered.
    """
    start = text.find("{")
    if start < 0:
        parsed = json.loads(text)
    else:
        parsed = json.loads(_balanced_span(text, start))
    if not isinstance(parsed, dict):
        raise ValueError("model response is not a JSON object")
    return parsed


def _balanced_span(text: str, start: int) -> str:
    depth = 0
    in_string = False
    escaped = False
    for pos in range(start, len(text)):
        char = text[pos]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : pos + 1]
    raise ValueError("unbalanced JSON object in model response")


async def call_gateway(
    messages: Sequence[Dict[str, str]],
    *,
    api_key: Optional[str],
    base_url: str,
    model: str,
    language: Optional[str] = None,
    tradeoff: Optional[int] = None,
) -> str:
    """Chat completion through the OpenAI-compatible AI gateway.

    Raises :class:`GatewayError` with 429 for rate limits, 402 when credits
    are exhausted and 500 for everything else.
    """
    if not api_key:
        raise GatewayError("AI gateway key is not configured", 500)

    system_prompt = GATEWAY_SYSTEM_PROMPT.format(
        language=language or "English",
        tradeoff=tradeoff if tradeoff is not None else 50,
    )
    logger.info("Invoking gateway model %s with %d message(s)", model, len(messages))
    try:
        async with AsyncOpenAI(api_key=api_key, base_url=base_url) as client:
            resp = await client.chat.completions.create(
                model=model,
                messages=[{"role": "system", "content": system_prompt}, *messages],
                temperature=0.7,
                max_tokens=2000,
            )
    except RateLimitError as exc:
        logger.warning("Gateway rate limit hit: %s", exc)
        raise GatewayError("Rate limit exceeded. Please try again later.", 429) from exc
    except APIStatusError as exc:
        if exc.status_code == 402:
            logger.warning("Gateway credits exhausted")
            raise GatewayError("AI credits exhausted. Please add credits to continue.", 402) from exc
        logger.error("Gateway error %s: %s", exc.status_code, exc)
        raise GatewayError(f"AI gateway error: {exc.status_code}", 500) from exc
    except APIConnectionError as exc:
        logger.error("Gateway unreachable: %s", exc)
        raise GatewayError("AI gateway is unreachable", 500) from exc

    choices: List[Any] = list(resp.choices or [])
    content = choices[0].message.content if choices else None
    return content or GATEWAY_EMPTY_REPLY
