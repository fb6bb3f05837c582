"""
Discovery agent: asks an LLM research provider for dog-friendly establishments.

discover_places() runs one provider call for a city + category set and
returns a ResearchResult. Provider failures (auth, network, rate limit,
timeout) never raise out of it: the result comes back with status "failed",
zero places and the error message. research_city() walks categories
sequentially with a fixed delay between calls; one category failing does
not stop the others.

Retries live at the provider boundary (AnthropicResearchProvider): bounded
exponential backoff with jitter for 429 / 5xx / timeouts / connection
errors, immediate failure for auth and billing errors.
"""
import asyncio
import logging
import random
import time
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Protocol

import anthropic

from services.discovery.config import settings
from services.discovery.pipeline.candidates import CandidatePlace
from services.discovery.pipeline.categories import CATEGORIES, describe_category
from services.discovery.pipeline.city_configs import CityConfig, get_city_config
from services.discovery.pipeline.research_parser import parse_discovery_response
from services.discovery.pipeline.research_validator import validate_candidates

logger = logging.getLogger(__name__)

PROMPT_VERSION = "discovery-v2"
MAX_RETRIES = 3
RETRY_BACKOFF_BASE = 2.0
RETRY_JITTER_S = 1.0
DEFAULT_MAX_RESULTS = 20
DEFAULT_CITY_CATEGORIES = ("restaurants", "cafes", "parks", "hotels")
SUPPORTED_LANGUAGES = {"en": "English", "fr": "French"}

STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

_NON_RETRYABLE_PATTERNS = frozenset({
    "credit balance is too low", "invalid x-api-key", "invalid api key",
    "account has been disabled", "permission denied",
})
_NON_RETRYABLE_STATUS = frozenset({400, 401, 403, 404})


class ProviderError(Exception):
    """Discovery provider call failed (network, rate limit, timeout, bad response)."""


class NonRetryableProviderError(ProviderError):
    """Provider error that retrying will not fix (auth, billing, bad request)."""


# ---------------------------------------------------------------------------
# Provider boundary
# ---------------------------------------------------------------------------

@dataclass
class ProviderResponse:
    text: str
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class ResearchProvider(Protocol):
    async def complete(self, prompt: str, *, max_tokens: int) -> ProviderResponse:
        ...


def _retry_delay(attempt: int) -> float:
    return RETRY_BACKOFF_BASE ** (attempt + 1) + random.uniform(0, RETRY_JITTER_S)


class AnthropicResearchProvider:
    """ResearchProvider backed by the Anthropic Messages API."""

    def __init__(
        self,
        client: Optional[anthropic.AsyncAnthropic] = None,
        *,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout_s: Optional[float] = None,
        max_retries: int = MAX_RETRIES,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        # SDK-level retries are disabled; backoff is handled in complete().
        self.client = client or anthropic.AsyncAnthropic(api_key=api_key, max_retries=0)
        self.model = model or settings.research_model
        self.timeout_s = timeout_s or settings.provider_timeout_s
        self.max_retries = max(1, max_retries)
        self._sleep = sleep

    async def _create(self, prompt: str, max_tokens: int):
        return await asyncio.wait_for(
            self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": prompt}],
            ),
            timeout=self.timeout_s,
        )

    async def complete(self, prompt: str, *, max_tokens: int) -> ProviderResponse:
        last_error = "unknown error"
        for attempt in range(self.max_retries):
            try:
                message = await self._create(prompt, max_tokens)
            except (asyncio.TimeoutError, anthropic.APITimeoutError):
                last_error = f"provider call timed out after {self.timeout_s:.0f}s"
            except anthropic.APIConnectionError as exc:
                last_error = f"connection error: {exc}"
            except anthropic.APIStatusError as exc:
                body = str(exc.message or "").lower()
                if any(p in body for p in _NON_RETRYABLE_PATTERNS) or exc.status_code in _NON_RETRYABLE_STATUS:
                    raise NonRetryableProviderError(
                        f"HTTP {exc.status_code}: {str(exc.message)[:200]}") from exc
                if exc.status_code != 429 and exc.status_code < 500:
                    raise ProviderError(f"HTTP {exc.status_code}: {str(exc.message)[:200]}") from exc
                last_error = f"HTTP {exc.status_code}"
            else:
                text = "".join(
                    block.text for block in message.content if getattr(block, "type", None) == "text")
                return ProviderResponse(
                    text=text,
                    input_tokens=message.usage.input_tokens,
                    output_tokens=message.usage.output_tokens,
                )

            if attempt < self.max_retries - 1:
                wait = _retry_delay(attempt)
                logger.warning("Research provider %s, retrying in %.1fs (%d/%d)",
                               last_error, wait, attempt + 1, self.max_retries)
                await self._sleep(wait)

        raise ProviderError(f"Research provider failed after {self.max_retries} attempts: {last_error}")


def build_provider(api_key: Optional[str] = None) -> AnthropicResearchProvider:
    """Provider from settings. Raises ValueError when no API key is configured."""
    api_key = api_key or settings.anthropic_api_key
    if not api_key:
        raise ValueError("ANTHROPIC_API_KEY required")
    return AnthropicResearchProvider(api_key=api_key)


# ---------------------------------------------------------------------------
# Requests + results
# ---------------------------------------------------------------------------

@dataclass
class ResearchRequest:
    city_slug: str
    categories: list[str] = field(default_factory=list)
    max_results: int = DEFAULT_MAX_RESULTS
    language: str = "en"


@dataclass
class ResearchResult:
    task_id: str
    city_slug: str
    categories: list[str]
    status: str
    places: list[CandidatePlace] = field(default_factory=list)
    tokens_used: int = 0
    duration_ms: int = 0
    error: Optional[str] = None
    warnings: list[str] = field(default_factory=list)

    @property
    def places_found(self) -> int:
        return len(self.places)


@dataclass
class CityResearchSummary:
    city_slug: str
    results: list[ResearchResult] = field(default_factory=list)

    @property
    def places_found(self) -> int:
        return sum(r.places_found for r in self.results)

    @property
    def tokens_used(self) -> int:
        return sum(r.tokens_used for r in self.results)

    @property
    def failed_categories(self) -> list[str]:
        return [c for r in self.results if r.status == STATUS_FAILED for c in r.categories]


def _new_task_id() -> str:
    return f"research-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

def get_city_context(city: CityConfig) -> str:
    regs = city.regulations
    return (
        f"City: {city.name} ({city.name_fr})\n"
        f"Country: {city.country}\n"
        f"Currency: {city.currency}\n"
        f"Language: {', '.join(city.languages)}\n"
        f"Coordinates: {city.latitude}, {city.longitude}\n"
        "\n"
        "Dog Regulations:\n"
        f"- Leash required in public: {'Yes' if regs.leash_required else 'No'}\n"
        f"- Off-leash areas available: {'Yes' if regs.off_leash_areas else 'No'}\n"
        f"- Public transport: {regs.public_transport}"
    )


def build_discovery_prompt(request: ResearchRequest, city: CityConfig) -> str:
    categories = request.categories or [c.slug for c in CATEGORIES]
    category_lines = "\n".join(f"- {describe_category(c)}" for c in categories)
    primary = SUPPORTED_LANGUAGES.get(request.language, "English")
    localized = "English" if primary == "French" else "French"

    return f"""You are a research assistant helping to discover dog-friendly establishments in {city.name}.

{get_city_context(city)}

Your task is to identify REAL, EXISTING dog-friendly places in this city. Focus on these categories:
{category_lines}

For each place, provide:
1. Name (and the {localized} name if different)
2. Category (from the list above)
3. Full address, including postal code
4. Neighborhood
5. Phone number and website (if known)
6. Description of why it's dog-friendly, in {primary}
7. The same description in {localized}
8. Dog-friendly features: waterBowl, treats, outdoorSeating, indoorAllowed, offLeashArea, dogMenu, fenced, shadeAvailable
9. Price level (1-4, where 1=budget, 4=luxury)
10. Your confidence score (0-100) that this place exists and is dog-friendly
11. Brief reasoning for your confidence score

IMPORTANT GUIDELINES:
- Only include places you are confident actually exist
- Prefer well-known, established venues
- Focus on genuinely dog-welcoming places, not places that merely tolerate dogs
- If you're unsure about details, indicate lower confidence

Return your findings as a JSON array with this structure:
[
  {{
    "name": "Place Name",
    "localizedName": "{localized} name or null",
    "category": "{categories[0]}",
    "address": "Full Address, Postal Code, City",
    "neighborhood": "Neighborhood",
    "phone": "+XX XXX XXX XX XX",
    "website": "https://example.com",
    "description": "{primary} description of dog-friendliness",
    "localizedDescription": "{localized} description",
    "dogFeatures": {{"waterBowl": true, "treats": false, "outdoorSeating": true, "indoorAllowed": false,
                    "offLeashArea": false, "dogMenu": false, "fenced": false, "shadeAvailable": true}},
    "priceLevel": 2,
    "confidence": 85,
    "reasoning": "Why you believe this place exists and welcomes dogs"
  }}
]

Find up to {request.max_results} dog-friendly places. Only return the JSON array, no other text."""


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

async def discover_places(
    request: ResearchRequest,
    *,
    provider: ResearchProvider,
    max_tokens: Optional[int] = None,
) -> ResearchResult:
    """
    Run one discovery call. Raises UnknownCityError for an unknown city
    (before any provider call); every provider or parse failure becomes a
    failed result.
    """
    city = get_city_config(request.city_slug)
    prompt = build_discovery_prompt(request, city)
    task_id = _new_task_id()
    categories = list(request.categories)
    t0 = time.monotonic()

    logger.info("Research %s: city=%s categories=%s max=%d",
                task_id, request.city_slug, categories or "all", request.max_results)

    def _failed(error: str) -> ResearchResult:
        return ResearchResult(
            task_id=task_id, city_slug=request.city_slug, categories=categories,
            status=STATUS_FAILED, duration_ms=int((time.monotonic() - t0) * 1000), error=error)

    try:
        response = await provider.complete(prompt, max_tokens=max_tokens or settings.research_max_tokens)
        tokens_used = response.total_tokens
        places = parse_discovery_response(response.text)
    except ProviderError as exc:
        logger.error("Research %s failed: %s", task_id, exc)
        return _failed(str(exc))
    except Exception as exc:
        logger.exception("Research %s: unexpected provider error", task_id)
        return _failed(f"Unexpected provider error: {exc!r}")

    validation = validate_candidates(places, categories)
    duration_ms = int((time.monotonic() - t0) * 1000)

    logger.info("Research %s: %d places in %dms, %d tokens",
                task_id, len(places), duration_ms, tokens_used)

    return ResearchResult(
        task_id=task_id, city_slug=request.city_slug, categories=categories,
        status=STATUS_COMPLETED, places=places, tokens_used=tokens_used,
        duration_ms=duration_ms, warnings=validation.warnings)


async def research_city(
    city_slug: str,
    categories: Optional[list[str]] = None,
    max_per_category: int = 10,
    *,
    provider: ResearchProvider,
    language: str = "en",
    delay_s: Optional[float] = None,
    on_result: Optional[Callable[[ResearchResult], Awaitable[None]]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> CityResearchSummary:
    """
    Research one category at a time with a fixed delay between provider calls.

    on_result is awaited after each category so callers can persist results
    as they arrive. A category whose provider call or on_result fails is
    marked failed and the run moves on to the next one.
    """
    get_city_config(city_slug)
    categories = list(categories or DEFAULT_CITY_CATEGORIES)
    delay_s = settings.research_delay_s if delay_s is None else delay_s
    summary = CityResearchSummary(city_slug=city_slug)

    logger.info("=== City research: %s (%s) ===", city_slug, ", ".join(categories))

    for idx, category in enumerate(categories):
        result = await discover_places(
            ResearchRequest(city_slug=city_slug, categories=[category],
                            max_results=max_per_category, language=language),
            provider=provider,
        )
        summary.results.append(result)
        if on_result is not None:
            try:
                await on_result(result)
            except Exception as exc:
                logger.exception("Research %s: storing %s results failed", result.task_id, category)
                result.status = STATUS_FAILED
                result.error = f"Storing results failed: {exc!r}"

        if idx < len(categories) - 1 and delay_s > 0:
            await sleep(delay_s)

    logger.info("=== City research %s: places=%d tokens=%d failed=%s ===",
                city_slug, summary.places_found, summary.tokens_used,
                summary.failed_categories or "none")
    return summary
