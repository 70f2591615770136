"""
BuyerMatch service fit scorer - semantic comparison with a keyword fallback.

The semantic path asks an LLM whether the deal's services fit the tracker and
buyer criteria ("auto body" vs "collision repair"). Whenever it is unavailable,
rate limited, or returns garbage, the deterministic keyword path answers.
"""

import json
import os
import re
from abc import ABC, abstractmethod

import httpx
from openai import APIConnectionError, APIStatusError, OpenAI
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .logger import ProgressLogger
from .models import Alignment, Confidence, ServiceFitRequest, ServiceFitResult

NEUTRAL_SCORE = 50
CONFLICT_PENALTY = 30
REQUIRED_WEIGHT = 30
REQUIRED_FLAT_BONUS = 20
PREFERRED_WEIGHT = 15
BUYER_OVERLAP_WEIGHT = 10

INSUFFICIENT_DATA_REASON = "Insufficient data for service comparison"

_BUYER_SERVICE_SPLIT_RE = re.compile(r"[,;|]")
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


class SemanticScoringError(Exception):
    """Raised when the semantic scorer cannot produce a usable result."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def _clean_keywords(values: list[str]) -> list[str]:
    """Lowercase, trim, drop empties, keep first occurrence order."""
    seen: list[str] = []
    for value in values:
        cleaned = value.strip().lower()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen


def classify_alignment(score: int, matched: int, conflicts: int) -> Alignment:
    """Alignment label shared by both scoring paths."""
    if conflicts > matched:
        return "conflict"
    if score >= 80:
        return "strong"
    if score >= 60:
        return "good"
    if score < 40:
        return "weak"
    return "partial"


def _confidence_for(matched: int) -> Confidence:
    if matched > 2:
        return "high"
    if matched > 0:
        return "medium"
    return "low"


# =============================================================================
# STRATEGY INTERFACE
# =============================================================================


class ServiceScorer(ABC):
    """Abstract service-fit scorer."""

    @abstractmethod
    def score(self, request: ServiceFitRequest) -> ServiceFitResult:
        """Score a deal's services against tracker and buyer criteria."""
        pass


class KeywordScorer(ServiceScorer):
    """Deterministic keyword-overlap scorer. No network, no side effects."""

    def score(self, request: ServiceFitRequest) -> ServiceFitResult:
        deal_text = (request.deal_service_text or "").lower()
        criteria = request.criteria
        required = _clean_keywords(criteria.required_services)
        preferred = _clean_keywords(criteria.preferred_services)
        excluded = _clean_keywords(criteria.excluded_services)

        buyer_keywords = _clean_keywords(
            request.buyer_target_services
            + _BUYER_SERVICE_SPLIT_RE.split(request.buyer_services_text or "")
        )

        conflicts = [kw for kw in excluded if kw in deal_text]
        matched = [kw for kw in required if kw in deal_text]
        matched += [kw for kw in preferred if kw in deal_text and kw not in matched]

        score = NEUTRAL_SCORE
        if conflicts:
            score -= CONFLICT_PENALTY

        if required:
            ratio = sum(1 for kw in matched if kw in required) / len(required)
            score += _round_half_up(ratio * REQUIRED_WEIGHT)
        elif matched:
            score += REQUIRED_FLAT_BONUS

        if preferred:
            ratio = sum(1 for kw in matched if kw in preferred) / len(preferred)
            score += _round_half_up(ratio * PREFERRED_WEIGHT)

        if buyer_keywords:
            ratio = sum(1 for kw in buyer_keywords if kw in deal_text) / len(buyer_keywords)
            score += min(BUYER_OVERLAP_WEIGHT, _round_half_up(ratio * BUYER_OVERLAP_WEIGHT))

        score = max(0, min(100, score))

        if matched:
            reasoning = f"Keyword match: {', '.join(matched)}"
            if conflicts:
                reasoning += f". Conflicts: {', '.join(conflicts)}"
        elif conflicts:
            reasoning = f"Conflicts detected: {', '.join(conflicts)}"
        else:
            reasoning = "Limited service overlap detected"

        return ServiceFitResult(
            score=score,
            alignment=classify_alignment(score, len(matched), len(conflicts)),
            reasoning=reasoning,
            matched_services=matched,
            conflicting_services=conflicts,
            confidence=_confidence_for(len(matched)),
            used_ai=False,
        )


# =============================================================================
# SEMANTIC (LLM) SCORER
# =============================================================================


class SemanticFitOutput(BaseModel):
    """JSON shape the model is asked to return."""

    model_config = ConfigDict(extra="forbid")

    score: float
    alignment: Alignment | None = None
    reasoning: str = Field(default="")
    matched_services: list[str] = Field(default_factory=list)
    conflicting_services: list[str] = Field(default_factory=list)
    confidence: Confidence = "medium"


SERVICE_FIT_PROMPT = """You are an expert M&A analyst evaluating service fit between a deal and buyer criteria.

INDUSTRY: {industry}

DEAL'S SERVICE MIX:
{deal_services}

TRACKER SERVICE CRITERIA:
- Required Services: {required}
- Preferred Services: {preferred}
- Excluded/Off-focus Services: {excluded}
- Primary Focus: {primary_focus}

BUYER'S CURRENT SERVICES:
{buyer_services}

BUYER'S TARGET SERVICES:
{buyer_targets}

Analyze the semantic fit between the deal's services and the buyer/tracker criteria. Consider:
1. Does the deal's PRIMARY business align with the tracker's primary focus?
2. Are there semantic matches even if exact keywords differ? (e.g., "auto body" = "collision repair")
3. Are there any services that would be deal-breakers for this industry?
4. How complementary are the deal's services to what the buyer is looking for?

Respond in this exact JSON format:
{{
  "score": <number 0-100>,
  "alignment": "<strong|good|partial|weak|conflict>",
  "reasoning": "<2-3 sentence explanation>",
  "matched_services": ["<list of matching services>"],
  "conflicting_services": ["<list of conflicting/excluded services>"],
  "confidence": "<high|medium|low>"
}}"""


def build_prompt(request: ServiceFitRequest) -> str:
    """Render the service-fit prompt for one request."""
    criteria = request.criteria
    return SERVICE_FIT_PROMPT.format(
        industry=request.industry_name or "Not specified",
        deal_services=request.deal_service_text or "Not specified",
        required=", ".join(criteria.required_services) or "None specified",
        preferred=", ".join(criteria.preferred_services) or "None specified",
        excluded=", ".join(criteria.excluded_services) or "None specified",
        primary_focus=", ".join(criteria.primary_focus) or "Not specified",
        buyer_services=request.buyer_services_text or "Not specified",
        buyer_targets=", ".join(request.buyer_target_services) or "Not specified",
    )


def parse_semantic_response(content: str) -> ServiceFitResult:
    """
    Pull the first JSON object out of a model response and validate it.

    Raises SemanticScoringError for missing or malformed JSON.
    """
    match = _JSON_OBJECT_RE.search(content or "")
    if not match:
        raise SemanticScoringError("Could not parse AI response")
    try:
        output = SemanticFitOutput.model_validate(json.loads(match.group(0)))
    except (json.JSONDecodeError, ValidationError) as e:
        raise SemanticScoringError(f"Invalid AI response: {e}") from e

    score = max(0, min(100, _round_half_up(output.score)))
    return ServiceFitResult(
        score=score,
        alignment=classify_alignment(
            score, len(output.matched_services), len(output.conflicting_services)
        ),
        reasoning=output.reasoning or "AI analysis complete",
        matched_services=output.matched_services,
        conflicting_services=output.conflicting_services,
        confidence=output.confidence,
        used_ai=True,
    )


class SemanticScorer(ServiceScorer):
    """LLM-backed scorer using an OpenAI-compatible chat completions API."""

    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
    ):
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.model = model or os.getenv("BUYERMATCH_MODEL", self.DEFAULT_MODEL)
        self.client: OpenAI | None = None
        if self.api_key:
            # Retries are handled below, only for connection failures
            self.client = OpenAI(
                api_key=self.api_key,
                base_url=base_url or os.getenv("OPENAI_BASE_URL") or None,
                timeout=httpx.Timeout(timeout, connect=5.0),
                max_retries=0,
            )

    @retry(
        retry=retry_if_exception_type(APIConnectionError),
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        reraise=True,
    )
    def _complete(self, prompt: str) -> str:
        """One chat completion; returns the message text."""
        if self.client is None:
            raise SemanticScoringError("OPENAI_API_KEY not set")
        completion = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=0.3,
            max_tokens=500,
        )
        if not completion.choices:
            return ""
        return completion.choices[0].message.content or ""

    def score(self, request: ServiceFitRequest) -> ServiceFitResult:
        if self.client is None:
            raise SemanticScoringError("OPENAI_API_KEY not set")
        try:
            content = self._complete(build_prompt(request))
        except APIStatusError as e:
            # 402/429 included: no retry, caller falls back
            raise SemanticScoringError(
                f"AI call failed: {e.status_code}", status_code=e.status_code
            ) from e
        except APIConnectionError as e:
            raise SemanticScoringError(f"AI service unreachable: {e}") from e
        return parse_semantic_response(content)


# =============================================================================
# ORCHESTRATOR
# =============================================================================


def insufficient_data_result() -> ServiceFitResult:
    return ServiceFitResult(
        score=NEUTRAL_SCORE,
        alignment="partial",
        reasoning=INSUFFICIENT_DATA_REASON,
        confidence="low",
        used_ai=False,
    )


class ServiceFitScorer(ServiceScorer):
    """
    Primary/fallback composition: semantic first, keywords on any failure.

    With no semantic scorer configured the keyword path answers directly.
    """

    def __init__(
        self,
        semantic: ServiceScorer | None = None,
        fallback: ServiceScorer | None = None,
        logger: ProgressLogger | None = None,
    ):
        self.semantic = semantic
        self.fallback = fallback or KeywordScorer()
        self.logger = logger

    def score(self, request: ServiceFitRequest) -> ServiceFitResult:
        if not request.deal_service_text and request.criteria.is_empty():
            return insufficient_data_result()

        if self.semantic is not None:
            try:
                return self.semantic.score(request)
            except Exception as e:
                if self.logger:
                    self.logger.warning(f"Semantic scoring failed, using keyword fallback: {e}")

        return self.fallback.score(request)


def get_service_scorer(logger: ProgressLogger | None = None) -> ServiceFitScorer:
    """Build the orchestrator; semantic path only when OPENAI_API_KEY is set."""
    semantic = SemanticScorer() if os.getenv("OPENAI_API_KEY") else None
    return ServiceFitScorer(semantic=semantic, logger=logger)
