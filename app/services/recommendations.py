"""Subscription recommendations from viewing history, via the configured LLM provider."""
import json
import logging
from typing import List

from pydantic import ValidationError

from app.config import settings
from app.schemas.recommendations import RecommendationRequest, RecommendationResponse

logger = logging.getLogger(__name__)

ANTHROPIC_MODEL = "claude-haiku-4-5-20251001"
OPENAI_MODEL = "gpt-4o-mini"

SYSTEM_PROMPT = (
    "Você é um assistente de um marketplace de assinaturas de streaming. "
    "Com base no histórico e nas preferências do usuário, recomende assinaturas do catálogo. "
    "Responda APENAS com um JSON no formato "
    '{"recommendations": [{"subscription_name": "...", "plan_details": "...", "reason": "..."}]}, '
    "sem texto adicional."
)


class RecommendationError(Exception):
    """The provider answer could not be turned into recommendations."""


def _build_prompt(request: RecommendationRequest, catalog: List[str]) -> str:
    lines = [
        f"Histórico de visualização: {request.viewing_history}",
        f"Preferências: {request.preferences}",
    ]
    if catalog:
        lines.append("Serviços disponíveis no catálogo: " + ", ".join(catalog))
    lines.append("Recomende de 1 a 5 assinaturas.")
    return "\n".join(lines)


def _call_llm(prompt: str) -> str:
    """Call the configured provider and return the raw response text."""
    if settings.llm_provider == "anthropic":
        import anthropic

        client = anthropic.Anthropic(api_key=settings.anthropic_api_key)
        message = client.messages.create(
            model=ANTHROPIC_MODEL,
            max_tokens=1024,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )
        return message.content[0].text

    if settings.llm_provider == "openai":
        import openai

        client = openai.OpenAI(api_key=settings.openai_api_key)
        response = client.chat.completions.create(
            model=OPENAI_MODEL,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            response_format={"type": "json_object"},
            temperature=0.5,
        )
        return response.choices[0].message.content

    raise ValueError("No LLM API key configured")


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def parse_recommendations(raw_text: str) -> RecommendationResponse:
    """Parse and validate the provider's JSON answer."""
    try:
        parsed = json.loads(_strip_fences(raw_text))
    except json.JSONDecodeError:
        raise RecommendationError("LLM retornou resposta em formato inesperado (não é JSON válido)")

    try:
        return RecommendationResponse.model_validate(parsed)
    except ValidationError as e:
        raise RecommendationError(f"LLM retornou resposta fora do formato esperado: {e.error_count()} erro(s)")


def recommend(request: RecommendationRequest, catalog: List[str]) -> RecommendationResponse:
    """
    Ask the LLM for recommendations.

    Raises:
        RecommendationError: unparsable answer
        anthropic.APIError / openai.APIError: provider call failed
    """
    raw = _call_llm(_build_prompt(request, catalog))
    result = parse_recommendations(raw)
    logger.info("Generated %d recommendations", len(result.recommendations))
    return result
