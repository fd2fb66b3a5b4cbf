"""Tests for LLM recommendations (service parsing and router error mapping)."""
import json

import pytest
from unittest.mock import patch

from app.schemas.recommendations import RecommendationRequest, RecommendationResponse
from app.services import recommendations
from app.services.recommendations import RecommendationError, parse_recommendations

ANSWER = {
    "recommendations": [
        {"subscription_name": "Netflix", "plan_details": "Premium 4 telas", "reason": "Você assiste séries em 4K."},
    ]
}


class TestParse:
    def test_plain_json(self):
        result = parse_recommendations(json.dumps(ANSWER))
        assert result.recommendations[0].subscription_name == "Netflix"

    def test_markdown_fences_are_stripped(self):
        raw = "```json\n" + json.dumps(ANSWER) + "\n```"
        assert len(parse_recommendations(raw).recommendations) == 1

    def test_not_json(self):
        with pytest.raises(RecommendationError, match="não é JSON"):
            parse_recommendations("Recomendo a Netflix!")

    def test_wrong_shape(self):
        with pytest.raises(RecommendationError, match="fora do formato"):
            parse_recommendations(json.dumps({"recommendations": [{"subscription_name": "Netflix"}]}))

    def test_subscription_name_is_required(self):
        renamed = {"recommendations": [{"service_name": "Netflix", "plan_details": "4K", "reason": "séries"}]}
        with pytest.raises(RecommendationError):
            parse_recommendations(json.dumps(renamed))


class TestRecommend:
    def test_prompt_includes_history_and_catalog(self):
        request = RecommendationRequest(viewing_history="Stranger Things, The Crown", preferences="séries")
        with patch.object(recommendations, "_call_llm", return_value=json.dumps(ANSWER)) as mock_llm:
            result = recommendations.recommend(request, ["Disney+", "Netflix"])

        prompt = mock_llm.call_args[0][0]
        assert "Stranger Things" in prompt
        assert "Disney+, Netflix" in prompt
        assert isinstance(result, RecommendationResponse)

    def test_unconfigured_provider(self):
        with patch("app.services.recommendations.settings") as mock_settings:
            mock_settings.llm_provider = ""
            with pytest.raises(ValueError, match="No LLM API key"):
                recommendations._call_llm("oi")


class TestRouter:
    def test_success(self, client_with_customer):
        client, _, _ = client_with_customer
        with patch("app.routers.recommendations.recommendations.recommend",
                   return_value=RecommendationResponse.model_validate(ANSWER)):
            response = client.post("/recommendations", json={"viewing_history": "Dark"})

        assert response.status_code == 200
        assert response.json() == ANSWER

    @pytest.mark.parametrize("error,status_code", [
        (RecommendationError("formato"), 502),
        (ValueError("No LLM API key configured"), 503),
        (RuntimeError("provider down"), 502),
    ])
    def test_errors(self, client_with_customer, error, status_code):
        client, _, _ = client_with_customer
        with patch("app.routers.recommendations.recommendations.recommend", side_effect=error):
            response = client.post("/recommendations", json={"viewing_history": "Dark"})
        assert response.status_code == status_code

    def test_history_required(self, client_with_customer):
        client, _, _ = client_with_customer
        assert client.post("/recommendations", json={"viewing_history": ""}).status_code == 422
