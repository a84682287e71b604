"""Tests for risk narration against a mocked chat-completion endpoint."""

import json

import httpx
import pytest

from dialectic.errors import ProposalError, RiskServiceError
from dialectic.models import ChangeClass, UpgradeProposal
from dialectic.risk_assessor import (
    NOTE_WITH_VIEW,
    NOTE_WITHOUT_VIEW,
    RiskAssessor,
    RiskConfig,
    assess_risk_from_json,
    build_prompt,
    parse_assessment,
    strip_code_fences,
)

PROPOSAL = UpgradeProposal(
    id="upgrade-express-abc123",
    package="express",
    from_version="4.18.0",
    to_version="5.0.0",
    change_class=ChangeClass.MAJOR,
    security_fix_ids=("1096820",),
    caution="Major version upgrade - review breaking changes",
)

REPLY = {
    "overallScore": 72,
    "confidence": 0.8,
    "factors": [
        {"factor": "Breaking API changes", "score": 85, "reasoning": "Router rewrite"},
        {"factor": "", "score": 10},
    ],
    "summary": "Express 5 removes deprecated APIs.",
    "recommendation": "review",
    "reasoning": "Large surface area",
}


def completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def client_returning(status: int, body, seen: list | None = None) -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if isinstance(body, (dict, list)):
            return httpx.Response(status, json=body)
        return httpx.Response(status, text=body)

    return httpx.Client(transport=httpx.MockTransport(handler))


ENABLED = RiskConfig(api_key="test-key")


class TestWithRiskService:
    """A configured key and a reachable endpoint."""

    def test_pessimist_view_attached(self):
        seen = []
        client = client_returning(200, completion(json.dumps(REPLY)), seen)

        assessment = RiskAssessor(ENABLED, client).assess(PROPOSAL)

        assert assessment.note == NOTE_WITH_VIEW
        view = assessment.pessimist_view
        assert view.overall_score == 72
        assert view.confidence == 0.8
        assert view.recommendation == "review"
        assert [f.factor for f in view.factors] == ["Breaking API changes"]
        assert assessment.upgrade_type is ChangeClass.MAJOR
        assert assessment.security_fixes == ("1096820",)
        assert assessment.caution == PROPOSAL.caution

        request = seen[0]
        assert request.headers["Authorization"] == "Bearer test-key"
        body = json.loads(request.content)
        assert body["model"] == "glm-4.5-flash"
        assert "express" in body["messages"][1]["content"]

    def test_fenced_reply(self):
        fenced = "```json\n" + json.dumps(REPLY) + "\n```"
        client = client_returning(200, completion(fenced))
        assessment = RiskAssessor(ENABLED, client).assess(PROPOSAL)
        assert assessment.pessimist_view is not None

    def test_server_error_degrades(self):
        client = client_returning(500, "upstream unavailable")
        assessment = RiskAssessor(ENABLED, client).assess(PROPOSAL)

        assert assessment.pessimist_view is None
        assert assessment.note == NOTE_WITHOUT_VIEW

    def test_non_json_reply_degrades(self):
        client = client_returning(200, completion("I think this upgrade is risky."))
        assessment = RiskAssessor(ENABLED, client).assess(PROPOSAL)
        assert assessment.pessimist_view is None

    def test_call_pessimist_raises_typed_error(self):
        client = client_returning(200, {"choices": []})
        with pytest.raises(RiskServiceError):
            RiskAssessor(ENABLED, client).call_pessimist(PROPOSAL)


class TestWithoutKey:
    def test_no_request_made(self):
        seen = []
        client = client_returning(200, completion(json.dumps(REPLY)), seen)

        assessment = RiskAssessor(RiskConfig(), client).assess(PROPOSAL)

        assert seen == []
        assert assessment.pessimist_view is None
        assert assessment.note == NOTE_WITHOUT_VIEW
        assert assessment.to_dict()["pessimist_view"] is None


class TestReplyNormalization:
    def test_defaults_and_clamping(self):
        view = parse_assessment({"overallScore": 250, "confidence": -3, "recommendation": "YOLO"})
        assert view.overall_score == 100
        assert view.confidence == 0
        assert view.recommendation == "review"
        assert view.summary == "Risk analysis completed"

    def test_missing_numbers_use_defaults(self):
        view = parse_assessment({"overallScore": "high"})
        assert view.overall_score == 50
        assert view.confidence == 0.7

    def test_non_object_rejected(self):
        with pytest.raises(RiskServiceError):
            parse_assessment(["not", "an", "object"])

    def test_strip_code_fences(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences('```\n{"a": 1}```') == '{"a": 1}'
        assert strip_code_fences(' {"a": 1} ') == '{"a": 1}'

    def test_prompt_mentions_fixes(self):
        prompt = build_prompt(PROPOSAL)
        assert "Security Fixes: 1096820" in prompt
        assert "Upgrade Type: major" in prompt


class TestProposalInput:
    def test_from_json(self):
        assessment = assess_risk_from_json(json.dumps(PROPOSAL.to_dict()), RiskConfig())
        assert assessment.upgrade_id == PROPOSAL.id
        assert assessment.package == "express"

    def test_malformed_proposal(self):
        with pytest.raises(ProposalError):
            assess_risk_from_json("{not json", RiskConfig())

    def test_from_runtime_config(self):
        cfg = {
            "risk": {"api_key": "k", "endpoint": "https://llm.example/v1", "model": "m", "temperature": 0.2},
            "timeouts": {"risk_request": 12},
        }
        config = RiskConfig.from_runtime_config(cfg)
        assert config.enabled
        assert config.endpoint == "https://llm.example/v1"
        assert config.timeout == 12.0
        assert not RiskConfig.from_runtime_config({}).enabled
