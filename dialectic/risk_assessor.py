"""Risk narration - an optional pessimist opinion on one upgrade proposal.

The assessor asks an OpenAI-compatible chat-completion endpoint for a
risk-focused review of a proposal and returns it next to the proposal's own
facts. The calling agent forms the optimistic view and makes the decision.

Without an API key, or when the request or its reply fails in any way, the
assessment still succeeds: ``pessimist_view`` is None and the note tells the
caller to decide from the version distance and security fixes alone.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import httpx

from dialectic import __version__
from dialectic.config_runtime import DEFAULTS
from dialectic.errors import RiskServiceError
from dialectic.models import AgentAssessment, RiskAssessment, RiskFactor, UpgradeProposal
from dialectic.utils.helpers import sanitize_string
from dialectic.utils.logging import logger

NOTE_WITH_VIEW = (
    "Pessimist view from the risk service. Generate an optimistic perspective "
    "and make the final decision."
)
NOTE_WITHOUT_VIEW = (
    "No pessimist analysis available. Evaluate upgrade based on version type "
    "and security fixes."
)

RECOMMENDATIONS = ("approve", "review", "reject")

SYSTEM_PROMPT = (
    "You are a critical risk analyst. Focus on DANGERS and risks. Return ONLY valid JSON."
)


@dataclass(frozen=True)
class RiskConfig:
    api_key: str = ""
    endpoint: str = DEFAULTS["risk"]["endpoint"]
    model: str = DEFAULTS["risk"]["model"]
    temperature: float = DEFAULTS["risk"]["temperature"]
    timeout: float = DEFAULTS["timeouts"]["risk_request"]

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_runtime_config(cls, cfg: dict[str, Any]) -> RiskConfig:
        risk = cfg.get("risk", {})
        return cls(
            api_key=risk.get("api_key", ""),
            endpoint=risk.get("endpoint", cls.endpoint),
            model=risk.get("model", cls.model),
            temperature=float(risk.get("temperature", cls.temperature)),
            timeout=float(cfg.get("timeouts", {}).get("risk_request", cls.timeout)),
        )


def build_prompt(proposal: UpgradeProposal) -> str:
    fixes = ", ".join(proposal.security_fix_ids) if proposal.security_fix_ids else "None"
    return f"""Analyze this npm package upgrade from a RISK-FOCUSED perspective:

Package: {proposal.package}
Current Version: {proposal.from_version}
Target Version: {proposal.to_version}
Upgrade Type: {proposal.change_class.value}
Security Fixes: {fixes}

Identify potential DANGERS:
- Breaking API changes
- Migration complexity
- Dependency conflicts
- Ecosystem instability
- Known bugs or issues

Return ONLY valid JSON: {{"overallScore": number (0-100, where 100 is riskiest), "confidence": number (0-1), "factors": [{{"factor": string, "score": number, "reasoning": string}}], "summary": string, "recommendation": "approve"|"review"|"reject", "reasoning": string}}"""


def strip_code_fences(content: str) -> str:
    """Remove a surrounding ```json ... ``` fence from a model reply."""
    cleaned = content.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def _number(value: Any, default: float, low: float, high: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return max(low, min(high, float(value)))


def parse_assessment(raw: Any) -> AgentAssessment:
    """Normalize the model's JSON into an AgentAssessment.

    Scores are clamped to [0, 100], confidence to [0, 1]; an unknown
    recommendation becomes 'review'.
    """
    if not isinstance(raw, dict):
        raise RiskServiceError(f"Expected a JSON object, got {type(raw).__name__}")

    factors = []
    for item in raw.get("factors") or []:
        if not isinstance(item, dict) or not item.get("factor"):
            continue
        factors.append(RiskFactor(
            factor=sanitize_string(item["factor"]),
            score=_number(item.get("score"), 50.0, 0.0, 100.0),
            reasoning=sanitize_string(item.get("reasoning")),
        ))

    recommendation = sanitize_string(raw.get("recommendation")).lower()
    if recommendation not in RECOMMENDATIONS:
        recommendation = "review"

    return AgentAssessment(
        overall_score=_number(raw.get("overallScore"), 50.0, 0.0, 100.0),
        confidence=_number(raw.get("confidence"), 0.7, 0.0, 1.0),
        factors=tuple(factors),
        summary=sanitize_string(raw.get("summary"), default="Risk analysis completed"),
        recommendation=recommendation,
        reasoning=sanitize_string(raw.get("reasoning"), default="Standard risk assessment"),
    )


class RiskAssessor:
    """Produces RiskAssessments; the HTTP client can be injected for testing."""

    def __init__(self, config: RiskConfig, client: httpx.Client | None = None):
        self.config = config
        self._client = client

    def _request_body(self, proposal: UpgradeProposal) -> dict[str, Any]:
        return {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(proposal)},
            ],
            "temperature": self.config.temperature,
        }

    def _post(self, client: httpx.Client, proposal: UpgradeProposal) -> httpx.Response:
        return client.post(
            self.config.endpoint,
            json=self._request_body(proposal),
            headers={
                "Authorization": f"Bearer {self.config.api_key}",
                "User-Agent": f"dialectic/{__version__}",
            },
            timeout=self.config.timeout,
        )

    def call_pessimist(self, proposal: UpgradeProposal) -> AgentAssessment:
        """One chat-completion round trip. Raises RiskServiceError on any failure."""
        try:
            if self._client is not None:
                response = self._post(self._client, proposal)
            else:
                with httpx.Client() as client:
                    response = self._post(client, proposal)
            response.raise_for_status()
            content = response.json()["choices"][0]["message"]["content"]
            parsed = json.loads(strip_code_fences(content))
        except httpx.HTTPStatusError as e:
            raise RiskServiceError(
                f"Risk service returned {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise RiskServiceError(f"Risk service request failed: {e}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise RiskServiceError(f"Unusable risk service reply: {e}") from e

        return parse_assessment(parsed)

    def assess(self, proposal: UpgradeProposal) -> RiskAssessment:
        logger.info(
            f"Assessing risk for {proposal.package}: {proposal.from_version} -> {proposal.to_version}"
        )

        view = None
        if self.config.enabled:
            try:
                view = self.call_pessimist(proposal)
                logger.info(f"Pessimist analysis complete: {view.overall_score:g}/100 risk score")
            except RiskServiceError as e:
                logger.warning(f"Pessimist analysis failed: {e}")
        else:
            logger.info("No risk service API key configured - pessimist analysis unavailable")

        return RiskAssessment(
            upgrade_id=proposal.id,
            package=proposal.package,
            from_version=proposal.from_version,
            to_version=proposal.to_version,
            upgrade_type=proposal.change_class,
            security_fixes=proposal.security_fix_ids,
            note=NOTE_WITH_VIEW if view else NOTE_WITHOUT_VIEW,
            pessimist_view=view,
            caution=proposal.caution,
        )


def assess_risk_from_json(
    proposal_json: str, config: RiskConfig, client: httpx.Client | None = None
) -> RiskAssessment:
    """Assess a serialized proposal. Raises ProposalError on malformed input."""
    proposal = UpgradeProposal.from_json(proposal_json)
    return RiskAssessor(config, client).assess(proposal)
