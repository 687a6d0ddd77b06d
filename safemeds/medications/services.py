from openai import AsyncOpenAI
from typing import Any, Dict, Optional
import json
import logging

from safemeds.core.config import settings
from safemeds.core.errors import ServiceError
from safemeds.medications.base import SafetyRequest, Service
from safemeds.medications.schemas import DrugIdentity, RiskLevel, SafetyAnalysis
from safemeds.utils.images import ScanImage

logger = logging.getLogger(__name__)

NO_LABEL_CONTEXT = "Official FDA label not found. Rely on your internal medical knowledge."

IDENTITY_SCHEMA = {
    "type": "object",
    "properties": {
        "brandName": {"type": ["string", "null"], "description": "The brand name of the medication, e.g. Tylenol"},
        "genericName": {"type": ["string", "null"], "description": "The active ingredient / generic name, e.g. Acetaminophen"},
        "strength": {"type": ["string", "null"], "description": "Dosage strength if visible, e.g. 500mg"},
        "confidence": {"type": "number", "description": "Confidence score between 0 and 1"},
    },
    "required": ["brandName", "genericName", "strength", "confidence"],
    "additionalProperties": False,
}

SAFETY_SCHEMA = {
    "type": "object",
    "properties": {
        "isSafe": {"type": "boolean", "description": "True if generally safe, false if significant risks exist"},
        "riskLevel": {"type": "string", "enum": [level.value for level in RiskLevel]},
        "summary": {"type": "string", "description": "1-2 sentence verdict, including any major interaction warnings"},
        "contraindications": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Specific conflicts with the user's profile, including drug interactions",
        },
        "sideEffects": {"type": "array", "items": {"type": "string"}, "description": "Common side effects of this drug"},
        "purpose": {"type": "string", "description": "What this drug is used for"},
        "recommendation": {"type": "string", "description": "Actionable advice, e.g. 'Do not take', 'Consult doctor'"},
    },
    "required": ["isSafe", "riskLevel", "summary", "contraindications", "sideEffects", "purpose", "recommendation"],
    "additionalProperties": False,
}


def json_schema_format(name: str, schema: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "json_schema", "json_schema": {"name": name, "schema": schema, "strict": True}}


def parse_json_content(response) -> Any:
    """Pull the JSON body out of a chat completion, tolerating markdown fences."""
    response_text = (response.choices[0].message.content or "").strip()
    if not response_text:
        raise ValueError("empty response")

    # Clean up response (remove potential markdown)
    cleaned_response = response_text.replace("```json", "").replace("```", "").strip()
    return json.loads(cleaned_response)


def enforce_caution(analysis: SafetyAnalysis) -> SafetyAnalysis:
    """A LOW verdict cannot stand next to listed conflicts or an unsafe flag."""
    if analysis.riskLevel == RiskLevel.LOW and (analysis.contraindications or not analysis.isSafe):
        logger.warning("Raising LOW risk verdict to MODERATE: verdict lists conflicts or is marked unsafe")
        return analysis.model_copy(update={"riskLevel": RiskLevel.MODERATE})
    return analysis


class VisionService(Service[ScanImage, DrugIdentity]):
    name = "vision"

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None):
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self.model = model or settings.vision_model

    def get_identification_prompt(self) -> str:
        return (
            "Analyze this image of a medication strip, bottle or box. "
            "Extract the brand name, the generic name (active ingredient) and the strength. "
            "Be precise. If the text is cut off but you can infer it with high certainty, do so. "
            "If you cannot identify it, return null for the names. "
            "Always include a confidence score between 0 and 1."
        )

    async def run(self, request: ScanImage) -> DrugIdentity:
        """Read the drug identity off a label photo."""
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": self.get_identification_prompt()},
                            {"type": "image_url", "image_url": {"url": request.data_url}},
                        ],
                    }
                ],
                response_format=json_schema_format("drug_identity", IDENTITY_SCHEMA),
                temperature=0.1,  # factual extraction
                max_completion_tokens=300,
            )
            return DrugIdentity.model_validate(parse_json_content(response))

        except json.JSONDecodeError as e:
            logger.error("Vision model returned an unusable response: %s", e)
            raise ServiceError("Failed to identify medication from image.", service=self.name) from e
        except Exception as e:
            logger.error("Vision request failed or returned an invalid identity: %s", e)
            raise ServiceError("Failed to identify medication from image.", service=self.name) from e


class SafetyService(Service[SafetyRequest, SafetyAnalysis]):
    name = "reasoning"

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        reasoning_effort: Optional[str] = None,
    ):
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self.model = model or settings.reasoning_model
        self.reasoning_effort = settings.reasoning_effort if reasoning_effort is None else reasoning_effort

    def get_safety_prompt(self, request: SafetyRequest) -> str:
        fda_context = json.dumps(request.label.prompt_context()) if request.label else NO_LABEL_CONTEXT

        return f"""
Role: You are an expert clinical pharmacist and drug safety officer.
Task: Decide whether the following medication is safe for this specific user, given their health profile.

Drug Identified: {request.identity.model_dump_json()}
User Profile: {request.profile.model_dump_json()}

Official FDA Label Data (Partial): {fda_context}

Instructions:
1. Check for DIRECT contraindications against the user's conditions (e.g. High Blood Pressure + NSAIDs, Liver Disease + Acetaminophen).
2. Check for allergic reactions against the user's allergy list.
3. Check for DRUG-DRUG INTERACTIONS with the user's 'medications' list (e.g. Aspirin while on Warfarin).
4. If the drug is safe, state what it treats.
5. Assign exactly one risk level: LOW, MODERATE, HIGH, or CRITICAL.
6. Be extremely cautious. When unsure, choose the higher risk level. Every known interaction or conflict goes in 'contraindications'.

Output JSON only.
"""

    async def run(self, request: SafetyRequest) -> SafetyAnalysis:
        """Ask the reasoning model for a verdict on this drug for this profile."""
        kwargs: Dict[str, Any] = {}
        if self.reasoning_effort:
            kwargs["reasoning_effort"] = self.reasoning_effort
        else:
            kwargs["temperature"] = 0.2

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "system",
                        "content": "You are a clinical drug safety expert. Answer in JSON matching the requested schema only.",
                    },
                    {"role": "user", "content": self.get_safety_prompt(request)},
                ],
                response_format=json_schema_format("safety_analysis", SAFETY_SCHEMA),
                max_completion_tokens=4000,
                **kwargs,
            )
            analysis = SafetyAnalysis.model_validate(parse_json_content(response))

        except json.JSONDecodeError as e:
            logger.error("Reasoning model returned an unusable response: %s", e)
            raise ServiceError("Failed to analyze drug safety.", service=self.name) from e
        except Exception as e:
            logger.error("Reasoning request failed or returned an invalid verdict: %s", e)
            raise ServiceError("Failed to analyze drug safety.", service=self.name) from e

        return enforce_caution(analysis)
