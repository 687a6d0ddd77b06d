from typing import List, Optional
from pydantic import BaseModel

from safemeds.medications.schemas import DrugIdentity, RiskLevel, SafetyAnalysis

LOW_CONFIDENCE_THRESHOLD = 0.8
UNKNOWN_DRUG_NAME = "Unknown Drug"


class RiskDisplay(BaseModel):
    level: str
    title: str
    description: str
    tone: str


RISK_DISPLAY = {
    RiskLevel.LOW: RiskDisplay(
        level="LOW", title="Safe to Use", description="No significant interactions found.", tone="safe"
    ),
    RiskLevel.MODERATE: RiskDisplay(
        level="MODERATE", title="Use with Caution", description="Potential interactions detected.", tone="caution"
    ),
    RiskLevel.HIGH: RiskDisplay(
        level="HIGH", title="High Risk Warning", description="Significant health risks detected.", tone="warning"
    ),
    RiskLevel.CRITICAL: RiskDisplay(
        level="CRITICAL", title="Do Not Take", description="Dangerous contraindications found.", tone="danger"
    ),
}

UNKNOWN_RISK = RiskDisplay(
    level="UNKNOWN", title="Unknown Risk", description="Consult a professional.", tone="neutral"
)


def risk_display(level) -> RiskDisplay:
    """Banner for a risk level; anything unrecognised gets the neutral banner."""
    value = getattr(level, "value", level)
    try:
        return RISK_DISPLAY[RiskLevel(str(value).strip().upper())]
    except ValueError:
        return UNKNOWN_RISK


def display_name(identity: DrugIdentity) -> str:
    return identity.brandName or identity.genericName or UNKNOWN_DRUG_NAME


class ResultView(BaseModel):
    name: str
    subtitle: Optional[str] = None
    strength: Optional[str] = None
    confidence: float
    lowConfidence: bool
    risk: RiskDisplay
    isSafe: bool
    summary: str
    recommendation: str
    purpose: str
    contraindications: List[str]
    sideEffects: List[str]


def build_result_view(identity: DrugIdentity, analysis: SafetyAnalysis) -> ResultView:
    subtitle = None
    if identity.genericName and identity.genericName != identity.brandName:
        subtitle = identity.genericName

    return ResultView(
        name=display_name(identity),
        subtitle=subtitle,
        strength=identity.strength,
        confidence=identity.confidence,
        lowConfidence=identity.confidence < LOW_CONFIDENCE_THRESHOLD,
        risk=risk_display(analysis.riskLevel),
        isSafe=analysis.isSafe,
        summary=analysis.summary,
        recommendation=analysis.recommendation,
        purpose=analysis.purpose,
        contraindications=list(analysis.contraindications),
        sideEffects=list(analysis.sideEffects),
    )
