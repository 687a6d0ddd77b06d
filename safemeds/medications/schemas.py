from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class DrugIdentity(BaseModel):
    model_config = ConfigDict(frozen=True)

    brandName: Optional[str] = None
    genericName: Optional[str] = None
    strength: Optional[str] = None
    confidence: float = Field(ge=0.0, le=1.0)

    @field_validator("brandName", "genericName", "strength", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            if not value or value.lower() in ("null", "none", "unknown"):
                return None
        return value

    @property
    def is_readable(self) -> bool:
        return bool(self.brandName or self.genericName)

    @property
    def lookup_name(self) -> str:
        """Name used to query the label database, generic first."""
        return self.genericName or self.brandName or ""


class FdaData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    purpose: Optional[List[str]] = None
    warnings: Optional[List[str]] = None
    contraindications: Optional[List[str]] = None
    boxed_warning: Optional[List[str]] = None
    indications_and_usage: Optional[List[str]] = None
    brand_name: Optional[List[str]] = None
    generic_name: Optional[List[str]] = None

    @classmethod
    def from_label(cls, entry: Dict[str, Any]) -> "FdaData":
        """Build from one openFDA label result; names live under ``openfda``."""
        openfda = entry.get("openfda") or {}
        data = dict(entry)
        for field in ("brand_name", "generic_name"):
            if not data.get(field) and openfda.get(field):
                data[field] = openfda[field]
        return cls.model_validate(data)

    def prompt_context(self) -> Dict[str, Optional[List[str]]]:
        return {
            "warnings": self.warnings,
            "contraindications": self.contraindications,
            "boxed_warning": self.boxed_warning,
            "indications": self.indications_and_usage,
            "purpose": self.purpose,
        }


class RiskLevel(str, Enum):
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class SafetyAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    isSafe: bool
    riskLevel: RiskLevel
    summary: str
    contraindications: List[str] = []
    sideEffects: List[str] = []
    purpose: str
    recommendation: str

    @field_validator("riskLevel", mode="before")
    @classmethod
    def upper_risk(cls, value):
        return value.strip().upper() if isinstance(value, str) else value


class LabelRead(BaseModel):
    name: str
    label: FdaData
