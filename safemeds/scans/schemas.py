from typing import Optional
from pydantic import BaseModel

from safemeds.medications.schemas import DrugIdentity, SafetyAnalysis
from safemeds.scans.pipeline import AppState, ScanController, ScanStep
from safemeds.scans.presentation import ResultView, build_result_view


class Base64ImageRequest(BaseModel):
    image: str  # plain base64 or a data: URL


class ScanStateRead(BaseModel):
    state: AppState
    step: Optional[ScanStep] = None
    stepLabel: str = ""
    error: Optional[str] = None
    identity: Optional[DrugIdentity] = None
    analysis: Optional[SafetyAnalysis] = None
    result: Optional[ResultView] = None

    @classmethod
    def from_controller(cls, controller: ScanController) -> "ScanStateRead":
        # nothing partial is shown: the verdict only appears once the scan is complete
        if controller.state == AppState.RESULT:
            return cls(
                state=controller.state,
                identity=controller.identity,
                analysis=controller.analysis,
                result=build_result_view(controller.identity, controller.analysis),
            )
        if controller.state == AppState.ERROR:
            return cls(state=controller.state, error=controller.error)
        return cls(state=controller.state, step=controller.step, stepLabel=controller.step_label)
