from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from safemeds.medications.schemas import DrugIdentity, FdaData, SafetyAnalysis
from safemeds.profiles.schemas import UserProfile
from safemeds.utils.images import ScanImage

RequestT = TypeVar("RequestT")
ResultT = TypeVar("ResultT")


class Service(ABC, Generic[RequestT, ResultT]):
    """One external capability: request in, structured result out.

    Implementations raise ``ServiceError`` for transport failures and
    malformed responses, never return half-parsed data.
    """

    name: str = "service"

    @abstractmethod
    async def run(self, request: RequestT) -> ResultT:
        ...


@dataclass(frozen=True)
class SafetyRequest:
    identity: DrugIdentity
    profile: UserProfile
    label: Optional[FdaData] = None


@dataclass(frozen=True)
class ScanServices:
    identifier: Service[ScanImage, DrugIdentity]
    labels: Service[str, Optional[FdaData]]
    reasoner: Service[SafetyRequest, SafetyAnalysis]


def default_services() -> ScanServices:
    from safemeds.medications.fda import LabelService
    from safemeds.medications.services import SafetyService, VisionService

    return ScanServices(
        identifier=VisionService(),
        labels=LabelService(),
        reasoner=SafetyService(),
    )
