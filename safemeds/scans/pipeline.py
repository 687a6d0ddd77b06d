"""Scan pipeline: label photo -> drug identity -> FDA label -> safety verdict.

The controller is an explicit state machine. ``capture`` starts a scan,
``advance`` runs exactly one pending step and ``run`` drives the remaining
steps to a terminal state. Any step failure lands in ``ERROR`` with a single
user-facing message; ``RESULT`` is only reached with a complete verdict.
"""
import logging
from enum import Enum
from typing import Optional

from safemeds.core.errors import (
    GENERIC_ERROR_MESSAGE,
    InvalidTransition,
    ScanError,
    UnreadableLabelError,
)
from safemeds.medications.base import SafetyRequest, ScanServices
from safemeds.medications.schemas import DrugIdentity, FdaData, SafetyAnalysis
from safemeds.profiles.constants import DEFAULT_PROFILE
from safemeds.profiles.schemas import UserProfile
from safemeds.profiles.store import ProfileStore
from safemeds.utils.images import ScanImage

logger = logging.getLogger(__name__)


class AppState(str, Enum):
    PROFILE = "PROFILE"
    SCAN = "SCAN"
    ANALYZING = "ANALYZING"
    RESULT = "RESULT"
    ERROR = "ERROR"


class Event(str, Enum):
    SAVE_PROFILE = "SAVE_PROFILE"
    CAPTURE = "CAPTURE"
    SUCCEED = "SUCCEED"
    FAIL = "FAIL"
    RESET = "RESET"
    EDIT_PROFILE = "EDIT_PROFILE"


TRANSITIONS = {
    (AppState.PROFILE, Event.SAVE_PROFILE): AppState.SCAN,
    (AppState.SCAN, Event.CAPTURE): AppState.ANALYZING,
    (AppState.ANALYZING, Event.SUCCEED): AppState.RESULT,
    (AppState.ANALYZING, Event.FAIL): AppState.ERROR,
    (AppState.SCAN, Event.RESET): AppState.SCAN,
    (AppState.RESULT, Event.RESET): AppState.SCAN,
    (AppState.ERROR, Event.RESET): AppState.SCAN,
    (AppState.SCAN, Event.EDIT_PROFILE): AppState.PROFILE,
    (AppState.RESULT, Event.EDIT_PROFILE): AppState.PROFILE,
    (AppState.ERROR, Event.EDIT_PROFILE): AppState.PROFILE,
}


def transition(state: AppState, event: Event) -> AppState:
    try:
        return TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransition(state, event) from None


class ScanStep(str, Enum):
    IDENTIFY = "IDENTIFY"
    LOOKUP = "LOOKUP"
    REASON = "REASON"


STEP_LABELS = {
    ScanStep.IDENTIFY: "Reading medication label...",
    ScanStep.LOOKUP: "Consulting FDA database...",
    ScanStep.REASON: "Checking your health compatibility...",
}

NEXT_STEP = {
    ScanStep.IDENTIFY: ScanStep.LOOKUP,
    ScanStep.LOOKUP: ScanStep.REASON,
    ScanStep.REASON: None,
}


class ScanController:
    def __init__(
        self,
        services: ScanServices,
        store: ProfileStore,
        profile: Optional[UserProfile] = None,
    ):
        self.services = services
        self.store = store
        self.profile = profile or DEFAULT_PROFILE
        self.has_profile = profile is not None
        self.state = AppState.SCAN if profile is not None else AppState.PROFILE
        self._clear_scan()

    @classmethod
    async def start(cls, services: ScanServices, store: ProfileStore) -> "ScanController":
        """Load the saved profile once and pick the opening screen from it."""
        profile = await store.load()
        return cls(services, store, profile)

    def _clear_scan(self) -> None:
        self.image: Optional[ScanImage] = None
        self.identity: Optional[DrugIdentity] = None
        self.label: Optional[FdaData] = None
        self.analysis: Optional[SafetyAnalysis] = None
        self.error: Optional[str] = None
        self.step: Optional[ScanStep] = None

    def _fire(self, event: Event) -> AppState:
        new_state = transition(self.state, event)
        logger.debug("Scan state %s --%s--> %s", self.state.value, event.value, new_state.value)
        self.state = new_state
        return new_state

    @property
    def step_label(self) -> str:
        return STEP_LABELS[self.step] if self.step else ""

    # ---- profile ----

    async def save_profile(self, profile: UserProfile) -> AppState:
        # leave PROFILE before the write so an overlapping save is rejected unwritten
        previous = self.state
        self._fire(Event.SAVE_PROFILE)
        try:
            await self.store.save(profile)
        except Exception:
            self.state = previous
            raise
        self.profile = profile
        self.has_profile = True
        return self.state

    def edit_profile(self) -> AppState:
        self._fire(Event.EDIT_PROFILE)
        self._clear_scan()
        return self.state

    # ---- scanning ----

    def capture(self, image: ScanImage) -> AppState:
        self._fire(Event.CAPTURE)
        self._clear_scan()
        self.image = image
        self.step = ScanStep.IDENTIFY
        return self.state

    def reset(self) -> AppState:
        self._fire(Event.RESET)
        self._clear_scan()
        return self.state

    async def _identify(self) -> None:
        self.identity = await self.services.identifier.run(self.image)
        if not self.identity.is_readable:
            raise UnreadableLabelError()

    async def _lookup(self) -> None:
        self.label = await self.services.labels.run(self.identity.lookup_name)
        if self.label is None:
            logger.info("No FDA label for %r; continuing without it", self.identity.lookup_name)

    async def _reason(self) -> None:
        request = SafetyRequest(identity=self.identity, profile=self.profile, label=self.label)
        self.analysis = await self.services.reasoner.run(request)

    async def advance(self) -> AppState:
        """Run the pending step. Returns the state afterwards."""
        if self.state != AppState.ANALYZING or self.step is None:
            raise InvalidTransition(self.state, Event.SUCCEED)

        step = self.step
        handler = {
            ScanStep.IDENTIFY: self._identify,
            ScanStep.LOOKUP: self._lookup,
            ScanStep.REASON: self._reason,
        }[step]

        try:
            await handler()
        except ScanError as e:
            logger.warning("Scan failed at %s: %s", step.value, e.message)
            return self._fail(e.message)
        except Exception:
            logger.exception("Unexpected failure at scan step %s", step.value)
            return self._fail(GENERIC_ERROR_MESSAGE)

        self.step = NEXT_STEP[step]
        if self.step is None:
            return self._fire(Event.SUCCEED)
        return self.state

    async def run(self) -> AppState:
        while self.state == AppState.ANALYZING:
            await self.advance()
        return self.state

    def _fail(self, message: str) -> AppState:
        self.error = message or GENERIC_ERROR_MESSAGE
        self.step = None
        self.analysis = None
        return self._fire(Event.FAIL)
