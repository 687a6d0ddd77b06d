import asyncio

import pytest

from conftest import LOW_RISK, TYLENOL, FakeService, MemoryStore

from safemeds.core.errors import InvalidTransition, ServiceError
from safemeds.medications.base import ScanServices
from safemeds.medications.schemas import DrugIdentity
from safemeds.profiles.constants import DEFAULT_PROFILE
from safemeds.profiles.schemas import UserProfile
from safemeds.scans.pipeline import (
    AppState,
    Event,
    ScanController,
    ScanStep,
    transition,
)

pytestmark = pytest.mark.anyio

SAVED_PROFILE = UserProfile(age=52, gender="female", conditions=["Liver Disease"], allergies=[], medications=[])


def make_controller(services, profile=SAVED_PROFILE, store=None):
    return ScanController(services, store or MemoryStore(), profile)


# ---------------------------------------------------------------------------
# transition table
# ---------------------------------------------------------------------------

def test_transition_table_happy_path():
    assert transition(AppState.PROFILE, Event.SAVE_PROFILE) == AppState.SCAN
    assert transition(AppState.SCAN, Event.CAPTURE) == AppState.ANALYZING
    assert transition(AppState.ANALYZING, Event.SUCCEED) == AppState.RESULT
    assert transition(AppState.ANALYZING, Event.FAIL) == AppState.ERROR
    assert transition(AppState.RESULT, Event.RESET) == AppState.SCAN
    assert transition(AppState.ERROR, Event.RESET) == AppState.SCAN
    assert transition(AppState.ERROR, Event.EDIT_PROFILE) == AppState.PROFILE


@pytest.mark.parametrize(
    "state, event",
    [
        (AppState.ANALYZING, Event.CAPTURE),
        (AppState.ANALYZING, Event.RESET),
        (AppState.PROFILE, Event.CAPTURE),
        (AppState.RESULT, Event.CAPTURE),
        (AppState.SCAN, Event.SUCCEED),
    ],
)
def test_transition_rejects_undefined_pairs(state, event):
    with pytest.raises(InvalidTransition):
        transition(state, event)


# ---------------------------------------------------------------------------
# startup and profile
# ---------------------------------------------------------------------------

async def test_start_without_saved_profile_opens_profile_setup(services):
    controller = await ScanController.start(services, MemoryStore())

    assert controller.state == AppState.PROFILE
    assert controller.profile == DEFAULT_PROFILE
    assert controller.has_profile is False


async def test_start_with_saved_profile_opens_scanner(services):
    store = MemoryStore(raw=SAVED_PROFILE.model_dump_json())

    controller = await ScanController.start(services, store)

    assert controller.state == AppState.SCAN
    assert controller.profile == SAVED_PROFILE


async def test_save_profile_persists_and_moves_to_scanner(services):
    store = MemoryStore()
    controller = await ScanController.start(services, store)
    profile = UserProfile(age="abc", gender="Other", conditions=["Asthma"])

    state = await controller.save_profile(profile)

    assert state == AppState.SCAN
    assert store.saves == 1
    assert controller.profile.age == 0
    assert (await store.load()) == controller.profile


async def test_save_profile_outside_editor_does_not_write(services):
    store = MemoryStore()
    controller = make_controller(services, store=store)

    with pytest.raises(InvalidTransition):
        await controller.save_profile(SAVED_PROFILE)
    assert store.saves == 0


class SlowStore(MemoryStore):
    """Yields to the event loop in the middle of every write."""

    def __init__(self, fail: bool = False):
        super().__init__()
        self.fail = fail

    async def save(self, profile):
        await asyncio.sleep(0.01)
        if self.fail:
            raise OSError("disk full")
        await super().save(profile)


async def test_overlapping_saves_write_only_once(services):
    store = SlowStore()
    controller = await ScanController.start(services, store)

    results = await asyncio.gather(
        controller.save_profile(UserProfile(age=1)),
        controller.save_profile(UserProfile(age=2)),
        return_exceptions=True,
    )

    assert results[0] == AppState.SCAN
    assert isinstance(results[1], InvalidTransition)
    assert store.saves == 1
    assert (await store.load()).age == 1
    assert controller.profile.age == 1


async def test_failed_save_stays_in_profile_setup(services):
    controller = await ScanController.start(services, SlowStore(fail=True))

    with pytest.raises(OSError):
        await controller.save_profile(UserProfile(age=1))

    assert controller.state == AppState.PROFILE
    assert controller.has_profile is False
    assert controller.profile == DEFAULT_PROFILE


# ---------------------------------------------------------------------------
# pipeline
# ---------------------------------------------------------------------------

async def test_full_scan_reaches_result(services, label_image):
    controller = make_controller(services)

    controller.capture(label_image)
    state = await controller.run()

    assert state == AppState.RESULT
    assert controller.identity == TYLENOL
    assert controller.analysis == LOW_RISK
    assert controller.error is None
    assert services.labels.calls == ["Acetaminophen"]
    request = services.reasoner.calls[0]
    assert request.profile == SAVED_PROFILE
    assert request.label.warnings == ["liver damage"]


async def test_steps_can_be_driven_one_at_a_time(services, label_image):
    controller = make_controller(services)
    controller.capture(label_image)

    assert controller.step == ScanStep.IDENTIFY
    assert controller.step_label == "Reading medication label..."

    assert await controller.advance() == AppState.ANALYZING
    assert controller.step == ScanStep.LOOKUP
    assert controller.step_label == "Consulting FDA database..."
    assert services.labels.calls == []

    assert await controller.advance() == AppState.ANALYZING
    assert controller.step == ScanStep.REASON
    assert controller.step_label == "Checking your health compatibility..."
    assert services.reasoner.calls == []

    assert await controller.advance() == AppState.RESULT
    assert controller.step is None


async def test_unreadable_label_ends_in_error(services, label_image):
    services.identifier.result = DrugIdentity(brandName=None, genericName=None, confidence=0.1)
    controller = make_controller(services)

    controller.capture(label_image)
    state = await controller.run()

    assert state == AppState.ERROR
    assert controller.error == "Could not read the medication label. Please try scanning again."
    assert controller.analysis is None
    assert services.labels.calls == []
    assert services.reasoner.calls == []


async def test_missing_label_still_reaches_result(services, label_image):
    services.labels.result = None
    controller = make_controller(services)

    controller.capture(label_image)
    state = await controller.run()

    assert state == AppState.RESULT
    assert services.reasoner.calls[0].label is None


async def test_lookup_falls_back_to_brand_name(services, label_image):
    services.identifier.result = DrugIdentity(brandName="Advil", genericName=None, confidence=0.9)
    controller = make_controller(services)

    controller.capture(label_image)
    await controller.run()

    assert services.labels.calls == ["Advil"]


async def test_identify_fault_skips_remaining_steps(services, label_image):
    services.identifier.error = ServiceError("Failed to identify medication from image.")
    controller = make_controller(services)

    controller.capture(label_image)
    state = await controller.run()

    assert state == AppState.ERROR
    assert controller.error == "Failed to identify medication from image."
    assert services.labels.calls == []
    assert services.reasoner.calls == []


async def test_lookup_fault_skips_reasoning(services, label_image, service_fault):
    services.labels.error = service_fault
    controller = make_controller(services)

    controller.capture(label_image)
    state = await controller.run()

    assert state == AppState.ERROR
    assert controller.error == "OpenFDA API Error: Internal Server Error"
    assert len(services.labels.calls) == 1
    assert services.reasoner.calls == []


async def test_reasoning_fault_ends_in_error(services, label_image):
    services.reasoner.error = ServiceError("Failed to analyze drug safety.")
    controller = make_controller(services)

    controller.capture(label_image)
    state = await controller.run()

    assert state == AppState.ERROR
    assert controller.error == "Failed to analyze drug safety."
    assert controller.analysis is None


async def test_unexpected_fault_uses_generic_message(services, label_image):
    services.reasoner.error = KeyError("riskLevel")
    controller = make_controller(services)

    controller.capture(label_image)
    state = await controller.run()

    assert state == AppState.ERROR
    assert controller.error == "An unexpected error occurred."


async def test_error_is_entered_exactly_once(services, label_image):
    services.identifier.error = ServiceError("boom")
    controller = make_controller(services)
    controller.capture(label_image)

    assert await controller.advance() == AppState.ERROR
    with pytest.raises(InvalidTransition):
        await controller.advance()
    assert len(services.identifier.calls) == 1


@pytest.mark.parametrize("fail", [True, False])
async def test_reset_clears_every_trace_of_the_scan(services, label_image, fail):
    if fail:
        services.reasoner.error = ServiceError("Failed to analyze drug safety.")
    controller = make_controller(services)
    controller.capture(label_image)
    await controller.run()

    assert controller.reset() == AppState.SCAN
    assert controller.image is None
    assert controller.identity is None
    assert controller.label is None
    assert controller.analysis is None
    assert controller.error is None
    assert controller.step is None


async def test_capture_clears_previous_scan(services, label_image):
    services.reasoner.error = ServiceError("Failed to analyze drug safety.")
    controller = make_controller(services)
    controller.capture(label_image)
    await controller.run()
    controller.reset()

    services.identifier.error = ServiceError("Failed to identify medication from image.")
    controller.capture(label_image)

    assert controller.identity is None
    assert controller.error is None
    await controller.run()
    assert controller.identity is None
    assert controller.error == "Failed to identify medication from image."


async def test_edit_profile_from_result(services, label_image):
    controller = make_controller(services)
    controller.capture(label_image)
    await controller.run()

    assert controller.edit_profile() == AppState.PROFILE
    assert controller.analysis is None

    new_profile = SAVED_PROFILE.model_copy(update={"medications": ["Warfarin"]})
    assert await controller.save_profile(new_profile) == AppState.SCAN
    assert controller.profile.medications == ["Warfarin"]


async def test_capture_while_analyzing_is_not_a_transition(services, label_image):
    controller = make_controller(services)
    controller.capture(label_image)

    with pytest.raises(InvalidTransition):
        controller.capture(label_image)
    assert controller.state == AppState.ANALYZING


async def test_controller_works_with_any_service_bundle(label_image):
    services = ScanServices(
        identifier=FakeService(result=TYLENOL),
        labels=FakeService(result=None),
        reasoner=FakeService(result=LOW_RISK),
    )
    controller = make_controller(services, profile=UserProfile())

    controller.capture(label_image)

    assert await controller.run() == AppState.RESULT
