import io
import json
import os
import sys
import tempfile
from types import SimpleNamespace

import pytest

# --- Ensure repo root is on sys.path so "safemeds" imports work ---
REPO_ROOT = os.path.dirname(os.path.dirname(__file__))  # go up from tests/ to repo root
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

# settings are read at import time, so point them at throwaway values first
_TMP_DIR = tempfile.mkdtemp(prefix="safemeds-tests-")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(_TMP_DIR, "app.db")
os.environ["OPENAI_API_KEY"] = "test-key"
os.environ["LABEL_LOOKUP_LENIENT"] = "false"
os.environ.pop("REASONING_MODEL", None)
os.environ.pop("REASONING_EFFORT", None)

from PIL import Image  # noqa: E402

from safemeds.core.errors import ServiceError  # noqa: E402
from safemeds.medications.base import ScanServices, Service  # noqa: E402
from safemeds.medications.schemas import DrugIdentity, FdaData, SafetyAnalysis  # noqa: E402
from safemeds.utils.images import ScanImage  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


# ===================== OPENAI FAKES ======================

class FakeCompletions:
    """Fake object for client.chat.completions"""

    def __init__(self, content=None, error: Exception | None = None):
        self._content = content
        self._error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self._error:
            # Simulate an error coming from the OpenAI client
            raise self._error

        # Shape the object like response.choices[0].message.content
        return SimpleNamespace(
            choices=[
                SimpleNamespace(
                    message=SimpleNamespace(content=self._content)
                )
            ]
        )


class FakeChat:
    def __init__(self, content=None, error: Exception | None = None):
        self.completions = FakeCompletions(content, error)


class FakeClient:
    """Fake AsyncOpenAI client with only .chat.completions.create"""

    def __init__(self, content=None, error: Exception | None = None):
        if isinstance(content, dict):
            content = json.dumps(content)
        self.chat = FakeChat(content, error)

    @property
    def calls(self):
        return self.chat.completions.calls


# ===================== SERVICE FAKES ======================

class FakeService(Service):
    """Returns a canned result (or raises) and records every request."""

    def __init__(self, result=None, error: Exception | None = None, name: str = "fake"):
        self.result = result
        self.error = error
        self.name = name
        self.calls = []

    async def run(self, request):
        self.calls.append(request)
        if self.error:
            raise self.error
        return self.result


class MemoryStore:
    """Profile store that keeps the serialized profile in memory."""

    def __init__(self, raw: str | None = None):
        self.raw = raw
        self.saves = 0

    async def load(self):
        from safemeds.profiles.schemas import UserProfile

        return UserProfile.model_validate_json(self.raw) if self.raw else None

    async def save(self, profile):
        self.raw = profile.model_dump_json()
        self.saves += 1


TYLENOL = DrugIdentity(brandName="Tylenol", genericName="Acetaminophen", strength="500mg", confidence=0.95)

TYLENOL_LABEL = FdaData(
    warnings=["liver damage"],
    purpose=["Pain reliever/fever reducer"],
    brand_name=["Tylenol"],
    generic_name=["Acetaminophen"],
)

LOW_RISK = SafetyAnalysis(
    isSafe=True,
    riskLevel="LOW",
    summary="No conflicts with your profile.",
    contraindications=[],
    sideEffects=["Nausea"],
    purpose="Pain relief",
    recommendation="Safe to use as directed.",
)


def png_bytes(size=(4, 4), fmt="PNG") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color=(255, 255, 255)).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def label_image() -> ScanImage:
    return ScanImage.from_bytes(png_bytes())


@pytest.fixture
def services():
    return ScanServices(
        identifier=FakeService(result=TYLENOL, name="vision"),
        labels=FakeService(result=TYLENOL_LABEL, name="openfda"),
        reasoner=FakeService(result=LOW_RISK, name="reasoning"),
    )


@pytest.fixture
def service_fault():
    return ServiceError("OpenFDA API Error: Internal Server Error", service="openfda")
