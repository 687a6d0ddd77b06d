import logging
import re
from typing import Optional

import httpx

from safemeds.core.config import settings
from safemeds.core.errors import ServiceError
from safemeds.medications.base import Service
from safemeds.medications.schemas import FdaData

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9 ]")


def sanitize_drug_name(name: str) -> str:
    """Drop anything that would break the openFDA search expression (dosage symbols, quotes...)."""
    return _UNSAFE_CHARS.sub("", name or "").strip()


def build_label_query(name: str) -> dict:
    return {
        "search": f'openfda.brand_name:"{name}" OR openfda.generic_name:"{name}"',
        "limit": 1,
    }


class LabelService(Service[str, Optional[FdaData]]):
    """
    Looks a drug up in the openFDA label database by brand OR generic name.
    Returns the single best match, or None when openFDA has no label for it.
    """

    name = "openfda"

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        url: Optional[str] = None,
        lenient: Optional[bool] = None,
    ):
        self.client = client
        self.url = url or settings.openfda_url
        self.lenient = settings.label_lookup_lenient if lenient is None else lenient

    async def _get(self, params: dict) -> httpx.Response:
        if self.client is not None:
            return await self.client.get(self.url, params=params)
        async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
            return await client.get(self.url, params=params)

    async def fetch_label(self, drug_name: str) -> Optional[FdaData]:
        name = sanitize_drug_name(drug_name)
        if not name:
            return None

        try:
            res = await self._get(build_label_query(name))
        except httpx.HTTPError as e:
            raise ServiceError(f"OpenFDA API Error: {e}", service=self.name) from e

        if res.status_code == 404:
            logger.warning("Drug %r not found in OpenFDA database.", name)
            return None
        if not res.is_success:
            raise ServiceError(f"OpenFDA API Error: {res.reason_phrase}", service=self.name)

        try:
            payload = res.json()
            results = (payload.get("results") or []) if isinstance(payload, dict) else None
            if not isinstance(results, list) or (results and not isinstance(results[0], dict)):
                raise ValueError("unexpected payload shape")
            return FdaData.from_label(results[0]) if results else None
        except ValueError as e:
            # covers a non-JSON body and a label that fails validation
            raise ServiceError(f"OpenFDA API Error: malformed response ({e})", service=self.name) from e

    async def run(self, request: str) -> Optional[FdaData]:
        try:
            return await self.fetch_label(request)
        except ServiceError as e:
            logger.error("Failed to fetch FDA data for %r: %s", request, e.message)
            if self.lenient:
                return None
            raise
