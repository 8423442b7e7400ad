"""
Per-user chat history in a Firestore document, over the REST API.

Document layout: ``chats/{userId}`` with one field ``messages`` holding the
turn list. Saves patch only that field, leaving other fields untouched.
"""
import asyncio
import logging
from typing import Optional
from urllib.parse import quote

import aiohttp

import constants as C

logger = logging.getLogger(__name__)


class CloudStoreError(Exception):
    """Raised when the remote document store rejects or fails a request."""
    pass


def encode_value(value: object) -> dict:
    """Encode a plain Python value as a Firestore typed value."""
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, (list, tuple)):
        values = [encode_value(v) for v in value]
        return {"arrayValue": {"values": values} if values else {}}
    if isinstance(value, dict):
        return {"mapValue": {"fields": {str(k): encode_value(v) for k, v in value.items()}}}
    raise TypeError(f"Cannot encode {type(value).__name__} for Firestore")


def decode_value(value: dict) -> object:
    """Decode a Firestore typed value into a plain Python value."""
    if not isinstance(value, dict) or not value:
        return None
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "timestampValue" in value:
        return value["timestampValue"]
    if "arrayValue" in value:
        return [decode_value(v) for v in (value["arrayValue"] or {}).get("values", [])]
    if "mapValue" in value:
        fields = (value["mapValue"] or {}).get("fields", {})
        return {k: decode_value(v) for k, v in fields.items()}
    logger.debug("Unsupported Firestore value type: %s", list(value))
    return None


class FirestoreChatStore:
    """Load and save the turn list of one signed-in user."""

    def __init__(
        self,
        project_id: str,
        api_key: str = "",
        id_token: Optional[str] = None,
        base_url: str = C.FIRESTORE_BASE_URL,
    ):
        self.project_id = project_id
        self.api_key = api_key
        self.id_token = id_token
        self.base_url = base_url.rstrip("/")
        self.session: Optional[aiohttp.ClientSession] = None

    async def initialize(self) -> None:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()

    async def close(self) -> None:
        if self.session and not self.session.closed:
            await self.session.close()

    def document_url(self, user_id: str) -> str:
        return (
            f"{self.base_url}/projects/{self.project_id}/databases/(default)/documents/"
            f"{C.FIRESTORE_COLLECTION}/{quote(user_id, safe='')}"
        )

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.id_token:
            headers["Authorization"] = f"Bearer {self.id_token}"
        return headers

    def _params(self, extra: Optional[dict] = None) -> dict:
        params = dict(extra or {})
        if self.api_key:
            params["key"] = self.api_key
        return params

    async def load(self, user_id: Optional[str]) -> list[dict]:
        """Fetch the stored turn dicts for a user.

        Returns:
            The turn list, or an empty list when there is no user or document.

        Raises:
            CloudStoreError: On transport failure or a rejected request.
        """
        if not user_id:
            return []
        await self.initialize()
        try:
            async with self.session.get(
                self.document_url(user_id),
                params=self._params(),
                headers=self._headers(),
                timeout=aiohttp.ClientTimeout(total=C.FIRESTORE_TIMEOUT),
            ) as resp:
                if resp.status == 404:
                    return []
                if resp.status != 200:
                    raise CloudStoreError(f"Load failed {resp.status}: {await resp.text()}")
                data = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise CloudStoreError(f"Load failed: {e}") from e

        fields = data.get("fields") or {}
        messages = decode_value(fields.get("messages", {}))
        if not isinstance(messages, list):
            return []
        logger.info("Loaded %d remote turn(s) for user %s", len(messages), user_id)
        return [m for m in messages if isinstance(m, dict)]

    async def save(self, user_id: Optional[str], turns: list[dict]) -> None:
        """Overwrite the ``messages`` field of the user's document.

        Raises:
            CloudStoreError: On transport failure or a rejected request.
        """
        if not user_id:
            return
        await self.initialize()
        body = {"fields": {"messages": encode_value(list(turns))}}
        try:
            async with self.session.patch(
                self.document_url(user_id),
                params=self._params({"updateMask.fieldPaths": "messages"}),
                json=body,
                headers=self._headers(),
                timeout=aiohttp.ClientTimeout(total=C.FIRESTORE_TIMEOUT),
            ) as resp:
                if resp.status != 200:
                    raise CloudStoreError(f"Save failed {resp.status}: {await resp.text()}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise CloudStoreError(f"Save failed: {e}") from e
        logger.debug("Saved %d turn(s) for user %s", len(turns), user_id)
