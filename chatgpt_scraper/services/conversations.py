# chatgpt_scraper/services/conversations.py
"""
Thin helpers over the ChatGPT backend API.

Requests are sent from inside the page (same origin, same cookies) with the
Authorization header latched by the auth monitor.
"""

import json
import logging
from typing import Any, Optional

from chatgpt_scraper.models.types import ChatPage
from chatgpt_scraper.services.session import Session

# Module logger
logger = logging.getLogger(__name__)

CONVERSATIONS_ENDPOINT = "/backend-api/conversations?offset={offset}&limit={limit}&order=updated"
CONVERSATION_ENDPOINT = "/backend-api/conversation/{chat_id}"

# fetch() inside the page; resolves to {ok, status, body}
_JS_FETCH_JSON = '''async ([endpoint, method, headers, body]) => {
    try {
        const res = await fetch(endpoint, {method: method, headers: headers, body: body || undefined});
        let data = null;
        try { data = await res.json(); } catch (e) { data = null; }
        return {ok: res.ok, status: res.status, body: data};
    } catch (err) {
        return {ok: false, status: 0, body: null, error: String(err)};
    }
}'''


class ConversationApi:
    """List, look up and hide conversations"""

    def __init__(self, session: Session):
        self._session = session

    def _headers(self) -> dict[str, str]:
        headers = {}
        if self._session.credential:
            headers["Authorization"] = self._session.credential
        return headers

    async def _request(self, endpoint: str, method: str = "GET", body: Optional[dict] = None) -> dict[str, Any]:
        page = self._session.require_page()
        headers = self._headers()
        payload = None
        if body is not None:
            payload = json.dumps(body)
            headers["Content-Type"] = "application/json"
        try:
            response = await page.evaluate(_JS_FETCH_JSON, endpoint, method, headers, payload)
        except Exception as e:
            logger.warning("Backend request failed (%s %s): %s", method, endpoint, e)
            return {"ok": False, "status": 0, "body": None}
        if not isinstance(response, dict):
            return {"ok": False, "status": 0, "body": None}
        if not response.get("ok"):
            logger.debug("Backend request %s %s returned status %s", method, endpoint, response.get("status"))
        return response

    async def list_chats(self, offset: int = 0, limit: int = 28) -> Optional[ChatPage]:
        """
        Fetch one page of the conversation list, most recently updated first.

        Returns:
            ChatPage, or None when the request failed or returned no items
        """
        endpoint = CONVERSATIONS_ENDPOINT.format(offset=offset, limit=limit)
        response = await self._request(endpoint)
        body = response.get("body")
        if isinstance(body, dict) and body.get("items") is not None:
            return ChatPage.from_dict(body)
        return None

    async def get_chat(self, chat_id: str) -> Optional[dict]:
        """Fetch one conversation; None if it does not exist or is not accessible."""
        if not chat_id:
            return None
        response = await self._request(CONVERSATION_ENDPOINT.format(chat_id=chat_id))
        body = response.get("body")
        if response.get("ok") and isinstance(body, dict):
            return body
        return None

    async def chat_exists(self, chat_id: str) -> bool:
        return await self.get_chat(chat_id) is not None

    async def delete_chat(self, chat_id: str) -> bool:
        """Hide a conversation from the history (the web UI's delete)."""
        response = await self._request(
            CONVERSATION_ENDPOINT.format(chat_id=chat_id),
            method="PATCH",
            body={"is_visible": False},
        )
        ok = bool(response.get("ok"))
        if ok:
            logger.info("Deleted chat %s", chat_id)
        else:
            logger.warning("Failed to delete chat %s (status=%s)", chat_id, response.get("status"))
        return ok
