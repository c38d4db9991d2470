"""Gmail adapter."""

import base64
import logging
from email.mime.text import MIMEText
from typing import Any

from pydantic import BaseModel

from voice_assistant.errors import ValidationError
from voice_assistant.models import Credential, Provider

from .base import BaseAdapter, Handler, require

logger = logging.getLogger(__name__)

GMAIL_API = "https://gmail.googleapis.com/gmail/v1"
DEFAULT_QUERY = "category:primary"


def _decode_body(payload: dict) -> str:
    """Recursively extract plain text body from a Gmail message payload."""
    mime_type = payload.get("mimeType", "")

    if mime_type == "text/plain":
        data = payload.get("body", {}).get("data", "")
        if data:
            return base64.urlsafe_b64decode(data + "==").decode("utf-8", errors="replace")

    if mime_type.startswith("multipart/"):
        for part in payload.get("parts", []):
            result = _decode_body(part)
            if result:
                return result

    return ""


def _build_raw_message(to: str, subject: str, body: str, cc: str | None = None) -> str:
    """Build a base64url encoded raw MIME message for the Gmail API."""
    msg = MIMEText(body, "plain", "utf-8")
    msg["to"] = to
    msg["subject"] = subject
    if cc:
        msg["cc"] = cc

    return base64.urlsafe_b64encode(msg.as_bytes()).decode("utf-8")


def _headers(msg_data: dict) -> dict:
    return {h["name"]: h["value"] for h in msg_data.get("payload", {}).get("headers", [])}


class EmailMessage(BaseModel):
    id: str
    subject: str
    sender: str
    snippet: str
    date: str


class EmailMessageDetail(EmailMessage):
    thread_id: str
    recipient: str
    body: str


class GmailAdapter(BaseAdapter):
    api_name = "Gmail"

    @property
    def provider(self) -> Provider:
        return Provider.GMAIL

    def handlers(self) -> dict[str, Handler]:
        return {
            "listMessages": self.list_messages,
            "getMessage": self.get_message,
            "sendMessage": self.send_message,
        }

    async def list_messages(self, params: dict[str, Any], credential: Credential) -> dict:
        """Messages matching a Gmail query, as metadata summaries."""
        query = params.get("query") or DEFAULT_QUERY
        try:
            max_results = min(max(int(params.get("max_results", 10)), 1), 50)
        except (TypeError, ValueError):
            raise ValidationError("max_results must be a number")

        response = await self._request(
            "GET",
            f"{GMAIL_API}/users/me/messages",
            credential,
            params={"q": query, "maxResults": max_results},
        )
        message_ids = [msg["id"] for msg in response.json().get("messages", [])]

        messages = []
        for msg_id in message_ids:
            msg_response = await self._request(
                "GET",
                f"{GMAIL_API}/users/me/messages/{msg_id}",
                credential,
                params={"format": "metadata", "metadataHeaders": ["From", "Subject", "Date"]},
            )
            msg_data = msg_response.json()
            hdrs = _headers(msg_data)
            messages.append(EmailMessage(
                id=msg_data["id"],
                subject=hdrs.get("Subject", "(No subject)"),
                sender=hdrs.get("From", "(Unknown sender)"),
                snippet=msg_data.get("snippet", ""),
                date=hdrs.get("Date", ""),
            ))

        return {
            "query": query,
            "messages": [m.model_dump() for m in messages],
            "count": len(messages),
        }

    async def get_message(self, params: dict[str, Any], credential: Credential) -> dict:
        require(params, "message_id")

        response = await self._request(
            "GET",
            f"{GMAIL_API}/users/me/messages/{params['message_id']}",
            credential,
            params={"format": "full"},
        )

        msg_data = response.json()
        hdrs = _headers(msg_data)
        body = _decode_body(msg_data.get("payload", {})) or msg_data.get("snippet", "")

        message = EmailMessageDetail(
            id=msg_data["id"],
            thread_id=msg_data.get("threadId", ""),
            subject=hdrs.get("Subject", "(No subject)"),
            sender=hdrs.get("From", "(Unknown sender)"),
            recipient=hdrs.get("To", ""),
            snippet=msg_data.get("snippet", ""),
            date=hdrs.get("Date", ""),
            body=body,
        )
        return {"message": message.model_dump()}

    async def send_message(self, params: dict[str, Any], credential: Credential) -> dict:
        require(params, "to", "body")
        if "@" not in str(params["to"]):
            raise ValidationError(f"Not an email address: {params['to']}")

        raw = _build_raw_message(
            params["to"],
            params.get("subject") or "(No subject)",
            params["body"],
            params.get("cc"),
        )

        response = await self._request(
            "POST",
            f"{GMAIL_API}/users/me/messages/send",
            credential,
            json={"raw": raw},
        )

        data = response.json()
        logger.info(f"Sent message {data.get('id')} for user {credential.user_id}")
        return {"id": data.get("id"), "thread_id": data.get("threadId"), "sent": True}
