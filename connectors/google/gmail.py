"""Gmail adapter: thread search with attachment download, drafts, stars.

A starred thread counts as processed.
"""

import base64
from datetime import datetime
from email.message import EmailMessage
from typing import Any, Dict, List, Optional, Sequence

from googleapiclient.errors import HttpError

from connectors.base import MailClient, MailError, MailMessage, MailThread
from core.models import Attachment
from core.observability import get_logger

logger = get_logger(__name__)

STARRED_LABEL = "STARRED"


def _header(payload: Dict[str, Any], name: str) -> str:
    for header in payload.get("headers", []):
        if header.get("name", "").lower() == name.lower():
            return header.get("value", "")
    return ""


def _iter_parts(payload: Dict[str, Any]):
    yield payload
    for part in payload.get("parts", []) or []:
        yield from _iter_parts(part)


def _decode(data: str) -> bytes:
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def build_mime_message(
    to: str,
    subject: str,
    body: str,
    attachments: Sequence[Attachment] = (),
    sender: Optional[str] = None,
) -> EmailMessage:
    message = EmailMessage()
    message["To"] = to
    message["Subject"] = subject
    if sender:
        message["From"] = sender
    message.set_content(body)
    for attachment in attachments:
        maintype, _, subtype = attachment.mime_type.partition("/")
        message.add_attachment(
            attachment.content,
            maintype=maintype or "application",
            subtype=subtype or "octet-stream",
            filename=attachment.name,
        )
    return message


class GmailClient(MailClient):
    """MailClient over the Gmail v1 API."""

    def __init__(self, gmail_service, user_id: str = "me"):
        self.service = gmail_service
        self.user_id = user_id

    def _users(self):
        return self.service.users()

    def _attachment_bytes(self, message_id: str, body: Dict[str, Any]) -> bytes:
        if body.get("data"):
            return _decode(body["data"])
        resp = self._users().messages().attachments().get(
            userId=self.user_id, messageId=message_id, id=body["attachmentId"],
        ).execute()
        return _decode(resp.get("data", ""))

    def _to_message(self, raw: Dict[str, Any]) -> MailMessage:
        payload = raw.get("payload", {})
        attachments = []
        for part in _iter_parts(payload):
            filename = part.get("filename")
            body = part.get("body", {})
            if not filename or not (body.get("attachmentId") or body.get("data")):
                continue
            attachments.append(Attachment(
                name=filename,
                content=self._attachment_bytes(raw["id"], body),
                mime_type=part.get("mimeType") or "application/octet-stream",
            ))

        sent_at = None
        if raw.get("internalDate"):
            sent_at = datetime.fromtimestamp(int(raw["internalDate"]) / 1000)

        return MailMessage(
            id=raw["id"],
            thread_id=raw.get("threadId", ""),
            subject=_header(payload, "Subject"),
            sent_at=sent_at,
            attachments=attachments,
        )

    def search(self, query: str, max_results: int = 20) -> List[MailThread]:
        try:
            resp = self._users().threads().list(
                userId=self.user_id, q=query, maxResults=max_results,
            ).execute()
            threads = []
            for item in resp.get("threads", []):
                raw = self._users().threads().get(
                    userId=self.user_id, id=item["id"], format="full",
                ).execute()
                messages = raw.get("messages", [])
                starred = any(STARRED_LABEL in m.get("labelIds", []) for m in messages)
                threads.append(MailThread(
                    id=raw["id"],
                    starred=starred,
                    messages=[self._to_message(m) for m in messages],
                ))
        except HttpError as e:
            raise MailError(f"Gmail search failed for {query!r}: {e}") from e

        logger.debug(f"Gmail search {query!r}: {len(threads)} thread(s)")
        return threads

    def create_draft(
        self,
        to: str,
        subject: str,
        body: str,
        attachments: Sequence[Attachment] = (),
    ) -> Optional[str]:
        raw = base64.urlsafe_b64encode(build_mime_message(to, subject, body, attachments).as_bytes())
        try:
            draft = self._users().drafts().create(
                userId=self.user_id,
                body={"message": {"raw": raw.decode("ascii")}},
            ).execute()
        except HttpError as e:
            raise MailError(f"Draft creation failed: {e}") from e
        logger.info(f"Created draft {draft.get('id')} to {to}: {subject}")
        return draft.get("id")

    def mark_processed(self, thread_id: str) -> None:
        try:
            self._users().threads().modify(
                userId=self.user_id, id=thread_id, body={"addLabelIds": [STARRED_LABEL]},
            ).execute()
        except HttpError as e:
            raise MailError(f"Failed to star thread {thread_id}: {e}") from e
