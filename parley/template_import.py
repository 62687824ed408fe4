"""
Template import: the flow that parks a document template in the session
store so a later, separate chat request can pick it up by id.
"""

from __future__ import annotations

import logging

from parley.errors import SessionExpiredError, ValidationError
from parley.sessions import Session, SessionStore

logger = logging.getLogger(__name__)


def _required(value, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} is required")
    return value.strip()


def _session_id(value) -> str:
    return _required(value, "Session ID")


class TemplateImportService:
    def __init__(self, store: SessionStore):
        self.store = store

    def create_import_session(
        self,
        document_name,
        template,
        schema,
        notes=None,
        thread_id=None,
    ) -> dict:
        payload = {
            "documentName": _required(document_name, "Document name"),
            "notes": notes.strip() if isinstance(notes, str) else "",
            "mustache": _required(template, "Mustache template"),
            "docSchema": _required(schema, "Document schema"),
        }
        if thread_id:
            if not isinstance(thread_id, str):
                raise ValidationError("'threadId' must be a string")
            payload["threadId"] = thread_id

        session = self.store.create(payload)
        logger.info("Created import session %s for '%s'", session.id, payload["documentName"])
        return {"sessionId": session.id, "expiresAt": session.expires_at.isoformat()}

    def get_import_session(self, session_id) -> Session:
        session_id = _session_id(session_id)
        session = self.store.get(session_id)
        if session is None:
            logger.info("Import session not found: %s", session_id)
            raise SessionExpiredError()
        return session

    def delete_import_session(self, session_id) -> dict:
        session_id = _session_id(session_id)
        # Expired sessions count as missing, same as get()
        found = self.store.get(session_id) is not None
        if found:
            self.store.delete(session_id)
        return {
            "success": found,
            "message": "Session deleted" if found else "Session not found",
        }
