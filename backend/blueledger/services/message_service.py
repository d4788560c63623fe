# Overview: Tenant-scoped worker-to-admin messages.

from __future__ import annotations

from ..errors import InvalidArgument, NotFound
from ..models import Message
from ..time_utils import utcnow
from ..validation import require_text
from .concurrency import TransactionRunner
from .snapshot_feed import MESSAGES, SnapshotFeed
from .tenant_service import Caller, TenantGuard

MAX_MESSAGE_LENGTH = 2000


class MessageBoard:
    def __init__(
        self,
        db,
        runner: TransactionRunner,
        guard: TenantGuard,
        feed: SnapshotFeed | None = None,
        *,
        list_limit: int = 200,
    ):
        self.db = db
        self.runner = runner
        self.guard = guard
        self.feed = feed
        self.list_limit = list_limit

    def post(self, caller: Caller, text) -> Message:
        company_id = self.guard.require_company(caller.company_id)
        text = require_text(text, "text", max_length=MAX_MESSAGE_LENGTH)

        message = Message(
            company_id=company_id,
            from_uid=caller.uid,
            from_name=caller.name or caller.email,
            from_email=caller.email or "",
            text=text,
            created_at=utcnow(),
        )

        def unit(session) -> Message:
            session.add(message)
            session.flush()
            return message

        created = self.runner.run(unit, label="post message")
        self._publish(company_id)
        return created

    def list_recent(
        self,
        company_id: str | None,
        *,
        limit: int | None = None,
        from_uid: str | None = None,
    ) -> list[Message]:
        """Newest first, capped at list_limit. from_uid narrows to one sender."""
        limit = self.list_limit if limit is None else limit
        if limit < 1:
            raise InvalidArgument("limit must be positive")
        query = self.guard.scoped(self.db.session.query(Message), Message, company_id)
        if from_uid is not None:
            query = query.filter(Message.from_uid == from_uid)
        return (
            query.populate_existing()
            .order_by(Message.created_at.desc(), Message.id)
            .limit(min(limit, self.list_limit))
            .all()
        )

    def delete(self, message_id: str, *, company_id: str | None, actor_uid: str | None = None) -> None:
        self.guard.require_company(company_id)

        def unit(session) -> None:
            message = session.get(Message, message_id, populate_existing=True)
            if message is None:
                raise NotFound("Message not found.")
            self.guard.require_same_company(message.company_id, company_id)
            session.delete(message)

        with self.guard.reporting(actor_uid, company_id, action="DELETE_MESSAGE", resource=f"message:{message_id}"):
            self.runner.run(unit, label=f"delete message {message_id}")
        self._publish(company_id)

    def _publish(self, company_id: str | None) -> None:
        if self.feed is not None and company_id:
            self.feed.publish(company_id, MESSAGES)
