"""Email composition."""

from __future__ import annotations

import logging
from typing import Any

from clinical_workflow_engine.engine.rules.models import ExecutionContext

from .outbox import LoggingOutbox, OutboundMessage, Outbox
from .params import EmailParams

logger = logging.getLogger(__name__)

DEFAULT_SENDER = "clinical-workflows@hospital.example"


class EmailHandler:
    def __init__(self, outbox: Outbox | None = None, sender: str = DEFAULT_SENDER) -> None:
        self.outbox: Outbox = outbox or LoggingOutbox()
        self.sender = sender

    def __call__(self, params: EmailParams, context: ExecutionContext) -> dict[str, Any]:
        if not params.to:
            raise ValueError("Email action requires at least one recipient")

        logger.info(
            "Sending email",
            extra={"execution_id": context.execution_id, "recipients": len(params.to)},
        )

        body_type = params.body_type
        if params.body and "body_type" not in params.model_fields_set:
            body_type = "html" if "<html>" in params.body or "<div>" in params.body else "text"

        email = {
            "to": params.to,
            "cc": params.cc,
            "bcc": params.bcc,
            "from": params.sender or self.sender,
            "reply_to": params.reply_to,
            "subject": params.subject,
            "body": params.body or "",
            "body_type": body_type,
            "priority": params.priority,
            "rule_id": context.rule_id,
            "execution_id": context.execution_id,
            "patient_id": context.patient_id,
        }
        receipt = self.outbox.submit(OutboundMessage(channel="email", payload=email))
        return {
            "email_id": receipt.message_id,
            "recipients": len(params.to) + len(params.cc) + len(params.bcc),
            **receipt.to_json(),
            "subject": params.subject,
        }
