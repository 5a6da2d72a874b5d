"""Qanoon Document Service

Lifecycle jobs over legal letters:
- Signature requests, signing sessions and submitted signatures
- Signature reminder emails
- Expiry monitoring (reminders and auto-archive)
"""

from datetime import datetime, timezone, timedelta
from typing import Dict, Any, Optional
import logging

from database import database
from auth import generate_secure_token
from qanoon.models.documents import (
    LegalLetter,
    LetterStatus,
    SignatureRequest,
    SignatureRequestStatus,
    SignatureRecipient,
    SignatureFieldPosition,
    SigningSession,
    CreateSignatureRequest,
    DocumentExpiryTracking,
)
from qanoon.models.notifications import NotificationType
from qanoon.services.email_service import email_service
from qanoon.services.errors import FunctionError, ForbiddenError, NotFoundError
from qanoon.services.notification_service import notification_service

logger = logging.getLogger(__name__)

EXPIRY_WARNING_DAYS = 30
MAX_FIELD_ID_LENGTH = 100
MAX_FIELD_VALUE_LENGTH = 500000


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DocumentService:
    
    def _get_db(self):
        return database.get_db()

    async def _sender_name(self, user_id: str) -> str:
        owner = await self._get_db().profiles.find_one({"user_id": user_id}, {"_id": 0, "full_name": 1})
        return (owner or {}).get("full_name") or "A user"

    # ------------------------------------------------------------------
    # Signature requests
    # ------------------------------------------------------------------

    async def create_signature_request(self, user_id: str, data: CreateSignatureRequest) -> Dict[str, Any]:
        """Create a request over one of the caller's letters and email each recipient.

        Each recipient gets a private access token for /sign/<token>. Email
        failures are logged; the request is created either way.
        """
        db = self._get_db()

        letter = await db.legal_letters.find_one({"id": data.letter_id, "user_id": user_id}, {"_id": 0})
        if not letter:
            raise NotFoundError("Letter not found or access denied")

        expires_at = None
        if data.expires_in_days:
            expires_at = datetime.now(timezone.utc) + timedelta(days=data.expires_in_days)

        request = SignatureRequest(
            letter_id=data.letter_id,
            created_by=user_id,
            title=data.title,
            message=data.message,
            expires_at=expires_at,
            allow_editing=data.allow_editing,
            signing_order_enabled=data.signing_order_enabled,
        )
        recipients = [
            SignatureRecipient(
                signature_request_id=request.id,
                email=r.email.lower(),
                name=r.name,
                role=r.role,
                signing_order=index + 1 if data.signing_order_enabled else 1,
                access_token=generate_secure_token(),
            )
            for index, r in enumerate(data.recipients)
        ]
        by_email = {r.email: r for r in recipients}
        positions = [
            SignatureFieldPosition(
                signature_request_id=request.id,
                recipient_id=by_email[f.recipientEmail.lower()].id,
                field_type=f.type,
                page_number=f.page,
                x_position=f.x,
                y_position=f.y,
                width=f.width,
                height=f.height,
                is_required=f.required,
                field_label=f.label,
                placeholder_text=f.placeholder,
            )
            for f in data.field_positions
        ]

        await db.signature_requests.insert_one(request.model_dump())
        await db.signature_recipients.insert_many([r.model_dump() for r in recipients])
        if positions:
            await db.signature_field_positions.insert_many([p.model_dump() for p in positions])
        await db.legal_letters.update_one(
            {"id": data.letter_id},
            {"$set": {"status": LetterStatus.PENDING.value, "updated_at": datetime.now(timezone.utc)}}
        )

        sender_name = await self._sender_name(user_id)
        emails_sent = 0
        for recipient in recipients:
            message_log = await email_service.send_signature_request_email(
                recipient_email=recipient.email,
                recipient_name=recipient.name,
                sender_name=sender_name,
                document_title=request.title,
                message=request.message or "Please review and sign this document.",
                access_token=recipient.access_token,
                expires_at=request.expires_at,
            )
            if message_log.status == "failed":
                logger.warning(f"Signature request email to {recipient.email} failed (non-critical): {message_log.error_message}")
            else:
                emails_sent += 1

        logger.info(f"Signature request {request.id} created with {len(recipients)} recipients")
        return {
            "signature_request": request.model_dump(),
            "recipients": [r.model_dump(exclude={"access_token"}) for r in recipients],
            "emails_sent": emails_sent,
        }

    async def _recipient_by_token(self, access_token: Optional[str]) -> SignatureRecipient:
        doc = await self._get_db().signature_recipients.find_one(
            {"access_token": access_token}, {"_id": 0}
        ) if access_token else None
        if not doc:
            raise NotFoundError("Invalid access token")
        return SignatureRecipient(**doc)

    async def get_signing_session(
        self,
        access_token: Optional[str],
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Open a signing session for the recipient holding `access_token`."""
        if not access_token:
            raise ValueError("Access token is required")

        db = self._get_db()
        recipient = await self._recipient_by_token(access_token)
        if recipient.signed_at:
            raise FunctionError("Document already signed", details={"already_signed": True})

        doc = await db.signature_requests.find_one({"id": recipient.signature_request_id}, {"_id": 0})
        if not doc:
            raise NotFoundError("Signature request not found")
        request = SignatureRequest(**doc)

        now = datetime.now(timezone.utc)
        if request.expires_at and _as_aware(request.expires_at) < now:
            raise FunctionError("Signature request has expired", details={"expired": True})

        if not recipient.viewed_at:
            await db.signature_recipients.update_one(
                {"id": recipient.id},
                {"$set": {"viewed_at": now, "ip_address": ip_address, "user_agent": user_agent}}
            )

        fields = await db.signature_field_positions.find(
            {"recipient_id": recipient.id}, {"_id": 0}
        ).sort("page_number", 1).to_list(None)
        letter = await db.legal_letters.find_one(
            {"id": request.letter_id}, {"_id": 0, "id": 1, "title": 1, "content": 1}
        )

        session = SigningSession(
            recipient_id=recipient.id,
            session_token=generate_secure_token(),
            ip_address=ip_address,
            user_agent=user_agent,
        )
        await db.signing_sessions.insert_one(session.model_dump())

        return {
            "recipient": {
                "id": recipient.id,
                "name": recipient.name,
                "email": recipient.email,
                "role": recipient.role,
            },
            "request": {
                "id": request.id,
                "title": request.title,
                "message": request.message,
                "allow_editing": request.allow_editing,
            },
            "letter": letter,
            "fields": fields,
            "session_token": session.session_token,
        }

    async def submit_signature(
        self,
        access_token: Optional[str],
        session_token: Optional[str],
        field_values: Any,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Store a recipient's field values and complete the request once everyone has signed."""
        if not access_token or not isinstance(access_token, str):
            raise ValueError("Valid access token required")
        if not session_token or not isinstance(session_token, str):
            raise ValueError("Valid session token required")
        if not isinstance(field_values, dict):
            raise ValueError("Field values must be an object")
        for field_id, value in field_values.items():
            if len(field_id) > MAX_FIELD_ID_LENGTH:
                raise ValueError("Invalid field ID format")
            if not isinstance(value, str) or len(value) > MAX_FIELD_VALUE_LENGTH:
                raise ValueError(f"Invalid field value - must be a string under {MAX_FIELD_VALUE_LENGTH} characters")

        db = self._get_db()
        recipient = await self._recipient_by_token(access_token)
        if recipient.signed_at:
            raise ValueError("Document already signed")

        session = await db.signing_sessions.find_one(
            {"session_token": session_token, "recipient_id": recipient.id}, {"_id": 0}
        )
        if not session:
            raise ForbiddenError("Invalid session token")

        fields = await db.signature_field_positions.find({"recipient_id": recipient.id}, {"_id": 0}).to_list(None)
        known_ids = {f["id"] for f in fields}
        unknown = [field_id for field_id in field_values if field_id not in known_ids]
        if unknown:
            raise ValueError(f"Unknown fields: {', '.join(unknown)}")

        missing = [
            f.get("field_label") or f.get("field_type")
            for f in fields
            if f.get("is_required") and not field_values.get(f["id"], "").strip()
        ]
        if missing:
            raise ValueError(f"Missing required fields: {', '.join(missing)}")

        now = datetime.now(timezone.utc)
        for field_id, value in field_values.items():
            await db.signature_field_positions.update_one(
                {"id": field_id, "recipient_id": recipient.id},
                {"$set": {"field_value": value.strip(), "completed_at": now}}
            )
        await db.signature_recipients.update_one(
            {"id": recipient.id},
            {"$set": {
                "status": "signed",
                "signed_at": now,
                "ip_address": ip_address,
                "user_agent": user_agent,
            }}
        )
        await db.signing_sessions.update_one({"id": session["id"]}, {"$set": {"completed_at": now}})

        unsigned = await db.signature_recipients.count_documents(
            {"signature_request_id": recipient.signature_request_id, "signed_at": None}
        )
        all_signed = unsigned == 0
        if all_signed:
            await self._complete_request(recipient.signature_request_id, now)

        logger.info(f"Recipient {recipient.id} signed request {recipient.signature_request_id}")
        return {"message": "Signature submitted successfully", "all_signed": all_signed}

    async def _complete_request(self, request_id: str, now: datetime) -> None:
        db = self._get_db()
        doc = await db.signature_requests.find_one({"id": request_id}, {"_id": 0})
        if not doc:
            logger.warning(f"Signed recipients point at missing request {request_id}")
            return
        request = SignatureRequest(**doc)

        await db.signature_requests.update_one(
            {"id": request_id},
            {"$set": {"status": SignatureRequestStatus.COMPLETED.value, "completed_at": now}}
        )
        await db.legal_letters.update_one(
            {"id": request.letter_id},
            {"$set": {"status": LetterStatus.SIGNED.value, "signed_at": now, "updated_at": now}}
        )
        await notification_service.notify(
            user_id=request.created_by,
            title="Document Signed",
            message=f'All recipients have signed "{request.title}"',
            type=NotificationType.SUCCESS,
            metadata={"letter_id": request.letter_id, "signature_request_id": request_id},
        )

    async def send_signature_reminder(self, recipient_id: str) -> Dict[str, Any]:
        db = self._get_db()
        
        doc = await db.signature_recipients.find_one({"id": recipient_id}, {"_id": 0}) if recipient_id else None
        if not doc:
            raise NotFoundError("Signature recipient not found")
        recipient = SignatureRecipient(**doc)
        
        doc = await db.signature_requests.find_one({"id": recipient.signature_request_id}, {"_id": 0})
        if not doc:
            raise NotFoundError("Signature request not found")
        request = SignatureRequest(**doc)
        
        sender_name = "A user"
        letter = await db.legal_letters.find_one({"id": request.letter_id}, {"_id": 0, "user_id": 1})
        if letter:
            sender_name = await self._sender_name(letter["user_id"])
        
        message_log = await email_service.send_signature_request_email(
            recipient_email=recipient.email,
            recipient_name=recipient.name,
            sender_name=sender_name,
            document_title=request.title,
            message=f"Reminder: {request.message or 'Please sign this document.'}",
            access_token=recipient.access_token,
            expires_at=request.expires_at,
            is_reminder=True,
        )
        if message_log.status == "failed":
            raise FunctionError(
                f"Failed to send reminder email: {message_log.error_message or 'unknown error'}",
                status_code=500,
            )
        await db.signature_recipients.update_one(
            {"id": recipient_id},
            {"$set": {"last_reminder_at": datetime.now(timezone.utc)}}
        )
        
        logger.info(f"Signature reminder sent to recipient {recipient_id}")
        return {}
    
    async def monitor_document_expiry(self) -> Dict[str, Any]:
        """Warn owners of letters expiring soon and archive expired ones.
        
        Each tracked letter gets at most one reminder. Letters flagged for
        auto-archive are archived once their expiry passes.
        """
        db = self._get_db()
        now = datetime.now(timezone.utc)
        horizon = now + timedelta(days=EXPIRY_WARNING_DAYS)
        
        notifications_sent = 0
        async for doc in db.document_expiry_tracking.find(
            {"expires_at": {"$lte": horizon}, "reminder_sent": False},
            {"_id": 0}
        ):
            tracking = DocumentExpiryTracking(**doc)
            letter_doc = await db.legal_letters.find_one({"id": tracking.letter_id}, {"_id": 0})
            if not letter_doc:
                logger.warning(f"Expiry tracking {tracking.id} points at missing letter {tracking.letter_id}")
                continue
            letter = LegalLetter(**letter_doc)
            
            expires_at = _as_aware(tracking.expires_at)
            days_until_expiry = (expires_at - now).days
            
            await notification_service.notify(
                user_id=letter.user_id,
                title="Document Expiring Soon",
                message=f'Your document "{letter.title}" will expire in {days_until_expiry} days',
                type=NotificationType.WARNING,
                metadata={
                    "letter_id": tracking.letter_id,
                    "expires_at": expires_at.isoformat(),
                    "days_until_expiry": days_until_expiry,
                },
            )
            await db.document_expiry_tracking.update_one(
                {"id": tracking.id},
                {"$set": {"reminder_sent": True, "reminder_sent_at": now}}
            )
            notifications_sent += 1
        
        expired = await db.document_expiry_tracking.find(
            {"expires_at": {"$lte": now}, "auto_archive": True},
            {"_id": 0, "letter_id": 1}
        ).to_list(None)
        
        if expired:
            await db.legal_letters.update_many(
                {"id": {"$in": [d["letter_id"] for d in expired]}},
                {"$set": {"status": LetterStatus.ARCHIVED.value, "updated_at": now}}
            )
        
        logger.info(f"Expiry monitor: {notifications_sent} notifications, {len(expired)} archived")
        return {
            "notifications_sent": notifications_sent,
            "documents_archived": len(expired),
        }


document_service = DocumentService()
