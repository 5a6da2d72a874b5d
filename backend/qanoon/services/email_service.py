from postmarker.core import PostmarkClient
from database import database
from qanoon.models.notifications import MessageLog, EmailTemplateAlias
from datetime import datetime, timezone
from html import escape
import os
import logging
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)

# Verified sender in Postmark
DEFAULT_SENDER = os.getenv("EMAIL_SENDER", "no-reply@qanoon.ai")

BRAND_NAME = "Qanoon AI"


class EmailService:
    def __init__(self):
        postmark_token = os.getenv("POSTMARK_SERVER_TOKEN")
        if not postmark_token:
            logger.warning("POSTMARK_SERVER_TOKEN not set - emails will be logged but not sent")
            self.client = None
        else:
            self.client = PostmarkClient(server_token=postmark_token)
            logger.info("Postmark email client initialized")
    
    async def send_email(
        self,
        recipient: str,
        template_alias: EmailTemplateAlias,
        template_model: Dict[str, Any],
        subject: str = BRAND_NAME,
    ) -> MessageLog:
        """Send an email with a built-in template and record it in message_logs."""
        db = database.get_db()
        
        message_log = MessageLog(
            recipient=recipient,
            template_alias=template_alias.value,
            subject=subject,
            status="queued"
        )
        
        try:
            if self.client:
                response = self.client.emails.send(
                    From=DEFAULT_SENDER,
                    To=recipient,
                    Subject=subject,
                    HtmlBody=self._build_html_body(template_alias, template_model),
                    TextBody=self._build_text_body(template_alias, template_model),
                    TrackOpens=True,
                    TrackLinks="HtmlOnly",
                    Tag=template_alias.value
                )
                
                message_log.postmark_message_id = response["MessageID"]
                message_log.status = "sent"
                message_log.sent_at = datetime.now(timezone.utc)
                logger.info(f"Email sent to {recipient}: {response['MessageID']}")
            else:
                # Dev mode - just log
                message_log.status = "sent"
                message_log.sent_at = datetime.now(timezone.utc)
                logger.info(f"[DEV MODE] Email logged (not sent) to {recipient}")
        
        except Exception as e:
            message_log.status = "failed"
            message_log.error_message = str(e)
            logger.error(f"Failed to send email to {recipient}: {e}")
        
        doc = message_log.model_dump()
        for key in ["created_at", "sent_at"]:
            if doc.get(key) and isinstance(doc[key], datetime):
                doc[key] = doc[key].isoformat()
        
        await db.message_logs.insert_one(doc)
        return message_log
    
    def _build_html_body(self, template_alias: EmailTemplateAlias, model: Dict[str, Any]) -> str:
        if template_alias in (EmailTemplateAlias.SIGNATURE_REQUEST, EmailTemplateAlias.SIGNATURE_REMINDER):
            heading = "Reminder: signature requested" if template_alias == EmailTemplateAlias.SIGNATURE_REMINDER else "Signature requested"
            expires = f"<p style=\"color: #666; font-size: 14px;\">This request expires on {escape(str(model['expires_at']))}.</p>" if model.get("expires_at") else ""
            return f"""
            <html>
            <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
                <h1 style="color: #0B1D3A;">{heading}</h1>
                <p>Hello {escape(model.get('recipient_name') or 'there')},</p>
                <p>{escape(model.get('sender_name', 'A user'))} has asked you to sign <strong>{escape(model.get('document_title', 'a document'))}</strong>.</p>
                <p>{escape(model.get('message', ''))}</p>
                <p style="margin: 30px 0;">
                    <a href="{model.get('signing_link', '#')}"
                       style="background-color: #0B1D3A; color: white; padding: 12px 24px;
                              text-decoration: none; border-radius: 6px; display: inline-block;">
                        Review and Sign
                    </a>
                </p>
                {expires}
            </body>
            </html>
            """
        elif template_alias == EmailTemplateAlias.PAYMENT_FAILED:
            return f"""
            <html>
            <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
                <h1 style="color: #b91c1c;">Payment failed</h1>
                <p>We were unable to collect payment for your {BRAND_NAME} subscription after several attempts.</p>
                <p>Please update your payment method to keep your plan active.</p>
                <p><a href="{model.get('billing_link', '#')}">Update payment method</a></p>
            </body>
            </html>
            """
        return f"<html><body><p>{escape(str(model.get('message', '')))}</p></body></html>"
    
    def _build_text_body(self, template_alias: EmailTemplateAlias, model: Dict[str, Any]) -> str:
        if template_alias in (EmailTemplateAlias.SIGNATURE_REQUEST, EmailTemplateAlias.SIGNATURE_REMINDER):
            lines = [
                f"Hello {model.get('recipient_name') or 'there'},",
                "",
                f"{model.get('sender_name', 'A user')} has asked you to sign \"{model.get('document_title', 'a document')}\".",
                model.get("message", ""),
                "",
                f"Review and sign: {model.get('signing_link', '')}",
            ]
            if model.get("expires_at"):
                lines.append(f"This request expires on {model['expires_at']}.")
            return "\n".join(lines)
        elif template_alias == EmailTemplateAlias.PAYMENT_FAILED:
            return (
                f"We were unable to collect payment for your {BRAND_NAME} subscription after several attempts.\n"
                f"Update your payment method: {model.get('billing_link', '')}"
            )
        return str(model.get("message", ""))
    
    async def send_signature_request_email(
        self,
        recipient_email: str,
        recipient_name: Optional[str],
        sender_name: str,
        document_title: str,
        message: str,
        access_token: str,
        expires_at: Optional[datetime] = None,
        is_reminder: bool = False,
    ) -> MessageLog:
        app_url = os.getenv("PUBLIC_APP_URL", "http://localhost:3000")
        alias = EmailTemplateAlias.SIGNATURE_REMINDER if is_reminder else EmailTemplateAlias.SIGNATURE_REQUEST
        subject = f"{'Reminder: ' if is_reminder else ''}{sender_name} requested your signature on {document_title}"
        
        return await self.send_email(
            recipient=recipient_email,
            template_alias=alias,
            template_model={
                "recipient_name": recipient_name,
                "sender_name": sender_name,
                "document_title": document_title,
                "message": message,
                "signing_link": f"{app_url}/sign/{access_token}",
                "expires_at": expires_at.isoformat() if isinstance(expires_at, datetime) else expires_at,
            },
            subject=subject,
        )
    
    async def send_payment_failed_email(self, recipient: str) -> MessageLog:
        frontend_url = os.getenv("FRONTEND_URL", "http://localhost:3000")
        return await self.send_email(
            recipient=recipient,
            template_alias=EmailTemplateAlias.PAYMENT_FAILED,
            template_model={"billing_link": f"{frontend_url}/subscription"},
            subject=f"{BRAND_NAME}: payment failed",
        )


email_service = EmailService()
