"""Qanoon Function Endpoints

One endpoint per administrative or glue action under /api/functions/<name>.
Each one reads a JSON body, validates it, performs its work and answers
with {"success": true, ...} or {"error": message} and an HTTP status.

CORS preflight for these endpoints is answered by the CORS middleware.
"""

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple
import json
import logging

from middleware import AuthContext, get_optional_auth
from qanoon.models.documents import CreateShareLinkRequest, CreateSignatureRequest
from qanoon.models.roles import UserRole
from qanoon.services.account_service import account_service
from qanoon.services.billing_service import billing_service
from qanoon.services.credit_service import credit_service
from qanoon.services.document_service import document_service
from qanoon.services.errors import (
    FunctionError,
    UnauthorizedError,
    ForbiddenError,
    function_response,
    function_error,
)
from qanoon.services.invitation_service import invitation_service
from qanoon.services.share_link_service import share_link_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/functions", tags=["Functions"])

SUPER_ADMIN_REQUIRED = "Unauthorized - Super admin access required"


async def _read_body(request: Request) -> Dict[str, Any]:
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except json.JSONDecodeError:
        raise ValueError("Invalid JSON body")
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")
    return body


def _require_user(user: Optional[AuthContext]) -> AuthContext:
    if user is None:
        raise UnauthorizedError("Unauthorized")
    return user


def _require_super_admin(user: Optional[AuthContext]) -> AuthContext:
    user = _require_user(user)
    if UserRole.SUPER_ADMIN.value not in user.roles and user.primary_role != UserRole.SUPER_ADMIN:
        raise ForbiddenError(SUPER_ADMIN_REQUIRED)
    return user


def _client_meta(request: Request) -> Tuple[Optional[str], Optional[str]]:
    """Caller IP (first forwarded hop) and user agent, recorded on signatures."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip()
    else:
        ip_address = request.headers.get("x-real-ip") or (request.client.host if request.client else None)
    return ip_address, request.headers.get("user-agent")


async def _invoke(name: str, action: Callable[[], Awaitable[Optional[Dict[str, Any]]]]):
    """Run one function and wrap its outcome in the response envelope."""
    try:
        payload = await action()
    except FunctionError as e:
        logger.warning(f"{name}: {e.message}")
        extra = e.details if isinstance(e.details, dict) else {"details": e.details}
        return function_error(e.message, e.status_code, **extra)
    except ValueError as e:
        logger.warning(f"{name}: {e}")
        return function_error(str(e), 400)
    except Exception as e:
        logger.error(f"Error in {name}: {e}", exc_info=True)
        return function_error(str(e) or "Internal server error", 500)
    return function_response(payload)


# ============================================================================
# Accounts and tenants
# ============================================================================

@router.post("/create-company-admin")
async def create_company_admin(request: Request, user: Optional[AuthContext] = Depends(get_optional_auth)):
    async def action():
        _require_super_admin(user)
        body = await _read_body(request)
        return await account_service.create_company_admin(
            body.get("email"), body.get("password"), body.get("companyName")
        )
    return await _invoke("create-company-admin", action)


@router.post("/cleanup-orphaned-users")
async def cleanup_orphaned_users(user: Optional[AuthContext] = Depends(get_optional_auth)):
    async def action():
        _require_super_admin(user)
        return await account_service.cleanup_orphaned_users()
    return await _invoke("cleanup-orphaned-users", action)


@router.post("/update-user-role")
async def update_user_role(request: Request, user: Optional[AuthContext] = Depends(get_optional_auth)):
    async def action():
        caller = _require_user(user)
        body = await _read_body(request)
        return await account_service.update_user_role(
            requester_id=caller.user_id,
            user_role_id=body.get("userRoleId"),
            user_id=body.get("userId"),
            company_id=body.get("companyId"),
            new_role=body.get("newRole"),
        )
    return await _invoke("update-user-role", action)


@router.post("/update-user-credits")
async def update_user_credits(request: Request, user: Optional[AuthContext] = Depends(get_optional_auth)):
    async def action():
        caller = _require_user(user)
        body = await _read_body(request)
        new_max = body.get("newMaxCredits")
        if new_max is not None and (isinstance(new_max, bool) or not isinstance(new_max, int)):
            raise ValueError("Credits must be a positive number")
        return await account_service.update_user_credits(
            requester_id=caller.user_id,
            user_role_id=body.get("userRoleId"),
            user_id=body.get("userId"),
            company_id=body.get("companyId"),
            new_max_credits=new_max,
        )
    return await _invoke("update-user-credits", action)


@router.post("/remove-company-user")
async def remove_company_user(request: Request, user: Optional[AuthContext] = Depends(get_optional_auth)):
    async def action():
        caller = _require_user(user)
        body = await _read_body(request)
        return await account_service.remove_company_user(caller.user_id, body.get("email"))
    return await _invoke("remove-company-user", action)


# ============================================================================
# Company invitations
# ============================================================================

@router.post("/send-company-invitation")
async def send_company_invitation(request: Request, user: Optional[AuthContext] = Depends(get_optional_auth)):
    async def action():
        caller = _require_user(user)
        body = await _read_body(request)
        max_credits = body.get("maxCredits")
        if max_credits is not None and (isinstance(max_credits, bool) or not isinstance(max_credits, int)):
            raise ValueError("Credits must be a positive number")
        return await invitation_service.send_invitation(
            requester_id=caller.user_id,
            email=body.get("email"),
            role=body.get("role"),
            company_id=body.get("companyId"),
            max_credits=max_credits,
        )
    return await _invoke("send-company-invitation", action)


@router.post("/get-invitation")
async def get_invitation(request: Request):
    async def action():
        body = await _read_body(request)
        return await invitation_service.get_invitation(body.get("token"))
    return await _invoke("get-invitation", action)


@router.post("/accept-company-invitation")
async def accept_company_invitation(request: Request):
    async def action():
        body = await _read_body(request)
        return await invitation_service.accept_invitation(
            body.get("token"), body.get("password"), body.get("fullName")
        )
    return await _invoke("accept-company-invitation", action)


@router.post("/accept-existing-user-invitation")
async def accept_existing_user_invitation(request: Request, user: Optional[AuthContext] = Depends(get_optional_auth)):
    async def action():
        caller = _require_user(user)
        body = await _read_body(request)
        return await invitation_service.accept_existing_user_invitation(caller.user_id, body.get("token"))
    return await _invoke("accept-existing-user-invitation", action)


# ============================================================================
# Credits
# ============================================================================

@router.post("/process-credit-rollover")
async def process_credit_rollover(user: Optional[AuthContext] = Depends(get_optional_auth)):
    async def action():
        _require_super_admin(user)
        return await credit_service.process_credit_rollover()
    return await _invoke("process-credit-rollover", action)


@router.post("/usage-alerts")
async def usage_alerts(user: Optional[AuthContext] = Depends(get_optional_auth)):
    async def action():
        caller = _require_user(user)
        summary = await credit_service.get_credit_summary(caller.user_id)
        return {
            "alerts": [a.model_dump() for a in summary.alerts],
            "credits_remaining": summary.personal.remaining,
            "total_credits": summary.personal.total,
            "usage_percentage": summary.personal.percentage,
        }
    return await _invoke("usage-alerts", action)


@router.post("/purchase-credits")
async def purchase_credits(request: Request, user: Optional[AuthContext] = Depends(get_optional_auth)):
    async def action():
        caller = _require_user(user)
        body = await _read_body(request)
        return await billing_service.create_credit_purchase(
            caller.user_id, caller.email, body.get("credits_amount")
        )
    return await _invoke("purchase-credits", action)


# ============================================================================
# Letters and signatures
# ============================================================================

@router.post("/create-share-link")
async def create_share_link(request: Request, user: Optional[AuthContext] = Depends(get_optional_auth)):
    try:
        caller = _require_user(user)
        body = await _read_body(request)
        data = CreateShareLinkRequest(**body)
    except ValidationError as e:
        logger.warning(f"create-share-link validation error: {e}")
        return function_error("Invalid input", 400, details=json.loads(e.json(include_url=False)))
    except FunctionError as e:
        return function_error(e.message, e.status_code)
    except ValueError as e:
        return function_error(str(e), 400)
    
    async def action():
        link = await share_link_service.create_share_link(caller.user_id, data)
        return {"shareLink": link}
    return await _invoke("create-share-link", action)


@router.post("/revoke-share-link")
async def revoke_share_link(request: Request, user: Optional[AuthContext] = Depends(get_optional_auth)):
    async def action():
        caller = _require_user(user)
        body = await _read_body(request)
        return await share_link_service.revoke_share_link(caller.user_id, body.get("shareLinkId"))
    return await _invoke("revoke-share-link", action)


@router.post("/track-letter-view")
async def track_letter_view(request: Request):
    async def action():
        body = await _read_body(request)
        return await share_link_service.track_view(body.get("token"), body.get("password"))
    return await _invoke("track-letter-view", action)


@router.post("/create-signature-request")
async def create_signature_request(request: Request, user: Optional[AuthContext] = Depends(get_optional_auth)):
    try:
        caller = _require_user(user)
        body = await _read_body(request)
        data = CreateSignatureRequest(**body)
    except ValidationError as e:
        logger.warning(f"create-signature-request validation error: {e}")
        return function_error("Invalid input", 400, details=json.loads(e.json(include_url=False)))
    except FunctionError as e:
        return function_error(e.message, e.status_code)
    except ValueError as e:
        return function_error(str(e), 400)

    async def action():
        return await document_service.create_signature_request(caller.user_id, data)
    return await _invoke("create-signature-request", action)


@router.post("/get-signing-session")
async def get_signing_session(request: Request):
    async def action():
        body = await _read_body(request)
        ip_address, user_agent = _client_meta(request)
        return await document_service.get_signing_session(body.get("access_token"), ip_address, user_agent)
    return await _invoke("get-signing-session", action)


@router.post("/submit-signature")
async def submit_signature(request: Request):
    async def action():
        body = await _read_body(request)
        ip_address, user_agent = _client_meta(request)
        return await document_service.submit_signature(
            body.get("access_token"),
            body.get("session_token"),
            body.get("field_values"),
            ip_address=ip_address,
            user_agent=user_agent,
        )
    return await _invoke("submit-signature", action)


@router.post("/send-reminder-email")
async def send_reminder_email(request: Request, user: Optional[AuthContext] = Depends(get_optional_auth)):
    async def action():
        _require_user(user)
        body = await _read_body(request)
        return await document_service.send_signature_reminder(body.get("recipient_id"))
    return await _invoke("send-reminder-email", action)


@router.post("/document-expiry-monitor")
async def document_expiry_monitor(user: Optional[AuthContext] = Depends(get_optional_auth)):
    async def action():
        _require_super_admin(user)
        return await document_service.monitor_document_expiry()
    return await _invoke("document-expiry-monitor", action)


# ============================================================================
# Billing
# ============================================================================

@router.post("/create-template-payment")
async def create_template_payment(request: Request, user: Optional[AuthContext] = Depends(get_optional_auth)):
    async def action():
        caller = _require_user(user)
        body = await _read_body(request)
        return await billing_service.create_template_payment(
            caller.user_id, caller.email, body.get("templateId"), body.get("priceAed")
        )
    return await _invoke("create-template-payment", action)


@router.post("/manage-subscription")
async def manage_subscription(request: Request, user: Optional[AuthContext] = Depends(get_optional_auth)):
    async def action():
        caller = _require_user(user)
        body = await _read_body(request)
        return await billing_service.manage_subscription(
            caller.user_id,
            body.get("action"),
            tier_id=body.get("tier_id"),
            pause_reason=body.get("pause_reason"),
        )
    return await _invoke("manage-subscription", action)


@router.post("/dunning-management")
async def dunning_management(user: Optional[AuthContext] = Depends(get_optional_auth)):
    async def action():
        _require_super_admin(user)
        return await billing_service.run_dunning()
    return await _invoke("dunning-management", action)
