"""Document lifecycle models: letters, share links, signatures, expiry."""

from pydantic import BaseModel, EmailStr, Field, model_validator
from typing import Optional, Dict, Any, List
from datetime import datetime, timezone
from enum import Enum
import uuid


class LetterStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    SIGNED = "signed"
    ARCHIVED = "archived"


class LegalLetter(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    title: str
    content: str = ""
    status: LetterStatus = LetterStatus.DRAFT
    signed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    
    model_config = {"extra": "ignore", "use_enum_values": True}


class ShareLink(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    letter_id: str
    created_by: str
    token: str
    recipient_email: str
    recipient_name: Optional[str] = None
    expires_at: Optional[datetime] = None
    max_views: Optional[int] = None
    view_count: int = 0
    is_password_protected: bool = False
    password_hash: Optional[str] = None
    revoked_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    
    model_config = {"extra": "ignore"}


class CreateShareLinkRequest(BaseModel):
    letterId: str
    recipientEmail: EmailStr
    recipientName: Optional[str] = Field(default=None, max_length=100)
    expiresInDays: Optional[int] = Field(default=None, ge=1, le=365)
    maxViews: Optional[int] = Field(default=None, ge=1, le=1000)
    requirePassword: Optional[bool] = None
    password: Optional[str] = Field(default=None, min_length=8, max_length=100)
    
    @model_validator(mode="after")
    def password_required_when_protected(self):
        if self.requirePassword and not self.password:
            raise ValueError("Password is required when password protection is enabled")
        return self


class SignatureRequestStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class SignatureRequest(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    letter_id: str
    created_by: str
    title: str
    message: Optional[str] = None
    expires_at: Optional[datetime] = None
    status: SignatureRequestStatus = SignatureRequestStatus.PENDING
    allow_editing: bool = False
    signing_order_enabled: bool = False
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    
    model_config = {"extra": "ignore", "use_enum_values": True}


class SignatureRecipient(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    signature_request_id: str
    email: str
    name: Optional[str] = None
    role: str = "signer"
    signing_order: int = 1
    access_token: str
    status: str = "pending"  # pending, signed
    viewed_at: Optional[datetime] = None
    signed_at: Optional[datetime] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    last_reminder_at: Optional[datetime] = None
    
    model_config = {"extra": "ignore"}


class SignatureFieldPosition(BaseModel):
    """A box on the letter that one recipient fills in."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    signature_request_id: str
    recipient_id: str
    field_type: str = "signature"
    page_number: int = 1
    x_position: float = 0
    y_position: float = 0
    width: float = 200
    height: float = 50
    is_required: bool = True
    field_label: Optional[str] = None
    placeholder_text: Optional[str] = None
    field_value: Optional[str] = None
    completed_at: Optional[datetime] = None
    
    model_config = {"extra": "ignore"}


class SigningSession(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    recipient_id: str
    session_token: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    
    model_config = {"extra": "ignore"}


class SignatureRecipientInput(BaseModel):
    email: EmailStr
    name: Optional[str] = Field(default=None, max_length=100)
    role: str = Field(default="signer", max_length=50)


class SignatureFieldInput(BaseModel):
    recipientEmail: EmailStr
    type: str = Field(default="signature", max_length=50)
    page: int = Field(default=1, ge=1)
    x: float = Field(default=0, ge=0)
    y: float = Field(default=0, ge=0)
    width: float = Field(default=200, gt=0)
    height: float = Field(default=50, gt=0)
    required: bool = True
    label: Optional[str] = Field(default=None, max_length=100)
    placeholder: Optional[str] = Field(default=None, max_length=200)


class CreateSignatureRequest(BaseModel):
    letter_id: str
    title: str = Field(min_length=1, max_length=200)
    message: Optional[str] = Field(default=None, max_length=2000)
    recipients: List[SignatureRecipientInput] = Field(min_length=1, max_length=20)
    field_positions: List[SignatureFieldInput] = Field(default_factory=list, alias="fields")
    expires_in_days: Optional[int] = Field(default=None, ge=1, le=365)
    allow_editing: bool = False
    signing_order_enabled: bool = False
    
    model_config = {"populate_by_name": True}
    
    @model_validator(mode="after")
    def fields_belong_to_recipients(self):
        emails = [r.email.lower() for r in self.recipients]
        if len(set(emails)) != len(emails):
            raise ValueError("Each recipient may only be listed once")
        for field in self.field_positions:
            if field.recipientEmail.lower() not in emails:
                raise ValueError(f"Field assigned to unknown recipient {field.recipientEmail}")
        return self


class DocumentExpiryTracking(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    letter_id: str
    expires_at: datetime
    reminder_sent: bool = False
    reminder_sent_at: Optional[datetime] = None
    auto_archive: bool = False
    
    model_config = {"extra": "ignore"}
