"""Qanoon Data Models"""

from .roles import UserRole, ROLE_DASHBOARDS
from .profiles import (
    AuthUser,
    Profile,
    Company,
    UserCompanyRole,
    Invitation,
    SignupType,
)
from .credits import (
    CreditTransaction,
    CreditTransactionType,
    CreditUsage,
    CompanyCreditUsage,
    CreditSummary,
    SubscriptionTier,
)
from .conversations import (
    Conversation,
    ConversationFolder,
    Message,
)
from .documents import (
    LegalLetter,
    LetterStatus,
    ShareLink,
    SignatureRequest,
    SignatureRecipient,
)

__all__ = [
    # Roles
    "UserRole",
    "ROLE_DASHBOARDS",
    # Accounts
    "AuthUser",
    "Profile",
    "Company",
    "UserCompanyRole",
    "Invitation",
    "SignupType",
    # Credits
    "CreditTransaction",
    "CreditTransactionType",
    "CreditUsage",
    "CompanyCreditUsage",
    "CreditSummary",
    "SubscriptionTier",
    # Conversations
    "Conversation",
    "ConversationFolder",
    "Message",
    # Documents
    "LegalLetter",
    "LetterStatus",
    "ShareLink",
    "SignatureRequest",
    "SignatureRecipient",
]
