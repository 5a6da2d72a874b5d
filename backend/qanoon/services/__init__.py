"""Qanoon Services"""

from .credit_service import CreditService, credit_service
from .conversation_service import ConversationService, conversation_service
from .account_service import AccountService, account_service

__all__ = [
    "CreditService",
    "credit_service",
    "ConversationService",
    "conversation_service",
    "AccountService",
    "account_service",
]
