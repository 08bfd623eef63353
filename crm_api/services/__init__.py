"""Service layer exports."""

from .calendar_auth import CalendarAuthService
from .consent import CalendarConsentFlow, ConsentDeniedError
from .credentials import CredentialRepository, DocumentStore
from .token_broker import CalendarTokenBroker
from .token_cipher import TokenCipherService, TokenDecryptionError

__all__ = [
    "CalendarAuthService",
    "CalendarConsentFlow",
    "CalendarTokenBroker",
    "ConsentDeniedError",
    "CredentialRepository",
    "DocumentStore",
    "TokenCipherService",
    "TokenDecryptionError",
]
