from .pipeline import (
    GroupDecoration,
    PrivateDecoration,
    build_reply,
    build_request,
    build_welcome_text,
)
from .quota import QuotaTracker, Scope
from .session import ConversationContext, SessionStore, make_identity

__all__ = (
    "ConversationContext",
    "GroupDecoration",
    "PrivateDecoration",
    "QuotaTracker",
    "Scope",
    "SessionStore",
    "build_reply",
    "build_request",
    "build_welcome_text",
    "make_identity",
)
