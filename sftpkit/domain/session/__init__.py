"""
Session domain module
"""
from .models import ConnectionParameters, SessionState
from .auth import AuthMethod, AuthAttempt, AuthPlan, build_auth_plan
from .attributes import FileAttributes
from .session import Session

__all__ = [
    "ConnectionParameters",
    "SessionState",
    "AuthMethod",
    "AuthAttempt",
    "AuthPlan",
    "build_auth_plan",
    "FileAttributes",
    "Session",
]
