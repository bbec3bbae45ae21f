"""
Common router dependencies.
"""

from .identity import get_guest_id, get_staff_profile, require_management, require_session_guest

__all__ = [
    "get_guest_id",
    "get_staff_profile",
    "require_management",
    "require_session_guest",
]
