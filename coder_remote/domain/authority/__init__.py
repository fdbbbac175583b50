"""
Authority domain module
"""
from .models import RemoteAuthorityParts
from .parser import host_prefix, parse_remote_authority, to_remote_authority

__all__ = [
    "RemoteAuthorityParts",
    "host_prefix",
    "parse_remote_authority",
    "to_remote_authority",
]
