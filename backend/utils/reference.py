"""
reference.py — Client password and registration session-token generation.

Password format: first-last-NNNN (letters only, lowercased), e.g. amina-benali-4821
Session token:   <prefix>_<unix-ms>_<32 hex chars>
"""

import re
import secrets
from datetime import datetime, timezone, timedelta


def generate_password(first_name: str, last_name: str) -> str:
    """
    Generate the initial client password from their name.
    Non-letters are dropped; the 4-digit suffix is random (1000–9999).
    """
    clean_first = re.sub(r"[^a-zA-Z]", "", first_name or "").lower()
    clean_last = re.sub(r"[^a-zA-Z]", "", last_name or "").lower()
    number = 1000 + secrets.randbelow(9000)
    return f"{clean_first}-{clean_last}-{number}"


def generate_session_token(prefix: str = "reg") -> str:
    millis = int(datetime.now(timezone.utc).timestamp() * 1000)
    return f"{prefix}_{millis}_{secrets.token_hex(16)}"


def registration_expiry(days: int = 7):
    """Return a UTC datetime `days` from now."""
    return datetime.now(timezone.utc) + timedelta(days=days)
