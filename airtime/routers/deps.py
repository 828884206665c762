from typing import Optional

from fastapi import Header

from airtime.errors import ValidationError


async def get_current_user(x_user_id: Optional[str] = Header(None)) -> str:
    """Owner of the request, taken from the X-User-Id header."""
    if not x_user_id or not x_user_id.strip():
        raise ValidationError("X-User-Id header is required")
    return x_user_id.strip()
