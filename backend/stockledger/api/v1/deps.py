"""
API Dependencies

Identity is resolved by the gateway in front of this service; it forwards
the acting user in the X-User-Id header.
"""
from typing import Optional

from fastapi import Header


async def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id", max_length=100),
) -> Optional[str]:
    """Acting user for audit columns (created_by, received_by, user_id)."""
    if x_user_id is None:
        return None
    return x_user_id.strip() or None
