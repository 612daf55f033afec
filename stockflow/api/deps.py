"""
Shared API dependencies
"""
from fastapi import Header, HTTPException
from typing import Optional
from uuid import UUID

from stockflow.core import get_db
from stockflow.core.transaction import OperationResult

__all__ = ["get_db", "get_current_user_id", "unwrap_result"]


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[UUID]:
    """Acting user, set by the authentication layer in front of this service"""
    if not x_user_id:
        return None
    try:
        return UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid X-User-Id header")


def unwrap_result(result: OperationResult):
    if not result.ok:
        raise HTTPException(status_code=result.error.status_code, detail=result.error.message)
    return result.value
