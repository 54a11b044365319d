"""
Admin endpoints: user listing, approval and deletion.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from services.accounts import SessionUser

from ..deps import AppServices, admin_user, get_services
from ..schemas import ApproveRequest, user_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/users")
async def list_users(
    admin: SessionUser = Depends(admin_user),
    services: AppServices = Depends(get_services),
):
    users = await services.users.list_users_with_job_counts()
    return {"users": [user_to_dict(u) for u in users]}


@router.post("/users/{user_id}/approve")
async def approve_user(
    user_id: UUID,
    body: ApproveRequest,
    admin: SessionUser = Depends(admin_user),
    services: AppServices = Depends(get_services),
):
    user = await services.users.set_approval(user_id, body.approve, admin.user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    logger.info(f"Admin {admin.id} set approval of {user_id} to {body.approve}")
    return {"user": user_to_dict(user)}


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: UUID,
    admin: SessionUser = Depends(admin_user),
    services: AppServices = Depends(get_services),
):
    if user_id == admin.user_id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    if not await services.users.delete_user(user_id):
        raise HTTPException(status_code=404, detail="User not found")
    logger.info(f"Admin {admin.id} deleted user {user_id}")
    return {"success": True}
