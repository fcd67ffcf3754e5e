# pyright: reportMissingTypeStubs=false
"""
Notification API endpoints.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from auth.dependencies import UserContext, get_current_user, require_doctor
from core.database import get_db
from services.notification_service import NotificationService
from api.responses import NotificationListResponse, NotificationResponse

logger = logging.getLogger(__name__)

router = APIRouter()


class VideoCallReadyRequest(BaseModel):
    appointment_id: int
    room_id: Optional[str] = None


@router.post("/video-call-ready", summary="Tell the patient the call room is open",
             response_model=NotificationResponse, status_code=status.HTTP_201_CREATED)
async def send_video_call_ready(
    request: VideoCallReadyRequest,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_doctor)
) -> NotificationResponse:
    notification = NotificationService.send_video_call_ready(
        db, current_user.user_id, request.appointment_id, room_id=request.room_id
    )
    return NotificationResponse.from_model(notification)


@router.get("", summary="List my notifications", response_model=NotificationListResponse)
async def list_notifications(
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user)
) -> NotificationListResponse:
    """Unexpired notifications for the caller, newest first."""
    notifications, unread = NotificationService.list_for_recipient(db, current_user.user_id)
    return NotificationListResponse(
        notifications=[NotificationResponse.from_model(n) for n in notifications],
        count=len(notifications),
        unread_count=unread,
    )


@router.patch("/{notification_id}/read", summary="Mark a notification as read",
              response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user)
) -> NotificationResponse:
    notification = NotificationService.mark_read(db, current_user.user_id, notification_id)
    return NotificationResponse.from_model(notification)
