from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from georise.core.dependencies import get_current_user
from georise.core.exceptions import AppError, MissingCredentialError
from georise.core.rate_limit import limiter
from georise.db.postgres import async_session_factory, get_db
from georise.models.user import User
from georise.schemas.coach import CoachMessageRequest, CoachMessageResponse, CoachReply
from georise.services import coach_service

router = APIRouter(prefix="/coach", tags=["coach"])


@router.post("/messages", response_model=CoachReply)
@limiter.limit("20/minute")
async def send_coach_message(
    request: Request,
    body: CoachMessageRequest,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        brand, reply = await coach_service.send_message(db, user, body.brand_id, body.message)
    except MissingCredentialError as e:
        raise AppError(str(e))

    background_tasks.add_task(
        coach_service.track_usage,
        async_session_factory,
        user.id,
        brand.id,
        brand.name,
        body.message,
        reply,
    )
    return CoachReply(reply=reply.text)


@router.get("/{brand_id}/messages", response_model=list[CoachMessageResponse])
async def list_coach_messages(
    brand_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    brand = await coach_service.get_owned_brand(db, user, brand_id)
    return await coach_service.get_history(db, brand.id, limit=200)
