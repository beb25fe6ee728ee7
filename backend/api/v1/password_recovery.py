from fastapi import APIRouter, Depends, BackgroundTasks
from sqlalchemy.ext.asyncio import AsyncSession
from schemas.password_recovery_schema import (
    OtpRequest,
    OtpVerifyRequest,
    PasswordResetRequest,
    MessageResponse,
    OtpVerifyResponse,
)
from services.password_recovery_service import request_password_otp, verify_password_otp, reset_password
from utils.responses import no_store_json, failure_json
from db.session import get_db_session

router = APIRouter(prefix="/password-recovery")


@router.post("/otp/request", response_model=MessageResponse)
async def request_otp(payload: OtpRequest, background_tasks: BackgroundTasks,
                      db: AsyncSession = Depends(get_db_session)):
    return no_store_json(await request_password_otp(payload.identifier, db, background_tasks=background_tasks))


@router.post("/otp/verify", response_model=OtpVerifyResponse, responses={400: {"model": MessageResponse}})
async def verify_otp(payload: OtpVerifyRequest, db: AsyncSession = Depends(get_db_session)):
    result = await verify_password_otp(payload.identifier, payload.code, db)
    if not result.success:
        return failure_json(result.message)
    return no_store_json({"success": True, "data": {"reset_token": result.token}})


@router.post("/reset", response_model=MessageResponse, responses={400: {"model": MessageResponse}})
async def reset(payload: PasswordResetRequest, db: AsyncSession = Depends(get_db_session)):
    result = await reset_password(payload.token, payload.password, db)
    if not result.success:
        return failure_json(result.message)
    return no_store_json({"success": True, "message": result.message})
