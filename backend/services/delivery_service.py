from typing import Optional
from starlette.concurrency import run_in_threadpool
from utils.email import send_otp_email
import logging

logger = logging.getLogger(__name__)


async def deliver_otp(address: str, code: str, ttl_minutes: int, name: Optional[str] = None) -> bool:
    """Hand a plaintext code to the email channel.

    Never raises: the code is already stored, so a delivery problem is only
    worth a warning in the logs.
    """
    try:
        sent = await run_in_threadpool(send_otp_email, address, code, ttl_minutes, name)
    except Exception as exc:
        logger.warning(f"OTP delivery to {address} raised: {exc}")
        return False
    if not sent:
        logger.warning(f"OTP delivery to {address} failed")
    return sent
