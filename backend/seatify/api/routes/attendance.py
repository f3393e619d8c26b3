"""
Attendance endpoints: check-in / check-out by scanning a booking's QR code.

Scanners are dumb clients that can only show a message, so every outcome,
including failures, comes back as a well-formed body: JSON for the scanner
app endpoints, a small HTML page for the auto check-in link that generic
phone QR readers open in a browser.
"""

import html
import time
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from seatify.api.deps import get_clock
from seatify.core.clock import Clock
from seatify.core.exceptions import SeatifyError
from seatify.core.logging import get_logger
from seatify.core.metrics import record_scan, scan_latency
from seatify.db.session import AsyncSessionLocal, get_db
from seatify.schemas.attendance import CheckInRequest, ScanResponse
from seatify.services.attendance_service import (
    ScanMode,
    ScanResult,
    process_checkout_only,
    process_scan,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/attendance", tags=["Attendance"])


def _observe(mode: ScanMode, started: float, result: Optional[ScanResult] = None, error: Optional[SeatifyError] = None):
    scan_latency.observe(time.perf_counter() - started)
    if result is not None:
        record_scan(mode.value, result.action.value, "success")
    else:
        record_scan(mode.value, "none", error.code.lower())


@router.post("/check-in", response_model=ScanResponse)
async def check_in(
    request: CheckInRequest,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Toggle scan: first scan checks in, the next checks out, the next checks in
    again, and so on. A check-out less than 5 seconds after the check-in is
    flagged `auto_corrected` (accidental double scan).

    QR code format: SEATIFY:seatId:userId:eventId:nonce
    """
    started = time.perf_counter()
    try:
        result = await process_scan(db, request.qr_code_data, clock=clock)
    except SeatifyError as e:
        _observe(ScanMode.TOGGLE, started, error=e)
        raise
    _observe(ScanMode.TOGGLE, started, result=result)
    return ScanResponse.model_validate(result)


@router.post("/checkout", response_model=ScanResponse)
async def checkout(
    request: CheckInRequest,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Explicit check-out. The booking must be checked in."""
    started = time.perf_counter()
    try:
        result = await process_checkout_only(db, request.qr_code_data, clock=clock)
    except SeatifyError as e:
        _observe(ScanMode.CHECKOUT_ONLY, started, error=e)
        raise
    _observe(ScanMode.CHECKOUT_ONLY, started, result=result)
    return ScanResponse.model_validate(result)


RESULT_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title} - Seatify</title>
  <style>
    body {{ font-family: 'Segoe UI', Tahoma, sans-serif; background: #667eea; min-height: 100vh;
           display: flex; align-items: center; justify-content: center; margin: 0; padding: 20px; }}
    .container {{ background: white; border-radius: 20px; max-width: 400px; width: 100%;
                 padding: 40px; text-align: center; }}
    .icon {{ font-size: 80px; }}
    .status {{ display: inline-block; background: {color}; color: white; padding: 8px 20px;
              border-radius: 20px; font-weight: bold; margin: 20px 0; }}
    .message {{ padding: 15px; background: {message_bg}; border-radius: 10px; color: {message_fg}; }}
  </style>
</head>
<body>
  <div class="container">
    <div class="icon">{icon}</div>
    <h1>{title}</h1>
    <div class="status">{badge}</div>
    <div class="message">{message}</div>
  </div>
</body>
</html>
"""


def render_result_page(success: bool, message: str) -> str:
    return RESULT_PAGE.format(
        title="Success" if success else "Failed",
        badge="SUCCESS" if success else "FAILED",
        icon="&#9989;" if success else "&#10060;",
        color="#4CAF50" if success else "#f44336",
        message_bg="#e8f5e9" if success else "#ffebee",
        message_fg="#2e7d32" if success else "#c62828",
        message=html.escape(message),
    )


async def get_scan_session():
    """
    Session for the auto check-in page. Unlike get_db it never re-raises:
    the page must render even when the scan fails.
    """
    async with AsyncSessionLocal() as session:
        yield session


@router.get("/auto-checkin", response_class=HTMLResponse)
async def auto_check_in(
    data: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_scan_session),
    clock: Clock = Depends(get_clock),
):
    """
    Toggle scan triggered by opening the URL embedded in the QR code, e.g.
    https://www.seatify.com.vn/api/v1/attendance/auto-checkin?data=SEATIFY%3A...

    Always answers 200 with an HTML page describing the outcome.
    """
    logger.info("auto_checkin_received", has_data=bool(data))
    if not data:
        return HTMLResponse(render_result_page(False, "Missing QR code data. Please scan the code again."))

    started = time.perf_counter()
    try:
        result = await process_scan(db, data, clock=clock)
        await db.commit()
    except SeatifyError as e:
        await db.rollback()
        _observe(ScanMode.TOGGLE, started, error=e)
        logger.info("auto_checkin_rejected", code=e.code, reason=e.reason)
        return HTMLResponse(render_result_page(False, e.message))
    except Exception:
        await db.rollback()
        logger.exception("auto_checkin_failed")
        return HTMLResponse(render_result_page(False, "Could not process check-in, please try again."))

    _observe(ScanMode.TOGGLE, started, result=result)
    return HTMLResponse(render_result_page(True, result.message))
