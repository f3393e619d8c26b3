"""
QR image rendering and hosting for bookings.

The scannable text is the auto check-in URL (see token_codec.wrap_in_url), so
generic phone scanners open the link and check the attendee in directly.
Hosting the image is best effort: the booking is already committed when this
runs, and a failed upload only leaves `qr_code_url` empty.
"""

import asyncio
import io
from typing import Optional

import qrcode
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from seatify.core.config import get_settings
from seatify.core.logging import get_logger
from seatify.core.metrics import record_collaborator_failure
from seatify.models.booking import Booking
from seatify.services.interfaces import AssetStore

logger = get_logger(__name__)

QR_CATEGORY = "qr-codes"


def render_qr_png(data: str) -> bytes:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=8,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


async def attach_qr_image(
    db: AsyncSession,
    booking: Booking,
    asset_store: AssetStore,
) -> Optional[str]:
    """Render, upload and record the booking's QR image. Never raises."""
    if not get_settings().QR_IMAGE_ENABLED:
        return None

    try:
        png = await asyncio.to_thread(render_qr_png, booking.qr_code_data)
        url = await asset_store.upload_image(png, QR_CATEGORY)
    except Exception as e:
        record_collaborator_failure("asset_store")
        logger.warning("qr_upload_failed", booking_id=booking.id, error=str(e))
        return None

    # A failed write rolls back to the savepoint only; the caller's transaction stays usable
    try:
        async with db.begin_nested():
            await db.execute(
                update(Booking)
                .where(Booking.id == booking.id)
                .values(qr_code_url=url)
                .execution_options(synchronize_session=False)
            )
    except SQLAlchemyError as e:
        logger.warning("qr_url_not_saved", booking_id=booking.id, error=str(e))
        return None

    set_committed_value(booking, "qr_code_url", url)
    logger.info("qr_image_attached", booking_id=booking.id)
    return url
