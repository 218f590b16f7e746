#!/usr/bin/env python3
"""
QR "electronic signature" images for meeting protocols.

Each identity (the management company, or one voter's ballot receipt) is a
short block of labelled lines encoded as a QR code and embedded in the DOCX
as a PNG. The text is stored as UTF-8 in byte mode so a generic scanner
returns it unchanged, Cyrillic included.

Usage:
    from identity_qr import organization_payload, encode

    png = encode(organization_payload(org), size_hint=150)
"""

import io
import re
from dataclasses import dataclass, replace
from typing import Optional

import qrcode
from qrcode import util as qr_util
from qrcode.constants import ERROR_CORRECT_M
from qrcode.exceptions import DataOverflowError
from qrcode.image.pil import PilImage

from logging_config import get_logger
from protocol_errors import PayloadTooLarge
from protocol_markup import format_area, format_timestamp_ru
from protocol_types import Organization, VoteRecord

logger = get_logger(__name__)

QR_FILL_COLOR = "#1f2937"
QR_BACK_COLOR = "#ffffff"
QR_BORDER = 1  # modules of quiet zone

VOTER_HEADING = "ЭЛЕКТРОННАЯ ПОДПИСЬ"

# Anything a QR reader would show as a new line
LINE_BREAKS = re.compile(r"[\r\n\v\f\x85\u2028\u2029]+")


def single_line(text: str) -> str:
    return LINE_BREAKS.sub(" ", text)


@dataclass(frozen=True)
class Payload:
    """
    Immutable list of label/value lines, optionally preceded by a heading.

    Example:
        payload = Payload(heading="ЭЛЕКТРОННАЯ ПОДПИСЬ").add("ФИО", "Иванов И.И.")
        payload.text  # "ЭЛЕКТРОННАЯ ПОДПИСЬ\\nФИО: Иванов И.И."
    """
    heading: Optional[str] = None
    lines: tuple[tuple[str, str], ...] = ()

    def add(self, label: str, value) -> "Payload":
        """Return a new payload with one more line; line breaks in the value become spaces."""
        line = (single_line(label), single_line(str(value)))
        return replace(self, lines=self.lines + (line,))

    @property
    def text(self) -> str:
        rows = [self.heading] if self.heading else []
        rows.extend(f"{label}: {value}" for label, value in self.lines)
        return "\n".join(rows)


def organization_payload(org: Organization) -> Payload:
    """Registration details of the management company."""
    return (
        Payload()
        .add("Компания", org.name)
        .add("Адрес", org.address)
        .add("Банк", org.bank)
        .add("Р/С", org.account)
        .add("ИНН", org.inn)
        .add("ОКЭД", org.oked)
        .add("МФО", org.mfo)
    )


def voter_payload(record: VoteRecord, meeting_number: int, building_address: str,
                  utc_offset: Optional[float] = None) -> Payload:
    """Ballot receipt of one voter."""
    return (
        Payload(heading=VOTER_HEADING)
        .add("Протокол", meeting_number)
        .add("ФИО", record.voter_name)
        .add("Квартира", record.apartment_number or "-")
        .add("Площадь", f"{format_area(record.vote_weight)} кв.м")
        .add("Голос", record.choice.label_ru)
        .add("Дата", format_timestamp_ru(record.voted_at, utc_offset))
        .add("Адрес", building_address)
    )


def build_qr(payload: Payload) -> qrcode.QRCode:
    """
    Lay out the QR symbol for a payload at error correction level M.

    Raises:
        PayloadTooLarge: If the text does not fit even in a version 40 symbol
    """
    data = payload.text.encode("utf-8")
    qr = qrcode.QRCode(version=None, error_correction=ERROR_CORRECT_M, border=QR_BORDER)
    qr.add_data(qr_util.QRData(data, mode=qr_util.MODE_8BIT_BYTE))
    try:
        qr.make(fit=True)
    except (DataOverflowError, ValueError) as e:
        # qrcode 7 raises DataOverflowError; 8 rejects the implied version 41 with ValueError
        raise PayloadTooLarge(
            f"Identity payload of {len(data)} bytes does not fit into a QR code",
            length=len(data),
            error_correction="M",
        ) from e
    return qr


def encode(payload: Payload, size_hint: int) -> bytes:
    """
    Render a payload as a square PNG QR code.

    The module size is the largest integer that keeps the image within
    size_hint pixels (at least one pixel per module), so the same payload
    and size always give the same bytes.

    Args:
        payload: Identity payload to encode
        size_hint: Target edge length in pixels

    Returns:
        PNG image bytes
    """
    qr = build_qr(payload)
    total_modules = qr.modules_count + 2 * QR_BORDER
    qr.box_size = max(1, size_hint // total_modules)

    image = qr.make_image(image_factory=PilImage, fill_color=QR_FILL_COLOR, back_color=QR_BACK_COLOR)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")

    logger.debug(
        f"Encoded {len(payload.text)} chars as QR version {qr.version} "
        f"({image.pixel_size}px, {buffer.tell()} bytes)"
    )
    return buffer.getvalue()
