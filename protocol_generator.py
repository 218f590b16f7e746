#!/usr/bin/env python3
"""
Meeting protocol generation pipeline.

Turns a validated ProtocolData snapshot into a DOCX package:
tallies -> signature QR codes (concurrently) -> markup -> package.

Usage:
    from protocol_generator import generate_protocol

    package = generate_protocol(ProtocolData.from_dict(snapshot))
    Path(package.file_name).write_bytes(package.content)
"""

import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date, datetime
from typing import Optional

from config import Config, get_config
from docx_package import allocate_relationships, assemble
from identity_qr import Payload, encode, organization_payload, voter_payload
from logging_config import LogContext, get_logger
from protocol_errors import ImageEncodingFailed, ProtocolError
from protocol_markup import ORGANIZATION_IMAGE_ID, compose, voter_image_id
from protocol_types import DocumentPackage, MeetingSnapshot, Organization, ProtocolData

logger = get_logger(__name__)

# Everything outside Latin, Cyrillic and digits becomes "_"
FILE_NAME_UNSAFE = re.compile(r"[^a-zA-Zа-яА-ЯёЁ0-9]")


def suggested_file_name(meeting: MeetingSnapshot) -> str:
    """e.g. "Протокол_12_ул__Навои__5.docx"."""
    address = FILE_NAME_UNSAFE.sub("_", meeting.building_address)
    return f"Протокол_{meeting.number}_{address}.docx"


def identity_payloads(
    data: ProtocolData,
    organization: Organization,
    cfg: Config,
) -> dict[str, tuple[Payload, int]]:
    """
    One payload per distinct identity, organization first, voters in roster order.

    Returns:
        Logical image id -> (payload, size hint in pixels)
    """
    payloads = {ORGANIZATION_IMAGE_ID: (organization_payload(organization), cfg.org_qr_size)}
    meeting = data.meeting
    for voter in data.unique_voters():
        payload = voter_payload(voter, meeting.number, meeting.building_address, cfg.display_utc_offset)
        payloads[voter_image_id(voter.voter_id)] = (payload, cfg.voter_qr_size)
    return payloads


def _encode_one(logical_id: str, payload: Payload, size_hint: int) -> bytes:
    try:
        return encode(payload, size_hint)
    except ProtocolError as e:
        e.details["logical_id"] = logical_id
        raise
    except Exception as e:
        raise ImageEncodingFailed(f"Failed to encode signature image: {e}", logical_id=logical_id) from e


def generate_images(payloads: dict[str, tuple[Payload, int]], max_workers: int = 4) -> dict[str, bytes]:
    """
    Encode all identity images concurrently.

    The first failure cancels the images not yet started and is re-raised:
    a protocol with a missing signature must not be produced.

    Returns:
        Logical image id -> PNG bytes, in the same order as `payloads`
    """
    encoded: dict[str, bytes] = {}
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        future_to_id = {
            executor.submit(_encode_one, logical_id, payload, size_hint): logical_id
            for logical_id, (payload, size_hint) in payloads.items()
        }
        try:
            for future in as_completed(future_to_id):
                encoded[future_to_id[future]] = future.result()
        except Exception:
            for future in future_to_id:
                future.cancel()
            raise

    return {logical_id: encoded[logical_id] for logical_id in payloads}


def generate_protocol(
    data: ProtocolData,
    organization: Optional[Organization] = None,
    max_workers: Optional[int] = None,
    today: Optional[date] = None,
    generated_at: Optional[datetime] = None,
    cfg: Optional[Config] = None,
) -> DocumentPackage:
    """
    Generate the meeting protocol DOCX.

    Args:
        data: Validated meeting snapshot
        organization: Management company (default: from config)
        max_workers: Concurrent image encoders (default: config.max_workers)
        today: Date for the protocol number year (default: today)
        generated_at: Footer timestamp (default: now)
        cfg: Configuration (default: global config)

    Returns:
        DocumentPackage with the archive bytes and a suggested file name

    Raises:
        PayloadTooLarge: An identity does not fit into a QR code
        ImageEncodingFailed: Any other image generation failure
        PackageIntegrityError: The package graph is inconsistent (a bug)
    """
    cfg = cfg or get_config()
    organization = organization or Organization.from_config(cfg)
    workers = max_workers if max_workers is not None else cfg.max_workers
    meeting = data.meeting

    logger.info(
        f"Generating protocol {meeting.number} for meeting {meeting.id}: "
        f"{len(data.agenda_items)} agenda items, {len(data.vote_records)} vote records"
    )

    payloads = identity_payloads(data, organization, cfg)
    context = {"meeting": meeting.id, "protocol": meeting.number}
    with LogContext(logger, f"Encoding {len(payloads)} signature images", **context):
        images = generate_images(payloads, max_workers=workers)

    with LogContext(logger, "Composing and assembling document", **context):
        markup = compose(data, organization, today=today, generated_at=generated_at,
                         utc_offset=cfg.display_utc_offset)
        content = assemble(markup, images)

    package = DocumentPackage(
        content=content,
        file_name=suggested_file_name(meeting),
        image_count=len(images),
        relationship_ids={rel.logical_id: rel.rel_id for rel in allocate_relationships(images)},
    )
    logger.info(f"Protocol ready: {package.file_name} ({len(package)} bytes, {package.image_count} images)")
    return package
