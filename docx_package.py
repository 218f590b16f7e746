#!/usr/bin/env python3
"""
DOCX (Office Open XML) package assembly.

Contains: ImageRelationship, allocate_relationships, render_drawing,
render_document, PackageParts, content_types_xml, package_rels_xml,
document_rels_xml, verify_package, assemble.

A package is a ZIP archive of parts wired together by relationship files.
Office refuses a package with an undeclared part or a dangling relationship,
so both are checked before anything is written.
"""

import io
import posixpath
from dataclasses import dataclass
from zipfile import ZIP_DEFLATED, ZipFile, ZipInfo

from logging_config import get_logger
from protocol_errors import DuplicatePart, MissingRelationshipTarget, PackageIntegrityError
from protocol_markup import (
    A_NS,
    ORGANIZATION_IMAGE_ID,
    PIC_NS,
    ImageRef,
    ProtocolMarkup,
    escape_xml,
)

logger = get_logger(__name__)

CONTENT_TYPES_PART = "[Content_Types].xml"
PACKAGE_RELS_PART = "_rels/.rels"
DOCUMENT_PART = "word/document.xml"
DOCUMENT_RELS_PART = "word/_rels/document.xml.rels"

CONTENT_TYPES_NS = "http://schemas.openxmlformats.org/package/2006/content-types"
RELATIONSHIPS_NS = "http://schemas.openxmlformats.org/package/2006/relationships"
OFFICE_DOCUMENT_REL_TYPE = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument"
IMAGE_REL_TYPE = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/image"
DOCUMENT_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml"

DEFAULT_CONTENT_TYPES = {
    "rels": "application/vnd.openxmlformats-package.relationships+xml",
    "xml": "application/xml",
    "png": "image/png",
}
OVERRIDE_CONTENT_TYPES = {
    f"/{DOCUMENT_PART}": DOCUMENT_CONTENT_TYPE,
}

ORGANIZATION_REL_ID = "rId100"
ORGANIZATION_MEDIA = "media/org_qr.png"
VOTER_REL_ID_BASE = 200

# Fixed entry timestamp so unchanged input gives unchanged archive structure
ZIP_TIMESTAMP = (1980, 1, 1, 0, 0, 0)

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'


@dataclass(frozen=True)
class ImageRelationship:
    """One image wired into the document part."""
    logical_id: str
    rel_id: str
    target: str  # relative to word/

    @property
    def part_name(self) -> str:
        return posixpath.join(posixpath.dirname(DOCUMENT_PART), self.target)


def allocate_relationships(images: dict[str, bytes]) -> list[ImageRelationship]:
    """
    Assign relationship ids and media paths to images.

    The organization image always gets rId100 / media/org_qr.png. Every other
    image is numbered by its position in the mapping (roster order):
    rId200 / media/voter_qr_0.png, rId201 / media/voter_qr_1.png, ...

    Args:
        images: Logical image id -> PNG bytes, in roster order

    Returns:
        Relationships, organization first
    """
    relationships = []
    if ORGANIZATION_IMAGE_ID in images:
        relationships.append(ImageRelationship(ORGANIZATION_IMAGE_ID, ORGANIZATION_REL_ID, ORGANIZATION_MEDIA))

    voter_ids = [logical_id for logical_id in images if logical_id != ORGANIZATION_IMAGE_ID]
    for index, logical_id in enumerate(voter_ids):
        relationships.append(ImageRelationship(
            logical_id=logical_id,
            rel_id=f"rId{VOTER_REL_ID_BASE + index}",
            target=f"media/voter_qr_{index}.png",
        ))
    return relationships


def render_drawing(ref: ImageRef, rel_id: str) -> str:
    """Inline picture run pointing at an image relationship."""
    size = ref.size_emu
    name = escape_xml(ref.name)
    return (
        "<w:r><w:drawing>"
        '<wp:inline distT="0" distB="0" distL="0" distR="0">'
        f'<wp:extent cx="{size}" cy="{size}"/>'
        f'<wp:docPr id="{ref.drawing_id}" name="{name}"/>'
        f'<a:graphic xmlns:a="{A_NS}"><a:graphicData uri="{PIC_NS}">'
        f'<pic:pic xmlns:pic="{PIC_NS}">'
        f'<pic:nvPicPr><pic:cNvPr id="0" name="{name}"/><pic:cNvPicPr/></pic:nvPicPr>'
        f'<pic:blipFill><a:blip r:embed="{rel_id}"/><a:stretch><a:fillRect/></a:stretch></pic:blipFill>'
        f'<pic:spPr><a:xfrm><a:off x="0" y="0"/><a:ext cx="{size}" cy="{size}"/></a:xfrm>'
        '<a:prstGeom prst="rect"><a:avLst/></a:prstGeom></pic:spPr>'
        "</pic:pic></a:graphicData></a:graphic></wp:inline>"
        "</w:drawing></w:r>"
    )


def render_document(markup: ProtocolMarkup, rel_ids: dict[str, str]) -> str:
    """
    Resolve image placeholders into drawings.

    Raises:
        MissingRelationshipTarget: If a placeholder has no relationship
    """
    pieces = []
    for fragment in markup:
        if isinstance(fragment, ImageRef):
            rel_id = rel_ids.get(fragment.logical_id)
            if rel_id is None:
                raise MissingRelationshipTarget(fragment.logical_id)
            pieces.append(render_drawing(fragment, rel_id))
        else:
            pieces.append(fragment)
    return "".join(pieces)


class PackageParts:
    """Ordered collection of package parts that refuses duplicate names."""

    def __init__(self):
        self._parts: dict[str, bytes] = {}

    def add(self, name: str, data) -> None:
        if name in self._parts:
            raise DuplicatePart(name)
        self._parts[name] = data.encode("utf-8") if isinstance(data, str) else bytes(data)

    def __contains__(self, name: str) -> bool:
        return name in self._parts

    def __iter__(self):
        return iter(self._parts.items())

    def names(self) -> list[str]:
        return list(self._parts)


def content_types_xml() -> str:
    defaults = "".join(
        f'<Default Extension="{ext}" ContentType="{ctype}"/>' for ext, ctype in DEFAULT_CONTENT_TYPES.items()
    )
    overrides = "".join(
        f'<Override PartName="{name}" ContentType="{ctype}"/>' for name, ctype in OVERRIDE_CONTENT_TYPES.items()
    )
    return f'{XML_DECLARATION}<Types xmlns="{CONTENT_TYPES_NS}">{defaults}{overrides}</Types>'


def package_rels_xml() -> str:
    return (
        f'{XML_DECLARATION}<Relationships xmlns="{RELATIONSHIPS_NS}">'
        f'<Relationship Id="rId1" Type="{OFFICE_DOCUMENT_REL_TYPE}" Target="{DOCUMENT_PART}"/>'
        "</Relationships>"
    )


def document_rels_xml(relationships: list[ImageRelationship]) -> str:
    entries = "".join(
        f'<Relationship Id="{rel.rel_id}" Type="{IMAGE_REL_TYPE}" Target="{rel.target}"/>'
        for rel in relationships
    )
    return f'{XML_DECLARATION}<Relationships xmlns="{RELATIONSHIPS_NS}">{entries}</Relationships>'


def part_extension(name: str) -> str:
    """Extension as package content types see it: "_rels/.rels" -> "rels"."""
    base = posixpath.basename(name)
    return base.rpartition(".")[2] if "." in base else ""


def verify_package(parts: PackageParts, relationships: list[ImageRelationship]) -> None:
    """
    Check that every part has a content type and every relationship resolves.

    Raises:
        PackageIntegrityError: On an undeclared part or a dangling relationship
    """
    for name in parts.names():
        if name == CONTENT_TYPES_PART:
            continue
        extension = part_extension(name)
        if f"/{name}" not in OVERRIDE_CONTENT_TYPES and extension not in DEFAULT_CONTENT_TYPES:
            raise PackageIntegrityError(f"Part has no declared content type: {name}", part_name=name)

    for name in (CONTENT_TYPES_PART, PACKAGE_RELS_PART, DOCUMENT_PART, DOCUMENT_RELS_PART):
        if name not in parts:
            raise PackageIntegrityError(f"Mandatory part missing: {name}", part_name=name)

    rel_ids = [rel.rel_id for rel in relationships]
    if len(rel_ids) != len(set(rel_ids)):
        raise PackageIntegrityError("Relationship ids are not unique", rel_ids=rel_ids)

    for rel in relationships:
        if rel.part_name not in parts:
            raise PackageIntegrityError(
                f"Relationship {rel.rel_id} targets missing part {rel.part_name}",
                rel_id=rel.rel_id, part_name=rel.part_name,
            )


def write_zip(parts: PackageParts) -> bytes:
    buffer = io.BytesIO()
    with ZipFile(buffer, "w", ZIP_DEFLATED) as zf:
        for name, data in parts:
            info = ZipInfo(name, date_time=ZIP_TIMESTAMP)
            info.compress_type = ZIP_DEFLATED
            zf.writestr(info, data)
    return buffer.getvalue()


def assemble(markup: ProtocolMarkup, images: dict[str, bytes]) -> bytes:
    """
    Build the DOCX archive.

    Args:
        markup: Composed document part with image placeholders
        images: Logical image id -> PNG bytes (organization + voters in roster order)

    Returns:
        The .docx file as bytes

    Raises:
        MissingRelationshipTarget: If the markup references an image not in `images`
        PackageIntegrityError: If the package graph is inconsistent
    """
    relationships = allocate_relationships(images)
    document_xml = render_document(markup, {rel.logical_id: rel.rel_id for rel in relationships})

    parts = PackageParts()
    parts.add(CONTENT_TYPES_PART, content_types_xml())
    parts.add(PACKAGE_RELS_PART, package_rels_xml())
    parts.add(DOCUMENT_RELS_PART, document_rels_xml(relationships))
    parts.add(DOCUMENT_PART, document_xml)
    for rel in relationships:
        parts.add(rel.part_name, images[rel.logical_id])

    verify_package(parts, relationships)
    content = write_zip(parts)
    logger.info(f"Assembled package: {len(parts.names())} parts, "
                f"{len(relationships)} images, {len(content)} bytes")
    return content
