#!/usr/bin/env python3
"""
WordprocessingML markup for the general meeting protocol.

Contains: escape_xml, format_area, format_percent, format_date_ru,
format_time_ru, format_timestamp_ru, RunStyle, ImageRef, ProtocolMarkup,
the section builders and compose().

The composer never knows relationship ids: images are emitted as ImageRef
placeholders keyed by a logical id ("organization", "voter:<id>") and the
package assembler swaps them for inline drawings.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from itertools import chain
from typing import Iterable, Iterator, Optional, Union
from xml.sax.saxutils import escape

from config import get_config
from protocol_types import (
    AgendaItem,
    Decision,
    MeetingSnapshot,
    Organization,
    ProtocolData,
    VoteRecord,
    VoteResult,
)
from vote_tally import chair_election_result, participation_percent, tally

# Namespaces the document part declares
W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
WP_NS = "http://schemas.openxmlformats.org/drawingml/2006/wordprocessingDrawing"
A_NS = "http://schemas.openxmlformats.org/drawingml/2006/main"
R_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
PIC_NS = "http://schemas.openxmlformats.org/drawingml/2006/picture"

ORGANIZATION_IMAGE_ID = "organization"

# Genitive month names, independent of the runtime locale
MONTHS_RU = (
    "января", "февраля", "марта", "апреля", "мая", "июня",
    "июля", "августа", "сентября", "октября", "ноября", "декабря",
)

MISSING_VALUE = "___"

HEADER_FILL = "E7E6E6"
QUORUM_OK_COLOR = "008000"
QUORUM_MISSING_COLOR = "FF0000"

# Image extents in EMU (1 cm = 360000)
ORGANIZATION_IMAGE_EMU = 900000
VOTER_IMAGE_EMU = 600000
ORGANIZATION_DRAWING_ID = 999
VOTER_DRAWING_ID_BASE = 1000

# Column widths in twips; both layouts of the per-item table span ITEM_TABLE_WIDTH
TALLY_TABLE_WIDTHS = (3000, 3000, 3000)
ITEM_TABLE_WIDTH = 9000
ITEM_TABLE_WIDTHS = (600, 4200, 900, 1500, 1800)
ITEM_TABLE_WIDTHS_WITH_COMMENTS = (500, 2300, 700, 1100, 1400, 3000)
ROSTER_TABLE_WIDTHS = (500, 2800, 800, 1200, 1400, 1400, 1400)

CHAIR_ELECTION_TITLE = "Избрание Председателя и Секретаря собрания"
LEGAL_CITATION = "Закон РУз «Об управлении многоквартирными домами»"
GENERATED_BY = "Протокол сформирован автоматически системой УК «KAMIZO»"


# =============================================================================
# Text and number formatting
# =============================================================================

# Characters XML 1.0 does not allow anywhere in a document
XML_ILLEGAL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


def escape_xml(text: str) -> str:
    """Escape the five reserved XML characters; characters XML forbids become spaces."""
    return XML_ILLEGAL_CHARS.sub(" ", escape(str(text), {'"': "&quot;", "'": "&apos;"}))


def format_area(value: float) -> str:
    """Area with exactly two decimals."""
    return f"{value:.2f}"


def format_percent(value: float) -> str:
    """Percentage with exactly one decimal."""
    return f"{value:.1f}"


def to_display_time(moment: datetime, utc_offset: Optional[float] = None) -> datetime:
    """
    Shift an aware timestamp into the display timezone.

    Naive timestamps are already local wall-clock time and pass through.
    """
    if moment.tzinfo is None:
        return moment
    if utc_offset is None:
        utc_offset = get_config().display_utc_offset
    return moment.astimezone(timezone(timedelta(hours=utc_offset)))


def format_date_ru(moment: Optional[datetime], utc_offset: Optional[float] = None) -> str:
    """e.g. "5 марта 2026"; "___" when unknown."""
    if moment is None:
        return MISSING_VALUE
    local = to_display_time(moment, utc_offset)
    return f"{local.day} {MONTHS_RU[local.month - 1]} {local.year}"


def format_time_ru(moment: Optional[datetime], utc_offset: Optional[float] = None) -> str:
    """e.g. "09:05"; "___" when unknown."""
    if moment is None:
        return MISSING_VALUE
    return to_display_time(moment, utc_offset).strftime("%H:%M")


def format_timestamp_ru(moment: datetime, utc_offset: Optional[float] = None) -> str:
    """e.g. "05.03.2026, 09:05:00"."""
    return to_display_time(moment, utc_offset).strftime("%d.%m.%Y, %H:%M:%S")


# =============================================================================
# Markup value objects
# =============================================================================

@dataclass(frozen=True)
class ImageRef:
    """Placeholder for an inline picture, resolved by the package assembler."""
    logical_id: str
    name: str
    size_emu: int
    drawing_id: int


MarkupFragment = Union[str, ImageRef]
Fragments = tuple[MarkupFragment, ...]


@dataclass(frozen=True)
class ProtocolMarkup:
    """The whole document part as an ordered sequence of fragments."""
    fragments: Fragments

    def __iter__(self) -> Iterator[MarkupFragment]:
        return iter(self.fragments)

    def image_refs(self) -> list[ImageRef]:
        """Image placeholders in document order."""
        return [f for f in self.fragments if isinstance(f, ImageRef)]

    def text(self) -> str:
        """The XML with image placeholders dropped (for inspection and tests)."""
        return "".join(f for f in self.fragments if isinstance(f, str))


def voter_image_id(voter_id: str) -> str:
    """Logical image id of a voter's signature QR code."""
    return f"voter:{voter_id}"


@dataclass(frozen=True)
class RunStyle:
    """Character formatting of a run (and of its paragraph mark)."""
    size: int = 22  # half-points
    bold: bool = False
    italic: bool = False
    color: Optional[str] = None

    def xml(self) -> str:
        props = []
        if self.bold:
            props.append("<w:b/>")
        if self.italic:
            props.append("<w:i/>")
        if self.color:
            props.append(f'<w:color w:val="{self.color}"/>')
        props.append(f'<w:sz w:val="{self.size}"/>')
        return f"<w:rPr>{''.join(props)}</w:rPr>"

    def with_color(self, color: str) -> "RunStyle":
        return RunStyle(size=self.size, bold=self.bold, italic=self.italic, color=color)


BODY = RunStyle()
BODY_BOLD = RunStyle(bold=True)
HEADING = RunStyle(size=24, bold=True)
TITLE = RunStyle(size=28, bold=True)
NOTE = RunStyle(size=20, italic=True)
FOOTNOTE = RunStyle(size=18, italic=True)
TABLE_HEADER = RunStyle(size=20, bold=True)
TABLE_BODY = RunStyle(size=20)
SMALL_HEADER = RunStyle(size=16, bold=True)
SMALL_BODY = RunStyle(size=16)
COMMENT = RunStyle(size=14, italic=True)


def run(text: str, style: RunStyle = BODY) -> str:
    """A text run. The text is escaped here and nowhere else."""
    return f'<w:r>{style.xml()}<w:t xml:space="preserve">{escape_xml(text)}</w:t></w:r>'


def paragraph(*runs: MarkupFragment, style: Optional[RunStyle] = None, align: Optional[str] = None,
              before: Optional[int] = None, after: Optional[int] = None) -> Fragments:
    """A paragraph around already-built runs (or image placeholders)."""
    props = []
    if before is not None or after is not None:
        spacing = "".join(
            f' w:{name}="{value}"' for name, value in (("before", before), ("after", after))
            if value is not None
        )
        props.append(f"<w:spacing{spacing}/>")
    if align:
        props.append(f'<w:jc w:val="{align}"/>')
    if style:
        props.append(style.xml())
    ppr = f"<w:pPr>{''.join(props)}</w:pPr>" if props else ""
    return (f"<w:p>{ppr}",) + tuple(runs) + ("</w:p>",)


def text_paragraph(text: str, style: RunStyle = BODY, **kwargs) -> Fragments:
    """Single-run paragraph whose mark shares the run's formatting."""
    return paragraph(run(text, style), style=style, **kwargs)


def labelled_paragraph(label: str, value: str, **kwargs) -> Fragments:
    """"Label: value" with a bold label."""
    return paragraph(run(label, BODY_BOLD), run(value, BODY), style=BODY, **kwargs)


def _join(parts: Iterable[Fragments]) -> Fragments:
    return tuple(chain.from_iterable(parts))


# =============================================================================
# Tables
# =============================================================================

TABLE_BORDERS = (
    "<w:tblBorders>"
    + "".join(
        f'<w:{edge} w:val="single" w:sz="4" w:color="000000"/>'
        for edge in ("top", "left", "bottom", "right", "insideH", "insideV")
    )
    + "</w:tblBorders>"
)


def table_cell(width: int, content: Fragments, shaded: bool = False, v_center: bool = False) -> Fragments:
    """A fixed-width cell; content must hold at least one paragraph."""
    props = f'<w:tcW w:w="{width}" w:type="dxa"/>'
    if shaded:
        props += f'<w:shd w:val="clear" w:color="auto" w:fill="{HEADER_FILL}"/>'
    if v_center:
        props += '<w:vAlign w:val="center"/>'
    return (f"<w:tc><w:tcPr>{props}</w:tcPr>",) + content + ("</w:tc>",)


def table(widths: tuple[int, ...], header: list[str], rows: list[list[Fragments]],
          header_style: RunStyle, centered: bool = True,
          v_center_columns: tuple[int, ...] = ()) -> Fragments:
    """
    A bordered table with a shaded header row.

    Args:
        widths: Column widths in twips; the table width is their sum
        header: Header captions, one per column
        rows: Body rows, each a list of cell contents (paragraph fragments)
        header_style: Formatting of the header captions
        centered: Center the table on the page
        v_center_columns: Body columns whose content is vertically centered
    """
    if len(header) != len(widths) or any(len(row) != len(widths) for row in rows):
        raise ValueError("Every table row must have one cell per column")

    jc = '<w:jc w:val="center"/>' if centered else ""
    grid = "".join(f'<w:gridCol w:w="{w}"/>' for w in widths)
    opening = (
        f'<w:tbl><w:tblPr><w:tblW w:w="{sum(widths)}" w:type="dxa"/>{jc}{TABLE_BORDERS}</w:tblPr>'
        f"<w:tblGrid>{grid}</w:tblGrid>"
    )

    header_row = _join(
        table_cell(width, text_paragraph(caption, header_style, align="center"), shaded=True)
        for width, caption in zip(widths, header)
    )
    body = _join(
        ("<w:tr>",)
        + _join(
            table_cell(width, cell, v_center=column in v_center_columns)
            for column, (width, cell) in enumerate(zip(widths, row))
        )
        + ("</w:tr>",)
        for row in rows
    )
    return (opening, "<w:tr>") + header_row + ("</w:tr>",) + body + ("</w:tbl>",)


def vote_tally_table(result: VoteResult) -> Fragments:
    """Three columns (for / against / abstain), each with area and percent."""
    def cell(area: float, percent: float) -> Fragments:
        return (
            text_paragraph(f"{format_area(area)} кв.м", TABLE_BODY, align="center")
            + text_paragraph(f"({format_percent(percent)}%)", TABLE_BODY, align="center")
        )

    row = [
        cell(result.votes_for, result.percent_for),
        cell(result.votes_against, result.percent_against),
        cell(result.votes_abstain, result.percent_abstain),
    ]
    return table(TALLY_TABLE_WIDTHS, ["ЗА", "ПРОТИВ", "ВОЗДЕРЖАЛИСЬ"], [row], TABLE_HEADER)


def item_votes_table(votes: tuple[VoteRecord, ...]) -> Fragments:
    """
    Per-voter breakdown of one agenda item.

    Empty when nobody voted. The "Обоснование" column is added only if some
    voter wrote a justification; otherwise its width goes to the other columns.
    """
    if not votes:
        return ()

    has_comments = any(v.justification for v in votes)
    widths = ITEM_TABLE_WIDTHS_WITH_COMMENTS if has_comments else ITEM_TABLE_WIDTHS
    header = ["№", "ФИО", "Кв.", "Площадь", "Голос"]
    if has_comments:
        header.append("Обоснование")

    rows = []
    for idx, vote in enumerate(votes, start=1):
        row = [
            text_paragraph(str(idx), SMALL_BODY, align="center"),
            text_paragraph(vote.voter_name, SMALL_BODY),
            text_paragraph(vote.apartment_number or "-", SMALL_BODY, align="center"),
            text_paragraph(format_area(vote.vote_weight), SMALL_BODY, align="center"),
            text_paragraph(vote.choice.label_ru, SMALL_BODY, align="center"),
        ]
        if has_comments:
            row.append(text_paragraph(vote.justification, COMMENT))
        rows.append(row)

    caption = text_paragraph("Голоса участников:", FOOTNOTE, before=100)
    return caption + table(widths, header, rows, SMALL_HEADER)


def roster_table(voters: list[VoteRecord], utc_offset: Optional[float] = None) -> Fragments:
    """Appendix register: one row per unique voter with the signature QR code."""
    header = ["№", "ФИО собственника", "Кв.", "Площадь", "Дата", "Голос", "Э-подпись"]
    rows = []
    for idx, voter in enumerate(voters):
        image = ImageRef(
            logical_id=voter_image_id(voter.voter_id),
            name=f"voter_qr_{idx}.png",
            size_emu=VOTER_IMAGE_EMU,
            drawing_id=VOTER_DRAWING_ID_BASE + idx,
        )
        voted_on = to_display_time(voter.voted_at, utc_offset).strftime("%d.%m.%Y")
        rows.append([
            text_paragraph(str(idx + 1), SMALL_BODY, align="center"),
            text_paragraph(voter.voter_name, SMALL_BODY),
            text_paragraph(voter.apartment_number or "-", SMALL_BODY, align="center"),
            text_paragraph(format_area(voter.vote_weight), SMALL_BODY, align="center"),
            text_paragraph(voted_on, SMALL_BODY, align="center"),
            text_paragraph(voter.choice.short_label_ru, SMALL_BODY, align="center"),
            paragraph(image, align="center"),
        ])

    signature_column = len(ROSTER_TABLE_WIDTHS) - 1
    return table(ROSTER_TABLE_WIDTHS, header, rows, SMALL_HEADER, centered=False,
                 v_center_columns=(signature_column,))


# =============================================================================
# Sections
# =============================================================================

def protocol_number(meeting: MeetingSnapshot, today: date) -> str:
    return f"{meeting.number}/{today.year}"


def header_section() -> Fragments:
    return text_paragraph(LEGAL_CITATION, NOTE, align="right")


def title_section(meeting: MeetingSnapshot, today: date) -> Fragments:
    return _join([
        text_paragraph(f"ПРОТОКОЛ № {protocol_number(meeting, today)}", TITLE,
                       align="center", before=400, after=200),
        text_paragraph("общего собрания собственников помещений", HEADING, align="center"),
        text_paragraph("многоквартирного дома по адресу:", HEADING, align="center"),
        text_paragraph(meeting.building_address, HEADING, align="center"),
        text_paragraph(f"проведённого в форме {meeting.format.label_ru} голосования", BODY, align="center"),
    ])


def meeting_info_section(meeting: MeetingSnapshot, utc_offset: Optional[float] = None) -> Fragments:
    return _join([
        labelled_paragraph("Дата проведения: ", format_date_ru(meeting.scheduled_at, utc_offset), before=200),
        labelled_paragraph("Время: ", format_time_ru(meeting.scheduled_at, utc_offset)),
        labelled_paragraph("Место проведения: ", meeting.venue),
    ])


def quorum_section(meeting: MeetingSnapshot) -> Fragments:
    if meeting.quorum_reached:
        status, color = "ИМЕЕТСЯ", QUORUM_OK_COLOR
    else:
        status, color = "ОТСУТСТВУЕТ", QUORUM_MISSING_COLOR
    required = f"{meeting.quorum_percent:g}"
    return _join([
        text_paragraph("КВОРУМ:", BODY_BOLD, before=200),
        text_paragraph(f"Общая площадь помещений в доме: {format_area(meeting.total_area)} кв.м"),
        text_paragraph(
            f"Площадь помещений проголосовавших собственников: {format_area(meeting.voted_area)} кв.м"
        ),
        text_paragraph(f"Процент участия: {format_percent(participation_percent(meeting))}%"),
        text_paragraph(
            f"Количество проголосовавших: {meeting.participated_count} из "
            f"{meeting.total_eligible_count} собственников"
        ),
        text_paragraph(f"Кворум {status} (требуется {required}%)", BODY_BOLD.with_color(color)),
    ])


def agenda_listing_section(items: tuple[AgendaItem, ...]) -> Fragments:
    entries = [text_paragraph("ПОВЕСТКА ДНЯ:", HEADING, before=300, after=100),
               text_paragraph(f"1. {CHAIR_ELECTION_TITLE}")]
    entries.extend(text_paragraph(f"{number}. {item.title}") for number, item in enumerate(items, start=2))
    return _join(entries)


def _decision_text(result: VoteResult, decision: Optional[Decision]) -> str:
    if result.approved:
        return "РЕШЕНИЕ: Решение принято."
    if decision == Decision.NO_QUORUM:
        return "РЕШЕНИЕ: Решение не принято (кворум отсутствует)."
    return "РЕШЕНИЕ: Решение не принято."


def chair_election_section(meeting: MeetingSnapshot) -> Fragments:
    secretary = meeting.organizer_name or "представителя УК"
    return _join([
        text_paragraph(f"1. {CHAIR_ELECTION_TITLE}", BODY_BOLD, before=200, after=100),
        text_paragraph(
            "СЛУШАЛИ: Предложение об избрании Председателя и Секретаря собрания "
            "из числа присутствующих собственников помещений."
        ),
        text_paragraph(
            f"ПРЕДЛОЖЕНО: Избрать Председателем собрания представителя УК, Секретарём - {secretary}."
        ),
        text_paragraph("ГОЛОСОВАЛИ:", BODY_BOLD),
        vote_tally_table(chair_election_result(meeting)),
        text_paragraph("РЕШЕНИЕ: Избрать Председателя и Секретаря собрания. Решение принято.",
                       BODY_BOLD, before=100),
    ])


def agenda_item_section(number: int, item: AgendaItem, votes: tuple[VoteRecord, ...]) -> Fragments:
    result = tally(item)
    parts = [text_paragraph(f"{number}. {item.title}", BODY_BOLD, before=300, after=100)]
    if item.description:
        parts.append(text_paragraph(f"СЛУШАЛИ: {item.description}"))
    parts.extend([
        text_paragraph("ГОЛОСОВАЛИ:", BODY_BOLD),
        vote_tally_table(result),
        item_votes_table(votes),
        text_paragraph(_decision_text(result, item.decision), BODY_BOLD, before=100),
    ])
    return _join(parts)


def attribution_section(organization: Organization) -> Fragments:
    image = ImageRef(
        logical_id=ORGANIZATION_IMAGE_ID,
        name="uk_qr.png",
        size_emu=ORGANIZATION_IMAGE_EMU,
        drawing_id=ORGANIZATION_DRAWING_ID,
    )
    return _join([
        paragraph(image, align="center", before=400),
        text_paragraph("Управляющая компания", RunStyle(size=20, bold=True), align="center"),
        text_paragraph(organization.name, RunStyle(size=18), align="center"),
    ])


def page_break() -> Fragments:
    return ('<w:p><w:r><w:br w:type="page"/></w:r></w:p>',)


def appendix_section(meeting: MeetingSnapshot, voters: list[VoteRecord], today: date,
                     utc_offset: Optional[float] = None) -> Fragments:
    return _join([
        text_paragraph("ПРИЛОЖЕНИЕ № 1", HEADING, align="center"),
        text_paragraph(f"к Протоколу № {protocol_number(meeting, today)}", BODY_BOLD, align="center"),
        text_paragraph("РЕЕСТР УЧАСТНИКОВ ГОЛОСОВАНИЯ С ЭЛЕКТРОННЫМИ ПОДПИСЯМИ", BODY_BOLD, align="center"),
        paragraph(before=200),
        roster_table(voters, utc_offset),
    ])


def footer_section(generated_at: datetime, protocol_hash: Optional[str] = None,
                   utc_offset: Optional[float] = None) -> Fragments:
    parts = [
        text_paragraph(GENERATED_BY, FOOTNOTE, before=300),
        text_paragraph(f"Дата формирования: {format_timestamp_ru(generated_at, utc_offset)}", FOOTNOTE),
    ]
    if protocol_hash:
        parts.append(text_paragraph(f"Хеш документа: {protocol_hash}", FOOTNOTE))
    return _join(parts)


DOCUMENT_OPEN = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
    f'<w:document xmlns:w="{W_NS}" xmlns:wp="{WP_NS}" xmlns:a="{A_NS}" '
    f'xmlns:r="{R_NS}" xmlns:pic="{PIC_NS}"><w:body>'
)

# A4 portrait with the usual Russian office margins
DOCUMENT_CLOSE = (
    '<w:sectPr><w:pgSz w:w="11906" w:h="16838"/>'
    '<w:pgMar w:top="1134" w:right="850" w:bottom="1134" w:left="1701" '
    'w:header="708" w:footer="708" w:gutter="0"/></w:sectPr>'
    "</w:body></w:document>"
)


def compose(
    data: ProtocolData,
    organization: Organization,
    today: Optional[date] = None,
    generated_at: Optional[datetime] = None,
    utc_offset: Optional[float] = None,
) -> ProtocolMarkup:
    """
    Build the protocol document part.

    Args:
        data: Validated meeting snapshot
        organization: Management company for the closing attribution
        today: Date whose year goes into the protocol number (default: today)
        generated_at: Footer timestamp (default: now)
        utc_offset: Display timezone for aware timestamps (default: from config)

    Returns:
        ProtocolMarkup whose image placeholders are "organization" and
        "voter:<voter_id>" for every unique voter in the roster
    """
    today = today or date.today()
    generated_at = generated_at or datetime.now(timezone.utc)
    meeting = data.meeting

    sections = [
        (DOCUMENT_OPEN,),
        header_section(),
        title_section(meeting, today),
        meeting_info_section(meeting, utc_offset),
        quorum_section(meeting),
        agenda_listing_section(data.agenda_items),
        chair_election_section(meeting),
    ]
    sections.extend(
        agenda_item_section(number, item, data.votes_for(item))
        for number, item in enumerate(data.agenda_items, start=2)
    )
    sections.extend([
        attribution_section(organization),
        page_break(),
        appendix_section(meeting, data.unique_voters(), today, utc_offset),
        footer_section(generated_at, data.protocol_hash, utc_offset),
        (DOCUMENT_CLOSE,),
    ])
    return ProtocolMarkup(fragments=_join(sections))
