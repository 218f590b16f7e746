#!/usr/bin/env python3
"""
Data types for meeting protocol generation.

Contains: MeetingFormat, VoteChoice and Decision enums, MeetingSnapshot,
AgendaItem, VoteRecord, ProtocolData, Organization, VoteResult and
DocumentPackage dataclasses, plus the JSON loaders that validate a backend
snapshot before anything is rendered.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from protocol_errors import InvalidSnapshot

# Tolerance for comparing area sums coming from floating point backends
AREA_EPSILON = 0.005

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


class MeetingFormat(Enum):
    """How the meeting was conducted."""
    OFFLINE = "offline"  # очное
    ONLINE = "online"    # заочное
    HYBRID = "hybrid"    # очно-заочное

    @property
    def label_ru(self) -> str:
        """Adjective used in "проведённого в форме ... голосования"."""
        return {
            MeetingFormat.ONLINE: "заочной",
            MeetingFormat.HYBRID: "очно-заочной",
            MeetingFormat.OFFLINE: "очной",
        }[self]

    @classmethod
    def parse(cls, value: Optional[str]) -> "MeetingFormat":
        """Parse a backend format string; anything unknown is an in-person meeting."""
        for member in cls:
            if member.value == value:
                return member
        return cls.OFFLINE


class VoteChoice(Enum):
    """A single voter's answer on an agenda item."""
    FOR = "for"
    AGAINST = "against"
    ABSTAIN = "abstain"

    @property
    def label_ru(self) -> str:
        """Full label used in per-item tables and QR receipts."""
        return {
            VoteChoice.FOR: "ЗА",
            VoteChoice.AGAINST: "ПРОТИВ",
            VoteChoice.ABSTAIN: "ВОЗДЕРЖАЛСЯ",
        }[self]

    @property
    def short_label_ru(self) -> str:
        """Abbreviated label for the narrow appendix column."""
        return {
            VoteChoice.FOR: "ЗА",
            VoteChoice.AGAINST: "ПРОТИВ",
            VoteChoice.ABSTAIN: "ВОЗДЕРЖ.",
        }[self]


class Decision(Enum):
    """Decision precomputed by the backend for an agenda item."""
    APPROVED = "approved"
    REJECTED = "rejected"
    NO_QUORUM = "no_quorum"


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp from the backend.

    Returns None for empty values. Accepts datetime objects unchanged.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).strip())
    except ValueError as e:
        raise InvalidSnapshot(f"Invalid timestamp: {value!r}", value=str(value)) from e


def _require(d: dict, *keys: str) -> Any:
    """Return the first present, non-null value among keys or raise InvalidSnapshot."""
    for key in keys:
        if d.get(key) is not None:
            return d[key]
    raise InvalidSnapshot(f"Missing required field '{keys[0]}'", field_name=keys[0])


def _require_number(d: dict, *keys: str) -> float:
    value = _require(d, *keys)
    if isinstance(value, bool):
        raise InvalidSnapshot(f"Field '{keys[0]}' must be a number", field_name=keys[0])
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise InvalidSnapshot(f"Field '{keys[0]}' must be a number, got {value!r}", field_name=keys[0]) from e


def _require_bool(d: dict, *keys: str) -> bool:
    """Strict flag: bool, 0/1 or "true"/"false". Anything else is ambiguous and rejected."""
    value = _require(d, *keys)
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise InvalidSnapshot(f"Field '{keys[0]}' must be a boolean, got {value!r}", field_name=keys[0])


def _optional(d: dict, *keys: str) -> Any:
    for key in keys:
        if d.get(key) not in (None, ""):
            return d[key]
    return None


@dataclass(frozen=True)
class MeetingSnapshot:
    """Meeting metadata and quorum figures, resolved by the backend."""
    id: str
    number: int
    building_address: str
    format: MeetingFormat
    total_area: float
    voted_area: float
    total_eligible_count: int
    participated_count: int
    quorum_percent: float
    quorum_reached: bool
    scheduled_at: Optional[datetime] = None
    location: Optional[str] = None
    participation_percent: Optional[float] = None
    organizer_name: Optional[str] = None

    def __post_init__(self):
        if self.total_area < 0 or self.voted_area < 0:
            raise InvalidSnapshot("Areas must not be negative", field_name="total_area",
                                  meeting_id=self.id)
        if self.voted_area > self.total_area + AREA_EPSILON:
            raise InvalidSnapshot(
                f"Voted area {self.voted_area:.2f} exceeds total area {self.total_area:.2f}",
                field_name="voted_area", meeting_id=self.id,
            )
        if self.participated_count > self.total_eligible_count:
            raise InvalidSnapshot(
                f"Participated count {self.participated_count} exceeds eligible count "
                f"{self.total_eligible_count}",
                field_name="participated_count", meeting_id=self.id,
            )

    @property
    def venue(self) -> str:
        """Location text, falling back to the building address."""
        return self.location or self.building_address

    @classmethod
    def from_dict(cls, d: dict, building_address: Optional[str] = None) -> "MeetingSnapshot":
        """
        Build a MeetingSnapshot from the backend's meeting JSON.

        Args:
            d: Meeting dictionary (snake_case or camelCase keys)
            building_address: Optional address override (the list view carries a
                better formatted address than the protocol endpoint)
        """
        quorum_reached = _require_bool(d, "quorum_reached", "quorumReached")
        address = (
            building_address
            or _optional(d, "buildingAddress", "building_address")
            or "Адрес не указан"
        )
        participation = _optional(d, "participation_percent", "participationPercent")
        return cls(
            id=str(_require(d, "id")),
            number=int(_require_number(d, "number")),
            building_address=str(address),
            format=MeetingFormat.parse(d.get("format")),
            scheduled_at=parse_datetime(
                _optional(d, "confirmed_date_time", "confirmedDateTime",
                          "voting_opened_at", "votingOpenedAt")
            ),
            location=_optional(d, "location"),
            total_area=_require_number(d, "total_area", "totalArea"),
            voted_area=_require_number(d, "voted_area", "votedArea"),
            total_eligible_count=int(_require_number(d, "total_eligible_count", "totalEligibleCount")),
            participated_count=int(_require_number(d, "participated_count", "participatedCount")),
            quorum_percent=_require_number(d, "quorum_percent", "quorumPercent"),
            quorum_reached=quorum_reached,
            participation_percent=float(participation) if participation is not None else None,
            organizer_name=_optional(d, "organizer_name", "organizerName"),
        )


@dataclass(frozen=True)
class AgendaItem:
    """One resolution put to vote, with area-weighted tallies."""
    id: str
    item_order: int
    title: str
    votes_for_area: float
    votes_against_area: float
    votes_abstain_area: float
    description: Optional[str] = None
    decision: Optional[Decision] = None

    def __post_init__(self):
        for name in ("votes_for_area", "votes_against_area", "votes_abstain_area"):
            if getattr(self, name) < 0:
                raise InvalidSnapshot(f"Tally '{name}' must not be negative",
                                      field_name=name, agenda_item=self.id)

    @property
    def voted_area(self) -> float:
        return self.votes_for_area + self.votes_against_area + self.votes_abstain_area

    @classmethod
    def from_dict(cls, d: dict) -> "AgendaItem":
        """Build an AgendaItem from the backend's agenda item JSON."""
        decision = _optional(d, "decision")
        try:
            parsed_decision = Decision(decision) if decision is not None else None
        except ValueError as e:
            raise InvalidSnapshot(f"Unknown decision {decision!r}", field_name="decision",
                                  agenda_item=str(d.get("id"))) from e
        return cls(
            id=str(_require(d, "id")),
            item_order=int(_require_number(d, "item_order", "itemOrder")),
            title=str(_require(d, "title")),
            description=_optional(d, "description"),
            votes_for_area=_require_number(d, "votes_for_area", "votesForArea"),
            votes_against_area=_require_number(d, "votes_against_area", "votesAgainstArea"),
            votes_abstain_area=_require_number(d, "votes_abstain_area", "votesAbstainArea"),
            decision=parsed_decision,
        )


@dataclass(frozen=True)
class VoteRecord:
    """A single owner's ballot."""
    voter_id: str
    voter_name: str
    apartment_number: str
    vote_weight: float
    voted_at: datetime
    choice: VoteChoice
    comment: Optional[str] = None

    def __post_init__(self):
        if self.vote_weight <= 0:
            raise InvalidSnapshot(f"Vote weight must be positive, got {self.vote_weight}",
                                  field_name="vote_weight", voter_id=self.voter_id)

    @property
    def justification(self) -> str:
        """Stripped comment text, empty when the voter left none."""
        return (self.comment or "").strip()

    @classmethod
    def from_dict(cls, d: dict) -> "VoteRecord":
        """Build a VoteRecord from the backend's vote record JSON."""
        choice = _require(d, "choice")
        try:
            parsed_choice = VoteChoice(choice)
        except ValueError as e:
            raise InvalidSnapshot(f"Unknown vote choice {choice!r}", field_name="choice",
                                  voter_id=str(d.get("voter_id"))) from e
        voted_at = parse_datetime(_require(d, "voted_at", "votedAt"))
        return cls(
            voter_id=str(_require(d, "voter_id", "voterId")),
            voter_name=str(_require(d, "voter_name", "voterName")),
            apartment_number=str(_optional(d, "apartment_number", "apartmentNumber") or ""),
            vote_weight=_require_number(d, "vote_weight", "voteWeight"),
            voted_at=voted_at,
            choice=parsed_choice,
            comment=_optional(d, "comment"),
        )


@dataclass(frozen=True)
class ProtocolData:
    """Everything the engine needs to render one protocol."""
    meeting: MeetingSnapshot
    agenda_items: tuple[AgendaItem, ...]
    vote_records: tuple[VoteRecord, ...]
    votes_by_item: dict[str, tuple[VoteRecord, ...]] = field(default_factory=dict)
    protocol_hash: Optional[str] = None

    def __post_init__(self):
        orders = [item.item_order for item in self.agenda_items]
        if len(orders) != len(set(orders)):
            raise InvalidSnapshot("Agenda item orders must be unique", field_name="item_order")
        for item in self.agenda_items:
            if item.voted_area > self.meeting.total_area + AREA_EPSILON:
                raise InvalidSnapshot(
                    f"Tallies of '{item.title}' exceed the total area",
                    field_name="votes_for_area", agenda_item=item.id,
                )

    def votes_for(self, item: AgendaItem) -> tuple[VoteRecord, ...]:
        """Vote records grouped under an agenda item (empty if none)."""
        return tuple(self.votes_by_item.get(item.id, ()))

    def unique_voters(self) -> list[VoteRecord]:
        """Roster records de-duplicated by voter id, first occurrence wins."""
        seen: set[str] = set()
        voters = []
        for record in self.vote_records:
            if record.voter_id not in seen:
                seen.add(record.voter_id)
                voters.append(record)
        return voters

    @classmethod
    def from_dict(cls, d: dict, building_address: Optional[str] = None) -> "ProtocolData":
        """
        Build ProtocolData from the `/protocol/data` endpoint response.

        Agenda items are sorted by their order regardless of response order.
        """
        meeting = MeetingSnapshot.from_dict(_require(d, "meeting"), building_address=building_address)
        items = sorted(
            (AgendaItem.from_dict(item) for item in d.get("agendaItems", d.get("agenda_items", [])) or []),
            key=lambda item: item.item_order,
        )
        records = tuple(
            VoteRecord.from_dict(r) for r in d.get("voteRecords", d.get("vote_records", [])) or []
        )
        grouped = d.get("votesByItem", d.get("votes_by_item", {})) or {}
        votes_by_item = {
            str(item_id): tuple(VoteRecord.from_dict(r) for r in votes or [])
            for item_id, votes in grouped.items()
        }
        return cls(
            meeting=meeting,
            agenda_items=tuple(items),
            vote_records=records,
            votes_by_item=votes_by_item,
            protocol_hash=_optional(d, "protocolHash", "protocol_hash"),
        )


@dataclass(frozen=True)
class Organization:
    """Registration details of the management company."""
    name: str
    address: str
    bank: str
    account: str
    inn: str
    oked: str
    mfo: str

    @classmethod
    def from_config(cls, cfg) -> "Organization":
        """Build from a config.Config instance."""
        return cls(
            name=cfg.org_name,
            address=cfg.org_address,
            bank=cfg.org_bank,
            account=cfg.org_account,
            inn=cfg.org_inn,
            oked=cfg.org_oked,
            mfo=cfg.org_mfo,
        )


@dataclass(frozen=True)
class VoteResult:
    """Normalized tally of one agenda item."""
    votes_for: float
    votes_against: float
    votes_abstain: float
    percent_for: float
    percent_against: float
    percent_abstain: float
    approved: bool


@dataclass(frozen=True)
class DocumentPackage:
    """A generated protocol ready for delivery."""
    content: bytes
    file_name: str
    image_count: int = 0
    relationship_ids: dict[str, str] = field(default_factory=dict)
    media_type: str = DOCX_MEDIA_TYPE

    def __len__(self) -> int:
        return len(self.content)
