#!/usr/bin/env python3
"""
Area-weighted vote tallies for meeting protocols.

Contains: tally, chair_election_result, participation_percent,
MAJORITY_THRESHOLD_PERCENT.
"""

from protocol_types import AgendaItem, Decision, MeetingSnapshot, VoteResult

# Simple majority of the voted area, used only when the backend sent no decision
MAJORITY_THRESHOLD_PERCENT = 50.0


def _percent(part: float, whole: float) -> float:
    return (part / whole * 100) if whole > 0 else 0.0


def tally(item: AgendaItem) -> VoteResult:
    """
    Normalize an agenda item's area tallies into percentages and a decision.

    Percentages are relative to the area that actually voted on the item
    (for + against + abstain), not the building's total area.

    Args:
        item: Agenda item with raw area tallies

    Returns:
        VoteResult; all percentages are 0.0 when nobody voted
    """
    voted_area = item.voted_area
    percent_for = _percent(item.votes_for_area, voted_area)

    if item.decision is not None:
        approved = item.decision == Decision.APPROVED
    else:
        approved = percent_for > MAJORITY_THRESHOLD_PERCENT

    return VoteResult(
        votes_for=item.votes_for_area,
        votes_against=item.votes_against_area,
        votes_abstain=item.votes_abstain_area,
        percent_for=percent_for,
        percent_against=_percent(item.votes_against_area, voted_area),
        percent_abstain=_percent(item.votes_abstain_area, voted_area),
        approved=approved,
    )


def chair_election_result(meeting: MeetingSnapshot) -> VoteResult:
    """Result of the synthesized "elect chair and secretary" item: unanimous."""
    return VoteResult(
        votes_for=meeting.voted_area,
        votes_against=0.0,
        votes_abstain=0.0,
        percent_for=100.0,
        percent_against=0.0,
        percent_abstain=0.0,
        approved=True,
    )


def participation_percent(meeting: MeetingSnapshot) -> float:
    """Share of the total area that took part, preferring the backend's figure."""
    if meeting.participation_percent is not None:
        return meeting.participation_percent
    return _percent(meeting.voted_area, meeting.total_area)
