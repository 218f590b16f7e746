"""
Sample protocol data snapshots shared by the test modules.

Shaped like the `/api/meetings/{id}/protocol/data` response (camelCase keys).
"""

import copy

MEETING = {
    "id": "m-42",
    "number": 12,
    "buildingAddress": "ул. Навои, 5",
    "format": "hybrid",
    "confirmedDateTime": "2026-03-05T09:05:00",
    "location": "Двор дома",
    "totalArea": 1000.0,
    "votedArea": 700.0,
    "totalEligibleCount": 20,
    "participatedCount": 3,
    "quorumPercent": 50,
    "quorumReached": True,
    "organizerName": "Петрова А.А.",
}

VOTERS = {
    "v1": {"voterId": "v1", "voterName": "Иванов Иван", "apartmentNumber": "1",
           "voteWeight": 300.0, "votedAt": "2026-03-05T10:00:00"},
    "v2": {"voterId": "v2", "voterName": "Сидорова Мария", "apartmentNumber": "2",
           "voteWeight": 250.0, "votedAt": "2026-03-05T10:30:00"},
    "v3": {"voterId": "v3", "voterName": "Ким Олег", "apartmentNumber": "3",
           "voteWeight": 150.0, "votedAt": "2026-03-05T11:00:00"},
}


def vote(voter_id: str, choice: str, comment=None) -> dict:
    record = dict(VOTERS[voter_id], choice=choice)
    if comment is not None:
        record["comment"] = comment
    return record


def snapshot_dict() -> dict:
    """
    Three distinct voters across two agenda items.

    Item 1: v1, v2 for; v3 against. Item 2: v1 for, v2 abstain.
    The roster lists the first ballot of every voter.
    """
    return copy.deepcopy({
        "meeting": MEETING,
        "agendaItems": [
            # Deliberately out of order
            {"id": "a2", "itemOrder": 2, "title": "Ремонт кровли",
             "votesForArea": 300.0, "votesAgainstArea": 0.0, "votesAbstainArea": 250.0},
            {"id": "a1", "itemOrder": 1, "title": "Утверждение сметы",
             "description": "Смета на 2026 год",
             "votesForArea": 550.0, "votesAgainstArea": 150.0, "votesAbstainArea": 0.0},
        ],
        "voteRecords": [
            vote("v1", "for"),
            vote("v2", "for"),
            vote("v3", "against"),
            vote("v1", "for"),
            vote("v2", "abstain"),
        ],
        "votesByItem": {
            "a1": [vote("v1", "for"), vote("v2", "for"), vote("v3", "against")],
            "a2": [vote("v1", "for"), vote("v2", "abstain")],
        },
        "protocolHash": "abc123def456",
    })
