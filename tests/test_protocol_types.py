#!/usr/bin/env python3
"""
Unit tests for protocol_types.py snapshot loading and validation.

Run with: python tests/test_protocol_types.py
"""

import sys
import unittest
from datetime import datetime
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from protocol_errors import InvalidSnapshot
from protocol_types import (
    AgendaItem,
    Decision,
    MeetingFormat,
    MeetingSnapshot,
    ProtocolData,
    VoteChoice,
    VoteRecord,
    parse_datetime,
)
from sample_data import MEETING, snapshot_dict, vote


class TestEnums(unittest.TestCase):
    """Tests for format and choice labels."""

    def test_meeting_format_labels(self):
        """Test Russian adjectives of each meeting format."""
        self.assertEqual(MeetingFormat.OFFLINE.label_ru, "очной")
        self.assertEqual(MeetingFormat.ONLINE.label_ru, "заочной")
        self.assertEqual(MeetingFormat.HYBRID.label_ru, "очно-заочной")

    def test_unknown_format_is_offline(self):
        """Test unknown or missing format falls back to in-person."""
        self.assertEqual(MeetingFormat.parse("videoconference"), MeetingFormat.OFFLINE)
        self.assertEqual(MeetingFormat.parse(None), MeetingFormat.OFFLINE)
        self.assertEqual(MeetingFormat.parse("online"), MeetingFormat.ONLINE)

    def test_vote_choice_labels(self):
        """Test full and abbreviated choice labels."""
        self.assertEqual(VoteChoice.ABSTAIN.label_ru, "ВОЗДЕРЖАЛСЯ")
        self.assertEqual(VoteChoice.ABSTAIN.short_label_ru, "ВОЗДЕРЖ.")
        self.assertEqual(VoteChoice.FOR.short_label_ru, "ЗА")


class TestParseDatetime(unittest.TestCase):
    """Tests for ISO timestamp parsing."""

    def test_empty_values(self):
        """Test empty values parse to None."""
        self.assertIsNone(parse_datetime(None))
        self.assertIsNone(parse_datetime(""))

    def test_naive_and_aware(self):
        """Test naive and offset timestamps."""
        self.assertEqual(parse_datetime("2026-03-05T09:05:00"), datetime(2026, 3, 5, 9, 5))
        aware = parse_datetime("2026-03-05T04:05:00+00:00")
        self.assertIsNotNone(aware.tzinfo)

    def test_invalid(self):
        """Test garbage raises InvalidSnapshot."""
        with self.assertRaises(InvalidSnapshot):
            parse_datetime("yesterday")


class TestMeetingSnapshot(unittest.TestCase):
    """Tests for MeetingSnapshot.from_dict."""

    def test_from_dict(self):
        """Test a complete meeting loads."""
        meeting = MeetingSnapshot.from_dict(dict(MEETING))
        self.assertEqual(meeting.number, 12)
        self.assertEqual(meeting.format, MeetingFormat.HYBRID)
        self.assertEqual(meeting.scheduled_at, datetime(2026, 3, 5, 9, 5))
        self.assertTrue(meeting.quorum_reached)
        self.assertEqual(meeting.venue, "Двор дома")

    def test_snake_case_keys(self):
        """Test snake_case payloads are accepted too."""
        meeting = MeetingSnapshot.from_dict({
            "id": 7, "number": 3, "building_address": "ул. Бабура, 1",
            "total_area": 500, "voted_area": 100, "total_eligible_count": 10,
            "participated_count": 2, "quorum_percent": 50, "quorum_reached": False,
        })
        self.assertEqual(meeting.id, "7")
        self.assertFalse(meeting.quorum_reached)
        self.assertIsNone(meeting.scheduled_at)

    def test_missing_quorum_flag(self):
        """Test a missing quorum flag is rejected rather than defaulted."""
        d = dict(MEETING)
        del d["quorumReached"]
        with self.assertRaises(InvalidSnapshot) as ctx:
            MeetingSnapshot.from_dict(d)
        self.assertEqual(ctx.exception.details["field"], "quorum_reached")

    def test_quorum_flag_strings_and_numbers(self):
        """Test "false" and 0 mean no quorum; strings are not judged by truthiness."""
        cases = [("false", False), (" False ", False), ("true", True), ("TRUE", True),
                 (0, False), (1, True), (False, False), (True, True)]
        for raw, expected in cases:
            with self.subTest(raw=raw):
                d = dict(MEETING, quorumReached=raw)
                self.assertIs(MeetingSnapshot.from_dict(d).quorum_reached, expected)

    def test_ambiguous_quorum_flag(self):
        """Test values that are not clearly a boolean are rejected."""
        for raw in ("yes", "0", "", "maybe", 2, 0.5, [], {}):
            with self.subTest(raw=raw):
                d = dict(MEETING, quorumReached=raw)
                with self.assertRaises(InvalidSnapshot) as ctx:
                    MeetingSnapshot.from_dict(d)
                self.assertEqual(ctx.exception.details["field"], "quorum_reached")

    def test_address_override_and_fallback(self):
        """Test the address override wins and a missing address gets a placeholder."""
        meeting = MeetingSnapshot.from_dict(dict(MEETING), building_address="пр. Амира Темура, 10")
        self.assertEqual(meeting.building_address, "пр. Амира Темура, 10")

        d = dict(MEETING)
        del d["buildingAddress"]
        del d["location"]
        meeting = MeetingSnapshot.from_dict(d)
        self.assertEqual(meeting.building_address, "Адрес не указан")
        self.assertEqual(meeting.venue, "Адрес не указан")

    def test_voting_opened_fallback(self):
        """Test the voting start is used when no confirmed date exists."""
        d = dict(MEETING)
        del d["confirmedDateTime"]
        d["votingOpenedAt"] = "2026-04-01T18:30:00"
        self.assertEqual(MeetingSnapshot.from_dict(d).scheduled_at, datetime(2026, 4, 1, 18, 30))

    def test_voted_area_exceeds_total(self):
        """Test voted area larger than the building is rejected."""
        d = dict(MEETING, votedArea=1000.5)
        with self.assertRaises(InvalidSnapshot):
            MeetingSnapshot.from_dict(d)

    def test_non_numeric_area(self):
        """Test non-numeric areas are rejected."""
        with self.assertRaises(InvalidSnapshot):
            MeetingSnapshot.from_dict(dict(MEETING, totalArea="a lot"))
        with self.assertRaises(InvalidSnapshot):
            MeetingSnapshot.from_dict(dict(MEETING, totalArea=True))


class TestAgendaItemAndVoteRecord(unittest.TestCase):
    """Tests for AgendaItem and VoteRecord loading."""

    def test_missing_tally(self):
        """Test a missing tally is rejected."""
        with self.assertRaises(InvalidSnapshot):
            AgendaItem.from_dict({"id": "a1", "itemOrder": 1, "title": "X",
                                  "votesForArea": 1.0, "votesAgainstArea": 0.0})

    def test_decision(self):
        """Test precomputed decisions parse and unknown ones are rejected."""
        item = AgendaItem.from_dict({"id": "a1", "itemOrder": 1, "title": "X", "decision": "no_quorum",
                                     "votesForArea": 1, "votesAgainstArea": 0, "votesAbstainArea": 0})
        self.assertEqual(item.decision, Decision.NO_QUORUM)
        with self.assertRaises(InvalidSnapshot):
            AgendaItem.from_dict({"id": "a1", "itemOrder": 1, "title": "X", "decision": "maybe",
                                  "votesForArea": 1, "votesAgainstArea": 0, "votesAbstainArea": 0})

    def test_vote_record(self):
        """Test a vote record loads and the comment is stripped."""
        record = VoteRecord.from_dict(vote("v1", "against", comment="  слишком дорого \n"))
        self.assertEqual(record.choice, VoteChoice.AGAINST)
        self.assertEqual(record.vote_weight, 300.0)
        self.assertEqual(record.justification, "слишком дорого")

    def test_vote_record_invalid(self):
        """Test unknown choices, missing times and non-positive weights are rejected."""
        with self.assertRaises(InvalidSnapshot):
            VoteRecord.from_dict(vote("v1", "maybe"))
        no_time = vote("v1", "for")
        del no_time["votedAt"]
        with self.assertRaises(InvalidSnapshot):
            VoteRecord.from_dict(no_time)
        with self.assertRaises(InvalidSnapshot):
            VoteRecord.from_dict(dict(vote("v1", "for"), voteWeight=0))


class TestProtocolData(unittest.TestCase):
    """Tests for ProtocolData.from_dict."""

    def test_from_dict(self):
        """Test the sample snapshot loads with items sorted by order."""
        data = ProtocolData.from_dict(snapshot_dict())
        self.assertEqual([item.id for item in data.agenda_items], ["a1", "a2"])
        self.assertEqual(len(data.vote_records), 5)
        self.assertEqual(len(data.votes_for(data.agenda_items[0])), 3)
        self.assertEqual(data.protocol_hash, "abc123def456")

    def test_votes_for_missing_item(self):
        """Test items without grouped votes return an empty tuple."""
        d = snapshot_dict()
        d["votesByItem"] = {}
        data = ProtocolData.from_dict(d)
        self.assertEqual(data.votes_for(data.agenda_items[0]), ())

    def test_unique_voters(self):
        """Test voters are de-duplicated with the first ballot kept."""
        data = ProtocolData.from_dict(snapshot_dict())
        voters = data.unique_voters()
        self.assertEqual([v.voter_id for v in voters], ["v1", "v2", "v3"])
        self.assertEqual(voters[1].choice, VoteChoice.FOR)

    def test_duplicate_item_order(self):
        """Test duplicate agenda orders are rejected."""
        d = snapshot_dict()
        d["agendaItems"][0]["itemOrder"] = 1
        with self.assertRaises(InvalidSnapshot):
            ProtocolData.from_dict(d)

    def test_item_tally_exceeds_total(self):
        """Test item tallies larger than the building are rejected."""
        d = snapshot_dict()
        d["agendaItems"][0]["votesForArea"] = 900.0
        with self.assertRaises(InvalidSnapshot):
            ProtocolData.from_dict(d)

    def test_missing_meeting(self):
        """Test a snapshot without a meeting is rejected."""
        with self.assertRaises(InvalidSnapshot):
            ProtocolData.from_dict({"agendaItems": []})


if __name__ == "__main__":
    unittest.main(verbosity=2)
