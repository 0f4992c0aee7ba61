from __future__ import annotations

import pytest
from pydantic import ValidationError

from slack_history.models import (
    IndexedDocument,
    MessageInfo,
    SlackMessage,
    document_id,
    ts_to_micros,
)
from slack_history.models.chat import ChatRecord, ChatType


class TestSlackMessage:
    def test_missing_ts_is_rejected(self):
        with pytest.raises(ValidationError):
            SlackMessage.model_validate({"text": "no ts"})

    @pytest.mark.parametrize("bad", ["abc", "nan", "inf", ""])
    def test_non_numeric_ts_is_rejected(self, bad: str):
        with pytest.raises(ValidationError):
            SlackMessage.model_validate({"ts": bad})

    def test_thread_flags(self):
        parent = SlackMessage(ts="100.000001", thread_ts="100.000001", reply_count=1)
        reply = SlackMessage(ts="101.000001", thread_ts="100.000001")
        plain = SlackMessage(ts="102.000001")

        assert parent.is_top_level and parent.is_thread_parent
        assert reply.is_thread_reply and not reply.is_top_level
        assert plain.is_top_level and not plain.is_thread_parent

    def test_unknown_fields_survive_round_trip(self):
        raw = {
            "ts": "1700000000.000100",
            "text": "hi",
            "client_msg_id": "abc-123",
            "edited": {"user": "U1", "ts": "1700000001.000000"},
        }
        message = SlackMessage.model_validate(raw)
        assert message.to_dict() == raw

    def test_timestamp_is_utc(self):
        message = SlackMessage(ts="1700000000.500000")
        assert message.timestamp.isoformat() == "2023-11-14T22:13:20.500000+00:00"


def test_ts_to_micros_is_exact():
    assert ts_to_micros("1700000000.000001") < ts_to_micros("1700000000.000002")
    assert ts_to_micros("1700000000.000100") == 1_700_000_000_000_100


def test_message_info_sorts_by_ts():
    infos = [
        MessageInfo(SlackMessage(ts="300.0"), "a.json"),
        MessageInfo(SlackMessage(ts="100.0"), "b.json"),
        MessageInfo(SlackMessage(ts="200.0"), "a.json"),
    ]
    infos.sort(key=lambda i: i.sort_key)
    assert [i.message.ts for i in infos] == ["100.0", "200.0", "300.0"]


def test_indexed_document_drops_empty_fields():
    doc = IndexedDocument(
        id=document_id("C1", "100.000000"),
        chat_id_s="C1",
        chat_name_s="general",
        chat_type_s="channel",
        ts_s="100.000000",
        ts_us_l=100_000_000,
        ts_dt="1970-01-01T00:01:40.000000Z",
        file_path_s="general/1970-01-01.json",
        thread_message_b=False,
        thread_parent_b=False,
    )
    payload = doc.to_dict()
    assert payload["id"] == "C1_100.000000"
    assert payload["message_index_l"] == -1
    assert "user_s" not in payload
    assert "url_ss" not in payload
    assert payload["thread_message_b"] is False


def test_directory_candidates_are_unique_and_ordered():
    chat = ChatRecord(id="D1", name="alice.l", technical_name=None, type=ChatType.DM)
    assert chat.directory_candidates == ["alice.l", "D1"]

    channel = ChatRecord(
        id="C1", name="general", technical_name="general", type=ChatType.CHANNEL
    )
    assert channel.directory_candidates == ["general", "C1"]
