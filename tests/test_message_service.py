from datetime import datetime, timedelta
from unittest.mock import Mock, patch

from sqlalchemy.exc import OperationalError

from app.models import ChatHistory
from app.schemas.conversation import CustomerInfo
from app.services.message_service import (
    SENDER_AI,
    SENDER_HUMAN,
    build_session_id,
    get_full_conversation,
    get_recent_messages,
    list_conversations,
    normalize_digits,
    parse_json_field,
    save_message,
)
from app.services.result import DB_ERROR, STORAGE_UNAVAILABLE

BASE_TIME = datetime(2024, 5, 1, 9, 0, 0)


def _add_row(db, session_id, sender, content, at, number="27690001111", name=None):
    customer = {"number": number}
    if name:
        customer["name"] = name
    row = ChatHistory(
        session_id=session_id,
        message={"type": sender, "content": content},
        customer=customer,
        date_time=at,
    )
    db.add(row)
    db.commit()
    return row


class TestSessionId:
    def test_normalize_digits_strips_formatting(self):
        assert normalize_digits("+27 (69) 000-1111") == "27690001111"

    def test_normalize_digits_handles_none(self):
        assert normalize_digits(None) == ""

    def test_build_session_id_uses_prefix_and_digits(self):
        assert build_session_id("+27 69 000 1111") == "APP-27690001111"


class TestParseJsonField:
    def test_dict_passes_through(self):
        assert parse_json_field({"type": "human"}) == {"type": "human"}

    def test_string_is_parsed(self):
        assert parse_json_field('{"type": "ai", "content": "x"}') == {"type": "ai", "content": "x"}

    def test_malformed_string_gives_none(self):
        assert parse_json_field("{not json") is None

    def test_non_object_json_gives_none(self):
        assert parse_json_field("[1, 2]") is None
        assert parse_json_field(42) is None


class TestSaveMessage:
    def test_assigns_id_and_timestamp(self, sqlite_session):
        result = save_message(
            sqlite_session, "APP-1", SENDER_HUMAN, "Hi", CustomerInfo(number="1", name="Thandi")
        )

        assert result.ok is True
        assert result.value.id is not None
        assert result.value.date_time is not None

        row = sqlite_session.query(ChatHistory).one()
        assert row.message == {"type": "human", "content": "Hi"}
        assert row.customer == {"number": "1", "name": "Thandi"}

    def test_stores_response_metadata(self, sqlite_session):
        save_message(
            sqlite_session, "APP-1", SENDER_AI, "Hello", CustomerInfo(number="1"), response_metadata={"model": "m"}
        )

        row = sqlite_session.query(ChatHistory).one()
        assert row.message["response_metadata"] == {"model": "m"}
        assert "name" not in row.customer

    def test_write_failure_returns_storage_unavailable(self):
        mock_db = Mock()
        mock_db.commit.side_effect = OperationalError("INSERT", {}, Exception("db down"))

        result = save_message(mock_db, "APP-1", SENDER_HUMAN, "Hi", CustomerInfo(number="1"))

        assert result.ok is False
        assert result.error_code == STORAGE_UNAVAILABLE
        mock_db.rollback.assert_called_once()


class TestGetFullConversation:
    def test_orders_by_timestamp_then_id(self, sqlite_session):
        _add_row(sqlite_session, "APP-1", SENDER_HUMAN, "third", BASE_TIME + timedelta(minutes=2))
        _add_row(sqlite_session, "APP-1", SENDER_HUMAN, "first", BASE_TIME)
        _add_row(sqlite_session, "APP-1", SENDER_AI, "second-a", BASE_TIME + timedelta(minutes=1))
        _add_row(sqlite_session, "APP-1", SENDER_AI, "second-b", BASE_TIME + timedelta(minutes=1))
        _add_row(sqlite_session, "APP-2", SENDER_HUMAN, "other session", BASE_TIME)

        result = get_full_conversation(sqlite_session, "APP-1")

        assert result.ok is True
        assert [m.content for m in result.value] == ["first", "second-a", "second-b", "third"]
        for earlier, later in zip(result.value, result.value[1:]):
            assert earlier.created_at <= later.created_at
            if earlier.created_at == later.created_at:
                assert earlier.id < later.id

    def test_returns_every_message_beyond_one_page(self, sqlite_session):
        sqlite_session.add_all(
            ChatHistory(
                session_id="APP-long",
                message={"type": SENDER_HUMAN if i % 2 == 0 else SENDER_AI, "content": f"m{i}"},
                customer={"number": "1"},
                date_time=BASE_TIME + timedelta(seconds=i),
            )
            for i in range(1200)
        )
        sqlite_session.commit()

        result = get_full_conversation(sqlite_session, "APP-long")

        assert len(result.value) == 1200
        assert result.value[0].content == "m0"
        assert result.value[-1].content == "m1199"
        assert len({m.id for m in result.value}) == 1200

    def test_small_page_size_still_returns_everything(self, sqlite_session):
        for i in range(7):
            _add_row(sqlite_session, "APP-1", SENDER_HUMAN, f"m{i}", BASE_TIME + timedelta(seconds=i))

        result = get_full_conversation(sqlite_session, "APP-1", page_size=3)

        assert [m.content for m in result.value] == [f"m{i}" for i in range(7)]

    def test_empty_session_is_not_an_error(self, sqlite_session):
        result = get_full_conversation(sqlite_session, "APP-none")

        assert result.ok is True
        assert result.value == []

    def test_read_failure_returns_error_and_empty_list(self):
        mock_db = Mock()
        mock_db.query.side_effect = OperationalError("SELECT", {}, Exception("db down"))

        result = get_full_conversation(mock_db, "APP-1")

        assert result.ok is False
        assert result.error_code == DB_ERROR
        assert result.value == []

    def test_string_payloads_and_legacy_body(self, sqlite_session):
        sqlite_session.add_all(
            [
                ChatHistory(
                    session_id="APP-1",
                    message='{"type": "human", "content": "as string"}',
                    customer='{"number": "1", "name": "Thandi"}',
                    date_time=BASE_TIME,
                ),
                ChatHistory(
                    session_id="APP-1",
                    message={"type": "ai", "body": "legacy body"},
                    customer={"number": "1"},
                    date_time=BASE_TIME + timedelta(seconds=1),
                ),
            ]
        )
        sqlite_session.commit()

        messages = get_full_conversation(sqlite_session, "APP-1").value

        assert messages[0].sender_type == "human"
        assert messages[0].content == "as string"
        assert messages[0].customer_name == "Thandi"
        assert messages[1].sender_type == "ai"
        assert messages[1].content == "legacy body"


class TestGetRecentMessages:
    def test_recent_window_matches_tail_of_full_history(self, sqlite_session):
        for i in range(12):
            sender = SENDER_HUMAN if i % 3 else SENDER_AI
            _add_row(sqlite_session, "APP-1", sender, f"m{i}", BASE_TIME + timedelta(seconds=i // 2))

        full = get_full_conversation(sqlite_session, "APP-1").value
        for k in range(1, len(full) + 1):
            recent = get_recent_messages(sqlite_session, "APP-1", limit=k).value
            assert [m.id for m in recent] == [m.id for m in full[-k:]]

    def test_limit_is_clamped(self, sqlite_session):
        for i in range(3):
            _add_row(sqlite_session, "APP-1", SENDER_HUMAN, f"m{i}", BASE_TIME + timedelta(seconds=i))

        assert len(get_recent_messages(sqlite_session, "APP-1", limit=0).value) == 1
        assert len(get_recent_messages(sqlite_session, "APP-1", limit=10_000).value) == 3


class TestListConversations:
    def test_summarises_each_session_newest_first(self, sqlite_session):
        _add_row(sqlite_session, "APP-1", SENDER_HUMAN, "hello", BASE_TIME, number="1", name="Ann")
        customer_row = _add_row(sqlite_session, "APP-1", SENDER_HUMAN, "price?", BASE_TIME + timedelta(minutes=1), number="1")
        _add_row(sqlite_session, "APP-1", SENDER_AI, "R100", BASE_TIME + timedelta(minutes=2), number="1")
        _add_row(sqlite_session, "APP-2", SENDER_HUMAN, "hi", BASE_TIME + timedelta(minutes=5), number="2", name="Ben")

        result = list_conversations(sqlite_session)

        assert result.ok is True
        assert [s.session_id for s in result.value] == ["APP-2", "APP-1"]

        first, second = result.value
        assert first.customer_name == "Ben"
        assert first.message_count == 1
        assert second.message_count == 3
        assert second.last_message_content == "R100"
        assert second.last_customer_message_id == customer_row.id

    def test_session_without_customer_messages(self, sqlite_session):
        _add_row(sqlite_session, "APP-3", SENDER_AI, "outbound only", BASE_TIME)

        summary = list_conversations(sqlite_session).value[0]

        assert summary.last_customer_message_id is None
        assert summary.customer_number == "27690001111"

    def test_paginates_through_all_rows(self, sqlite_session):
        for i in range(5):
            _add_row(sqlite_session, f"APP-{i % 2}", SENDER_HUMAN, f"m{i}", BASE_TIME + timedelta(seconds=i))

        result = list_conversations(sqlite_session, page_size=2)

        counts = {s.session_id: s.message_count for s in result.value}
        assert counts == {"APP-0": 3, "APP-1": 2}

    def test_row_inserted_between_pages_is_not_counted_twice(self, sqlite_session):
        for i in range(4):
            _add_row(sqlite_session, "APP-1", SENDER_HUMAN, f"m{i}", BASE_TIME + timedelta(seconds=i))
        inserted = []

        def parse_and_insert(value):
            if not inserted:
                inserted.append(
                    _add_row(sqlite_session, "APP-2", SENDER_HUMAN, "new", BASE_TIME + timedelta(minutes=10))
                )
            return parse_json_field(value)

        with patch("app.services.message_service.parse_json_field", side_effect=parse_and_insert):
            result = list_conversations(sqlite_session, page_size=2)

        counts = {s.session_id: s.message_count for s in result.value}
        assert counts == {"APP-1": 4}
        assert result.value[0].last_message_content == "m3"

    def test_read_failure_returns_error_and_empty_list(self):
        mock_db = Mock()
        mock_db.query.side_effect = OperationalError("SELECT", {}, Exception("db down"))

        result = list_conversations(mock_db)

        assert result.ok is False
        assert result.value == []
