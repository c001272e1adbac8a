from app.services.payload_parser import (
    extract_incoming_message,
    match_array,
    match_bare_object,
    match_business_account,
)

VALUE = {
    "messaging_product": "whatsapp",
    "contacts": [{"profile": {"name": "Thandi"}, "wa_id": "27690001111"}],
    "messages": [{"from": "27690001111", "id": "wamid.1", "type": "text", "text": {"body": "Hi"}}],
}

BUSINESS_ACCOUNT_PAYLOAD = {
    "object": "whatsapp_business_account",
    "entry": [{"id": "1", "changes": [{"field": "messages", "value": VALUE}]}],
}

ARRAY_PAYLOAD = [VALUE]

BARE_PAYLOAD = VALUE


class TestMatchers:
    def test_business_account_matcher(self):
        assert match_business_account(BUSINESS_ACCOUNT_PAYLOAD) is VALUE
        assert match_business_account(BARE_PAYLOAD) is None

    def test_business_account_status_update_is_ignored(self):
        payload = {
            "object": "whatsapp_business_account",
            "entry": [{"changes": [{"value": {"statuses": [{"status": "delivered"}]}}]}],
        }
        assert match_business_account(payload) is None

    def test_array_matcher(self):
        assert match_array(ARRAY_PAYLOAD) is VALUE
        assert match_array([]) is None
        assert match_array([{"statuses": []}]) is None

    def test_bare_object_matcher(self):
        assert match_bare_object(BARE_PAYLOAD) is VALUE
        assert match_bare_object({"foo": "bar"}) is None


class TestExtractIncomingMessage:
    def test_all_shapes_give_the_same_message(self):
        for payload in (BUSINESS_ACCOUNT_PAYLOAD, ARRAY_PAYLOAD, BARE_PAYLOAD):
            incoming = extract_incoming_message(payload)
            assert incoming.wa_id == "27690001111"
            assert incoming.text == "Hi"
            assert incoming.customer_name == "Thandi"

    def test_first_text_message_wins(self):
        payload = {
            "messages": [
                {"from": "1", "type": "image", "image": {"id": "img"}},
                {"from": "1", "type": "text", "text": {"body": "second"}},
                {"from": "1", "type": "text", "text": {"body": "third"}},
            ]
        }

        assert extract_incoming_message(payload).text == "second"

    def test_sender_falls_back_to_from(self):
        payload = {"messages": [{"from": "27690002222", "type": "text", "text": {"body": "Hello"}}]}

        incoming = extract_incoming_message(payload)

        assert incoming.wa_id == "27690002222"
        assert incoming.customer_name is None

    def test_non_text_message_yields_nothing(self):
        payload = {"messages": [{"from": "1", "type": "audio", "audio": {"id": "a"}}]}

        assert extract_incoming_message(payload) is None

    def test_empty_text_yields_nothing(self):
        payload = {"messages": [{"from": "1", "type": "text", "text": {"body": ""}}]}

        assert extract_incoming_message(payload) is None

    def test_unknown_shapes_yield_nothing(self):
        assert extract_incoming_message(None) is None
        assert extract_incoming_message("text") is None
        assert extract_incoming_message({"object": "page", "entry": []}) is None
        assert extract_incoming_message({"messages": "not a list"}) is None
