from chatgpt_client.conversation.stream import decode_frame


def test_non_data_lines_are_ignored():
    assert decode_frame("").kind == "ignored"
    assert decode_frame(": keep-alive").kind == "ignored"
    assert decode_frame("event: ping").kind == "ignored"


def test_done_sentinel():
    assert decode_frame("data: [DONE]").kind == "done"


def test_event_frame():
    frame = decode_frame('data: {"conversation_id": "c1", "message": {"id": "m1", "content": {"parts": ["Hi"]}}}')
    assert frame.kind == "event"
    assert frame.event.conversation_id == "c1"
    assert frame.event.message.first_part == "Hi"


def test_malformed_json_is_parse_error():
    frame = decode_frame("data: {not json")
    assert frame.kind == "parse_error"
    assert frame.error.code == "FRAME_PARSE_ERROR"
    assert frame.error.extra["line"] == "data: {not json"


def test_non_object_json_is_parse_error():
    assert decode_frame("data: [1, 2]").kind == "parse_error"
