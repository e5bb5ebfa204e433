import pytest

from signsync.schemas.events import SignatureEventIn

def test_numeric_text_fields_become_text():
    event = SignatureEventIn.model_validate(
        {
            "RequestId": 42,
            "EventId": "3",
            "UserName": 12345,
            "Email": 7,
            "Subject": 1.5,
            "EventDescription": 3,
            "RejectReason": 0,
            "Documents": [{"DocumentName": 99, "DocumentContent": "JVBERi0x"}],
        }
    )
    assert event.external_reference == "42"
    assert event.event_code == 3
    assert event.signer_name == "12345"
    assert event.signer_email == "7"
    assert event.subject == "1.5"
    assert event.event_description == "3"
    assert event.reject_reason == "0"
    assert event.documents[0].name == "99"

@pytest.mark.parametrize("bad", [{"first": "Jane"}, ["Jane"], True, "   "])
def test_unusable_text_fields_are_dropped(bad):
    event = SignatureEventIn.model_validate({"EventId": 2, "UserName": bad, "Email": bad, "RejectReason": bad})
    assert event.signer_name is None
    assert event.signer_email is None
    assert event.reject_reason is None

def test_unusable_documents_are_dropped():
    event = SignatureEventIn.model_validate(
        {"EventId": 3, "Documents": ["JVBERi0x", {"DocumentContent": {"nested": True}, "DocumentName": "a.pdf"}]}
    )
    assert len(event.documents) == 1
    assert event.documents[0].content is None
    assert event.documents[0].name == "a.pdf"

    assert SignatureEventIn.model_validate({"EventId": 3, "Documents": "JVBERi0x"}).documents == []
    single = SignatureEventIn.model_validate({"EventId": 3, "Documents": {"DocumentContent": "JVBERi0x"}})
    assert len(single.documents) == 1

def test_unparseable_code_and_time_are_dropped():
    event = SignatureEventIn.model_validate({"EventId": "two", "EventTime": "yesterday"})
    assert event.event_code is None
    assert event.event_time is None
