import asyncio
import logging

import httpx
import pytest

from conftest import make_file
from consent_rewards.categories import UnknownCategory
from consent_rewards.data_models import DatasetOutcome
from consent_rewards.datasets import UnsupportedFileType
from consent_rewards.events import DatasetRemoved, DatasetUploaded
from consent_rewards.validator import (
    HttpDatasetValidator,
    UploadFile,
    ValidatorTransportError,
    ValidatorVerdict,
)


def test_successful_upload_is_recorded_first_with_placeholder_count(store, events):
    record = asyncio.run(store.upload("Location", make_file("gps.csv", size=2048)))

    assert record.outcome is DatasetOutcome.SUCCESS
    assert record.file_type == "csv"
    assert record.size_bytes == 2048
    assert 100 <= record.record_count < 5100
    assert record.rationale == "This dataset is now available for partner requests."
    assert store.records() == [record]
    assert store.has_successful_upload("Location")
    assert isinstance(events[-1], DatasetUploaded)
    assert events[-1].category_label == "Location"


def test_validator_record_count_is_used_when_reported(store, validator):
    validator.verdicts.append(ValidatorVerdict(ok=True, result="Looks good", records_count=42))
    record = asyncio.run(store.upload("Location", make_file()))
    assert record.record_count == 42
    assert record.rationale == "Looks good"


def test_rejected_upload_keeps_validator_text(store, validator):
    validator.verdicts.append(ValidatorVerdict(ok=False, error="Not travel data."))
    record = asyncio.run(store.upload("Booking History", make_file("menu.csv")))

    assert record.outcome is DatasetOutcome.ERROR
    assert record.record_count == 0
    assert record.rationale == "Not travel data."
    assert not store.has_successful_upload("Booking History")


def test_transport_failure_becomes_error_record(store, validator, caplog):
    validator.verdicts.append(ValidatorTransportError("AI server error (502). Bad gateway"))
    with caplog.at_level(logging.WARNING, logger="consent_rewards.datasets"):
        record = asyncio.run(store.upload("Location", make_file()))

    assert record.outcome is DatasetOutcome.ERROR
    assert "502" in record.rationale
    assert any("transport failure" in message for message in caplog.messages)


def test_unsupported_extension_is_rejected_before_validation(store, validator):
    with pytest.raises(UnsupportedFileType):
        asyncio.run(store.upload("Location", make_file("photo.png")))
    assert validator.calls == []
    assert len(store) == 0


def test_unknown_category_fails_fast(store, validator):
    with pytest.raises(UnknownCategory):
        asyncio.run(store.upload("Favourite Colour", make_file()))
    assert validator.calls == []


def test_repeat_uploads_are_independent_and_most_recent_first(store):
    first = asyncio.run(store.upload("Location", make_file("a.csv")))
    second = asyncio.run(store.upload("Location", make_file("b.json")))

    assert second.id > first.id
    assert store.records("Location") == [second, first]
    assert store.counts_by_category() == {"Location": 2}


def test_remove_deletes_one_record(store, events):
    kept = asyncio.run(store.upload("Location", make_file("a.csv")))
    dropped = asyncio.run(store.upload("Location", make_file("b.csv")))

    assert store.remove(dropped.id) == dropped
    assert store.records() == [kept]
    assert isinstance(events[-1], DatasetRemoved)
    with pytest.raises(KeyError):
        store.remove(dropped.id)


def _validator(handler) -> HttpDatasetValidator:
    return HttpDatasetValidator("http://validator.test/ai-validate", transport=httpx.MockTransport(handler))


def test_http_validator_posts_multipart_and_parses_verdict():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["body"] = request.content
        return httpx.Response(200, json={"ok": True, "result": "Valid itinerary", "recordsCount": 17})

    verdict = asyncio.run(_validator(handler).validate(UploadFile("trips.csv", b"a,b\n1,2\n", "text/csv")))

    assert seen["method"] == "POST"
    assert b'name="file"; filename="trips.csv"' in seen["body"]
    assert verdict == ValidatorVerdict(ok=True, result="Valid itinerary", records_count=17)


def test_http_validator_raises_on_error_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="overloaded")

    with pytest.raises(ValidatorTransportError) as excinfo:
        asyncio.run(_validator(handler).validate(make_file()))
    assert excinfo.value.status_code == 503
    assert "overloaded" in str(excinfo.value)


def test_http_validator_rejects_redirect_with_verdict_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(302, json={"ok": True}, headers={"Location": "http://elsewhere/"})

    with pytest.raises(ValidatorTransportError) as excinfo:
        asyncio.run(_validator(handler).validate(make_file()))
    assert excinfo.value.status_code == 302


def test_http_validator_raises_on_unreachable_server():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ValidatorTransportError, match="unreachable"):
        asyncio.run(_validator(handler).validate(make_file()))


def test_http_validator_raises_on_undecodable_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>oops</html>")

    with pytest.raises(ValidatorTransportError):
        asyncio.run(_validator(handler).validate(make_file()))
