"""Tests for running test cases and aggregating results."""

import asyncio

import httpx
import pytest

from apitester.errors import ErrorKind, ParseError
from apitester.schemas.definitions import JSONPathValue
from apitester.services.engine import APITestEngine

SUITE = """
TestCase: Item 1
Method: GET
URL: https://api.example.com/items/1
StatusCode: 200
Assertions:
  JSONPathValue: $.id == 1
  HeaderValue: Content-Type == application/json
---
TestCase: Item 2 is missing
Method: GET
URL: https://api.example.com/items/2
StatusCode: 200
Assertions:
  JSONPathExists: $.id
---
TestCase: Item 3
Method: GET
URL: https://api.example.com/items/3
StatusCode: 200
Assertions:
  JSONPathValue: $.id == 3
---
TestCase: Create item
Method: POST
URL: https://api.example.com/items
StatusCode: 201
Payload:
  name: widget
Assertions:
  JSONPathValue: $.name == "widget"
"""

# Later items respond sooner, so completion order is the reverse of file order
DELAYS = {"/items/1": 0.04, "/items/2": 0.03, "/items/3": 0.02, "/items": 0.01}


async def handler(request: httpx.Request) -> httpx.Response:
    await asyncio.sleep(DELAYS.get(request.url.path, 0))
    if request.url.path == "/items/2":
        return httpx.Response(404, json={"detail": "not found"})
    if request.method == "POST":
        return httpx.Response(201, json={"name": "widget"})
    item_id = int(request.url.path.rsplit("/", 1)[1])
    return httpx.Response(200, json={"id": item_id})


def make_engine(make_http_client, handler=handler, **kwargs) -> APITestEngine:
    return APITestEngine(http_client=make_http_client(handler), **kwargs)


def verdicts(report):
    return [
        (r.test_case.name, r.overall_passed, r.status_match, r.error, [a.passed for a in r.assertion_results])
        for r in report.results
    ]


async def test_results_follow_file_order(make_http_client):
    engine = make_engine(make_http_client, max_concurrency=4)

    report = await engine.run_text(SUITE)
    await engine.close()

    assert verdicts(report) == [
        ("Item 1", True, True, None, [True, True]),
        ("Item 2 is missing", False, False, None, [False]),
        ("Item 3", True, True, None, [True]),
        ("Create item", True, True, None, [True]),
    ]
    assert report.results[1].actual_status_code == 404
    assert not report.all_passed
    assert report.summary["passed"] == 3
    assert report.summary["failed"] == 1


async def test_concurrent_and_sequential_runs_match(make_http_client):
    sequential = make_engine(make_http_client, max_concurrency=1)
    concurrent = make_engine(make_http_client, max_concurrency=8)

    sequential_report = await sequential.run_text(SUITE)
    concurrent_report = await concurrent.run_text(SUITE)

    def dump(report):
        return [r.model_dump(exclude={"elapsed_ms"}) for r in report.results]

    assert dump(sequential_report) == dump(concurrent_report)


async def test_max_concurrency_bounds_in_flight_requests(make_http_client):
    in_flight = 0
    peak = 0

    async def counting_handler(request: httpx.Request) -> httpx.Response:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return httpx.Response(200, json={"id": 1})

    text = "\n---\n".join(
        f"TestCase: Case {i}\nMethod: GET\nURL: https://api.example.com/items/{i}\nStatusCode: 200"
        for i in range(10)
    )
    engine = make_engine(make_http_client, counting_handler, max_concurrency=3)

    report = await engine.run_text(text)

    assert report.total == 10
    assert 1 < peak <= 3


async def test_timeout_is_isolated_to_one_test_case(make_http_client):
    def timeout_handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/items/1":
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(200, json={"id": int(request.url.path.rsplit("/", 1)[1])})

    engine = make_engine(make_http_client, timeout_handler)
    text = SUITE.split("---")[0] + "---" + SUITE.split("---")[2]

    report = await engine.run_text(text)

    timed_out, later = report.results
    assert timed_out.error is ErrorKind.TIMEOUT
    assert not timed_out.overall_passed
    assert timed_out.assertion_results == []
    assert later.test_case.name == "Item 3"
    assert later.overall_passed
    assert report.summary["errored"] == 1


async def test_connection_failure_has_distinct_reason(make_http_client):
    def refused(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    engine = make_engine(make_http_client, refused)

    report = await engine.run_text(SUITE)

    assert {r.error for r in report.results} == {ErrorKind.CONNECTION_FAILED}
    assert all(r.assertion_results == [] for r in report.results)
    assert report.results[0].failure_reasons[0].startswith("ConnectionFailed")


async def test_rejected_record_is_reported_and_not_sent(make_http_client):
    sent = []

    def recording_handler(request: httpx.Request) -> httpx.Response:
        sent.append(request.url.path)
        return httpx.Response(200, json={"id": 1})

    text = SUITE.split("---")[0] + (
        "---\nTestCase: Bad path\nMethod: GET\nURL: https://api.example.com/bad\n"
        "StatusCode: 200\nAssertions:\n  JSONPathExists: $.items[*]\n"
    )
    engine = make_engine(make_http_client, recording_handler)

    report = await engine.run_text(text)

    assert sent == ["/items/1"]
    assert [r.test_case.name for r in report.results] == ["Item 1"]
    [rejected] = report.rejected
    assert rejected.record == "Bad path"
    assert rejected.assertion == "$.items[*]"
    assert not report.all_passed


async def test_parse_error_propagates_before_any_request(make_http_client):
    sent = []

    def recording_handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        return httpx.Response(200)

    engine = make_engine(make_http_client, recording_handler)

    with pytest.raises(ParseError):
        await engine.run_text(SUITE + "---\nTestCase: Broken\nURL: https://api.example.com\nStatusCode: 200\n")

    assert sent == []


async def test_callbacks_receive_each_test(make_http_client):
    started = []
    completed = []

    async def on_start(test_case):
        started.append(test_case.name)

    async def on_complete(result):
        completed.append((result.test_case.name, result.overall_passed))

    engine = APITestEngine(
        on_test_start=on_start,
        on_test_complete=on_complete,
        http_client=make_http_client(handler),
        max_concurrency=1,
    )

    await engine.run_text(SUITE)

    assert started == ["Item 1", "Item 2 is missing", "Item 3", "Create item"]
    assert dict(completed)["Item 2 is missing"] is False


async def test_run_file(make_http_client, sample_path):
    def sample_handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/register":
            return httpx.Response(400, json={"error": "Missing password"})
        return httpx.Response(
            200,
            json={"data": {"id": 2, "first_name": "Janet"}},
            headers={"Content-Type": "application/json; charset=utf-8"},
        )

    engine = make_engine(make_http_client, sample_handler)

    report = await engine.run_file(sample_path)

    assert [r.overall_passed for r in report.results] == [True, True]
    assert report.all_passed


async def test_report_serializes_assertion_details(make_http_client):
    engine = make_engine(make_http_client)

    report = await engine.run_text(SUITE)
    data = report.model_dump(mode="json")

    first = data["results"][0]
    assert first["overall_passed"] is True
    assert first["assertion_results"][0]["assertion"] == JSONPathValue(path="$.id", expected=1).model_dump()
    assert first["assertion_results"][1]["assertion"]["kind"] == "HeaderValue"
    assert data["summary"]["total"] == 4


async def test_deeply_nested_body_is_isolated(make_http_client):
    def nested_handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/items/1":
            return httpx.Response(200, content=b"[" * 200000 + b"]" * 200000)
        return httpx.Response(200, json={"id": 3})

    engine = make_engine(make_http_client, nested_handler)
    text = SUITE.split("---")[0] + "---" + SUITE.split("---")[2]

    report = await engine.run_text(text)

    nested, later = report.results
    assert nested.error is None
    assert nested.status_match
    assert [a.passed for a in nested.assertion_results] == [False, False]
    assert nested.assertion_results[0].detail.endswith("body is not JSON")
    assert later.test_case.name == "Item 3"
    assert later.overall_passed


async def test_unexpected_evaluation_error_is_isolated(make_http_client, monkeypatch):
    engine = make_engine(make_http_client)
    evaluate_all = engine.assertion_engine.evaluate_all

    def flaky_evaluate_all(response, assertions):
        if response.document == {"id": 1}:
            raise RuntimeError("evaluation blew up")
        return evaluate_all(response, assertions)

    monkeypatch.setattr(engine.assertion_engine, "evaluate_all", flaky_evaluate_all)

    report = await engine.run_text(SUITE)

    first = report.results[0]
    assert first.error is ErrorKind.INVALID_RESPONSE
    assert "RuntimeError: evaluation blew up" in first.error_detail
    assert [r.overall_passed for r in report.results[2:]] == [True, True]
    assert report.total == 4


@pytest.mark.parametrize("hook", ["on_test_start", "on_test_complete"])
async def test_failing_callback_does_not_abort_run(make_http_client, hook, caplog):
    calls = []

    async def failing_callback(arg):
        calls.append(arg)
        if len(calls) == 1:
            raise RuntimeError("callback failed")

    engine = APITestEngine(
        http_client=make_http_client(handler),
        max_concurrency=1,
        **{hook: failing_callback},
    )

    report = await engine.run_text(SUITE)

    assert len(calls) == 4
    assert [r.test_case.name for r in report.results] == [
        "Item 1",
        "Item 2 is missing",
        "Item 3",
        "Create item",
    ]
    assert report.results[0].overall_passed
    assert "Progress callback failed for 'Item 1'" in caplog.text
