import asyncio
import re

from member_agent.capture import NetworkCapture, matches_rule
from member_agent.models import CaptureRule


class FakeRequest:
    def __init__(self, method):
        self.method = method


class FakeResponse:
    def __init__(self, url, payload, status=200, method="GET", content_type="application/json; charset=utf-8"):
        self.url = url
        self.status = status
        self.request = FakeRequest(method)
        self.headers = {"content-type": content_type}
        self.payload = payload

    async def json(self):
        return self.payload


def test_matches_rule():
    assert matches_rule(CaptureRule("all", "*"), "https://api/x", "GET", 200)
    assert matches_rule(CaptureRule("all", ""), "https://api/x", "GET", 200)
    assert matches_rule(CaptureRule("w", "workout"), "https://api/workouts?day=1", "GET", 200)
    assert not matches_rule(CaptureRule("w", "workout"), "https://api/history", "GET", 200)
    assert matches_rule(CaptureRule("re", re.compile(r"/v\d/")), "https://api/v2/x", "GET", 200)
    assert not matches_rule(CaptureRule("m", "*", method="POST"), "https://api/x", "get", 200)
    assert matches_rule(CaptureRule("m", "*", method="post"), "https://api/x", "POST", 200)
    assert not matches_rule(CaptureRule("s", "*", status_code=201), "https://api/x", "GET", 200)


def test_handle_response_buffers_by_rule():
    async def scenario():
        capture = NetworkCapture()
        capture.set_rules(
            [
                CaptureRule("workouts-week", "workout", transform=lambda data: {"day": "mon", "data": data}),
                CaptureRule("week-raw", "*"),
            ]
        )
        await capture.handle_response(FakeResponse("https://api/workouts", {"id": 1}))
        await capture.handle_response(FakeResponse("https://api/profile", {"id": 2}))
        await capture.handle_response(FakeResponse("https://api/page", "<html>", content_type="text/html"))
        return capture.flush(), capture

    data, capture = asyncio.run(scenario())

    assert [r.data for r in data["workouts-week"]] == [{"day": "mon", "data": {"id": 1}}]
    assert [r.data for r in data["week-raw"]] == [{"id": 1}, {"id": 2}]
    assert data["week-raw"][0].url == "https://api/workouts"
    assert data["week-raw"][0].method == "GET"
    assert capture.flush() == {}


def test_no_rules_captures_nothing():
    async def scenario():
        capture = NetworkCapture()
        await capture.handle_response(FakeResponse("https://api/workouts", {"id": 1}))
        return capture.flush()

    assert asyncio.run(scenario()) == {}


def test_wait_for_is_signalled_by_matching_response():
    async def scenario():
        capture = NetworkCapture()
        capture.set_rules([CaptureRule("workouts-week", "workout")])

        async def respond_later():
            await asyncio.sleep(0.05)
            await capture.handle_response(FakeResponse("https://api/workouts", {"id": 1}))

        task = asyncio.ensure_future(respond_later())
        got = await capture.wait_for("workouts-week", timeout=2)
        await task
        missed = await capture.wait_for("unknown", timeout=0.01)
        return got, missed

    assert asyncio.run(scenario()) == (True, False)


def test_wait_for_times_out():
    async def scenario():
        capture = NetworkCapture()
        capture.set_rules([CaptureRule("workouts-week", "workout")])
        return await capture.wait_for("workouts-week", timeout=0.05)

    assert asyncio.run(scenario()) is False


def test_attach_registers_response_listener():
    class Page:
        def __init__(self):
            self.handlers = {}

        def on(self, event, handler):
            self.handlers[event] = handler

    page = Page()
    capture = NetworkCapture(page)
    assert page.handlers["response"] == capture.handle_response
