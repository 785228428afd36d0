from member_agent.summary import (
    build_workout_summary_by_day,
    day_key_from_date,
    extract_payload,
    find_date,
    summary_item,
)


def captured(day, payload):
    return {"url": "https://api/workouts", "status": 200, "data": {"day": day, "data": payload}}


MONDAY_PAYLOAD = {
    "result": {
        "workoutOfDay": [
            {
                "title": "Strength",
                "rawPublishingDate": "2025-03-03T05:00:00Z",
                "parts": [
                    {"title": "Warm-up Flow", "description": "Easy row"},
                    {"title": "Back Squat", "description": "5 x 5   @ 75%"},
                    {"workoutTitle": "Fran", "description": "21-15-9"},
                ],
            }
        ]
    }
}


def test_day_key_from_date():
    assert day_key_from_date("2025-03-03") == "mon"
    assert day_key_from_date("2025-03-09") == "sun"
    assert day_key_from_date("2025-13-01") is None
    assert day_key_from_date(None) is None


def test_find_date_prefers_known_keys():
    assert find_date({"id": "x", "createdDate": "2025-03-04T00:00:00Z", "other": "2025-01-01"}) == "2025-03-04"
    assert find_date({"nested": [{"date": "on 2025-03-06"}]}) == "2025-03-06"
    assert find_date({"title": "no date"}) is None


def test_extract_payload():
    assert extract_payload(captured("mon", {"a": 1})) == ({"a": 1}, "mon")
    assert extract_payload({"data": {"a": 1}}) == ({"a": 1}, None)
    assert extract_payload({"a": 1}) == ({"a": 1}, None)
    assert extract_payload("text") is None


def test_summary_item():
    assert summary_item({"title": "  Back   Squat ", "description": ""}) == {"title": "Back Squat"}
    assert summary_item({"title": "WARM-UP FLOW"}) is None
    assert summary_item({"id": 1}) is None


def test_build_summary_groups_by_date_and_dedupes():
    data = {
        "workoutsWeek": [captured("mon", MONDAY_PAYLOAD)],
        "weekRaw": [captured("mon", MONDAY_PAYLOAD)],
        "workoutHistoryWeek": None,
    }
    summary = build_workout_summary_by_day(data)

    assert list(summary) == ["mon"]
    assert summary["mon"]["date"] == "2025-03-03"
    assert summary["mon"]["items"] == [
        {"title": "Strength"},
        {"title": "Back Squat", "description": "5 x 5 @ 75%"},
        {"description": "21-15-9", "workoutTitle": "Fran"},
    ]


def test_build_summary_falls_back_to_tagged_day():
    payload = {"workoutOfDay": [{"title": "Engine", "parts": []}]}
    summary = build_workout_summary_by_day({"weekRaw": [captured("Thu", payload)]})
    assert summary == {"thu": {"items": [{"title": "Engine"}]}}


def test_build_summary_ignores_payloads_without_workouts():
    assert build_workout_summary_by_day({"weekRaw": [captured("mon", {"profile": {"name": "x"}})]}) == {}
    assert build_workout_summary_by_day({}) == {}
