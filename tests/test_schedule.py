import asyncio
import re
from datetime import date

from member_agent.models import CandidateElement
from member_agent.perception import StaticIndex
from member_agent.schedule import (
    best_date_match,
    date_patterns,
    find_day_buttons,
    find_time_slots,
    label_matches_class,
    normalize_day,
    normalize_time_label,
    parse_days,
    parse_week_offset,
    slots_for_class,
    time_matches,
    visible_times,
)


def el(x, y, w=40, h=20, label=""):
    return CandidateElement(x=x, y=y, width=w, height=h, label=label)


def test_parse_days():
    assert parse_days("mon, Wed fri") == ["mon", "wed", "fri"]
    assert parse_days("Monday,monday,TUESDAY") == ["mon", "tue"]
    assert parse_days("xyz, sa") == ["sat"]
    assert parse_days(None) == []
    assert parse_days("") == []


def test_normalize_day():
    assert normalize_day("Thursday") == "thu"
    assert normalize_day("su") == "sun"
    assert normalize_day("  ") is None
    assert normalize_day("noday") is None


def test_parse_week_offset():
    assert parse_week_offset(None) == 0
    assert parse_week_offset("current") == 0
    assert parse_week_offset("next") == 1
    assert parse_week_offset("3") == 3
    assert parse_week_offset("+2 weeks") == 2
    assert parse_week_offset("10") == 6
    assert parse_week_offset("later") == 0


def test_normalize_time_label():
    assert normalize_time_label("6:00 A.M.") == "6:00am"
    assert normalize_time_label("6:00 AM") in normalize_time_label("6:00AM CrossFit")


def test_time_matches_respects_digit_boundaries():
    assert time_matches("6:00AM CrossFit", "6:00 AM")
    assert time_matches("Mon 6:00 A.M.", "6:00 am")
    assert not time_matches("11:00 AM CrossFit", "1:00 AM")
    assert not time_matches("12:00 PM", "2:00 PM")
    assert not time_matches("6:00 AM", "")


def test_label_matches_class():
    assert label_matches_class("6:00 AM CROSSFIT", "CrossFit")
    assert not label_matches_class("6:00 AM Open Gym", "CrossFit")
    assert not label_matches_class("", "CrossFit")
    assert not label_matches_class("CrossFit", "")


def test_date_patterns_and_best_match():
    patterns = date_patterns(date(2025, 3, 5))
    assert re.search(patterns[0], "Wednesday, March 5, 2025", re.IGNORECASE)
    assert not re.search(patterns[2], "March 15", re.IGNORECASE)

    candidates = [
        el(0, 0, label="March 5"),
        el(0, 40, label="Wednesday, March 5, 2025"),
        el(0, 80, label="March 15, 2025"),
        el(0, 120, label=""),
    ]
    assert best_date_match(candidates, patterns).label == "Wednesday, March 5, 2025"
    assert best_date_match([el(0, 0, label="April 1")], patterns) is None


def week_row(y=100, labels=("Sun 2", "Mon 3", "Tue 4", "Wed 5", "Thu 6", "Fri 7", "Sat 8")):
    # 故意打乱顺序
    xs = [600, 0, 100, 300, 200, 500, 400]
    ordered = sorted(range(7), key=lambda i: xs[i])
    return [el(xs[i], y + (i % 2) * 4, 40, 40, labels[ordered.index(i)]) for i in range(7)]


def test_find_day_buttons_picks_dense_row():
    noise = [el(0, 250, label="12 spots left"), el(200, 255, label="3 reserved"), el(0, 600, label="Feb 28")]
    index = StaticIndex(week_row() + noise + [el(0, 10, label="Schedule")])
    buttons = asyncio.run(find_day_buttons(index))

    assert len(buttons) == 7
    assert [b.label for b in buttons] == ["Sun 2", "Mon 3", "Tue 4", "Wed 5", "Thu 6", "Fri 7", "Sat 8"]
    assert [b.x for b in buttons] == sorted(b.x for b in buttons)


def test_find_day_buttons_respects_vertical_limit():
    index = StaticIndex(week_row(y=500))
    assert asyncio.run(find_day_buttons(index)) == []
    assert len(asyncio.run(find_day_buttons(index, threshold=40, max_y_ratio=0.85))) == 7


def test_find_time_slots_filters_and_sorts():
    index = StaticIndex(
        [
            el(10, 400, 200, 40, "6:00 AM CrossFit"),
            el(10, 100, 200, 40, "6:00AM Open Gym"),
            el(10, 200, 30, 40, "6:00 AM"),  # 太窄
            el(10, 900, 200, 40, "6:00 AM Yoga"),  # 可视区域外
            el(10, 300, 200, 40, "7:00 AM CrossFit"),
        ]
    )
    slots = asyncio.run(find_time_slots(index, "6:00 AM"))
    assert [s.label for s in slots] == ["6:00AM Open Gym", "6:00 AM CrossFit"]


def test_find_time_slots_ignores_longer_hours():
    index = StaticIndex([el(10, 100, 200, 40, "11:00 AM CrossFit"), el(10, 200, 200, 40, "1:00 AM CrossFit")])
    slots = asyncio.run(find_time_slots(index, "1:00 AM"))
    assert [s.label for s in slots] == ["1:00 AM CrossFit"]
    assert asyncio.run(find_time_slots(StaticIndex([el(10, 100, 200, 40, "11:00 AM CrossFit")]), "1:00 AM")) == []


def test_slots_for_class_excludes_unassociated_slots():
    crossfit_slot = el(10, 100, 80, 30, "6:00 AM")
    open_gym_slot = el(10, 300, 80, 30, "6:00 AM")
    index = StaticIndex(
        [
            crossfit_slot,
            open_gym_slot,
            el(100, 100, 120, 30, "CrossFit"),
            el(100, 300, 120, 30, "Open Gym"),
        ]
    )
    kept = asyncio.run(slots_for_class(index, [crossfit_slot, open_gym_slot], "CrossFit"))
    assert kept == [crossfit_slot]


def test_slots_for_class_keeps_slot_labelled_with_class():
    slot = el(10, 200, 200, 40, "6:00 AM CrossFit")
    index = StaticIndex([slot])
    assert asyncio.run(slots_for_class(index, [slot], "CrossFit")) == [slot]


def test_visible_times():
    index = StaticIndex([el(0, 0, label=" 6:00 AM "), el(0, 50, label="Coach"), el(0, 90, label="5:30 PM CrossFit")])
    assert asyncio.run(visible_times(index)) == ["6:00 AM", "5:30 PM CrossFit"]
