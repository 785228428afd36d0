import asyncio
from types import SimpleNamespace

import pytest

from member_agent.errors import TargetNotFound
from member_agent.models import CandidateElement, Point
from member_agent.perception import LabelQuery, StaticIndex
from member_agent.resolver import (
    PositionalFallback,
    RoleQuery,
    ScopedTextQuery,
    SemanticsQuery,
    Strategy,
    TargetResolver,
    TextQuery,
    associate_classes,
    association_radius,
    labeled_control_cascade,
)


def el(x, y, w=40, h=20, label=""):
    return CandidateElement(x=x, y=y, width=w, height=h, label=label)


class RecordingStrategy(Strategy):
    def __init__(self, label, point, calls):
        self.label = label
        self.point = point
        self.calls = calls

    @property
    def name(self):
        return self.label

    async def locate(self, resolver):
        self.calls.append(self.label)
        return self.point


def test_association_radius_bounds():
    assert association_radius([el(0, 0), el(0, 100)]) == 75
    assert association_radius([el(0, 0), el(0, 40)]) == 60
    assert association_radius([el(0, 0), el(0, 400)]) == 140
    assert association_radius([el(0, 0)]) == 140
    assert association_radius([]) == 140


def test_associate_classes_radius_boundary():
    slots = [el(0, 0), el(0, 100)]  # 中心间距 100，半径 75
    on_boundary = el(75, 0, label="CrossFit")  # 中心 (95, 10)，距离恰好 75
    outside = el(76, 0, label="CrossFit")

    assert associate_classes(slots, [on_boundary]) == [(slots[0], on_boundary)]
    assert associate_classes(slots, [outside]) == []


def test_associate_classes_picks_nearest_label():
    slots = [el(0, 0), el(0, 200)]
    near_first = el(60, 0, label="CrossFit A")
    near_second = el(60, 200, label="CrossFit B")
    pairs = associate_classes(slots, [near_second, near_first])
    assert [(s.y, l.label) for s, l in pairs] == [(0, "CrossFit A"), (200, "CrossFit B")]


def test_associate_classes_empty_inputs():
    assert associate_classes([], [el(0, 0)]) == []
    assert associate_classes([el(0, 0)], []) == []


def test_resolve_stops_at_first_success():
    calls = []
    strategies = [
        RecordingStrategy("miss", None, calls),
        RecordingStrategy("hit", Point(10, 20), calls),
        RecordingStrategy("never", Point(0, 0), calls),
    ]
    resolution = asyncio.run(TargetResolver(page=None).resolve("button", strategies))

    assert resolution.strategy == "hit"
    assert resolution.point == Point(10, 20)
    assert calls == ["miss", "hit"]


def test_resolve_required_raises_when_exhausted():
    calls = []
    strategies = [RecordingStrategy("a", None, calls), RecordingStrategy("b", None, calls)]
    with pytest.raises(TargetNotFound) as exc:
        asyncio.run(TargetResolver(page=None).resolve_required("log in", strategies))
    assert exc.value.intent == "log in"
    assert calls == ["a", "b"]


def test_resolve_returns_none_without_raising():
    assert asyncio.run(TargetResolver(page=None).resolve("x", [])) is None


def test_positional_fallback_uses_viewport():
    page = SimpleNamespace(viewport_size={"width": 1000, "height": 800})
    resolver = TargetResolver(page=page)
    point = asyncio.run(PositionalFallback(y_from_bottom=60).locate(resolver))
    assert point == Point(500, 740)

    point = asyncio.run(PositionalFallback(x_ratio=0.75, y_ratio=0.25).locate(resolver))
    assert point == Point(750, 200)


def test_positional_fallback_default_viewport():
    resolver = TargetResolver(page=SimpleNamespace(viewport_size=None))
    point = asyncio.run(PositionalFallback(x_ratio=0.75, y_from_bottom=30).locate(resolver))
    assert point == Point(960, 690)


def test_semantics_query_uses_y_ratio():
    index = StaticIndex([el(100, 200, 200, 50, "Email")])
    resolver = TargetResolver(page=None, index=index)
    strategy = SemanticsQuery(LabelQuery(text="email"), y_ratio=0.75, label="Email")
    point = asyncio.run(strategy.locate(resolver))
    assert point == Point(200, 237.5)
    assert strategy.name == "semantics-Email"


def test_semantics_query_miss_and_missing_index():
    strategy = SemanticsQuery(LabelQuery(text="password"))
    assert asyncio.run(strategy.locate(TargetResolver(page=None, index=StaticIndex([])))) is None
    assert asyncio.run(strategy.locate(TargetResolver(page=None))) is None


def test_labeled_control_cascade_order():
    fallback = PositionalFallback(y_from_bottom=80)
    strategies = labeled_control_cascade(r"log in", fallback=fallback, timeout=1.0)

    assert [s.name for s in strategies] == ["role-button", "role-link", "text", "semantics-text", "positional"]
    assert isinstance(strategies[0], RoleQuery)
    assert isinstance(strategies[2], TextQuery)
    assert isinstance(strategies[3], ScopedTextQuery)
    assert strategies[-1] is fallback
    assert all(s.timeout == 1.0 for s in strategies[:-1])


def test_labeled_control_cascade_without_fallback():
    strategies = labeled_control_cascade(r"schedule")
    assert strategies[-1].name == "semantics-text"
