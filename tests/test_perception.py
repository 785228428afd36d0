import asyncio

from member_agent.models import CandidateElement
from member_agent.perception import LabelQuery, SemanticsIndex, StaticIndex, normalize_label, poll_query


def el(x, y, w=40, h=20, label="", role=""):
    return CandidateElement(x=x, y=y, width=w, height=h, label=label, role=role)


def test_normalize_label():
    assert normalize_label("  Let's\n  Get   STARTED ") == "let's get started"
    assert normalize_label(None) == ""


def test_label_query_size_and_text():
    query = LabelQuery(text="crossfit", min_width=40, min_height=18)
    assert query.accepts(el(0, 0, 40, 18, "6:00 AM  CrossFit"), 720)
    assert not query.accepts(el(0, 0, 39, 18, "CrossFit"), 720)
    assert not query.accepts(el(0, 0, 40, 17, "CrossFit"), 720)
    assert not query.accepts(el(0, 0, 40, 18, "Open Gym"), 720)


def test_label_query_viewport_and_vertical_limit():
    in_view = LabelQuery(viewport_only=True)
    assert in_view.accepts(el(0, -10), 720)  # 部分可见
    assert not in_view.accepts(el(0, -30), 720)
    assert not in_view.accepts(el(0, 721), 720)

    top_half = LabelQuery(max_y_ratio=0.5)
    assert top_half.accepts(el(0, 360), 720)
    assert not top_half.accepts(el(0, 361), 720)


def test_label_query_pattern_role_and_match():
    assert LabelQuery(pattern=r"let['’]s get started").accepts(el(0, 0, label="Let’s get started"), 720)
    assert LabelQuery(role="button").accepts(el(0, 0, role="Button"), 720)
    assert not LabelQuery(role="textbox").accepts(el(0, 0, role="button"), 720)
    assert LabelQuery(match=lambda e: e.x > 5).accepts(el(10, 0), 720)
    assert not LabelQuery(text="a", pattern="b").accepts(el(0, 0, label="a"), 720)


def test_static_index_query_and_sort():
    index = StaticIndex([el(0, 300, label="b"), el(0, 100, label="a"), el(0, 0, 0, 0, label="hidden")])
    assert asyncio.run(index.labels()) == ["b", "a"]
    results = asyncio.run(index.query(LabelQuery(sort_by_y=True)))
    assert [e.label for e in results] == ["a", "b"]
    assert asyncio.run(index.first(LabelQuery(text="zzz"))) is None
    assert asyncio.run(index.viewport_height()) == 720


def test_poll_query_times_out_empty():
    index = StaticIndex([el(0, 0, label="Home")])
    assert asyncio.run(poll_query(index, LabelQuery(text="schedule"), timeout=0)) == []
    assert len(asyncio.run(poll_query(index, LabelQuery(text="home"), timeout=0))) == 1
    assert asyncio.run(poll_query(index, LabelQuery(text="home"), timeout=0, min_count=2)) == []


class FakePage:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def evaluate(self, script, arg=None):
        self.calls.append(arg)
        if self.error:
            raise self.error
        return self.result


def test_semantics_index_snapshot():
    page = FakePage(
        {
            "elements": [{"x": 1, "y": 2, "width": 30, "height": 20, "label": "Schedule", "role": "button"}],
            "viewportHeight": 900,
        }
    )
    elements, height = asyncio.run(SemanticsIndex(page).snapshot())
    assert elements == [el(1, 2, 30, 20, "Schedule", "button")]
    assert height == 900
    assert page.calls == ["flt-semantics-host"]


def test_semantics_index_treats_errors_as_empty():
    page = FakePage(error=RuntimeError("Execution context was destroyed"))
    assert asyncio.run(SemanticsIndex(page).snapshot()) == ([], 0)
    assert asyncio.run(SemanticsIndex(page).query(LabelQuery())) == []
