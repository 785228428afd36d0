"""从捕获的训练数据中整理出按星期归类的摘要"""

import json
import re
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from .schedule import DAY_ORDER

PREFERRED_DATE_KEYS = ["rawPublishingDate", "createdDate", "publishedOn", "date"]
SKIPPED_TITLES = {"warm-up flow"}
ISO_DATE = re.compile(r"(\d{4}-\d{2}-\d{2})")


def normalize_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = re.sub(r"\s+", " ", value.strip())
    return value or None


def normalize_date(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    match = ISO_DATE.search(value)
    return match.group(1) if match else None


def find_date(value: Any) -> Optional[str]:
    """优先取常见日期字段，否则深度优先找第一个 ISO 日期"""
    if isinstance(value, list):
        for entry in value:
            found = find_date(entry)
            if found:
                return found
        return None
    if not isinstance(value, dict):
        return None

    for key in PREFERRED_DATE_KEYS:
        if key in value:
            found = normalize_date(value[key])
            if found:
                return found

    for entry in value.values():
        found = find_date(entry)
        if found:
            return found
    return None


def day_key_from_date(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        parsed = date.fromisoformat(value)
    except ValueError:
        return None
    # isoweekday: 周一为 1，周日为 7
    return DAY_ORDER[parsed.isoweekday() % 7]


def collect_workout_of_day(value: Any, results: List[Dict[str, Any]]) -> None:
    if isinstance(value, list):
        for entry in value:
            collect_workout_of_day(entry, results)
        return
    if not isinstance(value, dict):
        return

    items = value.get("workoutOfDay")
    if isinstance(items, list):
        results.extend(item for item in items if isinstance(item, dict))

    for entry in value.values():
        collect_workout_of_day(entry, results)


def extract_payload(entry: Any) -> Optional[Tuple[Any, Optional[str]]]:
    """捕获记录 -> (payload, 标记的星期)；记录的 data 可能是 {day, data} 包装"""
    if not isinstance(entry, dict):
        return None
    if "data" not in entry:
        return entry, None

    data = entry["data"]
    fallback_day = None
    if isinstance(data, dict) and isinstance(data.get("day"), str):
        fallback_day = data["day"].lower()
    if isinstance(data, dict) and "data" in data:
        return data["data"], fallback_day
    return data, fallback_day


def summary_item(source: Dict[str, Any]) -> Optional[Dict[str, str]]:
    item = {}
    for key in ("title", "description", "workoutTitle"):
        text = normalize_text(source.get(key))
        if text:
            item[key] = text
    if not item:
        return None
    if item.get("title", "").lower() in SKIPPED_TITLES:
        return None
    return item


def _add_item(source: Dict[str, Any], items: List[Dict[str, str]], seen: Set[str]) -> None:
    item = summary_item(source)
    if item is None:
        return
    key = json.dumps(item, sort_keys=True)
    if key in seen:
        return
    seen.add(key)
    items.append(item)


def build_workout_summary_by_day(data: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """
    汇总 workoutsWeek / workoutHistoryWeek / weekRaw 三类捕获。

    返回 {day: {"date": "YYYY-MM-DD", "items": [...]}}，同一天内的条目去重。
    """
    summary: Dict[str, Dict[str, Any]] = {}
    sources: List[Any] = []
    for key in ("workoutsWeek", "workoutHistoryWeek", "weekRaw"):
        if isinstance(data.get(key), list):
            sources.extend(data[key])

    for entry in sources:
        extracted = extract_payload(entry)
        if extracted is None:
            continue
        payload, fallback_day = extracted

        workouts: List[Dict[str, Any]] = []
        collect_workout_of_day(payload, workouts)
        for workout in workouts:
            found_date = find_date(workout)
            day = day_key_from_date(found_date) or fallback_day
            if not day:
                continue

            bucket = summary.setdefault(day, {"items": []})
            if "date" not in bucket and found_date:
                bucket["date"] = found_date
            seen = {json.dumps(item, sort_keys=True) for item in bucket["items"]}

            if workout.get("title"):
                _add_item(workout, bucket["items"], seen)
            for part in _dicts(workout.get("parts")):
                _add_item(part, bucket["items"], seen)

    return summary


def _dicts(value: Any) -> Iterable[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, dict)]
