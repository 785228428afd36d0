"""几何工具：按行/列聚类候选元素"""

import math
from typing import List, Optional, Sequence

from .models import CandidateElement, Cluster, Point


def _coord(element: CandidateElement, axis: str) -> float:
    if axis == "y":
        return element.y
    if axis == "x":
        return element.x
    raise ValueError(f"Unknown axis: {axis}")


def cluster(elements: Sequence[CandidateElement], axis: str = "y", threshold: float = 30) -> List[Cluster]:
    """
    按坐标排序后顺序遍历，与当前簇锚点（首个成员）距离达到 threshold 即开新簇。

    只与锚点比较，不与簇内每个成员比较，因此簇可能略有漂移。
    """
    ordered = sorted(elements, key=lambda el: _coord(el, axis))
    clusters: List[Cluster] = []
    for element in ordered:
        value = _coord(element, axis)
        last = clusters[-1] if clusters else None
        if last is not None and abs(value - last.anchor) < threshold:
            last.members.append(element)
        else:
            clusters.append(Cluster(anchor=value, members=[element]))
    return clusters


def representatives(clusters: Sequence[Cluster]) -> List[CandidateElement]:
    """每个簇取面积最大的成员"""
    return [c.representative for c in clusters]


def largest_cluster(clusters: Sequence[Cluster], axis: str = "y") -> List[CandidateElement]:
    """成员最多的簇，成员按交叉轴排序；并列时取靠前的簇"""
    best: Optional[Cluster] = None
    for c in clusters:
        if best is None or len(c.members) > len(best.members):
            best = c
    if best is None:
        return []
    cross = "x" if axis == "y" else "y"
    return sorted(best.members, key=lambda el: _coord(el, cross))


def distance(a: Point, b: Point) -> float:
    return math.hypot(a.x - b.x, a.y - b.y)


def center_distance(a: CandidateElement, b: CandidateElement) -> float:
    return distance(a.center, b.center)


def min_pairwise_gap(elements: Sequence[CandidateElement]) -> Optional[float]:
    """所有元素中心两两之间的最小距离；少于两个元素时返回 None"""
    best: Optional[float] = None
    for i in range(len(elements)):
        for j in range(i + 1, len(elements)):
            gap = center_distance(elements[i], elements[j])
            if best is None or gap < best:
                best = gap
    return best
