"""Interval arithmetic over half-open [start, end) datetime spans."""
from __future__ import annotations

from typing import Iterable, List

from adherence.models.domain import Interval


def clip(intervals: Iterable[Interval], window: Interval) -> List[Interval]:
    """Restrict each interval to ``window``; empty results are dropped."""
    clipped: List[Interval] = []
    for iv in intervals:
        start = max(iv.start, window.start)
        end = min(iv.end, window.end)
        if end > start:
            clipped.append(Interval(start, end, iv.kind))
    return clipped


def merge(intervals: Iterable[Interval]) -> List[Interval]:
    """Union of possibly-overlapping intervals, sorted, as disjoint spans."""
    ordered = sorted((iv for iv in intervals if iv.end > iv.start), key=lambda iv: iv.start)
    merged: List[Interval] = []
    for iv in ordered:
        if merged and iv.start <= merged[-1].end:
            last = merged[-1]
            if iv.end > last.end:
                merged[-1] = Interval(last.start, iv.end, last.kind)
        else:
            merged.append(iv)
    return merged


def subtract(intervals: Iterable[Interval], holes: Iterable[Interval]) -> List[Interval]:
    """Remove every ``holes`` span from ``intervals`` (both merged first)."""
    hole_list = merge(holes)
    result: List[Interval] = []
    for iv in merge(intervals):
        pieces = [iv]
        for hole in hole_list:
            if hole.end <= iv.start or hole.start >= iv.end:
                continue
            next_pieces: List[Interval] = []
            for piece in pieces:
                if hole.start > piece.start:
                    next_pieces.append(Interval(piece.start, min(hole.start, piece.end), piece.kind))
                if hole.end < piece.end:
                    next_pieces.append(Interval(max(hole.end, piece.start), piece.end, piece.kind))
            pieces = [p for p in next_pieces if p.end > p.start]
        result.extend(pieces)
    return result


def total_minutes(intervals: Iterable[Interval]) -> float:
    return sum(iv.minutes for iv in intervals)


def overlap_minutes(span: Interval, disjoint: Iterable[Interval]) -> float:
    """Minutes of ``span`` covered by ``disjoint`` (which must not self-overlap)."""
    covered = 0.0
    for iv in disjoint:
        start = max(span.start, iv.start)
        end = min(span.end, iv.end)
        if end > start:
            covered += (end - start).total_seconds() / 60.0
    return covered
