"""Query functions over collection snapshots.

Everything here is pure: inputs are never mutated and results depend only
on the arguments. Issue ordering goes through `compare_issues`:

- both labels numeric: numeric ascending ("2" before "10")
- one numeric: the numeric label first
- neither: case-insensitive lexicographic
"""

from __future__ import annotations

import dataclasses
from decimal import Decimal, InvalidOperation
from functools import cmp_to_key
from typing import Dict, Iterable, List, Optional, Sequence

from .models import ComicRecord, IssueState, IssueView, WantEntry, title_key


def parse_issue_number(label: str) -> Optional[Decimal]:
    """Return the label as a number, or None when the whole label is not numeric."""
    try:
        number = Decimal(label.strip())
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def compare_issues(a: str, b: str) -> int:
    num_a = parse_issue_number(a)
    num_b = parse_issue_number(b)
    if num_a is not None and num_b is not None:
        return _cmp(num_a, num_b)
    if num_a is not None:
        return -1
    if num_b is not None:
        return 1
    return _cmp(a.casefold(), b.casefold()) or _cmp(a, b)


issue_sort_key = cmp_to_key(compare_issues)


def compare_comics(a: ComicRecord, b: ComicRecord) -> int:
    """Title (case-insensitive), then issue. Equal records keep their input order."""
    return _cmp(title_key(a.title), title_key(b.title)) or compare_issues(a.issue, b.issue)


def matches_query(comic: ComicRecord, query: str) -> bool:
    needle = query.strip().casefold()
    if not needle:
        return True
    haystacks = (comic.title, comic.issue, comic.publisher or "")
    return any(needle in text.casefold() for text in haystacks)


def filter_and_sort(comics: Sequence[ComicRecord], query: str = "") -> List[ComicRecord]:
    """Return comics matching query (title, issue or publisher) in display order."""
    matched = [c for c in comics if matches_query(c, query)]
    # sorted() is stable, so ties stay in collection order
    return sorted(matched, key=cmp_to_key(compare_comics))


def _dedupe(labels: Iterable[str]) -> List[str]:
    seen: set[str] = set()
    out: List[str] = []
    for label in labels:
        if label not in seen:
            seen.add(label)
            out.append(label)
    return out


def reconcile_series(
    title: str,
    reference_issues: Optional[Sequence[object]],
    comics: Sequence[ComicRecord],
    wants: Sequence[WantEntry],
) -> List[IssueView]:
    """Build the per-issue view of a series.

    With a reference list, one row per reference issue in reference order.
    Without one, the rows are the owned and wanted issues of the series,
    de-duplicated and sorted with `compare_issues`. Owned beats wanted.
    """
    series = title_key(title)

    owned: Dict[str, str] = {}
    for comic in comics:
        if title_key(comic.title) == series:
            owned.setdefault(comic.issue.strip(), comic.id)

    wanted = [w.issue.strip() for w in wants if title_key(w.title) == series]
    wanted_set = set(wanted)

    if reference_issues is not None:
        universe = _dedupe(str(issue).strip() for issue in reference_issues)
    else:
        universe = sorted(_dedupe([*owned, *wanted]), key=issue_sort_key)

    views: List[IssueView] = []
    for issue in universe:
        if issue in owned:
            views.append(IssueView(issue=issue, state=IssueState.OWNED, comic_id=owned[issue]))
        elif issue in wanted_set:
            views.append(IssueView(issue=issue, state=IssueState.WANTED))
        else:
            views.append(IssueView(issue=issue, state=IssueState.NEITHER))
    return views


@dataclasses.dataclass(frozen=True)
class CollectionStats:
    total_comics: int
    read: int
    unread: int
    wants: int
    series: int
    total_cost: Decimal


def collection_stats(
    comics: Sequence[ComicRecord], wants: Sequence[WantEntry]
) -> CollectionStats:
    read = sum(1 for c in comics if c.status.read)
    return CollectionStats(
        total_comics=len(comics),
        read=read,
        unread=len(comics) - read,
        wants=len(wants),
        series=len({title_key(c.title) for c in comics}),
        total_cost=sum((c.cost for c in comics if c.cost is not None), Decimal("0")),
    )
