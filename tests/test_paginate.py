import threading

from feeds.paginate import RangePaginator, RankingPaginator


class FakeRangeAdapter:
    """Serves ``total_rows`` rows; ``failures`` maps window start -> failures left."""

    def __init__(self, total_rows, failures=None):
        self.total_rows = total_rows
        self.failures = dict(failures or {})
        self.calls = []

    def fetch_page(self, start, end):
        self.calls.append((start, end))
        if self.failures.get(start, 0) > 0:
            self.failures[start] -= 1
            return None
        return [{"n": index} for index in range(start, min(end, self.total_rows))]


def test_stops_after_short_window(sleeps):
    adapter = FakeRangeAdapter(total_rows=42)
    paginator = RangePaginator(adapter, window_size=25, total=100, window_delay=1.0)

    rows = paginator.fetch_all()

    assert len(rows) == 42
    assert adapter.calls == [(0, 25), (25, 50)]
    assert [row["n"] for row in rows] == list(range(42))
    assert sleeps == [1.0]


def test_last_window_is_clamped_to_total(sleeps):
    adapter = FakeRangeAdapter(total_rows=1000)
    paginator = RangePaginator(adapter, window_size=300, total=511, window_delay=0)

    rows = paginator.fetch_all()

    assert adapter.calls == [(0, 300), (300, 511)]
    assert len(rows) == 511


def test_failing_window_is_skipped_after_three_attempts(sleeps):
    adapter = FakeRangeAdapter(total_rows=100, failures={25: 99})
    paginator = RangePaginator(adapter, window_size=25, total=100, window_delay=0)

    rows = paginator.fetch_all()

    assert adapter.calls.count((25, 50)) == 3
    assert len(rows) == 75
    assert paginator.metrics["skipped_pages"] == 1
    assert sleeps == [2.0, 4.0]


def test_transient_window_failure_recovers(sleeps):
    adapter = FakeRangeAdapter(total_rows=50, failures={0: 1})
    paginator = RangePaginator(adapter, window_size=25, total=50, window_delay=0)

    rows = paginator.fetch_all()

    assert len(rows) == 50
    assert paginator.metrics["skipped_pages"] == 0
    assert paginator.metrics["requests"] == 3


def test_max_pages_ceiling(sleeps):
    adapter = FakeRangeAdapter(total_rows=10_000)
    paginator = RangePaginator(adapter, window_size=10, total=10_000, max_pages=3, window_delay=0)

    rows = paginator.fetch_all()

    assert len(adapter.calls) == 3
    assert len(rows) == 30


def test_empty_first_window_ends_walk(sleeps):
    adapter = FakeRangeAdapter(total_rows=0)
    assert RangePaginator(adapter, window_size=10, total=100).fetch_all() == []
    assert adapter.calls == [(0, 10)]


class FakeRankingAdapter:
    def __init__(self, total_pages, fail_pages=(), raise_pages=()):
        self.total_pages = total_pages
        self.fail_pages = set(fail_pages)
        self.raise_pages = set(raise_pages)
        self.requested = []
        self._lock = threading.Lock()

    def fetch_ranking_page(self, page_index):
        with self._lock:
            self.requested.append(page_index)
        if page_index in self.raise_pages:
            raise RuntimeError("boom")
        if page_index in self.fail_pages:
            return None
        return {
            "TotalPages": self.total_pages,
            "TotalCount": self.total_pages * 2,
            "Data": [
                {"StockCode": f"P{page_index}A"},
                {"StockCode": f"P{page_index}B"},
            ],
        }


def test_ranking_keeps_page_order():
    adapter = FakeRankingAdapter(total_pages=5)
    rows = RankingPaginator(adapter, max_pages=19, max_workers=4).fetch_all()

    assert [row["StockCode"] for row in rows] == [
        f"P{page}{suffix}" for page in range(1, 6) for suffix in "AB"
    ]
    assert adapter.requested[0] == 1
    assert sorted(adapter.requested) == [1, 2, 3, 4, 5]


def test_ranking_failed_pages_do_not_affect_others():
    adapter = FakeRankingAdapter(total_pages=4, fail_pages={2}, raise_pages={3})
    paginator = RankingPaginator(adapter, max_pages=19)

    rows = paginator.fetch_all()

    assert [row["StockCode"] for row in rows] == ["P1A", "P1B", "P4A", "P4B"]
    assert paginator.metrics["skipped_pages"] == 2


def test_ranking_respects_max_pages():
    adapter = FakeRankingAdapter(total_pages=50)
    RankingPaginator(adapter, max_pages=3).fetch_all()
    assert sorted(adapter.requested) == [1, 2, 3]


def test_ranking_first_page_unavailable_returns_empty():
    adapter = FakeRankingAdapter(total_pages=5, fail_pages={1})
    assert RankingPaginator(adapter, max_pages=5).fetch_all() == []
    assert adapter.requested == [1]


def test_partial_page_of_hundred_window_stops_walk(sleeps):
    adapter = FakeRangeAdapter(total_rows=42)
    rows = RangePaginator(adapter, window_size=100, total=2000).fetch_all()

    assert len(rows) == 42
    assert adapter.calls == [(0, 100)]
    assert sleeps == []
