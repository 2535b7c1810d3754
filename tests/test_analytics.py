from analytics import best_policy, comparison_rows, step_rows, theoretical_metrics
from engine import SimulationDriver
from utils import get_color, get_policy_color
from policies import Outcome


def make_driver(trace, capacity=3):
    d = SimulationDriver()
    d.initialize(["FIFO", "LRU", "LFU"], capacity)
    d.load_trace(trace)
    d.seek(len(trace))
    return d


def test_comparison_rows():
    d = make_driver([1, 2, 3, 1, 4, 1])
    rows = comparison_rows(d.live_states())
    assert [r["algorithm"] for r in rows] == ["FIFO", "LRU", "LFU"]
    fifo, lru, lfu = rows
    assert (fifo["hits"], fifo["misses"], fifo["evictions"]) == (1, 5, 2)
    assert (lru["hits"], lru["misses"], lru["evictions"]) == (2, 4, 1)
    assert lru["hit_rate"] == 0.3333
    assert lru["total_accesses"] == 6


def test_comparison_rows_before_any_access():
    d = SimulationDriver()
    d.initialize(["LFU"], 2)
    assert comparison_rows(d.displayed_states()) == [{
        "algorithm": "LFU", "hits": 0, "misses": 0, "evictions": 0,
        "hit_rate": 0.0, "miss_rate": 0.0, "total_accesses": 0,
    }]


def test_step_rows():
    d = make_driver([1, 2, 3, 4], capacity=3)
    rows = step_rows(d.history)
    assert len(rows) == 4
    assert rows[0] == {
        "step": 1, "reference": 1,
        "FIFO_type": "miss", "FIFO_evicted": None,
        "LRU_type": "miss", "LRU_evicted": None,
        "LFU_type": "miss", "LFU_evicted": None,
    }
    assert rows[3]["FIFO_evicted"] == 1
    assert len(step_rows(d.history, upto=2)) == 2


def test_theoretical_metrics():
    metrics = theoretical_metrics([1, 2, 1, 2, 3, 1], capacity=4)
    assert metrics["unique_items"] == 3
    assert metrics["total_accesses"] == 6
    assert metrics["theoretical_max_hit_rate"] == 0.5
    assert metrics["cache_utilization"] == 0.75
    assert theoretical_metrics(list(range(10)), capacity=4)["cache_utilization"] == 1.0
    assert theoretical_metrics([], capacity=4)["theoretical_max_hit_rate"] == 0.0


def test_best_policy():
    d = make_driver([1, 2, 3, 1, 4, 1])
    assert best_policy(d.live_states()) == "LRU"
    fresh = SimulationDriver()
    fresh.initialize(["LFU", "FIFO"], 2)
    assert best_policy(fresh.displayed_states()) == "LFU"
    assert best_policy({}) is None


def test_colors():
    assert get_color(Outcome.HIT) == get_color("hit")
    assert get_color("unknown") == "lightgray"
    assert get_policy_color("LRU") != get_policy_color("FIFO")
