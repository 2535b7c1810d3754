"""
Analytics derived from simulation results.

Builds plain row dictionaries (one dict per table row) so the UI can hand
them straight to st.table / Plotly.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from policies import CacheState


def comparison_rows(states: Mapping[str, CacheState]) -> List[Dict[str, Any]]:
    """
    Per-policy performance summary.

    Args:
        states: policy id -> CacheState, in display order

    Returns:
        List of rows with algorithm, hits, misses, evictions, hit/miss rate
        and total accesses. Rates are fractions rounded to 4 places.
    """
    rows = []
    for pid, state in states.items():
        rows.append({
            "algorithm": pid,
            "hits": state.hits,
            "misses": state.misses,
            "evictions": state.evictions,
            "hit_rate": round(state.hit_rate, 4),
            "miss_rate": round(state.miss_rate, 4),
            "total_accesses": state.accesses,
        })
    return rows


def step_rows(history: Iterable, upto: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Step-by-step table: one row per SimulationStep with '<POLICY>_type' and
    '<POLICY>_evicted' columns. Only the first `upto` steps are included
    when given.
    """
    rows = []
    for step in list(history)[:upto]:
        row: Dict[str, Any] = {"step": step.step_index + 1, "reference": step.reference}
        for pid, result in step.results.items():
            row[f"{pid}_type"] = result.outcome.value
            row[f"{pid}_evicted"] = result.evicted
        rows.append(row)
    return rows


def theoretical_metrics(trace: Sequence[Any], capacity: int) -> Dict[str, float]:
    """
    Bounds that hold for any policy on this trace.

    theoretical_max_hit_rate counts every repeat as a hit (only compulsory
    misses); cache_utilization is distinct references / capacity, capped at 1.
    """
    total = len(trace)
    unique = len(set(trace))
    return {
        "unique_items": unique,
        "total_accesses": total,
        "theoretical_max_hit_rate": round((total - unique) / total, 4) if total else 0.0,
        "cache_utilization": round(min(1.0, unique / capacity), 4) if capacity > 0 else 0.0,
    }


def best_policy(states: Mapping[str, CacheState]) -> Optional[str]:
    """Policy with the highest hit rate; earlier policies win ties."""
    best, best_rate = None, -1.0
    for pid, state in states.items():
        if state.hit_rate > best_rate:
            best, best_rate = pid, state.hit_rate
    return best
