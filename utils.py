# utils.py

OUTCOME_COLORS = {
    "hit": "#22c55e",     # green
    "miss": "#ef4444",    # red
    "evict": "#f59e0b",   # amber
}

POLICY_COLORS = {
    "FIFO": "#3b82f6",
    "LRU": "#8b5cf6",
    "LFU": "#14b8a6",
}


def get_color(outcome):
    """Return a color for a hit/miss/evict outcome (enum or plain string)."""
    key = getattr(outcome, "value", outcome)
    return OUTCOME_COLORS.get(key, "lightgray")


def get_policy_color(policy_id):
    return POLICY_COLORS.get(policy_id, "gray")
