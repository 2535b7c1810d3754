# traces.py

import random
import re
from typing import Any, Dict, List, Optional

from errors import TraceError

PRESET_TRACES: Dict[str, List[int]] = {
    "Sequential": [1, 2, 3, 4, 5, 6, 7, 8],
    "Repeated Access": [1, 2, 3, 1, 2, 3, 1, 2, 3],
    "Locality": [1, 2, 3, 4, 1, 2, 5, 6, 1, 2, 7, 8],
    "Random": [
        3, 1, 4, 1, 5, 9, 2, 6, 5, 3, 5, 8, 9, 7, 9, 3, 2, 3, 8, 4, 6, 2, 6, 4, 3,
        3, 8, 3, 2, 7, 9, 5, 0, 2, 8, 8, 4, 1, 9, 7,
    ],
    "FIFO Worst Case": [1, 2, 3, 4, 1, 2, 3, 4, 1, 2, 3, 4],
    "LRU Worst Case": [1, 2, 3, 4, 5, 1, 2, 3, 4, 5, 1, 2, 3, 4, 5],
    "Working Set": [1, 2, 3, 4, 5, 1, 2, 3, 6, 7, 8, 1, 2, 3, 9, 10, 11, 1, 2, 3],
    "Stack Distance": [1, 2, 3, 4, 3, 2, 1, 5, 6, 7, 6, 5, 8, 9, 10, 9, 8],
}

_SEPARATORS = re.compile(r"[,\s]+")
_INTEGER = re.compile(r"-?[0-9]+")


def parse_trace(text: str) -> List[Any]:
    """
    Parse comma and/or whitespace separated references.

    Plain decimal tokens ('7', '-3', '07') become ints; anything else,
    including '1_0' or '+5', is kept as a string.

    Raises:
        TraceError: If the text holds no references.
    """
    tokens = [t for t in _SEPARATORS.split(text or "") if t]
    if not tokens:
        raise TraceError("No memory references found in input")
    return [int(t) if _INTEGER.fullmatch(t) else t for t in tokens]


def format_trace(trace, limit: Optional[int] = None) -> str:
    items = list(trace)
    text = ", ".join(str(r) for r in items[:limit])
    if limit is not None and len(items) > limit:
        text += ", ..."
    return text


def generate_random_trace(length: int, max_value: int = 10, rng: Optional[random.Random] = None) -> List[int]:
    """Uniform random references in [1, max_value]."""
    rng = rng or random.Random()
    return [rng.randint(1, max_value) for _ in range(length)]


def generate_locality_trace(length: int, working_set_size: int = 5, locality_factor: float = 0.7,
                            rng: Optional[random.Random] = None) -> List[int]:
    """
    Trace with temporal locality.

    With probability locality_factor the next reference repeats one of the
    last five references; otherwise it is drawn from a working set of
    1..working_set_size.
    """
    rng = rng or random.Random()
    working_set = list(range(1, working_set_size + 1))
    trace: List[int] = []
    for _ in range(length):
        if trace and rng.random() < locality_factor:
            trace.append(rng.choice(trace[-5:]))
        else:
            trace.append(rng.choice(working_set))
    return trace
