import json
from typing import Any, Iterable, Optional


def compact_json(payload: Any) -> str:
    """Purpose: Serialize a payload for embedding into a synthetic chat turn.
    Inputs/Outputs: Input is any JSON-ready value; output is compact JSON text.
    Side Effects / State: None; pure function.
    Dependencies: Uses json.dumps; called by the orchestrator for tool results.
    Failure Modes: Non-serializable values fall back to str() via default=str.
    If Removed: Tool results cannot be echoed back to the model.
    Testing Notes: Output has no spaces after separators and keeps non-ASCII text.
    """
    # No whitespace and no ASCII escaping: the model reads this text verbatim.
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)


def join_text(parts: Iterable[Optional[str]]) -> str:
    """Purpose: Concatenate text segments the way responses are shown to the user.
    Inputs/Outputs: Input is an iterable of strings (None entries skipped); output is
        the segments joined with newlines.
    Side Effects / State: None; pure function.
    Dependencies: Used by ModelTurn.text and resource content flattening.
    Failure Modes: Returns an empty string when there is nothing to join.
    If Removed: Multi-segment model output loses its separators.
    Testing Notes: Two segments "a" and "b" yield "a\\nb".
    """
    # Keep order; drop missing segments rather than rendering "None".
    return "\n".join(part for part in parts if part is not None)


def first_attr(obj: Any, *names: str) -> Any:
    """Return the first attribute among names that is present and not None."""
    # SDK releases differ on camelCase vs snake_case field names.
    for name in names:
        value = getattr(obj, name, None)
        if value is not None:
            return value
    return None
