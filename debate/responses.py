from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger


DEFAULT_ROSTER = ("GROK", "CLAUDE", "CHATGPT", "DEEPSEEK")

DEFAULT_RESPONSES: Dict[str, List[str]] = {
    "GROK": [
        "Interesting perspective! Let me challenge that assumption with some data...",
        "I appreciate the nuanced take here, but consider this counterpoint...",
        "That's a fascinating angle. Here's what the latest research suggests...",
        "While I understand that viewpoint, there's another way to look at this...",
        "The evidence actually points in a different direction. Let me explain...",
    ],
    "CLAUDE": [
        "I find myself both agreeing and disagreeing with the previous points...",
        "There's wisdom in what's been said, though I'd like to add some context...",
        "The complexity of this issue requires us to consider multiple dimensions...",
        "I appreciate the thoughtful discourse. Here's my contribution to the discussion...",
        "Building on those insights, I think we should also consider...",
    ],
    "CHATGPT": [
        "Great discussion so far! I'd like to offer a different perspective...",
        "The points raised are valid, but there's another layer to consider...",
        "This is exactly the kind of nuanced debate we need. My take is...",
        "I see merit in all these viewpoints. Let me synthesize and add...",
        "The conversation has evolved beautifully. Here's what I think...",
    ],
    "DEEPSEEK": [
        "Analyzing the logical structure of these arguments, I notice...",
        "From a systematic perspective, we should examine the underlying assumptions...",
        "The pattern of reasoning here suggests we might be missing...",
        "Let me approach this from a more analytical angle...",
        "The data underlying these positions tells an interesting story...",
    ],
}

# Used for roster members that have no canned lines of their own
GENERIC_RESPONSES = [
    "Let me add another angle to what has been said so far...",
    "I'd push back a little on the last point. Consider this...",
    "There's a detail in this debate nobody has raised yet...",
]


def _clean(obj: object) -> Dict[str, List[str]]:
    if not isinstance(obj, dict):
        raise ValueError("responses file must hold a JSON object of name -> list of lines")
    out: Dict[str, List[str]] = {}
    for name, lines in obj.items():
        if not isinstance(lines, list):
            raise ValueError(f"responses for {name!r} must be a list")
        kept = [str(x).strip() for x in lines if str(x).strip()]
        if kept:
            out[str(name).strip().upper()] = kept
    return out


def load_responses(path: Optional[str] = None) -> Dict[str, List[str]]:
    """Return canned reply lines per agent.

    Reads the JSON file at ``path`` (or ``RESPONSES_PATH``) when given; falls back to
    the built-in lines if it is missing or malformed.
    """
    src = path or os.getenv("RESPONSES_PATH")
    if not src:
        return {k: list(v) for k, v in DEFAULT_RESPONSES.items()}
    try:
        data = json.loads(Path(src).read_text(encoding="utf-8"))
        responses = _clean(data)
        if not responses:
            raise ValueError("responses file is empty")
        logger.debug(f"Loaded canned responses for {sorted(responses)} from {src}")
        return responses
    except Exception as e:
        logger.warning(f"Falling back to default responses: {e}")
        return {k: list(v) for k, v in DEFAULT_RESPONSES.items()}


def lines_for(speaker: str, responses: Dict[str, List[str]]) -> List[str]:
    return responses.get(speaker.upper()) or GENERIC_RESPONSES
