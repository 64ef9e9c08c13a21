"""Domain Utilities - Helpers for diagnostic output.

Security Impact:
    - Output of these helpers may contain PII and is only logged at DEBUG level
"""

import json
from typing import Optional


def format_body_for_log(raw: Optional[str]) -> str:
    """Pretty-print a JSON message body, or return it unchanged if it is not JSON.

    Parameters:
        raw: Message body as received from the queue

    Returns:
        str: Indented JSON, or the raw text when it cannot be parsed
    """
    if raw is None:
        return ""
    try:
        parsed = json.loads(raw)
    except ValueError:
        return raw
    return json.dumps(parsed, indent=2, ensure_ascii=False)
