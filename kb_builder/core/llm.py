"""Pulling a JSON object out of free-form model output."""

import json
import re
from typing import Any

_FENCED = re.compile(r"```[a-zA-Z]*\s*(.*?)\s*```", re.DOTALL)


def extract_json_object(raw_output: str) -> Any:
    """
    Decode the JSON object in a model response.

    Accepts bare JSON, JSON inside a markdown code fence, or an object
    embedded in surrounding prose (outermost braces win).

    Raises:
        ValueError: If nothing decodes (json.JSONDecodeError is a ValueError)
    """
    text = raw_output.strip()
    fenced = _FENCED.search(text)
    if fenced:
        text = fenced.group(1)

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("No JSON object found in model output") from None
        return json.loads(text[start : end + 1])
