from __future__ import annotations

import re
from typing import Dict

_DELIMITERS = (",", ";", "\t")


def sniff_template_format(sample: str) -> Dict[str, str]:
    """Infer delimiter and decimal separator of a plate template.

    The header row always starts with ``row`` and ``column`` so the delimiter
    is read from what separates those two cells. Decimal commas are only
    assumed when the delimiter is not a comma itself.
    """

    if not sample:
        return {"decimal": ".", "delimiter": ","}

    lines = [ln for ln in sample.splitlines() if ln.strip()]
    header = lines[0] if lines else ""

    delimiter = None
    match = re.match(r"\s*row\s*([,;\t])\s*column", header, re.IGNORECASE)
    if match:
        delimiter = match.group(1)
    else:
        counts = {sep: header.count(sep) for sep in _DELIMITERS}
        best = max(counts, key=counts.get)
        delimiter = best if counts[best] else ","

    body = "\n".join(lines[1:])
    decimal = "."
    if delimiter != ",":
        dot_matches = re.findall(r"\d\.\d", body)
        comma_matches = re.findall(r"\d,\d", body)
        if len(comma_matches) > len(dot_matches):
            decimal = ","

    return {"decimal": decimal, "delimiter": delimiter}
