from __future__ import annotations

from typing import Any, Dict, Iterable, List

from plate_app.engine.well_model import Curve, PlateSample, Well


def add_chart_style(curve: Curve, item: Well | PlateSample, *, selected_width: int = 3) -> Dict[str, Any]:
    """Chart payload for ``curve`` styled after the owning well or sample."""

    metadata = item.metadata or {}
    color = metadata.get("color") or "black"
    payload = curve.to_dict()
    payload.update(
        {
            "id": item.id,
            "label": item.label,
            "display": bool(metadata.get("display", True)),
            "styles": {
                "unselected": {"lineColor": color, "lineWidth": 1, "lineStyle": 1},
                "selected": {"lineColor": color, "lineWidth": selected_width, "lineStyle": 1},
            },
        }
    )
    return payload


def build_chart(entries: Iterable[tuple[Curve, Well | PlateSample]]) -> Dict[str, List[Dict[str, Any]]]:
    data = [add_chart_style(curve, item) for curve, item in entries if not curve.is_empty]
    return {"data": data}
