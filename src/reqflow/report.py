"""Formatting helpers for presenting resolution results."""
from __future__ import annotations

import json
from dataclasses import asdict
from typing import List, Sequence

from .bumper import BumpUpdate
from .resolver import Resolution


def _format_resolution(resolution: Resolution) -> str:
    extras: List[str] = []
    if resolution.version:
        extras.append(f"selected {resolution.version}")
    if resolution.repository:
        extras.append(f"from {resolution.repository}")
    if resolution.virtual:
        extras.append("virtual")
    meta = f" ({', '.join(extras)})" if extras else ""
    return f"  - {resolution.name} {resolution.constraint}{meta}"


def _format_updates(updates: Sequence[BumpUpdate]) -> List[str]:
    lines: List[str] = []
    for section in sorted({update.section for update in updates}):
        lines.append(f"{section}:")
        for update in updates:
            if update.section == section:
                lines.append(f"  - {update.name}: {update.previous} -> {update.constraint}")
    return lines


def generate_text(resolutions: Sequence[Resolution] = (), updates: Sequence[BumpUpdate] = ()) -> str:
    lines: List[str] = []
    if resolutions:
        lines.append("Resolved requirements:")
        lines.extend(_format_resolution(resolution) for resolution in resolutions)
    if updates:
        if lines:
            lines.append("")
        lines.append(f"{len(updates)} constraint(s) bumped:")
        lines.extend(_format_updates(updates))
    if not lines:
        lines.append("Nothing to do.")
    return "\n".join(lines)


def generate_json(resolutions: Sequence[Resolution] = (), updates: Sequence[BumpUpdate] = ()) -> str:
    payload = {
        "require": {resolution.name: resolution.constraint for resolution in resolutions},
        "resolutions": [asdict(resolution) for resolution in resolutions],
        "updates": [asdict(update) for update in updates],
    }
    return json.dumps(payload, indent=2)
