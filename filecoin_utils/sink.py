from __future__ import annotations

import json
import os
import sys
from typing import Any, Optional, TextIO


def _payload(report: Any) -> Any:
    if hasattr(report, "to_json"):
        return report.to_json()
    if isinstance(report, (list, tuple)):
        return [_payload(r) for r in report]
    return report


def render_json(report: Any) -> str:
    return json.dumps(_payload(report), indent=2, sort_keys=True, ensure_ascii=False)


def write_json_atomic(path: str, data: Any) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    tmp = f"{path}.tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        f.write(render_json(data))
        f.write("\n")
    os.replace(tmp, path)


class JsonSink:
    """Renders reports as indented JSON to a stream (default stdout) or a file."""

    def __init__(self, path: Optional[str] = None, stream: Optional[TextIO] = None):
        self.path = path
        self.stream = stream

    def emit(self, report: Any) -> None:
        if self.path and self.path != "-":
            write_json_atomic(self.path, report)
            return
        out = self.stream or sys.stdout
        out.write(render_json(report) + "\n")
        out.flush()
