"""Request-scoped state for one inbound request."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Set


def _hash_params(query_params: Dict[str, Any], form_params: Dict[str, Any]) -> str:
    """Hash the parameter bags deterministically."""
    payload = json.dumps(
        {"query": query_params, "form": form_params}, sort_keys=True, default=str
    )
    return hashlib.sha256(payload.encode()).hexdigest()[:16]


@dataclass
class RequestContext:
    """Owned by exactly one request; never shared with another."""

    query_params: Dict[str, Any] = field(default_factory=dict)
    form_params: Dict[str, Any] = field(default_factory=dict)
    terminated: bool = False
    termination_result: str | None = None
    current_dependencies: Set[str] = field(default_factory=set)

    @property
    def params_key(self) -> str:
        return _hash_params(self.query_params, self.form_params)

    def finish(self, result: Any = "") -> None:
        """Mark the request terminated. The first call wins."""
        if self.terminated:
            return
        self.terminated = True
        self.termination_result = "" if result is None else str(result)
