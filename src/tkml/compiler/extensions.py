"""Sandbox environment and capability set for TKML scripts.

Scripts only see what is bound here: the utility allow-list installed as
environment globals, plus the per-render primitives handed in by the
renderer (parameters, include, finish, export).

Names are strict: reading an unbound name or a missing key fails the
script. Test optional values with ``is defined`` or ``queryParams.get(...)``.

Bindings exported by an included document are read through the
``exports`` mapping::

    <?= include('meta.tkml') ?><title><?= exports.title ?></title>

A companion script's top-level ``set`` bindings are also bound as bare
names in its document, since they exist before the document starts.
"""

from __future__ import annotations

import json
import logging
import math
from datetime import date, datetime, timedelta
from types import MappingProxyType, SimpleNamespace
from typing import Any, Awaitable, Callable, Dict, Mapping

import yaml
from jinja2 import StrictUndefined
from jinja2.sandbox import SandboxedEnvironment, safe_range
from jinja2.utils import Namespace

script_log = logging.getLogger("tkml.script")


def _math_namespace() -> SimpleNamespace:
    return SimpleNamespace(
        **{name: getattr(math, name) for name in dir(math) if not name.startswith("_")}
    )


def _yaml_load(text: str) -> Any:
    return yaml.safe_load(text)


def _yaml_dump(data: Any) -> str:
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False)


UTILITIES: Dict[str, Any] = {
    # date/time
    "datetime": datetime,
    "date": date,
    "timedelta": timedelta,
    # math
    "math": _math_namespace(),
    "abs": abs,
    "round": round,
    "min": min,
    "max": max,
    "sum": sum,
    # structured data
    "json": SimpleNamespace(loads=json.loads, dumps=json.dumps),
    "yaml": SimpleNamespace(load=_yaml_load, dump=_yaml_dump),
    # basic collections
    "len": len,
    "range": safe_range,
    "list": list,
    "dict": dict,
    "set": set,
    "tuple": tuple,
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "sorted": sorted,
    "enumerate": enumerate,
    "zip": zip,
    "namespace": Namespace,
    # script-side logging
    "log": SimpleNamespace(
        debug=script_log.debug,
        info=script_log.info,
        warning=script_log.warning,
        error=script_log.error,
    ),
}


def get_sandbox_env(enable_async: bool = True) -> SandboxedEnvironment:
    """Create a sandboxed Jinja2 Environment holding only the allow-list.

    The async flavour runs synthesized programs and call expressions
    (``include`` is a coroutine and gets awaited automatically); the sync
    flavour evaluates plain expressions.
    """
    env = SandboxedEnvironment(
        enable_async=enable_async,
        extensions=["jinja2.ext.do", "jinja2.ext.loopcontrols"],
        autoescape=False,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )
    env.globals.clear()
    env.globals.update(UTILITIES)
    return env


def build_capabilities(
    query_params: Mapping[str, Any],
    form_params: Mapping[str, Any],
    include: Callable[[str], Awaitable[str]],
    finish: Callable[[Any], str],
    export: Callable[[str, Any], str],
    exports: Mapping[str, Any],
) -> Dict[str, Any]:
    """Build the per-render primitives bound next to the utility globals.

    Parameter bags and exported bindings are exposed read-only; the
    ``exports`` view is live, so bindings exported by an include become
    visible to the includer's remaining segments.
    """
    return {
        "queryParams": MappingProxyType(dict(query_params)),
        "formParams": MappingProxyType(dict(form_params)),
        "include": include,
        "finish": finish,
        "export": export,
        "exports": MappingProxyType(exports),  # type: ignore[arg-type]
    }
