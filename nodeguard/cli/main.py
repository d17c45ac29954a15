from __future__ import annotations

import argparse
import importlib
import importlib.util
import json
import os
import sys
from pathlib import Path
from typing import Any, Callable, List

from nodeguard.core.detection.config import DETECT_ENV_VAR, DetectionConfig
from nodeguard.core.detection.detector import NodeMutationDetector, get_default_detector
from nodeguard.core.detection.sinks import RecordingSink
from nodeguard.utils.json_safe import to_jsonable


def _print_json(payload: Any) -> None:
    print(json.dumps(to_jsonable(payload), indent=2, sort_keys=True))


def _read_json(path: str) -> Any:
    """Read a JSON file."""

    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _load_nodes(path: str) -> List[Any]:
    data = _read_json(path)
    if isinstance(data, dict) and isinstance(data.get("nodes"), list):
        return list(data["nodes"])
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return [data]
    raise ValueError("nodes file must hold a node object, a list of nodes or {\"nodes\": [...]}")


def _load_transform(ref: str) -> Callable[[Any], Any]:
    """Resolve "package.module:function" or "path/to/file.py:function"."""

    module_ref, sep, attr = ref.rpartition(":")
    if not sep or not module_ref or not attr:
        raise ValueError(f"transform must look like module:function, got {ref!r}")

    if module_ref.endswith(".py") or os.sep in module_ref:
        path = Path(module_ref)
        mod_spec = importlib.util.spec_from_file_location(path.stem, path)
        if mod_spec is None or mod_spec.loader is None:
            raise ImportError(f"cannot load transform module from {path}")
        module = importlib.util.module_from_spec(mod_spec)
        mod_spec.loader.exec_module(module)
    else:
        module = importlib.import_module(module_ref)

    fn = getattr(module, attr, None)
    if not callable(fn):
        raise ValueError(f"{ref!r} does not name a callable")
    return fn


def cmd_status(_: argparse.Namespace) -> int:
    """Show how detection is configured for this process."""

    cfg = DetectionConfig.from_env()
    detector = get_default_detector()
    _print_json(
        {
            "env_var": DETECT_ENV_VAR,
            "config": {
                "detect_node_mutations": cfg.detect_node_mutations,
                "log_level": cfg.log_level,
                "max_recorded_reports": cfg.max_recorded_reports,
            },
            "enabled": detector.enabled,
        }
    )
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    """Run a transform against guarded nodes and list unauthorized writes.

    Exit codes: 0 clean, 1 violations found, 2 usage, load or transform errors.
    Every unique call site is listed once, even if it fired for many nodes.
    """

    try:
        nodes = _load_nodes(args.nodes)
        transform = _load_transform(args.transform)
    except (OSError, ValueError, ImportError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    sink = RecordingSink(maxlen=max(1, int(args.max_reports)))
    detector = NodeMutationDetector(enabled=True, sink=sink)

    for index, node in enumerate(nodes):
        try:
            transform(detector.wrap_node(node))
        except Exception as e:
            print(f"error: transform failed on node {index}: {type(e).__name__}: {e}", file=sys.stderr)
            return 2

    violations = sink.entries("error")
    out = {
        "nodes_checked": len(nodes),
        "violation_count": len(violations),
        "violations": [v.to_payload() for v in violations],
    }
    if args.show_nodes:
        out["nodes"] = nodes

    _print_json(out)
    return 1 if violations else 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the diagnostics API.

    Notes:
    - Binds to 127.0.0.1 by default; the API is a development aid.

    """

    try:
        import uvicorn
    except Exception as e:
        print(f"error: uvicorn is required to serve the API: {e}", file=sys.stderr)
        return 2

    try:
        from nodeguard.api.server import create_app
    except Exception as e:
        print(f"error: API server dependencies missing: {e}", file=sys.stderr)
        return 2

    detector = get_default_detector()
    if args.enable:
        detector.enable()

    app = create_app(detector=detector)
    uvicorn.run(app, host=args.host, port=int(args.port), log_level=args.log_level)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="nodeguard", description="Node mutation detection tools")
    sub = p.add_subparsers(dest="cmd", required=True)

    st = sub.add_parser("status", help="Show detection configuration")
    st.set_defaults(func=cmd_status)

    ck = sub.add_parser("check", help="Run a transform against guarded nodes")
    ck.add_argument("--nodes", required=True, help="JSON file with a node, a list of nodes or {\"nodes\": [...]}")
    ck.add_argument(
        "--transform",
        required=True,
        help="Callable taking one node, as package.module:function or path/to/file.py:function",
    )
    ck.add_argument("--max-reports", type=int, default=500, help="Maximum diagnostics to keep")
    ck.add_argument("--show-nodes", action="store_true", help="Include the nodes after the transform ran")
    ck.set_defaults(func=cmd_check)

    sv = sub.add_parser("serve", help="Run the diagnostics API")
    sv.add_argument("--host", default="127.0.0.1", help="Bind host (default: 127.0.0.1)")
    sv.add_argument("--port", type=int, default=8080, help="Bind port (default: 8080)")
    sv.add_argument("--enable", action="store_true", help="Enable detection before serving")
    sv.add_argument("--log-level", default="info", help="Uvicorn log level")
    sv.set_defaults(func=cmd_serve)

    return p


def main(argv: List[str] | None = None) -> int:
    """CLI entry."""
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
