from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict

from storyquery.config_model.model import RootCfg
from storyquery.expression import UNDEFINED, ExpressionEngine


def _json_arg(raw: str | None, what: str) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise SystemExit(f"--{what}: not valid JSON ({e})")


def _jsonable(value: Any) -> Any:
    if value is UNDEFINED:
        return None
    return value


def _build_engine(config: str | None) -> ExpressionEngine:
    if config and Path(config).exists():
        return ExpressionEngine.from_config(RootCfg.from_toml(config))
    return ExpressionEngine()


def main() -> None:
    ap = argparse.ArgumentParser(description="Evaluate a trigger expression against text or a JSON record.")
    ap.add_argument("expression", help="Expression source, e.g. 'any(\"sword\", \"blade\") && none(\"peace\")'.")
    src = ap.add_mutually_exclusive_group()
    src.add_argument("--text", default=None, help="Text to evaluate against (text context).")
    src.add_argument("--text-file", default=None, help="Read the text from a file (text context).")
    src.add_argument("--record", default=None, help="JSON object to query (object context).")
    ap.add_argument("--state", default=None, help="JSON bound as `state`.")
    ap.add_argument("--info", default=None, help="JSON bound as `info`.")
    ap.add_argument("--config", default="config/config.toml", help="Path to config TOML (skipped if missing).")
    ap.add_argument("--check", action="store_true", help="Only validate; exit 1 when invalid.")
    args = ap.parse_args()

    engine = _build_engine(args.config)

    if args.check:
        context = "object" if args.record is not None else None
        err = engine.validate(args.expression, context)
        if err is not None:
            print(json.dumps({"valid": False, "error": err}))
            sys.exit(1)
        print(json.dumps({"valid": True}))
        return

    bindings: Dict[str, Any] = {}
    for name in ("state", "info"):
        val = _json_arg(getattr(args, name), name)
        if val is not None:
            bindings[name] = val
    engine.set_bindings(**bindings)

    if args.record is not None:
        result = engine.evaluate_object(args.expression, _json_arg(args.record, "record"))
    else:
        text = Path(args.text_file).read_text(encoding="utf-8") if args.text_file else (args.text or "")
        result = engine.evaluate_text(args.expression, text)

    print(json.dumps(_jsonable(result), default=str))


if __name__ == "__main__":
    main()
