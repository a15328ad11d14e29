from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

from meshwarp.core.registry import list_transforms
from meshwarp.core.session import DeformSession
from meshwarp.logging_config import setup_logging
from meshwarp.ops.simplify import PreprocessSpec
from meshwarp.parallel.pool import WorkerPoolConfig

logger = logging.getLogger("meshwarp.cli")


def _coerce(raw: str) -> Any:
    low = raw.strip().lower()
    if low in ("true", "yes", "on"):
        return True
    if low in ("false", "no", "off"):
        return False
    for cast in (int, float):
        try:
            return cast(raw)
        except ValueError:
            pass
    return raw


def parse_param_args(items: Optional[List[str]]) -> Dict[str, Any]:
    """["angle=90", "axis=z"] -> {"angle": 90, "axis": "z"}"""
    out: Dict[str, Any] = {}
    for item in items or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Expected key=value, got '{item}'")
        out[key.strip()] = _coerce(value)
    return out


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="meshwarp", description="Deform a triangle mesh and write the result.")
    ap.add_argument("input", type=str, help="input mesh (STL/OBJ/PLY/VTU/...)")
    ap.add_argument("output", type=str, help="output mesh; .stl goes through the STL codec")
    ap.add_argument("--transform", "-t", type=str, default="noise", choices=list_transforms())
    ap.add_argument("--param", "-p", action="append", default=[], help="transform parameter key=value (repeatable)")
    ap.add_argument("--decimate", type=float, default=100.0, help="percent of vertices to keep")
    ap.add_argument("--merge-eps", type=float, default=0.0, help="vertex welding epsilon (0 = off)")
    ap.add_argument("--workers", type=int, default=None, help="worker count (0 = single-threaded)")
    ap.add_argument("--chunk-size", type=int, default=10_000)
    ap.add_argument("--executor", type=str, default="process", choices=["process", "thread"])
    ap.add_argument("--no-center", action="store_true", help="keep the input coordinates")
    ap.add_argument("--ascii", action="store_true", help="write ASCII STL")
    ap.add_argument("--log-level", type=str, default="INFO")
    ap.add_argument("--log-file", type=str, default=None)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    try:
        values = parse_param_args(args.param)
    except ValueError as e:
        logger.error("%s", e)
        return 2

    pool_cfg = WorkerPoolConfig(max_workers=args.workers, chunk_size=args.chunk_size, executor=args.executor)
    prep = PreprocessSpec(decimate=args.decimate, merge_epsilon=args.merge_eps)

    with DeformSession(pool_config=pool_cfg, preprocessing=prep) as session:
        session.load(args.input, center=not args.no_center)
        if values:
            session.set_params(args.transform, **values)
        session.generate(args.transform)
        session.export(args.transform, args.output, ascii=args.ascii)
        logger.info("%s", session.stats(args.transform).as_text())
    return 0


if __name__ == "__main__":
    sys.exit(main())
