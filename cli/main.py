"""
CLI for the log rotation engine.

Commands:
  run       Append stdin to <dir>/.current, rotating and purging as configured.
  rotate    Force one rotation of <dir>/.current, then exit.
  purge     Enforce retention limits on <dir>, then exit.
  status    Print a JSON status document for <dir>.
  serve     Run the HTTP ingest/status app on <dir>.

Options shared by every command (env AUTOSPLIT_* fills in the gaps):
  -d/--dir, -F/--max-files, -S/--max-space, -s/--soft-limit,
  -t/--rotate-after, -z/--compress

Exit codes: 0 ok, 1 error (config, fatal I/O), 3 purge could not reach the limits.

Usage:
  producer | autosplit run -d /var/log/records -s 1048576 -t 3600 -F 48 -z gzip
  python -m cli purge -d /var/log/records -S 1073741824
"""

from __future__ import annotations
import argparse
import json
import logging
import select
import sys
from typing import Any, BinaryIO, Callable, Dict, Optional

from app.config import Settings, load_settings
from app.logging_setup import configure_logging
from rotation import __version__
from rotation.engine import RotationEngine
from rotation.errors import FatalLogError

log = logging.getLogger("Rotation")

CHUNK_SIZE = 64 * 1024


def _settings(args: argparse.Namespace) -> Settings:
    return load_settings({
        "LOG_DIR": args.dir,
        "MAX_FILES": args.max_files,
        "MAX_SPACE": args.max_space,
        "SOFT_LIMIT": args.soft_limit,
        "ROTATE_AFTER": args.rotate_after,
        "COMPRESSION": args.compress,
    })


def _engine(args: argparse.Namespace) -> RotationEngine:
    settings = _settings(args)
    configure_logging(settings)
    return RotationEngine.from_settings(settings)


def _print_json(data: Dict[str, Any]) -> None:
    print(json.dumps(data, indent=2, sort_keys=True))


def _select_wait(stream: BinaryIO) -> Callable[[Optional[int]], bool]:
    def wait(timeout: Optional[int]) -> bool:
        ready, _, _ = select.select([stream], [], [], timeout)
        return bool(ready)
    return wait


def pump(
    engine: RotationEngine,
    stream: BinaryIO,
    wait_readable: Optional[Callable[[Optional[int]], bool]] = None,
    chunk_size: int = CHUNK_SIZE,
) -> int:
    """
    Copy `stream` into the engine until EOF. Returns bytes written.

    `wait_readable(timeout)` blocks until input is available (True) or the
    timeout expires (False); on timeout the schedule is checked, so
    time-based rotation happens even while the producer is idle.
    """
    read = getattr(stream, "read1", stream.read)
    total = 0
    while True:
        if wait_readable is not None:
            countdown = engine.seconds_until_next_rotation()
            if not wait_readable(countdown.seconds):
                engine.rotate_if_needed()
                continue
        chunk = read(chunk_size)
        if not chunk:
            break
        total += engine.write(chunk)
        engine.rotate_if_needed()
    return total


def cmd_run(args: argparse.Namespace) -> int:
    engine = _engine(args)
    stdin = sys.stdin.buffer
    try:
        engine.start()
        total = pump(engine, stdin, wait_readable=_select_wait(stdin))
    finally:
        engine.close()
    log.info(f"EOF after {total} bytes")
    return 0


def cmd_rotate(args: argparse.Namespace) -> int:
    engine = _engine(args)
    try:
        result = engine.rotate()
    finally:
        engine.close()
    _print_json(result.to_dict())
    return 0


def cmd_purge(args: argparse.Namespace) -> int:
    engine = _engine(args)
    report = engine.purge()
    _print_json(report.to_dict())
    return 0 if report.within_limits else 3


def cmd_status(args: argparse.Namespace) -> int:
    engine = _engine(args)
    _print_json(engine.status())
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    from app import create_app  # lazy: flask app only needed here

    settings = _settings(args)
    app = create_app({
        "LOG_DIR": settings.LOG_DIR,
        "MAX_FILES": settings.MAX_FILES,
        "MAX_SPACE": settings.MAX_SPACE,
        "SOFT_LIMIT": settings.SOFT_LIMIT,
        "ROTATE_AFTER": settings.ROTATE_AFTER if settings.ROTATE_AFTER is not None else "off",
        "COMPRESSION": settings.COMPRESSION,
    })
    # single process, threads serialized by the engine lock
    app.run(host=args.host, port=args.port, threaded=True, use_reloader=False)
    return 0


def _common_options() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(add_help=False)
    p.add_argument("-d", "--dir", default=None, help="Log directory (env AUTOSPLIT_DIR)")
    p.add_argument("-F", "--max-files", type=int, default=None, help="Max archive files, 0 = unlimited")
    p.add_argument("-S", "--max-space", type=int, default=None, help="Max archive bytes, 0 = unlimited")
    p.add_argument("-s", "--soft-limit", type=int, default=None, help="Rotate once .current reaches this many bytes")
    p.add_argument("-t", "--rotate-after", default=None, help="Rotate every N seconds (off = disabled)")
    p.add_argument("-z", "--compress", default=None, help="Compression method: none | gzip")
    return p


def build_parser() -> argparse.ArgumentParser:
    common = _common_options()
    p = argparse.ArgumentParser(
        prog="autosplit",
        description="Split an append-only record stream into rotated, retained files",
    )
    p.add_argument("-V", "--version", action="version", version=f"msgpack-autosplit {__version__}")
    sub = p.add_subparsers(dest="command", required=True)

    sp = sub.add_parser("run", parents=[common], help="Append stdin to the current file")
    sp.set_defaults(func=cmd_run)

    sp = sub.add_parser("rotate", parents=[common], help="Force one rotation")
    sp.set_defaults(func=cmd_rotate)

    sp = sub.add_parser("purge", parents=[common], help="Enforce retention limits")
    sp.set_defaults(func=cmd_purge)

    sp = sub.add_parser("status", parents=[common], help="Print JSON status")
    sp.set_defaults(func=cmd_status)

    sp = sub.add_parser("serve", parents=[common], help="Run the HTTP ingest/status app")
    sp.add_argument("--host", default="127.0.0.1")
    sp.add_argument("--port", type=int, default=10000)
    sp.set_defaults(func=cmd_serve)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except KeyboardInterrupt:
        return 130
    except FatalLogError as e:
        print(f"FATAL: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
