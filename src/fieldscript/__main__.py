#!/usr/bin/env python3
"""
CLI for fieldscript.

Usage:
    python -m fieldscript run FILE [-o DIR] [-f] [--http ADDR] [--no-http]
                                   [--keep-open] [-s] [--gpu N] [--config FILE] [--vet]
    python -m fieldscript check FILE [FILE ...]
    python -m fieldscript api [--json]

Examples:
    # Check a script for errors without running it
    python -m fieldscript check examples/vortex.fs

    # Run a script, writing output to examples/vortex.out/, with the
    # command server on port 35367
    python -m fieldscript run examples/vortex.fs

    # Run and stay open for injected commands, overwriting old output
    python -m fieldscript run examples/vortex.fs -f --keep-open --http 127.0.0.1:8080

    # Inject a command into the running script
    curl -X POST localhost:35367/api/command \\
        -d '{"kind": "run_statement", "text": "m = uniform(0, 0, 1)"}'

Exit status is 0 when the script completes or an operator stops it, and 1
on compile errors, runtime failures and usage errors.
"""

import argparse
import logging
import os
import shutil
import sys
import time
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger("fieldscript")


def configure_logging(level: str, silent: bool = False) -> None:
    """Route log records to stderr; -s keeps only warnings and errors."""
    logging.basicConfig(
        format="%(message)s",
        level=logging.WARNING if silent else getattr(logging, level),
        stream=sys.stderr,
        force=True,
    )


def default_output_dir(script: str) -> str:
    """`dir/name.fs` -> `dir/name.out`."""
    return os.path.splitext(script)[0] + ".out"


def prepare_output_dir(path: str, force: bool) -> None:
    """
    Create the output directory.

    Raises:
        FileExistsError: if it exists, is not empty and force is not set
    """
    out = Path(path)
    if out.exists() and not out.is_dir():
        raise FileExistsError(f"output path exists and is not a directory: {out}")
    if out.is_dir() and any(out.iterdir()):
        if not force:
            raise FileExistsError(
                f"output directory {out} is not empty (use -f to clean it)"
            )
        for child in out.iterdir():
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
            else:
                child.unlink()
    out.mkdir(parents=True, exist_ok=True)


def _read_source(filename: str) -> Optional[str]:
    source_path = Path(filename)
    if not source_path.exists():
        print(f"Error: File not found: {source_path}", file=sys.stderr)
        return None
    return source_path.read_text()


def check_files(filenames: List[str]) -> int:
    """Compile each script and report errors per file; 1 if any file fails."""
    from .engine.world import build_world
    from .script.compiler import check_script

    registry = build_world()
    failed = 0
    for filename in filenames:
        source = _read_source(filename)
        if source is None:
            failed += 1
            continue
        result = check_script(source, registry, filename=filename)
        if result.has_errors:
            print(result.diagnostics.format_all(), file=sys.stderr)
            failed += 1
            continue
        print(f"OK: {Path(filename).name} - {result.statement_count} statement(s), no errors")

    if failed and len(filenames) > 1:
        print(f"{failed} of {len(filenames)} file(s) have errors", file=sys.stderr)
    return 1 if failed else 0


def cmd_check(args) -> int:
    """Compile scripts and report errors without running anything."""
    return check_files(args.files)


def cmd_api(args) -> int:
    """Print the registry of built-in identifiers."""
    from .engine.world import build_world
    from .script.introspection import format_api, get_api_as_json

    registry = build_world()
    print(get_api_as_json(registry) if args.json else format_api(registry))
    return 0


def cmd_run(args) -> int:
    """Compile a script, then run it while serving the command channel."""
    from .engine.world import build_world
    from .script.compiler import check_script
    from .script.runtime import CommandChannel, InteractiveExecutor, Mode, create_context
    from .settings import load_settings

    try:
        settings = load_settings(
            args.config,
            http=args.http,
            serve=False if args.no_http else None,
            keep_open=True if args.keep_open else None,
            gpu=args.gpu,
            silent=True if args.silent else None,
        )
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    configure_logging(settings.log_level, settings.silent)

    if args.vet:
        return check_files([args.file])

    source = _read_source(args.file)
    if source is None:
        return 1

    # The whole script compiles before anything else happens
    registry = build_world()
    result = check_script(source, registry, filename=args.file, max_errors=settings.max_errors)
    if result.has_errors:
        print(result.diagnostics.format_all(), file=sys.stderr)
        return 1

    output_dir = args.output or default_output_dir(args.file)
    try:
        prepare_output_dir(output_dir, args.force)
    except FileExistsError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    ctx = create_context(gpu=settings.gpu, output_dir=output_dir, echo=print)
    executor = InteractiveExecutor(result.statements, ctx, keep_open=settings.keep_open)
    channel = CommandChannel(executor, registry)

    server = None
    if settings.serve:
        from .server.app import CommandServer, create_app
        try:
            server = CommandServer(create_app(channel, registry), settings.http)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        server.start()

    start = time.monotonic()
    try:
        # The calling thread becomes the device owner for the rest of the run
        snapshot = executor.run()
    finally:
        if server is not None:
            server.stop()
        logger.info("walltime: %.3fs", time.monotonic() - start)

    if snapshot.mode == Mode.FAILED:
        print(executor.error, file=sys.stderr)
        return 1
    if snapshot.stopped:
        logger.info("stopped by operator")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='python -m fieldscript',
        description='fieldscript compiler and interactive runner',
    )

    subparsers = parser.add_subparsers(dest='action', required=True)

    # check command
    check_parser = subparsers.add_parser('check', help='Check scripts for errors')
    check_parser.add_argument('files', nargs='+', metavar='file', help='Script source files')

    # api command
    api_parser = subparsers.add_parser('api', help='List built-in identifiers')
    api_parser.add_argument('--json', action='store_true', help='Print as JSON')

    # run command
    run_parser = subparsers.add_parser('run', help='Run a script')
    run_parser.add_argument('file', help='Script source file')
    run_parser.add_argument('-o', '--output', metavar='DIR',
                            help='Output directory (default: FILE without extension + .out)')
    run_parser.add_argument('-f', '--force', action='store_true',
                            help='Clean an existing output directory')
    run_parser.add_argument('--http', metavar='ADDR',
                            help='Address of the command server (default :35367)')
    run_parser.add_argument('--no-http', action='store_true',
                            help='Do not start the command server')
    run_parser.add_argument('--keep-open', action='store_true',
                            help='Wait for injected commands after the script ends')
    run_parser.add_argument('-s', '--silent', action='store_true',
                            help="Don't generate any log info")
    run_parser.add_argument('--gpu', type=int, metavar='N', help='Device index')
    run_parser.add_argument('--config', metavar='FILE', help='Settings file (YAML)')
    run_parser.add_argument('--vet', action='store_true',
                            help="Check the script for errors, but don't run it")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return 0 if e.code in (0, None) else 1

    if args.action == 'check':
        return cmd_check(args)
    elif args.action == 'api':
        return cmd_api(args)
    elif args.action == 'run':
        return cmd_run(args)
    else:
        parser.print_help()
        return 1


if __name__ == '__main__':
    sys.exit(main())
