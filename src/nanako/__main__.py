#!/usr/bin/env python3
"""
CLI for the Nanako interpreter and translator.

Usage:
    python -m nanako run FILE.nanako [--data FILE.json|FILE.csv ...] [--timeout SECONDS]
    python -m nanako emit FILE.nanako [--to js|py] [--indent TEXT]
    python -m nanako check FILE.nanako

Examples:
    # Run a program; bare expressions are echoed and the final variables
    # are printed as JSON
    python -m nanako run examples/gcd.nanako

    # Seed the environment from data files
    python -m nanako run sum.nanako --data scores.csv --data params.json

    # Translate to the JS-like dialect
    python -m nanako emit examples/gcd.nanako --to js
"""

import argparse
import csv
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import config

logger = logging.getLogger(__name__)


def parse_cell(cell: str) -> Any:
    """CSV cells that look like integers become integers."""
    text = cell.strip()
    try:
        return int(text)
    except ValueError:
        return text


def load_data(path: Path) -> Dict[str, Any]:
    """
    Load bindings for the initial environment.

    A JSON file must hold an object whose keys become variable names. A CSV
    file becomes one variable named after the file stem, holding the rows
    as lists.
    """
    suffix = path.suffix.lower()
    if suffix == ".json":
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{path}: JSON data must be an object of name/value pairs")
        return data
    if suffix == ".csv":
        with path.open(encoding="utf-8", newline="") as f:
            rows = [[parse_cell(cell) for cell in row] for row in csv.reader(f) if row]
        return {path.stem: rows}
    raise ValueError(f"{path}: unsupported data format '{suffix}' (use .json or .csv)")


def read_source(file: str) -> Optional[str]:
    source_path = Path(file)
    if not source_path.exists():
        print(f"Error: File not found: {source_path}", file=sys.stderr)
        return None
    return source_path.read_text(encoding="utf-8")


def cmd_check(args):
    """Check a Nanako file for syntax errors."""
    from .parser import Parser

    source = read_source(args.file)
    if source is None:
        return 1

    parser = Parser(source, filename=args.file, recover=True)
    program = parser.parse_program()

    if parser.diagnostics.has_errors:
        print(parser.diagnostics.format_all())
        return 1

    print(f"OK: {Path(args.file).name} - {len(program.statements)} statement(s), no errors")
    return 0


def cmd_run(args):
    """Run a Nanako program."""
    from .errors import NanakoError
    from .parser import Parser
    from .runtime import Runtime, execute, unwrap_environment

    source = read_source(args.file)
    if source is None:
        return 1

    env: Dict[str, Any] = {}
    for data_file in args.data or []:
        try:
            env.update(load_data(Path(data_file)))
        except (OSError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    timeout = config.get_default_timeout() if args.timeout is None else args.timeout
    runtime = Runtime()

    try:
        parser = Parser(source, filename=args.file, recover=args.recover)
        program = parser.parse_program()
        if parser.diagnostics.has_errors:
            print(parser.diagnostics.format_all(), file=sys.stderr)
        env = execute(program, env, timeout=timeout, runtime=runtime)
    except NanakoError as e:
        print(str(e), file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logger.info("counters: %s", runtime.snapshot())
    print(json.dumps(unwrap_environment(env), ensure_ascii=False, indent=2))
    return 0


def cmd_emit(args):
    """Translate a Nanako program to another dialect."""
    from .emitter import emit
    from .errors import ParserError
    from .parser import parse

    source = read_source(args.file)
    if source is None:
        return 1

    try:
        program = parse(source, filename=args.file)
    except ParserError as e:
        print(str(e), file=sys.stderr)
        return 1

    print(emit(program, args.to or config.get_default_dialect(), indent=args.indent))
    return 0


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        prog='python -m nanako',
        description='Nanako interpreter and translator',
    )
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='action', required=True)

    # check command
    check_parser = subparsers.add_parser('check', help='Check a Nanako file for errors')
    check_parser.add_argument('file', help='Nanako source file')

    # run command
    run_parser = subparsers.add_parser('run', help='Run a Nanako program')
    run_parser.add_argument('file', help='Nanako source file')
    run_parser.add_argument('-d', '--data', action='append', metavar='FILE',
                            help='JSON or CSV file with initial variables (can be repeated)')
    run_parser.add_argument('-t', '--timeout', type=float, metavar='SECONDS',
                            help='Execution budget (default: $NANAKO_TIMEOUT or 30)')
    run_parser.add_argument('--recover', action='store_true',
                            help='Skip malformed statements instead of stopping')

    # emit command
    emit_parser = subparsers.add_parser('emit', help='Translate to another dialect')
    emit_parser.add_argument('file', help='Nanako source file')
    emit_parser.add_argument('--to', choices=['js', 'py'],
                             help='Output dialect (default: $NANAKO_EMIT_DIALECT or py)')
    emit_parser.add_argument('--indent', default='', help='Prefix for every output line')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.get_log_level(),
        format='%(levelname)s %(name)s: %(message)s',
    )

    if args.action == 'check':
        return cmd_check(args)
    elif args.action == 'run':
        return cmd_run(args)
    elif args.action == 'emit':
        return cmd_emit(args)
    else:
        parser.print_help()
        return 1


if __name__ == '__main__':
    sys.exit(main())
