#!/usr/bin/env python3
"""
agbench: benchmark local LLM backends with command-line coding agents

Commands:
  agbench run CONFIG          # run every (model, task) pair, write results + REPORT.md
  agbench report RESULTS_DIR  # rebuild REPORT.md from results.jsonl
  agbench show RESULTS_DIR    # print the result set as a table
"""
from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path

from rich.console import Console
from rich.text import Text

from agbench.core.configuration import ConfigurationLoader
from agbench.core.errors import AgbenchError, ConfigurationError
from agbench.core.orchestrator import HarnessOrchestrator
from agbench.core.report import build_table, format_entry, summarize, write_report
from agbench.core.results import ResultAccumulator
from agbench.utils.logging_config import setup_logging

EXIT_CONFIG_ERROR = 2

logger = logging.getLogger("agbench")


def _install_cancel_handlers(cancel: threading.Event) -> dict:
    def handler(signum, frame):
        if cancel.is_set():
            return
        cancel.set()
        print(f"\nagbench: received signal {signum}, stopping after teardown...", file=sys.stderr)

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, handler)
    return previous


def _restore_handlers(previous: dict) -> None:
    for sig, h in previous.items():
        signal.signal(sig, h)


def cmd_run(args: argparse.Namespace) -> int:
    console = Console()
    try:
        config = ConfigurationLoader(Path(args.config)).load_configuration()
    except ConfigurationError as e:
        console.print(Text(f"Configuration error: {e}", style="bold red"))
        return EXIT_CONFIG_ERROR
    if args.output_dir:
        config.run.output_dir = Path(args.output_dir).resolve()

    setup_logging(config.run.output_dir, level=args.log_level, console_level=args.console_level)
    cancel = threading.Event()
    try:
        orch = HarnessOrchestrator(
            config,
            on_event=lambda entry: console.print(format_entry(entry)),
            cancel=cancel,
        )
        if args.dry_run:
            for model, task, argv in orch.plan():
                console.print(Text(f"{model} / {task}: ", style="bold"), " ".join(argv))
            return 0

        console.print(Text(
            f"agbench run '{config.run.name}': {len(config.models)} model(s) x {len(config.tasks)} task(s)"
            f" -> {config.run.output_dir}",
            style="bold cyan",
        ))
        previous = _install_cancel_handlers(cancel)
        try:
            rc = orch.run()
        finally:
            _restore_handlers(previous)
    except AgbenchError as e:
        logger.error(f"Run aborted: {e}")
        console.print(Text(f"Run aborted: {e}", style="bold red"))
        return EXIT_CONFIG_ERROR

    if args.report:
        report = write_report(config.run.output_dir)
        console.print(Text(f"Report: {report}", style="dim"))
    _print_summary(console, orch.results)
    return rc


def cmd_report(args: argparse.Namespace) -> int:
    results_dir = Path(args.results_dir).resolve()
    setup_logging(results_dir, level="INFO")
    try:
        out = write_report(results_dir, Path(args.out).resolve() if args.out else None)
    except AgbenchError as e:
        print(f"agbench report: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    print(f"agbench report: wrote {out}")
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    console = Console()
    try:
        results = ResultAccumulator.load(Path(args.results_dir))
    except AgbenchError as e:
        console.print(Text(str(e), style="bold red"))
        return EXIT_CONFIG_ERROR
    if not len(results):
        console.print(Text("(no results recorded)", style="dim"))
        return 0
    console.print(build_table(results))
    _print_summary(console, results)
    return 0


def _print_summary(console: Console, results: ResultAccumulator) -> None:
    s = summarize(results)
    skipped = len(results.skips())
    line = f"{s.total_passed}/{s.total_records} passed"
    if skipped:
        line += f", {skipped} model(s) skipped"
    if s.fastest:
        line += f"; fastest {s.fastest}"
    if s.most_reliable:
        line += f"; most reliable {s.most_reliable}"
    console.print(Text(line, style="bold green" if results.all_passed else "bold yellow"))


def main(argv=None):
    parser = argparse.ArgumentParser(prog="agbench", description="Benchmark local LLM backends with coding agents")
    sub = parser.add_subparsers(dest="cmd")

    p_run = sub.add_parser("run", help="Run the benchmark described by a YAML config")
    p_run.add_argument("config", help="Path to benchmark YAML config")
    p_run.add_argument("--output-dir", help="Override run.output_dir from the config")
    p_run.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], default="INFO")
    p_run.add_argument("--console-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], default="WARNING",
                       help="Log level echoed to the terminal (default: WARNING)")
    p_run.add_argument("--dry-run", default=False, action="store_true", help="Print agent commands and exit")
    p_run.add_argument("--no-report", dest="report", action="store_false", default=True,
                       help="Do not write REPORT.md after the run")
    p_run.set_defaults(func=cmd_run)

    p_report = sub.add_parser("report", help="Write REPORT.md from a results directory")
    p_report.add_argument("results_dir", help="Directory containing results.jsonl")
    p_report.add_argument("--out", help="Report path (default: RESULTS_DIR/REPORT.md)")
    p_report.set_defaults(func=cmd_report)

    p_show = sub.add_parser("show", help="Print recorded attempts and skips")
    p_show.add_argument("results_dir", help="Directory containing results.jsonl")
    p_show.set_defaults(func=cmd_show)

    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 1
    return int(args.func(args))


if __name__ == "__main__":
    sys.exit(main())
