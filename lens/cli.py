#!/usr/bin/env python3
"""
SessionLens CLI - inspect detector output for recorded sessions

Usage:
    python -m lens.cli detectors                         # List registered detectors
    python -m lens.cli analyze sessions.jsonl            # Run every detector
    python -m lens.cli analyze s.json --detector stagnation --json
    python -m lens.cli phases sessions.yaml              # Show consolidated phases
    python -m lens.cli trend sessions.json               # Show the struggle trend
    python -m lens.cli tuneables --section simple_loops  # Resolved thresholds
"""

import argparse
import json
import sys

from sessionlens.config_authority import resolve_section
from sessionlens.diagnostics import configure_logging
from sessionlens.pattern_detection import (
    DETECTORS,
    analyze_sessions,
    analyze_struggle_trend,
    detect_session_phases,
    run_detector,
)
from sessionlens.pattern_detection.thresholds import ENV_OVERRIDES
from sessionlens.session_io import load_sessions
from sessionlens.tuneables_schema import SCHEMA, generate_reference_doc

EXIT_OK = 0
EXIT_BAD_INPUT = 1
EXIT_UNKNOWN_DETECTOR = 2


def _configure_output():
    """Ensure UTF-8 output on Windows terminals to avoid UnicodeEncodeError."""
    for stream in (sys.stdout, sys.stderr):
        if not hasattr(stream, "reconfigure"):
            continue
        try:
            stream.reconfigure(encoding="utf-8", errors="replace")
        except (ValueError, OSError):
            # Captured or detached streams keep their own encoding.
            continue


def _load(path):
    try:
        return load_sessions(path)
    except (FileNotFoundError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return None


def _dump(payload):
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def cmd_detectors(args):
    """List registered detectors."""
    print(f"{'name':<28} {'min ops':>7}  {'phases':<6}  category")
    for spec in DETECTORS:
        print(f"{spec.name:<28} {spec.min_operations:>7}  {'yes' if spec.phase_aware else 'no':<6}  {spec.category}")
    return EXIT_OK


def cmd_analyze(args):
    """Run all detectors, or one named detector, per session."""
    if args.detector:
        known = {spec.name for spec in DETECTORS}
        if args.detector not in known:
            print(f"error: unknown detector '{args.detector}'", file=sys.stderr)
            print(f"known detectors: {', '.join(sorted(known))}", file=sys.stderr)
            return EXIT_UNKNOWN_DETECTOR

    sessions = _load(args.path)
    if sessions is None:
        return EXIT_BAD_INPUT

    if args.detector:
        runs = [run_detector(args.detector, session) for session in sessions]
        if args.json:
            _dump([dict(run.to_dict(), session_id=s.session_id) for run, s in zip(runs, sessions)])
            return EXIT_OK
        for session, run in zip(sessions, runs):
            print(f"{session.session_id or '(no id)'}: {len(run.patterns)} pattern(s) in {run.duration_ms:.2f}ms")
            for pattern in run.patterns:
                print(f"   - {json.dumps(pattern.to_dict(), ensure_ascii=False)}")
        return EXIT_OK

    analyses = analyze_sessions(sessions)
    if args.json:
        _dump([analysis.to_dict() for analysis in analyses])
        return EXIT_OK
    for analysis in analyses:
        print(f"\n{analysis.session_id or '(no id)'}: {analysis.pattern_count} pattern(s), {len(analysis.phases)} phase(s)")
        for name, found in analysis.patterns.items():
            if found:
                print(f"   {name}: {len(found)}")
        if analysis.trend is not None:
            print(f"   trend: {analysis.trend.trend}")
    return EXIT_OK


def cmd_phases(args):
    """Show the consolidated phases of each session."""
    sessions = _load(args.path)
    if sessions is None:
        return EXIT_BAD_INPUT
    for session in sessions:
        print(f"\n{session.session_id or '(no id)'} ({len(session)} operations)")
        for phase in detect_session_phases(session):
            print(
                f"   [{phase.start_index:>4}-{phase.end_index:>4}] "
                f"{phase.type.value:<15} confidence={phase.confidence:.2f}"
            )
    return EXIT_OK


def cmd_trend(args):
    """Show the struggle trend of each session."""
    sessions = _load(args.path)
    if sessions is None:
        return EXIT_BAD_INPUT
    for session in sessions:
        report = analyze_struggle_trend(session)
        label = session.session_id or "(no id)"
        if report is None:
            print(f"{label}: not enough operations for a trend ({len(session)})")
            continue
        print(f"{label}: {report.trend} over {len(report.chunks)} chunk(s)")
        for chunk in report.chunks:
            print(
                f"   chunk {chunk.chunk_index}: score={chunk.struggle_score:.2f} "
                f"errors={chunk.error_rate:.0%} switches={chunk.switch_rate:.0%} tools={chunk.tool_variety}"
            )
    return EXIT_OK


def cmd_tuneables(args):
    """Show resolved thresholds and where each value came from."""
    if args.reference:
        print(generate_reference_doc())
        return EXIT_OK
    if args.section and args.section not in SCHEMA:
        print(f"error: unknown section '{args.section}'", file=sys.stderr)
        return EXIT_BAD_INPUT
    sections = [args.section] if args.section else list(SCHEMA)
    for name in sections:
        resolved = resolve_section(name, env_overrides=ENV_OVERRIDES.get(name))
        print(f"\n[{name}]")
        for key, value in resolved.data.items():
            print(f"   {key} = {value!r}  ({resolved.sources.get(key, 'schema')})")
        for warning in resolved.warnings:
            print(f"   ! {warning}")
    return EXIT_OK


def build_parser():
    parser = argparse.ArgumentParser(
        description="SessionLens CLI - behavioral pattern detection for coding sessions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  detectors   List registered detectors
  analyze     Run detectors against a session file
  phases      Show consolidated session phases
  trend       Show the struggle trend of long sessions
  tuneables   Show resolved thresholds with their sources

Examples:
  sessionlens analyze sessions.jsonl
  sessionlens analyze session.json --detector simple_loops --json
  sessionlens tuneables --section long_sessions
"""
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # detectors
    subparsers.add_parser("detectors", help="List registered detectors")

    # analyze
    analyze_parser = subparsers.add_parser("analyze", help="Run detectors against a session file")
    analyze_parser.add_argument("path", help="Session file (.json, .jsonl, .yaml)")
    analyze_parser.add_argument("--detector", "-d", default=None, help="Run only this detector")
    analyze_parser.add_argument("--json", action="store_true", help="Print full JSON output")

    # phases
    phases_parser = subparsers.add_parser("phases", help="Show consolidated session phases")
    phases_parser.add_argument("path", help="Session file (.json, .jsonl, .yaml)")

    # trend
    trend_parser = subparsers.add_parser("trend", help="Show the struggle trend")
    trend_parser.add_argument("path", help="Session file (.json, .jsonl, .yaml)")

    # tuneables
    tuneables_parser = subparsers.add_parser("tuneables", help="Show resolved thresholds")
    tuneables_parser.add_argument("--section", "-s", default=None, help="Only this section")
    tuneables_parser.add_argument("--reference", action="store_true", help="Print the markdown reference of every key")

    return parser


def main(argv=None):
    _configure_output()
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose)

    commands = {
        "detectors": cmd_detectors,
        "analyze": cmd_analyze,
        "phases": cmd_phases,
        "trend": cmd_trend,
        "tuneables": cmd_tuneables,
    }

    if args.command in commands:
        return commands[args.command](args)
    parser.print_help()
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
