"""
Visitor Insight CLI - Command line interface for the Visitor Insight engine

Copyright (c) 2025 Brent Lefebure / EhkoLabs

Usage:
    python insight_cli.py summary <events> [--fast]          - Show the data digest sent to models
    python insight_cli.py analyze <events> "<question>"      - Answer a question about events
    python insight_cli.py analyze <events> "<q>" --json      - Same, as JSON
    python insight_cli.py followups "<answer>" [--deeper]    - Suggest follow-up questions
    python insight_cli.py insight <events>                   - Overview headline insight
    python insight_cli.py status [--probe]                   - Show active answer backend
    python insight_cli.py fetch [--limit N] [--out file]     - Fetch events from the Fingerprint API

<events> is a dashboard CSV export or a JSON file holding a list of events
(or an object with an "events" list).
"""

import sys
import json
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from ingestion import FingerprintClient, load_events_csv

from insight_engine import (
    AnalysisOrchestrator,
    FollowUpGenerator,
    InsightConfig,
    InsightError,
    OverviewInsightGenerator,
    ProviderGateway,
    StatusReporter,
    SummaryMode,
    compute_summary,
    load_env_file,
    parse_events,
    summarize,
)


def _gateway() -> ProviderGateway:
    load_env_file(Path(__file__).parent / ".env")
    return ProviderGateway(InsightConfig.from_env())


def load_events(path: str):
    """Read events from a CSV export or a JSON file."""
    file_path = Path(path)
    if file_path.suffix.lower() == ".csv":
        return load_events_csv(file_path)

    with open(file_path, "r", encoding="utf-8") as f:
        payload = json.load(f)

    if isinstance(payload, list):
        payload = {"events": payload}
    return parse_events(payload)


def _option(name: str, default=None):
    if name in sys.argv:
        idx = sys.argv.index(name)
        if idx + 1 < len(sys.argv):
            return sys.argv[idx + 1]
    return default


# =============================================================================
# COMMANDS
# =============================================================================

def cmd_summary(path: str, fast: bool = False):
    """Show aggregates and the digest a model would see."""
    events = load_events(path)
    summary = compute_summary(events)

    print(f"\nEvents: {path}")
    print("-" * 50)
    print(f"Total events:     {summary.total_events}")
    print(f"Unique visitors:  {summary.unique_visitors}")
    print(f"Unique IPs:       {summary.unique_ips}")
    print(f"Countries:        {summary.unique_countries}")
    print(f"VPN / Bot / Clean: {summary.security.vpn} / {summary.security.bot} / {summary.security.clean}")
    print(f"Avg confidence:   {summary.confidence.average:.2f}")

    mode = SummaryMode.FAST if fast else SummaryMode.FULL
    print(f"\nDigest ({mode.value}):")
    print(summarize(events, mode))


def cmd_analyze(path: str, question: str, as_json: bool = False):
    """Answer a question about events."""
    events = load_events(path)
    gateway = _gateway()
    result = AnalysisOrchestrator(gateway).analyze(events, question)

    if as_json:
        print(json.dumps(result.to_dict(), indent=2))
        return

    print(f"\nQ: {question}")
    print("-" * 50)
    print(result.answer)
    print(f"\nProvider: {result.provider.value}")
    if result.error:
        print(f"Fallback reason: {result.error}")

    if result.chart:
        print(f"\nChart ({result.chart.kind.value}): {result.chart.title}")
        for point in result.chart.points:
            print(f"  {point.name:<30} {point.value}")


def cmd_followups(answer: str, deeper: bool = False):
    """Suggest follow-up questions for an answer."""
    questions = FollowUpGenerator(_gateway()).generate(answer, is_deeper=deeper)
    print()
    for i, question in enumerate(questions, 1):
        print(f"  {i}. {question}")


def cmd_insight(path: str):
    """Overview headline for events."""
    insight = OverviewInsightGenerator(_gateway()).generate(load_events(path))
    print(f"\n{insight.insight}")
    print(f"\nProvider: {insight.provider.value}")
    print(f"Try asking: {insight.suggested_question}")


def cmd_status(probe: bool = False):
    """Show active answer backend."""
    status = StatusReporter(_gateway()).report(probe=probe)
    print(f"\nProvider:  {status.provider.value}")
    print(f"Model:     {status.model}")
    print(f"Available: {'Yes' if status.is_available else 'No'}")


def cmd_fetch(limit: int, out_path: str = None):
    """Fetch recent events from the Fingerprint Server API."""
    load_env_file(Path(__file__).parent / ".env")
    client = FingerprintClient.from_config(InsightConfig.from_env())
    events = client.search(limit=limit)
    records = [e.to_dict() for e in events]

    if out_path:
        with open(out_path, "w", encoding="utf-8") as f:
            json.dump(records, f, indent=2)
        print(f"\nSaved {len(records)} events to {out_path}")
    else:
        print(json.dumps(records, indent=2))


# =============================================================================
# MAIN
# =============================================================================

def main():
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    cmd = sys.argv[1].lower()
    args = [a for a in sys.argv[2:] if not a.startswith("--")]

    try:
        # summary
        if cmd == "summary" and args:
            cmd_summary(args[0], fast="--fast" in sys.argv)

        # analyze
        elif cmd == "analyze" and len(args) >= 2:
            cmd_analyze(args[0], args[1], as_json="--json" in sys.argv)

        # followups
        elif cmd == "followups" and args:
            cmd_followups(args[0], deeper="--deeper" in sys.argv)

        # insight
        elif cmd == "insight" and args:
            cmd_insight(args[0])

        # status
        elif cmd == "status":
            cmd_status(probe="--probe" in sys.argv)

        # fetch
        elif cmd == "fetch":
            limit = _option("--limit", "100")
            if not limit.isdigit():
                print("Usage: insight_cli.py fetch [--limit N] [--out file]")
                sys.exit(1)
            cmd_fetch(int(limit), _option("--out"))

        else:
            print(__doc__)
            sys.exit(1)

    except InsightError as e:
        print(f"\n❌ Error: {e.user_message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
