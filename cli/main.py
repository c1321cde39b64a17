#!/usr/bin/env python3
"""
Attention Engine CLI - ranked queue and triage from the terminal.
"""

import sys

from attention import db as db_module
from attention.errors import AttentionError, TrustGuardViolation
from attention.priority.config import ACTIVE_CONFIG_NAME, default_registry
from attention.priority.engine import PriorityService
from attention.state_store import get_store
from attention.time_utils import utc_now
from attention.triage import TriageStateMachine, WorkQueue


def print_header(text: str):
    """Print a section header."""
    print(f"\n{'═' * 50}")
    print(f"  {text}")
    print(f"{'═' * 50}")


def print_table(headers: list, rows: list, widths: list = None):
    """Print a simple table."""
    if not widths:
        widths = [max(len(str(row[i])) for row in [headers] + rows) for i in range(len(headers))]

    header_str = " │ ".join(str(h).ljust(w) for h, w in zip(headers, widths))
    print(header_str)
    print("─" * len(header_str))

    for row in rows:
        print(" │ ".join(str(c)[:w].ljust(w) for c, w in zip(row, widths)))


def score_color(score: float) -> str:
    """Return ANSI color code for a [0, 1] score."""
    if score >= 0.85:
        return "\033[91m"  # Red
    if score >= 0.7:
        return "\033[93m"  # Yellow
    return "\033[0m"  # Default


def cmd_init(args):
    """Create or converge the database."""
    path = db_module.get_db_path()
    if "--fresh" in args:
        result = db_module.create_fresh(path)
        print(f"Recreated {path}: {len(result['tables_created'])} tables")
    else:
        result = db_module.ensure_schema(path)
        print(
            f"Schema ready at {path}: "
            f"{len(result['tables_created'])} tables created, {len(result['columns_added'])} columns added"
        )
    for err in result["errors"]:
        print(f"  ! {err}")


def cmd_priorities(args):
    """Show a user's priority queue."""
    if not args:
        print("Usage: priorities <user> [config] [n]")
        return 1
    user = args[0]
    config_name = args[1] if len(args) > 1 else ACTIVE_CONFIG_NAME
    config = default_registry().get(config_name)
    limit = int(args[2]) if len(args) > 2 else config.max_items

    queue = PriorityService(get_store()).build_queue(user, config)
    print_header(f"PRIORITY QUEUE ({config.name})")

    if not queue.items:
        print("Nothing needs your attention.")
        return 0

    rows = []
    for i, item in enumerate(queue.items[:limit], 1):
        rows.append(
            [
                i,
                f"{score_color(item.priority_score)}{item.priority_score:.2f}\033[0m",
                item.source_type.value,
                item.title,
                item.reasoning,
            ]
        )
    print_table(["#", "Score", "Source", "Title", "Why"], rows, [3, 13, 17, 35, 50])

    stats = queue.debug_stats()
    print(
        f"\n{stats['selected_count']} of {stats['total_count']} scored "
        f"({stats['excluded_count']} excluded, {stats['skipped_count']} skipped)"
    )
    return 0


def cmd_triage(args):
    """Show a user's open work items."""
    if not args:
        print("Usage: triage <user> [status]")
        return 1
    user = args[0]
    status = args[1] if len(args) > 1 else None
    queue = WorkQueue(get_store())
    now = utc_now()

    entries = queue.list_items(user, now=now, status=status)
    counts = queue.counts(user, now)
    print_header("TRIAGE QUEUE")

    if not entries:
        print("System clear." if counts["is_system_clear"] else "No items with that status.")
        return 0

    rows = []
    for entry in entries:
        item = entry.work_item
        link = entry.primary_link
        rows.append(
            [
                item.id[:8],
                item.priority,
                item.source_type.value,
                ", ".join(item.reason_codes) or "-",
                f"{link.target_type}/{link.target_id}" if link else "-",
                entry.one_liner or "",
            ]
        )
    print_table(["ID", "Pri", "Source", "Reasons", "Linked to", "Summary"], rows, [8, 3, 17, 30, 25, 40])
    print(f"\n{counts['needs_review']} need review, {counts['snoozed']} snoozed, {counts['pending']} pending")
    return 0


def cmd_item(args):
    """Explain what would clear a work item."""
    if not args:
        print("Usage: item <work_item_id>")
        return 1
    info = TriageStateMachine(get_store()).clearance(args[0])
    item = info["work_item"]
    print_header(f"WORK ITEM {item['id']}")
    print(f"  Source:     {item['source_type']}/{item['source_id']}")
    print(f"  Status:     {item['status']}")
    print(f"  Reasons:    {', '.join(info['reason_codes']) or '-'}")
    print(f"  Links:      {len(info['links'])}")
    print(f"  Extracts:   {len(info['extracts'])}")
    if info["clearable"]:
        print(f"  Clearable:  yes ({', '.join(info['satisfied_conditions'])})")
    else:
        print(f"  Clearable:  no, needs one of: {', '.join(info['missing_conditions'])}")
    return 0


def cmd_trust(args):
    """Mark a work item trusted."""
    if not args:
        print("Usage: trust <work_item_id>")
        return 1
    try:
        item = TriageStateMachine(get_store()).mark_trusted(args[0])
    except TrustGuardViolation as e:
        print(f"✗ {e}")
        print(f"  Missing: {', '.join(e.missing_conditions)}")
        return 2
    print(f"✓ Trusted: {item.id}")
    return 0


def cmd_config(args):
    """List priority configs, or show one."""
    registry = default_registry()
    if args:
        config = registry.get(args[0])
        print_header(f"CONFIG {config.name}")
        for key, value in config.to_dict().items():
            print(f"  {key:26} {value}")
        return 0

    print_header("PRIORITY CONFIGS")
    rows = []
    for config in registry:
        weights = " ".join(f"{k[:3]}={v:g}" for k, v in config.weights.items() if v)
        marker = "*" if config.name == ACTIVE_CONFIG_NAME else ""
        rows.append([f"{config.name}{marker}", weights, config.max_items, config.min_score])
    print_table(["Name", "Weights", "Max", "Min"], rows)
    return 0


def cmd_help(args):
    """Show help."""
    print_header("ATTENTION ENGINE CLI")
    print("""
COMMANDS:

  init [--fresh]             Create or converge the database
  priorities <user> [cfg] [n]  Show the ranked queue (default config v1)
  triage <user> [status]     Show open work items
  item <id>                  Show what would clear a work item
  trust <id>                 Mark a work item trusted (guarded)
  config [name]              List priority configs, or show one
  help                       Show this help
""")
    return 0


COMMANDS = {
    "init": cmd_init,
    "priorities": cmd_priorities,
    "p": cmd_priorities,
    "triage": cmd_triage,
    "t": cmd_triage,
    "item": cmd_item,
    "trust": cmd_trust,
    "config": cmd_config,
    "help": cmd_help,
    "h": cmd_help,
}


def main(argv: list | None = None) -> int:
    """Main entry point."""
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        cmd_help([])
        return 0

    cmd, args = argv[0], argv[1:]

    if cmd not in COMMANDS:
        print(f"Unknown command: {cmd}")
        print("Run 'help' for available commands.")
        return 1
    try:
        return COMMANDS[cmd](args) or 0
    except (AttentionError, ValueError) as e:
        print(f"✗ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
