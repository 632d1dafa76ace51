"""Console output for push runs."""
from __future__ import annotations

from helm_pusher.config import PusherConfig
from helm_pusher.progress import RunSummary


# ANSI color codes
class Colors:
    GREEN = '\033[92m'
    RED = '\033[91m'
    YELLOW = '\033[93m'
    CYAN = '\033[96m'
    RESET = '\033[0m'


def print_header(config: PusherConfig, mode: str) -> None:
    """Print run header."""
    print(f"\n{'='*60}")
    print(f"helm-pusher - {Colors.YELLOW}{mode.upper()}{Colors.RESET}")
    print(f"{'='*60}")
    print(f"Target:       {config.url}")
    if config.username:
        print(f"User:         {config.username}")
    if mode == "routines":
        print(f"Charts:       {config.charts} (up to {config.versions} versions each)")
    else:
        print(f"Versions:     {config.versions} across {config.charts} charts")
    print(f"Concurrency:  {config.routines}")
    print(f"On error:     {config.policy.value}")
    print(f"Template:     {config.template_path or '(helm create)'}")
    if config.force:
        print(f"Force:        {Colors.YELLOW}yes{Colors.RESET}")
    print(f"{'='*60}\n")


def print_summary(summary: RunSummary) -> None:
    """Print run results."""
    errors_color = Colors.RED if summary.errors else Colors.GREEN

    print(f"\n{'='*60}")
    print("Results")
    print(f"{'='*60}")
    print(f"Total time:    {summary.elapsed:.2f}s")
    print(f"Requested:     {summary.requested}")
    print(f"Successes:     {Colors.GREEN}{summary.successes}{Colors.RESET}")
    print(f"Errors:        {errors_color}{summary.errors}{Colors.RESET}")
    print(f"Conflicts:     {summary.conflicts}")
    print(f"Achieved rate: {summary.rate:.1f} charts/s")
    if summary.error_kinds:
        print(f"\nErrors by message:")
        for message, count in sorted(summary.error_kinds.items(), key=lambda kv: -kv[1]):
            print(f"  {count:6d}  {message}")
    print(f"{'='*60}\n")
