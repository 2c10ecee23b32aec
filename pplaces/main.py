"""Main entry point for pplaces."""

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from . import __version__
from .config import Settings, load_config
from .crawler.github_client import GitHubClient
from .crawler.gitlab_client import GitLabClient
from .crawler.models import SORT_KEYS, FilterCriteria, ScanResult
from .crawler.repo_manager import RepoManager
from .crawler.scanner import aggregate
from .errors import ExitCode, ExternalOperationFailed, PplacesError
from .store.output import ReportFormatter

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)


def setup_logging(level: str, verbose: int = 0) -> None:
    """Send log records to stderr through rich."""
    if verbose >= 2:
        level = "DEBUG"
    elif verbose == 1:
        level = "INFO"

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False, markup=False)],
        force=True,
    )


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"expected a non-negative number, got {value}")
    return number


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive number, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pplaces",
        description="pplaces - discover, summarize, clone and upload local git repositories",
    )
    parser.add_argument(
        "-d", "--days-to-show",
        type=_non_negative_int,
        metavar="N",
        help="Only report repositories with a commit in the last N days",
    )
    parser.add_argument(
        "-f", "--full",
        action="store_true",
        help="Include branch, dirty state and remotes in the report",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the scan result as JSON",
    )
    parser.add_argument(
        "--sort",
        choices=SORT_KEYS,
        default="path",
        help="Order by path (default) or most recent commit",
    )
    parser.add_argument(
        "-c", "--config",
        help="Path to configuration file (default: ~/.config/pplaces/config.yaml)",
    )
    parser.add_argument(
        "-w", "--workers",
        type=_positive_int,
        help="Inspect repositories with N worker threads",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Show progress logs (-vv for debug output)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    commands = parser.add_subparsers(dest="command", metavar="<SUBCOMMAND>")

    scan = commands.add_parser("scan", help="Recursively discover repositories under a path")
    scan.add_argument("path", help="Directory to scan")

    show = commands.add_parser("show", help="Discover repositories and print a metadata report")
    show.add_argument("path", nargs="?", help="Directory to scan (default: scan.root from config)")

    clone = commands.add_parser("clone", help="Clone a repository unless it is already present")
    clone.add_argument("url", help="Repository URL")
    clone.add_argument("dest", nargs="?", help="Destination directory")
    clone.add_argument("--depth", type=_non_negative_int, help="Shallow clone depth (0 = full history)")
    clone.add_argument(
        "--search",
        metavar="ROOT",
        help="Also refuse if any repository under ROOT already has this remote",
    )

    upload = commands.add_parser("upload", help="Upload an existing local repository")
    upload.add_argument("path", help="Local repository")
    upload.add_argument(
        "target",
        help="github:<owner>/<name>, gitlab:<namespace>/<name> or a git URL",
    )
    upload.add_argument("--public", action="store_true", help="Create the remote repository as public")
    upload.add_argument("--description", help="Description for a newly created remote repository")

    commands.add_parser("help", help="Show this help")
    return parser


def run_scan(
    root: Path | str,
    settings: Settings,
    criteria: FilterCriteria,
    workers: int | None = None,
) -> ScanResult:
    """Run one scan with the configured exclusions and worker count."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=err_console,
        transient=True,
    ) as progress:
        progress.add_task(f"Scanning {escape(str(root))}...", total=None)
        return aggregate(
            root,
            criteria,
            workers=workers or settings.scan.workers,
            exclude_patterns=settings.scan.exclude_patterns,
            skip_hidden=settings.scan.skip_hidden,
        )


def _criteria(args: argparse.Namespace, settings: Settings) -> FilterCriteria:
    days = args.days_to_show if args.days_to_show is not None else settings.scan.days_to_show
    return FilterCriteria(days_to_show=days, full=args.full, sort=args.sort)


def _report(result: ScanResult, args: argparse.Namespace, paths_only: bool) -> None:
    formatter = ReportFormatter(console=console, err_console=err_console)
    if args.json:
        formatter.render_json(result)
        return

    if paths_only and not args.full:
        formatter.render_paths(result)
    else:
        formatter.render_table(result, full=args.full)
    formatter.render_warning_summary(result)


def cmd_scan(args: argparse.Namespace, settings: Settings) -> int:
    result = run_scan(args.path, settings, _criteria(args, settings), args.workers)
    _report(result, args, paths_only=True)
    return ExitCode.OK


def cmd_show(args: argparse.Namespace, settings: Settings) -> int:
    root = args.path or settings.scan_root
    result = run_scan(root, settings, _criteria(args, settings), args.workers)
    _report(result, args, paths_only=False)
    return ExitCode.OK


def build_manager(settings: Settings, timeout: int, depth: int = 0) -> RepoManager:
    """Create a RepoManager with hosting clients for every configured token."""
    hosting = []
    if settings.github.token:
        hosting.append(GitHubClient(settings.github.token, use_ssh=settings.github.use_ssh))
    if settings.gitlab.token:
        hosting.append(GitLabClient(
            settings.gitlab.url,
            settings.gitlab.token,
            use_ssh=settings.gitlab.use_ssh,
        ))
    return RepoManager(timeout=timeout, depth=depth, hosting=hosting)


def cmd_clone(args: argparse.Namespace, settings: Settings) -> int:
    depth = args.depth if args.depth is not None else settings.clone.depth
    manager = build_manager(settings, timeout=settings.clone.timeout, depth=depth)
    cloned = manager.clone(args.url, args.dest, search_root=args.search)
    console.print(f"[green]✓[/green] Cloned {escape(cloned.url)} into {escape(str(cloned.local_path))}")
    return ExitCode.OK


def cmd_upload(args: argparse.Namespace, settings: Settings) -> int:
    manager = build_manager(settings, timeout=settings.upload.timeout)
    private = settings.upload.private and not args.public
    uploaded = manager.upload(args.path, args.target, private=private, description=args.description)
    console.print(
        f"[green]✓[/green] Pushed {escape(uploaded.branch)} of {escape(str(uploaded.local_path))} "
        f"to {escape(uploaded.push_url)}"
    )
    if uploaded.added_origin:
        console.print("  Added remote 'origin'")
    return ExitCode.OK


COMMANDS = {
    "scan": cmd_scan,
    "show": cmd_show,
    "clone": cmd_clone,
    "upload": cmd_upload,
}


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point; returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command in (None, "help"):
        parser.print_help()
        return ExitCode.OK

    try:
        settings = load_config(args.config)
        setup_logging(settings.logging.level, args.verbose)
        return COMMANDS[args.command](args, settings)
    except ExternalOperationFailed as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        if e.stderr:
            err_console.out(e.stderr.rstrip(), highlight=False)
        return e.exit_code
    except PplacesError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        return e.exit_code
    except ValueError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        return ExitCode.USAGE
    except KeyboardInterrupt:
        err_console.print("\nInterrupted")
        return ExitCode.INTERRUPTED


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
