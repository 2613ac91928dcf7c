"""Command-line interface for mailferry."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from mailferry import __version__
from mailferry.app import Mailferry, create_repository, process_rules_trigger
from mailferry.config import Config, load_config
from mailferry.exceptions import RuleNotFoundError, RuleValidationError
from mailferry.rule_manager import RuleManager
from mailferry.rules_engine import RunSummary, build_search_query

console = Console(width=200, soft_wrap=False)
logger = logging.getLogger("mailferry")

config_option = click.option(
    "--config",
    "-c",
    required=True,
    type=click.Path(exists=True),
    help="Path to configuration YAML file",
)


def setup_logging(level: str, log_file: str | None = None) -> None:
    """Configure logging."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [
        RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
    ]

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        force=True,
    )

    # Suppress noisy loggers
    logging.getLogger("googleapiclient").setLevel(logging.WARNING)
    logging.getLogger("google_auth_oauthlib").setLevel(logging.WARNING)


def _load(config: str, verbose: bool = False) -> Config:
    cfg = load_config(config)
    setup_logging("DEBUG" if verbose else cfg.logging.level, cfg.logging.log_file)
    return cfg


def _manager(cfg: Config) -> RuleManager:
    return RuleManager(create_repository(cfg))


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """mailferry - Copy email attachments to Google Drive by rule."""
    pass


@cli.command()
@config_option
@click.option("--dry-run", is_flag=True, help="Log actions without saving or marking read")
@click.option("--batch-size", "-b", type=int, default=None, help="Threads per rule (overrides config)")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def run(config: str, dry_run: bool, batch_size: int | None, verbose: bool) -> None:
    """Process all rules once. Meant to be called from cron or a scheduler."""
    try:
        cfg = _load(config, verbose)
        if dry_run:
            cfg.dry_run = True
        if batch_size:
            cfg.processing.batch_size = batch_size

        console.print(f"[bold blue]mailferry v{__version__}[/bold blue]")
        console.print(f"Mode: [bold]{'dry-run' if cfg.dry_run else 'active'}[/bold]")

        summary = Mailferry(cfg).run_once()
        _print_summary_table(summary)

    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    except Exception as e:
        logger.exception("Fatal error")
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


def _print_summary_table(summary: RunSummary) -> None:
    """Print a summary table of a run."""
    if not summary.outcomes:
        console.print("No rules processed")
        return

    table = Table(title="Run Summary")
    table.add_column("Rule", style="dim")
    table.add_column("Query")
    table.add_column("Threads", justify="right")
    table.add_column("Saved", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("OK", justify="center")

    for outcome in summary.outcomes:
        table.add_row(
            outcome.rule_id,
            outcome.query,
            str(outcome.threads),
            str(outcome.saved),
            str(outcome.skipped),
            "[green][OK][/green]" if outcome.success else f"[red][X][/red] {outcome.error}",
        )

    console.print(table)


@cli.command()
@config_option
@click.option("--interval", "-i", type=int, default=None, help="Seconds between runs (overrides config)")
def watch(config: str, interval: int | None) -> None:
    """Process all rules periodically until interrupted."""
    try:
        cfg = _load(config)
        console.print(f"[bold blue]mailferry v{__version__} - Watch Mode[/bold blue]")
        console.print("Press CTRL+C to stop\n")
        Mailferry(cfg).run_forever(interval)
        console.print("\n[green]Watch mode stopped[/green]")
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    except Exception as e:
        logger.exception("Fatal error in watch mode")
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@cli.command()
@config_option
def auth(config: str) -> None:
    """Authorize Gmail and Drive access and cache the token."""
    from mailferry.google_auth import load_credentials

    cfg = _load(config)
    try:
        load_credentials(cfg.google, interactive=True)
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    console.print(f"[green][OK] Token stored in {cfg.google.token_file}[/green]")


@cli.command()
@config_option
def check(config: str) -> None:
    """Check configuration, stored rules and Google authorization."""
    from mailferry.google_auth import load_credentials

    try:
        cfg = load_config(config)
        console.print("[green][OK] Configuration valid[/green]")

        rules = _manager(cfg).get_rules()
        console.print(f"\n{len(rules)} rule(s) stored")
        for rule in rules[:5]:
            console.print(f"  - {rule.id}: {build_search_query(rule)}")

        try:
            load_credentials(cfg.google, interactive=False)
            console.print("[green][OK] Google token valid[/green]")
        except (PermissionError, FileNotFoundError) as e:
            console.print(f"[yellow][WARNING] {e}[/yellow]")

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@cli.group()
def rules() -> None:
    """Manage rules."""
    pass


@rules.command("list")
@config_option
def rules_list(config: str) -> None:
    """List stored rules and their attachment actions."""
    cfg = load_config(config)
    stored = _manager(cfg).get_rules()

    if not stored:
        console.print("No rules stored")
        return

    table = Table(title=f"Rules ({len(stored)})")
    table.add_column("Rule", style="dim")
    table.add_column("Sender")
    table.add_column("Subject")
    table.add_column("Action", style="dim")
    table.add_column("Attachment")
    table.add_column("Folder")
    table.add_column("Output name")

    for rule in stored:
        if not rule.attachment_actions:
            table.add_row(rule.id, rule.sender or "-", rule.subject or "-", "-", "-", "-", "-")
        for action in rule.attachment_actions:
            table.add_row(
                rule.id,
                rule.sender or "-",
                rule.subject or "-",
                action.id,
                action.attachment_name,
                action.drive_folder_id,
                action.output_file_name or "(original)",
            )

    console.print(table)


@rules.command("add")
@config_option
@click.option("--sender", "-s", default=None, help="Match messages from this sender")
@click.option("--subject", "-t", default=None, help="Match messages with this subject")
def rules_add(config: str, sender: str | None, subject: str | None) -> None:
    """Add a rule. At least one of --sender and --subject is required."""
    cfg = load_config(config)
    try:
        rule = _manager(cfg).add_rule({"sender": sender, "subject": subject})
    except RuleValidationError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    console.print(f"[green]Added rule {rule.id}[/green]")


@rules.command("delete")
@config_option
@click.argument("rule_id")
def rules_delete(config: str, rule_id: str) -> None:
    """Delete a rule."""
    cfg = load_config(config)
    if _manager(cfg).delete_rule(rule_id):
        console.print(f"[green]Deleted rule {rule_id}[/green]")
    else:
        console.print(f"[yellow]No rule {rule_id}[/yellow]")


@cli.group()
def actions() -> None:
    """Manage attachment actions of a rule."""
    pass


@actions.command("add")
@config_option
@click.argument("rule_id")
@click.option("--folder", "-f", required=True, help="Destination Drive folder id")
@click.option("--name", "-n", default="*", show_default=True, help="Attachment name to copy, * for any")
@click.option(
    "--output",
    "-o",
    default=None,
    help="Output name template using {original_name}, {subject}, {date}",
)
def actions_add(config: str, rule_id: str, folder: str, name: str, output: str | None) -> None:
    """Add an attachment action to a rule."""
    cfg = load_config(config)
    try:
        action = _manager(cfg).add_attachment_action(
            rule_id,
            {"driveFolderId": folder, "attachmentName": name, "outputFileName": output},
        )
    except (RuleNotFoundError, RuleValidationError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    console.print(f"[green]Added action {action.id} to rule {rule_id}[/green]")


@actions.command("delete")
@config_option
@click.argument("rule_id")
@click.argument("action_id")
def actions_delete(config: str, rule_id: str, action_id: str) -> None:
    """Delete an attachment action."""
    cfg = load_config(config)
    if _manager(cfg).delete_attachment_action(rule_id, action_id):
        console.print(f"[green]Deleted action {action_id}[/green]")
    else:
        console.print(f"[yellow]No action {action_id} on rule {rule_id}[/yellow]")


@cli.command()
@config_option
@click.option("--host", default=None, help="Bind address (overrides config)")
@click.option("--port", "-p", type=int, default=None, help="Port (overrides config)")
def serve(config: str, host: str | None, port: int | None) -> None:
    """Serve the rule management API."""
    import uvicorn

    from mailferry.web.app import create_app

    cfg = _load(config)
    uvicorn.run(
        create_app(config_path=config),
        host=host or cfg.web.host,
        port=port or cfg.web.port,
    )


@cli.command()
@click.argument("output", type=click.Path())
def init_config(output: str) -> None:
    """Generate a sample configuration file."""
    sample_config = """# mailferry configuration

google:
  # OAuth client secrets from the Google Cloud console
  credentials_file: credentials.json
  token_file: token.json
  user_id: me

processing:
  # Threads handled per rule per run; remaining mail is picked up next run
  batch_size: 10
  # Seconds between runs in watch mode
  interval: 300

storage:
  database_path: mailferry.db
  user: default

logging:
  level: INFO
  # log_file: /var/log/mailferry.log
  audit_file: audit.jsonl

web:
  host: 127.0.0.1
  port: 8080

dry_run: false
"""
    Path(output).write_text(sample_config)
    console.print(f"[green]Sample configuration written to {output}[/green]")
    console.print("\nNext steps:")
    console.print("1. Download OAuth client secrets to credentials.json")
    console.print("2. Run: mailferry auth --config " + output)
    console.print("3. Run: mailferry rules add --config " + output + " --sender someone@example.com")
    console.print("4. Run: mailferry run --config " + output)


def trigger() -> None:
    """Scheduler entry point without arguments.

    Reads the config from MAILFERRY_CONFIG (default config.yml) and reports
    only through the log.
    """
    setup_logging("INFO")
    process_rules_trigger()


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
