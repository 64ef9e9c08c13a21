"""Command Line Interface for the FHIR ingest worker.

This module is the process boundary: it is the only place where configuration
errors and interrupts become exit codes.
"""

import typer
from rich.console import Console
from rich.table import Table

from fhir_ingest.domain.routing import TenantRouter
from fhir_ingest.infrastructure.config_manager import ConfigManager, ConfigurationError
from fhir_ingest.infrastructure.settings import Settings

# Initialize Typer app and Rich console
app = typer.Typer(
    name="fhir-ingest",
    help="Queue worker persisting FHIR encounter bundles into tenant databases",
    add_completion=False
)
console = Console()


def _load_config_or_exit() -> ConfigManager:
    from fhir_ingest.main import load_configuration

    try:
        return load_configuration()
    except ConfigurationError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)


@app.command()
def run() -> None:
    """Poll the queue and persist messages until interrupted."""
    from fhir_ingest.main import run as run_worker

    config_manager = _load_config_or_exit()
    try:
        run_worker(config_manager=config_manager, settings=Settings())
    except KeyboardInterrupt:
        console.print("\n[yellow]Worker interrupted, shutting down[/yellow]")
        raise typer.Exit(code=0)


@app.command("check-config")
def check_config() -> None:
    """Validate configuration and show resolved settings and tenant routes."""
    config_manager = _load_config_or_exit()
    settings = Settings()
    queue_config = config_manager.get_queue_config()
    db_config = config_manager.get_database_config()

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("queue_url", queue_config.queue_url)
    table.add_row("region", queue_config.region)
    table.add_row("endpoint_url", str(queue_config.endpoint_url))
    table.add_row("routing_attribute", queue_config.routing_attribute)
    table.add_row("database", db_config.redacted_uri())
    table.add_row("database_user", db_config.username)
    for key, value in settings.as_dict().items():
        table.add_row(key, str(value))
    console.print(table)

    routes = Table(title="Tenant Routes")
    routes.add_column("Routing key", style="cyan")
    routes.add_column("Tenant database", style="green")
    for key, tenant in TenantRouter().routes.items():
        routes.add_row(key, tenant)
    console.print(routes)

    console.print("[green]✓[/green] Configuration is valid")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
