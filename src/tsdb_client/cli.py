from __future__ import annotations

import json
import sys

import typer
from loguru import logger

from .config import get_settings
from .errors import classify

app = typer.Typer(help="tsdb_client operational CLI")


@app.command("classify")
def classify_cmd(
    message: str = typer.Argument(..., help="Server error message to classify"),
):
    """Show how a server error message would be handled by the batch pipeline."""
    outcome = classify(message)
    typer.echo(json.dumps(outcome.as_dict(), indent=2))


@app.command("config")
def show_config():
    """Print the batching configuration resolved from TSDB_BATCH_* / .env."""
    try:
        cfg = get_settings().to_config()
    except ValueError as e:
        logger.error(f"Invalid batching configuration: {e}")
        sys.exit(1)
    data = {
        "action_threshold": cfg.action_threshold,
        "flush_interval_ms": cfg.flush_interval_ms,
        "jitter_window_ms": cfg.jitter_window_ms,
        "retry_buffer_capacity": cfg.retry_buffer_capacity,
        "consistency": cfg.consistency.value,
    }
    typer.echo(json.dumps(data, indent=2, default=str))


if __name__ == "__main__":
    app()
