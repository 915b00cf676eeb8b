"""CLI interface for Courier"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Iterator, Optional, TextIO

import click
import yaml

from courier.application.processor import HttpClientProcessor
from courier.domain.models.message import Message
from courier.infrastructure.config.config_manager import ConfigManager, ConfigurationError

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,
    )
    logging.getLogger().setLevel(level)
    # urllib3 is chatty at DEBUG
    logging.getLogger("urllib3").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _die(message: str, verbose: bool = False, exc: Optional[Exception] = None) -> None:
    """Exit with a user-friendly error message"""
    if exc is not None:
        logger.error(message, exc_info=verbose)
    else:
        logger.error(message)
    raise click.ClickException(message)


def parse_message(line: str) -> Message:
    """Parse one JSON line into a Message

    An object with a "payload" key (and optional "headers") is taken as an
    envelope; any other JSON value is the payload itself.

    Args:
        line: JSON text

    Returns:
        Message object

    Raises:
        ValueError: If the line is not valid JSON or headers is not an object
    """
    data = json.loads(line)
    if isinstance(data, dict) and "payload" in data:
        headers = data.get("headers") or {}
        if not isinstance(headers, dict):
            raise ValueError("'headers' must be a JSON object")
        return Message(payload=data["payload"], headers=headers)
    return Message(payload=data)


def read_messages(stream: TextIO) -> Iterator[Message]:
    """Read JSON-lines messages, skipping blank lines"""
    for line_no, line in enumerate(stream, 1):
        if not line.strip():
            continue
        try:
            yield parse_message(line)
        except ValueError as e:
            raise click.ClickException(f"Invalid message on line {line_no}: {e}") from e


def format_reply(payload: Any) -> str:
    """Serialize a reply payload as one JSON line"""
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")
    return json.dumps(payload, ensure_ascii=False, default=str)


def _load_config(ctx: click.Context) -> ConfigManager:
    try:
        return ConfigManager(config_path=ctx.obj.get("config_path"))
    except ConfigurationError as e:
        _die(str(e), verbose=ctx.obj.get("verbose", False), exc=e)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to .courier.yml config file",
)
@click.pass_context
def cli(ctx, verbose: bool, config: Path):
    """Courier - HTTP client processor for message pipelines"""
    ctx.ensure_object(dict)
    setup_logging(verbose)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("input_file", type=click.File("r", encoding="utf-8"), default="-")
@click.option(
    "--output",
    "-o",
    type=click.File("w", encoding="utf-8"),
    default="-",
    help="Where to write replies (default: stdout)",
)
@click.option(
    "--continue-on-error",
    is_flag=True,
    help="Log failed messages and keep processing instead of stopping",
)
@click.pass_context
def process(ctx, input_file: TextIO, output: TextIO, continue_on_error: bool):
    """Send one HTTP request per message and emit the replies.

    INPUT_FILE: JSON-lines file of messages (default: stdin)
    """
    verbose = ctx.obj.get("verbose", False)
    config_manager = _load_config(ctx)

    processed = 0
    try:
        processor = HttpClientProcessor.from_config(config_manager.get_httpclient_config())
        with processor.client:
            for reply in processor.process_stream(
                read_messages(input_file), continue_on_error=continue_on_error
            ):
                output.write(format_reply(reply.payload) + "\n")
                output.flush()
                processed += 1
    except click.ClickException:
        raise
    except Exception as e:
        _die(f"Fatal error after {processed} message(s): {e}", verbose=verbose, exc=e)

    logger.info(f"Processing completed: {processed} reply message(s)")


@cli.command("show-config")
@click.pass_context
def show_config(ctx):
    """Print the validated configuration."""
    config_manager = _load_config(ctx)
    data = config_manager.config.model_dump(mode="json")
    click.echo(yaml.safe_dump(data, sort_keys=False), nl=False)


def main():
    """Main entry point"""
    cli(obj={})


if __name__ == "__main__":
    main()
