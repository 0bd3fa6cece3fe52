"""LiveLLM CLI: Typer + Rich terminal interface.

Commands: render, chat, components, config, serve.
Streams are painted live with the Rich surface from ``livellm.display``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from livellm import __version__
from livellm.adapters import consume_token_stream
from livellm.components import default_registry
from livellm.components.action import Choice, Confirm
from livellm.config import default_config_path, load_config
from livellm.display import LiveStreamDisplay
from livellm.errors import ConfigError, TransportError
from livellm.events import ComponentFailed, EventKind, LifecycleEmitter
from livellm.keys import has_key, load_keys_env
from livellm.providers.litellm_source import LiteLLMTokenSource
from livellm.scheduler import AsyncioTicker
from livellm.schemas.config import LiveLLMConfig, ModelConfig
from livellm.schemas.protocol import ActionPayload
from livellm.server.sse import format_action_as_message
from livellm.stream import StreamSession, create_session

# Load API keys from ~/.livellm/keys.env and .env on startup
load_keys_env()

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="livellm",
    help="Render streamed LLM output with live embedded components.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version / logging callback ─────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"livellm {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log stream lifecycle and component errors.",
    ),
) -> None:
    """LiveLLM: markdown plus live components, rendered as the tokens arrive."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=err_console, show_path=False)],
            force=True,
        )
        # litellm and httpx are chatty at DEBUG
        for name in ("LiteLLM", "httpx", "httpcore"):
            logging.getLogger(name).setLevel(logging.WARNING)


# ── Helpers ──────────────────────────────────────────────────────


def _load_config(config_path: Path | None) -> LiveLLMConfig:
    """Load the configuration file, exit on error."""
    try:
        return load_config(config_path)
    except (FileNotFoundError, ConfigError) as exc:
        console.print(f"[red]Error loading config:[/red] {exc}")
        raise typer.Exit(1) from None


def _chunks(text: str, size: int) -> list[str]:
    return [text[i:i + size] for i in range(0, len(text), size)] if text else []


async def _replay(chunks: list[str], delay: float) -> AsyncIterator[str]:
    for chunk in chunks:
        yield chunk
        await asyncio.sleep(delay)


def _track_failures(events: LifecycleEmitter) -> list[ComponentFailed]:
    failures: list[ComponentFailed] = []
    events.subscribe(EventKind.COMPONENT_ERROR, failures.append)
    return failures


def _print_failures(failures: list[ComponentFailed]) -> None:
    if not failures:
        return
    console.print(f"\n[yellow]{len(failures)} component block(s) degraded:[/yellow]")
    for failure in failures:
        console.print(
            f"  [dim]•[/dim] [bold]{failure.component_type}[/bold] "
            f"[dim]({failure.error_kind})[/dim] {failure.message}"
        )


# ── render ───────────────────────────────────────────────────────


@app.command()
def render(
    file: Path = typer.Argument(..., help="Markdown file with livellm component blocks"),
    chunk_size: int = typer.Option(
        8, "--chunk-size", "-n", min=1,
        help="Characters per simulated token.",
    ),
    delay: float = typer.Option(
        0.01, "--delay", "-d", min=0.0,
        help="Seconds between simulated tokens.",
    ),
    html_out: Path = typer.Option(
        None, "--html",
        help="Also write the rendered container as HTML to this file.",
    ),
    config_path: Path = typer.Option(
        None, "--config", "-c",
        help="Configuration TOML (defaults to the bundled defaults.toml).",
    ),
) -> None:
    """Replay a file as a token stream and render it live."""
    if not file.exists():
        console.print(f"[red]File not found:[/red] {file}")
        raise typer.Exit(1)

    stream_config = _load_config(config_path).stream
    text = file.read_text(encoding="utf-8")
    events = LifecycleEmitter()
    failures = _track_failures(events)

    async def _run() -> StreamSession:
        with LiveStreamDisplay(console) as display:
            session = create_session(
                events=events,
                config=stream_config,
                ticks=AsyncioTicker(stream_config.frame_interval),
                on_paint=display.paint,
            )
            await consume_token_stream(session, _replay(_chunks(text, chunk_size), delay), "file")
        return session

    session = asyncio.run(_run())
    _print_failures(failures)

    if html_out is not None:
        html_out.write_text(session.to_html(), encoding="utf-8")
        console.print(f"[green]HTML written to[/green] {html_out}")


# ── chat ─────────────────────────────────────────────────────────


def _prompt_action(session: StreamSession) -> ActionPayload | None:
    """Ask the user to answer the last action widget of a reply, if any."""
    widgets = [w for w in session.widgets() if isinstance(w, (Choice, Confirm))]
    if not widgets:
        return None
    widget = widgets[-1]

    if isinstance(widget, Confirm):
        return widget.respond(typer.confirm("Your answer", default=True))

    options = widget.options
    if not options:
        return None
    index = typer.prompt(
        f"Choose 1-{len(options)} (0 to skip)", type=int, default=0, show_default=False
    )
    if not 1 <= index <= len(options):
        return None
    return widget.select(index - 1)


@app.command()
def chat(
    prompt: str = typer.Argument(..., help="Message to send to the model"),
    model: str = typer.Option(
        None, "--model", "-m",
        help="LiteLLM model id (overrides the configured model).",
    ),
    config_path: Path = typer.Option(
        None, "--config", "-c",
        help="Configuration TOML (defaults to the bundled defaults.toml).",
    ),
    interactive: bool = typer.Option(
        True, "--interactive/--no-interactive",
        help="Answer choice and confirm widgets and continue the conversation.",
    ),
) -> None:
    """Chat with a model and render its reply live."""
    config = _load_config(config_path)
    model_config = config.model or ModelConfig(provider="openai", model="gpt-4o-mini")
    if model:
        model_config = model_config.model_copy(update={"model": model, "display_name": model})

    if model_config.api_key_env and not has_key(model_config.api_key_env):
        console.print(
            f"[yellow]Warning:[/yellow] {model_config.api_key_env} is not set; "
            "the provider may reject the request."
        )

    source = LiteLLMTokenSource(model_config)
    messages: list[dict[str, str]] = [{"role": "user", "content": prompt}]

    while True:
        events = LifecycleEmitter()
        failures = _track_failures(events)

        async def _run() -> StreamSession:
            with LiveStreamDisplay(console, title=f"[bold]{source.display_name}[/bold]") as display:
                session = create_session(
                    events=events,
                    config=config.stream,
                    ticks=AsyncioTicker(config.stream.frame_interval),
                    on_paint=display.paint,
                )
                await consume_token_stream(session, source.stream(messages), "litellm")
            return session

        try:
            session = asyncio.run(_run())
        except TransportError as exc:
            console.print(f"[red]Chat failed:[/red] {exc.message}")
            raise typer.Exit(1) from None

        _print_failures(failures)
        if source.usage:
            console.print(f"[dim]{source.usage.total_tokens:,} tokens[/dim]")

        if not interactive:
            return
        action = _prompt_action(session)
        if action is None:
            return
        messages.append({"role": "assistant", "content": session.get_full_text()})
        messages.append({"role": "user", "content": format_action_as_message(action)})
        console.print(f"[dim]› {messages[-1]['content']}[/dim]")


# ── components ───────────────────────────────────────────────────


@app.command()
def components() -> None:
    """Show the registered component types as a table."""
    registry = default_registry()

    table = Table(title="Registered Components", show_lines=True)
    table.add_column("Type", style="bold cyan")
    table.add_column("Category", style="dim")
    table.add_column("Props")
    table.add_column("Description")

    for name in registry.names():
        registration = registry.lookup(name)
        if registration is None:
            continue
        fields = registration.props_model.model_fields
        props = ", ".join(
            f"{key}*" if field.is_required() else key for key, field in fields.items()
        )
        table.add_row(name, registration.category.value, props, registration.description)

    console.print(table)
    console.print(f"\n[dim]{len(registry)} components registered (* = required)[/dim]")


# ── config ───────────────────────────────────────────────────────


@app.command("config")
def config_show(
    config_path: Path = typer.Option(
        None, "--config", "-c",
        help="Configuration TOML (defaults to the bundled defaults.toml).",
    ),
) -> None:
    """Show the effective stream and model configuration."""
    config = _load_config(config_path)

    table = Table(title="Stream Configuration", show_header=False, show_lines=True)
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    table.add_row("Config File", str(config_path or default_config_path()))
    table.add_row("Component Prefix", config.stream.component_prefix)
    table.add_row("Max JSON Size", f"{config.stream.max_json_size:,}")
    table.add_row("Max Info Length", str(config.stream.max_info_length))
    table.add_row("Show Cursor", str(config.stream.show_cursor))
    table.add_row("Cursor", config.stream.cursor_char)
    table.add_row("Frame Interval", f"{config.stream.frame_interval * 1000:.0f}ms")
    console.print(table)

    if config.model:
        model_table = Table(title="Chat Model", show_header=False)
        model_table.add_column("Setting", style="bold")
        model_table.add_column("Value")
        model_table.add_row("Provider", config.model.provider)
        model_table.add_row("Model", config.model.model)
        key_status = "[green]set[/green]" if has_key(config.model.api_key_env) else "[red]missing[/red]"
        model_table.add_row("API Key", f"{config.model.api_key_env} ({key_status})")
        model_table.add_row("Timeout", f"{config.model.timeout}s")
        if config.model.api_base:
            model_table.add_row("API Base", config.model.api_base)
        console.print()
        console.print(model_table)


# ── serve ────────────────────────────────────────────────────────


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind."),
    port: int = typer.Option(8420, "--port", "-p", help="Port to listen on."),
    config_path: Path = typer.Option(
        None, "--config", "-c",
        help="Configuration TOML (defaults to the bundled defaults.toml).",
    ),
) -> None:
    """Serve the render and chat-stream HTTP endpoints."""
    try:
        import uvicorn
    except ImportError:
        console.print(
            "[red]The server requires extra dependencies.[/red] "
            "Install with: pip install livellm[server]"
        )
        raise typer.Exit(1) from None

    from livellm.server import create_app

    config = _load_config(config_path)
    api = create_app(config.model, stream_config=config.stream)

    console.print(Panel(
        f"[bold]LiveLLM server[/bold] on http://{host}:{port}\n"
        f"[dim]POST /api/render · POST /api/chat/stream · GET /api/components[/dim]",
        border_style="blue",
        expand=False,
    ))
    uvicorn.run(api, host=host, port=port, log_level="warning")
