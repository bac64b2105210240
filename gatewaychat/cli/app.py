"""
Main CLI application for gatewaychat.

Usage:
    gatewaychat chat [--model NAME] [--profile NAME] [--config PATH]
    gatewaychat tools list|info
    gatewaychat config show|validate
    gatewaychat version
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from gatewaychat.config import GatewayChatConfig, find_config_file, load_config, validate_config
from gatewaychat.tools.builtin import register_builtin_tools
from gatewaychat.tools.registry import ToolRegistry

app = typer.Typer(name="gatewaychat", help="Streaming chat client for an LLM gateway")
tools_app = typer.Typer(help="Tool management")
config_app = typer.Typer(help="Configuration management")

app.add_typer(tools_app, name="tools")
app.add_typer(config_app, name="config")

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load(config: Path | None, profile: str | None, overrides: dict | None = None) -> GatewayChatConfig:
    try:
        return load_config(config, profile=profile, cli_overrides=overrides)
    except (KeyError, ValueError) as e:
        console.print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(1)


def build_registry(cfg: GatewayChatConfig) -> ToolRegistry:
    registry = ToolRegistry()
    register_builtin_tools(registry, disabled=set(cfg.tools.disabled))
    registry.load_plugins(enabled=cfg.tools.plugins)
    return registry


def _setup_stack(cfg: GatewayChatConfig):
    """Wire up the full stack for chat."""
    from gatewaychat.cli.chat import ChatHandler, ConsoleMessageStore
    from gatewaychat.cli.output import OutputFormatter
    from gatewaychat.llm.client import ChatCompletionsClient
    from gatewaychat.orchestrator.core import Orchestrator
    from gatewaychat.orchestrator.session import SessionController
    from gatewaychat.tools.executor import ToolExecutor

    registry = build_registry(cfg)
    store = ConsoleMessageStore(OutputFormatter(console))
    store.create_conversation()

    client = ChatCompletionsClient(
        base_url=cfg.gateway.base_url,
        api_key=cfg.gateway.api_key(),
        timeout=float(cfg.gateway.timeout_seconds),
        cookies=cfg.gateway.cookies,
    )
    orchestrator = Orchestrator(
        client=client,
        store=store,
        executor=ToolExecutor(registry, tool_timeout=float(cfg.streaming.tool_timeout_seconds)),
        max_iterations=cfg.streaming.max_iterations,
        update_window=cfg.streaming.update_throttle_ms / 1000,
    )
    controller = SessionController(
        orchestrator,
        store,
        registry=registry,
        enabled_tools=cfg.tools.enabled or None,
        system_prompt=cfg.prompt.system_prompt,
        include_formatting_guide=cfg.prompt.include_formatting_guide,
    )
    return ChatHandler(controller, registry, cfg.gateway.model, console=console)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

ConfigOption = typer.Option(None, "--config", "-c", help="Path to a YAML config file")
ProfileOption = typer.Option(None, help="Config profile name")


@app.command()
def chat(
    model: Optional[str] = typer.Option(None, help="Model to chat with"),
    profile: Optional[str] = ProfileOption,
    config: Optional[Path] = ConfigOption,
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level"),
):
    """Start an interactive chat session."""
    overrides = {}
    if model:
        overrides["gateway.model"] = model
    if log_level:
        overrides["logging.level"] = log_level
    cfg = _load(config, profile, overrides)
    _setup_logging(cfg.logging.level)

    handler = _setup_stack(cfg)
    asyncio.run(handler.run_loop())


@tools_app.command("list")
def tools_list(
    profile: Optional[str] = ProfileOption,
    config: Optional[Path] = ConfigOption,
):
    """List registered tools."""
    from gatewaychat.cli.output import OutputFormatter

    cfg = _load(config, profile)
    registry = build_registry(cfg)
    enabled = set(cfg.tools.enabled) if cfg.tools.enabled else None
    OutputFormatter(console).format_tool_list(registry.list(), enabled)


@tools_app.command("info")
def tools_info(
    tool_name: str = typer.Argument(..., help="Tool name"),
    profile: Optional[str] = ProfileOption,
    config: Optional[Path] = ConfigOption,
):
    """Show tool details and schema."""
    from gatewaychat.cli.output import OutputFormatter

    registry = build_registry(_load(config, profile))
    tool = registry.get(tool_name)
    if not tool:
        console.print(f"[red]Tool not found:[/red] {tool_name}")
        raise typer.Exit(1)

    OutputFormatter(console).format_tool_info(tool)


@config_app.command("show")
def config_show(
    profile: Optional[str] = ProfileOption,
    config: Optional[Path] = ConfigOption,
):
    """Show effective config."""
    from gatewaychat.cli.output import OutputFormatter

    cfg = _load(config, profile)
    OutputFormatter(console).format_config(cfg.to_dict())


@config_app.command("validate")
def config_validate(
    profile: Optional[str] = ProfileOption,
    config: Optional[Path] = ConfigOption,
):
    """Validate config and report any problems."""
    config_path = config or find_config_file()
    cfg = _load(config_path, profile)
    problems = validate_config(cfg)
    if problems:
        console.print("[red]Config validation failed:[/red]")
        for problem in problems:
            console.print(f"  - {problem}")
        raise typer.Exit(1)

    console.print("[green]Config is valid.[/green]")
    if config_path:
        console.print(f"  Loaded from: {config_path}")
    else:
        console.print("  [dim]No config file found, using defaults.[/dim]")
    console.print(f"  Gateway: {cfg.gateway.base_url} ({cfg.gateway.model})")
    console.print(f"  Max tool iterations: {cfg.streaming.max_iterations}")


@app.command()
def version():
    """Show version."""
    console.print("gatewaychat v0.1.0")


def main():
    app()


if __name__ == "__main__":
    main()
