"""Command-line front end for the search assistant."""

from __future__ import annotations

import asyncio
import logging

import click
from prompt_toolkit import PromptSession
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from search_assistant.config import AssistantConfig, load_config
from search_assistant.errors import AssistantError
from search_assistant.prompts import build_system_prompt
from search_assistant.providers.copilot import CopilotProvider
from search_assistant.session import AssistantContext
from search_assistant.types import AgentEvent, ChatMessage, EventType

console = Console()


def _copilot(ctx: AssistantContext) -> CopilotProvider:
    provider = ctx.provider
    if not isinstance(provider, CopilotProvider):
        raise click.ClickException(f"Provider {provider.id} does not support this command")
    return provider


def _show_tool_event(event: AgentEvent) -> None:
    if event.type == EventType.TOOL_EXECUTING:
        console.print(f"[dim]> {event.data['tool']} {event.data['arguments']}[/dim]")
    elif event.type == EventType.TURN_LIMIT:
        console.print("[yellow]Tool iteration limit reached[/yellow]")


def _print_reply(messages: list[ChatMessage]) -> None:
    if messages and messages[-1].role == "assistant":
        console.print(Markdown(messages[-1].content))


@click.group()
@click.option("--config", "-c", "config_path", default=None,
              help="Path to search_assistant.yaml")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """Azure AI Search assistant."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)
    try:
        ctx.obj = load_config(config_path)
    except AssistantError as e:
        raise click.ClickException(str(e)) from e


@main.command()
@click.option("--mode", type=click.Choice(["device_code", "browser"]), default="device_code",
              show_default=True, help="Sign-in flow")
@click.pass_obj
def login(config: AssistantConfig, mode: str) -> None:
    """Sign in with the device authorization flow."""

    async def _run() -> None:
        async with AssistantContext(config) as ctx:
            provider = _copilot(ctx)
            result = await provider.connect(mode)  # type: ignore[arg-type]
            console.print(Panel(
                f"Open [bold]{result.verification_uri}[/bold]\n"
                f"and enter the code [bold cyan]{result.user_code}[/bold cyan]",
                title=result.status_message,
            ))
            if mode == "browser" and result.open_url:
                click.launch(result.open_url)
            with console.status("Waiting for approval..."):
                await provider.complete_sign_in(result.to_session(), mode)  # type: ignore[arg-type]
            console.print("[green]Signed in.[/green]")

    try:
        asyncio.run(_run())
    except AssistantError as e:
        raise click.ClickException(str(e)) from e


@main.command()
@click.pass_obj
def token(config: AssistantConfig) -> None:
    """Store a personal GitHub token."""
    value = click.prompt("GitHub token", hide_input=True)

    async def _run() -> None:
        async with AssistantContext(config) as ctx:
            _copilot(ctx).store_token(value)

    try:
        asyncio.run(_run())
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    console.print("[green]Token stored.[/green]")


@main.command()
@click.pass_obj
def logout(config: AssistantConfig) -> None:
    """Forget the stored credential."""

    async def _run() -> None:
        ctx = AssistantContext(config)
        await ctx.sign_out()

    asyncio.run(_run())
    console.print("Signed out.")


@main.command()
@click.pass_obj
def models(config: AssistantConfig) -> None:
    """List the chat models available to the signed-in account."""

    async def _run() -> list[dict]:
        async with AssistantContext(config) as ctx:
            return await ctx.provider.list_models()

    try:
        entries = asyncio.run(_run())
    except AssistantError as e:
        raise click.ClickException(str(e)) from e

    table = Table(title="Models")
    table.add_column("id")
    table.add_column("name")
    table.add_column("vendor", style="dim")
    for entry in entries:
        table.add_row(
            str(entry.get("id", "")),
            str(entry.get("name", "")),
            str(entry.get("vendor", "")),
        )
    console.print(table)


@main.command()
@click.argument("text")
@click.option("--model", "-m", default=None, help="Model id")
@click.pass_obj
def ask(config: AssistantConfig, text: str, model: str | None) -> None:
    """Ask a single question."""

    async def _run() -> list[ChatMessage]:
        async with AssistantContext(config) as ctx:
            settings = ctx.default_settings(build_system_prompt())
            if model:
                settings.model = model
            return await ctx.send([], text, settings)

    _print_reply(asyncio.run(_run()))


@main.command()
@click.option("--model", "-m", default=None, help="Model id")
@click.pass_obj
def chat(config: AssistantConfig, model: str | None) -> None:
    """Interactive chat.  /clear resets the conversation, /exit quits."""

    async def _run() -> None:
        session: PromptSession[str] = PromptSession()
        async with AssistantContext(config) as ctx:
            ctx.event_bus.subscribe("*", _show_tool_event)
            settings = ctx.default_settings(build_system_prompt())
            if model:
                settings.model = model
            conversation: list[ChatMessage] = []
            while True:
                try:
                    text = await session.prompt_async("> ")
                except (EOFError, KeyboardInterrupt):
                    break
                text = text.strip()
                if not text:
                    continue
                if text in ("/exit", "/quit"):
                    break
                if text == "/clear":
                    conversation = []
                    console.print("[dim]Conversation cleared[/dim]")
                    continue
                with console.status("Thinking..."):
                    conversation = await ctx.send(conversation, text, settings)
                _print_reply(conversation)

    asyncio.run(_run())


if __name__ == "__main__":
    main()
