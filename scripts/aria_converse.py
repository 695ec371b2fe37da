import asyncio
import logging
import sys

from rich import print

from aria_agents import AriaAgent, describe_failure
from aria_runtime import BrowserSettings, configure_logging


async def main(transcripts):
    configure_logging(level="INFO")
    settings = BrowserSettings.from_env()
    settings.require_credentials()
    agent = AriaAgent.from_settings(settings)

    try:
        print(f"[bold]Live view:[/bold] {await agent.get_session_view_url()}")
        for transcript in transcripts:
            try:
                result = await agent.converse("cli", transcript)
            except Exception as e:
                message, status = describe_failure(e)
                logging.exception("Command failed: %s", transcript)
                print(f"[red]{status}[/red] {message}")
                continue
            if result.type == "clarify":
                print(f"[yellow]Clarify:[/yellow] {result.question}")
            else:
                print(f"[green]Done:[/green] {result.result}")
    finally:
        await agent.aclose()


if __name__ == "__main__":
    commands = sys.argv[1:] or ["Go to Wikipedia", "Get the main headline from this page"]
    asyncio.run(main(commands))
