"""Interactive chat session handler."""

from __future__ import annotations

import asyncio

from rich.console import Console

from parley.cli.attachments import ATTACH_PREFIX, AttachmentError, attach_file
from parley.cli.output import OutputFormatter
from parley.errors import ChatError
from parley.llm.client import ChatClient
from parley.llm.types import (
    Content,
    ContentDelta,
    ContentPart,
    ReasoningDelta,
    TextPart,
    UsageDelta,
)


class ChatHandler:
    """
    Manages the interactive chat loop.

    Handles streaming output, file attachments and inline commands.  A failed
    request is reported and the session carries on.
    """

    def __init__(
        self,
        client: ChatClient,
        console: Console | None = None,
        stream: bool = True,
        show_reasoning: bool = False,
        show_token_usage: bool = False,
    ) -> None:
        self.client = client
        self.console = console or Console()
        self.formatter = OutputFormatter(self.console)
        self.stream = stream
        self.show_reasoning = show_reasoning
        self.show_token_usage = show_token_usage
        self.pending_attachments: list[ContentPart] = []
        self._running = True

    def handle_command(self, command: str) -> bool:
        """
        Handle inline commands. Returns True if the command was handled.
        """
        cmd = command.strip().split(None, 1)[0].lower()

        if cmd == "/quit":
            self._running = False
            self.console.print("[dim]Goodbye.[/dim]")
            return True

        if cmd == "/reset":
            self.client.reset()
            self.pending_attachments.clear()
            self.formatter.info("Conversation reset.")
            return True

        if cmd == "/help":
            self.console.print(
                "  [bold]Commands:[/bold]\n"
                "  #file:PATH - Attach an image or PDF to the next message\n"
                "  /reset     - Forget the conversation so far\n"
                "  /quit      - Exit the chat\n"
                "  /help      - Show this help\n"
            )
            return True

        return False

    def build_request(self, line: str) -> Content:
        """Combine queued attachments with the typed text."""
        if not self.pending_attachments:
            return line
        parts = self.pending_attachments + [TextPart(line)]
        self.pending_attachments = []
        return parts

    async def handle_line(self, line: str) -> None:
        if line.startswith(ATTACH_PREFIX):
            path = line[len(ATTACH_PREFIX):].strip()
            try:
                self.pending_attachments.append(attach_file(path))
            except AttachmentError as e:
                self.formatter.error(e)
            else:
                self.formatter.info(f"File attached: {path}")
            return

        if line.startswith("/") and self.handle_command(line):
            return

        request = self.build_request(line)
        if self.stream:
            await self.handle_completion_streaming(request)
        else:
            await self.handle_completion(request)

    async def handle_completion(self, request: Content) -> None:
        try:
            completion = await self.client.request_completion(request)
        except ChatError as e:
            self.formatter.error(e)
            return

        if self.show_reasoning and completion.reasoning:
            self.formatter.reasoning(completion.reasoning)
        self.formatter.response(completion.response)
        if self.show_token_usage:
            self.formatter.token_usage(completion.usage)
            self.console.print()

    async def handle_completion_streaming(self, request: Content) -> None:
        last = None

        try:
            async for delta in self.client.stream_completion(request):
                if isinstance(delta, ReasoningDelta):
                    if self.show_reasoning:
                        if last is not ReasoningDelta:
                            self.formatter.reasoning_header()
                        self.formatter.fragment(delta.text)
                elif isinstance(delta, ContentDelta):
                    if last is not ContentDelta:
                        self.console.print()
                        self.formatter.assistant_header()
                    self.formatter.fragment(delta.text)
                elif isinstance(delta, UsageDelta):
                    if self.show_token_usage:
                        self.console.print("\n")
                        self.formatter.token_usage(delta.usage)
                last = type(delta)
        except ChatError as e:
            self.console.print()
            self.formatter.error(e)

        self.console.print("\n")

    async def run_loop(self) -> None:
        """Main interactive loop."""
        self.console.print(
            "[bold]parley[/bold] - chat completions client\n"
            "[dim]Type /help for commands, /quit to exit.[/dim]\n"
        )

        while self._running:
            self.formatter.prompt()
            try:
                line = await asyncio.get_running_loop().run_in_executor(
                    None, lambda: input().strip()
                )
            except (EOFError, KeyboardInterrupt):
                self.console.print("\n[dim]Goodbye.[/dim]")
                break

            if not line:
                continue

            await self.handle_line(line)
