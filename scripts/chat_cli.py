#!/usr/bin/env python3
"""Interactive chat CLI for the Worldsmith agent."""

import json
import sys

import httpx
from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt


class ChatCLI:
    """Interactive chat interface that renders the streamed reply live."""

    def __init__(self, base_url: str = "http://localhost:8000", show_logs: bool = False):
        """Initialize chat CLI."""
        self.base_url = base_url
        self.show_logs = show_logs
        self.session_id: str | None = None
        self.console = Console()
        self.client = httpx.Client(timeout=120.0)

    def start(self) -> None:
        """Start the interactive chat session."""
        self.console.print(
            Panel.fit(
                "[bold blue]🌍 Worldsmith - Interactive Chat[/bold blue]\n"
                "Type your messages to chat with the world-building assistant.\n"
                "Commands: /help, /new, /history, /clear, /archive, /logs, /quit",
                border_style="blue",
            )
        )

        if not self._test_connection():
            self.console.print(f"[red]❌ Cannot connect to the service at {self.base_url}.[/red]")
            return

        self.console.print("[green]✅ Connected to Worldsmith[/green]\n")

        try:
            while True:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]")
                command = user_input.strip().lower()

                if command in ["/quit", "/exit", "quit", "exit"]:
                    break
                elif command == "/help":
                    self._show_help()
                elif command == "/new":
                    self.session_id = None
                    self.console.print("[yellow]🔄 Started a new session[/yellow]")
                elif command == "/history":
                    self._show_history()
                elif command == "/clear":
                    self._clear_history()
                elif command == "/archive":
                    self._archive_history()
                elif command == "/logs":
                    self.show_logs = not self.show_logs
                    self.console.print(f"[yellow]Agent logs {'on' if self.show_logs else 'off'}[/yellow]")
                elif command:
                    self._stream_message(user_input)

        except KeyboardInterrupt:
            pass
        finally:
            self.console.print("\n[yellow]👋 Goodbye![/yellow]")
            self.client.close()

    def _test_connection(self) -> bool:
        """Test connection to the service."""
        try:
            response = self.client.get(f"{self.base_url}/health")
        except httpx.HTTPError:
            return False
        return response.status_code == 200

    def _stream_message(self, message: str) -> None:
        """Send a message and render the chunk stream as it arrives."""
        payload = {"message": message}
        if self.session_id:
            payload["session_id"] = self.session_id

        text = ""
        try:
            with self.client.stream("POST", f"{self.base_url}/conversation/stream", json=payload) as response:
                if response.status_code != 200:
                    response.read()
                    self.console.print(f"[red]❌ API Error: {response.status_code} - {response.text}[/red]")
                    return

                self.session_id = response.headers.get("x-session-id", self.session_id)
                with Live(self._answer_panel(text), console=self.console, refresh_per_second=12) as live:
                    for line in response.iter_lines():
                        if not line.strip():
                            continue
                        chunk = json.loads(line)
                        chunk_type = chunk.get("type")

                        if chunk_type == "text_delta":
                            text += chunk["content"]
                            live.update(self._answer_panel(text))
                        elif chunk_type == "agent_log":
                            data = chunk.get("data", {})
                            if chunk.get("subType") == "node_enter" or data.get("info") == "stream fallback":
                                # A new model call or a fallback replaces the previous partial answer
                                text = ""
                                live.update(self._answer_panel(text))
                            if self.show_logs:
                                live.console.print(self._format_log(chunk))
                        elif chunk_type == "done":
                            live.update(self._answer_panel(text))
                        elif chunk_type == "stream_error":
                            live.update(self._error_panel(chunk.get("message", "Unknown error")))

        except httpx.HTTPError as e:
            self.console.print(f"[red]❌ Connection error: {e}[/red]")

    def _answer_panel(self, text: str) -> Panel:
        return Panel(
            Markdown(text or "…"),
            title="[bold green]🤖 Worldsmith[/bold green]",
            border_style="green",
            padding=(1, 2),
        )

    def _error_panel(self, message: str) -> Panel:
        return Panel(message, title="[bold red]Error[/bold red]", border_style="red")

    def _format_log(self, chunk: dict) -> str:
        sub_type = chunk.get("subType")
        name = chunk.get("nodeName")
        data = chunk.get("data", {})
        if sub_type == "tool_start":
            return f"[dim]🔧 {name}({json.dumps(data.get('input', {}))})[/dim]"
        if sub_type == "tool_end":
            return f"[dim]   ↳ {data.get('status')}: {str(data.get('output', ''))[:200]}[/dim]"
        return f"[dim]• {sub_type} {name}[/dim]"

    def _show_history(self) -> None:
        """Show the persisted history of the current session."""
        if not self._require_session():
            return
        response = self.client.get(f"{self.base_url}/history", params={"session_id": self.session_id, "limit": 20})
        if response.status_code != 200:
            self.console.print(f"[red]❌ API Error: {response.status_code} - {response.text}[/red]")
            return
        for record in response.json()["messages"]:
            speaker = "[cyan]You[/cyan]" if record["role"] == "user" else "[green]Worldsmith[/green]"
            self.console.print(f"{speaker}: {record['content']}")

    def _clear_history(self) -> None:
        """Delete the history of the current session."""
        if not self._require_session():
            return
        response = self.client.delete(f"{self.base_url}/history/{self.session_id}")
        if response.status_code == 200:
            self.console.print(f"[yellow]🗑  Deleted {response.json()['deleted']} messages[/yellow]")
        else:
            self.console.print(f"[red]❌ API Error: {response.status_code} - {response.text}[/red]")

    def _archive_history(self) -> None:
        """Fold older turns into long-term memory."""
        if not self._require_session():
            return
        response = self.client.post(f"{self.base_url}/history/{self.session_id}/archive")
        if response.status_code != 200:
            self.console.print(f"[red]❌ API Error: {response.status_code} - {response.text}[/red]")
            return
        data = response.json()
        self.console.print(
            Panel(
                Markdown(data["summary"] or "_(empty)_"),
                title=f"[yellow]📚 Long-term memory ({data['archived']} messages archived)[/yellow]",
                border_style="yellow",
            )
        )

    def _require_session(self) -> bool:
        if self.session_id:
            return True
        self.console.print("[yellow]No session yet, send a message first[/yellow]")
        return False

    def _show_help(self) -> None:
        """Show help information."""
        help_text = """
[bold]Available Commands:[/bold]
• /help - Show this help message
• /new - Start a new session
• /history - Show the persisted messages of this session
• /clear - Delete this session's history and long-term memory
• /archive - Compress older turns into long-term memory
• /logs - Toggle agent and tool activity output
• /quit or /exit - Exit the chat

[bold]Example Conversation:[/bold]
1. "Let's create a desert kingdom called Vashir"
2. "What is 1234 plus 4321?" (uses the add tool)
3. "Summarize what we have established so far"
        """

        self.console.print(Panel(help_text.strip(), title="[cyan]❓ Help[/cyan]", border_style="cyan"))


def main():
    """Main entry point for the chat CLI."""
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"

    chat = ChatCLI(base_url)
    chat.start()


if __name__ == "__main__":
    main()
