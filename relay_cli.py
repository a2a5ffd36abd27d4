"""
A terminal chat client for the relay service.
"""
import json
import uuid
from typing import Dict, Optional

import requests
import typer
from prompt_toolkit import prompt as ptk_prompt
from prompt_toolkit.formatted_text import FormattedText
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.spinner import Spinner
from rich.table import Table
from rich.text import Text

# --- Configuration ---
API_BASE_URL = "http://127.0.0.1:8080/api/v1"


console = Console()
app = typer.Typer(
    name="relay-cli",
    help="Chat with a remote agent through the relay service.",
    add_completion=False,
)


class TurnView:
    """Renders one turn's directives; `update` edits a message in place."""

    def __init__(self):
        self.messages: Dict[str, str] = {}
        self.order: list = []
        self.typing = False

    def apply(self, event: dict) -> bool:
        """Apply a directive. Returns False once the turn is done."""
        evt_type = event.get("type")
        data = event.get("data", {})
        if evt_type == "create":
            message_id = data.get("message_id")
            self.messages[message_id] = data.get("text", "")
            self.order.append(("message", message_id))
            self.typing = False
        elif evt_type == "update":
            message_id = data.get("message_id")
            if message_id in self.messages:
                self.messages[message_id] = data.get("text", "")
            self.typing = False
        elif evt_type == "notice":
            self.order.append(("notice", data.get("text", "")))
            self.typing = False
        elif evt_type == "typing":
            self.typing = True
        elif evt_type == "done":
            self.typing = False
            if data.get("error"):
                self.order.append(("error", data["error"]))
            return False
        return True

    def render(self):
        items = []
        for kind, value in self.order:
            if kind == "message":
                items.append(Panel(Text(self.messages[value], style="green"), title="Agent", title_align="left", border_style="green"))
            elif kind == "notice":
                items.append(Text(value, style="yellow"))
            else:
                items.append(Panel(f"Error: {value}", title="Error", border_style="bold red"))
        if self.typing:
            items.append(Spinner("dots", text="[dim]Agent is working...[/dim]"))
        return Group(*items)


def get_session(conversation_id: str) -> Optional[dict]:
    """Fetches the stored sign-in state for a conversation."""
    try:
        response = requests.get(f"{API_BASE_URL}/sessions/{conversation_id}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()
    except requests.RequestException as e:
        console.print(f"[bold red]Error:[/bold red] Could not connect to the service at {API_BASE_URL}.")
        console.print("Please ensure the relay service is running: [bold]python -m relay_service.app[/bold]")
        console.print(f"Details: {e}")
        raise typer.Exit(1)


def delete_session(conversation_id: str):
    """Signs a conversation out on the server."""
    try:
        response = requests.delete(f"{API_BASE_URL}/sessions/{conversation_id}")
        if response.status_code == 404:
            console.print("[yellow]No stored session for this conversation.[/yellow]")
            return
        response.raise_for_status()
        console.print("✅ Session deleted.")
    except requests.RequestException as e:
        console.print(f"[bold red]Error deleting session {conversation_id}:[/bold red] {e}")


def send_turn(conversation_id: str, text: str, token: Optional[str], debug: bool) -> None:
    """Posts one message and renders the directive stream until done."""
    view = TurnView()
    with requests.post(
        f"{API_BASE_URL}/conversations/{conversation_id}/messages",
        json={"text": text, "token": token},
        stream=True,
    ) as response:
        response.raise_for_status()
        with Live(view.render(), console=console, refresh_per_second=10) as live:
            for line in response.iter_lines():
                if not line:
                    continue
                try:
                    event = json.loads(line)
                except json.JSONDecodeError:
                    if debug:
                        console.print(f"[red]Error parsing JSON: {line.decode('utf-8', errors='replace')}[/red]")
                    continue
                if debug:
                    console.print(f"[dim]Received directive: {event}[/dim]")
                more = view.apply(event)
                live.update(view.render())
                if not more:
                    break


@app.command()
def main(
    conversation_id: Optional[str] = typer.Option(
        None,
        "--conversation",
        "-c",
        help="Conversation to resume. A new one is started if omitted.",
    ),
    token: Optional[str] = typer.Option(
        None,
        "--token",
        "-t",
        envvar="RELAY_TOKEN",
        help="Access token to sign in with.",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Show every directive received from the service.",
    ),
):
    """
    Main entry point for the relay CLI.
    """
    conversation_id = conversation_id or str(uuid.uuid4())
    session = get_session(conversation_id)

    info_table = Table.grid(padding=1, expand=True)
    info_table.add_column()
    info_table.add_column(justify="right")
    info_table.add_row(
        f"Conversation: [yellow]{conversation_id}[/yellow]",
        "Type [bold cyan]login[/bold cyan], [bold cyan]logout[/bold cyan] or [bold cyan]exit[/bold cyan]",
    )
    info_table.add_row(
        f"Signed in: {'[bold green]yes[/bold green]' if session else '[dim]no[/dim]'}",
        "Type [bold cyan]\\forget[/bold cyan] to delete the stored session",
    )
    info_table.add_row(
        f"Debug mode: {'[bold green]enabled[/bold green]' if debug else '[dim]disabled[/dim]'}",
        "Type [bold cyan]\\quit[/bold cyan] to leave",
    )
    console.print(Panel(info_table, title="Relay", border_style="dim"))

    while True:
        try:
            prompt_message = [
                ('bold cyan', 'You '),
                ('', '(Alt+Enter for newline)\n')
            ]
            user_prompt = ptk_prompt(FormattedText(prompt_message), multiline=True)

            stripped_prompt = user_prompt.strip().lower()
            if stripped_prompt in ["\\exit", "\\quit"]:
                console.print("👋 Goodbye!")
                break
            if stripped_prompt == "\\forget":
                delete_session(conversation_id)
                continue
            if not stripped_prompt:
                continue

            send_turn(conversation_id, user_prompt, token, debug)

        except requests.RequestException as e:
            console.print(f"\n[bold red]Error:[/bold red] Could not get response from server. {e}")
            continue
        except (KeyboardInterrupt, EOFError):
            console.print("👋 Goodbye!")
            break
        finally:
            console.rule()


if __name__ == "__main__":
    app()
