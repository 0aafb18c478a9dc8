#!/usr/bin/env python3

# <~~~~~~~~~~>
#    ECHOY
# <~~~~~~~~~~>

import sys

from rich.console import Console
from rich.live import Live
from rich.spinner import Spinner

from echoy.chat_service import ChatService
from echoy.config import Config
from echoy.context import Context
from echoy.errors import InputError
from echoy.globals import init_logger, log_exception, setup_keyring_backend
from echoy.history import InMemoryHistoryStore
from echoy.llm import build_generation_client
from echoy.session import Session
from echoy.ui import RichDisplay


def build_session(config: Config, display: RichDisplay) -> Session:
    """Wires the store, backend, service and display into a session."""
    history = InMemoryHistoryStore()
    generator = build_generation_client(config)
    service = ChatService(
        generator,
        history,
        context_policy=config.context_policy,
        partial_policy=config.partial_stream_policy,
    )
    return Session(config, display, service, history)


# <~~MAIN FLOW~~>
def main():
    console = Console()
    display = RichDisplay(console)
    ctx = Context()
    try:
        # Start a spinner, mostly for cold starts
        spinner = Spinner(
            "moon",
            text="[bold medium_orchid]Launching Echoy...[/bold medium_orchid]",
        )
        with Live(spinner, refresh_per_second=8, console=console, transient=True):
            config = Config()
            config.load()  # Creates the config file on first run
            init_logger(config.log_level)
            setup_keyring_backend()
            session = build_session(config, display)
        session.start(ctx)
    except KeyboardInterrupt:
        console.print("[yellow]✨ Farewell![/yellow]\n")
    except InputError as e:
        log_exception(e, "Input stream failed")
        display.error_panel("INPUT ERROR", f"{e}")
        sys.exit(1)
    except Exception as e:
        log_exception(e, "Critical startup error")  # Log any critical errors
        display.error_panel("CRITICAL ERROR", f"{e}")
        sys.exit(1)
    finally:
        ctx.cancel()


if __name__ == "__main__":
    main()
