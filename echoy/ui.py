"""Display capability: an abstract leveled writer and its rich implementation."""

import threading

from rich import box
from rich.console import Console, Group
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.text import Text

from echoy import __version__

LEVELS = ("primary", "secondary", "info", "success", "warning", "error", "subtle")


class Display:
    """
    Abstract writer with leveled print operations.

    Subclasses implement `write` and `clear`; the composite operations below
    fall back to plain leveled writes and may be overridden for richer output.
    """

    def write(self, level: str, text: str, end: str = "\n"):
        raise NotImplementedError

    def clear(self):
        raise NotImplementedError

    def primary(self, text: str, end: str = "\n"):
        self.write("primary", text, end)

    def secondary(self, text: str, end: str = "\n"):
        self.write("secondary", text, end)

    def info(self, text: str, end: str = "\n"):
        self.write("info", text, end)

    def success(self, text: str, end: str = "\n"):
        self.write("success", text, end)

    def warning(self, text: str, end: str = "\n"):
        self.write("warning", text, end)

    def error(self, text: str, end: str = "\n"):
        self.write("error", text, end)

    def subtle(self, text: str, end: str = "\n"):
        self.write("subtle", text, end)

    # <~~COMPOSITES~~>
    def welcome(self, session_id, assistant_name: str, model: str):
        self.info(f"\n🗨️ Chat session started with {assistant_name} ({model}).")
        self.subtle(f"Session ID: {session_id}")
        self.secondary(
            "Type your message and press Enter. Type 'exit' to end the session."
        )

    def thinking(self, frame: str):
        self.warning(f"\r{frame}", end="")

    def clear_thinking(self):
        self.warning("\r                \r", end="")

    def stream_fragment(self, text: str):
        self.secondary(text, end="")

    def end_stream(self):
        self.secondary("")

    def render_reply(self, text: str):
        self.secondary("AI > ", end="")
        self.subtle(text)

    def error_panel(self, title: str, detail: str):
        self.error(f"{title}: {detail}")

    def status_panel(self, turns: int, tokens: int):
        self.subtle(f"Turn: {turns} | Tokens: {tokens}")


class UIConstructor:
    """Constructs and returns various UI objects"""

    def __init__(self, code_theme: str = "monokai"):
        self.code_theme = code_theme

    def welcome_panel_constructor(self, session_id, assistant_name: str, model: str) -> Panel:
        intro_text = Text.assemble(
            ("Assistant: ", "bold sandy_brown"),
            (f"{assistant_name}"),
            ("\nModel: ", "bold sandy_brown"),
            (f"{model}"),
            ("\nSession ID: ", "bold sandy_brown"),
            (f"{session_id}", "dim"),
        )
        return Panel(
            intro_text,
            title=Text(f"🗨️ Echoy {__version__}", "bold medium_orchid"),
            title_align="left",
            border_style="medium_orchid",
            box=box.HORIZONTALS,
            padding=(0, 0),
        )

    def response_panel_constructor(self, content: str) -> Panel:
        return Panel(
            Markdown(content, code_theme=self.code_theme),
            title=Text("💬 Response", style="bold green"),
            title_align="left",
            border_style="green",
            style="default",
            width=None,
            box=box.HORIZONTALS,
            padding=(0, 0),
        )

    def thinking_constructor(self, frame: str) -> Text:
        return Text(frame, style="bold medium_orchid")

    def error_panel_constructor(self, error: str, exception: str) -> Panel:
        return Panel(
            exception,
            title=Text(f"❌ {error}", style="bold red"),
            title_align="left",
            border_style="red",
            expand=False,
        )

    def status_panel_constructor(self, turns: int, tokens: int) -> Panel:
        status_text = Text.assemble(
            (" ", "cyan"),
            (f"Turn: {turns}"),
            (" | "),
            (f"Tokens: {tokens}"),
        )
        return Panel(
            status_text,
            border_style="dim",
            style="dim",
            expand=False,
        )


class RichDisplay(Display):
    """
    Terminal display built on rich.

    A turn is drawn in one Live region holding the streamed response panel and
    the thinking line; the ticker and the session thread both update it.
    """

    STYLES = {
        "primary": "bold seagreen",
        "secondary": "medium_orchid",
        "info": "cyan",
        "success": "green",
        "warning": "yellow",
        "error": "bold red",
        "subtle": "dim",
    }

    def __init__(
        self,
        console: Console | None = None,
        ui: UIConstructor | None = None,
        refresh_rate: int = 30,
    ):
        self.console = console or Console()
        self.ui = ui or UIConstructor()
        self.refresh_rate = refresh_rate
        self.live: Live | None = None
        self._frame: str | None = None
        self._streamed: list[str] = []
        self._lock = threading.RLock()

    def write(self, level: str, text: str, end: str = "\n"):
        self.console.print(
            text, style=self.STYLES.get(level, ""), end=end, markup=False, highlight=False
        )

    def clear(self):
        self.console.clear()

    def welcome(self, session_id, assistant_name: str, model: str):
        self.console.print(
            self.ui.welcome_panel_constructor(session_id, assistant_name, model)
        )
        self.console.print(
            Markdown("Type your message and press Enter. Type `exit` to end the session.")
        )
        self.console.print()

    # <~~LIVE REGION~~>
    def _renderables(self) -> Group:
        parts = []
        if self._streamed:
            parts.append(self.ui.response_panel_constructor("".join(self._streamed)))
        if self._frame:
            parts.append(self.ui.thinking_constructor(self._frame))
        return Group(*parts)

    def _update_live(self):
        if self.live is None:
            self.live = Live(
                Group(),
                console=self.console,
                screen=False,
                refresh_per_second=self.refresh_rate,
            )
            self.live.start()
        self.live.update(self._renderables())

    def _stop_live(self):
        if self.live:
            self.live.update(self._renderables(), refresh=True)
            self.live.stop()
            self.live = None

    def thinking(self, frame: str):
        with self._lock:
            self._frame = frame
            self._update_live()

    def clear_thinking(self):
        with self._lock:
            self._frame = None
            if self._streamed:
                self._update_live()
            else:
                self._stop_live()

    def stream_fragment(self, text: str):
        with self._lock:
            self._streamed.append(text)
            self._update_live()

    def end_stream(self):
        with self._lock:
            self._stop_live()
            self._streamed.clear()
        self.console.print()

    # <~~PANELS~~>
    def render_reply(self, text: str):
        self.console.print(self.ui.response_panel_constructor(text))
        self.console.print()

    def error_panel(self, title: str, detail: str):
        with self._lock:
            self._stop_live()
            self._streamed.clear()
        self.console.print(self.ui.error_panel_constructor(title, detail))
        self.console.print()

    def status_panel(self, turns: int, tokens: int):
        self.console.print(self.ui.status_panel_constructor(turns, tokens))
        self.console.print()
