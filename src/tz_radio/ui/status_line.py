"""One-line session status strip."""

from __future__ import annotations

from rich.text import Text
from textual.widgets import Static

from tz_radio.config_store import RadioConfig
from tz_radio.services.session_state import SessionState

_LABEL_STYLE = "bold #F2C94C"


class StatusLine(Static):
    DEFAULT_CSS = """
    StatusLine {
        height: 1;
        width: 1fr;
        overflow: hidden;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__("", **kwargs)
        self._state: SessionState | None = None
        self._config = RadioConfig()
        self._runtime_notice: str | None = None

    def update_state(self, state: SessionState, config: RadioConfig) -> None:
        self._state = state
        self._config = config
        self.update(self.render_status())

    def set_runtime_notice(self, notice: str | None) -> None:
        self._runtime_notice = notice.strip() if notice else None
        self.update(self.render_status())

    def render_status(self) -> Text:
        state = self._state or SessionState()
        config = self._config
        status_text = Text()
        if self._runtime_notice:
            status_text.append("Notice: ", style="bold #FF5A36")
            status_text.append(self._runtime_notice)
            status_text.append(" | ")
        status_text.append("Status: ", style=_LABEL_STYLE)
        status_text.append(state.status)
        status_text.append(" | ")
        status_text.append("Account: ", style=_LABEL_STYLE)
        status_text.append("online" if state.logged_in else "offline")
        status_text.append(" | ")
        status_text.append("Keep stations: ", style=_LABEL_STYLE)
        status_text.append("off" if config.flush_them else "on")
        status_text.append(" | ")
        status_text.append("Sort: ", style=_LABEL_STYLE)
        status_text.append(config.sort_order)
        if state.error:
            status_text.append(" | ")
            status_text.append("Error: ", style="bold #FF5A36")
            status_text.append(state.error.splitlines()[0])
        return status_text
