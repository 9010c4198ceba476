"""Read-only view of the shared playback queue."""

from __future__ import annotations

from collections.abc import Sequence

from rich.text import Text
from textual.widgets import Static

from tz_radio.services.models import Track


def render_queue(
    queue: Sequence[Track], current_uri: str | None, active_station_id: str | None
) -> Text:
    """Render queue rows; the current row is marked, active-station rows tinted."""
    text = Text()
    if not queue:
        text.append("Queue is empty", style="dim")
        return text
    for index, track in enumerate(queue):
        if index:
            text.append("\n")
        marker = ">" if track.uri == current_uri else " "
        style = ""
        if track.uri == current_uri:
            style = "bold #2DD4BF"
        elif active_station_id and track.station_id == active_station_id:
            style = "#A0AEC0"
        elif not track.is_station_track:
            style = "italic dim"
        title = track.title or track.uri
        artist = f" - {track.artist}" if track.artist else ""
        text.append(f"{marker}{index + 1:>3} {title}{artist}", style=style)
    return text


class QueuePane(Static):
    DEFAULT_CSS = """
    QueuePane {
        height: 1fr;
        overflow-y: auto;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__("Queue is empty", **kwargs)
        self.row_count = 0

    def update_queue(
        self,
        queue: Sequence[Track],
        current_uri: str | None,
        active_station_id: str | None,
    ) -> None:
        self.row_count = len(queue)
        self.update(render_queue(queue, current_uri, active_station_id))
