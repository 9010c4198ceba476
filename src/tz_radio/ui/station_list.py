"""Selectable station list."""

from __future__ import annotations

from collections.abc import Sequence

from textual.widgets import OptionList
from textual.widgets.option_list import Option

from tz_radio.services.models import Station


class StationList(OptionList):
    def set_stations(
        self, stations: Sequence[Station], current_station_id: str | None = None
    ) -> None:
        """Replace the options, keeping the highlight on the active station."""
        self.clear_options()
        self.add_options(
            [Option(station.display_name, id=station.id) for station in stations]
        )
        for index, station in enumerate(stations):
            if station.id == current_station_id:
                self.highlighted = index
                break
