from __future__ import annotations

from typing import Any, Protocol


class Control(Protocol):
    """One physical key or dial on the surface.

    Rendering calls are fire-and-forget: implementations queue them and never
    block the caller.
    """

    @property
    def id(self) -> str:
        ...

    @property
    def is_dial(self) -> bool:
        ...

    def set_title(self, title: str) -> None:
        ...

    def set_state(self, state: int) -> None:
        ...

    def set_feedback(self, feedback: dict[str, Any]) -> None:
        ...

    def set_settings(self, settings: dict[str, Any]) -> None:
        ...

    def show_alert(self) -> None:
        ...
