class InputState:
    """Compose-box text shared between the rendering layer and ChatSync."""

    def __init__(self, value: str = ""):
        self._value = value

    @property
    def value(self) -> str:
        return self._value

    def get(self) -> str:
        return self._value

    def set(self, value: str) -> None:
        self._value = value

    def clear(self) -> None:
        self._value = ""
