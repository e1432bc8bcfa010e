"""Builder for systemd unit files."""


class Manifest:
    """A systemd unit, rendered in the order sections and keys were set.

    A key may be set more than once; every value is rendered.
    """

    def __init__(self):
        self._sections: dict[str, list[tuple[str, str]]] = {}

    def set(self, section: str, key: str, value: str) -> None:
        self._sections.setdefault(section, []).append((key, value))

    def render(self) -> str:
        lines = []
        for section, entries in self._sections.items():
            if lines:
                lines.append("")
            lines.append(f"[{section}]")
            lines.extend(f"{key}={value}" for key, value in entries)
        return "\n".join(lines) + "\n"
