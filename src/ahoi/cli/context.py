"""CLI context: settings resolution and the lazily built service container."""

import logging
from dataclasses import dataclass, field

from ahoi import Ahoi, Settings


@dataclass
class CLIContext:
    """Shared context for CLI commands.

    Builds one :class:`Ahoi` on first use and closes it when the command ends.
    """

    database_url: str | None
    echo: bool
    json_output: bool
    _ahoi: Ahoi | None = field(default=None, init=False, repr=False)

    def settings(self) -> Settings:
        """Settings from the environment, with command-line overrides applied."""
        overrides: dict[str, object] = {}
        if self.database_url:
            overrides["database_url"] = self.database_url
        if self.echo:
            overrides["echo"] = True
        return Settings(**overrides)

    def get_ahoi(self) -> Ahoi:
        if self._ahoi is None:
            self._ahoi = Ahoi(self.settings())
        return self._ahoi

    def close(self) -> None:
        if self._ahoi is not None:
            self._ahoi.close()
            self._ahoi = None


def configure_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger().setLevel(numeric)
