import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _default_data_dir() -> str:
    return str(Path.home() / ".library-app")


@dataclass
class Settings:
    # Storage locations
    data_dir: str = os.getenv("LIBRARY_DATA_DIR", _default_data_dir())
    data_file: str = os.getenv("LIBRARY_DATA_FILE", "library_data.lib")
    settings_file: str = os.getenv("LIBRARY_SETTINGS_FILE", "settings.json")

    # CLI output: plain | json | rich
    output_mode: str = os.getenv("LIB_CLI_OUTPUT", "plain")

    log_level: str = os.getenv("LOG_LEVEL", "WARNING")

    @property
    def data_path(self) -> Path:
        """Full path of the default data file; absolute LIBRARY_DATA_FILE values win."""
        return Path(self.data_dir) / self.data_file

    @property
    def settings_path(self) -> Path:
        return Path(self.data_dir) / self.settings_file


settings = Settings()
