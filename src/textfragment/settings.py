import codecs
import os
from pathlib import Path

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, field_validator


def _default_trash_dir() -> str:
    data_home = os.getenv("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return str(Path(data_home) / "Trash")


class Settings(BaseModel):
    trash_dir: str
    encoding: str = "utf-8"
    dry_run: bool = False

    @field_validator("encoding")
    @classmethod
    def _known_encoding(cls, v: str) -> str:
        try:
            codecs.lookup(v)
        except LookupError:
            raise ValueError(f"unknown encoding: {v!r}")
        return v


def load_settings() -> Settings:
    # .env in the working directory, if any; real environment wins
    load_dotenv(dotenv_path=find_dotenv(usecwd=True), override=False)
    return Settings(
        trash_dir=os.getenv("TEXTFRAGMENT_TRASH_DIR") or _default_trash_dir(),
        encoding=os.getenv("TEXTFRAGMENT_ENCODING", "utf-8"),
        dry_run=os.getenv("TEXTFRAGMENT_DRY_RUN", "false").lower() in ("true", "1", "yes"),
    )
