"""
Undoable trash – moves files aside under a suffix and restores them.

Layout follows the freedesktop.org trash: ``files/<name>`` holds the trashed
file and ``info/<name>.trashinfo`` records where it came from. ``<name>`` is
the basename of the trashed path plus ``.<suffix>``, so a transaction can
find its own backup again from the path and its suffix alone.
"""
from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from urllib.parse import quote, unquote

from .models import UndoAction


@dataclass(frozen=True)
class TrashResult:
    status: int  # 200 done | 304 nothing to do | 412 conflict | 500 failed
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status in (200, 304)


class Trash:
    def __init__(self, trash_dir: str | os.PathLike):
        self.root = Path(trash_dir)
        self.files_dir = self.root / "files"
        self.info_dir = self.root / "info"

    @staticmethod
    def entry_name(path: str, suffix: str) -> str:
        return f"{os.path.basename(os.path.normpath(path))}.{suffix}"

    def _entry(self, path: str, suffix: str) -> tuple[Path, Path]:
        name = self.entry_name(path, suffix)
        return self.files_dir / name, self.info_dir / f"{name}.trashinfo"

    def _recorded_path(self, info_file: Path) -> str | None:
        try:
            lines = info_file.read_text(encoding="utf-8").splitlines()
        except OSError:
            return None
        for line in lines:
            if line.startswith("Path="):
                return unquote(line[len("Path="):])
        return None

    def has_entry(self, path: str, suffix: str) -> bool:
        target, _ = self._entry(path, suffix)
        return os.path.lexists(target)

    def trash(self, path: str, suffix: str) -> TrashResult:
        if not os.path.lexists(path):
            return TrashResult(304, f"{path} does not exist")

        target, info_file = self._entry(path, suffix)
        if os.path.lexists(target) or info_file.exists():
            return TrashResult(412, f"Trash entry {target.name} already exists")

        abs_path = os.path.abspath(path)
        try:
            self.files_dir.mkdir(parents=True, exist_ok=True)
            self.info_dir.mkdir(parents=True, exist_ok=True)
            info_file.write_text(
                "[Trash Info]\n"
                f"Path={quote(abs_path)}\n"
                f"DeletionDate={datetime.now().strftime('%Y-%m-%dT%H:%M:%S')}\n",
                encoding="utf-8",
            )
        except OSError as e:
            return TrashResult(500, f"Can't write trash info for {path}: {e}")

        try:
            shutil.move(abs_path, target)
        except OSError as e:
            info_file.unlink(missing_ok=True)
            return TrashResult(500, f"Can't move {path} to trash: {e}")
        return TrashResult(200, f"Trashed {path} as {target.name}")

    def untrash(self, path: str, suffix: str) -> TrashResult:
        target, info_file = self._entry(path, suffix)
        if not os.path.lexists(target):
            return TrashResult(304, f"No trash entry {target.name}")
        if os.path.lexists(path):
            return TrashResult(412, f"Can't restore {target.name}: {path} already exists")

        recorded = self._recorded_path(info_file)
        if recorded is not None and recorded != os.path.abspath(path):
            return TrashResult(412, f"Trash entry {target.name} belongs to {recorded}, not {path}")

        try:
            shutil.move(target, os.path.abspath(path))
        except OSError as e:
            return TrashResult(500, f"Can't restore {path} from trash: {e}")
        info_file.unlink(missing_ok=True)
        return TrashResult(200, f"Restored {path} from {target.name}")

    def run(self, action: UndoAction) -> TrashResult:
        if action.action == "trash":
            return self.trash(action.path, action.suffix)
        return self.untrash(action.path, action.suffix)
