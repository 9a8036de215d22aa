"""
Fragment transaction controller.

Ensures one text fragment is present in (or absent from) one file, following
the two-phase transaction protocol of the setup actions:

  check_state  classify the file and, when a change is needed, report it
               together with the undo actions that will reverse it
  fix_state    back up the file to the trash, write the new content and
               restore the original permission bits (and owner, as root)

Nothing is cached between the two calls: each one re-reads the file, so a
fix repeated with the same arguments lands on the already-correct path.
Every failure comes back as a SetupResult; the caller decides how to report
or log it.
"""
from __future__ import annotations

import codecs
import os
import stat
import tempfile
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Union

from pydantic import ValidationError

from .fragment import FragmentOutcome, delete_fragment, insert_fragment
from .models import FragmentRequest, Outcome, SetupResult, TxPhase, UndoAction
from .trash import Trash, TrashResult

SUFFIX_LENGTH = 8
NEW_FILE_MARK = "n"


@dataclass(frozen=True)
class FileSnapshot:
    exists: bool
    is_symlink: bool = False
    is_regular_file: bool = False
    mode: int = 0
    uid: int = -1
    gid: int = -1

    def unfixable_reason(self, path: str) -> Optional[str]:
        if not self.exists:
            return f"{path} does not exist"
        if self.is_symlink or not self.is_regular_file:
            return f"{path} is not a regular file"
        return None


def snapshot_file(path: str) -> FileSnapshot:
    """Classify *path* with a single lstat call.

    A symlink is reported as existing (even when dangling) and never as a
    regular file. The file can still change between this call and the write;
    no locking is attempted.
    """
    try:
        st = os.lstat(path)
    except (FileNotFoundError, NotADirectoryError):
        return FileSnapshot(exists=False)
    return FileSnapshot(
        exists=True,
        is_symlink=stat.S_ISLNK(st.st_mode),
        is_regular_file=stat.S_ISREG(st.st_mode),
        mode=stat.S_IMODE(st.st_mode),
        uid=st.st_uid,
        gid=st.st_gid,
    )


def undo_suffix(tx_action_id: str) -> str:
    return tx_action_id[:SUFFIX_LENGTH]


def build_undo_actions(path: str, tx_action_id: str) -> list[UndoAction]:
    suffix = undo_suffix(tx_action_id)
    return [
        # restore old file
        UndoAction(action="untrash", path=path, suffix=suffix),
        # trash new file
        UndoAction(action="trash", path=path, suffix=suffix + NEW_FILE_MARK),
    ]


def _read_text(path: str, encoding: str) -> str:
    # newline="" keeps line endings byte-for-byte
    with open(path, "r", encoding=encoding, newline="") as f:
        return f.read()


def _replace_file(path: str, text: str, snapshot: FileSnapshot, encoding: str) -> list[str]:
    """Write *text* to a temp file beside *path*, carry over metadata, rename into place.

    Returns warnings for metadata that could not be restored without it being
    fatal (owner/group).
    """
    warnings: list[str] = []
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".textfragment-")
    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="") as f:
            f.write(text)
        if os.geteuid() == 0:
            try:
                os.chown(tmp_path, snapshot.uid, snapshot.gid)
            except OSError as e:
                warnings.append(f"Can't restore owner of {path}: {e}")
        # after chown, which may clear setuid/setgid bits
        os.chmod(tmp_path, snapshot.mode)
        os.replace(tmp_path, path)
    except Exception:
        if os.path.lexists(tmp_path):
            os.unlink(tmp_path)
        raise
    return warnings


def _result(status: int, outcome: Outcome, message: str, **extra: Any) -> SetupResult:
    return SetupResult(status=status, outcome=outcome, message=message, **extra)


def _compute(request: FragmentRequest, text: str) -> FragmentOutcome:
    if request.should_exist:
        return insert_fragment(text, request.id, request.payload, **request.insert_options())
    return delete_fragment(text, request.id, **request.delete_options())


def evaluate(
    request: Union[FragmentRequest, Mapping[str, Any]],
    phase: Union[TxPhase, str],
    tx_action_id: str,
    *,
    trash: Trash,
    encoding: str = "utf-8",
) -> SetupResult:
    """Run one phase of the fragment setup against ``request.path``.

    Status 200 means a change is pending (check) or was made (fix), 304 the
    file is already in the wanted state, 400 a bad call or a request the
    fragment engine rejected, 412 the file can't be fixed, 500 an I/O error.
    """
    if not isinstance(request, FragmentRequest):
        try:
            request = FragmentRequest.model_validate(dict(request))
        except (ValidationError, TypeError, ValueError) as e:
            return _result(400, Outcome.CONTRACT_VIOLATION, f"Invalid arguments: {e}")
    try:
        phase = TxPhase(phase)
    except ValueError:
        return _result(400, Outcome.CONTRACT_VIOLATION, f"Invalid tx_action: {phase!r}")
    if not isinstance(tx_action_id, str) or not tx_action_id:
        return _result(400, Outcome.CONTRACT_VIOLATION, "Please specify tx_action_id")
    try:
        codecs.lookup(encoding)
    except LookupError:
        return _result(400, Outcome.CONTRACT_VIOLATION, f"Unknown encoding: {encoding!r}")

    path = request.path
    try:
        snapshot = snapshot_file(path)
    except OSError as e:
        return _result(500, Outcome.IO_ERROR, f"Can't stat {path}: {e}")

    reason = snapshot.unfixable_reason(path)
    if reason:
        return _result(412, Outcome.UNFIXABLE, reason)

    try:
        text = _read_text(path, encoding)
    except (OSError, UnicodeDecodeError) as e:
        return _result(500, Outcome.IO_ERROR, f"Can't open {path}: {e}")

    res = _compute(request, text)
    if res.unchanged:
        return _result(304, Outcome.ALREADY_CORRECT, res.message)
    if not res.changed:
        return _result(res.status, Outcome.REJECTED, res.message)

    verb = "inserted to" if request.should_exist else "deleted from"
    if phase is TxPhase.CHECK:
        return _result(
            200,
            Outcome.PENDING,
            f"Fragment {request.id} needs to be {verb} {path}",
            undo_actions=build_undo_actions(path, tx_action_id),
        )

    suffix = undo_suffix(tx_action_id)
    backup = trash.trash(path, suffix)
    if backup.status != 200:
        return _result(500, Outcome.IO_ERROR, f"Can't back up {path}: {backup.message}")

    try:
        warnings = _replace_file(path, res.text, snapshot, encoding)
    except (OSError, UnicodeEncodeError) as e:
        return _result(
            500,
            Outcome.IO_ERROR,
            f"Can't write {path}: {e} (original kept in trash with suffix {suffix})",
            undo_required=True,
        )
    return _result(200, Outcome.DONE, "OK", warnings=warnings)


def replay_undo(
    undo_actions: Iterable[Union[UndoAction, Mapping[str, Any]]],
    trash: Trash,
) -> list[TrashResult]:
    """Roll back a fix using the undo actions reported by its check phase.

    The actions are unwound last-declared-first: the fix trashed the old file
    and then created the new one, so the new file goes to the trash before the
    old one comes back. Stops at the first step that fails.
    """
    actions = [
        a if isinstance(a, UndoAction) else UndoAction.model_validate(a)
        for a in undo_actions
    ]
    results: list[TrashResult] = []
    for action in reversed(actions):
        res = trash.run(action)
        results.append(res)
        if not res.ok:
            break
    return results
