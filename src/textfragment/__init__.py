from .models import FragmentRequest, Outcome, SetupResult, TxPhase, UndoAction
from .fragment import (
    Fragment,
    FragmentOutcome,
    delete_fragment,
    format_fragment,
    get_fragment,
    insert_fragment,
    list_fragments,
)
from .trash import Trash, TrashResult
from .controller import FileSnapshot, build_undo_actions, evaluate, replay_undo, snapshot_file
from .handler import setup_text_fragment

__all__ = [
    "FragmentRequest",
    "Outcome",
    "SetupResult",
    "TxPhase",
    "UndoAction",
    "Fragment",
    "FragmentOutcome",
    "delete_fragment",
    "format_fragment",
    "get_fragment",
    "insert_fragment",
    "list_fragments",
    "Trash",
    "TrashResult",
    "FileSnapshot",
    "build_undo_actions",
    "evaluate",
    "replay_undo",
    "snapshot_file",
    "setup_text_fragment",
]
