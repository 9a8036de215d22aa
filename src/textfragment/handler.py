"""
Entry point for the setup_text_fragment action.

Invoked once per transaction phase with an event of the form:

    {
      "tx_action": "check_state" | "fix_state",
      "tx_action_id": "<opaque id, first 8 chars name the backups>",
      "dry_run": false,
      "args": {"path": ..., "id": ..., "payload": ..., ...}
    }

The controller returns a structured result and never logs; this module does
the logging (one JSON object per line on stdout) and hands the result back
as a plain dict for the transaction engine to persist.
"""
import json
from datetime import datetime, timezone
from typing import Any, Optional

from .controller import evaluate
from .models import Outcome, SetupResult, TxPhase
from .settings import Settings, load_settings
from .trash import Trash


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _log(msg: str, tx_action_id: str = "", **extra):
    entry = {"ts": _now_iso(), "msg": msg, "tx_action_id": tx_action_id}
    entry.update(extra)
    print(json.dumps(entry, default=str))


def _describe(args: Any) -> str:
    if not isinstance(args, dict):
        return f"Setting up fragment with args {args!r} ..."
    fid = args.get("id", "")
    path = args.get("path", "")
    if args.get("should_exist", True):
        return f"Inserting fragment {fid} to {path} ..."
    return f"Deleting fragment {fid} from {path} ..."


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def setup_text_fragment(event: dict, context: Any = None, settings: Optional[Settings] = None) -> dict:
    settings = settings or load_settings()
    tx_action = event.get("tx_action", "")
    tx_action_id = event.get("tx_action_id", "")
    dry_run = _flag(event.get("dry_run", settings.dry_run))
    args = event.get("args") or {}

    trash = Trash(settings.trash_dir)

    result: SetupResult = evaluate(
        args, tx_action, tx_action_id, trash=trash, encoding=settings.encoding
    )

    # only a fix that touched the file gets an intent line
    if result.outcome is Outcome.DONE or result.undo_required:
        _log(_describe(args), tx_action_id)

    if tx_action == TxPhase.CHECK.value and dry_run and result.outcome is Outcome.PENDING:
        _log(f"(DRY) {_describe(args)}", tx_action_id)

    if result.undo_required:
        _log(
            "setup_text_fragment_undo_required",
            tx_action_id,
            path=args.get("path", "") if isinstance(args, dict) else "",
            error=result.message[:300],
        )

    _log(
        "setup_text_fragment_result",
        tx_action_id,
        tx_action=tx_action,
        status=result.status,
        outcome=result.outcome.value,
        message=result.message,
        warnings=result.warnings,
    )
    return result.model_dump(mode="json")
