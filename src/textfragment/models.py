"""Request/result contracts for the text fragment setup action."""
from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

CommentStyle = Literal["shell", "c", "cpp", "html", "ini"]


class TxPhase(str, Enum):
    CHECK = "check_state"
    FIX = "fix_state"


class Outcome(str, Enum):
    PENDING = "pending"
    DONE = "done"
    ALREADY_CORRECT = "already_correct"
    UNFIXABLE = "unfixable"
    REJECTED = "rejected"
    IO_ERROR = "io_error"
    CONTRACT_VIOLATION = "contract_violation"


class FragmentRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str = Field(min_length=1, description="Path to file")
    id: str = Field(min_length=1, description="Fragment ID")
    payload: str = Field(min_length=1, description="Fragment content")
    should_exist: bool = True
    attrs: dict[str, str] = Field(
        default_factory=dict,
        description="Fragment attributes, only used when inserting a new fragment",
    )
    top_style: bool = False
    comment_style: CommentStyle = "shell"
    label: str = "FRAGMENT"
    replace_pattern: Optional[str] = None
    good_pattern: Optional[str] = None

    def insert_options(self) -> dict[str, Any]:
        return {
            "attrs": dict(self.attrs),
            "top_style": self.top_style,
            "comment_style": self.comment_style,
            "label": self.label,
            "replace_pattern": self.replace_pattern,
            "good_pattern": self.good_pattern,
        }

    def delete_options(self) -> dict[str, Any]:
        return {"comment_style": self.comment_style, "label": self.label}


class UndoAction(BaseModel):
    action: Literal["untrash", "trash"]
    path: str
    suffix: str


class SetupResult(BaseModel):
    status: int
    outcome: Outcome
    message: str = ""
    undo_actions: list[UndoAction] = Field(default_factory=list)
    undo_required: bool = False
    warnings: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status in (200, 304)
