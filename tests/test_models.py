"""Unit tests for request/result contracts."""
import pytest

from textfragment.models import (
    FragmentRequest,
    Outcome,
    SetupResult,
    TxPhase,
    UndoAction,
)


def test_request_defaults():
    req = FragmentRequest(path="/etc/hosts", id="X", payload="127.0.0.1 box")
    assert req.should_exist is True
    assert req.attrs == {}
    assert req.comment_style == "shell"
    assert req.label == "FRAGMENT"
    assert req.top_style is False
    assert req.replace_pattern is None
    assert req.good_pattern is None


@pytest.mark.parametrize("field", ["path", "id", "payload"])
def test_request_requires_non_empty(field):
    args = {"path": "/etc/hosts", "id": "X", "payload": "p"}
    args[field] = ""
    with pytest.raises(Exception):
        FragmentRequest(**args)


def test_request_rejects_unknown_keys():
    with pytest.raises(Exception):
        FragmentRequest(path="/etc/hosts", id="X", payload="p", shouldexist=False)


def test_request_rejects_unknown_comment_style():
    with pytest.raises(Exception):
        FragmentRequest(path="/etc/hosts", id="X", payload="p", comment_style="lisp")


def test_delete_options_drop_payload_and_attrs():
    req = FragmentRequest(path="/f", id="X", payload="p", attrs={"k": "v"}, comment_style="ini", label="MARK")
    assert req.delete_options() == {"comment_style": "ini", "label": "MARK"}


def test_insert_options_forwarded_verbatim():
    req = FragmentRequest(
        path="/f", id="X", payload="p",
        attrs={"k": "v"}, top_style=True, replace_pattern="^a", good_pattern="^b",
    )
    assert req.insert_options() == {
        "attrs": {"k": "v"},
        "top_style": True,
        "comment_style": "shell",
        "label": "FRAGMENT",
        "replace_pattern": "^a",
        "good_pattern": "^b",
    }


def test_tx_phase_values():
    assert TxPhase("check_state") is TxPhase.CHECK
    assert TxPhase("fix_state") is TxPhase.FIX
    with pytest.raises(ValueError):
        TxPhase("undo")


def test_setup_result_ok():
    assert SetupResult(status=200, outcome=Outcome.DONE).ok
    assert SetupResult(status=304, outcome=Outcome.ALREADY_CORRECT).ok
    assert not SetupResult(status=412, outcome=Outcome.UNFIXABLE).ok


def test_setup_result_dump():
    res = SetupResult(
        status=200,
        outcome=Outcome.PENDING,
        message="m",
        undo_actions=[UndoAction(action="untrash", path="/f", suffix="abcd1234")],
    )
    dumped = res.model_dump(mode="json")
    assert dumped["outcome"] == "pending"
    assert dumped["undo_actions"] == [{"action": "untrash", "path": "/f", "suffix": "abcd1234"}]
    assert dumped["undo_required"] is False
    assert dumped["warnings"] == []


def test_undo_action_rejects_other_actions():
    with pytest.raises(Exception):
        UndoAction(action="delete", path="/f", suffix="s")
