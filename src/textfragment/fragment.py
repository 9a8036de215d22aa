"""
Text fragment engine.

Locates, inserts and deletes identifiable fragments of text inside a larger
text. A fragment is marked with a comment carrying a label and ``key=value``
attributes, the ``id`` attribute being mandatory:

    one-line:    PAYLOAD # FRAGMENT id=ID
    multi-line:  # BEGIN FRAGMENT id=ID
                 PAYLOAD
                 # END FRAGMENT id=ID

Pure text in, FragmentOutcome out; nothing here touches the filesystem.
Status codes: 200 text changed, 304 nothing to do, 400 request rejected.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

COMMENT_TOKENS: dict[str, tuple[str, str]] = {
    "shell": ("#", ""),
    "c": ("/*", "*/"),
    "cpp": ("//", ""),
    "html": ("<!--", "-->"),
    "ini": (";", ""),
}

_ID_RE = re.compile(r"\w+(?:-\w+)*")
_LABEL_RE = re.compile(r"\S+")
_ATTR_NAME_RE = re.compile(r"\w+")
_ATTR_VALUE_RE = re.compile(r"\S*")

_ANY_ID = r"\w+(?:-\w+)*"
_ATTR = r"\w+=\S*"
_EOL = r"(?:\r?\n|\Z)"


@dataclass(frozen=True)
class Fragment:
    id: str
    payload: str
    attrs: dict[str, str]
    is_multiline: bool
    start: int
    end: int
    raw: str


@dataclass(frozen=True)
class FragmentOutcome:
    status: int
    message: str
    text: Optional[str] = None
    orig_payload: Optional[str] = None
    orig_fragment: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.status == 200

    @property
    def unchanged(self) -> bool:
        return self.status == 304

    @property
    def failed(self) -> bool:
        return self.status >= 400


@dataclass
class _Scan:
    fragments: list[Fragment] = field(default_factory=list)
    unterminated: list[int] = field(default_factory=list)


def _tokens(comment_style: str) -> tuple[str, str]:
    ts, te = COMMENT_TOKENS[comment_style]
    return re.escape(ts), (re.escape(te) if te else "")


def _attrs_group(id_re: str) -> str:
    return (
        rf"(?P<attrs>(?:{_ATTR}[ \t]+)*?id=(?P<id>{id_re})(?:[ \t]+{_ATTR})*)"
    )


def _patterns(comment_style: str, label: str, id_re: str) -> tuple[re.Pattern, re.Pattern, re.Pattern]:
    ts, te = _tokens(comment_style)
    lb = re.escape(label)
    attrs = _attrs_group(id_re)
    begin = rf"^[ \t]*{ts}[ \t]*BEGIN[ \t]+{lb}[ \t]+{attrs}[ \t]*{te}[ \t]*\r?\n"
    end = (
        rf"^[ \t]*{ts}[ \t]*END[ \t]+{lb}[ \t]+(?:{_ATTR}[ \t]+)*?id=(?P=id)"
        rf"(?:[ \t]+{_ATTR})*[ \t]*{te}[ \t]*{_EOL}"
    )
    multi = re.compile(begin + r"(?P<payload>.*?)" + end, re.M | re.S)
    oneline = re.compile(
        rf"^(?P<payload>[^\r\n]*?)[ \t]*{ts}[ \t]*{lb}[ \t]+{attrs}[ \t]*{te}[ \t]*{_EOL}",
        re.M,
    )
    return multi, oneline, re.compile(begin, re.M)


def _parse_attrs(raw: str) -> dict[str, str]:
    attrs = {}
    for item in raw.split():
        key, _, value = item.partition("=")
        attrs[key] = value
    return attrs


def _chomp(s: str) -> str:
    if s.endswith("\r\n"):
        return s[:-2]
    if s.endswith("\n"):
        return s[:-1]
    return s


def _normalize_payload(payload: str) -> str:
    payload = _chomp(payload)
    if "\n" not in payload:
        # trailing blanks before the marker are not part of a one-line payload
        payload = payload.rstrip(" \t")
    return payload


def _scan(text: str, comment_style: str, label: str, id: Optional[str] = None) -> _Scan:
    id_re = re.escape(id) if id is not None else _ANY_ID
    multi_re, oneline_re, begin_re = _patterns(comment_style, label, id_re)
    scan = _Scan()

    taken: list[tuple[int, int]] = []
    for m in multi_re.finditer(text):
        scan.fragments.append(Fragment(
            id=m.group("id"),
            payload=_chomp(m.group("payload")),
            attrs=_parse_attrs(m.group("attrs")),
            is_multiline=True,
            start=m.start(),
            end=m.end(),
            raw=m.group(0),
        ))
        taken.append((m.start(), m.end()))

    for m in begin_re.finditer(text):
        if not any(s <= m.start() < e for s, e in taken):
            scan.unterminated.append(m.start())

    for m in oneline_re.finditer(text):
        if any(s <= m.start() < e for s, e in taken):
            continue
        scan.fragments.append(Fragment(
            id=m.group("id"),
            payload=m.group("payload"),
            attrs=_parse_attrs(m.group("attrs")),
            is_multiline=False,
            start=m.start(),
            end=m.end(),
            raw=m.group(0),
        ))

    scan.fragments.sort(key=lambda f: f.start)
    return scan


def _validate(id: Optional[str], comment_style: str, label: str) -> Optional[str]:
    if id is not None and not _ID_RE.fullmatch(id):
        return f"Invalid ID: {id!r}"
    if comment_style not in COMMENT_TOKENS:
        return f"Unknown comment style: {comment_style!r}"
    if not _LABEL_RE.fullmatch(label or ""):
        return f"Invalid label: {label!r}"
    return None


def _validate_attrs(attrs: dict[str, str]) -> Optional[str]:
    for key, value in attrs.items():
        if key == "id":
            return "Attribute 'id' is reserved for the fragment ID"
        if not _ATTR_NAME_RE.fullmatch(key):
            return f"Invalid attribute name: {key!r}"
        if not _ATTR_VALUE_RE.fullmatch(str(value)):
            return f"Invalid value for attribute {key!r}: whitespace not allowed"
    return None


def format_fragment(
    id: str,
    payload: str,
    *,
    attrs: Optional[dict[str, str]] = None,
    comment_style: str = "shell",
    label: str = "FRAGMENT",
) -> str:
    """Render a fragment, always terminated by a newline.

    The payload decides the shape: one line gives the one-line form, anything
    containing a newline gives the BEGIN/END form. Attributes are written with
    ``id`` first and the rest sorted by name.
    """
    ts, te = COMMENT_TOKENS[comment_style]
    payload = _normalize_payload(payload)
    extra = {k: v for k, v in (attrs or {}).items() if k != "id"}
    attr_str = " ".join([f"id={id}"] + [f"{k}={v}" for k, v in sorted(extra.items())])
    tail = f" {te}" if te else ""
    if "\n" in payload:
        return (
            f"{ts} BEGIN {label} {attr_str}{tail}\n"
            f"{payload}\n"
            f"{ts} END {label} id={id}{tail}\n"
        )
    return f"{payload} {ts} {label} {attr_str}{tail}\n"


def list_fragments(text: str, *, comment_style: str = "shell", label: str = "FRAGMENT") -> list[Fragment]:
    """Return every well-formed fragment in *text*, in document order."""
    if comment_style not in COMMENT_TOKENS:
        raise ValueError(f"Unknown comment style: {comment_style!r}")
    return _scan(text, comment_style, label).fragments


def get_fragment(
    text: str,
    id: str,
    *,
    comment_style: str = "shell",
    label: str = "FRAGMENT",
) -> Optional[Fragment]:
    if comment_style not in COMMENT_TOKENS:
        raise ValueError(f"Unknown comment style: {comment_style!r}")
    found = _scan(text, comment_style, label, id).fragments
    return found[0] if found else None


def insert_fragment(
    text: str,
    id: str,
    payload: str,
    *,
    attrs: Optional[dict[str, str]] = None,
    top_style: bool = False,
    comment_style: str = "shell",
    label: str = "FRAGMENT",
    replace_pattern: Optional[str] = None,
    good_pattern: Optional[str] = None,
) -> FragmentOutcome:
    """Insert fragment *id* with *payload*, or update its payload in place.

    An existing fragment keeps its attributes; *attrs* only applies to a
    fragment that is created. When *good_pattern* matches the text nothing is
    inserted. When the fragment is absent and *replace_pattern* matches, the
    first match is replaced by the fragment instead of appending it.
    """
    attrs = attrs or {}
    error = _validate(id, comment_style, label) or _validate_attrs(attrs)
    if error:
        return FragmentOutcome(status=400, message=error)

    try:
        good_re = re.compile(good_pattern, re.M) if good_pattern else None
        replace_re = re.compile(replace_pattern, re.M) if replace_pattern else None
    except re.error as e:
        return FragmentOutcome(status=400, message=f"Invalid pattern: {e}")

    scan = _scan(text, comment_style, label, id)
    if scan.unterminated:
        return FragmentOutcome(status=400, message=f"Fragment {id} has BEGIN marker without END marker")

    payload = _normalize_payload(payload)
    existing = scan.fragments[0] if scan.fragments else None

    if existing is not None and existing.payload == payload:
        return FragmentOutcome(
            status=304,
            message=f"Fragment {id} already exists with the same payload",
            orig_payload=existing.payload,
            orig_fragment=existing.raw,
        )

    if good_re is not None and good_re.search(text):
        return FragmentOutcome(status=304, message="Text already matches good pattern")

    if existing is not None:
        fragment = format_fragment(
            id, payload, attrs=existing.attrs, comment_style=comment_style, label=label
        )
        if not existing.raw.endswith("\n"):
            fragment = fragment[:-1]
        new_text = text[:existing.start] + fragment + text[existing.end:]
        return FragmentOutcome(
            status=200,
            message=f"Fragment {id} payload replaced",
            text=new_text,
            orig_payload=existing.payload,
            orig_fragment=existing.raw,
        )

    fragment = format_fragment(id, payload, attrs=attrs, comment_style=comment_style, label=label)

    if replace_re is not None:
        m = replace_re.search(text)
        if m:
            block = fragment if m.group(0).endswith("\n") else fragment[:-1]
            return FragmentOutcome(
                status=200,
                message=f"Fragment {id} replaced text matching pattern",
                text=text[:m.start()] + block + text[m.end():],
            )

    if top_style:
        new_text = fragment + text
    else:
        if text and not text.endswith("\n"):
            text += "\n"
        new_text = text + fragment
    return FragmentOutcome(status=200, message=f"Fragment {id} inserted", text=new_text)


def delete_fragment(
    text: str,
    id: str,
    *,
    comment_style: str = "shell",
    label: str = "FRAGMENT",
) -> FragmentOutcome:
    """Remove every fragment with *id*; one-line fragments take their line with them."""
    error = _validate(id, comment_style, label)
    if error:
        return FragmentOutcome(status=400, message=error)

    scan = _scan(text, comment_style, label, id)
    if scan.unterminated:
        return FragmentOutcome(status=400, message=f"Fragment {id} has BEGIN marker without END marker")
    if not scan.fragments:
        return FragmentOutcome(status=304, message=f"Fragment {id} does not exist")

    new_text = text
    for frag in reversed(scan.fragments):
        new_text = new_text[:frag.start] + new_text[frag.end:]

    first = scan.fragments[0]
    return FragmentOutcome(
        status=200,
        message=f"Fragment {id} deleted",
        text=new_text,
        orig_payload=first.payload,
        orig_fragment=first.raw,
    )
