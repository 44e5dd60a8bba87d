"""Directive tokenizer.

Turns a :class:`~swagdoc.models.CommentBlock` into an ordered list of
:class:`~swagdoc.models.Directive` records. A directive starts with ``@``
followed immediately by a keyword (letters, digits, ``_`` and ``.``); the
rest of the line is its argument. Lines that do not start a directive are
appended to the argument of the most recent one, which is how multi-line
descriptions are written::

    // @Description Returns one user.
    // Archived users are included when ?archived=true.

Keywords outside the supported dialect are kept with
:attr:`~swagdoc.models.DirectiveKind.UNKNOWN` so the interpreter can
report them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from swagdoc.models import CommentBlock, Directive, DirectiveKind, SourceLocation

_DIRECTIVE_RE = re.compile(r"^@([A-Za-z0-9_][\w.]*)(?:\s+(.*))?$")

KNOWN_KEYWORDS: frozenset[str] = frozenset({
    # general info
    "title",
    "version",
    "summary",
    "description",
    "termsofservice",
    "host",
    "basepath",
    "schemes",
    "accept",
    "produce",
    "security",
    "contact.name",
    "contact.url",
    "contact.email",
    "license.name",
    "license.url",
    "license.identifier",
    "server.url",
    "server.description",
    "tag.name",
    "tag.description",
    "tag.docs.url",
    "tag.docs.description",
    "externaldocs.url",
    "externaldocs.description",
    # security scheme follow-ups
    "in",
    "name",
    "authorizationurl",
    "tokenurl",
    "refreshurl",
    "bearerformat",
    "openidconnecturl",
    # operations
    "id",
    "tags",
    "param",
    "requestbody",
    "success",
    "failure",
    "response",
    "header",
    "router",
    "deprecatedrouter",
    "deprecated",
})
"""Case-folded keywords of the supported dialect."""

KNOWN_PREFIXES: tuple[str, ...] = ("securitydefinitions.", "scope.")
"""Case-folded keyword prefixes whose suffix is free-form."""


def is_known_keyword(keyword: str) -> bool:
    name = keyword.lower()
    return name in KNOWN_KEYWORDS or name.startswith(KNOWN_PREFIXES)


@dataclass
class _OpenDirective:
    keyword: str
    location: SourceLocation
    lines: list[str] = field(default_factory=list)

    def close(self) -> Directive:
        lines = list(self.lines)
        while lines and not lines[-1]:
            lines.pop()
        kind = DirectiveKind.KNOWN if is_known_keyword(self.keyword) else DirectiveKind.UNKNOWN
        return Directive(
            keyword=self.keyword,
            argument="\n".join(lines),
            location=self.location,
            kind=kind,
        )


def tokenize(block: CommentBlock) -> list[Directive]:
    """Split *block* into directives, in source order.

    Free text before the first directive (``// GetUser godoc``) is
    ignored. An empty comment line inside a directive's continuation adds
    a paragraph break.

    Args:
        block: The comment block to tokenize.

    Returns:
        The directives of the block. Empty when the block has none.
    """
    directives: list[Directive] = []
    current: _OpenDirective | None = None

    for offset, raw in enumerate(block.lines):
        text = raw.strip()
        match = _DIRECTIVE_RE.match(text)
        if match:
            if current is not None:
                directives.append(current.close())
            location = SourceLocation(file=block.file, line=block.start_line + offset)
            current = _OpenDirective(keyword=match.group(1), location=location)
            current.lines.append((match.group(2) or "").strip())
            continue
        if current is None:
            continue
        if text or (current.lines and current.lines[-1]):
            current.lines.append(text)

    if current is not None:
        directives.append(current.close())
    return directives
