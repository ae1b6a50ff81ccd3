"""Pattern catalog for inline Markdown syntax.

The catalog is immutable data: an ordered tuple of rules, each one a compiled
pattern plus a description of where its delimiters and content sit in a match.
Order encodes precedence. Matching always goes through `InlineSyntax.find`,
which builds a fresh iterator per call, so nested and re-entrant scans never
share matcher state.

Matches are resolved by "earliest start wins; on tie, longest match wins", so
the triple-delimiter rule must come before strong and emphasis.
"""

import re
import string
from collections.abc import Callable
from dataclasses import dataclass

# Characters a backslash can escape (CommonMark: ASCII punctuation)
ESCAPABLE = frozenset(string.punctuation)

IMAGE_PATTERN = re.compile(r'!\[([^\]]*)\]\((.+?)(?:\s+"([^"]*)")?\)')

HEADING_PREFIX_PATTERN = re.compile(r"#+")


@dataclass(frozen=True)
class SyntaxMatch:
    syntax: "InlineSyntax"
    start: int
    end: int
    content_start: int
    content_end: int
    attrs: dict


@dataclass(frozen=True)
class InlineSyntax:
    """One inline syntax rule.

    `content_groups` lists the candidate content groups for alternation patterns
    (e.g. `**x**` vs `__x__`); the first group that participated in the match is
    the content. Prefix and suffix are the literal text on either side of it.
    """

    type: str
    pattern: re.Pattern
    delimiters: tuple[str, ...]
    content_groups: tuple[int, ...] = (1,)
    multi_marks: tuple[str, ...] | None = None
    attrs_extractor: Callable[[re.Match, str], dict] | None = None
    # Content is literal text (no nested syntax, no escapes)
    literal: bool = False

    @property
    def marks(self) -> tuple[str, ...]:
        """Semantic annotation types this rule produces."""
        return self.multi_marks or (self.type,)

    def find(self, text: str, source: str | None = None) -> list[SyntaxMatch]:
        """Scan `text`; attribute values are read from `source` (same offsets, escapes unmasked)."""
        source = text if source is None else source
        matches = []
        for m in self.pattern.finditer(text):
            group = next((g for g in self.content_groups if m.group(g) is not None), None)
            if group is None:
                continue
            content_start, content_end = m.span(group)
            attrs = self.attrs_extractor(m, source) if self.attrs_extractor else {}
            matches.append(SyntaxMatch(self, m.start(), m.end(), content_start, content_end, attrs))
        return matches


def _group(m: re.Match, source: str, n: int) -> str:
    return source[m.start(n) : m.end(n)] if m.group(n) is not None else ""


def _link_attrs(m: re.Match, source: str) -> dict:
    return {"href": _group(m, source, 2), "title": _group(m, source, 3)}


INLINE_SYNTAXES: tuple[InlineSyntax, ...] = (
    # ***text*** or ___text___
    InlineSyntax(
        type="strong_emphasis",
        pattern=re.compile(r"(\*\*\*|___)(.+?)\1"),
        delimiters=("***", "___"),
        content_groups=(2,),
        multi_marks=("strong", "emphasis"),
    ),
    # **text** or __text__
    InlineSyntax(
        type="strong",
        pattern=re.compile(r"(?<!\*)(\*\*)(?!\*)(.+?)(?<!\*)\1(?!\*)|(?<!_)(__)(?!_)(.+?)(?<!_)\3(?!_)"),
        delimiters=("**", "__"),
        content_groups=(2, 4),
    ),
    # *text* or _text_ (an underscore inside a word is not a delimiter)
    InlineSyntax(
        type="emphasis",
        pattern=re.compile(
            r"(?<![*_\w])(\*)(?![*\s])(.+?)(?<![*\s])\1(?![*])"
            r"|(?<![*_])(_)(?![_\s])(?=\S)(.+?)(?<=\S)(?<![_\s])\3(?![_\w])"
        ),
        delimiters=("*", "_"),
        content_groups=(2, 4),
    ),
    InlineSyntax(
        type="code_inline",
        pattern=re.compile(r"`([^`]+)`"),
        delimiters=("`",),
        literal=True,
    ),
    InlineSyntax(
        type="strikethrough",
        pattern=re.compile(r"~~(.+?)~~"),
        delimiters=("~~",),
    ),
    InlineSyntax(
        type="highlight",
        pattern=re.compile(r"==(.+?)=="),
        delimiters=("==",),
    ),
    # [^note]
    InlineSyntax(
        type="footnote_ref",
        pattern=re.compile(r"\[\^([^\]\s]+)\]"),
        delimiters=("[^", "]"),
        attrs_extractor=lambda m, source: {"ref": _group(m, source, 1)},
    ),
    # [text](url "title"), but not ![alt](src)
    InlineSyntax(
        type="link",
        pattern=re.compile(r'(?<!!)\[([^\]]+)\]\(([^)\s]*)(?:\s+"([^"]*)")?\)'),
        delimiters=("[", "]("),
        attrs_extractor=_link_attrs,
    ),
    # $x$ but not $$
    InlineSyntax(
        type="math_inline",
        pattern=re.compile(r"(?<!\$)\$(?!\$)([^$]+)\$(?!\$)"),
        delimiters=("$",),
        attrs_extractor=lambda m, source: {"content": _group(m, source, 1)},
        literal=True,
    ),
)

SYNTAX_BY_TYPE = {syntax.type: syntax for syntax in INLINE_SYNTAXES}

# Every semantic annotation type the detector owns
SEMANTIC_TYPES: tuple[str, ...] = tuple(
    dict.fromkeys(mark for syntax in INLINE_SYNTAXES for mark in syntax.marks)
)


def semantic_types_for(syntax_type: str) -> tuple[str, ...]:
    """Semantic annotation types bounded by markers of `syntax_type`."""
    syntax = SYNTAX_BY_TYPE.get(syntax_type)
    return syntax.marks if syntax else ()


def delimiters_pair(syntax_type: str, opener: str, closer: str) -> bool:
    """Whether two marker texts form a delimiter pair.

    Symmetric syntaxes pair by exact literal text (`**` only with `**`); links
    and footnotes have distinct opening and closing text.
    """
    if syntax_type == "link":
        return opener == "[" and closer.startswith("](") and closer.endswith(")")
    if syntax_type == "footnote_ref":
        return opener == "[^" and closer == "]"
    syntax = SYNTAX_BY_TYPE.get(syntax_type)
    if syntax is None:
        return False
    return opener == closer and opener in syntax.delimiters


def find_matches(text: str, source: str | None = None) -> list[SyntaxMatch]:
    """Run every rule over `text` and keep the non-overlapping winners.

    Sorted by (start asc, end desc); a match overlapping an accepted one is dropped.
    """
    matches = [m for syntax in INLINE_SYNTAXES for m in syntax.find(text, source)]
    matches.sort(key=lambda m: (m.start, -m.end))

    accepted: list[SyntaxMatch] = []
    last_end = 0
    for m in matches:
        if m.start >= last_end:
            accepted.append(m)
            last_end = m.end
    return accepted


def find_escapes(text: str) -> list[int]:
    """Positions of backslashes that escape the following punctuation character."""
    escapes = []
    i = 0
    while i < len(text) - 1:
        if text[i] == "\\" and text[i + 1] in ESCAPABLE:
            escapes.append(i)
            i += 2
        else:
            i += 1
    return escapes


# Private-use characters that no rule treats as a delimiter
_MASK = "\ue000"


def mask_escapes(text: str, escapes: list[int]) -> str:
    """Hide escape pairs from the catalog while keeping every offset intact."""
    if not escapes:
        return text
    chars = list(text)
    for pos in escapes:
        chars[pos] = _MASK
        chars[pos + 1] = _MASK
    return "".join(chars)
