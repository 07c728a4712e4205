"""Glob-style file-set selectors.

A selector is an ordered list of patterns. Patterns prefixed with ``!`` exclude
files that earlier patterns would pick up. Supported syntax:

- ``*`` and ``?`` match within one path segment, ``[...]`` is a character class
- ``**`` as a whole segment matches zero or more directories
- ``{a,b}`` alternation (nesting allowed)
- wildcards skip names starting with ``.``; spell the dot out to select them

Each matched file carries its path relative to the *glob base* of the pattern
that matched it (the leading segments without magic characters), which is what
transforms use to lay out their outputs.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterable


_MAGIC = set("*?[{")
# `**` as a directory run and as the final segment; dot-entries are skipped
_GLOBSTAR_DIRS = r"(?:[^/.][^/]*/)*"
_GLOBSTAR_TAIL = r"(?:[^/.][^/]*(?:/[^/.][^/]*)*)?"


@dataclass(frozen=True)
class SourceFile:
    path: Path
    relative: PurePosixPath

    @property
    def name(self) -> str:
        return self.relative.name


@dataclass(frozen=True)
class _Pattern:
    text: str
    base: str
    regex: re.Pattern


class FileSelector:
    def __init__(self, patterns: Iterable[str] | str):
        if isinstance(patterns, str):
            patterns = [patterns]
        self.patterns: tuple[str, ...] = tuple(patterns)
        self._include: list[_Pattern] = []
        self._exclude: list[_Pattern] = []
        for raw in self.patterns:
            negated = raw.startswith("!")
            body = _normalize(raw[1:] if negated else raw)
            if not body:
                raise ValueError(f"Empty glob pattern in selector: {raw!r}")
            target = self._exclude if negated else self._include
            for alt in expand_braces(body):
                target.append(_Pattern(alt, glob_base(alt), _translate(alt)))

    def __repr__(self) -> str:
        return f"FileSelector({list(self.patterns)!r})"

    def __bool__(self) -> bool:
        return bool(self._include)

    @property
    def bases(self) -> list[str]:
        """Distinct glob bases of the including patterns."""
        out: list[str] = []
        for p in self._include:
            if p.base not in out:
                out.append(p.base)
        return out

    def _excluded(self, rel: str) -> bool:
        return any(p.regex.match(rel) for p in self._exclude)

    def matches(self, path: str | Path, root: str | Path) -> bool:
        """True if `path` (absolute, or relative to `root`) is selected."""
        rel = _relative_posix(Path(path), Path(root))
        if rel is None:
            return False
        if not any(p.regex.match(rel) for p in self._include):
            return False
        return not self._excluded(rel)

    def expand(self, root: str | Path) -> list[SourceFile]:
        """Walk `root` and return selected files in pattern order, without duplicates."""
        root = Path(root)
        seen: set[Path] = set()
        out: list[SourceFile] = []
        for pat in self._include:
            base_dir = root / pat.base if pat.base else root
            for path in _walk_files(base_dir):
                rel = path.relative_to(root).as_posix()
                if path in seen or not pat.regex.match(rel) or self._excluded(rel):
                    continue
                seen.add(path)
                relative = PurePosixPath(rel)
                if pat.base:
                    relative = relative.relative_to(pat.base)
                out.append(SourceFile(path=path, relative=relative))
        return out


def _normalize(pattern: str) -> str:
    pattern = pattern.replace("\\", "/")
    while pattern.startswith("./"):
        pattern = pattern[2:]
    return pattern.rstrip("/")


def _relative_posix(path: Path, root: Path) -> str | None:
    if not path.is_absolute():
        return _normalize(path.as_posix())
    try:
        return path.resolve().relative_to(root.resolve()).as_posix()
    except ValueError:
        return None


def _walk_files(base: Path) -> list[Path]:
    if base.is_file():
        return [base]
    if not base.is_dir():
        return []
    files: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(base):
        dirnames.sort()
        for name in sorted(filenames):
            files.append(Path(dirpath) / name)
    return files


def glob_base(pattern: str) -> str:
    """Leading directory segments of `pattern` that contain no glob syntax."""
    segments = pattern.split("/")
    base: list[str] = []
    for seg in segments[:-1]:
        if _MAGIC & set(seg):
            break
        base.append(seg)
    else:
        # a literal file path: its base is the containing directory
        if not (_MAGIC & set(segments[-1])):
            return "/".join(segments[:-1])
    return "/".join(base)


def expand_braces(pattern: str) -> list[str]:
    """Expand ``{a,b}`` alternations, innermost groups handled recursively."""
    start = pattern.find("{")
    if start == -1:
        return [pattern]
    depth = 0
    options: list[str] = []
    last = start + 1
    for i in range(start, len(pattern)):
        c = pattern[i]
        if c == "{":
            depth += 1
        elif c == "}":
            depth -= 1
            if depth == 0:
                options.append(pattern[last:i])
                head, tail = pattern[:start], pattern[i + 1 :]
                out: list[str] = []
                for opt in options:
                    for expanded in expand_braces(head + opt + tail):
                        if expanded not in out:
                            out.append(expanded)
                return out
        elif c == "," and depth == 1:
            options.append(pattern[last:i])
            last = i + 1
    # unbalanced: treat the brace literally
    return [pattern]


def _translate(pattern: str) -> re.Pattern:
    parts = pattern.split("/")
    out = []
    for i, seg in enumerate(parts):
        last = i == len(parts) - 1
        if seg == "**":
            out.append(_GLOBSTAR_TAIL if last else _GLOBSTAR_DIRS)
        else:
            out.append(_translate_segment(seg) + ("" if last else "/"))
    return re.compile("".join(out) + r"\Z")


def _translate_segment(seg: str) -> str:
    res = []
    if seg[:1] in ("*", "?", "["):
        # wildcards never match a leading dot
        res.append(r"(?!\.)")
    i, n = 0, len(seg)
    while i < n:
        c = seg[i]
        i += 1
        if c == "*":
            while i < n and seg[i] == "*":
                i += 1
            res.append("[^/]*")
        elif c == "?":
            res.append("[^/]")
        elif c == "[":
            j = seg.find("]", i + 1 if i < n and seg[i] in "!^" else i)
            if j == -1:
                res.append(re.escape(c))
                continue
            body = seg[i:j]
            if body[:1] in ("!", "^"):
                body = "^" + body[1:]
            res.append("[" + body.replace("\\", "\\\\") + "]")
            i = j + 1
        else:
            res.append(re.escape(c))
    return "".join(res)
