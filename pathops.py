"""
PATH operations

Plain functions over an ordered list of PATH entries:
  - split / join the raw variable on the delimiter
  - classify entries (ok / not-a-directory / missing)
  - find and remove duplicates (first occurrence wins)
  - count executables directly inside each directory
  - append / prepend a directory unless it is already present

Nothing here mutates the environment. The only reader of the environment is
read_path(), and it takes the mapping as an argument.
"""

import logging
import os
from collections import Counter
from typing import Dict, List, Mapping, Optional, Tuple

logger = logging.getLogger("pathtool")

SEP = ":"

OK = "ok"
NOT_A_DIRECTORY = "not-a-directory"
MISSING = "missing"

# os.access checks the real uid unless asked otherwise
_ACCESS_KW = {"effective_ids": True} if os.access in os.supports_effective_ids else {}


# ---- Parsing -----------------------------------------------------------------

def read_path(name: str = "PATH", environ: Optional[Mapping[str, str]] = None) -> str:
    """Return the raw value of the variable *name*, or "" when it is unset."""
    if environ is None:
        environ = os.environ
    value = environ.get(name)
    if value is None:
        logger.warning("%s is not set in the environment, treating it as empty", name)
        return ""
    return value


def split(raw: str, sep: str = SEP) -> List[str]:
    # Empty segments are kept: "a::b" -> ["a", "", "b"], "" -> [""]
    return raw.split(sep)


def join(entries: List[str], sep: str = SEP) -> str:
    return sep.join(entries)


# ---- Validation --------------------------------------------------------------

def classify(entry: str) -> str:
    """Return OK, NOT_A_DIRECTORY or MISSING for a single entry (symlinks followed)."""
    if os.path.isdir(entry):
        return OK
    if os.path.exists(entry):
        return NOT_A_DIRECTORY
    return MISSING


def validate(entries: List[str]) -> List[Tuple[str, str]]:
    return [(e, classify(e)) for e in entries]


def resolve(entry: str) -> Optional[str]:
    """Canonical target of an existing entry, None if it does not exist."""
    if not entry or not os.path.exists(entry):
        return None
    return os.path.realpath(entry)


# ---- Duplicates --------------------------------------------------------------

def dedup(entries: List[str]) -> List[str]:
    seen = set()
    unique: List[str] = []
    for e in entries:
        if e in seen:
            continue
        seen.add(e)
        unique.append(e)
    return unique


def find_duplicates(entries: List[str]) -> List[str]:
    """Every occurrence after the first, in order of appearance."""
    seen = set()
    dups: List[str] = []
    for e in entries:
        if e in seen:
            dups.append(e)
        else:
            seen.add(e)
    return dups


def find_resolved_duplicates(entries: List[str]) -> List[str]:
    """
    Canonical directories named more than once once symlinks are resolved.

    One item per extra occurrence, like find_duplicates(). Entries that do
    not exist are skipped.
    """
    resolved = [r for r in (resolve(e) for e in entries) if r is not None]
    return find_duplicates(resolved)


def occurrences(dups: List[str]) -> Dict[str, int]:
    """Turn a find_duplicates() result into {entry: total number of occurrences}."""
    return {e: n + 1 for e, n in Counter(dups).items()}


# ---- Counting ----------------------------------------------------------------

def count_executables(directory: str) -> Optional[int]:
    """
    Count regular files directly inside *directory* that the current user may
    execute. Symlinks are followed; broken links are not counted.

    Returns None when the directory cannot be listed.
    """
    if not directory:
        return None
    try:
        it = os.scandir(directory)
    except OSError as ex:
        logger.debug("cannot list %s: %s", directory, ex)
        return None

    n = 0
    with it:
        for child in it:
            try:
                if child.is_file() and os.access(child.path, os.X_OK, **_ACCESS_KW):
                    n += 1
            except OSError:
                # The file vanished or is inaccessible, skip it
                continue
    return n


def count(entries: List[str]) -> List[Tuple[str, Optional[int]]]:
    return [(e, count_executables(e)) for e in entries]


def find_empty(entries: List[str]) -> List[str]:
    """Distinct directories that exist but hold no executables."""
    return [e for e in dedup(entries) if classify(e) == OK and count_executables(e) == 0]


# ---- Mutation ----------------------------------------------------------------

def append(entries: List[str], candidate: str) -> List[str]:
    if candidate in entries:
        return list(entries)
    return list(entries) + [candidate]


def prepend(entries: List[str], candidate: str) -> List[str]:
    if candidate in entries:
        return list(entries)
    return [candidate] + list(entries)


def append_path(raw: str, candidate: str, sep: str = SEP) -> str:
    return join(append(split(raw, sep), candidate), sep)


def prepend_path(raw: str, candidate: str, sep: str = SEP) -> str:
    return join(prepend(split(raw, sep), candidate), sep)
