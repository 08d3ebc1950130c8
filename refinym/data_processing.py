import logging
import re
from pathlib import Path
from typing import Callable, Dict, Hashable, Set, Tuple

import pandas as pd

logger = logging.getLogger(__name__)


RELATION_COLUMNS = ["source_id", "source_name", "sink_id", "sink_name"]

# camelCase / PascalCase / digit boundaries; Python's re wants fixed-width lookbehinds
_SUBTOKEN_BOUNDARY = re.compile(
    r"(?<=[^A-Z0-9])(?=[A-Z0-9])"    # lower (or other) -> upper/digit
    r"|(?<=[A-Z])(?=[0-9])"          # upper -> digit
    r"|(?<=[0-9])(?=[A-Za-z])"       # digit -> letter
    r"|(?<=.)(?=[A-Z][a-z])"         # end of an acronym: ASTIs -> AST, Is
)
_DELIMITERS = re.compile(r"[_.]")


def split_subtokens(name: str) -> Tuple[str, ...]:
    """
    Split an identifier into lowercase subtokens, e.g.
    someSimpleTest1 -> (some, simple, test, 1), ThisASTIsBlue -> (this, ast, is, blue).
    """
    subtokens = []
    for part in _DELIMITERS.split(name):
        subtokens.extend(s.lower() for s in _SUBTOKEN_BOUNDARY.split(part) if s)
    return tuple(subtokens)


def split_chars(name: str) -> Tuple[str, ...]:
    return tuple(name.lower())


def split_bigrams(name: str) -> Tuple[str, ...]:
    name = name.lower()
    return tuple(name[i:i + 2] for i in range(len(name) - 1))


def split_subtoken_bigrams(name: str) -> Tuple[str, ...]:
    return tuple(sub[i:i + 2] for sub in split_subtokens(name) for i in range(len(sub) - 1))


def split_subtoken_trigrams(name: str) -> Tuple[str, ...]:
    """Character trigrams of every subtoken; subtokens shorter than three characters are kept whole."""
    trigrams = []
    for sub in split_subtokens(name):
        if len(sub) < 3:
            trigrams.append(sub)
        else:
            trigrams.extend(sub[i:i + 3] for i in range(len(sub) - 2))
    return tuple(trigrams)


def split_trigrams_and_subtokens(name: str) -> Tuple[str, ...]:
    return split_subtokens(name) + split_subtoken_trigrams(name)


SPLITTERS: Dict[str, Callable[[str], Tuple[str, ...]]] = {
    "subtoken": split_subtokens,
    "char": split_chars,
    "bigram": split_bigrams,
    "subtoken_bigram": split_subtoken_bigrams,
    "subtoken_trigram": split_subtoken_trigrams,
    "trigram+subtoken": split_trigrams_and_subtokens,
}


def get_splitter(name: str) -> Callable[[str], Tuple[str, ...]]:
    try:
        return SPLITTERS[name]
    except KeyError:
        raise ValueError(f"Unknown splitter {name!r}; choose one of {sorted(SPLITTERS)}") from None


def load_relations(file_name: str) -> Tuple[Dict[Hashable, Set[Hashable]], Dict[Hashable, str]]:
    """
    Read a flows-into edge list from CSV.

    Expected columns: source_id, source_name, sink_id, sink_name (one row per edge; a value
    at the source can flow into the sink). Ids are read as strings, missing names become "".

    Returns (relations {source id -> set of sink ids}, names {id -> name}).
    """
    fp = Path(file_name)
    if not fp.exists():
        raise FileNotFoundError(f'File not found: {fp}')

    df = pd.read_csv(fp, dtype=str, keep_default_na=False)
    missing = [c for c in RELATION_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"{fp} is missing required columns {missing} (expected {RELATION_COLUMNS})")

    df = df[RELATION_COLUMNS].apply(lambda col: col.str.strip())
    df = df[(df["source_id"] != "") & (df["sink_id"] != "")]

    relations: Dict[Hashable, Set[Hashable]] = {}
    for source, group in df.groupby("source_id", sort=False):
        relations[source] = set(group["sink_id"])

    # first non-empty name seen for an id wins
    names: Dict[Hashable, str] = {}
    for id_col, name_col in (("source_id", "source_name"), ("sink_id", "sink_name")):
        for key, name in zip(df[id_col], df[name_col]):
            if key not in names or (not names[key] and name):
                names[key] = name

    logger.info("Loaded %d relations between %d usage keys from %s", len(df), len(names), fp)
    return relations, names
