"""
Name Equivalence Oracle.

``NameEquivalenceOracle`` is the capability the matcher consumes: "should
these two name strings be treated as the same name?". ``NameVariants`` is the
default implementation, backed by variant groups (built-in Slavic given
names plus user CSV dictionaries). ``ExactNameOracle`` is the fallback when
no dictionary is wanted or the configured oracle fails.
"""

from __future__ import annotations

import csv
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Protocol, Set, runtime_checkable

from gedcom_reconcile.logging import get_logger
from gedcom_reconcile.normalization.name_normalization import normalize_name

log = get_logger("name_variants")


class NameRole(str, Enum):
    GIVEN = "given"
    SURNAME = "surname"


@runtime_checkable
class NameEquivalenceOracle(Protocol):
    def are_equivalent(self, name_a: str, name_b: str, role: NameRole) -> bool:
        ...


class ExactNameOracle:
    """Equivalence is equality of normalized strings, nothing more."""

    def are_equivalent(self, name_a: str, name_b: str, role: NameRole) -> bool:
        a = normalize_name(name_a)
        return bool(a) and a == normalize_name(name_b)


# Common Russian/Ukrainian/Polish given-name equivalents
BUILTIN_GIVEN_NAME_GROUPS: Dict[str, List[str]] = {
    "иван": ["ivan", "john", "johann", "jan", "jean", "giovanni", "juan", "ioan"],
    "александр": ["alexander", "alex", "oleksandr", "aleksander", "саша", "sasha"],
    "михаил": ["michael", "michel", "miguel", "mykhailo", "michal", "миша"],
    "николай": ["nicholas", "nicolas", "mykola", "mikolaj", "коля"],
    "пётр": ["peter", "pierre", "pedro", "petro", "piotr", "petr"],
    "павел": ["paul", "pavel", "pawel", "pablo", "паша"],
    "андрей": ["andrew", "andrei", "andriy", "andrzej", "andre"],
    "сергей": ["sergei", "serge", "sergiy", "серёжа"],
    "дмитрий": ["dmitry", "dmitri", "dmytro", "дима"],
    "владимир": ["vladimir", "volodymyr", "wladimir", "володя"],
    "борис": ["boris", "borys"],
    "григорий": ["gregory", "grigory", "hryhoriy", "гриша"],
    "василий": ["vasily", "basil", "vasyl", "вася"],
    "яков": ["jacob", "james", "jakub", "yakov"],
    "семён": ["simon", "semen", "семен"],
    "фёдор": ["theodore", "fedor", "федор", "федя"],
    "мария": ["maria", "mary", "marie", "марія", "маша"],
    "анна": ["anna", "anne", "ann", "hanna", "ганна", "аня"],
    "елена": ["helen", "helena", "elena", "olena", "лена"],
    "екатерина": ["catherine", "katarina", "kateryna", "катя"],
    "наталья": ["natalia", "natalie", "nataliya", "наташа"],
    "ольга": ["olga", "olha", "helga"],
    "татьяна": ["tatiana", "tanya", "tetiana", "таня"],
    "ирина": ["irina", "irene", "iryna"],
    "светлана": ["svetlana", "svitlana", "света"],
    "людмила": ["ludmila", "lyudmila", "liudmyla", "люда"],
    "евгения": ["eugenia", "yevheniya", "женя"],
    "софья": ["sophia", "sofia", "zofia", "софія", "соня"],
    "елизавета": ["elizabeth", "yelyzaveta", "elzbieta", "лиза"],
    "валентина": ["valentina", "валя"],
    "галина": ["galina", "halyna", "галя"],
}


class NameVariants:
    """
    Variant-group oracle.

    Every name (base or variant) is stored by its normalized form and points
    at the groups it belongs to; two names are equivalent when they share a
    group. Groups are not merged transitively: "jan" can sit in both the
    Ivan group and a user-supplied Jan/Johannes group without making Ivan
    equivalent to Johannes.
    """

    def __init__(self, include_builtin: bool = True):
        self._groups: Dict[NameRole, List[Set[str]]] = {role: [] for role in NameRole}
        self._index: Dict[NameRole, Dict[str, Set[int]]] = {role: {} for role in NameRole}
        if include_builtin:
            for base, variants in BUILTIN_GIVEN_NAME_GROUPS.items():
                self.add_variants(NameRole.GIVEN, base, variants)
            log.debug("Loaded %d built-in given name groups", len(BUILTIN_GIVEN_NAME_GROUPS))

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def add_variants(self, role: NameRole, base: str, variants: Iterable[str]) -> None:
        members = {normalize_name(n) for n in [base, *variants]}
        members.discard("")
        if len(members) < 2:
            return
        group_id = len(self._groups[role])
        self._groups[role].append(members)
        index = self._index[role]
        for name in members:
            index.setdefault(name, set()).add(group_id)

    def load_csv(self, path: str | Path, role: NameRole) -> int:
        """
        Load a dictionary file with rows ``name,"variant1 variant2 ..."``.
        Returns the number of groups added.
        """
        path = Path(path)
        log.info("Loading %s name variants from %s", role.value, path)
        count = 0
        with path.open("r", encoding="utf-8", newline="") as f:
            for row in csv.reader(f):
                if len(row) < 2 or not row[0].strip() or row[0].lstrip().startswith("#"):
                    continue
                variants = row[1].replace(",", " ").split()
                before = len(self._groups[role])
                self.add_variants(role, row[0].strip(), variants)
                count += len(self._groups[role]) - before
        log.info("Loaded %d %s name groups from %s", count, role.value, path.name)
        return count

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def group_count(self, role: NameRole) -> int:
        return len(self._groups[role])

    def variants_of(self, name: str, role: NameRole) -> Set[str]:
        key = normalize_name(name)
        out: Set[str] = set()
        for group_id in self._index[role].get(key, ()):
            out |= self._groups[role][group_id]
        out.discard(key)
        return out

    def are_equivalent(self, name_a: str, name_b: str, role: NameRole) -> bool:
        a = normalize_name(name_a)
        b = normalize_name(name_b)
        if not a or not b:
            return False
        if a == b:
            return True
        index = self._index[role]
        return bool(index.get(a, set()) & index.get(b, set()))


def build_default_oracle(
    given_names_csv: str | Path | None = None,
    surnames_csv: str | Path | None = None,
) -> NameVariants:
    """
    Built-in groups plus the configured dictionaries. A dictionary that
    cannot be read is skipped with a warning; names it would have covered
    fall back to exact comparison.
    """
    oracle = NameVariants()
    for path, role in ((given_names_csv, NameRole.GIVEN), (surnames_csv, NameRole.SURNAME)):
        if not path:
            continue
        try:
            oracle.load_csv(path, role)
        except (OSError, csv.Error, UnicodeDecodeError) as exc:
            log.warning("Skipping %s name dictionary %s: %s", role.value, path, exc)
    return oracle
