from __future__ import annotations
import enum
import re
from dataclasses import dataclass
from re import Pattern
from typing import Iterable, Optional, Tuple

BACKUP_PATTERNS = ("BKP", "BKUP", "BACKUP", "BACK_UP")
INSTALL_BACKUP_PREFIXES = ("DSC_", "DSS_", "MCS_", "LES", "LM")
DUMP_EXTENSIONS = (".dmp", ".mdmp", ".hprof")
HOTFIX_EXTENSIONS = (".tar", ".tgz", ".gz")

# parent directory suffixes / subpaths; either separator is accepted
DUMP_DIR_SUFFIXES = (r"moca[\\/]bin", r"[\\/]les")
HOTFIX_SUBPATH = r"[\\/]les[\\/]hotfix"

REASON_BACKUP = "Backup file pattern match"
REASON_INSTALL = "Installation backup prefix match"
REASON_DUMP = "Dump file in monitored directory"
REASON_HOTFIX = "Hotfix archive file"

_BASENAME_RE = re.compile(r"([^/\\]+)$")


class RuleKind(enum.Enum):
    BACKUP_PATTERN = "backup_pattern"
    INSTALL_PREFIX = "install_prefix"
    DUMP_EXTENSION = "dump_extension"
    HOTFIX_EXTENSION = "hotfix_extension"


@dataclass(frozen=True)
class ClassificationRule:
    """One pre-compiled predicate of the rule cascade.

    ``matcher`` is searched against the full path when ``on_basename`` is
    false, otherwise against the last path component. ``scope`` (if set)
    must also match the parent directory for the rule to apply.
    """
    kind: RuleKind
    matcher: Pattern[str]
    reason: str
    on_basename: bool = False
    scope: Optional[Pattern[str]] = None

    def try_match(self, path: str, parent_dir: str) -> bool:
        if self.scope is not None and not self.scope.search(parent_dir):
            return False
        subject = basename(path) if self.on_basename else path
        return self.matcher.search(subject) is not None


def basename(path: str) -> str:
    m = _BASENAME_RE.search(path)
    return m.group(1) if m else ""


def _alternation(items: Iterable[str]) -> str:
    return "|".join(re.escape(x) for x in items)


def build_rules(backup_patterns=BACKUP_PATTERNS,
                install_prefixes=INSTALL_BACKUP_PREFIXES,
                dump_extensions=DUMP_EXTENSIONS,
                hotfix_extensions=HOTFIX_EXTENSIONS) -> Tuple[ClassificationRule, ...]:
    """Compile the rule cascade in priority order: backup, install, dump, hotfix."""
    return (
        ClassificationRule(
            kind=RuleKind.BACKUP_PATTERN,
            matcher=re.compile(_alternation(backup_patterns), re.IGNORECASE),
            reason=REASON_BACKUP,
        ),
        ClassificationRule(
            kind=RuleKind.INSTALL_PREFIX,
            matcher=re.compile("^(?:%s)" % _alternation(install_prefixes), re.IGNORECASE),
            reason=REASON_INSTALL,
            on_basename=True,
        ),
        ClassificationRule(
            kind=RuleKind.DUMP_EXTENSION,
            matcher=re.compile("(?:%s)$" % _alternation(dump_extensions), re.IGNORECASE),
            reason=REASON_DUMP,
            on_basename=True,
            scope=re.compile(r"(?:%s)[\\/]?$" % "|".join(DUMP_DIR_SUFFIXES), re.IGNORECASE),
        ),
        ClassificationRule(
            kind=RuleKind.HOTFIX_EXTENSION,
            matcher=re.compile("(?:%s)$" % _alternation(hotfix_extensions), re.IGNORECASE),
            reason=REASON_HOTFIX,
            on_basename=True,
            scope=re.compile(HOTFIX_SUBPATH, re.IGNORECASE),
        ),
    )


DEFAULT_RULES = build_rules()


class Classifier:
    """First-match-wins evaluation of an immutable rule tuple.

    Holds no mutable state, so one instance may be shared between threads.
    """

    def __init__(self, rules: Iterable[ClassificationRule] = DEFAULT_RULES):
        self.rules = tuple(rules)

    def classify(self, path: str, parent_dir: str) -> Tuple[bool, str]:
        for rule in self.rules:
            if rule.try_match(path, parent_dir):
                return True, rule.reason
        return False, ""
