from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple

_VERSION = r"(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?"

# Order matters: Chromium based browsers also carry Chrome/ and Safari/ tokens.
_RULES: List[Tuple[str, "re.Pattern[str]"]] = [
    ("Edge", re.compile(r"\bEdg(?:e|A|iOS)?/" + _VERSION)),
    ("Opera", re.compile(r"\bOPR/" + _VERSION)),
    ("Samsung Internet", re.compile(r"\bSamsungBrowser/" + _VERSION)),
    ("Firefox iOS", re.compile(r"\bFxiOS/" + _VERSION)),
    ("Firefox", re.compile(r"\bFirefox/" + _VERSION)),
    ("Chrome Mobile iOS", re.compile(r"\bCriOS/" + _VERSION)),
    ("Chrome Mobile", re.compile(r"\bChrome/" + _VERSION + r".*\bMobile\b")),
    ("Chrome", re.compile(r"\b(?:Chrome|Chromium)/" + _VERSION)),
    ("Mobile Safari", re.compile(r"\bVersion/" + _VERSION + r".*\bMobile/.*\bSafari/")),
    ("Safari", re.compile(r"\bVersion/" + _VERSION + r".*\bSafari/")),
    ("curl", re.compile(r"^curl/" + _VERSION)),
]

# Generic "Name/1.2.3 ..." shape, used when no rule matches.
_GENERIC = re.compile(
    r"""^ (?P<name> [^/ ]* [^0-9/(]* )
    (/ (?P<version> [^/ ]* ))?
    ([ /] .*)?
    $""",
    re.VERBOSE,
)

_NOT_A_FAMILY = {"", "Mozilla"}


@dataclass(frozen=True)
class UserAgent:
    family: str
    major: str = ""
    minor: str = ""
    patch: str = ""

    def __str__(self) -> str:
        return f"{self.family} {self.major}.{self.minor}.{self.patch}"


class UserAgentParser(Protocol):
    def parse(self, raw: str) -> UserAgent:
        ...


def _from_match(family: str, m: "re.Match[str]") -> UserAgent:
    return UserAgent(
        family=family,
        major=m.group("major") or "",
        minor=m.group("minor") or "",
        patch=m.group("patch") or "",
    )


def _split_version(version: Optional[str]) -> Tuple[str, str, str]:
    parts = (version or "").split(".")
    parts = [p for p in parts if p.isdigit()][:3]
    parts += [""] * (3 - len(parts))
    return parts[0], parts[1], parts[2]


class RuleUserAgentParser:
    """Small ordered-rule parser for the browsers that send NEL reports."""

    def parse(self, raw: str) -> UserAgent:
        raw = (raw or "").strip()
        for family, pattern in _RULES:
            m = pattern.search(raw)
            if m:
                return _from_match(family, m)

        m = _GENERIC.match(raw)
        name = m.group("name").strip() if m else ""
        if name in _NOT_A_FAMILY:
            return UserAgent(family="Other")
        major, minor, patch = _split_version(m.group("version"))
        return UserAgent(family=name, major=major, minor=minor, patch=patch)
