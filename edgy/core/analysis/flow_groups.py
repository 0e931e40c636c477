"""Flow grouping: screens that share a name prefix form one user journey.

The prefix is everything before the first ``-``, en-dash or em-dash,
trimmed. "Login - Error" and "Login – Success" both belong to "Login".
"""

import re
from typing import Dict, List

from .models import Screen

_PREFIX = re.compile(r"^([^-–—]+)")
_SEPARATORS = re.compile(r"[-–—]")


def flow_prefix(screen_name: str) -> str:
    match = _PREFIX.match(screen_name)
    return match.group(1).strip() if match else screen_name


def flow_context(screen_name: str) -> str:
    """Human label for a screen's flow, used in finding templates."""
    head = _SEPARATORS.split(screen_name)[0].strip()
    return head or "this"


def group_screens_by_flow(screens: List[Screen]) -> Dict[str, List[Screen]]:
    """Group screens by flow prefix, preserving input order within a group."""
    groups: Dict[str, List[Screen]] = {}
    for screen in screens:
        groups.setdefault(flow_prefix(screen.name), []).append(screen)
    return groups


def flow_siblings(screen: Screen, groups: Dict[str, List[Screen]]) -> List[Screen]:
    """All screens in ``screen``'s group, itself included."""
    for members in groups.values():
        if any(s.screen_id == screen.screen_id for s in members):
            return members
    return [screen]
