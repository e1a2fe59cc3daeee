"""
Runbook parameters.

A parameter is a ``<name>`` token inside a command, where name is made of
letters, digits, ``-`` and ``_``. Values are bound at replay time and keyed
by the full token, brackets included.
"""

import re
from typing import Dict, List

PARAM_PATTERN = re.compile(r"<[A-Za-z0-9_-]+>")


def extract(text: str) -> List[str]:
    """
    Find the parameters used in a command.

    Args:
        text: Command text

    Returns:
        Tokens in order of first appearance, without duplicates

    Example:
        extract('script --id="<id-1>" --name="<name_2>"')
        # ['<id-1>', '<name_2>']
    """
    seen = {}
    for match in PARAM_PATTERN.finditer(text):
        seen.setdefault(match.group(0), None)
    return list(seen)


def substitute(text: str, bindings: Dict[str, str]) -> str:
    """
    Replace every bound parameter in a command.

    Unbound tokens are left as they are.

    Args:
        text: Command text
        bindings: Token (e.g. ``<host>``) to value

    Returns:
        Command with bound values applied
    """
    for token, value in bindings.items():
        if token in text:
            text = text.replace(token, value)
    return text


def unbound(text: str, bindings: Dict[str, str]) -> List[str]:
    """Parameters of text that have no value in bindings."""
    return [token for token in extract(text) if token not in bindings]
