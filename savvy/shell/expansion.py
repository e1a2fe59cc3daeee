"""
Clean up alias expansions in recorded commands.
"""

import re

# Common distro alias: grep='grep --color=auto --exclude-dir={.bzr,CVS,.git,.hg,.svn}'
GREP_ALIAS_EXPANSION = re.compile(r"grep --color=auto --exclude-dir=\{[\w,.]+\}")


def ignore_grep(command: str) -> str:
    """
    Collapse the expanded grep alias back to plain grep.

    The expansion is noise in a runbook and differs between machines.
    """
    return GREP_ALIAS_EXPANSION.sub("grep", command)
