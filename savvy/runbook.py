"""
Runbook model.

A runbook is the ordered list of steps replayed by ``savvy run``. It comes
from outside this package (the runbook service, or a file written by
``savvy record``); here it is only loaded and handed to the replay server.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ReplayStep:
    """One command of a runbook."""
    command: str
    description: Optional[str] = None


@dataclass
class Runbook:
    """Titled, ordered list of steps."""
    title: str
    steps: List[ReplayStep] = field(default_factory=list)

    def commands(self) -> List[str]:
        """Command text of every step."""
        return [step.command for step in self.steps]

    @property
    def alias(self) -> str:
        """
        Short name derived from the title.

        "How to Deploy the API" -> "deploy-the-api"
        """
        alias = self.title.lower().replace(" ", "-")
        if alias.startswith("how-to-"):
            alias = alias[len("how-to-"):]
        return alias.strip("-")

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_title: str = "runbook") -> "Runbook":
        """
        Build a runbook from parsed JSON.

        Accepts a runbook document ({"title", "steps"}) or a recording
        written by ``savvy record`` ({"commands"}).

        Raises:
            ValueError: If the document has neither steps nor commands
        """
        if "steps" in data:
            entries = data["steps"]
        elif "commands" in data:
            entries = data["commands"]
        else:
            raise ValueError("runbook has no 'steps' or 'commands'")

        steps = []
        for entry in entries:
            if isinstance(entry, str):
                steps.append(ReplayStep(command=entry))
                continue
            command = entry.get("command", "")
            if not command.strip() or entry.get("file_info"):
                continue
            steps.append(ReplayStep(command=command, description=entry.get("description")))

        return cls(title=data.get("title") or default_title, steps=steps)


def load_runbook(path: str) -> Runbook:
    """
    Load a runbook from a JSON file.

    Args:
        path: Runbook or recording file

    Returns:
        Runbook titled after the file when the document has no title

    Raises:
        ValueError: If the file has no steps
    """
    file_path = Path(path)
    with open(file_path) as f:
        data = json.load(f)

    runbook = Runbook.from_dict(data, default_title=file_path.stem)
    if not runbook.steps:
        raise ValueError(f"runbook {path} has no steps")
    return runbook
