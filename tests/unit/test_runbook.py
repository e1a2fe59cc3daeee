"""
Unit tests for the runbook model.
"""

import json
import os
import tempfile

import pytest

from savvy.runbook import ReplayStep, Runbook, load_runbook


class TestRunbook:
    """Building runbooks from documents."""

    def test_from_steps(self):
        """Test a runbook document with descriptions."""
        runbook = Runbook.from_dict({
            "title": "Deploy",
            "steps": [
                {"command": "make build", "description": "Build"},
                {"command": "make deploy"},
            ],
        })
        assert runbook.title == "Deploy"
        assert runbook.steps == [
            ReplayStep("make build", "Build"),
            ReplayStep("make deploy"),
        ]

    def test_from_recording(self):
        """Test a saved recording is accepted; file entries are skipped."""
        runbook = Runbook.from_dict({
            "commands": [
                {"command": "ls"},
                {"command": "savvy record file /etc/hosts", "file_info": {"path": "/etc/hosts"}},
                {"command": "   "},
                {"command": "pwd"},
            ],
        }, default_title="session")
        assert runbook.title == "session"
        assert runbook.commands() == ["ls", "pwd"]

    def test_plain_strings(self):
        """Test steps given as plain strings."""
        assert Runbook.from_dict({"steps": ["a", "b"]}).commands() == ["a", "b"]

    def test_missing_steps(self):
        """Test documents without steps are rejected."""
        with pytest.raises(ValueError):
            Runbook.from_dict({"title": "nothing"})

    @pytest.mark.parametrize("title,alias", [
        ("How to Deploy the API", "deploy-the-api"),
        ("Restart nginx", "restart-nginx"),
        ("how to ", ""),
    ])
    def test_alias(self, title, alias):
        """Test aliases are derived from the title."""
        assert Runbook(title=title).alias == alias


class TestLoadRunbook:
    """Loading runbook files."""

    def setup_method(self):
        fd, self.path = tempfile.mkstemp(prefix="savvy-runbook-", suffix=".json")
        os.close(fd)

    def teardown_method(self):
        os.unlink(self.path)

    def write(self, data):
        with open(self.path, "w") as f:
            json.dump(data, f)

    def test_title_defaults_to_file_name(self):
        """Test the file stem is used when there is no title."""
        self.write({"steps": [{"command": "ls"}]})
        runbook = load_runbook(self.path)
        assert runbook.title == os.path.splitext(os.path.basename(self.path))[0]

    def test_no_steps(self):
        """Test an empty runbook is rejected."""
        self.write({"steps": []})
        with pytest.raises(ValueError):
            load_runbook(self.path)

    def test_invalid_json(self):
        """Test malformed files are rejected."""
        with open(self.path, "w") as f:
            f.write("{not json")
        with pytest.raises(ValueError):
            load_runbook(self.path)
