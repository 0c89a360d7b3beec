import json
from pathlib import Path

import pytest

from nobo.config import load_settings
from nobo.vcs import VCSError


def create_project(root: Path) -> Path:
    content = root / "content"
    (content / "posts").mkdir(parents=True)
    (content / "themes" / "default" / "templates").mkdir(parents=True)
    (content / "uploads").mkdir()

    (content / "posts" / "a.json").write_text(
        json.dumps({"slug": "a", "title": "First", "content": "[p]Hello[/p]"}),
        encoding="utf-8",
    )
    (content / "posts" / "b.json").write_text(
        json.dumps({"slug": "b", "title": "Second", "content": "[h2]Hi[/h2]"}),
        encoding="utf-8",
    )
    (content / "config.json").write_text(
        json.dumps({"site": {"title": "My NoBo Site"}, "theme": "default"}),
        encoding="utf-8",
    )
    (content / "themes" / "default" / "style.css").write_text(
        "body { margin: 0; }", encoding="utf-8"
    )
    (content / "themes" / "default" / "templates" / "index.html").write_text(
        "<main>{{content}}</main>", encoding="utf-8"
    )
    return root


class FakeVCS:
    def __init__(self, revision="c0ffee", repository=True):
        self.revision = revision
        self.repository = repository
        self.diff = []
        self.diff_error = None
        self.diff_calls = []

    def is_repository(self):
        return self.repository

    def current_revision(self):
        if self.revision is None:
            raise VCSError("no HEAD")
        return self.revision

    def changed_files(self, old_revision, new_revision):
        self.diff_calls.append((old_revision, new_revision))
        if self.diff_error is not None:
            raise self.diff_error
        return list(self.diff)


@pytest.fixture
def project(tmp_path):
    return create_project(tmp_path)


@pytest.fixture
def settings(project):
    return load_settings(project)


@pytest.fixture
def fake_vcs():
    return FakeVCS()
