"""Tests for the ctxslice command-line interface."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from ctxslice.cli import main
from ctxslice.core.paths import ENV_CTXSLICE_DIR, ENV_CTXSLICE_SESSION_FILE, reset_paths


@pytest.fixture()
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "home"
    monkeypatch.setenv(ENV_CTXSLICE_DIR, str(home))
    monkeypatch.delenv(ENV_CTXSLICE_SESSION_FILE, raising=False)
    reset_paths()
    yield home
    reset_paths()


@pytest.fixture()
def project(tmp_path: Path) -> Path:
    project = tmp_path / "proj"
    (project / "core").mkdir(parents=True)
    (project / "core" / "A.java").write_text(
        "class A {\n  void foo() {}\n  void bar(int x) {}\n}\n"
    )
    return project


@pytest.fixture()
def graph_file(tmp_path: Path, project: Path) -> Path:
    root = project.resolve().as_posix()
    document = {
        "workspace": {"name": "proj", "rootPath": root},
        "classes": [
            {
                "qualifiedName": "com.x.A",
                "name": "A",
                "filePath": f"{root}/core/A.java",
                "startLine": 1,
                "endLine": 4,
                "methods": [
                    {"name": "foo", "parameterTypes": [], "startLine": 2, "endLine": 2},
                    {"name": "bar", "parameterTypes": ["int"], "startLine": 3, "endLine": 3},
                ],
                "usedMethods": [{"name": "foo"}],
            }
        ],
    }
    path = tmp_path / "graph.json"
    path.write_text(json.dumps(document))
    return path


def _run(project: Path, *args: str) -> None:
    main(["-d", str(project), *args])


def _sessions(home: Path) -> list:
    return json.loads((home / "chat_sessions.json").read_text())


def test_add_file_persists_selection(home: Path, project: Path, capsys) -> None:
    _run(project, "add-file", "core/A.java")

    assert "Added core/A.java" in capsys.readouterr().out
    tree = _sessions(home)[0]["appFileTree"]
    project_file = tree["projectFileTrees"][0]["modules"][0]["packages"][0]["files"][0]
    assert project_file == {"filePath": "core/A.java", "whole": True, "classes": []}


def test_add_graph_then_export(home: Path, project: Path, graph_file: Path, capsys) -> None:
    _run(project, "add-graph", str(graph_file))
    capsys.readouterr()

    _run(project, "export", "--graph", str(graph_file))
    out = capsys.readouterr().out

    assert "=== Project: proj ===" in out
    assert '<file_fragment path="core/A.java" language="java">' in out
    assert "void foo() {}" in out
    assert "void bar" not in out


def test_export_reads_other_workspace_from_its_root(
    home: Path, project: Path, graph_file: Path, tmp_path: Path, capsys
) -> None:
    other = tmp_path / "other"
    (other / "core").mkdir(parents=True)
    (other / "core" / "A.java").write_text(
        "class A {\n  void foo() { fromOther(); }\n  void bar(int x) {}\n}\n"
    )
    root = other.resolve().as_posix()
    document = {
        "workspace": {"name": "other", "rootPath": root},
        "classes": [
            {
                "qualifiedName": "com.y.A",
                "name": "A",
                "filePath": f"{root}/core/A.java",
                "methods": [
                    {"name": "foo", "parameterTypes": [], "startLine": 2, "endLine": 2},
                    {"name": "bar", "parameterTypes": ["int"], "startLine": 3, "endLine": 3},
                ],
                "usedMethods": [{"name": "foo"}],
            }
        ],
    }
    other_graph = tmp_path / "other_graph.json"
    other_graph.write_text(json.dumps(document))

    _run(project, "add-method", str(graph_file), "com.x.A", "bar", "--param", "int")
    _run(project, "add-graph", str(other_graph))
    capsys.readouterr()
    _run(project, "export", "--graph", str(other_graph))
    out = capsys.readouterr().out

    assert "=== Project: other ===" in out
    assert "fromOther();" in out
    assert "void foo() {}" not in out
    # proj has no graph here, so its method cannot be located
    assert "=== Project: proj ===" not in out
    assert "void bar" not in out


def test_add_method_and_remove(home: Path, project: Path, graph_file: Path) -> None:
    _run(project, "add-method", str(graph_file), "com.x.A", "bar", "--param", "int")
    methods = _sessions(home)[0]["appFileTree"]["projectFileTrees"][0]["modules"][0]
    assert methods["packages"][0]["files"][0]["classes"][0]["methods"] == [
        {"methodName": "bar", "parameterTypes": ["int"]}
    ]

    _run(project, "remove", "--file", "core/A.java", "--class", "A", "--method", "bar")
    files = _sessions(home)[0]["appFileTree"]["projectFileTrees"][0]["modules"][0]
    assert files["packages"][0]["files"][0]["classes"] == []


def test_unknown_class_exits(home: Path, project: Path, graph_file: Path) -> None:
    with pytest.raises(SystemExit) as exc_info:
        _run(project, "add-method", str(graph_file), "Missing", "foo")
    assert exc_info.value.code == 1


def test_new_and_sessions(home: Path, project: Path, capsys) -> None:
    _run(project, "new")
    _run(project, "new")
    capsys.readouterr()

    _run(project, "sessions")
    out = capsys.readouterr().out
    assert len(_sessions(home)) == 2
    assert "Chat Sessions" in out


def test_delete_by_prefix(home: Path, project: Path) -> None:
    _run(project, "new")
    session_id = _sessions(home)[0]["id"]

    _run(project, "delete", session_id[:8])
    assert _sessions(home) == []


def test_ask_streams_reply_into_session(
    home: Path, project: Path, monkeypatch: pytest.MonkeyPatch, capsys
) -> None:
    home.mkdir()
    (home / "settings.json").write_text(json.dumps({"api_url": "https://api.example.com/chat"}))
    monkeypatch.setenv("OPENAI_API_KEY", "test")

    class FakeClient:
        def __init__(self, api_url, headers):
            self.payloads = []

        def stream_events(self, payload):
            from ctxslice.core.api.sse import parse_event_stream

            self.payloads.append(payload)
            chunk = 'data: {"choices": [{"delta": {"content": "Answer"}}]}'
            yield from parse_event_stream([chunk, ""])

    with patch("ctxslice.cli.StreamingHttpClient", FakeClient):
        _run(project, "ask", "What does A do?")

    assert "Answer" in capsys.readouterr().out
    messages = _sessions(home)[0]["messages"]
    assert messages == [
        {"role": "user", "content": "What does A do?"},
        {"role": "assistant", "content": "Answer"},
    ]


def test_missing_working_dir_exits(home: Path, tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as exc_info:
        main(["-d", str(tmp_path / "nope"), "show"])
    assert exc_info.value.code == 1
