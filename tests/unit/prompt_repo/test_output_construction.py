from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

import pyperclip
import pytest

from prompt_repo import output_construction
from prompt_repo.assembly import PromptContext
from prompt_repo.exceptions import ConfigurationError
from prompt_repo.file_manipulation import RenderedFile
from prompt_repo.listing import FileListingEntry
from prompt_repo.output_construction import (
    CLIPBOARD_SEPARATOR,
    build_json_payload,
    build_markdown,
    copy_to_clipboard,
    emit_output,
    extract_template_variables,
    load_template,
    parse_paths_from_clipboard,
    read_paths_from_clipboard,
    render_files,
    render_prompt,
    render_template,
    resolve_template_variables,
)
from prompt_repo.settings import Settings
from prompt_repo.tree import TreeNode

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


def make_context(**kwargs: object) -> PromptContext:
    tree = TreeNode(name="project")
    tree.child("app.py", is_dir=False)
    return PromptContext(roots=[Path("/work/project")], trees=[tree], **kwargs)


FILES = [RenderedFile(path="/work/project/app.py", extension="py", code="```py\nprint('hi')\n```")]


@pytest.mark.unit
def test_build_markdown_default_layout() -> None:
    text = build_markdown(make_context(), FILES)

    assert text.startswith("Project Path: project\n\nSource Tree:\n\n```\nproject\n└── app.py\n```\n\n")
    assert "`/work/project/app.py`:\n\n```py\nprint('hi')\n```" in text
    assert "Git Diff" not in text
    assert "Note:" not in text
    assert text.endswith("\n")


@pytest.mark.unit
def test_build_markdown_git_sections_and_skipped_note() -> None:
    context = make_context(git_diff="+added\n", git_log_branch="abc123 - fix", skipped={"SymlinkCycle": 1})

    text = build_markdown(context, FILES)

    assert "Git Diff:\n\n```diff\n+added\n```" in text
    assert "Git Log Between Branches:\n\n```diff\nabc123 - fix\n```" in text
    assert "Git Diff Between Branches" not in text
    assert text.rstrip().endswith("> Note: Skipped 1 entries (SymlinkCycle=1)")


@pytest.mark.unit
def test_extract_template_variables_unique_in_order() -> None:
    template = "{{ role }} {{files}} {{ role }} {{task_1}} {{ 9bad }}"

    assert extract_template_variables(template) == ["role", "files", "task_1"]


@pytest.mark.unit
def test_resolve_template_variables_uses_provided_then_asks() -> None:
    asked: list[str] = []

    def ask(question: str) -> str:
        asked.append(question)
        return "answer"

    values = resolve_template_variables("{{ a }} {{ b }} {{ source_tree }}", {"a": "given"}, ask=ask)

    assert values == {"a": "given", "b": "answer"}
    assert asked == ["Enter value for 'b': "]


@pytest.mark.unit
def test_resolve_template_variables_without_terminal(mocker: MockerFixture) -> None:
    stdin = mocker.patch.object(output_construction.sys, "stdin")
    stdin.isatty.return_value = False

    assert resolve_template_variables("{{ missing }}", {}) == {"missing": ""}


@pytest.mark.unit
def test_resolve_template_variables_eof_is_empty() -> None:
    def ask(_question: str) -> str:
        raise EOFError

    assert resolve_template_variables("{{ x }}", {}, ask=ask) == {"x": ""}


@pytest.mark.unit
def test_render_template_substitutes_once() -> None:
    assert render_template("{{ a }}-{{b}}-{{ c }}", {"a": "{{ b }}", "b": "2"}) == "{{ b }}-2-"


@pytest.mark.unit
def test_render_prompt_with_custom_template() -> None:
    context = make_context(variables={"task": "review"})
    template = "Task: {{ task }}\nPath: {{ absolute_code_path }}\n{{ source_tree }}\n{{ files }}{{ skipped_summary }}"

    text = render_prompt(context, FILES, template=template, ask=lambda _q: "unused")

    assert text.startswith("Task: review\nPath: project\nproject\n└── app.py\n`/work/project/app.py`:")
    assert text.endswith("```\n\n")


@pytest.mark.unit
def test_render_prompt_defaults_to_markdown() -> None:
    context = make_context()

    assert render_prompt(context, FILES) == build_markdown(context, FILES)


@pytest.mark.unit
def test_load_template_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="Failed to read custom template file"):
        load_template(tmp_path / "nope.txt")


@pytest.mark.unit
def test_build_json_payload() -> None:
    payload = json.loads(
        build_json_payload("PROMPT", make_context(truncated=True), FILES, token_count=12, model_info="info"),
    )

    assert payload == {
        "prompt": "PROMPT",
        "directory_name": "project",
        "token_count": 12,
        "model_info": "info",
        "files": ["/work/project/app.py"],
        "skipped": {},
        "truncated": True,
    }


@pytest.mark.unit
def test_copy_to_clipboard_appends_with_separator(mocker: MockerFixture) -> None:
    mocker.patch.object(pyperclip, "paste", return_value="old")
    copy = mocker.patch.object(pyperclip, "copy")

    copy_to_clipboard("new", append=True)

    copy.assert_called_once_with(f"old{CLIPBOARD_SEPARATOR}new")


@pytest.mark.unit
def test_copy_to_clipboard_overwrites(mocker: MockerFixture) -> None:
    paste = mocker.patch.object(pyperclip, "paste", return_value="old")
    copy = mocker.patch.object(pyperclip, "copy")

    copy_to_clipboard("new")

    copy.assert_called_once_with("new")
    paste.assert_not_called()


@pytest.mark.unit
def test_emit_output_defaults_to_stdout(capsys: pytest.CaptureFixture[str]) -> None:
    emit_output("PROMPT\n", Settings())

    assert capsys.readouterr().out == "PROMPT\n"


@pytest.mark.unit
def test_emit_output_writes_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    out = tmp_path / "nested" / "prompt.md"

    emit_output("PROMPT\n", Settings(output=out))

    assert out.read_text(encoding="utf-8") == "PROMPT\n"
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "Prompt written to" in captured.err


@pytest.mark.unit
def test_emit_output_clipboard_failure_falls_back_to_stdout(
    mocker: MockerFixture,
    capsys: pytest.CaptureFixture[str],
) -> None:
    mocker.patch.object(pyperclip, "copy", side_effect=pyperclip.PyperclipException("no clipboard"))

    emit_output("PROMPT", Settings(clipboard=True))

    captured = capsys.readouterr()
    assert "PROMPT" in captured.out
    assert "Failed to copy to clipboard: no clipboard" in captured.err


@pytest.mark.unit
def test_emit_output_clipboard_success(mocker: MockerFixture, capsys: pytest.CaptureFixture[str]) -> None:
    copy = mocker.patch.object(pyperclip, "copy")

    emit_output("PROMPT", Settings(clipboard=True))

    copy.assert_called_once_with("PROMPT")
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "Copied to clipboard successfully." in captured.err


@pytest.mark.unit
def test_parse_paths_from_clipboard(tmp_path: Path) -> None:
    (tmp_path / "a.py").write_text("x", encoding="utf-8")
    content = f"  {tmp_path / 'a.py'}\n{tmp_path / 'missing.py'}\t{tmp_path}  "

    assert parse_paths_from_clipboard(content) == [tmp_path / "a.py", tmp_path]


@pytest.mark.unit
def test_parse_paths_from_clipboard_requires_one_path(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="No valid paths"):
        parse_paths_from_clipboard(f"{tmp_path / 'missing'}")


@pytest.mark.unit
def test_read_paths_from_clipboard_unavailable(mocker: MockerFixture) -> None:
    mocker.patch.object(pyperclip, "paste", side_effect=pyperclip.PyperclipException("headless"))

    with pytest.raises(ConfigurationError, match="headless"):
        read_paths_from_clipboard()


@pytest.mark.unit
def test_render_files_skips_and_counts_unreadable_files(tmp_path: Path, mocker: MockerFixture) -> None:
    ok = tmp_path / "ok.py"
    secret = tmp_path / "secret.py"
    ok.write_text("x = 1\n", encoding="utf-8")
    secret.write_text("TOKEN = 'x'\n", encoding="utf-8")
    entries = [
        FileListingEntry(path=p, rel=p.name, root=tmp_path, root_label=tmp_path.name, size=p.stat().st_size)
        for p in (ok, secret)
    ]
    context = make_context(files=entries, skipped={"SymlinkCycle": 1})
    read_bytes = Path.read_bytes

    def deny_secret(self: Path) -> bytes:
        if self.name == "secret.py":
            raise PermissionError(13, "Permission denied")
        return read_bytes(self)

    mocker.patch.object(Path, "read_bytes", deny_secret)

    updated, files = render_files(context, Settings())

    assert [f.path for f in files] == [str(ok)]
    assert updated.skipped == {"SymlinkCycle": 1, "PathUnreadable": 1}
    assert context.skipped == {"SymlinkCycle": 1}
    assert "> Note: Skipped 2 entries (PathUnreadable=1, SymlinkCycle=1)" in build_markdown(updated, files)
