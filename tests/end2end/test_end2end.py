import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

from prompt_repo import cli

SRC = Path(__file__).resolve().parents[2] / "src"


def build_repo(root: Path) -> Path:
    files = {
        "src/pkg/__init__.py": "",
        "src/pkg/core.py": "def add(a, b):\n    return a + b\n",
        "tests/test_core.py": "def test_add():\n    assert True\n",
        "README.md": "# demo\n",
        "node_modules/left-pad/index.js": "module.exports = 1\n",
        "assets/logo.png": "not really a png\n",
    }
    for rel, text in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    (root / "data.bin").write_bytes(b"\xff\xfe\x00binary")
    (root / "empty").mkdir()
    return root


@pytest.mark.end2end
def test_end_to_end_markdown_export(tmp_path: Path) -> None:
    repo = build_repo(tmp_path / "demo")
    output = tmp_path / "export.md"

    exit_code = cli.main([str(repo), "--relative-paths", "--line-number", "--output", str(output)])

    assert exit_code == 0
    text = output.read_text(encoding="utf-8")
    assert text.startswith("Project Path: demo\n\nSource Tree:\n\n```\ndemo\n")
    assert "├── empty/" in text
    assert "`demo/src/pkg/core.py`:\n\n```py\n   1 | def add(a, b):\n   2 |     return a + b\n" in text
    assert "`demo/data.bin`:" in text
    assert "(binary file, size=9 bytes)" in text
    assert "`demo/src/pkg/__init__.py`" not in text
    assert "node_modules" not in text
    assert "logo.png" not in text


@pytest.mark.end2end
def test_end_to_end_json_payload(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    repo = build_repo(tmp_path / "demo")

    exit_code = cli.main([str(repo), "--include", "py", "--exclude", "tests/**", "--json", "--relative-paths"])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["directory_name"] == "demo"
    assert payload["files"] == ["demo/src/pkg/core.py"]
    assert payload["token_count"] is None
    assert payload["truncated"] is False
    assert "Source Tree:" in payload["prompt"]


@pytest.mark.end2end
def test_end_to_end_module_entry_point(tmp_path: Path) -> None:
    repo = build_repo(tmp_path / "demo")
    output = tmp_path / "export.md"

    result = subprocess.run(  # noqa: S603
        [sys.executable, "-m", "prompt_repo", str(repo), "--max-files", "1", "--output", str(output)],
        capture_output=True,
        text=True,
        check=False,
        cwd=tmp_path,
        env={**os.environ, "PYTHONPATH": str(SRC)},
    )

    assert result.returncode == 0
    assert "[✓] Prompt written to" in result.stderr
    assert "file limit reached, listing truncated" in result.stderr
    assert "> Note: file limit reached, listing truncated" in output.read_text(encoding="utf-8")


@pytest.mark.end2end
def test_end_to_end_missing_root_exit_code(tmp_path: Path) -> None:
    result = subprocess.run(  # noqa: S603
        [sys.executable, "-m", "prompt_repo", str(tmp_path / "missing")],
        capture_output=True,
        text=True,
        check=False,
        cwd=tmp_path,
        env={**os.environ, "PYTHONPATH": str(SRC)},
    )

    assert result.returncode == 1
    assert "[!] Path does not exist" in result.stderr
