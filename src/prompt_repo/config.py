from __future__ import annotations

from enum import StrEnum, auto

IGNORE_FILENAME = ".promptignore"
ENV_PREFIX = "PROMPT_REPO_"
CONFIG_FILENAMES = (".prompt-repo.yaml", ".prompt-repo.yml")


class EntryKind(StrEnum):
    """Kind of a filesystem entry, after following symlinks."""

    FILE = auto()
    DIRECTORY = auto()


class PatternOrigin(StrEnum):
    """Configuration source that produced a glob pattern."""

    DEFAULT = "default"
    IGNORE_FILE = "ignore-file"
    CLI_INCLUDE = "cli-include"
    CLI_EXCLUDE = "cli-exclude"


class Polarity(StrEnum):
    """Whether a pattern admits or removes the paths it matches."""

    INCLUDE = auto()
    EXCLUDE = auto()


class SizeCategory(StrEnum):
    """Coarse size bucket of a listed file."""

    EMPTY = auto()
    NORMAL = auto()
    LARGE = auto()


# Always applied; only a CLI include with include priority can override one of these.
DEFAULT_EXCLUDES: tuple[str, ...] = (
    # version control
    "**/.git/**",
    "**/.svn/**",
    "**/.hg/**",
    # editors and OS metadata
    "**/.DS_Store",
    "**/Thumbs.db",
    "**/.idea/**",
    "**/.vscode/**",
    "**/*.swp",
    "**/*.swo",
    "**/.history/**",
    # caches and scratch
    "**/.cache/**",
    "**/tmp/**",
    "**/temp/**",
    "**/__pycache__/**",
    "**/.pytest_cache/**",
    "**/.mypy_cache/**",
    "**/.ruff_cache/**",
    "**/.ipynb_checkpoints/**",
    "**/.venv/**",
    "**/venv/**",
    "**/.virtualenv/**",
    # dependencies and build output
    "**/node_modules/**",
    "**/dist/**",
    "**/build/**",
    "**/out/**",
    "**/target/**",
    "**/.cargo/**",
    "**/.gradle/**",
    "**/bin/**",
    "**/obj/**",
    "**/.docker/**",
    "**/coverage/**",
    "**/.nyc_output/**",
    "**/.serverless/**",
    "**/.aws-sam/**",
    "**/.terraform/**",
    "**/.next/**",
    "**/.nuxt/**",
    "**/.angular/**",
    "**/docker-compose.override.yml",
    "**/docker-compose.override.yaml",
    # lockfiles and logs
    "**/*.lock",
    "**/Cargo.lock",
    "**/Gemfile.lock",
    "**/Pipfile.lock",
    "**/package-lock.json",
    "**/pnpm-lock.yaml",
    "**/yarn.lock",
    "**/npm-debug.log",
    "**/*.log",
    # compiled objects and databases
    "**/*.pyc",
    "**/*.pyo",
    "**/*.pyd",
    "**/*.so",
    "**/*.dylib",
    "**/*.dll",
    "**/*.exe",
    "**/*.o",
    "**/*.obj",
    "**/*.class",
    "**/*.jar",
    "**/*.war",
    "**/*.sqlite",
    "**/*.db",
    # images
    "**/*.png",
    "**/*.jpg",
    "**/*.jpeg",
    "**/*.gif",
    "**/*.ico",
    "**/*.bmp",
    "**/*.tiff",
    "**/*.tif",
    "**/*.webp",
    "**/*.svg",
    "**/*.psd",
    "**/*.ai",
    "**/*.xcf",
    # video
    "**/*.mp4",
    "**/*.mov",
    "**/*.avi",
    "**/*.mkv",
    "**/*.wmv",
    "**/*.flv",
    "**/*.webm",
    "**/*.m4v",
    "**/*.3gp",
    # audio
    "**/*.mp3",
    "**/*.wav",
    "**/*.ogg",
    "**/*.m4a",
    "**/*.flac",
    "**/*.aac",
    "**/*.wma",
    "**/*.mid",
    "**/*.midi",
    # documents and archives
    "**/*.pdf",
    "**/*.zip",
    "**/*.rar",
    "**/*.7z",
    "**/*.tar",
    "**/*.gz",
    "**/*.bz2",
    "**/*.xz",
    "**/*.doc",
    "**/*.docx",
    "**/*.ppt",
    "**/*.pptx",
    "**/*.xls",
    "**/*.xlsx",
)

# Include shorthands accepted in place of a glob.
PATTERN_ALIASES: dict[str, str] = {
    "docker": "**/Dockerfile",
    "dockerfile": "**/Dockerfile",
    "env": "**/.env*",
}
