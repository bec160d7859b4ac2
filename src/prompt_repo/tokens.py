from __future__ import annotations

from functools import cache

import tiktoken

from prompt_repo.exceptions import ConfigurationError

DEFAULT_ENCODING = "cl100k"

# short name -> (tiktoken encoding, models using it)
ENCODINGS: dict[str, tuple[str, str]] = {
    "cl100k": ("cl100k_base", "ChatGPT models, text-embedding-ada-002"),
    "o200k": ("o200k_base", "GPT-4o models"),
    "p50k": ("p50k_base", "Code models, text-davinci-002, text-davinci-003"),
    "p50k_edit": ("p50k_edit", "Edit models like text-davinci-edit-001, code-davinci-edit-001"),
    "r50k": ("r50k_base", "GPT-3 models like davinci"),
    "gpt2": ("gpt2", "GPT-2 models"),
}


def _lookup(encoding: str) -> tuple[str, str]:
    key = (encoding or DEFAULT_ENCODING).strip().lower()
    try:
        return ENCODINGS[key]
    except KeyError:
        msg = f"Unknown encoding {encoding!r}, expected one of: {', '.join(ENCODINGS)}"
        raise ConfigurationError(message=msg) from None


@cache
def get_tokenizer(encoding: str = DEFAULT_ENCODING) -> tiktoken.Encoding:
    """Return the tiktoken encoding for a short encoding name.

    Raises:
        ConfigurationError: for an unknown encoding name
    """
    return tiktoken.get_encoding(_lookup(encoding)[0])


def count_tokens(text: str, encoding: str = DEFAULT_ENCODING) -> int:
    """Number of tokens of ``text``, special tokens included."""
    return len(get_tokenizer(encoding).encode(text, allowed_special="all"))


def get_model_info(encoding: str = DEFAULT_ENCODING) -> str:
    """Describe which models use ``encoding``."""
    return _lookup(encoding)[1]
