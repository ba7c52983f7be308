"""
Shared test helpers.

WordEncoding stands in for the tiktoken encoding so chunking tests do not
need to download BPE files: one whitespace-separated word is one token.
"""
from unittest.mock import MagicMock

import pytest


class WordEncoding:
    """Whitespace tokenizer with tiktoken's encode/decode signature."""

    def __init__(self):
        self._ids = {}
        self._words = []

    def encode(self, text, disallowed_special=()):
        tokens = []
        for word in text.split():
            if word not in self._ids:
                self._ids[word] = len(self._words)
                self._words.append(word)
            tokens.append(self._ids[word])
        return tokens

    def decode(self, tokens):
        return " ".join(self._words[t] for t in tokens)


@pytest.fixture
def word_encoding():
    return WordEncoding()


def make_response(status_code=200, json_data=None, text=""):
    """Build a mock httpx.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    return response


def install_client(mock_client_class, **post_kwargs):
    """Make a patched httpx.Client usable as a context manager; returns the client."""
    mock_client = MagicMock()
    for name, value in post_kwargs.items():
        setattr(mock_client.post, name, value)
    mock_client.__enter__ = MagicMock(return_value=mock_client)
    mock_client.__exit__ = MagicMock(return_value=False)
    mock_client_class.return_value = mock_client
    return mock_client
