"""Exceptions raised by vocabtrack services."""


class VocabError(Exception):
    """Base class for vocabtrack errors."""


class DuplicateWordError(VocabError):
    """Raised when a word is already in the vocabulary."""

    def __init__(self, word: str):
        super().__init__(f"Word '{word}' already exists")
        self.word = word


class WordNotFoundError(VocabError):
    """Raised when an interactive operation targets an unknown word."""

    def __init__(self, word: str):
        super().__init__(f"Word '{word}' not found")
        self.word = word


class NotAuthenticatedError(VocabError):
    """Raised when an operation needs a user and none is signed in."""


class RemoteStoreError(VocabError):
    """Raised when the remote word collection fails."""


class RecordNotFoundError(RemoteStoreError):
    """Raised when a remote record does not exist (deleted elsewhere)."""

    def __init__(self, record_id: str):
        super().__init__(f"Remote record '{record_id}' not found")
        self.record_id = record_id
