"""Error types raised inside the memory subsystem.

None of these are meant to reach the user-visible chat turn. The context
assembler, summarizer and auto-summarization trigger catch them and degrade
to a smaller context or a cruder summary.
"""


class ChatMemoryError(Exception):
    """Base class for memory subsystem errors."""


class StoreUnavailable(ChatMemoryError):
    """The message, summary or pin store could not be reached."""


class SummarizationFailed(ChatMemoryError):
    """A generative summary could not be produced or was rejected."""

    def __init__(self, reason: str, *, network: bool = False) -> None:
        super().__init__(reason)
        self.reason = reason
        self.network = network
