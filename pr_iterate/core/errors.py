"""
Errors
======
Error taxonomy for the remediation loop.

    PollFailed            — transient; absorbed by the loop and recorded on the pass
    StrategyErrored       — a remediation strategy failed; recorded per failure
    InvalidConfiguration  — fatal, raised before the loop starts
    InvalidTarget         — the target cannot be remediated; run ends as FAILED
    InvalidState          — programmer error (e.g. reporting on a running state)
"""


class PrIterateError(Exception):
    """Base class for all pr-iterate errors."""


class PollFailed(PrIterateError):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class StrategyErrored(PrIterateError):
    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class InvalidConfiguration(PrIterateError):
    pass


class InvalidTarget(PrIterateError):
    pass


class InvalidState(PrIterateError):
    pass
