"""
Domain exceptions for the midnight pipeline.
"""


class ChallengeHubError(Exception):
    """Base class for pipeline errors."""


class TaskOrderError(ChallengeHubError):
    """Task list cannot be ordered (duplicate name, unknown predecessor or cycle)."""


class WalletConflictError(ChallengeHubError):
    """Optimistic wallet update kept losing to concurrent writers."""

    def __init__(self, wallet_id: str, attempts: int):
        super().__init__(f"Wallet {wallet_id} update conflicted {attempts} times")
        self.wallet_id = wallet_id
        self.attempts = attempts


class StatsConflictError(ChallengeHubError):
    """Optimistic stat document update kept losing to concurrent writers."""

    def __init__(self, stats_id: str, attempts: int):
        super().__init__(f"Stats document {stats_id} update conflicted {attempts} times")
        self.stats_id = stats_id
        self.attempts = attempts
