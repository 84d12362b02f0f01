from dataclasses import dataclass


@dataclass(frozen=True)
class CachedToken:
    """OAuth bearer token and the epoch second it stops being usable"""
    value: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return bool(self.value) and now < self.expires_at
