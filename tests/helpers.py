"""Test doubles shared by the suite"""

from app.config import Settings
from app.services.notifier import Notifier

TEST_SECRET = "test-quote-secret-0123456789-abcdefghijklmnop"
START = 1_700_000_000.0


class FakeClock:
    def __init__(self, start: float = START):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingNotifier(Notifier):
    def __init__(self, ok: bool = True):
        self.ok = ok
        self.sent = []

    async def send_code(self, phone: str, code: str) -> bool:
        self.sent.append((phone, code))
        return self.ok

    def last_code(self, phone: str) -> str:
        return [c for p, c in self.sent if p == phone][-1]


def make_settings(**overrides) -> Settings:
    values = dict(
        APP_ENV="test",
        STORE_DRIVER="memory",
        QUOTE_TOKEN_SECRET=TEST_SECRET,
        ADMIN_USERNAME="admin",
        ADMIN_PASSWORD="correct-horse-battery",
        WA_WEBHOOK_URL="",
    )
    values.update(overrides)
    return Settings(**values)
