from unittest.mock import AsyncMock

from app.core import scheduler


async def test_purge_returns_deleted_count(monkeypatch):
    delete_expired = AsyncMock(return_value=3)
    monkeypatch.setattr(scheduler.crud_registration_token, "delete_expired", delete_expired)

    assert await scheduler.purge_expired_registration_tokens("pool") == 3
    delete_expired.assert_awaited_once_with("pool")


async def test_purge_failure_is_logged_not_raised(monkeypatch):
    monkeypatch.setattr(
        scheduler.crud_registration_token, "delete_expired", AsyncMock(side_effect=RuntimeError("db down"))
    )
    assert await scheduler.purge_expired_registration_tokens("pool") == 0


def test_scheduler_disabled_when_testing(monkeypatch):
    monkeypatch.setattr(scheduler.settings, "TESTING", True)
    scheduler.start_scheduler("pool")
    assert not scheduler.scheduler.running
    assert scheduler.scheduler.get_job("purge_registration_tokens") is None
