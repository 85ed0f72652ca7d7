from app.config import Settings


def test_demo_data_is_not_seeded_under_tests():
    """Test that seeding is off in the test environment."""
    assert Settings(environment="test", SEED_DEMO_DATA=True).should_seed_demo_data() is False


def test_demo_data_seeding_follows_flag_elsewhere():
    """Test that SEED_DEMO_DATA controls seeding outside tests."""
    assert Settings(environment="development").should_seed_demo_data() is True
    assert (
        Settings(environment="production", SEED_DEMO_DATA=False).should_seed_demo_data() is False
    )


def test_defaults_need_no_env_file(monkeypatch):
    """Test that settings load with no .env.local present."""
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    settings = Settings(_env_file=None)

    assert settings.INACTIVITY_THRESHOLD_DAYS == 7
    assert settings.SSE_HEARTBEAT_SECONDS == 30.0
    assert settings.MAX_PAGE_SIZE == 100
