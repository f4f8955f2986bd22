from chronoplan.core.config import Settings, get_settings


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.project_name == "Chronoplan"
    assert settings.lab_preferred_slots == ["15:00", "16:00"]
    assert settings.default_max_daily_hours == 8
    assert settings.default_faculty_max_load is None
    assert settings.database_url.startswith("sqlite")


def test_lab_slots_accept_comma_separated_and_json_values():
    assert Settings(_env_file=None, lab_preferred_slots="13:00, 14:00").lab_preferred_slots == ["13:00", "14:00"]
    assert Settings(_env_file=None, lab_preferred_slots='["10:00", "11:00"]').lab_preferred_slots == ["10:00", "11:00"]


def test_environment_overrides_use_prefix(monkeypatch):
    monkeypatch.setenv("CHRONOPLAN_DEFAULT_MAX_DAILY_HOURS", "6")
    monkeypatch.setenv("CHRONOPLAN_OPERATION_BUDGET_SECONDS", "2.5")
    monkeypatch.setenv("CHRONOPLAN_LAB_PREFERRED_SLOTS", '["14:00", "15:00"]')

    settings = Settings(_env_file=None)

    assert settings.default_max_daily_hours == 6
    assert settings.operation_budget_seconds == 2.5
    assert settings.lab_preferred_slots == ["14:00", "15:00"]


def test_get_settings_is_cached():
    assert get_settings() is get_settings()
