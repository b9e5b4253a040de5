import pytest

from scripts import release, start


def test_release_requires_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(release.ReleaseError, match="DATABASE_URL"):
        release.release_database_url()


def test_release_refuses_sqlite_in_production(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///prod.db")
    monkeypatch.setenv("ENV", "production")
    with pytest.raises(release.ReleaseError, match="Postgres"):
        release.release_database_url()
    assert release.main([]) == 2


def test_alembic_config_points_at_repo_migrations():
    cfg = release.alembic_config("postgresql://db/fms")
    assert cfg.get_main_option("sqlalchemy.url") == "postgresql://db/fms"
    assert cfg.get_main_option("script_location").endswith("migrations")


@pytest.mark.parametrize("value, expected", [("", False), ("0", False), ("1", True), ("yes", True)])
def test_seed_requested_from_env(monkeypatch, value, expected):
    monkeypatch.setenv("SEED_SAMPLE_DATA", value)
    assert release.seed_requested() is expected
    assert release.seed_requested(True) is True


def test_gunicorn_argv():
    argv = start.gunicorn_argv(9000, 3)
    assert argv[:2] == ["gunicorn", "app.wsgi:app"]
    assert argv[argv.index("--bind") + 1] == "0.0.0.0:9000"
    assert argv[argv.index("--workers") + 1] == "3"


def test_env_int(monkeypatch):
    monkeypatch.delenv("PORT", raising=False)
    assert start._env_int("PORT", 8080, low=1, high=65535) == 8080

    monkeypatch.setenv("PORT", "5000")
    assert start._env_int("PORT", 8080, low=1, high=65535) == 5000

    for bad in ("0", "70000", "http"):
        monkeypatch.setenv("PORT", bad)
        with pytest.raises(ValueError):
            start._env_int("PORT", 8080, low=1, high=65535)


def test_start_exits_on_bad_port(monkeypatch):
    monkeypatch.setenv("PORT", "not-a-port")
    with pytest.raises(SystemExit) as exc:
        start.main()
    assert exc.value.code == 1
