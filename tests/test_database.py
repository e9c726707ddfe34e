"""Tests for database URL wiring."""

import os
import subprocess
import sys
from pathlib import Path

import app.database
import app.main

ROOT = Path(__file__).resolve().parent.parent


def test_engine_uses_the_loaded_config_url():
    assert app.database.DATABASE_URL == app.main.config.database_url
    assert app.database.engine.url.render_as_string(hide_password=False) == app.main.config.database_url


def test_database_url_from_dotenv_reaches_the_web_app(tmp_path):
    (tmp_path / ".env").write_text("DATABASE_URL=sqlite:///./from_dotenv.db\n")
    env = {k: v for k, v in os.environ.items() if k != "DATABASE_URL"}
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(ROOT), env.get("PYTHONPATH")]))

    result = subprocess.run(
        [sys.executable, "-c", "import app.main, app.database; print(app.database.DATABASE_URL)"],
        cwd=tmp_path,
        env=env,
        capture_output=True,
        text=True,
    )

    assert result.returncode == 0, result.stderr
    assert result.stdout.strip().splitlines()[-1] == "sqlite:///./from_dotenv.db"
