"""
Integration Tests for a Full Configuration Lifecycle
====================================================

Test Coverage
-------------
- File, environment and command line merged in one parse pass
- Sub-command selection, required options and actions
- Live file watching with observer notification
- Signal-style reload and the backup file on close

Testing Strategy
----------------
- Real files under ``tmp_path``; environment passed in explicitly
- Watch waits are bounded by events, never by fixed sleeps
"""

import json
import os
import threading

import pytest

from groveconf import hot_reload
from groveconf.core.option import int_opt, str_opt
from groveconf.core.registry import Registry
from groveconf.sources.cli import CliSource
from groveconf.sources.env import EnvSource
from groveconf.sources.file import FileSource


@pytest.fixture
def app(tmp_path, errors):
    conf = Registry(error_handler=errors)
    conf.register_opts([str_opt("name", "app"), int_opt("workers", 1).as_cli()])
    conf.register_opts([str_opt("host", "localhost"), int_opt("port").as_required()], group="db")

    serve = conf.new_command("serve", help="Run the server", action=lambda: conf.get("serve.port"))
    serve.register_cli_opt(int_opt("port", 8080))

    ini = tmp_path / "app.ini"
    ini.write_text("name = svc\n[db]\nport = 5432\n")

    yield conf, ini
    conf.close(timeout=2.0)


@pytest.mark.integration
class TestEndToEnd:
    """Drive a registry the way an application would."""

    def test_parse_merges_all_sources(self, app):
        # Arrange
        conf, ini = app
        env = EnvSource(prefix="APP_", environ={"APP_DB__HOST": "db-env", "APP_WORKERS": "2"})
        cli = CliSource(conf, args=["--workers", "4", "serve", "--port", "9000"])

        # Act
        conf.parse(FileSource(ini), env, cli)

        # Assert
        assert conf.get("name") == "svc"
        assert conf.get("db.host") == "db-env"
        assert conf.get("db.port") == 5432
        assert conf.get("workers") == 4
        assert conf.executed_command is conf.command("serve")
        assert conf.run_action() == 9000
        assert conf.health_snapshot()["status"] == "healthy"

    def test_watch_reload_and_backup(self, app, tmp_path, changes, errors):
        # Arrange
        conf, ini = app
        source = FileSource(ini, interval=0.05)
        conf.parse(source)

        seen = threading.Event()

        def on_change(group, option, old, new):
            changes(group, option, old, new)
            if option == "name" and new == "watched":
                seen.set()

        conf.observe(on_change)
        backup_path = tmp_path / "backup.json"
        conf.load_backup_file(str(backup_path), interval=60)

        # Act: reload after an edit
        ini.write_text("name = reloaded\n[db]\nport = 6432\n")
        changed = hot_reload.reload_sources(conf, FileSource(ini))

        # Assert
        assert changed == 2
        assert conf.get_int("db.port") == 6432

        # Act: watched edit, made once the watcher has its baseline
        def edit():
            ini.write_text("name = watched\n[db]\nport = 6432\n")
            stat = ini.stat()
            os.utime(ini, (stat.st_atime, stat.st_mtime + 5))

        conf.watch_source(source)
        timer = threading.Timer(0.2, edit)
        timer.start()

        # Assert
        assert seen.wait(5.0)
        timer.join()
        assert conf.get("name") == "watched"

        # Act: close flushes the backup
        conf.close(timeout=2.0)

        # Assert
        stored = json.loads(backup_path.read_text())
        assert stored["db.port"] == 6432
        assert stored["serve.port"] == 8080
        assert ("", "name", "reloaded", "watched") in changes.events
        assert errors.calls == []
