from __future__ import annotations

import json
import logging
from pathlib import Path

from relish.services.run_log import RUN_LOGGER_PREFIX, RunLog, video_extra


class TestRunLog:
    def test_records_entries_while_attached(self) -> None:
        run_log = RunLog(run_id="test-run")

        with run_log as active:
            active.logger.info("starting")
            active.logger.warning("[%s] Captions not available", "abc", extra=video_extra("abc"))
        run_log.logger.info("after detach")

        assert run_log.logger.name == f"{RUN_LOGGER_PREFIX}.test-run"
        assert [e.message for e in run_log.entries] == ["starting", "[abc] Captions not available"]
        assert run_log.entries[0].video_id is None
        assert run_log.warnings()[0].video_id == "abc"
        assert run_log.errors() == []

    def test_debug_is_filtered_by_default(self) -> None:
        run_log = RunLog()

        with run_log:
            run_log.logger.debug("noise")
            run_log.logger.error("boom")

        assert [e.level for e in run_log.entries] == ["ERROR"]

    def test_child_loggers_propagate_into_the_run(self) -> None:
        run_log = RunLog(run_id="child-run")

        with run_log:
            logging.getLogger(f"{RUN_LOGGER_PREFIX}.child-run.youtube").info("searching")

        assert run_log.entries[0].logger.endswith(".youtube")

    def test_flush_writes_json(self, tmp_path: Path) -> None:
        run_log = RunLog()
        with run_log:
            run_log.logger.info("[%s] done", "xyz", extra=video_extra("xyz"))

        path = run_log.flush_to(tmp_path / "nested" / "run-log.json")

        payload = json.loads(path.read_text(encoding="utf-8"))
        assert payload[0]["message"] == "[xyz] done"
        assert payload[0]["video_id"] == "xyz"
        assert payload[0]["level"] == "INFO"
        assert "T" in payload[0]["timestamp"]
