from __future__ import annotations

import json
import logging

import pytest

from natpunch.net.net_logging import log_event


def test_log_event_is_single_json_line(caplog: pytest.LogCaptureFixture) -> None:
    log = logging.getLogger("natpunch.test")
    with caplog.at_level(logging.INFO, logger="natpunch.test"):
        log_event(log, "punch_started", peer_id="bob", details={"n": 1}, obj=object())

    msg = caplog.records[-1].getMessage()
    assert "\n" not in msg
    ev = json.loads(msg)
    assert ev["event"] == "punch_started"
    assert ev["peer_id"] == "bob"
    assert ev["details"] == {"n": 1}
    assert isinstance(ev["ts_ms"], int)
    assert isinstance(ev["obj"], str)
