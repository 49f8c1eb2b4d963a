import json

import pytest

from drawing.timings import AnimationTimings
from utils.config import _redacted, get_config_value, get_float, get_int, load_config


def test_file_then_environment_overrides(tmp_path):
    config_file = tmp_path / "display.conf"
    config_file.write_text(json.dumps({
        "drawing": {"raffle_id": 3, "poll_interval_sec": 5.0},
        "backend": {"base_url": "http://backend/api"},
    }))

    config = load_config(config_file, environ={
        "DRAWING_RAFFLE_ID": "12",
        "ANIMATION_SHAKE_DURATION": "0.8",
        "SERVER_PORT": "9000",
        "UNRELATED": "x",
    })

    assert config["drawing"]["raffle_id"] == "12"
    assert config["drawing"]["poll_interval_sec"] == 5.0
    assert config["backend"]["base_url"] == "http://backend/api"
    assert config["animation"]["shake_duration"] == "0.8"
    assert config["server"]["port"] == "9000"
    assert "unrelated" not in json.dumps(config)


def test_missing_file_uses_environment_only(tmp_path):
    config = load_config(tmp_path / "absent.conf", environ={"BACKEND_BASE_URL": "http://x/api"})
    assert config == {"backend": {"base_url": "http://x/api"}}


def test_typed_getters():
    config = {"a": {"n": "2.5", "i": "7", "bad": "abc"}}
    assert get_config_value(config, "a.n") == "2.5"
    assert get_config_value(config, "a.missing", "d") == "d"
    assert get_float(config, "a.n", 0.0) == 2.5
    assert get_int(config, "a.i", 0) == 7
    assert get_float(config, "a.bad", 1.5) == 1.5


def test_auth_token_is_redacted_for_logging():
    config = {"backend": {"auth_token": "secret", "base_url": "u"}}
    redacted = _redacted(config)
    assert redacted["backend"]["auth_token"] == "***"
    assert config["backend"]["auth_token"] == "secret"


def test_timings_from_config_strings():
    timings = AnimationTimings.from_config({
        "drawing": {"poll_interval_sec": "2"},
        "animation": {"shake_duration": "0.8", "spin_min_steps": "5"},
    })
    assert timings.poll_interval == 2.0
    assert timings.shake_duration == 0.8
    assert timings.spin_min_steps == 5
    assert timings.shrink_duration == 0.6


def test_timings_reject_zero_pending_delay():
    with pytest.raises(ValueError):
        AnimationTimings(pending_delay=0)
