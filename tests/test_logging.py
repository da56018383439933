"""Tests for git_deployer.logging module."""

from git_deployer.logging import (
    add_log_listener,
    format_log_line,
    forward_to_listeners,
    get_logger,
    redact_sensitive,
    setup_logging,
)


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_setup_returns_none(self):
        setup_logging()

    def test_setup_with_json_mode(self):
        setup_logging(json_output=True)

    def test_setup_with_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "deployer.log"
        setup_logging(log_file=log_file)
        assert log_file.parent.is_dir()


class TestGetLogger:
    """Tests for get_logger."""

    def test_returns_bound_logger(self):
        logger = get_logger("test_module")
        assert logger is not None

    def test_logger_can_bind_environment(self):
        logger = get_logger("deploy")
        env_logger = logger.bind(environment="prod")
        assert callable(getattr(env_logger, "info", None))


class TestRedactSensitive:
    """Tests for redact_sensitive processor."""

    def test_redacts_github_tokens(self):
        event_dict = redact_sensitive(None, None, {"token": "ghp_abcdef1234567890"})
        assert event_dict["token"] == "ghp_***"

    def test_redacts_url_credentials(self):
        command = "git clone https://ghp_secret123456@github.com/acme/shop.git ."
        event_dict = redact_sensitive(None, None, {"command": command})
        assert "secret" not in event_dict["command"]
        assert "https://***@github.com/acme/shop.git" in event_dict["command"]

    def test_redacts_inside_lists(self):
        event_dict = redact_sensitive(None, None, {"args": ["clone", "https://u:p@host/r.git"]})
        assert event_dict["args"] == ["clone", "https://***@host/r.git"]

    def test_preserves_normal_values(self):
        event_dict = redact_sensitive(None, None, {"message": "hello world", "count": 3})
        assert event_dict == {"message": "hello world", "count": 3}


class TestLogListeners:
    """Tests for forwarding log lines to listeners."""

    def test_format_info_line(self):
        event_dict = {"event": "Deployed", "environment": "prod", "level": "info"}
        line = format_log_line("info", event_dict)
        assert line == "[INFO] Deployed environment=prod"

    def test_format_error_and_warning(self):
        assert format_log_line("error", {"event": "Boom"}) == "[ERROR] Boom"
        assert format_log_line("warning", {"event": "Hmm"}) == "[WARN] Hmm"

    def test_listener_receives_lines(self):
        setup_logging(level="info")
        received = []
        remove = add_log_listener(lambda line, is_error: received.append((line, is_error)))
        try:
            forward_to_listeners(None, "info", {"event": "Status checked"})
            forward_to_listeners(None, "error", {"event": "Command failed"})
            forward_to_listeners(None, "debug", {"event": "noise"})
        finally:
            remove()
        assert received == [
            ("[INFO] Status checked", False),
            ("[ERROR] Command failed", True),
        ]

    def test_listener_respects_log_level(self):
        setup_logging(level="error")
        received = []
        remove = add_log_listener(lambda line, is_error: received.append(line))
        try:
            forward_to_listeners(None, "info", {"event": "Status checked"})
            forward_to_listeners(None, "warning", {"event": "Slow fetch"})
            forward_to_listeners(None, "error", {"event": "Command failed"})
        finally:
            remove()
            setup_logging()
        assert received == ["[ERROR] Command failed"]

    def test_removed_listener_not_called(self):
        received = []
        remove = add_log_listener(lambda line, is_error: received.append(line))
        remove()
        forward_to_listeners(None, "info", {"event": "after removal"})
        assert received == []

    def test_listener_sees_redacted_logger_output(self):
        setup_logging()
        received = []
        remove = add_log_listener(lambda line, is_error: received.append(line))
        try:
            get_logger("test").info("Cloning", url="https://ghp_topsecret99@github.com/a/b.git")
        finally:
            remove()
        assert len(received) == 1
        assert "topsecret" not in received[0]
        assert received[0].startswith("[INFO] Cloning")
