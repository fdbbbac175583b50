import logging

from coder_remote.core.logging import REDACTED, get_secret_filter, register_secret


def _record(msg, *args):
    return logging.LogRecord("coder_remote.test", logging.INFO, __file__, 1, msg, args, None)


def test_registered_secret_is_masked():
    register_secret("tok-abcdef123")
    record = _record("Using credential %s for %s", "tok-abcdef123", "dev")

    assert get_secret_filter().filter(record) is True
    assert record.getMessage() == f"Using credential {REDACTED} for dev"


def test_unrelated_messages_are_untouched():
    register_secret("tok-zyxw987")
    record = _record("Workspace %s is %s", "alice/box", "running")

    get_secret_filter().filter(record)
    assert record.args == ("alice/box", "running")
    assert record.getMessage() == "Workspace alice/box is running"


def test_short_values_are_ignored():
    register_secret("")
    register_secret("ab")
    record = _record("about a tab")

    get_secret_filter().filter(record)
    assert record.getMessage() == "about a tab"


def test_secrets_store_registers_tokens(tmp_path):
    from coder_remote.core.paths import PathResolver
    from coder_remote.infrastructure.state.secrets_store import FileSecretsStore

    FileSecretsStore(PathResolver(tmp_path)).set_session_auth("dev", "https://dev", "stored-value-42")
    record = _record("header Coder-Session-Token: stored-value-42")

    get_secret_filter().filter(record)
    assert record.getMessage() == f"header Coder-Session-Token: {REDACTED}"


def test_setup_logging_attaches_the_filter(tmp_path):
    from coder_remote.core.logging import setup_logging

    setup_logging("INFO", log_file=tmp_path / "logs" / "remote.log")
    handlers = logging.getLogger().handlers
    assert len(handlers) == 2
    assert all(get_secret_filter() in handler.filters for handler in handlers)
    for handler in handlers:
        handler.close()
    logging.getLogger().handlers.clear()
