import logging

import pytest

import timekeeper.__main__ as cli
from timekeeper import config
from timekeeper.__main__ import build_publisher, load_signer, parse_args, parse_bind
from timekeeper.encryption.digital_signatures import ParticipantSigner


def test_defaults():
    args = parse_args([])
    assert args.connect == config.DEFAULT_CONNECT_STRING
    assert args.period == config.DEFAULT_UPDATE_PERIOD
    assert args.verbose == 0
    assert args.start_tp is True
    assert args.start_submitter is True


@pytest.mark.parametrize("flag,tp,submitter", [
    ("-s", False, True),
    ("--submitter", False, True),
    ("-t", True, False),
    ("--tp", True, False),
    ("-b", True, True),
])
def test_mode_selection(flag, tp, submitter):
    args = parse_args([flag])
    assert (args.start_tp, args.start_submitter) == (tp, submitter)


def test_modes_are_exclusive():
    with pytest.raises(SystemExit):
        parse_args(["-s", "-t"])


def test_connect_period_and_verbosity():
    args = parse_args(["-C", "http://validator:4004", "-p", "5", "-vvv"])
    assert args.connect == "http://validator:4004"
    assert args.period == 5
    assert args.verbose == 3


def test_positional_endpoint_overrides_connect():
    args = parse_args(["-C", "http://a:1", "http://b:2"])
    assert args.connect == "http://b:2"


@pytest.mark.parametrize("period", ["abc", "0", "-3"])
def test_invalid_period(period):
    with pytest.raises(SystemExit):
        parse_args(["-p", period])


def test_parse_bind():
    assert parse_bind("127.0.0.1:9000") == ("127.0.0.1", 9000)
    assert parse_bind(":9000") == ("0.0.0.0", 9000)
    with pytest.raises(ValueError):
        parse_bind("localhost")


@pytest.mark.parametrize("verbosity,level", [
    (0, logging.WARNING),
    (1, logging.INFO),
    (2, logging.DEBUG),
    (5, logging.DEBUG),
])
def test_verbosity_levels(verbosity, level):
    assert config.verbosity_to_level(verbosity) == level


def test_signer_from_key_file(tmp_path, monkeypatch):
    signer = ParticipantSigner()
    key_file = tmp_path / "key.pem"
    key_file.write_text(signer.get_private_key_pem())
    monkeypatch.setattr(config, "PRIVATE_KEY_FILE", str(key_file))
    assert load_signer().get_public_key_hex() == signer.get_public_key_hex()


def test_build_publisher(monkeypatch):
    monkeypatch.setattr(config, "PRIVATE_KEY_FILE", None)
    monkeypatch.setattr(config, "MAX_HISTORY", 12)
    publisher = build_publisher(parse_args(["-p", "7", "http://validator:4004"]))
    assert publisher.period == 7
    assert publisher.scheduler.transport.submit_url == "http://validator:4004/batches"
    assert publisher.scheduler.build_update().max_history == 12
    assert not publisher.is_running()


def test_bind_ignored_in_submitter_mode(monkeypatch):
    started = []
    monkeypatch.setattr(cli, "start", started.append)
    assert cli.main(["-s", "--bind", "not-an-address"]) == 0
    assert len(started) == 1


@pytest.mark.parametrize("mode", ["-t", "-b"])
def test_bad_bind_rejected_when_serving(monkeypatch, mode):
    started = []
    monkeypatch.setattr(cli, "start", started.append)
    assert cli.main([mode, "--bind", "not-an-address"]) == 2
    assert started == []


class FakePublisher:
    def __init__(self):
        self.shutdown_calls = []

    def start(self):
        pass

    def is_running(self):
        return False

    def shutdown(self, timeout=None):
        self.shutdown_calls.append(timeout)


def test_shutdown_waits_for_in_flight_submission(monkeypatch):
    publisher = FakePublisher()
    monkeypatch.setattr(cli, "build_publisher", lambda args: publisher)
    monkeypatch.setattr(config, "configure_logging", lambda verbosity: None)
    cli.start(parse_args(["-s"]))
    # no join bound: a slow submit must finish or fail before the process exits
    assert publisher.shutdown_calls == [None]
