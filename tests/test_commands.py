import threading

import pytest

from cybertruck.comm import Command, CommandInbox, RadioLink


@pytest.mark.parametrize(
    "text,expected",
    [
        ("START", Command.START),
        ("start\n", Command.START),
        ("  Obey ", Command.OBEY),
        ("DANGER", Command.DANGER),
        ("STOP", Command.STOP),
        ("JUMP", None),
        ("", None),
    ],
)
def test_parse(text, expected):
    assert Command.parse(text) == expected


def test_inbox_starts_empty():
    inbox = CommandInbox()
    assert inbox.drain() is None
    assert not inbox.pending


def test_drain_takes_the_command_once():
    inbox = CommandInbox()
    inbox.post(Command.START)
    assert inbox.pending
    assert inbox.drain() == Command.START
    assert inbox.drain() is None


def test_last_write_wins():
    inbox = CommandInbox()
    inbox.post(Command.OBEY)
    inbox.post(Command.STOP)
    assert inbox.drain() == Command.STOP


def test_posts_from_threads():
    inbox = CommandInbox()
    threads = [threading.Thread(target=inbox.post, args=(Command.DANGER,)) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert inbox.drain() == Command.DANGER
    assert inbox.drain() is None


def test_radio_lines_reach_the_inbox():
    inbox = CommandInbox()
    radio = RadioLink(inbox, port="/dev/null-radio")
    assert radio.handle_line("OBEY\r\n") == Command.OBEY
    assert inbox.drain() == Command.OBEY
    assert radio.handle_line("hello") is None
    assert radio.handle_line("   ") is None
    assert inbox.drain() is None
    assert radio.received == 1


def test_radio_start_fails_without_port():
    radio = RadioLink(CommandInbox(), port="/dev/does-not-exist")
    assert radio.start() is False
    assert not radio.is_running
