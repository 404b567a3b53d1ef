"""Remote console (Source RCON) client with one fresh session per command."""

import sys

from rcon.exceptions import EmptyResponse, SessionTimeout, WrongPassword
from rcon.source import Client

from arkctl.core.errors import (
    ConsoleAuthFailed,
    ConsoleProtocolError,
    ConsoleTimeout,
    ConsoleUnreachable,
)

# Largest payload a Source server puts in one packet before splitting.
STRICT_FRAGMENT_THRESHOLD = 4096
# Legacy servers answer with exactly one packet of any length.
LEGACY_FRAGMENT_THRESHOLD = sys.maxsize
FRAGMENT_DETECT_COMMAND = "echo"


def open_session(host, port, password, legacy_dialect=True, timeout=5.0):
    """Return an unopened ``rcon.source.Client`` for the server's dialect.

    In strict mode a full-size reply makes the client send
    ``FRAGMENT_DETECT_COMMAND`` and collect follow-up packets until that
    command's answer arrives. Legacy mode reads the single reply and stops.
    """
    if legacy_dialect:
        return Client(host, port, passwd=password, timeout=timeout, frag_threshold=LEGACY_FRAGMENT_THRESHOLD)
    return Client(
        host,
        port,
        passwd=password,
        timeout=timeout,
        frag_threshold=STRICT_FRAGMENT_THRESHOLD,
        frag_detect_cmd=FRAGMENT_DETECT_COMMAND,
    )


class ConsoleClient:
    """Execute console commands, opening and closing a session per call.

    No retries happen here; callers own the retry policy.
    """

    def __init__(self, host, port, read_secret, legacy_dialect=True, timeout=5.0, session_factory=open_session):
        self.host = host
        self.port = int(port)
        self.read_secret = read_secret
        self.legacy_dialect = bool(legacy_dialect)
        self.timeout = float(timeout)
        self.session_factory = session_factory

    @property
    def endpoint(self):
        return f"{self.host}:{self.port}"

    def execute(self, command):
        """Return the server's response text, trailing newlines trimmed; ``""`` means no output."""
        password = self.read_secret()
        if not password:
            raise ConsoleAuthFailed("RCON password is not configured")
        session = self.session_factory(
            self.host,
            self.port,
            password,
            legacy_dialect=self.legacy_dialect,
            timeout=self.timeout,
        )
        try:
            with session:
                return session.run(command).rstrip("\r\n")
        except WrongPassword as exc:
            raise ConsoleAuthFailed("Console rejected the password") from exc
        except (SessionTimeout, TimeoutError) as exc:
            raise ConsoleTimeout(f"No response from {self.endpoint} within {self.timeout:.1f}s") from exc
        except (EmptyResponse, EOFError, ValueError) as exc:
            raise ConsoleProtocolError(f"Malformed reply from {self.endpoint}: {exc!r}") from exc
        except OSError as exc:
            raise ConsoleUnreachable(f"Cannot reach {self.endpoint}: {exc}") from exc
