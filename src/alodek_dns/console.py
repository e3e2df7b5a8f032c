"""
Admin Console

Line-oriented operator interface for inspecting and editing the local record
store while the server runs.
"""

import asyncio
import logging
import sys
from typing import Callable, List, Optional

from .core.records import DEFAULT_TTL, RecordStore

logger = logging.getLogger(__name__)

HELP_TEXT = [
    "Available commands:",
    "  list - Show all DNS records",
    "  add <domain> <type> <value> [ttl] - Add DNS record",
    "  remove <domain> - Remove DNS record",
    "  quit - Stop the server",
]

ADD_USAGE = "Usage: add <domain> <type> <value> [ttl]"
REMOVE_USAGE = "Usage: remove <domain>"
UNKNOWN_COMMAND = 'Unknown command. Type "help" for available commands.'


class AdminConsole:
    """Executes operator commands against a record store"""

    def __init__(
        self,
        store: RecordStore,
        on_quit: Optional[Callable[[], None]] = None,
        output: Callable[[str], None] = print,
    ):
        self.store = store
        self.on_quit = on_quit
        self.output = output

    def execute(self, line: str) -> bool:
        """Run one command line.

        Returns:
            False once the operator asked to quit, True otherwise
        """
        parts = line.strip().split()
        if not parts:
            return True

        command, args = parts[0].lower(), parts[1:]

        if command == "help":
            for text in HELP_TEXT:
                self.output(text)
        elif command == "list":
            self._list_records()
        elif command == "add":
            self._add_record(args)
        elif command == "remove":
            self._remove_record(args)
        elif command in ("quit", "exit"):
            self.output("Stopping DNS server...")
            if self.on_quit is not None:
                self.on_quit()
            return False
        else:
            self.output(UNKNOWN_COMMAND)

        return True

    def _list_records(self) -> None:
        self.output("Current DNS records:")
        for domain, record in sorted(self.store.list()):
            self.output(
                f"   {domain} -> {record.value} "
                f"({record.record_type}, TTL: {record.ttl})"
            )

    def _add_record(self, args: List[str]) -> None:
        if len(args) < 3:
            self.output(ADD_USAGE)
            return

        domain, record_type, value = args[:3]
        ttl = DEFAULT_TTL
        if len(args) > 3:
            try:
                ttl = int(args[3])
            except ValueError:
                ttl = DEFAULT_TTL

        try:
            self.store.add(domain, record_type, value, ttl)
        except ValueError as e:
            self.output(f"Cannot add record: {e}")
            return

        self.output(f"Added DNS record: {domain} -> {value}")

    def _remove_record(self, args: List[str]) -> None:
        if len(args) < 1:
            self.output(REMOVE_USAGE)
            return

        if self.store.remove(args[0]):
            self.output(f"Removed DNS record: {args[0]}")
        else:
            self.output(f"No DNS record for {args[0]}")

    async def run(self, reader: asyncio.StreamReader) -> None:
        """Read commands until EOF or quit"""
        self.output('DNS Server Console (type "help" for commands):')

        while True:
            line = await reader.readline()
            if not line:
                logger.debug("Admin console input closed")
                break
            if not self.execute(line.decode("utf-8", errors="replace")):
                break

    @staticmethod
    async def attach_stdin() -> asyncio.StreamReader:
        """Wrap stdin in a StreamReader on the running loop"""
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader()
        protocol = asyncio.StreamReaderProtocol(reader)
        await loop.connect_read_pipe(lambda: protocol, sys.stdin)
        return reader
