"""Entry point: python -m sendqueue

Console host for the message queue. Each stdin line is either a command or
``<destination> <text>`` to send through the queue:

  /list                       show the queue
  /pause                      pause or resume the dispatcher
  /clear [yes]                clear the queue, confirmed by "yes"
  /set <key> <value>          change a setting
  /now <destination> <text>   send immediately, bypassing the queue
"""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import TextIO

from sendqueue.app import QueueService
from sendqueue.infrastructure.database import AppDatabase
from sendqueue.infrastructure.logger import logger
from sendqueue.queue.errors import QueueError
from sendqueue.queue.formatter import format_queue
from sendqueue.queue.types import MessagePayload, Severity


class ConsoleTransport:
    """Stand-in transport that writes released messages to stdout."""

    async def send(self, destination: str, payload: MessagePayload) -> bool:
        print(f"-> {destination}: {payload.content}", flush=True)
        return True


class ConsoleNotifier:
    def notify(self, message: str, severity: Severity) -> None:
        print(f"[{severity}] {message}", flush=True)


def watch_lines(loop: asyncio.AbstractEventLoop, stream: TextIO, lines: asyncio.Queue[str]) -> None:
    """Feed lines from ``stream`` into ``lines``. An empty string marks EOF."""
    fd = stream.fileno()

    def on_readable() -> None:
        line = stream.readline()
        if not line:
            # EOF keeps the fd readable; stop watching it.
            loop.remove_reader(fd)
        lines.put_nowait(line)

    loop.add_reader(fd, on_readable)


async def handle_line(service: QueueService, transport: ConsoleTransport, line: str) -> None:
    line = line.strip()
    if not line:
        return

    command, _, rest = line.partition(" ")
    if command == "/list":
        print(format_queue(service.snapshot(), service.settings, service.is_paused), flush=True)
    elif command == "/pause":
        service.toggle_pause()
    elif command == "/clear":
        confirmed = rest.strip().lower() == "yes"

        def confirm(prompt: str) -> bool:
            if not confirmed:
                print(f"{prompt} Repeat as: /clear yes", flush=True)
            return confirmed

        service.clear_queue(confirm)
    elif command == "/set":
        key, _, value = rest.strip().partition(" ")
        try:
            service.update_setting(key, value.strip())
        except QueueError as err:
            print(err, flush=True)
    elif command == "/now":
        destination, _, text = rest.strip().partition(" ")
        if not text:
            print("usage: /now <destination> <text>", flush=True)
            return
        payload = MessagePayload(content=text)
        if service.submit(destination, payload, bypass=True) == "bypassed":
            await transport.send(destination, payload)
    elif command.startswith("/"):
        print(f"unknown command: {command}", flush=True)
    else:
        if not rest.strip():
            print("usage: <destination> <text>", flush=True)
            return
        payload = MessagePayload(content=rest.strip())
        outcome = service.submit(command, payload)
        if outcome == "bypassed":
            await transport.send(command, payload)


async def main() -> None:
    database = AppDatabase()
    database.init()
    transport = ConsoleTransport()
    service = QueueService(database, transport, ConsoleNotifier())

    shutdown_event = asyncio.Event()

    def signal_handler() -> None:
        logger.info("Received shutdown signal")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    lines: asyncio.Queue[str] = asyncio.Queue()
    watch_lines(loop, sys.stdin, lines)

    async def read_input() -> None:
        while not shutdown_event.is_set():
            line = await lines.get()
            if not line:
                shutdown_event.set()
                return
            await handle_line(service, transport, line)

    try:
        await service.start()
        reader = asyncio.create_task(read_input())
        await shutdown_event.wait()
        reader.cancel()
    except KeyboardInterrupt:
        pass
    finally:
        loop.remove_reader(sys.stdin.fileno())
        await service.shutdown()
        database.close()


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
