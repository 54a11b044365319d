#!/usr/bin/env python3
"""
CLI Progress Monitor for ReelStudio jobs

Follows ``GET /api/jobs/{id}/events`` and draws the job's stage and progress.

Usage:
    python -m cli.progress_monitor JOB_ID --token $SESSION_TOKEN
    python main.py monitor JOB_ID --server http://localhost:8000 --token ...
"""

import argparse
import asyncio
import json
from typing import Optional

import aiohttp


class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    CLEAR_LINE = "\033[2K\r"


STAGE_LABELS = {
    "TRANSFORM": "Transforming image",
    "ANIMATE": "Animating video",
    "FORMAT": "Formatting for Instagram",
    "COMPLETED": "Done",
}


def colored(text: str, color: str) -> str:
    return f"{color}{text}{Colors.RESET}"


def progress_bar(percent: float, width: int = 30) -> str:
    percent = max(0.0, min(100.0, percent))
    filled = int(percent / 100 * width)
    bar = "█" * filled + "░" * (width - filled)

    if percent >= 100:
        color = Colors.GREEN
    elif percent >= 50:
        color = Colors.CYAN
    elif percent >= 25:
        color = Colors.YELLOW
    else:
        color = Colors.WHITE

    return colored(f"[{bar}]", color) + f" {percent:5.1f}%"


def format_event(event: dict) -> str:
    """Render one job event as a terminal line."""
    event_type = event.get("type", "progress")
    job = event.get("job") or {}

    if event_type == "complete":
        return "\n".join([
            colored(f"✅ Reel ready ({job.get('cost', 0):.3f} EUR)", Colors.GREEN),
            colored(f"    → {job.get('finalVideoUrl')}", Colors.DIM),
        ])
    if event_type == "failed":
        return colored(f"❌ Failed: {job.get('errorMessage') or 'unknown error'}", Colors.RED)
    if event_type == "error":
        return colored(f"🔴 {event.get('message', 'Stream error')}", Colors.RED)

    stage = job.get("currentStage", "")
    label = STAGE_LABELS.get(stage, stage.title())
    if job.get("status") == "PENDING":
        label = "Waiting for a worker"
    return (
        f"{Colors.CLEAR_LINE}⏳ {progress_bar(float(job.get('progress', 0)))} "
        f"{colored(label, Colors.WHITE)}"
    )


class ProgressMonitor:
    """Streams one job's events until it completes or fails."""

    def __init__(
        self,
        job_id: str,
        server_url: str = "http://localhost:8000",
        token: Optional[str] = None,
        max_retries: int = 5,
    ):
        self.job_id = job_id
        self.server_url = server_url.rstrip("/")
        self.stream_url = f"{self.server_url}/api/jobs/{job_id}/events"
        self.token = token
        self.max_retries = max_retries

        self._running = False
        self.final_event: Optional[dict] = None

    def _headers(self) -> dict:
        headers = {"Accept": "text/event-stream"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def start(self) -> Optional[dict]:
        """Monitor until a terminal event; returns that event (or None)."""
        self._running = True

        print(colored("\n╔═══════════════════════════════════════════╗", Colors.CYAN))
        print(colored("║  ReelStudio Job Monitor                   ║", Colors.CYAN))
        print(colored("╚═══════════════════════════════════════════╝", Colors.CYAN))
        print(f"Job:    {colored(self.job_id, Colors.BOLD)}")
        print(f"Server: {colored(self.stream_url, Colors.DIM)}")
        print()

        retry_count = 0
        while self._running and retry_count < self.max_retries:
            try:
                await self._stream_events()
                break
            except aiohttp.ClientError as e:
                retry_count += 1
                if retry_count < self.max_retries:
                    wait = 2 ** retry_count
                    print(colored(f"\n⚠️ {e}. Retrying in {wait}s ({retry_count}/{self.max_retries})", Colors.YELLOW))
                    await asyncio.sleep(wait)
                else:
                    print(colored(f"\n❌ Failed to connect after {self.max_retries} attempts", Colors.RED))

        print(colored("Monitor stopped.", Colors.DIM))
        return self.final_event

    async def _stream_events(self):
        async with aiohttp.ClientSession(headers=self._headers()) as session:
            async with session.get(self.stream_url) as response:
                if response.status in (401, 403, 404):
                    body = await response.json(content_type=None)
                    print(colored(f"❌ {response.status}: {body.get('error')}", Colors.RED))
                    self._running = False
                    return
                if response.status != 200:
                    raise aiohttp.ClientError(f"Server returned {response.status}")

                async for raw in response.content:
                    if not self._running:
                        break
                    line = raw.decode("utf-8").strip()
                    if line.startswith("data:"):
                        try:
                            event = json.loads(line[5:].strip())
                        except json.JSONDecodeError:
                            continue
                        self.handle_event(event)

    def handle_event(self, event: dict):
        event_type = event.get("type", "")
        if event_type == "progress":
            print(format_event(event), end="", flush=True)
            return

        print()
        print(format_event(event))
        if event_type in ("complete", "failed", "error"):
            self.final_event = event
            self._running = False

    def stop(self):
        self._running = False


async def main():
    parser = argparse.ArgumentParser(description="Monitor a ReelStudio job")
    parser.add_argument("job_id", help="Job ID to monitor")
    parser.add_argument("--server", default="http://localhost:8000", help="API base URL")
    parser.add_argument("--token", help="Session token (sent as a Bearer header)")
    args = parser.parse_args()

    monitor = ProgressMonitor(args.job_id, server_url=args.server, token=args.token)
    try:
        await monitor.start()
    except KeyboardInterrupt:
        print(colored("\n\nInterrupted by user.", Colors.YELLOW))
        monitor.stop()


if __name__ == "__main__":
    asyncio.run(main())
