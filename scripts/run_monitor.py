"""Watches one task's telemetry stream with repository-relative imports."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path


def main() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root))

    # Lazy import after adjusting sys.path
    from monitor.bootstrap import watch  # type: ignore
    from monitor.config import get_settings  # type: ignore

    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    task_id = sys.argv[1] if len(sys.argv) > 1 else None
    summary = asyncio.run(watch(settings, task_id=task_id))
    if summary is not None:
        logging.getLogger("monitor").info(
            "Task finished: %s frames, %s objects in %.0fs (avg %.1f fps)",
            summary.total_frames_processed,
            summary.total_objects_detected,
            summary.processing_time_seconds,
            summary.average_fps,
        )


if __name__ == "__main__":
    main()
