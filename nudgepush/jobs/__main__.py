"""Run one digest job. Invoked by cron at the job's scheduled time.

Usage:
    python -m nudgepush.jobs streak-warning
"""

import argparse
import asyncio

from nudgepush.core.logging import get_logger, setup_logging
from nudgepush.jobs.digests import DigestJobs
from nudgepush.storage.redis_client import close_redis_pool, init_redis_pool

logger = get_logger(__name__)

# Job name -> (DigestJobs method, schedule in the service timezone)
JOBS = {
    "streak-warning": ("streak_warning", "0 21 * * *"),
    "morning-manna": ("morning_manna", "0 * * * *"),
    "reaction-batch": ("reaction_batch", "*/5 * * * *"),
    "weekly-summary": ("weekly_summary", "0 18 * * 0"),
}


async def run_job(name: str) -> int:
    """Run a digest job by name and return the number of users notified."""
    method, _ = JOBS[name]
    await init_redis_pool()
    jobs = DigestJobs()
    try:
        return await getattr(jobs, method)()
    finally:
        await jobs.close()
        await close_redis_pool()


def main() -> None:
    parser = argparse.ArgumentParser(description="Run a scheduled digest job")
    parser.add_argument(
        "job",
        choices=sorted(JOBS),
        help="; ".join(f"{name}: {schedule}" for name, (_, schedule) in JOBS.items()),
    )
    args = parser.parse_args()

    setup_logging("jobs")
    asyncio.run(run_job(args.job))


if __name__ == "__main__":
    main()
