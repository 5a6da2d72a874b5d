"""
Run one scheduled background job immediately, outside the server scheduler.

Useful after downtime (e.g. the server was down on the 1st and the monthly
rollover did not run) or to check a job against production data.

Usage (from backend/):
  python -m scripts.run_scheduled_job credit_rollover
  python -m scripts.run_scheduled_job document_expiry_monitor
  python -m scripts.run_scheduled_job dunning
"""
import asyncio
import argparse
import logging
import sys
from pathlib import Path

# Ensure backend root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dotenv import load_dotenv
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

JOBS = ("credit_rollover", "document_expiry_monitor", "dunning")


def _job(name):
    import job_runner
    return {
        "credit_rollover": job_runner.run_credit_rollover,
        "document_expiry_monitor": job_runner.run_document_expiry_monitor,
        "dunning": job_runner.run_dunning,
    }[name]


def main():
    parser = argparse.ArgumentParser(description="Run a Qanoon scheduled job once")
    parser.add_argument("job", choices=JOBS)
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    async def _():
        from database import database
        await database.connect()
        try:
            result = await _job(args.job)()
            print(f"{args.job}: {result['message']}")
            return 0
        finally:
            await database.close()

    return asyncio.run(_())


if __name__ == "__main__":
    sys.exit(main())
