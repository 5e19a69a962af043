"""Run ARQ worker. Usage: python -m app.worker.run_worker"""

from arq import run_worker
from arq.cron import cron

from app.worker.tasks import get_redis_settings, reconcile_referral_flags, shutdown, startup


class WorkerSettings:
    redis_settings = get_redis_settings()
    functions = [reconcile_referral_flags]
    cron_jobs = [
        cron(reconcile_referral_flags, minute={0, 10, 20, 30, 40, 50}, second=0),  # every 10 minutes
    ]
    on_startup = startup
    on_shutdown = shutdown


def main() -> None:
    run_worker(WorkerSettings, worker_name="rewards_worker")


if __name__ == "__main__":
    main()
