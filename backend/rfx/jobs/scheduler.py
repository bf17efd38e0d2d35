from __future__ import annotations

from apscheduler.schedulers.background import BackgroundScheduler

from rfx.jobs.participation_reconciler import reconcile_participation

scheduler = BackgroundScheduler()


def _run_reconcile(app):
    with app.app_context():
        reconcile_participation()


def start_scheduler(app) -> BackgroundScheduler:
    minutes = int(app.config.get("RECONCILE_INTERVAL_MINUTES", 60))
    scheduler.add_job(
        _run_reconcile,
        "interval",
        minutes=minutes,
        args=[app],
        id="participation_reconcile",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    if not scheduler.running:
        scheduler.start()
    app.logger.info("scheduler started: participation reconcile every %s min", minutes)
    return scheduler
