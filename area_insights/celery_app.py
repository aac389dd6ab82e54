from celery import Celery
from area_insights.config import settings

celery_app = Celery(
    "area_insights",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["area_insights.services.tasks"]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=10 * 60,  # 10 minutes
    task_soft_time_limit=8 * 60,  # 8 minutes
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
)

celery_app.conf.task_routes = {
    "area_insights.services.tasks.cleanup_expired_cache": {"queue": "maintenance"},
}

# Beat schedule for periodic tasks
celery_app.conf.beat_schedule = {
    "cleanup-expired-area-cache": {
        "task": "area_insights.services.tasks.cleanup_expired_cache",
        "schedule": settings.cache_cleanup_interval_seconds,  # hourly by default
    },
}

if __name__ == "__main__":
    celery_app.start()
