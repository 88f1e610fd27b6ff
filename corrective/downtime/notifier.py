"""Downtime alerts handed off to a Cloud Tasks queue.

The queue owns delivery and retries, so the request that opened or closed
the downtime window never waits on (or fails because of) the alert.
"""
import json
import logging
from datetime import datetime
from typing import Optional, Protocol

from google.cloud import tasks_v2

from corrective.core.config import settings

logger = logging.getLogger("corrective.notifier")


class NotifierConfigError(Exception):
    pass


class DowntimeNotifier(Protocol):
    def notify_downtime_start(
        self,
        asset_id: int,
        asset_name: Optional[str],
        sector_id: Optional[int],
        started_at: datetime,
        failure_id: Optional[int] = None,
        failure_title: Optional[str] = None,
        cause: Optional[str] = None,
    ) -> None: ...

    def notify_downtime_end(
        self,
        asset_id: int,
        asset_name: Optional[str],
        sector_id: Optional[int],
        ended_at: datetime,
        duration_minutes: int,
        failure_id: Optional[int] = None,
        failure_title: Optional[str] = None,
        cause: Optional[str] = None,
    ) -> None: ...


def _get_tasks_config() -> tuple[str, str, str, str]:
    project = settings.GCP_PROJECT_ID
    location = settings.CLOUD_TASKS_LOCATION
    queue = settings.CLOUD_TASKS_NOTIFY_QUEUE
    worker_url = settings.CLOUD_TASKS_WORKER_URL
    if not (project and location and queue and worker_url):
        raise NotifierConfigError("Cloud Tasks no configurado para notificaciones.")
    return project, location, queue, worker_url.rstrip("/")


def enqueue_http_task(path: str, payload: dict) -> bool:
    try:
        project, location, queue, worker_url = _get_tasks_config()
    except NotifierConfigError:
        logger.info("notification dropped, queue not configured path=%s", path)
        return False

    client = tasks_v2.CloudTasksClient()
    parent = client.queue_path(project, location, queue)
    headers = {"Content-Type": "application/json"}
    if settings.NOTIFY_TASKS_SECRET:
        headers["X-Tasks-Secret"] = settings.NOTIFY_TASKS_SECRET

    task = {
        "http_request": {
            "http_method": tasks_v2.HttpMethod.POST,
            "url": f"{worker_url}{path}",
            "headers": headers,
            "body": json.dumps(payload, default=str).encode(),
        }
    }
    client.create_task(request={"parent": parent, "task": task})
    return True


class CloudTasksNotifier:
    start_path = "/internal/notifications/downtime-start"
    end_path = "/internal/notifications/downtime-end"

    def notify_downtime_start(
        self,
        asset_id,
        asset_name,
        sector_id,
        started_at,
        failure_id=None,
        failure_title=None,
        cause=None,
    ) -> None:
        enqueue_http_task(
            self.start_path,
            {
                "asset_id": asset_id,
                "asset_name": asset_name,
                "sector_id": sector_id,
                "failure_id": failure_id,
                "failure_title": failure_title,
                "started_at": started_at.isoformat(),
                "cause": cause,
            },
        )

    def notify_downtime_end(
        self,
        asset_id,
        asset_name,
        sector_id,
        ended_at,
        duration_minutes,
        failure_id=None,
        failure_title=None,
        cause=None,
    ) -> None:
        enqueue_http_task(
            self.end_path,
            {
                "asset_id": asset_id,
                "asset_name": asset_name,
                "sector_id": sector_id,
                "failure_id": failure_id,
                "failure_title": failure_title,
                "ended_at": ended_at.isoformat(),
                "duration_minutes": duration_minutes,
                "cause": cause,
            },
        )


def get_notifier() -> DowntimeNotifier:
    return CloudTasksNotifier()
