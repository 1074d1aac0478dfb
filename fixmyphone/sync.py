"""Background sync of repair submissions queued while offline."""

import logging
from typing import Protocol

import requests

from .database import DatabaseError
from .models import QueuedSubmission, SyncReport

logger = logging.getLogger(__name__)


class SubmissionQueue(Protocol):
    """Durable queue of submissions that failed while offline."""

    def list(self) -> list[QueuedSubmission]: ...

    def remove(self, submission_id: int) -> bool: ...


class SubmissionSyncer:
    """POSTs queued submissions to the repair-request endpoint."""

    def __init__(self, endpoint_url: str, timeout: int = 10) -> None:
        """Initialize the syncer.

        Args:
            endpoint_url: Absolute URL of the repair-request endpoint.
            timeout: Seconds to wait for each POST.
        """
        self._endpoint_url = endpoint_url
        self._timeout = timeout

    @property
    def endpoint_url(self) -> str:
        return self._endpoint_url

    def sync(self, queue: SubmissionQueue) -> SyncReport:
        """Send every queued submission once.

        Only submissions the endpoint accepts are removed from the queue. A
        failure on one submission never stops the others; failed ones stay
        queued for the next sync.

        Args:
            queue: The offline submission queue.

        Returns:
            Report of synced and failed submission ids.
        """
        report = SyncReport()
        submissions = queue.list()

        if not submissions:
            logger.debug("No offline submissions to sync")
            return report

        logger.info("Syncing %d offline submission(s) to %s", len(submissions), self._endpoint_url)

        for submission in submissions:
            if self._send(submission):
                try:
                    queue.remove(submission.id)
                except DatabaseError as e:
                    logger.error("Synced submission %d but could not dequeue it: %s", submission.id, e)
                    report.failed.append(submission.id)
                    continue
                logger.info("Synced submission %d", submission.id)
                report.synced.append(submission.id)
            else:
                report.failed.append(submission.id)

        logger.info("Sync finished: %d synced, %d still queued", len(report.synced), len(report.failed))
        return report

    def _send(self, submission: QueuedSubmission) -> bool:
        """POST a single submission.

        Returns:
            True if the endpoint answered with a 2xx status.
        """
        try:
            response = requests.post(
                self._endpoint_url,
                json=submission.data,
                timeout=self._timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning("Failed to sync submission %d: %s", submission.id, e)
            return False

        if not 200 <= response.status_code < 300:
            logger.warning("Failed to sync submission %d: unexpected HTTP %d", submission.id, response.status_code)
            return False
        return True
