"""
Preference updates triggered by favoriting.

Every update is recorded as a ``PreferenceUpdateJob`` so that callers that
run it in the background (a FastAPI background task after the favorite is
saved) still have a completion / failure record to inspect.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from ..auth.users import UnknownUserError, UserDirectory
from ..listings.store import ListingNotFoundError, ListingStore

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    pending = "pending"
    done = "done"
    skipped = "skipped"
    failed = "failed"


class PreferenceUpdateJob(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    user: str
    listing_id: str
    status: JobStatus = JobStatus.pending
    error: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None


class PreferenceUpdater:
    def __init__(self, listings: ListingStore, users: UserDirectory) -> None:
        self.listings = listings
        self.users = users
        self._jobs: dict[str, PreferenceUpdateJob] = {}

    def enqueue(self, user: str, listing_id: str) -> PreferenceUpdateJob:
        job = PreferenceUpdateJob(user=user, listing_id=listing_id)
        self._jobs[job.id] = job
        return job

    def run(self, job_id: str) -> PreferenceUpdateJob:
        """Widen the user's profile with the job's listing and record the outcome."""
        job = self._jobs[job_id]
        try:
            listing = self.listings.get(job.listing_id)
            profile = self.users.get_preferences(job.user)
            self.users.save_preferences(job.user, profile.widen_with(listing))
        except (ListingNotFoundError, UnknownUserError) as exc:
            logger.info("Preference update %s skipped: %r", job.id, exc)
            job.status = JobStatus.skipped
            job.error = f"not found: {exc}"
        except Exception as exc:
            logger.exception("Preference update %s failed", job.id)
            job.status = JobStatus.failed
            job.error = str(exc)
        else:
            job.status = JobStatus.done
        job.finished_at = datetime.now(timezone.utc)
        return job

    def update(self, user: str, listing_id: str) -> PreferenceUpdateJob:
        """Enqueue and run in one call."""
        return self.run(self.enqueue(user, listing_id).id)

    def get_job(self, job_id: str) -> PreferenceUpdateJob | None:
        return self._jobs.get(job_id)

    def jobs_for_user(self, user: str) -> list[PreferenceUpdateJob]:
        return [j for j in self._jobs.values() if j.user == user]
