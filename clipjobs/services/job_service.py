from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Sequence

from clipjobs.config import Settings
from clipjobs.errors import ClipJobsError, CredentialMissing, UpstreamError, ValidationError
from clipjobs.models.api import BatchItemResult, JobSubmitRequest
from clipjobs.models.domain import Job
from clipjobs.providers.registry import ProviderRegistry


class JobService:
    """Starts remote generation jobs and mirrors their status.

    Holds no job records: every poll is a fresh query against the provider,
    so concurrent polls for the same handle cannot race.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        settings: Settings,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.registry = registry
        self.settings = settings
        self.log = logger or logging.getLogger(__name__)

    def submit(
        self,
        provider_id: str,
        prompt: Optional[str],
        media_ref: Optional[str] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> str:
        provider = self.registry.get(provider_id)
        options = dict(options or {})
        prompt = (prompt or "").strip()
        media_ref = (media_ref or "").strip() or None
        provider.validate(prompt, media_ref, options)
        if not provider.available():
            raise CredentialMissing(provider.name, provider.credential_env)

        job_id = provider.create_job(prompt, media_ref, options)
        if not job_id:
            raise UpstreamError(f"{provider.name} returned an empty job handle")
        self.log.info("job submitted", extra={"provider": provider.name, "job_id": job_id})
        return job_id

    def submit_batch(self, items: Sequence[JobSubmitRequest]) -> List[BatchItemResult]:
        """Submit each item independently; one rejected item does not stop the rest."""
        if not items:
            raise ValidationError("batch must contain at least one item")
        if len(items) > self.settings.batch_max_items:
            raise ValidationError(f"batch must contain at most {self.settings.batch_max_items} items")
        results: List[BatchItemResult] = []
        for index, item in enumerate(items):
            try:
                job_id = self.submit(item.provider, item.prompt, item.media_ref, item.options)
            except ClipJobsError as exc:
                self.log.warning(
                    "batch item rejected",
                    extra={"index": index, "provider": item.provider, "code": exc.code},
                )
                results.append(
                    BatchItemResult(index=index, success=False, provider=item.provider, error=exc.message, code=exc.code)
                )
            else:
                results.append(BatchItemResult(index=index, success=True, provider=item.provider, job_id=job_id))
        return results

    def poll(self, job_id: str, provider_id: str) -> Job:
        job_id = (job_id or "").strip()
        if not job_id:
            raise ValidationError("job id is required")
        provider = self.registry.get(provider_id)
        job = provider.get_status(job_id)
        self.log.debug(
            "job polled",
            extra={"provider": provider.name, "job_id": job_id, "status": job.status.value},
        )
        return job
