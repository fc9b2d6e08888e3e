"""
Volatile job store.

Jobs live in a process-local dict; photos, cut-outs and rendered slides are
written under RUNS_DIR/<job_id>/. Nothing survives a restart.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import config
from models import CustomDesign, PhotoAnalysis, SlideContent

JOB_STATUSES = ("pending", "processing", "success", "failed")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Job:
    id: str
    survey_text: str
    design_id: int
    notion_page_id: str = ""
    notion_page_url: str = ""
    status: str = "pending"
    error: Optional[str] = None
    content: Optional[SlideContent] = None
    logo: Optional[bytes] = None
    custom_design: Optional[CustomDesign] = None
    analyses: list[Optional[PhotoAnalysis]] = field(default_factory=list)
    photo_paths: list[str] = field(default_factory=list)
    subject_paths: list[str] = field(default_factory=list)
    output_paths: list[str] = field(default_factory=list)
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)

    @property
    def output_urls(self) -> list[str]:
        return [f"/api/images/{self.id}/{i + 1}" for i in range(len(self.output_paths))]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "error": self.error,
            "designNumber": self.design_id,
            "notionPageId": self.notion_page_id,
            "notionPageUrl": self.notion_page_url,
            "content": self.content.to_dict() if self.content else None,
            "images": self.output_urls,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


class JobStore:
    def __init__(self, runs_dir: Optional[Path] = None):
        self.runs_dir = Path(runs_dir or config.RUNS_DIR)
        self._jobs: dict[str, Job] = {}
        self._lock = threading.Lock()

    def create(self, survey_text: str, design_id: int, **kwargs: Any) -> Job:
        job = Job(id=uuid.uuid4().hex, survey_text=survey_text, design_id=design_id, **kwargs)
        with self._lock:
            self._jobs[job.id] = job
        return job

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(job_id)

    def update(self, job_id: str, **changes: Any) -> Optional[Job]:
        if "status" in changes and changes["status"] not in JOB_STATUSES:
            raise ValueError(f"unknown job status {changes['status']!r}")
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            job = replace(job, updated_at=_now(), **changes)
            self._jobs[job_id] = job
            return job

    def _job_dir(self, job_id: str) -> Path:
        path = self.runs_dir / job_id
        path.mkdir(parents=True, exist_ok=True)
        return path

    def save_file(self, job_id: str, name: str, data: bytes) -> str:
        path = self._job_dir(job_id) / name
        path.write_bytes(data)
        return str(path)

    def save_photos(self, job_id: str, photos: list[bytes]) -> list[str]:
        return [self.save_file(job_id, f"photo_{i + 1}", data) for i, data in enumerate(photos)]

    def save_subjects(self, job_id: str, subjects: list[bytes]) -> list[str]:
        return [self.save_file(job_id, f"subject_{i + 1}", data) for i, data in enumerate(subjects)]

    def save_outputs(self, job_id: str, images: list[bytes]) -> list[str]:
        return [self.save_file(job_id, f"slide_{i + 1}.png", data) for i, data in enumerate(images)]

    @staticmethod
    def read(path: str) -> bytes:
        return Path(path).read_bytes()
