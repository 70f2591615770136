"""
BuyerMatch tracker criteria - service criteria per buyer universe.

Stored as YAML files in `trackers/` (or $BUYERMATCH_TRACKERS_DIR):
- industry_name: Industry the tracker covers
- services: required / preferred / excluded services and primary focus
"""

import os
from datetime import datetime
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field

from .logger import ProgressLogger
from .models import ServiceFitRequest, TrackerServiceCriteria


class TrackerCriteria(BaseModel):
    """A tracker's saved criteria file."""

    model_config = ConfigDict(extra="forbid")

    tracker_id: str = Field(..., min_length=1, description="Filename stem")
    industry_name: str = Field(default="", description="e.g. Collision Repair")
    services: TrackerServiceCriteria = Field(default_factory=TrackerServiceCriteria)
    updated_at: datetime = Field(default_factory=datetime.now)

    def to_request(
        self,
        deal_service_text: str | None,
        buyer_services_text: str | None = None,
        buyer_target_services: list[str] | None = None,
    ) -> ServiceFitRequest:
        """Build a service-fit request against this tracker's criteria."""
        return ServiceFitRequest(
            deal_service_text=deal_service_text,
            criteria=self.services,
            buyer_services_text=buyer_services_text,
            buyer_target_services=buyer_target_services or [],
            industry_name=self.industry_name,
        )


def get_trackers_dir() -> Path:
    """Get the trackers directory path."""
    return Path(os.getenv("BUYERMATCH_TRACKERS_DIR", Path.cwd() / "trackers"))


def load_criteria(tracker_id: str) -> TrackerCriteria:
    """Load a tracker's criteria.

    Raises:
        FileNotFoundError: If no criteria file exists for the tracker.
        ValueError: If the file is not a valid criteria mapping.
        yaml.YAMLError: If the file is not valid YAML.
    """
    path = get_trackers_dir() / f"{tracker_id}.yml"
    if not path.exists():
        raise FileNotFoundError(f"Tracker criteria not found: {tracker_id}")

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Tracker criteria must be a mapping: {path.name}")

    data["tracker_id"] = tracker_id
    return TrackerCriteria(**data)


def load_criteria_or_empty(
    tracker_id: str | None, logger: ProgressLogger | None = None
) -> TrackerCriteria | None:
    """Criteria for a tracker, or None if it has no usable file."""
    if not tracker_id:
        return None
    try:
        return load_criteria(tracker_id)
    except FileNotFoundError:
        return None
    except (yaml.YAMLError, ValueError) as e:
        if logger:
            logger.warning(f"Ignoring invalid criteria for tracker {tracker_id}: {e}")
        return None


def save_criteria(criteria: TrackerCriteria) -> Path:
    """Save a tracker's criteria to disk."""
    trackers_dir = get_trackers_dir()
    trackers_dir.mkdir(parents=True, exist_ok=True)

    path = trackers_dir / f"{criteria.tracker_id}.yml"
    data = criteria.model_dump(mode="json", exclude_none=True)
    data["updated_at"] = datetime.now().isoformat()

    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)

    return path


def list_trackers() -> list[TrackerCriteria]:
    """All readable tracker criteria files, sorted by id."""
    trackers_dir = get_trackers_dir()
    if not trackers_dir.exists():
        return []

    trackers = []
    for path in trackers_dir.glob("*.yml"):
        try:
            trackers.append(load_criteria(path.stem))
        except (yaml.YAMLError, ValueError) as e:
            print(f"[Skip] Invalid tracker file {path.name}: {e}")
            continue
    return sorted(trackers, key=lambda t: t.tracker_id)
