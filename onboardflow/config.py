from __future__ import annotations

import os
from typing import Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field, model_validator

from .constants import HARD_ERROR_THRESHOLD, MAX_STEPS_PER_RESUME, SOFT_ERROR_THRESHOLD
from .supervisor import ErrorPolicy


class WorkflowPolicyConfig(BaseModel):
    """Error thresholds and loop limits for the orchestrator."""

    soft_error_threshold: int = Field(SOFT_ERROR_THRESHOLD, gt=0)
    hard_error_threshold: int = Field(HARD_ERROR_THRESHOLD, gt=0)
    max_steps_per_resume: int = Field(MAX_STEPS_PER_RESUME, gt=0)

    @model_validator(mode="after")
    def _check_thresholds(self) -> "WorkflowPolicyConfig":
        if self.soft_error_threshold > self.hard_error_threshold:
            raise ValueError("soft_error_threshold cannot exceed hard_error_threshold")
        return self

    def error_policy(self) -> ErrorPolicy:
        return ErrorPolicy(
            soft_threshold=self.soft_error_threshold,
            hard_threshold=self.hard_error_threshold,
        )


class CollaboratorEndpoints(BaseModel):
    """Service URLs for the HTTP collaborator adapters."""

    brand_scanner_url: Optional[str] = None
    plan_generator_url: Optional[str] = None
    deployer_url: Optional[str] = None
    api_key: Optional[str] = None
    timeout: float = 30.0


class OnboardflowConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    workflow: WorkflowPolicyConfig = WorkflowPolicyConfig()
    collaborators: CollaboratorEndpoints = CollaboratorEndpoints()
    # tenant_id -> deployment credential
    credentials: Dict[str, str] = Field(default_factory=dict)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"


def load_config(path: Optional[str] = None) -> OnboardflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to ONBOARDFLOW_CONFIG
            env variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("ONBOARDFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = OnboardflowConfig(**data)
    else:
        config = OnboardflowConfig()

    env_db_url = os.getenv("ONBOARDFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    return config
