from pydantic import BaseModel, model_validator
import os

class Settings(BaseModel):
    host: str = os.getenv("TASKSIM_HOST", "0.0.0.0")
    port: int = int(os.getenv("TASKSIM_PORT", 8080))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_format: str = os.getenv("LOG_FORMAT", "json")  # json | text
    task_min_duration_seconds: float = float(os.getenv("TASK_MIN_DURATION_SECONDS", 180))
    task_max_duration_seconds: float = float(os.getenv("TASK_MAX_DURATION_SECONDS", 300))
    task_duration_step_seconds: float = float(os.getenv("TASK_DURATION_STEP_SECONDS", 60))
    task_poll_interval_seconds: float = float(os.getenv("TASK_POLL_INTERVAL_SECONDS", 0.5))
    task_failure_rate: float = float(os.getenv("TASK_FAILURE_RATE", 0.2))

    @model_validator(mode="after")
    def _check_worker_timing(self):
        if self.task_min_duration_seconds > self.task_max_duration_seconds:
            raise ValueError("task_min_duration_seconds must not exceed task_max_duration_seconds")
        if self.task_duration_step_seconds <= 0:
            raise ValueError("task_duration_step_seconds must be positive")
        if self.task_poll_interval_seconds <= 0:
            raise ValueError("task_poll_interval_seconds must be positive")
        if not 0.0 <= self.task_failure_rate <= 1.0:
            raise ValueError("task_failure_rate must be between 0 and 1")
        return self

settings = Settings()
