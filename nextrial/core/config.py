"""Configuration from environment variables (.env)."""

import os
from pathlib import Path
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

DEFAULT_API_URL = "https://nirmanpatel036--clinical-trial-api-web.modal.run"


@dataclass
class Config:
    project_root: Path
    data_dir: Path
    logs_dir: Path
    api_url: str
    api_timeout: float
    supabase_url: str
    supabase_anon_key: str
    owner_id: str
    circuit_failure_threshold: int
    circuit_window_seconds: float
    circuit_cooldown_seconds: float

    @classmethod
    def load(cls) -> "Config":
        project_root = Path(__file__).parent.parent.parent
        data_dir = os.getenv("NEXTRIAL_DATA_DIR", "")
        logs_dir = os.getenv("NEXTRIAL_LOGS_DIR", "")
        return cls(
            project_root=project_root,
            data_dir=Path(data_dir) if data_dir else project_root / "data",
            logs_dir=Path(logs_dir) if logs_dir else project_root / "logs",
            api_url=(os.getenv("NEXTRIAL_API_URL", "") or DEFAULT_API_URL).rstrip("/"),
            api_timeout=float(os.getenv("NEXTRIAL_API_TIMEOUT", "30")),
            supabase_url=os.getenv("SUPABASE_URL", "").rstrip("/"),
            supabase_anon_key=os.getenv("SUPABASE_ANON_KEY", ""),
            owner_id=os.getenv("NEXTRIAL_OWNER_ID", "local-user"),
            circuit_failure_threshold=int(os.getenv("NEXTRIAL_CIRCUIT_THRESHOLD", "3")),
            circuit_window_seconds=float(os.getenv("NEXTRIAL_CIRCUIT_WINDOW", "30")),
            circuit_cooldown_seconds=float(os.getenv("NEXTRIAL_CIRCUIT_COOLDOWN", "60")),
        )

    @property
    def supabase_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)

    def validate(self) -> list[str]:
        errors = []
        if not self.api_url.startswith(("http://", "https://")):
            errors.append(f"NEXTRIAL_API_URL must be an http(s) URL: {self.api_url}")
        if self.api_timeout <= 0:
            errors.append(f"NEXTRIAL_API_TIMEOUT must be positive: {self.api_timeout}")
        if bool(self.supabase_url) != bool(self.supabase_anon_key):
            errors.append("SUPABASE_URL and SUPABASE_ANON_KEY must be set together")
        if self.circuit_failure_threshold < 1:
            errors.append("NEXTRIAL_CIRCUIT_THRESHOLD must be at least 1")
        return errors


config = Config.load()
