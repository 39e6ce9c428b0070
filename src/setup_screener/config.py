"""Application configuration using Pydantic settings.

Thresholds mirror the daily convergence run: picks are $2-$50 names trading
at least 500k shares, graded five days after entry against a 15% move.
"""

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Paths
    project_root: Path = Path(__file__).resolve().parent.parent.parent
    data_dir: Path = project_root / "data"
    db_path: Path = data_dir / "setup_screener.db"

    # Database
    db_url: str = ""

    # Data fetching (yfinance)
    batch_size: int = 50
    batch_delay_seconds: float = 2.0
    history_period: str = "1y"

    # Pipeline
    history_window_days: int = 30
    max_workers: int = 8
    history_fetch_retries: int = 3
    history_fetch_retry_delay: float = 0.5
    history_fetch_timeout_seconds: float = 30.0

    # Convergence filter
    min_price: float = 2.0
    max_price: float = 50.0
    min_volume: float = 500_000
    liquidity_volume: float = 1_000_000
    convergence_history_days: int = 10

    # Convergence selection
    guaranteed_threshold: int = 80
    fallback_threshold: int = 70
    min_convergence_factors: int = 7
    top_n: int = 3
    tracking_delay_days: int = 5

    # Outcome grading
    success_threshold_pct: float = 15.0
    partial_threshold_pct: float = 5.0

    # Telegram Alerts
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""

    # Scheduler
    screen_time: str = "16:15"
    track_time: str = "18:00"

    model_config = {"env_prefix": "SETUP_"}

    def model_post_init(self, __context):
        import tempfile
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            test_file = self.data_dir / ".write_test"
            test_file.touch()
            test_file.unlink()
        except (PermissionError, OSError):
            self.data_dir = Path(tempfile.gettempdir())
            self.data_dir.mkdir(parents=True, exist_ok=True)
            self.db_path = self.data_dir / "setup_screener.db"
        if not self.db_url:
            self.db_url = f"sqlite:///{self.db_path}"


settings = Settings()
