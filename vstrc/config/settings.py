"""Pydantic Settings for runtime paths.

환경 변수(VSTRC_ prefix) 또는 .env 파일에서 로드합니다.
프로토콜 파라미터는 YAML(config_loader)로, 실행 환경 경로는 여기서 관리합니다.

Rules Applied:
    - #11 Pydantic Modeling: BaseSettings
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class VaultSettings(BaseSettings):
    """실행 환경 설정.

    Environment Variables:
        - VSTRC_DB_PATH: 상태 DB 경로 (기본: data/vstrc.db)
        - VSTRC_AUDIT_LOG_PATH: 감사 로그 JSONL 경로 (기본: logs/audit.jsonl)
        - VSTRC_OUTPUT_DIR: 시뮬레이션 결과 저장 경로 (기본: data/simulations)
        - VSTRC_LOG_DIR: 로그 저장 경로 (기본: logs)

    Example:
        >>> settings = get_settings()
        >>> settings.db_path
        PosixPath('data/vstrc.db')
    """

    model_config = SettingsConfigDict(
        env_prefix="VSTRC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    db_path: Path = Field(default=Path("data/vstrc.db"), description="상태 SQLite 경로")
    audit_log_path: Path = Field(
        default=Path("logs/audit.jsonl"),
        description="감사 로그 JSONL 경로",
    )
    output_dir: Path = Field(
        default=Path("data/simulations"),
        description="시뮬레이션 CSV 저장 경로",
    )
    log_dir: Path = Field(default=Path("logs"), description="로그 파일 저장 경로")

    @field_validator("db_path", "audit_log_path", "output_dir", "log_dir", mode="before")
    @classmethod
    def ensure_path(cls, v: str | Path) -> Path:
        """문자열을 Path 객체로 변환."""
        return Path(v) if isinstance(v, str) else v

    def ensure_directories(self) -> None:
        """필요한 디렉토리 생성 (이미 존재하면 무시)."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.audit_log_path.parent.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> VaultSettings:
    """설정 싱글톤 인스턴스 반환."""
    return VaultSettings()


def clear_settings_cache() -> None:
    """설정 캐시 초기화 (테스트용)."""
    get_settings.cache_clear()
