"""SQL DDL 상수 — SQLite 스키마 정의.

2개 테이블: protocol_state, epoch_reports.
모두 IF NOT EXISTS로 멱등하게 생성됩니다. 테이블 구조가 바뀌면 SCHEMA_VERSION을 올립니다.
"""

SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- participant 상태 (key-value, JSON payload)
CREATE TABLE IF NOT EXISTS protocol_state (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

-- epoch tick 결과
CREATE TABLE IF NOT EXISTS epoch_reports (
    epoch           INTEGER PRIMARY KEY,
    epoch_timestamp INTEGER NOT NULL,
    market_price    INTEGER NOT NULL,
    new_rate        INTEGER NOT NULL,
    dividend        TEXT NOT NULL,
    payload         TEXT NOT NULL,
    recorded_at     TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_epoch_reports_timestamp ON epoch_reports(epoch_timestamp);
"""
