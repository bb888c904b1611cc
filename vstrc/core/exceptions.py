"""Custom exception hierarchy for the treasury vault.

This module defines a domain-driven exception hierarchy. Every rejection
surfaces a specific, distinguishable error kind so that off-chain monitoring
can react (retry on EpochNotElapsedError, page a human on
CircuitBreakerActiveError).

Exception Categories:
    - ValidationError: 잘못된 파라미터, 한도 위반, 0 금액 (변경 전 거부)
    - StateError: 에폭 미경과, 일시정지, 서킷브레이커, 준비금 부족 (변경 전 거부)
    - AuthorizationError: capability 누락
    - OracleError: stale/invalid 가격 (전체 작업 원자적 중단)
    - ExecutionError: venue 호출 실패/출력 부족 (전체 작업 원자적 중단, 내부 재시도 없음)

Rules Applied:
    - #23 Exception Handling: Domain-driven hierarchy, add_note()
"""


class VaultError(Exception):
    """모든 vault 관련 예외의 기본 클래스.

    이 예외를 직접 발생시키지 말고, 하위 클래스를 사용하세요.

    Attributes:
        message: 에러 메시지
        context: 추가 컨텍스트 정보 (디버깅/모니터링용)
    """

    def __init__(
        self, message: str, *, context: dict[str, object] | None = None
    ) -> None:
        """VaultError 초기화.

        Args:
            message: 에러 메시지
            context: 추가 컨텍스트 정보 (선택)
        """
        super().__init__(message)
        self.message = message
        self.context: dict[str, object] = context or {}

    def __str__(self) -> str:
        """에러 메시지와 컨텍스트를 포함한 문자열 반환."""
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{ctx_str}]"
        return self.message


# =============================================================================
# Validation Errors (reject before mutation)
# =============================================================================


class ValidationError(VaultError):
    """입력 검증 오류 (잘못된 파라미터, 한도 위반, 0 금액).

    상태 변경 전에 항상 거부됩니다.

    Example:
        >>> raise DepositTooSmallError(
        ...     "Deposit below minimum",
        ...     context={"assets": 500_000, "min_deposit": 1_000_000}
        ... )
    """


class ZeroAmountError(ValidationError):
    """0 금액/0 지분 요청."""


class InvalidParameterError(ValidationError):
    """파라미터 범위 위반 (rate 경계, bps 합계 등)."""


class DepositTooSmallError(ValidationError):
    """최소 예치 금액 미만."""


class DepositTooLargeError(ValidationError):
    """단일 예치 한도 초과."""


class DepositCapExceededError(ValidationError):
    """vault 총 예치 한도 초과."""


class InsufficientSharesError(ValidationError):
    """보유 지분 부족."""


class InsufficientAllowanceError(ValidationError):
    """위임 한도(allowance) 부족."""


# =============================================================================
# State Errors (reject before mutation)
# =============================================================================


class StateError(VaultError):
    """현재 상태에서 허용되지 않는 작업.

    상태 변경 전에 항상 거부됩니다.
    """


class EpochNotElapsedError(StateError):
    """에폭 기간이 아직 경과하지 않음.

    Keeper는 next_epoch_at 이후 재시도하면 됩니다.

    Attributes:
        next_epoch_at: 다음 tick 가능 시각 (unix seconds)
    """

    def __init__(
        self,
        message: str,
        *,
        next_epoch_at: int,
        context: dict[str, object] | None = None,
    ) -> None:
        """EpochNotElapsedError 초기화.

        Args:
            message: 에러 메시지
            next_epoch_at: 다음 tick 가능 시각
            context: 추가 컨텍스트 정보
        """
        super().__init__(message, context=context)
        self.next_epoch_at = next_epoch_at


class MintingPausedError(StateError):
    """신규 발행(deposit/mint) 일시정지 상태."""


class RedeemingPausedError(StateError):
    """환매(withdraw/redeem) 일시정지 상태."""


class CircuitBreakerActiveError(StateError):
    """서킷브레이커 발동 상태. 관리자 수동 리셋 전까지 자본 이동 불가.

    이 오류는 자동 재시도 대상이 아니며 사람의 확인이 필요합니다.
    """


class InsufficientReserveError(StateError):
    """전략 준비금 부족 (부분 체결 없음)."""


class InsufficientLiquidityError(StateError):
    """환매에 필요한 유동성을 확보하지 못함."""


class ReentrancyError(StateError):
    """non-reentrant 진입점에 재진입 시도."""


class StrategyNotSetError(StateError):
    """Vault에 전략이 연결되지 않음."""


class StrategyNotEmptyError(StateError):
    """자산이 남아 있는 전략을 교체하려는 시도."""


class StorageError(StateError):
    """상태 저장소(SQLite) 오류."""


class DatabaseNotConnectedError(StorageError):
    """connect() 전에 연결을 사용."""


class SchemaVersionError(StorageError):
    """DB 스키마 버전이 이 빌드보다 높음."""


# =============================================================================
# Authorization Errors
# =============================================================================


class AuthorizationError(VaultError):
    """권한(capability) 관련 오류의 기본 클래스."""


class UnauthorizedError(AuthorizationError):
    """필요한 capability 없이 진입점을 호출.

    Example:
        >>> raise UnauthorizedError(
        ...     "Missing capability",
        ...     context={"caller": "alice", "required": "keeper"}
        ... )
    """


# =============================================================================
# Oracle Errors (abort atomically)
# =============================================================================


class OracleError(VaultError):
    """가격 오라클 오류의 기본 클래스.

    호출한 작업 전체가 원자적으로 중단됩니다.
    """


class StalePriceError(OracleError):
    """허용 staleness 구간을 넘은 가격."""


class InvalidPriceError(OracleError):
    """0 이하 가격 또는 미래 timestamp.

    음수 가격을 거대한 unsigned 값으로 재해석하지 않고 즉시 실패합니다.
    """


class UnknownAssetError(OracleError):
    """설정되지 않은 자산 ID."""


# =============================================================================
# Execution Errors (abort atomically, no internal retry)
# =============================================================================


class ExecutionError(VaultError):
    """외부 venue 호출 실패의 기본 클래스.

    내부 재시도는 없습니다. 재시도는 호출자/keeper의 책임입니다.
    """


class SlippageExceededError(ExecutionError):
    """체결 결과가 허용 슬리피지 한도를 벗어남."""


class DeadlineExpiredError(ExecutionError):
    """deadline 이후 실행된 스왑."""


class VenueError(ExecutionError):
    """venue 잔고 부족 또는 비정상 출력."""


# =============================================================================
# Utility Functions
# =============================================================================


def add_context_note(exc: Exception, note: str) -> None:
    """예외에 컨텍스트 노트 추가 (Python 3.11+ add_note).

    원본 Traceback을 보존하면서 디버깅 정보를 추가합니다.

    Args:
        exc: 예외 객체
        note: 추가할 노트 문자열

    Example:
        >>> try:
        ...     await strategy.withdraw(shortfall, ctx)
        ... except VaultError as e:
        ...     add_context_note(e, f"while redeeming {shares} shares")
        ...     raise
    """
    exc.add_note(note)
