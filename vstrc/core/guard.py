"""Non-reentrant guard.

외부 호출(스왑, lending venue 전송, hook 토큰 전송)이 커밋 전에 같은 컴포넌트로
재진입하는 것을 막습니다. 진입 시 획득, 모든 종료 경로(에러 포함)에서 해제됩니다.
"""

from __future__ import annotations

from types import TracebackType

from vstrc.core.exceptions import ReentrancyError


class NonReentrantGuard:
    """컴포넌트 단위 재진입 잠금.

    Example:
        >>> guard = NonReentrantGuard("vault")
        >>> with guard.hold("deposit"):
        ...     ...  # 이 블록 안에서 다시 guard.hold() 시 ReentrancyError
    """

    def __init__(self, owner: str) -> None:
        self._owner = owner
        self._holder: str | None = None

    @property
    def locked(self) -> bool:
        return self._holder is not None

    def hold(self, operation: str) -> _GuardScope:
        """operation 이름으로 잠금 scope 생성."""
        return _GuardScope(self, operation)

    def _acquire(self, operation: str) -> None:
        if self._holder is not None:
            msg = "Reentrant call rejected"
            raise ReentrancyError(
                msg,
                context={"owner": self._owner, "held_by": self._holder, "attempted": operation},
            )
        self._holder = operation

    def _release(self) -> None:
        self._holder = None


class _GuardScope:
    """with 블록 동안 guard를 보유."""

    __slots__ = ("_guard", "_operation")

    def __init__(self, guard: NonReentrantGuard, operation: str) -> None:
        self._guard = guard
        self._operation = operation

    def __enter__(self) -> None:
        self._guard._acquire(self._operation)

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self._guard._release()
