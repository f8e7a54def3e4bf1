"""Daily report signature state and its append-only transition log."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .errors import AlreadySigned, NotSigned
from .intervals import as_utc

DEFAULT_UNSIGN_REASON = "No reason provided"


class SignatureAction(str, enum.Enum):
    SIGNED = "signed"
    UNSIGNED = "unsigned"

    @classmethod
    def parse(cls, value: "str | SignatureAction") -> "SignatureAction":
        if isinstance(value, cls):
            return value
        value = str(value).strip().lower()
        # Accept the imperative forms used on the command line.
        aliases = {"sign": cls.SIGNED, "unsign": cls.UNSIGNED}
        if value in aliases:
            return aliases[value]
        return cls(value)


@dataclass(frozen=True)
class SignatureState:
    """Signed-ness of one reporting period (one restaurant, one calendar day)."""

    signed_by: Optional[str] = None
    signed_at: Optional[datetime] = None

    @classmethod
    def unsigned(cls) -> "SignatureState":
        return cls()

    @classmethod
    def signed(cls, by_identity: str, at: datetime) -> "SignatureState":
        return cls(signed_by=by_identity, signed_at=at)

    @property
    def is_signed(self) -> bool:
        return self.signed_by is not None and self.signed_at is not None


@dataclass(frozen=True)
class SignatureLogEntry:
    action: SignatureAction
    by_identity: str
    at: datetime
    reason: Optional[str] = None
    previous_signed_by: Optional[str] = None
    previous_signed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "action": self.action.value,
            "by_identity": self.by_identity,
            "at": self.at.isoformat(),
        }
        if self.action is SignatureAction.UNSIGNED:
            data["reason"] = self.reason
            data["previous_signed_by"] = self.previous_signed_by
            data["previous_signed_at"] = (
                self.previous_signed_at.isoformat() if self.previous_signed_at else None
            )
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SignatureLogEntry":
        previous_at = data.get("previous_signed_at")
        return cls(
            action=SignatureAction.parse(data["action"]),
            by_identity=str(data["by_identity"]),
            at=as_utc(datetime.fromisoformat(data["at"])),
            reason=data.get("reason"),
            previous_signed_by=data.get("previous_signed_by"),
            previous_signed_at=as_utc(datetime.fromisoformat(previous_at)) if previous_at else None,
        )


class SignatureLog:
    """
    Ordered, append-only history of sign/unsign transitions.

    Entries are never removed or replaced; ``entries`` returns a tuple snapshot.
    """

    def __init__(self, entries: Optional[List[SignatureLogEntry]] = None):
        self._entries: List[SignatureLogEntry] = list(entries or [])

    def append(self, entry: SignatureLogEntry) -> None:
        self._entries.append(entry)

    @property
    def entries(self) -> Tuple[SignatureLogEntry, ...]:
        return tuple(self._entries)

    @property
    def last(self) -> Optional[SignatureLogEntry]:
        return self._entries[-1] if self._entries else None

    def __iter__(self) -> Iterator[SignatureLogEntry]:
        return iter(tuple(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def to_list(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self._entries]

    @classmethod
    def from_list(cls, rows: List[Dict[str, Any]]) -> "SignatureLog":
        return cls([SignatureLogEntry.from_dict(row) for row in rows])


def apply_signature_transition(
    state: SignatureState,
    action: "SignatureAction | str",
    acting_identity: str,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[SignatureState, SignatureLogEntry]:
    """
    Compute the next signature state and the log entry recording it.

    Args:
        state: Current state of the period
        action: sign or unsign
        acting_identity: Who performs the transition
        reason: Optional explanation, kept on unsign entries
        now: Transition instant (defaults to the current UTC time)

    Returns:
        Tuple of (new state, log entry to append)

    Raises:
        AlreadySigned: Signing a signed period
        NotSigned: Unsigning an unsigned period
    """
    action = SignatureAction.parse(action)
    at = as_utc(now) if now is not None else datetime.now(timezone.utc)

    if action is SignatureAction.SIGNED:
        if state.is_signed:
            raise AlreadySigned(
                f"Period already signed by {state.signed_by} at {state.signed_at.isoformat()}"
            )
        entry = SignatureLogEntry(action=action, by_identity=acting_identity, at=at)
        return SignatureState.signed(acting_identity, at), entry

    if not state.is_signed:
        raise NotSigned("Period is not signed")
    entry = SignatureLogEntry(
        action=action,
        by_identity=acting_identity,
        at=at,
        reason=reason or DEFAULT_UNSIGN_REASON,
        previous_signed_by=state.signed_by,
        previous_signed_at=state.signed_at,
    )
    return SignatureState.unsigned(), entry


def sign_period(
    log: SignatureLog,
    state: SignatureState,
    acting_identity: str,
    now: Optional[datetime] = None,
) -> SignatureState:
    """Sign and append to ``log``. Nothing is appended when signing fails."""
    new_state, entry = apply_signature_transition(state, SignatureAction.SIGNED, acting_identity, now=now)
    log.append(entry)
    return new_state


def unsign_period(
    log: SignatureLog,
    state: SignatureState,
    acting_identity: str,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> SignatureState:
    new_state, entry = apply_signature_transition(
        state, SignatureAction.UNSIGNED, acting_identity, reason=reason, now=now
    )
    log.append(entry)
    return new_state
