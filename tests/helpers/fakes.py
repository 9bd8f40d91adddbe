from __future__ import annotations

import datetime as dt
import threading
import time as _time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from credfacts.core.ports.interface import (
    ChallengeService,
    DirectoryReader,
    GuidGenerator,
    OtpService,
    PermissionChecker,
    ProfileMatcher,
)
from credfacts.core.userinfo.models import (
    ChallengeProfile,
    ChallengeSet,
    OtpUserRecord,
    ProfileType,
    ResponseInfo,
    TimestampKind,
    UserIdentity,
)


NOW = dt.datetime(2026, 1, 15, 12, 0, 0, tzinfo=dt.timezone.utc)


class FakeClock:
    def __init__(self, start: dt.datetime = NOW):
        self._t = start

    def now(self) -> dt.datetime:
        return self._t

    def advance(self, seconds: float) -> None:
        self._t += dt.timedelta(seconds=float(seconds))


class FakeDirectory(DirectoryReader):
    """
    In-memory directory entry that counts every call.

    `fail` maps a call name ("read_attributes", "read_timestamp",
    "is_password_expired", "read_password_policy") to the exception it raises.
    `delay` makes every call sleep, to keep concurrent callers overlapping.
    """

    def __init__(
        self,
        attributes: Optional[Dict[str, str]] = None,
        *,
        timestamps: Optional[Dict[TimestampKind, dt.datetime]] = None,
        expired: bool = False,
        password_policy: Optional[Dict[str, Any]] = None,
        fail: Optional[Dict[str, BaseException]] = None,
        delay: float = 0.0,
    ):
        self.attributes = dict(attributes or {})
        self.timestamps = dict(timestamps or {})
        self.expired = expired
        self.password_policy = dict(password_policy or {})
        self.fail = dict(fail or {})
        self.delay = float(delay)
        self.calls: Counter = Counter()
        self.attribute_requests: List[List[str]] = []
        self._lock = threading.Lock()

    def _enter(self, name: str) -> None:
        with self._lock:
            self.calls[name] += 1
        if self.delay:
            _time.sleep(self.delay)
        err = self.fail.get(name)
        if err is not None:
            raise err

    def read_attributes(self, identity: UserIdentity, names: Iterable[str]) -> Dict[str, str]:
        names = list(names)
        with self._lock:
            self.attribute_requests.append(names)
        self._enter("read_attributes")
        return {n: self.attributes[n] for n in names if n in self.attributes}

    def read_timestamp(self, identity: UserIdentity, kind: TimestampKind) -> Optional[dt.datetime]:
        self._enter("read_timestamp")
        return self.timestamps.get(kind)

    def is_password_expired(self, identity: UserIdentity) -> bool:
        self._enter("is_password_expired")
        return self.expired

    def read_password_policy(self, identity: UserIdentity) -> Dict[str, Any]:
        self._enter("read_password_policy")
        return dict(self.password_policy)


class FakeProfileMatcher(ProfileMatcher):
    def __init__(self, assignments: Optional[Dict[ProfileType, str]] = None):
        self.assignments = dict(assignments or {})
        self.calls: List[ProfileType] = []

    def discover_profile_id(self, identity: UserIdentity, profile_type: ProfileType) -> Optional[str]:
        self.calls.append(profile_type)
        return self.assignments.get(profile_type)


@dataclass
class FakeChallengeService(ChallengeService):
    profile: Optional[ChallengeProfile] = None
    responses: Optional[ResponseInfo] = None
    needs_setup: bool = False
    seen: List[Any] = field(default_factory=list)

    def read_challenge_profile(self, identity, policy):  # noqa: ANN001
        self.seen.append(("profile", policy.profile_id))
        return self.profile

    def read_response_info(self, identity):  # noqa: ANN001
        self.seen.append(("responses",))
        return self.responses

    def check_if_response_config_needed(self, identity, challenge_set, response_info):  # noqa: ANN001
        self.seen.append(("check", challenge_set, response_info))
        return self.needs_setup


@dataclass
class FakeOtpService(OtpService):
    record: Optional[OtpUserRecord] = None
    open: bool = True
    reads: int = 0

    def is_open(self) -> bool:
        return self.open

    def read_otp_user_record(self, identity):  # noqa: ANN001
        self.reads += 1
        return self.record


class FakePermissionChecker(PermissionChecker):
    def __init__(self, result: bool = True):
        self.result = result
        self.calls = 0

    def test_user_permissions(self, identity, permissions):  # noqa: ANN001
        self.calls += 1
        return self.result


class FakeGuidGenerator(GuidGenerator):
    def __init__(self, value: str = "generated-guid"):
        self.value = value
        self.calls = 0

    def generate(self, identity):  # noqa: ANN001
        self.calls += 1
        return self.value


def challenge_profile(identifier: str = "cs-1") -> ChallengeProfile:
    return ChallengeProfile(profile_id="default", challenge_set=ChallengeSet(identifier=identifier))


def run_threads(n: int, fn: Callable[[], Any]) -> List[Any]:
    """Run fn on n threads released together; returns results in thread order."""
    barrier = threading.Barrier(n)
    results: List[Any] = [None] * n

    def worker(i: int) -> None:
        barrier.wait()
        results[i] = fn()

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)
    return results

