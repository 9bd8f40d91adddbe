from __future__ import annotations

from typing import Any, Dict, Optional

import pytest

from credfacts.core.config.manager import ConfigManager
from credfacts.core.userinfo.evaluator import create_evaluator
from credfacts.core.userinfo.models import UserIdentity

from .helpers.config_builders import build_credfacts_config_v1
from .helpers.fakes import FakeChallengeService, FakeClock, FakeDirectory, FakeProfileMatcher


@pytest.fixture
def identity():
    return UserIdentity(user_dn="cn=alice,ou=people,o=example", ldap_profile="default")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_evaluator(identity, clock):
    """
    Factory for evaluators wired against fakes.

    Config is given as a raw dict and validated the way ConfigManager does.
    """

    def _make(
        *,
        config: Optional[Dict[str, Any]] = None,
        directory: Optional[FakeDirectory] = None,
        profiles: Optional[FakeProfileMatcher] = None,
        **kw: Any,
    ):
        kw.setdefault("challenges", FakeChallengeService())
        cfg = ConfigManager.validate(build_credfacts_config_v1(overrides=config))
        return create_evaluator(
            kw.pop("identity", identity),
            config=cfg,
            directory=directory if directory is not None else FakeDirectory(),
            profiles=profiles if profiles is not None else FakeProfileMatcher(),
            now=clock.now,
            **kw,
        )

    return _make
