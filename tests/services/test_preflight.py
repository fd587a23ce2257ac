from types import SimpleNamespace

import pytest

from debupgrader.constants import GIB
from debupgrader.errors import (
    AlreadyUpgraded,
    HeldPackagesPresent,
    InsufficientDiskSpace,
    PrivilegeError,
    UnreviewedThirdPartyRepo,
    UnsupportedPlatform,
    VersionMismatch,
)
from debupgrader.models import OsRelease, ReleaseTransition, UpgradePlan
from debupgrader.services.preflight import PreflightService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class FakeOperator:
    def __init__(self, answer=False):
        self.answer = answer
        self.questions = []

    def confirm(self, question, default=False):
        self.questions.append(question)
        return self.answer


BULLSEYE_TO_BOOKWORM = ReleaseTransition("11", "bullseye", "12", "bookworm")
PLAN = UpgradePlan(transitions=(BULLSEYE_TO_BOOKWORM,))


def build_service(answer=False):
    operator = FakeOperator(answer)
    return PreflightService(DummyLogger(), DummyConsole(), operator), operator


def release(version_id, distro="debian"):
    return OsRelease(id=distro, version_id=version_id)


def test_check_privileges_requires_root():
    service, _ = build_service()

    service.check_privileges(lambda: 0)
    with pytest.raises(PrivilegeError, match="must be run as root"):
        service.check_privileges(lambda: 1000)


def test_check_version_accepts_expected_source():
    service, _ = build_service()

    service.check_version(release("11"), PLAN, BULLSEYE_TO_BOOKWORM, "abort")


def test_check_version_rejects_other_distributions():
    service, _ = build_service()

    with pytest.raises(UnsupportedPlatform, match="ubuntu"):
        service.check_version(release("22.04", distro="ubuntu"), PLAN, BULLSEYE_TO_BOOKWORM, "abort")


def test_check_version_reports_already_upgraded():
    service, _ = build_service()

    with pytest.raises(AlreadyUpgraded):
        service.check_version(release("12"), PLAN, BULLSEYE_TO_BOOKWORM, "abort")


def test_check_version_aborts_on_mismatch():
    service, operator = build_service(answer=True)

    with pytest.raises(VersionMismatch, match="Detected version 10"):
        service.check_version(release("10"), PLAN, BULLSEYE_TO_BOOKWORM, "abort")
    assert operator.questions == []


def test_check_version_prompt_policy_lets_operator_continue():
    service, operator = build_service(answer=True)

    service.check_version(release("10"), PLAN, BULLSEYE_TO_BOOKWORM, "prompt")

    assert len(operator.questions) == 1


def test_check_version_prompt_policy_declined_aborts():
    service, _ = build_service(answer=False)

    with pytest.raises(VersionMismatch):
        service.check_version(release("10"), PLAN, BULLSEYE_TO_BOOKWORM, "prompt")


def test_check_held_packages():
    service, _ = build_service()

    service.check_held_packages([])
    with pytest.raises(HeldPackagesPresent) as exc_info:
        service.check_held_packages(["linux-image-amd64"])
    assert exc_info.value.packages == ["linux-image-amd64"]


def test_check_disk_space_boundary():
    service, _ = build_service()

    service.check_disk_space(5, disk_usage=lambda _path: SimpleNamespace(free=5 * GIB))
    with pytest.raises(InsufficientDiskSpace) as exc_info:
        service.check_disk_space(5, disk_usage=lambda _path: SimpleNamespace(free=5 * GIB - 1))
    assert exc_info.value.required_bytes == 5 * GIB
    assert exc_info.value.available_bytes == 5 * GIB - 1


def test_check_disk_space_operator_override():
    service, operator = build_service(answer=True)

    service.check_disk_space(5, disk_usage=lambda _path: SimpleNamespace(free=GIB))

    assert operator.questions


def test_check_third_party_repos():
    service, _ = build_service()

    service.check_third_party_repos([])
    with pytest.raises(UnreviewedThirdPartyRepo, match="docker.list"):
        service.check_third_party_repos(["/etc/apt/sources.list.d/docker.list"])
