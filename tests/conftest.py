import pytest

from appxmunge.manifest_table import DEFAULT_MUNGER_CONFIG, MungerConfig, PrefixPolicy
from appxmunge.munge_util import MungeGenerator
from appxmunge.substitution import NULL_SUBSTITUTION, Substitution

from tutil import RecordingApplier, write_manifests


@pytest.fixture(scope="session")
def null_substitution() -> Substitution:
    return NULL_SUBSTITUTION


@pytest.fixture()
def recording_applier() -> RecordingApplier:
    return RecordingApplier()


@pytest.fixture()
def munge_generator() -> MungeGenerator:
    return MungeGenerator()


@pytest.fixture(scope="session")
def whitelist_config() -> MungerConfig:
    return DEFAULT_MUNGER_CONFIG


@pytest.fixture(scope="session")
def prefix_all_config() -> MungerConfig:
    return DEFAULT_MUNGER_CONFIG.with_prefix_policy(PrefixPolicy.ALL)


@pytest.fixture()
def project_dir(tmp_path) -> str:
    write_manifests(str(tmp_path))
    return str(tmp_path)
