import pytest

from neovis.config import settings

from fakes import RecordingNetwork


@pytest.fixture(autouse=True)
def _restore_settings():
    snapshot = dict(vars(settings))
    RecordingNetwork.instances = []
    yield
    for key, value in snapshot.items():
        setattr(settings, key, value)
