import pytest

from proctor.config import ProctorSettings
from proctor.errors import ConfigurationError


def test_defaults_match_reference_values():
    settings = ProctorSettings()
    assert settings.loop.interval_seconds == 0.1
    assert settings.presence.absence_threshold_seconds == 3.0
    assert settings.identity.similarity_threshold == 0.6
    assert settings.identity.mismatch_threshold == 5
    assert settings.face_count.alert_threshold == 3
    assert settings.face_count.cooldown_seconds == 5.0
    assert settings.attention.head_pose_threshold == 0.15
    assert settings.attention.max_away_seconds == 5.0
    assert settings.device.alert_threshold == 5
    assert settings.device.cooldown_seconds == 3.0


def test_from_dict_overrides_sections():
    settings = ProctorSettings.from_dict({"device": {"alert_threshold": "7"}, "attention": {"max_away_seconds": 2}})
    assert settings.device.alert_threshold == 7
    assert settings.device.cooldown_seconds == 3.0
    assert settings.attention.max_away_seconds == 2.0


@pytest.mark.parametrize(
    "payload",
    [
        {"face_count": {"cooldown_seconds": -1}},
        {"device": {"alert_threshold": 0}},
        {"identity": {"similarity_threshold": 1.5}},
        {"loop": {"interval_seconds": "fast"}},
        {"providers": {"face_backend": "opencv"}},
    ],
)
def test_invalid_values_are_rejected(payload):
    with pytest.raises(ConfigurationError):
        ProctorSettings.from_dict(payload)


def test_merged_leaves_original_untouched():
    original = ProctorSettings()
    updated = original.merged({"face_count": {"cooldown_seconds": 1.0}})
    assert updated.face_count.cooldown_seconds == 1.0
    assert original.face_count.cooldown_seconds == 5.0


@pytest.mark.parametrize("overrides", [{"nope": {}}, {"device": {"unknown": 1}}, {"device": 3}])
def test_merged_rejects_unknown_options(overrides):
    with pytest.raises(ConfigurationError):
        ProctorSettings().merged(overrides)
