from meteor_rx.base.capture import ReceiverProfile
from meteor_rx.base.errors import ConfigError

# Sample rates are kept as the literal strings handed to the capture tools
RECEIVER_PROFILES: dict[str, ReceiverProfile] = {
    "rtlsdr": ReceiverProfile(sample_rate="1.024e6", backend="rtlsdr"),
    "airspy_mini": ReceiverProfile(sample_rate="3e6", backend="airspy"),
    "airspy_r2": ReceiverProfile(sample_rate="2.5e6", backend="airspy"),
    "hackrf": ReceiverProfile(sample_rate="4e6", backend="hackrf"),
}


def resolve_receiver_profile(receiver_type: str) -> ReceiverProfile:
    """Map a receiver type to its capture parameters. Unknown types are fatal."""
    try:
        return RECEIVER_PROFILES[receiver_type]
    except (KeyError, TypeError):
        raise ConfigError(f"Invalid receiver type value: {receiver_type!r}") from None
