from datetime import datetime, timezone
from typing import Dict, TypedDict, Union


class TelemetryPayload(TypedDict):
    telemetryType: str
    parameters: Dict[str, Union[str, int, float, list]]


class Message(TypedDict):
    messageType: str
    timestamp: str
    source: str
    version: str
    payload: TelemetryPayload


class MessageGenerator:
    def __init__(self, source: str, version: str):
        self.source = source
        self.version = version

    def _get_timestamp(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    def generate_telemetry(self, telemetry_type: str, parameters: Dict[str, Union[str, int, float, list]]) -> Message:
        payload: TelemetryPayload = {"telemetryType": telemetry_type, "parameters": parameters}
        message: Message = {
            "messageType": "telemetry",
            "timestamp": self._get_timestamp(),
            "source": self.source,
            "version": self.version,
            "payload": payload,
        }
        return message
