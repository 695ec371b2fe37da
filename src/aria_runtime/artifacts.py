"""Per-conversation record of intents, actions, screenshots and logs."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import uuid

from aria_runtime.state import utc_timestamp


ARTIFACT_TYPES = ("intent", "action", "screenshot", "extraction", "log")


@dataclass
class Artifact:
    id: str
    type: str
    timestamp: str
    label: Optional[str] = None
    data: Any = None


class ArtifactStore:
    def __init__(self):
        self._artifacts: Dict[str, List[Artifact]] = {}

    def add(
        self,
        conversation_id: str,
        artifact_type: str,
        label: Optional[str] = None,
        data: Any = None,
    ) -> Artifact:
        if artifact_type not in ARTIFACT_TYPES:
            raise ValueError(f"Unknown artifact type: {artifact_type}")
        artifact = Artifact(
            id=uuid.uuid4().hex,
            type=artifact_type,
            timestamp=utc_timestamp(),
            label=label,
            data=data,
        )
        self._artifacts.setdefault(conversation_id, []).append(artifact)
        return artifact

    def get(self, conversation_id: str) -> List[Artifact]:
        return list(self._artifacts.get(conversation_id, []))

    def clear(self, conversation_id: str) -> None:
        self._artifacts.pop(conversation_id, None)
