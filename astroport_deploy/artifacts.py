import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Union

from astroport_deploy.config import validate_network_identity
from astroport_deploy.constants import ARTIFACT_JSON_FORMAT

NetworkIdentity = str
ArtifactValue = Union[str, int, float, bool]
ArtifactRecord = Dict[str, ArtifactValue]

ARTIFACT_SUFFIX = ".json"


class PersistenceError(IOError):
    """Raised when deployment artifacts cannot be read or written."""


def _validate_record(record: Any, filepath: Path) -> ArtifactRecord:
    if not isinstance(record, dict):
        raise PersistenceError(f"Artifact file {filepath} does not contain a JSON object.")
    for key, value in record.items():
        if not isinstance(value, (str, int, float, bool)):
            raise PersistenceError(
                f"Artifact '{key}' in {filepath} has a non-scalar value '{value}'."
            )
    return record


class ArtifactStore:
    """
    Durable record of deployment progress, one JSON file per network identity.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def filepath(self, network: NetworkIdentity) -> Path:
        """Returns the artifact file of a network identity."""
        validate_network_identity(network)
        return self.directory / f"{network}{ARTIFACT_SUFFIX}"

    def load(self, network: NetworkIdentity) -> ArtifactRecord:
        """Loads the record of a network; a missing file is an empty record."""
        filepath = self.filepath(network)
        if not filepath.exists():
            return dict()
        try:
            with open(filepath, "r") as file:
                record = json.load(file)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Cannot read artifacts from {filepath}: {e}") from e
        return _validate_record(record, filepath)

    def save(self, network: NetworkIdentity, record: ArtifactRecord) -> Path:
        """
        Overwrites the full record of a network. The record is written to a
        temporary file in the same directory and renamed into place, so a reader
        never sees a partially written file.
        """
        filepath = self.filepath(network)
        _validate_record(record, filepath)
        temp_filepath = None
        try:
            filepath.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_filepath = tempfile.mkstemp(
                prefix=f".{network}.", suffix=".tmp", dir=filepath.parent
            )
            with os.fdopen(fd, "w") as file:
                json.dump(record, file, **ARTIFACT_JSON_FORMAT)
                file.write("\n")
                file.flush()
                os.fsync(file.fileno())
            os.replace(temp_filepath, filepath)
        except (OSError, TypeError, ValueError) as e:
            if temp_filepath and os.path.exists(temp_filepath):
                os.unlink(temp_filepath)
            raise PersistenceError(f"Cannot write artifacts to {filepath}: {e}") from e
        return filepath

    def networks(self) -> List[NetworkIdentity]:
        """Returns the network identities that have recorded artifacts."""
        if not self.directory.exists():
            return list()
        return sorted(p.stem for p in self.directory.glob(f"*{ARTIFACT_SUFFIX}"))


def merge_record(
    record: ArtifactRecord, delta: ArtifactRecord, overwrite: bool = False
) -> ArtifactRecord:
    """
    Returns a new record with the delta merged in. Existing artifacts are never
    replaced with a different value unless overwrite is set.
    """
    if not overwrite:
        for key, value in delta.items():
            if key in record and record[key] != value:
                raise ValueError(
                    f"Artifact '{key}' is already recorded as '{record[key]}'; "
                    f"refusing to overwrite it with '{value}'."
                )
    merged = dict(record)
    merged.update(delta)
    return merged
