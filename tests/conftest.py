from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from astroport_deploy.artifacts import ArtifactStore
from astroport_deploy.gateway import (
    ChainError,
    ChainGateway,
    ExecuteResult,
    InstantiateResult,
    UploadResult,
)
from astroport_deploy.notify import Notifier
from astroport_deploy.orchestrator import Orchestrator

NETWORK = "localterra"
DEPLOYER = "terra1deployer"
WASM_FILES = [
    "astroport_token.wasm",
    "astroport_vesting.wasm",
    "astroport_generator.wasm",
    "astroport_pair.wasm",
    "astroport_pair_stable.wasm",
    "astroport_whitelist.wasm",
    "astroport_xastro_token.wasm",
    "astroport_staking.wasm",
    "astroport_factory.wasm",
]


class FakeGateway(ChainGateway):
    """In-memory chain that records every call made against it."""

    def __init__(self):
        self.calls: List[tuple] = list()
        self.failures: Dict[tuple, Exception] = dict()
        self.query_results: Dict[str, Any] = dict()
        self._next_code_id = 1
        self._next_contract = 1
        self._next_tx = 1

    @property
    def sender(self) -> str:
        return DEPLOYER

    def fail(self, method: str, target: Any, error: Optional[Exception] = None) -> None:
        """Makes the next call of a method on a target (wasm name, label or address) fail."""
        self.failures[(method, target)] = error or ChainError(f"{method} rejected on {target}")

    def _check(self, method: str, target: Any) -> None:
        error = self.failures.pop((method, target), None)
        if error is not None:
            raise error

    def _tx_hash(self) -> str:
        tx_hash = f"TX{self._next_tx:04d}"
        self._next_tx += 1
        return tx_hash

    def upload_code(self, wasm_path: Path) -> UploadResult:
        self.calls.append(("upload_code", wasm_path.name))
        self._check("upload_code", wasm_path.name)
        code_id = self._next_code_id
        self._next_code_id += 1
        return UploadResult(code_id=code_id, tx_hash=self._tx_hash())

    def instantiate(self, code_id, init_msg, label, admin=None) -> InstantiateResult:
        self.calls.append(("instantiate", code_id, init_msg, label, admin))
        self._check("instantiate", label)
        address = f"terra1contract{self._next_contract}"
        self._next_contract += 1
        return InstantiateResult(contract_address=address, tx_hash=self._tx_hash())

    def execute(self, contract_address, msg, funds=None) -> ExecuteResult:
        self.calls.append(("execute", contract_address, msg, funds))
        self._check("execute", contract_address)
        return ExecuteResult(tx_hash=self._tx_hash(), height=100)

    def query(self, contract_address, msg) -> Any:
        self.calls.append(("query", contract_address, msg))
        self._check("query", contract_address)
        return self.query_results.get(contract_address, {})

    def methods(self) -> List[str]:
        return [call[0] for call in self.calls]


class RecordingNotifier(Notifier):
    def __init__(self):
        self.notifications: List[tuple] = list()

    def notify(self, title: str, message: str, trace: str) -> None:
        self.notifications.append((title, message, trace))


# Fixtures


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def artifacts_dir(tmp_path):
    return tmp_path / "artifacts"


@pytest.fixture()
def store(artifacts_dir):
    return ArtifactStore(artifacts_dir)


@pytest.fixture()
def wasm_dir(tmp_path):
    directory = tmp_path / "wasm"
    directory.mkdir()
    for filename in WASM_FILES:
        (directory / filename).write_bytes(b"\x00asm")
    return directory


@pytest.fixture()
def orchestrator(store, gateway, notifier):
    return Orchestrator(network=NETWORK, store=store, gateway=gateway, notifier=notifier)
