import base64
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional

ContractAddress = str
CodeId = int


class ChainError(RuntimeError):
    """Raised when a transaction or query against the chain fails."""

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class UploadResult(NamedTuple):
    code_id: CodeId
    tx_hash: str


class InstantiateResult(NamedTuple):
    contract_address: ContractAddress
    tx_hash: str


class ExecuteResult(NamedTuple):
    tx_hash: str
    height: Optional[int] = None


def to_encoded_binary(msg: Any) -> str:
    """Encodes a message as the base64 JSON expected by cw20 `send` hooks."""
    return base64.b64encode(json.dumps(msg).encode("utf-8")).decode("ascii")


class ChainGateway(ABC):
    """
    Capabilities a deployment step needs from the chain. Every call blocks until
    the transaction is included (or the query answered) and raises ChainError
    on failure.
    """

    @property
    @abstractmethod
    def sender(self) -> ContractAddress:
        """Address of the signing (deployer) account."""
        raise NotImplementedError

    @abstractmethod
    def upload_code(self, wasm_path: Path) -> UploadResult:
        raise NotImplementedError

    @abstractmethod
    def instantiate(
        self,
        code_id: CodeId,
        init_msg: Dict[str, Any],
        label: str,
        admin: Optional[ContractAddress] = None,
    ) -> InstantiateResult:
        raise NotImplementedError

    @abstractmethod
    def execute(
        self, contract_address: ContractAddress, msg: Dict[str, Any], funds: Optional[str] = None
    ) -> ExecuteResult:
        raise NotImplementedError

    @abstractmethod
    def query(self, contract_address: ContractAddress, msg: Dict[str, Any]) -> Any:
        raise NotImplementedError
