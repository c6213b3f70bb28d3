import json
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Optional

import click
import requests
from bip_utils import Bip39SeedGenerator, Bip44, Bip44Coins
from cosmpy.aerial.client import LedgerClient, NetworkConfig
from cosmpy.aerial.client.utils import prepare_and_broadcast_basic_transaction
from cosmpy.aerial.contract.cosmwasm import (
    create_cosmwasm_execute_msg,
    create_cosmwasm_instantiate_msg,
    create_cosmwasm_store_code_msg,
)
from cosmpy.aerial.exceptions import BroadcastError
from cosmpy.aerial.tx import Transaction
from cosmpy.aerial.wallet import LocalWallet
from cosmpy.crypto.address import Address
from cosmpy.crypto.keypairs import PrivateKey
from cosmpy.protos.cosmwasm.wasm.v1.query_pb2 import QuerySmartContractStateRequest

from astroport_deploy.config import DeploymentConfig, parse_gas_price
from astroport_deploy.constants import BECH32_PREFIX, STAKING_DENOM
from astroport_deploy.gateway import (
    ChainError,
    ChainGateway,
    CodeId,
    ContractAddress,
    ExecuteResult,
    InstantiateResult,
    UploadResult,
)


def wallet_from_mnemonic(mnemonic: str) -> LocalWallet:
    """Derives the deployer wallet on the Terra coin type (330)."""
    seed = Bip39SeedGenerator(mnemonic).Generate()
    bip44 = Bip44.FromSeed(seed, Bip44Coins.TERRA).DeriveDefaultPath()
    private_key = PrivateKey(bip44.PrivateKey().Raw().ToBytes())
    return LocalWallet(private_key, prefix=BECH32_PREFIX)


def network_config(config: DeploymentConfig) -> NetworkConfig:
    gas_amount, gas_denom = parse_gas_price(config.gas_price)
    url = config.lcd_url
    if not url.startswith("rest+"):
        url = f"rest+{url}"
    return NetworkConfig(
        chain_id=config.chain_id,
        url=url,
        fee_minimum_gas_price=gas_amount,
        fee_denomination=gas_denom,
        staking_denomination=STAKING_DENOM,
    )


@contextmanager
def _chain_errors(action: str):
    """Translates client and transport failures into ChainError."""
    try:
        yield
    except BroadcastError as e:
        raise ChainError(f"{action} failed: {e}", tx_hash=getattr(e, "tx_hash", None)) from e
    except (RuntimeError, requests.RequestException) as e:
        raise ChainError(f"{action} failed: {e}") from e


class TerraGateway(ChainGateway):
    """
    Chain gateway backed by a cosmpy ledger client talking to a Terra LCD.
    """

    def __init__(self, client: LedgerClient, wallet: LocalWallet):
        self._client = client
        self._wallet = wallet

    @classmethod
    def from_config(cls, config: DeploymentConfig) -> "TerraGateway":
        client = LedgerClient(network_config(config))
        wallet = wallet_from_mnemonic(config.mnemonic)
        return cls(client=client, wallet=wallet)

    @property
    def sender(self) -> ContractAddress:
        return str(self._wallet.address())

    def _broadcast(self, tx: Transaction):
        submitted_tx = prepare_and_broadcast_basic_transaction(self._client, tx, self._wallet)
        click.echo(f"(i) Broadcast transaction {submitted_tx.tx_hash}, waiting for inclusion...")
        return submitted_tx.wait_to_complete()

    def upload_code(self, wasm_path: Path) -> UploadResult:
        with _chain_errors(f"Upload of {wasm_path.name}"):
            tx = Transaction()
            tx.add_message(create_cosmwasm_store_code_msg(str(wasm_path), self._wallet.address()))
            submitted_tx = self._broadcast(tx)
            code_id = submitted_tx.contract_code_id
        if code_id is None:
            raise ChainError(
                f"No code id in the upload response of {wasm_path.name}",
                tx_hash=submitted_tx.tx_hash,
            )
        return UploadResult(code_id=int(code_id), tx_hash=submitted_tx.tx_hash)

    def instantiate(
        self,
        code_id: CodeId,
        init_msg: Dict[str, Any],
        label: str,
        admin: Optional[ContractAddress] = None,
    ) -> InstantiateResult:
        with _chain_errors(f"Instantiation of code {code_id}"):
            tx = Transaction()
            tx.add_message(
                create_cosmwasm_instantiate_msg(
                    code_id,
                    init_msg,
                    label,
                    self._wallet.address(),
                    admin_address=Address(admin) if admin else None,
                )
            )
            submitted_tx = self._broadcast(tx)
            contract_address = submitted_tx.contract_address
        if contract_address is None:
            raise ChainError(
                f"No contract address in the instantiate response of code {code_id}",
                tx_hash=submitted_tx.tx_hash,
            )
        return InstantiateResult(
            contract_address=str(contract_address), tx_hash=submitted_tx.tx_hash
        )

    def execute(
        self, contract_address: ContractAddress, msg: Dict[str, Any], funds: Optional[str] = None
    ) -> ExecuteResult:
        with _chain_errors(f"Execution on {contract_address}"):
            tx = Transaction()
            tx.add_message(
                create_cosmwasm_execute_msg(
                    self._wallet.address(), Address(contract_address), msg, funds=funds
                )
            )
            submitted_tx = self._broadcast(tx)
        return ExecuteResult(tx_hash=submitted_tx.tx_hash, height=submitted_tx.response.height)

    def query(self, contract_address: ContractAddress, msg: Dict[str, Any]) -> Any:
        with _chain_errors(f"Query of {contract_address}"):
            request = QuerySmartContractStateRequest(
                address=contract_address, query_data=json.dumps(msg).encode("utf-8")
            )
            response = self._client.wasm.SmartContractState(request)
        return json.loads(response.data)
