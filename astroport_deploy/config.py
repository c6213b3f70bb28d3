import re
from pathlib import Path
from typing import NamedTuple, Optional, Tuple

from astroport_deploy.constants import (
    ARTIFACTS_DIR,
    DEFAULT_GAS_PRICE,
    LOCALTERRA,
    LOCALTERRA_TEST1_MNEMONIC,
    NETWORK_PRESETS,
    WALLET_ENVVAR,
    WASM_DIR,
)

NETWORK_IDENTITY_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")
GAS_PRICE_PATTERN = re.compile(r"^(?P<amount>\d+(\.\d+)?)(?P<denom>[a-zA-Z][a-zA-Z0-9/]*)$")


class ConfigurationError(ValueError):
    """Raised when the deployment environment or plan is not usable."""


class DeploymentConfig(NamedTuple):
    """Everything a deployment run needs, resolved once at startup."""

    network: str
    chain_id: str
    lcd_url: str
    mnemonic: str
    gas_price: str
    artifacts_dir: Path
    wasm_dir: Path
    slack_webhook_url: Optional[str] = None
    autosign: bool = False

    @property
    def is_local(self) -> bool:
        return self.network == LOCALTERRA


def validate_network_identity(identity: str) -> str:
    """
    Checks that a network identity can safely name its own artifact file,
    so that two identities never share storage.
    """
    if not identity or not NETWORK_IDENTITY_PATTERN.match(identity):
        raise ConfigurationError(f"Invalid network identity '{identity}'.")
    return identity


def parse_gas_price(gas_price: str) -> Tuple[float, str]:
    """Splits a gas price such as '0.15uluna' into amount and denomination."""
    match = GAS_PRICE_PATTERN.match(gas_price.strip())
    if not match:
        raise ConfigurationError(f"Invalid gas price '{gas_price}'.")
    return float(match.group("amount")), match.group("denom")


def build_config(
    network: str,
    chain_id: Optional[str] = None,
    lcd_url: Optional[str] = None,
    mnemonic: Optional[str] = None,
    gas_price: Optional[str] = None,
    artifacts_dir: Optional[Path] = None,
    wasm_dir: Optional[Path] = None,
    slack_webhook_url: Optional[str] = None,
    autosign: bool = False,
) -> DeploymentConfig:
    """
    Builds the deployment configuration from (environment driven) options,
    falling back to the network presets where a value is not given.
    """
    try:
        preset_chain_id, preset_lcd_url = NETWORK_PRESETS[network]
    except KeyError:
        raise ConfigurationError(f"Unsupported network '{network}'.")

    chain_id = validate_network_identity(chain_id or preset_chain_id)
    lcd_url = lcd_url or preset_lcd_url

    if not mnemonic:
        if network != LOCALTERRA:
            raise ConfigurationError(f"{WALLET_ENVVAR} is not set.")
        mnemonic = LOCALTERRA_TEST1_MNEMONIC

    gas_price = gas_price or DEFAULT_GAS_PRICE
    parse_gas_price(gas_price)  # eager validation

    return DeploymentConfig(
        network=network,
        chain_id=chain_id,
        lcd_url=lcd_url,
        mnemonic=mnemonic,
        gas_price=gas_price,
        artifacts_dir=Path(artifacts_dir or ARTIFACTS_DIR),
        wasm_dir=Path(wasm_dir or WASM_DIR),
        slack_webhook_url=slack_webhook_url or None,
        autosign=autosign,
    )
