import click

from astroport_deploy.constants import (
    ARTIFACTS_DIR_ENVVAR,
    AUTOSIGN_ENVVAR,
    CHAIN_ID_ENVVAR,
    GAS_PRICE_ENVVAR,
    LCD_URL_ENVVAR,
    LOCALTERRA,
    NETWORK_ENVVAR,
    SLACK_WEBHOOK_ENVVAR,
    SUPPORTED_NETWORKS,
    WALLET_ENVVAR,
    WASM_DIR_ENVVAR,
)
from astroport_deploy.types import GasPrice, NetworkIdentity

network_option = click.option(
    "--network",
    "-n",
    help="Target network.",
    type=click.Choice(SUPPORTED_NETWORKS),
    envvar=NETWORK_ENVVAR,
    default=LOCALTERRA,
    show_default=True,
)

chain_id_option = click.option(
    "--chain-id",
    help="Chain ID (network identity); defaults to the network preset.",
    type=NetworkIdentity(),
    envvar=CHAIN_ID_ENVVAR,
)

lcd_url_option = click.option(
    "--lcd-url",
    help="LCD REST endpoint; defaults to the network preset.",
    envvar=LCD_URL_ENVVAR,
)

wallet_option = click.option(
    "--wallet",
    "mnemonic",
    help="Mnemonic of the deployer wallet.",
    envvar=WALLET_ENVVAR,
    show_envvar=True,
)

gas_price_option = click.option(
    "--gas-price",
    help="Minimum gas price, e.g. 0.15uluna.",
    type=GasPrice(),
    envvar=GAS_PRICE_ENVVAR,
)

wasm_dir_option = click.option(
    "--wasm-dir",
    help="Directory containing the compiled contract binaries.",
    type=click.Path(file_okay=False, path_type=str),
    envvar=WASM_DIR_ENVVAR,
)

artifacts_dir_option = click.option(
    "--artifacts-dir",
    help="Directory where deployment artifacts are recorded.",
    type=click.Path(file_okay=False, path_type=str),
    envvar=ARTIFACTS_DIR_ENVVAR,
)

slack_webhook_option = click.option(
    "--slack-webhook-url",
    help="Slack incoming webhook used to report failures.",
    envvar=SLACK_WEBHOOK_ENVVAR,
)

autosign_option = click.option(
    "--autosign",
    help="Sign and run every step without confirmation.",
    is_flag=True,
    envvar=AUTOSIGN_ENVVAR,
)


def deployment_options(func):
    """Applies every option needed to build a DeploymentConfig."""
    for option in reversed(
        [
            network_option,
            chain_id_option,
            lcd_url_option,
            wallet_option,
            gas_price_option,
            wasm_dir_option,
            artifacts_dir_option,
            slack_webhook_option,
            autosign_option,
        ]
    ):
        func = option(func)
    return func
