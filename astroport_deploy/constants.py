from pathlib import Path

import astroport_deploy

#
# Filesystem
#

PACKAGE_DIR = Path(astroport_deploy.__file__).parent
PROJECT_DIR = PACKAGE_DIR.parent
PLANS_DIR = PACKAGE_DIR / "plans"
ARTIFACTS_DIR = PROJECT_DIR / "artifacts"
WASM_DIR = PROJECT_DIR / "wasm"

ARTIFACT_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}

#
# Networks
#

LOCALTERRA = "localterra"
TESTNET = "testnet"
MAINNET = "mainnet"

SUPPORTED_NETWORKS = [LOCALTERRA, TESTNET, MAINNET]

# network name -> (chain id, LCD endpoint)
NETWORK_PRESETS = {
    LOCALTERRA: ("localterra", "http://localhost:1317"),
    TESTNET: ("pisco-1", "https://pisco-lcd.terra.dev"),
    MAINNET: ("phoenix-1", "https://phoenix-lcd.terra.dev"),
}

DEFAULT_GAS_PRICE = "0.15uluna"
STAKING_DENOM = "uluna"
BECH32_PREFIX = "terra"

# LocalTerra genesis account "test1"
LOCALTERRA_TEST1_MNEMONIC = (
    "notice oak worry limit wrap speak medal online prefer cluster roof addict "
    "wrist behave treat actual wasp year salad speed social layer crew genius"
)

#
# Environment
#

NETWORK_ENVVAR = "NETWORK"
CHAIN_ID_ENVVAR = "CHAIN_ID"
LCD_URL_ENVVAR = "LCD_CLIENT_URL"
WALLET_ENVVAR = "WALLET"
GAS_PRICE_ENVVAR = "GAS_PRICE"
WASM_DIR_ENVVAR = "WASM_ARTIFACTS_PATH"
ARTIFACTS_DIR_ENVVAR = "DEPLOY_ARTIFACTS_PATH"
SLACK_WEBHOOK_ENVVAR = "SLACK_WEBHOOK_URL"
AUTOSIGN_ENVVAR = "AUTOSIGN"

#
# Slack
#

SLACK_TIMEOUT = 10  # seconds
