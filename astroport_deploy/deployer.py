from pathlib import Path
from typing import Optional

import click

from astroport_deploy.artifacts import ArtifactRecord, ArtifactStore
from astroport_deploy.config import DeploymentConfig, build_config
from astroport_deploy.confirm import _continue
from astroport_deploy.gateway import ChainGateway
from astroport_deploy.notify import Notifier, notifier_from_webhook, report_failure
from astroport_deploy.orchestrator import Orchestrator
from astroport_deploy.plan import DeploymentPlan, plan_filepath


class Deployer:
    """
    Assembles the artifact store, chain gateway, notifier and orchestrator
    for one deployment plan on one network.
    """

    def __init__(
        self,
        config: DeploymentConfig,
        plan: DeploymentPlan,
        gateway: Optional[ChainGateway] = None,
        notifier: Optional[Notifier] = None,
        path: Optional[Path] = None,
    ):
        self.config = config
        self.plan = plan
        self.path = path
        self.store = ArtifactStore(config.artifacts_dir)
        self.notifier = notifier or notifier_from_webhook(config.slack_webhook_url)
        if gateway is None:
            from astroport_deploy.terra import TerraGateway

            gateway = TerraGateway.from_config(config)
        self.gateway = gateway
        self.orchestrator = Orchestrator(
            network=config.chain_id,
            store=self.store,
            gateway=self.gateway,
            notifier=self.notifier,
            autosign=config.autosign,
        )

    @classmethod
    def from_plan_name(cls, config: DeploymentConfig, plan_name: str, **kwargs) -> "Deployer":
        filepath = plan_filepath(network=config.network, plan_name=plan_name)
        plan = DeploymentPlan.from_yaml(filepath=filepath, wasm_dir=config.wasm_dir)
        return cls(config=config, plan=plan, path=filepath, **kwargs)

    def deploy(self) -> ArtifactRecord:
        self._print_deployment_info()
        if not self.config.autosign:
            # Confirms the start of the deployment.
            _continue()
        return self.orchestrator.run(self.plan)

    def _print_deployment_info(self):
        click.echo(
            "\n".join(
                [
                    f"Account: {self.gateway.sender}",
                    f"Plan: {self.path or self.plan.name}",
                    f"Network: {self.config.network}",
                    f"Chain ID: {self.config.chain_id}",
                    f"LCD: {self.config.lcd_url}",
                    f"Gas Price: {self.config.gas_price}",
                    f"Artifacts: {self.store.filepath(self.config.chain_id)}",
                ]
            )
        )


def deploy_plan(
    plan_name: str, slack_webhook_url: Optional[str] = None, **options
) -> ArtifactRecord:
    """
    Entry point of the deployment scripts: builds the configuration from the
    (environment driven) options and runs the named plan for the network.
    Setup failures are reported like step failures before being raised.
    """
    notifier = notifier_from_webhook(slack_webhook_url)
    try:
        config = build_config(slack_webhook_url=slack_webhook_url, **options)
        deployer = Deployer.from_plan_name(config, plan_name, notifier=notifier)
    except Exception as e:
        network = options.get("chain_id") or options.get("network")
        title = f"{e.__class__.__name__} preparing '{plan_name}' on {network}"
        report_failure(notifier, e, title)
        raise
    return deployer.deploy()
