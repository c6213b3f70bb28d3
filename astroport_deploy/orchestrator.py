from typing import Optional

import click

from astroport_deploy.artifacts import ArtifactRecord, ArtifactStore, merge_record
from astroport_deploy.config import ConfigurationError
from astroport_deploy.confirm import _confirm_step
from astroport_deploy.gateway import ChainError, ChainGateway
from astroport_deploy.notify import Notifier, report_failure
from astroport_deploy.plan import DeploymentPlan
from astroport_deploy.steps import Step


def validate_plan(plan: DeploymentPlan, record: ArtifactRecord) -> None:
    """
    Checks, before any step runs, that every pending step can find the
    artifacts it needs: either already recorded or produced by an earlier step.
    A step with only some of its outputs recorded cannot run without
    overwriting them, so it is rejected unless it is a redeploy step.
    """
    available = set(record)
    for step in plan:
        if step.precondition(record):
            recorded = [output for output in step.outputs if output in record]
            if recorded and not step.redeploy:
                absent = [output for output in step.outputs if output not in record]
                raise ConfigurationError(
                    f"Step '{step.name}' is only partly recorded: {', '.join(recorded)} "
                    f"present, {', '.join(absent)} missing. Record the missing artifacts "
                    "or mark the step redeploy."
                )
            missing = step.requires - available
            if missing:
                raise ConfigurationError(
                    f"Step '{step.name}' requires {', '.join(sorted(missing))}, "
                    "which is neither recorded nor deployed by an earlier step."
                )
            step.validate()
        available |= set(step.outputs)


class Orchestrator:
    """
    Runs a deployment plan step by step, skipping the steps whose artifacts are
    already recorded and persisting the record after every completed step.
    The first failure is reported and halts the run.
    """

    def __init__(
        self,
        network: str,
        store: ArtifactStore,
        gateway: ChainGateway,
        notifier: Notifier,
        autosign: bool = True,
    ):
        self.network = network
        self.store = store
        self.gateway = gateway
        self.notifier = notifier
        self.autosign = autosign

    def _report(self, error: Exception, step: Optional[Step] = None) -> None:
        where = f"step '{step.name}'" if step else "deployment setup"
        title = f"{error.__class__.__name__} in {where} on {self.network}"
        report_failure(self.notifier, error, title)

    def _merge(self, step: Step, record: ArtifactRecord, delta: ArtifactRecord) -> ArtifactRecord:
        if set(delta) != set(step.outputs):
            raise ValueError(
                f"Step '{step.name}' returned {sorted(delta)}, "
                f"expected exactly {sorted(step.outputs)}."
            )
        return merge_record(record, delta, overwrite=step.redeploy)

    def run(self, plan: DeploymentPlan) -> ArtifactRecord:
        try:
            if plan.network != self.network:
                raise ConfigurationError(
                    f"Plan '{plan.name}' targets {plan.network}, "
                    f"but the deployment network is {self.network}."
                )
            record = self.store.load(self.network)
            validate_plan(plan, record)
        except Exception as e:
            self._report(e)
            raise

        total = len(plan)
        for index, step in enumerate(plan, start=1):
            if not step.precondition(record):
                click.echo(f"(i) [{index}/{total}] {step.name} already done, skipping.")
                continue

            click.secho(f"\n[{index}/{total}] {step.name}", fg="green")
            try:
                if not self.autosign:
                    _confirm_step(step.name, step.resolve(record, self.gateway.sender))
                delta = step.action(record, self.gateway)
                record = self._merge(step, record, delta)
                filepath = self.store.save(self.network, record)
            except Exception as e:
                self._report(e, step)
                raise
            click.echo(f"(i) Recorded {', '.join(step.outputs)} in {filepath}")

            try:
                step.report(record, self.gateway)
            except ChainError as e:
                click.secho(f"(!) Queries of {step.name} failed: {e}", fg="yellow", err=True)
            except Exception as e:
                self._report(e, step)
                raise

        click.secho(f"\nDeployment '{plan.name}' complete on {self.network}.", fg="green")
        return record
