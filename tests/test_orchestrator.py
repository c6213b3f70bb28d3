import pytest

from astroport_deploy.artifacts import ArtifactStore, PersistenceError
from astroport_deploy.config import ConfigurationError
from astroport_deploy.gateway import ChainError
from astroport_deploy.orchestrator import Orchestrator, validate_plan
from astroport_deploy.params import Parameter, VariableContext
from astroport_deploy.plan import DeploymentPlan
from astroport_deploy.steps import (
    DeployContract,
    ExecuteContract,
    Query,
    Step,
    UnexpectedQueryResult,
)
from tests.conftest import DEPLOYER, NETWORK, FakeGateway, RecordingNotifier


def deploy_vesting(wasm_dir):
    return DeployContract(
        name="deploy_vesting",
        output="vestingAddress",
        wasm_path=wasm_dir / "astroport_vesting.wasm",
        label="Astroport Vesting",
        init_msg={"owner": "$deployer"},
    )


def deploy_generator(wasm_dir):
    return DeployContract(
        name="deploy_generator",
        output="generatorAddress",
        wasm_path=wasm_dir / "astroport_generator.wasm",
        label="Astroport Generator",
        init_msg={"owner": "$deployer", "vesting_contract": "$vestingAddress"},
    )


def update_factory_config():
    return ExecuteContract(
        name="update_factory_config",
        output="factoryGeneratorConfigTx",
        contract="$factoryAddress",
        msg={"update_config": {"generator_address": "$generatorAddress"}},
    )


@pytest.fixture()
def plan(wasm_dir):
    return DeploymentPlan(
        network=NETWORK, steps=[deploy_vesting(wasm_dir), deploy_generator(wasm_dir)]
    )


@pytest.fixture()
def three_step_plan(wasm_dir):
    return DeploymentPlan(
        network=NETWORK,
        steps=[deploy_vesting(wasm_dir), deploy_generator(wasm_dir), update_factory_config()],
    )


def test_deploys_every_step_from_empty_record(orchestrator, plan, store, gateway):
    record = orchestrator.run(plan)

    assert set(record) == {"vestingAddress", "generatorAddress"}
    assert store.load(NETWORK) == record
    assert gateway.methods() == ["upload_code", "instantiate", "upload_code", "instantiate"]

    # the generator is instantiated with the freshly deployed vesting contract
    _, _, init_msg, label, _ = gateway.calls[3]
    assert label == "Astroport Generator"
    assert init_msg == {"owner": DEPLOYER, "vesting_contract": record["vestingAddress"]}


def test_rerun_of_completed_plan_makes_no_gateway_calls(orchestrator, plan, store, gateway):
    first = orchestrator.run(plan)
    gateway.calls.clear()

    second = orchestrator.run(plan)

    assert gateway.calls == []
    assert second == first
    assert store.load(NETWORK) == first


def test_recorded_artifact_skips_its_step(orchestrator, plan, store, gateway):
    store.save(NETWORK, {"vestingAddress": "terra1vesting"})

    record = orchestrator.run(plan)

    assert record["vestingAddress"] == "terra1vesting"
    assert "generatorAddress" in record
    assert [c[0] for c in gateway.calls] == ["upload_code", "instantiate"]
    assert gateway.calls[0][1] == "astroport_generator.wasm"
    assert gateway.calls[1][2]["vesting_contract"] == "terra1vesting"


def test_run_keeps_previous_artifacts_and_adds_declared_outputs(orchestrator, plan, store):
    before = {"tokenAddress": "terra1token", "multisigAddress": "terra1multisig"}
    store.save(NETWORK, before)

    record = orchestrator.run(plan)

    assert {k: record[k] for k in before} == before
    assert set(record) - set(before) == {"vestingAddress", "generatorAddress"}


def test_chain_error_persists_only_completed_steps(orchestrator, plan, store, gateway, notifier):
    gateway.fail("instantiate", "Astroport Generator")

    with pytest.raises(ChainError) as error:
        orchestrator.run(plan)

    persisted = store.load(NETWORK)
    assert list(persisted) == ["vestingAddress"]
    assert len(notifier.notifications) == 1
    title, message, trace = notifier.notifications[0]
    assert message == str(error.value)
    assert "deploy_generator" in title
    assert "ChainError" in trace


def test_failure_halts_remaining_steps(store, gateway, notifier, three_step_plan):
    store.save(NETWORK, {"factoryAddress": "terra1factory"})
    gateway.fail("upload_code", "astroport_generator.wasm")
    orchestrator = Orchestrator(NETWORK, store=store, gateway=gateway, notifier=notifier)

    with pytest.raises(ChainError):
        orchestrator.run(three_step_plan)

    assert "execute" not in gateway.methods()
    assert set(store.load(NETWORK)) == {"factoryAddress", "vestingAddress"}


def test_resume_after_failure_runs_only_remaining_steps(
    orchestrator, three_step_plan, store, gateway
):
    store.save(NETWORK, {"factoryAddress": "terra1factory"})
    gateway.fail("instantiate", "Astroport Generator")
    with pytest.raises(ChainError):
        orchestrator.run(three_step_plan)
    vesting_address = store.load(NETWORK)["vestingAddress"]
    gateway.calls.clear()

    record = orchestrator.run(three_step_plan)

    assert gateway.methods() == ["upload_code", "instantiate", "execute"]
    assert record["vestingAddress"] == vesting_address
    assert gateway.calls[2][1] == "terra1factory"
    assert gateway.calls[2][2] == {
        "update_config": {"generator_address": record["generatorAddress"]}
    }
    assert record["factoryGeneratorConfigTx"].startswith("TX")


def test_missing_prerequisite_is_reported_before_any_step(
    orchestrator, three_step_plan, store, gateway, notifier
):
    with pytest.raises(ConfigurationError, match="factoryAddress"):
        orchestrator.run(three_step_plan)

    assert gateway.calls == []
    assert store.load(NETWORK) == {}
    assert len(notifier.notifications) == 1
    assert "deployment setup" in notifier.notifications[0][0]


def test_missing_binary_of_pending_step_is_a_configuration_error(
    orchestrator, plan, wasm_dir, gateway
):
    (wasm_dir / "astroport_generator.wasm").unlink()

    with pytest.raises(ConfigurationError, match="astroport_generator.wasm"):
        orchestrator.run(plan)
    assert gateway.calls == []


def test_missing_binary_of_completed_step_is_ignored(orchestrator, plan, wasm_dir, store):
    store.save(NETWORK, {"vestingAddress": "terra1vesting"})
    (wasm_dir / "astroport_vesting.wasm").unlink()

    record = orchestrator.run(plan)
    assert "generatorAddress" in record


def test_plan_for_another_network_is_rejected(store, gateway, notifier, plan):
    orchestrator = Orchestrator("phoenix-1", store=store, gateway=gateway, notifier=notifier)

    with pytest.raises(ConfigurationError, match="phoenix-1"):
        orchestrator.run(plan)
    assert gateway.calls == []


def test_persistence_failure_is_reported_and_raised(artifacts_dir, gateway, notifier, plan):
    class BrokenStore(ArtifactStore):
        def save(self, network, record):
            raise PersistenceError("disk full")

    orchestrator = Orchestrator(
        NETWORK, store=BrokenStore(artifacts_dir), gateway=gateway, notifier=notifier
    )

    with pytest.raises(PersistenceError):
        orchestrator.run(plan)

    # the first step ran, but nothing after the failed write
    assert gateway.methods() == ["upload_code", "instantiate"]
    assert len(notifier.notifications) == 1
    assert notifier.notifications[0][1] == "disk full"


def test_failing_notifier_does_not_mask_error(store, gateway, plan):
    class BrokenNotifier(RecordingNotifier):
        def notify(self, title, message, trace):
            raise RuntimeError("slack is down")

    gateway.fail("upload_code", "astroport_vesting.wasm", ChainError("out of gas"))
    orchestrator = Orchestrator(NETWORK, store=store, gateway=gateway, notifier=BrokenNotifier())

    with pytest.raises(ChainError, match="out of gas"):
        orchestrator.run(plan)


def test_step_returning_undeclared_artifacts_is_not_recorded(orchestrator, store, notifier):
    class SloppyStep(Step):
        def parameters(self):
            return dict()

        def _execute(self, context, gateway):
            return {"somethingElse": "value"}

    plan = DeploymentPlan(NETWORK, steps=[SloppyStep(name="sloppy", outputs=["expected"])])

    with pytest.raises(ValueError, match="expected"):
        orchestrator.run(plan)
    assert store.load(NETWORK) == {}
    assert len(notifier.notifications) == 1


def test_redeploy_step_replaces_its_artifact(orchestrator, store, wasm_dir, gateway):
    store.save(NETWORK, {"vestingAddress": "terra1old"})
    step = deploy_vesting(wasm_dir)
    step.redeploy = True

    record = orchestrator.run(DeploymentPlan(NETWORK, steps=[step]))

    assert record["vestingAddress"] != "terra1old"
    assert store.load(NETWORK) == record
    assert gateway.methods() == ["upload_code", "instantiate"]


def test_confirmation_prompts_before_each_step(store, gateway, notifier, plan, monkeypatch):
    answers = list()
    monkeypatch.setattr("builtins.input", lambda prompt: answers.append(prompt) or "y")
    orchestrator = Orchestrator(
        NETWORK, store=store, gateway=gateway, notifier=notifier, autosign=False
    )

    orchestrator.run(plan)

    assert answers == ["Run deploy_vesting Y/N? ", "Run deploy_generator Y/N? "]


def test_declined_step_aborts_without_running(store, gateway, notifier, plan, monkeypatch):
    monkeypatch.setattr("builtins.input", lambda prompt: "n")
    orchestrator = Orchestrator(
        NETWORK, store=store, gateway=gateway, notifier=notifier, autosign=False
    )

    with pytest.raises(SystemExit):
        orchestrator.run(plan)
    assert gateway.calls == []
    assert notifier.notifications == []


def test_validate_plan_accepts_artifacts_from_earlier_steps(three_step_plan):
    validate_plan(three_step_plan, {"factoryAddress": "terra1factory"})


def test_each_orchestrator_uses_its_own_network_record(
    store, notifier, plan, wasm_dir
):
    other_plan = DeploymentPlan("pisco-1", steps=[deploy_vesting(wasm_dir)])
    Orchestrator(NETWORK, store, FakeGateway(), notifier).run(plan)
    Orchestrator("pisco-1", store, FakeGateway(), notifier).run(other_plan)

    assert set(store.load(NETWORK)) == {"vestingAddress", "generatorAddress"}
    assert set(store.load("pisco-1")) == {"vestingAddress"}


def deploy_token(wasm_dir, expected_balance=None):
    expect = {"balance": expected_balance} if expected_balance is not None else None
    context = VariableContext(step_name="deploy_astro_token")
    return DeployContract(
        name="deploy_astro_token",
        output="tokenAddress",
        code_id_output="tokenCodeID",
        wasm_path=wasm_dir / "astroport_token.wasm",
        label="Astroport Token",
        init_msg={"name": "Astro"},
        queries=[
            Query(
                msg=Parameter.from_raw({"balance": {"address": "$deployer"}}, context),
                expect=Parameter.from_raw(expect, context) if expect else None,
            )
        ],
    )


def test_failing_query_keeps_the_deployed_contract(orchestrator, store, gateway, wasm_dir):
    plan = DeploymentPlan(NETWORK, steps=[deploy_token(wasm_dir), deploy_vesting(wasm_dir)])
    gateway.fail("query", "terra1contract1")

    record = orchestrator.run(plan)

    assert record["tokenAddress"] == "terra1contract1"
    assert store.load(NETWORK) == record
    assert "vestingAddress" in record

    calls = len(gateway.calls)
    orchestrator.run(plan)
    assert len(gateway.calls) == calls
    assert gateway.methods().count("instantiate") == 2


def test_unexpected_query_result_halts_after_recording(
    orchestrator, store, gateway, notifier, wasm_dir
):
    plan = DeploymentPlan(
        NETWORK, steps=[deploy_token(wasm_dir, "1000000"), deploy_vesting(wasm_dir)]
    )
    gateway.query_results["terra1contract1"] = {"balance": "0"}

    with pytest.raises(UnexpectedQueryResult):
        orchestrator.run(plan)

    assert store.load(NETWORK) == {"tokenAddress": "terra1contract1", "tokenCodeID": 1}
    assert "upload_code" not in gateway.methods()[2:]
    assert len(notifier.notifications) == 1
    assert "deploy_astro_token" in notifier.notifications[0][0]


def test_expected_query_result_passes(orchestrator, gateway, notifier, wasm_dir):
    plan = DeploymentPlan(NETWORK, steps=[deploy_token(wasm_dir, "1000000")])
    gateway.query_results["terra1contract1"] = {"balance": "1000000"}

    record = orchestrator.run(plan)

    assert record == {"tokenAddress": "terra1contract1", "tokenCodeID": 1}
    assert notifier.notifications == []


def test_partly_recorded_step_is_rejected_before_any_call(
    orchestrator, store, gateway, notifier, wasm_dir
):
    store.save(NETWORK, {"tokenAddress": "terra1existing"})
    plan = DeploymentPlan(NETWORK, steps=[deploy_vesting(wasm_dir), deploy_token(wasm_dir)])

    for _ in range(2):
        with pytest.raises(ConfigurationError, match="tokenCodeID"):
            orchestrator.run(plan)

    assert gateway.calls == []
    assert store.load(NETWORK) == {"tokenAddress": "terra1existing"}
    assert len(notifier.notifications) == 2


def test_partly_recorded_redeploy_step_runs(orchestrator, store, gateway, wasm_dir):
    store.save(NETWORK, {"tokenAddress": "terra1existing"})
    step = deploy_token(wasm_dir)
    step.redeploy = True

    record = orchestrator.run(DeploymentPlan(NETWORK, steps=[step]))

    assert record == {"tokenAddress": "terra1contract1", "tokenCodeID": 1}
