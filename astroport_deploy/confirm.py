from collections import OrderedDict


def _abort() -> None:
    print("Aborting deployment!")
    exit(-1)


def _continue() -> None:
    """Asks the user to continue."""
    answer = input("Continue Y/N? ")
    if answer.lower().strip() == "n":
        _abort()


def _confirm_step(step_name: str, resolved_params: OrderedDict) -> None:
    """Asks the user to confirm the resolved parameters of a single step."""
    if len(resolved_params) == 0:
        print(f"\n(i) No parameters for {step_name}")
    else:
        print(f"\nParameters for {step_name}")
        for name, resolved_value in resolved_params.items():
            print(f"\t{name}={resolved_value}")
    answer = input(f"Run {step_name} Y/N? ")
    if answer.lower().strip() == "n":
        _abort()
