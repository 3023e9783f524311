def amplify(safety_enabled: bool, desired_count: int) -> int:
    """
    How many items to ask the provider for so that client-side safety
    filtering does not leave the page short.

    The provider has no server-side safety filter on this path, so with
    safety on we ask for twice the amount. Fixed multiplier, it does not
    follow the observed filter ratio.
    """
    if not safety_enabled:
        return desired_count
    return desired_count * 2
