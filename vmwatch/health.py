def ram_percent(ram_usage: float, ram_total: float) -> float:
    return (ram_usage / ram_total) * 100 if ram_total > 0 else 0.0


def evaluate(cpu_usage: float, ram_usage: float, ram_total: float,
             cpu_threshold: float, ram_threshold: float) -> bool:
    """
    Warning decision for one report. Strict comparison: a value equal to
    the threshold is not a warning.
    """
    return cpu_usage > cpu_threshold or ram_percent(ram_usage, ram_total) > ram_threshold


def derive_health(is_down: bool, is_warning: bool) -> str:
    """Three-way label shown to readers; down wins over warning."""
    if is_down:
        return "down"
    if is_warning:
        return "warning"
    return "healthy"
