"""
Formatters that convert job resource requests into the string tokens expected by HTCondor
submit files and by SGE when jobs are forwarded through the grid universe.
"""

import math


BYTES_PER_KIB = 1024
BYTES_PER_MIB = 1024 * 1024


def _round_up_div(num: int, divisor: int) -> int:
    quotient, remainder = divmod(num, divisor)
    return quotient + 1 if remainder > 0 else quotient


def sge_bytes(num_bytes: int | None, cores: float | None, minimum: int | None) -> str:
    """
    Format a number of bytes for an SGE resource request.

    If more than one core is requested, the bytes are divided by the integer part of the number
    of cores, since SGE memory requests are per slot. The result is then raised to the minimum
    if a minimum is given, and rounded up to the nearest KiB until it is at least 1 MiB, and
    rounded up to the nearest MiB after that.

    num_bytes - the number of bytes. None is treated as 0.
    cores - the number of requested cores. None is treated as 0.
    minimum - the minimum number of bytes, or 0 or None for no minimum.
    """
    num_bytes = int(num_bytes or 0)
    cores = cores or 0
    minimum = int(minimum or 0)
    if cores > 1.0:
        num_bytes = num_bytes // int(cores)
    if minimum > 0 and num_bytes < minimum:
        num_bytes = minimum
    if num_bytes < BYTES_PER_KIB:
        return "1K"
    if num_bytes < BYTES_PER_MIB:
        return f"{_round_up_div(num_bytes, BYTES_PER_KIB)}K"
    return f"{_round_up_div(num_bytes, BYTES_PER_MIB)}M"


def condor_bytes(num_bytes: int | None) -> str:
    """
    Format a number of bytes for an HTCondor request_memory or request_disk line, rounding up
    to the nearest KiB.
    """
    return f"{max(_round_up_div(int(num_bytes or 0), BYTES_PER_KIB), 1)}K"


def format_cores(cores: float) -> str:
    """
    Format a possibly fractional number of cores in its shortest exact form, e.g. 8 or 1.5.
    """
    s = repr(float(cores))
    return s[:-2] if s.endswith(".0") else s


def condor_cpus(cores: float) -> int:
    """ HTCondor only accepts whole cpus, so round up a fractional request. """
    return max(math.ceil(cores), 1)
