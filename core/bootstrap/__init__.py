"""
POS Bootstrap
=============
Startup checks run by engines.registry.build_procedure_host before
any procedure call is accepted.
"""

from core.bootstrap.errors import SystemBootstrapError
from core.bootstrap.self_check import run_bootstrap_checks

__all__ = ["SystemBootstrapError", "run_bootstrap_checks"]
