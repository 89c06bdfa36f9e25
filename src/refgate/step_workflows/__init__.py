from __future__ import annotations

from typing import Dict

from ..dsl import CACHE_RESTORE, CHECKOUT, COMMAND, TOOLCHAIN_SETUP
from . import cache_restore, checkout, command, toolchain
from .base import StepContext, StepHandler

DEFAULT_HANDLERS: Dict[str, StepHandler] = {
    COMMAND: command.run_step,
    CHECKOUT: checkout.run_step,
    TOOLCHAIN_SETUP: toolchain.run_step,
    CACHE_RESTORE: cache_restore.run_step,
}

__all__ = ["DEFAULT_HANDLERS", "StepContext", "StepHandler"]
