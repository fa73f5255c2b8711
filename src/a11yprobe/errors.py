# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""a11yprobe exception hierarchy.

All a11yprobe-specific errors inherit from A11yProbeError, allowing callers
to catch the base class for any failure or specific subclasses for targeted
handling. Inside run_all() only OptionsError can escape, and only before
any check runs.
"""

from __future__ import annotations


class A11yProbeError(Exception):
    """Base exception for all a11yprobe errors."""


class OptionsError(A11yProbeError):
    """Scan options failed validation."""


class PageHandleError(A11yProbeError):
    """Page handle evaluation, key press, focus, or screenshot failure."""


class CheckError(A11yProbeError):
    """A single check failed.

    run_all() records it in the CheckTiming; only single-check calls raise it.
    """

    def __init__(self, message: str, *, check: str = "", cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.check = check
        self.cause = cause

    @classmethod
    def wrap(cls, check: str, exc: BaseException) -> CheckError:
        return cls(f"{type(exc).__name__}: {exc}", check=check, cause=exc)
